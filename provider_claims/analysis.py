"""Read-only analysis stages: per-procedure outlier detection and provider ranking."""
from typing import Optional

import polars as pl

from provider_claims.ingest import NUMERIC_FIELDS
from provider_claims.stats import ROUND_MODE, dense_rank, is_outside_fences

OUTLIER_FIELDS = NUMERIC_FIELDS
IQR_MULTIPLIER = 1.5
# Groups at or below this size are left out of the outlier-rate report
MIN_GROUP_SIZE = 100

TOP_N = 10
PARTITION = ["provider_type", "state"]

# Armed Forces (Americas, Europe, Pacific), foreign country and unknown
NON_DOMESTIC_STATES = frozenset({"AA", "AE", "AP", "ZZ", "XX"})

RANKING_COLUMNS = [
    "npi",
    "provider_type",
    "last_org_name",
    "first_name",
    "credentials",
    "state",
    "city",
    "total_claim_amount",
    "rank",
]


def outlier_column(field: str) -> str:
    return f"{field}_outlier"


def flag_outliers(
    df: pl.DataFrame,
    fields: list[str] = OUTLIER_FIELDS,
    group_by: str = "hcpcs_code",
    k: float = IQR_MULTIPLIER,
) -> pl.DataFrame:
    """Add a boolean ``<field>_outlier`` column for each field.

    A value is an outlier when it lies below ``Q1 - k*IQR`` or above
    ``Q3 + k*IQR`` of that field within its ``group_by`` group. Quartiles use
    linear interpolation. Every row is flagged regardless of group size.
    """
    return df.with_columns([
        is_outside_fences(field, over=group_by, k=k).alias(outlier_column(field))
        for field in fields
    ])


def outlier_report(
    df: pl.DataFrame,
    field: str,
    group_by: str = "hcpcs_code",
    min_count: int = MIN_GROUP_SIZE,
    k: float = IQR_MULTIPLIER,
) -> pl.DataFrame:
    """Per-group outlier counts and rates for one field.

    Returns ``<group_by>, outlier_count, total_count, outlier_rate`` for groups
    with more than ``min_count`` rows, highest rate first. ``outlier_rate`` is
    rounded to 2 decimals, halves away from zero. The ``<field>_outlier`` flag
    is always recomputed with ``group_by`` and ``k``, replacing any flag column
    already present in ``df``.
    """
    flag_col = outlier_column(field)
    df = flag_outliers(df, [field], group_by=group_by, k=k)

    report = (
        df
        .group_by(group_by)
        .agg([
            pl.col(flag_col).sum().cast(pl.Int64).alias("outlier_count"),
            pl.len().cast(pl.Int64).alias("total_count"),
        ])
        .filter(pl.col("total_count") > min_count)
        .with_columns(
            (pl.col("outlier_count") / pl.col("total_count"))
            .round(2, mode=ROUND_MODE)
            .alias("outlier_rate")
        )
        .sort(["outlier_rate", group_by], descending=[True, False])
    )

    print(f"  Outliers [{field}]: {len(report):,} groups with more than {min_count} rows")
    return report


def domestic_only(df: pl.DataFrame) -> pl.DataFrame:
    """Drop rows without an NPI, with a null state or a military/overseas state designator."""
    return df.filter(
        pl.col("npi").is_not_null()
        & pl.col("state").is_not_null()
        & ~pl.col("state").is_in(sorted(NON_DOMESTIC_STATES))
    )


def rank_providers(df: pl.DataFrame, top_n: Optional[int] = None) -> pl.DataFrame:
    """Rank providers by total claim amount within specialty and state.

    Each row contributes ``total_services * avg_medicare_allowed``; sums are
    taken per (npi, provider_type, state) and rounded to whole dollars. Ranks
    are dense within each (provider_type, state) partition, highest amount
    first. Sorted by state, provider type, rank.

    Args:
        df: Cleaned claims.
        top_n: If given, keep only providers with rank <= top_n.
    """
    ranked = (
        domestic_only(df)
        .with_columns(
            (pl.col("total_services") * pl.col("avg_medicare_allowed")).alias("_claim_amount")
        )
        .group_by(["npi", "provider_type", "state"])
        .agg([
            pl.col("last_org_name").first(),
            pl.col("first_name").first(),
            pl.col("credentials").first(),
            pl.col("city").first(),
            pl.col("_claim_amount").sum().round(0, mode=ROUND_MODE).alias("total_claim_amount"),
        ])
        .with_columns(dense_rank("total_claim_amount", over=PARTITION, alias="rank"))
    )

    if top_n is not None:
        ranked = ranked.filter(pl.col("rank") <= top_n)

    ranked = ranked.select(RANKING_COLUMNS).sort(["state", "provider_type", "rank", "npi"])
    print(f"  Ranking: {len(ranked):,} providers across "
          f"{ranked.select(PARTITION).n_unique():,} specialty/state groups")
    return ranked


def top_providers(df: pl.DataFrame, n: int = TOP_N) -> pl.DataFrame:
    """Top ``n`` ranks per (provider_type, state), for the key opinion leader view."""
    return rank_providers(df, top_n=n)
