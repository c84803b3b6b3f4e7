"""Advisory data-quality checks for the claims extract.

Validation never repairs or drops rows. It returns a report of offending
values so they can be reviewed by hand.
"""
import polars as pl

from provider_claims.ingest import NUMERIC_FIELDS

# Issue type string identifiers
MISSING_FIELD = "missing_field"
OUT_OF_RANGE_VALUE = "out_of_range_value"
MALFORMED_IDENTIFIER = "malformed_identifier"

ISSUE_TYPES = [MISSING_FIELD, OUT_OF_RANGE_VALUE, MALFORMED_IDENTIFIER]

REQUIRED_FIELDS = [
    "npi",
    "last_org_name",
    "city",
    "state",
    "country",
    "provider_type",
    "hcpcs_code",
    "hcpcs_desc",
] + NUMERIC_FIELDS

NPI_LENGTH = 10

REPORT_SCHEMA = {
    "row_index": pl.UInt32,
    "npi": pl.Utf8,
    "hcpcs_code": pl.Utf8,
    "field": pl.Utf8,
    "issue": pl.Utf8,
}


def _is_missing(df: pl.DataFrame, field: str) -> pl.Expr:
    """Null, or a string that is empty once whitespace is removed."""
    expr = pl.col(field).is_null()
    if df.schema[field] == pl.Utf8:
        expr = expr | (pl.col(field).str.strip_chars() == "")
    return expr


def _issue_rows(indexed: pl.DataFrame, condition: pl.Expr, field: str, issue: str) -> pl.DataFrame:
    ident = [
        pl.col(c).cast(pl.Utf8) if c in indexed.columns else pl.lit(None, dtype=pl.Utf8).alias(c)
        for c in ("npi", "hcpcs_code")
    ]
    return indexed.filter(condition).select(
        [pl.col("row_index")]
        + ident
        + [pl.lit(field).alias("field"), pl.lit(issue).alias("issue")]
    )


def validate(df: pl.DataFrame) -> pl.DataFrame:
    """Report missing, negative and malformed values.

    Produces one row per offending value with columns ``row_index``, ``npi``,
    ``hcpcs_code``, ``field`` and ``issue``. ``row_index`` is the row position
    in ``df``. Required columns absent from the frame are skipped; ingest
    always adds them.
    """
    indexed = df.with_row_index("row_index")
    frames = [pl.DataFrame(schema=REPORT_SCHEMA)]

    for field in REQUIRED_FIELDS:
        if field in df.columns:
            frames.append(_issue_rows(indexed, _is_missing(df, field), field, MISSING_FIELD))

    for field in NUMERIC_FIELDS:
        if field in df.columns:
            frames.append(_issue_rows(indexed, pl.col(field) < 0, field, OUT_OF_RANGE_VALUE))

    if "npi" in df.columns:
        npi = pl.col("npi").cast(pl.Utf8)
        malformed = npi.is_not_null() & ~npi.str.contains(rf"^\d{{{NPI_LENGTH}}}$")
        frames.append(_issue_rows(indexed, malformed, "npi", MALFORMED_IDENTIFIER))

    report = pl.concat(frames, how="vertical_relaxed").sort(["row_index", "field", "issue"])
    print(f"  Validation: {len(report):,} issues across {report['row_index'].n_unique():,} rows")
    return report


def npi_length_profile(df: pl.DataFrame) -> pl.DataFrame:
    """Distinct NPI lengths with row counts, shortest first.

    Any length other than 10 means at least one malformed identifier.
    """
    return (
        df
        .filter(pl.col("npi").is_not_null())
        .group_by(pl.col("npi").cast(pl.Utf8).str.len_chars().alias("npi_length"))
        .agg(pl.len().alias("row_count"))
        .sort("npi_length")
    )


def has_malformed_npi(profile: pl.DataFrame) -> bool:
    """True if the length profile contains any length other than 10."""
    return any(length != NPI_LENGTH for length in profile["npi_length"].to_list())


def summarize_issues(report: pl.DataFrame) -> dict[str, int]:
    """Count issues by type, plus the number of distinct rows flagged."""
    counts = {issue: 0 for issue in ISSUE_TYPES}
    for row in report.group_by("issue").agg(pl.len().alias("n")).iter_rows(named=True):
        counts[row["issue"]] = int(row["n"])
    counts["rows_flagged"] = int(report["row_index"].n_unique())
    return counts
