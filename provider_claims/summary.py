"""Aggregate tables behind the dashboard's specialty, procedure and state views."""
from typing import Optional

import polars as pl

from provider_claims.stats import ROUND_MODE

_CLAIM_AMOUNT = (pl.col("total_services") * pl.col("avg_medicare_allowed"))


def provider_type_summary(df: pl.DataFrame) -> pl.DataFrame:
    """Provider counts, volume and allowed amounts per specialty."""
    return (
        df
        .group_by("provider_type")
        .agg([
            pl.col("npi").n_unique().alias("provider_count"),
            pl.len().alias("row_count"),
            pl.col("total_services").sum().alias("total_services"),
            _CLAIM_AMOUNT.sum().round(2, mode=ROUND_MODE).alias("total_allowed_amount"),
            pl.col("avg_submitted_charge").mean().round(2, mode=ROUND_MODE).alias("mean_submitted_charge"),
        ])
        .sort(["total_allowed_amount", "provider_type"], descending=[True, False])
    )


def procedure_summary(df: pl.DataFrame, top_n: Optional[int] = None) -> pl.DataFrame:
    """Volume and pricing per HCPCS code, busiest procedures first.

    ``charge_to_allowed_ratio`` compares the mean submitted charge with the
    mean Medicare allowed amount; it is null when the allowed mean is zero.
    """
    summary = (
        df
        .group_by("hcpcs_code")
        .agg([
            pl.col("hcpcs_desc").first(),
            pl.col("npi").n_unique().alias("provider_count"),
            pl.col("total_services").sum().alias("total_services"),
            pl.col("total_beneficiaries").sum().alias("total_beneficiaries"),
            pl.col("avg_submitted_charge").mean().alias("mean_submitted_charge"),
            pl.col("avg_medicare_allowed").mean().alias("mean_allowed_amount"),
        ])
        .with_columns(
            pl.when(pl.col("mean_allowed_amount") > 0)
            .then(pl.col("mean_submitted_charge") / pl.col("mean_allowed_amount"))
            .otherwise(None)
            .round(2, mode=ROUND_MODE)
            .alias("charge_to_allowed_ratio")
        )
        .with_columns([
            pl.col("mean_submitted_charge").round(2, mode=ROUND_MODE),
            pl.col("mean_allowed_amount").round(2, mode=ROUND_MODE),
        ])
        .sort(["total_services", "hcpcs_code"], descending=[True, False])
    )
    if top_n is not None:
        summary = summary.head(top_n)
    return summary


def state_summary(df: pl.DataFrame) -> pl.DataFrame:
    """Provider counts, services and allowed amounts per state."""
    return (
        df
        .group_by("state")
        .agg([
            pl.col("npi").n_unique().alias("provider_count"),
            pl.col("total_services").sum().alias("total_services"),
            _CLAIM_AMOUNT.sum().round(2, mode=ROUND_MODE).alias("total_allowed_amount"),
        ])
        .sort(["total_allowed_amount", "state"], descending=[True, False])
    )
