"""Grouped order statistics shared by the outlier and ranking stages.

All helpers return polars expressions so they can be evaluated per group with
``over`` inside a single ``with_columns`` pass.
"""
from typing import Optional, Union

import polars as pl

Partition = Union[str, list[str], None]

# Halves round away from zero, as SQL ROUND does
ROUND_MODE = "half_away_from_zero"


def _over(expr: pl.Expr, over: Partition) -> pl.Expr:
    if not over:
        return expr
    return expr.over(over)


def quantile_cont(field: str, q: float, over: Partition = None) -> pl.Expr:
    """Continuous percentile of ``field`` (linear interpolation between order statistics).

    Matches SQL ``PERCENTILE_CONT``: for n non-null values sorted ascending the
    quantile sits at rank ``q * (n - 1)`` and is interpolated between the two
    neighbouring values. Nulls are ignored.
    """
    return _over(pl.col(field).quantile(q, interpolation="linear"), over)


def iqr_fences(field: str, over: Partition = None, k: float = 1.5) -> tuple[pl.Expr, pl.Expr]:
    """Lower and upper Tukey fences ``Q1 - k*IQR`` and ``Q3 + k*IQR``."""
    q1 = quantile_cont(field, 0.25, over)
    q3 = quantile_cont(field, 0.75, over)
    iqr = q3 - q1
    return q1 - k * iqr, q3 + k * iqr


def is_outside_fences(field: str, over: Partition = None, k: float = 1.5) -> pl.Expr:
    """True where ``field`` falls strictly outside its IQR fences; nulls are False."""
    lower, upper = iqr_fences(field, over, k)
    return ((pl.col(field) < lower) | (pl.col(field) > upper)).fill_null(False)


def dense_rank(field: str, over: Partition = None, descending: bool = True,
               alias: Optional[str] = None) -> pl.Expr:
    """Dense rank of ``field`` within each partition.

    Tied values share a rank and the next distinct value follows without a gap.
    """
    expr = pl.col(field).rank(method="dense", descending=descending).cast(pl.Int64)
    return _over(expr, over).alias(alias or f"{field}_rank")
