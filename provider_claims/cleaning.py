"""Destructive cleaning stages: duplicate removal and text normalization.

Both stages take a DataFrame and return a new one; the input is never
modified.
"""
import polars as pl

# A claim row is identified by provider, procedure and its reported volumes
DEDUP_KEY = [
    "npi",
    "hcpcs_code",
    "total_beneficiaries",
    "total_services",
    "total_bene_day_services",
    "avg_submitted_charge",
]


def deduplicate(df: pl.DataFrame, key: list[str] = DEDUP_KEY) -> pl.DataFrame:
    """Keep exactly one row per dedup key, discarding the other copies.

    The first occurrence survives and original row order is preserved, so
    running this twice returns the same frame.
    """
    result = df.unique(subset=key, keep="first", maintain_order=True)
    removed = len(df) - len(result)
    print(f"  Dedup: removed {removed:,} duplicate rows ({len(result):,} remaining)")
    return result


def text_columns(df: pl.DataFrame) -> list[str]:
    """Names of all string-typed columns."""
    return [name for name, dtype in df.schema.items() if dtype == pl.Utf8]


def normalize_text(df: pl.DataFrame) -> pl.DataFrame:
    """Trim leading and trailing whitespace from every text field.

    Nulls stay null. Applying this to already trimmed data is a no-op.
    """
    cols = text_columns(df)
    if not cols:
        return df
    return df.with_columns([pl.col(c).str.strip_chars() for c in cols])
