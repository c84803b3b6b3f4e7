"""Data ingestion module - loads a claims extract into the canonical schema."""
import os
from typing import Optional

import polars as pl


DATA_DIR = os.environ.get("CLAIMS_DATA_DIR", "data")

# Known column name patterns for auto-detection, keyed by canonical name
_COLUMN_PATTERNS: dict[str, list[str]] = {
    "npi": ["rndrng_npi", "npi", "rendering_npi", "provider_npi"],
    "last_org_name": ["rndrng_prvdr_last_org_name", "last_org_name", "nppes_provider_last_org_name",
                      "provider_last_name", "last_name"],
    "first_name": ["rndrng_prvdr_first_name", "first_name", "nppes_provider_first_name",
                   "provider_first_name"],
    "middle_initial": ["rndrng_prvdr_mi", "middle_initial", "nppes_provider_mi"],
    "credentials": ["rndrng_prvdr_crdntls", "credentials", "nppes_credentials"],
    "gender": ["rndrng_prvdr_gndr", "gender", "nppes_provider_gender"],
    "entity_code": ["rndrng_prvdr_ent_cd", "entity_code", "nppes_entity_code"],
    "street1": ["rndrng_prvdr_st1", "street1", "nppes_provider_street1"],
    "street2": ["rndrng_prvdr_st2", "street2", "nppes_provider_street2"],
    "city": ["rndrng_prvdr_city", "city", "nppes_provider_city"],
    "state": ["rndrng_prvdr_state_abrvtn", "state", "nppes_provider_state", "state_abbreviation"],
    "zip5": ["rndrng_prvdr_zip5", "zip5", "zip", "nppes_provider_zip"],
    "ruca": ["rndrng_prvdr_ruca", "ruca", "rural_urban_code"],
    "country": ["rndrng_prvdr_cntry", "country", "nppes_provider_country"],
    "provider_type": ["rndrng_prvdr_type", "provider_type", "specialty"],
    "hcpcs_code": ["hcpcs_cd", "hcpcs_code", "hcpcs", "procedure_code"],
    "hcpcs_desc": ["hcpcs_desc", "hcpcs_description", "procedure_description"],
    "total_beneficiaries": ["tot_benes", "total_beneficiaries", "bene_unique_cnt", "bene_cnt"],
    "total_services": ["tot_srvcs", "total_services", "line_srvc_cnt", "srvc_cnt"],
    "total_bene_day_services": ["tot_bene_day_srvcs", "total_bene_day_services", "bene_day_srvc_cnt"],
    "avg_submitted_charge": ["avg_sbmtd_chrg", "avg_submitted_charge", "average_submitted_chrg_amt"],
    "avg_medicare_allowed": ["avg_mdcr_alowd_amt", "avg_medicare_allowed", "average_medicare_allowed_amt"],
    "avg_medicare_payment": ["avg_mdcr_pymt_amt", "avg_medicare_payment", "average_medicare_payment_amt"],
    "avg_medicare_standardized": ["avg_mdcr_stdzd_amt", "avg_medicare_standardized",
                                  "average_medicare_standard_amt"],
}

CANONICAL_COLUMNS: list[str] = list(_COLUMN_PATTERNS)

COUNT_FIELDS = ["total_beneficiaries", "total_services", "total_bene_day_services"]
AMOUNT_FIELDS = [
    "avg_submitted_charge",
    "avg_medicare_allowed",
    "avg_medicare_payment",
    "avg_medicare_standardized",
]
NUMERIC_FIELDS = COUNT_FIELDS + AMOUNT_FIELDS


def _match_column(columns_lower: dict[str, str], patterns: list[str]) -> Optional[str]:
    """Find the first matching column name from a list of patterns."""
    for p in patterns:
        if p in columns_lower:
            return columns_lower[p]
    return None


def detect_claim_columns(columns: list[str]) -> dict[str, str]:
    """Auto-detect claims extract column names and map to canonical names.

    Returns a dict mapping canonical names (npi, hcpcs_code, total_services, ...)
    to actual column names in the source file. Canonical names with no match
    are left out of the mapping.
    """
    cols_lower = {c.strip().lower(): c for c in columns}
    mapping = {}
    used: set[str] = set()

    for alias, patterns in _COLUMN_PATTERNS.items():
        match = _match_column(cols_lower, patterns)
        # A source column maps to at most one canonical name
        if match and match not in used:
            mapping[alias] = match
            used.add(match)

    missing = [c for c in CANONICAL_COLUMNS if c not in mapping]
    if missing:
        print(f"WARNING: Could not detect columns for: {missing}")
        print(f"  Available columns: {columns}")

    return mapping


def conform_schema(df: pl.DataFrame, col_map: dict[str, str]) -> pl.DataFrame:
    """Rename detected columns and cast them to the canonical schema.

    Text columns become strings, numeric fields become Float64 (unparseable
    values become null) and undetected canonical columns are added as nulls.
    The NPI is stripped but never padded, so malformed identifiers stay
    visible to validation.
    """
    df = df.select([pl.col(src).alias(alias) for alias, src in col_map.items()])

    exprs = []
    for name in CANONICAL_COLUMNS:
        if name in NUMERIC_FIELDS:
            dtype = pl.Float64
        else:
            dtype = pl.Utf8
        if name in df.columns:
            exprs.append(pl.col(name).cast(dtype, strict=False))
        else:
            exprs.append(pl.lit(None, dtype=dtype).alias(name))

    df = df.select(exprs)
    return df.with_columns(pl.col("npi").str.strip_chars())


def load_claims(path: Optional[str] = None, data_dir: Optional[str] = None) -> pl.DataFrame:
    """Load a provider claims extract (CSV or Parquet) into the canonical schema.

    Args:
        path: Explicit file path. When omitted, ``claims.parquet`` or
            ``claims.csv`` is looked up in ``data_dir``.
        data_dir: Directory to search; defaults to ``CLAIMS_DATA_DIR``.

    Returns:
        DataFrame with every canonical column present.
    """
    if path is None:
        ddir = data_dir or DATA_DIR
        for name in ("claims.parquet", "claims.csv"):
            candidate = os.path.join(ddir, name)
            if os.path.exists(candidate):
                path = candidate
                break
        else:
            raise FileNotFoundError(f"No claims extract (claims.parquet or claims.csv) found in {ddir}")

    if not os.path.exists(path):
        raise FileNotFoundError(f"Claims extract not found at {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        # Read everything as text so identifiers keep their exact form
        raw = pl.read_csv(path, infer_schema_length=0, null_values=["", "*"])
    elif ext == ".parquet":
        raw = pl.read_parquet(path)
    else:
        raise ValueError(f"Unsupported claims file format: {ext!r} (expected .csv or .parquet)")

    col_map = detect_claim_columns(raw.columns)
    if not col_map:
        raise ValueError(f"No recognizable claims columns in {path}: {raw.columns}")
    df = conform_schema(raw, col_map)
    print(f"Claims data: {len(df):,} rows, {len(col_map)}/{len(CANONICAL_COLUMNS)} columns detected from {path}")
    return df
