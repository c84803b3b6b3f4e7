"""Synthetic claims data generators for pipeline tests."""
import polars as pl

from provider_claims.ingest import CANONICAL_COLUMNS, NUMERIC_FIELDS


_DEFAULTS = {
    "npi": "1234567890",
    "last_org_name": "SMITH",
    "first_name": "JANE",
    "middle_initial": "A",
    "credentials": "M.D.",
    "gender": "F",
    "entity_code": "I",
    "street1": "100 MAIN ST",
    "street2": None,
    "city": "AUSTIN",
    "state": "TX",
    "zip5": "78701",
    "ruca": "1",
    "country": "US",
    "provider_type": "Internal Medicine",
    "hcpcs_code": "99213",
    "hcpcs_desc": "Established patient office or other outpatient visit",
    "total_beneficiaries": 10.0,
    "total_services": 10.0,
    "total_bene_day_services": 10.0,
    "avg_submitted_charge": 120.0,
    "avg_medicare_allowed": 50.0,
    "avg_medicare_payment": 40.0,
    "avg_medicare_standardized": 41.0,
}

SCHEMA = {
    name: (pl.Float64 if name in NUMERIC_FIELDS else pl.Utf8)
    for name in CANONICAL_COLUMNS
}


def make_claims_df(rows: list[dict]) -> pl.DataFrame:
    """Create a synthetic claims DataFrame in the canonical schema.

    Each row dict overrides the defaults for the columns it names.
    """
    full_rows = []
    for r in rows:
        row = dict(_DEFAULTS)
        row.update(r)
        full_rows.append(row)

    return pl.DataFrame(full_rows, schema=SCHEMA)


def make_procedure_group(hcpcs_code: str, values: list[float], field: str = "avg_submitted_charge") -> list[dict]:
    """Rows for one procedure code with the given values of ``field``.

    Every row gets its own NPI so the rows survive deduplication.
    """
    return [
        {"npi": f"1{i:09d}", "hcpcs_code": hcpcs_code, field: v}
        for i, v in enumerate(values)
    ]


# CMS "by Provider and Service" headers for ingest tests
CMS_HEADERS = {
    "npi": "Rndrng_NPI",
    "last_org_name": "Rndrng_Prvdr_Last_Org_Name",
    "first_name": "Rndrng_Prvdr_First_Name",
    "middle_initial": "Rndrng_Prvdr_MI",
    "credentials": "Rndrng_Prvdr_Crdntls",
    "gender": "Rndrng_Prvdr_Gndr",
    "entity_code": "Rndrng_Prvdr_Ent_Cd",
    "street1": "Rndrng_Prvdr_St1",
    "street2": "Rndrng_Prvdr_St2",
    "city": "Rndrng_Prvdr_City",
    "state": "Rndrng_Prvdr_State_Abrvtn",
    "zip5": "Rndrng_Prvdr_Zip5",
    "ruca": "Rndrng_Prvdr_RUCA",
    "country": "Rndrng_Prvdr_Cntry",
    "provider_type": "Rndrng_Prvdr_Type",
    "hcpcs_code": "HCPCS_Cd",
    "hcpcs_desc": "HCPCS_Desc",
    "total_beneficiaries": "Tot_Benes",
    "total_services": "Tot_Srvcs",
    "total_bene_day_services": "Tot_Bene_Day_Srvcs",
    "avg_submitted_charge": "Avg_Sbmtd_Chrg",
    "avg_medicare_allowed": "Avg_Mdcr_Alowd_Amt",
    "avg_medicare_payment": "Avg_Mdcr_Pymt_Amt",
    "avg_medicare_standardized": "Avg_Mdcr_Stdzd_Amt",
}
