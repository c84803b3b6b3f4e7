"""Main orchestration module - runs the full claims cleaning and ranking pipeline.

Loads one provider claims extract, removes duplicate rows, validates and
normalizes the remaining records, then builds the outlier reports, provider
rankings and summary tables consumed by the dashboard.
"""
from __future__ import annotations

import argparse
import os
import time
import traceback
from typing import Any, Callable

import polars as pl

from provider_claims import __version__
from provider_claims.analysis import (
    MIN_GROUP_SIZE,
    TOP_N,
    outlier_report,
    rank_providers,
)
from provider_claims.cleaning import deduplicate, normalize_text
from provider_claims.ingest import NUMERIC_FIELDS, load_claims
from provider_claims.output import build_report, write_report, write_tables
from provider_claims.summary import procedure_summary, provider_type_summary, state_summary
from provider_claims.validation import (
    has_malformed_npi,
    npi_length_profile,
    summarize_issues,
    validate,
)

DEFAULT_REPORT_FIELDS = ["avg_submitted_charge", "avg_medicare_allowed"]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the claims pipeline.

    Returns:
        Parsed arguments with input, data_dir, output_dir, format,
        outlier_fields, top_n and min_group_size attributes.
    """
    parser = argparse.ArgumentParser(
        description="Medicare Provider Claims Cleaning and Ranking Pipeline"
    )
    parser.add_argument(
        "--input", default=None,
        help="Claims extract (.csv or .parquet); defaults to claims.parquet/claims.csv in --data-dir",
    )
    parser.add_argument(
        "--data-dir", default=None,
        help="Directory containing the claims extract (default: $CLAIMS_DATA_DIR or data)",
    )
    parser.add_argument(
        "--output-dir", default="output",
        help="Directory for output tables and pipeline_report.json (default: output)",
    )
    parser.add_argument(
        "--format", default="csv", choices=["csv", "parquet"],
        help="Output table format (default: csv)",
    )
    parser.add_argument(
        "--outlier-field", dest="outlier_fields", action="append", choices=NUMERIC_FIELDS,
        help="Numeric field to build an outlier-rate report for (repeatable; "
             f"default: {', '.join(DEFAULT_REPORT_FIELDS)})",
    )
    parser.add_argument(
        "--top-n", type=int, default=TOP_N,
        help=f"Ranks to keep per specialty/state in the top providers table (default: {TOP_N})",
    )
    parser.add_argument(
        "--min-group-size", type=int, default=MIN_GROUP_SIZE,
        help=f"Procedure groups must have more rows than this to be reported (default: {MIN_GROUP_SIZE})",
    )
    args = parser.parse_args(argv)
    if not args.outlier_fields:
        args.outlier_fields = list(DEFAULT_REPORT_FIELDS)
    return args


def run_pipeline(
    claims: pl.DataFrame,
    outlier_fields: list[str] | None = None,
    top_n: int = TOP_N,
    min_group_size: int = MIN_GROUP_SIZE,
) -> dict[str, Any]:
    """Run every stage over an explicit claims table.

    The cleaning stages (dedup, validate, normalize) must succeed. Each
    analysis stage runs with error isolation so that a failure in one does
    not prevent the others from completing; failed stage names are listed
    under ``failed_stages``.

    Args:
        claims: Claims in the canonical schema (see ingest.load_claims()).
        outlier_fields: Fields to build outlier-rate reports for.
        top_n: Rank cutoff for the top providers table.
        min_group_size: Minimum (exclusive) group size for outlier reports.

    Returns:
        Dict with the cleaned table, validation report, NPI length profile,
        per-field outlier reports, rankings, summaries, stage counts and
        validation issue counts.
    """
    fields = outlier_fields or list(DEFAULT_REPORT_FIELDS)

    deduped = deduplicate(claims)
    issues = validate(deduped)
    npi_lengths = npi_length_profile(deduped)
    if has_malformed_npi(npi_lengths):
        print(f"  WARNING: NPI lengths other than 10 found: {npi_lengths['npi_length'].to_list()}")
    cleaned = normalize_text(deduped)

    results: dict[str, Any] = {
        "cleaned": cleaned,
        "validation": issues,
        "npi_lengths": npi_lengths,
        "outlier_reports": {},
        "failed_stages": [],
    }

    # Each report flags only its own field
    runners: list[tuple[str, Callable[[], Any]]] = [
        (f"outlier_report_{field}", lambda f=field: outlier_report(cleaned, f, min_count=min_group_size))
        for field in fields
    ]
    runners += [
        ("provider_rankings", lambda: rank_providers(cleaned)),
        ("top_providers", lambda: rank_providers(cleaned, top_n=top_n)),
        ("provider_type_summary", lambda: provider_type_summary(cleaned)),
        ("procedure_summary", lambda: procedure_summary(cleaned)),
        ("state_summary", lambda: state_summary(cleaned)),
    ]

    for stage_name, runner in runners:
        t = time.time()
        try:
            table = runner()
        except Exception as e:
            print(f"  ERROR in {stage_name}: {e}")
            traceback.print_exc()
            results["failed_stages"].append(stage_name)
            continue
        if stage_name.startswith("outlier_report_"):
            results["outlier_reports"][stage_name[len("outlier_report_"):]] = table
        else:
            results[stage_name] = table
        print(f"  {stage_name}: {len(table):,} rows in {time.time() - t:.1f}s")

    results["validation_summary"] = summarize_issues(issues)
    results["stage_counts"] = {
        "rows_loaded": len(claims),
        "rows_after_dedup": len(deduped),
        "duplicates_removed": len(claims) - len(deduped),
        "rows_with_issues": results["validation_summary"]["rows_flagged"],
        "providers_ranked": len(results["provider_rankings"]) if "provider_rankings" in results else 0,
    }
    return results


def collect_tables(results: dict[str, Any]) -> dict[str, pl.DataFrame]:
    """Flatten run_pipeline() results into named output tables."""
    tables = {
        "cleaned_claims": results["cleaned"],
        "validation_issues": results["validation"],
        "npi_length_profile": results["npi_lengths"],
    }
    for field, report in results["outlier_reports"].items():
        tables[f"outlier_report_{field}"] = report
    for name in ("provider_rankings", "top_providers", "provider_type_summary",
                 "procedure_summary", "state_summary"):
        if name in results:
            tables[name] = results[name]
    return tables


def main(argv: list[str] | None = None) -> None:
    """Run the full claims pipeline from the command line."""
    args = parse_args(argv)

    print("=" * 60)
    print(f"Medicare Provider Claims Pipeline v{__version__}")
    print("=" * 60)
    start_time = time.time()

    print("\n[1/4] Loading claims...")
    t = time.time()
    claims = load_claims(args.input, args.data_dir)
    print(f"  Data loaded in {time.time() - t:.1f}s")

    print("\n[2/4] Running pipeline stages...")
    results = run_pipeline(
        claims,
        outlier_fields=args.outlier_fields,
        top_n=args.top_n,
        min_group_size=args.min_group_size,
    )

    print("\n[3/4] Writing tables...")
    written = write_tables(collect_tables(results), args.output_dir, args.format)

    print("\n[4/4] Building report...")
    report = build_report(
        stage_counts=results["stage_counts"],
        validation=results["validation_summary"],
        outlier_groups={f: len(r) for f, r in results["outlier_reports"].items()},
        written_files=written,
        failed_stages=results["failed_stages"],
    )
    write_report(report, os.path.join(args.output_dir, "pipeline_report.json"))

    elapsed = time.time() - start_time
    print(f"\nCompleted in {elapsed:.1f}s")


if __name__ == "__main__":
    main()
