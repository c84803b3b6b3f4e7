"""Output module - writes pipeline tables and the JSON run report."""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any

import polars as pl

from provider_claims import __version__


TABLE_FORMATS = ("csv", "parquet")


def write_table(df: pl.DataFrame, path: str) -> None:
    """Write a DataFrame to CSV or Parquet, chosen by file extension.

    Args:
        df: Table to write.
        path: Destination path ending in ``.csv`` or ``.parquet``.

    Raises:
        ValueError: If the extension is not a supported table format.
    """
    ext = os.path.splitext(path)[1].lower().lstrip(".")
    if ext == "csv":
        df.write_csv(path)
    elif ext == "parquet":
        df.write_parquet(path)
    else:
        raise ValueError(f"Unsupported table format: {ext!r} (expected one of {TABLE_FORMATS})")


def write_tables(tables: dict[str, pl.DataFrame], output_dir: str, fmt: str = "csv") -> list[str]:
    """Write each named table as ``<output_dir>/<name>.<fmt>``.

    Args:
        tables: Mapping of table name to DataFrame.
        output_dir: Directory to write into; created if missing.
        fmt: "csv" or "parquet".

    Returns:
        The list of written file paths, in input order.
    """
    if fmt not in TABLE_FORMATS:
        raise ValueError(f"Unsupported table format: {fmt!r} (expected one of {TABLE_FORMATS})")

    os.makedirs(output_dir, exist_ok=True)
    written: list[str] = []
    for name, df in tables.items():
        path = os.path.join(output_dir, f"{name}.{fmt}")
        write_table(df, path)
        print(f"  {name}: {len(df):,} rows -> {path}")
        written.append(path)
    return written


def build_report(
    stage_counts: dict[str, int],
    validation: dict[str, int],
    outlier_groups: dict[str, int],
    written_files: list[str],
    failed_stages: list[str] | None = None,
) -> dict:
    """Assemble the pipeline_report.json run summary.

    Args:
        stage_counts: Row counts recorded by run_pipeline().
        validation: Issue counts from summarize_issues().
        outlier_groups: Number of reported groups per outlier field.
        written_files: Paths of the tables written for this run.
        failed_stages: Names of analysis stages that raised.

    Returns:
        The complete report dict ready for JSON serialization.
    """
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "tool_version": __version__,
        "stage_counts": stage_counts,
        "validation": validation,
        "outlier_groups_reported": outlier_groups,
        "failed_stages": failed_stages or [],
        "output_files": written_files,
    }


def write_report(report: dict, path: str) -> None:
    """Write the report dict to a JSON file.

    Args:
        report: The complete report dict from build_report().
        path: File path to write the JSON output to.
    """
    with open(path, "w") as f:
        json.dump(report, f, indent=2, default=_json_serializer)
    print(f"Report written to {path}")
    print(f"  Stage counts: {report['stage_counts']}")
    print(f"  Validation: {report['validation']}")


def _json_serializer(obj: Any) -> Any:
    """Handle non-JSON-serializable types during report serialization.

    Converts date/datetime objects to ISO format strings and numpy/polars
    scalar types to native Python types.

    Raises:
        TypeError: If the object type is not recognized.
    """
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "item"):  # numpy/polars scalars
        return obj.item()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
