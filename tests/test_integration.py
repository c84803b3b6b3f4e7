"""Integration tests: run synthetic claims through the full pipeline and CLI."""
import json
import os

import polars as pl
import pytest

from provider_claims.main import collect_tables, main, run_pipeline
from provider_claims.validation import MALFORMED_IDENTIFIER, MISSING_FIELD, OUT_OF_RANGE_VALUE
from tests.fixtures import CMS_HEADERS, make_claims_df, make_procedure_group


def _build_synthetic_claims() -> pl.DataFrame:
    """Claims that exercise every stage: duplicates, bad values, outliers, rankings."""
    rows = []

    # Outlier report: 150 office visits, 3 far above the upper fence
    rows += make_procedure_group("99213", [100.0] * 147 + [10_000.0] * 3)

    # Exact duplicate of the first office visit
    rows.append(dict(rows[0]))

    # Padded text that the normalizer must trim
    rows.append({"npi": "3000000001", "hcpcs_code": "93000", "city": "  HOUSTON ",
                 "provider_type": " Cardiology", "state": "TX "})

    # Data-quality problems, reported but kept
    rows.append({"npi": "12345", "hcpcs_code": "93000"})
    rows.append({"npi": "3000000002", "hcpcs_code": "93000", "total_services": -4.0})
    rows.append({"npi": "3000000003", "hcpcs_code": "93000", "hcpcs_desc": None})

    # Overseas military provider with a huge amount
    rows.append({"npi": "4000000001", "hcpcs_code": "93000", "state": "AE",
                 "total_services": 1_000_000.0})

    return make_claims_df(rows)


class TestFullPipeline:
    """Run all stages over synthetic claims."""

    @pytest.fixture(autouse=True)
    def setup_claims(self):
        self.claims = _build_synthetic_claims()
        self.results = run_pipeline(self.claims, outlier_fields=["avg_submitted_charge"])

    def test_duplicates_removed(self):
        counts = self.results["stage_counts"]
        assert counts["rows_loaded"] == len(self.claims)
        assert counts["duplicates_removed"] == 1
        assert counts["rows_after_dedup"] == len(self.claims) - 1
        assert len(self.results["cleaned"]) == len(self.claims) - 1

    def test_validation_issues_reported_not_dropped(self):
        summary = self.results["validation_summary"]
        assert summary[MISSING_FIELD] == 1
        assert summary[OUT_OF_RANGE_VALUE] == 1
        assert summary[MALFORMED_IDENTIFIER] == 1
        assert "12345" in self.results["cleaned"]["npi"].to_list()

    def test_text_normalized(self):
        cleaned = self.results["cleaned"]
        row = cleaned.filter(pl.col("npi") == "3000000001").row(0, named=True)
        assert row["city"] == "HOUSTON"
        assert row["provider_type"] == "Cardiology"
        assert row["state"] == "TX"

    def test_outlier_report(self):
        report = self.results["outlier_reports"]["avg_submitted_charge"]
        assert report.rows() == [("99213", 3, 150, 0.02)]

    def test_rankings_exclude_overseas(self):
        rankings = self.results["provider_rankings"]
        assert "AE" not in rankings["state"].to_list()
        assert "4000000001" not in rankings["npi"].to_list()
        assert self.results["stage_counts"]["providers_ranked"] == len(rankings)

    def test_trimmed_state_ranked_with_its_peers(self):
        """After trimming, 'TX ' ranks in the TX partition."""
        rankings = self.results["provider_rankings"]
        row = rankings.filter(pl.col("npi") == "3000000001").row(0, named=True)
        assert row["state"] == "TX"
        assert row["provider_type"] == "Cardiology"
        assert row["rank"] == 1

    def test_top_providers_capped(self):
        top = self.results["top_providers"]
        assert top["rank"].max() <= 10

    def test_no_failed_stages(self):
        assert self.results["failed_stages"] == []

    def test_collect_tables_names(self):
        tables = collect_tables(self.results)
        assert set(tables) == {
            "cleaned_claims",
            "validation_issues",
            "npi_length_profile",
            "outlier_report_avg_submitted_charge",
            "provider_rankings",
            "top_providers",
            "provider_type_summary",
            "procedure_summary",
            "state_summary",
        }


class TestOutlierFields:
    """Only the requested outlier fields are flagged and reported."""

    def test_flags_only_reported_fields(self, monkeypatch):
        import provider_claims.analysis as analysis_module

        flagged_fields = []
        real_flag_outliers = analysis_module.flag_outliers

        def spy(df, fields, *args, **kwargs):
            flagged_fields.extend(fields)
            return real_flag_outliers(df, fields, *args, **kwargs)

        monkeypatch.setattr(analysis_module, "flag_outliers", spy)
        results = run_pipeline(_build_synthetic_claims(), outlier_fields=["avg_medicare_allowed"])
        assert flagged_fields == ["avg_medicare_allowed"]
        assert list(results["outlier_reports"]) == ["avg_medicare_allowed"]
        assert not any(c.endswith("_outlier") for c in results["cleaned"].columns)


class TestStageIsolation:
    """A failing analysis stage does not stop the others."""

    def test_failed_ranking_is_recorded(self, monkeypatch):
        import provider_claims.main as main_module

        def boom(*args, **kwargs):
            raise RuntimeError("ranking failed")

        monkeypatch.setattr(main_module, "rank_providers", boom)
        results = run_pipeline(make_claims_df([{}]))
        assert results["failed_stages"] == ["provider_rankings", "top_providers"]
        assert "state_summary" in results
        assert results["stage_counts"]["providers_ranked"] == 0


class TestMain:
    """End-to-end run of the command line entry point."""

    def test_writes_tables_and_report(self, tmp_path):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        claims = _build_synthetic_claims().rename(CMS_HEADERS)
        claims.write_parquet(data_dir / "claims.parquet")
        out_dir = tmp_path / "out"

        main(["--data-dir", str(data_dir), "--output-dir", str(out_dir), "--top-n", "5"])

        with open(out_dir / "pipeline_report.json") as f:
            report = json.load(f)
        assert report["stage_counts"]["duplicates_removed"] == 1
        assert report["outlier_groups_reported"]["avg_submitted_charge"] == 1
        assert report["failed_stages"] == []
        for path in report["output_files"]:
            assert os.path.exists(path)
        assert os.path.exists(out_dir / "provider_rankings.csv")
        assert os.path.exists(out_dir / "outlier_report_avg_medicare_allowed.csv")
