"""Tests for the relinfer CLI."""

import json
import logging

import pytest
from typer.testing import CliRunner

from relinfer.cli.main import app

runner = CliRunner()


@pytest.fixture
def store_url(tmp_path):
    return f"sqlite:///{tmp_path / 'runs.db'}"


class TestAnalyze:
    """Tests for the analyze command."""

    def test_json_output(self, scenario_db_path):
        result = runner.invoke(app, ["analyze", str(scenario_db_path), "--json"])
        assert result.exit_code == 0, result.output

        data = json.loads(result.stdout)
        assert data["summary"]["accepted"] == 2
        assert {r["id"] for r in data["relationships"]} == {
            "rel-orders-customer_ref-customers",
            "rel-posts-tags-tags",
        }

    def test_writes_report_file(self, scenario_db_path, tmp_path):
        out = tmp_path / "report.json"
        result = runner.invoke(app, ["analyze", str(scenario_db_path), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Report written to" in result.stdout

        data = json.loads(out.read_text())
        assert data["summary"]["totalCandidates"] == 4

    def test_dialect_override(self, scenario_db_path):
        result = runner.invoke(app, ["analyze", str(scenario_db_path), "--json", "--dialect", "duckdb"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        (fk,) = [r for r in data["relationships"] if r["relationshipType"] == "many-to-one"]
        assert any(s.startswith("-- ALTER TABLE") for s in fk["sqlStatements"])

    def test_invalid_dialect(self, scenario_db_path):
        result = runner.invoke(app, ["analyze", str(scenario_db_path), "--dialect", "oracle"])
        assert result.exit_code == 1
        assert "Invalid configuration override" in result.stdout

    def test_links_file(self, scenario_db_path, tmp_path):
        links = tmp_path / "links.yaml"
        links.write_text(
            "links:\n"
            "  - sourceTable: orders\n"
            "    sourceField: customer_ref\n"
            "    targetTableId: customers\n"
            "    prefersSingleRecord: true\n"
        )
        result = runner.invoke(app, ["analyze", str(scenario_db_path), "--links", str(links), "--json"])
        assert result.exit_code == 0, result.output

        data = json.loads(result.stdout)
        (fk,) = [r for r in data["relationships"] if r["sourceField"] == "customer_ref"]
        assert fk["originEvidence"] == "both"

    def test_links_and_airtable_schema_are_exclusive(self, scenario_db_path, tmp_path):
        links = tmp_path / "links.yaml"
        links.write_text("links: []\n")
        schema = tmp_path / "base.json"
        schema.write_text('{"tables": []}')
        result = runner.invoke(
            app,
            ["analyze", str(scenario_db_path), "--links", str(links), "--airtable-schema", str(schema)],
        )
        assert result.exit_code == 1
        assert "mutually exclusive" in result.stdout

    def test_missing_database(self, tmp_path):
        result = runner.invoke(app, ["analyze", str(tmp_path / "missing.duckdb")])
        assert result.exit_code != 0

    def test_database_from_environment(self, scenario_db_path):
        result = runner.invoke(app, ["analyze", "--json"], env={"RELINFER_DUCKDB_PATH": str(scenario_db_path)})
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["summary"]["accepted"] == 2

    def test_environment_database_must_exist(self, tmp_path):
        missing = tmp_path / "missing.duckdb"
        result = runner.invoke(app, ["analyze"], env={"RELINFER_DUCKDB_PATH": str(missing)})
        assert result.exit_code == 1
        assert "does not exist" in result.stdout

    def test_no_database(self, monkeypatch):
        monkeypatch.delenv("RELINFER_DUCKDB_PATH", raising=False)
        result = runner.invoke(app, ["analyze"])
        assert result.exit_code == 1
        assert "No DuckDB database given" in result.stdout

    def test_log_level_from_environment(self, scenario_db_path):
        result = runner.invoke(
            app, ["analyze", str(scenario_db_path), "--json"], env={"RELINFER_LOG_LEVEL": "ERROR"}
        )
        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.ERROR

    def test_verbose_flag_beats_log_level(self, scenario_db_path):
        result = runner.invoke(
            app, ["analyze", str(scenario_db_path), "--json", "-v"], env={"RELINFER_LOG_LEVEL": "ERROR"}
        )
        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.INFO


class TestRuns:
    """Tests for stored runs."""

    def test_store_and_list(self, scenario_db_path, store_url):
        result = runner.invoke(app, ["analyze", str(scenario_db_path), "--json", "--store", store_url])
        assert result.exit_code == 0, result.output
        analysis_id = json.loads(result.stdout)["analysisId"]

        result = runner.invoke(app, ["runs", "--store", store_url, "--json"])
        assert result.exit_code == 0, result.output
        (run,) = json.loads(result.stdout)
        assert run["analysisId"] == analysis_id
        assert run["accepted"] == 2

        result = runner.invoke(app, ["runs", analysis_id, "--store", store_url, "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["analysisId"] == analysis_id

    def test_empty_store(self, store_url):
        result = runner.invoke(app, ["runs", "--store", store_url])
        assert result.exit_code == 0, result.output
        assert "No stored analyses" in result.stdout

    def test_unknown_run(self, store_url):
        result = runner.invoke(app, ["runs", "nope", "--store", store_url])
        assert result.exit_code == 1
        assert "No stored analysis nope" in result.stdout
