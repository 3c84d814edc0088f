"""Integration tests for the nightreign CLI."""

import json
import logging

import pytest
from typer.testing import CliRunner

from nightreign.adapters.inbound.cli import commands
from nightreign.adapters.outbound.diagnostics import RecordingDiagnosticsSink
from nightreign.composition import build_container
from tests.conftest import DIM, HashEmbeddings, KeywordOverlapScorer

pytestmark = pytest.mark.integration

runner = CliRunner()


@pytest.fixture
def embeddings():
    return HashEmbeddings()


@pytest.fixture(autouse=True)
def cli_environment(monkeypatch, test_settings, embeddings):
    """Point the CLI at temporary settings and fake models."""
    monkeypatch.setattr(commands, "get_settings", lambda: test_settings)
    monkeypatch.setattr(
        commands,
        "get_container",
        lambda settings: build_container(
            settings,
            embedding_provider=embeddings,
            relevance_scorer=KeywordOverlapScorer(),
            diagnostics_sink=RecordingDiagnosticsSink(),
        ),
    )


@pytest.fixture
def closed_containers(monkeypatch):
    """Record every container a command closes."""
    closed = []
    build = commands.get_container

    def tracking_container(settings):
        container = build(settings)
        release = container.close

        def close():
            closed.append(container)
            release()

        container.close = close
        return container

    monkeypatch.setattr(commands, "get_container", tracking_container)
    return closed


@pytest.fixture
def records_file(tmp_path):
    path = tmp_path / "records.jsonl"
    records = [
        {
            "id": "gladius-strategy",
            "type": "boss",
            "name": "Gladius, Beast of Night",
            "section": "strategy",
            "content": "weak to holy damage",
            "tags": ["night boss"],
            "sourceUrl": "https://example.com/gladius",
        },
        {
            "id": "wylder",
            "type": "nightfarer",
            "name": "Wylder",
            "section": "overview",
            "content": "a grappling, melee-focused class",
            "embedding": [1.0, 0.0, 0.0, 0.0],
        },
    ]
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    return path


class TestIngest:
    def test_ingest_writes_snapshot(self, records_file, test_settings, embeddings):
        result = runner.invoke(commands.app, ["ingest", str(records_file)])

        assert result.exit_code == 0, result.output
        assert "Indexed 2 records" in result.output
        assert test_settings.index_path.exists()
        # Only the record without a vector is embedded
        assert len(embeddings.calls) == 1

    def test_ingest_appends_unless_replace(self, records_file):
        runner.invoke(commands.app, ["ingest", str(records_file)])
        result = runner.invoke(commands.app, ["ingest", str(records_file)])

        # Ids are reused, so the second run overwrites instead of duplicating
        assert "(2 total)" in result.output

        result = runner.invoke(commands.app, ["ingest", str(records_file), "--replace"])
        assert "(2 total)" in result.output

    def test_invalid_record_fails_with_error_code(self, tmp_path):
        path = tmp_path / "bad.jsonl"
        path.write_text('{"type": "dragon", "name": "x", "content": "y"}\n', encoding="utf-8")

        result = runner.invoke(commands.app, ["ingest", str(path)])

        assert result.exit_code == 1
        assert "NR_VAL_003" in result.output

    def test_wrong_embedding_length_rejected(self, tmp_path):
        path = tmp_path / "short.jsonl"
        record = {"type": "item", "name": "x", "content": "y", "embedding": [1.0] * (DIM - 1)}
        path.write_text(json.dumps(record) + "\n", encoding="utf-8")

        result = runner.invoke(commands.app, ["ingest", str(path)])

        assert result.exit_code == 1
        assert "NR_VAL_002" in result.output


class TestSearch:
    def test_search_prints_results_table(self, records_file):
        runner.invoke(commands.app, ["ingest", str(records_file)])

        result = runner.invoke(commands.app, ["search", "gladius holy"])

        assert result.exit_code == 0, result.output
        assert "Gladius" in result.output

    def test_search_json_output(self, records_file):
        runner.invoke(commands.app, ["ingest", str(records_file)])

        result = runner.invoke(commands.app, ["search", "Wylder", "--json", "--no-rerank"])

        assert result.exit_code == 0, result.output
        assert '"requestId"' in result.output

    def test_search_empty_index(self):
        result = runner.invoke(commands.app, ["search", "anything", "--type", "boss"])

        assert result.exit_code == 0
        assert "No results found" in result.output


class TestStatus:
    def test_status_without_snapshot(self):
        result = runner.invoke(commands.app, ["status"])

        assert result.exit_code == 0
        assert "No snapshot found" in result.output

    def test_status_after_ingest(self, records_file):
        runner.invoke(commands.app, ["ingest", str(records_file)])

        result = runner.invoke(commands.app, ["status"])

        assert "2 indexed documents" in result.output

    def test_status_with_corrupt_snapshot(self, test_settings):
        test_settings.index_path.write_text("garbage", encoding="utf-8")

        result = runner.invoke(commands.app, ["status"])

        assert result.exit_code == 0
        assert "could not be restored" in result.output


class TestPrewarm:
    def test_prewarm_reports_counts(self):
        result = runner.invoke(commands.app, ["prewarm"])

        assert result.exit_code == 0, result.output
        assert "Pre-warmed" in result.output


class TestCleanup:
    """Every command releases its container, on success and on failure."""

    @pytest.mark.parametrize(
        "args",
        [["search", "gladius"], ["status"], ["prewarm"]],
    )
    def test_command_closes_container(self, args, closed_containers):
        result = runner.invoke(commands.app, args)

        assert result.exit_code == 0, result.output
        assert len(closed_containers) == 1

    def test_ingest_closes_container(self, records_file, closed_containers):
        result = runner.invoke(commands.app, ["ingest", str(records_file)])

        assert result.exit_code == 0, result.output
        assert len(closed_containers) == 1

    def test_failed_ingest_still_closes_container(self, tmp_path, closed_containers):
        path = tmp_path / "short.jsonl"
        record = {"type": "item", "name": "x", "content": "y", "embedding": [1.0]}
        path.write_text(json.dumps(record) + "\n", encoding="utf-8")

        result = runner.invoke(commands.app, ["ingest", str(path)])

        assert result.exit_code == 1
        assert len(closed_containers) == 1


class TestErrorReporting:
    def test_error_logged_with_code_and_command(self, tmp_path, caplog):
        caplog.set_level(logging.ERROR, logger="nightreign.cli")
        path = tmp_path / "bad.jsonl"
        path.write_text('{"type": "dragon", "name": "x", "content": "y"}\n', encoding="utf-8")

        result = runner.invoke(commands.app, ["ingest", str(path)])

        assert result.exit_code == 1
        cli_records = [r for r in caplog.records if r.name == "nightreign.cli"]
        assert len(cli_records) == 1
        logged = json.loads(cli_records[0].getMessage())
        assert logged["error"]["code"] == "NR_VAL_003"
        assert logged["context"]["command"] == "ingest"
        assert logged["context"]["line"] == 1

    def test_plain_python_error_reported_with_generic_code(self, monkeypatch):
        def broken_container(settings):
            raise RuntimeError("model download failed")

        monkeypatch.setattr(commands, "get_container", broken_container)

        result = runner.invoke(commands.app, ["status"])

        assert result.exit_code == 1
        assert "PYTHON_ERR" in result.output
        assert "model download failed" in result.output
