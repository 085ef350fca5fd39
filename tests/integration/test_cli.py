"""Integration tests for the history-ranker CLI."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from history_ranker import __version__
from history_ranker.cli import cli
from history_ranker.ranker import RankerMetrics
from tests.helpers.history import make_edge, make_page, make_session, make_visit
from tests.helpers.time import FIXED_NOW


@pytest.fixture(autouse=True)
def _quiet_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HISTORY_RANKER_LOG_LEVEL", "WARNING")
    RankerMetrics.reset()


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def history_file(tmp_path: Path) -> Path:
    """Write a small history export."""
    pages = [
        make_page("example", title="Example Domain", url="https://example.com"),
        make_page(
            "github",
            title="GitHub - torvalds/linux",
            url="https://github.com/torvalds/linux",
        ),
        make_page("linkedin", title="LinkedIn Login", url="https://linkedin.com/login"),
    ]
    data = {
        "sessions": [make_session().model_dump(mode="json")],
        "pages": [p.model_dump(mode="json") for p in pages],
        "visits": [make_visit("v1", "github", FIXED_NOW).model_dump(mode="json")],
        "edges": [make_edge("example", "github").model_dump(mode="json")],
    }
    path = tmp_path / "history.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def db_path(tmp_path: Path, runner: CliRunner, history_file: Path) -> Path:
    """Database populated through import-json."""
    path = tmp_path / "history.sqlite"
    result = runner.invoke(cli, ["import-json", str(history_file), "--db", str(path)])
    assert result.exit_code == 0, result.output
    return path


class TestCliBasics:
    """Tests for the command group."""

    def test_version(self, runner: CliRunner) -> None:
        """Test --version prints the package version."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        """Test --help lists every command."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("rank", "click", "import-json", "weights", "db-stats"):
            assert command in result.output


class TestImportJson:
    """Tests for the import-json command."""

    def test_import_counts(self, runner: CliRunner, tmp_path: Path, history_file: Path) -> None:
        """Test imported records are counted and stored."""
        path = tmp_path / "imported.sqlite"
        result = runner.invoke(cli, ["import-json", str(history_file), "--db", str(path)])

        assert result.exit_code == 0
        assert "Imported 1 sessions, 3 pages, 1 visits, 1 edges" in result.output

        stats = runner.invoke(cli, ["db-stats", "--db", str(path), "--json"])
        tables = json.loads(stats.output)["tables"]
        assert tables["pages"] == 3
        assert tables["visits"] == 1

    def test_invalid_json(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test malformed JSON exits with an error."""
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        result = runner.invoke(cli, ["import-json", str(bad), "--db", str(tmp_path / "h.db")])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_invalid_record(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test records failing validation exit with an error."""
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"pages": [{"page_id": "p"}]}), encoding="utf-8")
        result = runner.invoke(cli, ["import-json", str(bad), "--db", str(tmp_path / "h.db")])
        assert result.exit_code == 1
        assert "Invalid record" in result.output


class TestRankCommand:
    """Tests for the rank command."""

    def test_rank_json(self, runner: CliRunner, db_path: Path) -> None:
        """Test JSON output lists the matching page first."""
        result = runner.invoke(cli, ["rank", "linux", "--db", str(db_path), "--json"])
        assert result.exit_code == 0, result.output
        results = json.loads(result.output)
        assert results[0]["page_id"] == "github"
        assert results[0]["score"] > 0

    def test_rank_text(self, runner: CliRunner, db_path: Path) -> None:
        """Test text output shows titles and URLs."""
        result = runner.invoke(
            cli,
            ["rank", "linux", "--db", str(db_path), "--now", FIXED_NOW.isoformat()],
        )
        assert result.exit_code == 0
        assert "GitHub - torvalds/linux" in result.output
        assert "[github]" in result.output

    def test_rank_no_results(self, runner: CliRunner, db_path: Path) -> None:
        """Test an unmatched query prints a notice."""
        result = runner.invoke(cli, ["rank", "qqqqqqqq", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "No results." in result.output

    def test_rank_bad_now(self, runner: CliRunner, db_path: Path) -> None:
        """Test an unparsable --now is a usage error."""
        result = runner.invoke(cli, ["rank", "linux", "--db", str(db_path), "--now", "soon"])
        assert result.exit_code == 2
        assert "ISO 8601" in result.output

    def test_invalid_config(self, runner: CliRunner, db_path: Path, tmp_path: Path) -> None:
        """Test an invalid config file exits with its errors."""
        config = tmp_path / "ranking.yaml"
        config.write_text("bm25:\n  k1: -1\n", encoding="utf-8")
        result = runner.invoke(
            cli,
            ["rank", "linux", "--db", str(db_path), "--config", str(config)],
        )
        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output
        assert "bm25.k1" in result.output


class TestClickAndWeights:
    """Tests for the click and weights commands."""

    def test_no_weights_yet(self, runner: CliRunner, db_path: Path) -> None:
        """Test a fresh database has no stored weights."""
        result = runner.invoke(cli, ["weights", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "No weights stored under 'rankingModel'." in result.output

    def test_click_trains_and_saves(self, runner: CliRunner, db_path: Path) -> None:
        """Test a click with --query trains and persists the model."""
        result = runner.invoke(
            cli,
            ["click", "github", "--query", "linux", "--db", str(db_path)],
        )
        assert result.exit_code == 0, result.output
        assert "Click recorded for github (training updates: 1)" in result.output

        shown = runner.invoke(cli, ["weights", "--db", str(db_path), "--json"])
        record = json.loads(shown.output)
        assert set(record) == {"bias", "weights"}
        assert "textMatch" in record["weights"]

        table = runner.invoke(cli, ["weights", "--db", str(db_path)])
        assert "Model weights (rankingModel)" in table.output

    def test_click_without_query_does_not_train(
        self, runner: CliRunner, db_path: Path
    ) -> None:
        """Test a click with no displayed query neither trains nor saves weights."""
        result = runner.invoke(
            cli,
            ["click", "github", "--displayed", "github", "--db", str(db_path)],
        )
        assert result.exit_code == 0
        assert "training updates: 0" in result.output

        weights = runner.invoke(cli, ["weights", "--db", str(db_path)])
        assert "No weights stored" in weights.output


class TestDbStats:
    """Tests for the db-stats command."""

    def test_text_output(self, runner: CliRunner, db_path: Path) -> None:
        """Test the text report lists tables."""
        result = runner.invoke(cli, ["db-stats", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "History Database Statistics" in result.output
        assert "pages: 3" in result.output
