"""CLI commands for the history ranker."""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import click
import structlog
from pydantic import ValidationError

from history_ranker import __version__
from history_ranker.config import ConfigValidationError, RankingConfig, load_ranking_config
from history_ranker.observability.logging import configure_logging
from history_ranker.ranker import HistoryRanker, ModelWeights, RankerMetrics
from history_ranker.settings import AppSettings, get_settings
from history_ranker.store import Edge, Page, Session, SqliteHistoryStore, Visit


logger = structlog.get_logger()

# Record collections accepted by import-json, in dependency order
IMPORT_COLLECTIONS: tuple[tuple[str, type[Any]], ...] = (
    ("sessions", Session),
    ("pages", Page),
    ("visits", Visit),
    ("edges", Edge),
)


def _setup(verbose: bool) -> AppSettings:
    """Load settings and configure logging."""
    settings = get_settings()
    level = logging.DEBUG if verbose else settings.log_level_value()
    configure_logging(level=level, json_format=settings.log_json)
    return settings


def _load_config(config_path: Path | None, settings: AppSettings) -> RankingConfig:
    """Load the ranking config or exit with a readable error."""
    try:
        return load_ranking_config(config_path or settings.config_path)
    except ConfigValidationError as e:
        click.echo(f"Configuration validation failed: {e.file_path}", err=True)
        for error in e.errors:
            click.echo(f"  - {error['loc']}: {error['msg']} ({error['type']})", err=True)
        sys.exit(1)


def _parse_now(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise click.BadParameter(f"Not an ISO 8601 timestamp: {value}") from e


def _db_option(func: Any) -> Any:
    return click.option(
        "--db",
        "db_path",
        type=click.Path(path_type=Path),
        default=None,
        help="Path to the SQLite history database (default: settings db_path).",
    )(func)


def _config_option(func: Any) -> Any:
    return click.option(
        "--config",
        "config_path",
        type=click.Path(exists=True, path_type=Path),
        default=None,
        help="Path to a ranking YAML configuration file.",
    )(func)


def _verbose_option(func: Any) -> Any:
    return click.option(
        "--verbose",
        "-v",
        is_flag=True,
        help="Enable verbose logging.",
    )(func)


def _echo_results(results: list[Any], json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps([r.model_dump() for r in results], indent=2))
        return
    if not results:
        click.echo("No results.")
        return
    for position, result in enumerate(results, start=1):
        click.echo(f"{position:>3}. {result.score:10.3f}  {result.title or '(untitled)'}")
        click.echo(f"     {result.url}  [{result.page_id}]")


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Local personalized ranking over browsing history."""


@cli.command()
@click.argument("query")
@_db_option
@_config_option
@click.option("--current-page", "current_page_id", default=None, help="Page the user is on.")
@click.option("--now", "now_value", default=None, help="Reference time (ISO 8601).")
@click.option("--limit", type=int, default=20, show_default=True, help="Maximum results.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@_verbose_option
def rank(  # noqa: PLR0913
    query: str,
    db_path: Path | None,
    config_path: Path | None,
    current_page_id: str | None,
    now_value: str | None,
    limit: int,
    json_output: bool,
    verbose: bool,
) -> None:
    """Rank history pages for QUERY."""
    settings = _setup(verbose)
    config = _load_config(config_path, settings)
    now = _parse_now(now_value)

    with SqliteHistoryStore(db_path or settings.db_path) as store:
        ranker = HistoryRanker(store, config=config, seed=settings.model_seed)
        try:
            ranker.initialize()
            results = ranker.rank(query, current_page_id=current_page_id, now=now)
        finally:
            ranker.close()

    _echo_results(results[:limit], json_output)


@cli.command("click")
@click.argument("page_id")
@click.option(
    "--displayed",
    "displayed_ids",
    multiple=True,
    help="Displayed page id, in display order (repeatable).",
)
@click.option(
    "--query",
    default=None,
    help="Re-run this query first so the click can train the model.",
)
@click.option("--current-page", "current_page_id", default=None, help="Page the user is on.")
@_db_option
@_config_option
@_verbose_option
def click_command(  # noqa: PLR0913
    page_id: str,
    displayed_ids: tuple[str, ...],
    query: str | None,
    current_page_id: str | None,
    db_path: Path | None,
    config_path: Path | None,
    verbose: bool,
) -> None:
    """Record a click on PAGE_ID.

    With --query, the query is ranked first and its results are used as the
    displayed list when --displayed is not given. Without --query there is
    no current result set and the click changes nothing.
    """
    settings = _setup(verbose)
    config = _load_config(config_path, settings)

    with SqliteHistoryStore(db_path or settings.db_path) as store:
        ranker = HistoryRanker(store, config=config, seed=settings.model_seed)
        try:
            ranker.initialize()
            displayed = list(displayed_ids)
            if query is not None:
                results = ranker.rank(query, current_page_id=current_page_id)
                if not displayed:
                    displayed = [r.page_id for r in results]
            ranker.record_user_click(page_id, displayed)
        finally:
            ranker.close()

    metrics = RankerMetrics.get_instance()
    click.echo(
        f"Click recorded for {page_id} "
        f"(training updates: {metrics.training_updates_total})"
    )


@cli.command("import-json")
@click.argument("file_path", type=click.Path(exists=True, path_type=Path))
@_db_option
@_verbose_option
def import_json(file_path: Path, db_path: Path | None, verbose: bool) -> None:
    """Import pages, visits, edges and sessions from a JSON file.

    The file holds an object with optional "pages", "visits", "edges" and
    "sessions" arrays whose entries use the record field names.
    """
    settings = _setup(verbose)
    log = logger.bind(component="cli", command="import-json", file_path=str(file_path))

    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        click.echo(f"Invalid JSON: {e}", err=True)
        sys.exit(1)
    if not isinstance(data, dict):
        click.echo("Invalid JSON: expected an object at the top level", err=True)
        sys.exit(1)

    try:
        records = {
            name: [model.model_validate(item) for item in data.get(name, [])]
            for name, model in IMPORT_COLLECTIONS
        }
    except ValidationError as e:
        click.echo(f"Invalid record: {e}", err=True)
        sys.exit(1)

    with SqliteHistoryStore(db_path or settings.db_path) as store:
        for session in records["sessions"]:
            store.upsert_session(session)
        for page in records["pages"]:
            store.upsert_page(page)
        for visit in records["visits"]:
            store.add_visit(visit)
        for edge in records["edges"]:
            store.upsert_edge(edge)

    counts = {name: len(items) for name, items in records.items()}
    log.info("import_complete", **counts)
    click.echo(
        "Imported "
        + ", ".join(f"{counts[name]} {name}" for name, _model in IMPORT_COLLECTIONS)
    )


@cli.command()
@_db_option
@_config_option
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@_verbose_option
def weights(
    db_path: Path | None,
    config_path: Path | None,
    json_output: bool,
    verbose: bool,
) -> None:
    """Show the persisted ranking model weights."""
    settings = _setup(verbose)
    config = _load_config(config_path, settings)

    with SqliteHistoryStore(db_path or settings.db_path) as store:
        record = store.get_model_weights(config.weights_key)

    if record is None:
        click.echo(f"No weights stored under {config.weights_key!r}.")
        return

    try:
        model_weights = ModelWeights.from_record(record)
    except (ValidationError, TypeError) as e:
        click.echo(f"Stored weights are invalid: {e}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(model_weights.to_record(), indent=2, sort_keys=True))
        return
    click.echo(f"Model weights ({config.weights_key})")
    click.echo("=" * 40)
    click.echo(f"  bias: {model_weights.bias:.6f}")
    for key, value in model_weights.to_record()["weights"].items():
        click.echo(f"  {key}: {value:.6f}")


@cli.command("db-stats")
@_db_option
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def db_stats(db_path: Path | None, json_output: bool) -> None:
    """Display history database statistics."""
    settings = _setup(verbose=False)

    with SqliteHistoryStore(db_path or settings.db_path) as store:
        stats = store.stats()

    schema_version = stats.pop("schema_version")
    if json_output:
        click.echo(json.dumps({"schema_version": schema_version, "tables": stats}, indent=2))
        return
    click.echo("History Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Schema Version: {schema_version}")
    click.echo("")
    click.echo("Table Row Counts:")
    for table, count in sorted(stats.items()):
        click.echo(f"  {table}: {count}")


if __name__ == "__main__":
    cli()
