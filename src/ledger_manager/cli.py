"""Click CLI entry point for the ledger command.

Handles argument parsing, config loading, and error display. All business
logic is delegated to ``parsers``, ``filters``, ``pipeline``, ``store``,
``config`` and ``export`` modules.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import click

from ledger_manager import __version__


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _load_project(root: Path):
    """Load config and the ledger store, exiting with a message on failure."""
    from ledger_manager.config import load_config
    from ledger_manager.store import LedgerStore

    try:
        config = load_config(root)
    except FileNotFoundError as exc:
        click.echo(
            f"Error: {exc}. Run 'ledger init' to create the project structure.",
            err=True,
        )
        sys.exit(1)
    except Exception as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)

    return config, LedgerStore(root / config.ledger_dir)


def _parse_source(root: Path, file: str | None):
    """Parse *file* (a path) or, when omitted, the primary ledger file."""
    from ledger_manager.parsers.ledger import parse_ledger_result

    if file is not None:
        path = Path(file)
        return path.name, parse_ledger_result(path.read_text(encoding="utf-8-sig"), file_id=path.stem)

    config, store = _load_project(root)
    try:
        return config.primary_file, store.parse(config.primary_file)
    except KeyError:
        click.echo(f"Error: primary ledger file {config.primary_file!r} not found.", err=True)
        sys.exit(1)


def _parse_where(tree, condition: str):
    """Add one ``FIELD:OPERATOR[:VALUE]`` condition to the root of *tree*."""
    from ledger_manager.filters import add_condition, update_node

    parts = condition.split(":", 2)
    if len(parts) < 2:
        raise click.BadParameter(
            f"Invalid condition {condition!r}. Expected FIELD:OPERATOR[:VALUE], "
            "e.g. account:contains:Food."
        )
    field, operator = parts[0].strip(), parts[1].strip()
    value = parts[2] if len(parts) == 3 else ""

    try:
        tree = add_condition(tree, tree.id, field)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from None
    node_id = tree.children[-1].id
    try:
        return update_node(tree, node_id, {"operator": operator, "value": value})
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from None


def _transactions_json(transactions) -> str:
    return json.dumps([asdict(txn) for txn in transactions], indent=2, default=str, ensure_ascii=False)


@click.group()
@click.version_option(version=__version__, prog_name="ledger-manager")
def cli() -> None:
    """Plain-text ledger parsing, filtering and bank CSV import."""


@cli.command()
@click.argument("file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["summary", "ledger", "json"]),
    default="summary",
    show_default=True,
    help="Output format.",
)
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def parse(file: str | None, output_format: str, verbose: bool, debug: bool) -> None:
    """Parse a ledger FILE (default: the primary ledger) and report on it."""
    _configure_logging(verbose, debug)
    from ledger_manager.export import format_ledger, print_summary

    title, result = _parse_source(Path.cwd(), file)

    if output_format == "json":
        click.echo(_transactions_json(result.transactions))
    elif output_format == "ledger":
        click.echo(format_ledger(result.transactions), nl=False)
    else:
        print_summary(result.transactions, result.warnings, title=title)


@cli.command(name="filter")
@click.argument("file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--where",
    "conditions",
    multiple=True,
    help="Condition as FIELD:OPERATOR[:VALUE]. Repeatable.",
)
@click.option("--any", "match_any", is_flag=True, default=False, help="Match any condition.")
@click.option("--saved", default=None, help="Use a filter saved in filters.toml.")
@click.option("--save", "save_as", default=None, help="Save the --where filter under NAME.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON, not ledger text.")
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def filter_command(
    file: str | None,
    conditions: tuple[str, ...],
    match_any: bool,
    saved: str | None,
    save_as: str | None,
    as_json: bool,
    verbose: bool,
    debug: bool,
) -> None:
    """Print the transactions of a ledger FILE that match a filter."""
    _configure_logging(verbose, debug)
    from ledger_manager.config import load_filters, save_filter
    from ledger_manager.export import format_ledger
    from ledger_manager.filters import create_root, filter_transactions, update_node

    root = Path.cwd()

    if saved and conditions:
        click.echo("Error: use either --saved or --where, not both.", err=True)
        sys.exit(1)

    if saved:
        try:
            tree = load_filters(root)[saved]
        except KeyError:
            click.echo(f"Error: no saved filter named {saved!r}.", err=True)
            sys.exit(1)
        except ValueError as exc:
            click.echo(f"Error loading filters: {exc}", err=True)
            sys.exit(1)
    else:
        tree = create_root()
        if match_any:
            tree = update_node(tree, tree.id, {"conjunction": "or"})
        try:
            for condition in conditions:
                tree = _parse_where(tree, condition)
        except click.BadParameter as exc:
            click.echo(f"Error: {exc.format_message()}", err=True)
            sys.exit(1)

    if save_as:
        try:
            save_filter(root, save_as, tree)
        except (OSError, ValueError) as exc:
            click.echo(f"Error saving filter: {exc}", err=True)
            sys.exit(1)
        if verbose:
            click.echo(f"Saved filter {save_as!r}.", err=True)

    _, result = _parse_source(root, file)
    matches = filter_transactions(result.transactions, tree)

    if as_json:
        click.echo(_transactions_json(matches))
    else:
        click.echo(format_ledger(matches), nl=False)
    click.echo(f"{len(matches)} of {len(result.transactions)} transactions match.", err=True)


@cli.command(name="import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--no-llm", is_flag=True, default=False, help="Skip LLM suggestions.")
@click.option(
    "--approve",
    is_flag=True,
    default=False,
    help="Approve all rows (accepting suggestions) and write them out.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write approved entries here instead of appending to the primary ledger.",
)
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def import_command(
    csv_file: str,
    no_llm: bool,
    approve: bool,
    output: str | None,
    verbose: bool,
    debug: bool,
) -> None:
    """Stage a bank CSV export for the ledger, with optional LLM suggestions."""
    _configure_logging(verbose, debug)
    from ledger_manager.llm import AnthropicAdapter, NullAdapter
    from ledger_manager.pipeline import approve_rows, export_rows, known_accounts, stage_csv

    config, store = _load_project(Path.cwd())

    if no_llm or config.llm_provider == "none":
        provider = NullAdapter()
        if verbose:
            click.echo("LLM suggestions disabled.")
    else:
        provider = AnthropicAdapter(model=config.llm_model, api_key_env=config.llm_api_key_env)
        if verbose:
            click.echo(f"Using LLM: {config.llm_provider} ({config.llm_model})")

    accounts: list[str] = []
    if store.exists(config.primary_file):
        accounts = known_accounts(store.parse(config.primary_file).transactions)

    result = stage_csv(Path(csv_file), config, provider, accounts)
    for error in result.errors:
        click.echo(f"Error: {error}", err=True)
    if result.errors:
        sys.exit(1)
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)

    click.echo()
    click.echo(f"== Staged: {len(result.rows)} rows ==")
    for row in result.rows:
        suggestion = row.suggested_account or "-"
        click.echo(
            f"  {row.row_index:>3}  {row.date}  {row.amount:>12,.2f}  "
            f"{row.description[:40]:<40}  {row.status:<12} {suggestion}"
        )

    if not approve:
        click.echo()
        click.echo("Nothing written. Re-run with --approve to write the entries.")
        return

    try:
        text = export_rows(approve_rows(result.rows), config)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    try:
        if output:
            Path(output).write_text(text, encoding="utf-8")
            target = output
        else:
            target = str(store.append(config.primary_file, text))
    except (OSError, ValueError) as exc:
        click.echo(f"Error writing ledger entries: {exc}", err=True)
        sys.exit(1)

    click.echo()
    click.echo(f"Wrote {len(result.rows)} entries to {target}")


@cli.command()
@click.option("--set-primary", default=None, help="Make NAME the primary ledger file.")
def files(set_primary: str | None) -> None:
    """List ledger files, or change which one is primary."""
    from ledger_manager.config import set_primary_file

    root = Path.cwd()
    config, store = _load_project(root)

    if set_primary:
        if not store.exists(set_primary):
            click.echo(f"Error: ledger file {set_primary!r} not found.", err=True)
            sys.exit(1)
        set_primary_file(root, set_primary)
        click.echo(f"Primary ledger file is now {set_primary!r}.")
        return

    names = store.list_files()
    if not names:
        click.echo(f"No ledger files in {store.directory}")
        return
    for name in names:
        marker = "*" if name == config.primary_file else " "
        click.echo(f"{marker} {name}")


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
def init(target_dir: str) -> None:
    """Initialize a new ledger project with the standard structure."""
    from ledger_manager.config import initialize

    target = Path(target_dir).resolve()

    try:
        initialize(target)
    except Exception as exc:
        click.echo(f"Error initializing project: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Initialized ledger project in {target}")
