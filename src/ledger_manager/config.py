"""Configuration loading, saved filters, and project initialization.

Reads TOML config files using stdlib ``tomllib`` and writes them using
``tomli_w``.  Depends only on ``models.py`` and the filter tree
(de)serializers in ``filters.py``.
"""

from __future__ import annotations

import sys
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from ledger_manager.filters import node_from_dict, node_to_dict
from ledger_manager.models import AppConfig, ColumnMapping, FilterGroup

# ---------------------------------------------------------------------------
# Default file content
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_TOML = """\
# Ledger Manager configuration

[general]
ledger_dir = "ledgers"
primary_file = "main"              # imports are appended to ledgers/main.ledger
default_currency = "INR"
counter_account = "Assets:Checking"
fallback_account = "Expenses:Unknown"

# Column headers of your bank's CSV export.  Set debit_column and
# credit_column instead of amount_column if the bank splits money out / in.
[import]
date_column = "Date"
narration_column = "Description"
amount_column = "Amount"
debit_column = ""
credit_column = ""

[llm]
provider = "anthropic"          # "anthropic" or "none"
model = "claude-sonnet-4-20250514"
api_key_env = "ANTHROPIC_API_KEY"  # Name of env var containing the API key
"""

_DEFAULT_FILTERS_TOML = """\
# Saved transaction filters.  Written by `ledger filter --save NAME`.
#
# [filters.food]
# type = "group"
# id = "root"
# conjunction = "and"
#
# [[filters.food.children]]
# type = "condition"
# id = "c1"
# field = "account"
# operator = "contains"
# value = "Expenses:Food"
"""

_DEFAULT_LEDGER = """\
; Main ledger file.
;
; 2025-08-01 Coffee #food
;     Expenses:Food      120 INR
;     Assets:Cash
"""

# Directories that ``initialize`` creates.
_INIT_DIRS = [
    "ledgers",
    "imports",
]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Args:
        root: Project root directory containing ``config.toml``.

    Returns:
        A fully-populated :class:`AppConfig` instance.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
    """
    data = _read_toml(root / "config.toml")

    general = data.get("general", {})
    imports = data.get("import", {})
    llm = data.get("llm", {})

    mapping = ColumnMapping(
        date_column=imports.get("date_column", "Date"),
        narration_column=imports.get("narration_column", "Description"),
        amount_column=imports.get("amount_column", "Amount"),
        debit_column=imports.get("debit_column", ""),
        credit_column=imports.get("credit_column", ""),
    )

    return AppConfig(
        ledger_dir=general.get("ledger_dir", "ledgers"),
        primary_file=general.get("primary_file", "main"),
        default_currency=general.get("default_currency", "INR"),
        counter_account=general.get("counter_account", "Assets:Checking"),
        fallback_account=general.get("fallback_account", "Expenses:Unknown"),
        mapping=mapping,
        llm_provider=llm.get("provider", "anthropic"),
        llm_model=llm.get("model", "claude-sonnet-4-20250514"),
        llm_api_key_env=llm.get("api_key_env", "ANTHROPIC_API_KEY"),
    )


def set_primary_file(root: Path, name: str) -> None:
    """Point ``[general] primary_file`` in ``config.toml`` at *name*.

    Everything else in the file is kept, but comments are lost because the
    file is re-serialized with ``tomli_w``.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
    """
    config_path = root / "config.toml"
    data = _read_toml(config_path)
    data.setdefault("general", {})["primary_file"] = name
    config_path.write_text(tomli_w.dumps(data), encoding="utf-8")


def load_filters(root: Path) -> dict[str, FilterGroup]:
    """Load saved filter trees from ``filters.toml``.

    A missing file means no saved filters.

    Returns:
        Mapping of filter name to root group, in file order.

    Raises:
        ValueError: If a saved filter is malformed or its root is not a
            group.
    """
    path = root / "filters.toml"
    if not path.is_file():
        return {}

    filters: dict[str, FilterGroup] = {}
    for name, raw in _read_toml(path).get("filters", {}).items():
        try:
            tree = node_from_dict(raw)
        except KeyError as exc:
            raise ValueError(f"Saved filter {name!r} is missing key {exc}") from None
        if not isinstance(tree, FilterGroup):
            raise ValueError(f"Saved filter {name!r} must have a group at its root")
        filters[name] = tree
    return filters


def save_filter(root: Path, name: str, tree: FilterGroup) -> None:
    """Add or replace the saved filter *name* in ``filters.toml``.

    Other saved filters are preserved.  The file's comment header is
    rewritten.
    """
    filters = load_filters(root)
    filters[name] = tree
    _write_filters(root, filters)


def delete_filter(root: Path, name: str) -> None:
    """Remove the saved filter *name*.

    Raises:
        KeyError: If no filter with that name exists.
    """
    filters = load_filters(root)
    del filters[name]
    _write_filters(root, filters)


def initialize(target_dir: Path) -> None:
    """Create the standard directory structure and default config files.

    Idempotent: existing directories are left alone and existing files
    are **not** overwritten.

    Args:
        target_dir: The directory in which to create the project structure.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    for d in _INIT_DIRS:
        (target_dir / d).mkdir(parents=True, exist_ok=True)

    _write_if_missing(target_dir / "config.toml", _DEFAULT_CONFIG_TOML)
    _write_if_missing(target_dir / "filters.toml", _DEFAULT_FILTERS_TOML)
    _write_if_missing(target_dir / "ledgers" / "main.ledger", _DEFAULT_LEDGER)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _write_filters(root: Path, filters: dict[str, FilterGroup]) -> None:
    header = "# Saved transaction filters.  Written by `ledger filter --save NAME`.\n\n"
    payload = {"filters": {name: node_to_dict(tree) for name, tree in filters.items()}}
    (root / "filters.toml").write_text(header + tomli_w.dumps(payload), encoding="utf-8")


def _write_if_missing(path: Path, content: str) -> None:
    """Write *content* to *path* only if the file does not already exist."""
    if not path.exists():
        path.write_text(content, encoding="utf-8")
