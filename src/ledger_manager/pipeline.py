"""CSV import orchestration for Ledger Manager.

Composes the import steps: read the bank CSV into staged rows, ask the
suggestion provider for accounts/narrations/tags, let the user accept or
edit suggestions, approve, and render the approved rows as ledger text.
Each step receives staged rows and returns new ones; rows are never
modified in place.

The suggestion provider is injected.  Its failure is never fatal: rows
simply stay ``pending`` and a warning is recorded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from ledger_manager.export import format_staged_rows
from ledger_manager.llm import SuggestionProvider
from ledger_manager.models import AppConfig, ImportResult, StagedRow, Transaction
from ledger_manager.parsers.csv_import import read_csv

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def stage_csv(
    csv_path: Path,
    config: AppConfig,
    provider: SuggestionProvider,
    accounts: list[str] | None = None,
) -> ImportResult:
    """Read a bank CSV and attach suggestions to its rows.

    Steps executed in order:

    1. **Read** -- apply the configured column mapping, parse dates and
       amounts, fingerprint every row.
    2. **Suggest** -- send pending rows to *provider*; rows that get a
       suggestion become ``auto-tagged``.

    Args:
        csv_path: Bank CSV export.
        config: Application configuration (mapping, currency, accounts).
        provider: Suggestion provider, e.g. ``AnthropicAdapter`` or
            ``NullAdapter``.
        accounts: Accounts already used in the ledger, passed to the
            provider as hints.

    Returns:
        An :class:`ImportResult` with rows in CSV order.  If the CSV could
        not be read, the result carries the errors and no rows.
    """
    read_result = read_csv(
        csv_path,
        config.mapping,
        currency=config.default_currency,
        counter_account=config.counter_account,
    )
    if read_result.errors:
        return read_result

    suggest_result = suggest_rows(read_result.rows, provider, accounts or [])
    return ImportResult(
        rows=suggest_result.rows,
        warnings=read_result.warnings + suggest_result.warnings,
        errors=suggest_result.errors,
    )


def suggest_rows(
    rows: list[StagedRow],
    provider: SuggestionProvider,
    accounts: list[str],
) -> ImportResult:
    """Ask *provider* for suggestions on every ``pending`` row.

    Suggestions are matched back to rows by fingerprint, so rows with the
    same description and amount share one suggestion.
    """
    pending = [row for row in rows if row.status == "pending"]
    if not pending:
        return ImportResult(rows=list(rows))

    payload = [
        {
            "fingerprint": row.fingerprint,
            "narration": row.description,
            "amount": str(row.amount),
            "date": row.date.isoformat() if row.date else row.original_date,
        }
        for row in pending
    ]

    try:
        suggestions = provider.suggest_batch(payload, accounts)
    except Exception as exc:
        logger.warning("Suggestion provider failed: %s", exc)
        return ImportResult(rows=list(rows), warnings=[f"Suggestion provider failed: {exc}"])

    by_fingerprint: dict[str, dict] = {}
    for suggestion in suggestions:
        by_fingerprint.setdefault(suggestion["fingerprint"], suggestion)

    staged: list[StagedRow] = []
    for row in rows:
        suggestion = by_fingerprint.get(row.fingerprint)
        if row.status != "pending" or suggestion is None:
            staged.append(row)
            continue
        staged.append(
            replace(
                row,
                suggested_account=suggestion.get("account", ""),
                suggested_narration=suggestion.get("narration", ""),
                suggested_tags=list(suggestion.get("tags", [])),
                confidence=suggestion.get("confidence"),
                status="auto-tagged",
            )
        )

    tagged = sum(1 for row in staged if row.status == "auto-tagged")
    logger.info("Suggestions received for %d of %d rows", tagged, len(staged))
    return ImportResult(rows=staged)


def apply_suggestion(row: StagedRow) -> StagedRow:
    """Copy a row's suggestion into its chosen account, narration and tags."""
    if not row.suggested_account:
        return row
    return replace(
        row,
        account=row.suggested_account,
        narration=row.suggested_narration or row.narration,
        tags=list(row.suggested_tags),
        status="manually-tagged",
    )


def update_row(
    row: StagedRow,
    account: str | None = None,
    counter_account: str | None = None,
    tags: list[str] | None = None,
    narration: str | None = None,
) -> StagedRow:
    """Record a manual edit; unspecified fields keep their values."""
    return replace(
        row,
        account=row.account if account is None else account,
        counter_account=row.counter_account if counter_account is None else counter_account,
        tags=list(row.tags) if tags is None else list(tags),
        narration=row.narration if narration is None else narration,
        status="manually-tagged",
    )


def approve_rows(rows: Iterable[StagedRow], accept_suggestions: bool = True) -> list[StagedRow]:
    """Mark every row approved.

    With *accept_suggestions*, auto-tagged rows take their suggestion first;
    manually tagged rows keep the user's choices.
    """
    approved: list[StagedRow] = []
    for row in rows:
        if accept_suggestions and row.status == "auto-tagged":
            row = apply_suggestion(row)
        approved.append(replace(row, status="approved"))
    return approved


def export_rows(rows: Iterable[StagedRow], config: AppConfig) -> str:
    """Render approved rows as ledger text using the configured accounts.

    Raises:
        ValueError: If no row is approved.
    """
    return format_staged_rows(
        rows,
        fallback_account=config.fallback_account,
        counter_account=config.counter_account,
    )


def known_accounts(transactions: Iterable[Transaction]) -> list[str]:
    """Return the distinct posting accounts of *transactions*, sorted."""
    return sorted({p.account for txn in transactions for p in txn.postings})
