"""Ledger text writer and parse summary printer.

- :func:`format_transaction` / :func:`format_ledger` turn parsed
  transactions back into ledger text that :mod:`ledger_manager.parsers.ledger`
  reads back to the same dates, narrations, tags and postings.
- :func:`format_staged_rows` writes approved CSV import rows as new ledger
  entries, leaving the counter posting elided so the parser balances it.
- :func:`print_summary` prints a human-readable summary of a parse to stdout.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from ledger_manager.models import StagedRow, Transaction

INDENT = "    "


# ---------------------------------------------------------------------------
# Ledger text
# ---------------------------------------------------------------------------


def format_transaction(txn: Transaction) -> str:
    """Render one transaction as a ledger block (no trailing newline).

    Postings are written with explicit amounts, aligned on the amount
    column, so the block parses back without any balancing.
    """
    lines = [_header(txn.date, txn.narration, txn.tags)]
    lines.extend(f"{INDENT}; {comment}".rstrip() for comment in txn.comments)

    width = max((len(p.account) for p in txn.postings), default=0)
    for posting in txn.postings:
        amount = _format_amount(posting.amount)
        if posting.currency:
            amount = f"{amount} {posting.currency}"
        lines.append(f"{INDENT}{posting.account:<{width}}  {amount}")

    return "\n".join(lines)


def format_ledger(transactions: Iterable[Transaction]) -> str:
    """Render transactions as ledger text, one blank line between blocks.

    Returns:
        The ledger text ending in a newline, or ``""`` for no transactions.
    """
    blocks = [format_transaction(txn) for txn in transactions]
    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"


def format_staged_rows(
    rows: Iterable[StagedRow],
    fallback_account: str = "Expenses:Unknown",
    counter_account: str = "Assets:Checking",
) -> str:
    """Render approved staged rows as ledger entries.

    Each entry posts the row to its chosen account and leaves the counter
    account elided.  Money leaving the bank (negative row amount) is a
    debit to the chosen account; money coming in is a credit.

    Args:
        rows: Staged rows; only those with status ``"approved"`` are written.
        fallback_account: Account for rows with no account chosen.
        counter_account: Counter account for rows without one.

    Returns:
        Ledger text ending in a newline.

    Raises:
        ValueError: If no row is approved.
    """
    approved = [row for row in rows if row.status == "approved"]
    if not approved:
        raise ValueError("No approved transactions to export")

    entries: list[str] = []
    for row in approved:
        narration = row.narration or row.description or row.original_description
        amount = f"{Decimal(0) - row.amount:.2f}"
        if row.currency:
            amount = f"{amount} {row.currency}"
        entries.append(
            "\n".join(
                [
                    _header(row.date or row.original_date, narration, row.tags),
                    f"{INDENT}{row.account or fallback_account}  {amount}",
                    f"{INDENT}{row.counter_account or counter_account}",
                ]
            )
        )

    return "\n\n".join(entries) + "\n"


def _header(txn_date: date | str, narration: str, tags: list[str]) -> str:
    text = txn_date.isoformat() if isinstance(txn_date, date) else str(txn_date)
    # A header is one line; multi-line bank descriptions are folded.
    parts = [text, " ".join(narration.split())] + [f"#{tag}" for tag in tags]
    return " ".join(part for part in parts if part)


def _format_amount(amount: Decimal) -> str:
    """Plain notation, never exponent form."""
    return f"{Decimal(amount):f}"


# ---------------------------------------------------------------------------
# Summary printer
# ---------------------------------------------------------------------------


def print_summary(
    transactions: list[Transaction],
    warnings: list[str] | None = None,
    title: str = "Ledger",
) -> None:
    """Print a human-readable summary of parsed transactions to stdout.

    The summary includes the transaction count and date range, total debits
    per currency, the most used accounts, tag counts and any parse warnings.

    Args:
        transactions: Parsed (and possibly filtered) transactions.
        warnings: Parse warnings to list at the end.
        title: Heading, usually the ledger file name.
    """
    warnings = warnings or []

    debits: defaultdict[str, Decimal] = defaultdict(Decimal)
    account_counts: Counter[str] = Counter()
    tag_counts: Counter[str] = Counter()
    for txn in transactions:
        tag_counts.update(txn.tags)
        for posting in txn.postings:
            account_counts[posting.account] += 1
            if posting.amount > 0:
                debits[posting.currency or "-"] += posting.amount

    print()
    print(f"== Summary: {title} ==")
    if transactions:
        first = min(txn.date for txn in transactions)
        last = max(txn.date for txn in transactions)
        print(f"Total:    {len(transactions)} transactions ({first} to {last})")
    else:
        print("Total:    0 transactions")

    if debits:
        print()
        print("Debits by currency:")
        for currency in sorted(debits):
            print(f"  {currency:<6} {debits[currency]:,.2f}")

    if account_counts:
        print()
        print("Top accounts:")
        for i, (account, count) in enumerate(account_counts.most_common(10), start=1):
            print(f"  {i:>2}. {account:<35} ({count} postings)")

    if tag_counts:
        print()
        tags = ", ".join(f"#{tag} ({count})" for tag, count in tag_counts.most_common())
        print(f"Tags:     {tags}")

    if warnings:
        print()
        print(f"Warnings: {len(warnings)}")
        for w in warnings:
            print(f"  - {w}")

    print()
