"""Bank CSV reader for the import workflow.

Any bank export works as long as its headers are declared in the
``[import]`` section of ``config.toml``.  Two amount layouts are supported:

    - a single signed amount column, or
    - separate debit (money out) and credit (money in) columns.

Sign convention for staged rows:
    Negative amounts are money leaving the account.
    Positive amounts are money coming in.

Dates are read leniently because banks disagree on formats: year-first
dates are unambiguous, ``D/M/Y`` and ``M/D/Y`` are told apart by whichever
part exceeds 12 (day-first when both could be a month), and textual months
are handed to ``dateutil``.
"""

from __future__ import annotations

import csv
import re
from datetime import date
from decimal import Decimal
from pathlib import Path

from dateutil import parser as dateparser

from ledger_manager.models import (
    ColumnMapping,
    ImportResult,
    StagedRow,
    generate_fingerprint,
    parse_number,
)

_YEAR_FIRST_RE = re.compile(r"^(\d{4})[.\-/](\d{1,2})[.\-/](\d{1,2})$")
_YEAR_LAST_RE = re.compile(r"^(\d{1,2})[.\-/](\d{1,2})[.\-/](\d{2,4})$")
_CURRENCY_SYMBOLS_RE = re.compile(r"[₹$€£,]")


def parse_date(text: str) -> date | None:
    """Parse a bank statement date cell.

    Args:
        text: Raw cell such as ``"2025-01-10"``, ``"10/01/2025"``,
            ``"01/25/25"`` or ``"25 Oct 2023"``.

    Returns:
        The date, or ``None`` when the cell is empty or unparseable.
    """
    s = (text or "").strip()
    if not s:
        return None

    m = _YEAR_FIRST_RE.match(s)
    if m:
        parsed = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if parsed:
            return parsed

    m = _YEAR_LAST_RE.match(s)
    if m:
        first, second, year_raw = int(m.group(1)), int(m.group(2)), m.group(3)
        year = 2000 + int(year_raw) if len(year_raw) == 2 else int(year_raw)
        if second > 12 >= first:
            day, month = second, first
        else:
            # Clearly day-first, or ambiguous: financial CSVs default to D/M/Y.
            day, month = first, second
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    try:
        return dateparser.parse(s, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def parse_amount(text: str | int | float | Decimal | None) -> Decimal:
    """Parse an amount cell, stripping currency symbols and commas.

    Returns:
        The amount, or ``Decimal("0")`` when the cell holds no number.
    """
    if isinstance(text, (int, float, Decimal)):
        return Decimal(str(text))
    if not text:
        return Decimal("0")
    cleaned = _CURRENCY_SYMBOLS_RE.sub("", str(text)).strip()
    amount = parse_number(cleaned)
    return amount if amount is not None else Decimal("0")


def read_csv(
    file_path: Path,
    mapping: ColumnMapping,
    currency: str = "",
    counter_account: str = "",
) -> ImportResult:
    """Read a bank CSV export into staged rows.

    Args:
        file_path: Path to the CSV file.
        mapping: Declared column mapping.
        currency: Currency stored on every staged row.
        counter_account: Balancing account stored on every staged row.

    Returns:
        An :class:`ImportResult` with one staged row per usable CSV row, in
        file order.  Rows with an unparseable date are skipped with a
        warning; missing columns or an unreadable file are errors.
    """
    rows: list[StagedRow] = []
    warnings: list[str] = []
    errors: list[str] = []
    source = str(file_path)

    try:
        with open(file_path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)

            if reader.fieldnames is None:
                errors.append(f"{source}: empty file or no header row")
                return ImportResult(rows=[], warnings=warnings, errors=errors)

            missing = _required_columns(mapping) - set(reader.fieldnames)
            if missing:
                errors.append(f"{source}: missing expected columns: {', '.join(sorted(missing))}")
                return ImportResult(rows=[], warnings=warnings, errors=errors)

            records = [row for row in reader if any((v or "").strip() for v in row.values())]

    except FileNotFoundError:
        errors.append(f"{source}: file not found")
        return ImportResult(rows=[], warnings=warnings, errors=errors)
    except (OSError, csv.Error, UnicodeDecodeError) as exc:
        errors.append(f"{source}: {exc}")
        return ImportResult(rows=[], warnings=warnings, errors=errors)

    for row_index, record in enumerate(records):
        original_date = (record.get(mapping.date_column) or "").strip()
        txn_date = parse_date(original_date)
        if txn_date is None:
            warnings.append(
                f"{source}: skipped malformed row {row_index} (invalid date: {original_date!r})"
            )
            continue

        original_amount, amount = _amount_from_row(record, mapping)
        description = (record.get(mapping.narration_column) or "").strip()

        rows.append(
            StagedRow(
                row_index=row_index,
                original_date=original_date,
                original_amount=original_amount,
                original_description=description,
                original_data={k: v for k, v in record.items() if k is not None},
                date=txn_date,
                amount=amount,
                description=description,
                currency=currency,
                counter_account=counter_account,
                fingerprint=generate_fingerprint(description, amount),
            )
        )

    return ImportResult(rows=rows, warnings=warnings, errors=errors)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _required_columns(mapping: ColumnMapping) -> set[str]:
    required = {mapping.date_column, mapping.narration_column}
    if mapping.debit_column or mapping.credit_column:
        required.update(c for c in (mapping.debit_column, mapping.credit_column) if c)
    else:
        required.add(mapping.amount_column)
    return required


def _amount_from_row(record: dict[str, str], mapping: ColumnMapping) -> tuple[str, Decimal]:
    """Return the raw amount cell used and the signed amount for a row."""
    if mapping.debit_column or mapping.credit_column:
        debit_raw = (record.get(mapping.debit_column) or "").strip() if mapping.debit_column else ""
        credit_raw = (
            (record.get(mapping.credit_column) or "").strip() if mapping.credit_column else ""
        )
        debit = parse_amount(debit_raw)
        credit = parse_amount(credit_raw)
        if debit != 0:
            return debit_raw, -abs(debit)
        if credit != 0:
            return credit_raw, abs(credit)

    raw = (record.get(mapping.amount_column) or "").strip()
    return raw, parse_amount(raw)
