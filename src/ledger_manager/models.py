"""Core data models for Ledger Manager.

This module defines all dataclasses and utility functions used throughout the
package. It has zero internal imports -- everything depends on it, but it
depends on nothing within the package.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Union

# ---------------------------------------------------------------------------
# Filter vocabulary
# ---------------------------------------------------------------------------

FILTER_FIELDS = ("date", "amount", "narration", "account", "tag")

VALID_OPERATORS: dict[str, tuple[str, ...]] = {
    "date": ("is_on", "is_not", "is_before", "is_after"),
    "amount": ("is", "is_not", "greater_than", "less_than"),
    "narration": (
        "is",
        "is_not",
        "contains",
        "does_not_contain",
        "starts_with",
        "ends_with",
        "is_blank",
        "is_not_blank",
    ),
    "account": ("is", "is_not", "contains", "does_not_contain"),
    "tag": ("contains", "does_not_contain", "is_blank", "is_not_blank"),
}

DEFAULT_OPERATORS: dict[str, str] = {
    "date": "is_on",
    "amount": "is",
    "narration": "contains",
    "account": "contains",
    "tag": "contains",
}

CONJUNCTIONS = ("and", "or")

ROOT_GROUP_ID = "root"

# Staged-row lifecycle states for the CSV import workflow.
ROW_STATUSES = ("pending", "auto-tagged", "manually-tagged", "approved")

_FINGERPRINT_STRIP = re.compile(r"[^a-z0-9]")
_NUMBER_PREFIX_RE = re.compile(r"\s*([+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)")


def new_id() -> str:
    """Return a fresh random identifier (uuid4, canonical string form)."""
    return str(uuid.uuid4())


def generate_fingerprint(narration: str, amount: Decimal | int | float) -> str:
    """Generate a similarity fingerprint from a narration and an amount.

    The narration is lowercased and reduced to ``[a-z0-9]`` characters; the
    absolute amount is rendered with two decimal places.  Two transactions
    with the same payee text and size share a fingerprint regardless of
    sign, punctuation or spacing, which is what similarity lookups need.

    Args:
        narration: Free-text description, e.g. ``"STARBUCKS #123"``.
        amount: Transaction amount; the sign is ignored.

    Returns:
        A string such as ``"starbucks123|5.75"``.
    """
    normalized = _FINGERPRINT_STRIP.sub("", narration.lower())
    return f"{normalized}|{abs(Decimal(str(amount))):.2f}"


def parse_number(value: object) -> Decimal | None:
    """Read the leading number of *value* as a :class:`Decimal`.

    Mirrors the lenient "parse float" convention used for user-entered
    values: leading whitespace is skipped and trailing garbage after the
    number is ignored (``"100abc"`` is 100).  Numbers pass through.

    Returns:
        The parsed amount, or ``None`` when no number is found.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        result = Decimal(str(value))
        return result if result.is_finite() else None
    m = _NUMBER_PREFIX_RE.match(str(value))
    if not m:
        return None
    return Decimal(m.group(1))


# ---------------------------------------------------------------------------
# Ledger model
# ---------------------------------------------------------------------------


@dataclass
class Posting:
    """One line of a ledger transaction, assigning an amount to an account.

    Attributes:
        account: Colon-separated account name, e.g. ``"Expenses:Food"``.
        amount: Signed amount. Positive is a debit, negative a credit by
            convention.
        currency: Commodity code such as ``"USD"``, or ``None`` when the
            posting line carries no currency.
    """

    account: str
    amount: Decimal
    currency: str | None = None


@dataclass
class Transaction:
    """A parsed ledger transaction.

    Transactions are produced fresh on every parse of a ledger file; nothing
    in this package mutates them after construction.

    Attributes:
        id: Random unique identifier assigned at parse time.
        date: Transaction date.
        narration: Free-text description from the header line, with tags
            removed.
        payee: Same as ``narration``.
        amount: Sum of all strictly positive postings (total debits).
        tags: Tag names from ``#tag`` tokens, without the ``#``.
        postings: Postings in file order, with any elided posting resolved.
        comments: Text of ``;`` comment lines attached to the block.
        file_id: Identifier of the ledger file the transaction came from, or
            ``None`` when parsed from loose text.
    """

    id: str
    date: date
    narration: str
    payee: str
    amount: Decimal
    tags: list[str] = field(default_factory=list)
    postings: list[Posting] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    file_id: str | None = None


@dataclass
class ParseResult:
    """Return type for whole-file ledger parsing.

    Attributes:
        transactions: Successfully parsed transactions in file order.
        warnings: One message per skipped block, e.g. an unparseable
            header line.
    """

    transactions: list[Transaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Filter tree
# ---------------------------------------------------------------------------


@dataclass
class FilterCondition:
    """Leaf node of a filter tree: one field comparison.

    Attributes:
        id: Node identifier, stable across edits of the condition.
        field: One of :data:`FILTER_FIELDS`.
        operator: One of ``VALID_OPERATORS[field]``.
        value: Comparison value.  A date string for ``date``, a number or
            numeric string for ``amount``, text otherwise.
        value2: Second operand reserved for range operators.
    """

    id: str
    field: str
    operator: str
    value: Any = ""
    value2: Any = None


@dataclass
class FilterGroup:
    """Internal node of a filter tree combining children with a conjunction.

    Attributes:
        id: Node identifier. The top-level group uses ``"root"``.
        conjunction: ``"and"`` or ``"or"``.
        children: Child conditions and groups, in display order.
    """

    id: str
    conjunction: str = "and"
    children: list[FilterNode] = field(default_factory=list)


FilterNode = Union[FilterCondition, FilterGroup]


# ---------------------------------------------------------------------------
# CSV import
# ---------------------------------------------------------------------------


@dataclass
class StagedRow:
    """A bank CSV row staged for review before it is written to a ledger.

    Attributes:
        row_index: 0-based position in the source CSV; rows keep this order.
        original_date: Raw date cell.
        original_amount: Raw amount cell (or debit/credit cell used).
        original_description: Raw description cell, stripped.
        original_data: The full CSV row as read.
        date: Normalized date, or ``None`` when the cell did not parse.
        amount: Signed amount; negative is money leaving the account.
        description: Cleaned description.
        currency: Commodity code written on export.
        account: Account chosen for the row (manual or accepted suggestion).
        counter_account: Balancing account, usually the bank account.
        tags: Tags chosen for the row.
        narration: Narration chosen for the row; ``description`` when empty.
        suggested_account: Account proposed by the suggestion provider.
        suggested_tags: Tags proposed by the suggestion provider.
        suggested_narration: Narration proposed by the suggestion provider.
        confidence: Provider confidence in ``[0, 1]``, or ``None``.
        status: One of :data:`ROW_STATUSES`.
        fingerprint: Similarity key from :func:`generate_fingerprint`.
    """

    row_index: int
    original_date: str
    original_amount: str
    original_description: str
    original_data: dict[str, str] = field(default_factory=dict)
    date: date | None = None
    amount: Decimal = Decimal("0")
    description: str = ""
    currency: str = ""
    account: str = ""
    counter_account: str = ""
    tags: list[str] = field(default_factory=list)
    narration: str = ""
    suggested_account: str = ""
    suggested_tags: list[str] = field(default_factory=list)
    suggested_narration: str = ""
    confidence: float | None = None
    status: str = "pending"
    fingerprint: str = ""


@dataclass
class ImportResult:
    """Return type for CSV reading and every import pipeline step.

    Attributes:
        rows: Staged rows after this step, in CSV order.
        warnings: Non-fatal issues such as skipped rows or an unavailable
            suggestion provider.
        errors: Fatal issues for the whole file, such as missing columns.
    """

    rows: list[StagedRow] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class ColumnMapping:
    """User-declared mapping from bank CSV headers to staged-row fields.

    When ``debit_column`` or ``credit_column`` is set, the amount is derived
    from them (debits negative, credits positive) and ``amount_column`` is
    only a fallback for rows where both are empty.

    Attributes:
        date_column: Header of the date column.
        narration_column: Header of the description column.
        amount_column: Header of a signed amount column.
        debit_column: Header of a money-out column, or empty.
        credit_column: Header of a money-in column, or empty.
    """

    date_column: str = "Date"
    narration_column: str = "Description"
    amount_column: str = "Amount"
    debit_column: str = ""
    credit_column: str = ""


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml.

    Attributes:
        ledger_dir: Directory holding ``*.ledger`` files. Default:
            "ledgers".
        primary_file: Name (without extension) of the ledger file that
            imports append to. Default: "main".
        default_currency: Currency written for imported rows.
        counter_account: Balancing account for imported rows.
        fallback_account: Account for approved rows nobody categorized.
        mapping: CSV column mapping for imports.
        llm_provider: Suggestion provider name. "anthropic" or "none".
        llm_model: Model identifier, e.g. "claude-sonnet-4-20250514".
        llm_api_key_env: Name of the environment variable containing
            the API key.
    """

    ledger_dir: str = "ledgers"
    primary_file: str = "main"
    default_currency: str = "INR"
    counter_account: str = "Assets:Checking"
    fallback_account: str = "Expenses:Unknown"
    mapping: ColumnMapping = field(default_factory=ColumnMapping)
    llm_provider: str = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_api_key_env: str = "ANTHROPIC_API_KEY"
