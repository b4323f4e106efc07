"""Plain-text ledger parser.

Supported transaction block::

    2025-08-01 Coffee #food #coffee
        ; paid with the office card
        Expenses:Food            120 INR
        Assets:Cash             -120 INR

Rules:
    - A blank line ends a transaction.  So does the next non-indented line.
    - Lines starting with ``;`` (indented or not) are comments attached to
      the current transaction.
    - Postings are indented and separate the account from the amount with a
      gap of two or more spaces or a tab.  The currency is optional and is
      detected when the last token is 2-5 uppercase letters.
    - A posting without an amount is an elided (balancing) posting.  When a
      block has exactly one, it is replaced by one posting per currency that
      balances the rest of the block.

Malformed blocks never abort a parse: :func:`parse_ledger` logs a warning
and continues with the next block.  :func:`parse_entry` is the strict
single-block entry point and raises :class:`LedgerParseError`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation

from ledger_manager.models import ParseResult, Posting, Transaction, new_id

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_HEADER_RE = re.compile(r"^([0-9]{4}[-/][0-9]{2}[-/][0-9]{2})(?:\s+(.*))?$")
_TAG_RE = re.compile(r"#[\w-]+")
_COMMENT_RE = re.compile(r"^\s*;\s?")
_POSTING_RE = re.compile(
    r"^\s+(?P<account>\S.*?)(?: {2,}|\t)\s*"
    r"(?P<amount>[+-]?[0-9][0-9.,]*)"
    r"(?:\s+(?P<currency>[A-Z]{2,5}))?\s*$"
)


class LedgerParseError(ValueError):
    """Raised when a single transaction block cannot be parsed."""


@dataclass
class _Block:
    """Raw lines of one transaction block, before interpretation."""

    line_no: int = 0
    header: str | None = None
    postings: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_ledger(text: str, file_id: str | None = None) -> list[Transaction]:
    """Parse ledger text into transactions, skipping malformed blocks.

    Args:
        text: Full ledger file content.
        file_id: Identifier stored on every returned transaction.

    Returns:
        Transactions in file order.  Empty for empty or blank input.
    """
    return parse_ledger_result(text, file_id).transactions


def parse_ledger_result(text: str, file_id: str | None = None) -> ParseResult:
    """Parse ledger text and report skipped blocks.

    Every block whose header does not parse is logged as a warning and
    recorded in :attr:`ParseResult.warnings`.  Blocks with a valid header but
    no postings are dropped silently.

    Args:
        text: Full ledger file content.
        file_id: Identifier stored on every returned transaction.

    Returns:
        A :class:`ParseResult` with transactions in file order.
    """
    result = ParseResult()
    if not text or not text.strip():
        return result

    for block in _split_blocks(text):
        try:
            txn = _build_transaction(block, file_id)
        except LedgerParseError as exc:
            logger.warning("Skipping ledger block at line %d: %s", block.line_no, exc)
            result.warnings.append(f"line {block.line_no}: {exc}")
            continue
        if not txn.postings:
            logger.debug("Dropping transaction without postings at line %d", block.line_no)
            continue
        result.transactions.append(txn)

    return result


def parse_entry(text: str, file_id: str | None = None) -> Transaction:
    """Parse exactly one transaction block.

    Args:
        text: A header line followed by optional comment and posting lines.
        file_id: Identifier stored on the returned transaction.

    Returns:
        The parsed :class:`Transaction`.  A header without postings yields a
        transaction with an empty ``postings`` list.

    Raises:
        LedgerParseError: If the block is empty, has no header line, has an
            unparseable header, or contains more than one transaction.
    """
    if not text or not text.strip():
        raise LedgerParseError("empty entry block")

    blocks = list(_split_blocks(text.strip("\r\n")))
    if not blocks:
        raise LedgerParseError("missing header line")
    if len(blocks) > 1:
        raise LedgerParseError(f"expected one transaction block, found {len(blocks)}")
    return _build_transaction(blocks[0], file_id)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _split_blocks(text: str):
    """Yield one :class:`_Block` per header line found in *text*.

    Comments seen before any header carry over into the next block.
    Indented lines with no header above them are dropped.
    """
    block = _Block()
    for line_no, raw in enumerate(_LINE_SPLIT_RE.split(text), start=1):
        line = raw.rstrip()

        if not line:
            if block.header is not None:
                yield block
            block = _Block()
            continue

        if _COMMENT_RE.match(line):
            block.comments.append(_COMMENT_RE.sub("", line, count=1))
            continue

        if not line[0].isspace():
            if block.header is not None:
                yield block
                block = _Block()
            elif block.postings:
                logger.debug("Dropping %d posting line(s) without a header", len(block.postings))
                block = _Block(comments=block.comments)
            block.header = line
            block.line_no = line_no
            continue

        block.postings.append(line)

    if block.header is not None:
        yield block


def _build_transaction(block: _Block, file_id: str | None) -> Transaction:
    """Interpret a raw block: header, postings, balancing and amount."""
    txn_date, narration, tags = _parse_header(block.header or "")
    postings = _balance([_parse_posting(line) for line in block.postings])
    amount = sum((p.amount for p in postings if p.amount > 0), _ZERO)

    return Transaction(
        id=new_id(),
        date=txn_date,
        narration=narration,
        payee=narration,
        amount=amount,
        tags=tags,
        postings=postings,
        comments=list(block.comments),
        file_id=file_id,
    )


def _parse_header(line: str) -> tuple[date, str, list[str]]:
    """Split ``DATE NARRATION #tag...`` into its parts."""
    m = _HEADER_RE.match(line)
    if not m:
        raise LedgerParseError(f"invalid header line: {line!r}")

    raw_date = m.group(1).replace("/", "-")
    try:
        txn_date = date.fromisoformat(raw_date)
    except ValueError:
        raise LedgerParseError(f"invalid date {m.group(1)!r}") from None

    rest = (m.group(2) or "").strip()
    tags = [token[1:] for token in _TAG_RE.findall(rest)]
    narration = _TAG_RE.sub("", rest).strip()
    return txn_date, narration, tags


def _parse_posting(line: str) -> Posting:
    """Parse an indented posting line.

    A line that does not carry an amount becomes an elided posting: the
    trimmed line is the account, the amount is zero, the currency ``None``.
    """
    m = _POSTING_RE.match(line)
    if not m:
        return Posting(account=line.strip(), amount=_ZERO, currency=None)

    try:
        amount = Decimal(m.group("amount").replace(",", ""))
    except InvalidOperation:
        amount = _ZERO
    return Posting(
        account=m.group("account").strip(),
        amount=amount,
        currency=m.group("currency"),
    )


def _balance(postings: list[Posting]) -> list[Posting]:
    """Resolve a single elided posting into per-currency balancing postings.

    Nothing is changed when zero or several postings are elided, or when the
    elided posting is the only one in the block.
    """
    elided = [i for i, p in enumerate(postings) if p.amount == 0 and p.currency is None]
    if len(elided) != 1:
        return postings

    index = elided[0]
    totals: dict[str | None, Decimal] = {}
    for i, posting in enumerate(postings):
        if i == index:
            continue
        totals[posting.currency] = totals.get(posting.currency, _ZERO) + posting.amount

    if not totals:
        return postings

    account = postings[index].account
    balancing = [
        Posting(account=account, amount=_ZERO - total, currency=currency)
        for currency, total in totals.items()
    ]
    return postings[:index] + balancing + postings[index + 1 :]
