"""Parsers for ledger text and bank CSV exports.

``ledger`` turns plain-text accounting files into
:class:`~ledger_manager.models.Transaction` objects; ``csv_import`` turns a
bank export into :class:`~ledger_manager.models.StagedRow` objects for
review.  The names most callers need are re-exported here.
"""

from __future__ import annotations

from ledger_manager.parsers.csv_import import parse_amount, parse_date, read_csv
from ledger_manager.parsers.ledger import (
    LedgerParseError,
    parse_entry,
    parse_ledger,
    parse_ledger_result,
)
