"""Shared pytest fixtures for Ledger Manager tests.

Provides reusable fixtures for:
- sample_ledger_text / sample_ledger_path: a small multi-currency ledger file.
- bank_csv_path: a bank CSV export with one malformed row.
- sample_transactions: parsed Transaction objects for filter and export tests.
- tmp_project_dir: an initialized project directory (config, filters,
  ledgers/main.ledger) for CLI and config tests.
"""

from __future__ import annotations

import shutil
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from ledger_manager.config import initialize
from ledger_manager.models import Posting, Transaction, new_id

# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Fixture file paths
# ---------------------------------------------------------------------------


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the tests/fixtures/ directory."""
    return FIXTURES_DIR


@pytest.fixture
def sample_ledger_path() -> Path:
    """Path to the sample ledger fixture file."""
    return FIXTURES_DIR / "sample.ledger"


@pytest.fixture
def sample_ledger_text(sample_ledger_path: Path) -> str:
    """Content of the sample ledger fixture file."""
    return sample_ledger_path.read_text(encoding="utf-8")


@pytest.fixture
def bank_csv_path() -> Path:
    """Path to the bank CSV fixture (Date, Description, Amount)."""
    return FIXTURES_DIR / "bank.csv"


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def _make_txn(
    narration: str = "Groceries",
    txn_date: date = date(2025, 1, 10),
    amount: str = "233",
    account: str = "Expenses:Food",
    counter: str = "Assets:Checking",
    tags: list[str] | None = None,
    currency: str | None = None,
) -> Transaction:
    """Build a two-posting transaction for tests."""
    value = Decimal(amount)
    return Transaction(
        id=new_id(),
        date=txn_date,
        narration=narration,
        payee=narration,
        amount=value if value > 0 else Decimal("0"),
        tags=list(tags or []),
        postings=[
            Posting(account=account, amount=value, currency=currency),
            Posting(account=counter, amount=-value, currency=currency),
        ],
    )


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """A handful of transactions covering several accounts, tags and dates."""
    return [
        _make_txn("Groceries", date(2025, 1, 10), "233", tags=["food"]),
        _make_txn(
            "Salary",
            date(2025, 1, 15),
            "50000",
            account="Assets:Checking",
            counter="Income:Salary",
            tags=["income"],
        ),
        _make_txn(
            "Trip to Paris",
            date(2025, 2, 1),
            "100",
            account="Expenses:Travel",
            counter="Assets:Cash",
            tags=["travel", "friends"],
            currency="USD",
        ),
        _make_txn(
            "Café Dinner",
            date(2025, 2, 14),
            "1200",
            account="Expenses:Food:Dining",
            counter="Liabilities:CreditCard",
            tags=["food", "friends"],
        ),
        _make_txn("Bank fee", date(2025, 3, 1), "15", account="Expenses:Fees"),
    ]


# ---------------------------------------------------------------------------
# Project directory
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path, sample_ledger_path: Path) -> Path:
    """An initialized project whose main ledger is the sample ledger."""
    project = tmp_path / "project"
    initialize(project)
    shutil.copy2(sample_ledger_path, project / "ledgers" / "main.ledger")
    return project
