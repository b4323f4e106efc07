"""Tests for ledger_manager.models -- dataclass defaults, ids, fingerprints, numbers."""

from decimal import Decimal

from ledger_manager.models import (
    DEFAULT_OPERATORS,
    FILTER_FIELDS,
    VALID_OPERATORS,
    AppConfig,
    ColumnMapping,
    FilterGroup,
    ImportResult,
    ParseResult,
    StagedRow,
    generate_fingerprint,
    new_id,
    parse_number,
)

# ---------------------------------------------------------------------------
# new_id
# ---------------------------------------------------------------------------


class TestNewId:
    """Tests for random node/transaction ids."""

    def test_ids_are_unique(self):
        ids = {new_id() for _ in range(100)}
        assert len(ids) == 100

    def test_id_is_canonical_uuid(self):
        """uuid4 canonical form: 36 characters with four hyphens."""
        value = new_id()
        assert len(value) == 36
        assert value.count("-") == 4


# ---------------------------------------------------------------------------
# generate_fingerprint
# ---------------------------------------------------------------------------


class TestGenerateFingerprint:
    """Tests for the narration+amount similarity key."""

    def test_basic(self):
        assert generate_fingerprint("STARBUCKS #123", Decimal("5.75")) == "starbucks123|5.75"

    def test_sign_is_ignored(self):
        assert generate_fingerprint("Coffee", Decimal("-5.75")) == generate_fingerprint(
            "Coffee", Decimal("5.75")
        )

    def test_punctuation_and_spacing_ignored(self):
        assert generate_fingerprint("Swiggy - Order", 450) == generate_fingerprint(
            "SWIGGYORDER", 450
        )

    def test_amount_two_decimals(self):
        assert generate_fingerprint("x", 5).endswith("|5.00")

    def test_different_amounts_differ(self):
        assert generate_fingerprint("x", 5) != generate_fingerprint("x", 6)


# ---------------------------------------------------------------------------
# parse_number
# ---------------------------------------------------------------------------


class TestParseNumber:
    """Tests for lenient leading-number parsing."""

    def test_plain_string(self):
        assert parse_number("233") == Decimal("233")

    def test_negative_decimal(self):
        assert parse_number("-3.50") == Decimal("-3.50")

    def test_leading_whitespace(self):
        assert parse_number("   42") == Decimal("42")

    def test_trailing_garbage_ignored(self):
        assert parse_number("100abc") == Decimal("100")

    def test_leading_dot(self):
        assert parse_number(".5") == Decimal("0.5")

    def test_exponent(self):
        assert parse_number("1e3") == Decimal("1000")

    def test_non_numeric_is_none(self):
        assert parse_number("abc") is None

    def test_empty_is_none(self):
        assert parse_number("") is None

    def test_none_is_none(self):
        assert parse_number(None) is None

    def test_bool_is_none(self):
        """Booleans are not amounts even though they are ints."""
        assert parse_number(True) is None

    def test_numbers_pass_through(self):
        assert parse_number(7) == Decimal("7")
        assert parse_number(2.5) == Decimal("2.5")
        assert parse_number(Decimal("9.99")) == Decimal("9.99")

    def test_nan_is_none(self):
        assert parse_number(float("nan")) is None


# ---------------------------------------------------------------------------
# Operator vocabulary
# ---------------------------------------------------------------------------


class TestOperatorVocabulary:
    """The filter fields and their operator sets."""

    def test_every_field_has_operators(self):
        assert set(VALID_OPERATORS) == set(FILTER_FIELDS)

    def test_defaults_are_valid(self):
        for field, operator in DEFAULT_OPERATORS.items():
            assert operator in VALID_OPERATORS[field]

    def test_default_operators(self):
        assert DEFAULT_OPERATORS == {
            "date": "is_on",
            "amount": "is",
            "narration": "contains",
            "account": "contains",
            "tag": "contains",
        }


# ---------------------------------------------------------------------------
# Dataclass defaults
# ---------------------------------------------------------------------------


class TestDataclassDefaults:
    """Default values of the result and config dataclasses."""

    def test_parse_result_empty(self):
        result = ParseResult()
        assert result.transactions == []
        assert result.warnings == []

    def test_import_result_lists_not_shared(self):
        a, b = ImportResult(), ImportResult()
        a.warnings.append("x")
        assert b.warnings == []

    def test_filter_group_defaults(self):
        group = FilterGroup(id="g")
        assert group.conjunction == "and"
        assert group.children == []

    def test_staged_row_defaults(self):
        row = StagedRow(
            row_index=0,
            original_date="2025-01-10",
            original_amount="-5",
            original_description="Coffee",
        )
        assert row.status == "pending"
        assert row.amount == Decimal("0")
        assert row.date is None
        assert row.confidence is None

    def test_app_config_defaults(self):
        config = AppConfig()
        assert config.ledger_dir == "ledgers"
        assert config.primary_file == "main"
        assert config.mapping == ColumnMapping()
        assert config.llm_provider == "anthropic"
