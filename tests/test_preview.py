"""Tests for the import preview."""

from datetime import date

import pytest

from ledgerimport.domain.entities import FieldMapping, ImportSettings, RawRecord, SelectionState
from ledgerimport.domain.errors import FieldParseError
from ledgerimport.domain.preview import PreviewService, initial_date_format, parse_record

MAPPING = FieldMapping(date="date", amount="amount", payee="payee", notes="notes", category="category")


def _records(*rows):
    return [
        RawRecord(fields={"date": d, "amount": a, "payee": p, "notes": n, "category": c})
        for d, a, p, n, c in rows
    ]


STATEMENT = _records(
    ("2024-01-02", "-45.00", "Grocer", "weekly shop", "Groceries"),
    ("2024-01-05", "1200.00", "Employer", "salary", ""),
)


@pytest.fixture
def preview_service(temp_db):
    return PreviewService(temp_db)


def _build(service, records, account, **kwargs):
    return service.build_preview(
        records, MAPPING, kwargs.pop("settings", ImportSettings()),
        account_id=account.id, date_format="yyyy mm dd", **kwargs,
    )


class TestParseRecord:
    """Tests for resolving one record."""

    def test_minor_units_and_category(self):
        """Amounts become cents and categories resolve by exact name."""
        parsed = parse_record(
            0, STATEMENT[0], MAPPING, ImportSettings(), "yyyy mm dd", False, {"Groceries": 3}
        )
        assert parsed.date == date(2024, 1, 2)
        assert parsed.amount == -4500
        assert parsed.payee == "Grocer"
        assert parsed.category_id == 3

    def test_notes_dropped_when_disabled(self):
        """Notes are not carried when notes import is off."""
        parsed = parse_record(
            0, STATEMENT[0], MAPPING, ImportSettings(import_notes=False), "yyyy mm dd", False, {}
        )
        assert parsed.notes is None

    def test_bad_date(self):
        """A date that does not fit the format is reported with its row."""
        with pytest.raises(FieldParseError) as exc_info:
            parse_record(4, STATEMENT[0], MAPPING, ImportSettings(), "dd mm yy", False, {})
        assert exc_info.value.transient_id == 4
        assert "Unable to parse date 2024-01-02" in str(exc_info.value)

    def test_missing_amount(self):
        """A record without an amount is reported."""
        record = _records(("2024-01-02", "", "Grocer", "", ""))[0]
        with pytest.raises(FieldParseError, match="has no amount"):
            parse_record(0, record, MAPPING, ImportSettings(), "yyyy mm dd", False, {})


def test_initial_date_format():
    """The date format is detected from the mapped column."""
    assert initial_date_format(STATEMENT, MAPPING) == "yyyy mm dd"
    assert initial_date_format([], MAPPING, hint="dd mm yyyy") == "dd mm yyyy"


def test_unmatched_rows_start_selected(preview_service, sample_account):
    """Rows without a match are selected without merge, in file order."""
    result = _build(preview_service, STATEMENT, sample_account)

    assert result.error is None
    assert [t.transient_id for t in result.transactions] == [0, 1]
    assert all(t.selection is SelectionState.SELECTED_NO_MERGE for t in result.transactions)
    assert result.transactions[0].amount == -4500


def test_match_adds_existing_row(preview_service, sample_account, grocer_history):
    """A matched row is merge-selected and followed by the existing transaction."""
    result = _build(preview_service, STATEMENT, sample_account)

    rows = result.transactions
    assert len(rows) == 3
    incoming, existing = rows[0], rows[1]
    assert incoming.existing_match_id == grocer_history
    assert incoming.selection is SelectionState.MERGE_SELECTED
    assert not incoming.ignored
    assert existing.is_matched_existing
    assert existing.transient_id == incoming.transient_id
    assert existing.raw.fields == {}
    assert len(result.incoming) == 2


def test_match_with_nothing_to_merge_is_ignored(
    preview_service, temp_db, sample_account, add_transaction
):
    """A match that would change nothing starts deselected."""
    add_transaction(
        sample_account.id, date(2024, 1, 2), -4500, payee="Grocer",
        imported_payee="Grocer", notes="weekly shop",
    )
    records = _records(("2024-01-02", "-45.00", "Grocer", "weekly shop", ""))
    result = _build(preview_service, records, sample_account)

    assert result.transactions[0].ignored
    assert result.transactions[0].selection is SelectionState.DESELECTED
    assert result.transactions[1].selection is SelectionState.DESELECTED


def test_preview_halts_at_bad_record(preview_service, sample_account, grocer_history):
    """Rows before an unparseable record are kept and still matched."""
    records = STATEMENT + _records(("not a date", "1.00", "X", "", "")) + STATEMENT
    result = _build(preview_service, records, sample_account)

    assert result.error is not None
    assert result.error.transient_id == 2
    assert [t.transient_id for t in result.incoming] == [0, 1]
    assert result.transactions[0].existing


def test_preview_is_repeatable(preview_service, sample_account, grocer_history):
    """Building the preview twice gives the same rows."""
    first = _build(preview_service, STATEMENT, sample_account)
    second = _build(preview_service, STATEMENT, sample_account)
    assert first.transactions == second.transactions


def test_category_resolved_from_ledger(preview_service, category_service, sample_account):
    """Category names are looked up in the ledger."""
    category_id = category_service.create_category("Groceries")
    result = _build(preview_service, STATEMENT, sample_account)
    assert result.transactions[0].category_id == category_id
    assert result.transactions[1].category_id is None


def test_aggregate_assignments(preview_service):
    """In an aggregate import rows carry the account assigned to them."""
    result = preview_service.build_preview(
        STATEMENT, MAPPING, ImportSettings(),
        account_id=None, date_format="yyyy mm dd", account_assignments={1: 42},
    )
    assert result.transactions[0].account_id is None
    assert result.transactions[1].account_id == 42
