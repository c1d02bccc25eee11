"""Tests for the ledger store behind the Database interface."""

from datetime import date

import pytest

from ledgerimport.database.models import Transaction
from ledgerimport.domain import entities
from ledgerimport.domain.entities import NewTransaction, ParsedTransaction, TransactionUpdate


def _candidate(transient_id, when, amount, payee=None, **kwargs):
    return ParsedTransaction(
        transient_id=transient_id, date=when, amount=amount, payee=payee, imported_payee=payee, **kwargs
    )


class TestDatabaseInterface:
    """Tests to verify the Database interface returns domain models."""

    def test_get_account_returns_domain_model(self, temp_db, sample_account):
        account = temp_db.get_account(sample_account.id)
        assert isinstance(account, entities.Account)
        assert account.name == "Checking"
        assert not account.closed

    def test_get_account_missing(self, temp_db):
        assert temp_db.get_account(999) is None

    def test_transaction_returns_domain_model(self, temp_db, grocer_history):
        txn = temp_db.get_transaction(grocer_history)
        assert isinstance(txn, entities.Transaction)
        assert txn.amount == -4500
        assert txn.payee_name == "Grocer"
        assert txn.date == date(2024, 1, 2)

    def test_payee_lookup(self, temp_db, grocer_history, sample_account):
        payee = temp_db.get_payee_by_name("Grocer")
        assert isinstance(payee, entities.Payee)
        assert payee.transfer_account_id is None
        assert temp_db.get_last_transaction_account(payee.id) == sample_account.id


class TestFindMatchingTransactions:
    """Tests for duplicate detection."""

    def test_amount_and_date_window(self, temp_db, sample_account, grocer_history):
        """Equal amounts within a week match, others do not."""
        matches = temp_db.find_matching_transactions(
            sample_account.id,
            [
                _candidate(0, date(2024, 1, 8), -4500, "Grocer"),
                _candidate(1, date(2024, 1, 2), -4501, "Grocer"),
            ],
        )
        assert [(m.transient_id, m.existing.id) for m in matches] == [(0, grocer_history)]

    def test_outside_window(self, temp_db, sample_account, grocer_history):
        assert temp_db.find_matching_transactions(
            sample_account.id, [_candidate(0, date(2024, 1, 10), -4500, "Grocer")]
        ) == []

    def test_other_account(self, temp_db, second_account, grocer_history):
        """Only the target account is searched."""
        assert temp_db.find_matching_transactions(
            second_account.id, [_candidate(0, date(2024, 1, 2), -4500, "Grocer")]
        ) == []

    def test_imported_id_wins(self, temp_db, sample_account, add_transaction):
        """A transaction with the same imported ID matches regardless of amount."""
        txn_id = add_transaction(sample_account.id, date(2023, 6, 1), -100, imported_id="F-0001")
        matches = temp_db.find_matching_transactions(
            sample_account.id, [_candidate(0, date(2024, 1, 2), -4500, imported_id="F-0001")]
        )
        assert matches[0].existing.id == txn_id

    def test_each_existing_claimed_once(self, temp_db, sample_account, grocer_history):
        """Two identical rows cannot both match the same transaction."""
        matches = temp_db.find_matching_transactions(
            sample_account.id,
            [
                _candidate(0, date(2024, 1, 2), -4500, "Grocer"),
                _candidate(1, date(2024, 1, 2), -4500, "Grocer"),
            ],
        )
        assert [m.transient_id for m in matches] == [0]

    def test_similar_payee_preferred(self, temp_db, sample_account, add_transaction):
        """Among equal amounts the similar payee wins over the lower ID."""
        add_transaction(sample_account.id, date(2024, 1, 2), -4500, payee="Pharmacy")
        grocer = add_transaction(sample_account.id, date(2024, 1, 3), -4500, payee="Grocer")
        matches = temp_db.find_matching_transactions(
            sample_account.id, [_candidate(0, date(2024, 1, 2), -4500, "GROCER")]
        )
        assert matches[0].existing.id == grocer

    def test_reconciled_is_ignored(self, temp_db, sample_account, grocer_history):
        """Reconciled transactions are matched but ignored."""
        session = temp_db._get_session()
        session.get(Transaction, grocer_history).reconciled = True
        session.commit()
        matches = temp_db.find_matching_transactions(
            sample_account.id, [_candidate(0, date(2024, 1, 2), -4500, "Grocer", notes="new")]
        )
        assert matches[0].ignored


class TestBatchUpdate:
    """Tests for the atomic batch update."""

    def test_add_update_delete(self, temp_db, sample_account, grocer_history, add_transaction):
        extra = add_transaction(sample_account.id, date(2024, 1, 4), -100, payee="Kiosk")
        result = temp_db.batch_update_transactions(
            added=[NewTransaction(sample_account.id, date(2024, 1, 5), 120000, payee_name="Employer")],
            updated=[TransactionUpdate(id=grocer_history, notes="weekly shop")],
            deleted=[extra],
        )

        assert result.changed
        assert len(result.added) == 1
        assert result.updated == (grocer_history,)
        assert result.deleted == (extra,)
        assert temp_db.get_transaction(grocer_history).notes == "weekly shop"
        assert temp_db.get_transaction(extra) is None

    def test_update_keeps_user_values(self, temp_db, sample_account, add_transaction):
        """Merging never overwrites values already present."""
        txn_id = add_transaction(sample_account.id, date(2024, 1, 2), -4500, payee="Grocer", notes="mine")
        result = temp_db.batch_update_transactions(
            updated=[TransactionUpdate(id=txn_id, payee_name="GROCER #1", notes="theirs")]
        )
        txn = temp_db.get_transaction(txn_id)
        assert txn.notes == "mine"
        assert txn.payee_name == "Grocer"
        assert result.updated == ()
        assert not result.changed

    def test_failure_rolls_back(self, temp_db, sample_account):
        """A bad entry leaves the ledger untouched."""
        with pytest.raises(ValueError):
            temp_db.batch_update_transactions(
                added=[NewTransaction(sample_account.id, date(2024, 1, 5), 100)],
                updated=[TransactionUpdate(id=999)],
            )
        assert temp_db.list_transactions() == []

    def test_unknown_account(self, temp_db):
        with pytest.raises(ValueError, match="Account 7 not found"):
            temp_db.batch_update_transactions(added=[NewTransaction(7, date(2024, 1, 5), 100)])


class TestPreferences:
    """Tests for the preference store."""

    def test_save_and_overwrite(self, temp_db):
        temp_db.save_preferences({"csv-delimiter-1": ";", "csv-has-header-1": "true"})
        temp_db.save_preferences({"csv-delimiter-1": "\t"})

        assert temp_db.get_preferences(["csv-delimiter-1"]) == {"csv-delimiter-1": "\t"}
        assert len(temp_db.get_preferences()) == 2

    def test_rules(self, temp_db):
        rule_id = temp_db.create_rule("r", [{"field": "payee"}], [{"field": "account"}])
        (rule,) = temp_db.list_rules()
        assert rule.id == rule_id
        assert rule.conditions == [{"field": "payee"}]
