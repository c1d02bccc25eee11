"""Tests for account attribution in all-accounts imports."""

from datetime import date

import pytest

from ledgerimport.domain.account_conflicts import (
    AccountConflictService,
    ensure_resolved,
    pending_conflicts,
)
from ledgerimport.domain.entities import AccountConflict, PreviewTransaction, RawRecord, SelectionState
from ledgerimport.domain.errors import ConflictUnresolvedError, NotFoundError, ValidationError


@pytest.fixture
def conflict_service(temp_db):
    return AccountConflictService(temp_db)


def _row(transient_id, payee=None, number=None, **kwargs):
    return PreviewTransaction(
        transient_id=transient_id,
        raw=RawRecord(),
        date=date(2024, 1, 2),
        amount=-4500,
        payee=payee,
        imported_payee=payee,
        extracted_account_number=number,
        **kwargs,
    )


class TestFindPotentialAccounts:
    """Tests for candidate account lookup."""

    def test_by_account_number(self, conflict_service, sample_account, second_account):
        """The extracted account number picks the account holding it."""
        assert conflict_service.find_potential_accounts(
            extracted_account_number="111122223333"
        ) == [sample_account.id]

    def test_closed_accounts_are_skipped(self, conflict_service, account_service, sample_account):
        """Closed accounts are not candidates."""
        account_service.close_account(sample_account.id)
        assert conflict_service.find_potential_accounts(
            extracted_account_number="111122223333"
        ) == []

    def test_by_payee_history(self, conflict_service, sample_account, grocer_history):
        """Without a number the payee's last account is used."""
        assert conflict_service.find_potential_accounts(payee_name="Grocer") == [sample_account.id]

    def test_last_transaction_wins(
        self, conflict_service, sample_account, second_account, grocer_history, add_transaction
    ):
        """The most recent transaction with the payee decides."""
        add_transaction(second_account.id, date(2024, 2, 1), -100, payee="Grocer")
        assert conflict_service.find_potential_accounts(payee_name="Grocer") == [second_account.id]

    def test_by_imported_payee(self, conflict_service, sample_account, grocer_history):
        """The imported payee is tried when the payee gives nothing."""
        assert conflict_service.find_potential_accounts(
            payee_name="GROCER #123", imported_payee="Grocer"
        ) == [sample_account.id]

    def test_transfer_payees_are_skipped(
        self, conflict_service, temp_db, sample_account, second_account, add_transaction
    ):
        """Transfer payees never attribute a row."""
        temp_db.create_payee("Transfer: Savings", transfer_account_id=second_account.id)
        add_transaction(sample_account.id, date(2024, 1, 3), -100, payee="Transfer: Savings")
        assert conflict_service.find_potential_accounts(payee_name="Transfer: Savings") == []

    def test_unknown(self, conflict_service, sample_account):
        """Nothing known gives no candidates."""
        assert conflict_service.find_potential_accounts(payee_name="Nobody") == []


class TestDetectConflicts:
    """Tests for the attribution pass."""

    def test_single_match_is_a_suggestion(self, conflict_service, sample_account, second_account):
        """One candidate account is suggested, not a conflict."""
        scan = conflict_service.detect_conflicts([_row(0, "Grocer", "111122223333")])
        assert scan.conflicts == {}
        assert scan.suggestions == {0: sample_account.id}

    def test_shared_number_is_a_conflict(self, conflict_service, account_service, sample_account):
        """Two accounts with the same number make a conflict."""
        twin = account_service.create_account(name="Joint", external_id="111122223333")
        scan = conflict_service.detect_conflicts([_row(0, "Grocer", "111122223333")])

        assert list(scan.conflicts) == [0]
        assert scan.conflicts[0].candidate_account_ids == frozenset({sample_account.id, twin})
        with pytest.raises(ConflictUnresolvedError) as exc_info:
            ensure_resolved(scan.conflicts)
        assert exc_info.value.transient_ids == [0]

    def test_skipped_rows(self, conflict_service, account_service, sample_account):
        """Attributed, deselected and matched-existing rows are not looked up."""
        account_service.create_account(name="Joint", external_id="111122223333")
        rows = [
            _row(0, number="111122223333", account_id=sample_account.id),
            _row(1, number="111122223333", selection=SelectionState.DESELECTED),
            _row(2, number="111122223333", is_matched_existing=True),
        ]
        scan = conflict_service.detect_conflicts(rows)
        assert scan.conflicts == {}
        assert scan.suggestions == {}


class TestResolveConflict:
    """Tests for choosing an account for a conflicted row."""

    @pytest.fixture
    def conflicted(self, sample_account, second_account):
        rows = (_row(0, "Grocer"), _row(1, "Employer"))
        conflicts = {
            0: AccountConflict(0, frozenset({sample_account.id, second_account.id})),
        }
        return rows, conflicts

    def test_resolve(self, conflict_service, conflicted, second_account):
        """Resolving sets the account and clears the conflict."""
        rows, conflicts = conflicted
        rows, remaining = conflict_service.resolve_conflict(rows, conflicts, 0, second_account.id)

        assert rows[0].account_id == second_account.id
        assert rows[1].account_id is None
        assert remaining == {}
        ensure_resolved(remaining)

    def test_non_candidate(self, conflict_service, conflicted, account_service):
        """Only candidate accounts can be chosen."""
        rows, conflicts = conflicted
        other = account_service.create_account(name="Other")
        with pytest.raises(ValidationError):
            conflict_service.resolve_conflict(rows, conflicts, 0, other)
        assert pending_conflicts(conflicts) == [0]

    def test_no_conflict(self, conflict_service, conflicted, sample_account):
        """Rows without a conflict cannot be resolved."""
        rows, conflicts = conflicted
        with pytest.raises(NotFoundError):
            conflict_service.resolve_conflict(rows, conflicts, 1, sample_account.id)

    def test_assign_unknown_account(self, conflict_service, conflicted):
        """Assigning a missing account fails."""
        rows, _ = conflicted
        with pytest.raises(NotFoundError):
            conflict_service.assign_account(rows, 1, 999)
