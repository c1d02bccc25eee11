"""Account attribution for imports into all accounts at once."""

import logging
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Sequence

from ledgerimport.database.base import Database
from ledgerimport.domain.entities import AccountConflict, PreviewTransaction
from ledgerimport.domain.errors import (
    ConflictUnresolvedError,
    NotFoundError,
    ValidationError,
    account_not_found,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictScan:
    """Outcome of one attribution pass.

    ``conflicts`` holds rows with more than one candidate account.
    ``suggestions`` holds rows with exactly one candidate; they are not
    assigned automatically.
    """

    conflicts: dict[int, AccountConflict] = field(default_factory=dict)
    suggestions: dict[int, int] = field(default_factory=dict)


def pending_conflicts(conflicts: Mapping[int, AccountConflict]) -> list[int]:
    """Transient IDs of conflicts without a chosen account."""
    return sorted(t for t, c in conflicts.items() if c.resolved_account_id is None)


def ensure_resolved(conflicts: Mapping[int, AccountConflict]) -> None:
    """Raise ConflictUnresolvedError if any conflict is still open."""
    pending = pending_conflicts(conflicts)
    if pending:
        raise ConflictUnresolvedError(pending)


class AccountConflictService:
    """Finds candidate accounts for rows and tracks ambiguous ones."""

    def __init__(self, db: Database):
        """Initialize account conflict service.

        Args:
            db: Database instance
        """
        self.db = db

    def _payee_account(self, name: Optional[str]) -> Optional[int]:
        if not name:
            return None
        payee = self.db.get_payee_by_name(name)
        if payee is None or payee.transfer_account_id is not None:
            return None
        return self.db.get_last_transaction_account(payee.id)

    def find_potential_accounts(
        self,
        payee_name: Optional[str] = None,
        imported_payee: Optional[str] = None,
        extracted_account_number: Optional[str] = None,
    ) -> list[int]:
        """Candidate accounts for one row.

        The first rule that yields anything wins: open accounts whose
        external ID equals the extracted account number, then the account
        last used with the payee, then the account last used with the
        imported payee (when it differs from the payee). Transfer payees
        are never used.

        Returns:
            Candidate account IDs, in ascending order
        """
        candidates: set[int] = set()

        number = (extracted_account_number or "").strip()
        if number:
            for account in self.db.get_accounts(closed=False):
                if account.external_id == number:
                    candidates.add(account.id)

        if not candidates:
            account_id = self._payee_account(payee_name)
            if account_id is not None:
                candidates.add(account_id)

        if not candidates and imported_payee and imported_payee != payee_name:
            account_id = self._payee_account(imported_payee)
            if account_id is not None:
                candidates.add(account_id)

        return sorted(candidates)

    def detect_conflicts(self, transactions: Sequence[PreviewTransaction]) -> ConflictScan:
        """Look up candidate accounts for every unattributed, selected row.

        The result is only built once every row has been looked up.
        """
        conflicts: dict[int, AccountConflict] = {}
        suggestions: dict[int, int] = {}
        for row in transactions:
            if row.account_id is not None or not row.selected or row.is_matched_existing:
                continue
            candidates = self.find_potential_accounts(
                payee_name=row.payee,
                imported_payee=row.imported_payee,
                extracted_account_number=row.extracted_account_number,
            )
            if len(candidates) > 1:
                conflicts[row.transient_id] = AccountConflict(
                    transient_id=row.transient_id,
                    candidate_account_ids=frozenset(candidates),
                )
            elif len(candidates) == 1:
                suggestions[row.transient_id] = candidates[0]

        logger.info(
            "Account attribution: %d conflicts, %d suggestions",
            len(conflicts), len(suggestions),
        )
        return ConflictScan(conflicts=conflicts, suggestions=suggestions)

    def assign_account(
        self, transactions: Sequence[PreviewTransaction], transient_id: int, account_id: int
    ) -> tuple[PreviewTransaction, ...]:
        """Attribute one row to an account.

        Raises:
            NotFoundError: If the account or the row does not exist
        """
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        if not any(t.transient_id == transient_id for t in transactions):
            raise NotFoundError(f"Row {transient_id} not found in preview")
        return tuple(
            replace(t, account_id=account_id)
            if t.transient_id == transient_id and not t.is_matched_existing
            else t
            for t in transactions
        )

    def resolve_conflict(
        self,
        transactions: Sequence[PreviewTransaction],
        conflicts: Mapping[int, AccountConflict],
        transient_id: int,
        account_id: int,
    ) -> tuple[tuple[PreviewTransaction, ...], dict[int, AccountConflict]]:
        """Choose the account of a conflicted row.

        The account is written onto the row and the conflict is removed.

        Returns:
            Tuple of (updated rows, remaining conflicts)

        Raises:
            NotFoundError: If there is no conflict for the row
            ValidationError: If the account is not one of the candidates
        """
        conflict = conflicts.get(transient_id)
        if conflict is None:
            raise NotFoundError(f"No account conflict for row {transient_id}")
        if account_id not in conflict.candidate_account_ids:
            raise ValidationError(
                f"Account {account_id} is not a candidate for row {transient_id}"
            )
        updated = self.assign_account(transactions, transient_id, account_id)
        remaining = {t: c for t, c in conflicts.items() if t != transient_id}
        logger.debug("Row %d resolved to account %d", transient_id, account_id)
        return updated, remaining
