"""Abstract ledger store interface."""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Sequence

# Import entities directly to avoid circular import through domain/__init__.py
from ledgerimport.domain.entities import (
    Account,
    BatchUpdateResult,
    Category,
    MatchResult,
    NewTransaction,
    ParsedTransaction,
    Payee,
    Rule,
    Transaction,
    TransactionUpdate,
)


class Database(ABC):
    """Abstract ledger store for ledgerimport.

    The import pipeline only talks to the ledger through this interface.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self,
        name: str,
        external_id: Optional[str] = None,
        offbudget: bool = False,
        initial_balance: int = 0,
    ) -> int:
        """Create an account. Returns account ID.

        A non-zero initial balance is booked as a starting balance transaction.
        """
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def get_accounts(self, closed: Optional[bool] = None) -> list[Account]:
        """List accounts, optionally filtered by closed state."""
        pass

    @abstractmethod
    def update_account_external_id(self, account_id: int, external_id: Optional[str]) -> None:
        """Store the bank's account number on an account."""
        pass

    @abstractmethod
    def close_account(self, account_id: int) -> None:
        """Mark an account as closed."""
        pass

    # Payee operations
    @abstractmethod
    def get_payee_by_name(self, name: str) -> Optional[Payee]:
        """Get payee by exact name."""
        pass

    @abstractmethod
    def create_payee(self, name: str, transfer_account_id: Optional[int] = None) -> int:
        """Create a payee. Returns payee ID."""
        pass

    @abstractmethod
    def get_last_transaction_account(self, payee_id: int) -> Optional[int]:
        """Account of the most recent transaction with the given payee."""
        pass

    # Category operations
    @abstractmethod
    def create_category(self, name: str) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def list_categories(self) -> list[Category]:
        """List all categories."""
        pass

    # Transaction operations
    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(self, account_id: Optional[int] = None) -> list[Transaction]:
        """List transactions, newest first."""
        pass

    @abstractmethod
    def find_matching_transactions(
        self, account_id: Optional[int], candidates: Sequence[ParsedTransaction]
    ) -> list[MatchResult]:
        """Find existing transactions that plausibly correspond to candidates.

        Args:
            account_id: Target account, or None for an aggregate import
                (each candidate's own account is used, if any)
            candidates: Incoming transactions keyed by transient_id

        Returns:
            At most one MatchResult per candidate; an existing transaction
            is matched to at most one candidate
        """
        pass

    @abstractmethod
    def batch_update_transactions(
        self,
        added: Sequence[NewTransaction] = (),
        updated: Sequence[TransactionUpdate] = (),
        deleted: Sequence[int] = (),
    ) -> BatchUpdateResult:
        """Apply inserts, merges and deletes as one unit of work."""
        pass

    # Rule operations
    @abstractmethod
    def create_rule(
        self, name: str, conditions: list[dict[str, Any]], actions: list[dict[str, Any]]
    ) -> int:
        """Create an automation rule. Returns rule ID."""
        pass

    @abstractmethod
    def list_rules(self) -> list[Rule]:
        """List all rules."""
        pass

    # Preference operations
    @abstractmethod
    def get_preferences(self, keys: Optional[Iterable[str]] = None) -> dict[str, str]:
        """Get stored preferences, all of them when keys is None."""
        pass

    @abstractmethod
    def save_preferences(self, values: dict[str, str]) -> None:
        """Insert or overwrite preferences."""
        pass
