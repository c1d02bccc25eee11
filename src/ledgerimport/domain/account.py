"""Account domain service."""

import logging
from dataclasses import dataclass
from typing import Optional

from ledgerimport.database.base import Database
from ledgerimport.domain.entities import Account as AccountEntity
from ledgerimport.domain.errors import ConflictError, NotFoundError, ValidationError, account_not_found

logger = logging.getLogger(__name__)

# Display names for the account types banks report in statements
_ACCOUNT_TYPE_NAMES = {
    "creditcard": "Credit Card",
    "checking": "Checking",
    "savings": "Savings",
    "moneymrkt": "Money Market",
    "investment": "Investment",
}

_OFFBUDGET_TYPES = {"investment"}


@dataclass(frozen=True)
class ProvisionResult:
    """Outcome of find_or_create_account_by_details.

    ``rule_error`` holds the message of a failed auto-assign rule; the
    account exists regardless.
    """

    account_id: int
    created: bool
    rule_error: Optional[str] = None


def account_name_for(account_number: str, account_type: Optional[str] = None) -> str:
    """Default name for an account provisioned from statement details."""
    last4 = account_number[-4:]
    if not account_type:
        return f"Account ...{last4}"
    prefix = _ACCOUNT_TYPE_NAMES.get(account_type.lower(), account_type.capitalize())
    return f"{prefix} ...{last4}"


class AccountService:
    """Service for managing accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_account(
        self,
        name: str,
        external_id: Optional[str] = None,
        offbudget: bool = False,
        initial_balance: int = 0,
    ) -> int:
        """Create a new account.

        Args:
            name: Account name
            external_id: Account number as reported by the bank
            offbudget: Keep the account out of the budget
            initial_balance: Starting balance in minor units

        Returns:
            Account ID

        Raises:
            ConflictError: If account name already exists
        """
        if not name or not name.strip():
            raise ValidationError("Account name cannot be empty")
        for acc in self.db.get_accounts():
            if acc.name == name:
                raise ConflictError(f"Account with name '{name}' already exists")

        return self.db.create_account(
            name=name,
            external_id=external_id,
            offbudget=offbudget,
            initial_balance=initial_balance,
        )

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id)

    def list_accounts(self, include_closed: bool = True) -> list[AccountEntity]:
        """List accounts.

        Args:
            include_closed: Also return closed accounts

        Returns:
            List of account entities
        """
        return self.db.get_accounts(closed=None if include_closed else False)

    def close_account(self, account_id: int) -> None:
        """Close an account.

        Raises:
            NotFoundError: If account not found
        """
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        self.db.close_account(account_id)

    def find_account_by_number(self, account_number: str) -> Optional[AccountEntity]:
        """Open account whose stored external ID equals the account number."""
        for acc in self.db.get_accounts(closed=False):
            if acc.external_id == account_number:
                return acc
        return None

    def find_or_create_account_by_details(
        self,
        account_number: str,
        bank_id: Optional[str] = None,
        account_type: Optional[str] = None,
    ) -> ProvisionResult:
        """Find an account by bank account number, creating one if needed.

        A new account is named after its type and the last four digits of
        the number; investment accounts are kept off budget. After creation
        an auto-assign rule (imported payee contains the last four digits)
        is added on a best-effort basis.

        Args:
            account_number: Account number extracted from the statement
            bank_id: Bank identifier from the statement (informational)
            account_type: Account type from the statement (e.g. CHECKING)

        Returns:
            ProvisionResult with the account ID

        Raises:
            ValidationError: If account number is empty
        """
        account_number = (account_number or "").strip()
        if not account_number:
            raise ValidationError("Account number cannot be empty")

        existing = self.find_account_by_number(account_number)
        if existing is not None:
            logger.debug("Account number ...%s belongs to account %d", account_number[-4:], existing.id)
            return ProvisionResult(account_id=existing.id, created=False)

        name = account_name_for(account_number, account_type)
        offbudget = bool(account_type) and account_type.lower() in _OFFBUDGET_TYPES
        account_id = self.db.create_account(name=name, offbudget=offbudget)
        self.db.update_account_external_id(account_id, account_number)
        logger.info("Created account %r (bank %s) for statement account ...%s", name, bank_id, account_number[-4:])

        rule_error = self._create_assign_rule(account_id, account_number)
        return ProvisionResult(account_id=account_id, created=True, rule_error=rule_error)

    def _create_assign_rule(self, account_id: int, account_number: str) -> Optional[str]:
        """Add the auto-assign rule for a new account. Returns an error message on failure."""
        last4 = account_number[-4:]
        try:
            self.db.create_rule(
                name=f"Auto-assign: Acct ...{last4} (Payee heuristic)",
                conditions=[
                    {"field": "imported_payee", "op": "contains", "value": last4, "type": "string"}
                ],
                actions=[{"field": "account", "op": "set", "value": account_id, "type": "id"}],
            )
        except Exception as e:
            # The account stays; only the convenience rule is lost
            logger.warning("Failed to create rule for account %d (...%s): %s", account_id, last4, e)
            return str(e)
        return None
