"""Shared domain error messages and error types."""

from typing import Iterable, Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class FormatError(DomainError):
    """Malformed or unrecognized file structure.

    Fatal to the current parse; the file has to be selected again.
    """


class FieldParseError(DomainError):
    """A record's date or amount could not be resolved."""

    def __init__(self, message: str, transient_id: Optional[int] = None, raw_value=None):
        super().__init__(message)
        self.transient_id = transient_id
        self.raw_value = raw_value


class ConflictUnresolvedError(DomainError):
    """Commit attempted while account conflicts are still pending."""

    def __init__(self, transient_ids: Iterable[int]):
        self.transient_ids = sorted(transient_ids)
        super().__init__(unresolved_conflicts(self.transient_ids))


class CommitError(DomainError):
    """The ledger store rejected the import batch."""


class CommitInProgressError(ConflictError):
    """A commit for the same session is already running."""


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def unparseable_date(raw_value) -> str:
    """Return message for a date that does not match the chosen format."""
    return f"Unable to parse date {raw_value or '(empty)'} with given date format"


def missing_amount(raw_date) -> str:
    """Return message for a record without a usable amount."""
    return f"Transaction on {raw_date or '(empty)'} has no amount"


def unresolved_conflicts(transient_ids: list[int]) -> str:
    """Return message when account conflicts block a commit."""
    count = len(transient_ids)
    rows = ", ".join(str(t) for t in transient_ids)
    return (
        f"Cannot import: {count} transaction{'s' if count != 1 else ''} "
        f"matched more than one account (rows {rows}). Choose an account for each first."
    )
