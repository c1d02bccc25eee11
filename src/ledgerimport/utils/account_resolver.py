"""Utility for resolving account names or external numbers to IDs."""

from ledgerimport.domain.account import AccountService


def resolve_account(account_service: AccountService, account: str | int) -> int:
    """Resolve an account reference to an account ID.

    The reference is tried as an ID, then as an exact account name, then as
    the account number stored as the account's external ID.

    Args:
        account_service: AccountService instance
        account: Account ID, name or external account number

    Returns:
        Account ID

    Raises:
        ValueError: If account is not found
    """
    if isinstance(account, int):
        if account_service.get_account(account) is None:
            raise ValueError(f"Account ID {account} not found")
        return account

    try:
        account_id = int(account)
    except (ValueError, TypeError):
        account_id = None
    if account_id is not None and account_service.get_account(account_id) is not None:
        return account_id

    accounts = account_service.list_accounts()
    for acc in accounts:
        if acc.name == account:
            return acc.id
    for acc in accounts:
        if acc.external_id is not None and acc.external_id == account:
            return acc.id

    raise ValueError(f"Account '{account}' not found")
