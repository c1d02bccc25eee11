"""Mapper functions to convert SQLAlchemy models into domain entities.

This layer isolates the conversion logic, so the domain stays stable when
the schema changes.
"""

import json

from ledgerimport.domain import entities as domain
from ledgerimport.database.models import (
    Account as ORMAccount,
    Payee as ORMPayee,
    Category as ORMCategory,
    Transaction as ORMTransaction,
    Rule as ORMRule,
)


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        name=orm_account.name,
        external_id=orm_account.external_id,
        offbudget=bool(orm_account.offbudget),
        closed=bool(orm_account.closed),
        created_at=orm_account.created_at,
    )


def payee_to_domain(orm_payee: ORMPayee) -> domain.Payee:
    """Convert SQLAlchemy Payee model to domain Payee entity."""
    return domain.Payee(
        id=orm_payee.id,
        name=orm_payee.name,
        transfer_account_id=orm_payee.transfer_account_id,
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        created_at=orm_category.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    payee = orm_transaction.payee
    return domain.Transaction(
        id=orm_transaction.id,
        account_id=orm_transaction.account_id,
        date=orm_transaction.date,
        amount=orm_transaction.amount,
        payee_id=orm_transaction.payee_id,
        payee_name=payee.name if payee is not None else None,
        imported_payee=orm_transaction.imported_payee,
        notes=orm_transaction.notes,
        category_id=orm_transaction.category_id,
        cleared=bool(orm_transaction.cleared),
        reconciled=bool(orm_transaction.reconciled),
        imported_id=orm_transaction.imported_id,
        imported_at=orm_transaction.imported_at,
    )


def rule_to_domain(orm_rule: ORMRule) -> domain.Rule:
    """Convert SQLAlchemy Rule model to domain Rule entity."""
    return domain.Rule(
        id=orm_rule.id,
        name=orm_rule.name,
        conditions=json.loads(orm_rule.conditions),
        actions=json.loads(orm_rule.actions),
    )
