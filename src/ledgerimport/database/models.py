"""SQLAlchemy models for the ledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    Date,
    Boolean,
    Index,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Account(Base):
    """Ledger account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    # Account number as reported by the bank
    external_id = Column(String, nullable=True, index=True)
    offbudget = Column(Boolean, default=False, nullable=False)
    closed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    transactions = relationship("Transaction", back_populates="account", cascade="all, delete-orphan")


class Payee(Base):
    """Payee model. Transfer payees reference the account they move money to."""

    __tablename__ = "payees"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    transfer_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)

    # Relationships
    transactions = relationship("Transaction", back_populates="payee")


class Category(Base):
    """Category model."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    transactions = relationship("Transaction", back_populates="category")


class Transaction(Base):
    """Transaction model. Amounts are integer minor units."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Integer, nullable=False)
    payee_id = Column(Integer, ForeignKey("payees.id"), nullable=True)
    imported_payee = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    cleared = Column(Boolean, default=False, nullable=False)
    reconciled = Column(Boolean, default=False, nullable=False)
    imported_id = Column(String, nullable=True)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        Index("ix_transactions_account_date", "account_id", "date"),
        Index("ix_transactions_payee_date", "payee_id", "date"),
    )

    # Relationships
    account = relationship("Account", back_populates="transactions")
    payee = relationship("Payee", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")


class Rule(Base):
    """Automation rule model. Conditions and actions are stored as JSON."""

    __tablename__ = "rules"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    conditions = Column(Text, nullable=False)
    actions = Column(Text, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class Preference(Base):
    """Key/value store for persisted import settings."""

    __tablename__ = "preferences"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=True)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
