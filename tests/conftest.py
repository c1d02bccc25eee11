"""Shared pytest fixtures for ledgerimport tests."""

import tempfile
import os
from datetime import date
from pathlib import Path
import pytest

from ledgerimport.database.factories import create_sqlite_database
from ledgerimport.domain.account import AccountService
from ledgerimport.domain.category import CategoryService
from ledgerimport.domain.entities import NewTransaction


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def sample_account(account_service):
    """Create a sample account for testing."""
    account_id = account_service.create_account(name="Checking", external_id="111122223333")
    return account_service.get_account(account_id)


@pytest.fixture
def second_account(account_service):
    """Create a second account for attribution tests."""
    account_id = account_service.create_account(name="Savings", external_id="999988887777")
    return account_service.get_account(account_id)


@pytest.fixture
def add_transaction(temp_db):
    """Return a helper that books a transaction directly in the ledger."""

    def _add(account_id, when, amount, payee=None, **kwargs):
        result = temp_db.batch_update_transactions(
            added=[
                NewTransaction(
                    account_id=account_id, date=when, amount=amount, payee_name=payee, **kwargs
                )
            ]
        )
        return result.added[0]

    return _add


@pytest.fixture
def grocer_history(sample_account, add_transaction):
    """An existing grocery purchase in the sample account."""
    return add_transaction(sample_account.id, date(2024, 1, 2), -4500, payee="Grocer")


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
