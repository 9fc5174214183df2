"""Shared pytest fixtures for condopay tests."""

import tempfile
import os
from decimal import Decimal
import pytest

from condopay.database.factories import create_sqlite_database
from condopay.domain.credit import CreditLedgerService
from condopay.domain.directory import DirectoryService
from condopay.domain.entities import Role
from condopay.domain.goals import DistributedGoalService
from condopay.domain.notifications import DatabaseNotificationSink
from condopay.domain.obligation import ObligationService
from condopay.domain.validation import Decision, ValidationService


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
def directory_service(temp_db):
    """Create a DirectoryService with a temporary database."""
    return DirectoryService(temp_db)


@pytest.fixture
def obligation_service(temp_db):
    """Create an ObligationService that stores notifications in the database."""
    return ObligationService(temp_db, notifier=DatabaseNotificationSink(temp_db))


@pytest.fixture
def credit_service(temp_db):
    """Create a CreditLedgerService with a temporary database."""
    return CreditLedgerService(temp_db)


@pytest.fixture
def validation_service(temp_db):
    """Create a ValidationService that stores notifications in the database."""
    return ValidationService(temp_db, notifier=DatabaseNotificationSink(temp_db))


@pytest.fixture
def goal_service(temp_db, obligation_service):
    """Create a DistributedGoalService with a temporary database."""
    return DistributedGoalService(temp_db, obligations=obligation_service)


@pytest.fixture
def sample_condo(directory_service, temp_db):
    """Create a sample condominium."""
    condo_id = directory_service.create_condominium("Residencias El Parque")
    return temp_db.get_condominium(condo_id)


@pytest.fixture
def make_resident(directory_service):
    """Factory creating a resident with their own unit in a condominium."""
    counter = {"n": 0}

    def _make(condo, name=None, with_unit=True, role=Role.RESIDENT):
        counter["n"] += 1
        unit_id = None
        if with_unit:
            unit_id = directory_service.create_unit(condo.id, f"Apto {counter['n']}")
        resident_id = directory_service.create_resident(
            name or f"Resident {counter['n']}",
            condominium_id=condo.id,
            unit_id=unit_id,
            role=role,
        )
        return directory_service.get_resident(resident_id)

    return _make


@pytest.fixture
def sample_admin(make_resident, sample_condo):
    """Create an administrator of the sample condominium."""
    return make_resident(sample_condo, name="Admin", with_unit=False, role=Role.ADMIN)


@pytest.fixture
def sample_resident(make_resident, sample_condo):
    """Create a resident with a unit in the sample condominium."""
    return make_resident(sample_condo, name="Ana")


@pytest.fixture
def pay(obligation_service, validation_service, sample_admin):
    """Submit evidence for an obligation and approve it."""

    def _pay(obligation_id, amount, apply_credit=False):
        obligation = obligation_service.require_obligation(obligation_id)
        obligation_service.submit_evidence(
            obligation_id, resident_id=obligation.debtor_id, claimed_amount=Decimal(amount)
        )
        return validation_service.validate(
            obligation_id, sample_admin.id, Decision.approve(apply_credit=apply_credit)
        )

    return _pay


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
