"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

# Import entities directly to avoid circular import through domain/__init__.py
from condopay.domain.entities import (
    Condominium,
    CreditEntry,
    ExchangeRate,
    Notification,
    Obligation,
    ObligationEvent,
    ObligationStatus,
    Resident,
    Role,
    Unit,
)


class Database(ABC):
    """Abstract database interface for condopay.

    Every write method commits on its own unless it runs inside
    :meth:`transaction`, in which case all writes commit or roll back
    together when the outermost block exits.
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

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Open an atomic unit of work. Blocks may nest.

        Raises:
            ConcurrentModification: If a versioned row changed underneath
                the unit of work; nothing is committed.
        """
        pass

    # Directory operations
    @abstractmethod
    def create_condominium(self, name: str) -> int:
        """Create a condominium. Returns condominium ID."""
        pass

    @abstractmethod
    def get_condominium(self, condominium_id: int) -> Optional[Condominium]:
        """Get condominium by ID."""
        pass

    @abstractmethod
    def list_condominiums(self) -> list[Condominium]:
        """List all condominiums."""
        pass

    @abstractmethod
    def create_unit(self, condominium_id: int, label: str) -> int:
        """Create a unit. Returns unit ID."""
        pass

    @abstractmethod
    def get_unit(self, unit_id: int) -> Optional[Unit]:
        """Get unit by ID."""
        pass

    @abstractmethod
    def create_resident(
        self,
        name: str,
        condominium_id: Optional[int] = None,
        unit_id: Optional[int] = None,
        role: Role = Role.RESIDENT,
        active: bool = True,
    ) -> int:
        """Create a resident. Returns resident ID."""
        pass

    @abstractmethod
    def get_resident(self, resident_id: int) -> Optional[Resident]:
        """Get resident by ID."""
        pass

    @abstractmethod
    def list_residents(
        self,
        condominium_id: Optional[int] = None,
        role: Optional[Role] = Role.RESIDENT,
        active_only: bool = True,
    ) -> list[Resident]:
        """List residents, optionally filtered by condominium and role."""
        pass

    @abstractmethod
    def update_resident(self, resident_id: int, **changes: Any) -> None:
        """Update resident columns (unit_id, active, role, condominium_id)."""
        pass

    # Obligation operations
    @abstractmethod
    def create_obligation(self, **fields: Any) -> int:
        """Create an obligation from column values. Returns obligation ID.

        Raises:
            DuplicateConcept: If the debtor already has an unresolved
                obligation with the same concept
        """
        pass

    @abstractmethod
    def get_obligation(self, obligation_id: int) -> Optional[Obligation]:
        """Get obligation by ID.

        Inside a transaction the row is read with a write lock where the
        backend supports one.
        """
        pass

    @abstractmethod
    def update_obligation(self, obligation_id: int, expected_version: int, **changes: Any) -> Obligation:
        """Update obligation columns, bumping its version. Returns the new state.

        Raises:
            ConcurrentModification: If the stored version differs from
                ``expected_version``
        """
        pass

    @abstractmethod
    def list_obligations(
        self,
        debtor_id: Optional[int] = None,
        group_id: Optional[str] = None,
        statuses: Optional[Iterable[ObligationStatus]] = None,
        include_cancelled: bool = False,
    ) -> list[Obligation]:
        """List obligations ordered by creation."""
        pass

    @abstractmethod
    def find_unresolved_by_concept(self, debtor_id: int, concept: str) -> Optional[Obligation]:
        """Find the unpaid, non-cancelled, non-superseded obligation with this concept."""
        pass

    @abstractmethod
    def get_remainder_of(self, obligation_id: int) -> Optional[Obligation]:
        """Get the remainder obligation split from the given original."""
        pass

    @abstractmethod
    def list_overdue_candidates(self, today: date) -> list[Obligation]:
        """List open obligations whose due date is before ``today``."""
        pass

    # Credit ledger operations
    @abstractmethod
    def add_credit_entry(
        self,
        resident_id: int,
        amount: Decimal,
        source_obligation_id: Optional[int],
        split_from_entry_id: Optional[int] = None,
    ) -> int:
        """Append a credit entry. Returns entry ID."""
        pass

    @abstractmethod
    def list_credit_entries(self, resident_id: int, unconsumed_only: bool = False) -> list[CreditEntry]:
        """List a resident's credit entries, oldest first."""
        pass

    @abstractmethod
    def consume_credit_entry(self, entry_id: int, obligation_id: int) -> None:
        """Mark a credit entry as consumed by an obligation.

        Raises:
            ConcurrentModification: If the entry was already consumed
        """
        pass

    # History
    @abstractmethod
    def record_event(
        self,
        obligation_id: int,
        event: str,
        actor_id: Optional[int],
        details: Optional[dict[str, Any]] = None,
    ) -> int:
        """Append an obligation history event. Returns event ID."""
        pass

    @abstractmethod
    def list_events(self, obligation_id: int) -> list[ObligationEvent]:
        """List obligation history, oldest first."""
        pass

    # Exchange rates
    @abstractmethod
    def save_exchange_rate(self, rate: Decimal, source: str) -> int:
        """Persist an exchange rate. Returns record ID."""
        pass

    @abstractmethod
    def get_latest_exchange_rate(self) -> Optional[ExchangeRate]:
        """Get the most recently persisted exchange rate."""
        pass

    # Notifications
    @abstractmethod
    def add_notification(self, resident_id: int, kind: str, message: str) -> int:
        """Store a notification. Returns notification ID."""
        pass

    @abstractmethod
    def list_notifications(self, resident_id: int, unread_only: bool = False) -> list[Notification]:
        """List a resident's notifications, newest first."""
        pass
