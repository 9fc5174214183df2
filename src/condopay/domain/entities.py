"""Domain model entities for condopay.

These are pure data classes representing business concepts, independent of
database schema. Money is always carried as ``Decimal`` quantized to cents.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ObligationStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    REJECTED = "rejected"
    OVERDUE = "overdue"


OPEN_STATUSES = frozenset(
    {ObligationStatus.PENDING, ObligationStatus.PARTIALLY_PAID, ObligationStatus.OVERDUE}
)
TERMINAL_STATUSES = frozenset({ObligationStatus.PAID, ObligationStatus.REJECTED})


class ObligationOrigin(str, Enum):
    SELF_REPORTED = "self_reported"
    ASSIGNED = "assigned"


class ObligationType(str, Enum):
    MAINTENANCE = "maintenance"
    ORDINARY_FEE = "ordinary_fee"
    EXTRAORDINARY_FEE = "extraordinary_fee"
    FINE = "fine"
    SERVICES = "services"
    OTHER = "other"


class SettlementReason(str, Enum):
    EVIDENCE = "evidence"
    CARRIED_CREDIT = "carried_credit"
    CANCELLED = "cancelled"


class Role(str, Enum):
    RESIDENT = "resident"
    ADMIN = "admin"


class ObligationEventKind(str, Enum):
    CREATED = "created"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    REOPENED = "reopened"
    CREDIT_APPLIED = "credit_applied"
    REMAINDER_CREATED = "remainder_created"
    EDITED = "edited"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class Condominium:
    """Condominium domain entity."""

    id: int
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Unit:
    """Housing unit (vivienda) inside a condominium."""

    id: int
    condominium_id: int
    label: str


@dataclass(frozen=True)
class Resident:
    """Canonical user record; administrators are residents with the admin role."""

    id: int
    name: str
    role: Role
    active: bool
    condominium_id: Optional[int]
    unit_id: Optional[int]
    created_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class Obligation:
    """A single monetary charge owed by one resident for one unit."""

    id: int
    debtor_id: int
    unit_id: int
    concept: str
    obligation_type: ObligationType
    origin: ObligationOrigin
    amount: Decimal
    amount_usd: Optional[Decimal]
    paid_amount: Decimal
    status: ObligationStatus
    due_date: Optional[date]
    paid_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    version: int = 1
    # Submission (resident-supplied)
    reference: Optional[str] = None
    payment_method: Optional[str] = None
    submission_note: Optional[str] = None
    evidence_blob_id: Optional[str] = None
    claimed_amount: Optional[Decimal] = None
    submitted_at: Optional[datetime] = None
    awaiting_validation: bool = False
    # Review
    rejection_reason: Optional[str] = None
    validated_by: Optional[int] = None
    validated_at: Optional[datetime] = None
    # Distributed group
    group_id: Optional[str] = None
    group_target_amount: Optional[Decimal] = None
    group_participant_count: Optional[int] = None
    # Structured money facts
    excess_amount: Decimal = Decimal("0.00")
    parent_obligation_id: Optional[int] = None
    original_amount_reference: Optional[Decimal] = None
    settlement_reason: Optional[SettlementReason] = None
    cancellation_note: Optional[str] = None

    @property
    def remaining(self) -> Decimal:
        """Balance still owed on this obligation."""
        return self.amount - self.paid_amount

    @property
    def is_cancelled(self) -> bool:
        return self.settlement_reason == SettlementReason.CANCELLED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES or self.is_cancelled

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES and not self.is_cancelled


@dataclass(frozen=True)
class CreditEntry:
    """One append-only row of a resident's carried-forward credit."""

    id: int
    resident_id: int
    amount: Decimal
    source_obligation_id: Optional[int]
    consumed: bool
    consumed_by_obligation_id: Optional[int]
    consumed_at: Optional[datetime]
    split_from_entry_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class ObligationEvent:
    """History row for an obligation."""

    id: int
    obligation_id: int
    event: ObligationEventKind
    actor_id: Optional[int]
    details: dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class ExchangeRate:
    """Bs-per-USD rate together with where it came from."""

    rate: Decimal
    source: str
    is_live: bool
    as_of: Optional[datetime] = None


@dataclass(frozen=True)
class Notification:
    """Message delivered to a resident's inbox."""

    id: int
    resident_id: int
    kind: str
    message: str
    read: bool
    created_at: datetime


@dataclass(frozen=True)
class GroupProgress:
    """Collection progress of a distributed fixed expense."""

    group_id: str
    target: Decimal
    collected: Decimal
    percentage: Decimal
    participants_paid: int
    participants_total: int

    @property
    def outstanding(self) -> Decimal:
        return max(self.target - self.collected, Decimal("0.00"))


@dataclass
class ScopeBreakdown:
    """Per-condominium counters of a bulk creation."""

    condominium_id: int
    created: int = 0
    skipped: int = 0
    failed: int = 0
    details: list[str] = field(default_factory=list)


@dataclass
class BulkCreationResult:
    """Aggregate outcome of a bulk obligation creation."""

    created: int = 0
    skipped: int = 0
    failed: int = 0
    obligation_ids: list[int] = field(default_factory=list)
    per_scope: dict[int, ScopeBreakdown] = field(default_factory=dict)
    group_id: Optional[str] = None

    def scope(self, condominium_id: int) -> ScopeBreakdown:
        if condominium_id not in self.per_scope:
            self.per_scope[condominium_id] = ScopeBreakdown(condominium_id=condominium_id)
        return self.per_scope[condominium_id]


@dataclass(frozen=True)
class AccountStatement:
    """Summary of a resident's position across all obligations."""

    resident_id: int
    total_outstanding: Decimal
    total_paid: Decimal
    open_count: int
    paid_count: int
    available_credit: Decimal
