"""SQLAlchemy models for condopay database."""

from datetime import datetime, UTC
from decimal import Decimal
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Index,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

MONEY = Numeric(12, 2)


def _now() -> datetime:
    return datetime.now(UTC)


class Condominium(Base):
    """Condominium model."""

    __tablename__ = "condominiums"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    units = relationship("Unit", back_populates="condominium", cascade="all, delete-orphan")
    residents = relationship("Resident", back_populates="condominium")


class Unit(Base):
    """Housing unit model."""

    __tablename__ = "units"

    id = Column(Integer, primary_key=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False)
    label = Column(String, nullable=False)

    # Relationships
    condominium = relationship("Condominium", back_populates="units")


class Resident(Base):
    """Canonical user record (residents and administrators)."""

    __tablename__ = "residents"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="resident")
    active = Column(Boolean, nullable=False, default=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    condominium = relationship("Condominium", back_populates="residents")


class Obligation(Base):
    """Obligation (pago) model.

    ``version`` is SQLAlchemy's version counter: every UPDATE is issued as a
    compare-and-swap on the version read by the session.
    """

    __tablename__ = "obligations"

    id = Column(Integer, primary_key=True)
    debtor_id = Column(Integer, ForeignKey("residents.id"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False)
    concept = Column(String, nullable=False)
    obligation_type = Column(String, nullable=False, default="other")
    origin = Column(String, nullable=False)
    amount = Column(MONEY, nullable=False)
    amount_usd = Column(MONEY, nullable=True)
    paid_amount = Column(MONEY, nullable=False, default=Decimal("0.00"))
    status = Column(String, nullable=False, default="pending")
    due_date = Column(Date, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)
    version = Column(Integer, nullable=False)

    # Submission
    reference = Column(String, nullable=True)
    payment_method = Column(String, nullable=True)
    submission_note = Column(String, nullable=True)
    evidence_blob_id = Column(String, nullable=True)
    claimed_amount = Column(MONEY, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    awaiting_validation = Column(Boolean, nullable=False, default=False)

    # Review
    rejection_reason = Column(String, nullable=True)
    validated_by = Column(Integer, ForeignKey("residents.id"), nullable=True)
    validated_at = Column(DateTime, nullable=True)

    # Distributed group
    group_id = Column(String, nullable=True, index=True)
    group_target_amount = Column(MONEY, nullable=True)
    group_participant_count = Column(Integer, nullable=True)

    # Structured money facts
    excess_amount = Column(MONEY, nullable=False, default=Decimal("0.00"))
    parent_obligation_id = Column(Integer, ForeignKey("obligations.id"), nullable=True)
    original_amount_reference = Column(MONEY, nullable=True)
    settlement_reason = Column(String, nullable=True)
    cancellation_note = Column(String, nullable=True)

    # Copy of concept while unresolved; NULL once paid, cancelled or superseded
    open_concept = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_obligations_debtor_concept", "debtor_id", "concept"),
        UniqueConstraint("debtor_id", "open_concept", name="uq_obligations_debtor_open_concept"),
    )
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    events = relationship("ObligationEvent", back_populates="obligation", cascade="all, delete-orphan")


class CreditEntry(Base):
    """Append-only credit ledger row (abono)."""

    __tablename__ = "credit_entries"

    id = Column(Integer, primary_key=True)
    resident_id = Column(Integer, ForeignKey("residents.id"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    source_obligation_id = Column(Integer, ForeignKey("obligations.id"), nullable=True)
    consumed = Column(Boolean, nullable=False, default=False)
    consumed_by_obligation_id = Column(Integer, ForeignKey("obligations.id"), nullable=True)
    consumed_at = Column(DateTime, nullable=True)
    split_from_entry_id = Column(Integer, ForeignKey("credit_entries.id"), nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ObligationEvent(Base):
    """Obligation history model."""

    __tablename__ = "obligation_events"

    id = Column(Integer, primary_key=True)
    obligation_id = Column(Integer, ForeignKey("obligations.id"), nullable=False, index=True)
    event = Column(String, nullable=False)
    actor_id = Column(Integer, ForeignKey("residents.id"), nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    obligation = relationship("Obligation", back_populates="events")


class ExchangeRateRecord(Base):
    """Persisted exchange rate (Bs per USD)."""

    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True)
    rate = Column(Numeric(14, 4), nullable=False)
    source = Column(String, nullable=False)
    recorded_at = Column(DateTime, default=_now, nullable=False)


class Notification(Base):
    """Resident inbox notification."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    resident_id = Column(Integer, ForeignKey("residents.id"), nullable=False, index=True)
    kind = Column(String, nullable=False)
    message = Column(String, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_now, nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
