"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic: string columns become enums and
money columns become cent-quantized Decimals before reaching the domain.
"""

from decimal import Decimal
from typing import Optional

from condopay.domain import entities as domain
from condopay.database.models import (
    Condominium as ORMCondominium,
    Unit as ORMUnit,
    Resident as ORMResident,
    Obligation as ORMObligation,
    CreditEntry as ORMCreditEntry,
    ObligationEvent as ORMObligationEvent,
    ExchangeRateRecord as ORMExchangeRateRecord,
    Notification as ORMNotification,
)
from condopay.utils.amount_parser import to_money


def _money(value) -> Optional[Decimal]:
    return None if value is None else to_money(value)


def condominium_to_domain(orm_condominium: ORMCondominium) -> domain.Condominium:
    """Convert SQLAlchemy Condominium model to domain Condominium entity."""
    return domain.Condominium(
        id=orm_condominium.id,
        name=orm_condominium.name,
        created_at=orm_condominium.created_at,
    )


def unit_to_domain(orm_unit: ORMUnit) -> domain.Unit:
    """Convert SQLAlchemy Unit model to domain Unit entity."""
    return domain.Unit(
        id=orm_unit.id,
        condominium_id=orm_unit.condominium_id,
        label=orm_unit.label,
    )


def resident_to_domain(orm_resident: ORMResident) -> domain.Resident:
    """Convert SQLAlchemy Resident model to domain Resident entity."""
    return domain.Resident(
        id=orm_resident.id,
        name=orm_resident.name,
        role=domain.Role(orm_resident.role),
        active=orm_resident.active,
        condominium_id=orm_resident.condominium_id,
        unit_id=orm_resident.unit_id,
        created_at=orm_resident.created_at,
    )


def obligation_to_domain(orm_obligation: ORMObligation) -> domain.Obligation:
    """Convert SQLAlchemy Obligation model to domain Obligation entity."""
    settlement = orm_obligation.settlement_reason
    return domain.Obligation(
        id=orm_obligation.id,
        debtor_id=orm_obligation.debtor_id,
        unit_id=orm_obligation.unit_id,
        concept=orm_obligation.concept,
        obligation_type=domain.ObligationType(orm_obligation.obligation_type),
        origin=domain.ObligationOrigin(orm_obligation.origin),
        amount=_money(orm_obligation.amount),
        amount_usd=_money(orm_obligation.amount_usd),
        paid_amount=_money(orm_obligation.paid_amount),
        status=domain.ObligationStatus(orm_obligation.status),
        due_date=orm_obligation.due_date,
        paid_at=orm_obligation.paid_at,
        created_at=orm_obligation.created_at,
        updated_at=orm_obligation.updated_at,
        version=orm_obligation.version,
        reference=orm_obligation.reference,
        payment_method=orm_obligation.payment_method,
        submission_note=orm_obligation.submission_note,
        evidence_blob_id=orm_obligation.evidence_blob_id,
        claimed_amount=_money(orm_obligation.claimed_amount),
        submitted_at=orm_obligation.submitted_at,
        awaiting_validation=orm_obligation.awaiting_validation,
        rejection_reason=orm_obligation.rejection_reason,
        validated_by=orm_obligation.validated_by,
        validated_at=orm_obligation.validated_at,
        group_id=orm_obligation.group_id,
        group_target_amount=_money(orm_obligation.group_target_amount),
        group_participant_count=orm_obligation.group_participant_count,
        excess_amount=_money(orm_obligation.excess_amount),
        parent_obligation_id=orm_obligation.parent_obligation_id,
        original_amount_reference=_money(orm_obligation.original_amount_reference),
        settlement_reason=domain.SettlementReason(settlement) if settlement else None,
        cancellation_note=orm_obligation.cancellation_note,
    )


def credit_entry_to_domain(orm_entry: ORMCreditEntry) -> domain.CreditEntry:
    """Convert SQLAlchemy CreditEntry model to domain CreditEntry entity."""
    return domain.CreditEntry(
        id=orm_entry.id,
        resident_id=orm_entry.resident_id,
        amount=_money(orm_entry.amount),
        source_obligation_id=orm_entry.source_obligation_id,
        consumed=orm_entry.consumed,
        consumed_by_obligation_id=orm_entry.consumed_by_obligation_id,
        consumed_at=orm_entry.consumed_at,
        split_from_entry_id=orm_entry.split_from_entry_id,
        created_at=orm_entry.created_at,
    )


def obligation_event_to_domain(orm_event: ORMObligationEvent) -> domain.ObligationEvent:
    """Convert SQLAlchemy ObligationEvent model to domain ObligationEvent entity."""
    return domain.ObligationEvent(
        id=orm_event.id,
        obligation_id=orm_event.obligation_id,
        event=domain.ObligationEventKind(orm_event.event),
        actor_id=orm_event.actor_id,
        details=dict(orm_event.details or {}),
        created_at=orm_event.created_at,
    )


def exchange_rate_to_domain(orm_rate: ORMExchangeRateRecord) -> domain.ExchangeRate:
    """Convert a persisted rate row; persisted rates are never live."""
    return domain.ExchangeRate(
        rate=Decimal(orm_rate.rate),
        source=orm_rate.source,
        is_live=False,
        as_of=orm_rate.recorded_at,
    )


def notification_to_domain(orm_notification: ORMNotification) -> domain.Notification:
    """Convert SQLAlchemy Notification model to domain Notification entity."""
    return domain.Notification(
        id=orm_notification.id,
        resident_id=orm_notification.resident_id,
        kind=orm_notification.kind,
        message=orm_notification.message,
        read=orm_notification.read,
        created_at=orm_notification.created_at,
    )
