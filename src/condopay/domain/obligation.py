"""Obligation domain service."""

import logging
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional

from condopay.database.base import Database
from condopay.domain.access import require_administrator, require_resident
from condopay.domain.credit import CreditLedgerService
from condopay.domain.entities import (
    AccountStatement,
    BulkCreationResult,
    Obligation,
    ObligationEvent,
    ObligationEventKind,
    ObligationOrigin,
    ObligationStatus,
    ObligationType,
    Role,
    SettlementReason,
)
from condopay.domain.errors import (
    AlreadyFinalized,
    AlreadySubmitted,
    ConflictError,
    DomainError,
    DuplicateConcept,
    MissingUnitAssociation,
    NotFoundError,
    PermissionDenied,
    ValidationError,
    already_finalized,
    condominium_not_found,
    duplicate_concept,
    invalid_amount,
    missing_unit,
    obligation_not_found,
    superseded_by_remainder,
)
from condopay.domain.notifications import (
    EVIDENCE_SUBMITTED,
    OBLIGATION_ASSIGNED,
    NotificationSink,
    notify_safely,
)
from condopay.domain.rates import RateResolver, display_amount
from condopay.domain.status import derive_status
from condopay.utils.amount_parser import ZERO, to_money

logger = logging.getLogger(__name__)

_SUBMISSION_RESET = {
    "reference": None,
    "payment_method": None,
    "submission_note": None,
    "evidence_blob_id": None,
    "claimed_amount": None,
    "submitted_at": None,
    "awaiting_validation": False,
}


class ObligationService:
    """Service for creating and maintaining obligations."""

    def __init__(
        self,
        db: Database,
        notifier: Optional[NotificationSink] = None,
        rate_resolver: Optional[RateResolver] = None,
    ):
        """Initialize obligation service.

        Args:
            db: Database instance
            notifier: Where resident/admin notifications go (optional)
            rate_resolver: Used to fix local amounts of USD-only obligations
        """
        self.db = db
        self.notifier = notifier
        self.rate_resolver = rate_resolver

    def resolve_local_amount(self, amount: Decimal, amount_usd: Optional[Decimal]) -> Decimal:
        """Resolve the local amount, converting USD-only amounts at today's rate."""
        if amount < 0:
            raise ValidationError(invalid_amount("Amount", amount))
        if amount > 0:
            return amount
        if amount_usd is None or amount_usd <= 0:
            raise ValidationError(invalid_amount("Amount", amount))
        if self.rate_resolver is None:
            raise ValidationError("An exchange rate is required to create a USD-only obligation")
        rate = self.rate_resolver.current_rate()
        local = to_money(amount_usd * rate.rate)
        logger.info("Fixed USD %s at %s (%s) = Bs %s", amount_usd, rate.rate, rate.source, local)
        return local

    def _resolve_group_target(
        self, group_id: Optional[str], group_target_amount: Optional[Decimal]
    ) -> Optional[Decimal]:
        if group_id is None:
            if group_target_amount is not None:
                raise ValidationError("A group target requires a group ID")
            return None
        members = self.db.list_obligations(group_id=group_id, include_cancelled=True)
        if members:
            fixed = members[0].group_target_amount
            if group_target_amount is not None and to_money(group_target_amount) != fixed:
                raise ValidationError(
                    f"Group '{group_id}' target is fixed at {fixed}; got {to_money(group_target_amount)}"
                )
            return fixed
        if group_target_amount is None or to_money(group_target_amount) <= 0:
            raise ValidationError(f"Group '{group_id}' needs a positive target amount")
        return to_money(group_target_amount)

    def create_obligation(
        self,
        debtor_id: int,
        concept: str,
        amount: Decimal,
        due_date: Optional[date] = None,
        amount_usd: Optional[Decimal] = None,
        obligation_type: ObligationType = ObligationType.OTHER,
        origin: ObligationOrigin = ObligationOrigin.SELF_REPORTED,
        unit_id: Optional[int] = None,
        group_id: Optional[str] = None,
        group_target_amount: Optional[Decimal] = None,
        group_participant_count: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> int:
        """Create a new obligation.

        Args:
            debtor_id: Resident who owes the amount
            concept: Human-readable concept
            amount: Local amount; zero means "fix it from amount_usd"
            due_date: Optional due date
            amount_usd: Optional USD denomination
            obligation_type: Category
            origin: self_reported or assigned
            unit_id: Unit; defaults to the debtor's unit
            group_id: Distributed group the obligation belongs to
            group_target_amount: Group target (must match existing members)
            group_participant_count: Participant count at group creation
            actor_id: Who is creating it, for history

        Returns:
            Obligation ID

        Raises:
            NotFoundError: If the debtor does not exist
            MissingUnitAssociation: If the debtor has no unit
            DuplicateConcept: If the debtor already has an unresolved obligation
                with the same concept
            ValidationError: For bad amounts or group data
        """
        debtor = require_resident(self.db, debtor_id)
        unit_id = unit_id if unit_id is not None else debtor.unit_id
        if unit_id is None:
            raise MissingUnitAssociation(missing_unit(debtor_id))

        concept = concept.strip()
        if not concept:
            raise ValidationError("Concept must not be empty")

        amount_usd = to_money(amount_usd) if amount_usd is not None else None
        local_amount = self.resolve_local_amount(to_money(amount), amount_usd)
        target = self._resolve_group_target(group_id, group_target_amount)

        with self.db.transaction():
            existing = self.db.find_unresolved_by_concept(debtor_id, concept)
            if existing is not None:
                raise DuplicateConcept(duplicate_concept(debtor_id, concept, existing.id))

            obligation_id = self.db.create_obligation(
                debtor_id=debtor_id,
                unit_id=unit_id,
                concept=concept,
                obligation_type=obligation_type,
                origin=origin,
                amount=local_amount,
                amount_usd=amount_usd,
                paid_amount=ZERO,
                status=derive_status(local_amount, ZERO, due_date, date.today()),
                due_date=due_date,
                group_id=group_id,
                group_target_amount=target,
                group_participant_count=group_participant_count,
            )
            self.db.record_event(
                obligation_id,
                ObligationEventKind.CREATED,
                actor_id if actor_id is not None else debtor_id,
                {"amount": local_amount, "origin": origin, "group_id": group_id},
            )

        logger.debug("Created obligation %s for resident %s (%s)", obligation_id, debtor_id, concept)
        return obligation_id

    def create_obligations_bulk(
        self,
        admin_id: int,
        concept: str,
        amount: Decimal,
        due_date: Optional[date] = None,
        obligation_type: ObligationType = ObligationType.OTHER,
        condominium_id: Optional[int] = None,
        amount_usd: Optional[Decimal] = None,
    ) -> BulkCreationResult:
        """Create one assigned obligation per active resident.

        Each resident is handled independently: duplicates are counted as
        skipped and residents without a unit as failed. Nothing is raised
        for a single resident.

        Args:
            admin_id: Administrator creating the charge
            concept: Concept shared by every created obligation
            amount: Local amount per resident
            due_date: Optional due date
            obligation_type: Category
            condominium_id: Limit to one condominium; all when None
            amount_usd: Optional USD denomination

        Returns:
            Counts with a per-condominium breakdown
        """
        require_administrator(self.db, admin_id)
        amount_usd = to_money(amount_usd) if amount_usd is not None else None
        local_amount = self.resolve_local_amount(to_money(amount), amount_usd)

        if condominium_id is not None:
            condo = self.db.get_condominium(condominium_id)
            if condo is None:
                raise NotFoundError(condominium_not_found(condominium_id))
            condominiums = [condo]
        else:
            condominiums = self.db.list_condominiums()

        result = BulkCreationResult()
        for condo in condominiums:
            scope = result.scope(condo.id)
            for resident in self.db.list_residents(condominium_id=condo.id):
                try:
                    obligation_id = self.create_obligation(
                        debtor_id=resident.id,
                        concept=concept,
                        amount=local_amount,
                        due_date=due_date,
                        amount_usd=amount_usd,
                        obligation_type=obligation_type,
                        origin=ObligationOrigin.ASSIGNED,
                        actor_id=admin_id,
                    )
                except DuplicateConcept as e:
                    scope.skipped += 1
                    scope.details.append(f"skipped {resident.name}: {e}")
                    logger.debug("Skipped resident %s: %s", resident.id, e)
                    continue
                except DomainError as e:
                    scope.failed += 1
                    scope.details.append(f"failed {resident.name}: {e}")
                    logger.warning("Could not create obligation for resident %s: %s", resident.id, e)
                    continue
                scope.created += 1
                result.obligation_ids.append(obligation_id)
                notify_safely(
                    self.notifier,
                    resident.id,
                    OBLIGATION_ASSIGNED,
                    f"New charge '{concept}' of Bs {local_amount}",
                )

        result.created = sum(s.created for s in result.per_scope.values())
        result.skipped = sum(s.skipped for s in result.per_scope.values())
        result.failed = sum(s.failed for s in result.per_scope.values())
        logger.info(
            "Bulk '%s': created=%d skipped=%d failed=%d",
            concept,
            result.created,
            result.skipped,
            result.failed,
        )
        return result

    def get_obligation(self, obligation_id: int) -> Optional[Obligation]:
        return self.db.get_obligation(obligation_id)

    def require_obligation(self, obligation_id: int) -> Obligation:
        obligation = self.db.get_obligation(obligation_id)
        if obligation is None:
            raise NotFoundError(obligation_not_found(obligation_id))
        return obligation

    def list_obligations(
        self,
        debtor_id: Optional[int] = None,
        status: Optional[ObligationStatus] = None,
        group_id: Optional[str] = None,
        include_cancelled: bool = False,
    ) -> list[Obligation]:
        """List obligations with optional filters."""
        return self.db.list_obligations(
            debtor_id=debtor_id,
            group_id=group_id,
            statuses=[status] if status is not None else None,
            include_cancelled=include_cancelled,
        )

    def _check_accepts_evidence(self, obligation: Obligation) -> None:
        if obligation.is_terminal:
            status = "cancelled" if obligation.is_cancelled else obligation.status.value
            raise AlreadyFinalized(already_finalized(obligation.id, status))
        remainder = self.db.get_remainder_of(obligation.id)
        if remainder is not None:
            raise AlreadyFinalized(superseded_by_remainder(obligation.id, remainder.id))
        if obligation.awaiting_validation:
            raise AlreadySubmitted(f"Obligation {obligation.id} already has evidence awaiting validation")

    def submit_evidence(
        self,
        obligation_id: int,
        resident_id: int,
        claimed_amount: Decimal,
        reference: Optional[str] = None,
        payment_method: Optional[str] = None,
        note: Optional[str] = None,
        evidence_blob_id: Optional[str] = None,
    ) -> Obligation:
        """Attach payment evidence to an obligation.

        Amounts are not touched here; only validation applies them.

        Raises:
            NotFoundError: If the obligation does not exist
            PermissionDenied: If the resident is not the debtor
            AlreadyFinalized: If the obligation is closed or was split
            AlreadySubmitted: If evidence already awaits validation
            ValidationError: If the claimed amount is not positive
        """
        claimed = to_money(claimed_amount)
        if claimed <= 0:
            raise ValidationError(invalid_amount("Claimed amount", claimed))

        with self.db.transaction():
            obligation = self.require_obligation(obligation_id)
            if obligation.debtor_id != resident_id:
                raise PermissionDenied(f"Obligation {obligation_id} does not belong to resident {resident_id}")
            self._check_accepts_evidence(obligation)
            updated = self.db.update_obligation(
                obligation_id,
                expected_version=obligation.version,
                reference=reference,
                payment_method=payment_method,
                submission_note=note,
                evidence_blob_id=evidence_blob_id,
                claimed_amount=claimed,
                submitted_at=datetime.now(UTC),
                awaiting_validation=True,
                rejection_reason=None,
            )
            self.db.record_event(
                obligation_id,
                ObligationEventKind.SUBMITTED,
                resident_id,
                {"claimed_amount": claimed, "reference": reference, "payment_method": payment_method},
            )

        logger.info("Evidence for obligation %s submitted (claimed %s)", obligation_id, claimed)
        self._notify_admins(updated, f"Payment evidence of Bs {claimed} submitted for '{updated.concept}'")
        return updated

    def _notify_admins(self, obligation: Obligation, message: str) -> None:
        if self.notifier is None:
            return
        debtor = self.db.get_resident(obligation.debtor_id)
        condominium_id = debtor.condominium_id if debtor else None
        for admin in self.db.list_residents(role=Role.ADMIN):
            if admin.condominium_id in (None, condominium_id):
                notify_safely(self.notifier, admin.id, EVIDENCE_SUBMITTED, message)

    def reopen(self, obligation_id: int, actor_id: int) -> Obligation:
        """Make a rejected obligation accept evidence again.

        Raises:
            ConflictError: If the obligation is not rejected
            PermissionDenied: If the actor is neither the debtor nor an admin
        """
        with self.db.transaction():
            obligation = self.require_obligation(obligation_id)
            actor = require_resident(self.db, actor_id)
            if actor.id != obligation.debtor_id and not actor.is_admin:
                raise PermissionDenied(f"Resident {actor_id} cannot reopen obligation {obligation_id}")
            if obligation.is_cancelled:
                raise AlreadyFinalized(already_finalized(obligation_id, "cancelled"))
            if obligation.status != ObligationStatus.REJECTED:
                raise ConflictError(
                    f"Only rejected obligations can be reopened; obligation {obligation_id} "
                    f"is {obligation.status.value}"
                )
            status = derive_status(obligation.amount, obligation.paid_amount, obligation.due_date, date.today())
            updated = self.db.update_obligation(
                obligation_id,
                expected_version=obligation.version,
                status=status,
                rejection_reason=None,
                **_SUBMISSION_RESET,
            )
            self.db.record_event(
                obligation_id,
                ObligationEventKind.REOPENED,
                actor_id,
                {"previous_reason": obligation.rejection_reason},
            )
        return updated

    def update_obligation(
        self,
        obligation_id: int,
        actor_id: int,
        concept: Optional[str] = None,
        amount: Optional[Decimal] = None,
        obligation_type: Optional[ObligationType] = None,
        due_date: Optional[date] = None,
    ) -> Obligation:
        """Edit an obligation that has not received any money yet.

        Self-reported obligations may be edited by their debtor; anything
        may be edited by an administrator. Group membership never changes.

        Raises:
            AlreadyFinalized: If the obligation is closed
            AlreadySubmitted: If evidence awaits validation
            ConflictError: If money was already applied
            DuplicateConcept: If the new concept clashes
        """
        with self.db.transaction():
            obligation = self.require_obligation(obligation_id)
            actor = require_resident(self.db, actor_id)
            is_owner = actor.id == obligation.debtor_id and obligation.origin == ObligationOrigin.SELF_REPORTED
            if not (actor.is_admin or is_owner):
                raise PermissionDenied(f"Resident {actor_id} cannot edit obligation {obligation_id}")
            if obligation.is_terminal:
                status = "cancelled" if obligation.is_cancelled else obligation.status.value
                raise AlreadyFinalized(already_finalized(obligation_id, status))
            if obligation.awaiting_validation:
                raise AlreadySubmitted(f"Obligation {obligation_id} has evidence awaiting validation")
            if obligation.paid_amount > 0:
                raise ConflictError(f"Obligation {obligation_id} already received payments and cannot be edited")

            changes = {}
            if concept is not None and concept.strip() != obligation.concept:
                concept = concept.strip()
                if not concept:
                    raise ValidationError("Concept must not be empty")
                existing = self.db.find_unresolved_by_concept(obligation.debtor_id, concept)
                if existing is not None and existing.id != obligation_id:
                    raise DuplicateConcept(duplicate_concept(obligation.debtor_id, concept, existing.id))
                changes["concept"] = concept
            if amount is not None:
                amount = to_money(amount)
                if amount <= 0:
                    raise ValidationError(invalid_amount("Amount", amount))
                if amount != obligation.amount:
                    changes["amount"] = amount
            if obligation_type is not None and obligation_type != obligation.obligation_type:
                changes["obligation_type"] = obligation_type
            if due_date is not None and due_date != obligation.due_date:
                changes["due_date"] = due_date
            if not changes:
                return obligation

            changes["status"] = derive_status(
                changes.get("amount", obligation.amount),
                obligation.paid_amount,
                changes.get("due_date", obligation.due_date),
                date.today(),
            )
            updated = self.db.update_obligation(obligation_id, expected_version=obligation.version, **changes)
            self.db.record_event(
                obligation_id,
                ObligationEventKind.EDITED,
                actor_id,
                {k: [getattr(obligation, k), v] for k, v in changes.items() if k != "status"},
            )
        return updated

    def cancel(self, obligation_id: int, admin_id: int, reason: str) -> Obligation:
        """Soft-delete an obligation that has not received any money.

        Raises:
            PermissionDenied: If the actor is not an administrator
            ValidationError: If reason is empty
            AlreadyFinalized: If already paid or cancelled
            AlreadySubmitted: If evidence awaits validation
            ConflictError: If money was already applied
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A cancellation reason is required")
        with self.db.transaction():
            require_administrator(self.db, admin_id)
            obligation = self.require_obligation(obligation_id)
            if obligation.is_cancelled or obligation.status == ObligationStatus.PAID:
                status = "cancelled" if obligation.is_cancelled else obligation.status.value
                raise AlreadyFinalized(already_finalized(obligation_id, status))
            if obligation.awaiting_validation:
                raise AlreadySubmitted(
                    f"Obligation {obligation_id} has evidence awaiting validation; validate or reject it first"
                )
            if obligation.paid_amount > 0:
                raise ConflictError(f"Obligation {obligation_id} already received payments and cannot be cancelled")
            updated = self.db.update_obligation(
                obligation_id,
                expected_version=obligation.version,
                settlement_reason=SettlementReason.CANCELLED,
                cancellation_note=reason,
            )
            self.db.record_event(obligation_id, ObligationEventKind.CANCELLED, admin_id, {"reason": reason})
        logger.info("Obligation %s cancelled by %s", obligation_id, admin_id)
        return updated

    def mark_overdue(self, today: Optional[date] = None) -> list[int]:
        """Flag pending obligations past their due date.

        Returns:
            IDs of obligations that became overdue
        """
        today = today or date.today()
        marked = []
        with self.db.transaction():
            for obligation in self.db.list_overdue_candidates(today):
                status = derive_status(obligation.amount, obligation.paid_amount, obligation.due_date, today)
                if status != ObligationStatus.OVERDUE:
                    continue
                self.db.update_obligation(obligation.id, expected_version=obligation.version, status=status)
                self.db.record_event(
                    obligation.id, ObligationEventKind.OVERDUE, None, {"due_date": obligation.due_date}
                )
                marked.append(obligation.id)
        if marked:
            logger.info("Marked %d obligations overdue", len(marked))
        return marked

    def account_statement(self, resident_id: int) -> AccountStatement:
        """Summarize a resident's obligations and credit."""
        require_resident(self.db, resident_id)
        obligations = self.db.list_obligations(debtor_id=resident_id)
        superseded = {o.parent_obligation_id for o in obligations if o.parent_obligation_id is not None}
        open_obligations = [o for o in obligations if o.is_open and o.id not in superseded]
        return AccountStatement(
            resident_id=resident_id,
            total_outstanding=sum((o.remaining for o in open_obligations), ZERO),
            total_paid=sum((o.paid_amount for o in obligations), ZERO),
            open_count=len(open_obligations),
            paid_count=sum(1 for o in obligations if o.status == ObligationStatus.PAID),
            available_credit=CreditLedgerService(self.db).available_credit(resident_id),
        )

    def history(self, obligation_id: int) -> list[ObligationEvent]:
        """Event log of an obligation, oldest first."""
        self.require_obligation(obligation_id)
        return self.db.list_events(obligation_id)

    def display_amount(self, obligation: Obligation) -> Decimal:
        """Local amount to show, converting USD-only obligations."""
        if obligation.amount > 0 or obligation.amount_usd is None or self.rate_resolver is None:
            return obligation.amount
        return display_amount(obligation, self.rate_resolver.current_rate())
