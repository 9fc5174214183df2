"""Administrator validation of submitted payment evidence.

Approval applies the claimed amount capped at the remaining balance. Any
excess becomes credit, and a shortfall on an assigned obligation is split
into a remainder. Everything one validation writes commits together.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, UTC
from typing import Optional

from condopay.database.base import Database
from condopay.domain.access import require_administrator
from condopay.domain.credit import CreditLedgerService
from condopay.domain.entities import (
    Obligation,
    ObligationEventKind,
    ObligationStatus,
    SettlementReason,
)
from condopay.domain.errors import (
    AlreadyFinalized,
    ConcurrentModification,
    InvalidRejection,
    NoPendingEvidence,
    NotFoundError,
    already_finalized,
    obligation_not_found,
)
from condopay.domain.notifications import (
    PAYMENT_APPROVED,
    PAYMENT_REJECTED,
    NotificationSink,
    notify_safely,
)
from condopay.domain.remainder import RemainderGenerator
from condopay.domain.status import derive_status
from condopay.utils.amount_parser import ZERO

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"


@dataclass(frozen=True)
class Decision:
    """Outcome an administrator picks for submitted evidence."""

    action: str
    apply_credit: bool = False
    reason: Optional[str] = None

    @classmethod
    def approve(cls, apply_credit: bool = False) -> "Decision":
        return cls(action=APPROVE, apply_credit=apply_credit)

    @classmethod
    def reject(cls, reason: str) -> "Decision":
        return cls(action=REJECT, reason=reason)


class ValidationService:
    """Finalizes money movement for submitted evidence."""

    def __init__(
        self,
        db: Database,
        notifier: Optional[NotificationSink] = None,
        max_attempts: int = 3,
    ):
        """Initialize validation service.

        Args:
            db: Database instance
            notifier: Where the resident is told about the decision (optional)
            max_attempts: Times a validation is retried after a concurrent
                modification before giving up
        """
        self.db = db
        self.notifier = notifier
        self.max_attempts = max(1, max_attempts)
        self.credit = CreditLedgerService(db)
        self.remainders = RemainderGenerator(db)

    def validate(self, obligation_id: int, admin_id: int, decision: Decision) -> Obligation:
        """Approve or reject the evidence on an obligation.

        Args:
            obligation_id: Obligation under review
            admin_id: Reviewing administrator (re-verified on every attempt)
            decision: ``Decision.approve(...)`` or ``Decision.reject(reason)``

        Returns:
            The obligation after the decision

        Raises:
            PermissionDenied: If the actor is not an active administrator
            NotFoundError: If the obligation does not exist
            InvalidRejection: If a rejection has no reason
            AlreadyFinalized: If the obligation is closed
            NoPendingEvidence: If approval is requested without evidence
            ConcurrentModification: If every attempt hit a concurrent writer
        """
        if decision.action not in (APPROVE, REJECT):
            raise ValueError(f"Unknown decision '{decision.action}'")
        if decision.action == REJECT and not (decision.reason or "").strip():
            raise InvalidRejection("A rejection needs a reason the resident can act on")

        for attempt in range(1, self.max_attempts + 1):
            try:
                obligation, notice = self._validate_once(obligation_id, admin_id, decision)
                break
            except ConcurrentModification:
                if attempt == self.max_attempts:
                    raise
                logger.warning(
                    "Obligation %s changed during validation (attempt %d/%d); retrying",
                    obligation_id,
                    attempt,
                    self.max_attempts,
                )

        if notice is not None:
            kind, message = notice
            notify_safely(self.notifier, obligation.debtor_id, kind, message)
        return obligation

    def _validate_once(self, obligation_id: int, admin_id: int, decision: Decision):
        with self.db.transaction():
            require_administrator(self.db, admin_id)
            obligation = self.db.get_obligation(obligation_id)
            if obligation is None:
                raise NotFoundError(obligation_not_found(obligation_id))
            if decision.action == REJECT:
                return self._reject(obligation, admin_id, decision.reason.strip())
            return self._approve(obligation, admin_id, decision.apply_credit)

    def _reject(self, obligation: Obligation, admin_id: int, reason: str):
        if obligation.is_terminal:
            status = "cancelled" if obligation.is_cancelled else obligation.status.value
            raise AlreadyFinalized(already_finalized(obligation.id, status))
        if not obligation.awaiting_validation:
            raise NoPendingEvidence(f"Obligation {obligation.id} has no evidence awaiting validation")

        status = derive_status(obligation.amount, obligation.paid_amount, rejected=True)
        updated = self.db.update_obligation(
            obligation.id,
            expected_version=obligation.version,
            status=status,
            rejection_reason=reason,
            awaiting_validation=False,
            validated_by=admin_id,
            validated_at=datetime.now(UTC),
        )
        self.db.record_event(
            obligation.id,
            ObligationEventKind.REJECTED,
            admin_id,
            {"reason": reason, "claimed_amount": obligation.claimed_amount},
        )
        logger.info("Obligation %s rejected by %s", obligation.id, admin_id)
        return updated, (PAYMENT_REJECTED, f"Your payment for '{obligation.concept}' was rejected: {reason}")

    def _approve(self, obligation: Obligation, admin_id: int, apply_credit: bool):
        if obligation.status == ObligationStatus.PAID:
            logger.info("Obligation %s already paid; approval ignored", obligation.id)
            return obligation, None
        if obligation.is_terminal:
            status = "cancelled" if obligation.is_cancelled else obligation.status.value
            raise AlreadyFinalized(already_finalized(obligation.id, status))
        if not obligation.awaiting_validation or obligation.claimed_amount is None:
            raise NoPendingEvidence(f"Obligation {obligation.id} has no evidence awaiting validation")

        current = obligation
        credit_applied = ZERO
        if apply_credit:
            credit_applied, current = self.credit.consume_for(current, current.remaining, admin_id)

        claimed = obligation.claimed_amount
        remaining = current.remaining
        applied = min(claimed, remaining)
        excess = claimed - applied
        new_paid = current.paid_amount + applied
        status = derive_status(current.amount, new_paid, current.due_date, date.today())

        changes = {
            "paid_amount": new_paid,
            "status": status,
            "excess_amount": current.excess_amount + excess,
            "awaiting_validation": False,
            "validated_by": admin_id,
            "validated_at": datetime.now(UTC),
            "rejection_reason": None,
        }
        if status == ObligationStatus.PAID:
            changes["paid_at"] = datetime.now(UTC)
            if applied > 0 or current.settlement_reason is None:
                changes["settlement_reason"] = SettlementReason.EVIDENCE
        updated = self.db.update_obligation(obligation.id, expected_version=current.version, **changes)

        if excess > 0:
            self.credit.record_excess(obligation.debtor_id, excess, obligation.id)
        self.db.record_event(
            obligation.id,
            ObligationEventKind.APPROVED,
            admin_id,
            {
                "claimed_amount": claimed,
                "applied_amount": applied,
                "excess_amount": excess,
                "credit_applied": credit_applied,
            },
        )

        remainder = None
        if status == ObligationStatus.PARTIALLY_PAID:
            remainder = self.remainders.split_remainder(updated, admin_id)

        logger.info(
            "Obligation %s approved by %s: applied=%s excess=%s credit=%s status=%s",
            obligation.id,
            admin_id,
            applied,
            excess,
            credit_applied,
            status.value,
        )
        message = f"Your payment of Bs {claimed} for '{obligation.concept}' was approved"
        if excess > 0:
            message += f"; Bs {excess} was added to your credit"
        if remainder is not None:
            message += f"; Bs {remainder.amount} remains due as obligation {remainder.id}"
        return updated, (PAYMENT_APPROVED, message)
