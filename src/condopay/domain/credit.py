"""Credit ledger (abono) domain service.

Credit is the sum of a resident's unconsumed ledger entries. Entries are
append-only: consuming part of an entry marks the whole entry consumed and
appends a new entry holding the leftover.
"""

import logging
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional

from condopay.database.base import Database
from condopay.domain.entities import (
    CreditEntry,
    Obligation,
    ObligationEventKind,
    ObligationStatus,
    SettlementReason,
)
from condopay.domain.errors import (
    AlreadyFinalized,
    AlreadySubmitted,
    NotFoundError,
    ValidationError,
    already_finalized,
    invalid_amount,
    obligation_not_found,
    superseded_by_remainder,
)
from condopay.domain.status import derive_status
from condopay.utils.amount_parser import ZERO, to_money

logger = logging.getLogger(__name__)


def _credit_order(obligation: Obligation):
    # Oldest due date first, undated last, ties by creation
    return (obligation.due_date is None, obligation.due_date or date.max, obligation.created_at, obligation.id)


class CreditLedgerService:
    """Service for recording and consuming carried-forward credit."""

    def __init__(self, db: Database):
        """Initialize credit ledger service.

        Args:
            db: Database instance
        """
        self.db = db

    def available_credit(self, resident_id: int) -> Decimal:
        """Sum of the resident's unconsumed credit. Never negative."""
        entries = self.db.list_credit_entries(resident_id, unconsumed_only=True)
        total = sum((e.amount for e in entries), ZERO)
        return max(to_money(total), ZERO)

    def entries(self, resident_id: int) -> list[CreditEntry]:
        """Full ledger of a resident, oldest first."""
        return self.db.list_credit_entries(resident_id)

    def record_excess(self, resident_id: int, amount: Decimal, source_obligation_id: Optional[int]) -> int:
        """Append an unconsumed credit entry.

        Returns:
            Ledger entry ID

        Raises:
            ValidationError: If amount is not positive
        """
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError(invalid_amount("Excess amount", amount))
        entry_id = self.db.add_credit_entry(
            resident_id=resident_id, amount=amount, source_obligation_id=source_obligation_id
        )
        logger.info(
            "Recorded credit %s for resident %s from obligation %s", amount, resident_id, source_obligation_id
        )
        return entry_id

    def apply_credit(
        self,
        resident_id: int,
        target_obligation_id: int,
        amount: Optional[Decimal] = None,
        actor_id: Optional[int] = None,
    ) -> Decimal:
        """Apply available credit to one obligation.

        Args:
            resident_id: Owner of the credit (must be the obligation's debtor)
            target_obligation_id: Obligation to pay down
            amount: Upper bound to apply; all available credit when None
            actor_id: Who triggered the application, for history

        Returns:
            Amount actually applied, possibly less than requested

        Raises:
            NotFoundError: If the obligation does not exist
            ValidationError: If the obligation belongs to someone else or
                amount is not positive
            AlreadyFinalized: If the obligation is closed
            AlreadySubmitted: If evidence awaits validation
        """
        if amount is not None:
            amount = to_money(amount)
            if amount <= 0:
                raise ValidationError(invalid_amount("Credit amount", amount))

        with self.db.transaction():
            target = self.db.get_obligation(target_obligation_id)
            if target is None:
                raise NotFoundError(obligation_not_found(target_obligation_id))
            if target.debtor_id != resident_id:
                raise ValidationError(
                    f"Obligation {target_obligation_id} does not belong to resident {resident_id}"
                )
            self._check_accepts_credit(target)
            limit = target.remaining if amount is None else amount
            applied, _ = self.consume_for(target, limit, actor_id)
        return applied

    def apply_available_credit(self, resident_id: int, actor_id: Optional[int] = None) -> dict[int, Decimal]:
        """Spread all available credit over the resident's open obligations.

        Returns:
            Applied amount per obligation ID (only obligations that received credit)
        """
        applied_by_obligation: dict[int, Decimal] = {}
        with self.db.transaction():
            candidates = [
                o
                for o in self.db.list_obligations(debtor_id=resident_id)
                if o.is_open and not o.awaiting_validation and self.db.get_remainder_of(o.id) is None
            ]
            for candidate in sorted(candidates, key=_credit_order):
                target = self.db.get_obligation(candidate.id)
                applied, _ = self.consume_for(target, target.remaining, actor_id)
                if applied == 0:
                    break
                applied_by_obligation[target.id] = applied
        return applied_by_obligation

    def consume_for(
        self, target: Obligation, limit: Decimal, actor_id: Optional[int]
    ) -> tuple[Decimal, Obligation]:
        """Consume the debtor's oldest entries into ``target``.

        Must run inside a transaction. The applied amount is capped by
        ``limit``, the available credit and the target's remaining balance.

        Returns:
            ``(applied, updated_obligation)``
        """
        wanted = min(to_money(limit), target.remaining)
        if wanted <= 0:
            return ZERO, target

        applied = ZERO
        consumed_ids = []
        for entry in self.db.list_credit_entries(target.debtor_id, unconsumed_only=True):
            if applied >= wanted:
                break
            take = min(entry.amount, wanted - applied)
            self.db.consume_credit_entry(entry.id, target.id)
            leftover = entry.amount - take
            if leftover > 0:
                self.db.add_credit_entry(
                    resident_id=target.debtor_id,
                    amount=leftover,
                    source_obligation_id=entry.source_obligation_id,
                    split_from_entry_id=entry.id,
                )
            applied += take
            consumed_ids.append(entry.id)

        if applied == 0:
            return ZERO, target

        new_paid = target.paid_amount + applied
        status = derive_status(target.amount, new_paid, target.due_date, date.today())
        changes = {"paid_amount": new_paid, "status": status}
        if status == ObligationStatus.PAID:
            changes["paid_at"] = datetime.now(UTC)
            changes["settlement_reason"] = SettlementReason.CARRIED_CREDIT
        updated = self.db.update_obligation(target.id, expected_version=target.version, **changes)
        self.db.record_event(
            target.id,
            ObligationEventKind.CREDIT_APPLIED,
            actor_id,
            {"amount": applied, "entry_ids": consumed_ids, "paid_amount": new_paid},
        )
        logger.info("Applied credit %s to obligation %s (status %s)", applied, target.id, status.value)
        return applied, updated

    def _check_accepts_credit(self, target: Obligation) -> None:
        if not target.is_open:
            status = "cancelled" if target.is_cancelled else target.status.value
            raise AlreadyFinalized(already_finalized(target.id, status))
        remainder = self.db.get_remainder_of(target.id)
        if remainder is not None:
            raise AlreadyFinalized(superseded_by_remainder(target.id, remainder.id))
        if target.awaiting_validation:
            raise AlreadySubmitted(
                f"Obligation {target.id} has evidence awaiting validation; "
                "request credit in the validation decision instead"
            )
