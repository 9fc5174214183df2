"""Remainder generation for partially paid assigned obligations."""

import logging
from datetime import date
from typing import Optional

from condopay.database.base import Database
from condopay.domain.entities import (
    Obligation,
    ObligationEventKind,
    ObligationOrigin,
)
from condopay.domain.status import derive_status
from condopay.utils.amount_parser import ZERO

logger = logging.getLogger(__name__)


class RemainderGenerator:
    """Splits the unpaid balance of an obligation into a new obligation."""

    def __init__(self, db: Database):
        self.db = db

    def split_remainder(self, original: Obligation, actor_id: Optional[int] = None) -> Optional[Obligation]:
        """Create the follow-up obligation for ``original``'s unpaid balance.

        Only assigned obligations with ``0 < paid_amount < amount`` are split.
        Calling this again for an original that already has a remainder
        returns the existing one. Must run inside the caller's transaction
        so the split commits together with the payment that caused it.

        Returns:
            The remainder obligation, or None when no split applies
        """
        if original.origin != ObligationOrigin.ASSIGNED:
            return None
        if not (0 < original.paid_amount < original.amount):
            return None

        existing = self.db.get_remainder_of(original.id)
        if existing is not None:
            return existing

        remaining = original.amount - original.paid_amount
        remainder_id = self.db.create_obligation(
            debtor_id=original.debtor_id,
            unit_id=original.unit_id,
            concept=original.concept,
            obligation_type=original.obligation_type,
            origin=ObligationOrigin.ASSIGNED,
            amount=remaining,
            amount_usd=None,
            status=derive_status(remaining, ZERO, original.due_date, date.today()),
            due_date=original.due_date,
            group_id=original.group_id,
            group_target_amount=original.group_target_amount,
            group_participant_count=original.group_participant_count,
            parent_obligation_id=original.id,
            original_amount_reference=original.amount,
        )
        self.db.record_event(
            original.id,
            ObligationEventKind.REMAINDER_CREATED,
            actor_id,
            {"remainder_id": remainder_id, "amount": remaining},
        )
        self.db.record_event(
            remainder_id,
            ObligationEventKind.CREATED,
            actor_id,
            {"parent_obligation_id": original.id, "amount": remaining},
        )
        logger.info("Split remainder %s of %s from obligation %s", remainder_id, remaining, original.id)
        return self.db.get_obligation(remainder_id)
