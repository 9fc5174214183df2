"""Obligation status derivation.

Every code path that changes amounts or review state computes the persisted
status through :func:`derive_status`; nothing compares ``paid_amount`` to
``amount`` on its own.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from condopay.domain.entities import ObligationStatus


def derive_status(
    amount: Decimal,
    paid_amount: Decimal,
    due_date: Optional[date] = None,
    today: Optional[date] = None,
    rejected: bool = False,
) -> ObligationStatus:
    """Compute the status of an obligation from its money and review facts.

    Args:
        amount: Amount owed
        paid_amount: Amount credited so far
        due_date: Optional due date
        today: Reference date for the overdue check (skipped when None)
        rejected: True when the last submitted evidence was rejected

    Returns:
        The status to persist
    """
    if paid_amount >= amount:
        return ObligationStatus.PAID
    if rejected:
        return ObligationStatus.REJECTED
    if paid_amount > 0:
        return ObligationStatus.PARTIALLY_PAID
    if due_date is not None and today is not None and due_date < today:
        return ObligationStatus.OVERDUE
    return ObligationStatus.PENDING
