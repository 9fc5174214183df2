"""Distributed goal tracking for fixed expenses shared by many residents."""

import logging
import uuid
from datetime import date
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Optional

from condopay.database.base import Database
from condopay.domain.access import require_administrator, require_resident
from condopay.domain.entities import (
    BulkCreationResult,
    GroupProgress,
    ObligationOrigin,
    ObligationStatus,
    ObligationType,
)
from condopay.domain.errors import (
    DomainError,
    DuplicateConcept,
    MissingUnitAssociation,
    NotFoundError,
    condominium_not_found,
    group_not_found,
    missing_unit,
)
from condopay.domain.obligation import ObligationService
from condopay.utils.amount_parser import CENT, ZERO, to_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def split_evenly(total: Decimal, parts: int) -> list[Decimal]:
    """Split ``total`` into ``parts`` cent-exact shares summing to ``total``.

    Every share is rounded down; the last one absorbs the difference.
    """
    if parts <= 0:
        raise ValueError("parts must be positive")
    base = (total / parts).quantize(CENT, rounding=ROUND_DOWN)
    shares = [base] * (parts - 1)
    shares.append(total - base * (parts - 1))
    return shares


class DistributedGoalService:
    """Aggregates obligations sharing a group into one collection goal."""

    def __init__(self, db: Database, obligations: Optional[ObligationService] = None):
        """Initialize distributed goal service.

        Args:
            db: Database instance
            obligations: Service used to create member obligations
        """
        self.db = db
        self.obligations = obligations or ObligationService(db)

    def group_progress(self, group_id: str) -> GroupProgress:
        """Compute collection progress of a group.

        ``collected`` sums money actually credited across the members, so
        uneven shares are weighted by amount rather than by head count.

        Raises:
            NotFoundError: If no obligation belongs to the group
        """
        members = self.db.list_obligations(group_id=group_id)
        if not members:
            raise NotFoundError(group_not_found(group_id))

        target = members[0].group_target_amount
        collected = sum((m.paid_amount for m in members), ZERO)
        if target and target > 0:
            percentage = min(HUNDRED, collected / target * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
        else:
            percentage = ZERO

        superseded = {m.parent_obligation_id for m in members if m.parent_obligation_id is not None}
        by_debtor: dict[int, list] = {}
        for member in members:
            if member.id in superseded:
                continue
            by_debtor.setdefault(member.debtor_id, []).append(member)
        participants_paid = sum(
            1 for owned in by_debtor.values() if all(m.status == ObligationStatus.PAID for m in owned)
        )

        return GroupProgress(
            group_id=group_id,
            target=target,
            collected=to_money(collected),
            percentage=percentage,
            participants_paid=participants_paid,
            participants_total=len({m.debtor_id for m in members}),
        )

    def create_distributed_expense(
        self,
        admin_id: int,
        concept: str,
        total: Decimal,
        due_date: Optional[date] = None,
        obligation_type: ObligationType = ObligationType.EXTRAORDINARY_FEE,
        condominium_id: Optional[int] = None,
        total_usd: Optional[Decimal] = None,
    ) -> BulkCreationResult:
        """Split a fixed expense across the active residents of a scope.

        The target is fixed here and never recomputed. Residents without a
        unit fail and residents already owing the concept are skipped; both
        are left out of the split.

        Returns:
            Bulk result carrying the new group ID (None if nobody was eligible)
        """
        require_administrator(self.db, admin_id)
        total = self.obligations.resolve_local_amount(
            to_money(total), to_money(total_usd) if total_usd is not None else None
        )
        concept = concept.strip()

        if condominium_id is not None:
            if self.db.get_condominium(condominium_id) is None:
                raise NotFoundError(condominium_not_found(condominium_id))
            condominium_ids = [condominium_id]
        else:
            condominium_ids = [c.id for c in self.db.list_condominiums()]

        result = BulkCreationResult()
        eligible = []
        for condo_id in condominium_ids:
            scope = result.scope(condo_id)
            for resident in self.db.list_residents(condominium_id=condo_id):
                if resident.unit_id is None:
                    scope.failed += 1
                    scope.details.append(f"failed {resident.name}: {missing_unit(resident.id)}")
                    continue
                existing = self.db.find_unresolved_by_concept(resident.id, concept)
                if existing is not None:
                    scope.skipped += 1
                    scope.details.append(f"skipped {resident.name}: already owes obligation {existing.id}")
                    continue
                eligible.append((condo_id, resident))

        if eligible:
            group_id = f"grp-{uuid.uuid4().hex[:12]}"
            result.group_id = group_id
            for (condo_id, resident), share in zip(eligible, split_evenly(total, len(eligible))):
                scope = result.scope(condo_id)
                try:
                    obligation_id = self.obligations.create_obligation(
                        debtor_id=resident.id,
                        concept=concept,
                        amount=share,
                        due_date=due_date,
                        obligation_type=obligation_type,
                        origin=ObligationOrigin.ASSIGNED,
                        group_id=group_id,
                        group_target_amount=total,
                        group_participant_count=len(eligible),
                        actor_id=admin_id,
                    )
                except DuplicateConcept as e:
                    scope.skipped += 1
                    scope.details.append(f"skipped {resident.name}: {e}")
                    continue
                except DomainError as e:
                    scope.failed += 1
                    scope.details.append(f"failed {resident.name}: {e}")
                    logger.warning("Could not add resident %s to group %s: %s", resident.id, group_id, e)
                    continue
                scope.created += 1
                result.obligation_ids.append(obligation_id)

        result.created = sum(s.created for s in result.per_scope.values())
        result.skipped = sum(s.skipped for s in result.per_scope.values())
        result.failed = sum(s.failed for s in result.per_scope.values())
        logger.info(
            "Distributed expense '%s' (%s) over %d residents: created=%d skipped=%d failed=%d",
            concept,
            total,
            len(eligible),
            result.created,
            result.skipped,
            result.failed,
        )
        return result

    def add_participant(
        self, group_id: str, resident_id: int, amount: Decimal, admin_id: int
    ) -> int:
        """Add a member to an existing group without touching its target.

        Returns:
            The new obligation ID

        Raises:
            NotFoundError: If the group does not exist
            MissingUnitAssociation: If the resident has no unit
            DuplicateConcept: If the resident already owes the group's concept
        """
        require_administrator(self.db, admin_id)
        members = self.db.list_obligations(group_id=group_id, include_cancelled=True)
        if not members:
            raise NotFoundError(group_not_found(group_id))
        resident = require_resident(self.db, resident_id)
        if resident.unit_id is None:
            raise MissingUnitAssociation(missing_unit(resident_id))

        template = members[0]
        obligation_id = self.obligations.create_obligation(
            debtor_id=resident_id,
            concept=template.concept,
            amount=amount,
            due_date=template.due_date,
            obligation_type=template.obligation_type,
            origin=ObligationOrigin.ASSIGNED,
            group_id=group_id,
            group_target_amount=template.group_target_amount,
            group_participant_count=template.group_participant_count,
            actor_id=admin_id,
        )
        logger.info("Added resident %s to group %s", resident_id, group_id)
        return obligation_id
