"""Shared domain error messages and error types."""

from decimal import Decimal
from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class PermissionDenied(DomainError):
    """Actor is not allowed to perform the operation."""


class DuplicateConcept(ConflictError):
    """Debtor already has an unresolved obligation with the same concept."""


class AlreadyFinalized(ConflictError):
    """Obligation no longer accepts evidence or changes."""


class AlreadySubmitted(ConflictError):
    """Evidence is already awaiting validation."""


class MissingUnitAssociation(ValidationError):
    """Resident has no unit; obligations cannot be created for them."""


class InvalidRejection(ValidationError):
    """Rejection without a human-readable reason."""


class NoPendingEvidence(ValidationError):
    """Approval requested but no evidence awaits validation."""


class ConcurrentModification(ConflictError):
    """A row changed underneath the current transaction."""


class RateUnavailable(DomainError):
    """A live exchange-rate source could not produce a usable rate.

    Only raised between the rate sources and the resolver; callers of the
    resolver never see it.
    """


def obligation_not_found(obligation_id: int) -> str:
    """Return message for missing obligation."""
    return f"Obligation {obligation_id} not found"


def resident_not_found(resident_id: int) -> str:
    """Return message for missing resident."""
    return f"Resident {resident_id} not found"


def condominium_not_found(condominium_id: int) -> str:
    """Return message for missing condominium."""
    return f"Condominium {condominium_id} not found"


def group_not_found(group_id: str) -> str:
    """Return message for missing distributed group."""
    return f"Distributed group '{group_id}' not found"


def duplicate_concept(debtor_id: int, concept: str, existing_id: Optional[int] = None) -> str:
    """Return message for duplicate unresolved concept."""
    if existing_id is None:
        return f"Resident {debtor_id} already has an unresolved obligation for '{concept}'"
    return (
        f"Resident {debtor_id} already has unresolved obligation {existing_id} "
        f"for '{concept}'"
    )


def missing_unit(resident_id: int) -> str:
    """Return message for resident without unit."""
    return (
        f"Resident {resident_id} has no unit assigned; "
        "an administrator must assign one before creating obligations"
    )


def already_finalized(obligation_id: int, status: str) -> str:
    """Return message for terminal obligations."""
    return f"Obligation {obligation_id} is {status} and no longer accepts evidence"


def superseded_by_remainder(obligation_id: int, remainder_id: int) -> str:
    """Return message for originals that were split into a remainder."""
    return (
        f"Obligation {obligation_id} was split; submit evidence against "
        f"remainder obligation {remainder_id}"
    )


def invalid_amount(field: str, value: Decimal) -> str:
    """Return message for non-positive amounts."""
    return f"{field} must be greater than zero (got {value})"
