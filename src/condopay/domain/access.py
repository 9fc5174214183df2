"""Role checks against the canonical resident record."""

from condopay.database.base import Database
from condopay.domain.entities import Resident
from condopay.domain.errors import NotFoundError, PermissionDenied, resident_not_found


def require_resident(db: Database, resident_id: int) -> Resident:
    """Load a resident or raise NotFoundError."""
    resident = db.get_resident(resident_id)
    if resident is None:
        raise NotFoundError(resident_not_found(resident_id))
    return resident


def require_administrator(db: Database, admin_id: int) -> Resident:
    """Re-read the actor and make sure they are an active administrator.

    Raises:
        PermissionDenied: If the actor is unknown, inactive or not an admin
    """
    admin = db.get_resident(admin_id)
    if admin is None or not admin.active or not admin.is_admin:
        raise PermissionDenied(f"Resident {admin_id} is not an active administrator")
    return admin
