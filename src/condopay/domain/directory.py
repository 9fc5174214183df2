"""Directory domain service (condominiums, units and residents)."""

from typing import Optional

from condopay.database.base import Database
from condopay.domain.access import require_resident
from condopay.domain.entities import Condominium, Resident, Role, Unit
from condopay.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    condominium_not_found,
)


class DirectoryService:
    """Service for managing condominiums, units and residents."""

    def __init__(self, db: Database):
        """Initialize directory service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_condominium(self, name: str) -> int:
        """Create a new condominium.

        Raises:
            ValidationError: If name is empty
            ConflictError: If a condominium with the same name exists
        """
        name = name.strip()
        if not name:
            raise ValidationError("Condominium name must not be empty")
        for condo in self.db.list_condominiums():
            if condo.name == name:
                raise ConflictError(f"Condominium with name '{name}' already exists")
        return self.db.create_condominium(name=name)

    def list_condominiums(self) -> list[Condominium]:
        return self.db.list_condominiums()

    def create_unit(self, condominium_id: int, label: str) -> int:
        """Create a unit inside a condominium.

        Raises:
            NotFoundError: If the condominium does not exist
        """
        if self.db.get_condominium(condominium_id) is None:
            raise NotFoundError(condominium_not_found(condominium_id))
        label = label.strip()
        if not label:
            raise ValidationError("Unit label must not be empty")
        return self.db.create_unit(condominium_id=condominium_id, label=label)

    def get_unit(self, unit_id: int) -> Optional[Unit]:
        return self.db.get_unit(unit_id)

    def create_resident(
        self,
        name: str,
        condominium_id: Optional[int] = None,
        unit_id: Optional[int] = None,
        role: Role = Role.RESIDENT,
    ) -> int:
        """Register a resident or administrator.

        A unit, when given, must belong to the resident's condominium; the
        condominium is taken from the unit if omitted.

        Raises:
            NotFoundError: If the condominium or unit does not exist
            ValidationError: If the unit belongs to another condominium
        """
        if not name.strip():
            raise ValidationError("Resident name must not be empty")
        if unit_id is not None:
            unit = self._require_unit(unit_id)
            if condominium_id is None:
                condominium_id = unit.condominium_id
            elif unit.condominium_id != condominium_id:
                raise ValidationError(
                    f"Unit {unit_id} belongs to condominium {unit.condominium_id}, not {condominium_id}"
                )
        if condominium_id is not None and self.db.get_condominium(condominium_id) is None:
            raise NotFoundError(condominium_not_found(condominium_id))
        return self.db.create_resident(
            name=name.strip(), condominium_id=condominium_id, unit_id=unit_id, role=role
        )

    def get_resident(self, resident_id: int) -> Optional[Resident]:
        return self.db.get_resident(resident_id)

    def list_residents(
        self, condominium_id: Optional[int] = None, role: Optional[Role] = Role.RESIDENT
    ) -> list[Resident]:
        """List active residents, optionally limited to one condominium."""
        return self.db.list_residents(condominium_id=condominium_id, role=role)

    def assign_unit(self, resident_id: int, unit_id: int) -> None:
        """Associate a resident with a unit (and its condominium)."""
        require_resident(self.db, resident_id)
        unit = self._require_unit(unit_id)
        self.db.update_resident(resident_id, unit_id=unit.id, condominium_id=unit.condominium_id)

    def set_active(self, resident_id: int, active: bool) -> None:
        """Activate or deactivate a resident."""
        require_resident(self.db, resident_id)
        self.db.update_resident(resident_id, active=active)

    def _require_unit(self, unit_id: int) -> Unit:
        unit = self.db.get_unit(unit_id)
        if unit is None:
            raise NotFoundError(f"Unit {unit_id} not found")
        return unit
