from typing import Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.staff import Staff, INSTRUCTOR_ROLES
from app.repositories.async_staff import async_staff_repository
from app.services.exceptions import ScheduleValidationError

logger = logging.getLogger(__name__)

UNKNOWN_INSTRUCTOR = "Unknown Instructor"


class InstructorDirectory:
    """Búsqueda de instructores para validar templates y desnormalizar su nombre."""

    async def get_instructor(self, db: AsyncSession, instructor_id: int) -> Staff:
        """
        Obtener un instructor asignable a una clase.

        Raises:
            ScheduleValidationError: Si no existe, no está activo o no es entrenador
        """
        instructor = await async_staff_repository.get(db, id=instructor_id)
        if not instructor:
            raise ScheduleValidationError("Selected instructor not found")
        if not instructor.is_active:
            raise ScheduleValidationError("Selected instructor is not active")
        if instructor.role not in INSTRUCTOR_ROLES:
            raise ScheduleValidationError("Selected user is not a trainer")
        return instructor

    async def get_display_name(self, db: AsyncSession, instructor_id: int) -> str:
        """Nombre a copiar en las instancias; nunca falla por un instructor borrado."""
        full_name: Optional[str] = await async_staff_repository.get_full_name(db, staff_id=instructor_id)
        if not full_name:
            logger.warning(f"Instructor {instructor_id} sin nombre disponible, usando '{UNKNOWN_INSTRUCTOR}'")
            return UNKNOWN_INSTRUCTOR
        return full_name


instructor_directory = InstructorDirectory()
