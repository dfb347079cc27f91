"""
Ciclo de vida de las instancias de clase.

    scheduled --start--> ongoing --complete--> completed
        |
        +--cancel--> cancelled

completed y cancelled son estados finales.
"""
from typing import Any, Dict, List, Optional
from datetime import date
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.schedule import ClassInstance, ClassInstanceStatus
from app.repositories.async_schedule import async_class_instance_repository
from app.services.exceptions import (
    InstanceNotFoundError,
    InstanceSetState,
    InvalidTransitionError,
    SchedulePersistenceError,
    ScheduleValidationError,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ClassInstanceStatus.SCHEDULED: {ClassInstanceStatus.ONGOING, ClassInstanceStatus.CANCELLED},
    ClassInstanceStatus.ONGOING: {ClassInstanceStatus.COMPLETED},
    ClassInstanceStatus.COMPLETED: set(),
    ClassInstanceStatus.CANCELLED: set(),
}


class InstanceLifecycleService:
    """Transiciones de estado con compare-and-set sobre la columna `status`."""

    async def _get_or_404(self, db: AsyncSession, instance_id: int) -> ClassInstance:
        instance = await async_class_instance_repository.get_current(db, instance_id=instance_id)
        if not instance:
            raise InstanceNotFoundError(f"Instancia {instance_id} no encontrada")
        return instance

    async def get_instance(self, db: AsyncSession, instance_id: int) -> ClassInstance:
        return await self._get_or_404(db, instance_id)

    async def get_instances(
        self,
        db: AsyncSession,
        *,
        start_date: date,
        end_date: date,
        status: Optional[ClassInstanceStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[ClassInstance]:
        """Instancias de todos los templates entre dos fechas, ambas incluidas."""
        if end_date < start_date:
            raise ScheduleValidationError("La fecha final no puede ser anterior a la inicial")
        return await async_class_instance_repository.get_by_date_range(
            db, start_date=start_date, end_date=end_date, status=status, skip=skip, limit=limit
        )

    async def _transition(
        self,
        db: AsyncSession,
        instance_id: int,
        target: ClassInstanceStatus,
        extra_values: Optional[Dict[str, Any]] = None
    ) -> ClassInstance:
        instance = await self._get_or_404(db, instance_id)
        current = instance.status
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(instance_id, current.value, target.value)

        try:
            applied = await async_class_instance_repository.transition_status(
                db,
                instance_id=instance_id,
                from_status=current,
                to_status=target,
                extra_values=extra_values
            )
            if not applied:
                # Otra petición cambió o borró la instancia entre la lectura y el UPDATE
                latest = await self._get_or_404(db, instance_id)
                raise InvalidTransitionError(instance_id, latest.status.value, target.value)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error cambiando el estado de la instancia {instance_id}: {e}", exc_info=True)
            raise SchedulePersistenceError(
                "No se pudo cambiar el estado de la instancia", InstanceSetState.PREVIOUS
            ) from e

        await db.refresh(instance)
        logger.info(f"Instancia {instance_id}: {current.value} -> {target.value}")
        return instance

    async def start(self, db: AsyncSession, instance_id: int) -> ClassInstance:
        return await self._transition(db, instance_id, ClassInstanceStatus.ONGOING)

    async def complete(
        self,
        db: AsyncSession,
        instance_id: int,
        actual_duration: Optional[int] = None
    ) -> ClassInstance:
        """Marcar la clase como terminada, con la duración real si se conoce."""
        extra = {"actual_duration_minutes": actual_duration} if actual_duration is not None else None
        return await self._transition(db, instance_id, ClassInstanceStatus.COMPLETED, extra)

    async def cancel(
        self,
        db: AsyncSession,
        instance_id: int,
        reason: Optional[str] = None
    ) -> ClassInstance:
        return await self._transition(
            db, instance_id, ClassInstanceStatus.CANCELLED, {"cancellation_reason": reason}
        )


instance_lifecycle_service = InstanceLifecycleService()
