"""
AsyncScheduleRepositories - Repositorios async del motor de programación de clases.

- AsyncScheduleTemplateRepository - Templates reutilizables (únicos o recurrentes)
- AsyncClassInstanceRepository - Instancias reservables materializadas

Ningún método hace commit: el servicio decide dónde empieza y termina
cada transacción.
"""
from typing import List, Optional, Sequence, Any, Dict
from datetime import date
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select, update

from app.repositories.async_base import AsyncBaseRepository
from app.models.schedule import (
    ScheduleTemplate,
    ClassInstance,
    ClassInstanceStatus,
    utcnow,
)
from app.schemas.schedule import ClassScheduleCreate, ClassScheduleUpdate

logger = logging.getLogger(__name__)


class AsyncScheduleTemplateRepository(
    AsyncBaseRepository[ScheduleTemplate, ClassScheduleCreate, ClassScheduleUpdate]
):
    """
    Repositorio async para templates de clases.

    Métodos específicos:
    - get_schedules() - Listado con filtros de actividad e instructor
    - bump_version() - Check-and-increment del contador optimista
    """

    async def get_schedules(
        self,
        db: AsyncSession,
        *,
        active_only: bool = True,
        instructor_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[ScheduleTemplate]:
        """
        Obtener templates, los más recientes primero.

        Args:
            db: Sesión async de base de datos
            active_only: Excluir templates inactivos
            instructor_id: Solo los templates de este instructor
            skip: Registros a omitir
            limit: Máximo de registros
        """
        stmt = select(ScheduleTemplate)

        if active_only:
            stmt = stmt.where(ScheduleTemplate.is_active.is_(True))
        if instructor_id is not None:
            stmt = stmt.where(ScheduleTemplate.instructor_id == instructor_id)

        stmt = stmt.order_by(ScheduleTemplate.id.desc()).offset(skip).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def bump_version(
        self,
        db: AsyncSession,
        *,
        template_id: int,
        expected_version: int
    ) -> bool:
        """
        Incrementar la versión solo si sigue siendo `expected_version`.

        En PostgreSQL el UPDATE bloquea la fila hasta el fin de la
        transacción, así que dos regeneraciones del mismo template quedan
        serializadas: la segunda ve la versión nueva y no actualiza nada.

        Returns:
            True si se incrementó, False si otra escritura llegó antes
        """
        stmt = (
            update(ScheduleTemplate)
            .where(
                ScheduleTemplate.id == template_id,
                ScheduleTemplate.version == expected_version
            )
            .values(version=expected_version + 1, updated_at=utcnow())
        )
        result = await db.execute(stmt)
        return result.rowcount == 1


class AsyncClassInstanceRepository(
    AsyncBaseRepository[ClassInstance, ClassScheduleCreate, ClassScheduleUpdate]
):
    """
    Repositorio async para instancias de clase.

    Métodos específicos:
    - get_by_template() - Instancias de un template ordenadas por fecha y hora
    - get_current() - Releer una instancia ignorando la identity map
    - get_by_date_range() - Instancias en un rango de fechas
    - add_in_batches() - Inserción en lotes acotados
    - delete_by_template() / delete_by_ids() - Borrado masivo con conteo
    - transition_status() - Compare-and-set del estado
    """

    async def get_by_template(
        self,
        db: AsyncSession,
        *,
        template_id: int
    ) -> List[ClassInstance]:
        stmt = (
            select(ClassInstance)
            .where(ClassInstance.schedule_template_id == template_id)
            .order_by(ClassInstance.date, ClassInstance.start_time)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_current(self, db: AsyncSession, *, instance_id: int) -> Optional[ClassInstance]:
        """Leer la fila tal y como está en la base de datos, refrescando el objeto en sesión."""
        stmt = (
            select(ClassInstance)
            .where(ClassInstance.id == instance_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_date_range(
        self,
        db: AsyncSession,
        *,
        start_date: date,
        end_date: date,
        status: Optional[ClassInstanceStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[ClassInstance]:
        """
        Obtener instancias en un rango de fechas (ambos extremos incluidos).

        Returns:
            Lista de instancias ordenadas por fecha y hora de inicio
        """
        stmt = select(ClassInstance).where(
            ClassInstance.date >= start_date,
            ClassInstance.date <= end_date
        )

        if status is not None:
            stmt = stmt.where(ClassInstance.status == status)

        stmt = stmt.order_by(ClassInstance.date, ClassInstance.start_time).offset(skip).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def add_in_batches(
        self,
        db: AsyncSession,
        *,
        instances: Sequence[ClassInstance],
        batch_size: int
    ) -> List[ClassInstance]:
        """
        Añadir instancias en lotes de como mucho `batch_size`.

        Cada lote se envía con un flush; si uno falla la excepción se
        propaga y el caller hace rollback de la transacción completa.
        """
        written: List[ClassInstance] = []
        for start in range(0, len(instances), batch_size):
            chunk = list(instances[start:start + batch_size])
            db.add_all(chunk)
            await db.flush()
            written.extend(chunk)
            logger.debug(
                f"Lote de {len(chunk)} instancias escrito "
                f"({len(written)}/{len(instances)})"
            )
        return written

    async def delete_by_template(self, db: AsyncSession, *, template_id: int) -> int:
        """Eliminar todas las instancias de un template. Devuelve cuántas se borraron."""
        stmt = delete(ClassInstance).where(ClassInstance.schedule_template_id == template_id)
        result = await db.execute(stmt)
        return result.rowcount or 0

    async def delete_by_ids(self, db: AsyncSession, *, instance_ids: Sequence[int]) -> int:
        if not instance_ids:
            return 0
        stmt = delete(ClassInstance).where(ClassInstance.id.in_(list(instance_ids)))
        result = await db.execute(stmt)
        return result.rowcount or 0

    async def transition_status(
        self,
        db: AsyncSession,
        *,
        instance_id: int,
        from_status: ClassInstanceStatus,
        to_status: ClassInstanceStatus,
        extra_values: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Cambiar el estado solo si la instancia sigue existiendo y en `from_status`.

        Returns:
            True si se aplicó la transición, False si la fila no existe
            o su estado ya no es el esperado
        """
        values = {"status": to_status, "updated_at": utcnow()}
        if extra_values:
            values.update(extra_values)

        stmt = (
            update(ClassInstance)
            .where(
                ClassInstance.id == instance_id,
                ClassInstance.status == from_status
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1


# Instancias singleton de los repositorios async
async_schedule_template_repository = AsyncScheduleTemplateRepository(ScheduleTemplate)
async_class_instance_repository = AsyncClassInstanceRepository(ClassInstance)
