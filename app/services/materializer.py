"""
Materialización de ocurrencias en instancias reservables.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import RegenerationStrategy, get_settings
from app.models.schedule import ClassInstance, ClassInstanceStatus
from app.repositories.async_schedule import async_class_instance_repository
from app.schemas.schedule import InstanceSnapshot, Occurrence, ScheduleDefinition

logger = logging.getLogger(__name__)


@dataclass
class RegenerationOutcome:
    deleted_count: int = 0
    created: List[ClassInstance] = field(default_factory=list)
    kept: List[ClassInstance] = field(default_factory=list)


def build_snapshot(definition: ScheduleDefinition, instructor_name: str) -> InstanceSnapshot:
    """Campos del template que quedan copiados en cada instancia."""
    return InstanceSnapshot(
        name=definition.name,
        class_type=definition.class_type,
        instructor_id=definition.instructor_id,
        instructor_name=instructor_name,
        capacity=definition.capacity,
        duration_minutes=definition.duration_minutes,
        location=definition.location,
        notes=definition.notes,
    )


class InstanceMaterializer:
    """
    Convierte ocurrencias en filas de ClassInstance.

    No hace commit: todas las instancias de una expansión se escriben dentro
    de la transacción del caller, que hace rollback completo si algún lote
    falla.
    """

    def __init__(self, batch_size: Optional[int] = None):
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size or get_settings().SCHEDULE_BATCH_WRITE_SIZE

    def build_instances(
        self,
        template_id: int,
        occurrences: Sequence[Occurrence],
        snapshot: InstanceSnapshot
    ) -> List[ClassInstance]:
        return [
            ClassInstance(
                schedule_template_id=template_id,
                date=occurrence.date,
                start_time=occurrence.start_time,
                end_time=occurrence.end_time,
                duration_minutes=snapshot.duration_minutes,
                capacity=snapshot.capacity,
                registered_participants=[],
                waitlist=[],
                status=ClassInstanceStatus.SCHEDULED,
                price_share=occurrence.price_share,
                name=snapshot.name,
                class_type=snapshot.class_type,
                instructor_id=snapshot.instructor_id,
                instructor_name=snapshot.instructor_name,
                location=snapshot.location,
                notes=snapshot.notes,
            )
            for occurrence in occurrences
        ]

    async def materialize(
        self,
        db: AsyncSession,
        *,
        template_id: int,
        occurrences: Sequence[Occurrence],
        snapshot: InstanceSnapshot
    ) -> List[ClassInstance]:
        instances = self.build_instances(template_id, occurrences, snapshot)
        written = await async_class_instance_repository.add_in_batches(
            db, instances=instances, batch_size=self.batch_size
        )
        logger.info(f"Template {template_id}: {len(written)} instancias materializadas")
        return written

    async def replace(
        self,
        db: AsyncSession,
        *,
        template_id: int,
        occurrences: Sequence[Occurrence],
        snapshot: InstanceSnapshot,
        strategy: RegenerationStrategy = RegenerationStrategy.REPLACE
    ) -> RegenerationOutcome:
        """
        Sustituir las instancias de un template por las de `occurrences`.

        - REPLACE: borra todas y crea el conjunto nuevo (se pierden inscripciones).
        - DIFF: conserva las instancias cuyo (fecha, hora de inicio) sigue en el
          conjunto nuevo, junto con sus inscripciones y lista de espera.
        """
        if strategy == RegenerationStrategy.REPLACE:
            deleted = await async_class_instance_repository.delete_by_template(db, template_id=template_id)
            created = await self.materialize(
                db, template_id=template_id, occurrences=occurrences, snapshot=snapshot
            )
            return RegenerationOutcome(deleted_count=deleted, created=created)

        existing = await async_class_instance_repository.get_by_template(db, template_id=template_id)
        wanted = {occurrence.slot_key: occurrence for occurrence in occurrences}

        kept: List[ClassInstance] = []
        stale_ids: List[int] = []
        for instance in existing:
            occurrence = wanted.pop((instance.date, instance.start_time), None)
            if occurrence is None:
                stale_ids.append(instance.id)
                continue
            instance.end_time = occurrence.end_time
            instance.duration_minutes = snapshot.duration_minutes
            instance.price_share = occurrence.price_share
            kept.append(instance)

        deleted = await async_class_instance_repository.delete_by_ids(db, instance_ids=stale_ids)
        missing = [occurrence for occurrence in occurrences if occurrence.slot_key in wanted]
        created = await self.materialize(
            db, template_id=template_id, occurrences=missing, snapshot=snapshot
        )
        logger.info(
            f"Template {template_id}: diff aplicado "
            f"({deleted} borradas, {len(created)} creadas, {len(kept)} conservadas)"
        )
        return RegenerationOutcome(deleted_count=deleted, created=created, kept=kept)


instance_materializer = InstanceMaterializer()
