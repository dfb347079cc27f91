"""
Servicio de programación de clases.

Orquesta el ciclo de vida de un template: validación, expansión de la
recurrencia, materialización de instancias y su reconciliación cuando el
template cambia.

Cada operación de escritura es una única transacción: la expansión se
calcula antes de tocar la base de datos y, si algo falla al escribir, el
rollback deja el template y su conjunto de instancias tal y como estaban.
"""
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Callable, List, Optional
import logging

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import LockError, RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import RegenerationStrategy, get_settings
from app.core.metrics import track_instances, track_schedule_event
from app.models.schedule import ClassInstance, ScheduleTemplate
from app.repositories.async_schedule import (
    async_class_instance_repository,
    async_schedule_template_repository,
)
from app.schemas.schedule import (
    ClassInstance as ClassInstanceSchema,
    ClassScheduleCreate,
    ClassScheduleUpdate,
    ScheduleDefinition,
    ScheduleDeletionResult,
    ScheduleGenerationResult,
    ScheduleTemplate as ScheduleTemplateSchema,
    ScheduleUpdateResult,
)
from app.services.exceptions import (
    InstanceSetState,
    ScheduleConflictError,
    ScheduleNotFoundError,
    SchedulePersistenceError,
    ScheduleValidationError,
)
from app.services.instructor import instructor_directory
from app.services.materializer import (
    InstanceMaterializer,
    RegenerationOutcome,
    build_snapshot,
    instance_materializer,
)
from app.services.recurrence import OccurrenceLimits, expand_schedule

logger = logging.getLogger(__name__)

LOCK_KEY = "schedule:template:lock:{template_id}"


def requires_regeneration(current: ScheduleDefinition, updated: ScheduleDefinition) -> bool:
    """
    True si cambió algún campo que afecta a fechas u horas de las instancias.

    Nombre, ubicación y notas son cosméticos. Capacidad, precio e
    instructor tampoco regeneran: las instancias ya materializadas
    conservan los valores que copiaron al crearse.
    """
    return (
        current.recurrence != updated.recurrence
        or current.start_date != updated.start_date
        or current.start_time != updated.start_time
        or current.duration_minutes != updated.duration_minutes
    )


def _validation_messages(exc: ValueError) -> List[str]:
    if isinstance(exc, ValidationError):
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()))
            messages.append(f"{location}: {error['msg']}" if location else error["msg"])
        return messages
    return [str(exc)]


def _validated(build: Callable[[], ScheduleDefinition]) -> ScheduleDefinition:
    try:
        return build()
    except ValueError as e:
        messages = _validation_messages(e)
        raise ScheduleValidationError(messages[0], errors=messages) from e


def _serialize_instances(instances: List[ClassInstance]) -> List[ClassInstanceSchema]:
    ordered = sorted(instances, key=lambda instance: (instance.date, instance.start_time))
    return [ClassInstanceSchema.model_validate(instance) for instance in ordered]


class ScheduleService:
    """
    Controlador de templates y de sus instancias materializadas.

    Serialización por template:
    - Contador `version` en el template, incrementado con check-and-set al
      principio de cada escritura. La escritura que pierde la carrera
      recibe ScheduleConflictError y no modifica nada.
    - Lock opcional en Redis (`schedule:template:lock:{id}`) cuando el
      caller pasa un cliente, para que las peticiones concurrentes esperen
      en vez de fallar.
    """

    def __init__(
        self,
        materializer: Optional[InstanceMaterializer] = None,
        limits: Optional[OccurrenceLimits] = None,
        strategy: Optional[RegenerationStrategy] = None,
        lock_timeout: Optional[int] = None
    ):
        self.materializer = materializer or instance_materializer
        self._limits = limits
        self._strategy = strategy
        self._lock_timeout = lock_timeout

    @property
    def limits(self) -> OccurrenceLimits:
        return self._limits or OccurrenceLimits.from_settings()

    @property
    def strategy(self) -> RegenerationStrategy:
        return self._strategy or get_settings().SCHEDULE_REGENERATION_STRATEGY

    @property
    def lock_timeout(self) -> int:
        return self._lock_timeout or get_settings().SCHEDULE_LOCK_TIMEOUT_SECONDS

    @asynccontextmanager
    async def _template_lock(self, redis_client: Optional[Redis], template_id: int) -> AsyncIterator[None]:
        if redis_client is None:
            yield
            return

        lock = redis_client.lock(
            LOCK_KEY.format(template_id=template_id),
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_timeout,
        )
        try:
            acquired = await lock.acquire()
        except LockError as e:
            raise ScheduleConflictError(f"No se pudo bloquear el template {template_id}") from e
        except RedisError as e:
            logger.error(f"Redis no disponible para el lock del template {template_id}: {e}")
            raise SchedulePersistenceError(
                "No se pudo contactar con Redis", InstanceSetState.PREVIOUS, template_id
            ) from e

        if not acquired:
            raise ScheduleConflictError(
                f"El template {template_id} está siendo modificado por otra petición"
            )

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # El lock expiró antes de terminar; la versión sigue protegiendo la escritura
                logger.warning(f"El lock del template {template_id} expiró antes de liberarse")

    async def _get_template_or_404(self, db: AsyncSession, template_id: int) -> ScheduleTemplate:
        template = await async_schedule_template_repository.get(db, id=template_id)
        if not template:
            raise ScheduleNotFoundError(f"Template {template_id} no encontrado")
        return template

    async def _claim_version(self, db: AsyncSession, template_id: int, expected_version: int, event_type: str) -> None:
        claimed = await async_schedule_template_repository.bump_version(
            db, template_id=template_id, expected_version=expected_version
        )
        if not claimed:
            await db.rollback()
            track_schedule_event(event_type, "conflict")
            raise ScheduleConflictError(
                f"El template {template_id} fue modificado por otra petición (versión {expected_version})"
            )

    async def _committed_instances(self, db: AsyncSession, template_id: int) -> List[ClassInstanceSchema]:
        try:
            instances = await async_class_instance_repository.get_by_template(db, template_id=template_id)
        except SQLAlchemyError as e:
            logger.error(f"Template {template_id}: no se pudieron releer las instancias tras el commit: {e}")
            raise SchedulePersistenceError(
                "Las instancias se regeneraron pero no se pudieron leer",
                InstanceSetState.REPLACED,
                template_id
            ) from e
        return _serialize_instances(instances)

    async def create_schedule(
        self,
        db: AsyncSession,
        schedule_in: ClassScheduleCreate,
        *,
        today: date,
        created_by: Optional[int] = None
    ) -> ScheduleGenerationResult:
        """
        Crear un template y materializar todas sus instancias.

        Raises:
            ScheduleValidationError: Template mal formado o instructor inválido
            InvalidRecurrenceError: La recurrencia no genera ninguna clase
            OccurrenceCapExceededError: Demasiadas ocurrencias con política `reject`
            SchedulePersistenceError: Fallo de escritura; no queda nada persistido
        """
        definition = _validated(schedule_in.to_definition)
        instructor = await instructor_directory.get_instructor(db, definition.instructor_id)
        occurrences = expand_schedule(definition, today=today, limits=self.limits)

        try:
            template = await async_schedule_template_repository.create(
                db,
                obj_in={
                    **definition.to_template_fields(),
                    "is_active": True,
                    "version": 1,
                    "created_by": created_by,
                    "updated_by": created_by,
                }
            )
            instances = await self.materializer.materialize(
                db,
                template_id=template.id,
                occurrences=occurrences,
                snapshot=build_snapshot(definition, instructor.full_name)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error creando template '{definition.name}': {e}", exc_info=True)
            track_schedule_event("create", "failed")
            raise SchedulePersistenceError(
                "No se pudo guardar el template ni sus instancias", InstanceSetState.PREVIOUS
            ) from e

        track_schedule_event("create")
        track_instances("created", len(instances))
        logger.info(f"Template {template.id} creado con {len(instances)} instancias")

        return ScheduleGenerationResult(
            template=ScheduleTemplateSchema.model_validate(template),
            instances=_serialize_instances(instances),
        )

    async def update_schedule(
        self,
        db: AsyncSession,
        template_id: int,
        schedule_in: ClassScheduleUpdate,
        *,
        today: date,
        updated_by: Optional[int] = None,
        redis_client: Optional[Redis] = None
    ) -> ScheduleUpdateResult:
        """
        Actualizar un template. Si cambia algún campo temporal, sus
        instancias se regeneran en la misma transacción.

        Raises:
            ScheduleNotFoundError: El template no existe
            ScheduleConflictError: `version` desactualizada u otra escritura concurrente
            ScheduleValidationError / InvalidRecurrenceError / OccurrenceCapExceededError
            SchedulePersistenceError: `instance_state` indica qué conjunto quedó visible
        """
        async with self._template_lock(redis_client, template_id):
            template = await self._get_template_or_404(db, template_id)
            expected_version = template.version
            if schedule_in.version is not None and schedule_in.version != expected_version:
                track_schedule_event("update", "conflict")
                raise ScheduleConflictError(
                    f"Versión {schedule_in.version} desactualizada, la actual es {expected_version}"
                )

            current = ScheduleDefinition.from_template(template)
            updated = _validated(lambda: schedule_in.merge_into(current))

            instructor_name: Optional[str] = None
            if updated.instructor_id != current.instructor_id:
                instructor = await instructor_directory.get_instructor(db, updated.instructor_id)
                instructor_name = instructor.full_name

            regenerate = requires_regeneration(current, updated)
            occurrences = expand_schedule(updated, today=today, limits=self.limits) if regenerate else []

            outcome = RegenerationOutcome()
            try:
                await self._claim_version(db, template_id, expected_version, "update")

                fields = {**updated.to_template_fields(), "updated_by": updated_by}
                if schedule_in.is_active is not None:
                    fields["is_active"] = schedule_in.is_active
                template = await async_schedule_template_repository.update(db, db_obj=template, obj_in=fields)

                if regenerate:
                    if instructor_name is None:
                        instructor_name = await instructor_directory.get_display_name(db, updated.instructor_id)
                    outcome = await self.materializer.replace(
                        db,
                        template_id=template_id,
                        occurrences=occurrences,
                        snapshot=build_snapshot(updated, instructor_name),
                        strategy=self.strategy
                    )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Error actualizando template {template_id}: {e}", exc_info=True)
                track_schedule_event("update", "failed")
                raise SchedulePersistenceError(
                    "No se pudo actualizar el template; las instancias anteriores siguen vigentes",
                    InstanceSetState.PREVIOUS,
                    template_id
                ) from e

        track_schedule_event("update")
        result = ScheduleUpdateResult(
            template=ScheduleTemplateSchema.model_validate(template),
            regenerated=regenerate,
        )
        if regenerate:
            self._track_outcome(outcome)
            result.deleted_count = outcome.deleted_count
            result.created_count = len(outcome.created)
            result.kept_count = len(outcome.kept)
            result.instances = await self._committed_instances(db, template_id)
            logger.info(
                f"Template {template_id} actualizado y regenerado "
                f"(-{outcome.deleted_count} +{len(outcome.created)} ={len(outcome.kept)})"
            )
        else:
            logger.info(f"Template {template_id} actualizado sin regenerar instancias")
        return result

    async def regenerate_schedule(
        self,
        db: AsyncSession,
        template_id: int,
        *,
        today: date,
        strategy: Optional[RegenerationStrategy] = None,
        redis_client: Optional[Redis] = None
    ) -> ScheduleUpdateResult:
        """Volver a materializar las instancias del template tal y como está guardado."""
        async with self._template_lock(redis_client, template_id):
            template = await self._get_template_or_404(db, template_id)
            expected_version = template.version
            definition = _validated(lambda: ScheduleDefinition.from_template(template))
            occurrences = expand_schedule(definition, today=today, limits=self.limits)

            try:
                await self._claim_version(db, template_id, expected_version, "regenerate")
                instructor_name = await instructor_directory.get_display_name(db, definition.instructor_id)
                outcome = await self.materializer.replace(
                    db,
                    template_id=template_id,
                    occurrences=occurrences,
                    snapshot=build_snapshot(definition, instructor_name),
                    strategy=strategy or self.strategy
                )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Error regenerando template {template_id}: {e}", exc_info=True)
                track_schedule_event("regenerate", "failed")
                raise SchedulePersistenceError(
                    "No se pudo regenerar; las instancias anteriores siguen vigentes",
                    InstanceSetState.PREVIOUS,
                    template_id
                ) from e

        track_schedule_event("regenerate")
        self._track_outcome(outcome)
        logger.info(f"Template {template_id} regenerado con {len(outcome.created) + len(outcome.kept)} instancias")

        return ScheduleUpdateResult(
            template=ScheduleTemplateSchema.model_validate(template),
            regenerated=True,
            deleted_count=outcome.deleted_count,
            created_count=len(outcome.created),
            kept_count=len(outcome.kept),
            instances=await self._committed_instances(db, template_id),
        )

    async def delete_schedule(
        self,
        db: AsyncSession,
        template_id: int,
        *,
        redis_client: Optional[Redis] = None
    ) -> ScheduleDeletionResult:
        """Eliminar un template junto con todas sus instancias."""
        async with self._template_lock(redis_client, template_id):
            template = await self._get_template_or_404(db, template_id)
            expected_version = template.version
            try:
                await self._claim_version(db, template_id, expected_version, "delete")
                deleted = await async_class_instance_repository.delete_by_template(db, template_id=template_id)
                await async_schedule_template_repository.remove(db, id=template_id)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Error eliminando template {template_id}: {e}", exc_info=True)
                track_schedule_event("delete", "failed")
                raise SchedulePersistenceError(
                    "No se pudo eliminar el template", InstanceSetState.PREVIOUS, template_id
                ) from e

        track_schedule_event("delete")
        track_instances("deleted", deleted)
        logger.info(f"Template {template_id} eliminado junto con {deleted} instancias")
        return ScheduleDeletionResult(template_id=template_id, deleted_instances=deleted)

    async def get_schedule(self, db: AsyncSession, template_id: int) -> ScheduleTemplate:
        return await self._get_template_or_404(db, template_id)

    async def get_schedules(
        self,
        db: AsyncSession,
        *,
        active_only: bool = True,
        instructor_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[ScheduleTemplate]:
        return await async_schedule_template_repository.get_schedules(
            db, active_only=active_only, instructor_id=instructor_id, skip=skip, limit=limit
        )

    async def get_schedule_instances(self, db: AsyncSession, template_id: int) -> List[ClassInstance]:
        await self._get_template_or_404(db, template_id)
        return await async_class_instance_repository.get_by_template(db, template_id=template_id)

    @staticmethod
    def _track_outcome(outcome: RegenerationOutcome) -> None:
        track_instances("deleted", outcome.deleted_count)
        track_instances("created", len(outcome.created))
        track_instances("kept", len(outcome.kept))


schedule_service = ScheduleService()
