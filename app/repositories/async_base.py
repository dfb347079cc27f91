"""
Base repository async para operaciones CRUD genéricas.
"""
from typing import TypeVar, Generic, Optional, Dict, Any, Type, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel
from fastapi.encoders import jsonable_encoder
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType")
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class AsyncBaseRepository(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Repositorio base genérico con operaciones CRUD async.

    Los métodos hacen flush pero nunca commit: la transacción la controla
    el servicio que los llama.

    Uso:
        class StaffRepository(AsyncBaseRepository[Staff, StaffCreate, StaffUpdate]):
            # Métodos específicos del modelo
            pass
    """

    def __init__(self, model: Type[ModelType]):
        """
        Inicializar repositorio con el modelo SQLAlchemy.

        Args:
            model: Clase del modelo SQLAlchemy (ej: ScheduleTemplate, ClassInstance)
        """
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """
        Obtener un objeto por ID.

        Returns:
            El objeto encontrado o None si no existe
        """
        stmt = select(self.model).where(self.model.id == id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """
        Crear un nuevo objeto en la base de datos.

        Args:
            db: Sesión async de base de datos
            obj_in: Datos del objeto a crear (schema Pydantic o dict)

        Returns:
            El objeto creado con ID asignado
        """
        if isinstance(obj_in, dict):
            obj_in_data = obj_in
        elif hasattr(obj_in, 'model_dump'):
            obj_in_data = obj_in.model_dump(exclude_unset=True)
        else:
            obj_in_data = jsonable_encoder(obj_in)

        # Filtrar solo los campos que existen en el modelo
        valid_fields = {}
        for field, value in obj_in_data.items():
            if hasattr(self.model, field):
                valid_fields[field] = value
            else:
                logger.warning(
                    f"Campo ignorado en create: {self.model.__name__} no tiene campo '{field}'"
                )

        db_obj = self.model(**valid_fields)

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)

        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """
        Actualizar un objeto existente.

        Args:
            db: Sesión async de base de datos
            db_obj: Objeto existente a actualizar
            obj_in: Datos de actualización (schema Pydantic o dict)

        Returns:
            El objeto actualizado
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        elif hasattr(obj_in, 'model_dump'):
            update_data = obj_in.model_dump(exclude_unset=True)
        else:
            update_data = jsonable_encoder(obj_in)

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
            else:
                logger.warning(
                    f"Campo ignorado en update: {self.model.__name__} no tiene campo '{field}'"
                )

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)

        return db_obj

    async def remove(self, db: AsyncSession, *, id: int) -> ModelType:
        """
        Eliminar un objeto de la base de datos.

        Raises:
            ValueError: Si el objeto no existe
        """
        obj = await self.get(db, id=id)

        if not obj:
            raise ValueError(f"{self.model.__name__} con ID {id} no encontrado")

        await db.delete(obj)
        await db.flush()

        return obj
