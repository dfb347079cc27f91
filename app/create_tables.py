import asyncio
import logging

from app.db.base import Base
from app.db.session import async_engine

logger = logging.getLogger(__name__)


async def create_tables():
    """Crear todas las tablas en la base de datos si no existen (desarrollo local)"""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tablas creadas exitosamente.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_tables())
