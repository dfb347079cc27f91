from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
import logging

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings_instance = get_settings()

db_url_async = settings_instance.DATABASE_URL

# Ocultar credenciales en el log
display_url = db_url_async
if '@' in display_url:
    scheme = display_url.split('://')[0]
    host_info = display_url.split('@')[-1]
    display_url = f"{scheme}://***@{host_info}"

logger.info(f"URL FINAL utilizada para crear el async engine: {display_url}")


def _engine_options(url: str) -> dict:
    """Opciones del pool según el driver (SQLite no admite pool_size)."""
    if url.startswith("sqlite"):
        return {"echo": False}
    return {
        "echo": False,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 280,
    }


try:
    async_engine = create_async_engine(db_url_async, **_engine_options(db_url_async))
    logger.info("✅ Async engine creado correctamente")
except Exception as e:
    logger.critical(f"❌ FALLO CRÍTICO AL CREAR ASYNC ENGINE: {e}", exc_info=True)
    async_engine = None

# Async session maker
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
) if async_engine else None


# ==========================================
# DEPENDENCIAS
# ==========================================

async def get_async_db():
    """
    Dependencia async para obtener sesión de base de datos.

    Uso en endpoints:
        @router.get("/endpoint")
        async def my_endpoint(db: AsyncSession = Depends(get_async_db)):
            result = await db.execute(select(ScheduleTemplate))
            templates = result.scalars().all()
    """
    if AsyncSessionLocal is None:
        raise RuntimeError("AsyncSessionLocal no inicializado")

    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Error SQLAlchemy en sesión async: {e}", exc_info=True)
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_async_db_for_jobs():
    """
    Context manager async para jobs o scripts que invocan el motor fuera de FastAPI.

    Uso:
        async with get_async_db_for_jobs() as db:
            await schedule_service.regenerate_schedule(db, template_id, today=today)
    """
    if AsyncSessionLocal is None:
        raise RuntimeError("AsyncSessionLocal no inicializado")

    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError:
            await session.rollback()
            raise
