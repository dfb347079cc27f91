import uvicorn
from fastapi import FastAPI, Response
from contextlib import asynccontextmanager
import logging

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError

# Importar la función de configuración de logging
from app.core.logging_config import setup_logging

# Llamar a la configuración de logging ANTES de importar/crear otros elementos
setup_logging()

# Ahora importar el resto
from app.api.errors import schedule_error_handler
from app.api.v1.api import api_router
from app.core.config import get_settings
from app.core.metrics import metrics_registry
from app.db.redis_client import initialize_redis_pool, close_redis_client
from app.db.session import async_engine
from app.middleware.timing import TimingMiddleware
from app.services.exceptions import ScheduleError

logger = logging.getLogger(__name__)

# Obtener la instancia de configuración al inicio del módulo
settings_instance = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Lifespan: Startup iniciado...")

    # El lock por template es opcional: sin Redis se sigue sirviendo
    try:
        await initialize_redis_pool()
    except RedisError as e:
        logger.error(f"Lifespan: Error al inicializar Redis connection pool: {e}", exc_info=True)

    yield  # Aplicación en ejecución

    logger.info("Lifespan: Shutdown iniciado...")
    await close_redis_client()
    if async_engine is not None:
        await async_engine.dispose()
        logger.info("Lifespan: Async engine liberado.")


app = FastAPI(
    title=settings_instance.PROJECT_NAME,
    description=settings_instance.PROJECT_DESCRIPTION,
    version=settings_instance.VERSION,
    openapi_url=f"{settings_instance.API_V1_STR}/openapi.json",
    docs_url=f"{settings_instance.API_V1_STR}/docs",
    redoc_url=f"{settings_instance.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Errores de dominio -> respuestas HTTP
app.add_exception_handler(ScheduleError, schedule_error_handler)

# Añadir middleware para medir el tiempo de respuesta
app.add_middleware(TimingMiddleware)

# Incluir routers
app.include_router(api_router, prefix=settings_instance.API_V1_STR)


@app.get("/metrics", include_in_schema=False)
def metrics():
    return Response(generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)


# Ruta raíz
@app.get("/")
def root():
    return {
        "message": "Bienvenido a la API de programación de clases",
        "docs": f"{settings_instance.API_V1_STR}/docs",
    }


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings_instance.DEBUG_MODE)
