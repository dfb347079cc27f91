"""
Cliente Redis con connection pooling (async).

Redis solo se usa para el lock por template que serializa las
regeneraciones concurrentes entre procesos. Es opcional: sin REDIS_URL la
dependencia entrega None y la serialización descansa únicamente en el
contador de versión del template.

Para usar en endpoints:
```python
@router.put("/schedules/{template_id}")
async def update(template_id: int, redis: Optional[Redis] = Depends(get_redis_client)):
    ...
```
"""
from typing import AsyncIterator, Optional
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Declaración global del pool de conexiones
REDIS_POOL: Optional[ConnectionPool] = None


def _clean_url(redis_url: Optional[str]) -> str:
    if not redis_url:
        return ""
    # Eliminar comentarios y espacios que a veces vienen en el .env
    return redis_url.split('#')[0].strip()


async def initialize_redis_pool() -> Optional[ConnectionPool]:
    """
    Inicializa el pool de conexiones a Redis si hay REDIS_URL.
    Debe llamarse una sola vez al iniciar la aplicación.
    """
    global REDIS_POOL
    if REDIS_POOL is not None:
        return REDIS_POOL

    redis_url = _clean_url(get_settings().REDIS_URL)
    if not redis_url:
        logger.info("REDIS_URL no configurada, lock por template deshabilitado")
        return None

    logger.info(f"Inicializando connection pool para Redis en {redis_url}...")
    REDIS_POOL = ConnectionPool.from_url(redis_url, encoding="utf-8", decode_responses=True)
    return REDIS_POOL


async def get_redis_client() -> AsyncIterator[Optional[Redis]]:
    """
    Dependencia FastAPI: cliente Redis por request, o None si Redis no está configurado.

    Crea un cliente NUEVO por request sobre el pool compartido y lo cierra
    al terminar para devolver la conexión al pool.
    """
    pool = await initialize_redis_pool()
    if pool is None:
        yield None
        return

    client = Redis(connection_pool=pool)
    try:
        yield client
    finally:
        try:
            await client.aclose()
        except RedisError as e:
            logger.warning(f"Error cerrando cliente Redis: {e}")


async def close_redis_client():
    """Cierra el pool de conexiones Redis al finalizar la aplicación."""
    global REDIS_POOL

    if REDIS_POOL:
        logger.info("Cerrando connection pool de Redis...")
        await REDIS_POOL.disconnect()
        REDIS_POOL = None
        logger.info("Connection pool de Redis cerrado.")
