import os
from enum import Enum
from typing import Optional
from functools import lru_cache
import logging

from pydantic import field_validator, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Configurar el logger
logger = logging.getLogger(__name__)


class OccurrenceCapPolicy(str, Enum):
    TRUNCATE = "truncate"
    REJECT = "reject"


class RegenerationStrategy(str, Enum):
    REPLACE = "replace"
    DIFF = "diff"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Permitir campos extra en .env
    )

    # Configuración básica
    API_V1_STR: str = "/api/v1"

    # Información del proyecto
    PROJECT_NAME: str = "AcademyScheduling"
    PROJECT_DESCRIPTION: str = "API con FastAPI para la programación de clases de la academia"
    VERSION: str = "0.1.0"

    # Debug mode
    DEBUG_MODE: bool = os.getenv("DEBUG_MODE", "False").lower() in ("true", "1", "t")

    # Directorio para el archivo de log diario (None = solo consola)
    LOG_DIR: Optional[str] = None

    DATABASE_URL: str = "sqlite+aiosqlite:///./academy.db"
    REDIS_URL: Optional[str] = None

    # Zona horaria usada para calcular "hoy" en la capa HTTP
    ACADEMY_TIMEZONE: str = "Europe/Istanbul"

    # Motor de recurrencia
    SCHEDULE_DEFAULT_HORIZON_MONTHS: int = Field(3, ge=1)
    SCHEDULE_MAX_OCCURRENCES: int = Field(500, ge=1)
    SCHEDULE_CAP_POLICY: OccurrenceCapPolicy = OccurrenceCapPolicy.TRUNCATE
    SCHEDULE_BATCH_WRITE_SIZE: int = Field(500, ge=1)
    SCHEDULE_REGENERATION_STRATEGY: RegenerationStrategy = RegenerationStrategy.REPLACE
    SCHEDULE_LOCK_TIMEOUT_SECONDS: int = Field(30, ge=1)

    @field_validator("DATABASE_URL", mode="before")
    def ensure_async_driver(cls, v: Optional[str]) -> str:
        """Asegura que DATABASE_URL use un driver async (asyncpg para PostgreSQL)."""
        if not v:
            return "sqlite+aiosqlite:///./academy.db"

        if v.startswith("postgres://"):
            logger.info("Corrigiendo formato de postgres:// a postgresql+asyncpg://")
            return "postgresql+asyncpg://" + v[len("postgres://"):]
        if v.startswith("postgresql://"):
            return "postgresql+asyncpg://" + v[len("postgresql://"):]
        return v


@lru_cache()
def get_settings() -> Settings:
    return Settings()
