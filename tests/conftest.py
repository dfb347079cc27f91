from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.staff import Staff, StaffRole


# Usar una base de datos en memoria para pruebas (una por test)
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory):
    """
    Sesión async fresca para cada test.
    """
    async with session_factory() as session:
        yield session


async def _create_staff(db: AsyncSession, full_name: str, role: StaffRole, is_active: bool = True) -> Staff:
    staff = Staff(full_name=full_name, role=role, is_active=is_active)
    db.add(staff)
    await db.commit()
    return staff


@pytest_asyncio.fixture
async def trainer(db):
    """Entrenador activo que puede impartir clases."""
    return await _create_staff(db, "Ayşe Demir", StaffRole.TRAINER)


@pytest_asyncio.fixture
async def admin_staff(db):
    """Administrador: existe pero no puede impartir clases."""
    return await _create_staff(db, "Admin Test", StaffRole.ADMIN)


@pytest_asyncio.fixture
async def inactive_trainer(db):
    return await _create_staff(db, "Trainer Inactivo", StaffRole.TRAINER, is_active=False)


@pytest.fixture
def today() -> date:
    # 2025-01-01 es miércoles
    return date(2025, 1, 1)


@pytest.fixture
def schedule_payload(trainer):
    """
    Payload camelCase de un template recurrente lunes/miércoles durante enero
    de 2025 (8 clases a partir del lunes 6).
    """
    return {
        "name": "Yoga Flow",
        "classTypeRef": "yoga",
        "instructorRef": trainer.id,
        "capacity": 12,
        "durationMinutes": 60,
        "startDate": "2025-01-06",
        "startTime": "09:30",
        "scheduleType": "recurring",
        "daysOfWeek": [1, 3],
        "recurrenceEndDate": "2025-01-31",
        "totalPrice": "80.00",
        "location": "Sala 1",
    }
