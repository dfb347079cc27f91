from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.repositories.async_base import AsyncBaseRepository
from app.models.staff import Staff
from app.schemas.staff import StaffCreate, StaffUpdate


class AsyncStaffRepository(AsyncBaseRepository[Staff, StaffCreate, StaffUpdate]):
    """Repositorio async del personal (solo lo que necesita el motor de clases)."""

    async def get_full_name(self, db: AsyncSession, *, staff_id: int) -> Optional[str]:
        stmt = select(Staff.full_name).where(Staff.id == staff_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()


async_staff_repository = AsyncStaffRepository(Staff)
