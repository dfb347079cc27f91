from sqlalchemy import Boolean, Column, Integer, String, DateTime, Enum
import enum

from app.db.base_class import Base
from app.models.schedule import utcnow


class StaffRole(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"
    TRAINER = "trainer"
    VISITING_TRAINER = "visiting_trainer"


# Roles que pueden impartir clases
INSTRUCTOR_ROLES = (StaffRole.TRAINER, StaffRole.VISITING_TRAINER)


class Staff(Base):
    """Personal de la academia. Aquí solo interesa como instructor de clases."""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(100), nullable=False)
    role = Column(Enum(StaffRole), nullable=False, default=StaffRole.STAFF)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def can_instruct(self) -> bool:
        return bool(self.is_active) and self.role in INSTRUCTOR_ROLES
