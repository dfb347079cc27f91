from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Time, DateTime, Text, Enum,
    CheckConstraint, Date, Numeric, JSON, UniqueConstraint
)
import enum
from datetime import date, datetime, timezone

from app.db.base_class import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DayOfWeek(int, enum.Enum):
    """Día de la semana con la numeración del payload de entrada (0 = domingo)."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_date(cls, value: date) -> "DayOfWeek":
        # date.weekday() usa 0 = lunes
        return cls((value.weekday() + 1) % 7)


class ScheduleType(str, enum.Enum):
    SINGLE = "single"
    RECURRING = "recurring"


class ClassInstanceStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScheduleTemplate(Base):
    """Definición reutilizable de una clase (única o recurrente)"""
    __tablename__ = "schedule_template"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    class_type = Column(String(100), nullable=False)
    instructor_id = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    capacity = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)  # Hora local de la academia
    schedule_type = Column(Enum(ScheduleType), nullable=False, default=ScheduleType.SINGLE)
    days_of_week = Column(JSON, nullable=True)  # Solo para recurring, ej. [1, 3]
    recurrence_end_date = Column(Date, nullable=True)  # Solo para recurring
    total_price = Column(Numeric(10, 2), nullable=True)  # Precio total del paquete
    location = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    # Contador optimista: se incrementa en cada escritura del template
    version = Column(Integer, nullable=False, default=1)

    # Campos de auditoría
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint('capacity > 0', name='check_template_capacity_positive'),
        CheckConstraint('duration_minutes >= 15 AND duration_minutes <= 240',
                        name='check_template_duration_range'),
    )


class ClassInstance(Base):
    """Instancia reservable de una clase (una ocurrencia concreta del template)"""
    __tablename__ = "class_instance"

    id = Column(Integer, primary_key=True, index=True)
    # Referencia débil: el template no es dueño de la instancia a nivel ORM
    schedule_template_id = Column(Integer, ForeignKey("schedule_template.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False)
    registered_participants = Column(JSON, nullable=False, default=list)  # IDs de miembros
    waitlist = Column(JSON, nullable=False, default=list)  # IDs de miembros, en orden
    status = Column(Enum(ClassInstanceStatus), nullable=False, default=ClassInstanceStatus.SCHEDULED)
    price_share = Column(Numeric(10, 2), nullable=True)

    # Campos desnormalizados, copiados al materializar
    name = Column(String(100), nullable=False)
    class_type = Column(String(100), nullable=False)
    instructor_id = Column(Integer, nullable=False)
    instructor_name = Column(String(100), nullable=False)
    location = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    cancellation_reason = Column(String(255), nullable=True)
    actual_duration_minutes = Column(Integer, nullable=True)

    # Campos de auditoría
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('schedule_template_id', 'date', 'start_time',
                         name='uq_class_instance_template_slot'),
        CheckConstraint('capacity > 0', name='check_instance_capacity_positive'),
    )
