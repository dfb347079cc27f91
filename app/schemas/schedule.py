from typing import Optional, List, Union, FrozenSet, Literal
from typing_extensions import Annotated
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, time, date, timedelta
from decimal import Decimal
import re

from app.models.schedule import DayOfWeek, ScheduleType, ClassInstanceStatus

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

MINUTES_PER_DAY = 24 * 60


def parse_time_string(value):
    """Validar y convertir strings de tiempo en formato HH:MM a objetos time"""
    if value is None or isinstance(value, time):
        return value

    if isinstance(value, str):
        if not _TIME_PATTERN.match(value):
            raise ValueError('El formato de tiempo debe ser HH:MM (ejemplo: 09:30)')
        hour, minute = map(int, value.split(':'))
        return time(hour=hour, minute=minute)

    return value


def parse_date_string(value):
    """Solo se aceptan fechas YYYY-MM-DD cuando llegan como string"""
    if isinstance(value, str) and not _DATE_PATTERN.match(value):
        raise ValueError('Formato de fecha inválido, usar YYYY-MM-DD')
    return value


# Tipos de entrada con formato estricto
HHMMTime = Annotated[time, BeforeValidator(parse_time_string)]
IsoDate = Annotated[date, BeforeValidator(parse_date_string)]


def add_minutes(start: time, minutes: int) -> time:
    """Hora de fin en el mismo día. El caller garantiza que no cruza la medianoche."""
    return (datetime.combine(date.min, start) + timedelta(minutes=minutes)).time()


# Recurrence: unión etiquetada por schedule_type
class SingleRecurrence(BaseModel):
    model_config = ConfigDict(frozen=True)

    schedule_type: Literal["single"] = "single"


class WeeklyRecurrence(BaseModel):
    model_config = ConfigDict(frozen=True)

    schedule_type: Literal["recurring"] = "recurring"
    days_of_week: FrozenSet[DayOfWeek] = Field(..., min_length=1)
    end_date: Optional[date] = None


Recurrence = Annotated[
    Union[SingleRecurrence, WeeklyRecurrence],
    Field(discriminator="schedule_type")
]


class ScheduleDefinition(BaseModel):
    """
    Template ya validado, tal y como lo consume el expansor.

    Es el único punto donde se comprueban las invariantes del template:
    duración en rango, sesión dentro del mismo día y fecha de fin de la
    recurrencia estrictamente posterior a la fecha de inicio.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=3, max_length=100)
    class_type: str = Field(..., min_length=1, max_length=100)
    instructor_id: int = Field(..., gt=0)
    capacity: int = Field(..., gt=0)
    duration_minutes: int = Field(..., ge=15, le=240)
    start_date: date
    start_time: time
    recurrence: Recurrence
    total_price: Optional[Decimal] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode='after')
    def check_template_invariants(self):
        start_minutes = self.start_time.hour * 60 + self.start_time.minute
        if start_minutes + self.duration_minutes >= MINUTES_PER_DAY:
            raise ValueError('La sesión no puede cruzar la medianoche')

        if isinstance(self.recurrence, WeeklyRecurrence) and self.recurrence.end_date is not None:
            if self.recurrence.end_date <= self.start_date:
                raise ValueError('La fecha de fin de la recurrencia debe ser posterior a start_date')
        return self

    @property
    def end_time(self) -> time:
        return add_minutes(self.start_time, self.duration_minutes)

    @classmethod
    def from_template(cls, template) -> "ScheduleDefinition":
        """Construye la definición a partir de un ScheduleTemplate del ORM."""
        if template.schedule_type == ScheduleType.RECURRING:
            recurrence = {
                "schedule_type": "recurring",
                "days_of_week": template.days_of_week or [],
                "end_date": template.recurrence_end_date,
            }
        else:
            recurrence = {"schedule_type": "single"}

        return cls.model_validate({
            "name": template.name,
            "class_type": template.class_type,
            "instructor_id": template.instructor_id,
            "capacity": template.capacity,
            "duration_minutes": template.duration_minutes,
            "start_date": template.start_date,
            "start_time": template.start_time,
            "recurrence": recurrence,
            "total_price": template.total_price,
            "location": template.location,
            "notes": template.notes,
        })

    def to_template_fields(self) -> dict:
        """Columnas del ORM que representan esta definición."""
        if isinstance(self.recurrence, WeeklyRecurrence):
            schedule_type = ScheduleType.RECURRING
            days_of_week = sorted(int(day) for day in self.recurrence.days_of_week)
            end_date = self.recurrence.end_date
        else:
            schedule_type = ScheduleType.SINGLE
            days_of_week = None
            end_date = None

        return {
            "name": self.name,
            "class_type": self.class_type,
            "instructor_id": self.instructor_id,
            "capacity": self.capacity,
            "duration_minutes": self.duration_minutes,
            "start_date": self.start_date,
            "start_time": self.start_time,
            "schedule_type": schedule_type,
            "days_of_week": days_of_week,
            "recurrence_end_date": end_date,
            "total_price": self.total_price,
            "location": self.location,
            "notes": self.notes,
        }


# Payloads de entrada (camelCase en el JSON, snake_case en Python)
class ClassScheduleCreate(BaseModel):
    """Payload para crear un template de clase"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=3, max_length=100)
    class_type_ref: str = Field(..., min_length=1, max_length=100)
    instructor_ref: int = Field(..., gt=0)
    capacity: int = Field(..., gt=0, le=100)
    duration_minutes: int = Field(..., ge=15, le=240)
    start_date: IsoDate
    start_time: HHMMTime
    schedule_type: ScheduleType
    days_of_week: Optional[List[DayOfWeek]] = None
    recurrence_end_date: Optional[IsoDate] = None
    total_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    location: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode='after')
    def check_recurrence_fields(self):
        if self.schedule_type == ScheduleType.RECURRING:
            if not self.days_of_week:
                raise ValueError('Days of week are required for recurring schedules')
            if self.recurrence_end_date is not None and self.recurrence_end_date <= self.start_date:
                raise ValueError('recurrenceEndDate debe ser posterior a startDate')
        elif self.days_of_week or self.recurrence_end_date is not None:
            raise ValueError('daysOfWeek y recurrenceEndDate solo aplican a horarios recurrentes')
        return self

    def to_definition(self) -> ScheduleDefinition:
        if self.schedule_type == ScheduleType.RECURRING:
            recurrence = {
                "schedule_type": "recurring",
                "days_of_week": self.days_of_week,
                "end_date": self.recurrence_end_date,
            }
        else:
            recurrence = {"schedule_type": "single"}

        return ScheduleDefinition.model_validate({
            "name": self.name,
            "class_type": self.class_type_ref,
            "instructor_id": self.instructor_ref,
            "capacity": self.capacity,
            "duration_minutes": self.duration_minutes,
            "start_date": self.start_date,
            "start_time": self.start_time,
            "recurrence": recurrence,
            "total_price": self.total_price,
            "location": self.location,
            "notes": self.notes,
        })


class ClassScheduleUpdate(BaseModel):
    """Payload para actualizar un template (todos los campos opcionales)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=3, max_length=100)
    class_type_ref: Optional[str] = Field(None, min_length=1, max_length=100)
    instructor_ref: Optional[int] = Field(None, gt=0)
    capacity: Optional[int] = Field(None, gt=0, le=100)
    duration_minutes: Optional[int] = Field(None, ge=15, le=240)
    start_date: Optional[IsoDate] = None
    start_time: Optional[HHMMTime] = None
    schedule_type: Optional[ScheduleType] = None
    days_of_week: Optional[List[DayOfWeek]] = None
    recurrence_end_date: Optional[IsoDate] = None
    total_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    location: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None
    # Versión que el cliente leyó; si no coincide se rechaza la escritura
    version: Optional[int] = Field(None, ge=1)

    def merge_into(self, current: ScheduleDefinition) -> ScheduleDefinition:
        """
        Aplica los campos enviados sobre la definición actual.

        Lanza pydantic.ValidationError si el resultado no es un template válido.
        """
        changes = self.model_dump(exclude_unset=True, exclude={"version", "is_active"})
        data = current.model_dump(exclude={"recurrence"})

        renamed = {"class_type_ref": "class_type", "instructor_ref": "instructor_id"}
        for field, value in changes.items():
            if field in ("schedule_type", "days_of_week", "recurrence_end_date"):
                continue
            data[renamed.get(field, field)] = value

        schedule_type = changes.get("schedule_type") or ScheduleType(current.recurrence.schedule_type)
        if schedule_type == ScheduleType.SINGLE:
            if changes.get("days_of_week") or changes.get("recurrence_end_date"):
                raise ValueError('daysOfWeek y recurrenceEndDate solo aplican a horarios recurrentes')
            data["recurrence"] = {"schedule_type": "single"}
        else:
            previous = current.recurrence if isinstance(current.recurrence, WeeklyRecurrence) else None
            days = changes.get("days_of_week", previous.days_of_week if previous else None)
            if "recurrence_end_date" in changes:
                end_date = changes["recurrence_end_date"]
            else:
                end_date = previous.end_date if previous else None
            data["recurrence"] = {
                "schedule_type": "recurring",
                "days_of_week": days or [],
                "end_date": end_date,
            }

        return ScheduleDefinition.model_validate(data)


class Occurrence(BaseModel):
    """Ocurrencia transitoria producida por la expansión (no se persiste)"""
    model_config = ConfigDict(frozen=True)

    date: date
    start_time: time
    end_time: time
    price_share: Optional[Decimal] = None

    @property
    def slot_key(self):
        return (self.date, self.start_time)


class InstanceSnapshot(BaseModel):
    """Campos del template que se copian en cada instancia al materializar"""
    model_config = ConfigDict(frozen=True)

    name: str
    class_type: str
    instructor_id: int
    instructor_name: str
    capacity: int
    duration_minutes: int
    location: Optional[str] = None
    notes: Optional[str] = None


# Respuestas
class ScheduleTemplate(BaseModel):
    id: int
    name: str
    class_type: str
    instructor_id: int
    capacity: int
    duration_minutes: int
    start_date: date
    start_time: time
    schedule_type: ScheduleType
    days_of_week: Optional[List[DayOfWeek]] = None
    recurrence_end_date: Optional[date] = None
    total_price: Optional[Decimal] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[int] = None
    updated_by: Optional[int] = None

    model_config = {"from_attributes": True}


class ClassInstance(BaseModel):
    id: int
    schedule_template_id: int
    date: date
    start_time: time
    end_time: time
    duration_minutes: int
    capacity: int
    registered_participants: List[int] = []
    waitlist: List[int] = []
    status: ClassInstanceStatus
    price_share: Optional[Decimal] = None
    name: str
    class_type: str
    instructor_id: int
    instructor_name: str
    location: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    actual_duration_minutes: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @model_validator(mode='after')
    def check_roster_within_capacity(self):
        if len(self.registered_participants) > self.capacity:
            raise ValueError('registered_participants supera la capacidad de la instancia')
        return self


class ScheduleGenerationResult(BaseModel):
    template: ScheduleTemplate
    instances: List[ClassInstance]


class ScheduleUpdateResult(BaseModel):
    template: ScheduleTemplate
    regenerated: bool
    deleted_count: int = 0
    created_count: int = 0
    kept_count: int = 0
    instances: List[ClassInstance] = []


class ScheduleDeletionResult(BaseModel):
    template_id: int
    deleted_instances: int


class InstanceCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class InstanceComplete(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    actual_duration: Optional[int] = Field(None, gt=0)
