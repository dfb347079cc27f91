from app.schemas.schedule import (
    ClassScheduleCreate,
    ClassScheduleUpdate,
    ScheduleDefinition,
    Occurrence,
    ScheduleTemplate,
    ClassInstance,
    ScheduleGenerationResult,
    ScheduleUpdateResult,
    ScheduleDeletionResult,
)
from app.schemas.staff import Staff, StaffCreate, StaffUpdate
