from app.models.schedule import (
    ScheduleTemplate, ClassInstance, DayOfWeek, ScheduleType, ClassInstanceStatus
)
from app.models.staff import Staff, StaffRole
