from datetime import date, time
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.models.schedule import DayOfWeek, ScheduleType
from app.schemas.schedule import (
    ClassInstance,
    ClassScheduleCreate,
    ClassScheduleUpdate,
    SingleRecurrence,
    WeeklyRecurrence,
)


def create_payload(**overrides):
    payload = {
        "name": "Yoga Flow",
        "classTypeRef": "yoga",
        "instructorRef": 7,
        "capacity": 12,
        "durationMinutes": 60,
        "startDate": "2025-01-06",
        "startTime": "09:30",
        "scheduleType": "recurring",
        "daysOfWeek": [1, 3],
        "recurrenceEndDate": "2025-01-31",
    }
    payload.update(overrides)
    return payload


class TestClassScheduleCreate:
    def test_camel_case_payload_builds_weekly_definition(self):
        schedule_in = ClassScheduleCreate.model_validate(create_payload())
        definition = schedule_in.to_definition()

        assert definition.class_type == "yoga"
        assert definition.instructor_id == 7
        assert definition.start_time == time(9, 30)
        assert isinstance(definition.recurrence, WeeklyRecurrence)
        assert definition.recurrence.days_of_week == {DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY}
        assert definition.recurrence.end_date == date(2025, 1, 31)

    def test_single_payload(self):
        schedule_in = ClassScheduleCreate.model_validate(
            create_payload(scheduleType="single", daysOfWeek=None, recurrenceEndDate=None)
        )

        assert isinstance(schedule_in.to_definition().recurrence, SingleRecurrence)

    def test_strings_are_trimmed(self):
        schedule_in = ClassScheduleCreate.model_validate(create_payload(name="  Yoga Flow  "))
        assert schedule_in.name == "Yoga Flow"

    @pytest.mark.parametrize("start_time", ["9:30", "24:00", "09:60", "0930", "09:30:00"])
    def test_start_time_must_be_hh_mm(self, start_time):
        with pytest.raises(ValidationError):
            ClassScheduleCreate.model_validate(create_payload(startTime=start_time))

    @pytest.mark.parametrize("start_date", ["06/01/2025", "2025-1-6", "2025-02-30"])
    def test_start_date_must_be_iso(self, start_date):
        with pytest.raises(ValidationError):
            ClassScheduleCreate.model_validate(create_payload(startDate=start_date))

    def test_recurring_requires_days(self):
        with pytest.raises(ValidationError):
            ClassScheduleCreate.model_validate(create_payload(daysOfWeek=[]))

    def test_single_rejects_recurrence_fields(self):
        with pytest.raises(ValidationError):
            ClassScheduleCreate.model_validate(create_payload(scheduleType="single"))

    def test_end_date_before_start_date(self):
        with pytest.raises(ValidationError):
            ClassScheduleCreate.model_validate(create_payload(recurrenceEndDate="2025-01-05"))

    @pytest.mark.parametrize("field,value", [
        ("capacity", 0),
        ("capacity", 101),
        ("durationMinutes", 10),
        ("durationMinutes", 300),
        ("daysOfWeek", [7]),
        ("name", "Yo"),
    ])
    def test_out_of_range_values(self, field, value):
        with pytest.raises(ValidationError):
            ClassScheduleCreate.model_validate(create_payload(**{field: value}))

    def test_midnight_crossing_detected_when_building_definition(self):
        schedule_in = ClassScheduleCreate.model_validate(create_payload(startTime="23:30", durationMinutes=45))

        with pytest.raises(ValidationError):
            schedule_in.to_definition()


class TestClassScheduleUpdate:
    def _current(self):
        return ClassScheduleCreate.model_validate(create_payload()).to_definition()

    def test_cosmetic_change_keeps_recurrence(self):
        current = self._current()
        updated = ClassScheduleUpdate(name="Yoga Suave").merge_into(current)

        assert updated.name == "Yoga Suave"
        assert updated.recurrence == current.recurrence

    def test_change_days_keeps_end_date(self):
        updated = ClassScheduleUpdate.model_validate({"daysOfWeek": [2, 4]}).merge_into(self._current())

        assert updated.recurrence.days_of_week == {DayOfWeek.TUESDAY, DayOfWeek.THURSDAY}
        assert updated.recurrence.end_date == date(2025, 1, 31)

    def test_renamed_reference_fields(self):
        updated = ClassScheduleUpdate.model_validate(
            {"classTypeRef": "hatha", "instructorRef": 9}
        ).merge_into(self._current())

        assert updated.class_type == "hatha"
        assert updated.instructor_id == 9

    def test_clear_end_date(self):
        updated = ClassScheduleUpdate.model_validate({"recurrenceEndDate": None}).merge_into(self._current())
        assert updated.recurrence.end_date is None

    def test_switch_to_single(self):
        updated = ClassScheduleUpdate(schedule_type=ScheduleType.SINGLE).merge_into(self._current())
        assert isinstance(updated.recurrence, SingleRecurrence)

    def test_switch_to_recurring_without_days_fails(self):
        single = ClassScheduleCreate.model_validate(
            create_payload(scheduleType="single", daysOfWeek=None, recurrenceEndDate=None)
        ).to_definition()

        with pytest.raises(ValueError):
            ClassScheduleUpdate(schedule_type=ScheduleType.RECURRING).merge_into(single)

    def test_days_on_single_template_fails(self):
        single = ClassScheduleCreate.model_validate(
            create_payload(scheduleType="single", daysOfWeek=None, recurrenceEndDate=None)
        ).to_definition()

        with pytest.raises(ValueError):
            ClassScheduleUpdate.model_validate({"daysOfWeek": [1]}).merge_into(single)

    def test_merged_definition_is_revalidated(self):
        with pytest.raises(ValueError):
            ClassScheduleUpdate.model_validate({"startTime": "23:30"}).merge_into(self._current())


class TestClassInstanceResponse:
    def test_roster_cannot_exceed_capacity(self):
        with pytest.raises(ValidationError):
            ClassInstance(
                id=1,
                schedule_template_id=1,
                date=date(2025, 1, 6),
                start_time=time(9, 30),
                end_time=time(10, 30),
                duration_minutes=60,
                capacity=1,
                registered_participants=[1, 2],
                status="scheduled",
                price_share=Decimal("10.00"),
                name="Yoga",
                class_type="yoga",
                instructor_id=1,
                instructor_name="Ayşe Demir",
            )
