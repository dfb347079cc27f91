"""
Tests del expansor de recurrencias (cálculo puro, sin base de datos).
"""
from datetime import date, time, timedelta
from decimal import Decimal
import logging

import pytest
from pydantic import ValidationError

from app.core.config import OccurrenceCapPolicy
from app.models.schedule import DayOfWeek
from app.schemas.schedule import ScheduleDefinition
from app.services.exceptions import InvalidRecurrenceError, OccurrenceCapExceededError
from app.services.recurrence import (
    OccurrenceLimits,
    expand_schedule,
    recurrence_window_end,
    split_price,
)

TODAY = date(2025, 1, 1)  # miércoles
LIMITS = OccurrenceLimits(max_occurrences=500, horizon_months=3)


def make_definition(**overrides) -> ScheduleDefinition:
    data = {
        "name": "Pilates Mat",
        "class_type": "pilates",
        "instructor_id": 1,
        "capacity": 10,
        "duration_minutes": 60,
        "start_date": date(2025, 1, 6),
        "start_time": time(9, 30),
        "recurrence": {"schedule_type": "recurring", "days_of_week": [1, 3], "end_date": date(2025, 1, 31)},
        "total_price": None,
    }
    data.update(overrides)
    return ScheduleDefinition.model_validate(data)


def weekly(days, end_date=None):
    return {"schedule_type": "recurring", "days_of_week": days, "end_date": end_date}


class TestDayOfWeek:
    def test_sunday_is_zero(self):
        assert DayOfWeek.from_date(date(2025, 1, 5)) == DayOfWeek.SUNDAY
        assert DayOfWeek.from_date(date(2025, 1, 6)) == DayOfWeek.MONDAY
        assert DayOfWeek.from_date(date(2025, 1, 11)) == DayOfWeek.SATURDAY


class TestSingleExpansion:
    def test_single_yields_exactly_start_date(self):
        definition = make_definition(
            recurrence={"schedule_type": "single"},
            start_date=date(2025, 2, 14),
            total_price=Decimal("25.00"),
        )

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)

        assert len(occurrences) == 1
        assert occurrences[0].date == date(2025, 2, 14)
        assert occurrences[0].start_time == time(9, 30)
        assert occurrences[0].end_time == time(10, 30)
        assert occurrences[0].price_share == Decimal("25.00")

    def test_single_in_the_past_is_still_materialized(self):
        definition = make_definition(recurrence={"schedule_type": "single"}, start_date=date(2024, 12, 1))

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)

        assert [o.date for o in occurrences] == [date(2024, 12, 1)]


class TestWeeklyExpansion:
    def test_monday_wednesday_until_end_date(self):
        occurrences = expand_schedule(make_definition(), today=TODAY, limits=LIMITS)

        assert [o.date.day for o in occurrences] == [6, 8, 13, 15, 20, 22, 27, 29]
        assert all(o.start_time == time(9, 30) and o.end_time == time(10, 30) for o in occurrences)

    def test_evening_class_from_new_year_monday(self):
        definition = make_definition(
            start_date=date(2024, 1, 1),
            start_time=time(18, 0),
            duration_minutes=60,
            recurrence=weekly([1, 3], date(2024, 1, 15)),
        )

        occurrences = expand_schedule(definition, today=date(2024, 1, 1), limits=LIMITS)

        assert [o.date for o in occurrences] == [
            date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 8), date(2024, 1, 10), date(2024, 1, 15)
        ]
        assert {o.end_time for o in occurrences} == {time(19, 0)}

    def test_dates_strictly_increasing_and_on_selected_days(self):
        definition = make_definition(recurrence=weekly([0, 2, 5]))

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)
        dates = [o.date for o in occurrences]

        assert dates == sorted(set(dates))
        assert {DayOfWeek.from_date(d) for d in dates} <= {DayOfWeek.SUNDAY, DayOfWeek.TUESDAY, DayOfWeek.FRIDAY}

    def test_end_date_is_inclusive(self):
        definition = make_definition(recurrence=weekly([1], date(2025, 1, 20)))

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)

        assert occurrences[-1].date == date(2025, 1, 20)

    def test_start_date_off_pattern_is_skipped(self):
        # 2025-01-07 es martes
        definition = make_definition(start_date=date(2025, 1, 7), recurrence=weekly([1], date(2025, 1, 20)))

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)

        assert [o.date for o in occurrences] == [date(2025, 1, 13), date(2025, 1, 20)]

    def test_past_start_date_included_but_intermediate_past_dates_skipped(self):
        # Lunes 16/12/2024 en el pasado: se incluye; los lunes 23 y 30 no
        definition = make_definition(start_date=date(2024, 12, 16), recurrence=weekly([1], date(2025, 1, 20)))

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)

        assert [o.date for o in occurrences] == [
            date(2024, 12, 16),
            date(2025, 1, 6),
            date(2025, 1, 13),
            date(2025, 1, 20),
        ]

    def test_start_date_is_today_appears_once(self):
        definition = make_definition(start_date=TODAY, recurrence=weekly([3], date(2025, 1, 15)))

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)

        assert [o.date for o in occurrences] == [date(2025, 1, 1), date(2025, 1, 8), date(2025, 1, 15)]

    def test_no_end_date_uses_three_month_horizon(self):
        definition = make_definition(recurrence=weekly([1]))

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)

        assert recurrence_window_end(definition, LIMITS) == date(2025, 4, 6)
        assert len(occurrences) == 13
        assert occurrences[-1].date == date(2025, 3, 31)

    def test_expansion_is_deterministic(self):
        definition = make_definition(recurrence=weekly([1, 3, 5]))

        assert expand_schedule(definition, today=TODAY, limits=LIMITS) == \
            expand_schedule(definition, today=TODAY, limits=LIMITS)

    def test_no_matching_day_in_window_raises(self):
        # Del lunes 6 al viernes 10 no hay ningún domingo
        definition = make_definition(recurrence=weekly([0], date(2025, 1, 10)))

        with pytest.raises(InvalidRecurrenceError):
            expand_schedule(definition, today=TODAY, limits=LIMITS)

    def test_window_entirely_in_the_past_raises(self):
        definition = make_definition(start_date=date(2024, 11, 5), recurrence=weekly([1], date(2024, 12, 20)))

        with pytest.raises(InvalidRecurrenceError):
            expand_schedule(definition, today=TODAY, limits=LIMITS)


class TestOccurrenceCap:
    def test_truncate_policy_keeps_first_occurrences(self, caplog):
        definition = make_definition(recurrence=weekly([0, 1, 2, 3, 4, 5, 6]))
        limits = OccurrenceLimits(max_occurrences=5, horizon_months=3, cap_policy=OccurrenceCapPolicy.TRUNCATE)

        with caplog.at_level(logging.WARNING):
            occurrences = expand_schedule(definition, today=TODAY, limits=limits)

        assert [o.date for o in occurrences] == [date(2025, 1, 6) + timedelta(days=i) for i in range(5)]
        assert "truncada" in caplog.text

    def test_reject_policy_raises(self):
        definition = make_definition(recurrence=weekly([0, 1, 2, 3, 4, 5, 6]))
        limits = OccurrenceLimits(max_occurrences=5, horizon_months=3, cap_policy=OccurrenceCapPolicy.REJECT)

        with pytest.raises(OccurrenceCapExceededError) as exc_info:
            expand_schedule(definition, today=TODAY, limits=limits)
        assert exc_info.value.max_occurrences == 5

    def test_exactly_at_cap_is_not_truncated(self):
        definition = make_definition(recurrence=weekly([1], date(2025, 1, 20)))
        limits = OccurrenceLimits(max_occurrences=3, horizon_months=3, cap_policy=OccurrenceCapPolicy.REJECT)

        assert len(expand_schedule(definition, today=TODAY, limits=limits)) == 3


class TestPriceShare:
    def test_total_price_split_evenly(self):
        definition = make_definition(total_price=Decimal("80.00"))

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)

        assert {o.price_share for o in occurrences} == {Decimal("10.00")}

    def test_rounds_half_up_to_cents(self):
        assert split_price(Decimal("100.00"), 3) == Decimal("33.33")
        assert split_price(Decimal("0.05"), 2) == Decimal("0.03")

    def test_no_price(self):
        assert split_price(None, 4) is None

    def test_seven_classes_of_a_120_package(self):
        # lunes/miércoles del 6 al 27 de enero: 7 clases
        definition = make_definition(
            recurrence=weekly([1, 3], date(2025, 1, 27)), total_price=Decimal("120.00")
        )

        occurrences = expand_schedule(definition, today=TODAY, limits=LIMITS)
        shares = [o.price_share for o in occurrences]

        assert len(occurrences) == 7
        assert set(shares) == {Decimal("17.14")}
        assert abs(sum(shares) - Decimal("120.00")) <= (len(shares) - 1) * Decimal("0.01")

    def test_rounding_loss_is_below_one_cent_per_extra_class(self):
        totals = ["0.01", "0.05", "1.00", "19.99", "99.99", "120.00", "333.33", "1000.00"]
        for total in map(Decimal, totals):
            for count in range(1, 60):
                share = split_price(total, count)
                assert share == share.quantize(Decimal("0.01"))
                assert abs(share * count - total) <= (count - 1) * Decimal("0.01"), (total, count)


class TestDefinitionInvariants:
    def test_session_crossing_midnight_rejected(self):
        with pytest.raises(ValidationError):
            make_definition(start_time=time(23, 0), duration_minutes=60)

    def test_session_ending_before_midnight_accepted(self):
        definition = make_definition(start_time=time(22, 30), duration_minutes=60)
        assert definition.end_time == time(23, 30)

    def test_end_date_must_follow_start_date(self):
        with pytest.raises(ValidationError):
            make_definition(recurrence=weekly([1], date(2025, 1, 6)))

    def test_empty_day_set_rejected(self):
        with pytest.raises(ValidationError):
            make_definition(recurrence=weekly([]))

    @pytest.mark.parametrize("duration", [14, 241])
    def test_duration_out_of_range(self, duration):
        with pytest.raises(ValidationError):
            make_definition(duration_minutes=duration)
