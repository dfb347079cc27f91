"""
Tests de los repositorios async de templates e instancias.
"""
from datetime import date, time, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError

from app.models.schedule import ClassInstance, ClassInstanceStatus, ScheduleType
from app.repositories.async_schedule import (
    async_class_instance_repository,
    async_schedule_template_repository,
)


@pytest_asyncio.fixture
async def template(db, trainer):
    created = await async_schedule_template_repository.create(
        db,
        obj_in={
            "name": "Spinning",
            "class_type": "cycling",
            "instructor_id": trainer.id,
            "capacity": 8,
            "duration_minutes": 45,
            "start_date": date(2025, 1, 6),
            "start_time": time(7, 0),
            "schedule_type": ScheduleType.RECURRING,
            "days_of_week": [1],
            "version": 1,
        }
    )
    await db.commit()
    return created


def make_instance(template_id: int, day: date, **overrides) -> ClassInstance:
    data = dict(
        schedule_template_id=template_id,
        date=day,
        start_time=time(7, 0),
        end_time=time(7, 45),
        duration_minutes=45,
        capacity=8,
        registered_participants=[],
        waitlist=[],
        status=ClassInstanceStatus.SCHEDULED,
        name="Spinning",
        class_type="cycling",
        instructor_id=1,
        instructor_name="Ayşe Demir",
    )
    data.update(overrides)
    return ClassInstance(**data)


class TestTemplateRepository:
    @pytest.mark.asyncio
    async def test_create_ignores_unknown_fields(self, db, trainer):
        created = await async_schedule_template_repository.create(
            db,
            obj_in={
                "name": "Box",
                "class_type": "boxing",
                "instructor_id": trainer.id,
                "capacity": 4,
                "duration_minutes": 30,
                "start_date": date(2025, 1, 6),
                "start_time": time(8, 0),
                "schedule_type": ScheduleType.SINGLE,
                "not_a_column": "ignored",
            }
        )

        assert created.id is not None
        assert created.version == 1
        assert created.is_active is True

    @pytest.mark.asyncio
    async def test_bump_version_is_check_and_set(self, db, template):
        assert await async_schedule_template_repository.bump_version(
            db, template_id=template.id, expected_version=1
        ) is True
        assert await async_schedule_template_repository.bump_version(
            db, template_id=template.id, expected_version=1
        ) is False
        await db.commit()

        stored = await async_schedule_template_repository.get(db, id=template.id)
        assert stored.version == 2


class TestInstanceRepository:
    @pytest.mark.asyncio
    async def test_add_in_batches_writes_every_chunk(self, db, template):
        days = [date(2025, 1, 6) + timedelta(days=i) for i in range(8)]
        instances = [make_instance(template.id, d) for d in days]

        written = await async_class_instance_repository.add_in_batches(db, instances=instances, batch_size=3)
        await db.commit()

        assert len(written) == 8
        assert all(i.id is not None for i in written)
        assert len(await async_class_instance_repository.get_by_template(db, template_id=template.id)) == 8

    @pytest.mark.asyncio
    async def test_duplicate_slot_violates_unique_constraint(self, db, template):
        db.add(make_instance(template.id, date(2025, 1, 6)))
        await db.flush()
        db.add(make_instance(template.id, date(2025, 1, 6)))

        with pytest.raises(IntegrityError):
            await db.flush()
        await db.rollback()

    @pytest.mark.asyncio
    async def test_delete_by_template_returns_count(self, db, template):
        await async_class_instance_repository.add_in_batches(
            db,
            instances=[make_instance(template.id, date(2025, 1, 6) + timedelta(weeks=i)) for i in range(4)],
            batch_size=10
        )
        await db.commit()

        deleted = await async_class_instance_repository.delete_by_template(db, template_id=template.id)
        await db.commit()

        assert deleted == 4
        assert await async_class_instance_repository.get_by_template(db, template_id=template.id) == []

    @pytest.mark.asyncio
    async def test_delete_by_ids_with_empty_list(self, db):
        assert await async_class_instance_repository.delete_by_ids(db, instance_ids=[]) == 0

    @pytest.mark.asyncio
    async def test_get_by_date_range_filters_status(self, db, template):
        await async_class_instance_repository.add_in_batches(
            db,
            instances=[
                make_instance(template.id, date(2025, 1, 6)),
                make_instance(template.id, date(2025, 1, 13), status=ClassInstanceStatus.CANCELLED),
                make_instance(template.id, date(2025, 2, 3)),
            ],
            batch_size=10
        )
        await db.commit()

        january = await async_class_instance_repository.get_by_date_range(
            db, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31)
        )
        scheduled = await async_class_instance_repository.get_by_date_range(
            db, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31), status=ClassInstanceStatus.SCHEDULED
        )

        assert [i.date for i in january] == [date(2025, 1, 6), date(2025, 1, 13)]
        assert [i.date for i in scheduled] == [date(2025, 1, 6)]

    @pytest.mark.asyncio
    async def test_transition_status_only_from_expected_state(self, db, template):
        instance = make_instance(template.id, date(2025, 1, 6))
        db.add(instance)
        await db.commit()

        assert await async_class_instance_repository.transition_status(
            db,
            instance_id=instance.id,
            from_status=ClassInstanceStatus.SCHEDULED,
            to_status=ClassInstanceStatus.CANCELLED,
            extra_values={"cancellation_reason": "Festivo"}
        ) is True
        assert await async_class_instance_repository.transition_status(
            db,
            instance_id=instance.id,
            from_status=ClassInstanceStatus.SCHEDULED,
            to_status=ClassInstanceStatus.ONGOING
        ) is False
        await db.commit()

        stored = await async_class_instance_repository.get_current(db, instance_id=instance.id)
        assert stored is instance
        assert stored.status == ClassInstanceStatus.CANCELLED
        assert stored.cancellation_reason == "Festivo"

    @pytest.mark.asyncio
    async def test_failed_transition_leaves_loaded_instance_untouched(self, db, template, session_factory):
        instance = make_instance(template.id, date(2025, 1, 6))
        db.add(instance)
        await db.commit()

        # Otra sesión cancela la clase mientras esta sigue viendo `scheduled`
        async with session_factory() as other:
            await async_class_instance_repository.transition_status(
                other,
                instance_id=instance.id,
                from_status=ClassInstanceStatus.SCHEDULED,
                to_status=ClassInstanceStatus.CANCELLED
            )
            await other.commit()

        applied = await async_class_instance_repository.transition_status(
            db,
            instance_id=instance.id,
            from_status=ClassInstanceStatus.SCHEDULED,
            to_status=ClassInstanceStatus.ONGOING
        )

        assert applied is False
        assert instance.status == ClassInstanceStatus.SCHEDULED
        current = await async_class_instance_repository.get_current(db, instance_id=instance.id)
        assert current.status == ClassInstanceStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_get_current_of_missing_instance(self, db):
        assert await async_class_instance_repository.get_current(db, instance_id=999) is None
