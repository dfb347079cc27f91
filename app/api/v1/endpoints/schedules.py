from typing import Any, List, Optional
from datetime import date

from fastapi import APIRouter, Body, Depends, Path, Query, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_staff_id, get_today
from app.core.config import RegenerationStrategy
from app.db.redis_client import get_redis_client
from app.db.session import get_async_db
from app.schemas.schedule import (
    ClassInstance,
    ClassScheduleCreate,
    ClassScheduleUpdate,
    ScheduleDeletionResult,
    ScheduleGenerationResult,
    ScheduleTemplate,
    ScheduleUpdateResult,
)
from app.services.schedule import schedule_service

router = APIRouter()


@router.get("", response_model=List[ScheduleTemplate])
async def get_schedules(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    active_only: bool = True,
    instructor_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_async_db)
) -> Any:
    """
    List Schedule Templates

    Args:
        skip (int, optional): Number of records to skip for pagination. Defaults to 0.
        limit (int, optional): Maximum number of records to return. Defaults to 100.
        active_only (bool, optional): If true, only returns active templates. Defaults to True.
        instructor_id (int, optional): Only templates taught by this instructor.

    Returns:
        List[ScheduleTemplate]: Templates, newest first.
    """
    return await schedule_service.get_schedules(
        db, active_only=active_only, instructor_id=instructor_id, skip=skip, limit=limit
    )


@router.post("", response_model=ScheduleGenerationResult, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    schedule_in: ClassScheduleCreate = Body(...),
    db: AsyncSession = Depends(get_async_db),
    today: date = Depends(get_today),
    staff_id: Optional[int] = Depends(get_staff_id)
) -> Any:
    """
    Create Schedule Template

    Creates a single or recurring template and materializes every bookable
    class instance it produces, in one transaction.

    Returns:
        ScheduleGenerationResult: The stored template and its instances ordered by date.

    Raises:
        HTTPException 400: Invalid template, instructor, or a recurrence that yields no classes.
        HTTPException 422: Malformed request body.
        HTTPException 503: The template could not be stored; nothing was persisted.
    """
    return await schedule_service.create_schedule(
        db, schedule_in, today=today, created_by=staff_id
    )


@router.get("/{template_id}", response_model=ScheduleTemplate)
async def get_schedule(
    template_id: int = Path(..., description="ID of the schedule template"),
    db: AsyncSession = Depends(get_async_db)
) -> Any:
    return await schedule_service.get_schedule(db, template_id)


@router.put("/{template_id}", response_model=ScheduleUpdateResult)
async def update_schedule(
    template_id: int = Path(..., description="ID of the schedule template"),
    schedule_in: ClassScheduleUpdate = Body(...),
    db: AsyncSession = Depends(get_async_db),
    today: date = Depends(get_today),
    staff_id: Optional[int] = Depends(get_staff_id),
    redis_client: Optional[Redis] = Depends(get_redis_client)
) -> Any:
    """
    Update Schedule Template

    Changing the date, time, duration or recurrence regenerates the
    template's instances in the same transaction. Send `version` to reject
    the write if someone else changed the template first.

    Raises:
        HTTPException 404: Template not found.
        HTTPException 409: Stale version or a concurrent write on the same template.
        HTTPException 503: Write failed; `instance_state` tells which instance set is live.
    """
    return await schedule_service.update_schedule(
        db,
        template_id,
        schedule_in,
        today=today,
        updated_by=staff_id,
        redis_client=redis_client
    )


@router.post("/{template_id}/regenerate", response_model=ScheduleUpdateResult)
async def regenerate_schedule(
    template_id: int = Path(..., description="ID of the schedule template"),
    db: AsyncSession = Depends(get_async_db),
    strategy: Optional[RegenerationStrategy] = Query(None, description="replace or diff; defaults to the configured strategy"),
    today: date = Depends(get_today),
    redis_client: Optional[Redis] = Depends(get_redis_client)
) -> Any:
    """Rebuild the template's instances from its stored definition."""
    return await schedule_service.regenerate_schedule(
        db, template_id, today=today, strategy=strategy, redis_client=redis_client
    )


@router.delete("/{template_id}", response_model=ScheduleDeletionResult)
async def delete_schedule(
    template_id: int = Path(..., description="ID of the schedule template"),
    db: AsyncSession = Depends(get_async_db),
    redis_client: Optional[Redis] = Depends(get_redis_client)
) -> Any:
    """
    Delete Schedule Template

    Removes the template and all of its instances, including past and
    cancelled ones.

    Returns:
        ScheduleDeletionResult: How many instances were removed.
    """
    return await schedule_service.delete_schedule(db, template_id, redis_client=redis_client)


@router.get("/{template_id}/instances", response_model=List[ClassInstance])
async def get_schedule_instances(
    template_id: int = Path(..., description="ID of the schedule template"),
    db: AsyncSession = Depends(get_async_db)
) -> Any:
    return await schedule_service.get_schedule_instances(db, template_id)
