from typing import Any, List, Optional
from datetime import date

from fastapi import APIRouter, Body, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_async_db
from app.models.schedule import ClassInstanceStatus
from app.schemas.schedule import ClassInstance, InstanceCancel, InstanceComplete
from app.services.class_instance import instance_lifecycle_service

router = APIRouter()


@router.get("", response_model=List[ClassInstance])
async def read_instances(
    start_date: date = Query(..., description="First day of the range (inclusive)"),
    end_date: date = Query(..., description="Last day of the range (inclusive)"),
    status: Optional[ClassInstanceStatus] = Query(None, description="Only instances in this status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_async_db)
) -> Any:
    """
    List Class Instances

    Returns the instances of every template scheduled between `start_date`
    and `end_date`, ordered by date and start time.

    Raises:
        HTTPException 400: `end_date` is before `start_date`.
    """
    return await instance_lifecycle_service.get_instances(
        db, start_date=start_date, end_date=end_date, status=status, skip=skip, limit=limit
    )


@router.get("/{instance_id}", response_model=ClassInstance)
async def read_instance(
    instance_id: int = Path(..., description="ID of the class instance"),
    db: AsyncSession = Depends(get_async_db)
) -> Any:
    """Get a single class instance."""
    return await instance_lifecycle_service.get_instance(db, instance_id)


@router.post("/{instance_id}/start", response_model=ClassInstance)
async def start_instance(
    instance_id: int = Path(..., description="ID of the class instance"),
    db: AsyncSession = Depends(get_async_db)
) -> Any:
    """
    Start Class Instance

    Moves a scheduled instance to `ongoing`.

    Raises:
        HTTPException 404: Instance not found.
        HTTPException 409: The instance is not in `scheduled`.
    """
    return await instance_lifecycle_service.start(db, instance_id)


@router.post("/{instance_id}/end", response_model=ClassInstance)
async def end_instance(
    instance_id: int = Path(..., description="ID of the class instance"),
    body: Optional[InstanceComplete] = Body(None),
    db: AsyncSession = Depends(get_async_db)
) -> Any:
    """
    End Class Instance

    Moves an ongoing instance to `completed`, optionally recording the
    actual duration in minutes.
    """
    actual_duration = body.actual_duration if body else None
    return await instance_lifecycle_service.complete(db, instance_id, actual_duration=actual_duration)


@router.post("/{instance_id}/cancel", response_model=ClassInstance)
async def cancel_instance(
    instance_id: int = Path(..., description="ID of the class instance"),
    body: Optional[InstanceCancel] = Body(None),
    db: AsyncSession = Depends(get_async_db)
) -> Any:
    """Cancel a scheduled instance. Ongoing or finished classes cannot be cancelled."""
    reason = body.reason if body else None
    return await instance_lifecycle_service.cancel(db, instance_id, reason=reason)
