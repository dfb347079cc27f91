from typing import Optional
from pydantic import BaseModel, Field

from app.models.staff import StaffRole


class StaffBase(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    role: StaffRole = StaffRole.STAFF
    is_active: bool = True


class StaffCreate(StaffBase):
    pass


class StaffUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[StaffRole] = None
    is_active: Optional[bool] = None


class Staff(StaffBase):
    id: int

    model_config = {"from_attributes": True}
