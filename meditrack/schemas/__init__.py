from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any

from meditrack.constants import Role

# -------------------- Auth / Staff Schemas --------------------


class LoginIn(BaseModel):
    email: str
    password: str


class RegisterIn(BaseModel):
    email: str
    password: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    # validated by the service so an unknown role is a 400, not a 422
    role: str = Field(..., description="Admin|Doctor|Nurse|Receptionist")


class UpdatePasswordIn(BaseModel):
    currentPassword: str
    newPassword: str


class StaffOut(BaseModel):
    """Public staff fields; password_hash is never part of any payload."""

    id: Any
    email: str
    first_name: str
    last_name: str
    role: Role

    class Config:
        from_attributes = True


class StaffProfileOut(StaffOut):
    is_active: bool
    created_at: datetime
    updated_at: datetime


class LoginOut(BaseModel):
    token: str
    staff: StaffOut


class MessageOut(BaseModel):
    message: str
