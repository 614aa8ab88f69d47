"""Pydantic schemas for the user directory and permissions."""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class UserLevel(str, Enum):
    """Access level of a user profile."""
    ADMINISTRATOR = "administrator"
    SUPERVISOR = "supervisor"
    OPERATOR = "operator"


class Permission(str, Enum):
    """Capabilities a user profile can be granted."""
    MANAGE_CAPA = "manage_capa"
    MANAGE_INCIDENTS = "manage_incidents"


class UserProfile(BaseModel):
    """A user in the directory."""
    id: UUID
    email: Optional[str] = None
    employee_number: Optional[str] = None
    full_name: Optional[str] = None
    level: Optional[UserLevel] = None
    permissions: Optional[list[str]] = None

    class Config:
        from_attributes = True


class UserPublic(BaseModel):
    """Directory entry safe to list for pickers."""
    id: UUID
    full_name: Optional[str] = None
    email: Optional[str] = None
