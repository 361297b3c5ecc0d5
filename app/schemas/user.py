"""User-related schemas."""

from enum import Enum

from pydantic import BaseModel


class UserRole(str, Enum):
    STUDENT = "student"
    TUTOR = "tutor"


class UserProfile(BaseModel):
    """Public profile as supplied by the profile store."""

    id: str
    name: str
    role: UserRole


class CurrentUser(BaseModel):
    """Acting party resolved by the identity provider."""

    id: str
    role: UserRole
