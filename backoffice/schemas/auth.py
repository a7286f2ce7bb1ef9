"""
Authentication Schemas

Request/response models for authentication endpoints.
"""
from typing import List

from pydantic import EmailStr, Field

from backoffice.models import MemberRole
from backoffice.schemas.base import CamelModel
from backoffice.schemas.organization import OrganizationResponse
from backoffice.schemas.user import UserResponse


class SignupRequest(CamelModel):
    """User registration request."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "ann@example.com",
                "password": "correct horse battery staple",
                "name": "Ann Lee"
            }
        }


class LoginRequest(CamelModel):
    """Login request body."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class AuthResponse(CamelModel):
    user: UserResponse


class UserOrganization(CamelModel):
    organization: OrganizationResponse
    role: MemberRole


class MeResponse(CamelModel):
    user: UserResponse
    organizations: List[UserOrganization]
