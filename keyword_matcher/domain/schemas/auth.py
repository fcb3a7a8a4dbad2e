"""Pydantic schemas for User and Auth."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=6)
    organization: Optional[str] = None
    job_title: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    organization: Optional[str] = None
    job_title: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: str
    organization: Optional[str] = None
    job_title: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
