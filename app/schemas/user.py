"""Pydantic schemas and commands for user API payloads."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel

from app.core.validation import RequestModel
from app.core.validation import rules


@dataclass(frozen=True)
class UserCreateCommand:
    username: str
    email: str
    password: str = field(repr=False)
    date_of_birth: datetime


@dataclass(frozen=True)
class UserUpdateCommand:
    """Patch of user fields; ``None`` means unchanged."""

    username: str | None = None
    email: str | None = None
    password: str | None = field(default=None, repr=False)
    date_of_birth: datetime | None = None
    first_name: str | None = None
    last_name: str | None = None
    location: str | None = None
    bio: str | None = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.username,
                self.email,
                self.password,
                self.date_of_birth,
                self.first_name,
                self.last_name,
                self.location,
                self.bio,
            )
        )


@dataclass(frozen=True)
class LoginCommand:
    email: str
    password: str = field(repr=False)


class UserCreateRequest(RequestModel):
    """Payload to register a user."""

    username: Annotated[str | None, rules("required", "min=3", "max=30", "username")] = None
    email: Annotated[str | None, rules("required", "max=254", "email")] = None
    password: Annotated[str | None, rules("required", "min=16", "max=72", "password")] = None
    date_of_birth: Annotated[
        datetime | None,
        Field(alias="dateOfBirth"),
        rules("required", "dateofbirth"),
    ] = None

    def to_command(self) -> UserCreateCommand:
        return UserCreateCommand(
            username=self.username or "",
            email=self.email or "",
            password=self.password or "",
            date_of_birth=self.date_of_birth,
        )


class UserUpdateRequest(RequestModel):
    """Payload to patch a user; only present fields are validated."""

    username: Annotated[str | None, rules("min=3", "max=30", "username")] = None
    email: Annotated[str | None, rules("max=254", "email")] = None
    password: Annotated[str | None, rules("min=16", "max=72", "password")] = None
    date_of_birth: Annotated[datetime | None, Field(alias="dateOfBirth"), rules("dateofbirth")] = None
    first_name: Annotated[str | None, Field(alias="firstName"), rules("max=70", "name")] = None
    last_name: Annotated[str | None, Field(alias="lastName"), rules("max=70", "name")] = None
    location: Annotated[str | None, rules("max=100")] = None
    bio: Annotated[str | None, rules("max=500")] = None

    def to_command(self) -> UserUpdateCommand:
        return UserUpdateCommand(
            username=self.username,
            email=self.email,
            password=self.password,
            date_of_birth=self.date_of_birth,
            first_name=self.first_name,
            last_name=self.last_name,
            location=self.location,
            bio=self.bio,
        )


class LoginRequest(RequestModel):
    """Credentials for a login attempt."""

    email: Annotated[str | None, rules("required", "max=254")] = None
    password: Annotated[str | None, rules("required", "max=72")] = None

    def to_command(self) -> LoginCommand:
        return LoginCommand(email=self.email or "", password=self.password or "")


REQUEST_MODELS = (UserCreateRequest, UserUpdateRequest, LoginRequest)


class UserRead(BaseModel):
    """User response payload."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)

    id: UUID
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    location: str | None = None
    date_of_birth: datetime
    is_verified: bool
    profile_picture_asset_id: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None
    last_online: datetime | None = None
