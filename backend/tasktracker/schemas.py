from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .clock import as_utc


class CamelModel(BaseModel):
    # wire format is camelCase; Python side keeps snake_case names
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupIn(CamelModel):
    email: str | None = None
    username: str | None = None
    password: str | None = None


class LoginIn(CamelModel):
    email_or_username: str | None = None
    password: str | None = None


class UserOut(CamelModel):
    id: int
    username: str
    email: str
    created_at: datetime | None = None

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class AuthOut(CamelModel):
    token: str
    user: UserOut
    message: str


class MeOut(BaseModel):
    user: UserOut


class MessageOut(BaseModel):
    message: str


class TaskIn(CamelModel):
    title: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    priority: str | None = None  # High|Medium|Low

    @field_validator("due_date", mode="before")
    @classmethod
    def _blank_due_date(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class TaskOut(CamelModel):
    id: int = Field(validation_alias=AliasChoices("id", "_id"), serialization_alias="_id")
    user_id: int = Field(validation_alias=AliasChoices("user_id", "user"), serialization_alias="user")
    title: str
    description: str
    due_date: datetime | None = None
    priority: str
    completed: bool
    completed_at: datetime | None = None
    status: str
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "completed_at", "created_at", "updated_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class StatsOut(CamelModel):
    total: int = 0
    completed: int = 0
    completed_on_time: int = 0
    completed_overdue: int = 0
    active: int = 0
    overdue: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    high_completed: int = 0
    medium_completed: int = 0
    low_completed: int = 0
    completion_rate: int = 0
    on_time_rate: int = 0
