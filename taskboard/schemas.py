from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


class Health(BaseModel):
    status: str = "ok"


class Version(BaseModel):
    version: str


# === Requests ===


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=320, pattern=EMAIL_PATTERN)


class BoardCreate(BaseModel):
    name: str = Field(min_length=5, max_length=30)
    adminUserId: UUID


class ListCreate(BaseModel):
    name: str = Field(min_length=5, max_length=30)
    boardId: UUID


class CardCreate(BaseModel):
    name: str = Field(min_length=5, max_length=30)
    description: str
    dueDate: Optional[datetime] = None
    listId: UUID
    ownerUserId: UUID

    @field_validator("dueDate", mode="before")
    @classmethod
    def due_date_is_iso_text(cls, value):
        # pydantic would read numbers and digit strings as unix timestamps
        if value is None or isinstance(value, datetime):
            return value
        if not isinstance(value, str) or _is_number(value):
            raise ValueError("dueDate must be an ISO-8601 datetime string")
        return value


class CardMemberCreate(BaseModel):
    cardId: UUID
    userId: UUID


# === Responses ===


class UserOut(BaseModel):
    id: str
    name: str
    email: str


class BoardOut(BaseModel):
    id: str
    name: str


class BoardWithAdminOut(BaseModel):
    id: str
    name: str
    adminUserId: str


class ListOut(BaseModel):
    id: str
    name: str
    boardId: str


class ListSummaryOut(BaseModel):
    id: str
    name: str


class CardCreatedOut(BaseModel):
    cardId: str


class CardOut(BaseModel):
    id: str
    name: str
    description: str
    dueDate: datetime
    isOwner: bool
    ownerName: str


class CardMemberOut(BaseModel):
    cardId: str
    userId: str
    isOwner: bool


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True
