from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Category(str, Enum):
    PROGRAMMING = "Programming"
    DEVOPS = "DevOps"
    UI_UX = "UI/UX"
    GENERAL = "General"

    @classmethod
    def normalize(cls, value: Any) -> "Category":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        return cls.GENERAL


CATEGORIES = [category.value for category in Category]

# Columns written to the books collection. id and created_at are server-issued.
PERSISTED_FIELDS = ("title", "description", "content", "category", "is_hidden")


class Book(BaseModel):
    """One catalog entry, either a stored row or a built-in sample."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    title: str = ""
    description: str = ""
    category: Category = Category.GENERAL
    content: str = ""
    is_hidden: bool = False
    is_local: bool = Field(default=False, alias="isLocal")
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("book rows need an id")
        return str(value)

    @field_validator("title", "description", "content", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Category:
        return Category.normalize(value)

    @field_validator("is_hidden", "is_local", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value) if value is not None else False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Book":
        """Build a record from a stored row. Stored rows are never samples."""
        data = dict(row)
        data.pop("isLocal", None)
        data["is_local"] = False
        return cls.model_validate(data)

    def to_row(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "category": self.category.value,
            "is_hidden": self.is_hidden,
        }

    def with_changes(self, **changes: Any) -> "Book":
        return self.model_copy(update=changes)


@dataclass
class BookDraft:
    """In-progress editor form."""

    title: str = ""
    description: str = ""
    content: str = ""
    category: str = Category.GENERAL.value

    @classmethod
    def from_book(cls, book: Book) -> "BookDraft":
        return cls(
            title=book.title,
            description=book.description,
            content=book.content,
            category=book.category.value,
        )

    def is_complete(self) -> bool:
        return bool(self.title.strip() and self.content.strip())

    def to_fields(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "category": Category.normalize(self.category).value,
        }


class User(BaseModel):
    id: str
    email: str = ""


class Session(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    user: User

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= datetime.now(timezone.utc)
