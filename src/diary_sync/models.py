"""Data models for diary entries and Notion configuration."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PREVIEW_MAX_LENGTH = 1000
DEFAULT_TITLE = "Untitled"


class Category(str, Enum):
    DIARY = "Diary"
    MEMORY = "Memory"
    EVENT = "Event"
    LETTER = "Letter"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NotionConfig(CamelModel):
    """Per-user Notion integration credentials."""

    api_key: str
    database_id: str


class Entry(CamelModel):
    """An entry as stored in the user's Notion database."""

    id: str = ""
    title: str = DEFAULT_TITLE
    category: Category = Category.DIARY
    date: str = ""
    preview_text: str = ""
    images: list[str] = Field(default_factory=list)
    cover_image: str | None = None
    mood: str | None = None
    weather: str | None = None
    author: str | None = None
    author_id: str | None = None
    archived: bool = False
    last_edited_time: str | None = None


class EntryDraft(CamelModel):
    """Fields accepted when creating an entry.

    ``images`` may mix hosted URLs with embedded ``data:`` payloads; the
    payloads are uploaded before the entry is written.
    """

    title: str | None = None
    content: str | None = None
    category: str | None = Field(default=None, alias="type")
    date: str | None = None
    mood: str | None = None
    weather: str | None = None
    images: list[str] = Field(default_factory=list)
    sender: str | None = None


class EntryPatch(CamelModel):
    """Fields accepted when updating an entry. Unset fields are left alone."""

    title: str | None = None
    content: str | None = None
    date: str | None = None
    mood: str | None = None
    weather: str | None = None


class EntryPage(BaseModel):
    """One page of a listing."""

    items: list[Entry] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: str | None = None


class DatabaseSummary(BaseModel):
    id: str
    title: str
    url: str | None = None
    icon: dict[str, Any] | None = None


class CreateResult(BaseModel):
    page: dict[str, Any]
    entry: Entry
    warning: str | None = None


def today_iso() -> str:
    return date.today().isoformat()


def truncate_preview(text: str | None, max_length: int = PREVIEW_MAX_LENGTH) -> str:
    """Clip preview text to the persisted bound."""
    return (text or "")[:max_length]
