"""Property naming tables for the Notion diary database.

Databases created by different app generations (and different Notion UI
languages) name the same column differently. Every logical field lists
its physical names in priority order; the first name is the one written.
"""

from __future__ import annotations

from typing import Any

from diary_sync.models import Category

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "title": ("이름", "Name", "title"),
    "category": ("dear23_카테고리", "구분"),
    "date": ("dear23_날짜", "Date", "날짜", "date"),
    "preview_text": ("dear23_내용미리보기", "내용미리보기"),
    "images": ("dear23_대표이미지", "대표이미지"),
    "mood": ("dear23_기분", "기분"),
    "weather": ("dear23_날씨", "날씨"),
    "author": ("작성자",),
    "author_id": ("dear23_작성자ID",),
}

# Dropped by the last-resort create attempt.
OPTIONAL_FIELDS = ("mood", "weather", "author", "author_id")

CATEGORY_TAGS: dict[Category, str] = {
    Category.DIARY: "일기",
    Category.MEMORY: "추억",
    Category.EVENT: "일정",
    Category.LETTER: "편지",
}
DEFAULT_CATEGORY = Category.DIARY

MOOD_OPTIONS = (("행복", "yellow"), ("슬픔", "blue"), ("화남", "red"), ("보통", "gray"))
WEATHER_OPTIONS = (("맑음", "orange"), ("흐림", "gray"), ("비", "blue"), ("눈", "default"))
CATEGORY_COLORS = {"일기": "blue", "일정": "green", "편지": "pink", "추억": "yellow"}


def canonical(field: str) -> str:
    return FIELD_ALIASES[field][0]


def category_tag(value: Category | str | None) -> str:
    """Map a category (enum or name) onto its localized tag."""
    try:
        category = Category(value)
    except ValueError:
        category = DEFAULT_CATEGORY
    return CATEGORY_TAGS[category]


def category_from_tag(tag: str | None) -> Category:
    for category, name in CATEGORY_TAGS.items():
        if name == tag:
            return category
    return DEFAULT_CATEGORY


def resolve_present(field: str, schema: dict[str, Any]) -> str | None:
    """Return the first alias of ``field`` that exists in a database schema."""
    for alias in FIELD_ALIASES[field]:
        if alias in schema:
            return alias
    return None


def _select(options: tuple[tuple[str, str], ...]) -> dict[str, Any]:
    return {"select": {"options": [{"name": n, "color": c} for n, c in options]}}


# Columns the app expects; select columns are seeded with their options.
REQUIRED_PROPERTIES: dict[str, dict[str, Any]] = {
    canonical("category"): _select(tuple(CATEGORY_COLORS.items())),
    canonical("date"): {"date": {}},
    canonical("preview_text"): {"rich_text": {}},
    canonical("images"): {"files": {}},
    canonical("mood"): _select(MOOD_OPTIONS),
    canonical("weather"): _select(WEATHER_OPTIONS),
    canonical("author"): {"select": {}},
    canonical("author_id"): {"rich_text": {}},
    "나만보기": {"checkbox": {}},
    "좋아요": {"checkbox": {}},
    "상대방한마디": {"rich_text": {}},
    "함께하기": {"checkbox": {}},
    "중요": {"checkbox": {}},
    "장소": {"rich_text": {}},
    "읽음": {"checkbox": {}},
    "개봉일": {"date": {}},
    "작성일시": {"created_time": {}},
    "수정일시": {"last_edited_time": {}},
}
