"""Translation between diary entries and Notion page properties."""

from __future__ import annotations

from typing import Any, Callable
from urllib.parse import urlparse

from diary_sync.aliases import (
    DEFAULT_CATEGORY,
    FIELD_ALIASES,
    canonical,
    category_from_tag,
    category_tag,
)
from diary_sync.models import (
    DEFAULT_TITLE,
    Entry,
    EntryDraft,
    EntryPatch,
    today_iso,
    truncate_preview,
)

DEFAULT_AUTHOR = "Partner"


def read_plain_text(items: list[dict[str, Any]] | None) -> str:
    parts: list[str] = []
    for item in items or []:
        pt = item.get("plain_text", "")
        if not pt:
            pt = item.get("text", {}).get("content", "")
        parts.append(pt)
    return "".join(parts)


def to_rich_text(text: str, chunk_size: int = 1800) -> list[dict[str, Any]]:
    text = text or ""
    if not text:
        return [{"type": "text", "text": {"content": ""}}]
    return [
        {"type": "text", "text": {"content": text[start : start + chunk_size]}}
        for start in range(0, len(text), chunk_size)
    ]


def _file_url(item: dict[str, Any]) -> str | None:
    kind = item.get("type")
    if kind == "file":
        return item.get("file", {}).get("url")
    if kind == "external":
        return item.get("external", {}).get("url")
    # Bags written by build_properties before Notion assigns a type.
    return item.get("external", {}).get("url") or item.get("file", {}).get("url")


def _file_name(url: str) -> str:
    name = urlparse(url).path.rsplit("/", 1)[-1] or "image"
    return name[:100]


def extract_cover(files: list[dict[str, Any]] | None) -> str | None:
    """Resolve the first file of a files property to a plain URL."""
    if not files:
        return None
    return _file_url(files[0])


# ---------------------------------------------------------------------------
# Entry -> Notion
# ---------------------------------------------------------------------------

_WRITERS: dict[str, Callable[[Any], dict[str, Any]]] = {
    "title": lambda v: {"title": to_rich_text(v)},
    "category": lambda v: {"select": {"name": category_tag(v)}},
    "date": lambda v: {"date": {"start": v}},
    "preview_text": lambda v: {"rich_text": to_rich_text(truncate_preview(v))},
    "images": lambda v: {
        "files": [
            {"type": "external", "name": _file_name(url), "external": {"url": url}}
            for url in v
        ]
    },
    "mood": lambda v: {"select": {"name": v}},
    "weather": lambda v: {"select": {"name": v}},
    "author": lambda v: {"select": {"name": v}},
    "author_id": lambda v: {"rich_text": to_rich_text(v)},
}


def build_properties(
    values: dict[str, Any],
    *,
    title_alias: str | None = None,
) -> dict[str, Any]:
    """Build a Notion property bag from logical field values.

    Fields that are absent or ``None`` are left out of the bag entirely so a
    PATCH never clears a column the caller did not mention.
    """
    props: dict[str, Any] = {}
    for field, writer in _WRITERS.items():
        value = values.get(field)
        if value is None:
            continue
        key = title_alias if field == "title" and title_alias else canonical(field)
        props[key] = writer(value)
    return props


def draft_values(draft: EntryDraft, *, author_id: str | None = None) -> dict[str, Any]:
    """Logical values for a new entry, with creation defaults applied."""
    return {
        "title": draft.title or DEFAULT_TITLE,
        "category": draft.category or DEFAULT_CATEGORY,
        "date": draft.date or today_iso(),
        "preview_text": draft.content or "",
        "images": list(draft.images),
        "mood": draft.mood or None,
        "weather": draft.weather or None,
        "author": draft.sender or None,
        "author_id": author_id,
    }


def patch_values(patch: EntryPatch) -> dict[str, Any]:
    """Logical values for a partial update; only supplied fields appear."""
    supplied = patch.model_dump(exclude_unset=True, exclude_none=True)
    if "content" in supplied:
        supplied["preview_text"] = supplied.pop("content")
    return supplied


# ---------------------------------------------------------------------------
# Notion -> Entry
# ---------------------------------------------------------------------------


def _prop_title(prop: dict[str, Any]) -> str:
    return read_plain_text(prop.get("title"))


def _prop_text(prop: dict[str, Any]) -> str:
    return read_plain_text(prop.get("rich_text"))


def _prop_select(prop: dict[str, Any]) -> str | None:
    selected = prop.get("select")
    return selected.get("name") if selected else None


def _prop_date(prop: dict[str, Any]) -> str | None:
    value = prop.get("date")
    return value.get("start") if value else None


def _prop_files(prop: dict[str, Any]) -> list[str]:
    urls = (_file_url(item) for item in prop.get("files") or [])
    return [url for url in urls if url]


def _probe(props: dict[str, Any], field: str, reader: Callable[[dict[str, Any]], Any]) -> Any:
    """Return the first non-empty value found under any alias of ``field``."""
    for alias in FIELD_ALIASES[field]:
        prop = props.get(alias)
        if not isinstance(prop, dict):
            continue
        value = reader(prop)
        if value:
            return value
    return None


def entry_from_properties(
    props: dict[str, Any],
    *,
    page_id: str = "",
    default_author: str = DEFAULT_AUTHOR,
) -> Entry:
    images = _probe(props, "images", _prop_files) or []
    return Entry(
        id=page_id,
        title=_probe(props, "title", _prop_title) or DEFAULT_TITLE,
        category=category_from_tag(_probe(props, "category", _prop_select)),
        date=_probe(props, "date", _prop_date) or "",
        preview_text=_probe(props, "preview_text", _prop_text) or "",
        images=images,
        cover_image=images[0] if images else None,
        mood=_probe(props, "mood", _prop_select),
        weather=_probe(props, "weather", _prop_select),
        author=_probe(props, "author", _prop_select) or default_author,
        author_id=_probe(props, "author_id", _prop_text),
    )


def entry_from_page(page: dict[str, Any], *, default_author: str = DEFAULT_AUTHOR) -> Entry:
    entry = entry_from_properties(
        page.get("properties", {}),
        page_id=page.get("id", ""),
        default_author=default_author,
    )
    entry.archived = bool(page.get("archived") or page.get("in_trash"))
    entry.last_edited_time = page.get("last_edited_time")
    return entry
