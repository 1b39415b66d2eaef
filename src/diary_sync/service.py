"""Diary entry operations against each user's Notion database."""

from __future__ import annotations

import logging
from typing import Callable

from diary_sync.aliases import canonical, category_tag, resolve_present
from diary_sync.blocks import blocks_to_markdown, markdown_to_blocks
from diary_sync.config import Config
from diary_sync.errors import ValidationError
from diary_sync.fallback import create_with_fallback
from diary_sync.images import ImageStore, resolve_images
from diary_sync.mapping import (
    build_properties,
    draft_values,
    entry_from_page,
    patch_values,
    read_plain_text,
)
from diary_sync.models import (
    Category,
    CreateResult,
    DatabaseSummary,
    Entry,
    EntryDraft,
    EntryPage,
    EntryPatch,
)
from diary_sync.notion import NotionClient
from diary_sync.profiles import ProfileStore, resolve_config
from diary_sync.schema import SchemaReport, ensure_schema

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

NotionFactory = Callable[[str, str | None], NotionClient]


class DiaryService:
    """Stateless entry operations; every call re-resolves the user's config.

    Callers pass an already verified uid. The HTTP layer verifies the
    identity token before anything here runs.
    """

    def __init__(
        self,
        config: Config,
        *,
        profiles: ProfileStore,
        images: ImageStore | None = None,
        notion_factory: NotionFactory | None = None,
    ) -> None:
        self.config = config
        self.profiles = profiles
        self.images = images
        self._notion_factory = notion_factory or self._make_client

    def _make_client(self, token: str, database_id: str | None = None) -> NotionClient:
        return NotionClient(
            token,
            database_id,
            api_base=self.config.notion_api_base,
            notion_version=self.config.notion_version,
            timeout=self.config.notion_timeout,
        )

    async def _client_for(self, user_id: str) -> NotionClient:
        notion_config = await resolve_config(
            self.profiles, user_id, config_field=self.config.profile_config_field
        )
        return self._notion_factory(notion_config.api_key, notion_config.database_id)

    def _to_entry(self, page: dict) -> Entry:
        return entry_from_page(page, default_author=self.config.default_author)

    async def list_entries(
        self,
        caller_id: str,
        *,
        target_user_id: str | None = None,
        category: str | None = None,
        cursor: str | None = None,
        page_size: int | None = None,
    ) -> EntryPage:
        """List entries newest first, one page at a time."""
        if category:
            try:
                Category(category)
            except ValueError:
                raise ValidationError(f"Unknown category: {category!r}") from None

        client = await self._client_for(target_user_id or caller_id)
        schema = (await client.retrieve_database()).get("properties", {})

        sorts = None
        date_key = resolve_present("date", schema)
        if date_key:
            sorts = [{"property": date_key, "direction": "descending"}]
        filter_ = None
        if category:
            category_key = resolve_present("category", schema) or canonical("category")
            filter_ = {"property": category_key, "select": {"equals": category_tag(category)}}

        size = max(1, min(page_size or self.config.page_size, MAX_PAGE_SIZE))
        data = await client.query_database(
            page_size=size,
            start_cursor=cursor if isinstance(cursor, str) and cursor else None,
            sorts=sorts,
            filter_=filter_,
        )
        items = [
            self._to_entry(page)
            for page in data.get("results", [])
            if page.get("object", "page") == "page"
            and not (page.get("archived") or page.get("in_trash"))
        ]
        return EntryPage(
            items=items,
            has_more=bool(data.get("has_more")),
            next_cursor=data.get("next_cursor"),
        )

    async def get_entry(self, caller_id: str, page_id: str | None) -> tuple[Entry, str]:
        """Return one entry together with its full body as markdown."""
        if not page_id:
            raise ValidationError("Page ID is required.")
        client = await self._client_for(caller_id)
        page = await client.retrieve_page(page_id)
        blocks = await client.fetch_blocks_recursive(page_id)
        return self._to_entry(page), blocks_to_markdown(blocks)

    async def create_entry(self, caller_id: str, draft: EntryDraft) -> CreateResult:
        client = await self._client_for(caller_id)

        images = await resolve_images(
            self.images, draft.images, user_id=caller_id, prefix=self.config.image_prefix
        )
        if len(images) < len(draft.images):
            logger.warning(
                "Creating entry with %d of %d images", len(images), len(draft.images)
            )
        draft = draft.model_copy(update={"images": images})

        outcome = await create_with_fallback(
            client,
            draft_values(draft, author_id=caller_id),
            markdown_to_blocks(draft.content),
        )
        return CreateResult(
            page=outcome.page,
            entry=self._to_entry(outcome.page),
            warning=outcome.warning,
        )

    async def update_entry(
        self, caller_id: str, page_id: str | None, patch: EntryPatch
    ) -> dict:
        """Change only the fields present in ``patch``."""
        if not page_id:
            raise ValidationError("Page ID is required.")
        client = await self._client_for(caller_id)
        page = await client.update_page(page_id, build_properties(patch_values(patch)))
        if patch.content is not None:
            await client.replace_page_body(page_id, markdown_to_blocks(patch.content))
        return page

    async def delete_entry(self, caller_id: str, page_id: str | None) -> dict:
        """Archive an entry; it stays in Notion but drops out of listings."""
        if not page_id:
            raise ValidationError("Page ID is required.")
        client = await self._client_for(caller_id)
        return await client.archive_page(page_id)

    async def search_databases(self, api_key: str | None) -> list[DatabaseSummary]:
        if not api_key:
            raise ValidationError("API Key is required.")
        client = self._notion_factory(api_key, None)
        return [
            DatabaseSummary(
                id=db["id"],
                title=read_plain_text(db.get("title")) or "Untitled Database",
                url=db.get("url"),
                icon=db.get("icon"),
            )
            for db in await client.search_databases()
        ]

    async def ensure_schema(
        self, api_key: str | None, database_id: str | None
    ) -> SchemaReport:
        if not api_key or not database_id:
            raise ValidationError("API Key and Database ID are required.")
        return await ensure_schema(self._notion_factory(api_key, database_id))
