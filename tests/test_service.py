"""Tests for DiaryService against the in-memory Notion stand-in."""

from __future__ import annotations

import base64
from datetime import date

import httpx
import pytest

from diary_sync.errors import ConfigNotFoundError, IncompleteConfigError, ValidationError
from diary_sync.models import Category, EntryDraft, EntryPatch
from diary_sync.notion import NotionClient
from diary_sync.service import DiaryService

PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()


async def _create(service, uid: str = "alice", **fields):
    return await service.create_entry(uid, EntryDraft.model_validate(fields))


class TestCreate:
    @pytest.mark.asyncio
    async def test_defaults_for_diary_without_date(self, service, notion):
        result = await _create(service, type="Diary", content="hello")

        assert result.warning is None
        props = notion.create_calls()[0]
        assert props["dear23_날짜"] == {"date": {"start": date.today().isoformat()}}
        assert props["dear23_카테고리"] == {"select": {"name": "일기"}}
        assert props["dear23_작성자ID"]["rich_text"][0]["text"]["content"] == "alice"
        assert result.entry.title == "Untitled"
        assert result.entry.category == Category.DIARY

    @pytest.mark.asyncio
    async def test_uses_caller_database(self, service, notion):
        await _create(service, "bob", title="From Bob")
        assert notion.clients == [("secret_bob", "db_bob")]

    @pytest.mark.asyncio
    async def test_content_becomes_page_body(self, service, notion):
        result = await _create(service, title="Letter", type="Letter", content="# Dear you\n\nSee you soon.")

        body = notion.bodies[result.page["id"]]
        assert [block["type"] for block in body] == ["heading_1", "paragraph"]

    @pytest.mark.asyncio
    async def test_embedded_images_are_uploaded(self, service, notion, image_store):
        result = await _create(
            service,
            title="Trip",
            images=[PNG_DATA_URL, "https://cdn.test/already-hosted.jpg"],
        )

        assert len(image_store.stored_objects) == 1
        path = next(iter(image_store.stored_objects))
        assert path.startswith("diary_images/alice/")
        assert path.endswith("_0.png")
        assert result.entry.images == [
            f"https://example.test/storage/{path}",
            "https://cdn.test/already-hosted.jpg",
        ]
        assert result.entry.cover_image == f"https://example.test/storage/{path}"

    @pytest.mark.asyncio
    async def test_failed_upload_does_not_block_create(self, service, notion, image_store):
        image_store.fail_paths = {"_0.png"}
        result = await _create(service, title="Trip", images=[PNG_DATA_URL, PNG_DATA_URL])

        assert len(result.entry.images) == 1
        assert result.entry.images[0].endswith("_1.png")
        assert len(notion.pages) == 1

    @pytest.mark.asyncio
    async def test_fallback_warning_is_returned(self, service, notion):
        notion.reject_optional = True
        result = await _create(service, title="Picnic", mood="행복")
        assert result.warning is not None
        assert result.entry.mood is None


class TestList:
    @pytest.mark.asyncio
    async def test_lists_newest_first(self, service):
        await _create(service, title="old", date="2026-01-01")
        await _create(service, title="new", date="2026-03-01")
        await _create(service, title="mid", date="2026-02-01")

        page = await service.list_entries("alice")
        assert [e.title for e in page.items] == ["new", "mid", "old"]
        assert page.has_more is False
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_target_user(self, service, notion):
        await service.list_entries("alice", target_user_id="bob")
        assert notion.clients[-1] == ("secret_bob", "db_bob")

    @pytest.mark.asyncio
    async def test_category_filter(self, service, notion):
        await _create(service, title="a memory", type="Memory")
        await _create(service, title="a diary", type="Diary")

        page = await service.list_entries("alice", category="Memory")

        assert [e.title for e in page.items] == ["a memory"]
        query = [c for c in notion.calls if c[0] == "query_database"][-1][1]
        assert query["filter"] == {"property": "dear23_카테고리", "select": {"equals": "추억"}}
        assert query["sorts"] == [{"property": "dear23_날짜", "direction": "descending"}]

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, service, notion):
        with pytest.raises(ValidationError):
            await service.list_entries("alice", category="Poem")
        assert notion.calls == []

    @pytest.mark.asyncio
    async def test_pagination(self, service):
        for day in range(1, 4):
            await _create(service, title=f"day {day}", date=f"2026-01-0{day}")

        first = await service.list_entries("alice", page_size=2)
        assert first.has_more is True
        second = await service.list_entries("alice", page_size=2, cursor=first.next_cursor)
        assert [e.title for e in second.items] == ["day 1"]
        assert second.has_more is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("requested, sent", [(0, 20), (500, 100), (-3, 1), (None, 20)])
    async def test_page_size_clamped(self, service, notion, requested, sent):
        await service.list_entries("alice", page_size=requested)
        query = [c for c in notion.calls if c[0] == "query_database"][-1][1]
        assert query["page_size"] == sent

    @pytest.mark.asyncio
    async def test_legacy_schema_sorts_on_present_alias(self, service, notion):
        notion.schema.pop("dear23_날짜")
        notion.schema["Date"] = {"id": "d", "name": "Date", "type": "date", "date": {}}

        await service.list_entries("alice")

        query = [c for c in notion.calls if c[0] == "query_database"][-1][1]
        assert query["sorts"] == [{"property": "Date", "direction": "descending"}]

    @pytest.mark.asyncio
    async def test_missing_config_fails_before_notion(self, service, notion):
        with pytest.raises(ConfigNotFoundError):
            await service.list_entries("carol")
        with pytest.raises(IncompleteConfigError):
            await service.list_entries("dave")
        with pytest.raises(ConfigNotFoundError):
            await service.list_entries("nobody")
        assert notion.clients == []


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_only_touches_supplied_fields(self, service, notion):
        created = await _create(service, title="Keep me", date="2026-05-05", mood="보통")
        page_id = created.page["id"]

        await service.update_entry("alice", page_id, EntryPatch(mood="행복"))

        update_call = [c for c in notion.calls if c[0] == "update_page"][-1]
        assert update_call[2] == {"dear23_기분": {"select": {"name": "행복"}}}
        entry, _ = await service.get_entry("alice", page_id)
        assert entry.title == "Keep me"
        assert entry.date == "2026-05-05"
        assert entry.mood == "행복"

    @pytest.mark.asyncio
    async def test_update_content_replaces_body(self, service, notion):
        created = await _create(service, title="Draft", content="first")
        page_id = created.page["id"]

        await service.update_entry("alice", page_id, EntryPatch(content="second version"))

        entry, markdown = await service.get_entry("alice", page_id)
        assert entry.preview_text == "second version"
        assert markdown.strip() == "second version"

    @pytest.mark.asyncio
    async def test_update_requires_page_id(self, service, notion):
        with pytest.raises(ValidationError):
            await service.update_entry("alice", None, EntryPatch(title="x"))
        assert notion.clients == []

    @pytest.mark.asyncio
    async def test_deleted_entry_drops_out_of_list(self, service, notion):
        kept = await _create(service, title="kept")
        gone = await _create(service, title="gone")

        page = await service.delete_entry("alice", gone.page["id"])

        assert page["archived"] is True
        listing = await service.list_entries("alice")
        assert [e.id for e in listing.items] == [kept.page["id"]]

    @pytest.mark.asyncio
    async def test_delete_requires_page_id(self, service):
        with pytest.raises(ValidationError):
            await service.delete_entry("alice", "")


class TestGetEntry:
    @pytest.mark.asyncio
    async def test_returns_entry_and_markdown(self, service):
        created = await _create(service, title="Body", content="Line one\n\n- a\n- b")

        entry, markdown = await service.get_entry("alice", created.page["id"])

        assert entry.id == created.page["id"]
        assert entry.last_edited_time is not None
        assert "Line one" in markdown
        assert "- a" in markdown

    @pytest.mark.asyncio
    async def test_requires_page_id(self, service):
        with pytest.raises(ValidationError):
            await service.get_entry("alice", None)


class TestSearchAndSchema:
    @pytest.mark.asyncio
    async def test_search_databases(self, service, notion):
        notion.databases = [
            {
                "id": "db1",
                "title": [{"plain_text": "Our Diary"}],
                "url": "https://notion.so/db1",
                "icon": {"type": "emoji", "emoji": "📔"},
            },
            {"id": "db2", "title": [], "url": "https://notion.so/db2", "icon": None},
        ]

        results = await service.search_databases("secret_new")

        assert [db.title for db in results] == ["Our Diary", "Untitled Database"]
        assert results[0].icon == {"type": "emoji", "emoji": "📔"}
        assert notion.clients == [("secret_new", None)]

    @pytest.mark.asyncio
    async def test_search_requires_key(self, service, notion):
        with pytest.raises(ValidationError):
            await service.search_databases("")
        assert notion.clients == []

    @pytest.mark.asyncio
    async def test_ensure_schema_requires_both_ids(self, service):
        with pytest.raises(ValidationError):
            await service.ensure_schema("secret", None)
        with pytest.raises(ValidationError):
            await service.ensure_schema(None, "db")

    @pytest.mark.asyncio
    async def test_ensure_schema_on_complete_database(self, service, notion):
        report = await service.ensure_schema("secret", "db")
        assert report.status == "ok"
        assert report.changed == []


@pytest.mark.asyncio
async def test_get_entry_reads_nested_list_items(config, profiles):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v1/pages/p1":
            return httpx.Response(200, json={
                "object": "page",
                "id": "p1",
                "properties": {"이름": {"type": "title", "title": [{"plain_text": "Packing list"}]}},
            })
        if path == "/v1/blocks/p1/children":
            return httpx.Response(200, json={"results": [
                {"id": "b1", "type": "bulleted_list_item", "has_children": True,
                 "bulleted_list_item": {"rich_text": [{"plain_text": "outer"}]}},
            ], "has_more": False})
        if path == "/v1/blocks/b1/children":
            return httpx.Response(200, json={"results": [
                {"id": "b2", "type": "bulleted_list_item", "has_children": False,
                 "bulleted_list_item": {"rich_text": [{"plain_text": "inner"}]}},
            ], "has_more": False})
        return httpx.Response(404, json={"object": "error", "message": f"unexpected {path}"})

    service = DiaryService(
        config,
        profiles=profiles,
        notion_factory=lambda token, db: NotionClient(token, db, transport=httpx.MockTransport(handler)),
    )

    entry, markdown = await service.get_entry("alice", "p1")

    assert entry.title == "Packing list"
    assert markdown == "- outer\n  - inner"
