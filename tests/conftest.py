"""Shared test configuration and in-memory stand-ins for Notion."""

from __future__ import annotations

import copy
import itertools

import pytest

from diary_sync.aliases import OPTIONAL_FIELDS, REQUIRED_PROPERTIES, canonical
from diary_sync.auth import StaticTokenVerifier
from diary_sync.config import Config
from diary_sync.errors import UpstreamRejection
from diary_sync.images import InMemoryImageStore
from diary_sync.profiles import InMemoryProfileStore
from diary_sync.service import DiaryService


def _schema_entry(name: str, definition: dict) -> dict:
    prop_type = next(iter(definition))
    payload = copy.deepcopy(definition[prop_type])
    if prop_type == "select":
        payload.setdefault("options", [])
        for idx, option in enumerate(payload["options"]):
            option.setdefault("id", f"{name}-{idx}")
    return {"id": name, "name": name, "type": prop_type, prop_type: payload}


def full_schema() -> dict:
    schema = {"이름": {"id": "title", "name": "이름", "type": "title", "title": {}}}
    for name, definition in REQUIRED_PROPERTIES.items():
        schema[name] = _schema_entry(name, definition)
    return schema


def rejection(message: str = "body failed validation") -> UpstreamRejection:
    return UpstreamRejection(
        f"Notion API error 400 on POST /pages: {message}",
        details={"object": "error", "status": 400, "code": "validation_error", "message": message},
        upstream_status=400,
    )


class FakeNotion:
    """One fake Notion workspace holding a single diary database."""

    def __init__(self) -> None:
        self.schema: dict = full_schema()
        self.pages: dict[str, dict] = {}
        self.bodies: dict[str, list[dict]] = {}
        self.databases: list[dict] = []
        self.calls: list[tuple] = []
        self.clients: list[tuple[str, str | None]] = []
        self.accepted_title_keys: set[str] | None = None
        self.reject_optional = False
        self.create_error: Exception | None = None
        self.append_error: Exception | None = None
        self._ids = itertools.count(1)

    def client(self, token: str, database_id: str | None = None) -> "FakeNotionClient":
        self.clients.append((token, database_id))
        return FakeNotionClient(self, token, database_id)

    def create_calls(self) -> list[dict]:
        return [call[1] for call in self.calls if call[0] == "create_page"]


class FakeNotionClient:
    def __init__(self, store: FakeNotion, token: str, database_id: str | None) -> None:
        self.store = store
        self.token = token
        self.database_id = database_id

    async def retrieve_database(self) -> dict:
        self.store.calls.append(("retrieve_database",))
        return {"object": "database", "id": self.database_id, "properties": copy.deepcopy(self.store.schema)}

    async def update_database_properties(self, properties: dict) -> dict:
        self.store.calls.append(("update_database_properties", copy.deepcopy(properties)))
        for name, definition in properties.items():
            if name in self.store.schema:
                prop_type = self.store.schema[name]["type"]
                self.store.schema[name][prop_type] = copy.deepcopy(definition[prop_type])
            else:
                self.store.schema[name] = _schema_entry(name, definition)
        return {"object": "database", "properties": self.store.schema}

    async def query_database(self, *, page_size=20, start_cursor=None, sorts=None, filter_=None) -> dict:
        self.store.calls.append(
            ("query_database", {"page_size": page_size, "start_cursor": start_cursor, "sorts": sorts, "filter": filter_})
        )
        pages = [p for p in self.store.pages.values() if not p["archived"]]
        if filter_:
            key, wanted = filter_["property"], filter_["select"]["equals"]
            pages = [
                p for p in pages
                if (p["properties"].get(key, {}).get("select") or {}).get("name") == wanted
            ]
        if sorts:
            key = sorts[0]["property"]
            pages.sort(
                key=lambda p: (p["properties"].get(key, {}).get("date") or {}).get("start", ""),
                reverse=True,
            )
        offset = int(start_cursor) if start_cursor else 0
        chunk = pages[offset : offset + page_size]
        has_more = offset + page_size < len(pages)
        return {
            "object": "list",
            "results": copy.deepcopy(chunk),
            "has_more": has_more,
            "next_cursor": str(offset + page_size) if has_more else None,
        }

    async def search_databases(self, page_size: int = 100) -> list[dict]:
        self.store.calls.append(("search_databases",))
        return copy.deepcopy(self.store.databases)

    async def create_page(self, properties: dict, children=None) -> dict:
        self.store.calls.append(("create_page", copy.deepcopy(properties)))
        if self.store.create_error is not None:
            raise self.store.create_error
        title_keys = [k for k, v in properties.items() if "title" in v]
        if self.store.accepted_title_keys is not None and not (
            set(title_keys) & self.store.accepted_title_keys
        ):
            raise rejection(f"{title_keys[0]} is not a property that exists.")
        if self.store.reject_optional and any(canonical(f) in properties for f in OPTIONAL_FIELDS):
            raise rejection("Invalid select option.")

        page_id = f"page-{next(self.store._ids)}"
        page = {
            "object": "page",
            "id": page_id,
            "archived": False,
            "last_edited_time": "2026-01-13T11:20:00.000Z",
            "properties": copy.deepcopy(properties),
        }
        self.store.pages[page_id] = page
        self.store.bodies[page_id] = list(children or [])
        return copy.deepcopy(page)

    async def retrieve_page(self, page_id: str) -> dict:
        self.store.calls.append(("retrieve_page", page_id))
        return copy.deepcopy(self.store.pages[page_id])

    async def update_page(self, page_id: str, properties: dict) -> dict:
        self.store.calls.append(("update_page", page_id, copy.deepcopy(properties)))
        page = self.store.pages[page_id]
        page["properties"].update(copy.deepcopy(properties))
        return copy.deepcopy(page)

    async def archive_page(self, page_id: str) -> dict:
        self.store.calls.append(("archive_page", page_id))
        page = self.store.pages[page_id]
        page["archived"] = True
        return copy.deepcopy(page)

    async def fetch_blocks(self, parent_id: str) -> list[dict]:
        self.store.calls.append(("fetch_blocks", parent_id))
        return copy.deepcopy(self.store.bodies.get(parent_id, []))

    async def fetch_blocks_recursive(self, parent_id: str) -> list[dict]:
        # Bodies are stored with nested children already inline.
        return await self.fetch_blocks(parent_id)

    async def append_blocks(self, page_id: str, blocks: list[dict]) -> None:
        self.store.calls.append(("append_blocks", page_id, len(blocks)))
        if self.store.append_error is not None:
            raise self.store.append_error
        self.store.bodies.setdefault(page_id, []).extend(blocks)

    async def replace_page_body(self, page_id: str, new_blocks: list[dict]) -> None:
        self.store.calls.append(("replace_page_body", page_id))
        self.store.bodies[page_id] = list(new_blocks)


@pytest.fixture
def config() -> Config:
    return Config(firebase_storage_bucket="diary-test.appspot.com")


@pytest.fixture
def notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def profiles() -> InMemoryProfileStore:
    return InMemoryProfileStore(
        profiles={
            "alice": {"name": "Alice", "notionConfig": {"apiKey": "secret_alice", "databaseId": "db_alice"}},
            "bob": {"name": "Bob", "notionConfig": {"apiKey": "secret_bob", "databaseId": "db_bob"}},
            "carol": {"name": "Carol"},
            "dave": {"name": "Dave", "notionConfig": {"apiKey": "secret_dave", "databaseId": ""}},
        }
    )


@pytest.fixture
def image_store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def service(config, notion, profiles, image_store) -> DiaryService:
    return DiaryService(config, profiles=profiles, images=image_store, notion_factory=notion.client)


@pytest.fixture
def verifier() -> StaticTokenVerifier:
    return StaticTokenVerifier(tokens={"token-alice": "alice", "token-carol": "carol", "token-dave": "dave"})
