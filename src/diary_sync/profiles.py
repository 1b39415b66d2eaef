"""Per-user Notion configuration lookup."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

from diary_sync.errors import ConfigNotFoundError, IncompleteConfigError
from diary_sync.models import NotionConfig


class ProfileStore(Protocol):
    """Reads user profile documents."""

    async def get_profile(self, user_id: str) -> dict[str, Any] | None:
        ...


@dataclass
class FirestoreProfileStore:
    """Profile documents held in a Firestore collection."""

    client: Any
    collection: str = "users"

    async def get_profile(self, user_id: str) -> dict[str, Any] | None:
        ref = self.client.collection(self.collection).document(user_id)
        snapshot = await asyncio.to_thread(ref.get)
        if not snapshot.exists:
            return None
        return snapshot.to_dict()


@dataclass
class InMemoryProfileStore:
    """Test double for profile lookups."""

    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    async def get_profile(self, user_id: str) -> dict[str, Any] | None:
        return self.profiles.get(user_id)


async def resolve_config(
    store: ProfileStore,
    user_id: str,
    *,
    config_field: str = "notionConfig",
) -> NotionConfig:
    """Return the user's Notion credentials, read fresh on every call."""
    profile = await store.get_profile(user_id)
    raw = (profile or {}).get(config_field)
    if not raw:
        raise ConfigNotFoundError("Notion configuration not found for this user.")
    if not isinstance(raw, dict):
        raise IncompleteConfigError("Incomplete Notion configuration.")

    api_key = raw.get("apiKey")
    database_id = raw.get("databaseId")
    if not isinstance(api_key, str) or not isinstance(database_id, str):
        raise IncompleteConfigError("Incomplete Notion configuration.")
    api_key = api_key.strip()
    database_id = database_id.strip()
    if not api_key or not database_id:
        raise IncompleteConfigError("Incomplete Notion configuration.")
    return NotionConfig(api_key=api_key, database_id=database_id)
