"""Create an entry, degrading the property shape when Notion rejects it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from diary_sync.aliases import FIELD_ALIASES, OPTIONAL_FIELDS
from diary_sync.blocks import MAX_BLOCKS_PER_REQUEST
from diary_sync.errors import CreateFailedError, UpstreamError, UpstreamRejection
from diary_sync.mapping import build_properties
from diary_sync.notion import NotionClient

logger = logging.getLogger(__name__)

BODY_INCOMPLETE_WARNING = "Entry saved, but part of its body could not be written."


@dataclass
class CreateOutcome:
    page: dict[str, Any]
    warning: str | None = None


async def _create_page(
    client: NotionClient,
    values: dict[str, Any],
    children: list[dict[str, Any]],
) -> CreateOutcome:
    try:
        page = await client.create_page(build_properties(values), children)
        return CreateOutcome(page=page)
    except UpstreamRejection as exc:
        original = exc
        logger.warning("Create rejected, trying alternate title columns: %s", exc.message)

    for alias in FIELD_ALIASES["title"][1:]:
        try:
            page = await client.create_page(build_properties(values, title_alias=alias), children)
        except UpstreamRejection as exc:
            logger.warning("Create with title column %r rejected: %s", alias, exc.message)
            continue
        return CreateOutcome(
            page=page,
            warning=f"Title was stored under the '{alias}' property after the default was rejected.",
        )

    core = {k: v for k, v in values.items() if k not in OPTIONAL_FIELDS}
    dropped = [k for k in OPTIONAL_FIELDS if values.get(k) is not None]
    try:
        page = await client.create_page(build_properties(core), children)
    except UpstreamRejection as final:
        logger.error("Create failed after all fallbacks: %s", final.message)
        raise CreateFailedError(original, final) from final

    warning = "Entry saved with core fields only."
    if dropped:
        warning = f"Entry saved with core fields only; omitted: {', '.join(dropped)}."
    return CreateOutcome(page=page, warning=warning)


async def create_with_fallback(
    client: NotionClient,
    values: dict[str, Any],
    children: list[dict[str, Any]] | None = None,
) -> CreateOutcome:
    """Create a page from logical ``values``.

    Attempts, in order: the canonical mapping; the title under each
    alternate alias; the core fields only. Only ``UpstreamRejection`` moves
    to the next attempt; any other error propagates as is.

    Only the first batch of ``children`` travels with the create attempts.
    The rest is appended once a page exists, and a failure there never
    starts another create.
    """
    children = children or []
    head = children[:MAX_BLOCKS_PER_REQUEST]
    rest = children[MAX_BLOCKS_PER_REQUEST:]

    outcome = await _create_page(client, values, head)
    if not rest:
        return outcome

    try:
        await client.append_blocks(outcome.page["id"], rest)
    except UpstreamError as exc:
        logger.error("Appending body to page %s failed: %s", outcome.page["id"], exc.message)
        outcome.warning = " ".join(w for w in (outcome.warning, BODY_INCOMPLETE_WARNING) if w)
    return outcome
