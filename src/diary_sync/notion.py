"""Thin async client for the Notion API calls the diary service makes."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from diary_sync.blocks import MAX_BLOCKS_PER_REQUEST
from diary_sync.errors import UpstreamError, UpstreamRejection, UpstreamUnavailable

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Statuses where Notion says the request body itself is wrong.
REJECTION_STATUSES = {400, 422}

LIST_BLOCK_TYPES = ("bulleted_list_item", "numbered_list_item")

logger = logging.getLogger(__name__)


def _error_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        detail = response.text.strip()
        if len(detail) > 1000:
            detail = detail[:1000] + "...(truncated)"
        return detail or None


def classify_response_error(method: str, path: str, response: httpx.Response) -> UpstreamError:
    """Turn a non-2xx Notion response into the matching upstream error."""
    details = _error_payload(response)
    message = details.get("message") if isinstance(details, dict) else None
    request_id = response.headers.get("x-request-id")
    req = f"{method} {path}"
    text = f"Notion API error {response.status_code} on {req}"
    if request_id:
        text += f" (request_id={request_id})"
    if message:
        text += f": {message}"
    error_cls = (
        UpstreamRejection if response.status_code in REJECTION_STATUSES else UpstreamUnavailable
    )
    return error_cls(text, details=details, upstream_status=response.status_code)


class NotionClient:
    """Async Notion API client bound to one integration token."""

    def __init__(
        self,
        token: str,
        database_id: str | None = None,
        *,
        api_base: str = NOTION_API_BASE,
        notion_version: str = NOTION_VERSION,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.database_id = database_id
        self.api_base = api_base.rstrip("/")
        self.notion_version = notion_version
        self.timeout = timeout
        self._transport = transport

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    def _require_database(self) -> str:
        if not self.database_id:
            raise ValueError("NotionClient was created without a database id.")
        return self.database_id

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.api_base}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    headers=self._headers,
                    json=json_payload,
                    params=params,
                )
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(
                f"Notion API unreachable on {method} {path}: {exc.__class__.__name__}"
            ) from exc

        if response.is_error:
            error = classify_response_error(method, path, response)
            logger.warning("%s", error.message)
            raise error

        if response.content:
            return response.json()
        return {}

    async def retrieve_database(self) -> dict[str, Any]:
        return await self._request("GET", f"/databases/{self._require_database()}")

    async def update_database_properties(self, properties: dict[str, Any]) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/databases/{self._require_database()}",
            json_payload={"properties": properties},
        )

    async def query_database(
        self,
        *,
        page_size: int = 20,
        start_cursor: str | None = None,
        sorts: list[dict[str, Any]] | None = None,
        filter_: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            payload["start_cursor"] = start_cursor
        if sorts:
            payload["sorts"] = sorts
        if filter_:
            payload["filter"] = filter_
        return await self._request(
            "POST",
            f"/databases/{self._require_database()}/query",
            json_payload=payload,
        )

    async def search_databases(self, page_size: int = 100) -> list[dict[str, Any]]:
        data = await self._request(
            "POST",
            "/search",
            json_payload={
                "filter": {"value": "database", "property": "object"},
                "page_size": page_size,
            },
        )
        return data.get("results", [])

    async def create_page(
        self,
        properties: dict[str, Any],
        children: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "parent": {"database_id": self._require_database()},
            "properties": properties,
        }
        if children:
            payload["children"] = children[:MAX_BLOCKS_PER_REQUEST]
        page = await self._request("POST", "/pages", json_payload=payload)
        if children and len(children) > MAX_BLOCKS_PER_REQUEST:
            try:
                await self.append_blocks(page["id"], children[MAX_BLOCKS_PER_REQUEST:])
            except UpstreamRejection as exc:
                # The page exists now; callers must not treat this as a rejected create.
                raise UpstreamUnavailable(
                    f"Page {page['id']} was created but its body could not be completed: {exc.message}",
                    details=exc.details,
                    upstream_status=exc.upstream_status,
                ) from exc
        return page

    async def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/pages/{page_id}")

    async def update_page(self, page_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        return await self._request(
            "PATCH", f"/pages/{page_id}", json_payload={"properties": properties}
        )

    async def archive_page(self, page_id: str) -> dict[str, Any]:
        return await self._request("PATCH", f"/pages/{page_id}", json_payload={"archived": True})

    async def fetch_blocks(self, parent_id: str) -> list[dict[str, Any]]:
        """Paginate through all child blocks of a parent."""
        blocks: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": 100}
            if cursor:
                params["start_cursor"] = cursor
            data = await self._request("GET", f"/blocks/{parent_id}/children", params=params)
            blocks.extend(data.get("results", []))
            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")
        return blocks

    async def fetch_blocks_recursive(self, parent_id: str) -> list[dict[str, Any]]:
        """Fetch blocks and populate nested children of list items."""
        blocks = await self.fetch_blocks(parent_id)
        for block in blocks:
            btype = block.get("type", "")
            if block.get("has_children") and btype in LIST_BLOCK_TYPES:
                block[btype]["children"] = await self.fetch_blocks_recursive(block["id"])
        return blocks

    async def append_blocks(self, page_id: str, blocks: list[dict[str, Any]]) -> None:
        for idx in range(0, len(blocks), MAX_BLOCKS_PER_REQUEST):
            await self._request(
                "PATCH",
                f"/blocks/{page_id}/children",
                json_payload={"children": blocks[idx : idx + MAX_BLOCKS_PER_REQUEST]},
            )

    async def replace_page_body(self, page_id: str, new_blocks: list[dict[str, Any]]) -> None:
        """Archive the current body blocks, then append ``new_blocks``.

        Not atomic: a failure part way leaves the body partially replaced.
        """
        archived: list[str] = []
        try:
            for block in await self.fetch_blocks(page_id):
                block_id = block.get("id")
                if block_id:
                    await self._request(
                        "PATCH", f"/blocks/{block_id}", json_payload={"archived": True}
                    )
                    archived.append(block_id)
            await self.append_blocks(page_id, new_blocks)
        except UpstreamError:
            logger.error(
                "Replacing body of page %s failed after archiving %d block(s): %s",
                page_id,
                len(archived),
                ", ".join(archived) or "none",
            )
            raise
