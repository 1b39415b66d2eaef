"""HTTP handlers for diary entries, database search and schema setup."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header

from diary_sync.auth import TokenVerifier, bearer_token
from diary_sync.models import CamelModel, EntryDraft, EntryPatch
from diary_sync.service import DiaryService


class ListRequest(CamelModel):
    target_user_id: str | None = None
    filter_category: str | None = None
    start_cursor: str | None = None
    page_size: int | None = None


class PageRequest(CamelModel):
    page_id: str | None = None


class UpdateRequest(EntryPatch):
    page_id: str | None = None


class SearchRequest(CamelModel):
    api_key: str | None = None


class SchemaRequest(CamelModel):
    api_key: str | None = None
    database_id: str | None = None


def create_router(service: DiaryService, verifier: TokenVerifier) -> APIRouter:
    """Create the router; every data endpoint requires a bearer identity token."""
    router = APIRouter()

    async def caller_id(authorization: str | None = Header(None)) -> str:
        return await verifier.verify(bearer_token(authorization))

    @router.get("/health")
    async def health():
        return {"ok": True}

    @router.post("/api/entries/list")
    async def list_entries(req: ListRequest | None = None, uid: str = Depends(caller_id)):
        """List entries of the caller, or of ``targetUserId`` (e.g. the partner)."""
        req = req or ListRequest()
        page = await service.list_entries(
            uid,
            target_user_id=req.target_user_id,
            category=req.filter_category,
            cursor=req.start_cursor,
            page_size=req.page_size,
        )
        return {
            "data": [entry.model_dump(by_alias=True) for entry in page.items],
            "hasMore": page.has_more,
            "nextCursor": page.next_cursor,
        }

    @router.post("/api/entries/get")
    async def get_entry(req: PageRequest, uid: str = Depends(caller_id)):
        entry, content = await service.get_entry(uid, req.page_id)
        return {"data": entry.model_dump(by_alias=True), "content": content}

    @router.post("/api/entries/create")
    async def create_entry(draft: EntryDraft, uid: str = Depends(caller_id)):
        result = await service.create_entry(uid, draft)
        response = {"data": result.page}
        if result.warning:
            response["warning"] = result.warning
        return response

    @router.post("/api/entries/update")
    async def update_entry(req: UpdateRequest, uid: str = Depends(caller_id)):
        patch = EntryPatch.model_validate(
            req.model_dump(exclude_unset=True, exclude={"page_id"})
        )
        page = await service.update_entry(uid, req.page_id, patch)
        return {"data": page}

    @router.post("/api/entries/delete")
    async def delete_entry(req: PageRequest, uid: str = Depends(caller_id)):
        page = await service.delete_entry(uid, req.page_id)
        return {"data": page}

    @router.post("/api/databases/search")
    async def search_databases(req: SearchRequest, uid: str = Depends(caller_id)):
        databases = await service.search_databases(req.api_key)
        return {"data": [db.model_dump() for db in databases]}

    @router.post("/api/schema/ensure")
    async def ensure_schema(req: SchemaRequest, uid: str = Depends(caller_id)):
        report = await service.ensure_schema(req.api_key, req.database_id)
        return {"status": report.status, "created": report.changed}

    return router
