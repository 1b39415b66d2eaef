"""FastAPI application factory for the diary sync API."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from diary_sync.auth import TokenVerifier
from diary_sync.config import Config
from diary_sync.errors import DiarySyncError
from diary_sync.service import DiaryService

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, details: object = None) -> JSONResponse:
    content: dict[str, object] = {"error": message}
    if details is not None:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content)


def _build_dependencies(config: Config) -> tuple[DiaryService, TokenVerifier]:
    from diary_sync.firebase import make_image_store, make_profile_store, make_token_verifier

    service = DiaryService(
        config,
        profiles=make_profile_store(config),
        images=make_image_store(config),
    )
    return service, make_token_verifier(config)


def create_app(
    config: Config,
    *,
    service: DiaryService | None = None,
    verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``service`` and ``verifier`` default to Firebase-backed instances.
    """
    app = FastAPI(title="Diary Sync API")

    if service is None or verifier is None:
        default_service, default_verifier = _build_dependencies(config)
        service = service or default_service
        verifier = verifier or default_verifier

    app.state.config = config
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DiarySyncError)
    async def handle_diary_error(request: Request, exc: DiarySyncError) -> JSONResponse:
        return error_response(exc.status_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(400, "Malformed request body.", exc.errors())

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, str(exc) or exc.__class__.__name__)

    from diary_sync.web.routes import create_router

    app.include_router(create_router(service, verifier))

    return app
