"""Error taxonomy shared by the service and the HTTP layer."""

from __future__ import annotations

from typing import Any


class DiarySyncError(Exception):
    """Base error carrying the HTTP status it is reported with."""

    status_code = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class AuthError(DiarySyncError):
    """Missing or invalid identity token."""

    status_code = 401


class ConfigNotFoundError(DiarySyncError):
    """The user has no profile or no Notion configuration."""

    status_code = 404


class IncompleteConfigError(DiarySyncError):
    """The Notion configuration lacks the API key or the database id."""

    status_code = 400


class ValidationError(DiarySyncError):
    """A required request field is missing or malformed."""

    status_code = 400


class UpstreamError(DiarySyncError):
    """Notion returned an error or could not be reached."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        upstream_status: int | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.upstream_status = upstream_status


class UpstreamRejection(UpstreamError):
    """Notion rejected the shape of the request (400/422)."""


class UpstreamUnavailable(UpstreamError):
    """Network, server-side, auth or rate-limit failure talking to Notion."""


class CreateFailedError(UpstreamError):
    """Every create attempt in the fallback ladder was rejected."""

    def __init__(self, original: UpstreamError, final: UpstreamError) -> None:
        super().__init__(
            f"{original.message} (final attempt: {final.message})",
            details=final.details,
            upstream_status=final.upstream_status,
        )
        self.original = original
        self.final = final
