"""Caller identity verification."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from diary_sync.errors import AuthError


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> str:
        """Return the uid the token belongs to, or raise AuthError."""
        ...


def bearer_token(header_value: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer`` header."""
    if not header_value:
        raise AuthError("Unauthorized")
    scheme, _, token = header_value.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError("Unauthorized")
    return token


@dataclass
class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens with the Admin SDK."""

    app: Any = None

    async def verify(self, token: str) -> str:
        try:
            decoded = await asyncio.to_thread(firebase_auth.verify_id_token, token, self.app)
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            raise AuthError("Invalid identity token.") from exc
        return decoded["uid"]


@dataclass
class StaticTokenVerifier:
    """Maps fixed tokens to uids; for tests and local runs."""

    tokens: dict[str, str] = field(default_factory=dict)

    async def verify(self, token: str) -> str:
        uid = self.tokens.get(token)
        if uid is None:
            raise AuthError("Invalid identity token.")
        return uid
