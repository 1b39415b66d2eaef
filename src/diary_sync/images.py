"""Upload of images embedded in entry drafts."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)
DOWNLOAD_URL = "https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{path}?alt=media&token={token}"


@dataclass
class ImagePayload:
    data: bytes
    content_type: str

    @property
    def extension(self) -> str:
        subtype = self.content_type.split("/")[-1].split("+")[0]
        return "jpg" if subtype == "jpeg" else subtype or "bin"


def decode_image_payload(value: str) -> ImagePayload | None:
    """Decode a ``data:`` URL. Hosted URLs return ``None``.

    Raises:
        ValueError: If the value looks like an embedded payload but cannot be decoded.
    """
    if not value.startswith("data:"):
        return None
    match = DATA_URL_PATTERN.match(value)
    if not match:
        raise ValueError("Embedded image is not a base64 data URL.")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except binascii.Error as exc:
        raise ValueError("Embedded image has invalid base64 data.") from exc
    return ImagePayload(data=data, content_type=match.group("mime") or "image/jpeg")


class ImageStore(Protocol):
    """Blob storage that returns a public URL for each uploaded object."""

    async def upload(self, path: str, payload: ImagePayload) -> str:
        ...


@dataclass
class FirebaseImageStore:
    """Firebase Storage bucket; URLs carry a download token like client uploads do."""

    bucket: Any

    async def upload(self, path: str, payload: ImagePayload) -> str:
        token = str(uuid.uuid4())
        blob = self.bucket.blob(path)
        blob.metadata = {"firebaseStorageDownloadTokens": token}
        await asyncio.to_thread(blob.upload_from_string, payload.data, content_type=payload.content_type)
        return DOWNLOAD_URL.format(bucket=self.bucket.name, path=quote(path, safe=""), token=token)


@dataclass
class InMemoryImageStore:
    """Test double for image uploads."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict[str, bytes] = field(default_factory=dict)
    fail_paths: set[str] = field(default_factory=set)

    async def upload(self, path: str, payload: ImagePayload) -> str:
        if any(path.endswith(suffix) for suffix in self.fail_paths):
            raise RuntimeError(f"mock upload failed for {path}")
        self.stored_objects[path] = payload.data
        return f"{self.base_url}/{path}"


async def _upload_one(store: ImageStore, path: str, value: str) -> str:
    payload = decode_image_payload(value)
    if payload is None:
        return value
    return await store.upload(f"{path}.{payload.extension}", payload)


async def resolve_images(
    store: ImageStore | None,
    images: list[str],
    *,
    user_id: str,
    prefix: str = "diary_images",
) -> list[str]:
    """Replace embedded payloads with hosted URLs, keeping the original order.

    Uploads run concurrently. A failed upload is logged and that image is
    dropped; the remaining images are still returned.
    """
    if not images:
        return []
    stamp = int(time.time() * 1000)
    if store is None:
        store = _MissingImageStore()
    results = await asyncio.gather(
        *(
            _upload_one(store, f"{prefix}/{user_id}/{stamp}_{idx}", value)
            for idx, value in enumerate(images)
        ),
        return_exceptions=True,
    )
    urls: list[str] = []
    for idx, result in enumerate(results):
        if isinstance(result, BaseException):
            logger.warning("Image %d upload failed for user %s: %s", idx, user_id, result)
            continue
        urls.append(result)
    return urls


class _MissingImageStore:
    async def upload(self, path: str, payload: ImagePayload) -> str:
        raise RuntimeError("No image storage bucket configured.")
