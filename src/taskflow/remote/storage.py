# src/taskflow/remote/storage.py

"""Attachment storages: local directory (default) and AWS S3."""

from __future__ import annotations

import asyncio
import io
import logging
import mimetypes
import time
from pathlib import Path, PurePath
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from slugify import slugify

from ..core.errors import StorageError

logger = logging.getLogger(__name__)


def object_key(owner_id: str, filename: str, now: float | None = None) -> str:
    """
    files/<owner>/<epoch-ms>_<filename>

    Namespaced by owner, prefixed with a millisecond timestamp so two uploads of
    the same file name never collide.
    """
    if not owner_id:
        raise ValueError("owner_id is required")
    name = PurePath(filename or "").name
    if not name:
        raise ValueError("filename is required")
    if now is None:
        now = time.time()
    return f"files/{owner_id}/{int(now * 1000)}_{name}"


def _safe_filename(filename: str) -> str:
    name = PurePath(filename).name
    if "." in name:
        base, ext = name.rsplit(".", 1)
        return f"{slugify(base) or 'file'}.{ext.lower()}"
    return slugify(name) or "file"


class LocalAttachmentStorage:
    """Stores attachments under a root directory and hands out file:// URLs."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    async def upload(
        self,
        owner_id: str,
        filename: str,
        data: bytes,
        content_type: str | None = None,
    ) -> str:
        key = object_key(owner_id, filename)
        path = self._root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"failed to store {filename!r}: {e}") from e
        logger.info(
            "Stored attachment owner=%s key=%s bytes=%d type=%s",
            owner_id,
            key,
            len(data),
            content_type or _guess_content_type(filename),
        )
        return path.as_uri()


class S3AttachmentStorage:
    """
    Stores attachments in an S3 bucket.

    The object name is slugified (keys end up in URLs); the owner/timestamp
    prefix comes from object_key().
    """

    def __init__(
        self,
        bucket: str,
        base_url: str,
        *,
        region: str = "us-east-1",
        client: Any | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("bucket is required")
        self._bucket = bucket
        if base_url:
            self._base_url = base_url.rstrip("/") + "/"
        else:
            self._base_url = f"https://{bucket}.s3.{region}.amazonaws.com/"
        self._client = client if client is not None else boto3.client("s3", region_name=region)

    async def upload(
        self,
        owner_id: str,
        filename: str,
        data: bytes,
        content_type: str | None = None,
    ) -> str:
        key = object_key(owner_id, _safe_filename(filename))
        content_type = content_type or _guess_content_type(filename)
        try:
            await asyncio.to_thread(
                self._client.upload_fileobj,
                io.BytesIO(data),
                self._bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError, OSError) as e:
            raise StorageError(f"S3 upload failed bucket={self._bucket} key={key}: {e}") from e
        logger.info("Uploaded attachment owner=%s bucket=%s key=%s", owner_id, self._bucket, key)
        return f"{self._base_url}{key}"


def _guess_content_type(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"
