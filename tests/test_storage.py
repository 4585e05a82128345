# tests/test_storage.py

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

import pytest
from botocore.exceptions import ClientError

from taskflow.core.errors import StorageError
from taskflow.remote.storage import LocalAttachmentStorage, S3AttachmentStorage, object_key


class FakeS3Client:
    """Captures upload_fileobj() calls instead of talking to AWS."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict] = []

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None):
        if self.error is not None:
            raise self.error
        self.calls.append(
            {"data": fileobj.read(), "bucket": bucket, "key": key, "extra": ExtraArgs}
        )


def test_object_key_format() -> None:
    assert object_key("u1", "report.pdf", now=1_700_000_000.5) == "files/u1/1700000000500_report.pdf"


def test_object_key_drops_directories() -> None:
    assert object_key("u1", "../../etc/passwd", now=1.0) == "files/u1/1000_passwd"


@pytest.mark.parametrize("owner,name", [("", "a.txt"), ("u1", "")])
def test_object_key_requires_owner_and_name(owner, name) -> None:
    with pytest.raises(ValueError):
        object_key(owner, name)


@pytest.mark.asyncio
async def test_local_storage_writes_bytes_and_returns_file_uri(tmp_path: Path) -> None:
    storage = LocalAttachmentStorage(tmp_path / "files-root")

    url = await storage.upload("u1", "notes.txt", b"hello")

    path = Path(unquote(urlparse(url).path))
    assert url.startswith("file://")
    assert path.read_bytes() == b"hello"
    assert path.parent == storage.root / "files" / "u1"
    assert path.name.endswith("_notes.txt")


@pytest.mark.asyncio
async def test_s3_storage_uploads_slugified_key() -> None:
    client = FakeS3Client()
    storage = S3AttachmentStorage("bucket-1", "https://cdn.example.com/", client=client)

    url = await storage.upload("u1", "Q3 Report (final).PDF", b"%PDF")

    [call] = client.calls
    assert call["bucket"] == "bucket-1"
    assert call["data"] == b"%PDF"
    assert call["extra"] == {"ContentType": "application/pdf"}
    assert call["key"].startswith("files/u1/")
    assert call["key"].endswith("_q3-report-final.pdf")
    assert url == f"https://cdn.example.com/{call['key']}"


@pytest.mark.asyncio
async def test_s3_default_base_url_uses_bucket_and_region() -> None:
    client = FakeS3Client()
    storage = S3AttachmentStorage("bucket-1", "", region="eu-west-1", client=client)

    url = await storage.upload("u1", "a.txt", b"x")

    assert url.startswith("https://bucket-1.s3.eu-west-1.amazonaws.com/files/u1/")


@pytest.mark.asyncio
async def test_s3_client_errors_become_storage_errors() -> None:
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
    storage = S3AttachmentStorage("bucket-1", "https://cdn.example.com", client=FakeS3Client(error))

    with pytest.raises(StorageError):
        await storage.upload("u1", "a.txt", b"x")


def test_s3_requires_bucket() -> None:
    with pytest.raises(ValueError):
        S3AttachmentStorage("", "https://cdn.example.com", client=FakeS3Client())


@pytest.mark.asyncio
async def test_s3_explicit_content_type_wins_over_guess() -> None:
    client = FakeS3Client()
    storage = S3AttachmentStorage("bucket-1", "https://cdn.example.com", client=client)

    await storage.upload("u1", "export.txt", b"{}", "application/json")

    [call] = client.calls
    assert call["extra"] == {"ContentType": "application/json"}
