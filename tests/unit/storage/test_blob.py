from __future__ import annotations

import hashlib
import io
from types import SimpleNamespace

import pytest

from channel_agent.storage.blob import LocalBlobStore, S3BlobStore, build_blob_store, extension_for

pytestmark = pytest.mark.unit


class _FakeS3:
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}

    def put_object(self, Bucket: str, Key: str, Body: bytes) -> None:
        self.objects[(Bucket, Key)] = Body

    def get_object(self, Bucket: str, Key: str) -> dict:
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}


@pytest.mark.parametrize(
    ("content_type", "filename", "expected"),
    [
        ("application/pdf", "Permit.PDF", ".pdf"),
        ("application/pdf", None, ".pdf"),
        ("image/png; charset=binary", "noext", ".png"),
        (None, None, ""),
    ],
)
def test_extension_for(content_type, filename, expected):
    assert extension_for(content_type, filename) == expected


@pytest.mark.asyncio
async def test_local_store_is_content_addressed(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    data = b"%PDF-1.4 lease"

    first = await store.put("org_1", data, ".pdf")
    second = await store.put("org_1", data, ".pdf")

    sha = hashlib.sha256(data).hexdigest()
    assert first.storage_key == second.storage_key == f"org_1/{sha[:2]}/{sha}.pdf"
    assert first.byte_size == len(data)
    assert await store.get(first.storage_key) == data


@pytest.mark.asyncio
async def test_local_store_refuses_keys_outside_root(tmp_path):
    store = LocalBlobStore(str(tmp_path / "blobs"))

    with pytest.raises(ValueError):
        await store.get("../secrets.txt")


@pytest.mark.asyncio
async def test_s3_store_round_trip():
    client = _FakeS3()
    store = S3BlobStore("attachments", None, None, None, None, client=client)

    stored = await store.put("org_1", b"hello", ".txt")

    assert stored.storage_backend == "s3"
    assert ("attachments", stored.storage_key) in client.objects
    assert await store.get(stored.storage_key) == b"hello"


def test_build_blob_store_requires_bucket_for_s3():
    settings = SimpleNamespace(blob_storage_backend="s3", blob_s3_bucket=None)

    with pytest.raises(ValueError):
        build_blob_store(settings)


def test_build_blob_store_defaults_to_local(tmp_path):
    settings = SimpleNamespace(blob_storage_backend="local", blob_local_path=str(tmp_path))

    assert isinstance(build_blob_store(settings), LocalBlobStore)
