"""
Attachment Blob Storage

Content-addressed storage for inbound attachment bytes. Keys are derived
from the organization and the SHA-256 of the content, so the same file
sent twice lands on the same object.
"""

from __future__ import annotations

import hashlib
import mimetypes
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import structlog

from channel_agent.config import Settings, get_settings

logger = structlog.get_logger()


@dataclass
class StoredBlob:
    """Result of storing a blob."""

    storage_backend: str
    storage_key: str
    byte_size: int
    sha256: str


def extension_for(content_type: str | None, filename: str | None) -> str:
    if filename and "." in filename:
        suffix = Path(filename).suffix.lower()
        if 1 < len(suffix) <= 10:
            return suffix
    if content_type:
        guessed = mimetypes.guess_extension(content_type.split(";")[0].strip())
        if guessed:
            return guessed
    return ""


def content_key(organization_id: str, sha256: str, extension: str = "") -> str:
    return f"{organization_id}/{sha256[:2]}/{sha256}{extension}"


class BlobStore:
    """Abstract storage interface for attachment bytes."""

    async def put(self, organization_id: str, data: bytes, extension: str = "") -> StoredBlob:
        raise NotImplementedError

    async def get(self, storage_key: str) -> bytes:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Local filesystem storage backend."""

    def __init__(self, root_path: str) -> None:
        self.root_path = Path(root_path)
        self.root_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, storage_key: str) -> Path:
        path = (self.root_path / storage_key).resolve()
        if self.root_path.resolve() not in path.parents:
            raise ValueError("Storage key escapes the blob root")
        return path

    async def put(self, organization_id: str, data: bytes, extension: str = "") -> StoredBlob:
        sha256 = hashlib.sha256(data).hexdigest()
        key = content_key(organization_id, sha256, extension)
        target_path = self._path_for(key)
        target_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(target_path, "wb") as f:
            await f.write(data)

        return StoredBlob(
            storage_backend="local",
            storage_key=key,
            byte_size=len(data),
            sha256=sha256,
        )

    async def get(self, storage_key: str) -> bytes:
        async with aiofiles.open(self._path_for(storage_key), "rb") as f:
            return await f.read()


class S3BlobStore(BlobStore):
    """S3-compatible storage backend (AWS S3 / MinIO)."""

    def __init__(
        self,
        bucket: str,
        region: str | None,
        endpoint_url: str | None,
        access_key_id: str | None,
        secret_access_key: str | None,
        force_path_style: bool = False,
        client=None,
    ) -> None:
        import boto3
        from botocore.config import Config

        self.bucket = bucket
        if client is None:
            client = boto3.client(
                "s3",
                region_name=region or None,
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                config=Config(s3={"addressing_style": "path" if force_path_style else "auto"}),
            )
        self._client = client

    async def put(self, organization_id: str, data: bytes, extension: str = "") -> StoredBlob:
        import anyio

        sha256 = hashlib.sha256(data).hexdigest()
        key = content_key(organization_id, sha256, extension)

        def _put_object() -> None:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data)

        await anyio.to_thread.run_sync(_put_object)

        return StoredBlob(
            storage_backend="s3",
            storage_key=key,
            byte_size=len(data),
            sha256=sha256,
        )

    async def get(self, storage_key: str) -> bytes:
        import anyio

        def _get_object() -> bytes:
            response = self._client.get_object(Bucket=self.bucket, Key=storage_key)
            return response["Body"].read()

        return await anyio.to_thread.run_sync(_get_object)


def build_blob_store(settings: Settings | None = None) -> BlobStore:
    settings = settings or get_settings()
    if settings.blob_storage_backend == "s3":
        if not settings.blob_s3_bucket:
            raise ValueError("BLOB_S3_BUCKET is required for the s3 blob backend")
        return S3BlobStore(
            bucket=settings.blob_s3_bucket,
            region=settings.blob_s3_region,
            endpoint_url=settings.blob_s3_endpoint_url,
            access_key_id=settings.blob_s3_access_key_id,
            secret_access_key=settings.blob_s3_secret_access_key,
            force_path_style=settings.blob_s3_force_path_style,
        )
    return LocalBlobStore(settings.blob_local_path)
