"""Attachment bytes and records."""

from channel_agent.storage.attachments import (
    AttachmentRecord,
    AttachmentStore,
    LinkState,
    SqlAttachmentStore,
)
from channel_agent.storage.blob import (
    BlobStore,
    LocalBlobStore,
    S3BlobStore,
    StoredBlob,
    build_blob_store,
    content_key,
    extension_for,
)
from channel_agent.storage.media import FetchedMedia, MediaFetcher, decode_data_url

__all__ = [
    "AttachmentRecord",
    "AttachmentStore",
    "BlobStore",
    "FetchedMedia",
    "LinkState",
    "LocalBlobStore",
    "MediaFetcher",
    "S3BlobStore",
    "SqlAttachmentStore",
    "StoredBlob",
    "build_blob_store",
    "content_key",
    "decode_data_url",
    "extension_for",
]
