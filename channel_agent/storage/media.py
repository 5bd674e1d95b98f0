"""
Media fetching for inbound attachments.

Supports three kinds of reference:
- `data:` URLs (email attachments carried inline),
- WhatsApp Graph API media ids (resolved to a short-lived download URL,
  then fetched with the access token),
- plain HTTP(S) URLs.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

import httpx
import structlog

from channel_agent.channels.models import MediaReference
from channel_agent.channels.whatsapp import GRAPH_API_BASE_URL
from channel_agent.config import get_settings
from channel_agent.kernel.errors import UpstreamError, ValidationError
from channel_agent.kernel.http.client import request_with_retry

logger = structlog.get_logger()


@dataclass
class FetchedMedia:
    data: bytes
    content_type: str


def decode_data_url(url: str) -> FetchedMedia:
    header, sep, payload = url.partition(",")
    if not header.startswith("data:") or not sep:
        raise ValidationError(message="Malformed data URL", code="media.invalid_reference")
    meta = header[len("data:"):]
    is_base64 = meta.endswith(";base64")
    content_type = (meta[: -len(";base64")] if is_base64 else meta) or "application/octet-stream"
    try:
        data = base64.b64decode(payload, validate=True) if is_base64 else payload.encode("utf-8")
    except binascii.Error as exc:
        raise ValidationError(message="Malformed data URL", code="media.invalid_reference") from exc
    return FetchedMedia(data=data, content_type=content_type)


class MediaFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        whatsapp_access_token: str | None = None,
        max_bytes: int | None = None,
    ) -> None:
        settings = get_settings()
        self._client = client or httpx.AsyncClient(timeout=settings.media_fetch_timeout_seconds)
        self._whatsapp_token = whatsapp_access_token or settings.whatsapp_access_token
        self._max_bytes = max_bytes or settings.media_max_bytes

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, media: MediaReference) -> FetchedMedia:
        if media.url.startswith("data:"):
            fetched = decode_data_url(media.url)
        elif media.url.startswith(GRAPH_API_BASE_URL):
            fetched = await self._fetch_whatsapp(media.url)
        else:
            fetched = await self._download(media.url, headers={})

        if len(fetched.data) > self._max_bytes:
            raise ValidationError(
                message="Attachment is too large",
                code="media.too_large",
                meta={"max_bytes": self._max_bytes},
            )
        if media.content_type:
            fetched.content_type = media.content_type
        return fetched

    async def _fetch_whatsapp(self, graph_url: str) -> FetchedMedia:
        if not self._whatsapp_token:
            raise UpstreamError(message="WhatsApp access token not configured", code="media.not_configured")
        headers = {"Authorization": f"Bearer {self._whatsapp_token}"}

        response = await request_with_retry(self._client, "GET", graph_url, headers=headers)
        if response.status_code >= 400:
            logger.warning("WhatsApp media lookup failed", status_code=response.status_code)
            raise UpstreamError(message="Could not resolve media", code="media.lookup_failed")
        download_url = response.json().get("url")
        if not download_url:
            raise UpstreamError(message="Media lookup returned no URL", code="media.lookup_failed")

        return await self._download(download_url, headers=headers)

    async def _download(self, url: str, headers: dict[str, str]) -> FetchedMedia:
        try:
            response = await request_with_retry(self._client, "GET", url, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(message="Media download failed", code="media.download_failed") from exc
        if response.status_code >= 400:
            logger.warning("Media download failed", status_code=response.status_code)
            raise UpstreamError(message="Media download failed", code="media.download_failed")
        content_type = response.headers.get("Content-Type", "application/octet-stream")
        return FetchedMedia(data=response.content, content_type=content_type.split(";")[0].strip())
