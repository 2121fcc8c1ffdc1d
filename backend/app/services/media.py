"""
Media host (Cloudinary) adapter.

Uploads go through the signed REST upload API with an eager first-page PNG
transformation, so most uploads come back with a thumbnail URL already.
"""
from __future__ import annotations

import hashlib
import logging
import re
import secrets
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from app.core.config import Settings, settings
from app.core.errors import UnsupportedType, UpstreamFailure

logger = logging.getLogger(__name__)

PDF_MIME_TYPES = {"application/pdf", "application/x-pdf"}
DEFAULT_FILE_TYPE = "application/pdf"

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud}/image/upload"
DELIVERY_URL = "https://res.cloudinary.com/{cloud}/image/upload/{transformation}/{public_id}.png"

_VERSION_RE = re.compile(r"^v\d+$", re.IGNORECASE)


@dataclass
class UploadResult:
    file_url: str
    file_type: str = DEFAULT_FILE_TYPE
    public_id: Optional[str] = None
    thumbnail_url: Optional[str] = None


def is_pdf_type(mime_type: str | None) -> bool:
    if not mime_type:
        return False
    return mime_type.split(";")[0].strip().lower() in PDF_MIME_TYPES


def public_id_base(filename: str | None) -> str:
    """'My Notes.pdf' -> 'My_Notes_<random>'; the suffix keeps uploads from overwriting each other."""
    name = (filename or "file.pdf").rsplit("/", 1)[-1]
    base = re.sub(r"\.[^.]+$", "", name)
    base = re.sub(r"\s+", "_", base.strip())
    base = re.sub(r"[^A-Za-z0-9_\-]", "", base) or "file"
    return f"{base[:80]}_{secrets.token_hex(4)}"


def parse_cloudinary_url(url: str) -> tuple[str, str] | None:
    """
    Split a Cloudinary delivery URL into (cloud_name, public_id).

    https://res.cloudinary.com/demo/image/upload/v1712/pdf_uploads/notes.pdf
        -> ("demo", "pdf_uploads/notes")
    Returns None for anything that is not a Cloudinary upload URL.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if not parsed.hostname or not parsed.hostname.endswith("cloudinary.com"):
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if "upload" not in parts or len(parts) < 2:
        return None

    cloud_name = parts[0]
    after = parts[parts.index("upload") + 1:]
    if after and _VERSION_RE.match(after[0]):
        after = after[1:]
    if not after:
        return None

    last = re.sub(r"\.[^.]+$", "", after[-1])
    if not last:
        return None
    return cloud_name, "/".join(after[:-1] + [last])


def is_fetchable_url(url: str, config: Settings = settings) -> bool:
    """
    Whether the server may download `url` itself (download proxy, local
    thumbnails). Only our own Cloudinary cloud and MEDIA_FETCH_HOSTS qualify;
    user-supplied URLs pointing anywhere else are only ever redirected to.
    """
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError:
        return False

    host = (parsed.hostname or "").lower()
    if parsed.scheme not in ("http", "https") or not host:
        return False
    if port is not None and port not in (80, 443):
        return False

    allowed = {h.strip().lower() for h in config.MEDIA_FETCH_HOSTS if h.strip()}
    if host in allowed:
        return True

    cloud = config.CLOUDINARY_CLOUD_NAME
    if parsed.scheme != "https" or host != "res.cloudinary.com" or not cloud:
        return False
    parts = [p for p in parsed.path.split("/") if p]
    return bool(parts) and parts[0] == cloud


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    """Cloudinary request signature: sha1 over sorted 'k=v' pairs + secret."""
    to_sign = "&".join(
        f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, "")
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class MediaUploader:
    def __init__(self, config: Settings = settings, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    @property
    def thumbnail_transformation(self) -> str:
        return f"pg_1,w_{self.config.THUMBNAIL_WIDTH},c_limit,q_auto"

    def derived_thumbnail_url(self, public_id: str, cloud_name: str | None = None) -> str | None:
        cloud = cloud_name or self.config.CLOUDINARY_CLOUD_NAME
        if not cloud or not public_id:
            return None
        return DELIVERY_URL.format(
            cloud=cloud,
            transformation=self.thumbnail_transformation,
            public_id=public_id,
        )

    def public_id_for_url(self, file_url: str) -> str | None:
        parsed = parse_cloudinary_url(file_url)
        return parsed[1] if parsed else None

    def thumbnail_for_url(self, file_url: str, public_id: str | None = None) -> str | None:
        """First-page thumbnail URL for a file already on the CDN, if derivable."""
        parsed = parse_cloudinary_url(file_url)
        if public_id:
            return self.derived_thumbnail_url(public_id, parsed[0] if parsed else None)
        if parsed:
            return self.derived_thumbnail_url(parsed[1], parsed[0])
        return None

    async def upload(self, data: bytes, declared_mime_type: str | None, filename: str | None) -> UploadResult:
        if not is_pdf_type(declared_mime_type):
            raise UnsupportedType()

        cfg = self.config
        if not cfg.cloudinary_configured:
            logger.error("Cloudinary credentials are not configured")
            raise UpstreamFailure("File storage is not available")

        params: dict[str, Any] = {
            "folder": cfg.CLOUDINARY_FOLDER,
            "public_id": public_id_base(filename),
            "format": "pdf",
            "eager": f"{self.thumbnail_transformation}/png",
            "eager_async": "false",
            "timestamp": int(time.time()),
        }
        params["signature"] = sign_params(params, cfg.CLOUDINARY_API_SECRET)
        params["api_key"] = cfg.CLOUDINARY_API_KEY

        url = UPLOAD_URL.format(cloud=cfg.CLOUDINARY_CLOUD_NAME)
        files = {"file": (filename or "file.pdf", data, DEFAULT_FILE_TYPE)}

        try:
            async with httpx.AsyncClient(
                timeout=cfg.HTTP_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                resp = await client.post(url, data={k: str(v) for k, v in params.items()}, files=files)
        except httpx.HTTPError as e:
            logger.error("Cloudinary upload failed: %s", e)
            raise UpstreamFailure("File upload failed") from e

        if resp.status_code >= 400:
            logger.error("Cloudinary upload rejected (%s): %s", resp.status_code, resp.text[:500])
            raise UpstreamFailure("File upload failed")

        body = resp.json()
        file_url = body.get("secure_url") or body.get("url")
        if not file_url:
            logger.error("Cloudinary response without a URL: %s", body)
            raise UpstreamFailure("File upload failed")

        eager = body.get("eager") or []
        thumb = eager[0].get("secure_url") if eager and isinstance(eager[0], dict) else None

        return UploadResult(
            file_url=file_url,
            file_type=DEFAULT_FILE_TYPE,
            public_id=body.get("public_id"),
            thumbnail_url=thumb or None,
        )


class UpstreamFile:
    """
    Streamed GET against the stored file, forwarding byte-range headers.
    Redirects are not followed. Call aclose() once the body has been consumed.
    """

    # 304 and 416 are valid answers to forwarded conditional/range headers
    PASSTHROUGH_STATUS = (304, 416)

    FORWARD_REQUEST = ("range", "if-range", "if-none-match", "if-modified-since")
    FORWARD_RESPONSE = (
        "content-type",
        "content-length",
        "content-encoding",
        "content-range",
        "accept-ranges",
        "etag",
        "last-modified",
    )

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response):
        self._client = client
        self.response = response

    @classmethod
    async def open(
        cls,
        url: str,
        request_headers: dict[str, str],
        config: Settings = settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "UpstreamFile":
        if not is_fetchable_url(url, config):
            logger.warning("Refusing to fetch %s: host is not a media host", url)
            raise UpstreamFailure("Could not fetch the file")

        headers = {
            k: v for k, v in request_headers.items() if k.lower() in cls.FORWARD_REQUEST
        }
        client = httpx.AsyncClient(
            timeout=config.HTTP_TIMEOUT_SECONDS,
            follow_redirects=False,
            transport=transport,
        )
        try:
            request = client.build_request("GET", url, headers=headers)
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            logger.error("Fetching %s failed: %s", url, e)
            raise UpstreamFailure("Could not fetch the file") from e

        if response.status_code >= 300 and response.status_code not in cls.PASSTHROUGH_STATUS:
            await response.aclose()
            await client.aclose()
            logger.error("Fetching %s returned %s", url, response.status_code)
            raise UpstreamFailure("Could not fetch the file")

        return cls(client, response)

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def passthrough_headers(self) -> dict[str, str]:
        return {
            k: v for k, v in self.response.headers.items() if k.lower() in self.FORWARD_RESPONSE
        }

    async def iter_bytes(self):
        async for chunk in self.response.aiter_raw():
            yield chunk

    async def aclose(self) -> None:
        await self.response.aclose()
        await self._client.aclose()


_uploader = MediaUploader()


def get_media_uploader() -> MediaUploader:
    return _uploader
