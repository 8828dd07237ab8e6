"""Load raw image bytes from local paths, URLs and data URIs."""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from threading import Lock
from urllib.parse import unquote_to_bytes, urlparse

import requests
from requests import Session
from tenacity import (  # type: ignore[import-untyped]
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0
_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

_EXTENSION_MIMES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".ico": "image/x-icon",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}

_session_lock = Lock()
_session: Session | None = None


class SourceError(ValueError):
    """Raised when an image source cannot be read."""


class RetryableHTTPStatusError(Exception):
    """Raised for HTTP status codes that should trigger a retry."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Server returned status {status_code}")
        self.status_code = status_code


def _get_session() -> Session:
    """Return a shared requests session configured with default headers."""
    global _session
    if _session is None:
        with _session_lock:
            if _session is None:
                session = requests.Session()
                session.headers.update(
                    {
                        "User-Agent": _USER_AGENT,
                        "Accept": "image/*,*/*;q=0.8",
                    }
                )
                _session = session
    return _session


_retryer = Retrying(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception_type(
        (requests.Timeout, requests.ConnectionError, RetryableHTTPStatusError)
    ),
    before_sleep=before_sleep_log(logger, logging.DEBUG),
    reraise=True,
)


def load_source(source: str, timeout: float = _DEFAULT_TIMEOUT) -> tuple[bytes, str | None]:
    """Return the raw bytes behind *source* and a MIME hint when one is known.

    *source* may be a ``data:`` URI, an http(s) URL or a local file path.
    """
    cleaned = source.strip()
    if not cleaned:
        raise SourceError("Empty image source")
    if cleaned.startswith("data:"):
        return decode_data_uri(cleaned)
    if cleaned.startswith(("http://", "https://")):
        return fetch_image_bytes(cleaned, timeout=timeout)
    return read_image_file(Path(cleaned))


def read_image_file(path: Path) -> tuple[bytes, str | None]:
    if not path.is_file():
        raise SourceError(f"Image file does not exist: {path}")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise SourceError(f"Failed to read {path}: {exc}") from exc
    return data, mime_from_name(path.name)


def fetch_image_bytes(url: str, timeout: float = _DEFAULT_TIMEOUT) -> tuple[bytes, str | None]:
    """Download *url*, retrying transient failures."""
    try:
        response = _retryer(lambda: _fetch_once(url, timeout))
    except RetryableHTTPStatusError as exc:
        logger.warning("Server error fetching %s: %s", url, exc)
        raise SourceError(f"Server error fetching {url}: {exc}") from exc
    except requests.RequestException as exc:
        logger.warning("Request error fetching %s: %s", url, exc)
        raise SourceError(f"Request error fetching {url}: {exc}") from exc

    content_type = response.headers.get("Content-Type", "")
    mime = content_type.split(";", 1)[0].strip().lower() or None
    if mime is None or not mime.startswith("image/"):
        mime = mime_from_name(urlparse(response.url or url).path) or mime
    return response.content, mime


def _fetch_once(url: str, timeout: float) -> requests.Response:
    session = _get_session()
    response = session.get(url, timeout=timeout, allow_redirects=True)
    if 500 <= response.status_code < 600:
        raise RetryableHTTPStatusError(response.status_code)
    response.raise_for_status()
    return response


def decode_data_uri(uri: str) -> tuple[bytes, str | None]:
    """Decode a ``data:`` URI into bytes and its declared MIME type."""
    try:
        header, data = uri.split(",", 1)
    except ValueError as exc:
        raise SourceError("Malformed data URI") from exc

    media = header[len("data:"):]
    mime = media.split(";", 1)[0].strip().lower() or None
    if ";base64" in header:
        try:
            return base64.b64decode(data, validate=True), mime
        except (binascii.Error, ValueError) as exc:
            raise SourceError("Invalid base64 payload in data URI") from exc
    return unquote_to_bytes(data), mime


def mime_from_name(name: str) -> str | None:
    suffix = Path(name).suffix.lower()
    return _EXTENSION_MIMES.get(suffix)
