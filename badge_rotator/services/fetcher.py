import logging
from urllib.parse import urlparse

import httpx

from badge_rotator.errors import FetchError
from badge_rotator.models.badge import BadgeDocument

logger = logging.getLogger(__name__)

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
ALLOWED_SCHEMES = {"http", "https"}


def _validate_url(url: str) -> None:
    """Raise FetchError if *url* is not an absolute http(s) URL."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise FetchError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    if not parsed.hostname:
        raise FetchError("URL must have a valid hostname.")


def fetch_page(client: httpx.Client, url: str) -> BadgeDocument:
    """Fetch the badge page at *url* and return it as a :class:`BadgeDocument`.

    Only a 200 answer is accepted; any other status, a transport error or an
    oversized body raises :class:`FetchError`.
    """
    _validate_url(url)

    try:
        with client.stream("GET", url) as response:
            if response.status_code != 200:
                logger.error("Source page %s returned HTTP %s", url, response.status_code)
                raise FetchError(f"Source page returned HTTP {response.status_code}.")

            content_length = response.headers.get("content-length")
            if content_length:
                try:
                    declared = int(content_length)
                except ValueError:
                    logger.error("Source page %s sent Content-Length %r", url, content_length)
                    raise FetchError("Invalid Content-Length header.") from None
                if declared > MAX_CONTENT_SIZE:
                    raise FetchError("Response body exceeds the maximum allowed size.")

            chunks = []
            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > MAX_CONTENT_SIZE:
                    raise FetchError("Response body exceeds the maximum allowed size.")
                chunks.append(chunk)
    except httpx.TimeoutException as exc:
        logger.error("Timeout fetching source page %s", url)
        raise FetchError("The source page timed out.") from exc
    except httpx.HTTPError as exc:
        logger.error("Error fetching source page %s: %s", url, exc)
        raise FetchError(f"Error fetching source page: {exc}") from exc

    html = b"".join(chunks).decode(errors="replace")
    logger.info("Fetched source page %s (%d bytes)", url, total)
    return BadgeDocument(url=url, html=html)
