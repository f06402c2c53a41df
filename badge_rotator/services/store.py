"""S3-backed artifact store for the published badge page and archived image."""

import logging
from pathlib import Path

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError
from filetype import guess

from badge_rotator.config import Settings
from badge_rotator.errors import StoreError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Leading markup that identifies an HTML document when sniffing bytes.
_HTML_SIGNATURES = (
    b"<!doctype html",
    b"<html",
    b"<head",
    b"<body",
    b"<script",
    b"<iframe",
    b"<h1",
    b"<div",
    b"<font",
    b"<table",
    b"<a",
    b"<style",
    b"<title",
    b"<b",
    b"<br",
    b"<p",
    b"<!--",
)
_SNIFF_LEN = 512


def _looks_like_html(data: bytes) -> bool:
    head = data[:_SNIFF_LEN].lstrip().lower()
    for signature in _HTML_SIGNATURES:
        if head.startswith(signature):
            # The tag name must end here, e.g. "<b>" or "<b " but not "<body".
            rest = head[len(signature):len(signature) + 1]
            if signature == b"<!--" or rest in (b" ", b">"):
                return True
    return False


def detect_content_type(data: bytes) -> str:
    """Sniff a MIME type from *data* without looking at any file name."""
    kind = guess(data)
    if kind is not None:
        return kind.mime
    if _looks_like_html(data):
        return "text/html; charset=utf-8"
    if b"\x00" not in data[:_SNIFF_LEN]:
        try:
            data.decode("utf-8")
        except UnicodeDecodeError:
            return DEFAULT_CONTENT_TYPE
        return "text/plain; charset=utf-8"
    return DEFAULT_CONTENT_TYPE


class ArtifactStore:
    """Puts local files into the configured bucket and reads public URLs back."""

    def __init__(self, settings: Settings, http_client: httpx.Client, s3_client=None) -> None:
        self._bucket = settings.s3_bucket
        self._region = settings.s3_region
        self._public_base_url = settings.public_base_url
        self._http = http_client
        self._s3 = s3_client

    def _client(self):
        if self._s3 is None:
            try:
                self._s3 = boto3.client("s3", region_name=self._region)
            except (BotoCoreError, ClientError) as exc:
                logger.error("Error creating S3 client: %s", exc)
                raise StoreError(f"Error creating S3 client: {exc}") from exc
        return self._s3

    def public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def put(self, local_path: str, key: str) -> None:
        """Upload the file at *local_path* to *key*, bytes unchanged."""
        try:
            data = Path(local_path).read_bytes()
        except OSError as exc:
            logger.error("Error reading %s for upload: %s", local_path, exc)
            raise StoreError(f"Error reading {local_path}: {exc}") from exc

        content_type = detect_content_type(data)
        try:
            self._client().put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentLength=len(data),
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Error uploading %s to s3://%s/%s: %s", local_path, self._bucket, key, exc)
            raise StoreError(f"Error uploading to S3: {exc}") from exc

        logger.info("Uploaded %s to s3://%s/%s as %s", local_path, self._bucket, key, content_type)

    def get(self, url: str) -> bytes:
        """Download *url* and return the body bytes exactly as served."""
        try:
            response = self._http.get(url)
        except httpx.HTTPError as exc:
            logger.error("Error downloading %s: %s", url, exc)
            raise StoreError(f"Error downloading {url}: {exc}") from exc

        if response.status_code != 200:
            logger.error("Download of %s returned HTTP %s", url, response.status_code)
            raise StoreError(f"Received non 200 response code ({response.status_code}) for {url}")

        return response.content
