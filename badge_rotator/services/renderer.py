"""Client for the HTML-to-image render API."""

import json
import logging
from typing import Optional

import httpx

from badge_rotator.errors import ConfigurationError, MalformedRenderResponseError, RenderError

logger = logging.getLogger(__name__)

RENDER_TIMEOUT = 15  # seconds


class RenderClient:
    def __init__(
        self,
        api_url: str,
        user_id: Optional[str],
        api_key: Optional[str],
        http_client: httpx.Client,
    ) -> None:
        self._api_url = api_url
        self._user_id = user_id
        self._api_key = api_key
        self._http = http_client

    def render(self, page_url: str, selector: str, viewport_width: int, viewport_height: int) -> str:
        """Ask the render API to rasterize *selector* on *page_url*.

        Returns the URL the render service hosts the image at.

        Raises:
            ConfigurationError: if the user id or API key is missing.
            RenderError: on transport errors, timeouts or error statuses.
            MalformedRenderResponseError: on a 2xx body without a usable ``url``.
        """
        if not self._user_id or not self._api_key:
            raise ConfigurationError("HCTI_USER_ID and HCTI_API_KEY env vars are required")

        payload = {
            "url": page_url,
            "viewport_width": str(viewport_width),
            "viewport_height": str(viewport_height),
            "selector": selector,
        }

        try:
            response = self._http.post(
                self._api_url,
                json=payload,
                auth=(self._user_id, self._api_key),
                timeout=RENDER_TIMEOUT,
            )
        except httpx.TimeoutException as exc:
            logger.error("Render API timed out after %ss", RENDER_TIMEOUT)
            raise RenderError("The render API timed out.") from exc
        except httpx.HTTPError as exc:
            logger.error("Error calling render API: %s", exc)
            raise RenderError(f"Error calling render API: {exc}") from exc

        if not response.is_success:
            logger.error("Render API returned HTTP %s: %s", response.status_code, response.text[:200])
            raise RenderError(f"Render API returned HTTP {response.status_code}.")

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.error("Render API returned a non-JSON body: %r", response.text[:200])
            raise MalformedRenderResponseError("Render API returned an unparsable body.") from exc

        image_url = body.get("url") if isinstance(body, dict) else None
        if not isinstance(image_url, str) or not image_url.strip():
            logger.error("Render API response has no image url: %r", body)
            raise MalformedRenderResponseError("Render API response did not include an image url.")

        logger.info("Render API returned image url %s", image_url)
        return image_url
