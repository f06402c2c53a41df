import logging

import httpx

from badge_rotator.errors import PullRequestError
from badge_rotator.models.repository import PullRequestRequest

logger = logging.getLogger(__name__)


def pull_request_title(month: str) -> str:
    return f"Update badge for {month}"


def pull_request_body(month: str) -> str:
    return f"Swap in the latest badge with the stats for {month}"


class PullRequestOpener:
    """Opens pull requests through the GitHub REST API."""

    def __init__(self, api_url: str, token: str, http_client: httpx.Client) -> None:
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._http = http_client

    def open(self, request: PullRequestRequest) -> str:
        """Create the pull request and return its ``html_url``."""
        url = f"{self._api_url}/repos/{request.owner}/{request.repo}/pulls"
        payload = {
            "title": request.title,
            "head": request.head,
            "base": request.base,
            "body": request.body,
            "maintainer_can_modify": request.maintainer_can_modify,
        }
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
        }

        try:
            response = self._http.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Error calling GitHub API: %s", exc)
            raise PullRequestError(f"Error calling GitHub API: {exc}") from exc

        if not response.is_success:
            logger.error("GitHub API returned HTTP %s: %s", response.status_code, response.text[:300])
            raise PullRequestError(
                f"GitHub API rejected the pull request (HTTP {response.status_code})."
            )

        try:
            body = response.json()
        except ValueError:
            body = None
        html_url = body.get("html_url") if isinstance(body, dict) else None
        if not html_url:
            raise PullRequestError("GitHub API response did not include the pull request URL.")

        logger.info("Successfully opened pull request %s", html_url)
        return html_url
