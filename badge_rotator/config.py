"""Run configuration.

:class:`Settings` is built once at startup and handed to every component;
:func:`load_settings` is the only place that reads the process environment.
"""

import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_RENDER_API_URL = "https://hcti.io/v1/image"
DEFAULT_GITHUB_API_URL = "https://api.github.com"

# Settings that must be present before the pipeline touches the network.
REQUIRED_FIELDS = (
    "source_url",
    "repo_owner",
    "repo_name",
    "s3_bucket",
    "s3_region",
    "render_user_id",
    "render_api_key",
    "github_token",
)

# Environment variable -> settings field
ENV_VARS = {
    "BADGE_SOURCE_URL": "source_url",
    "REPO_OWNER": "repo_owner",
    "REPO_NAME": "repo_name",
    "REPO_URL": "repo_url",
    "REPO_BADGE_PATH": "repo_badge_path",
    "BASE_BRANCH": "base_branch",
    "BRANCH_PREFIX": "branch_prefix",
    "S3_BUCKET": "s3_bucket",
    "S3_REGION": "s3_region",
    "S3_PUBLIC_BASE_URL": "public_base_url",
    "S3_PAGE_KEY": "page_key",
    "S3_IMAGE_KEY": "image_key",
    "HCTI_API_URL": "render_api_url",
    "HCTI_USER_ID": "render_user_id",
    "HCTI_API_KEY": "render_api_key",
    "GITHUB_OAUTH_TOKEN": "github_token",
    "GITHUB_USERNAME": "git_username",
    "GITHUB_API_URL": "github_api_url",
    "COMMIT_AUTHOR_NAME": "author_name",
    "COMMIT_AUTHOR_EMAIL": "author_email",
}


class Settings(BaseModel):
    # Source badge
    source_url: Optional[str] = None

    # Target repository
    repo_owner: Optional[str] = None
    repo_name: Optional[str] = None
    repo_url: Optional[str] = None
    repo_badge_path: str = "img/badge.png"
    base_branch: Optional[str] = None
    branch_prefix: str = "update-badge"
    author_name: str = "Badge Rotator"
    author_email: str = "badge-rotator@users.noreply.github.com"
    git_username: Optional[str] = None

    # Object store
    s3_bucket: Optional[str] = None
    s3_region: Optional[str] = None
    public_base_url: Optional[str] = None
    page_key: str = "badge.html"
    image_key: str = "extracted/badge.png"

    # Render API
    render_api_url: str = DEFAULT_RENDER_API_URL
    render_user_id: Optional[str] = None
    render_api_key: Optional[str] = None
    render_selector: str = ".container"
    viewport_width: int = Field(default=300, ge=1)
    viewport_height: int = Field(default=117, ge=1)

    # Code hosting
    github_token: Optional[str] = None
    github_api_url: str = DEFAULT_GITHUB_API_URL

    http_timeout: float = Field(default=10.0, gt=0)

    def missing_required(self) -> List[str]:
        """Return the names of required settings that are unset or blank."""
        return [name for name in REQUIRED_FIELDS if not (getattr(self, name) or "").strip()]

    @property
    def clone_url(self) -> str:
        if self.repo_url:
            return self.repo_url
        return f"https://github.com/{self.repo_owner}/{self.repo_name}.git"

    @property
    def push_username(self) -> str:
        return self.git_username or self.repo_owner or ""


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from the environment (after loading ``.env``).

    Only variables that are set are passed through, so unset optional
    settings keep their defaults.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    values = {field: environ[var] for var, field in ENV_VARS.items() if environ.get(var)}
    return Settings(**values)
