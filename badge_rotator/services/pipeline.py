"""End-to-end badge rotation.

fetch page -> extract badge -> wrap in template -> publish page -> render
image -> download + archive image -> clone/branch/update/commit/push ->
open pull request.

Every stage runs once, in order; the first failure ends the run and nothing
after it is attempted.  Local artifacts and the workspace are left where they
are.
"""

import calendar
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import httpx

from badge_rotator.config import Settings
from badge_rotator.errors import ConfigurationError, StoreError
from badge_rotator.models.badge import BadgeDocument, BadgeFragment, RenderedImage, RenderedPage
from badge_rotator.models.repository import ChangeSet, CommitAuthor, PullRequestRequest
from badge_rotator.services.extractor import extract_fragment
from badge_rotator.services.fetcher import fetch_page
from badge_rotator.services.pull_request import (
    PullRequestOpener,
    pull_request_body,
    pull_request_title,
)
from badge_rotator.services.renderer import RenderClient
from badge_rotator.services.repository import RepositoryMutator
from badge_rotator.services.stages import Failure, Stage, run_stages
from badge_rotator.services.store import ArtifactStore
from badge_rotator.services.template import wrap

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Finished processing without error"
PAGE_FILENAME = "badge.html"
IMAGE_FILENAME = "badge.png"
ARTIFACT_PREFIX = "badge-rotator-artifacts-"


def commit_message(month: str) -> str:
    return f"Update badge with monthly stats for {month}"


@dataclass
class RotationRun:
    """Everything one run has produced so far."""

    month: str
    document: Optional[BadgeDocument] = None
    fragment: Optional[BadgeFragment] = None
    page: Optional[RenderedPage] = None
    image_url: Optional[str] = None
    image: Optional[RenderedImage] = None
    image_bytes: Optional[bytes] = None
    branch: Optional[str] = None
    change_set: Optional[ChangeSet] = None
    pull_request_url: Optional[str] = None


@dataclass(frozen=True)
class PipelineOutcome:
    ok: bool
    message: str
    status_code: int
    stage: Optional[str] = None
    run: Optional[RotationRun] = None


class BadgeRotator:
    """Runs the rotation pipeline against injected collaborators."""

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.Client] = None,
        store: Optional[ArtifactStore] = None,
        renderer: Optional[RenderClient] = None,
        repository: Optional[RepositoryMutator] = None,
        pull_requests: Optional[PullRequestOpener] = None,
        clock: Callable[[], datetime] = datetime.now,
        work_dir: Optional[str] = None,
    ) -> None:
        self.settings = settings
        self._owns_http = http_client is None
        self.http = http_client or httpx.Client(timeout=settings.http_timeout)
        self.store = store or ArtifactStore(settings, self.http)
        self.renderer = renderer or RenderClient(
            settings.render_api_url, settings.render_user_id, settings.render_api_key, self.http
        )
        self.repository = repository or RepositoryMutator(
            settings.clone_url,
            username=settings.push_username,
            token=settings.github_token,
            branch_prefix=settings.branch_prefix,
        )
        self.pull_requests = pull_requests or PullRequestOpener(
            settings.github_api_url, settings.github_token or "", self.http
        )
        self.clock = clock
        self._work_dir = work_dir
        self._artifact_dir: Optional[Path] = None

    # ------------------------------------------------------------------
    # stages
    # ------------------------------------------------------------------

    def _check_configuration(self, run: RotationRun) -> RotationRun:
        missing = self.settings.missing_required()
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
        return run

    def _fetch(self, run: RotationRun) -> RotationRun:
        run.document = fetch_page(self.http, self.settings.source_url)
        return run

    def _extract(self, run: RotationRun) -> RotationRun:
        run.fragment = extract_fragment(run.document.html)
        return run

    def _artifact_path(self, name: str) -> Path:
        if self._artifact_dir is None:
            self._artifact_dir = Path(tempfile.mkdtemp(prefix=ARTIFACT_PREFIX, dir=self._work_dir))
        return self._artifact_dir / name

    def _wrap(self, run: RotationRun) -> RotationRun:
        html = wrap(run.fragment.html)
        try:
            local_path = self._artifact_path(PAGE_FILENAME)
            local_path.write_text(html, encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Error writing badge page locally: {exc}") from exc

        key = self.settings.page_key
        run.page = RenderedPage(
            html=html,
            local_path=str(local_path),
            key=key,
            public_url=self.store.public_url(key),
        )
        return run

    def _publish(self, run: RotationRun) -> RotationRun:
        self.store.put(run.page.local_path, run.page.key)
        return run

    def _render(self, run: RotationRun) -> RotationRun:
        run.image_url = self.renderer.render(
            run.page.public_url,
            self.settings.render_selector,
            self.settings.viewport_width,
            self.settings.viewport_height,
        )
        return run

    def _download(self, run: RotationRun) -> RotationRun:
        data = self.store.get(run.image_url)
        try:
            local_path = self._artifact_path(IMAGE_FILENAME)
            local_path.write_bytes(data)
        except OSError as exc:
            raise StoreError(f"Error writing badge image locally: {exc}") from exc

        run.image_bytes = data
        run.image = RenderedImage(
            source_url=run.image_url,
            local_path=str(local_path),
            archive_key=self.settings.image_key,
            size=len(data),
        )
        return run

    def _archive(self, run: RotationRun) -> RotationRun:
        self.store.put(run.image.local_path, run.image.archive_key)
        return run

    def _clone(self, run: RotationRun) -> RotationRun:
        self.repository.clone()
        return run

    def _branch(self, run: RotationRun) -> RotationRun:
        run.branch = self.repository.branch(run.month)
        return run

    def _update(self, run: RotationRun) -> RotationRun:
        self.repository.overwrite_file(self.settings.repo_badge_path, run.image.local_path)
        return run

    def _commit(self, run: RotationRun) -> RotationRun:
        author = CommitAuthor(name=self.settings.author_name, email=self.settings.author_email)
        run.change_set = self.repository.commit(commit_message(run.month), author)
        return run

    def _push(self, run: RotationRun) -> RotationRun:
        self.repository.push()
        return run

    def _open_pull_request(self, run: RotationRun) -> RotationRun:
        base = self.settings.base_branch or self.repository.base_branch or "master"
        request = PullRequestRequest(
            owner=self.settings.repo_owner,
            repo=self.settings.repo_name,
            title=pull_request_title(run.month),
            body=pull_request_body(run.month),
            head=run.branch,
            base=base,
        )
        run.pull_request_url = self.pull_requests.open(request)
        return run

    def stages(self) -> List[Stage]:
        return [
            ("configuration", self._check_configuration),
            ("fetch", self._fetch),
            ("extract", self._extract),
            ("wrap", self._wrap),
            ("publish", self._publish),
            ("render", self._render),
            ("download", self._download),
            ("archive", self._archive),
            ("clone", self._clone),
            ("branch", self._branch),
            ("update", self._update),
            ("commit", self._commit),
            ("push", self._push),
            ("pull_request", self._open_pull_request),
        ]

    # ------------------------------------------------------------------

    def run(self) -> PipelineOutcome:
        month = calendar.month_name[self.clock().month]
        initial = RotationRun(month=month)
        try:
            result = run_stages(self.stages(), initial)
        finally:
            if self._owns_http:
                self.http.close()

        if isinstance(result, Failure):
            logger.error("Badge rotation stopped at %s: %s", result.stage, result.error.message)
            return PipelineOutcome(
                ok=False,
                message=result.message,
                status_code=result.error.status_code,
                stage=result.stage,
                run=initial,
            )

        logger.info("Badge rotation finished: %s", result.value.pull_request_url)
        return PipelineOutcome(ok=True, message=SUCCESS_MESSAGE, status_code=200, run=result.value)
