"""Tests for badge_rotator.services.pipeline.BadgeRotator.

The end-to-end scenario drives every real component: HTTP collaborators are
served by an ``httpx.MockTransport``, S3 by a fake client, and the repository
by a local bare git remote.
"""

import json
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import httpx
import pytest

from badge_rotator.config import Settings
from badge_rotator.errors import PushError
from badge_rotator.services.pipeline import SUCCESS_MESSAGE, BadgeRotator
from badge_rotator.services.pull_request import PullRequestOpener
from badge_rotator.services.renderer import RenderClient
from badge_rotator.services.repository import RepositoryMutator
from badge_rotator.services.store import ArtifactStore
from conftest import BADGE_PATH, FakeS3, git_bytes, make_origin, remote_refs

SOURCE_URL = "https://badges.example.org/badge/logo/octo"
RENDER_API = "https://render.example/v1/image"
IMAGE_URL = "https://example/img.png"
GITHUB_API = "https://api.github.test"
PR_URL = "https://github.com/octo/profile/pull/12"
NEW_BADGE = b"\x89PNG\r\n\x1a\nrendered-badge"

BADGE = (
    '<a href="https://badges.example.org/octo" class="wrapper-link">'
    '<div class="container"><p class="header">12 tons of CO2 offset</p></div></a>'
)
SOURCE_HTML = (
    "<html><body><div>"
    '<a href="https://badges.example.org/octo" class="wrapper-link">'
    '<div class="container"><p class="header">12 tons of CO₂ offset</p></div></a>'
    "</div></body></html>"
)


def _october() -> datetime:
    return datetime(2026, 10, 5, 9, 30)


def _settings(**overrides) -> Settings:
    values = dict(
        source_url=SOURCE_URL,
        repo_owner="octo",
        repo_name="profile",
        repo_badge_path=BADGE_PATH,
        s3_bucket="badges",
        s3_region="us-east-1",
        public_base_url="https://badges-bucket.example.com",
        render_api_url=RENDER_API,
        render_user_id="user",
        render_api_key="key",
        github_token="tok",
        github_api_url=GITHUB_API,
        author_name="Badge Bot",
        author_email="bot@example.com",
    )
    values.update(overrides)
    return Settings(**values)


class FakeInternet:
    """Routes every outbound request of a run and records them."""

    def __init__(self, source_html=SOURCE_HTML, render_response=None):
        self.requests = []
        self.source_html = source_html
        self.render_response = render_response or httpx.Response(200, json={"url": IMAGE_URL})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url == SOURCE_URL:
            return httpx.Response(200, text=self.source_html)
        if url == RENDER_API:
            return self.render_response
        if url == IMAGE_URL:
            return httpx.Response(200, content=NEW_BADGE)
        if url == f"{GITHUB_API}/repos/octo/profile/pulls":
            return httpx.Response(201, json={"html_url": PR_URL})
        return httpx.Response(404)

    def to(self, url: str):
        return [r for r in self.requests if str(r.url) == url]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def work_dir(tmp_path: Path) -> str:
    path = tmp_path / "artifacts"
    path.mkdir()
    return str(path)


def _mock_collaborators():
    store = Mock(spec=ArtifactStore)
    store.public_url.return_value = "https://badges-bucket.example.com/badge.html"
    store.get.return_value = NEW_BADGE
    return {
        "store": store,
        "renderer": Mock(spec=RenderClient),
        "repository": Mock(spec=RepositoryMutator),
        "pull_requests": Mock(spec=PullRequestOpener),
    }


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------

class TestEndToEnd:
    def test_rotates_badge_and_opens_pull_request(self, origin, workspace_root, work_dir):
        internet = FakeInternet()
        http = internet.client()
        settings = _settings()
        s3 = FakeS3()
        store = ArtifactStore(settings, http, s3_client=s3)
        repository = RepositoryMutator(str(origin), token="tok", workspace_root=workspace_root)

        outcome = BadgeRotator(
            settings,
            http_client=http,
            store=store,
            repository=repository,
            clock=_october,
            work_dir=work_dir,
        ).run()

        assert outcome.ok
        assert outcome.status_code == 200
        assert outcome.message == SUCCESS_MESSAGE
        assert outcome.stage is None
        run = outcome.run

        # extracted and wrapped
        assert run.fragment.html == BADGE
        assert BADGE in run.page.html
        assert s3.objects["badge.html"] == run.page.html.encode("utf-8")

        # rendered from the published page
        render_call = json.loads(internet.to(RENDER_API)[0].content)
        assert render_call["url"] == "https://badges-bucket.example.com/badge.html"
        assert render_call["selector"] == ".container"

        # image fetched from the exact render URL and archived
        assert len(internet.to(IMAGE_URL)) == 1
        assert run.image.source_url == IMAGE_URL
        assert Path(run.image.local_path).read_bytes() == NEW_BADGE
        assert s3.objects["extracted/badge.png"] == NEW_BADGE

        # committed and pushed
        assert run.branch == "update-badge-October"
        assert run.change_set.files == [BADGE_PATH]
        assert "refs/heads/update-badge-October" in remote_refs(origin)
        assert git_bytes("show", f"update-badge-October:{BADGE_PATH}", cwd=origin) == NEW_BADGE

        # pull request
        pr_call = json.loads(internet.to(f"{GITHUB_API}/repos/octo/profile/pulls")[0].content)
        assert pr_call == {
            "title": "Update badge for October",
            "head": "update-badge-October",
            "base": "main",
            "body": "Swap in the latest badge with the stats for October",
            "maintainer_can_modify": True,
        }
        assert run.pull_request_url == PR_URL

    def test_configured_base_branch_wins(self, origin, workspace_root, work_dir):
        internet = FakeInternet()
        http = internet.client()
        settings = _settings(base_branch="master")
        repository = RepositoryMutator(str(origin), workspace_root=workspace_root)

        outcome = BadgeRotator(
            settings,
            http_client=http,
            store=ArtifactStore(settings, http, s3_client=FakeS3()),
            repository=repository,
            clock=_october,
            work_dir=work_dir,
        ).run()

        assert outcome.ok
        pr_call = json.loads(internet.to(f"{GITHUB_API}/repos/octo/profile/pulls")[0].content)
        assert pr_call["base"] == "master"


# ---------------------------------------------------------------------------
# Short-circuiting
# ---------------------------------------------------------------------------

class TestShortCircuit:
    def test_missing_configuration_touches_nothing(self, work_dir):
        internet = FakeInternet()
        mocks = _mock_collaborators()

        outcome = BadgeRotator(
            Settings(), http_client=internet.client(), clock=_october, work_dir=work_dir, **mocks
        ).run()

        assert not outcome.ok
        assert outcome.status_code == 400
        assert outcome.stage == "configuration"
        assert "render_api_key" in outcome.message
        assert internet.requests == []
        for mock in mocks.values():
            assert mock.mock_calls == []

    def test_document_without_anchor_stops_at_extract(self, work_dir):
        internet = FakeInternet(source_html="<html><body><div><p>No badge</p></div></body></html>")
        mocks = _mock_collaborators()

        outcome = BadgeRotator(
            _settings(), http_client=internet.client(), clock=_october, work_dir=work_dir, **mocks
        ).run()

        assert outcome.status_code == 500
        assert outcome.stage == "extract"
        assert len(internet.requests) == 1
        for mock in mocks.values():
            assert mock.mock_calls == []

    def test_source_error_stops_at_fetch(self, work_dir):
        mocks = _mock_collaborators()
        http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))

        outcome = BadgeRotator(
            _settings(), http_client=http, clock=_october, work_dir=work_dir, **mocks
        ).run()

        assert outcome.stage == "fetch"
        assert "503" in outcome.message
        for mock in mocks.values():
            assert mock.mock_calls == []

    def test_render_failure_never_touches_repository(self, work_dir):
        internet = FakeInternet(render_response=httpx.Response(200, text="oops"))
        http = internet.client()
        settings = _settings()
        mocks = _mock_collaborators()
        del mocks["renderer"]

        outcome = BadgeRotator(
            settings, http_client=http, clock=_october, work_dir=work_dir, **mocks
        ).run()

        assert outcome.stage == "render"
        assert outcome.status_code == 500
        mocks["store"].put.assert_called_once()
        mocks["store"].get.assert_not_called()
        assert mocks["repository"].mock_calls == []
        assert mocks["pull_requests"].mock_calls == []

    def test_push_failure_skips_pull_request(self, work_dir):
        mocks = _mock_collaborators()
        mocks["renderer"].render.return_value = IMAGE_URL
        mocks["repository"].branch.return_value = "update-badge-October"
        mocks["repository"].push.side_effect = PushError("rejected")

        outcome = BadgeRotator(
            _settings(), http_client=FakeInternet().client(), clock=_october, work_dir=work_dir, **mocks
        ).run()

        assert outcome.stage == "push"
        assert outcome.message == "push failed: rejected"
        mocks["repository"].branch.assert_called_once_with("October")
        mocks["repository"].overwrite_file.assert_called_once()
        mocks["pull_requests"].open.assert_not_called()
        # rendered image was stored locally and archived before the repository stages
        assert [c.args[1] for c in mocks["store"].put.call_args_list] == [
            "badge.html",
            "extracted/badge.png",
        ]

    def test_existing_branch_is_reported_at_branch_stage(self, tmp_path, workspace_root, work_dir):
        origin = make_origin(tmp_path, extra_branches=["update-badge-October"])
        internet = FakeInternet()
        http = internet.client()
        settings = _settings()

        outcome = BadgeRotator(
            settings,
            http_client=http,
            store=ArtifactStore(settings, http, s3_client=FakeS3()),
            repository=RepositoryMutator(str(origin), workspace_root=workspace_root),
            clock=_october,
            work_dir=work_dir,
        ).run()

        assert outcome.stage == "branch"
        assert "already exists" in outcome.message
        assert internet.to(f"{GITHUB_API}/repos/octo/profile/pulls") == []
