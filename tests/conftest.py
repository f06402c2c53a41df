"""Shared fixtures: a local bare "origin" repository for git-backed tests."""

import subprocess
from pathlib import Path

import pytest

OLD_BADGE = b"\x89PNG\r\n\x1a\nold-badge"
BADGE_PATH = "img/badge.png"


def git(*args: str, cwd: Path) -> str:
    proc = subprocess.run(
        [
            "git",
            "-c", "user.name=Test",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout


def git_bytes(*args: str, cwd: Path) -> bytes:
    return subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=True).stdout


def make_origin(tmp_path: Path, extra_branches=(), extra_files=()) -> Path:
    """Create a bare repository on ``main`` holding README.md, the badge and *extra_files*."""
    seed = tmp_path / "seed"
    seed.mkdir()
    git("init", "--quiet", cwd=seed)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=seed)
    (seed / "README.md").write_text("# profile\n")
    (seed / "img").mkdir()
    (seed / BADGE_PATH).write_bytes(OLD_BADGE)
    for name in extra_files:
        (seed / name).parent.mkdir(parents=True, exist_ok=True)
        (seed / name).write_bytes(OLD_BADGE)
    git("add", "--all", cwd=seed)
    git("commit", "--quiet", "-m", "initial", cwd=seed)
    for branch in extra_branches:
        git("branch", branch, cwd=seed)

    origin = tmp_path / "origin.git"
    git("clone", "--quiet", "--bare", str(seed), str(origin), cwd=tmp_path)
    return origin


def remote_refs(origin: Path) -> str:
    proc = subprocess.run(["git", "show-ref"], cwd=origin, capture_output=True, text=True)
    return proc.stdout


@pytest.fixture
def origin(tmp_path: Path) -> Path:
    return make_origin(tmp_path)


@pytest.fixture
def workspace_root(tmp_path: Path) -> str:
    root = tmp_path / "workspaces"
    root.mkdir()
    return str(root)


class FakeS3:
    """Minimal stand-in for a boto3 S3 client backed by a dict."""

    def __init__(self, error=None):
        self.objects = {}
        self.calls = []
        self.error = error

    def put_object(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        self.objects[kwargs["Key"]] = kwargs["Body"]
        return {"ETag": '"etag"'}
