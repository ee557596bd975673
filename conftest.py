"""Shared fixtures: a throwaway git repository holding both histories."""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

import pytest

LEDGER_TEXT = """\
OpenZFS issue | ZFS on Linux commit | Comment
---|---|---
100|-|removed in Linux
200|!|
300|abc123def|
"""


def git(repo: Path, *args: str) -> str:
    env = {
        **os.environ,
        "GIT_AUTHOR_NAME": "Test",
        "GIT_AUTHOR_EMAIL": "test@example.com",
        "GIT_COMMITTER_NAME": "Test",
        "GIT_COMMITTER_EMAIL": "test@example.com",
    }
    res = subprocess.run(
        ["git", "-C", str(repo), "-c", "commit.gpgsign=false", *args],
        check=True,
        capture_output=True,
        text=True,
        env=env,
    )
    return res.stdout.strip()


def commit_file(repo: Path, path: str, message: str) -> str:
    target = repo / path
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "a") as f:
        f.write(message + "\n")
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "--short", "HEAD")


@dataclass
class TrackingRepo:
    path: Path
    base: str
    upstream: dict[str, str] = field(default_factory=dict)
    downstream: dict[str, str] = field(default_factory=dict)

    def config_overrides(self) -> dict:
        return {
            "upstream_branch": "upstream",
            "upstream_hash_start": self.base,
            "upstream_hash_end": "upstream",
            "upstream_paths": ["usr/src/uts/common/fs/zfs"],
            "downstream_branch": "downstream",
            "fetch_remotes": False,
        }


@pytest.fixture(autouse=True)
def github_token_env(monkeypatch):
    """Keep `load_config` from shelling out to the gh CLI during tests."""
    monkeypatch.setenv("GITHUB_TOKEN", "test-token")


@pytest.fixture
def tracking_repo(tmp_path) -> TrackingRepo:
    """Repository with a ``downstream`` and an unrelated ``upstream`` branch.

    Upstream issues: 100 (ledger: not applicable), 200 (ledger: pending),
    300 (ledger: explicit commit), 400 (ported downstream), 500 (missing).
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "zfs"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/downstream")

    downstream = {
        "init": commit_file(repo, "module/zfs/spa.c", "Initial import"),
        "400": commit_file(repo, "module/zfs/arc.c", "OpenZFS #400 fixed leak"),
        "5000": commit_file(repo, "module/zfs/dbuf.c", "OpenZFS 5000 - unrelated larger issue"),
    }

    git(repo, "checkout", "-q", "--orphan", "upstream")
    git(repo, "rm", "-rfq", ".")
    base = commit_file(repo, "usr/src/uts/common/fs/zfs/spa.c", "1 base commit")
    upstream = {
        "100": commit_file(repo, "usr/src/uts/common/fs/zfs/vdev.c", "100 remove thing Reviewed by: A Person"),
        "200": commit_file(repo, "usr/src/uts/common/fs/zfs/zio.c", "200 pending thing"),
        "300": commit_file(repo, "usr/src/uts/common/fs/zfs/zap.c", "300 exception thing"),
        "typo": commit_file(repo, "usr/src/uts/common/fs/zfs/zap.c", "Fix typo in comment"),
        "400": commit_file(repo, "usr/src/uts/common/fs/zfs/arc.c", "400 fixed leak Approved by: Someone"),
        "untracked": commit_file(repo, "usr/src/uts/intel/os.c", "600 not a ZFS path"),
        "500": commit_file(repo, "usr/src/uts/common/fs/zfs/dbuf.c", "500 missing thing"),
    }
    return TrackingRepo(path=repo, base=base, upstream=upstream, downstream=downstream)


@pytest.fixture
def ledger_file(tmp_path) -> Path:
    path = tmp_path / "OpenZFS-exceptions.md"
    path.write_text(LEDGER_TEXT)
    return path
