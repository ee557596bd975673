"""Local git history access for both sides of the comparison.

Both projects must be reachable from one working copy, normally as two
remotes (``openzfs`` and ``zfsonlinux``). Everything here shells out to
``git``; a failing invocation raises GitError.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Iterator

from zfstrack_core.models import CommitRecord

logger = logging.getLogger(__name__)

_ISSUE_RE = re.compile(r"^[0-9]+$")
_TRAILER_MARKERS = ("Reviewed", "Approved")


class GitError(RuntimeError):
    pass


def run_git(repo: str | Path, args: list[str]) -> str:
    try:
        res = subprocess.run(
            ["git", "-C", str(repo), *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except FileNotFoundError:
        raise GitError("git executable not found")
    if res.returncode != 0:
        raise GitError(f"git {' '.join(args[:2])} failed: {res.stderr.strip()}")
    return res.stdout


def verify_refs(repo: str | Path, refs: list[str]) -> None:
    """Fail early if ``repo`` is not a git repository or a ref is unknown."""
    for ref in refs:
        try:
            run_git(repo, ["rev-parse", "--verify", f"{ref}^{{commit}}"])
        except GitError as e:
            raise GitError(f"Unknown revision {ref!r} in {repo}: {e}") from e


def fetch_all(repo: str | Path) -> None:
    run_git(repo, ["fetch", "--all", "--quiet"])


def strip_trailers(text: str) -> str:
    """Drop reviewer/approval annotations folded into a one-line subject."""
    for marker in _TRAILER_MARKERS:
        idx = text.find(marker)
        if idx != -1:
            text = text[:idx]
    return text.strip()


def parse_log_line(line: str) -> CommitRecord | None:
    """Turn one ``--oneline`` log line into a CommitRecord.

    Returns None for commits whose subject does not start with a numeric
    issue id; those don't follow the upstream commit message convention.
    """
    parts = line.strip().split(None, 2)
    if len(parts) < 2:
        return None
    commit_hash, token = parts[0], parts[1]
    if not _ISSUE_RE.match(token):
        logger.debug("Skipping %s: %r is not an issue number", commit_hash, token)
        return None
    description = strip_trailers(parts[2]) if len(parts) > 2 else ""
    return CommitRecord(hash=commit_hash, issue=token, description=description)


class UpstreamHistory:
    """Upstream commits in ``git log`` order, restricted to tracked paths.

    Iterating starts a fresh ``git log`` and streams its output, so the
    history is never held in memory and every iteration starts over.
    """

    def __init__(self, repo: str | Path, branch: str, revision_range: str, paths: tuple[str, ...] | list[str]):
        self.repo = repo
        self.branch = branch
        self.revision_range = revision_range
        self.paths = list(paths)

    def command(self) -> list[str]:
        return [
            "git",
            "-C",
            str(self.repo),
            "log",
            "--oneline",
            "--no-decorate",
            self.revision_range,
            self.branch,
            "--",
            *self.paths,
        ]

    def __iter__(self) -> Iterator[CommitRecord]:
        try:
            proc = subprocess.Popen(
                self.command(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError:
            raise GitError("git executable not found")

        with proc:
            for line in proc.stdout:
                record = parse_log_line(line)
                if record is not None:
                    yield record
            stderr = proc.stderr.read()
            returncode = proc.wait()

        if returncode != 0:
            raise GitError(f"git log {self.revision_range} {self.branch} failed: {stderr.strip()}")


def downstream_pattern(issue: str) -> str:
    """Extended regex for a downstream commit porting ``issue``.

    The subject must start with ``openzfs`` or ``illumos``; the issue number
    must follow a space or ``#`` and must not be followed by another digit,
    so 123 never matches a port of 1234.
    """
    return rf"^(openzfs|illumos).*[ #]+{issue}([^0-9]|$)"


class DownstreamLog:
    """Searches the downstream branch for commits that reference an issue."""

    def __init__(self, repo: str | Path, branch: str):
        self.repo = repo
        self.branch = branch

    def find_port(self, issue: str) -> str | None:
        """Return the most recent non-merge commit porting ``issue``, if any."""
        out = run_git(
            self.repo,
            [
                "log",
                "--regexp-ignore-case",
                "--extended-regexp",
                "--no-merges",
                "--oneline",
                "--no-decorate",
                f"--grep={downstream_pattern(issue)}",
                self.branch,
            ],
        )
        for line in out.splitlines():
            if line.strip():
                return line.split()[0]
        return None
