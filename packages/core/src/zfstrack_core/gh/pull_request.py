from __future__ import annotations

import logging
import re

import requests
from github import Github, GithubException

from zfstrack_core.models import PullRequestEntry

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str | None = None, timeout: float = 15):
    return Github(token, timeout=timeout).get_repo(repo_name)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def _pr_number(pr) -> int:
    number = getattr(pr, "number", None)
    if isinstance(number, int):
        return number
    return int(pr.html_url.rstrip("/").rsplit("/", 1)[-1])


class PullRequestIndex:
    """Maps upstream issue numbers to open downstream pull requests.

    A PR is indexed under every ``"<label> <digits> "`` occurrence in its
    title. The trailing space is required, so a PR for 1234 is never found
    when looking up 123.
    """

    def __init__(self, entries: dict[str, PullRequestEntry] | None = None):
        self._entries = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, issue: str) -> PullRequestEntry | None:
        return self._entries.get(issue)

    @classmethod
    def from_pulls(cls, pulls, label: str = "OpenZFS") -> PullRequestIndex:
        title_re = re.compile(rf"{re.escape(label)} (\d+) ")
        entries: dict[str, PullRequestEntry] = {}
        for pr in pulls:
            for issue in title_re.findall(pr.title or ""):
                entry = PullRequestEntry(issue=issue, url=pr.html_url, number=_pr_number(pr))
                existing = entries.setdefault(issue, entry)
                if existing.url != entry.url:
                    logger.warning(
                        "Several open pull requests reference issue %s; using %s and ignoring %s.",
                        issue,
                        existing.url,
                        entry.url,
                    )
        return cls(entries)


def load_pull_request_index(
    repo_name: str,
    token: str | None = None,
    label: str = "OpenZFS",
    timeout: float = 30,
) -> PullRequestIndex:
    """Index the open pull requests of ``repo_name``; failures give an empty index."""
    try:
        repo = get_repo(repo_name, token, timeout)
        index = PullRequestIndex.from_pulls(get_pull_requests(repo), label=label)
    except (GithubException, requests.RequestException) as e:
        logger.warning("Could not list open pull requests for %s; continuing without them: %s", repo_name, e)
        return PullRequestIndex()
    logger.debug("Indexed %d open pull request(s) for %s", len(index), repo_name)
    return index
