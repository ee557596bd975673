"""Records flowing through a tracking run.

Every record is computed, rendered and discarded within a single run;
nothing here is persisted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Status(str, enum.Enum):
    """Closed set of outcomes for an upstream commit.

    Adding a member requires a matching entry in ``DEFAULT_STATUSES`` so the
    report has a label and colour for it.
    """

    APPLIED = "applied"
    EXCEPTION = "exception"  # applied, as recorded in the exception ledger
    MISSING = "missing"
    PULL_REQUEST = "pull_request"
    NOT_APPLICABLE = "not_applicable"
    PENDING = "pending"


@dataclass(frozen=True)
class CommitRecord:
    """One upstream commit with a numeric issue id."""

    hash: str
    issue: str
    description: str


@dataclass(frozen=True)
class ExceptionEntry:
    """A manual disposition for an upstream issue.

    ``disposition`` is a downstream commit hash, ``"!"`` (pending) or
    ``"-"`` (not applicable).
    """

    issue: str
    disposition: str
    comment: str = ""

    PENDING = "!"
    NOT_APPLICABLE = "-"

    @property
    def is_pending(self) -> bool:
        return self.disposition == self.PENDING

    @property
    def is_not_applicable(self) -> bool:
        return self.disposition == self.NOT_APPLICABLE


@dataclass(frozen=True)
class PullRequestEntry:
    issue: str
    url: str
    number: int

    @property
    def label(self) -> str:
        return f"PR-{self.number}"


@dataclass(frozen=True)
class ClassificationResult:
    """Status for one commit plus what to show in the downstream column.

    ``reference`` is the visible text; when ``reference_url`` is set the
    text is rendered as a link to it.
    """

    status: Status
    reference: str = ""
    reference_url: str | None = None
    comment: str = ""
