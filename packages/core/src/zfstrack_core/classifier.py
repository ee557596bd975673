"""Classification of upstream commits by their downstream status.

Strategies are tried in order and the first one that returns a result
decides the status:

    LedgerStrategy        manual dispositions from the exception ledger
    PullRequestStrategy   an open downstream pull request for the issue
    DownstreamLogStrategy a downstream commit whose subject names the issue
    MissingStrategy       everything else

MissingStrategy always answers, so every commit gets exactly one status.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from zfstrack_core.models import ClassificationResult, CommitRecord, Status

if TYPE_CHECKING:
    from zfstrack_core.gh.pull_request import PullRequestIndex
    from zfstrack_core.git.history import DownstreamLog
    from zfstrack_core.ledger import ExceptionLedger

logger = logging.getLogger(__name__)


class ClassificationStrategy(ABC):
    @abstractmethod
    def classify(self, commit: CommitRecord) -> ClassificationResult | None:
        """Return a result, or None to defer to the next strategy."""


class LedgerStrategy(ClassificationStrategy):
    def __init__(self, ledger: ExceptionLedger, pulls: PullRequestIndex, commit_url: str):
        self.ledger = ledger
        self.pulls = pulls
        self.commit_url = commit_url

    def classify(self, commit: CommitRecord) -> ClassificationResult | None:
        entry = self.ledger.get(commit.issue)
        if entry is None:
            return None

        if entry.is_not_applicable:
            return ClassificationResult(Status.NOT_APPLICABLE, reference=entry.disposition, comment=entry.comment)

        if entry.is_pending:
            pr = self.pulls.get(commit.issue)
            if pr is not None:
                return ClassificationResult(
                    Status.PENDING, reference=pr.label, reference_url=pr.url, comment=entry.comment
                )
            return ClassificationResult(Status.PENDING, reference=entry.disposition, comment=entry.comment)

        if entry.disposition:
            return ClassificationResult(
                Status.EXCEPTION,
                reference=entry.disposition,
                reference_url=f"{self.commit_url}/{entry.disposition}",
                comment=entry.comment,
            )

        logger.debug("Ignoring ledger row for issue %s without a disposition", commit.issue)
        return None


class PullRequestStrategy(ClassificationStrategy):
    def __init__(self, pulls: PullRequestIndex):
        self.pulls = pulls

    def classify(self, commit: CommitRecord) -> ClassificationResult | None:
        pr = self.pulls.get(commit.issue)
        if pr is None:
            return None
        return ClassificationResult(Status.PULL_REQUEST, reference=pr.label, reference_url=pr.url)


class DownstreamLogStrategy(ClassificationStrategy):
    def __init__(self, log: DownstreamLog, commit_url: str):
        self.log = log
        self.commit_url = commit_url

    def classify(self, commit: CommitRecord) -> ClassificationResult | None:
        match = self.log.find_port(commit.issue)
        if match is None:
            return None
        return ClassificationResult(Status.APPLIED, reference=match, reference_url=f"{self.commit_url}/{match}")


class MissingStrategy(ClassificationStrategy):
    def classify(self, commit: CommitRecord) -> ClassificationResult:
        return ClassificationResult(Status.MISSING)


class Classifier:
    def __init__(self, strategies: list[ClassificationStrategy]):
        self.strategies = list(strategies)
        if not self.strategies or not isinstance(self.strategies[-1], MissingStrategy):
            self.strategies.append(MissingStrategy())

    def classify(self, commit: CommitRecord) -> ClassificationResult:
        for strategy in self.strategies:
            result = strategy.classify(commit)
            if result is not None:
                return result
        raise AssertionError("MissingStrategy must always classify")


def build_classifier(
    ledger: ExceptionLedger,
    pulls: PullRequestIndex,
    log: DownstreamLog,
    commit_url: str,
) -> Classifier:
    return Classifier(
        [
            LedgerStrategy(ledger, pulls, commit_url),
            PullRequestStrategy(pulls),
            DownstreamLogStrategy(log, commit_url),
            MissingStrategy(),
        ]
    )
