"""Tracking run orchestration."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import IO, Iterator

from zfstrack_core.classifier import Classifier, build_classifier
from zfstrack_core.config import TrackingConfig
from zfstrack_core.gh.pull_request import load_pull_request_index
from zfstrack_core.git.history import DownstreamLog, UpstreamHistory, fetch_all, verify_refs
from zfstrack_core.ledger import load_ledger
from zfstrack_core.models import Status
from zfstrack_core.render import ReportRow, build_row, write_report
from zfstrack_core.sink import BaseSink, NoOpSink

logger = logging.getLogger(__name__)


@dataclass
class TrackingSummary:
    """Per-status counts for a finished run, for the CLI to display.

    ``generated_at`` is also the timestamp in the report footer.
    """

    counts: Counter = field(default_factory=Counter)
    missing: list[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now().astimezone())

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def count(self, status: Status) -> int:
        return self.counts.get(status, 0)


def classify_commits(
    config: TrackingConfig,
    history,
    classifier: Classifier,
    sink: BaseSink,
    summary: TrackingSummary,
) -> Iterator[ReportRow]:
    """Classify commits one at a time and yield a report row for each.

    Missing commits are written to ``sink`` as they are found, so the sink
    sees them in history order.
    """
    for commit in history:
        result = classifier.classify(commit)
        summary.counts[result.status] += 1
        if result.status is Status.MISSING:
            summary.missing.append(commit.hash)
            sink.write(commit.hash)
        logger.debug("%s (issue %s): %s", commit.hash, commit.issue, result.status.value)
        yield build_row(config, commit, result)


def run_tracking(
    repo_dir: str | Path,
    config: TrackingConfig,
    out: IO[str],
    exceptions_path: str | Path | None = None,
    sink: BaseSink | None = None,
) -> TrackingSummary:
    """Classify every tracked upstream commit and write the HTML report to ``out``.

    Repository problems surface before anything is written to ``out``. The
    ledger and pull request fetches never abort the run; they fall back to
    empty data.
    """
    sink = sink if sink is not None else NoOpSink()

    if config.fetch_remotes:
        logger.info("Fetching all remotes in %s", repo_dir)
        fetch_all(repo_dir)
    verify_refs(
        repo_dir,
        [config.upstream_branch, config.upstream_hash_start, config.upstream_hash_end, config.downstream_branch],
    )

    ledger = load_ledger(exceptions_path, config.exceptions_url, timeout=config.request_timeout)
    pulls = load_pull_request_index(
        config.downstream_repo,
        token=config.github_token,
        label=config.pr_title_label,
        timeout=config.request_timeout,
    )
    logger.info("Loaded %d ledger row(s) and %d open pull request(s)", len(ledger), len(pulls))

    classifier = build_classifier(
        ledger,
        pulls,
        DownstreamLog(repo_dir, config.downstream_branch),
        config.downstream_commit_url,
    )
    history = UpstreamHistory(repo_dir, config.upstream_branch, config.upstream_range, config.upstream_paths)

    summary = TrackingSummary()
    rows = classify_commits(config, history, classifier, sink, summary)
    write_report(config, rows, out, generated_at=summary.generated_at)
    return summary
