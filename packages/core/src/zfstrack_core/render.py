"""HTML rendering of the tracking report."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO, Iterable, Iterator

from jinja2 import Environment, FileSystemLoader

from zfstrack_core.config import TrackingConfig
from zfstrack_core.models import ClassificationResult, CommitRecord

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
REPORT_TEMPLATE = "report.html.j2"
TIMESTAMP_FORMAT = "%a %b %d %H:%M:%S %Z %Y"


@dataclass(frozen=True)
class ReportRow:
    issue: str
    issue_url: str
    commit_hash: str
    commit_url: str
    reference: str
    reference_url: str | None
    description: str
    comment: str
    label: str
    css_class: str


def _template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def build_row(config: TrackingConfig, commit: CommitRecord, result: ClassificationResult) -> ReportRow:
    style = config.style(result.status)
    return ReportRow(
        issue=commit.issue,
        issue_url=f"{config.upstream_issue_url}/{commit.issue}",
        commit_hash=commit.hash,
        commit_url=f"{config.upstream_commit_url}/{commit.hash}",
        reference=result.reference,
        reference_url=result.reference_url,
        description=commit.description,
        comment=result.comment,
        label=style.label,
        css_class=style.css_class,
    )


def iter_report(
    config: TrackingConfig,
    rows: Iterable[ReportRow],
    generated_at: datetime | None = None,
) -> Iterator[str]:
    """Yield the report in chunks; ``rows`` is consumed lazily."""
    template = _template_env().get_template(REPORT_TEMPLATE)
    generated_at = generated_at or datetime.now().astimezone()
    return template.generate(
        title=f"{config.pr_title_label} Tracking",
        heading=f"{config.pr_title_label} Commit Tracking",
        wiki_url=config.wiki_url,
        styles=list(config.statuses.values()),
        rows=rows,
        generated_at=generated_at.strftime(TIMESTAMP_FORMAT),
    )


def write_report(
    config: TrackingConfig,
    rows: Iterable[ReportRow],
    out: IO[str],
    generated_at: datetime | None = None,
) -> None:
    for chunk in iter_report(config, rows, generated_at):
        out.write(chunk)
    out.flush()
