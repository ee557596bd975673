"""Exception ledger: manual dispositions for upstream issues.

The ledger is a Markdown-style pipe table, usually kept on the downstream
project's wiki::

    OpenZFS issue | ZFS on Linux commit | Comment
    ---|---|---
    100|-|removed in Linux
    200|!|
    300|abc123def|

Everything up to and including the ``---`` separator row is ignored. The
second column holds a downstream commit hash, ``!`` for a pending port or
``-`` for an upstream change that does not apply downstream.
"""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from zfstrack_core.models import ExceptionEntry

logger = logging.getLogger(__name__)

_SEPARATOR = "---"


def parse_ledger(text: str) -> list[ExceptionEntry]:
    """Parse ledger rows that follow the separator line.

    No validation is done: rows with a non-numeric issue or too few columns
    are kept as-is and simply never match a commit.
    """
    entries: list[ExceptionEntry] = []
    seen_separator = False
    for line in text.splitlines():
        if not seen_separator:
            seen_separator = _SEPARATOR in line
            continue
        if not line.strip():
            continue
        cells = line.split("|")
        issue = cells[0].strip()
        disposition = cells[1].replace(" ", "").strip() if len(cells) > 1 else ""
        comment = "|".join(cells[2:]).strip()
        entries.append(ExceptionEntry(issue=issue, disposition=disposition, comment=comment))
    return entries


def read_ledger(path: str | Path) -> list[ExceptionEntry]:
    return parse_ledger(Path(path).read_text(encoding="utf-8"))


def fetch_ledger(url: str, timeout: float = 30) -> list[ExceptionEntry]:
    """Download and parse the ledger; any failure yields an empty ledger."""
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Could not fetch exception ledger from %s; continuing without it: %s", url, e)
        return []
    return parse_ledger(resp.text)


class ExceptionLedger:
    """Issue lookup over ledger rows. The first matching row wins."""

    def __init__(self, entries: list[ExceptionEntry]):
        self._entries = list(entries)
        self._warned: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, issue: str) -> ExceptionEntry | None:
        matches = [e for e in self._entries if e.issue == issue]
        if not matches:
            return None
        if len(matches) > 1 and issue not in self._warned:
            self._warned.add(issue)
            logger.warning("Exception ledger has %d rows for issue %s; using the first one.", len(matches), issue)
        return matches[0]


def load_ledger(path: str | Path | None, url: str, timeout: float = 30) -> ExceptionLedger:
    """Read the ledger from ``path`` when given, otherwise fetch it from ``url``."""
    if path:
        entries = read_ledger(path)
        logger.debug("Loaded %d exception(s) from %s", len(entries), path)
    else:
        entries = fetch_ledger(url, timeout=timeout)
        logger.debug("Fetched %d exception(s) from %s", len(entries), url)
    return ExceptionLedger(entries)
