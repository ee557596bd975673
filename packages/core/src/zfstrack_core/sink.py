"""Destinations for the hashes of upstream commits that were not ported.

A companion porting script reads this list to know which upstream commits
still need a downstream pull request. The tracker always writes to a sink;
when no file was requested it gets a NoOpSink.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO


class BaseSink(ABC):
    @abstractmethod
    def write(self, commit_hash: str) -> None:
        """Record one missing upstream commit hash."""

    def close(self) -> None:
        """Release any resources held by the sink."""


class NoOpSink(BaseSink):
    def write(self, commit_hash: str) -> None:
        pass


class FileSink(BaseSink):
    """Appends one hash per line, preserving earlier contents of the file.

    The file is opened on the first write, so a run without missing commits
    leaves it untouched.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._file: IO[str] | None = None

    def write(self, commit_hash: str) -> None:
        if self._file is None:
            self._file = open(self.path, "a", encoding="utf-8")
        self._file.write(f"{commit_hash}\n")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
