import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from zfstrack_core.models import Status

logger = logging.getLogger(__name__)

# Only upstream commits touching one of these paths are tracked.
DEFAULT_UPSTREAM_PATHS = [
    "usr/src/uts/common/fs/zfs/sys",
    "usr/src/uts/common/fs/zfs",
    "usr/src/cmd/zdb",
    "usr/src/cmd/zfs",
    "usr/src/cmd/zhack",
    "usr/src/cmd/zinject",
    "usr/src/cmd/zpool",
    "usr/src/cmd/zstreamdump",
    "usr/src/cmd/ztest",
    "usr/src/lib/libzfs",
    "usr/src/lib/libzfs_core",
    "usr/src/lib/libzpool",
    "usr/src/man/man1m/zdb.1m",
    "usr/src/man/man1m/zfs.1m",
    "usr/src/man/man1m/zpool.1m",
    "usr/src/man/man1m/zstreamdump.1m",
    "usr/src/common/zfs",
    "usr/src/test/zfs-tests",
    "usr/src/tools/scripts/cstyle.pl",
    "usr/src/common/nvpair",
    "usr/src/common/avl",
]

DEFAULT_STATUSES: dict = {
    "applied": {"label": "Applied", "css_class": "st_appl", "color": "#80ff00"},
    "exception": {"label": "Applied", "css_class": "st_exc", "color": "#80ff00"},
    "missing": {"label": "No existing pull request", "css_class": "st_mis", "color": "#ff9999"},
    "pull_request": {"label": "Pull request", "css_class": "st_pr", "color": "#ffee3a"},
    "not_applicable": {"label": "Not applicable to Linux", "css_class": "st_na", "color": "#DDDDDD"},
    "pending": {"label": "Pending", "css_class": "st_pa", "color": "#ffa500"},
}

DEFAULT_CONFIG: dict = {
    "upstream_branch": "openzfs/master",
    "upstream_hash_start": "1af68be",
    "upstream_hash_end": "HEAD",
    "upstream_paths": DEFAULT_UPSTREAM_PATHS,
    "upstream_issue_url": "https://www.illumos.org/issues",
    "upstream_commit_url": "https://github.com/openzfs/openzfs/commit",
    "downstream_branch": "zfsonlinux/master",
    "downstream_commit_url": "https://github.com/zfsonlinux/zfs/commit",
    "downstream_repo": "zfsonlinux/zfs",
    "pr_title_label": "OpenZFS",
    "exceptions_url": "https://raw.githubusercontent.com/wiki/zfsonlinux/zfs/OpenZFS-exceptions.md",
    "wiki_url": "https://github.com/zfsonlinux/zfs/wiki/OpenZFS-Patches",
    "fetch_remotes": True,
    "request_timeout": 30,
    "statuses": {},  # per-status overrides, e.g. {"missing": {"color": "#ff0000"}}
}


@dataclass(frozen=True)
class StatusStyle:
    label: str
    css_class: str
    color: str


@dataclass(frozen=True)
class TrackingConfig:
    """Everything a tracking run needs, passed explicitly to each component."""

    upstream_branch: str
    upstream_hash_start: str
    upstream_hash_end: str
    upstream_paths: tuple[str, ...]
    upstream_issue_url: str
    upstream_commit_url: str
    downstream_branch: str
    downstream_commit_url: str
    downstream_repo: str
    pr_title_label: str
    exceptions_url: str
    wiki_url: str
    fetch_remotes: bool = True
    request_timeout: float = 30
    github_token: Optional[str] = None
    statuses: dict[Status, StatusStyle] = field(default_factory=dict)

    def style(self, status: Status) -> StatusStyle:
        return self.statuses[status]

    @property
    def upstream_range(self) -> str:
        return f"{self.upstream_hash_start}..{self.upstream_hash_end}"


def _build_statuses(overrides: Optional[dict]) -> dict[Status, StatusStyle]:
    overrides = overrides or {}
    unknown = set(overrides) - set(DEFAULT_STATUSES)
    if unknown:
        raise ValueError(f"Unknown status name(s) in config: {', '.join(sorted(unknown))}")

    statuses = {}
    for name, defaults in DEFAULT_STATUSES.items():
        merged = {**defaults, **(overrides.get(name) or {})}
        statuses[Status(name)] = StatusStyle(**merged)
    return statuses


def build_tracking_config(config: dict) -> TrackingConfig:
    return TrackingConfig(
        upstream_branch=config["upstream_branch"],
        upstream_hash_start=config["upstream_hash_start"],
        upstream_hash_end=config["upstream_hash_end"],
        upstream_paths=tuple(config["upstream_paths"]),
        upstream_issue_url=config["upstream_issue_url"].rstrip("/"),
        upstream_commit_url=config["upstream_commit_url"].rstrip("/"),
        downstream_branch=config["downstream_branch"],
        downstream_commit_url=config["downstream_commit_url"].rstrip("/"),
        downstream_repo=config["downstream_repo"],
        pr_title_label=config["pr_title_label"],
        exceptions_url=config["exceptions_url"],
        wiki_url=config["wiki_url"],
        fetch_remotes=bool(config["fetch_remotes"]),
        request_timeout=config["request_timeout"],
        github_token=config.get("github_token"),
        statuses=_build_statuses(config.get("statuses")),
    )


def resolve_github_token(timeout: float = 5) -> Optional[str]:
    """Return a GitHub token from GITHUB_TOKEN or the gh CLI session, else None.

    Listing open pull requests works anonymously, but a token raises the API
    rate limit. Never raises.
    """
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(["gh", "auth", "token"], capture_output=True, text=True, timeout=timeout)
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("gh CLI unavailable (%s); listing pull requests anonymously.", e)
        return None

    if result.returncode == 0 and result.stdout.strip():
        logger.debug("Resolved GitHub token via gh CLI session.")
        return result.stdout.strip()

    logger.debug("No GitHub token found; listing pull requests anonymously.")
    return None


def load_config(config_path: str = ".zfstrack.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .zfstrack.yml in the current directory
      3. CLI argument overrides

    The GitHub token comes from GITHUB_TOKEN, falling back to `gh auth token`.
    """
    config = {
        **DEFAULT_CONFIG,
        "upstream_paths": list(DEFAULT_CONFIG["upstream_paths"]),
        "statuses": dict(DEFAULT_CONFIG["statuses"]),
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["github_token"] = resolve_github_token(timeout=config["request_timeout"])

    return config
