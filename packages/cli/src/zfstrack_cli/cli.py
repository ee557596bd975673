"""CLI entry point for zfstrack.

Generates the OpenZFS commit tracking page from a git repository that has
both the OpenZFS and the ZFS on Linux remotes:

    git clone -o zfsonlinux https://github.com/zfsonlinux/zfs.git
    cd zfs
    git remote add openzfs https://github.com/openzfs/openzfs.git
    zfstrack -d . > openzfs-tracking.html

The report goes to stdout (or --output); progress, warnings and the status
summary go to stderr.
"""

from __future__ import annotations

import logging

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from zfstrack_core.models import Status
from zfstrack_core.render import TIMESTAMP_FORMAT

console = Console(stderr=True)

_STATUS_ORDER = [
    Status.APPLIED,
    Status.EXCEPTION,
    Status.PULL_REQUEST,
    Status.PENDING,
    Status.NOT_APPLICABLE,
    Status.MISSING,
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _help_and_fail(ctx: click.Context, param, value):
    """Print usage and exit non-zero; a help request is not a tracking run."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(ctx.get_help())
    ctx.exit(1)


def _print_summary(summary, tracking_config) -> None:
    table = Table(
        title="Upstream commit status",
        caption=f"Report generated {summary.generated_at.strftime(TIMESTAMP_FORMAT)}",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Status", style="bold")
    table.add_column("Commits", justify="right")
    for status in _STATUS_ORDER:
        style = tracking_config.style(status)
        label = style.label if status is not Status.EXCEPTION else f"{style.label} (exception)"
        table.add_row(label, str(summary.count(status)))
    table.add_row("[bold]Total[/bold]", f"[bold]{summary.total}[/bold]")
    console.print(table)


@click.command(context_settings={"help_option_names": []})
@click.version_option(package_name="zfstrack", prog_name="zfstrack")
@click.option(
    "-h",
    "--help",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_help_and_fail,
    help="Show this message and exit with status 1.",
)
@click.option(
    "-d",
    "--directory",
    "repo_dir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="Git repository with the openzfs and zfsonlinux remotes.",
)
@click.option(
    "-e",
    "--exceptions",
    "exceptions_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Exception ledger file. Defaults to the ZFS on Linux wiki page.",
)
@click.option(
    "-c",
    "--hashes-file",
    "hashes_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append the hashes of unported upstream commits to this file.",
)
@click.option(
    "-o",
    "--output",
    type=click.File("w"),
    default="-",
    show_default=True,
    help="Where to write the HTML report.",
)
@click.option(
    "--config",
    "config_path",
    default=".zfstrack.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="ZFSTRACK_CONFIG",
)
@click.option("--no-fetch", is_flag=True, help="Do not run `git fetch --all` before reading history.")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
def main(
    repo_dir: str,
    exceptions_path: str | None,
    hashes_path: str | None,
    output,
    config_path: str,
    no_fetch: bool,
    verbose: bool,
):
    """Generate the OpenZFS commit tracking page.

    Every OpenZFS commit touching ZFS code is listed with its status in the
    ZFS on Linux branch: applied, pending, open pull request, not applicable
    or missing.

    \b
    Example:
      zfstrack -d ~/openzfs-tracking/zfs > public_html/openzfs-tracking.html
    """
    from zfstrack_core.config import build_tracking_config, load_config
    from zfstrack_core.git.history import GitError
    from zfstrack_core.sink import FileSink, NoOpSink
    from zfstrack_core.tracker import run_tracking

    _configure_logging(verbose)

    try:
        config = load_config(config_path, cli_overrides={"fetch_remotes": False if no_fetch else None})
        tracking_config = build_tracking_config(config)
    except (yaml.YAMLError, ValueError, KeyError, TypeError) as e:
        raise click.UsageError(f"Invalid configuration in {config_path}: {e}")

    sink = FileSink(hashes_path) if hashes_path else NoOpSink()

    try:
        summary = run_tracking(
            repo_dir,
            tracking_config,
            output,
            exceptions_path=exceptions_path,
            sink=sink,
        )
    except GitError as e:
        raise click.ClickException(str(e))
    finally:
        sink.close()

    _print_summary(summary, tracking_config)
