"""Tests for the CLI entry point."""

import yaml
from click.testing import CliRunner

from zfstrack_cli.cli import main
from zfstrack_core.gh.pull_request import PullRequestIndex
from zfstrack_core.git.history import GitError
from zfstrack_core.models import Status
from zfstrack_core.sink import FileSink, NoOpSink
from zfstrack_core.tracker import TrackingSummary


def _patch_common(mocker, token="tok"):
    """Patch token resolution and the tracking run for most tests."""
    mocker.patch("zfstrack_core.config.resolve_github_token", return_value=token)
    summary = TrackingSummary()
    summary.counts[Status.APPLIED] = 3
    summary.counts[Status.MISSING] = 2
    mock_run = mocker.patch("zfstrack_core.tracker.run_tracking", return_value=summary)
    return mock_run


class TestHelp:
    def test_short_help_exits_non_zero(self):
        result = CliRunner().invoke(main, ["-h"])
        assert result.exit_code == 1
        assert "--exceptions" in result.output
        assert "--hashes-file" in result.output

    def test_long_help_exits_non_zero(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 1
        assert "Generate the OpenZFS commit tracking page." in result.output

    def test_help_does_not_run_tracking(self, mocker):
        mock_run = _patch_common(mocker)
        CliRunner().invoke(main, ["-h"])
        mock_run.assert_not_called()


class TestOptions:
    def test_defaults(self, mocker, tmp_path):
        mock_run = _patch_common(mocker)
        with CliRunner().isolated_filesystem(temp_dir=tmp_path):
            result = CliRunner().invoke(main, [])
        assert result.exit_code == 0, result.output
        args, kwargs = mock_run.call_args
        assert args[0] == "."
        assert args[1].downstream_branch == "zfsonlinux/master"
        assert args[1].fetch_remotes is True
        assert args[1].github_token == "tok"
        assert kwargs["exceptions_path"] is None
        assert isinstance(kwargs["sink"], NoOpSink)

    def test_directory_exceptions_and_hashes(self, mocker, tmp_path):
        mock_run = _patch_common(mocker)
        ledger = tmp_path / "ledger.md"
        ledger.write_text("---|---|---\n")
        hashes = tmp_path / "hashes.txt"

        result = CliRunner().invoke(main, ["-d", str(tmp_path), "-e", str(ledger), "-c", str(hashes)])

        assert result.exit_code == 0, result.output
        args, kwargs = mock_run.call_args
        assert args[0] == str(tmp_path)
        assert kwargs["exceptions_path"] == str(ledger)
        assert isinstance(kwargs["sink"], FileSink)
        assert kwargs["sink"].path == hashes

    def test_missing_exceptions_file_is_usage_error(self, mocker, tmp_path):
        mock_run = _patch_common(mocker)
        result = CliRunner().invoke(main, ["-e", str(tmp_path / "nope.md")])
        assert result.exit_code == 2
        mock_run.assert_not_called()

    def test_no_fetch(self, mocker):
        mock_run = _patch_common(mocker)
        CliRunner().invoke(main, ["--no-fetch"])
        assert mock_run.call_args.args[1].fetch_remotes is False

    def test_config_file(self, mocker, tmp_path):
        mock_run = _patch_common(mocker)
        cfg = tmp_path / "track.yml"
        cfg.write_text(yaml.safe_dump({"downstream_branch": "origin/master", "fetch_remotes": False}))

        result = CliRunner().invoke(main, ["--config", str(cfg)])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args.args[1]
        assert config.downstream_branch == "origin/master"
        assert config.fetch_remotes is False

    def test_invalid_status_config(self, mocker, tmp_path):
        mock_run = _patch_common(mocker)
        cfg = tmp_path / "track.yml"
        cfg.write_text("statuses:\n  merged:\n    label: Merged\n")

        result = CliRunner().invoke(main, ["--config", str(cfg)])

        assert result.exit_code == 2
        assert "merged" in result.output
        mock_run.assert_not_called()

    def test_summary_printed(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, [])
        assert "No existing pull request" in result.output
        assert "Total" in result.output
        assert "Report generated" in result.output


class TestErrors:
    def test_git_error_is_fatal(self, mocker):
        mocker.patch("zfstrack_core.config.resolve_github_token", return_value=None)
        mocker.patch("zfstrack_core.tracker.run_tracking", side_effect=GitError("not a git repository"))

        result = CliRunner().invoke(main, [])

        assert result.exit_code == 1
        assert "not a git repository" in result.output

    def test_sink_closed_on_error(self, mocker, tmp_path):
        mocker.patch("zfstrack_core.config.resolve_github_token", return_value=None)
        mocker.patch("zfstrack_core.tracker.run_tracking", side_effect=GitError("boom"))
        close = mocker.patch.object(FileSink, "close")

        CliRunner().invoke(main, ["-c", str(tmp_path / "hashes.txt")])

        close.assert_called_once()


class TestEndToEnd:
    def test_report_and_hashes(self, tracking_repo, ledger_file, mocker, tmp_path):
        mocker.patch("zfstrack_core.config.resolve_github_token", return_value=None)
        mocker.patch("zfstrack_core.tracker.load_pull_request_index", return_value=PullRequestIndex())
        cfg = tmp_path / "track.yml"
        cfg.write_text(yaml.safe_dump(tracking_repo.config_overrides()))
        hashes = tmp_path / "hashes.txt"
        report = tmp_path / "report.html"

        result = CliRunner().invoke(
            main,
            [
                "-d",
                str(tracking_repo.path),
                "-e",
                str(ledger_file),
                "-c",
                str(hashes),
                "-o",
                str(report),
                "--config",
                str(cfg),
            ],
        )

        assert result.exit_code == 0, result.output
        html = report.read_text()
        assert html.startswith("<!DOCTYPE html>")
        assert "<tr class='st_na'>" in html
        assert "<tr class='st_exc'>" in html
        assert hashes.read_text().splitlines() == [tracking_repo.upstream["500"]]

    def test_report_to_stdout(self, tracking_repo, ledger_file, mocker, tmp_path):
        mocker.patch("zfstrack_core.config.resolve_github_token", return_value=None)
        mocker.patch("zfstrack_core.tracker.load_pull_request_index", return_value=PullRequestIndex())
        cfg = tmp_path / "track.yml"
        cfg.write_text(yaml.safe_dump(tracking_repo.config_overrides()))

        result = CliRunner().invoke(main, ["-d", str(tracking_repo.path), "-e", str(ledger_file), "--config", str(cfg)])

        assert result.exit_code == 0, result.output
        assert "<!DOCTYPE html>" in result.output
        assert "OpenZFS Commit Tracking" in result.output

