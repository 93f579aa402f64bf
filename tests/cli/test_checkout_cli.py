"""Tests for the mirror-checkout CLI."""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from mirrorcheckout import __version__
from mirrorcheckout.cli.main import cli
from mirrorcheckout.errors import PreconditionError
from mirrorcheckout.model.request import SubmoduleMode


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.mark.short
class TestMirrorPathCommand:
    def test_prints_mirror_path(self, cli_runner, tmp_path, mirror_config):
        result = cli_runner.invoke(
            cli,
            [
                "mirror-path",
                "--repository",
                "acme/tools",
                "--mirror-root",
                str(tmp_path),
            ],
        )

        assert result.exit_code == 0, result.output
        assert result.output.strip() == str(tmp_path / "v2" / "acme-tools")

    def test_mirror_root_from_environment(self, cli_runner, tmp_path, mirror_config):
        result = cli_runner.invoke(
            cli,
            ["mirror-path", "--repository", "acme/tools"],
            env={"NSC_GIT_MIRROR": str(tmp_path)},
        )

        assert result.exit_code == 0, result.output
        assert result.output.strip().endswith("acme-tools")

    def test_caching_disabled(self, cli_runner, caplog):
        result = cli_runner.invoke(cli, ["mirror-path", "--repository", "acme/tools"])

        assert result.exit_code == 1
        assert "require Git caching to be enabled" in caplog.text


@pytest.mark.short
class TestRunCommand:
    """Test how the run command turns inputs into a checkout request."""

    def test_inputs_from_environment(self, cli_runner, tmp_path):
        env = {
            "INPUT_REPOSITORY": "acme/tools",
            "INPUT_FETCH-DEPTH": "0",
            "INPUT_SUBMODULES": "recursive",
            "INPUT_TOKEN": "ghs_secret",
            "NSC_GIT_MIRROR": str(tmp_path),
            "GITHUB_WORKSPACE": str(tmp_path),
        }
        with patch("mirrorcheckout.cli.checkout.run_checkout") as mock_run:
            result = cli_runner.invoke(cli, ["run"], env=env)

        assert result.exit_code == 0, result.output
        mock_run.assert_called_once()
        request = mock_run.call_args.args[0]
        assert request.full_name == "acme/tools"
        assert request.fetch_depth == 0
        assert request.submodules == SubmoduleMode.recursive
        assert request.token == "ghs_secret"
        assert mock_run.call_args.kwargs["mirror_root"] == tmp_path
        assert mock_run.call_args.kwargs["workspace"] == tmp_path

    def test_options_override_environment(self, cli_runner):
        with patch("mirrorcheckout.cli.checkout.run_checkout") as mock_run:
            result = cli_runner.invoke(
                cli,
                ["run", "--repository", "acme/tools", "--ref", "v1", "--lfs", "true"],
                env={"INPUT_REF": "main"},
            )

        assert result.exit_code == 0, result.output
        request = mock_run.call_args.args[0]
        assert request.ref == "v1"
        assert request.lfs
        assert request.persist_credentials

    def test_invalid_repository(self, cli_runner, caplog):
        with patch("mirrorcheckout.cli.checkout.run_checkout") as mock_run:
            result = cli_runner.invoke(cli, ["run", "--repository", "acme"])

        assert result.exit_code == 1
        mock_run.assert_not_called()
        assert "Invalid checkout inputs" in caplog.text

    def test_checkout_failure(self, cli_runner, caplog):
        error = PreconditionError(
            "Mirror-accelerated checkouts require Git caching to be enabled.",
            hint="Please update your runs-on labels.",
        )
        with patch("mirrorcheckout.cli.checkout.run_checkout", side_effect=error):
            result = cli_runner.invoke(cli, ["run", "--repository", "acme/tools"])

        assert result.exit_code == 1
        assert "require Git caching" in caplog.text
        assert "runs-on labels" in caplog.text

    def test_unwritable_mirror_cache(
        self, cli_runner, runner, fake_process, tmp_path, monkeypatch, caplog
    ):
        monkeypatch.setattr(
            "mirrorcheckout.git.mirror.get_default_uid", lambda: os.getuid() + 1
        )
        monkeypatch.setattr(
            "mirrorcheckout.orchestrator.CommandRunner", lambda trace=False: runner
        )
        mkdir = Path.mkdir

        def guarded_mkdir(self, *args, **kwargs):
            if self.name.startswith("uid-"):
                raise PermissionError(13, "Permission denied", str(self))
            return mkdir(self, *args, **kwargs)

        monkeypatch.setattr(Path, "mkdir", guarded_mkdir)

        result = cli_runner.invoke(
            cli,
            ["run", "--repository", "acme/tools", "--token", "ghs_secret"],
            env={"NSC_GIT_MIRROR": str(tmp_path), "GITHUB_WORKSPACE": str(tmp_path)},
        )

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "Cannot write" in errors[0].getMessage()
        assert "Permission denied" in errors[0].getMessage()
        assert fake_process.lines[-1].startswith("git config --global --unset-all")

    def test_runner_debug(self, cli_runner):
        with patch("mirrorcheckout.cli.checkout.run_checkout"):
            result = cli_runner.invoke(
                cli,
                ["run", "--repository", "acme/tools"],
                env={"RUNNER_DEBUG": "1"},
            )

        assert result.exit_code == 0, result.output
        assert logging.getLogger("mirrorcheckout").level == logging.DEBUG


@pytest.mark.short
class TestPlanCommand:
    """Test planning against an existing mirror."""

    def test_plan_to_file(self, cli_runner, tmp_path, mirror_config):
        (tmp_path / "v2" / "acme-tools").mkdir(parents=True)
        output = tmp_path / "plan.yaml"

        result = cli_runner.invoke(
            cli,
            [
                "plan",
                "--repository",
                "acme/tools",
                "--ref",
                "refs/heads/main",
                "--mirror-root",
                str(tmp_path),
                "-o",
                str(output),
            ],
        )

        assert result.exit_code == 0, result.output
        plan = yaml.safe_load(output.read_text())
        assert plan["mirror"] == str(tmp_path / "v2" / "acme-tools")
        assert plan["original_ref"] == "refs/heads/main"
        assert plan["pointer_ref"] == "refs/remotes/origin/main"
        assert plan["start_branch"] == "main"
        assert plan["fetch_refspecs"] == ["+refs/heads/main:refs/remotes/origin/main"]

    def test_plan_to_stdout(self, cli_runner, tmp_path, mirror_config):
        (tmp_path / "v2" / "acme-tools").mkdir(parents=True)
        sha = "abcdef0123456789abcdef0123456789abcdef01"

        result = cli_runner.invoke(
            cli,
            [
                "plan",
                "--repository",
                "acme/tools",
                "--commit",
                sha,
                "--fetch-depth",
                "0",
                "--mirror-root",
                str(tmp_path),
            ],
        )

        assert result.exit_code == 0, result.output
        assert f"pointer_ref: {sha}" in result.output
        assert f"- {sha}" in result.output

    def test_missing_mirror(self, cli_runner, tmp_path, mirror_config, caplog):
        result = cli_runner.invoke(
            cli,
            ["plan", "--repository", "acme/tools", "--mirror-root", str(tmp_path)],
        )

        assert result.exit_code == 1
        assert "No mirror of acme/tools" in caplog.text


@pytest.mark.short
def test_version(cli_runner):
    result = cli_runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
