"""Tests for the command-line interface."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from runner_provisioner.cli import app
from runner_provisioner.models import ProvisionOutputs
from runner_provisioner.workflow import ProvisionResult, State

runner = CliRunner()


class TestRunCommand:
    """Tests for `run`."""

    @patch("runner_provisioner.cli.run_provisioning")
    def test_options_override_env_and_config(self, mock_run, tmp_path: Path, monkeypatch):
        config = tmp_path / "inputs.yaml"
        config.write_text("action: destroy\norganization: from-file\nrepo_name: widgets\n")
        monkeypatch.setenv("INPUT_ORGANIZATION", "from-env")
        monkeypatch.setenv("INPUT_SEARCH_PHRASE", "ci-runner-7")
        mock_run.return_value = (0, ProvisionResult(state=State.DONE))

        result = runner.invoke(app, ["run", "-c", str(config), "--repo-name", "gadgets"])

        assert result.exit_code == 0
        bag = mock_run.call_args.args[0]
        assert bag["action"] == "destroy"
        assert bag["organization"] == "from-env"
        assert bag["repo_name"] == "gadgets"
        assert bag["search_phrase"] == "ci-runner-7"

    @patch("runner_provisioner.cli.run_provisioning")
    def test_prints_outputs_on_create(self, mock_run):
        outputs = ProvisionOutputs(machine_id=12, machine_ip="203.0.113.9", runner_label="ci")
        mock_run.return_value = (0, ProvisionResult(state=State.DONE, outputs=outputs))

        result = runner.invoke(app, ["run", "-a", "create"])

        assert result.exit_code == 0
        assert "203.0.113.9" in result.output

    def test_invalid_inputs_exit_non_zero(self, monkeypatch):
        for name in ("INPUT_ACTION", "INPUT_ORGANIZATION", "INPUT_REPO_NAME"):
            monkeypatch.delenv(name, raising=False)

        result = runner.invoke(app, ["run", "-a", "destroy"])

        assert result.exit_code == 1
        assert "invalid inputs" in result.output

    def test_missing_config_file(self, tmp_path: Path):
        result = runner.invoke(app, ["run", "-c", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
        assert "Cannot read" in result.output


class TestOtherCommands:
    """Tests for the helper commands."""

    def test_render_script(self):
        result = runner.invoke(
            app,
            ["render-script", "--organization", "acme", "--repo-name", "widgets", "--token", "TKN"],
        )

        assert result.exit_code == 0
        assert "--url https://github.com/acme/widgets --token TKN" in result.output

    def test_render_script_bad_version(self):
        result = runner.invoke(
            app,
            ["render-script", "--organization", "a", "--repo-name", "b", "--runner-version", "latest"],
        )

        assert result.exit_code == 1

    def test_inputs_masks_secrets(self, monkeypatch):
        monkeypatch.setenv("INPUT_GITHUB_TOKEN", "ghp_supersecret")

        result = runner.invoke(app, ["inputs"])

        assert result.exit_code == 0
        assert "ghp_supersecret" not in result.output

    def test_instances_requires_token(self, monkeypatch):
        monkeypatch.delenv("LINODE_TOKEN", raising=False)
        monkeypatch.delenv("INPUT_LINODE_TOKEN", raising=False)

        result = runner.invoke(app, ["instances"])

        assert result.exit_code == 1
        assert "LINODE_TOKEN" in result.output
