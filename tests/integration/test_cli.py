"""Integration tests for the xyte command group, run through CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from xyte.cli.main import cli
from xyte.core.constants import ExitCode


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    return {
        "XYTE_CLI_CONFIG_DIR": str(tmp_path),
        "XYTE_NO_KEYRING": "1",
        "XYTE_LOG_LEVEL": "ERROR",
        "XYTE_CONFIG": "",
        "XYTE_CLI_KEY": "",
    }


def _json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


# ---------------------------------------------------------------------------
# xyte version
# ---------------------------------------------------------------------------


class TestVersion:
    def test_json(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["version", "--json"], env=env, catch_exceptions=False)
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["frame_schema"] == "xyte.headless.frame.v1"
        assert data["table_format"] == "compact-v1"

    def test_flag(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["--version"], env=env)
        assert result.exit_code == 0
        assert result.output.startswith("xyte ")


# ---------------------------------------------------------------------------
# xyte config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show_defaults(self, runner: CliRunner, env: dict[str, str], tmp_path: Path) -> None:
        result = runner.invoke(cli, ["config", "show", "--json"], env=env, catch_exceptions=False)
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["_config_exists"] is False
        assert data["_profile_path"] == str(tmp_path / "profile.json")
        assert data["headless"]["interval_ms"] == 2000

    def test_init_then_set_endpoint(self, runner: CliRunner, env: dict[str, str], tmp_path: Path) -> None:
        result = runner.invoke(cli, ["config", "init", "--hub-url", "https://hub.example.test/"], env=env)
        assert result.exit_code == 0
        assert (tmp_path / "config.toml").exists()

        again = runner.invoke(cli, ["config", "init"], env=env)
        assert again.exit_code == ExitCode.ERROR

        result = runner.invoke(
            cli,
            ["config", "set-endpoint", "organization.spaces.getSpace", "/spaces/{space_id}"],
            env=env,
        )
        assert result.exit_code == 0

        shown = json.loads(runner.invoke(cli, ["config", "show", "--json"], env=env).output)
        assert shown["api"]["hub_base_url"] == "https://hub.example.test"
        assert shown["api"]["endpoints"] == {"organization.spaces.getSpace": "/spaces/{space_id}"}

    def test_set_endpoint_rejects_unknown_key(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["config", "set-endpoint", "nope.nothing", "/x"], env=env)
        assert result.exit_code == 2

    def test_broken_config_exits_with_config_error(
        self, runner: CliRunner, env: dict[str, str], tmp_path: Path
    ) -> None:
        (tmp_path / "config.toml").write_text("[logging\n")
        result = runner.invoke(cli, ["config", "show"], env=env)
        assert result.exit_code == ExitCode.CONFIG_ERROR

    def test_bad_interval_env_exits_with_config_error(self, runner: CliRunner, env: dict[str, str]) -> None:
        env = {**env, "XYTE_HEADLESS_INTERVAL_MS": "fast"}
        result = runner.invoke(cli, ["tui", "--headless"], env=env)
        assert result.exit_code == ExitCode.CONFIG_ERROR

    def test_doctor_fails_before_setup(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["config", "doctor", "--json"], env=env)
        assert result.exit_code == ExitCode.ERROR
        data = json.loads(result.output)
        assert data["state"] == "needs_setup"
        assert data["all_pass"] is False
        statuses = {c["name"]: c["status"] for c in data["checks"]}
        assert statuses["Active tenant"] == "fail"
        assert statuses["Config file"] == "warn"


# ---------------------------------------------------------------------------
# xyte setup
# ---------------------------------------------------------------------------


class TestSetup:
    def test_non_interactive_without_key(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["setup", "run", "--non-interactive"], env=env)
        assert result.exit_code == ExitCode.SETUP_REQUIRED

    def test_run_writes_profile(self, runner: CliRunner, env: dict[str, str], tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["setup", "run", "--non-interactive", "--tenant", "Acme Corp", "--key", "k-123", "--json"],
            env=env,
            catch_exceptions=False,
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["tenantId"] == "acme-corp"
        assert data["provider"] == "xyte-org"
        assert data["slot"]["slotId"] == "primary"
        assert data["slot"]["fingerprint"].startswith("sha256:")
        # no endpoints are configured, so the probe cannot confirm connectivity
        assert data["readiness"]["state"] == "degraded"

        profile = json.loads((tmp_path / "profile.json").read_text())
        assert profile["active_tenant_id"] == "acme-corp"
        assert "k-123" not in (tmp_path / "profile.json").read_text()

    def test_key_from_env(self, runner: CliRunner, env: dict[str, str]) -> None:
        env = {**env, "XYTE_CLI_KEY": "from-env"}
        result = runner.invoke(cli, ["setup", "run", "--non-interactive", "--json"], env=env)
        assert result.exit_code == 0
        assert json.loads(result.output)["tenantId"] == "default"

    def test_status_before_setup(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["setup", "status", "--json"], env=env)
        assert result.exit_code == ExitCode.SETUP_REQUIRED
        assert json.loads(result.output)["state"] == "needs_setup"


# ---------------------------------------------------------------------------
# xyte tui --headless
# ---------------------------------------------------------------------------


class TestHeadless:
    def test_dashboard_redirects_to_setup(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(
            cli, ["tui", "--headless", "--screen", "dashboard"], env=env, catch_exceptions=False
        )
        assert result.exit_code == 0
        frames = _json_lines(result.output)
        assert [f["sequence"] for f in frames] == list(range(len(frames)))

        runtime = [f for f in frames if not f["meta"].get("startup")]
        assert len(runtime) == 1
        assert runtime[0]["screen"] == "setup"
        assert runtime[0]["meta"]["redirectedFrom"] == "dashboard"
        assert runtime[0]["motionEnabled"] is False

    def test_text_format(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["tui", "--headless", "--screen", "config", "--format", "text"], env=env)
        assert result.exit_code == 0
        assert "Screen: config" in result.output
        assert "== Provider Health ==" in result.output

    def test_reduced_motion_env_beats_flag(self, runner: CliRunner, env: dict[str, str]) -> None:
        env = {**env, "XYTE_TUI_REDUCED_MOTION": "1"}
        result = runner.invoke(cli, ["tui", "--headless", "--motion"], env=env)
        assert result.exit_code == 0
        assert all(f["motionEnabled"] is False for f in _json_lines(result.output))
