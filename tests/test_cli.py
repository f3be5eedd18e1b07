"""Tests for CLI commands."""

import json
from datetime import timedelta
from pathlib import Path

import pytest  # type: ignore[import-not-found]
import yaml  # type: ignore[import-untyped]
from click.testing import CliRunner  # type: ignore[import-not-found]

from movebeam import __version__
from movebeam.cli.main import cli, format_timer, render_bar
from movebeam.core.timers import TimerConfig, TimerRegistry, TimerSnapshot
from movebeam.daemon.dispatcher import CommandDispatcher
from movebeam.daemon.ipc import IPCServer
from movebeam.daemon.state import DaemonState


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture  # type: ignore[misc]
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def daemon_state() -> DaemonState:
    """Timer state with some time on the clocks."""
    clock = FakeClock()
    registry = TimerRegistry(
        [
            TimerConfig("move", timedelta(minutes=20)),
            TimerConfig("break", timedelta(hours=2)),
        ],
        clock=clock,
    )
    state = DaemonState(registry, clock=clock)
    clock.now = 300.0
    state.advance(timedelta(seconds=2))
    return state


@pytest.fixture
def socket_path(tmp_path: Path, daemon_state: DaemonState):
    """Serve the timer state on a temporary socket."""
    path = tmp_path / "moved"
    with IPCServer(path, CommandDispatcher(daemon_state), poll_interval=0.05):
        yield path


class TestFormatting:
    """Test output helpers."""

    def test_format_timer(self) -> None:
        snapshot = TimerSnapshot(timedelta(minutes=5, seconds=3), timedelta(minutes=20))

        assert format_timer(snapshot) == "05:03/20:00"

    def test_render_bar_half(self) -> None:
        snapshot = TimerSnapshot(timedelta(minutes=10), timedelta(minutes=20))

        assert render_bar(snapshot, size=4, fill="#", empty="-", left="[", right="]") == "[##--]"

    def test_render_bar_overdue_is_full(self) -> None:
        """Test the bar saturates once the interval is reached."""
        snapshot = TimerSnapshot(timedelta(hours=1), timedelta(minutes=20))

        assert render_bar(snapshot, size=3, fill="#", empty="-", left="", right="") == "###"

    def test_render_bar_default_glyphs(self) -> None:
        snapshot = TimerSnapshot(timedelta(), timedelta(minutes=20))

        assert render_bar(snapshot) == "▕" + "░" * 16 + "▏"


class TestCLICommands:
    """Test CLI commands against a live socket."""

    def test_version(self, runner: CliRunner) -> None:
        """Test --version flag."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self, runner: CliRunner) -> None:
        """Test --help flag."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Movebeam" in result.output

    def test_list(self, runner: CliRunner, socket_path: Path) -> None:
        result = runner.invoke(cli, ["--socket", str(socket_path), "list"])

        assert result.exit_code == 0
        assert result.output.splitlines() == ["move\t05:00/20:00", "break\t05:00/120:00"]

    def test_get(self, runner: CliRunner, socket_path: Path) -> None:
        result = runner.invoke(cli, ["--socket", str(socket_path), "get", "move"])

        assert result.exit_code == 0
        assert result.output.strip() == "05:00/20:00"

    def test_get_unknown(self, runner: CliRunner, socket_path: Path) -> None:
        """Test unknown timers exit with an error."""
        result = runner.invoke(cli, ["--socket", str(socket_path), "get", "nope"])

        assert result.exit_code == 1
        assert "ERROR: Timer not found!" in result.output

    def test_bar(self, runner: CliRunner, socket_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["--socket", str(socket_path), "bar", "move", "-s", "8", "-f", "#", "-e", ".",
             "-l", "|", "-r", "|"],
        )

        assert result.exit_code == 0
        assert result.output.strip() == "|##......|"

    def test_reset(self, runner: CliRunner, socket_path: Path, daemon_state: DaemonState) -> None:
        result = runner.invoke(cli, ["--socket", str(socket_path), "reset", "move"])

        assert result.exit_code == 0
        assert result.output == ""
        assert daemon_state.registry.get("move") == TimerSnapshot(
            timedelta(), timedelta(minutes=20)
        )

    def test_reset_unknown(self, runner: CliRunner, socket_path: Path) -> None:
        result = runner.invoke(cli, ["--socket", str(socket_path), "reset", "nope"])

        assert result.exit_code == 1
        assert "ERROR: Timer not found!" in result.output

    def test_reset_all(
        self, runner: CliRunner, socket_path: Path, daemon_state: DaemonState
    ) -> None:
        result = runner.invoke(cli, ["--socket", str(socket_path), "reset-all"])

        assert result.exit_code == 0
        for _, snapshot in daemon_state.registry.list():
            assert snapshot.elapsed == timedelta()

    def test_running(self, runner: CliRunner, socket_path: Path) -> None:
        result = runner.invoke(cli, ["--socket", str(socket_path), "running"])

        assert result.exit_code == 0
        assert result.output.strip() == "05:00"

    def test_inactivity(self, runner: CliRunner, socket_path: Path) -> None:
        result = runner.invoke(cli, ["--socket", str(socket_path), "inactivity"])

        assert result.exit_code == 0
        assert result.output.strip() == "00:02"

    def test_daemon_not_running(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test commands fail cleanly when nothing listens on the socket."""
        result = runner.invoke(cli, ["--socket", str(tmp_path / "missing"), "list"])

        assert result.exit_code == 1


class TestDaemonCommands:
    """Test daemon management commands."""

    def test_status_running(
        self,
        runner: CliRunner,
        socket_path: Path,
        fake_home: Path,
    ) -> None:
        result = runner.invoke(cli, ["--socket", str(socket_path), "daemon", "status", "-v"])

        assert result.exit_code == 0
        assert "Daemon is running" in result.output
        assert "move" in result.output

    def test_status_not_running(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["--socket", str(tmp_path / "missing"), "daemon", "status"])

        assert result.exit_code == 0
        assert "not running" in result.output

    def test_stop_not_running(self, runner: CliRunner, fake_home: Path) -> None:
        result = runner.invoke(cli, ["daemon", "stop"])

        assert result.exit_code == 0
        assert "not running" in result.output

    def test_logs_without_file(self, runner: CliRunner, fake_home: Path) -> None:
        result = runner.invoke(cli, ["daemon", "logs"])

        assert result.exit_code == 0
        assert "No log file found" in result.output


class TestConfigCommands:
    """Test configuration commands."""

    def test_init_writes_defaults(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "movebeam.yml"

        result = runner.invoke(cli, ["config", "init", "--config", str(path)])

        assert result.exit_code == 0
        with open(path) as f:
            data = yaml.safe_load(f)
        assert [t["name"] for t in data["timers"]] == ["move", "break"]

    def test_init_refuses_overwrite(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "movebeam.yml"
        path.write_text("timers: []\n")

        result = runner.invoke(cli, ["config", "init", "--config", str(path)])

        assert result.exit_code == 1
        assert path.read_text() == "timers: []\n"

    def test_show_json(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "movebeam.yml"
        with open(path, "w") as f:
            yaml.dump({"timers": [{"name": "eyes", "interval": "20:00"}]}, f)

        result = runner.invoke(cli, ["config", "show", "--config", str(path), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["timers"] == [{"name": "eyes", "interval": "20:00"}]

    def test_show_invalid(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "movebeam.yml"
        path.write_text("timers:\n  - name: eyes\n")

        result = runner.invoke(cli, ["config", "show", "--config", str(path)])

        assert result.exit_code == 1
