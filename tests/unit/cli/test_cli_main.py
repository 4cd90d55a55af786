"""Unit tests for the apidemo command line."""

import json
import sys

import pytest

from apidemo.__main__ import build_parser, main


@pytest.fixture
def cli_config(write_config, restore_root_logging, monkeypatch):
    """Quiet config file; restores global hooks the CLI installs."""
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    return write_config("log_level = warning\nconsole_output = false\nposition_timeout_s =\n")


def run_lines(capsys):
    out = capsys.readouterr().out
    return [json.loads(line) for line in out.splitlines() if line.strip()]


class TestParser:
    """Test argument parsing."""

    def test_subcommand_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_common_arguments(self):
        args = build_parser().parse_args(["--log-level", "debug", "--no-console", "channels", "--all"])

        assert args.log_level == "debug"
        assert args.console_output is False
        assert args.all is True

    def test_channel_list_is_split(self):
        args = build_parser().parse_args(["sensors", "--channels", "light, gyroscope"])

        assert args.channels == ["light", "gyroscope"]


class TestChannelsCommand:

    @pytest.mark.asyncio
    async def test_lists_available_channels(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "channels"])

        lines = run_lines(capsys)
        assert code == 0
        assert [line["channel"] for line in lines] == ["accelerometer", "gyroscope", "light", "magnetometer"]
        assert all(line["event"] == "channel" and line["available"] for line in lines)

    @pytest.mark.asyncio
    async def test_all_includes_absent_channels(self, cli_config, capsys):
        await main(["--config", str(cli_config), "channels", "--all"])

        lines = run_lines(capsys)
        assert len(lines) == 7
        assert {line["channel"] for line in lines if not line["available"]} == {
            "pressure", "proximity", "temperature",
        }


class TestSensorsCommand:

    @pytest.mark.asyncio
    async def test_streams_requested_snapshot_count(self, cli_config, capsys):
        code = await main([
            "--config", str(cli_config),
            "sensors", "--channels", "light", "--count", "3", "--interval", "0.001",
        ])

        lines = run_lines(capsys)
        assert code == 0
        snapshots = [line for line in lines if line["event"] == "snapshot"]
        assert [s["sequence"] for s in snapshots] == [1, 2, 3]
        assert list(snapshots[0]["channels"]) == ["light"]
        assert lines[-1] == {"event": "stopped", "snapshots": 3, "out_of_order": 0}

    @pytest.mark.asyncio
    async def test_unknown_channel_is_an_error(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "sensors", "--channels", "sonar"])

        lines = run_lines(capsys)
        assert code == 2
        assert lines[-1]["event"] == "error"
        assert "sonar" in lines[-1]["message"]

    @pytest.mark.asyncio
    async def test_absent_channels_only(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "sensors", "--channels", "pressure"])

        lines = run_lines(capsys)
        assert code == 1
        assert lines[-1]["reason"] == "CHANNEL_UNAVAILABLE"


class TestLocateCommand:

    @pytest.mark.asyncio
    async def test_cached_fix(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "locate", "--cached", "network"])

        lines = run_lines(capsys)
        assert code == 0
        assert lines[-1]["event"] == "fix"
        assert lines[-1]["source"] == "cached"
        assert lines[-1]["provider"] == "network"

    @pytest.mark.asyncio
    async def test_live_fix(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "locate", "--live-delay", "0.001", "--timeout", "2"])

        lines = run_lines(capsys)
        assert code == 0
        assert lines[-1]["source"] == "live"
        assert lines[-1]["provider"] == "gps"

    @pytest.mark.asyncio
    async def test_timeout(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "locate", "--live-delay", "5", "--timeout", "0.01"])

        lines = run_lines(capsys)
        assert code == 1
        assert lines[-1] == {"event": "error", "reason": "TIMEOUT", "message": "No live fix within 0.01s"}

    @pytest.mark.asyncio
    async def test_declined_permission(self, cli_config, capsys):
        code = await main([
            "--config", str(cli_config),
            "locate", "--cached", "gps", "--no-permission", "--answer", "denied",
        ])

        lines = run_lines(capsys)
        assert code == 1
        assert lines == [
            {"event": "providers", "gps": True, "network": True},
            {
                "event": "permission",
                "capability": "location",
                "granted": False,
                "reason": "USER_DECLINED",
            },
        ]

    @pytest.mark.asyncio
    async def test_disabled_primary_is_reported(self, cli_config, capsys):
        code = await main([
            "--config", str(cli_config),
            "locate", "--cached", "gps,network", "--disabled", "gps",
        ])

        lines = run_lines(capsys)
        assert code == 0
        assert lines[0] == {"event": "providers", "gps": False, "network": True}
        assert lines[-1]["provider"] == "network"
        assert lines[-1]["source"] == "cached"


class TestPermissionCommand:

    @pytest.mark.asyncio
    async def test_grant(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "permission", "camera"])

        lines = run_lines(capsys)
        assert code == 0
        assert lines == [{
            "event": "permission",
            "capability": "camera",
            "granted": True,
            "reason": None,
            "prompts": 1,
        }]

    @pytest.mark.asyncio
    async def test_implicit_capability_needs_no_prompt(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "permission", "notifications"])

        lines = run_lines(capsys)
        assert code == 0
        assert lines[0]["prompts"] == 0

    @pytest.mark.asyncio
    async def test_background_prompt_unavailable(self, cli_config, capsys):
        code = await main(["--config", str(cli_config), "permission", "location", "--background"])

        lines = run_lines(capsys)
        assert code == 1
        assert lines[0]["reason"] == "PROMPT_UNAVAILABLE"
