import asyncio
import pytest
from unittest.mock import MagicMock

from cli_shell import CommandShell, parse_switch
from state_manager import IncomingRequest, TransferStatus

def test_parse_switch():
    assert parse_switch("on") is True
    assert parse_switch("OFF") is False
    with pytest.raises(ValueError):
        parse_switch("maybe")

@pytest.mark.asyncio
async def test_shell_drives_session(session, ui, tmp_path):
    shell = CommandShell(session, ui, str(tmp_path / "config.toml"))
    await shell.cmd_scan([])
    await shell.cmd_files([str(tmp_path / "a.txt")])
    await shell.cmd_toggle(["peer-a", "on"])
    await shell.cmd_send([])

    transfer = session.state.transfers[0]
    assert transfer.name == "a.txt"
    await shell.cmd_pause([f"#{transfer.id}"])
    assert transfer.status == TransferStatus.PAUSED
    await shell.cmd_cancel([str(transfer.id)])
    assert transfer.status == TransferStatus.FAILED

    with pytest.raises(ValueError):
        await shell.cmd_resume(["abc"])

@pytest.mark.asyncio
async def test_shell_preferences(session, ui, tmp_path):
    shell = CommandShell(session, ui, str(tmp_path / "config.toml"))
    await shell.cmd_set(["relay", "on"])
    await shell.cmd_set(["channel", "beta"])
    await shell.cmd_set(["diagnostics", "off"])
    assert session.settings.summary == "Mode: LAN-only, Channel: beta, relay-on, diag-off"
    ui.set_dev_mode.assert_called_with(False)

    await shell.cmd_a11y(["large_text", "on"])
    assert session.accessibility.flags == {"large-text"}

    await shell.cmd_incoming(["simulate"])
    await shell.cmd_accept([])
    assert session.incoming.last_resolution["decision"] == "accepted"
    await asyncio.sleep(0)

@pytest.mark.asyncio
async def test_shell_config_set(session, ui, tmp_path):
    f = tmp_path / "config.toml"
    f.write_text("[transfer]\nprogress_step = 20 # step\n", encoding="utf-8")
    shell = CommandShell(session, ui, str(f))
    await shell.cmd_config(["set", "transfer.progress_step", "10"])
    assert "progress_step = 10 # step" in f.read_text(encoding="utf-8")

@pytest.mark.asyncio
async def test_shell_send_refused_without_selection(session, ui, tmp_path):
    shell = CommandShell(session, ui, str(tmp_path / "config.toml"))
    await shell.cmd_send([])
    assert session.state.transfers == []
    ui.on_send_refused.assert_called_once()

@pytest.mark.asyncio
async def test_shell_scan_previews_views(session, ui, client, tmp_path):
    shell = CommandShell(session, ui, str(tmp_path / "config.toml"))

    await shell.cmd_scan(["demo"])
    assert session.discovery.mode == "ready"
    assert len(session.state.devices) == 3

    await shell.cmd_scan(["ERROR"])
    assert session.discovery.mode == "error"
    assert len(session.state.devices) == 0
    client.fetch_devices.assert_not_awaited()

    with pytest.raises(ValueError):
        await shell.cmd_scan(["sideways"])

@pytest.mark.asyncio
async def test_shell_poll_reports_busy_slot(session, ui, client, tmp_path):
    shell = CommandShell(session, ui, str(tmp_path / "config.toml"))
    shell.console = MagicMock()
    session.incoming.simulate()
    client.fetch_incoming_request.return_value = IncomingRequest("Meera MacBook", "slides.key", "12 MB")

    await shell.cmd_incoming(["poll"])

    assert session.incoming.pending.file_name == "holiday_photos.zip"
    assert "already waiting" in shell.console.print.call_args.args[0]
