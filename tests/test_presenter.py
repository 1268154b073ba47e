import io
import os
from unittest.mock import MagicMock
from rich.console import Console

from state_manager import Device, DeviceStatus, IncomingRequest, Transfer, TransferStatus
from ui_presenter import ResourceMonitor, TerminalPresenter
from utility import format_bytes, progress_bar

def make_presenter():
    out = io.StringIO()
    return TerminalPresenter(console=Console(file=out, width=100, color_system=None)), out

def test_progress_bar():
    line = progress_bar(40, "holiday_photos_from_goa.zip", "in-progress", width=10)
    assert "████░░░░░░" in line
    assert "40%" in line
    assert line.startswith("holiday_photos_...")

def test_format_bytes():
    assert format_bytes(512) == "512.00 B"
    assert format_bytes(3 * 1024 * 1024) == "3.00 MB"

def test_transfer_rows():
    presenter, out = make_presenter()
    t = Transfer(7, "report.pdf", progress=60)
    presenter.on_transfer_update(t)
    assert "#7" in out.getvalue()
    assert "60%" in out.getvalue()

def test_reduced_motion_skips_intermediate_ticks():
    presenter, out = make_presenter()
    presenter.on_accessibility_change(frozenset({"reduced-motion"}))
    t = Transfer(8, "report.pdf", progress=40)
    presenter.on_transfer_update(t)
    assert "#8" not in out.getvalue()

    t.progress, t.status = 100, TransferStatus.COMPLETED
    presenter.on_transfer_update(t)
    assert "completed" in out.getvalue()

def test_devices_and_incoming():
    presenter, out = make_presenter()
    presenter.on_devices_changed([Device("peer-b", "Meera MacBook", "192.168.1.34", DeviceStatus.BUSY)])
    presenter.on_incoming_request(IncomingRequest("Aarav iPhone", "holiday_photos.zip", "128 MB"))
    text = out.getvalue()
    assert "Meera MacBook" in text and "Busy" in text
    assert "holiday_photos.zip" in text

def test_dev_mode_tracks_active_transfers():
    presenter, _ = make_presenter()
    presenter.on_transfer_update(Transfer(1, "a.bin"))
    assert presenter._active == {1}
    presenter.on_transfer_update(Transfer(1, "a.bin", status=TransferStatus.PAUSED))
    assert presenter._active == set()
    assert presenter.monitor is None

def test_monitor_stop_can_skip_join():
    monitor = ResourceMonitor(os.getpid())
    monitor.running = True
    monitor.thread = MagicMock()
    monitor.thread.is_alive.return_value = True

    monitor.stop(join=False)
    assert monitor.running is False
    monitor.thread.join.assert_not_called()

    monitor.stop()
    monitor.thread.join.assert_called_once_with(timeout=1.0)

def test_finishing_transfer_does_not_join_monitor_thread():
    presenter, _ = make_presenter()
    presenter.on_transfer_update(Transfer(1, "a.bin"))
    monitor = MagicMock()
    monitor.get_stats.return_value = {"avg_cpu": 1.0, "max_cpu": 2.0, "avg_mem": 1024}
    presenter.monitor = monitor

    presenter.on_transfer_update(Transfer(1, "a.bin", progress=100, status=TransferStatus.COMPLETED))

    monitor.stop.assert_called_once_with(join=False)
    assert presenter.monitor is None
    assert presenter._last_stats["max_cpu"] == 2.0
