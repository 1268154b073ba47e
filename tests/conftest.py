import pytest
from unittest.mock import MagicMock, AsyncMock

from core_services import DashboardSession
from state_manager import Device, DeviceStatus, FileRef

SAMPLE_DEVICES = [
    Device("peer-a", "Aarav iPhone", "192.168.1.12", DeviceStatus.ONLINE),
    Device("peer-b", "Meera MacBook", "192.168.1.34", DeviceStatus.BUSY),
    Device("peer-c", "Ravi Desktop", "192.168.1.55", DeviceStatus.OFFLINE),
]

@pytest.fixture
def ui():
    return MagicMock()

@pytest.fixture
def client():
    mock = MagicMock()
    mock.fetch_devices = AsyncMock(return_value=list(SAMPLE_DEVICES))
    mock.create_transfer = AsyncMock(return_value={})
    mock.fetch_incoming_request = AsyncMock(return_value=None)
    mock.post_incoming_decision = AsyncMock(return_value={})
    mock.fetch_security_state = AsyncMock(return_value={"trust": "unverified"})
    mock.post_trust = AsyncMock(return_value={})
    mock.post_settings = AsyncMock(return_value={})
    return mock

@pytest.fixture
def session(ui, client):
    s = DashboardSession(ui, client)
    yield s
    s.close()

def ready_to_send(session, file_names=("report.pdf",)):
    """Put one scanned device and the given files into the selection."""
    session.state.devices.replace_all(SAMPLE_DEVICES)
    session.selection.set_files(FileRef(name) for name in file_names)
    session.selection.toggle_receiver("peer-a", True)
