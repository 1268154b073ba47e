import pytest
from state_manager import AppState, Device, DeviceRegistry, DeviceStatus, FileRef, Transfer, TransferStatus

def test_device_registry():
    registry = DeviceRegistry()

    # 1. Replace with a scan result
    registry.replace_all([Device("peer1", "MacBook", "192.168.1.5", DeviceStatus.ONLINE)])
    assert len(registry) == 1
    assert "peer1" in registry
    assert registry.get("peer1").name == "MacBook"

    # 2. A rescan replaces everything
    registry.replace_all([Device("peer2", "Pixel", "192.168.1.9", DeviceStatus.BUSY)])
    assert registry.get("peer1") is None
    assert [d.id for d in registry.get_all()] == ["peer2"]

    # 3. Clear
    registry.clear()
    assert len(registry) == 0

def test_devices_are_immutable():
    device = Device("peer1", "MacBook", "192.168.1.5", DeviceStatus.ONLINE)
    with pytest.raises(AttributeError):
        device.name = "Other"

def test_file_ref_from_path(tmp_path):
    f = tmp_path / "notes.txt"
    f.write_bytes(b"x" * 42)
    ref = FileRef.from_path(str(f))
    assert ref.name == "notes.txt"
    assert ref.size_bytes == 42

    missing = FileRef.from_path(str(tmp_path / "gone.bin"))
    assert missing.name == "gone.bin"
    assert missing.size_bytes == 0

def test_app_state_defaults():
    state = AppState()
    assert state.mode == "loading"
    assert state.incoming is None
    assert state.trust.state.value == "unverified"
    assert state.settings.update_channel.value == "stable"

def test_find_transfer():
    state = AppState()
    state.transfers.insert(0, Transfer(1, "a.txt"))
    state.transfers.insert(0, Transfer(2, "b.txt"))
    assert state.find_transfer(1).name == "a.txt"
    assert state.find_transfer(3) is None
    assert not state.find_transfer(2).is_terminal
    state.find_transfer(2).status = TransferStatus.FAILED
    assert state.find_transfer(2).is_terminal
