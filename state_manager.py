# state_manager.py
import os
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from constants import DEFAULT_FINGERPRINT

logger = logging.getLogger("StateManager")


class DeviceStatus(str, Enum):
    ONLINE = "online"
    BUSY = "busy"
    OFFLINE = "offline"


class TransferStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class TrustState(str, Enum):
    UNVERIFIED = "unverified"
    TRUSTED = "trusted"


class UpdateChannel(str, Enum):
    STABLE = "stable"
    BETA = "beta"
    NIGHTLY = "nightly"


@dataclass(frozen=True)
class Device:
    id: str
    name: str
    address: str
    status: DeviceStatus


@dataclass(frozen=True)
class FileRef:
    name: str
    path: str = ""
    size_bytes: int = 0

    @classmethod
    def from_path(cls, path):
        size = os.path.getsize(path) if os.path.isfile(path) else 0
        return cls(os.path.basename(path) or path, path, size)


@dataclass
class Transfer:
    id: int
    name: str
    progress: int = 0
    status: TransferStatus = TransferStatus.IN_PROGRESS
    receivers: Tuple[str, ...] = ()
    file_count: int = 1

    @property
    def is_terminal(self):
        return self.status in (TransferStatus.COMPLETED, TransferStatus.FAILED)


@dataclass(frozen=True)
class IncomingRequest:
    sender: str
    file_name: str
    size: str


@dataclass
class SettingsState:
    lan_only: bool = True
    relay_enabled: bool = False
    diagnostics_enabled: bool = False
    update_channel: UpdateChannel = UpdateChannel.STABLE


@dataclass
class AccessibilityState:
    reduced_motion: bool = False
    high_contrast: bool = False
    large_text: bool = False


class DeviceRegistry:
    """Devices found by the last successful discovery scan."""
    def __init__(self):
        self._devices: Dict[str, Device] = {}

    def replace_all(self, devices):
        # Wholesale replacement; a rescan never patches individual devices
        new = {d.id: d for d in devices}
        for device_id in new.keys() - self._devices.keys():
            logger.info(f"New Peer: {new[device_id].name} ({new[device_id].address})")
        for device_id in self._devices.keys() - new.keys():
            logger.info(f"Peer Lost: {self._devices[device_id].name}")
        self._devices = new

    def clear(self):
        self._devices = {}

    def get(self, device_id) -> Optional[Device]:
        return self._devices.get(device_id)

    def get_all(self) -> List[Device]:
        return list(self._devices.values())

    def __contains__(self, device_id):
        return device_id in self._devices

    def __len__(self):
        return len(self._devices)


@dataclass
class SelectionState:
    files: List[FileRef] = field(default_factory=list)
    receivers: set = field(default_factory=set)


@dataclass
class TrustInfo:
    state: TrustState = TrustState.UNVERIFIED
    local_fingerprint: str = DEFAULT_FINGERPRINT


class AppState:
    """Single source of truth for dashboard state.

    Each controller is handed this object and mutates only its own slice.
    """
    def __init__(self):
        self.mode = "loading"
        self.devices = DeviceRegistry()
        self.selection = SelectionState()
        self.transfers: List[Transfer] = []
        self.incoming: Optional[IncomingRequest] = None
        self.trust = TrustInfo()
        self.settings = SettingsState()
        self.accessibility = AccessibilityState()

    def find_transfer(self, transfer_id) -> Optional[Transfer]:
        for t in self.transfers:
            if t.id == transfer_id:
                return t
        return None
