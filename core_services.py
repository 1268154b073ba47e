# core_services.py
import asyncio
import logging
from typing import Optional

from constants import MODE_TEXT, PROGRESS_STEP, TICK_INTERVAL
from events import DashboardEvents
from network_service import DiscoveryUnavailable
from state_manager import AppState, Device, DeviceStatus, IncomingRequest, TrustState, UpdateChannel
from transfer_manager import TransferLifecycleManager

logger = logging.getLogger("CoreService")


def _spawn_logged(tasks, coro, what):
    """Run a backend call without awaiting it; failures are only logged.

    ``tasks`` keeps each call alive until it settles; its owner cancels the rest.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        logger.debug(f"No running loop, skipped backend call: {what}")
        return None

    def _done(task):
        tasks.discard(task)
        if not task.cancelled() and task.exception():
            logger.error(f"Backend call failed ({what}): {task.exception()}")

    task = loop.create_task(coro)
    tasks.add(task)
    task.add_done_callback(_done)
    return task


class SelectionController:
    """Selected local files and receiver device ids."""
    def __init__(self, state: AppState, ui: DashboardEvents):
        self.state = state
        self.ui = ui

    @property
    def selection(self):
        return self.state.selection

    def set_files(self, files):
        self.state.selection.files = list(files)
        self._notify()

    def toggle_receiver(self, device_id, included):
        if included:
            self.state.selection.receivers.add(device_id)
        else:
            self.state.selection.receivers.discard(device_id)
        self._notify()

    def clear_receivers(self):
        self.state.selection.receivers.clear()
        self._notify()

    def stale_receivers(self):
        return sorted(r for r in self.state.selection.receivers if r not in self.state.devices)

    def is_ready_to_send(self):
        sel = self.state.selection
        return bool(sel.files) and bool(sel.receivers) and not self.stale_receivers()

    @property
    def files_text(self):
        files = self.state.selection.files
        if not files:
            return "No files selected"
        return f"{len(files)} file(s): {', '.join(f.name for f in files)}"

    @property
    def ready_text(self):
        sel = self.state.selection
        text = f"Ready check: files={len(sel.files)}, receivers={len(sel.receivers)}"
        stale = self.stale_receivers()
        if stale:
            text += f", unavailable={len(stale)}"
        return text

    def _notify(self):
        self.ui.on_selection_changed(self.files_text, self.ready_text)


class DiscoveryController:
    """Drives loading -> ready/empty/error around the discovery collaborator."""
    SAMPLE_DEVICES = (
        Device("peer-a", "Aarav iPhone", "192.168.1.12", DeviceStatus.ONLINE),
        Device("peer-b", "Meera MacBook", "192.168.1.34", DeviceStatus.BUSY),
        Device("peer-c", "Ravi Desktop", "192.168.1.55", DeviceStatus.OFFLINE),
    )
    PREVIEW_MODES = ("demo", "loading", "empty", "error")

    def __init__(self, state: AppState, ui: DashboardEvents, client, selection: SelectionController):
        self.state = state
        self.ui = ui
        self.client = client
        self.selection = selection
        self._generation = 0

    @property
    def mode(self):
        return self.state.mode

    @property
    def mode_text(self):
        if self.state.mode == "ready":
            return f"{len(self.state.devices)} device(s) found"
        return MODE_TEXT[self.state.mode]

    def _set_mode(self, mode):
        self.state.mode = mode
        self.ui.on_mode_change(mode, self.mode_text)

    async def begin_scan(self):
        self._generation += 1
        generation = self._generation
        self._set_mode("loading")

        try:
            devices = await self.client.fetch_devices()
        except DiscoveryUnavailable as e:
            self._fail(generation, str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error from discovery collaborator")
            self._fail(generation, str(e))
            return

        if generation != self._generation:
            logger.debug(f"Discarding result of superseded scan #{generation}")
            return

        if devices:
            self.state.devices.replace_all(devices)
            self.ui.on_devices_changed(self.state.devices.get_all())
            self._set_mode("ready")
        else:
            self.state.devices.clear()
            self.selection.clear_receivers()
            self.ui.on_devices_changed([])
            self._set_mode("empty")

    retry = begin_scan

    def preview(self, mode):
        """Show a view state without the backend; ``demo`` loads the sample peers.

        Any scan still in flight is superseded.
        """
        if mode not in self.PREVIEW_MODES:
            raise ValueError(f"Unknown preview '{mode}', expected one of: {', '.join(self.PREVIEW_MODES)}")
        self._generation += 1
        logger.info(f"Previewing discovery view: {mode}")

        if mode == "demo":
            self.state.devices.replace_all(self.SAMPLE_DEVICES)
            self.ui.on_devices_changed(self.state.devices.get_all())
            self._set_mode("ready")
        elif mode == "empty":
            self.state.devices.clear()
            self.selection.clear_receivers()
            self.ui.on_devices_changed([])
            self._set_mode("empty")
        elif mode == "error":
            self.state.devices.clear()
            self.ui.on_devices_changed([])
            self._set_mode("error")
        else:
            self._set_mode("loading")

    def _fail(self, generation, reason):
        if generation != self._generation:
            logger.debug(f"Ignoring failure of superseded scan #{generation}: {reason}")
            return
        logger.error(f"Discovery scan failed: {reason}")
        self.state.devices.clear()
        self.ui.on_devices_changed([])
        self._set_mode("error")


class IncomingRequestController:
    """Single-slot consent flow for peer-initiated transfers.

    While a request is pending, further requests are refused and logged.
    """
    SAMPLE = IncomingRequest(sender="Aarav iPhone", file_name="holiday_photos.zip", size="128 MB")

    def __init__(self, state: AppState, ui: DashboardEvents, client=None, auto_decline_seconds=0, tasks=None):
        self.state = state
        self.ui = ui
        self.client = client
        self.auto_decline_seconds = auto_decline_seconds
        self._tasks = tasks if tasks is not None else set()
        self.last_resolution: Optional[dict] = None
        self._timer = None

    @property
    def pending(self) -> Optional[IncomingRequest]:
        return self.state.incoming

    def present(self, request: IncomingRequest) -> bool:
        current = self.state.incoming
        if current is not None:
            logger.warning(
                f"Dropped request from {request.sender} ({request.file_name}): "
                f"still waiting on {current.sender} ({current.file_name})"
            )
            return False

        self.state.incoming = request
        logger.info(f"Incoming request from {request.sender}: {request.file_name} ({request.size})")
        self.ui.on_incoming_request(request)
        if self.auto_decline_seconds > 0:
            self._arm_timer()
        return True

    def simulate(self) -> bool:
        return self.present(self.SAMPLE)

    def resolve(self, decision) -> Optional[dict]:
        if decision not in ("accepted", "declined"):
            raise ValueError(f"Unknown decision: {decision}")
        request = self.state.incoming
        if request is None:
            return None

        self.state.incoming = None
        self._disarm_timer()
        record = {"decision": decision, "fileName": request.file_name}
        self.last_resolution = record
        logger.info(f"Incoming request {decision}: {request.file_name}")
        self.ui.on_incoming_resolved(decision, request.file_name)
        if self.client:
            _spawn_logged(self._tasks, self.client.post_incoming_decision(decision, request.file_name), "incoming decision")
        return record

    def accept(self):
        return self.resolve("accepted")

    def decline(self):
        return self.resolve("declined")

    @property
    def resolution_text(self):
        if not self.last_resolution:
            return ""
        return f"Incoming request {self.last_resolution['decision']}: {self.last_resolution['fileName']}"

    async def poll(self) -> Optional[IncomingRequest]:
        """Fetch the backend's request. Returns it only if it was presented."""
        if not self.client:
            return None
        try:
            request = await self.client.fetch_incoming_request()
        except Exception as e:
            logger.error(f"Incoming request poll failed: {e}")
            return None
        if request and self.present(request):
            return request
        return None

    def close(self):
        self._disarm_timer()

    def _arm_timer(self):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Auto-decline requested without a running loop; request stays pending")
            return
        self._timer = loop.call_later(self.auto_decline_seconds, self._expire)

    def _disarm_timer(self):
        if self._timer:
            self._timer.cancel()
            self._timer = None

    def _expire(self):
        self._timer = None
        if self.state.incoming is not None:
            logger.info(f"No answer after {self.auto_decline_seconds}s, declining")
            self.resolve("declined")


class TrustController:
    def __init__(self, state: AppState, ui: DashboardEvents, client=None, tasks=None):
        self.state = state
        self.ui = ui
        self.client = client
        self._tasks = tasks if tasks is not None else set()

    @property
    def trust_state(self) -> TrustState:
        return self.state.trust.state

    @property
    def text(self):
        if self.state.trust.state == TrustState.TRUSTED:
            return "Trust state: Trusted peer"
        return "Trust state: Unverified peer"

    @property
    def local_fingerprint(self):
        return self.state.trust.local_fingerprint

    def verify(self):
        self._set(TrustState.TRUSTED)

    def revoke(self):
        self._set(TrustState.UNVERIFIED)

    async def refresh(self):
        if not self.client:
            return self.trust_state
        try:
            payload = await self.client.fetch_security_state()
            self._set(TrustState(payload["trust"]), sync=False)
        except Exception as e:
            logger.error(f"Could not read security state: {e}")
        return self.trust_state

    def _set(self, value, sync=True):
        self.state.trust.state = value
        self.ui.on_trust_change(value, self.text)
        if sync and self.client:
            _spawn_logged(self._tasks, self.client.post_trust(value.value), "trust")


class SettingsController:
    def __init__(self, state: AppState, ui: DashboardEvents, client=None):
        self.state = state
        self.ui = ui
        self.client = client

    def set_lan_only(self, value):
        self.state.settings.lan_only = bool(value)
        self.publish()

    def set_relay_enabled(self, value):
        self.state.settings.relay_enabled = bool(value)
        self.publish()

    def set_diagnostics_enabled(self, value):
        self.state.settings.diagnostics_enabled = bool(value)
        self.publish()

    def set_update_channel(self, value):
        self.state.settings.update_channel = UpdateChannel(value)
        self.publish()

    @property
    def diagnostics_enabled(self):
        return self.state.settings.diagnostics_enabled

    @property
    def summary(self):
        s = self.state.settings
        mode = "LAN-only" if s.lan_only else "Mixed-network"
        relay = "relay-on" if s.relay_enabled else "relay-off"
        diag = "diag-on" if s.diagnostics_enabled else "diag-off"
        return f"Mode: {mode}, Channel: {s.update_channel.value}, {relay}, {diag}"

    def snapshot(self):
        s = self.state.settings
        return {
            "lan_only": s.lan_only,
            "relay_enabled": s.relay_enabled,
            "diagnostics_enabled": s.diagnostics_enabled,
            "update_channel": s.update_channel.value,
        }

    def publish(self):
        self.ui.on_settings_change(self.summary)

    async def push(self):
        if not self.client:
            return False
        try:
            await self.client.post_settings(self.snapshot())
        except Exception as e:
            logger.error(f"Could not save settings: {e}")
            return False
        return True


class AccessibilityController:
    def __init__(self, state: AppState, ui: DashboardEvents):
        self.state = state
        self.ui = ui

    def set_reduced_motion(self, value):
        self.state.accessibility.reduced_motion = bool(value)
        self.publish()

    def set_high_contrast(self, value):
        self.state.accessibility.high_contrast = bool(value)
        self.publish()

    def set_large_text(self, value):
        self.state.accessibility.large_text = bool(value)
        self.publish()

    @property
    def flags(self):
        a = self.state.accessibility
        active = set()
        if a.reduced_motion:
            active.add("reduced-motion")
        if a.high_contrast:
            active.add("high-contrast")
        if a.large_text:
            active.add("large-text")
        return frozenset(active)

    def publish(self):
        self.ui.on_accessibility_change(self.flags)


class DashboardSession:
    """Wires every controller around one AppState."""
    def __init__(self, ui: DashboardEvents, client, config=None):
        self.state = AppState()
        self.ui = ui
        self.client = client
        self.background = set()

        tick_interval, step, auto_decline = TICK_INTERVAL, PROGRESS_STEP, 0
        if config:
            tick_interval = config.transfer.tick_interval
            step = config.transfer.progress_step
            auto_decline = config.incoming.auto_decline_seconds
            self._apply_config(config)

        self.selection = SelectionController(self.state, ui)
        self.discovery = DiscoveryController(self.state, ui, client, self.selection)
        self.transfers = TransferLifecycleManager(self.state, ui, tick_interval, step, client=client)
        self.incoming = IncomingRequestController(self.state, ui, client, auto_decline, tasks=self.background)
        self.trust = TrustController(self.state, ui, client, tasks=self.background)
        self.settings = SettingsController(self.state, ui, client)
        self.accessibility = AccessibilityController(self.state, ui)

    def _apply_config(self, config):
        p = config.preferences
        self.state.settings.lan_only = p.lan_only
        self.state.settings.relay_enabled = p.relay_enabled
        self.state.settings.diagnostics_enabled = p.diagnostics_enabled
        self.state.settings.update_channel = UpdateChannel(p.update_channel)
        a = config.accessibility
        self.state.accessibility.reduced_motion = a.reduced_motion
        self.state.accessibility.high_contrast = a.high_contrast
        self.state.accessibility.large_text = a.large_text
        self.state.trust.local_fingerprint = config.security.local_fingerprint

    async def start(self):
        self.settings.publish()
        self.accessibility.publish()
        await self.discovery.begin_scan()

    def confirm_send(self):
        return self.transfers.confirm_send(self.selection)

    def close(self):
        self.transfers.shutdown()
        self.incoming.close()
        for task in list(self.background):
            if not task.done():
                task.cancel()
