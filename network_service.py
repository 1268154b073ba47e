import asyncio
import logging
from functools import partial

import requests

from constants import (
    API_DISCOVERY_DEVICES, API_HEALTH, API_INCOMING_DECISION, API_INCOMING_REQUEST,
    API_SECURITY_STATE, API_SECURITY_TRUST, API_SETTINGS, API_TRANSFERS,
    DEFAULT_BACKEND_BASE,
)
from state_manager import Device, DeviceStatus, IncomingRequest

logger = logging.getLogger("Backend")


class DiscoveryUnavailable(Exception):
    """Backend unreachable, non-success status, or a body we cannot read."""


def parse_devices(payload):
    if not isinstance(payload, dict) or not isinstance(payload.get("devices"), list):
        raise DiscoveryUnavailable("malformed discovery body")
    devices = []
    for entry in payload["devices"]:
        try:
            devices.append(Device(
                id=str(entry["id"]),
                name=str(entry["name"]),
                address=str(entry["addr"]),
                status=DeviceStatus(entry["status"]),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise DiscoveryUnavailable(f"malformed device entry {entry!r}: {e}") from e
    return devices


class BackendClient:
    """HTTP collaborator for the local backend service.

    Calls are blocking ``requests`` calls pushed onto the loop's default
    executor, so coroutines here never stall the event loop.
    """
    def __init__(self, base_url=DEFAULT_BACKEND_BASE, timeout=5.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session else requests.Session()

    def _url(self, path):
        return f"{self.base_url}{path}"

    def _get_json(self, path):
        resp = self.session.get(self._url(path), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _post_json(self, path, body):
        resp = self.session.post(self._url(path), json=body, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json() if resp.content else {}

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def fetch_devices(self):
        try:
            payload = await self._run(self._get_json, API_DISCOVERY_DEVICES)
        except requests.RequestException as e:
            raise DiscoveryUnavailable(f"backend request failed: {e}") from e
        except ValueError as e:
            # json decode failure
            raise DiscoveryUnavailable(f"invalid JSON from backend: {e}") from e
        return parse_devices(payload)

    async def health(self):
        try:
            payload = await self._run(self._get_json, API_HEALTH)
        except (requests.RequestException, ValueError) as e:
            logger.debug(f"Health probe failed: {e}")
            return False
        return isinstance(payload, dict) and payload.get("status") == "ok"

    async def create_transfer(self, transfer):
        body = {
            "id": transfer.id,
            "file_name": transfer.name,
            "receivers": list(transfer.receivers),
        }
        return await self._run(self._post_json, API_TRANSFERS, body)

    async def fetch_incoming_request(self):
        payload = await self._run(self._get_json, API_INCOMING_REQUEST)
        data = payload.get("request") if isinstance(payload, dict) else None
        if not data:
            return None
        return IncomingRequest(sender=data["from"], file_name=data["fileName"], size=data["size"])

    async def post_incoming_decision(self, decision, file_name):
        return await self._run(self._post_json, API_INCOMING_DECISION,
                               {"decision": decision, "fileName": file_name})

    async def fetch_security_state(self):
        return await self._run(self._get_json, API_SECURITY_STATE)

    async def post_trust(self, state):
        return await self._run(self._post_json, API_SECURITY_TRUST, {"trust": state})

    async def post_settings(self, snapshot):
        return await self._run(self._post_json, API_SETTINGS, snapshot)
