import asyncio
import time
import logging
from typing import Dict, Optional, Tuple

from constants import MSG_NO_FILES, MSG_NO_LOOP, MSG_NO_RECEIVERS, PROGRESS_STEP, TICK_INTERVAL
from events import DashboardEvents
from state_manager import AppState, Transfer, TransferStatus

logger = logging.getLogger("TransferManager")


def _current_task():
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class TransferLifecycleManager:
    """Owns outgoing transfers and the tick task that advances each one.

    Every transfer that is in progress has exactly one live task in
    ``_tickers``; leaving in-progress for any reason removes and cancels it.
    """
    def __init__(self, state: AppState, ui: DashboardEvents, tick_interval=TICK_INTERVAL,
                 progress_step=PROGRESS_STEP, client=None):
        self.state = state
        self.ui = ui
        self.tick_interval = tick_interval
        self.progress_step = progress_step
        self.client = client
        self._tickers: Dict[int, asyncio.Task] = {}
        self._background = set()
        self._last_id = 0

    def _next_id(self):
        # Wall-clock millis, bumped when two sends land in the same millisecond
        self._last_id = max(self._last_id + 1, int(time.time() * 1000))
        return self._last_id

    def confirm_send(self, selection) -> Tuple[Optional[Transfer], str]:
        sel = selection.selection
        if not sel.files:
            self.ui.on_send_refused(MSG_NO_FILES)
            return None, MSG_NO_FILES
        if not sel.receivers:
            self.ui.on_send_refused(MSG_NO_RECEIVERS)
            return None, MSG_NO_RECEIVERS
        stale = selection.stale_receivers()
        if stale:
            msg = f"Receiver no longer available: {', '.join(stale)}"
            self.ui.on_send_refused(msg)
            return None, msg

        # Nothing is recorded unless a ticker can be attached
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Send refused: no running event loop to drive progress")
            self.ui.on_send_refused(MSG_NO_LOOP)
            return None, MSG_NO_LOOP

        # Only the head of the file selection is tracked
        transfer = Transfer(
            id=self._next_id(),
            name=sel.files[0].name,
            receivers=tuple(sorted(sel.receivers)),
            file_count=len(sel.files),
        )
        self.state.transfers.insert(0, transfer)
        logger.info(f"Transfer {transfer.id} queued: {transfer.name} -> {len(transfer.receivers)} receiver(s)")
        self.ui.on_transfer_update(transfer)
        self._start_ticker(transfer.id, loop)
        if self.client:
            self._spawn(self._announce(transfer))
        return transfer, f"Sending {transfer.name} to {len(transfer.receivers)} receiver(s)"

    def tick(self, transfer_id) -> bool:
        """Advance one step. Returns False once the transfer should stop ticking."""
        t = self.state.find_transfer(transfer_id)
        if not t or t.status != TransferStatus.IN_PROGRESS:
            return False
        t.progress = min(100, t.progress + self.progress_step)
        if t.progress >= 100:
            t.status = TransferStatus.COMPLETED
            logger.info(f"Transfer {t.id} completed: {t.name}")
            self._stop_ticker(t.id)
        self.ui.on_transfer_update(t)
        return t.status == TransferStatus.IN_PROGRESS

    def pause(self, transfer_id) -> bool:
        t = self.state.find_transfer(transfer_id)
        if not t or t.status != TransferStatus.IN_PROGRESS:
            return False
        t.status = TransferStatus.PAUSED
        self._stop_ticker(t.id)
        logger.info(f"Transfer {t.id} paused at {t.progress}%")
        self.ui.on_transfer_update(t)
        return True

    def resume(self, transfer_id) -> bool:
        t = self.state.find_transfer(transfer_id)
        if not t or t.status != TransferStatus.PAUSED:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"Transfer {t.id} stays paused: no running event loop")
            return False
        t.status = TransferStatus.IN_PROGRESS
        logger.info(f"Transfer {t.id} resumed from {t.progress}%")
        self.ui.on_transfer_update(t)
        self._start_ticker(t.id, loop)
        return True

    def cancel(self, transfer_id) -> bool:
        t = self.state.find_transfer(transfer_id)
        if not t or t.is_terminal:
            return False
        # Cancellation is recorded as a failure
        t.status = TransferStatus.FAILED
        self._stop_ticker(t.id)
        logger.info(f"Transfer {t.id} cancelled")
        self.ui.on_transfer_update(t)
        return True

    def active_tickers(self):
        return set(self._tickers)

    async def wait(self, transfer_id):
        task = self._tickers.get(transfer_id)
        if task:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def shutdown(self):
        for task in list(self._tickers.values()) + list(self._background):
            if not task.done():
                task.cancel()
        self._tickers.clear()

    # --- internals ---
    def _start_ticker(self, transfer_id, loop=None):
        self._stop_ticker(transfer_id)
        loop = loop or asyncio.get_running_loop()
        self._tickers[transfer_id] = loop.create_task(self._run_ticker(transfer_id))

    def _stop_ticker(self, transfer_id):
        task = self._tickers.pop(transfer_id, None)
        if task and task is not _current_task():
            task.cancel()

    async def _run_ticker(self, transfer_id):
        try:
            while True:
                await asyncio.sleep(self.tick_interval)
                if not self.tick(transfer_id):
                    break
        finally:
            if self._tickers.get(transfer_id) is _current_task():
                del self._tickers[transfer_id]

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _announce(self, transfer):
        try:
            await self.client.create_transfer(transfer)
        except Exception as e:
            logger.error(f"Transfer {transfer.id} not registered with backend: {e}", exc_info=True)
