import os
import time
import threading
import statistics
import psutil
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box
from rich.markup import escape
from rich.text import Text
from events import DashboardEvents
from state_manager import TransferStatus
from utility import format_bytes, progress_bar

class ResourceMonitor:
    """Samples CPU & RAM of this process on a background thread."""
    def __init__(self, pid):
        self.process = psutil.Process(pid)
        self.running = False
        self.samples = {'cpu': [], 'memory': []}
        self.thread = None

    def start(self):
        self.running = True
        self.thread = threading.Thread(target=self._monitor_loop, daemon=True)
        self.thread.start()

    def stop(self, join=True):
        # The sampling thread exits on its own within one interval
        self.running = False
        if join and self.thread and self.thread.is_alive():
            self.thread.join(timeout=1.0)

    def _monitor_loop(self):
        try:
            self.process.cpu_percent()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return
        while self.running:
            try:
                self.samples['cpu'].append(self.process.cpu_percent(interval=None))
                self.samples['memory'].append(self.process.memory_info().rss)
                time.sleep(0.5)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                break

    def get_stats(self):
        if not self.samples['cpu']: return None
        return {
            'avg_cpu': statistics.mean(self.samples['cpu']),
            'max_cpu': max(self.samples['cpu']),
            'avg_mem': statistics.mean(self.samples['memory']),
        }

STATUS_STYLE = {
    "in-progress": "cyan",
    "paused": "yellow",
    "completed": "green",
    "failed": "red",
}

class TerminalPresenter(DashboardEvents):
    """Renders dashboard notifications to the terminal."""
    def __init__(self, console=None, dev_mode=False):
        self.console = console if console else Console()
        self.dev_mode = dev_mode
        self.flags = frozenset()
        self.monitor = None
        self._last_stats = None
        self._active = set()

    def _style(self, style):
        # High contrast drops colour and leans on weight only
        if "high-contrast" in self.flags:
            return "bold"
        if "large-text" in self.flags:
            return f"bold {style}"
        return style

    def _say(self, text, style="white"):
        self.console.print(Text(text, style=self._style(style)))

    # --- discovery ---
    def on_mode_change(self, mode, text):
        style = {"ready": "green", "empty": "yellow", "error": "red"}.get(mode, "dim")
        self._say(f"[{mode}] {text}", style)

    def on_devices_changed(self, devices):
        if not devices:
            return
        table = Table(box=box.SIMPLE, header_style=self._style("magenta"))
        table.add_column("ID"); table.add_column("Name"); table.add_column("Address"); table.add_column("Status")
        for d in sorted(devices, key=lambda d: d.name):
            table.add_row(escape(d.id), escape(d.name), escape(d.address), d.status.value.capitalize())
        self.console.print(table)

    # --- selection / send ---
    def on_selection_changed(self, files_text, ready_text):
        self._say(f"{files_text} | {ready_text}", "dim")

    def on_send_refused(self, message):
        self._say(f"✘ {message}", "red")

    def on_transfer_update(self, transfer):
        status = transfer.status.value
        if transfer.status == TransferStatus.IN_PROGRESS:
            self._track(transfer.id)
        else:
            self._untrack(transfer.id)

        # Reduced motion: report state changes only, not every tick
        if "reduced-motion" in self.flags and transfer.status == TransferStatus.IN_PROGRESS and transfer.progress not in (0, 100):
            return
        line = progress_bar(transfer.progress, transfer.name, status)
        self.console.print(Text(f"#{transfer.id} {line}", style=self._style(STATUS_STYLE[status])))

        if transfer.status == TransferStatus.COMPLETED and self.dev_mode:
            self._print_resource_report()

    # --- incoming ---
    def on_incoming_request(self, request):
        self.console.print(
            Panel(
                f"[bold cyan]📨 Incoming Request[/]\n"
                f"{escape(request.sender)} wants to send [bold green]{escape(request.file_name)}[/] ({escape(request.size)})",
                border_style=self._style("green"),
                box=box.ROUNDED,
                padding=(1, 2),
                expand=False,
                subtitle="[dim]Type 'accept' or 'decline'[/]"
            )
        )

    def on_incoming_resolved(self, decision, file_name):
        self._say(f"Incoming request {decision}: {file_name}", "green" if decision == "accepted" else "yellow")

    # --- trust / prefs ---
    def on_trust_change(self, state, text):
        self._say(text, "green" if state.value == "trusted" else "yellow")

    def on_settings_change(self, summary):
        self._say(summary, "blue")

    def on_accessibility_change(self, flags):
        self.flags = flags
        self._say(f"Accessibility: {', '.join(sorted(flags)) or 'defaults'}", "blue")

    def print_system(self, msg):
        self.console.print(f"[{self._style('bold cyan')}]ℹ️  System:[/] {msg}")

    def print_banner(self):
        art = """
     .--.   .--.
    ( () )-( () )  [bold green]PeerDash[/]
     '--'   '--'   [dim]P2P transfer dashboard[/]
    """
        self.console.print(Panel(art, border_style="green", expand=False))

    def print_transfers(self, transfers):
        if not transfers:
            return self._say("No active transfers yet.", "dim")
        for t in transfers:
            line = progress_bar(t.progress, t.name, t.status.value)
            self.console.print(Text(f"#{t.id} {line}", style=self._style(STATUS_STYLE[t.status.value])))

    # --- diagnostics ---
    def set_dev_mode(self, enabled):
        self.dev_mode = enabled
        if not enabled and self.monitor:
            self.monitor.stop(join=False)
            self.monitor = None
        elif enabled and self._active and self.monitor is None:
            self._start_monitor()

    def _start_monitor(self):
        self.monitor = ResourceMonitor(os.getpid())
        self.monitor.start()

    def _track(self, transfer_id):
        self._active.add(transfer_id)
        if self.dev_mode and self.monitor is None:
            self._start_monitor()

    def _untrack(self, transfer_id):
        self._active.discard(transfer_id)
        if not self._active and self.monitor:
            # Runs on the event loop; no join
            self.monitor.stop(join=False)
            self._last_stats = self.monitor.get_stats()
            self.monitor = None

    def _print_resource_report(self):
        if self._active:
            stats = self.monitor.get_stats() if self.monitor else None
        else:
            stats = self._last_stats
        if not stats:
            return
        self._say(f"   └─ [Diag] CPU {stats['avg_cpu']:.1f}% (max {stats['max_cpu']:.1f}%) | RAM {format_bytes(stats['avg_mem'])}", "dim")
