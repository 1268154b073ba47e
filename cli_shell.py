# cli_shell.py
import shlex
import logging
import os
import questionary
from typing import Dict, Callable
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import NestedCompleter
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.styles import Style

from config_manager import ConfigEditor
from state_manager import FileRef, UpdateChannel

logger = logging.getLogger("Shell")

ON_OFF = {"on": True, "off": False, "true": True, "false": False, "1": True, "0": False}

def parse_switch(value):
    try:
        return ON_OFF[value.lower()]
    except KeyError:
        raise ValueError(f"Expected on/off, got '{value}'")

class CommandShell:
    def __init__(self, session, ui, config_path):
        self.session = session
        self.ui = ui
        self.config_path = config_path
        self.editor = ConfigEditor(config_path)
        self.console = Console()
        self.commands: Dict[str, dict] = {}

        self.register_command("scan", self.cmd_scan, "Discover devices; scan demo|loading|empty|error previews a view")
        self.register_command("retry", self.cmd_scan, "Retry discovery")
        self.register_command("devices", self.cmd_devices, "Show discovered devices")
        self.register_command("files", self.cmd_files, "Select files: files <path> [path...]")
        self.register_command("pick", self.cmd_pick, "Pick receivers interactively")
        self.register_command("toggle", self.cmd_toggle, "toggle <device_id> on|off")
        self.register_command("send", self.cmd_send, "Confirm send to selected receivers")
        self.register_command("transfers", self.cmd_transfers, "Show transfers")
        self.register_command("pause", self.cmd_pause, "pause <transfer_id>")
        self.register_command("resume", self.cmd_resume, "resume <transfer_id>")
        self.register_command("cancel", self.cmd_cancel, "cancel <transfer_id>")
        self.register_command("incoming", self.cmd_incoming, "incoming [simulate|poll]")
        self.register_command("accept", self.cmd_accept, "Accept incoming request")
        self.register_command("decline", self.cmd_decline, "Decline incoming request")
        self.register_command("verify", self.cmd_verify, "Mark peer as trusted")
        self.register_command("revoke", self.cmd_revoke, "Revoke peer trust")
        self.register_command("set", self.cmd_set, "set lan_only|relay|diagnostics|channel <value>")
        self.register_command("a11y", self.cmd_a11y, "a11y reduced_motion|high_contrast|large_text on|off")
        self.register_command("config", self.cmd_config, "View/Edit config")
        self.register_command("help", self.cmd_help, "Show help")
        self.register_command("clear", self.cmd_clear, "Clear screen")
        self.register_command("exit", self.cmd_exit, "Exit")

    def register_command(self, name: str, func: Callable, help_text: str):
        self.commands[name] = {'func': func, 'help': help_text}

    def _get_completer(self):
        switch = {"on": None, "off": None}
        tree = {name: None for name in self.commands}
        tree.update({
            "toggle": {d.id: switch for d in self.session.state.devices.get_all()},
            "scan": {m: None for m in self.session.discovery.PREVIEW_MODES},
            "incoming": {"simulate": None, "poll": None},
            "set": {"lan_only": switch, "relay": switch, "diagnostics": switch,
                    "channel": {c.value: None for c in UpdateChannel}},
            "a11y": {"reduced_motion": switch, "high_contrast": switch, "large_text": switch},
            "config": {"show": None, "set": None},
        })
        return NestedCompleter.from_nested_dict(tree)

    async def run(self):
        style = Style.from_dict({'prompt': 'bg:#00aa00 #000000 bold', 'mode': '#00ff00 bold'})
        prompt = PromptSession(style=style)

        self.ui.print_banner()
        self.ui.print_system(f"Fingerprint: [bold green]{self.session.trust.local_fingerprint}[/]")
        self.ui.print_system(f"Config: [bold cyan]{self.config_path}[/]")

        while True:
            try:
                with patch_stdout():
                    notify = " <style bg='red' fg='white'> 1 Request </style>" if self.session.incoming.pending else ""
                    text = await prompt.prompt_async(
                        HTML(f"<prompt> PeerDash </prompt> (<mode>{self.session.discovery.mode}</mode>){notify} > "),
                        completer=self._get_completer(),
                    )

                if not text.strip(): continue
                parts = shlex.split(text)
                cmd_name = parts[0].lower()
                args = parts[1:]

                if cmd_name in self.commands:
                    await self.commands[cmd_name]['func'](args)
                else:
                    self.console.print(f"[red]❌ Unknown command: '{cmd_name}'[/]")
            except (KeyboardInterrupt, EOFError): break
            except ValueError as e: self.console.print(f"[red]❌ {e}[/]")
            except Exception as e:
                logger.exception("Shell command failed")
                self.console.print(f"[red]❌ Shell Error: {e}[/]")

    # --- Discovery / selection ---
    async def cmd_scan(self, args):
        if args:
            return self.session.discovery.preview(args[0].lower())
        await self.session.discovery.begin_scan()

    async def cmd_devices(self, args):
        devices = self.session.state.devices.get_all()
        if not devices: return self.console.print(f"[dim]{self.session.discovery.mode_text}[/]")
        self.ui.on_devices_changed(devices)

    async def cmd_files(self, args):
        missing = [p for p in args if not os.path.exists(p)]
        if missing:
            self.console.print(f"[yellow]⚠ Not found (kept in selection): {', '.join(missing)}[/]")
        self.session.selection.set_files(FileRef.from_path(p) for p in args)

    async def cmd_pick(self, args):
        devices = self.session.state.devices.get_all()
        if not devices: return self.console.print("[red]❌ No devices. Run 'scan' first.[/]")
        chosen = self.session.state.selection.receivers
        choices = [questionary.Choice(f"{d.name} | {d.address} ({d.status.value})", value=d.id, checked=d.id in chosen)
                   for d in devices]
        picked = await questionary.checkbox("Receivers:", choices=choices).ask_async()
        if picked is None: return
        for d in devices:
            self.session.selection.toggle_receiver(d.id, d.id in picked)

    async def cmd_toggle(self, args):
        if len(args) < 2: return self.console.print("[yellow]Usage: toggle <device_id> on|off[/]")
        self.session.selection.toggle_receiver(args[0], parse_switch(args[1]))

    # --- Transfers ---
    async def cmd_send(self, args):
        transfer, message = self.session.confirm_send()
        if transfer:
            self.console.print(f"[green]🚀 {message}[/]")

    async def cmd_transfers(self, args):
        self.ui.print_transfers(self.session.state.transfers)

    def _transfer_id(self, args):
        if not args: raise ValueError("Transfer id required (see 'transfers')")
        try:
            return int(args[0].lstrip("#"))
        except ValueError:
            raise ValueError(f"Invalid transfer id: {args[0]}")

    async def cmd_pause(self, args):
        self.session.transfers.pause(self._transfer_id(args))

    async def cmd_resume(self, args):
        self.session.transfers.resume(self._transfer_id(args))

    async def cmd_cancel(self, args):
        self.session.transfers.cancel(self._transfer_id(args))

    # --- Incoming ---
    async def cmd_incoming(self, args):
        action = args[0] if args else "show"
        if action == "simulate":
            if not self.session.incoming.simulate():
                self.console.print("[yellow]A request is already waiting for an answer.[/]")
        elif action == "poll":
            if await self.session.incoming.poll():
                return
            if self.session.incoming.pending:
                self.console.print("[yellow]A request is already waiting for an answer.[/]")
            else:
                self.console.print("[dim]No incoming request.[/]")
        else:
            pending = self.session.incoming.pending
            if pending: self.ui.on_incoming_request(pending)
            else: self.console.print("[dim]No incoming request.[/]")

    async def cmd_accept(self, args):
        if not self.session.incoming.accept():
            self.console.print("[dim]Nothing to accept.[/]")

    async def cmd_decline(self, args):
        if not self.session.incoming.decline():
            self.console.print("[dim]Nothing to decline.[/]")

    # --- Trust / preferences ---
    async def cmd_verify(self, args):
        self.session.trust.verify()

    async def cmd_revoke(self, args):
        self.session.trust.revoke()

    async def cmd_set(self, args):
        if len(args) < 2: return self.console.print("[yellow]Usage: set <key> <value>[/]")
        key, value = args[0], args[1]
        settings = self.session.settings
        if key == "lan_only": settings.set_lan_only(parse_switch(value))
        elif key == "relay": settings.set_relay_enabled(parse_switch(value))
        elif key == "diagnostics":
            settings.set_diagnostics_enabled(parse_switch(value))
            self.ui.set_dev_mode(settings.diagnostics_enabled)
        elif key == "channel": settings.set_update_channel(value)
        else: return self.console.print(f"[red]❌ Unknown setting: {key}[/]")
        if self.session.client:
            await settings.push()

    async def cmd_a11y(self, args):
        if len(args) < 2: return self.console.print("[yellow]Usage: a11y <flag> on|off[/]")
        a11y = self.session.accessibility
        setter = {
            "reduced_motion": a11y.set_reduced_motion,
            "high_contrast": a11y.set_high_contrast,
            "large_text": a11y.set_large_text,
        }.get(args[0])
        if not setter: return self.console.print(f"[red]❌ Unknown flag: {args[0]}[/]")
        setter(parse_switch(args[1]))

    async def cmd_config(self, args):
        if not args or args[0] == "show":
            if os.path.exists(self.config_path):
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self.console.print(Panel(f.read().strip(), title=f"📄 {self.config_path}", border_style="blue"))
            return

        if args[0] == "set" and len(args) >= 3:
            if "." not in args[1]: return self.console.print("[red]❌ Use section.key, e.g. backend.base_url[/]")
            section, key = args[1].split(".", 1)
            value = args[2]
            if value.lower() in ("true", "false"): value = value.lower() == "true"
            else:
                try: value = int(value)
                except ValueError:
                    try: value = float(value)
                    except ValueError: pass

            success, msg = self.editor.update_key(section, key, value)
            if success: self.console.print(f"[green]✔ {msg}[/] [dim](applies on next start)[/]")
            else: self.console.print(f"[red]❌ Failed: {msg}[/]")

    async def cmd_help(self, args):
        table = Table(title="Available Commands", box=None)
        table.add_column("Command", style="cyan bold"); table.add_column("Description", style="dim")
        for name, data in self.commands.items(): table.add_row(name, data['help'])
        self.console.print(table)

    async def cmd_clear(self, args): self.console.clear()
    async def cmd_exit(self, args): self.console.print("[bold red]Bye![/]"); raise EOFError
