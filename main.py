import sys
import asyncio
import argparse
import logging
import os

from rich.console import Console

from cli_shell import CommandShell
from config_manager import DashboardConfig
from constants import DEFAULT_CONFIG_PATH
from core_services import DashboardSession
from logger_config import setup_logging
from network_service import BackendClient
from ui_presenter import TerminalPresenter

logger = logging.getLogger("Main")
console = Console()

async def main():
    args = parse_args()
    config_path = args.config

    if not os.path.exists(config_path):
        console.print(f"[red]❌ Error: Config file '{config_path}' not found.[/]")
        return 1

    try:
        config = DashboardConfig(config_path)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/]")
        return 1

    debug = args.verbose or config.logging.debug
    setup_logging(
        log_filename=config.logging.file_path,
        debug_mode=debug,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count,
    )

    ui = TerminalPresenter(console=console, dev_mode=config.preferences.diagnostics_enabled)
    client = BackendClient(config.backend.base_url, timeout=config.backend.timeout)
    session = DashboardSession(ui, client, config)
    logger.info(f"Starting dashboard against {client.base_url}")

    if not await client.health():
        ui.print_system(f"[yellow]Backend at {client.base_url} is not answering; discovery will report an error.[/]")

    shell = CommandShell(session, ui, config_path)
    try:
        await session.start()
        await shell.run()
    finally:
        session.close()
    return 0

def parse_args():
    parser = argparse.ArgumentParser(description="PeerDash P2P transfer dashboard")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-c", "--config", type=str, default=DEFAULT_CONFIG_PATH, help="Path to configuration file (default: config.toml)")
    return parser.parse_args()

def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass

if __name__ == "__main__":
    run()
