# config_manager.py
import os
import tomllib
import re
import logging
from dataclasses import dataclass

from constants import (
    BACKEND_ENV_VAR, DEFAULT_BACKEND_BASE, DEFAULT_FINGERPRINT, DEFAULT_LOG_PATH,
    PROGRESS_STEP, TICK_INTERVAL,
)
from state_manager import UpdateChannel

logger = logging.getLogger("ConfigManager")

@dataclass
class BackendConfig:
    base_url: str = DEFAULT_BACKEND_BASE
    timeout: float = 5.0

@dataclass
class TransferConfig:
    tick_interval: float = TICK_INTERVAL
    progress_step: int = PROGRESS_STEP

@dataclass
class IncomingConfig:
    auto_decline_seconds: float = 0

@dataclass
class PreferencesConfig:
    lan_only: bool = True
    relay_enabled: bool = False
    diagnostics_enabled: bool = False
    update_channel: str = "stable"

@dataclass
class AccessibilityConfig:
    reduced_motion: bool = False
    high_contrast: bool = False
    large_text: bool = False

@dataclass
class SecurityConfig:
    local_fingerprint: str = DEFAULT_FINGERPRINT

@dataclass
class LoggingConfig:
    debug: bool = False
    file_path: str = DEFAULT_LOG_PATH
    max_size_mb: int = 10
    backup_count: int = 5

class DashboardConfig:
    def __init__(self, config_path="config.toml"):
        self.path = config_path
        self.load()

    def load(self):
        if not os.path.exists(self.path):
            raise FileNotFoundError(f"Configuration file not found: {self.path}")

        try:
            with open(self.path, "rb") as f:
                data = tomllib.load(f)

            self.backend = BackendConfig(**data.get('backend', {}))
            self.transfer = TransferConfig(**data.get('transfer', {}))
            self.incoming = IncomingConfig(**data.get('incoming', {}))
            self.preferences = PreferencesConfig(**data.get('preferences', {}))
            self.accessibility = AccessibilityConfig(**data.get('accessibility', {}))
            self.security = SecurityConfig(**data.get('security', {}))
            self.logging = LoggingConfig(**data.get('logging', {}))
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Invalid TOML format in {self.path}: {e}")
            raise ValueError(f"Config syntax error: {e}")
        except TypeError as e:
            # Unknown key inside a section
            logger.error(f"Unexpected key in {self.path}: {e}")
            raise ValueError(f"Config key error: {e}")

        if self.transfer.tick_interval < 0 or self.transfer.progress_step <= 0:
            raise ValueError("transfer.tick_interval must be >= 0 and progress_step > 0")
        try:
            UpdateChannel(self.preferences.update_channel)
        except ValueError:
            raise ValueError(f"Unknown update channel: {self.preferences.update_channel}")

        override = os.environ.get(BACKEND_ENV_VAR)
        if override:
            logger.info(f"Backend URL overridden by {BACKEND_ENV_VAR}: {override}")
            self.backend.base_url = override

class ConfigEditor:
    """Helper class to safely update TOML files while preserving comments."""
    def __init__(self, path):
        self.path = path

    def update_key(self, section: str, key: str, value) -> tuple[bool, str]:
        if not os.path.exists(self.path):
            return False, "Configuration file not found"

        # Format value for TOML
        if isinstance(value, str):
            val_str = f'"{value}"'
        elif isinstance(value, bool):
            val_str = "true" if value else "false"
        else:
            val_str = str(value)

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                lines = f.readlines()
        except UnicodeDecodeError:
            return False, "Encoding error: File is not UTF-8 compatible"
        except PermissionError:
            return False, "Permission denied: Cannot read configuration file"

        new_lines = []
        in_section = False
        updated = False
        key_pattern = re.compile(rf'^\s*{re.escape(key)}\s*=\s*(.*)')

        for line in lines:
            stripped = line.strip()

            if stripped.startswith('[') and stripped.endswith(']'):
                in_section = (stripped[1:-1] == section)

            if in_section and key_pattern.match(stripped):
                comment = ""
                if "#" in line:
                    comment = " #" + line.split("#", 1)[1].rstrip()
                indent = line[:line.find(key)]
                new_lines.append(f"{indent}{key} = {val_str}{comment}\n")
                updated = True
            else:
                new_lines.append(line)

        if updated:
            try:
                with open(self.path, 'w', encoding='utf-8') as f:
                    f.writelines(new_lines)
                return True, f"Updated [{section}] {key} = {val_str}"
            except PermissionError:
                return False, "Permission denied: Cannot write to configuration file"
            except OSError as e:
                logger.error(f"Failed to write config: {e}")
                return False, f"Write error: {e}"

        return False, f"Key '{key}' not found in section [{section}]"
