"""Settings file access.

The settings file holds panel/zone definitions and advanced settings. It is
read with PyYAML, which also reads JSON files unchanged. Discovered panels
that are not in the file yet are appended, after a timestamped backup of
the previous contents has been written.
"""

import json
import logging
import re
import time
from pathlib import Path
from typing import Any

import yaml

from .exceptions import KonnectedConfigError
from .models import PlatformConfig

_LOGGER = logging.getLogger(__name__)

PLATFORM_KEY = "konnected"
BACKUP_DIR = Path("backups") / "config-backups"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9\s/'\":\-#.]")


def sanitize_panel_name(name: str) -> str:
    """Strip characters that are not allowed in a panel name."""
    return _UNSAFE_NAME_CHARS.sub("", name)


class ConfigStore:
    """Read and update the settings file."""

    def __init__(self, path: Path | str):
        """Initialize store.

        Args:
            path: Settings file (YAML or JSON)
        """
        self.path = Path(path)

    def read_raw(self) -> dict[str, Any]:
        """Read the whole settings document.

        Raises:
            KonnectedConfigError: If the file is missing or cannot be parsed
        """
        try:
            with open(self.path) as f:
                raw = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise KonnectedConfigError(f"Config file not found: {self.path}") from e
        except (OSError, yaml.YAMLError) as e:
            raise KonnectedConfigError(f"Error parsing config {self.path}: {e}") from e

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise KonnectedConfigError(f"Config {self.path} must be a mapping")
        return raw

    @staticmethod
    def _platform_block(document: dict[str, Any]) -> dict[str, Any]:
        """Find the block holding our settings.

        Accepts either a bare block or a ``platforms`` list wrapping it.
        """
        platforms = document.get("platforms")
        if isinstance(platforms, list):
            for block in platforms:
                if isinstance(block, dict) and block.get("platform") == PLATFORM_KEY:
                    return block
            block = {"platform": PLATFORM_KEY}
            platforms.append(block)
            return block
        return document

    def load(self) -> PlatformConfig:
        """Load settings.

        Raises:
            KonnectedConfigError: If the file is missing or malformed
        """
        block = self._platform_block(self.read_raw())
        try:
            return PlatformConfig.from_dict(block)
        except (TypeError, ValueError, AttributeError) as e:
            raise KonnectedConfigError(f"Invalid config {self.path}: {e}") from e

    def add_panel(self, panel_uuid: str, name: str, host: str, port: int) -> bool:
        """Append a discovered panel if it is not in the file yet.

        Returns:
            True if the file was changed
        """
        document = self.read_raw() if self.path.exists() else {}
        block = self._platform_block(document)

        panels = block.get("panels")
        if not isinstance(panels, list):
            panels = block["panels"] = []
        if any(isinstance(p, dict) and p.get("uuid") == panel_uuid for p in panels):
            return False

        if self.path.exists():
            self._write_backup()
        panels.append(
            {
                "name": sanitize_panel_name(name),
                "uuid": panel_uuid,
                "ipAddress": host,
                "port": port,
            }
        )
        self._write(self.path, document)
        _LOGGER.info(f"Added panel {panel_uuid} ({host}:{port}) to {self.path}")
        return True

    def _write_backup(self) -> Path:
        backup_dir = self.path.parent / BACKUP_DIR
        if not backup_dir.is_dir():
            backup_dir = self.path.parent
        backup = backup_dir / f"{self.path.name}.{int(time.time() * 1000)}"
        backup.write_bytes(self.path.read_bytes())
        _LOGGER.debug(f"Config backup written to {backup}")
        return backup

    def _write(self, path: Path, document: dict[str, Any]) -> None:
        with open(path, "w") as f:
            if path.suffix.lower() == ".json":
                json.dump(document, f, indent=4)
            else:
                yaml.safe_dump(document, f, sort_keys=False)
