"""
Config utilities for the thermal print service.

Responsibilities:
- Resolve config/media paths with environment and XDG support
- Provide JSON load/save helpers for the printer configuration file
- Expose a PrinterConfigStore that maps printer ids to their settings
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "charPerLine": 48,
    "width": 80,
    "printableWidth": 72,
    "characterSet": "PC852_LATIN2",
    "timeout": 5000,
    "margins": {"top": 0, "bottom": 0, "left": 0, "right": 0},
    "spacing": {"lineHeight": 1, "paragraphSpacing": 1},
}

DEFAULT_PRINTER: Dict[str, Any] = {
    "id": "default-printer",
    "name": "Default Printer 80mm",
    "type": "epson",
    "connectionType": "network",
    "address": "192.168.1.100",
    "charPerLine": 48,
    "width": 80,
    "printableWidth": 72,
    "characterSet": "PC852_LATIN2",
    "timeout": 5000,
}


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/thermalprinter/printer-config.json
    2) ~/.config/thermalprinter/printer-config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "thermalprinter" / "printer-config.json")
    return str(Path.home() / ".config" / "thermalprinter" / "printer-config.json")


def default_media_path() -> str:
    """
    Resolve the default media path using:
    1) $XDG_DATA_HOME/thermalprinter/media
    2) ~/.local/share/thermalprinter/media
    """
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return str(Path(xdg) / "thermalprinter" / "media")
    return str(Path.home() / ".local" / "share" / "thermalprinter" / "media")


def get_config_path() -> str:
    """
    Return the config path honoring THERMALPRINTER_CONFIG_PATH override.
    """
    return os.environ.get("THERMALPRINTER_CONFIG_PATH", default_config_path())


def get_media_path() -> str:
    """
    Return the media path honoring THERMALPRINTER_MEDIA_PATH override.
    """
    return os.environ.get("THERMALPRINTER_MEDIA_PATH", default_media_path())


def env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except Exception:
        return default


def env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except Exception:
        return default


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def load_config(path: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: Dict[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


def default_config() -> Dict[str, Any]:
    return {"printers": [dict(DEFAULT_PRINTER)], "defaultSettings": copy.deepcopy(DEFAULT_SETTINGS)}


class PrinterConfigStore:
    """
    Printer configuration lookups backed by the JSON config file.

    The file is read once and cached. A missing file is replaced by the
    default single-printer configuration, which is written back to disk.
    Passing ``data`` skips the file entirely (used by tests and overrides).
    """

    def __init__(self, path: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.path = path or get_config_path()
        self._data: Optional[Dict[str, Any]] = copy.deepcopy(data) if data is not None else None
        self._lock = threading.RLock()

    def load(self) -> Dict[str, Any]:
        with self._lock:
            if self._data is not None:
                return self._data
            try:
                data = load_config(self.path)
            except (OSError, json.JSONDecodeError) as e:
                logger.error("Failed to load printer config from %s: %s", self.path, e)
                raise RuntimeError("Failed to load printer configuration") from e
            if data is None:
                logger.warning("Config file %s not found; writing default configuration", self.path)
                data = default_config()
                try:
                    save_config(data, self.path)
                except OSError as e:
                    logger.warning("Could not persist default config: %s", e)
            self._data = data
            logger.info("Printer configuration loaded (%d printers)", len(data.get("printers") or []))
            return self._data

    def save(self, data: Dict[str, Any]) -> None:
        with self._lock:
            save_config(data, self.path)
            self._data = copy.deepcopy(data)
            logger.info("Printer configuration saved")

    def reload(self) -> Dict[str, Any]:
        with self._lock:
            self._data = None
            return self.load()

    def get_all_printers(self) -> List[Dict[str, Any]]:
        return list(self.load().get("printers") or [])

    def get_printer_config(self, printer_id: str) -> Optional[Dict[str, Any]]:
        for printer in self.get_all_printers():
            if printer.get("id") == printer_id:
                return printer
        return None

    def get_default_settings(self) -> Dict[str, Any]:
        return self.load().get("defaultSettings") or copy.deepcopy(DEFAULT_SETTINGS)

    def get_printer_name(self, printer_id: str, default: str = "Unknown") -> str:
        cfg = self.get_printer_config(printer_id)
        return str(cfg.get("name") or default) if cfg else default


__all__ = [
    "DEFAULT_PRINTER",
    "DEFAULT_SETTINGS",
    "PrinterConfigStore",
    "default_config",
    "default_config_path",
    "default_media_path",
    "env_bool",
    "env_float",
    "env_int",
    "get_config_path",
    "get_media_path",
    "load_config",
    "save_config",
]
