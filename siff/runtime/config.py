"""Persistent JSON config helpers.

Stores packaging preferences: compress, remove-comments, file-tree inclusion,
output format and the default backend. All access is defensive: malformed or
missing config falls back to defaults.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from platformdirs import user_config_dir

from ..backends.types import Backend, OutputFormat, PackOptions

APP_NAME = "siff"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME


def load_config(path: Path | None = None) -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    config_path = path if path is not None else CONFIG_PATH
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except Exception as exc:
        logger.debug(f"Ignoring unreadable config {config_path}: {exc}")
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object], path: Path | None = None) -> bool:
    """Persist config data as pretty-printed JSON and report success.

    Filesystem/serialization errors are logged and otherwise ignored so a
    read-only config directory never breaks the UI.
    """
    config_path = path if path is not None else CONFIG_PATH
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except Exception as exc:
        logger.warning(f"Could not save config to {config_path}: {exc}")
        return False
    return True


def _load_bool(data: dict[str, object], key: str, default: bool = False) -> bool:
    value = data.get(key)
    return value if isinstance(value, bool) else default


def load_pack_options(path: Path | None = None) -> PackOptions:
    """Build ``PackOptions`` from persisted preferences."""
    data = load_config(path)
    defaults = PackOptions()
    return PackOptions(
        backend=Backend.parse(data.get("default_backend"), defaults.backend),
        compress=_load_bool(data, "compress"),
        remove_comments=_load_bool(data, "remove_comments"),
        include_file_tree=_load_bool(data, "include_file_tree"),
        output_format=OutputFormat.parse(data.get("output_format"), defaults.output_format),
    )


def save_pack_options(options: PackOptions, path: Path | None = None) -> bool:
    """Persist the packaging preferences from ``options``, keeping unknown keys."""
    config = load_config(path)
    config["compress"] = bool(options.compress)
    config["remove_comments"] = bool(options.remove_comments)
    config["include_file_tree"] = bool(options.include_file_tree)
    config["output_format"] = options.output_format.value
    config["default_backend"] = options.backend.value
    return save_config(config, path)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "load_config",
    "load_pack_options",
    "save_config",
    "save_pack_options",
]
