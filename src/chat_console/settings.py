"""Load and persist console settings as a small JSON document."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = Path(os.environ.get("CHAT_CONSOLE_SETTINGS", Path.home() / ".chat_console.json"))
DEFAULT_LOG_FILE = Path.home() / ".chat_console.log"


def _atomic_write(path: Path | str, content: str) -> None:
    """Write content atomically to ``path`` using fsync + rename."""

    path = Path(path).expanduser()
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.parent.mkdir(parents=True, exist_ok=True)
    with open(tmp_path, "w", encoding="utf-8") as handle:
        handle.write(content)
        handle.flush()
        os.fsync(handle.fileno())
    tmp_path.replace(path)


def load_settings(path: Path | str = DEFAULT_SETTINGS_FILE) -> Dict[str, Any]:
    """Load persisted settings from disk if present."""

    try:
        data = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            return {}
        return data
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable settings file %s", path)
        return {}


def persist_settings(settings: Dict[str, Any], path: Path | str = DEFAULT_SETTINGS_FILE) -> None:
    payload = json.dumps(settings, indent=2, sort_keys=True)
    _atomic_write(Path(path).expanduser(), payload)


def _positive_number(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return float(value)


@dataclass(frozen=True)
class ConsoleSettings:
    gateway_base_url: str = "http://localhost:8787"
    auth_token: str = ""
    page_size: int = 50
    connect_timeout_s: float = 10.0
    fetch_timeout_s: float = 10.0
    use_mock: bool = False

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ConsoleSettings":
        defaults = cls()
        page_size = data.get("page_size", defaults.page_size)
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
            page_size = defaults.page_size
        return cls(
            gateway_base_url=str(data.get("gateway_base_url") or defaults.gateway_base_url),
            auth_token=str(data.get("auth_token") or ""),
            page_size=page_size,
            connect_timeout_s=_positive_number(data.get("connect_timeout_s"), defaults.connect_timeout_s),
            fetch_timeout_s=_positive_number(data.get("fetch_timeout_s"), defaults.fetch_timeout_s),
            use_mock=bool(data.get("use_mock", defaults.use_mock)),
        )

    def to_mapping(self) -> Dict[str, Any]:
        return asdict(self)


def load_console_settings(path: Path | str = DEFAULT_SETTINGS_FILE) -> ConsoleSettings:
    return ConsoleSettings.from_mapping(load_settings(path))
