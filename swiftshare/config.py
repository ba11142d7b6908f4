"""
Persisted user preferences, stored as JSON in ``~/.swiftshare/config.json``.

Unknown keys are ignored and invalid values fall back to their defaults,
so a hand-edited file never stops the tool from starting.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .language import LANGUAGES
from .transfer import CONNECT_TIMEOUT
from .utils import ensure_download_dir

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".swiftshare"
CONFIG_FILE = CONFIG_DIR / "config.json"


def _absolute(path_text: str) -> Path:
    path = Path(path_text).expanduser()
    return path if path.is_absolute() else Path.home() / path


def _positive_number(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def _non_blank(value: object) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass
class AppConfig:
    language: str = "en"
    device_name: Optional[str] = None
    download_dir: Optional[str] = None
    connect_timeout: float = CONNECT_TIMEOUT
    accept_timeout: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        language = data.get("language")
        download_dir = _non_blank(data.get("download_dir"))
        return cls(
            language=language if language in LANGUAGES else "en",
            device_name=_non_blank(data.get("device_name")),
            download_dir=str(_absolute(download_dir)) if download_dir else None,
            connect_timeout=_positive_number(data.get("connect_timeout")) or CONNECT_TIMEOUT,
            accept_timeout=_positive_number(data.get("accept_timeout")),
        )


def load_config() -> AppConfig:
    try:
        raw = CONFIG_FILE.read_text(encoding="utf-8")
    except FileNotFoundError:
        return AppConfig()
    except OSError as exc:
        logger.warning("cannot read %s: %s", CONFIG_FILE, exc)
        return AppConfig()
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("ignoring malformed config file %s", CONFIG_FILE)
        return AppConfig()
    if not isinstance(data, dict):
        return AppConfig()
    return AppConfig.from_dict(data)


def save_config(config: AppConfig) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    text = json.dumps(asdict(config), ensure_ascii=False, indent=2)
    CONFIG_FILE.write_text(text + "\n", encoding="utf-8")


def resolve_download_dir(config: AppConfig) -> Path:
    """Directory incoming files are written to, created on demand."""

    if not config.download_dir:
        return ensure_download_dir()
    target = _absolute(config.download_dir)
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("download directory %s is unusable (%s); using the default", target, exc)
        config.download_dir = None
        return ensure_download_dir()
    return target
