from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from typesetgo.core.settings import Settings

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".typesetgo"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"


@dataclass(frozen=True)
class AppConfig:
    api_url: Optional[str] = None
    user_id: Optional[str] = None
    data_dir: Optional[Path] = None
    results_path: Path = CONFIG_DIR / "results.json"
    progress_interval_ms: int = 2000
    progress_char_threshold: int = 50
    request_timeout: float = 5.0
    lookahead_words: int = 50
    tick_ms: int = 100
    settings: Settings = field(default_factory=Settings)

    @property
    def online(self) -> bool:
        return bool(self.api_url)


_INT_FIELDS = {"progress_interval_ms", "progress_char_threshold", "lookahead_words", "tick_ms"}
_PATH_FIELDS = {"data_dir", "results_path"}


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Read ``config.yaml`` (if present) and apply ``TYPESETGO_*`` environment overrides.

    Raises ValueError for a config file that is not a mapping or names unknown keys.
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    raw: dict[str, Any] = {}
    if config_path.exists():
        loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"{config_path.name}: expected a mapping")
        raw = dict(loaded or {})
        logger.info("Loaded config from %s", config_path)

    known = {f.name for f in fields(AppConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"{config_path.name}: unknown keys {sorted(unknown)}")

    values: dict[str, Any] = {}
    for key, value in raw.items():
        if key == "settings":
            if not isinstance(value, dict):
                raise ValueError(f"{config_path.name}: 'settings' must be a mapping")
            values[key] = Settings().merged(value)
        elif key in _INT_FIELDS:
            values[key] = int(value)
        elif key == "request_timeout":
            values[key] = float(value)
        elif key in _PATH_FIELDS:
            values[key] = Path(value).expanduser() if value else None
        else:
            values[key] = str(value) if value is not None else None

    if env.get("TYPESETGO_API_URL"):
        values["api_url"] = env["TYPESETGO_API_URL"]
    if env.get("TYPESETGO_USER_ID"):
        values["user_id"] = env["TYPESETGO_USER_ID"]
    if env.get("TYPESETGO_DATA_DIR"):
        values["data_dir"] = Path(env["TYPESETGO_DATA_DIR"]).expanduser()

    if values.get("results_path") is None:
        values.pop("results_path", None)
    return AppConfig(**values)
