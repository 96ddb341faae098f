import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from buscador.core.workspace import WorkspaceManager

logger = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 47800


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid %s=%r", name, os.environ.get(name))
        return default


_NUMERIC_KEYS = {
    "context_lines": int,
    "max_results": int,
    "history_limit": int,
    "http_port": int,
    "backup_interval": float,
}


def _coerce_file_value(key: str, value: Any) -> Any:
    """Coerce one config file value to its field type; raises ValueError when it cannot."""
    if key in _NUMERIC_KEYS:
        if isinstance(value, bool):
            raise ValueError(key)
        return _NUMERIC_KEYS[key](value)
    if key in ("case_sensitive", "auto_backup"):
        return _env_flag(value) if isinstance(value, str) else bool(value)
    if key == "text_extensions":
        if isinstance(value, str):
            return [value]
        if not isinstance(value, list):
            raise ValueError(key)
        return value
    if not isinstance(value, str):
        raise ValueError(key)
    return value


def resolve_config_path() -> str:
    return WorkspaceManager.resolve_config_path()


@dataclass
class Config:
    data_dir: str
    log_dir: str
    case_sensitive: bool = False
    context_lines: int = 2
    max_results: int = 100
    history_limit: int = 50
    auto_backup: bool = True
    backup_interval: float = 30.0
    text_extensions: List[str] = field(default_factory=lambda: [".txt"])
    http_host: str = "127.0.0.1"
    http_port: int = DEFAULT_HTTP_PORT

    @property
    def storage_dir(self) -> str:
        return str(Path(self.data_dir) / "storage")

    @property
    def log_file(self) -> str:
        return str(Path(self.log_dir) / "buscador.log")

    @staticmethod
    def get_defaults() -> Dict[str, Any]:
        return {
            "data_dir": str(WorkspaceManager.get_global_data_dir()),
            "log_dir": str(WorkspaceManager.get_global_log_dir()),
            "case_sensitive": False,
            "context_lines": 2,
            "max_results": 100,
            "history_limit": 50,
            "auto_backup": True,
            "backup_interval": 30.0,
            "text_extensions": [".txt"],
            "http_host": "127.0.0.1",
            "http_port": DEFAULT_HTTP_PORT,
        }

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Defaults, then the JSON config file, then BUSCADOR_* env overrides."""
        merged = cls.get_defaults()
        cfg_path = path or resolve_config_path()
        raw: Dict[str, Any] = {}
        if cfg_path and os.path.exists(cfg_path):
            try:
                with open(cfg_path, "r", encoding="utf-8") as f:
                    raw = json.load(f) or {}
                if not isinstance(raw, dict):
                    logger.warning("Config %s is not a JSON object, using defaults", cfg_path)
                    raw = {}
            except (OSError, ValueError) as e:
                logger.warning("Failed to read config %s: %s", cfg_path, e)
                raw = {}

        known = {f.name for f in fields(cls)}
        for key, value in raw.items():
            if key not in known or value is None:
                logger.debug("Unknown config key ignored: %s", key)
                continue
            try:
                merged[key] = _coerce_file_value(key, value)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid config value %s=%r", key, value)
        merged["text_extensions"] = [
            (e if e.startswith(".") else f".{e}").lower()
            for e in merged.get("text_extensions") or []
            if isinstance(e, str) and e.strip()
        ]

        if os.environ.get("BUSCADOR_DATA_DIR"):
            merged["data_dir"] = str(WorkspaceManager.get_global_data_dir())
        if os.environ.get("BUSCADOR_LOG_DIR"):
            merged["log_dir"] = str(WorkspaceManager.get_global_log_dir())
        if os.environ.get("BUSCADOR_CASE_SENSITIVE"):
            merged["case_sensitive"] = _env_flag(os.environ["BUSCADOR_CASE_SENSITIVE"])
        if os.environ.get("BUSCADOR_AUTO_BACKUP"):
            merged["auto_backup"] = _env_flag(os.environ["BUSCADOR_AUTO_BACKUP"])
        if os.environ.get("BUSCADOR_HTTP_HOST"):
            merged["http_host"] = os.environ["BUSCADOR_HTTP_HOST"].strip()
        merged["context_lines"] = _env_int("BUSCADOR_CONTEXT_LINES", int(merged["context_lines"]))
        merged["max_results"] = _env_int("BUSCADOR_MAX_RESULTS", int(merged["max_results"]))
        merged["http_port"] = _env_int("BUSCADOR_HTTP_PORT", int(merged["http_port"]))

        merged["context_lines"] = max(0, int(merged["context_lines"]))
        merged["history_limit"] = max(0, int(merged["history_limit"]))
        merged["backup_interval"] = max(1.0, float(merged["backup_interval"]))
        return cls(**merged)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
