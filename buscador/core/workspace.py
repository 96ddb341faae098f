#!/usr/bin/env python3
"""
Global path resolution for buscador.
Handles config, data and log directory lookup.
"""
import os
from pathlib import Path
from typing import Optional


class WorkspaceManager:
    """Resolves the directories buscador reads from and writes to."""

    @staticmethod
    def _env_path(*keys: str) -> Optional[Path]:
        for key in keys:
            val = (os.environ.get(key) or "").strip()
            if val:
                return Path(os.path.expanduser(val)).resolve()
        return None

    @staticmethod
    def resolve_config_path() -> str:
        """
        Resolve config path.

        Priority:
        1. BUSCADOR_CONFIG environment variable
        2. ~/.config/buscador/config.json (or %APPDATA%/buscador/config.json)
        """
        env = WorkspaceManager._env_path("BUSCADOR_CONFIG")
        if env:
            return str(env)
        if os.name == "nt":
            base = Path(os.environ.get("APPDATA", os.path.expanduser("~\\AppData\\Roaming")))
        else:
            base = Path.home() / ".config"
        return str((base / "buscador" / "config.json").resolve())

    @staticmethod
    def get_global_data_dir() -> Path:
        """Data directory: ~/.local/share/buscador/ (or AppData/Local on Win)"""
        env = WorkspaceManager._env_path("BUSCADOR_DATA_DIR")
        if env:
            return env
        if os.name == "nt":
            return Path(os.environ.get("LOCALAPPDATA", os.path.expanduser("~\\AppData\\Local"))) / "buscador"
        return Path.home() / ".local" / "share" / "buscador"

    @staticmethod
    def get_global_log_dir() -> Path:
        """Get global log directory, with env override."""
        env = WorkspaceManager._env_path("BUSCADOR_LOG_DIR")
        if env:
            return env
        return WorkspaceManager.get_global_data_dir() / "logs"
