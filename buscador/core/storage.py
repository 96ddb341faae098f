#!/usr/bin/env python3
"""
Best-effort local persistence for buscador.

StorageSystem keeps user progress, a backup copy of it, settings and search
history as JSON documents in a key-value backend. Failures are logged and
reported through return values; nothing here raises to the caller.
"""
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DATA_VERSION = "1.0"
USER_KEY = "buscador_user_v1"
BACKUP_KEY = "buscador_backup"
SETTINGS_KEY = "buscador_settings"
HISTORY_KEY = "buscador_history"
ALL_KEYS = (USER_KEY, BACKUP_KEY, SETTINGS_KEY, HISTORY_KEY)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MemoryBackend:
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class FileBackend:
    """One JSON file per key under `directory`, replaced atomically on write."""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=str(self.directory))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp, self._path(key))
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise

    def remove_item(self, key: str) -> None:
        with self._lock:
            try:
                self._path(key).unlink()
            except FileNotFoundError:
                pass

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))


class StorageSystem:
    def __init__(self, backend=None, auto_backup: bool = True, backup_interval: float = 30.0):
        self.backend = backend if backend is not None else MemoryBackend()
        self.auto_backup = auto_backup
        self.backup_interval = backup_interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --- periodic backup ---

    def start_auto_backup(self) -> bool:
        if not self.auto_backup or (self._thread and self._thread.is_alive()):
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._backup_loop, name="buscador-backup", daemon=True)
        self._thread.start()
        return True

    def _backup_loop(self) -> None:
        while not self._stop.wait(self.backup_interval):
            self.create_backup()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

    # --- helpers ---

    def _read_json(self, key: str) -> Any:
        raw = self.backend.get_item(key)
        if raw is None:
            return None
        return json.loads(raw)

    def _write_json(self, key: str, value: Any) -> None:
        self.backend.set_item(key, json.dumps(value, ensure_ascii=False))

    # --- user progress ---

    def save_user_progress(self, user_data: Dict[str, Any]) -> bool:
        try:
            data = dict(user_data)
            data["last_updated"] = _now_iso()
            data["version"] = DATA_VERSION
            self._write_json(USER_KEY, data)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error saving progress: %s", e)
            return False
        if self.auto_backup:
            self.create_backup()
        return True

    def get_current_user(self) -> Optional[Dict[str, Any]]:
        try:
            data = self._read_json(USER_KEY)
        except (OSError, ValueError) as e:
            logger.error("Error loading user data: %s", e)
            return None
        if not isinstance(data, dict):
            return None
        return self.migrate_user_data(data)

    @staticmethod
    def migrate_user_data(user_data: Dict[str, Any]) -> Dict[str, Any]:
        if not user_data.get("version"):
            migrated = dict(user_data)
            migrated["version"] = DATA_VERSION
            migrated["loaded_files"] = user_data.get("loaded_files") or []
            return migrated
        return user_data

    @staticmethod
    def validate_user_data(user_data: Any) -> bool:
        if not isinstance(user_data, dict):
            return False
        return all(k in user_data for k in ("loaded_files", "version"))

    # --- backup ---

    def create_backup(self) -> bool:
        user_data = self.get_current_user()
        if not user_data:
            return False
        try:
            self._write_json(BACKUP_KEY, {"data": user_data, "timestamp": _now_iso(), "version": DATA_VERSION})
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error creating backup: %s", e)
            return False

    def restore_backup(self) -> bool:
        try:
            backup = self._read_json(BACKUP_KEY)
            if not isinstance(backup, dict):
                return False
            if self.validate_user_data(backup.get("data")):
                self._write_json(USER_KEY, backup["data"])
                return True
            return False
        except (OSError, ValueError) as e:
            logger.error("Error restoring backup: %s", e)
            return False

    # --- settings ---

    def save_settings(self, settings: Dict[str, Any]) -> bool:
        try:
            data = dict(settings)
            data["last_modified"] = _now_iso()
            self._write_json(SETTINGS_KEY, data)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error saving settings: %s", e)
            return False

    def get_settings(self) -> Optional[Dict[str, Any]]:
        try:
            data = self._read_json(SETTINGS_KEY)
        except (OSError, ValueError) as e:
            logger.error("Error loading settings: %s", e)
            return None
        return data if isinstance(data, dict) else None

    # --- search history ---

    def save_search_history(self, history: List[Dict[str, Any]]) -> bool:
        try:
            self._write_json(HISTORY_KEY, list(history))
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error saving history: %s", e)
            return False

    def get_search_history(self) -> List[Dict[str, Any]]:
        try:
            data = self._read_json(HISTORY_KEY)
        except (OSError, ValueError) as e:
            logger.error("Error loading history: %s", e)
            return []
        return data if isinstance(data, list) else []

    def clear_search_history(self) -> bool:
        try:
            self.backend.remove_item(HISTORY_KEY)
            return True
        except OSError as e:
            logger.error("Error clearing history: %s", e)
            return False

    # --- export / import ---

    def export_user_data(self) -> Optional[str]:
        user_data = self.get_current_user()
        settings = self.get_settings()
        history = self.get_search_history()
        if not user_data and not settings and not history:
            return None
        payload = {
            "user_data": user_data,
            "settings": settings,
            "history": history,
            "export_date": _now_iso(),
            "export_version": DATA_VERSION,
        }
        return json.dumps(payload, ensure_ascii=False, indent=2)

    def import_user_data(self, json_data: str) -> bool:
        try:
            imported = json.loads(json_data)
            if not isinstance(imported, dict):
                logger.error("Error importing data: top-level value is not an object")
                return False
            user_data = imported.get("user_data")
            if user_data and self.validate_user_data(user_data):
                self._write_json(USER_KEY, user_data)
            if imported.get("settings"):
                self._write_json(SETTINGS_KEY, imported["settings"])
            if imported.get("history"):
                self._write_json(HISTORY_KEY, imported["history"])
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error importing data: %s", e)
            return False

    # --- cleanup ---

    def clear_all_data(self) -> bool:
        try:
            for key in ALL_KEYS:
                self.backend.remove_item(key)
            return True
        except OSError as e:
            logger.error("Error clearing data: %s", e)
            return False

    def clear_files(self) -> bool:
        user_data = self.get_current_user()
        if user_data:
            user_data["loaded_files"] = []
            return self.save_user_progress(user_data)
        return True

    # --- info ---

    def get_storage_info(self) -> Dict[str, Any]:
        sizes: Dict[str, int] = {}
        raw_backup = None
        for label, key in (("user_data", USER_KEY), ("backup_data", BACKUP_KEY),
                           ("settings_data", SETTINGS_KEY), ("history_data", HISTORY_KEY)):
            try:
                raw = self.backend.get_item(key)
            except OSError as e:
                logger.error("Error reading %s: %s", key, e)
                raw = None
            sizes[label] = len(raw) if raw else 0
            if key == BACKUP_KEY:
                raw_backup = raw
        last_backup = None
        if raw_backup:
            try:
                last_backup = json.loads(raw_backup).get("timestamp")
            except (ValueError, AttributeError):
                last_backup = None
        info: Dict[str, Any] = dict(sizes)
        info["total_size"] = sum(sizes.values())
        info["last_backup"] = last_backup
        return info

    def is_storage_available(self) -> bool:
        probe = "__buscador_probe__"
        try:
            self.backend.set_item(probe, probe)
            self.backend.remove_item(probe)
            return True
        except OSError as e:
            logger.error("Storage not available: %s", e)
            return False

    # --- stored files ---

    def update_file_content(self, name: str, new_content: str) -> bool:
        user_data = self.get_current_user()
        if not user_data or not user_data.get("loaded_files"):
            return False
        for entry in user_data["loaded_files"]:
            if entry.get("name") == name:
                entry["content"] = new_content
                entry["size"] = len(new_content.encode("utf-8"))
                entry["last_modified"] = _now_iso()
                return self.save_user_progress(user_data)
        return False

    def get_file_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        user_data = self.get_current_user()
        if not user_data:
            return None
        for entry in user_data.get("loaded_files") or []:
            if entry.get("name") == name:
                return entry
        return None

    def get_total_files_size(self) -> int:
        user_data = self.get_current_user()
        if not user_data:
            return 0
        return sum(int(f.get("size") or 0) for f in user_data.get("loaded_files") or [])
