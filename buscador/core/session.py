import logging
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from buscador.core.config import Config
from buscador.core.events import FILE_REMOVED, FILES_LOADED, HISTORY_CLEARED, SEARCH_COMPLETED, EventBus
from buscador.core.file_manager import FileManager
from buscador.core.models import MatchRecord, SearchOptions, SearchStats, TextSource
from buscador.core.search_engine import SearchEngine, split_terms
from buscador.core.storage import FileBackend, StorageSystem

logger = logging.getLogger(__name__)

SETTING_KEYS = ("case_sensitive", "context_lines", "max_results")


def _coerce_setting(key: str, value: Any) -> Any:
    if key == "case_sensitive":
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(value, (bool, int)):
            return bool(value)
        raise ValueError(key)
    if value is None or isinstance(value, bool):
        raise ValueError(key)
    return max(0, int(value))


@dataclass
class SearchOutcome:
    query: str
    options: SearchOptions
    results: List[MatchRecord] = field(default_factory=list)
    stats: SearchStats = field(default_factory=SearchStats)
    elapsed_ms: int = 0
    advanced: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "advanced": self.advanced,
            "options": self.options.to_dict(),
            "stats": self.stats.to_dict(),
            "elapsed_ms": self.elapsed_ms,
            "results": [r.to_dict() for r in self.results],
        }


class SearchSession:
    """
    Owns the loaded files for one user session and wires the engine,
    storage and event channel together. The engine stays stateless.
    """

    def __init__(
        self,
        config: Config,
        storage: Optional[StorageSystem] = None,
        events: Optional[EventBus] = None,
        engine: Optional[SearchEngine] = None,
        file_manager: Optional[FileManager] = None,
    ):
        self.config = config
        self.storage = storage or StorageSystem(
            FileBackend(config.storage_dir),
            auto_backup=config.auto_backup,
            backup_interval=config.backup_interval,
        )
        self.events = events or EventBus()
        self.engine = engine or SearchEngine()
        self.files = file_manager or FileManager(config.text_extensions)
        self.lock = threading.Lock()

    # --- files ---

    def load_files(self, paths: Iterable[str]) -> List[TextSource]:
        loaded = self.files.load_files(paths)
        logger.info("Loaded %d file(s)", len(loaded))
        self.events.emit(FILES_LOADED, loaded)
        return loaded

    def add_text(self, name: str, content: str) -> TextSource:
        source = self.files.add_source(TextSource.from_content(name, content))
        self.events.emit(FILES_LOADED, [source])
        return source

    def remove_file(self, name: str) -> bool:
        removed = self.files.remove_file(name)
        if removed:
            self.events.emit(FILE_REMOVED, {"file_name": name})
        return removed

    def clear_files(self) -> None:
        self.files.clear_files()
        self.storage.clear_files()

    # --- settings ---

    def default_options(self) -> SearchOptions:
        opts = SearchOptions(
            case_sensitive=self.config.case_sensitive,
            context_lines=self.config.context_lines,
            max_results=self.config.max_results,
        )
        saved = self.storage.get_settings() or {}
        changes: Dict[str, Any] = {}
        for key in SETTING_KEYS:
            if key not in saved:
                continue
            try:
                changes[key] = _coerce_setting(key, saved[key])
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid stored setting %s=%r", key, saved[key])
        return replace(opts, **changes) if changes else opts

    def update_settings(self, **changes: Any) -> SearchOptions:
        unknown = set(changes) - set(SETTING_KEYS)
        if unknown:
            raise ValueError(f"unknown setting(s): {', '.join(sorted(unknown))}")
        opts = replace(self.default_options(), **changes)
        self.storage.save_settings(opts.to_dict())
        return opts

    # --- search ---

    def search(self, query: str, advanced: Optional[bool] = None, **overrides: Any) -> SearchOutcome:
        opts = self.default_options()
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            opts = replace(opts, **overrides)
        if advanced is None:
            advanced = len(split_terms(query)) > 1

        start = time.time()
        sources = self.files.get_loaded_files()
        if advanced:
            results = self.engine.advanced_search(sources, query, opts)
        else:
            results = self.engine.search(sources, query, opts)
        stats = self.engine.get_search_stats(results, query)
        elapsed_ms = int((time.time() - start) * 1000)

        outcome = SearchOutcome(query=query, options=opts, results=results, stats=stats,
                                elapsed_ms=elapsed_ms, advanced=advanced)
        if query and query.strip():
            self._record_history(outcome)
        logger.info("search query='%s' results=%d latency=%dms advanced=%s",
                    query, stats.total_results, elapsed_ms, advanced)
        self.events.emit(SEARCH_COMPLETED, outcome)
        return outcome

    # --- history ---

    def _record_history(self, outcome: SearchOutcome) -> None:
        limit = self.config.history_limit
        if limit <= 0:
            return
        entry = {
            "query": outcome.query,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "results": outcome.stats.total_results,
            "advanced": outcome.advanced,
            "options": outcome.options.to_dict(),
        }
        history = [h for h in self.storage.get_search_history() if h.get("query") != outcome.query]
        history.insert(0, entry)
        self.storage.save_search_history(history[:limit])

    def history(self) -> List[Dict[str, Any]]:
        return self.storage.get_search_history()

    def clear_history(self) -> bool:
        cleared = self.storage.clear_search_history()
        if cleared:
            self.events.emit(HISTORY_CLEARED, None)
        return cleared

    # --- progress ---

    def save_progress(self) -> bool:
        user = self.storage.get_current_user() or {}
        user["loaded_files"] = [s.to_dict(include_content=True) for s in self.files.get_loaded_files()]
        return self.storage.save_user_progress(user)

    def restore_progress(self) -> List[TextSource]:
        user = self.storage.get_current_user()
        if not user:
            return []
        self.files.clear_files()
        for entry in user.get("loaded_files") or []:
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed stored file entry: %r", entry)
                continue
            name = entry.get("name")
            content = entry.get("content")
            if not name or not isinstance(content, str):
                logger.warning("Skipping stored file without name or content: %r", name)
                continue
            size = entry.get("size")
            if not isinstance(size, int) or isinstance(size, bool):
                size = None
            self.files.add_source(TextSource.from_content(name, content, size=size))
        loaded = self.files.get_loaded_files()
        self.events.emit(FILES_LOADED, loaded)
        return loaded

    def close(self) -> None:
        self.storage.stop()
