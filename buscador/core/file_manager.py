import logging
import mimetypes
import os
from pathlib import Path
from typing import Iterable, List, Optional

from buscador.core.models import TextSource

logger = logging.getLogger(__name__)


class FileLoadError(RuntimeError):
    def __init__(self, code: str, path: str, message: str):
        super().__init__(message)
        self.code = code
        self.path = path
        self.message = message


class FileManager:
    """Holds the TextSources loaded for the current session, unique by name."""

    def __init__(self, text_extensions: Optional[Iterable[str]] = None):
        exts = text_extensions if text_extensions is not None else [".txt"]
        self.text_extensions = {e.lower() for e in exts}
        self._loaded: List[TextSource] = []

    def is_text_file(self, path: str) -> bool:
        p = Path(path)
        if p.suffix.lower() in self.text_extensions:
            return True
        mime, _ = mimetypes.guess_type(p.name)
        return mime == "text/plain"

    def read_file(self, path: str) -> TextSource:
        p = Path(path)
        if not self.is_text_file(str(p)):
            raise FileLoadError("ERR_NOT_TEXT", str(p), f"{p.name} is not a valid text file.")
        try:
            raw = p.read_bytes()
        except OSError as e:
            raise FileLoadError("ERR_READ", str(p), f"Error reading file {p.name}: {e}") from e
        content = raw.decode("utf-8", errors="replace")
        return TextSource.from_content(p.name, content, size=len(raw))

    def load_files(self, paths: Iterable[str]) -> List[TextSource]:
        """Replace the loaded set. Files that fail to load are skipped."""
        self._loaded = []
        for path in paths:
            try:
                self.add_source(self.read_file(path))
            except FileLoadError as e:
                logger.warning("Failed to load %s: %s", e.path, e.message)
        return self.get_loaded_files()

    def add_source(self, source: TextSource) -> TextSource:
        for idx, existing in enumerate(self._loaded):
            if existing.name == source.name:
                self._loaded[idx] = source
                return source
        self._loaded.append(source)
        return source

    def remove_file(self, name: str) -> bool:
        before = len(self._loaded)
        self._loaded = [s for s in self._loaded if s.name != name]
        return len(self._loaded) != before

    def clear_files(self) -> None:
        self._loaded = []

    def get_loaded_files(self) -> List[TextSource]:
        return list(self._loaded)

    def get_file_count(self) -> int:
        return len(self._loaded)

    def get_file_by_name(self, name: str) -> Optional[TextSource]:
        for source in self._loaded:
            if source.name == name:
                return source
        return None

    def get_total_size(self) -> int:
        return sum(s.size for s in self._loaded)


def expand_paths(paths: Iterable[str]) -> List[str]:
    """Expand directories one level deep into their files, keeping order."""
    out: List[str] = []
    for path in paths:
        if os.path.isdir(path):
            out.extend(str(p) for p in sorted(Path(path).iterdir()) if p.is_file())
        else:
            out.append(path)
    return out
