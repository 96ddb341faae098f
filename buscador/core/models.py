from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple


def format_file_size(size: int) -> str:
    """Human readable size: Bytes, KB, MB, GB."""
    if not size or size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[idx]}"


@dataclass(frozen=True)
class TextSource:
    """In-memory file loaded for searching."""
    name: str
    content: str
    lines: Tuple[str, ...] = ()
    size: int = 0

    @classmethod
    def from_content(cls, name: str, content: str, size: Optional[int] = None) -> "TextSource":
        # Lines are split on "\n" only; "\r" stays part of the line.
        if size is None:
            size = len(content.encode("utf-8"))
        return cls(name=name, content=content, lines=tuple(content.split("\n")), size=size)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def formatted_size(self) -> str:
        return format_file_size(self.size)

    def to_dict(self, include_content: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "size": self.size,
            "formatted_size": self.formatted_size,
            "line_count": self.line_count,
        }
        if include_content:
            data["content"] = self.content
        return data


@dataclass
class SearchOptions:
    """Search configuration options."""
    case_sensitive: bool = False
    context_lines: int = 2
    max_results: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ContextLine:
    line_number: int
    content: str
    is_match: bool = False


@dataclass
class MatchRecord:
    """One matching line with its surrounding context."""
    file: str
    line_number: int
    matches_count: int
    original_line: str
    context: List[ContextLine] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, int]:
        return (self.file, self.line_number)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SearchStats:
    total_results: int = 0
    total_matches: int = 0
    files_with_matches: int = 0
    search_term: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
