#!/usr/bin/env python3
"""
Line search over loaded text sources.

Queries are literal: special characters are escaped before compiling.
Every call is computed fresh from its arguments, nothing is cached.
"""
import re
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from buscador.core.models import ContextLine, MatchRecord, SearchOptions, SearchStats, TextSource

ENGINE_HARD_CAP = 1000
HIGHLIGHT_OPEN = '<span class="highlight">'
HIGHLIGHT_CLOSE = "</span>"


def compile_pattern(query: str, case_sensitive: bool = False) -> re.Pattern:
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(re.escape(query), flags)


def split_terms(query: str) -> List[str]:
    return [t for t in (query or "").split() if t]


class SearchEngine:
    def __init__(self, max_results: int = ENGINE_HARD_CAP):
        # The hard cap can be lowered per engine, never raised.
        self.max_results = max(0, min(int(max_results), ENGINE_HARD_CAP))

    def search(self, sources: Sequence[TextSource], query: str, options: Optional[SearchOptions] = None) -> List[MatchRecord]:
        opts = options or SearchOptions()
        if not sources or not query or not query.strip():
            return []

        pattern = compile_pattern(query, opts.case_sensitive)
        context_lines = max(0, int(opts.context_lines))

        results: List[MatchRecord] = []
        for source in sources:
            results.extend(self._search_in_source(source, pattern, context_lines))

        # Stable: equal line numbers keep source order.
        results.sort(key=lambda r: r.line_number)

        limit = max(0, min(int(opts.max_results), self.max_results))
        return results[:limit]

    def _search_in_source(self, source: TextSource, pattern: re.Pattern, context_lines: int) -> List[MatchRecord]:
        lines = source.lines or ()
        hits: List[MatchRecord] = []
        for idx, line in enumerate(lines):
            count = len(pattern.findall(line))
            if not count:
                continue
            hits.append(MatchRecord(
                file=source.name,
                line_number=idx + 1,
                matches_count=count,
                original_line=line,
                context=self._get_context(lines, idx, context_lines),
            ))
        return hits

    @staticmethod
    def _get_context(lines: Sequence[str], current: int, context_lines: int) -> List[ContextLine]:
        start = max(0, current - context_lines)
        end = min(len(lines) - 1, current + context_lines)
        return [
            ContextLine(line_number=i + 1, content=lines[i], is_match=(i == current))
            for i in range(start, end + 1)
        ]

    def advanced_search(self, sources: Sequence[TextSource], query: str, options: Optional[SearchOptions] = None) -> List[MatchRecord]:
        """Implicit AND: a line survives only if every term matches it."""
        terms = split_terms(query)
        if not terms:
            return []

        results = self.search(sources, terms[0], options)
        for term in terms[1:]:
            if not results:
                break
            keys: Set[Tuple[str, int]] = {r.key for r in self.search(sources, term, options)}
            results = [r for r in results if r.key in keys]
        return results

    def highlight_matches(self, text: str, query: str, case_sensitive: bool = False) -> str:
        """Wrap occurrences in highlight markup. Does not escape `text`."""
        if not query:
            return text
        pattern = compile_pattern(query, case_sensitive)
        return pattern.sub(lambda m: f"{HIGHLIGHT_OPEN}{m.group(0)}{HIGHLIGHT_CLOSE}", text)

    @staticmethod
    def get_search_stats(results: Iterable[MatchRecord], search_term: Optional[str] = None) -> SearchStats:
        records = list(results)
        return SearchStats(
            total_results=len(records),
            total_matches=sum(r.matches_count for r in records),
            files_with_matches=len({r.file for r in records}),
            search_term=search_term,
        )
