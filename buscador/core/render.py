"""
Presentation of search results.

HtmlRenderer produces markup fragments, format_text_results produces
grep-style plain text. Neither touches the search computation.
"""
import html
from typing import List, Optional, Sequence

from buscador.core.models import ContextLine, MatchRecord, SearchOptions, TextSource
from buscador.core.search_engine import HIGHLIGHT_CLOSE, HIGHLIGHT_OPEN, SearchEngine, compile_pattern


def escape_html(text: str) -> str:
    return html.escape(text or "", quote=True)


def highlight_text(text: str, query: str, case_sensitive: bool = False) -> str:
    """Escape `text` and wrap query occurrences.

    Matches are found on the raw text and each segment is escaped on its own,
    so markup never lands inside an entity such as ``&amp;``.
    """
    if not query:
        return escape_html(text)
    pattern = compile_pattern(query, case_sensitive)
    parts: List[str] = []
    pos = 0
    for m in pattern.finditer(text):
        parts.append(escape_html(text[pos:m.start()]))
        parts.append(f"{HIGHLIGHT_OPEN}{escape_html(m.group(0))}{HIGHLIGHT_CLOSE}")
        pos = m.end()
    parts.append(escape_html(text[pos:]))
    return "".join(parts)


class HtmlRenderer:
    EMPTY_STATES = {
        "files": ("📁", "No files loaded", "Select files to get started"),
        "results": ("🔍", "Enter a search term", "Results will appear here"),
    }

    def render_file_list(self, sources: Sequence[TextSource]) -> str:
        if not sources:
            return self.render_empty_state("files")
        return "".join(self.render_file_item(s) for s in sources)

    def render_file_item(self, source: TextSource) -> str:
        name = escape_html(source.name)
        return (
            f'<div class="file-item" data-filename="{name}">'
            f'<div class="file-info"><div class="file-name">{name}</div>'
            f'<div class="file-meta"><span class="file-size">{source.formatted_size}</span>'
            f'<span class="file-lines">{source.line_count} lines</span></div></div>'
            f'<div class="file-actions"><button class="btn-small remove-file" title="Remove file">🗑️</button></div>'
            "</div>"
        )

    def render_results(self, results: Sequence[MatchRecord], query: str, options: Optional[SearchOptions] = None) -> str:
        if not results:
            return self.render_empty_state("results", query)
        opts = options or SearchOptions()
        stats = SearchEngine.get_search_stats(results, query)
        header = (
            '<div class="results-header">'
            f'<span class="results-stats">{stats.total_results} results in '
            f"{stats.files_with_matches} files - {stats.total_matches} matches</span>"
            "</div>"
        )
        items = "".join(self.render_result_item(r, query, opts.case_sensitive) for r in results)
        return header + f'<div class="search-results">{items}</div>'

    def render_result_item(self, record: MatchRecord, query: str, case_sensitive: bool = False) -> str:
        name = escape_html(record.file)
        context = "".join(self.render_context_line(c, query, case_sensitive) for c in record.context)
        return (
            f'<div class="result-item" data-filename="{name}" data-line="{record.line_number}">'
            f'<div class="result-header"><div class="result-file">{name}</div>'
            f'<div class="result-meta"><span class="result-line">Line {record.line_number}</span>'
            f'<span class="result-matches">{record.matches_count} match(es)</span></div></div>'
            f'<div class="result-context">{context}</div>'
            "</div>"
        )

    def render_context_line(self, line: ContextLine, query: str, case_sensitive: bool = False) -> str:
        css = "context-line match-line" if line.is_match else "context-line"
        body = highlight_text(line.content, query, case_sensitive)
        return f'<div class="{css}"><span class="line-number">{line.line_number}</span>{body}</div>'

    def render_empty_state(self, section: str, query: str = "") -> str:
        icon, title, hint = self.EMPTY_STATES.get(section, self.EMPTY_STATES["results"])
        if section == "results" and query:
            title = f'No results found for "{escape_html(query)}"'
            hint = "Try other terms or adjust the search options"
        return (
            '<div class="empty-state">'
            f'<div class="empty-icon">{icon}</div>'
            f'<p class="empty-text">{title}</p>'
            f'<p class="empty-hint">{hint}</p>'
            "</div>"
        )


def format_text_results(results: Sequence[MatchRecord]) -> str:
    """grep -C style: `file:N:` on matches, `file-N-` on context, `--` between records."""
    blocks: List[str] = []
    for record in results:
        lines = []
        for c in record.context:
            sep = ":" if c.is_match else "-"
            lines.append(f"{record.file}{sep}{c.line_number}{sep}{c.content}")
        blocks.append("\n".join(lines))
    return "\n--\n".join(blocks)
