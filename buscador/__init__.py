"""
buscador - local text file search.

Modules:
    core.search_engine - line search with context windows
    core.file_manager  - text file loading
    core.storage       - best-effort local persistence
    core.session       - session controller wiring the pieces together
"""

__version__ = "1.0.0"
