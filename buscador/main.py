import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from buscador import __version__
from buscador.core.config import Config, resolve_config_path
from buscador.core.file_manager import expand_paths
from buscador.core.render import HtmlRenderer, format_text_results
from buscador.core.session import SETTING_KEYS, SearchSession
from buscador.core.utils.logging import get_logger, setup_global_logging

USAGE = (
    "buscador search QUERY FILE... [--case-sensitive] [--context N] [--max N] [--advanced|--literal] [--format text|json|html]\n"
    "buscador serve FILE... [--host HOST] [--port PORT]\n"
    "buscador history [list|clear]\n"
    "buscador settings [show|set KEY=VALUE ...]\n"
    "buscador config show\n"
    "buscador export [--output PATH]\n"
    "buscador import PATH\n"
    "buscador storage [info|clear|restore]\n"
    "buscador doctor\n"
    "buscador --version"
)


def _make_session(verbose: bool = False) -> SearchSession:
    cfg = Config.load()
    get_logger("buscador", log_file=cfg.log_file, level=logging.INFO if verbose else logging.WARNING)
    return SearchSession(cfg)


def _parse_setting(key: str, raw: str) -> Any:
    if key == "case_sensitive":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return int(raw)


def _cmd_search(argv: List[str]) -> int:
    parser = argparse.ArgumentParser(prog="buscador search")
    parser.add_argument("query")
    parser.add_argument("files", nargs="+")
    parser.add_argument("--case-sensitive", action="store_true", default=None)
    parser.add_argument("--context", type=int, default=None)
    parser.add_argument("--max", type=int, default=None, dest="max_results")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--advanced", action="store_true", default=None)
    mode.add_argument("--literal", action="store_false", dest="advanced")
    parser.add_argument("--format", default="text", choices=["text", "json", "html"])
    parser.add_argument("--verbose", action="store_true")
    ns = parser.parse_args(argv)

    session = _make_session(ns.verbose)
    loaded = session.load_files(expand_paths(ns.files))
    if not loaded:
        print("[buscador] No readable text files.", file=sys.stderr)
        return 1

    outcome = session.search(
        ns.query,
        advanced=ns.advanced,
        case_sensitive=ns.case_sensitive,
        context_lines=ns.context,
        max_results=ns.max_results,
    )

    if ns.format == "json":
        print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
    elif ns.format == "html":
        print(HtmlRenderer().render_results(outcome.results, ns.query, outcome.options))
    else:
        if outcome.results:
            print(format_text_results(outcome.results))
        s = outcome.stats
        print(f"[buscador] {s.total_results} results in {s.files_with_matches} files - {s.total_matches} matches",
              file=sys.stderr)
    return 0


def _cmd_serve(argv: List[str]) -> int:
    from buscador.core.http_server import serve_forever

    parser = argparse.ArgumentParser(prog="buscador serve")
    parser.add_argument("files", nargs="*")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    ns = parser.parse_args(argv)

    cfg = Config.load()
    setup_global_logging(logging.INFO, cfg.log_file)
    session = SearchSession(cfg)
    if ns.files:
        session.load_files(expand_paths(ns.files))
    else:
        session.restore_progress()
    session.storage.start_auto_backup()

    host = ns.host or session.config.http_host
    port = ns.port if ns.port is not None else session.config.http_port
    try:
        httpd, actual_port = serve_forever(host, port, session)
    except RuntimeError as e:
        print(f"[buscador] {e}", file=sys.stderr)
        session.close()
        return 1
    print(f"[buscador] Serving {session.files.get_file_count()} file(s) on http://{host}:{actual_port}", file=sys.stderr)
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        httpd.shutdown()
        session.save_progress()
        session.close()
    return 0


def _cmd_history(argv: List[str]) -> int:
    session = _make_session()
    action = argv[0] if argv else "list"
    if action == "list":
        print(json.dumps(session.history(), ensure_ascii=False, indent=2))
        return 0
    if action == "clear":
        return 0 if session.clear_history() else 1
    print("history list|clear", file=sys.stderr)
    return 2


def _cmd_settings(argv: List[str]) -> int:
    session = _make_session()
    action = argv[0] if argv else "show"
    if action == "show":
        print(json.dumps(session.default_options().to_dict(), ensure_ascii=False, indent=2))
        return 0
    if action == "set" and len(argv) > 1:
        changes: Dict[str, Any] = {}
        for pair in argv[1:]:
            key, sep, raw = pair.partition("=")
            if not sep or key not in SETTING_KEYS:
                print(f"[buscador] Invalid setting: {pair} (keys: {', '.join(SETTING_KEYS)})", file=sys.stderr)
                return 2
            try:
                changes[key] = _parse_setting(key, raw)
            except ValueError:
                print(f"[buscador] Invalid value for {key}: {raw}", file=sys.stderr)
                return 2
        opts = session.update_settings(**changes)
        print(json.dumps(opts.to_dict(), ensure_ascii=False, indent=2))
        return 0
    print("settings show|set KEY=VALUE ...", file=sys.stderr)
    return 2


def _cmd_config_show() -> int:
    cfg = Config.load()
    payload = cfg.to_dict()
    payload["config_path"] = resolve_config_path()
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_export(argv: List[str]) -> int:
    parser = argparse.ArgumentParser(prog="buscador export")
    parser.add_argument("--output")
    ns = parser.parse_args(argv)
    data = _make_session().storage.export_user_data()
    if data is None:
        print("[buscador] Nothing to export.", file=sys.stderr)
        return 1
    if ns.output:
        Path(ns.output).write_text(data + "\n", encoding="utf-8")
        print(f"[buscador] Exported to {ns.output}", file=sys.stderr)
    else:
        print(data)
    return 0


def _cmd_import(argv: List[str]) -> int:
    if not argv:
        print("import PATH", file=sys.stderr)
        return 2
    try:
        text = Path(argv[0]).read_text(encoding="utf-8")
    except OSError as e:
        print(f"[buscador] Cannot read {argv[0]}: {e}", file=sys.stderr)
        return 1
    return 0 if _make_session().storage.import_user_data(text) else 1


def _cmd_storage(argv: List[str]) -> int:
    storage = _make_session().storage
    action = argv[0] if argv else "info"
    if action == "info":
        print(json.dumps(storage.get_storage_info(), ensure_ascii=False, indent=2))
        return 0
    if action == "clear":
        return 0 if storage.clear_all_data() else 1
    if action == "restore":
        return 0 if storage.restore_backup() else 1
    print("storage info|clear|restore", file=sys.stderr)
    return 2


def _cmd_doctor() -> int:
    from buscador.doctor import run_doctor
    return 0 if run_doctor() else 1


def run_cmd(argv: List[str]) -> int:
    if not argv:
        print(USAGE, file=sys.stderr)
        return 2
    cmd, rest = argv[0], argv[1:]
    if cmd == "search":
        return _cmd_search(rest)
    if cmd == "serve":
        return _cmd_serve(rest)
    if cmd == "history":
        return _cmd_history(rest)
    if cmd == "settings":
        return _cmd_settings(rest)
    if cmd == "config" and rest and rest[0] == "show":
        return _cmd_config_show()
    if cmd == "export":
        return _cmd_export(rest)
    if cmd == "import":
        return _cmd_import(rest)
    if cmd == "storage":
        return _cmd_storage(rest)
    if cmd == "doctor":
        return _cmd_doctor()
    print(f"Unknown subcommand: {cmd}", file=sys.stderr)
    return 2


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] in {"--help", "-h"}:
        print(USAGE)
        return 0
    if argv and argv[0] == "--version":
        print(__version__)
        return 0
    try:
        return run_cmd(argv)
    except SystemExit as e:
        # argparse exits on usage errors
        return int(e.code) if isinstance(e.code, int) else 2


if __name__ == "__main__":
    sys.exit(main())
