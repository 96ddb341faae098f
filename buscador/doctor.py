#!/usr/bin/env python3
"""
Buscador Doctor - environment health check.
Checks:
1. Config file parses
2. Storage directory writable
3. Log directory writable
4. HTTP port availability
5. Disk space
"""
import json
import os
import shutil
import socket
from pathlib import Path
from typing import Optional

from buscador import __version__
from buscador.core.config import Config, resolve_config_path
from buscador.core.storage import FileBackend, StorageSystem

RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RESET = "\033[0m"


def print_status(name: str, passed: bool, error: str = ""):
    status = f"{GREEN}PASS{RESET}" if passed else f"{RED}FAIL{RESET}"
    if error:
        print(f"[{status}] {name}: {error}")
    else:
        print(f"[{status}] {name}")


def check_config(path: Optional[str] = None) -> bool:
    cfg_path = path or resolve_config_path()
    if not os.path.exists(cfg_path):
        print_status("Config", True, f"not found at {cfg_path}, using defaults")
        return True
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        print_status("Config", False, f"{cfg_path}: {e}")
        return False
    if not isinstance(data, dict):
        print_status("Config", False, f"{cfg_path}: top-level value must be an object")
        return False
    print_status("Config", True)
    return True


def check_storage(cfg: Config) -> bool:
    storage = StorageSystem(FileBackend(cfg.storage_dir), auto_backup=False)
    ok = storage.is_storage_available()
    print_status("Storage", ok, "" if ok else f"cannot write to {cfg.storage_dir}")
    return ok


def check_log_dir(cfg: Config) -> bool:
    log_dir = Path(cfg.log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        probe = log_dir / ".probe"
        probe.write_text("ok", encoding="utf-8")
        probe.unlink()
    except OSError as e:
        print_status("Log Directory", False, f"{log_dir}: {e}")
        return False
    print_status("Log Directory", True)
    return True


def check_port(host: str, port: int) -> bool:
    """Check if port is available."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        s.bind((host, port))
        print_status(f"Port {port} Availability", True)
        return True
    except OSError as e:
        print_status(f"Port {port} Availability", False, f"Address in use or missing permission: {e}")
        return False
    finally:
        s.close()


def check_disk_space(cfg: Config, min_mb: float = 50.0) -> bool:
    target = Path(cfg.data_dir)
    while not target.exists() and target != target.parent:
        target = target.parent
    try:
        free_mb = shutil.disk_usage(str(target)).free / (1024 ** 2)
    except OSError as e:
        print_status("Disk Space", False, str(e))
        return False
    if free_mb < min_mb:
        print_status("Disk Space", False, f"Low space: {free_mb:.0f} MB (Min: {min_mb:.0f} MB)")
        return False
    print_status("Disk Space", True)
    return True


def run_doctor(cfg: Optional[Config] = None) -> bool:
    cfg = cfg or Config.load()
    print(f"\n{YELLOW}Buscador Doctor (v{__version__}){RESET}")
    print("==================================================")
    print(f"Data Dir: {cfg.data_dir}\n")

    results = [
        check_config(),
        check_storage(cfg),
        check_log_dir(cfg),
        check_port(cfg.http_host, cfg.http_port),
        check_disk_space(cfg),
    ]
    print("\n==================================================")
    return all(results)


if __name__ == "__main__":
    raise SystemExit(0 if run_doctor() else 1)
