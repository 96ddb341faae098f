import socket

import pytest

from buscador import doctor
from buscador.core.config import Config


def test_check_config_missing_and_valid(tmp_path):
    assert doctor.check_config(str(tmp_path / "absent.json")) is True
    good = tmp_path / "good.json"
    good.write_text('{"context_lines": 3}', encoding="utf-8")
    assert doctor.check_config(str(good)) is True


def test_check_config_rejects_bad_json(tmp_path, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert doctor.check_config(str(bad)) is False
    listed = tmp_path / "list.json"
    listed.write_text("[1, 2]", encoding="utf-8")
    assert doctor.check_config(str(listed)) is False
    assert "FAIL" in capsys.readouterr().out


def test_storage_and_log_dir_checks():
    cfg = Config.load()
    assert doctor.check_storage(cfg) is True
    assert doctor.check_log_dir(cfg) is True


@pytest.mark.allow_socket
def test_check_port_busy():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    try:
        assert doctor.check_port("127.0.0.1", blocker.getsockname()[1]) is False
    finally:
        blocker.close()


def test_disk_space_threshold():
    cfg = Config.load()
    assert doctor.check_disk_space(cfg, min_mb=0) is True
    assert doctor.check_disk_space(cfg, min_mb=float("inf")) is False


def test_run_doctor_reports(capsys):
    cfg = Config.load()
    cfg.http_port = 0
    assert doctor.run_doctor(cfg) is True
    out = capsys.readouterr().out
    assert "Buscador Doctor" in out
    assert "Storage" in out
