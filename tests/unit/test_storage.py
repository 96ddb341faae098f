import json
import logging
import time

import pytest

from buscador.core.storage import (
    BACKUP_KEY,
    HISTORY_KEY,
    USER_KEY,
    FileBackend,
    MemoryBackend,
    StorageSystem,
)


@pytest.fixture
def storage():
    return StorageSystem(MemoryBackend(), auto_backup=True)


def test_user_progress_round_trip_and_backup(storage):
    assert storage.get_current_user() is None
    assert storage.save_user_progress({"loaded_files": [{"name": "a.txt", "content": "x", "size": 1}]})

    user = storage.get_current_user()
    assert user["version"] == "1.0"
    assert user["loaded_files"][0]["name"] == "a.txt"
    assert "last_updated" in user

    backup = json.loads(storage.backend.get_item(BACKUP_KEY))
    assert backup["data"]["loaded_files"][0]["name"] == "a.txt"
    assert backup["timestamp"]


def test_restore_backup_recovers_previous_data(storage):
    storage.save_user_progress({"loaded_files": [{"name": "keep.txt", "content": "k", "size": 1}]})
    storage.auto_backup = False
    storage.save_user_progress({"loaded_files": []})
    assert storage.get_current_user()["loaded_files"] == []

    assert storage.restore_backup() is True
    assert storage.get_current_user()["loaded_files"][0]["name"] == "keep.txt"


def test_restore_backup_without_backup(storage):
    assert storage.restore_backup() is False


def test_migrate_user_data_adds_version():
    migrated = StorageSystem.migrate_user_data({"name": "x"})
    assert migrated["version"] == "1.0"
    assert migrated["loaded_files"] == []
    assert StorageSystem.validate_user_data(migrated)
    assert not StorageSystem.validate_user_data({"version": "1.0"})
    assert not StorageSystem.validate_user_data(None)


def test_corrupt_user_data_is_reported_not_raised(storage, caplog):
    storage.backend.set_item(USER_KEY, "{broken")
    caplog.set_level(logging.ERROR)
    assert storage.get_current_user() is None
    assert "Error loading user data" in caplog.text


def test_settings_round_trip(storage):
    assert storage.get_settings() is None
    assert storage.save_settings({"context_lines": 3})
    settings = storage.get_settings()
    assert settings["context_lines"] == 3
    assert "last_modified" in settings


def test_history_round_trip_and_clear(storage):
    assert storage.get_search_history() == []
    assert storage.save_search_history([{"query": "a"}, {"query": "b"}])
    assert [h["query"] for h in storage.get_search_history()] == ["a", "b"]
    assert storage.clear_search_history()
    assert storage.get_search_history() == []


def test_history_not_a_list_is_ignored(storage):
    storage.backend.set_item(HISTORY_KEY, json.dumps({"query": "x"}))
    assert storage.get_search_history() == []


def test_export_and_import(storage):
    assert storage.export_user_data() is None

    storage.save_user_progress({"loaded_files": []})
    storage.save_settings({"case_sensitive": True})
    storage.save_search_history([{"query": "needle"}])
    exported = storage.export_user_data()
    payload = json.loads(exported)
    assert payload["export_version"] == "1.0"
    assert payload["history"] == [{"query": "needle"}]

    other = StorageSystem(MemoryBackend(), auto_backup=False)
    assert other.import_user_data(exported) is True
    assert other.get_settings()["case_sensitive"] is True
    assert other.get_search_history() == [{"query": "needle"}]
    assert other.get_current_user()["loaded_files"] == []


def test_import_rejects_invalid_json(storage, caplog):
    caplog.set_level(logging.ERROR)
    assert storage.import_user_data("not json") is False
    assert storage.import_user_data("[1, 2]") is False


def test_clear_all_data(storage):
    storage.save_user_progress({"loaded_files": []})
    storage.save_settings({"a": 1})
    storage.save_search_history([{"query": "q"}])
    assert storage.clear_all_data()
    assert storage.backend.keys() == []


def test_clear_files(storage):
    storage.save_user_progress({"loaded_files": [{"name": "a.txt", "content": "x", "size": 1}]})
    assert storage.clear_files()
    assert storage.get_current_user()["loaded_files"] == []


def test_storage_info(storage):
    info = storage.get_storage_info()
    assert info["total_size"] == 0
    assert info["last_backup"] is None

    storage.save_user_progress({"loaded_files": []})
    info = storage.get_storage_info()
    assert info["user_data"] > 0
    assert info["backup_data"] > 0
    assert info["total_size"] == sum(info[k] for k in ("user_data", "backup_data", "settings_data", "history_data"))
    assert info["last_backup"] is not None


def test_stored_file_helpers(storage):
    storage.save_user_progress({"loaded_files": [
        {"name": "a.txt", "content": "abc", "size": 3},
        {"name": "b.txt", "content": "hello", "size": 5},
    ]})
    assert storage.get_total_files_size() == 8
    assert storage.get_file_by_name("b.txt")["content"] == "hello"
    assert storage.get_file_by_name("missing.txt") is None

    assert storage.update_file_content("a.txt", "abcdef") is True
    assert storage.get_file_by_name("a.txt")["size"] == 6
    assert storage.update_file_content("missing.txt", "x") is False


def test_is_storage_available(storage):
    assert storage.is_storage_available() is True
    assert "__buscador_probe__" not in storage.backend.keys()


def test_file_backend_persists_across_instances(tmp_path):
    directory = tmp_path / "store"
    first = StorageSystem(FileBackend(str(directory)), auto_backup=False)
    first.save_settings({"max_results": 7})

    second = StorageSystem(FileBackend(str(directory)), auto_backup=False)
    assert second.get_settings()["max_results"] == 7
    assert sorted(p.name for p in directory.iterdir()) == ["buscador_settings.json"]


def test_file_backend_remove_missing_key(tmp_path):
    backend = FileBackend(str(tmp_path / "store"))
    backend.remove_item("nope")
    assert backend.keys() == []
    assert backend.get_item("nope") is None


def test_auto_backup_thread_runs_and_stops():
    storage = StorageSystem(MemoryBackend(), auto_backup=True, backup_interval=0.01)
    storage.auto_backup = False
    storage.save_user_progress({"loaded_files": []})
    storage.auto_backup = True
    assert storage.backend.get_item(BACKUP_KEY) is None

    assert storage.start_auto_backup() is True
    assert storage.start_auto_backup() is False
    try:
        for _ in range(200):
            if storage.backend.get_item(BACKUP_KEY):
                break
            time.sleep(0.01)
    finally:
        storage.stop()
    assert storage.backend.get_item(BACKUP_KEY) is not None


def test_auto_backup_disabled_does_not_start():
    storage = StorageSystem(MemoryBackend(), auto_backup=False)
    assert storage.start_auto_backup() is False
