from __future__ import annotations

import asyncio
import time

import pytest

from app.core.config import get_settings
from app.core.errors import StorageUnavailable
from app.core.storage import LocalStorage, StorageError, SupabaseStorage, call_storage, get_storage


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def local_storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "bucket", bucket="media", public_base_url="https://cdn.test/")


def test_default_backend_is_local(monkeypatch):
    monkeypatch.delenv("OCTOPUS_STORAGE_BACKEND", raising=False)
    settings = get_settings()
    storage = get_storage(settings)
    assert isinstance(storage, LocalStorage)
    assert storage.bucket == "media"


def test_selecting_supabase_returns_supabase_storage(monkeypatch):
    monkeypatch.setenv("OCTOPUS_STORAGE_BACKEND", "supabase")
    monkeypatch.setenv("OCTOPUS_SUPABASE_URL", "https://project.supabase.co/")
    monkeypatch.setenv("OCTOPUS_SUPABASE_SERVICE_ROLE_KEY", "service-role")
    settings = get_settings()
    storage = get_storage(settings)
    assert isinstance(storage, SupabaseStorage)
    assert storage.public_url("blog/a.jpg") == (
        "https://project.supabase.co/storage/v1/object/public/media/blog/a.jpg"
    )


def test_supabase_backend_requires_url(monkeypatch):
    monkeypatch.setenv("OCTOPUS_STORAGE_BACKEND", "supabase")
    monkeypatch.delenv("OCTOPUS_SUPABASE_URL", raising=False)
    with pytest.raises(ValueError):
        get_settings()


def test_supabase_without_key_fails_as_storage_error():
    storage = SupabaseStorage("https://project.supabase.co", None, bucket="media")
    with pytest.raises(StorageError):
        storage.list("blog", 1000)


def test_scan_folders_parse_from_comma_list(monkeypatch):
    monkeypatch.setenv("OCTOPUS_SCAN_FOLDERS", "blog, services/ ,misc/posters")
    settings = get_settings()
    assert settings.scan_folders == ("blog", "services", "misc/posters")


def test_local_list_reports_direct_children(local_storage):
    local_storage.upload("misc/a.jpg", b"a", "image/jpeg")
    local_storage.upload("misc/posters/1.jpg", b"p", "image/jpeg")

    entries = {entry.name: entry for entry in local_storage.list("misc", 1000)}

    assert set(entries) == {"a.jpg", "posters"}
    assert entries["posters"].is_folder
    assert entries["a.jpg"].size_bytes == 1
    assert local_storage.list("empty", 1000) == []


def test_local_list_honours_limit(local_storage):
    for index in range(5):
        local_storage.upload(f"blog/{index}.jpg", b"x", "image/jpeg")
    assert [entry.name for entry in local_storage.list("blog", 2)] == ["0.jpg", "1.jpg"]


def test_local_upload_rejects_existing_object(local_storage):
    local_storage.upload("blog/a.jpg", b"first", "image/jpeg")
    with pytest.raises(StorageError):
        local_storage.upload("blog/a.jpg", b"second", "image/jpeg")
    assert (local_storage.base_path / "blog" / "a.jpg").read_bytes() == b"first"


def test_local_remove_ignores_absent_objects(local_storage):
    local_storage.upload("blog/a.jpg", b"a", "image/jpeg")
    local_storage.remove(["blog/a.jpg", "blog/posters/a.jpg"])
    assert not (local_storage.base_path / "blog" / "a.jpg").exists()


def test_local_public_url_uses_object_marker(local_storage):
    assert local_storage.public_url("blog/a.jpg") == "https://cdn.test/storage/v1/object/public/media/blog/a.jpg"


def test_local_rejects_keys_outside_root(local_storage):
    with pytest.raises(StorageError):
        local_storage.upload("../escape.jpg", b"x", "image/jpeg")


def test_call_storage_wraps_backend_errors():
    def failing() -> None:
        raise StorageError("bucket offline")

    with pytest.raises(StorageUnavailable) as excinfo:
        asyncio.run(call_storage("list", "blog", failing, timeout=1.0))
    assert excinfo.value.operation == "list"
    assert excinfo.value.target == "blog"
    assert excinfo.value.retryable
    assert excinfo.value.status_code == 503


def test_call_storage_times_out():
    with pytest.raises(StorageUnavailable):
        asyncio.run(call_storage("remove", "blog", time.sleep, 0.3, timeout=0.05))


def test_call_storage_returns_result():
    assert asyncio.run(call_storage("list", "blog", sum, [1, 2, 3], timeout=1.0)) == 6
