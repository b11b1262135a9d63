import asyncio
import posixpath
import shutil
import subprocess
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Iterable

import jwt
import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.core.db import create_engine, create_schema, create_session_factory
from app.core.storage import Storage, StorageError, StorageObject
from app.main import create_app
from app.services.content_store import ContentStore
from app.services.reconcile_service import ReconciliationEngine


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Octopus environment bootstrap fixture for tests that manage their own .env",
    )


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return
    db_path = tmp_path / "octopus_test.db"
    storage_root = tmp_path / "bucket"

    monkeypatch.setenv("OCTOPUS_ENV", "test")
    monkeypatch.setenv("OCTOPUS_LOG_LEVEL", "debug")
    monkeypatch.setenv("OCTOPUS_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("OCTOPUS_STORAGE_BACKEND", "local")
    monkeypatch.setenv("OCTOPUS_STORAGE_BUCKET", "media")
    monkeypatch.setenv("OCTOPUS_LOCAL_STORAGE_BASE_PATH", str(storage_root))
    monkeypatch.setenv("OCTOPUS_PUBLIC_BASE_URL", "https://cdn.test")
    monkeypatch.setenv("OCTOPUS_JWT_SECRET", "test-secret")
    monkeypatch.setenv("OCTOPUS_JWT_ISSUER", "octopus-test")
    monkeypatch.setenv("OCTOPUS_JWT_AUDIENCE", "octopus")

    get_settings.cache_clear()
    settings = get_settings()

    async def _setup() -> None:
        engine = create_engine(settings)
        await create_schema(engine)
        await engine.dispose()

    asyncio.run(_setup())

    yield

    get_settings.cache_clear()


@pytest.fixture()
def client(configure_environment):
    app = create_app()
    with TestClient(app) as client:
        yield client


def build_token(*, scopes: list[str] | None = None, subject: str = "admin@example.com") -> str:
    payload: dict[str, object] = {"sub": subject, "iss": "octopus-test", "aud": "octopus"}
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, "test-secret", algorithm="HS256")


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token(scopes=['admin'])}"}


@pytest.fixture()
def viewer_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token()}"}


class FakeStorage(Storage):
    """In-memory bucket that records every mutating call."""

    def __init__(
        self,
        objects: Iterable[str] = (),
        *,
        bucket: str = "media",
        failing_folders: Iterable[str] = (),
        fail_remove: bool = False,
        fail_upload_prefixes: Iterable[str] = (),
        list_delay: float = 0.0,
    ):
        self.bucket = bucket
        self.objects = set(objects)
        self.failing_folders = set(failing_folders)
        self.fail_remove = fail_remove
        self.fail_upload_prefixes = tuple(fail_upload_prefixes)
        self.list_delay = list_delay
        self.list_calls: list[str] = []
        self.list_spans: list[tuple[float, float]] = []
        self.remove_calls: list[list[str]] = []
        self.uploads: dict[str, tuple[bytes, str]] = {}

    def list(self, folder: str, limit: int) -> list[StorageObject]:
        self.list_calls.append(folder)
        started = time.monotonic()
        if self.list_delay:
            time.sleep(self.list_delay)
        self.list_spans.append((started, time.monotonic()))
        if folder in self.failing_folders:
            raise StorageError(f"listing {folder} failed")
        entries: dict[str, StorageObject] = {}
        for key in sorted(self.objects):
            parent, name = posixpath.split(key)
            if parent == folder:
                entries[name] = StorageObject(name=name)
            elif parent.startswith(f"{folder}/"):
                child = parent[len(folder) + 1:].split("/", 1)[0]
                entries.setdefault(child, StorageObject(name=child, is_folder=True))
        return list(entries.values())[:limit]

    def remove(self, paths: Iterable[str]) -> None:
        batch = list(paths)
        if self.fail_remove:
            raise StorageError("remove rejected")
        self.remove_calls.append(batch)
        self.objects.difference_update(batch)

    def upload(self, path: str, payload: bytes, content_type: str) -> None:
        if self.fail_upload_prefixes and path.startswith(self.fail_upload_prefixes):
            raise StorageError(f"upload rejected for {path}")
        self.objects.add(path)
        self.uploads[path] = (payload, content_type)

    def public_url(self, path: str) -> str:
        return f"https://cdn.test/storage/v1/object/public/{self.bucket}/{path}"


class FakeContentStore(ContentStore):
    def __init__(
        self,
        references: dict[str, list[str | None]],
        *,
        failing: Iterable[str] = (),
        delay: float = 0.0,
        delays: dict[str, float] | None = None,
    ):
        self.references = references
        self.failing = set(failing)
        self.delay = delay
        self.delays = delays or {}
        self.queried: list[str] = []
        self.spans: dict[str, tuple[float, float]] = {}
        self.cancelled: list[str] = []

    @property
    def kinds(self) -> tuple[str, ...]:
        return tuple(self.references)

    async def list_asset_paths(self, kind: str) -> list[str | None]:
        self.queried.append(kind)
        started = time.monotonic()
        try:
            await asyncio.sleep(self.delays.get(kind, self.delay))
        except asyncio.CancelledError:
            self.cancelled.append(kind)
            raise
        if kind in self.failing:
            raise RuntimeError(f"{kind} query failed")
        self.spans[kind] = (started, time.monotonic())
        return list(self.references[kind])


def public_url(path: str, bucket: str = "media") -> str:
    return f"https://project.supabase.co/storage/v1/object/public/{bucket}/{path}"


@asynccontextmanager
async def reconciliation_engine(storage: Storage, *, content_store=None, poster_generator=None, **overrides):
    settings = get_settings().model_copy(update=overrides)
    db_engine = create_engine(settings)
    kwargs = {}
    if poster_generator is not None:
        kwargs["poster_generator"] = poster_generator
    try:
        yield ReconciliationEngine(
            settings,
            storage,
            create_session_factory(db_engine),
            content_store=content_store,
            **kwargs,
        )
    finally:
        await db_engine.dispose()


@pytest.fixture(scope="session")
def generated_video_file(tmp_path_factory) -> Path:
    """
    Generates a small, valid MP4 video file for testing in a temporary directory.
    """
    if shutil.which("ffmpeg") is None:
        pytest.skip("ffmpeg is not installed")
    video_path = tmp_path_factory.mktemp("data") / "test_video.mp4"

    # 2 seconds, so the default 1s poster timemark lands inside the clip
    command = [
        "ffmpeg",
        "-f", "lavfi",
        "-i", "color=c=blue:s=320x180:r=30",
        "-t", "2",
        "-pix_fmt", "yuv420p",
        str(video_path)
    ]
    subprocess.run(command, check=True, capture_output=True)
    return video_path
