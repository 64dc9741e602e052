"""Tests for the storage adapters."""

import json

import aiosqlite
import pytest

from repocache.data.storage import (
    LocalVariableStorage,
    NamespacedStorage,
    SQLiteStorage,
    StorageArea,
    create_storage,
    default_area,
    reset_areas,
)
from repocache.exceptions import ConfigurationError
from repocache.models.records import StoredRecord


@pytest.fixture(autouse=True)
def fresh_areas():
    """Keep the process-wide storage areas from leaking between tests."""
    reset_areas()
    yield
    reset_areas()


def _record(**kwargs) -> StoredRecord:
    values = {"data": {"t": 30, "days": ["Mon", "Tue"]}, "fetched_at": 1_700_000_000_000}
    values.update(kwargs)
    return StoredRecord(**values)


@pytest.mark.asyncio
async def test_sqlite_round_trip(tmp_path):
    storage = SQLiteStorage(tmp_path / "nested" / "repocache.db")

    assert await storage.get("weather") is None

    await storage.set("weather", _record())
    assert await storage.get("weather") == _record()


@pytest.mark.asyncio
async def test_sqlite_overwrites_and_deletes(tmp_path):
    db_path = tmp_path / "repocache.db"
    storage = SQLiteStorage(db_path)

    await storage.set("weather", _record())
    await storage.set("weather", _record(invalid=True))
    assert (await storage.get("weather")).invalid is True

    await storage.set("weather", None)
    assert await storage.get("weather") is None

    async with aiosqlite.connect(db_path) as db:
        cursor = await db.execute("SELECT COUNT(*) FROM records")
        (count,) = await cursor.fetchone()
    assert count == 0


@pytest.mark.asyncio
async def test_sqlite_survives_adapter_instances(tmp_path):
    db_path = tmp_path / "repocache.db"

    await SQLiteStorage(db_path).set("weather", _record())

    assert await SQLiteStorage(db_path).get("weather") == _record()


@pytest.mark.asyncio
async def test_sqlite_keys_are_independent(tmp_path):
    storage = SQLiteStorage(tmp_path / "repocache.db")

    await storage.set("a", _record(data=1))
    await storage.set("b", _record(data=2))
    await storage.set("a", None)

    assert await storage.get("a") is None
    assert (await storage.get("b")).data == 2


@pytest.mark.asyncio
async def test_namespaced_round_trip():
    storage = NamespacedStorage("weather-app", StorageArea())

    assert await storage.get("weather") is None
    await storage.set("weather", _record())
    assert await storage.get("weather") == _record()

    await storage.set("weather", None)
    assert await storage.get("weather") is None


@pytest.mark.asyncio
async def test_namespaces_do_not_collide():
    area = StorageArea()
    first = NamespacedStorage("first", area)
    second = NamespacedStorage("second", area)

    await first.set("weather", _record(data="first"))

    assert await second.get("weather") is None
    assert await area.keys("first") == ["weather"]


@pytest.mark.asyncio
async def test_namespaced_returns_copies():
    storage = NamespacedStorage("ns", StorageArea())
    await storage.set("weather", _record())

    loaded = await storage.get("weather")
    loaded.data["t"] = -1

    assert (await storage.get("weather")).data["t"] == 30


@pytest.mark.asyncio
async def test_namespaced_area_persists_to_file(tmp_path):
    path = tmp_path / "area.json"

    await NamespacedStorage("ns", StorageArea(path)).set("weather", _record())

    assert json.loads(path.read_text())["ns"]["weather"]["data"]["t"] == 30
    assert await NamespacedStorage("ns", StorageArea(path)).get("weather") == _record()


@pytest.mark.asyncio
async def test_default_area_is_shared_per_path(tmp_path):
    await NamespacedStorage().set("weather", _record())

    assert default_area() is default_area(None)
    assert await NamespacedStorage().get("weather") == _record()
    assert default_area(tmp_path / "a.json") is not default_area()


@pytest.mark.asyncio
async def test_local_variable_is_per_instance():
    first = LocalVariableStorage()
    second = LocalVariableStorage()
    record = _record()

    await first.set("weather", record)

    assert await first.get("weather") is record
    assert await second.get("weather") is None


def test_create_storage_rejects_unknown_backend(settings):
    with pytest.raises(ConfigurationError):
        create_storage("LOCAL_STORAGE", settings)


def test_create_storage_uses_settings_paths(settings):
    storage = create_storage("sqlite", settings)

    assert isinstance(storage, SQLiteStorage)
    assert storage._db_path == settings.db_path
