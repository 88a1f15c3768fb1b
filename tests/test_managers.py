"""Tests for the session store and category registry."""
import asyncio
import json
import random

import pytest

from backend.database import MemoryStorage, SqliteStorage
from backend.managers import CategoryManager, SessionManager

from helpers import reconciled, session_on


@pytest.mark.asyncio
async def test_categories_seeded_on_first_run(category_manager, storage):
    categories = await category_manager.load()

    assert categories[0] == "Consulta"
    assert json.loads(storage.records["marie_categories"]) == categories


@pytest.mark.asyncio
async def test_add_category_is_idempotent_and_appends(category_manager):
    await category_manager.load()

    assert await category_manager.add_category("Exames") is True
    assert await category_manager.add_category("Exames") is False
    assert await category_manager.add_category("exames") is True
    assert category_manager.all()[-2:] == ["Exames", "exames"]


@pytest.mark.asyncio
async def test_rename_keeps_position_and_cascades(category_manager, session_manager):
    await category_manager.load()
    await session_manager.append(session_on(
        "2026-01-10T12:00:00+00:00",
        reconciled(150.0, "Consulta", id="x"),
        reconciled(90.0, "Estética", id="y"),
    ))

    assert await category_manager.rename_category("Consulta", "Atendimento") is True

    assert category_manager.all()[0] == "Atendimento"
    session = session_manager.all()[0]
    assert [t.category for t in session.transactions] == ["Atendimento", "Estética"]
    assert session.total_amount == 240.0


@pytest.mark.asyncio
async def test_rename_unknown_category_is_noop(category_manager):
    await category_manager.load()
    before = category_manager.all()

    assert await category_manager.rename_category("Inexistente", "Nova") is False
    assert category_manager.all() == before


@pytest.mark.asyncio
async def test_rename_onto_existing_name_does_not_duplicate(category_manager):
    await category_manager.load()

    await category_manager.rename_category("Estética", "Consulta")

    assert category_manager.all().count("Consulta") == 1
    assert "Estética" not in category_manager.all()


@pytest.mark.asyncio
async def test_delete_keeps_historical_labels(category_manager, session_manager):
    await category_manager.load()
    await session_manager.append(session_on("2026-01-10T12:00:00+00:00", reconciled(10.0, "Procedimento")))

    assert await category_manager.delete_category("Procedimento") is True
    assert await category_manager.delete_category("Procedimento") is False

    assert "Procedimento" not in category_manager.all()
    assert session_manager.all()[0].transactions[0].category == "Procedimento"


@pytest.mark.asyncio
async def test_random_registry_operations_never_duplicate(category_manager, session_manager):
    await category_manager.load()
    await session_manager.append(session_on(
        "2026-01-10T12:00:00+00:00",
        *[reconciled(float(i), name, id=str(i)) for i, name in enumerate(category_manager.all())]
    ))
    names = ["Consulta", "Procedimento", "Outros", "A", "B", ""]
    rng = random.Random(7)

    for _ in range(200):
        op = rng.choice(["add", "rename", "remove"])
        if op == "add":
            await category_manager.add_category(rng.choice(names))
        elif op == "remove":
            await category_manager.delete_category(rng.choice(names))
        else:
            old, new = rng.choice(names), rng.choice(names)
            had_old = old in category_manager.all()
            await category_manager.rename_category(old, new)
            if had_old and old != new:
                categories = [t.category for s in session_manager.all() for t in s.transactions]
                assert old not in categories

        registry = category_manager.all()
        assert len(registry) == len(set(registry))


@pytest.mark.asyncio
async def test_append_puts_newest_first(session_manager, storage):
    older = session_on("2026-01-10T12:00:00+00:00", reconciled(100.0))
    newer = session_on("2026-02-10T12:00:00+00:00", reconciled(200.0))

    await session_manager.append(older)
    await session_manager.append(newer)

    assert [s.id for s in session_manager.all()] == [newer.id, older.id]
    stored = json.loads(storage.records["marie_sessions"])
    assert [s["id"] for s in stored] == [newer.id, older.id]
    assert "matchingCount" not in stored[0]


@pytest.mark.asyncio
async def test_sessions_round_trip_through_storage(session_manager, storage):
    first = session_on("2026-01-10T12:00:00+00:00", reconciled(100.0, patient_name="Bia", phone="1199"))
    second = session_on("2026-02-10T12:00:00+00:00", reconciled(55.5, document="778"))
    await session_manager.append(first)
    await session_manager.append(second)

    reloaded = await SessionManager(storage, "marie_sessions").load()

    assert reloaded == [second, first]


@pytest.mark.asyncio
async def test_corrupt_sessions_record_loads_as_empty():
    storage = MemoryStorage({"marie_sessions": "{not json"})

    assert await SessionManager(storage, "marie_sessions").load() == []


@pytest.mark.asyncio
async def test_malformed_sessions_record_loads_as_empty():
    storage = MemoryStorage({"marie_sessions": json.dumps([{"no": "id"}])})

    assert await SessionManager(storage, "marie_sessions").load() == []


@pytest.mark.asyncio
async def test_get_session_by_id(session_manager):
    session = session_on("2026-01-10T12:00:00+00:00", reconciled(100.0))
    await session_manager.append(session)

    assert session_manager.get(session.id) is session
    assert session_manager.get("missing") is None


@pytest.mark.asyncio
async def test_sqlite_storage_round_trip(tmp_path):
    storage = SqliteStorage(str(tmp_path / "marie.db"))
    await storage.initialize()
    await storage.initialize()

    sessions = SessionManager(storage, "marie_sessions")
    categories = CategoryManager(storage, "marie_categories", ["Consulta"], sessions)
    await sessions.load()
    await categories.load()
    await categories.add_category("Estética")
    session = session_on("2026-03-01T08:00:00+00:00", reconciled(42.0, "Estética"))
    await sessions.append(session)

    fresh_sessions = SessionManager(storage, "marie_sessions")
    fresh_categories = CategoryManager(storage, "marie_categories", ["Outros"], fresh_sessions)

    assert await fresh_sessions.load() == [session]
    assert await fresh_categories.load() == ["Consulta", "Estética"]


class LockedReadStorage(MemoryStorage):
    """Storage whose reads fail while its records stay intact."""

    async def read(self, key):
        raise OSError("database is locked")


class SlowFirstWriteStorage(MemoryStorage):
    """The first write finishes after the ones issued behind it."""

    def __init__(self, records=None):
        super().__init__(records)
        self.writes = 0

    async def write(self, key, value):
        self.writes += 1
        await asyncio.sleep(0.05 if self.writes == 1 else 0)
        await super().write(key, value)


@pytest.mark.asyncio
async def test_rename_category_to_itself_succeeds_unchanged(category_manager, storage):
    await category_manager.load()
    before = category_manager.all()
    stored = storage.records["marie_categories"]

    assert await category_manager.rename_category("Consulta", "Consulta") is True
    assert category_manager.all() == before
    assert storage.records["marie_categories"] == stored


@pytest.mark.asyncio
async def test_failed_category_read_keeps_stored_record():
    stored = json.dumps(["Consulta", "Exames", "Cirurgia"])
    storage = LockedReadStorage({"marie_categories": stored})
    manager = CategoryManager(
        storage, "marie_categories", ["Consulta", "Outros"], SessionManager(storage, "marie_sessions")
    )

    assert await manager.load() == ["Consulta", "Outros"]
    assert storage.records["marie_categories"] == stored


@pytest.mark.asyncio
async def test_malformed_category_record_is_not_overwritten():
    storage = MemoryStorage({"marie_categories": json.dumps({"Consulta": 1})})
    manager = CategoryManager(
        storage, "marie_categories", ["Consulta", "Outros"], SessionManager(storage, "marie_sessions")
    )

    assert await manager.load() == ["Consulta", "Outros"]
    assert storage.records["marie_categories"] == json.dumps({"Consulta": 1})


@pytest.mark.asyncio
async def test_session_with_non_iso_date_is_skipped_on_load():
    valid = session_on("2026-01-10T12:00:00+00:00", reconciled(100.0))
    bad = dict(session_on("2026-01-15T12:00:00+00:00", reconciled(50.0)).to_dict(),
               id="session-bad", date="15/01/2026")
    storage = MemoryStorage({"marie_sessions": json.dumps([bad, valid.to_dict()])})

    assert await SessionManager(storage, "marie_sessions").load() == [valid]


@pytest.mark.asyncio
async def test_concurrent_appends_keep_every_session():
    storage = SlowFirstWriteStorage()
    manager = SessionManager(storage, "marie_sessions")
    first = session_on("2026-01-10T12:00:00+00:00", reconciled(100.0))
    second = session_on("2026-02-10T12:00:00+00:00", reconciled(200.0))

    await asyncio.gather(manager.append(first), manager.append(second))

    stored = json.loads(storage.records["marie_sessions"])
    assert {s["id"] for s in stored} == {first.id, second.id}
    assert [s["id"] for s in stored] == [s.id for s in manager.all()]


@pytest.mark.asyncio
async def test_concurrent_category_adds_keep_every_name(session_manager):
    slow = SlowFirstWriteStorage({"marie_categories": json.dumps(["Consulta"])})
    manager = CategoryManager(slow, "marie_categories", ["Consulta"], session_manager)
    await manager.load()

    await asyncio.gather(manager.add_category("Exames"), manager.add_category("Cirurgia"))

    assert json.loads(slow.records["marie_categories"]) == ["Consulta", "Exames", "Cirurgia"]
