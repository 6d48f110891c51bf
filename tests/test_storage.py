"""
Tests for the storage layer shared by every entity kind.

Coverage:
- Metadata bag round trip through the JSON column
- Ordering, filtering and copy semantics
- Update merge and NotFound on the accessor
- Backend selection from configuration
"""

from datetime import datetime, timedelta, timezone

import pytest

import models
import schemas
from config import settings
from database import make_session_factory
from errors import NotFound
from services import accessor, utcnow
from storage import MemoryBackend, MemoryRepository, SqlBackend, SqlRepository, get_backend


def _project(title, created_at=None, **extra):
    now = created_at or utcnow()
    return schemas.Project(id=f"p-{title}", title=title, owner_id="alex-user-id", created_at=now, last_update=now, **extra)


def test_metadata_bag_round_trips(backend):
    repo = backend.repository("projects")
    repo.insert(
        _project(
            "apollo",
            client="Acme",
            deadline="2026-12-31",
            team=["alex-user-id", "edgar-user-id"],
            tasks=[{"title": "Kickoff", "done": True}],
            type="advisory",
            progress=35,
        )
    )

    stored = repo.get("p-apollo")

    assert stored.client == "Acme"
    assert stored.team == ["alex-user-id", "edgar-user-id"]
    assert stored.tasks == [{"title": "Kickoff", "done": True}]
    assert stored.progress == 35
    assert stored.created_at.tzinfo is not None


def test_list_is_newest_first(backend):
    repo = backend.repository("projects")
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    repo.insert(_project("old", created_at=base))
    repo.insert(_project("new", created_at=base + timedelta(hours=1)))
    repo.insert(_project("middle", created_at=base + timedelta(minutes=30)))

    assert [p.title for p in repo.list()] == ["new", "middle", "old"]
    assert [p.title for p in repo.list(limit=1)] == ["new"]


def test_list_filters_on_equality(backend):
    repo = backend.repository("tasks")
    now = utcnow()
    for i, status in enumerate(["pending", "done", "pending"]):
        repo.insert(schemas.Task(id=f"t{i}", title=f"task {i}", status=status, created_at=now, updated_at=now))

    assert sorted(t.id for t in repo.list(status="pending")) == ["t0", "t2"]
    assert repo.list(status="blocked") == []


def test_update_merges_and_refreshes_touched_timestamp(backend):
    projects = accessor(backend, "projects")
    original = projects.create(_project("merge", client="Acme", progress=10))

    updated = projects.update(original.id, {"progress": 60})

    assert updated.progress == 60
    assert updated.client == "Acme"
    assert updated.title == "merge"
    assert updated.last_update > original.last_update
    assert projects.get(original.id).progress == 60


def test_update_of_missing_record_is_not_found(backend):
    with pytest.raises(NotFound, match="Task not found"):
        accessor(backend, "tasks").update("missing", {"status": "done"})


def test_delete_twice_is_not_found(backend):
    contracts = accessor(backend, "contracts")
    contracts.create(schemas.Contract(id="c1", title="Retainer", created_at=utcnow()))

    contracts.delete("c1")

    with pytest.raises(NotFound, match="Contract not found"):
        contracts.delete("c1")
    assert contracts.list() == []


def test_memory_records_are_copied_in_and_out():
    repo = MemoryRepository(schemas.Project)
    record = _project("copy", team=["a"])
    repo.insert(record)

    record.team.append("mutated")
    listed = repo.list()[0]
    listed.team.append("mutated again")

    assert repo.get("p-copy").team == ["a"]


def test_sql_repository_needs_a_metadata_column_for_unmapped_fields(sql_backend):
    sessions = make_session_factory(sql_backend.engine)
    with pytest.raises(ValueError, match="no metadata column"):
        SqlRepository(schemas.Project, models.User, sessions)


def test_backend_follows_database_url(monkeypatch):
    get_backend.cache_clear()
    try:
        monkeypatch.setattr(settings, "DATABASE_URL", None)
        memory = get_backend()
        assert isinstance(memory, MemoryBackend)
        assert memory.persistent is False
        assert get_backend() is memory

        get_backend.cache_clear()
        monkeypatch.setattr(settings, "DATABASE_URL", "sqlite://")
        sql = get_backend()
        assert isinstance(sql, SqlBackend)
        assert sql.persistent is True
    finally:
        get_backend.cache_clear()


def test_memory_backend_serves_demo_roster(memory_backend):
    users = memory_backend.repository("users")
    assert users.find_one(email="esmith@beyond26advisors.com").role == "admin"
    assert users.find_one(email="nobody@example.com") is None
