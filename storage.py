"""
Storage backends.

Every entity kind is reached through a ``Repository``. Two implementations
exist: ``SqlRepository`` (one table per kind, see models.py) and
``MemoryRepository`` (an in-process list, newest first). A ``Backend`` hands
out one repository per kind, and ``get_backend`` picks the backend once per
process: SQL when DATABASE_URL is set, memory otherwise. Nothing outside this
module branches on which one is active, except for the few operations that
only exist with a database (see ``Backend.persistent``).
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from functools import lru_cache
from operator import attrgetter
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Type

from pydantic import BaseModel
from sqlalchemy import delete as sa_delete
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select

import models
import schemas
from auth import demo_users
from config import settings
from database import make_engine, make_session_factory

logger = logging.getLogger(__name__)


class Kind(NamedTuple):
    record: Type[BaseModel]
    model: type
    order_by: Optional[str] = "created_at"
    field_map: Dict[str, str] = {}


KINDS = {
    "users": Kind(schemas.User, models.User, order_by=None),
    "projects": Kind(schemas.Project, models.Project),
    "messages": Kind(schemas.Message, models.Message),
    "events": Kind(schemas.CalendarEvent, models.Event),
    "contracts": Kind(schemas.Contract, models.Contract),
    "tasks": Kind(schemas.Task, models.Task),
    "documents": Kind(schemas.Document, models.Document),
    "crm_contacts": Kind(schemas.CrmContact, models.CrmContact),
    "crm_interactions": Kind(
        schemas.CrmInteraction, models.CrmInteraction, order_by="occurred_at", field_map={"metadata": "meta"}
    ),
    "crm_opportunities": Kind(schemas.CrmOpportunity, models.CrmOpportunity),
    "contact_submissions": Kind(schemas.ContactSubmission, models.ContactSubmission),
    "ai_interactions": Kind(schemas.AiInteraction, models.AiInteraction),
}


class Repository(ABC):
    """Create/read/update/delete over one entity kind. Lists are newest first."""

    record_cls: Type[BaseModel]

    @abstractmethod
    def list(self, limit: Optional[int] = None, **equals) -> List[BaseModel]:
        ...

    @abstractmethod
    def insert(self, record: BaseModel) -> BaseModel:
        ...

    @abstractmethod
    def update(self, record_id: str, changes: dict) -> Optional[BaseModel]:
        """Overwrite the given fields; None when no record has ``record_id``."""

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        ...

    def get(self, record_id: str) -> Optional[BaseModel]:
        return self.find_one(id=record_id)

    def find_one(self, **equals) -> Optional[BaseModel]:
        found = self.list(limit=1, **equals)
        return found[0] if found else None


class MemoryRepository(Repository):
    """
    An ordered in-process collection, newest insert first.

    Handlers run in a threadpool, so every operation holds the collection's
    lock to stay atomic. Records are copied on the way in and out.
    """

    def __init__(self, record_cls, order_by: Optional[str] = "created_at", records: Iterable[BaseModel] = ()):
        self.record_cls = record_cls
        self.order_by = order_by
        self._records = [r.model_copy(deep=True) for r in records]
        self._lock = threading.Lock()

    def list(self, limit=None, **equals):
        with self._lock:
            found = [r for r in self._records if all(getattr(r, k) == v for k, v in equals.items())]
            if self.order_by:
                # stable, so equal timestamps keep newest-insert-first
                found.sort(key=attrgetter(self.order_by), reverse=True)
            if limit:
                found = found[:limit]
            return [r.model_copy(deep=True) for r in found]

    def insert(self, record):
        with self._lock:
            self._records.insert(0, record.model_copy(deep=True))
        return record

    def update(self, record_id, changes):
        with self._lock:
            for index, current in enumerate(self._records):
                if current.id == record_id:
                    updated = current.model_copy(update=copy.deepcopy(changes))
                    self._records[index] = updated
                    return updated.model_copy(deep=True)
        return None

    def delete(self, record_id):
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.id != record_id]
            return len(self._records) != before


class SqlRepository(Repository):
    """
    One table per kind. Record fields with a column of their own are stored
    there; the rest are packed into the table's ``metadata`` JSON column.

    Each call is its own session and transaction. There is no optimistic
    locking: concurrent updates to a row are last-writer-wins.
    """

    def __init__(self, record_cls, model, session_factory, order_by="created_at", field_map=None):
        self.record_cls = record_cls
        self.model = model
        self.order_by = order_by
        self._sessions = session_factory
        columns = {attr.key for attr in sa_inspect(model).column_attrs}
        field_map = field_map or {}
        self._direct = {}
        for field in record_cls.model_fields:
            attr = field_map.get(field, field)
            if attr in columns:
                self._direct[field] = attr
        self._bagged = set(record_cls.model_fields) - set(self._direct)
        if self._bagged and "meta" not in columns:
            raise ValueError(f"{model.__tablename__} has no metadata column for {sorted(self._bagged)}")

    def _column(self, field):
        return getattr(self.model, self._direct[field])

    def _to_record(self, row) -> BaseModel:
        data = {field: getattr(row, attr) for field, attr in self._direct.items()}
        if self._bagged:
            bag = row.meta or {}
            data.update({k: bag[k] for k in self._bagged if k in bag})
        return self.record_cls.model_validate(data)

    def _to_values(self, record: BaseModel) -> dict:
        native = record.model_dump()
        values = {attr: native[field] for field, attr in self._direct.items()}
        if self._bagged:
            values["meta"] = record.model_dump(mode="json", include=self._bagged)
        return values

    def list(self, limit=None, **equals):
        stmt = select(self.model)
        for field, value in equals.items():
            stmt = stmt.where(self._column(field) == value)
        if self.order_by:
            stmt = stmt.order_by(self._column(self.order_by).desc())
        if limit:
            stmt = stmt.limit(limit)
        with self._sessions() as session:
            return [self._to_record(row) for row in session.scalars(stmt)]

    def insert(self, record):
        with self._sessions() as session:
            session.add(self.model(**self._to_values(record)))
            session.commit()
        return record

    def update(self, record_id, changes):
        with self._sessions() as session:
            row = session.get(self.model, record_id)
            if row is None:
                return None
            updated = self._to_record(row).model_copy(update=changes)
            for attr, value in self._to_values(updated).items():
                setattr(row, attr, value)
            session.commit()
            return updated

    def delete(self, record_id):
        with self._sessions() as session:
            result = session.execute(sa_delete(self.model).where(self.model.id == record_id))
            session.commit()
            return result.rowcount > 0


class Backend(ABC):
    persistent = False

    def __init__(self, repositories: Dict[str, Repository]):
        self._repositories = repositories

    def repository(self, kind: str) -> Repository:
        return self._repositories[kind]


class MemoryBackend(Backend):
    """In-process collections. Nothing survives a restart."""

    def __init__(self, users: Sequence[schemas.User] = ()):
        repositories = {name: MemoryRepository(kind.record, kind.order_by) for name, kind in KINDS.items()}
        repositories["users"] = MemoryRepository(schemas.User, None, users)
        super().__init__(repositories)


class SqlBackend(Backend):
    persistent = True

    def __init__(self, engine):
        self.engine = engine
        sessions = make_session_factory(engine)
        super().__init__(
            {
                name: SqlRepository(kind.record, kind.model, sessions, kind.order_by, kind.field_map)
                for name, kind in KINDS.items()
            }
        )


@lru_cache
def get_backend() -> Backend:
    """
    Decide the storage backend once for the life of the process.

    A present but broken DATABASE_URL still selects SQL; the first query
    surfaces the failure.
    """
    if settings.DATABASE_URL:
        logger.info("Storage backend: SQL")
        return SqlBackend(make_engine(settings.DATABASE_URL))
    logger.warning("DATABASE_URL not set; storage backend: in-memory")
    return MemoryBackend(demo_users())
