"""
Relational schema for the persistent backend.

One table per entity kind. Loosely structured fields of an entity are kept in a
single JSON column named ``metadata`` (mapped to the ``meta`` attribute, since
``metadata`` is reserved on declarative classes). Owner, creator and assignee
columns reference ``users``.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

from database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp; naive values read back (SQLite) are taken as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _now():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(Text)
    first_name = Column(Text)
    last_name = Column(Text)
    role = Column(String(20), default="client")
    password_hash = Column(Text, nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    status = Column(Text, default="Active")
    owner_id = Column(String(36), ForeignKey("users.id"))
    created_at = Column(UTCDateTime, default=_now)
    meta = Column("metadata", JSONType, default=dict)


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True)
    sender_id = Column(String(36), ForeignKey("users.id"))
    sender_name = Column(Text)
    recipient_id = Column(String(36), index=True)
    subject = Column(Text)
    body = Column(Text)
    read = Column(Boolean, default=False)
    created_at = Column(UTCDateTime, default=_now)
    is_group = Column(Boolean, default=False)
    group_id = Column(String(36), index=True)
    thread_id = Column(String(36), index=True)
    meta = Column("metadata", JSONType, default=dict)


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    date = Column(Date)
    attendees = Column(JSONType, default=list)
    owner_id = Column(String(36), ForeignKey("users.id"))
    owner_name = Column(Text)
    created_at = Column(UTCDateTime, default=_now)
    updated_at = Column(UTCDateTime, default=_now)
    meta = Column("metadata", JSONType, default=dict)


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(String(36), primary_key=True)
    title = Column(Text)
    status = Column(Text, default="Draft")
    created_at = Column(UTCDateTime, default=_now)
    meta = Column("metadata", JSONType, default=dict)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    status = Column(String(50), default="pending", index=True)
    priority = Column(String(20), default="medium")
    due_date = Column(UTCDateTime, index=True)
    assignee_id = Column(String(36), ForeignKey("users.id"), index=True)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True)
    created_by = Column(String(36), ForeignKey("users.id"))
    completed_at = Column(UTCDateTime)
    tags = Column(JSONType, default=list)
    created_at = Column(UTCDateTime, default=_now)
    updated_at = Column(UTCDateTime, default=_now)


class Document(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True)
    filename = Column(Text, nullable=False)
    original_filename = Column(Text, nullable=False)
    file_size = Column(BigInteger)
    mime_type = Column(Text)
    category = Column(String(100), index=True)
    description = Column(Text)
    storage_path = Column(Text, nullable=False)
    uploaded_by = Column(String(36), ForeignKey("users.id"), index=True)
    access_level = Column(String(50), default="private")
    tags = Column(JSONType, default=list)
    confidential = Column(Boolean, default=False)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True)
    created_at = Column(UTCDateTime, default=_now)
    updated_at = Column(UTCDateTime, default=_now)


class CrmContact(Base):
    __tablename__ = "crm_contacts"

    id = Column(String(36), primary_key=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    email = Column(String(255), unique=True, index=True)
    phone = Column(String(50))
    company = Column(String(255), index=True)
    title = Column(String(255))
    industry = Column(String(100))
    source = Column(String(100))
    status = Column(String(50), default="active")
    tags = Column(JSONType, default=list)
    notes = Column(Text)
    linkedin_url = Column(String(500))
    website = Column(String(500))
    address = Column(Text)
    created_by = Column(String(36), ForeignKey("users.id"))
    created_at = Column(UTCDateTime, default=_now)
    updated_at = Column(UTCDateTime, default=_now)


class CrmInteraction(Base):
    __tablename__ = "crm_interactions"

    id = Column(String(36), primary_key=True)
    contact_id = Column(String(36), ForeignKey("crm_contacts.id"), index=True)
    user_id = Column(String(36), ForeignKey("users.id"))
    type = Column(String(50), nullable=False, index=True)
    subject = Column(String(500))
    content = Column(Text)
    direction = Column(String(20))
    email_message_id = Column(String(255))
    calendar_event_id = Column(String(255))
    project_id = Column(String(36))
    meta = Column("metadata", JSONType, default=dict)
    occurred_at = Column(UTCDateTime, default=_now)
    created_at = Column(UTCDateTime, default=_now)


class CrmOpportunity(Base):
    __tablename__ = "crm_opportunities"

    id = Column(String(36), primary_key=True)
    contact_id = Column(String(36), ForeignKey("crm_contacts.id"), index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    value = Column(Numeric(15, 2))
    probability = Column(Integer, default=50)
    stage = Column(String(100), default="prospecting", index=True)
    expected_close_date = Column(Date)
    actual_close_date = Column(Date)
    assigned_to = Column(String(36), ForeignKey("users.id"))
    source = Column(String(100))
    tags = Column(JSONType, default=list)
    created_at = Column(UTCDateTime, default=_now)
    updated_at = Column(UTCDateTime, default=_now)


class ContactSubmission(Base):
    __tablename__ = "contact_submissions"

    id = Column(String(36), primary_key=True)
    name = Column(Text)
    email = Column(Text)
    firm = Column(Text)
    phone = Column(Text)
    comments = Column(Text)
    created_at = Column(UTCDateTime, default=_now)


class AiInteraction(Base):
    __tablename__ = "ai_interactions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), index=True)
    query = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, default=_now)
