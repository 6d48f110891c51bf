"""
Resource accessors.

``Accessor`` is the create/read/update/delete pattern shared by every entity
kind; the functions below add what each kind stamps or derives on top of it
(owners from the caller's claims, message fan-out, calendar dates). Status
fields are free-form strings and no transition between them is enforced.
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

import assistant
from errors import Conflict, NotFound, NotificationFailed
from schemas import (
    AiInteraction,
    CalendarEvent,
    Claims,
    ContactSubmission,
    ContactSubmissionCreate,
    Contract,
    ContractCreate,
    CrmContact,
    CrmContactCreate,
    CrmInteraction,
    CrmInteractionCreate,
    CrmOpportunity,
    CrmOpportunityCreate,
    Document,
    DocumentCreate,
    EventCreate,
    EventUpdate,
    Message,
    MessageCreate,
    MessageReply,
    Project,
    ProjectCreate,
    Task,
    TaskCreate,
)

logger = logging.getLogger(__name__)

AI_HISTORY_LIMIT = 20

LABELS = {
    "projects": "Project",
    "messages": "Message",
    "events": "Event",
    "contracts": "Contract",
    "tasks": "Task",
    "documents": "Document",
    "crm_contacts": "Contact",
    "crm_interactions": "Interaction",
    "crm_opportunities": "Opportunity",
}

# Timestamps refreshed on every update, per kind
TOUCHED = {
    "projects": ("last_update",),
    "events": ("updated_at",),
    "tasks": ("updated_at",),
    "documents": ("updated_at",),
    "crm_contacts": ("updated_at",),
    "crm_opportunities": ("updated_at",),
}


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _later_than(previous: Optional[datetime]) -> datetime:
    now = utcnow()
    previous = as_utc(previous)
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def changes_from(payload: BaseModel) -> dict:
    """Fields the caller actually supplied; absent or null leaves the stored value alone."""
    return payload.model_dump(exclude_none=True)


class Accessor:
    def __init__(self, repository, label: str, touched: Tuple[str, ...] = ()):
        self.repository = repository
        self.label = label
        self.touched = touched

    def list(self, **equals) -> list:
        return self.repository.list(**{k: v for k, v in equals.items() if v is not None})

    def get(self, record_id: str):
        record = self.repository.get(record_id)
        if record is None:
            raise NotFound(f"{self.label} not found")
        return record

    def create(self, record):
        return self.repository.insert(record)

    def update(self, record_id: str, changes: dict):
        changes = dict(changes)
        if self.touched:
            current = self.get(record_id)
            for field in self.touched:
                changes[field] = _later_than(getattr(current, field))
        updated = self.repository.update(record_id, changes)
        if updated is None:
            raise NotFound(f"{self.label} not found")
        return updated

    def delete(self, record_id: str) -> None:
        if not self.repository.delete(record_id):
            raise NotFound(f"{self.label} not found")


def accessor(backend, kind: str) -> Accessor:
    return Accessor(backend.repository(kind), LABELS[kind], TOUCHED.get(kind, ()))


# ---------- Projects & contracts ----------

def create_project(backend, user: Claims, payload: ProjectCreate) -> Project:
    now = utcnow()
    project = Project(id=new_id(), owner_id=user.id, created_at=now, last_update=now, **payload.model_dump())
    return accessor(backend, "projects").create(project)


def create_contract(backend, payload: ContractCreate) -> Contract:
    contract = Contract(id=new_id(), created_at=utcnow(), **payload.model_dump())
    return accessor(backend, "contracts").create(contract)


# ---------- Messages ----------

def _fan_out(backend, user: Claims, recipients, *, subject, body, is_group, group_id, group_name, thread_id):
    repository = backend.repository("messages")
    created_at = utcnow()
    messages = []
    for recipient in recipients:
        message = Message(
            id=new_id(),
            sender_id=user.id,
            sender_name=user.display_name,
            recipient_id=recipient,
            subject=subject,
            body=body,
            created_at=created_at,
            is_group=is_group,
            group_id=group_id,
            group_name=group_name,
            thread_id=thread_id,
        )
        messages.append(repository.insert(message))
    return messages


def send_message(backend, user: Claims, payload: MessageCreate) -> Tuple[List[Message], Optional[dict]]:
    """
    Start a new thread. A group message is stored once per recipient, all
    copies sharing one group id and one thread id.
    """
    if payload.is_group and payload.recipients:
        group_id = new_id()
        messages = _fan_out(
            backend,
            user,
            payload.recipients,
            subject=payload.subject,
            body=payload.body,
            is_group=True,
            group_id=group_id,
            group_name=payload.group_name,
            thread_id=new_id(),
        )
        group = {"id": group_id, "name": payload.group_name, "members": list(payload.recipients)}
        return messages, group

    recipient = payload.recipients[0] if payload.recipients else None
    messages = _fan_out(
        backend,
        user,
        [recipient],
        subject=payload.subject,
        body=payload.body,
        is_group=False,
        group_id=None,
        group_name="",
        thread_id=new_id(),
    )
    return messages, None


def reply_to_thread(backend, user: Claims, thread_id: str, payload: MessageReply) -> List[Message]:
    thread = backend.repository("messages").list(thread_id=thread_id)
    if not thread:
        raise NotFound("Thread not found")
    root = thread[-1]

    if root.is_group:
        recipients = payload.recipients or _members(thread, exclude=user.id)
    elif root.sender_id == user.id:
        recipients = [root.recipient_id]
    else:
        recipients = [root.sender_id]

    return _fan_out(
        backend,
        user,
        recipients,
        subject=f"Re: {root.subject}",
        body=payload.body,
        is_group=root.is_group,
        group_id=root.group_id,
        group_name=root.group_name,
        thread_id=thread_id,
    )


def _members(messages, exclude: str) -> List[str]:
    members = []
    for message in reversed(messages):
        for member in (message.sender_id, message.recipient_id):
            if member and member != exclude and member not in members:
                members.append(member)
    return members


def list_messages(backend, user: Claims, thread_id: Optional[str] = None, group_id: Optional[str] = None):
    messages = accessor(backend, "messages").list(thread_id=thread_id, group_id=group_id)
    return [m for m in messages if user.id in (m.sender_id, m.recipient_id)]


def list_groups(backend, user: Claims) -> List[dict]:
    groups: Dict[str, dict] = {}
    for message in list_messages(backend, user):
        if not (message.is_group and message.group_id):
            continue
        group = groups.setdefault(
            message.group_id,
            {"id": message.group_id, "name": message.group_name or "Group Chat", "created_at": message.created_at, "members": []},
        )
        group["created_at"] = min(group["created_at"], message.created_at)
        member = message.recipient_id if message.sender_id == user.id else message.sender_id
        if member and member not in group["members"]:
            group["members"].append(member)
    return list(groups.values())


# ---------- Calendar ----------

def create_event(backend, user: Claims, payload: EventCreate) -> CalendarEvent:
    now = utcnow()
    event = CalendarEvent(
        id=new_id(),
        date=payload.start_time.date(),
        owner_id=user.id,
        owner_name=user.display_name,
        created_at=now,
        updated_at=now,
        **payload.model_dump(),
    )
    return accessor(backend, "events").create(event)


def update_event(backend, event_id: str, payload: EventUpdate) -> CalendarEvent:
    changes = changes_from(payload)
    if payload.start_time is not None:
        changes["date"] = payload.start_time.date()
    return accessor(backend, "events").update(event_id, changes)


def filter_events(
    events: List[CalendarEvent],
    start: Optional[date] = None,
    end: Optional[date] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> List[CalendarEvent]:
    """An explicit start/end range wins over month/year when both are given."""
    if start and end:
        return [e for e in events if e.date and start <= e.date <= end]
    if month and year:
        return [e for e in events if e.date and e.date.month == month and e.date.year == year]
    return events


# ---------- Tasks & documents ----------

def create_task(backend, user: Claims, payload: TaskCreate) -> Task:
    now = utcnow()
    task = Task(id=new_id(), created_by=user.id, created_at=now, updated_at=now, **payload.model_dump())
    return accessor(backend, "tasks").create(task)


def create_document(backend, user: Claims, payload: DocumentCreate) -> Document:
    now = utcnow()
    fields = payload.model_dump()
    fields["original_filename"] = fields["original_filename"] or payload.filename
    fields["storage_path"] = fields["storage_path"] or f"/uploads/{payload.filename}"
    document = Document(id=new_id(), uploaded_by=user.id, created_at=now, updated_at=now, **fields)
    return accessor(backend, "documents").create(document)


# ---------- CRM ----------

def _normalize_email(email: Optional[str]) -> Optional[str]:
    return str(email).strip().lower() if email else email


def _ensure_unique_contact_email(backend, email: Optional[str], contact_id: Optional[str] = None) -> None:
    if not email:
        return
    existing = backend.repository("crm_contacts").find_one(email=email)
    if existing is not None and existing.id != contact_id:
        raise Conflict("A contact with this email already exists")


def create_contact(backend, user: Claims, payload: CrmContactCreate) -> CrmContact:
    fields = payload.model_dump()
    fields["email"] = _normalize_email(fields["email"])
    _ensure_unique_contact_email(backend, fields["email"])
    now = utcnow()
    contact = CrmContact(id=new_id(), created_by=user.id, created_at=now, updated_at=now, **fields)
    return accessor(backend, "crm_contacts").create(contact)


def update_contact(backend, contact_id: str, changes: dict) -> CrmContact:
    if "email" in changes:
        changes["email"] = _normalize_email(changes["email"])
    _ensure_unique_contact_email(backend, changes.get("email"), contact_id)
    return accessor(backend, "crm_contacts").update(contact_id, changes)


def create_interaction(backend, user: Claims, payload: CrmInteractionCreate) -> CrmInteraction:
    now = utcnow()
    fields = payload.model_dump()
    fields["occurred_at"] = as_utc(fields["occurred_at"]) or now
    interaction = CrmInteraction(id=new_id(), user_id=user.id, created_at=now, **fields)
    return accessor(backend, "crm_interactions").create(interaction)


def update_interaction(backend, interaction_id: str, changes: dict) -> CrmInteraction:
    if "occurred_at" in changes:
        changes["occurred_at"] = as_utc(changes["occurred_at"])
    return accessor(backend, "crm_interactions").update(interaction_id, changes)


def create_opportunity(backend, user: Claims, payload: CrmOpportunityCreate) -> CrmOpportunity:
    now = utcnow()
    opportunity = CrmOpportunity(id=new_id(), assigned_to=user.id, created_at=now, updated_at=now, **payload.model_dump())
    return accessor(backend, "crm_opportunities").create(opportunity)


# ---------- Public submissions ----------

def submit_contact(backend, notifier, payload: ContactSubmissionCreate) -> Tuple[ContactSubmission, Optional[str]]:
    """
    Store the submission, then notify by email. A failed notification does not
    undo the write; it comes back as a warning for the caller.
    """
    submission = ContactSubmission(id=new_id(), created_at=utcnow(), **payload.model_dump(mode="json"))
    backend.repository("contact_submissions").insert(submission)
    try:
        notifier.send_contact(submission)
    except NotificationFailed as exc:
        logger.warning("Contact submission %s stored but notification failed: %s", submission.id, exc)
        return submission, "Your message was saved but the notification email could not be sent"
    return submission, None


# ---------- Assistant ----------

def ask_assistant(backend, user: Claims, query: str) -> str:
    response = assistant.answer(query)
    if backend.persistent:
        interaction = AiInteraction(id=new_id(), user_id=user.id, query=query, response=response, created_at=utcnow())
        backend.repository("ai_interactions").insert(interaction)
    return response


def assistant_history(backend, user: Claims) -> List[AiInteraction]:
    if not backend.persistent:
        return []
    return backend.repository("ai_interactions").list(limit=AI_HISTORY_LIMIT, user_id=user.id)
