"""
Record and payload schemas.

Each record model is the single logical shape of one entity kind and maps to
one table (see models.py) or one in-process collection:
- User -> users
- Project -> projects
- Message -> messages
- CalendarEvent -> events
- Contract -> contracts
- Task -> tasks
- Document -> documents
- CrmContact -> crm_contacts
- CrmInteraction -> crm_interactions
- CrmOpportunity -> crm_opportunities
- ContactSubmission -> contact_submissions
- AiInteraction -> ai_interactions

Record fields without a column of their own form the entity's metadata bag and
are persisted together in the ``metadata`` JSON column.

Payload models accept both snake_case and the camelCase names the web client
sends (``dueDate``, ``assigneeId``, ...).
"""

import datetime as dt
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Role = Literal["admin", "employee", "client"]


# ---------- Identity ----------

class User(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role = "client"
    password_hash: str = Field(..., description="bcrypt hash, never returned to clients")


class UserView(BaseModel):
    id: str
    email: str
    role: Role
    name: str


class Claims(BaseModel):
    """Decoded token payload. A snapshot taken at login, never refreshed."""

    id: str
    email: str
    role: Role
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email


# ---------- Records ----------

class Project(BaseModel):
    id: str
    title: str
    status: str = "Active"
    owner_id: Optional[str] = None
    created_at: datetime
    # metadata bag
    client: Optional[str] = None
    deadline: Optional[str] = None
    team: Optional[List[str]] = None
    tasks: Optional[List[Dict[str, Any]]] = None
    type: Optional[str] = None
    progress: int = 0
    last_update: Optional[datetime] = None


class Message(BaseModel):
    id: str
    sender_id: str
    sender_name: str
    recipient_id: Optional[str] = None
    subject: str = ""
    body: str = ""
    read: bool = False
    created_at: datetime
    is_group: bool = False
    group_id: Optional[str] = None
    thread_id: str
    # metadata bag
    group_name: str = ""


class CalendarEvent(BaseModel):
    id: str
    title: str
    date: Optional[dt.date] = None
    attendees: List[str] = []
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    # metadata bag
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    all_day: bool = False
    description: str = ""
    location: str = ""
    color: str = "#000000"
    recurring: bool = False
    recurrence_rule: str = ""
    reminders: List[int] = [15]
    status: str = "confirmed"


class Contract(BaseModel):
    id: str
    title: Optional[str] = None
    status: str = "Draft"
    created_at: datetime
    # metadata bag
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    value: Optional[float] = None
    client: Optional[str] = None


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: str = "pending"
    priority: str = "medium"
    due_date: Optional[datetime] = None
    assignee_id: Optional[str] = None
    project_id: Optional[str] = None
    created_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    tags: List[str] = []
    created_at: datetime
    updated_at: datetime


class Document(BaseModel):
    id: str
    filename: str
    original_filename: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    category: str = "general"
    description: str = ""
    storage_path: str
    uploaded_by: Optional[str] = None
    access_level: str = "private"
    tags: List[str] = []
    confidential: bool = False
    project_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CrmContact(BaseModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    industry: Optional[str] = None
    source: Optional[str] = None
    status: str = "active"
    tags: List[str] = []
    notes: str = ""
    linkedin_url: str = ""
    website: str = ""
    address: str = ""
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CrmInteraction(BaseModel):
    id: str
    contact_id: Optional[str] = None
    user_id: Optional[str] = None
    type: str
    subject: Optional[str] = None
    content: Optional[str] = None
    direction: str = "outbound"
    email_message_id: Optional[str] = None
    calendar_event_id: Optional[str] = None
    project_id: Optional[str] = None
    metadata: Dict[str, Any] = {}
    occurred_at: datetime
    created_at: datetime


class CrmOpportunity(BaseModel):
    id: str
    contact_id: Optional[str] = None
    title: str
    description: str = ""
    value: Optional[float] = None
    probability: int = 50
    stage: str = "prospecting"
    expected_close_date: Optional[date] = None
    actual_close_date: Optional[date] = None
    assigned_to: Optional[str] = None
    source: str = ""
    tags: List[str] = []
    created_at: datetime
    updated_at: datetime


class ContactSubmission(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    firm: Optional[str] = None
    phone: Optional[str] = None
    comments: str = ""
    created_at: datetime


class AiInteraction(BaseModel):
    id: str
    user_id: str
    query: str
    response: str
    created_at: datetime


# ---------- Payloads ----------

def _utc(value):
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @field_validator("*")
    @classmethod
    def naive_datetimes_are_utc(cls, value):
        if isinstance(value, list):
            return [_utc(v) for v in value]
        return _utc(value)


class RegisterRequest(Payload):
    email: EmailStr
    password: str
    name: Optional[str] = None
    role: Role = "client"


class LoginRequest(Payload):
    email: str
    password: str


class ProjectCreate(Payload):
    title: str
    status: str = "Active"
    client: Optional[str] = None
    deadline: Optional[str] = None
    team: Optional[List[str]] = None
    tasks: Optional[List[Dict[str, Any]]] = None
    type: Optional[str] = None
    progress: int = 0


class ProjectUpdate(Payload):
    title: Optional[str] = None
    status: Optional[str] = None
    client: Optional[str] = None
    deadline: Optional[str] = None
    team: Optional[List[str]] = None
    tasks: Optional[List[Dict[str, Any]]] = None
    type: Optional[str] = None
    progress: Optional[int] = None


class MessageCreate(Payload):
    subject: str = ""
    body: str = ""
    recipients: List[str] = []
    is_group: bool = Field(False, alias="isGroup")
    group_name: str = Field("", alias="groupName")


class MessageReply(Payload):
    body: str = ""
    recipients: List[str] = []


class MessageUpdate(Payload):
    subject: Optional[str] = None
    body: Optional[str] = None
    read: Optional[bool] = None


class EventCreate(Payload):
    title: str
    start_time: datetime = Field(..., alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    all_day: bool = Field(False, alias="allDay")
    description: str = ""
    location: str = ""
    attendees: List[str] = []
    color: str = "#000000"
    recurring: bool = False
    recurrence_rule: str = Field("", alias="recurrenceRule")
    reminders: List[int] = [15]


class EventUpdate(Payload):
    title: Optional[str] = None
    start_time: Optional[datetime] = Field(None, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    all_day: Optional[bool] = Field(None, alias="allDay")
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: Optional[List[str]] = None
    color: Optional[str] = None
    recurring: Optional[bool] = None
    recurrence_rule: Optional[str] = Field(None, alias="recurrenceRule")
    reminders: Optional[List[int]] = None
    status: Optional[str] = None


class CalendarSyncRequest(Payload):
    auth_code: Optional[str] = Field(None, alias="authCode")


class ContractCreate(Payload):
    title: str
    status: str = "Draft"
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    value: Optional[float] = None
    client: Optional[str] = None


class ContractUpdate(Payload):
    title: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    value: Optional[float] = None
    client: Optional[str] = None


class TaskCreate(Payload):
    title: str
    description: Optional[str] = None
    status: str = "pending"
    priority: str = "medium"
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    assignee_id: Optional[str] = Field(None, alias="assigneeId")
    project_id: Optional[str] = Field(None, alias="projectId")
    tags: List[str] = []


class TaskUpdate(Payload):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    assignee_id: Optional[str] = Field(None, alias="assigneeId")
    project_id: Optional[str] = Field(None, alias="projectId")
    tags: Optional[List[str]] = None
    completed_at: Optional[datetime] = Field(None, alias="completedAt")


class DocumentCreate(Payload):
    filename: str
    original_filename: Optional[str] = Field(None, alias="originalFilename")
    file_size: Optional[int] = Field(None, alias="fileSize")
    mime_type: Optional[str] = Field(None, alias="mimeType")
    category: str = "general"
    description: str = ""
    storage_path: Optional[str] = Field(None, alias="storagePath")
    access_level: str = Field("private", alias="accessLevel")
    tags: List[str] = []
    confidential: bool = False
    project_id: Optional[str] = Field(None, alias="projectId")


class DocumentUpdate(Payload):
    category: Optional[str] = None
    description: Optional[str] = None
    access_level: Optional[str] = Field(None, alias="accessLevel")
    tags: Optional[List[str]] = None
    confidential: Optional[bool] = None
    project_id: Optional[str] = Field(None, alias="projectId")


class CrmContactCreate(Payload):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    industry: Optional[str] = None
    source: Optional[str] = None
    status: str = "active"
    tags: List[str] = []
    notes: str = ""
    linkedin_url: str = Field("", alias="linkedinUrl")
    website: str = ""
    address: str = ""


class CrmContactUpdate(Payload):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    industry: Optional[str] = None
    source: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    linkedin_url: Optional[str] = Field(None, alias="linkedinUrl")
    website: Optional[str] = None
    address: Optional[str] = None


class CrmInteractionCreate(Payload):
    contact_id: Optional[str] = Field(None, alias="contactId")
    type: str
    subject: Optional[str] = None
    content: Optional[str] = None
    direction: str = "outbound"
    email_message_id: Optional[str] = Field(None, alias="emailMessageId")
    calendar_event_id: Optional[str] = Field(None, alias="calendarEventId")
    project_id: Optional[str] = Field(None, alias="projectId")
    metadata: Dict[str, Any] = {}
    occurred_at: Optional[datetime] = Field(None, alias="occurredAt")


class CrmInteractionUpdate(Payload):
    type: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None
    direction: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    occurred_at: Optional[datetime] = Field(None, alias="occurredAt")


class CrmOpportunityCreate(Payload):
    contact_id: Optional[str] = Field(None, alias="contactId")
    title: str
    description: str = ""
    value: Optional[float] = None
    probability: int = Field(50, ge=0, le=100)
    stage: str = "prospecting"
    expected_close_date: Optional[date] = Field(None, alias="expectedCloseDate")
    source: str = ""
    tags: List[str] = []


class CrmOpportunityUpdate(Payload):
    title: Optional[str] = None
    description: Optional[str] = None
    value: Optional[float] = None
    probability: Optional[int] = Field(None, ge=0, le=100)
    stage: Optional[str] = None
    expected_close_date: Optional[date] = Field(None, alias="expectedCloseDate")
    actual_close_date: Optional[date] = Field(None, alias="actualCloseDate")
    assigned_to: Optional[str] = Field(None, alias="assignedTo")
    source: Optional[str] = None
    tags: Optional[List[str]] = None


class ContactSubmissionCreate(Payload):
    name: str
    email: EmailStr
    firm: Optional[str] = None
    phone: Optional[str] = None
    comments: str = ""


class MeetingRequestCreate(Payload):
    advisor: Optional[str] = None
    advisors: Optional[List[str]] = None
    name: str
    email: EmailStr
    phone: Optional[str] = None
    firm: Optional[str] = None
    notes: Optional[str] = None
    selected_times: List[datetime] = Field([], alias="selectedTimes")


class AiQueryRequest(Payload):
    query: str
