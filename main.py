import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import services
from auth import get_current_user, issue_token, register_user, verify_credentials
from config import settings
from errors import ApiError, BadRequest, NotificationFailed
from notifications import EmailNotifier, get_notifier
from schemas import (
    AiQueryRequest,
    CalendarSyncRequest,
    Claims,
    ContactSubmissionCreate,
    ContractCreate,
    ContractUpdate,
    CrmContactCreate,
    CrmContactUpdate,
    CrmInteractionCreate,
    CrmInteractionUpdate,
    CrmOpportunityCreate,
    CrmOpportunityUpdate,
    DocumentCreate,
    DocumentUpdate,
    EventCreate,
    EventUpdate,
    LoginRequest,
    MeetingRequestCreate,
    MessageCreate,
    MessageReply,
    MessageUpdate,
    ProjectCreate,
    ProjectUpdate,
    RegisterRequest,
    TaskCreate,
    TaskUpdate,
)
from services import accessor, changes_from
from storage import Backend, get_backend

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("api")

STARTED_AT = time.monotonic()
CALENDAR_PROVIDERS = ("google", "outlook", "apple")


class BodySizeLimit:
    """
    Rejects request bodies larger than ``max_bytes`` with 413.

    A declared Content-Length is checked up front. Streamed (chunked) bodies
    are read and counted before the app sees them, then replayed.
    """

    def __init__(self, app, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = dict(scope["headers"]).get(b"content-length", b"")
        if length.isdigit() and int(length) > self.max_bytes:
            await self._reject(scope, receive, send)
            return

        buffered = []
        received = 0
        while True:
            message = await receive()
            buffered.append(message)
            if message["type"] != "http.request":
                break
            received += len(message.get("body", b""))
            if received > self.max_bytes:
                await self._reject(scope, receive, send)
                return
            if not message.get("more_body", False):
                break

        async def replay():
            if buffered:
                return buffered.pop(0)
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(self, scope, receive, send):
        response = JSONResponse(status_code=413, content={"error": "Payload too large"})
        await response(scope, receive, send)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.check_secrets()
    logger.info("Starting in %s mode", settings.ENV)
    yield


app = FastAPI(title="Beyond26 Advisors API", lifespan=lifespan)

app.add_middleware(BodySizeLimit, max_bytes=settings.MAX_BODY_BYTES)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Middleware ----------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# ---------- Error handlers ----------

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors(), exclude={"ctx", "input"})},
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


router = APIRouter()


# ---------- Public endpoints ----------

@router.get("/health")
def health():
    return {
        "ok": True,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - STARTED_AT,
        "environment": settings.ENV,
    }


@router.post("/contact")
def submit_contact(
    payload: ContactSubmissionCreate,
    backend: Backend = Depends(get_backend),
    notifier: EmailNotifier = Depends(get_notifier),
):
    _, warning = services.submit_contact(backend, notifier, payload)
    if warning:
        return {"ok": True, "message": "Contact form submitted", "warning": warning}
    return {"ok": True, "message": "Contact form submitted and email sent successfully"}


@router.post("/meeting-request")
def meeting_request(payload: MeetingRequestCreate, notifier: EmailNotifier = Depends(get_notifier)):
    try:
        notifier.send_meeting_request(payload)
    except NotificationFailed as exc:
        raise NotificationFailed("Failed to process meeting request") from exc
    return {"ok": True, "message": "Meeting request sent successfully"}


# ---------- Auth endpoints ----------

@router.post("/auth/register")
def register(payload: RegisterRequest, backend: Backend = Depends(get_backend)):
    register_user(backend, payload)
    return {"ok": True}


@router.post("/auth/login")
def login(payload: LoginRequest, backend: Backend = Depends(get_backend)):
    user = verify_credentials(backend, payload.email, payload.password)
    return {"token": issue_token(user), "user": user}


@router.get("/auth/profile")
def profile(user: Claims = Depends(get_current_user)):
    return {"user": user}


# ---------- Projects ----------

@router.get("/projects")
def list_projects(user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"projects": accessor(backend, "projects").list()}


@router.post("/projects")
def create_project(payload: ProjectCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"project": services.create_project(backend, user, payload)}


@router.put("/projects/{project_id}")
def update_project(
    project_id: str, payload: ProjectUpdate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    return {"project": accessor(backend, "projects").update(project_id, changes_from(payload))}


@router.delete("/projects/{project_id}")
def delete_project(project_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "projects").delete(project_id)
    return {"ok": True}


# ---------- Messages ----------

@router.get("/messages")
def list_messages(
    thread_id: Optional[str] = None,
    group_id: Optional[str] = None,
    user: Claims = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    return {"messages": services.list_messages(backend, user, thread_id=thread_id, group_id=group_id)}


@router.get("/messages/groups")
def list_message_groups(user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"groups": services.list_groups(backend, user)}


@router.post("/messages")
def send_message(payload: MessageCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    messages, group = services.send_message(backend, user, payload)
    body = {"message": messages[0]}
    if group:
        body["group"] = group
    return body


@router.post("/messages/{thread_id}/reply")
def reply_to_thread(
    thread_id: str, payload: MessageReply, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    replies = services.reply_to_thread(backend, user, thread_id, payload)
    return {"message": replies[0] if replies else None}


@router.put("/messages/{message_id}/read")
def mark_message_read(message_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "messages").update(message_id, {"read": True})
    return {"ok": True}


@router.put("/messages/{message_id}")
def update_message(
    message_id: str, payload: MessageUpdate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    return {"message": accessor(backend, "messages").update(message_id, changes_from(payload))}


@router.delete("/messages/{message_id}")
def delete_message(message_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "messages").delete(message_id)
    return {"ok": True}


# ---------- Calendar ----------

@router.get("/calendar")
def list_events(
    start: Optional[date] = None,
    end: Optional[date] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    user: Claims = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    events = accessor(backend, "events").list()
    return {"events": services.filter_events(events, start=start, end=end, month=month, year=year)}


@router.get("/calendar/{event_id}")
def get_event(event_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"event": accessor(backend, "events").get(event_id)}


@router.post("/calendar")
def create_event(payload: EventCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"event": services.create_event(backend, user, payload)}


@router.put("/calendar/{event_id}")
def update_event(
    event_id: str, payload: EventUpdate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    return {"event": services.update_event(backend, event_id, payload)}


@router.delete("/calendar/{event_id}")
def delete_event(event_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "events").delete(event_id)
    return {"ok": True}


@router.post("/calendar/sync/{provider}")
def sync_calendar(provider: str, payload: CalendarSyncRequest, user: Claims = Depends(get_current_user)):
    # Simulated: no provider is contacted and no events are imported.
    if provider not in CALENDAR_PROVIDERS:
        raise BadRequest(f"Unsupported calendar provider: {provider}")
    return {
        "status": "connected",
        "provider": provider,
        "message": f"Successfully connected to {provider} calendar",
        "last_sync": datetime.now(timezone.utc).isoformat(),
    }


# ---------- Contracts ----------

@router.get("/contracts")
def list_contracts(user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"contracts": accessor(backend, "contracts").list()}


@router.post("/contracts")
def create_contract(payload: ContractCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"contract": services.create_contract(backend, payload)}


@router.put("/contracts/{contract_id}")
def update_contract(
    contract_id: str, payload: ContractUpdate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    return {"contract": accessor(backend, "contracts").update(contract_id, changes_from(payload))}


@router.delete("/contracts/{contract_id}")
def delete_contract(contract_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "contracts").delete(contract_id)
    return {"ok": True}


# ---------- Tasks ----------

@router.get("/tasks")
def list_tasks(
    status: Optional[str] = None,
    assignee_id: Optional[str] = None,
    project_id: Optional[str] = None,
    user: Claims = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    tasks = accessor(backend, "tasks").list(status=status, assignee_id=assignee_id, project_id=project_id)
    return {"tasks": tasks}


@router.post("/tasks")
def create_task(payload: TaskCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"task": services.create_task(backend, user, payload)}


@router.put("/tasks/{task_id}")
def update_task(task_id: str, payload: TaskUpdate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"task": accessor(backend, "tasks").update(task_id, changes_from(payload))}


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "tasks").delete(task_id)
    return {"ok": True}


# ---------- Documents ----------

@router.get("/documents")
def list_documents(
    category: Optional[str] = None,
    project_id: Optional[str] = None,
    user: Claims = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    return {"documents": accessor(backend, "documents").list(category=category, project_id=project_id)}


@router.get("/documents/{document_id}")
def get_document(document_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"document": accessor(backend, "documents").get(document_id)}


@router.post("/documents")
def create_document(payload: DocumentCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"document": services.create_document(backend, user, payload)}


@router.put("/documents/{document_id}")
def update_document(
    document_id: str, payload: DocumentUpdate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    return {"document": accessor(backend, "documents").update(document_id, changes_from(payload))}


@router.delete("/documents/{document_id}")
def delete_document(document_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "documents").delete(document_id)
    return {"ok": True}


# ---------- CRM ----------

@router.get("/crm/contacts")
def list_crm_contacts(user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"contacts": accessor(backend, "crm_contacts").list()}


@router.post("/crm/contacts")
def create_crm_contact(payload: CrmContactCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"contact": services.create_contact(backend, user, payload)}


@router.put("/crm/contacts/{contact_id}")
def update_crm_contact(
    contact_id: str, payload: CrmContactUpdate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    return {"contact": services.update_contact(backend, contact_id, changes_from(payload))}


@router.delete("/crm/contacts/{contact_id}")
def delete_crm_contact(contact_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "crm_contacts").delete(contact_id)
    return {"ok": True}


@router.get("/crm/interactions")
def list_crm_interactions(
    contact_id: Optional[str] = None,
    contactId: Optional[str] = None,
    user: Claims = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    interactions = accessor(backend, "crm_interactions").list(contact_id=contact_id or contactId)
    return {"interactions": interactions}


@router.post("/crm/interactions")
def create_crm_interaction(
    payload: CrmInteractionCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    return {"interaction": services.create_interaction(backend, user, payload)}


@router.put("/crm/interactions/{interaction_id}")
def update_crm_interaction(
    interaction_id: str,
    payload: CrmInteractionUpdate,
    user: Claims = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    return {"interaction": services.update_interaction(backend, interaction_id, changes_from(payload))}


@router.delete("/crm/interactions/{interaction_id}")
def delete_crm_interaction(interaction_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "crm_interactions").delete(interaction_id)
    return {"ok": True}


@router.get("/crm/opportunities")
def list_crm_opportunities(
    contact_id: Optional[str] = None,
    contactId: Optional[str] = None,
    stage: Optional[str] = None,
    user: Claims = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    opportunities = accessor(backend, "crm_opportunities").list(contact_id=contact_id or contactId, stage=stage)
    return {"opportunities": opportunities}


@router.post("/crm/opportunities")
def create_crm_opportunity(
    payload: CrmOpportunityCreate, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)
):
    return {"opportunity": services.create_opportunity(backend, user, payload)}


@router.put("/crm/opportunities/{opportunity_id}")
def update_crm_opportunity(
    opportunity_id: str,
    payload: CrmOpportunityUpdate,
    user: Claims = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    return {"opportunity": accessor(backend, "crm_opportunities").update(opportunity_id, changes_from(payload))}


@router.delete("/crm/opportunities/{opportunity_id}")
def delete_crm_opportunity(opportunity_id: str, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    accessor(backend, "crm_opportunities").delete(opportunity_id)
    return {"ok": True}


# ---------- AI assistant ----------

@router.post("/ai/query")
def ai_query(payload: AiQueryRequest, user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"response": services.ask_assistant(backend, user, payload.query)}


@router.get("/ai/history")
def ai_history(user: Claims = Depends(get_current_user), backend: Backend = Depends(get_backend)):
    return {"history": services.assistant_history(backend, user)}


app.include_router(router, prefix=settings.API_PREFIX)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", settings.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
