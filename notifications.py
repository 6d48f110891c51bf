"""Email notifications for the public contact and meeting-request forms, sent via Resend."""

import html
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import List, Optional
from zoneinfo import ZoneInfo

import httpx

from config import settings
from errors import NotificationFailed
from schemas import ContactSubmission, MeetingRequestCreate

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 20.0

ADVISOR_NAMES = {"edgar": "Edgar Smith", "alex": "Alex Smith"}
DISPLAY_TIMEZONE = ZoneInfo("America/Los_Angeles")

STYLE = """
      body { font-family: Georgia, serif; line-height: 1.6; color: #333; }
      .container { max-width: 600px; margin: 0 auto; padding: 20px; }
      .header { background: #111; color: white; padding: 30px; text-align: center; }
      .content { background: #ffffff; padding: 30px; border: 1px solid #e0e0e0; }
      .field { margin-bottom: 20px; }
      .label { font-weight: bold; color: #000; margin-bottom: 5px; }
      .value { color: #555; white-space: pre-wrap; }
      .footer { text-align: center; padding: 20px; color: #888; font-size: 14px; }
"""


def _field(label: str, value: Optional[str]) -> str:
    if not value:
        return ""
    return f'<div class="field"><div class="label">{label}:</div><div class="value">{html.escape(value)}</div></div>'


def _page(title: str, fields: str, footer: str) -> str:
    return (
        f"<html><head><style>{STYLE}</style></head><body><div class=\"container\">"
        f"<div class=\"header\"><h1>Beyond26 Investment Advisors</h1><p>{title}</p></div>"
        f"<div class=\"content\">{fields}</div>"
        f"<div class=\"footer\">{footer}</div>"
        "</div></body></html>"
    )


def _local(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(DISPLAY_TIMEZONE)


def advisor_names(advisors: List[str]) -> str:
    return " and ".join(ADVISOR_NAMES.get(a, ADVISOR_NAMES["alex"]) for a in advisors)


def render_contact_email(submission: ContactSubmission) -> str:
    fields = "".join(
        [
            _field("Name", submission.name),
            _field("Firm", submission.firm),
            _field("Email", submission.email),
            _field("Phone", submission.phone),
            _field("Message", submission.comments),
        ]
    )
    return _page("Message Received", fields, "<p>This message was sent via the website contact form.</p>")


def render_meeting_email(request: MeetingRequestCreate, advisors: List[str]) -> str:
    times = "".join(
        f"<li><strong>Option {i}:</strong> "
        f"{html.escape(_local(t).strftime('%A, %B %d, %Y %I:%M %p %Z'))}</li>"
        for i, t in enumerate(request.selected_times, start=1)
    )
    fields = "".join(
        [
            _field("Meeting With", advisor_names(advisors) or "Not specified"),
            _field("Requested By", request.name),
            _field("Email", str(request.email)),
            _field("Firm", request.firm),
            _field("Phone", request.phone),
            f'<div class="field"><div class="label">Suggested Meeting Times:</div><ul>{times}</ul></div>',
            _field("Notes", request.notes),
        ]
    )
    return _page(
        "Meeting Requested",
        fields,
        "<p>Please reply to this email to confirm one of the suggested times or propose an alternative.</p>",
    )


class EmailNotifier:
    """
    Posts one email per call to the Resend API.

    No retries: a failure raises ``NotificationFailed`` and it is up to the
    caller whether that fails the request.
    """

    def __init__(self, api_key: str, sender: str, recipients: List[str], transport: Optional[httpx.BaseTransport] = None):
        self.api_key = api_key
        self.sender = sender
        self.recipients = recipients
        self._transport = transport

    def send(self, subject: str, body: str, reply_to: Optional[str] = None) -> Optional[str]:
        if not self.api_key:
            logger.warning("RESEND_API_KEY not set; cannot send %r", subject)
            raise NotificationFailed("Email delivery is not configured")

        payload = {
            "from": f"Beyond26 Website <{self.sender}>",
            "to": self.recipients,
            "subject": subject,
            "html": body,
        }
        if reply_to:
            payload["reply_to"] = reply_to
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        try:
            with httpx.Client(timeout=RESEND_TIMEOUT_SECONDS, transport=self._transport) as client:
                response = client.post(RESEND_SEND_URL, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Resend connection error for %r: %s", subject, exc.__class__.__name__)
            raise NotificationFailed() from exc

        if not 200 <= response.status_code < 300:
            logger.warning("Resend error for %r: %s %s", subject, response.status_code, response.text[:200])
            raise NotificationFailed()

        email_id = response.json().get("id")
        logger.info("Email %r sent, id=%s", subject, email_id)
        return email_id

    def send_contact(self, submission: ContactSubmission) -> Optional[str]:
        return self.send("WEBSITE: Message Received", render_contact_email(submission), reply_to=submission.email)

    def send_meeting_request(self, request: MeetingRequestCreate) -> Optional[str]:
        advisors = request.advisors or ([request.advisor] if request.advisor else [])
        return self.send(
            "WEBSITE: Meeting Requested", render_meeting_email(request, advisors), reply_to=str(request.email)
        )


@lru_cache
def get_notifier() -> EmailNotifier:
    return EmailNotifier(settings.RESEND_API_KEY, settings.EMAIL_FROM, settings.email_recipients)
