from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

CONTACT_FIELDS = ("_id", "name", "company", "email", "firstPhone", "stage", "priority")
ACTIVITY_FIELDS = (
    "_id",
    "type",
    "contactId",
    "callDate",
    "callStatus",
    "conversationNotes",
    "nextAction",
    "nextActionDate",
    "emailDate",
    "linkedinDate",
    "lnRequestSent",
    "connected",
    "status",
    "createdAt",
)


def normalize_id(value: Any) -> str | None:
    """Return a string id for raw ids, numbers or populated ``{"_id": ...}`` refs."""
    if isinstance(value, dict):
        value = value.get("_id", value.get("id"))
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _extra(payload: dict[str, Any], known: tuple[str, ...]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in known}


@dataclass(frozen=True)
class Contact:
    contact_id: str | None
    name: str | None = None
    company: str | None = None
    email: str | None = None
    first_phone: str | None = None
    stage: str | None = None
    priority: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Contact:
        return cls(
            contact_id=normalize_id(payload.get("_id")),
            name=payload.get("name"),
            company=payload.get("company"),
            email=payload.get("email"),
            first_phone=payload.get("firstPhone"),
            stage=payload.get("stage"),
            priority=payload.get("priority"),
            extra=_extra(payload, CONTACT_FIELDS),
        )


@dataclass(frozen=True)
class Activity:
    type: str | None
    contact_id: str | None
    activity_id: str | None = None
    call_date: Any = None
    call_status: str | None = None
    conversation_notes: str | None = None
    next_action: str | None = None
    next_action_date: Any = None
    email_date: Any = None
    linkedin_date: Any = None
    ln_request_sent: Any = None
    connected: Any = None
    status: str | None = None
    created_at: Any = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Activity:
        return cls(
            type=payload.get("type"),
            contact_id=normalize_id(payload.get("contactId")),
            activity_id=normalize_id(payload.get("_id")),
            call_date=payload.get("callDate"),
            call_status=payload.get("callStatus"),
            conversation_notes=payload.get("conversationNotes"),
            next_action=payload.get("nextAction"),
            next_action_date=payload.get("nextActionDate"),
            email_date=payload.get("emailDate"),
            linkedin_date=payload.get("linkedinDate"),
            ln_request_sent=payload.get("lnRequestSent"),
            connected=payload.get("connected"),
            status=payload.get("status"),
            created_at=payload.get("createdAt"),
            extra=_extra(payload, ACTIVITY_FIELDS),
        )


@dataclass(frozen=True)
class Project:
    project_id: str | None
    name: str | None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Project:
        return cls(
            project_id=normalize_id(payload.get("_id")),
            name=payload.get("name") or payload.get("projectName"),
            raw=dict(payload),
        )


def contacts_from_payload(items: Any) -> list[Contact]:
    if not isinstance(items, list):
        return []
    return [Contact.from_payload(item) for item in items if isinstance(item, dict)]


def activities_from_payload(items: Any) -> list[Activity]:
    if not isinstance(items, list):
        return []
    return [Activity.from_payload(item) for item in items if isinstance(item, dict)]
