from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from outreach.domain import rules
from outreach.domain.models import Activity, Contact
from outreach.domain.stages import Channel

DEFAULT_STATUS = "New"


@dataclass(frozen=True)
class ProspectRow:
    contact: Contact
    display_status: str
    status_at: datetime | None


@dataclass(frozen=True)
class LatestStatus:
    status: str
    activity_date: datetime | None


def activity_date(activity: Activity) -> datetime | None:
    """Channel-specific date for the activity, falling back to ``createdAt``."""
    if activity.type == Channel.CALL.value and activity.call_date:
        parsed = rules.parse_timestamp(activity.call_date)
    elif activity.type == Channel.EMAIL.value and activity.email_date:
        parsed = rules.parse_timestamp(activity.email_date)
    elif activity.type == Channel.LINKEDIN.value and activity.linkedin_date:
        parsed = rules.parse_timestamp(activity.linkedin_date)
    else:
        parsed = None
    if parsed is None:
        parsed = rules.parse_timestamp(activity.created_at)
    return parsed


def _supersedes(candidate: datetime | None, existing: LatestStatus) -> bool:
    if candidate is None:
        return False
    if existing.activity_date is None:
        return True
    # Equal timestamps: the activity seen last wins.
    return candidate >= existing.activity_date


def latest_status_by_contact(activities: Iterable[Activity]) -> dict[str, LatestStatus]:
    latest: dict[str, LatestStatus] = {}
    for activity in activities:
        if not activity.contact_id or not rules.has_text(activity.status):
            continue
        when = activity_date(activity)
        existing = latest.get(activity.contact_id)
        if existing is None or _supersedes(when, existing):
            latest[activity.contact_id] = LatestStatus(activity.status, when)
    return latest


def prospect_roster(contacts: Sequence[Contact], activities: Iterable[Activity]) -> list[ProspectRow]:
    """Pair every contact with the status of its most recent activity.

    Falls back to the contact's own ``stage`` and then to ``"New"``.
    """
    latest = latest_status_by_contact(activities)
    rows: list[ProspectRow] = []
    for contact in contacts:
        entry = latest.get(contact.contact_id) if contact.contact_id else None
        if entry is not None:
            rows.append(ProspectRow(contact, entry.status, entry.activity_date))
        elif rules.has_text(contact.stage):
            rows.append(ProspectRow(contact, contact.stage, None))
        else:
            rows.append(ProspectRow(contact, DEFAULT_STATUS, None))
    return rows
