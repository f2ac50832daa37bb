from __future__ import annotations

from enum import Enum


class Channel(str, Enum):
    CALL = "call"
    EMAIL = "email"
    LINKEDIN = "linkedin"


class FunnelScheme(str, Enum):
    CALL = "call"
    CALL_LEGACY = "call-legacy"
    EMAIL = "email"
    LINKEDIN = "linkedin"


class StageKind(str, Enum):
    PROSPECTS = "prospects"
    ACTIVITY = "activity"
    HISTORY = "history"


class CallStatus(str, Enum):
    INTERESTED = "Interested"
    NOT_INTERESTED = "Not Interested"
    CALL_BACK = "Call Back"
    FUTURE = "Future"
    DETAILS_SHARED = "Details Shared"
    DEMO_BOOKED = "Demo Booked"
    DEMO_COMPLETED = "Demo Completed"
    EXISTING = "Existing"


class ActivityStatus(str, Enum):
    INTERESTED = "Interested"
    CIP = "CIP"
    MEETING_PROPOSED = "Meeting Proposed"
    MEETING_SCHEDULED = "Meeting Scheduled"
    MEETING_COMPLETED = "Meeting Completed"
    SQL = "SQL"
    WON = "WON"


class Granularity(str, Enum):
    DAY = "day"
    MONTH = "month"


DEFAULT_SCHEMES = {
    Channel.CALL: FunnelScheme.CALL,
    Channel.EMAIL: FunnelScheme.EMAIL,
    Channel.LINKEDIN: FunnelScheme.LINKEDIN,
}

# Keys used by the prospect-analytics payload for each channel's funnel.
ANALYTICS_FUNNEL_KEYS = {
    "coldCalling": Channel.CALL,
    "email": Channel.EMAIL,
    "linkedin": Channel.LINKEDIN,
}
