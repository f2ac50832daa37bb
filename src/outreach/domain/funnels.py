"""Funnel stage table and the unique-contact reduction over it.

Every channel funnel is a row set in ``STAGES``. A contact joins a stage when
any of its activities (or, for ``history`` stages, its activities taken
together) satisfies the stage predicate. Stages are not exclusive: one
contact may be counted by several stages at once.
"""
from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from outreach.domain import rules
from outreach.domain.models import Activity
from outreach.domain.stages import (
    ActivityStatus,
    CallStatus,
    Channel,
    FunnelScheme,
    StageKind,
)

DEFAULT_SQL_NOTES_THRESHOLD = 50

CONNECTED_CALL_STATUSES = frozenset(
    {
        CallStatus.INTERESTED.value,
        CallStatus.NOT_INTERESTED.value,
        CallStatus.CALL_BACK.value,
        CallStatus.FUTURE.value,
        CallStatus.DETAILS_SHARED.value,
        CallStatus.DEMO_BOOKED.value,
        CallStatus.DEMO_COMPLETED.value,
        CallStatus.EXISTING.value,
    }
)
DECISION_MAKER_CALL_STATUSES = frozenset(
    {
        CallStatus.INTERESTED.value,
        CallStatus.DETAILS_SHARED.value,
        CallStatus.DEMO_BOOKED.value,
        CallStatus.DEMO_COMPLETED.value,
    }
)
LEGACY_ACCEPTED_CALL_STATUSES = frozenset(
    {
        CallStatus.INTERESTED.value,
        CallStatus.DETAILS_SHARED.value,
        CallStatus.DEMO_BOOKED.value,
    }
)
LEGACY_CIP_CALL_STATUSES = frozenset(
    {CallStatus.INTERESTED.value, CallStatus.CALL_BACK.value, CallStatus.FUTURE.value}
)
MEETING_ACTION_TERMS = ("meeting", "demo", "call")
ACCEPTED_STATUSES = frozenset(
    {
        ActivityStatus.INTERESTED.value,
        ActivityStatus.MEETING_PROPOSED.value,
        ActivityStatus.MEETING_SCHEDULED.value,
    }
)
SQL_STATUSES = frozenset({ActivityStatus.SQL.value, ActivityStatus.MEETING_COMPLETED.value})


@dataclass(frozen=True)
class FunnelRules:
    sql_notes_threshold: int = DEFAULT_SQL_NOTES_THRESHOLD


ActivityPredicate = Callable[[Activity, FunnelRules], bool]
HistoryPredicate = Callable[[Sequence[Activity]], bool]


@dataclass(frozen=True)
class StageDefinition:
    scheme: FunnelScheme
    channel: Channel
    key: str
    label: str
    description: str
    kind: StageKind
    matches: ActivityPredicate | None = None
    matches_history: HistoryPredicate | None = None


def _call_status_in(statuses: frozenset[str]) -> ActivityPredicate:
    return lambda activity, _: isinstance(activity.call_status, str) and activity.call_status in statuses


def _call_status_is(status: CallStatus) -> ActivityPredicate:
    return lambda activity, _: activity.call_status == status.value


def _status_in(statuses: frozenset[str]) -> ActivityPredicate:
    return lambda activity, _: isinstance(activity.status, str) and activity.status in statuses


def _status_is(status: ActivityStatus) -> ActivityPredicate:
    return lambda activity, _: activity.status == status.value


def _engaged_interest(activity: Activity, funnel_rules: FunnelRules) -> bool:
    return (
        activity.call_status == CallStatus.INTERESTED.value
        and rules.text_length(activity.conversation_notes) > funnel_rules.sql_notes_threshold
    )


def _call_sql(activity: Activity, funnel_rules: FunnelRules) -> bool:
    return (
        activity.call_status == CallStatus.DEMO_COMPLETED.value
        or _engaged_interest(activity, funnel_rules)
        or activity.status == ActivityStatus.SQL.value
    )


def _legacy_call_sql(activity: Activity, funnel_rules: FunnelRules) -> bool:
    return activity.call_status == CallStatus.DEMO_COMPLETED.value or _engaged_interest(
        activity, funnel_rules
    )


def _meeting_in_next_action(activity: Activity, _: FunnelRules) -> bool:
    if not isinstance(activity.next_action, str):
        return False
    action = activity.next_action.lower()
    return any(term in action for term in MEETING_ACTION_TERMS)


def _legacy_scheduled(activity: Activity, _: FunnelRules) -> bool:
    return activity.call_status == CallStatus.DEMO_BOOKED.value or bool(activity.next_action_date)


def _legacy_followups(history: Sequence[Activity]) -> bool:
    # The notes clause is subsumed by the count clause; kept as the legacy rule reads.
    with_notes = [a for a in history if rules.has_text(a.conversation_notes)]
    return len(with_notes) > 1 or len(history) > 1


def _repeated_touch(history: Sequence[Activity]) -> bool:
    return len(history) > 1


def _prospects(scheme: FunnelScheme, channel: Channel) -> StageDefinition:
    return StageDefinition(
        scheme,
        channel,
        "prospectData",
        "Prospect Data",
        "Total prospects in the project",
        StageKind.PROSPECTS,
    )


def _stage(
    scheme: FunnelScheme,
    channel: Channel,
    key: str,
    label: str,
    description: str,
    matches: ActivityPredicate,
) -> StageDefinition:
    return StageDefinition(scheme, channel, key, label, description, StageKind.ACTIVITY, matches)


def _history_stage(
    scheme: FunnelScheme,
    channel: Channel,
    key: str,
    label: str,
    description: str,
    matches_history: HistoryPredicate,
) -> StageDefinition:
    return StageDefinition(
        scheme, channel, key, label, description, StageKind.HISTORY, None, matches_history
    )


def _status_tail(scheme: FunnelScheme, channel: Channel) -> list[StageDefinition]:
    return [
        _stage(scheme, channel, "cip", "CIP", "Conversations in progress",
               _status_is(ActivityStatus.CIP)),
        _stage(scheme, channel, "meetingProposed", "Meeting Proposed", "Meetings proposed",
               _status_is(ActivityStatus.MEETING_PROPOSED)),
        _stage(scheme, channel, "scheduled", "Scheduled", "Meetings scheduled",
               _status_is(ActivityStatus.MEETING_SCHEDULED)),
        _stage(scheme, channel, "completed", "Completed", "Meetings completed",
               _status_is(ActivityStatus.MEETING_COMPLETED)),
        _stage(scheme, channel, "sql", "SQL", "Sales qualified leads", _status_in(SQL_STATUSES)),
    ]


def _build_stages() -> list[StageDefinition]:
    call = FunnelScheme.CALL
    legacy = FunnelScheme.CALL_LEGACY
    email = FunnelScheme.EMAIL
    linkedin = FunnelScheme.LINKEDIN
    return [
        _prospects(call, Channel.CALL),
        _stage(call, Channel.CALL, "callsAttempted", "Calls Attempted", "Calls dialled",
               lambda a, _: bool(a.call_date)),
        _stage(call, Channel.CALL, "callsConnected", "Calls Connected", "Calls answered",
               _call_status_in(CONNECTED_CALL_STATUSES)),
        _stage(call, Channel.CALL, "decisionMakerReached", "Decision Maker Reached",
               "Conversations with a decision maker",
               _call_status_in(DECISION_MAKER_CALL_STATUSES)),
        _stage(call, Channel.CALL, "interested", "Interested", "Prospects interested",
               _call_status_is(CallStatus.INTERESTED)),
        _stage(call, Channel.CALL, "detailsShared", "Details Shared", "Details sent after the call",
               _call_status_is(CallStatus.DETAILS_SHARED)),
        _stage(call, Channel.CALL, "demoBooked", "Demo Booked", "Demos booked",
               _call_status_is(CallStatus.DEMO_BOOKED)),
        _stage(call, Channel.CALL, "demoCompleted", "Demo Completed", "Demos completed",
               _call_status_is(CallStatus.DEMO_COMPLETED)),
        _stage(call, Channel.CALL, "sql", "SQL", "Sales qualified leads", _call_sql),
        _stage(call, Channel.CALL, "won", "Won", "Deals won", _status_is(ActivityStatus.WON)),
        _prospects(legacy, Channel.CALL),
        _stage(legacy, Channel.CALL, "callSent", "Call Sent", "Calls made to prospects",
               lambda a, _: bool(a.call_date)),
        _stage(legacy, Channel.CALL, "accepted", "Accepted", "Calls accepted",
               _call_status_in(LEGACY_ACCEPTED_CALL_STATUSES)),
        _history_stage(legacy, Channel.CALL, "followups", "Followups",
                       "Contacts with multiple calls", _legacy_followups),
        _stage(legacy, Channel.CALL, "cip", "CIP", "Conversations in progress",
               _call_status_in(LEGACY_CIP_CALL_STATUSES)),
        _stage(legacy, Channel.CALL, "meetingProposed", "Meeting Proposed", "Meetings proposed",
               _meeting_in_next_action),
        _stage(legacy, Channel.CALL, "scheduled", "Scheduled", "Meetings scheduled",
               _legacy_scheduled),
        _stage(legacy, Channel.CALL, "completed", "Completed", "Meetings completed",
               _call_status_is(CallStatus.DEMO_COMPLETED)),
        _stage(legacy, Channel.CALL, "sql", "SQL", "Sales qualified leads", _legacy_call_sql),
        _prospects(email, Channel.EMAIL),
        _stage(email, Channel.EMAIL, "emailSent", "Email Sent", "Emails sent to prospects",
               lambda a, _: bool(a.email_date)),
        _stage(email, Channel.EMAIL, "accepted", "Accepted", "Emails responded to",
               _status_in(ACCEPTED_STATUSES)),
        _history_stage(email, Channel.EMAIL, "followups", "Followups",
                       "Contacts with multiple emails", _repeated_touch),
        *_status_tail(email, Channel.EMAIL),
        _prospects(linkedin, Channel.LINKEDIN),
        _stage(linkedin, Channel.LINKEDIN, "connectionSent", "Connection Sent",
               "Connection requests sent", lambda a, _: rules.is_yes(a.ln_request_sent)),
        _stage(linkedin, Channel.LINKEDIN, "accepted", "Accepted", "Connections accepted",
               lambda a, _: rules.is_yes(a.connected)),
        _history_stage(linkedin, Channel.LINKEDIN, "followups", "Followups",
                       "Contacts with multiple messages", _repeated_touch),
        *_status_tail(linkedin, Channel.LINKEDIN),
    ]


STAGES: tuple[StageDefinition, ...] = tuple(_build_stages())

SCHEME_CHANNELS = {
    FunnelScheme.CALL: Channel.CALL,
    FunnelScheme.CALL_LEGACY: Channel.CALL,
    FunnelScheme.EMAIL: Channel.EMAIL,
    FunnelScheme.LINKEDIN: Channel.LINKEDIN,
}


def stages_for(scheme: FunnelScheme | str) -> list[StageDefinition]:
    scheme = FunnelScheme(scheme)
    return [stage for stage in STAGES if stage.scheme == scheme]


def stage_keys(scheme: FunnelScheme | str) -> list[str]:
    return [stage.key for stage in stages_for(scheme)]


def get_stage(scheme: FunnelScheme | str, key: str) -> StageDefinition:
    for stage in stages_for(scheme):
        if stage.key == key:
            return stage
    raise rules.ValidationError(
        f"stage must be one of: {', '.join(stage_keys(scheme))}"
    )


@dataclass(frozen=True)
class FunnelStageCounts:
    scheme: FunnelScheme
    counts: dict[str, int] = field(default_factory=dict)

    def __getitem__(self, key: str) -> int:
        return self.counts[key]

    def get(self, key: str, default: int = 0) -> int:
        return self.counts.get(key, default)

    @property
    def prospects(self) -> int:
        return self.counts.get("prospectData", 0)

    def rows(self) -> list[tuple[StageDefinition, int]]:
        return [(stage, self.counts.get(stage.key, 0)) for stage in stages_for(self.scheme)]

    def as_dict(self) -> dict[str, Any]:
        return {"scheme": self.scheme.value, **self.counts}

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], default_scheme: FunnelScheme | str
    ) -> FunnelStageCounts:
        """Decode a pre-aggregated funnel that names its scheme explicitly.

        Payloads without a ``scheme`` field are read with ``default_scheme``.
        Stage keys missing from the payload count as zero.
        """
        scheme = FunnelScheme(payload.get("scheme") or default_scheme)
        counts: dict[str, int] = {}
        for key in stage_keys(scheme):
            value = rules.to_number(payload.get(key))
            counts[key] = int(value) if value is not None and math.isfinite(value) and value > 0 else 0
        return cls(scheme=scheme, counts=counts)


def channel_activities(activities: Iterable[Activity], channel: Channel | str) -> list[Activity]:
    channel = Channel(channel)
    return [activity for activity in activities if activity.type == channel.value]


def group_by_contact(activities: Iterable[Activity]) -> dict[str, list[Activity]]:
    grouped: dict[str, list[Activity]] = {}
    for activity in activities:
        if not activity.contact_id:
            continue
        grouped.setdefault(activity.contact_id, []).append(activity)
    return grouped


def _activity_members(
    stages: Sequence[StageDefinition],
    activities: Iterable[Activity],
    funnel_rules: FunnelRules,
) -> dict[str, set[str]]:
    members: dict[str, set[str]] = {stage.key: set() for stage in stages}
    for activity in activities:
        if not activity.contact_id:
            continue
        for stage in stages:
            if stage.matches(activity, funnel_rules):
                members[stage.key].add(activity.contact_id)
    return members


def _history_members(stage: StageDefinition, grouped: dict[str, list[Activity]]) -> set[str]:
    return {cid for cid, history in grouped.items() if stage.matches_history(history)}


def _stage_members(
    stage: StageDefinition,
    activities: Sequence[Activity],
    grouped: dict[str, list[Activity]],
    funnel_rules: FunnelRules,
) -> set[str]:
    if stage.kind == StageKind.HISTORY:
        return _history_members(stage, grouped)
    return _activity_members([stage], activities, funnel_rules)[stage.key]


def classify(
    contacts: Sequence[Any],
    activities: Iterable[Activity],
    scheme: FunnelScheme | str = FunnelScheme.CALL,
    funnel_rules: FunnelRules | None = None,
) -> FunnelStageCounts:
    """Count the distinct contacts reaching each stage of ``scheme``.

    Only activities of the scheme's channel are considered and activities
    without a contact are skipped. ``prospectData`` is ``len(contacts)``.
    """
    scheme = FunnelScheme(scheme)
    funnel_rules = funnel_rules or FunnelRules()
    relevant = channel_activities(activities, SCHEME_CHANNELS[scheme])
    grouped = group_by_contact(relevant)
    stages = stages_for(scheme)

    members = _activity_members(
        [stage for stage in stages if stage.kind == StageKind.ACTIVITY], relevant, funnel_rules
    )

    counts: dict[str, int] = {}
    for stage in stages:
        if stage.kind == StageKind.PROSPECTS:
            counts[stage.key] = len(contacts)
        elif stage.kind == StageKind.HISTORY:
            counts[stage.key] = len(_history_members(stage, grouped))
        else:
            counts[stage.key] = len(members[stage.key])
    return FunnelStageCounts(scheme=scheme, counts=counts)


def stage_contact_ids(
    activities: Iterable[Activity],
    scheme: FunnelScheme | str,
    key: str,
    funnel_rules: FunnelRules | None = None,
) -> set[str]:
    stage = get_stage(scheme, key)
    if stage.kind == StageKind.PROSPECTS:
        return set()
    relevant = channel_activities(activities, stage.channel)
    return _stage_members(
        stage, relevant, group_by_contact(relevant), funnel_rules or FunnelRules()
    )


def stage_activities(
    activities: Iterable[Activity],
    scheme: FunnelScheme | str,
    key: str,
    funnel_rules: FunnelRules | None = None,
) -> list[Activity]:
    """Return the activities behind a stage, in input order.

    For ``history`` stages every activity of a qualifying contact is returned.
    The ``prospectData`` stage has no activities; use the prospect roster.
    """
    stage = get_stage(scheme, key)
    funnel_rules = funnel_rules or FunnelRules()
    relevant = channel_activities(activities, stage.channel)
    if stage.kind == StageKind.PROSPECTS:
        return []
    if stage.kind == StageKind.HISTORY:
        members = _stage_members(stage, relevant, group_by_contact(relevant), funnel_rules)
        return [activity for activity in relevant if activity.contact_id in members]
    return [
        activity
        for activity in relevant
        if activity.contact_id and stage.matches(activity, funnel_rules)
    ]


def stage_conversion(counts: FunnelStageCounts) -> dict[str, float]:
    """Share of prospects reaching each stage, as clamped percentages."""
    return {
        stage.key: rules.rate(value, counts.prospects)
        for stage, value in counts.rows()
        if stage.kind != StageKind.PROSPECTS
    }
