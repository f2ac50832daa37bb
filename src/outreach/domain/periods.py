from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from outreach.domain.funnels import (
    SCHEME_CHANNELS,
    FunnelRules,
    FunnelStageCounts,
    channel_activities,
    classify,
)
from outreach.domain.models import Activity
from outreach.domain.roster import activity_date
from outreach.domain.stages import FunnelScheme, Granularity


def period_key(when: datetime, granularity: Granularity | str) -> str:
    if Granularity(granularity) == Granularity.DAY:
        return when.strftime("%Y-%m-%d")
    return when.strftime("%Y-%m")


def bucket_by_period(
    activities: Iterable[Activity], granularity: Granularity | str
) -> dict[str, list[Activity]]:
    buckets: dict[str, list[Activity]] = {}
    for activity in activities:
        when = activity_date(activity)
        if when is None:
            continue
        buckets.setdefault(period_key(when, granularity), []).append(activity)
    return dict(sorted(buckets.items()))


def breakdown_by_period(
    contacts: Sequence[Any],
    activities: Iterable[Activity],
    scheme: FunnelScheme | str = FunnelScheme.CALL,
    granularity: Granularity | str = Granularity.MONTH,
    funnel_rules: FunnelRules | None = None,
) -> dict[str, FunnelStageCounts]:
    """Classify each day or month of a channel's activity on its own.

    Undated activities are dropped. Contacts are counted once per period
    and stage; ``prospectData`` stays the project total in every period.
    """
    scheme = FunnelScheme(scheme)
    relevant = channel_activities(activities, SCHEME_CHANNELS[scheme])
    return {
        period: classify(contacts, bucket, scheme, funnel_rules)
        for period, bucket in bucket_by_period(relevant, granularity).items()
    }
