from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, TypeVar

from outreach.adapters.backend.client import DEFAULT_ACTIVITY_LIMIT, BackendClient, BackendError
from outreach.domain import funnels
from outreach.domain.funnels import SCHEME_CHANNELS, FunnelRules, FunnelStageCounts
from outreach.domain.models import (
    Activity,
    Contact,
    Project,
    activities_from_payload,
    contacts_from_payload,
)
from outreach.domain.roster import ProspectRow, prospect_roster
from outreach.domain.rules import clamp_percentage
from outreach.domain.stages import ANALYTICS_FUNNEL_KEYS, DEFAULT_SCHEMES, FunnelScheme
from outreach.services.cache import TTLCache

LOGGER = logging.getLogger(__name__)

TIME_FILTERS = ("today", "last7days", "lastMonth")

T = TypeVar("T")


@dataclass(frozen=True)
class ProjectSnapshot:
    project_id: str | None
    project: Project | None = None
    contacts: list[Contact] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)
    failed: bool = False

    @classmethod
    def empty(cls, project_id: str | None = None) -> ProjectSnapshot:
        return cls(project_id=project_id)


@dataclass(frozen=True)
class AnalyticsSummary:
    funnels: dict[str, FunnelStageCounts]
    sections: dict[str, Any]


def _fetch(label: str, call: Callable[[], T]) -> tuple[T | None, bool]:
    try:
        return call(), False
    except BackendError as exc:
        LOGGER.error("Error fetching %s: %s", label, exc)
        return None, True


def load_snapshot(
    client: BackendClient,
    project_id: str,
    activity_limit: int | None = DEFAULT_ACTIVITY_LIMIT,
) -> ProjectSnapshot:
    """Fetch project, contacts and activities together.

    Failed or unsuccessful responses leave that part empty; the snapshot is
    marked ``failed`` when any request raised.
    """
    with ThreadPoolExecutor(max_workers=3) as pool:
        project_future = pool.submit(_fetch, "project", lambda: client.get_project(project_id))
        contacts_future = pool.submit(
            _fetch, "project contacts", lambda: client.list_project_contacts(project_id)
        )
        activities_future = pool.submit(
            _fetch,
            "project activities",
            lambda: client.list_project_activities(project_id, limit=activity_limit),
        )
        project_payload, project_failed = project_future.result()
        contacts_payload, contacts_failed = contacts_future.result()
        activities_payload, activities_failed = activities_future.result()

    project = Project.from_payload(project_payload) if isinstance(project_payload, dict) else None
    contacts = contacts_from_payload(contacts_payload)
    activities = activities_from_payload(activities_payload)
    LOGGER.debug(
        "Loaded project %s: %d contacts, %d activities",
        project_id,
        len(contacts),
        len(activities),
    )
    return ProjectSnapshot(
        project_id=project_id,
        project=project,
        contacts=contacts,
        activities=activities,
        failed=project_failed or contacts_failed or activities_failed,
    )


class RequestGeneration:
    """Hands out increasing tokens; only the newest token is current."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current = 0

    def next(self) -> int:
        with self._lock:
            self._current += 1
            return self._current

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._current


class ProjectView:
    """Holds the latest applied snapshot for one selected project at a time."""

    def __init__(
        self,
        client: BackendClient,
        activity_limit: int | None = DEFAULT_ACTIVITY_LIMIT,
        funnel_rules: FunnelRules | None = None,
        generation: RequestGeneration | None = None,
    ) -> None:
        self.client = client
        self.activity_limit = activity_limit
        self.funnel_rules = funnel_rules or FunnelRules()
        self.generation = generation or RequestGeneration()
        self.snapshot = ProjectSnapshot.empty()

    def load(self, project_id: str) -> ProjectSnapshot | None:
        token = self.generation.next()
        snapshot = load_snapshot(self.client, project_id, self.activity_limit)
        if not self.generation.is_current(token):
            LOGGER.info("Discarding stale response for project %s", project_id)
            return None
        self.snapshot = snapshot
        return snapshot

    def funnel(self, scheme: FunnelScheme | str = FunnelScheme.CALL) -> FunnelStageCounts:
        return funnels.classify(
            self.snapshot.contacts, self.snapshot.activities, scheme, self.funnel_rules
        )

    def stage_activities(self, scheme: FunnelScheme | str, key: str) -> list[Activity]:
        return funnels.stage_activities(self.snapshot.activities, scheme, key, self.funnel_rules)

    def roster(self) -> list[ProspectRow]:
        return prospect_roster(self.snapshot.contacts, self.snapshot.activities)


def decode_funnels(payload: Any) -> dict[str, FunnelStageCounts]:
    decoded: dict[str, FunnelStageCounts] = {}
    if not isinstance(payload, dict):
        return decoded
    for name, channel in ANALYTICS_FUNNEL_KEYS.items():
        raw = payload.get(name)
        if not isinstance(raw, dict):
            continue
        try:
            counts = FunnelStageCounts.from_payload(raw, DEFAULT_SCHEMES[channel])
        except ValueError:
            LOGGER.warning("Unknown funnel scheme %r for %s", raw.get("scheme"), name)
            continue
        if SCHEME_CHANNELS[counts.scheme] != channel:
            LOGGER.warning("Funnel scheme %s does not belong to %s", counts.scheme.value, name)
            continue
        decoded[name] = counts
    return decoded


def prospect_analytics(client: BackendClient, project_id: str | None = None) -> AnalyticsSummary | None:
    payload, _ = _fetch("prospect analytics", lambda: client.prospect_analytics(project_id))
    if not isinstance(payload, dict):
        return None
    sections = {key: value for key, value in payload.items() if key != "funnels"}
    return AnalyticsSummary(funnels=decode_funnels(payload.get("funnels")), sections=sections)


def list_projects(client: BackendClient) -> list[Project] | None:
    payload, _ = _fetch("projects", client.list_projects)
    if not isinstance(payload, list):
        return None
    return [Project.from_payload(item) for item in payload if isinstance(item, dict)]


def master_dashboard(client: BackendClient) -> dict[str, Any] | None:
    payload, _ = _fetch("master dashboard", client.master_dashboard)
    return payload if isinstance(payload, dict) else None


def employee_performance(
    client: BackendClient, time_filter: str, cache: TTLCache
) -> dict[str, Any] | None:
    def _load() -> dict[str, Any] | None:
        payload, _ = _fetch(
            "employee performance", lambda: client.employee_performance(time_filter)
        )
        return payload if isinstance(payload, dict) else None

    return cache.get_or_load(time_filter, _load)


MASTER_KPIS = (
    ("Weighted conversion rate", ("executive", "weightedConversionRate")),
    ("SLA compliance", ("executive", "slaCompliance")),
    ("LinkedIn acceptance rate", ("linkedin", "acceptanceRate")),
    ("LinkedIn reply rate", ("linkedin", "replyRate")),
    ("Cold call connect rate", ("coldCall", "connectRate")),
    ("Email reply rate", ("email", "replyRate")),
    ("Email bounce rate", ("email", "bounceRate")),
    ("Valid email", ("dataQuality", "validEmailPercent")),
    ("Valid phone", ("dataQuality", "validPhonePercent")),
    ("Duplicates", ("dataQuality", "duplicatePercent")),
    ("Data quality score", ("dataQuality", "dataQualityScore")),
)


def _dig(payload: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


def master_kpis(payload: dict[str, Any] | None) -> list[tuple[str, float]]:
    """Percentage KPIs of the master dashboard, each passed through the clamp."""
    return [(label, clamp_percentage(_dig(payload, path) or 0)) for label, path in MASTER_KPIS]
