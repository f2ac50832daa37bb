import json
import logging

from outreach.adapters.backend.client import BackendError
from outreach.services import analytics
from outreach.services.analytics import ProjectView, RequestGeneration, load_snapshot
from outreach.services.cache import TTLCache


class FakeClient:
    def __init__(self, contacts=None, activities=None, fail=()) -> None:
        self.contacts = contacts or []
        self.activities = activities or []
        self.fail = set(fail)
        self.calls = []

    def _maybe_fail(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise BackendError(f"{name} failed", status_code=503)

    def get_project(self, project_id):
        self._maybe_fail("project")
        return {"_id": project_id, "name": "Q1 Outreach"}

    def list_project_contacts(self, project_id):
        self._maybe_fail("contacts")
        return self.contacts

    def list_project_activities(self, project_id, limit=None):
        self._maybe_fail("activities")
        return self.activities

    def prospect_analytics(self, project_id=None):
        self._maybe_fail("analytics")
        return {
            "overview": {"totalProspects": 12},
            "funnels": {
                "coldCalling": {"scheme": "call-legacy", "prospectData": 12, "callSent": 7},
                "email": {"prospectData": 12, "emailSent": 5},
                "linkedin": {"scheme": "bogus"},
            },
        }

    def master_dashboard(self):
        self._maybe_fail("master")
        return {"executive": {"weightedConversionRate": 250, "slaCompliance": "88.5"}}

    def employee_performance(self, time_filter):
        self._maybe_fail("performance")
        return {"summary": {}, "employees": [{"userId": "u1", "filter": time_filter}]}


CONTACTS = [{"_id": "A"}, {"_id": "B"}]
ACTIVITIES = [
    {"type": "call", "contactId": "A", "callDate": "2026-01-05", "callStatus": "Interested"},
    {"type": "email", "contactId": "B", "emailDate": "2026-01-05"},
]


def test_snapshot_loads_all_parts() -> None:
    snapshot = load_snapshot(FakeClient(CONTACTS, ACTIVITIES), "p1")
    assert snapshot.project.name == "Q1 Outreach"
    assert len(snapshot.contacts) == 2
    assert len(snapshot.activities) == 2
    assert snapshot.failed is False


def test_failed_fetch_resolves_to_empty_state(caplog) -> None:
    client = FakeClient(CONTACTS, ACTIVITIES, fail={"activities"})
    with caplog.at_level(logging.ERROR):
        snapshot = load_snapshot(client, "p1")
    assert snapshot.failed is True
    assert snapshot.activities == []
    assert len(snapshot.contacts) == 2
    assert "project activities" in caplog.text


def test_view_classifies_loaded_snapshot() -> None:
    view = ProjectView(FakeClient(CONTACTS, ACTIVITIES))
    view.load("p1")

    assert view.funnel("call")["interested"] == 1
    assert view.funnel("email")["emailSent"] == 1
    assert view.funnel("call")["prospectData"] == 2
    assert [row.display_status for row in view.roster()] == ["New", "New"]


def test_stale_response_is_discarded() -> None:
    generation = RequestGeneration()

    class RacingClient(FakeClient):
        def list_project_activities(self, project_id, limit=None):
            # A newer request starts while this one is still in flight.
            generation.next()
            return super().list_project_activities(project_id, limit)

    view = ProjectView(RacingClient(CONTACTS, ACTIVITIES), generation=generation)
    assert view.load("p1") is None
    assert view.snapshot.contacts == []


def test_request_generation_tracks_latest_token() -> None:
    generation = RequestGeneration()
    first = generation.next()
    second = generation.next()
    assert not generation.is_current(first)
    assert generation.is_current(second)


def test_prospect_analytics_decodes_explicit_schemes() -> None:
    summary = analytics.prospect_analytics(FakeClient(), "p1")
    assert summary.sections["overview"] == {"totalProspects": 12}
    assert summary.funnels["coldCalling"].scheme.value == "call-legacy"
    assert summary.funnels["coldCalling"]["callSent"] == 7
    assert summary.funnels["email"]["emailSent"] == 5
    assert "linkedin" not in summary.funnels


def test_funnel_under_another_channel_is_skipped(caplog) -> None:
    payload = {
        "coldCalling": {"scheme": "email", "emailSent": 3},
        "linkedin": {"scheme": "linkedin", "connectionSent": 2},
    }
    with caplog.at_level(logging.WARNING):
        decoded = analytics.decode_funnels(payload)
    assert list(decoded) == ["linkedin"]
    assert decoded["linkedin"]["connectionSent"] == 2
    assert "does not belong to coldCalling" in caplog.text


def test_prospect_analytics_failure_is_none() -> None:
    assert analytics.prospect_analytics(FakeClient(fail={"analytics"})) is None


def test_master_kpis_are_clamped() -> None:
    payload = analytics.master_dashboard(FakeClient())
    kpis = dict(analytics.master_kpis(payload))
    assert kpis["Weighted conversion rate"] == 100
    assert kpis["SLA compliance"] == 88.5
    assert kpis["Email bounce rate"] == 0


def test_employee_performance_is_cached_per_filter() -> None:
    client = FakeClient()
    cache = TTLCache(ttl_seconds=60, clock=lambda: 0.0)

    analytics.employee_performance(client, "today", cache)
    analytics.employee_performance(client, "today", cache)
    analytics.employee_performance(client, "last7days", cache)

    assert client.calls == ["performance", "performance"]


def test_master_kpis_tolerate_oversized_numbers() -> None:
    payload = json.loads('{"executive": {"slaCompliance": 1' + "0" * 400 + "}}")
    kpis = dict(analytics.master_kpis(payload))
    assert kpis["SLA compliance"] == 0
