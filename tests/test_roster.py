from datetime import UTC, datetime

from outreach.domain.models import Activity, Contact
from outreach.domain.roster import activity_date, latest_status_by_contact, prospect_roster


def _activity(**fields) -> Activity:
    return Activity.from_payload(fields)


def test_activity_date_prefers_channel_date() -> None:
    call = _activity(type="call", callDate="2026-01-05", createdAt="2026-02-01")
    email_without_date = _activity(type="email", callDate="2026-01-05", createdAt="2026-02-01")
    undated = _activity(type="linkedin")

    assert activity_date(call) == datetime(2026, 1, 5, tzinfo=UTC)
    assert activity_date(email_without_date) == datetime(2026, 2, 1, tzinfo=UTC)
    assert activity_date(undated) is None


def test_latest_status_wins_and_ties_go_to_last_seen() -> None:
    activities = [
        _activity(type="email", contactId="A", emailDate="2026-01-10", status="CIP"),
        _activity(type="call", contactId="A", callDate="2026-01-03", status="Interested"),
        _activity(type="linkedin", contactId="B", linkedinDate="2026-01-04", status="CIP"),
        _activity(type="linkedin", contactId="B", linkedinDate="2026-01-04", status="Meeting Proposed"),
        _activity(type="call", contactId="B", callDate="2026-01-09", status="  "),
    ]

    latest = latest_status_by_contact(activities)

    assert latest["A"].status == "CIP"
    assert latest["B"].status == "Meeting Proposed"


def test_dated_activity_replaces_undated_status() -> None:
    activities = [
        _activity(type="call", contactId="A", status="Interested"),
        _activity(type="call", contactId="A", callDate="2026-01-01", status="WON"),
        _activity(type="call", contactId="A", status="Lost"),
    ]
    assert latest_status_by_contact(activities)["A"].status == "WON"


def test_roster_falls_back_to_stage_then_new() -> None:
    contacts = [
        Contact.from_payload({"_id": "A", "name": "Ann", "stage": "Prospect"}),
        Contact.from_payload({"_id": "B", "name": "Bo", "stage": "Qualified"}),
        Contact.from_payload({"_id": "C", "name": "Cy"}),
    ]
    activities = [_activity(type="call", contactId="A", callDate="2026-01-01", status="SQL")]

    rows = prospect_roster(contacts, activities)

    assert [row.display_status for row in rows] == ["SQL", "Qualified", "New"]
    assert rows[0].status_at == datetime(2026, 1, 1, tzinfo=UTC)
