import csv
from pathlib import Path

from openpyxl import load_workbook

from outreach.domain.funnels import FunnelStageCounts
from outreach.domain.models import Contact
from outreach.domain.roster import ProspectRow
from outreach.services.exports import export_csv_tables, export_excel, funnel_rows


def _funnels() -> dict[str, FunnelStageCounts]:
    return {
        "email": FunnelStageCounts.from_payload(
            {"prospectData": 4, "emailSent": 2, "accepted": 1}, "email"
        )
    }


def _roster() -> list[ProspectRow]:
    contact = Contact.from_payload({"_id": "A", "name": "Ann", "company": "Acme"})
    return [ProspectRow(contact=contact, display_status="CIP", status_at=None)]


def test_funnel_rows_carry_conversion() -> None:
    rows = {row["stage"]: row for row in funnel_rows(_funnels()["email"])}
    assert rows["prospectData"]["conversion_pct"] == 100.0
    assert rows["emailSent"]["conversion_pct"] == 50.0
    assert rows["accepted"]["conversion_pct"] == 25.0
    assert rows["sql"]["count"] == 0


def test_export_csv_tables(tmp_path: Path) -> None:
    written = export_csv_tables(_funnels(), _roster(), tmp_path / "out")

    assert [path.name for path in written] == ["funnel_email.csv", "prospects.csv"]
    with written[1].open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert rows[0]["name"] == "Ann"
    assert rows[0]["display_status"] == "CIP"


def test_export_excel(tmp_path: Path) -> None:
    out_path = tmp_path / "funnels.xlsx"
    export_excel(_funnels(), _roster(), out_path)

    wb = load_workbook(out_path)
    assert wb.sheetnames == ["funnel_email", "prospects"]
    funnel_sheet = wb["funnel_email"]
    assert [cell.value for cell in funnel_sheet[1]] == ["stage", "label", "count", "conversion_pct"]
    assert funnel_sheet["A2"].value == "prospectData"
    assert funnel_sheet["C2"].value == 4
    assert wb["prospects"]["B2"].value == "Ann"
