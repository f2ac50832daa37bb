from __future__ import annotations

import csv
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from openpyxl import Workbook

from outreach.domain.funnels import FunnelStageCounts, stage_conversion
from outreach.domain.roster import ProspectRow

FUNNEL_HEADERS = ["stage", "label", "count", "conversion_pct"]
ROSTER_HEADERS = [
    "contact_id",
    "name",
    "company",
    "email",
    "first_phone",
    "priority",
    "display_status",
]


def funnel_rows(counts: FunnelStageCounts) -> list[dict[str, Any]]:
    conversion = stage_conversion(counts)
    return [
        {
            "stage": stage.key,
            "label": stage.label,
            "count": value,
            "conversion_pct": round(conversion.get(stage.key, 100.0 if value else 0.0), 1),
        }
        for stage, value in counts.rows()
    ]


def roster_rows(roster: Iterable[ProspectRow]) -> list[dict[str, Any]]:
    return [
        {
            "contact_id": row.contact.contact_id,
            "name": row.contact.name,
            "company": row.contact.company,
            "email": row.contact.email,
            "first_phone": row.contact.first_phone,
            "priority": row.contact.priority,
            "display_status": row.display_status,
        }
        for row in roster
    ]


def export_excel(
    funnels: Mapping[str, FunnelStageCounts],
    roster: Sequence[ProspectRow],
    out_path: Path,
) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    wb.remove(wb.active)

    for name, counts in funnels.items():
        ws = wb.create_sheet(title=f"funnel_{name}"[:31])
        _write_sheet(ws, FUNNEL_HEADERS, funnel_rows(counts))

    ws = wb.create_sheet(title="prospects")
    _write_sheet(ws, ROSTER_HEADERS, roster_rows(roster))
    wb.save(out_path)


def export_csv_tables(
    funnels: Mapping[str, FunnelStageCounts],
    roster: Sequence[ProspectRow],
    out_dir: Path,
) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for name, counts in funnels.items():
        path = out_dir / f"funnel_{name}.csv"
        _write_csv(path, FUNNEL_HEADERS, funnel_rows(counts))
        written.append(path)
    path = out_dir / "prospects.csv"
    _write_csv(path, ROSTER_HEADERS, roster_rows(roster))
    written.append(path)
    return written


def _write_csv(path: Path, headers: list[str], rows: list[dict[str, Any]]) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(headers)
        for row in rows:
            writer.writerow([row[h] for h in headers])


def _write_sheet(ws, headers: list[str], rows: list[dict[str, Any]]) -> None:
    ws.append(headers)
    for row in rows:
        ws.append([row[h] for h in headers])
