from __future__ import annotations

from typing import Any, Dict, Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from ova.models.occurrence import Occurrence
from ova.services.reports import CSV_HEADERS, occurrence_row


def _bold_header(ws, headers) -> None:
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)


def build_occurrence_report_excel(fp, occurrences: Iterable[Occurrence],
                                  statistics: Dict[str, Any]) -> None:
    """
    Two sheets: one row per occurrence, then the grouped counts.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Occurrences"

    _bold_header(ws, CSV_HEADERS)
    for o in occurrences:
        ws.append(occurrence_row(o))

    for col in range(1, len(CSV_HEADERS) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 18
    ws.column_dimensions[get_column_letter(len(CSV_HEADERS))].width = 60
    ws.freeze_panes = "A2"

    st = wb.create_sheet("Statistics")
    st.append(["Total occurrences", statistics.get("total_occurrences", 0)])
    st.append(["Patient involved", statistics.get("patient_involved", 0)])

    for key, title in (
        ("by_status", "Status"),
        ("by_severity", "Severity"),
        ("by_department", "Department"),
        ("by_location", "Location"),
        ("by_incident", "Incident"),
    ):
        st.append([])
        st.append([title, "Count"])
        st.cell(row=st.max_row, column=1).font = Font(bold=True)
        st.cell(row=st.max_row, column=2).font = Font(bold=True)
        for r in statistics.get(key) or []:
            st.append([r["name"], r["count"]])

    st.column_dimensions["A"].width = 40
    st.column_dimensions["B"].width = 12

    wb.save(fp)
