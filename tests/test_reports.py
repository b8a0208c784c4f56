import csv
import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from conftest import department, severity
from ova.services import reports as svc
from ova.services.excel_export import build_occurrence_report_excel
from ova.services.occurrences import refer_occurrences


@pytest.fixture()
def dataset(db, make_user, make_occurrence, taxonomy):
    qa = make_user("QUALITY_ASSURANCE", "Quality")
    a = make_occurrence(qa,
                        occurrence_date=datetime(2025, 1, 10),
                        is_patient_involve=True,
                        mrn="1111111111")
    b = make_occurrence(None,
                        incident=taxonomy["verbal"],
                        occurrence_date=datetime(2025, 2, 10))
    c = make_occurrence(qa, occurrence_date=datetime(2025, 3, 10))
    refer_occurrences(db,
                      occurrence_ids=[a.id, c.id],
                      department_ids=[department(db, "Nursing").id],
                      message=None,
                      user=qa)
    return {"a": a, "b": b, "c": c}


def _counts(rows):
    return {r["name"]: r["count"] for r in rows}


class TestSummary:

    def test_newest_first(self, db, dataset):
        out = svc.summary_report(db, svc.ReportFilters())
        assert [o.id for o in out] == [
            dataset["c"].id, dataset["b"].id, dataset["a"].id
        ]

    def test_filters(self, db, dataset, taxonomy):
        f = svc.ReportFilters(date_from=datetime(2025, 2, 1),
                              date_to=datetime(2025, 2, 28))
        assert [o.id for o in svc.summary_report(db, f)] == [dataset["b"].id]

        f = svc.ReportFilters(patient_involved=True)
        assert [o.id for o in svc.summary_report(db, f)] == [dataset["a"].id]

        f = svc.ReportFilters(
            department_ids=[department(db, "Nursing").id],
            severity_ids=[severity(db, "HIGH").id])
        assert len(svc.summary_report(db, f)) == 2

        f = svc.ReportFilters(incident_ids=[taxonomy["verbal"].id])
        assert len(svc.summary_report(db, f)) == 1


class TestStatistics:

    def test_grouped_counts(self, db, dataset):
        stats = svc.report_statistics(db, svc.ReportFilters())
        assert stats["total_occurrences"] == 3
        assert stats["patient_involved"] == 1
        assert _counts(stats["by_status"]) == {"ASSIGNED": 2, "OPEN": 1}
        assert _counts(stats["by_severity"]) == {"HIGH": 2, "LOW": 1}
        assert _counts(stats["by_department"]) == {"Nursing": 2}
        assert _counts(stats["by_incident"]) == {
            "Punching": 2,
            "Verbal Abuse": 1
        }
        assert stats["by_location"] == []

    def test_statistics_follow_filters(self, db, dataset):
        stats = svc.report_statistics(
            db, svc.ReportFilters(date_from=datetime(2025, 3, 1)))
        assert stats["total_occurrences"] == 1
        assert _counts(stats["by_severity"]) == {"HIGH": 1}

    def test_filter_options(self, db, taxonomy):
        opts = svc.filter_options(db)
        assert [s["name"] for s in opts["severities"]
                ] == ["LOW", "MEDIUM", "HIGH", "CRITICAL"]
        assert [i["name"] for i in opts["incidents"]
                ] == ["Physical Assault", "Verbal Abuse"]
        assert "Nursing" in {d["name"] for d in opts["departments"]}


class TestExport:

    def test_csv(self, db, dataset):
        text = svc.export_csv(svc.summary_report(db, svc.ReportFilters()))
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == svc.CSV_HEADERS
        assert len(rows) == 4
        oldest = rows[-1]
        assert oldest[0] == dataset["a"].occurrence_no
        assert oldest[6] == "1111111111"
        assert oldest[7] == "Yes"
        assert oldest[8] == "Nursing"
        assert rows[2][9] == "Anonymous"

    def test_json(self, db, dataset):
        f = svc.ReportFilters()
        out = svc.export_json(svc.summary_report(db, f),
                              svc.report_statistics(db, f))
        assert set(out) == {"export_date", "statistics", "occurrences"}
        assert out["statistics"]["total_occurrences"] == 3
        assert out["occurrences"][0]["Occurrence No"] == dataset[
            "c"].occurrence_no

    def test_excel(self, db, dataset):
        f = svc.ReportFilters()
        bio = io.BytesIO()
        build_occurrence_report_excel(bio, svc.summary_report(db, f),
                                      svc.report_statistics(db, f))
        bio.seek(0)
        wb = load_workbook(bio)
        assert wb.sheetnames == ["Occurrences", "Statistics"]
        ws = wb["Occurrences"]
        assert [c.value for c in ws[1]] == svc.CSV_HEADERS
        assert ws.max_row == 4
        assert wb["Statistics"]["B1"].value == 3
