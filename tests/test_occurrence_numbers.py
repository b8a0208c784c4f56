from datetime import datetime

import pytest

from ova.models import Occurrence, OccurrenceStatus
from ova.services.occurrence_numbers import (
    _seq_of,
    next_occurrence_no,
    year_prefix,
)

JAN_2025 = datetime(2025, 1, 15, 9, 0)


def _insert(db, taxonomy, occurrence_no):
    status = db.query(OccurrenceStatus).filter(
        OccurrenceStatus.name == "OPEN").one()
    db.add(
        Occurrence(occurrence_no=occurrence_no,
                   description="Seeded for numbering",
                   incident_id=taxonomy["verbal"].id,
                   status_id=status.id))
    db.commit()


class TestYearPrefix:

    def test_two_digit_year(self):
        assert year_prefix(JAN_2025) == "OCC25-"

    def test_custom_prefix(self):
        assert year_prefix(datetime(2031, 6, 1), "INC") == "INC31-"


class TestSeqOf:

    @pytest.mark.parametrize("value,expected", [
        ("OCC25-0007", 7),
        ("OCC25-10000", 10000),
        ("OCC25", 0),
        ("OCC25-abc", 0),
    ])
    def test_parse(self, value, expected):
        assert _seq_of(value) == expected


class TestNextOccurrenceNo:

    def test_first_of_year(self, db):
        assert next_occurrence_no(db, now=JAN_2025) == "OCC25-0001"

    def test_increments_highest(self, db, taxonomy):
        _insert(db, taxonomy, "OCC25-0001")
        _insert(db, taxonomy, "OCC25-0041")
        assert next_occurrence_no(db, now=JAN_2025) == "OCC25-0042"

    def test_other_years_ignored(self, db, taxonomy):
        _insert(db, taxonomy, "OCC24-0999")
        assert next_occurrence_no(db, now=JAN_2025) == "OCC25-0001"

    def test_resets_on_new_year(self, db, taxonomy):
        _insert(db, taxonomy, "OCC25-0120")
        assert next_occurrence_no(db, now=datetime(2026, 1,
                                                   1)) == "OCC26-0001"

    def test_past_padding_width(self, db, taxonomy):
        """OCC25-10000 sorts below OCC25-9999 as text; it must still win."""
        _insert(db, taxonomy, "OCC25-9999")
        _insert(db, taxonomy, "OCC25-10000")
        assert next_occurrence_no(db, now=JAN_2025) == "OCC25-10001"

    def test_create_assigns_number(self, db, make_occurrence):
        first = make_occurrence()
        second = make_occurrence()
        yp = year_prefix()
        assert first.occurrence_no == f"{yp}0001"
        assert second.occurrence_no == f"{yp}0002"
