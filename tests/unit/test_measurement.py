"""Unit tests for measurement aggregation."""

from __future__ import annotations

from decimal import Decimal

from bmcalc.measurement import entries_for_export, filter_entries, group_by_code, summarize
from bmcalc.models import Period


class TestFilterEntries:
    def test_contractor_substring_case_insensitive(self, make_entry):
        entries = [make_entry(), make_entry(contractor="PAVIMENTA S.A.")]

        assert len(filter_entries(entries, contractor="pavimenta")) == 1

    def test_inclusive_period(self, make_entry):
        entries = [make_entry(date=d) for d in ("2024-02-29", "2024-03-01", "2024-03-31", "2024-04-01")]

        selected = filter_entries(entries, period=Period(start="2024-03-01", end="2024-03-31"))

        assert [entry.date for entry in selected] == ["2024-03-01", "2024-03-31"]

    def test_open_bounds(self, make_entry):
        entries = [make_entry(date="2024-01-01"), make_entry(date="2024-12-31")]

        assert len(filter_entries(entries, period=Period(start="2024-06-01"))) == 1
        assert len(filter_entries(entries, period=Period())) == 2


class TestSummarize:
    """Test per-contractor rollup."""

    def test_two_contractors_sorted_by_total(self, make_entry):
        entries = [
            make_entry(total_value=Decimal("100.00")),
            make_entry(contractor="PAVIMENTA S.A.", total_value=Decimal("700.00"), date="2024-03-05"),
            make_entry(total_value=Decimal("50.00"), date="2024-03-10"),
        ]

        summaries = summarize(entries)

        assert [s.contractor for s in summaries] == ["PAVIMENTA S.A.", "CONSTRUTORA EXEMPLO LTDA"]
        assert summaries[0].total_value == Decimal("700.00")
        assert summaries[1].total_value == Decimal("150.00")
        assert summaries[1].period == Period(start="2024-03-01", end="2024-03-10")
        assert summaries[1].job_site == "SP-055"

    def test_explicit_period_used_as_bounds(self, make_entry):
        summaries = summarize(
            [make_entry(date="2024-03-05")],
            period=Period(start="2024-03-01", end="2024-03-31"),
        )

        assert summaries[0].period == Period(start="2024-03-01", end="2024-03-31")

    def test_empty(self):
        assert summarize([]) == []


class TestGroupByCode:
    def test_sums_per_code_sorted(self, make_entry):
        rollups = group_by_code(
            [
                make_entry(code="TER-10", quantity=Decimal("2"), total_value=Decimal("64.00")),
                make_entry(),
                make_entry(quantity=Decimal("5"), total_value=Decimal("227.50")),
            ]
        )

        assert [rollup.code for rollup in rollups] == ["BSO-01", "TER-10"]
        assert rollups[0].quantity == Decimal("15")
        assert rollups[0].total_value == Decimal("682.50")
        assert rollups[0].unit_price == Decimal("45.50")


class TestEntriesForExport:
    def test_ordered_by_date_contractor_code(self, make_entry):
        summaries = summarize(
            [
                make_entry(date="2024-03-02", code="B"),
                make_entry(date="2024-03-01", code="Z"),
                make_entry(date="2024-03-01", code="A", contractor="ALFA LTDA"),
            ]
        )

        rows = entries_for_export(summaries)

        assert [(row.date, row.code) for row in rows] == [
            ("2024-03-01", "A"),
            ("2024-03-01", "Z"),
            ("2024-03-02", "B"),
        ]
