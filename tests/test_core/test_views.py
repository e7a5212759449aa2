"""Tests for core/views.py: projections and status grouping."""

from __future__ import annotations

import copy

from medilink.core.views import group_by_status, name_contains, project, search, status_is


def _rec(rid, status="upcoming", **fields):
    return {"id": rid, "status": status, **fields}


class TestGroupByStatus:
    def test_known_statuses_only(self):
        records = [_rec("a", "upcoming"), _rec("b", "past"), _rec("c", "done")]
        groups = group_by_status(records)
        assert groups == {"upcoming": [records[0]], "past": [records[1]]}

    def test_empty_buckets_present(self):
        assert group_by_status([]) == {"upcoming": [], "past": []}

    def test_status_match_is_exact(self):
        records = [_rec("a", "Upcoming"), _rec("b", " past"), _rec("c", "")]
        assert group_by_status(records) == {"upcoming": [], "past": []}

    def test_records_without_status_excluded(self):
        assert group_by_status([{"id": "a"}]) == {"upcoming": [], "past": []}

    def test_preserves_order_within_bucket(self):
        records = [_rec("a"), _rec("b", "past"), _rec("c"), _rec("d")]
        groups = group_by_status(records)
        assert [r["id"] for r in groups["upcoming"]] == ["a", "c", "d"]

    def test_custom_statuses(self):
        records = [_rec("a", "cancelled"), _rec("b", "past")]
        groups = group_by_status(records, ("cancelled",))
        assert groups == {"cancelled": [records[0]]}


class TestProject:
    def test_filters_in_order(self):
        records = [_rec("a"), _rec("b", "past"), _rec("c")]
        assert [r["id"] for r in project(records, status_is("upcoming"))] == ["a", "c"]

    def test_does_not_mutate_input(self):
        records = [_rec("a"), _rec("b", "past")]
        before = copy.deepcopy(records)
        project(records, status_is("past"))
        assert records == before

    def test_returns_new_list(self):
        records = [_rec("a")]
        result = project(records, lambda r: True)
        assert result == records
        assert result is not records


class TestNameSearch:
    def test_case_insensitive_substring(self):
        records = [
            {"id": "1", "name": "Dr. Achieng Otieno"},
            {"id": "2", "name": "Dr. Peter Kamau"},
        ]
        assert [r["id"] for r in project(records, name_contains("OTIENO"))] == ["1"]

    def test_matches_doctor_name_on_appointments(self):
        records = [_rec("a", doctor_name="Wanjiru"), _rec("b", doctor_name="Kiprop")]
        assert [r["id"] for r in search(records, "wan")] == ["a"]

    def test_blank_text_returns_everything(self):
        records = [{"id": "1", "name": "A"}, {"id": "2", "name": "B"}]
        assert search(records, "   ") == records

    def test_record_without_name_never_matches(self):
        assert search([{"id": "1"}], "a") == []
