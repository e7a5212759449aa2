"""Tests for the appointments command group."""

from __future__ import annotations

import json
from pathlib import Path

from medilink.core.ids import validate_id
from medilink.storage.fs import atomic_write


def _book(invoke_json, doctor: str = "Jane Mwangi", *extra: str) -> dict:
    parsed, code = invoke_json(
        "appointments", "book",
        "--doctor", doctor,
        "--date", "2026-11-02",
        "--time", "10:30",
        *extra,
    )
    assert code == 0, parsed
    return parsed["data"]


class TestBook:
    def test_book_json(self, invoke_json) -> None:
        data = _book(invoke_json, "Jane Mwangi", "--notes", "Bring X-rays")
        assert validate_id(data["id"], "doc")
        assert data["doctor_name"] == "Jane Mwangi"
        assert data["appointment_date"] == "2026-11-02"
        assert data["appointment_time"] == "10:30"
        assert data["notes"] == "Bring X-rays"
        assert data["status"] == "upcoming"
        assert data["timestamp"].endswith("Z")

    def test_book_writes_document_in_store_fields(self, invoke_json, initialized_root: Path) -> None:
        data = _book(invoke_json)
        path = initialized_root / ".medilink" / "collections" / "appointments" / f"{data['id']}.json"
        body = json.loads(path.read_text())
        assert body["doctorName"] == "Jane Mwangi"
        assert body["appointmentDate"] == "2026-11-02"
        assert "id" not in body

    def test_book_human(self, invoke) -> None:
        result = invoke(
            "appointments", "book",
            "--doctor", "Ali Hassan", "--date", "2026-12-01", "--time", "09:00",
        )
        assert result.exit_code == 0
        assert "Booked appointment doc_" in result.output
        assert "Dr. Ali Hassan" in result.output

    def test_book_quiet(self, invoke) -> None:
        result = invoke(
            "appointments", "book",
            "--doctor", "Ali Hassan", "--date", "2026-12-01", "--time", "09:00",
            "--quiet",
        )
        assert result.exit_code == 0
        assert validate_id(result.output.strip(), "doc")

    def test_book_invalid_status(self, invoke_json) -> None:
        parsed, code = invoke_json(
            "appointments", "book",
            "--doctor", "Ali Hassan", "--date", "2026-12-01", "--time", "09:00",
            "--status", "cancelled",
        )
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_STATUS"


class TestList:
    def test_empty_groups(self, invoke_json) -> None:
        parsed, code = invoke_json("appointments", "list")
        assert code == 0
        assert parsed["data"] == {"upcoming": [], "past": []}

    def test_empty_human(self, invoke) -> None:
        result = invoke("appointments", "list")
        assert result.exit_code == 0
        assert "Upcoming (0)" in result.output
        assert "No upcoming appointments." in result.output
        assert "No past appointments." in result.output

    def test_groups_by_status(self, invoke_json) -> None:
        upcoming = _book(invoke_json, "Jane Mwangi")
        past = _book(invoke_json, "Ali Hassan", "--status", "past")

        parsed, _ = invoke_json("appointments", "list")
        assert [r["id"] for r in parsed["data"]["upcoming"]] == [upcoming["id"]]
        assert [r["id"] for r in parsed["data"]["past"]] == [past["id"]]

    def test_status_filter_returns_list(self, invoke_json) -> None:
        _book(invoke_json, "Jane Mwangi")
        past = _book(invoke_json, "Ali Hassan", "--status", "past")

        parsed, code = invoke_json("appointments", "list", "--status", "past")
        assert code == 0
        assert [r["id"] for r in parsed["data"]] == [past["id"]]

    def test_status_filter_human_empty(self, invoke) -> None:
        result = invoke("appointments", "list", "--status", "past")
        assert result.exit_code == 0
        assert "No past appointments." in result.output

    def test_invalid_status(self, invoke_json) -> None:
        parsed, code = invoke_json("appointments", "list", "--status", "cancelled")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_STATUS"

    def test_search_is_case_insensitive(self, invoke_json) -> None:
        jane = _book(invoke_json, "Jane Mwangi")
        _book(invoke_json, "Ali Hassan")

        parsed, _ = invoke_json("appointments", "list", "--search", "MWANGI")
        assert [r["id"] for r in parsed["data"]["upcoming"]] == [jane["id"]]

    def test_malformed_document_is_skipped(self, invoke_json, initialized_root: Path) -> None:
        good = _book(invoke_json)
        bad = initialized_root / ".medilink" / "collections" / "appointments" / "broken.json"
        atomic_write(bad, json.dumps({"doctorName": 42, "status": "upcoming", "timestamp": 1}))

        parsed, code = invoke_json("appointments", "list")
        assert code == 0
        assert [r["id"] for r in parsed["data"]["upcoming"]] == [good["id"]]


class TestUpdate:
    def test_update_fields(self, invoke_json) -> None:
        booked = _book(invoke_json)
        parsed, code = invoke_json(
            "appointments", "update", booked["id"],
            "--date", "2026-11-09", "--notes", "Fasting",
        )
        assert code == 0
        assert parsed["data"]["appointment_date"] == "2026-11-09"
        assert parsed["data"]["appointment_time"] == "10:30"
        assert parsed["data"]["notes"] == "Fasting"

        listed, _ = invoke_json("appointments", "list", "--status", "upcoming")
        assert listed["data"][0]["appointment_date"] == "2026-11-09"
        assert listed["data"][0]["notes"] == "Fasting"

    def test_update_human(self, invoke_json, invoke) -> None:
        booked = _book(invoke_json)
        result = invoke("appointments", "update", booked["id"], "--time", "11:00")
        assert result.exit_code == 0
        assert f"Updated appointment {booked['id']}" in result.output

    def test_update_requires_changes(self, invoke_json) -> None:
        booked = _book(invoke_json)
        parsed, code = invoke_json("appointments", "update", booked["id"])
        assert code == 1
        assert parsed["error"]["code"] == "NO_CHANGES"

    def test_update_unknown_id(self, invoke_json) -> None:
        parsed, code = invoke_json("appointments", "update", "doc_missing", "--notes", "x")
        assert code == 1
        assert parsed["error"]["code"] == "NOT_FOUND"


class TestDelete:
    def test_delete(self, invoke_json) -> None:
        booked = _book(invoke_json)
        parsed, code = invoke_json("appointments", "delete", booked["id"])
        assert code == 0
        assert parsed["data"] == {"id": booked["id"], "deleted": True}

        listed, _ = invoke_json("appointments", "list")
        assert listed["data"] == {"upcoming": [], "past": []}

    def test_delete_human(self, invoke_json, invoke) -> None:
        booked = _book(invoke_json)
        result = invoke("appointments", "delete", booked["id"])
        assert result.exit_code == 0
        assert f"Deleted appointment {booked['id']}" in result.output

    def test_delete_unknown_id(self, invoke_json) -> None:
        parsed, code = invoke_json("appointments", "delete", "doc_missing")
        assert code == 1
        assert parsed["error"]["code"] == "NOT_FOUND"


class TestWatch:
    def test_watch_prints_initial_snapshot(self, invoke_json, invoke) -> None:
        booked = _book(invoke_json)
        result = invoke("appointments", "watch", "--limit", "1", "--json")
        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if line.strip()]
        assert len(lines) == 1
        groups = json.loads(lines[0])
        assert [r["id"] for r in groups["upcoming"]] == [booked["id"]]
        assert groups["past"] == []

    def test_watch_human(self, invoke) -> None:
        result = invoke("appointments", "watch", "--limit", "1")
        assert result.exit_code == 0
        assert "Upcoming (0)" in result.output

    def test_watch_rejects_zero_limit(self, invoke) -> None:
        result = invoke("appointments", "watch", "--limit", "0")
        assert result.exit_code != 0


class TestUndatedAppointments:
    """Appointments written by other clients without a timestamp."""

    def _write_undated(self, root: Path) -> str:
        path = root / ".medilink" / "collections" / "appointments" / "legacy1.json"
        atomic_write(path, json.dumps({"doctorName": "Ali Hassan", "status": "upcoming"}))
        return "legacy1"

    def test_update_without_timestamp(self, invoke_json, initialized_root: Path) -> None:
        appointment_id = self._write_undated(initialized_root)
        parsed, code = invoke_json("appointments", "update", appointment_id, "--notes", "Call first")
        assert code == 0
        assert parsed["data"]["notes"] == "Call first"
        body = json.loads(
            (initialized_root / ".medilink" / "collections" / "appointments" / "legacy1.json").read_text()
        )
        assert body["notes"] == "Call first"

    def test_delete_without_timestamp(self, invoke_json, initialized_root: Path) -> None:
        appointment_id = self._write_undated(initialized_root)
        parsed, code = invoke_json("appointments", "delete", appointment_id)
        assert code == 0
        assert parsed["data"]["deleted"] is True
        assert not (
            initialized_root / ".medilink" / "collections" / "appointments" / "legacy1.json"
        ).exists()
