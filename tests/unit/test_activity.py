"""
Unit tests for scan and bookshelf activity recording.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from thesisvault.access.activity import ScanRecorder
from thesisvault.errors import InvalidInputError, UpstreamError
from thesisvault.storage.models import BookshelfInventory, utcnow
from tests.conftest import scan_rows


UUID = "3f2c1a9e-8b7d-4c6e-9f01-23456789abcd"


@pytest.fixture
def recorder(container, seeded):
    return ScanRecorder(container.activity_repository, container.access_repository)


class TestRecordScan:

    def test_record_scan(self, recorder, container, seeded):
        assert recorder.record_scan(seeded["student"], seeded["ml"]) is True
        assert scan_rows(container, seeded["student"], seeded["ml"]) == 1

    def test_repeated_scans_keep_one_row(self, recorder, container, seeded):
        for _ in range(3):
            recorder.record_scan(seeded["student"], seeded["ml"])
        assert scan_rows(container, seeded["student"], seeded["ml"]) == 1

    def test_uuid_user_is_not_recorded(self, recorder, seeded):
        assert recorder.record_scan(UUID, seeded["ml"]) is False

    def test_database_failure_is_swallowed(self, seeded):
        activity = MagicMock()
        activity.upsert_scan.side_effect = OperationalError("UPDATE", {}, Exception("locked"))
        recorder = ScanRecorder(activity)

        assert recorder.record_scan(seeded["student"], seeded["ml"]) is False

    def test_record_view_is_a_scan(self, recorder, container, seeded):
        assert recorder.record_view(seeded["student"], seeded["farming"])
        assert scan_rows(container, seeded["student"], seeded["farming"]) == 1


class TestRecentScans:

    def test_newest_first(self, recorder, container, seeded):
        now = utcnow()
        container.activity_repository.upsert_scan(seeded["student"], seeded["ml"], now - timedelta(hours=2))
        container.activity_repository.upsert_scan(seeded["student"], seeded["farming"], now - timedelta(hours=1))

        recent = recorder.recent_scans(seeded["student"])

        assert [r.thesis.thesis_id for r in recent] == [seeded["farming"], seeded["ml"]]

    def test_rescan_moves_to_front(self, recorder, container, seeded):
        now = utcnow()
        container.activity_repository.upsert_scan(seeded["student"], seeded["ml"], now - timedelta(hours=2))
        container.activity_repository.upsert_scan(seeded["student"], seeded["farming"], now - timedelta(hours=1))
        container.activity_repository.upsert_scan(seeded["student"], seeded["ml"], now)

        recent = recorder.recent_scans(seeded["student"])
        assert recent[0].thesis.thesis_id == seeded["ml"]
        assert len(recent) == 2

    def test_limit(self, recorder, seeded):
        for key in ("ml", "farming", "archived"):
            recorder.record_scan(seeded["student"], seeded[key])
        assert len(recorder.recent_scans(seeded["student"], limit=2)) == 2

    def test_failure_returns_empty(self, recorder):
        assert recorder.recent_scans(UUID) == []


class TestBookshelf:

    def test_log_action(self, recorder, seeded):
        entry = recorder.log_bookshelf_action(seeded["student"], seeded["ml"], "borrowed")
        assert entry.status == "borrowed"
        assert entry.thesis_id == seeded["ml"]

    def test_unknown_action(self, recorder, seeded):
        with pytest.raises(InvalidInputError):
            recorder.log_bookshelf_action(seeded["student"], seeded["ml"], "stolen")

    def test_log_failure_is_upstream(self, seeded):
        activity = MagicMock()
        activity.append_log.side_effect = OperationalError("INSERT", {}, Exception("down"))

        with pytest.raises(UpstreamError):
            ScanRecorder(activity).log_bookshelf_action(seeded["student"], seeded["ml"], "returned")

    def test_recent_activity_has_titles(self, recorder, seeded):
        recorder.log_bookshelf_action(seeded["student"], seeded["ml"], "borrowed")
        recorder.log_bookshelf_action(seeded["student"], seeded["ml"], "returned")

        activity = recorder.recent_activity(seeded["student"])

        assert [a.status for a in activity] == ["returned", "borrowed"]
        assert activity[0].thesis_title == "Machine Learning in Healthcare"

    def test_recent_activity_failure_returns_empty(self, recorder):
        assert recorder.recent_activity("abc") == []

    def test_activity_stats(self, recorder, container, seeded):
        recorder.log_bookshelf_action(seeded["student"], seeded["ml"], "borrowed")
        container.access_repository.create_pending(seeded["student"], seeded["farming"])

        assert recorder.activity_stats(seeded["student"]) == {
            "bookshelf_logs": 1,
            "access_requests": 1,
        }

    def test_inventory_status(self, recorder, container, seeded):
        assert recorder.update_inventory_status(seeded["ml"], "borrowed") == "borrowed"
        recorder.update_inventory_status(seeded["ml"], "available")

        with container.database.get_session() as session:
            rows = session.query(BookshelfInventory).filter(
                BookshelfInventory.thesis_id == seeded["ml"],
            ).all()
            assert len(rows) == 1
            assert rows[0].current_status == "available"

    def test_unknown_inventory_status(self, recorder, seeded):
        with pytest.raises(InvalidInputError):
            recorder.update_inventory_status(seeded["ml"], "lent")
