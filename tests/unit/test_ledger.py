"""
Unit tests for the access request ledger.
"""

from datetime import datetime, timedelta, timezone

import pytest

from thesisvault.access.ledger import AccessLedger, AccessState, evaluate
from thesisvault.errors import (
    ConflictError,
    DuplicatePendingRequestError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from thesisvault.storage.access_repository import StoredAccessRequest
from tests.conftest import grant_access


NOW = datetime(2024, 6, 1, 12, 0, 0)
UUID = "3f2c1a9e-8b7d-4c6e-9f01-23456789abcd"


def make_request(status: str, expires=None) -> StoredAccessRequest:
    return StoredAccessRequest(
        access_request_id=1,
        user_id=7,
        thesis_id=42,
        status=status,
        request_date=NOW - timedelta(days=3),
        approved_date=NOW - timedelta(days=2) if status == "approved" else None,
        remove_access_date=expires,
    )


class TestEvaluate:
    """Tests for deriving state from the latest row."""

    def test_no_row(self):
        status = evaluate(None, NOW)
        assert status.state == AccessState.NONE
        assert not status.has_access

    def test_pending(self):
        status = evaluate(make_request("pending"), NOW)
        assert status.state == AccessState.PENDING
        assert not status.has_access

    def test_approved_without_expiry_is_permanent(self):
        status = evaluate(make_request("approved"), datetime(2999, 1, 1))
        assert status.state == AccessState.APPROVED
        assert status.has_access
        assert status.expiry_date is None

    def test_approved_before_expiry(self):
        status = evaluate(make_request("approved", expires=NOW + timedelta(days=1)), NOW)
        assert status.state == AccessState.APPROVED
        assert status.has_access

    def test_approved_past_expiry_reads_expired(self):
        request = make_request("approved", expires=NOW - timedelta(seconds=1))
        status = evaluate(request, NOW)

        assert status.state == AccessState.EXPIRED
        assert status.is_expired
        assert not status.has_access
        # Stored row is untouched
        assert request.status == "approved"

    def test_expiry_boundary_is_exclusive(self):
        status = evaluate(make_request("approved", expires=NOW), NOW)
        assert status.state == AccessState.EXPIRED

    def test_aware_now(self):
        expires = NOW + timedelta(hours=1)
        aware_now = NOW.replace(tzinfo=timezone.utc)
        assert evaluate(make_request("approved", expires=expires), aware_now).has_access

    def test_denied(self):
        assert evaluate(make_request("denied"), NOW).state == AccessState.DENIED

    def test_rejected_alias(self):
        assert evaluate(make_request("Rejected"), NOW).state == AccessState.DENIED

    def test_unknown_status_fails_closed(self):
        status = evaluate(make_request("archived"), NOW)
        assert status.state == AccessState.NONE
        assert not status.has_access
        assert status.error

    def test_to_dict(self):
        expires = NOW + timedelta(days=1)
        data = evaluate(make_request("approved", expires=expires), NOW).to_dict()
        assert data["status"] == "approved"
        assert data["has_access"] is True
        assert data["expiry_date"] == expires.isoformat()
        assert data["access_request_id"] == 1


class TestAccessLedger:
    """Tests against the database."""

    @pytest.fixture
    def ledger(self, container, seeded):
        return AccessLedger(
            container.access_repository,
            container.thesis_repository,
            clock=lambda: NOW,
        )

    @pytest.fixture
    def admin(self, container, seeded):
        return container.auth_gate.get_profile(seeded["admin"])

    @pytest.fixture
    def student(self, container, seeded):
        return container.auth_gate.get_profile(seeded["student"])

    def test_no_request_is_none(self, ledger, seeded):
        status = ledger.get_borrowing_status(seeded["student"], seeded["ml"])
        assert status.state == AccessState.NONE
        assert status.error is None

    def test_request_creates_pending(self, ledger, seeded):
        created = ledger.request_access(seeded["student"], seeded["ml"])
        assert created.status == "pending"
        assert created.request_date == NOW

        status = ledger.get_borrowing_status(seeded["student"], seeded["ml"])
        assert status.state == AccessState.PENDING

    def test_duplicate_pending_request(self, ledger, container, seeded):
        ledger.request_access(seeded["student"], seeded["ml"])

        with pytest.raises(DuplicatePendingRequestError) as exc_info:
            ledger.request_access(seeded["student"], seeded["ml"])

        assert exc_info.value.status_code == 409
        pending = container.access_repository.list_by_status("pending")
        assert len(pending) == 1

    def test_concurrent_duplicate_hits_unique_index(self, ledger, container, seeded, monkeypatch):
        ledger.request_access(seeded["student"], seeded["ml"])

        # The other device inserted between this read and the insert.
        repo = container.access_repository
        find_pending = repo.find_pending
        calls = []

        def stale_then_fresh(user_id, thesis_id):
            calls.append((user_id, thesis_id))
            if len(calls) == 1:
                return None
            return find_pending(user_id, thesis_id)

        monkeypatch.setattr(repo, "find_pending", stale_then_fresh)

        with pytest.raises(DuplicatePendingRequestError):
            ledger.request_access(seeded["student"], seeded["ml"])

        assert len(calls) == 2
        pending = repo.list_by_status("pending")
        assert len(pending) == 1

    def test_request_unknown_thesis(self, ledger, seeded):
        with pytest.raises(NotFoundError):
            ledger.request_access(seeded["student"], 999)

    def test_request_with_uuid_is_invalid(self, ledger, seeded):
        with pytest.raises(InvalidInputError):
            ledger.request_access(UUID, seeded["ml"])

    def test_latest_request_wins(self, ledger, container, seeded):
        grant_access(container, seeded["student"], seeded["ml"], status="denied",
                     request_date=NOW - timedelta(days=10))
        grant_access(container, seeded["student"], seeded["ml"], status="approved",
                     request_date=NOW - timedelta(days=1))

        status = ledger.get_borrowing_status(seeded["student"], seeded["ml"])
        assert status.state == AccessState.APPROVED

    def test_new_request_after_denial(self, ledger, container, seeded):
        grant_access(container, seeded["student"], seeded["ml"], status="denied",
                     request_date=NOW - timedelta(days=10))

        ledger.request_access(seeded["student"], seeded["ml"])
        assert ledger.get_borrowing_status(seeded["student"], seeded["ml"]).state == AccessState.PENDING

    def test_expired_approval(self, ledger, container, seeded):
        grant_access(container, seeded["student"], seeded["ml"],
                     request_date=NOW - timedelta(days=30),
                     expires=NOW - timedelta(days=1))

        status = ledger.get_borrowing_status(seeded["student"], seeded["ml"])
        assert status.state == AccessState.EXPIRED
        assert not status.has_access

    def test_uuid_user_fails_closed(self, ledger, seeded):
        status = ledger.get_borrowing_status(UUID, seeded["ml"])
        assert status.state == AccessState.NONE
        assert status.error == "Invalid IDs"

    def test_garbage_thesis_id_fails_closed(self, ledger, seeded):
        status = ledger.get_borrowing_status(seeded["student"], "abc")
        assert status.state == AccessState.NONE
        assert not status.has_access

    def test_list_requests_admin_only(self, ledger, student):
        with pytest.raises(PermissionDeniedError):
            ledger.list_requests(student)

    def test_list_requests(self, ledger, admin, seeded):
        ledger.request_access(seeded["student"], seeded["ml"])
        ledger.request_access(seeded["guest"], seeded["farming"])

        pending = ledger.list_requests(admin)
        assert [r.thesis_id for r in pending] == [seeded["ml"], seeded["farming"]]

    def test_list_requests_unknown_status(self, ledger, admin):
        with pytest.raises(InvalidInputError):
            ledger.list_requests(admin, status="lost")

    def test_approve_with_expiry(self, ledger, admin, seeded):
        created = ledger.request_access(seeded["student"], seeded["ml"])
        expires = NOW + timedelta(days=7)

        decided = ledger.decide(admin, created.access_request_id, "approved", expires_at=expires)

        assert decided.status == "approved"
        assert decided.approved_date == NOW
        assert decided.remove_access_date == expires
        assert ledger.get_borrowing_status(seeded["student"], seeded["ml"]).has_access

    def test_approve_without_expiry_is_permanent(self, ledger, admin, seeded):
        created = ledger.request_access(seeded["student"], seeded["ml"])
        ledger.decide(admin, created.access_request_id, "approved")

        status = ledger.get_borrowing_status(seeded["student"], seeded["ml"], now=datetime(2999, 1, 1))
        assert status.state == AccessState.APPROVED

    def test_deny(self, ledger, admin, seeded):
        created = ledger.request_access(seeded["student"], seeded["ml"])
        decided = ledger.decide(admin, created.access_request_id, "denied")

        assert decided.status == "denied"
        assert decided.approved_date is None
        assert ledger.get_borrowing_status(seeded["student"], seeded["ml"]).state == AccessState.DENIED

    def test_decide_requires_admin(self, ledger, student, seeded):
        created = ledger.request_access(seeded["student"], seeded["ml"])
        with pytest.raises(PermissionDeniedError):
            ledger.decide(student, created.access_request_id, "approved")

    def test_decide_twice_conflicts(self, ledger, admin, seeded):
        created = ledger.request_access(seeded["student"], seeded["ml"])
        ledger.decide(admin, created.access_request_id, "approved")

        with pytest.raises(ConflictError) as exc_info:
            ledger.decide(admin, created.access_request_id, "denied")
        assert exc_info.value.code == "REQUEST_ALREADY_DECIDED"

    def test_decide_unknown_request(self, ledger, admin):
        with pytest.raises(NotFoundError):
            ledger.decide(admin, 12345, "approved")

    def test_decide_rejects_past_expiry(self, ledger, admin, seeded):
        created = ledger.request_access(seeded["student"], seeded["ml"])
        with pytest.raises(InvalidInputError):
            ledger.decide(admin, created.access_request_id, "approved", expires_at=NOW - timedelta(hours=1))

    def test_decide_unknown_decision(self, ledger, admin, seeded):
        created = ledger.request_access(seeded["student"], seeded["ml"])
        with pytest.raises(InvalidInputError):
            ledger.decide(admin, created.access_request_id, "maybe")
