"""
Scan/Activity Recorder

- Last-scanned markers behind the "recently accessed" list
- Append-only bookshelf borrow/return log
- Bookshelf inventory status

Recording a scan is a side effect of viewing: it never fails the view.
"""

from typing import Any, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from thesisvault.access.identity import UserId, parse_thesis_id
from thesisvault.errors import InvalidInputError, NonCriticalError, ThesisVaultException, UpstreamError
from thesisvault.storage.access_repository import AccessRequestRepository
from thesisvault.storage.activity_repository import ActivityRepository, RecentScan, StoredBookshelfLog

BOOKSHELF_ACTIONS = {"borrowed", "returned"}
INVENTORY_STATUSES = {"available", "borrowed", "missing"}


class ScanRecorder:
    """Records who looked at what, and what left the shelf."""

    def __init__(
        self,
        activity_repository: ActivityRepository,
        access_repository: Optional[AccessRequestRepository] = None,
    ):
        self.activity = activity_repository
        self.requests = access_repository

    def record_scan(self, user_id: Any, thesis_id: Any) -> bool:
        """
        Upsert the last-scanned marker for the pair.

        Safe to call repeatedly; the pair keeps a single row.

        Returns:
            True if recorded. Failures are logged and reported as False.
        """
        try:
            key = UserId.parse(user_id).as_key()
            tid = parse_thesis_id(thesis_id)
            self.activity.upsert_scan(key, tid)
        except ThesisVaultException as e:
            self._log_failure(NonCriticalError("Scan recording", detail=e.message))
            return False
        except SQLAlchemyError as e:
            self._log_failure(NonCriticalError("Scan recording", detail=str(e)))
            return False

        logger.debug(f"Scan recorded user={key} thesis={tid}")
        return True

    def record_view(self, user_id: Any, thesis_id: Any) -> bool:
        """Alias of record_scan for views that did not start from a QR code."""
        return self.record_scan(user_id, thesis_id)

    def recent_scans(self, user_id: Any, limit: int = 5) -> list[RecentScan]:
        """Recently scanned theses, newest first; empty on any failure."""
        try:
            key = UserId.parse(user_id).as_key()
            return self.activity.recent_scans(key, limit=limit)
        except ThesisVaultException as e:
            logger.warning(f"Recent scans unavailable for {user_id!r}: {e.message}")
            return []
        except SQLAlchemyError as e:
            logger.error(f"Error fetching recent scanned theses: {e}")
            return []

    def log_bookshelf_action(self, user_id: Any, thesis_id: Any, status: str) -> StoredBookshelfLog:
        """
        Append a borrow/return entry.

        Raises:
            InvalidInputError: bad ids or unknown action
            UpstreamError: database failure
        """
        if status not in BOOKSHELF_ACTIONS:
            raise InvalidInputError(f"Bookshelf action must be one of {sorted(BOOKSHELF_ACTIONS)}")

        key = UserId.parse(user_id).as_key()
        tid = parse_thesis_id(thesis_id)

        try:
            entry = self.activity.append_log(key, tid, status)
        except SQLAlchemyError as e:
            logger.error(f"Error logging bookshelf action: {e}")
            raise UpstreamError("Bookshelf log", detail=str(e))

        logger.info(f"Bookshelf {status}: user={key} thesis={tid}")
        return entry

    def recent_activity(self, user_id: Any, limit: int = 5) -> list[StoredBookshelfLog]:
        """Latest borrow/return entries for the profile screen; empty on failure."""
        try:
            key = UserId.parse(user_id).as_key()
            return self.activity.recent_logs(key, limit=limit)
        except ThesisVaultException as e:
            logger.warning(f"Recent activity unavailable for {user_id!r}: {e.message}")
            return []
        except SQLAlchemyError as e:
            logger.error(f"Error fetching activities: {e}")
            return []

    def activity_stats(self, user_id: Any) -> dict:
        """
        Per-user counters.

        Raises:
            InvalidInputError: bad id
            UpstreamError: database failure
        """
        key = UserId.parse(user_id).as_key()

        try:
            bookshelf_count = self.activity.count_logs(key)
            access_count = self.requests.count_for_user(key) if self.requests else 0
        except SQLAlchemyError as e:
            logger.error(f"Error fetching user stats: {e}")
            raise UpstreamError("Activity service", detail=str(e))

        return {
            "bookshelf_logs": bookshelf_count,
            "access_requests": access_count,
        }

    def update_inventory_status(self, thesis_id: Any, status: str) -> str:
        """
        Set the shelf slot status for a thesis.

        Raises:
            InvalidInputError: bad id or unknown status
            UpstreamError: database failure
        """
        if status not in INVENTORY_STATUSES:
            raise InvalidInputError(f"Inventory status must be one of {sorted(INVENTORY_STATUSES)}")

        tid = parse_thesis_id(thesis_id)

        try:
            return self.activity.set_inventory_status(tid, status)
        except SQLAlchemyError as e:
            logger.error(f"Error updating book inventory status: {e}")
            raise UpstreamError("Bookshelf inventory", detail=str(e))

    @staticmethod
    def _log_failure(error: NonCriticalError) -> None:
        logger.warning(f"{error.message} (continuing): {error.detail}")
