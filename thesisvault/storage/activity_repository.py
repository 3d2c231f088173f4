"""
Activity Repository for ThesisVault

- Last-scanned markers, one row per (user, thesis)
- Append-only bookshelf borrow/return log
- Bookshelf inventory slot status
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from .database import Database
from .models import BookshelfInventory, BookshelfLog, ScanRecord, Thesis, utcnow
from .thesis_repository import StoredThesis


@dataclass
class RecentScan:
    """A thesis the user scanned, with when."""

    thesis: StoredThesis
    scanned_date: datetime


@dataclass
class StoredBookshelfLog:
    log_id: int
    user_id: int
    thesis_id: int
    status: str
    created_at: datetime
    thesis_title: Optional[str] = None

    @classmethod
    def from_model(cls, model: BookshelfLog, thesis_title: Optional[str] = None) -> "StoredBookshelfLog":
        return cls(
            log_id=model.log_id,
            user_id=model.user_id,
            thesis_id=model.thesis_id,
            status=model.status,
            created_at=model.created_at,
            thesis_title=thesis_title,
        )


class ActivityRepository:
    """Repository for scan markers and bookshelf activity."""

    def __init__(self, database: Database):
        self.database = database

    def upsert_scan(self, user_id: int, thesis_id: int, scanned_date: Optional[datetime] = None) -> datetime:
        """
        Set the last-scanned time for the pair, inserting the row if needed.

        A concurrent insert of the same pair loses on the unique constraint
        and is retried as an update.

        Returns:
            The stored scan time
        """
        scanned_date = scanned_date or utcnow()

        for attempt in range(2):
            with self.database.get_session() as session:
                row = session.query(ScanRecord).filter(
                    ScanRecord.user_id == user_id,
                    ScanRecord.thesis_id == thesis_id,
                ).first()

                if row:
                    row.scanned_date = scanned_date
                else:
                    session.add(ScanRecord(
                        user_id=user_id,
                        thesis_id=thesis_id,
                        scanned_date=scanned_date,
                    ))

                try:
                    session.commit()
                    return scanned_date
                except IntegrityError:
                    session.rollback()
                    if attempt == 1 or row is not None:
                        raise

        return scanned_date

    def recent_scans(self, user_id: int, limit: int = 5) -> list[RecentScan]:
        """Most recently scanned theses, newest first."""
        with self.database.get_session() as session:
            rows = session.query(ScanRecord).filter(
                ScanRecord.user_id == user_id,
            ).order_by(
                ScanRecord.scanned_date.desc(),
            ).limit(limit).all()

            return [
                RecentScan(
                    thesis=StoredThesis.from_model(row.thesis),
                    scanned_date=row.scanned_date,
                )
                for row in rows
                if row.thesis is not None
            ]

    def append_log(self, user_id: int, thesis_id: int, status: str) -> StoredBookshelfLog:
        with self.database.get_session() as session:
            row = BookshelfLog(
                user_id=user_id,
                thesis_id=thesis_id,
                status=status,
                created_at=utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return StoredBookshelfLog.from_model(row)

    def recent_logs(self, user_id: int, limit: int = 5) -> list[StoredBookshelfLog]:
        """Latest bookshelf entries for a user, with thesis titles."""
        with self.database.get_session() as session:
            rows = session.query(BookshelfLog, Thesis.title).outerjoin(
                Thesis, Thesis.thesis_id == BookshelfLog.thesis_id,
            ).filter(
                BookshelfLog.user_id == user_id,
            ).order_by(
                BookshelfLog.created_at.desc(),
                BookshelfLog.log_id.desc(),
            ).limit(limit).all()

            return [StoredBookshelfLog.from_model(log, title) for log, title in rows]

    def count_logs(self, user_id: int) -> int:
        with self.database.get_session() as session:
            return session.query(BookshelfLog).filter(BookshelfLog.user_id == user_id).count()

    def set_inventory_status(self, thesis_id: int, status: str) -> str:
        with self.database.get_session() as session:
            row = session.query(BookshelfInventory).filter(
                BookshelfInventory.thesis_id == thesis_id,
            ).first()

            if row:
                row.current_status = status
            else:
                session.add(BookshelfInventory(thesis_id=thesis_id, current_status=status))

            session.commit()
            return status
