"""
Access Request Repository for ThesisVault

Rows of `thesis_access_requests`. State rules live in
`thesisvault.access.ledger`; this module only reads and writes rows.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import update

from .database import Database
from .models import AccessRequest, utcnow


@dataclass
class StoredAccessRequest:
    """Data class for access request transfer."""

    access_request_id: int
    user_id: int
    thesis_id: int
    status: str
    request_date: datetime
    approved_date: Optional[datetime] = None
    remove_access_date: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: AccessRequest) -> "StoredAccessRequest":
        return cls(
            access_request_id=model.access_request_id,
            user_id=model.user_id,
            thesis_id=model.thesis_id,
            status=model.status,
            request_date=model.request_date,
            approved_date=model.approved_date,
            remove_access_date=model.remove_access_date,
        )

    def to_dict(self) -> dict:
        return {
            "access_request_id": self.access_request_id,
            "user_id": self.user_id,
            "thesis_id": self.thesis_id,
            "status": self.status,
            "request_date": self.request_date.isoformat() if self.request_date else None,
            "approved_date": self.approved_date.isoformat() if self.approved_date else None,
            "remove_access_date": self.remove_access_date.isoformat() if self.remove_access_date else None,
        }


class AccessRequestRepository:
    """Repository for access request rows."""

    def __init__(self, database: Database):
        self.database = database

    def get(self, access_request_id: int) -> Optional[StoredAccessRequest]:
        with self.database.get_session() as session:
            row = session.get(AccessRequest, access_request_id)
            if row:
                return StoredAccessRequest.from_model(row)
            return None

    def latest(self, user_id: int, thesis_id: int) -> Optional[StoredAccessRequest]:
        """
        Most recent request for the pair, by request date.

        Args:
            user_id: User ID
            thesis_id: Thesis ID

        Returns:
            StoredAccessRequest or None when the pair has no rows
        """
        with self.database.get_session() as session:
            row = session.query(AccessRequest).filter(
                AccessRequest.user_id == user_id,
                AccessRequest.thesis_id == thesis_id,
            ).order_by(
                AccessRequest.request_date.desc(),
                AccessRequest.access_request_id.desc(),
            ).first()

            if row:
                return StoredAccessRequest.from_model(row)
            return None

    def find_pending(self, user_id: int, thesis_id: int) -> Optional[StoredAccessRequest]:
        with self.database.get_session() as session:
            row = session.query(AccessRequest).filter(
                AccessRequest.user_id == user_id,
                AccessRequest.thesis_id == thesis_id,
                AccessRequest.status == "pending",
            ).first()

            if row:
                return StoredAccessRequest.from_model(row)
            return None

    def create_pending(
        self,
        user_id: int,
        thesis_id: int,
        request_date: Optional[datetime] = None,
    ) -> StoredAccessRequest:
        """
        Insert a pending request.

        Raises:
            sqlalchemy.exc.IntegrityError: a pending row already exists
                for the pair, or the user/thesis does not exist
        """
        with self.database.get_session() as session:
            row = AccessRequest(
                user_id=user_id,
                thesis_id=thesis_id,
                status="pending",
                request_date=request_date or utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return StoredAccessRequest.from_model(row)

    def list_by_status(
        self,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[StoredAccessRequest]:
        """List requests, oldest first so reviewers work in arrival order."""
        with self.database.get_session() as session:
            query = session.query(AccessRequest)
            if status:
                query = query.filter(AccessRequest.status == status)

            rows = query.order_by(
                AccessRequest.request_date.asc(),
                AccessRequest.access_request_id.asc(),
            ).offset(offset).limit(limit).all()

            return [StoredAccessRequest.from_model(r) for r in rows]

    def count_for_user(self, user_id: int) -> int:
        with self.database.get_session() as session:
            return session.query(AccessRequest).filter(AccessRequest.user_id == user_id).count()

    def resolve_pending(
        self,
        access_request_id: int,
        status: str,
        approved_date: Optional[datetime] = None,
        remove_access_date: Optional[datetime] = None,
    ) -> bool:
        """
        Move a pending row to `status`.

        The update is conditional on the row still being pending, so two
        reviewers deciding at once cannot both succeed.

        Returns:
            True if a pending row was updated
        """
        with self.database.get_session() as session:
            result = session.execute(
                update(AccessRequest)
                .where(
                    AccessRequest.access_request_id == access_request_id,
                    AccessRequest.status == "pending",
                )
                .values(
                    status=status,
                    approved_date=approved_date,
                    remove_access_date=remove_access_date,
                )
            )
            session.commit()
            return result.rowcount == 1
