"""
Access Request Ledger

State per (user, thesis):

    none --request--> pending --admin--> approved | denied
                                          approved --time--> expired

`expired` is derived at read time from `remove_access_date`; the stored
status keeps reading `approved`. An approved row without a removal date
grants permanent access.

Reads fail closed: anything that prevents a definite answer (bad ids,
identity-provider keys, database errors) yields `none` with no access.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from thesisvault.access.identity import UserId, parse_thesis_id
from thesisvault.errors import (
    ConflictError,
    DuplicatePendingRequestError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    ThesisVaultException,
    UpstreamError,
)
from thesisvault.storage.access_repository import AccessRequestRepository, StoredAccessRequest
from thesisvault.storage.models import utcnow
from thesisvault.storage.thesis_repository import ThesisRepository


class AccessState(str, Enum):
    """What a user may currently do with a thesis PDF."""
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"


DECISIONS = {"approved", "denied"}


@dataclass
class AccessStatus:
    """Result of an access check."""

    state: AccessState
    has_access: bool = False
    is_expired: bool = False
    request: Optional[StoredAccessRequest] = None
    error: Optional[str] = None

    @property
    def expiry_date(self) -> Optional[datetime]:
        return self.request.remove_access_date if self.request else None

    @classmethod
    def none(cls, error: Optional[str] = None) -> "AccessStatus":
        return cls(state=AccessState.NONE, error=error)

    def to_dict(self) -> dict:
        data = self.request.to_dict() if self.request else {}
        data.update({
            "status": self.state.value,
            "has_access": self.has_access,
            "is_expired": self.is_expired,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
        })
        if self.error:
            data["error"] = self.error
        return data


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def evaluate(request: Optional[StoredAccessRequest], now: datetime) -> AccessStatus:
    """
    Derive the access state from the latest request row.

    Args:
        request: Most recent request for the pair, or None
        now: Current time (naive UTC or aware)

    Returns:
        AccessStatus
    """
    if request is None:
        return AccessStatus.none()

    status = (request.status or "").lower()

    if status == "approved":
        expires = request.remove_access_date
        if expires is None:
            return AccessStatus(state=AccessState.APPROVED, has_access=True, request=request)

        if _naive_utc(now) < _naive_utc(expires):
            return AccessStatus(state=AccessState.APPROVED, has_access=True, request=request)

        return AccessStatus(state=AccessState.EXPIRED, is_expired=True, request=request)

    if status == "pending":
        return AccessStatus(state=AccessState.PENDING, request=request)

    if status in ("denied", "rejected"):
        return AccessStatus(state=AccessState.DENIED, request=request)

    logger.warning(f"Access request {request.access_request_id} has unknown status '{request.status}'")
    return AccessStatus(state=AccessState.NONE, request=request, error="Unknown request status")


def require_admin(actor: Any) -> None:
    """
    Raises:
        PermissionDeniedError: actor is missing or not an administrator
    """
    if actor is None or getattr(actor, "role", None) != "admin":
        raise PermissionDeniedError("Administrator role required", code="ADMIN_REQUIRED")


class AccessLedger:
    """
    Computes and records access to protected thesis PDFs.

    Usage:
        ledger = AccessLedger(access_repo, thesis_repo)

        status = ledger.get_borrowing_status(user_id, 42)
        if not status.has_access:
            ledger.request_access(user_id, 42)
    """

    def __init__(
        self,
        access_repository: AccessRequestRepository,
        thesis_repository: ThesisRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.requests = access_repository
        self.theses = thesis_repository
        self.clock = clock

    def get_borrowing_status(
        self,
        user_id: Any,
        thesis_id: Any,
        now: Optional[datetime] = None,
    ) -> AccessStatus:
        """
        Current access status for the pair. Never raises.

        Args:
            user_id: UserId or raw id
            thesis_id: Thesis id in any parseable form
            now: Evaluation time (defaults to the ledger clock)

        Returns:
            AccessStatus; `none` whenever the answer cannot be determined
        """
        try:
            uid = UserId.parse(user_id)
            key = uid.as_key()
            tid = parse_thesis_id(thesis_id)
        except ThesisVaultException as e:
            logger.warning(f"Access check with unusable ids user={user_id!r} thesis={thesis_id!r}: {e.message}")
            return AccessStatus.none(error="Invalid IDs")

        try:
            latest = self.requests.latest(key, tid)
        except SQLAlchemyError as e:
            logger.error(f"Access check failed for user={key} thesis={tid}: {e}")
            return AccessStatus.none(error="Access status unavailable")

        result = evaluate(latest, now or self.clock())
        logger.debug(f"Access user={key} thesis={tid}: {result.state.value}")
        return result

    def request_access(self, user_id: Any, thesis_id: Any) -> StoredAccessRequest:
        """
        Record a new pending request.

        Raises:
            InvalidInputError: malformed ids
            NotFoundError: thesis does not exist
            DuplicatePendingRequestError: a request is already pending
            UpstreamError: database failure
        """
        key = UserId.parse(user_id).as_key()
        tid = parse_thesis_id(thesis_id)

        try:
            if self.theses.get(tid) is None:
                raise NotFoundError("Thesis", tid)

            if self.requests.find_pending(key, tid) is not None:
                raise DuplicatePendingRequestError(key, tid)

            created = self.requests.create_pending(key, tid, request_date=self.clock())

        except IntegrityError as e:
            # Lost a race with another device, or the user row is gone.
            if self.requests.find_pending(key, tid) is not None:
                raise DuplicatePendingRequestError(key, tid)
            logger.error(f"Access request insert rejected for user={key} thesis={tid}: {e}")
            raise ConflictError("Access request could not be recorded", detail=str(e.orig))

        except SQLAlchemyError as e:
            logger.error(f"Access request failed for user={key} thesis={tid}: {e}")
            raise UpstreamError("Access request service", detail=str(e))

        logger.info(f"Access request {created.access_request_id} created for user={key} thesis={tid}")
        return created

    def list_requests(
        self,
        actor: Any,
        status: Optional[str] = "pending",
        limit: int = 100,
        offset: int = 0,
    ) -> list[StoredAccessRequest]:
        """Requests awaiting (or past) review. Administrators only."""
        require_admin(actor)

        if status is not None and status not in DECISIONS | {"pending"}:
            raise InvalidInputError(f"Unknown request status '{status}'")

        return self.requests.list_by_status(status, limit=limit, offset=offset)

    def decide(
        self,
        actor: Any,
        access_request_id: int,
        decision: str,
        expires_at: Optional[datetime] = None,
    ) -> StoredAccessRequest:
        """
        Approve or deny a pending request. Administrators only.

        Args:
            actor: Profile of the reviewing user
            access_request_id: Request to decide
            decision: "approved" or "denied"
            expires_at: Removal date for an approval; None grants permanent access

        Raises:
            PermissionDeniedError: actor is not an administrator
            InvalidInputError: unknown decision or expiry in the past
            NotFoundError: no such request
            ConflictError: request is no longer pending
        """
        require_admin(actor)

        if decision not in DECISIONS:
            raise InvalidInputError(f"Decision must be one of {sorted(DECISIONS)}")

        now = self.clock()
        approved_date = None
        remove_access_date = None

        if decision == "approved":
            approved_date = now
            if expires_at is not None:
                remove_access_date = _naive_utc(expires_at)
                if remove_access_date <= now:
                    raise InvalidInputError("Access expiry must be in the future")

        if self.requests.get(access_request_id) is None:
            raise NotFoundError("Access request", access_request_id)

        if not self.requests.resolve_pending(
            access_request_id,
            decision,
            approved_date=approved_date,
            remove_access_date=remove_access_date,
        ):
            raise ConflictError("Access request is no longer pending", code="REQUEST_ALREADY_DECIDED")

        logger.info(
            f"Access request {access_request_id} {decision} by user {getattr(actor, 'user_id', '?')}"
        )
        return self.requests.get(access_request_id)
