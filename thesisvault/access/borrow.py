"""
Borrow Session Issuer

Builds the payload a user shows to the smart bookshelf's scanner to take
out a physical copy. Nothing is written here; the bookshelf records the
borrow when it reads the code.
"""

import json
from dataclasses import dataclass
from typing import Any

from loguru import logger

from thesisvault.access.identity import UserId, parse_thesis_id
from thesisvault.access.ledger import AccessLedger, AccessState
from thesisvault.errors import AccessRequiredError, NotAvailableError, NotFoundError
from thesisvault.storage.thesis_repository import ThesisRepository


@dataclass(frozen=True)
class BorrowSession:
    """Borrow intent for one user and one thesis."""

    thesis_id: int
    user_id: int

    def payload(self) -> dict:
        return {"thesis_id": self.thesis_id, "user_id": self.user_id}

    def encode(self) -> str:
        """Compact JSON text for the QR code."""
        return json.dumps(self.payload(), separators=(",", ":"))


class BorrowSessionIssuer:
    """Issues borrow payloads to users with approved access."""

    def __init__(self, ledger: AccessLedger, thesis_repository: ThesisRepository):
        self.ledger = ledger
        self.theses = thesis_repository

    def issue(self, user_id: Any, thesis_id: Any) -> BorrowSession:
        """
        Issue a borrow session.

        Raises:
            InvalidInputError: malformed ids
            NotFoundError: thesis does not exist
            NotAvailableError: no copy on the shelf
            AccessRequiredError: access is not currently approved
        """
        key = UserId.parse(user_id).as_key()
        tid = parse_thesis_id(thesis_id)

        thesis = self.theses.get(tid)
        if thesis is None:
            raise NotFoundError("Thesis", tid)

        if not thesis.is_available:
            logger.info(f"Borrow blocked for thesis {tid}: no copies available")
            raise NotAvailableError(tid)

        status = self.ledger.get_borrowing_status(key, tid)
        if status.state != AccessState.APPROVED or not status.has_access:
            logger.info(f"Borrow blocked for user={key} thesis={tid}: access {status.state.value}")
            raise AccessRequiredError(status.state.value)

        session = BorrowSession(thesis_id=tid, user_id=key)
        logger.info(f"Borrow session issued: {session.encode()}")
        return session
