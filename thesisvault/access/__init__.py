"""
Access Module for ThesisVault

Who may read or borrow which thesis:
- Identity resolution from session payloads
- QR payload interpretation
- Access request ledger and admin review
- Borrow sessions for the smart bookshelf
- Scan and bookshelf activity
- Login, registration and account maintenance
"""

from thesisvault.access.identity import (
    UserId,
    find_user_id,
    normalize_user_id,
    parse_thesis_id,
)
from thesisvault.access.qr import (
    PayloadKind,
    QRPayload,
    QRPayloadInterpreter,
    classify,
)
from thesisvault.access.ledger import (
    AccessLedger,
    AccessState,
    AccessStatus,
    evaluate,
    require_admin,
)
from thesisvault.access.borrow import (
    BorrowSession,
    BorrowSessionIssuer,
)
from thesisvault.access.activity import (
    ScanRecorder,
    BOOKSHELF_ACTIONS,
    INVENTORY_STATUSES,
)
from thesisvault.access.auth import (
    AuthGate,
    Registration,
    UserProfile,
)

__all__ = [
    # Identity
    "UserId",
    "find_user_id",
    "normalize_user_id",
    "parse_thesis_id",
    # QR
    "PayloadKind",
    "QRPayload",
    "QRPayloadInterpreter",
    "classify",
    # Ledger
    "AccessLedger",
    "AccessState",
    "AccessStatus",
    "evaluate",
    "require_admin",
    # Borrowing
    "BorrowSession",
    "BorrowSessionIssuer",
    # Activity
    "ScanRecorder",
    "BOOKSHELF_ACTIONS",
    "INVENTORY_STATUSES",
    # Auth
    "AuthGate",
    "Registration",
    "UserProfile",
]
