"""
Storage Module for ThesisVault

Persistent storage for theses, users and access activity:
- SQLAlchemy models and engine
- Repositories per aggregate
- Hosted PDF storage client
"""

from thesisvault.storage.database import Database
from thesisvault.storage.thesis_repository import (
    ThesisRepository,
    StoredThesis,
)
from thesisvault.storage.user_repository import (
    UserRepository,
    StoredUser,
    StudentRecord,
    AdminRecord,
)
from thesisvault.storage.access_repository import (
    AccessRequestRepository,
    StoredAccessRequest,
)
from thesisvault.storage.activity_repository import (
    ActivityRepository,
    RecentScan,
    StoredBookshelfLog,
)
from thesisvault.storage.pdf_storage import (
    PdfStorage,
    extract_filename,
)

__all__ = [
    "Database",
    # Theses
    "ThesisRepository",
    "StoredThesis",
    # Users
    "UserRepository",
    "StoredUser",
    "StudentRecord",
    "AdminRecord",
    # Access requests
    "AccessRequestRepository",
    "StoredAccessRequest",
    # Activity
    "ActivityRepository",
    "RecentScan",
    "StoredBookshelfLog",
    # PDF storage
    "PdfStorage",
    "extract_filename",
]
