"""
ThesisVault - FastAPI Backend.

HTTP surface for thesis browsing, access requests and borrowing.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_service_container,
    get_current_user,
    ServiceContainer,
)
from .schemas import (
    ThesisResponse,
    AccessStatusResponse,
    AccessRequestResponse,
    BorrowSessionResponse,
    ScanResponse,
    UserProfileResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_service_container",
    "get_current_user",
    "ServiceContainer",
    # Schemas
    "ThesisResponse",
    "AccessStatusResponse",
    "AccessRequestResponse",
    "BorrowSessionResponse",
    "ScanResponse",
    "UserProfileResponse",
    "HealthResponse",
    "ErrorResponse",
]
