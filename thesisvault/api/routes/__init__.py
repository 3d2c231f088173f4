"""
API Routes for ThesisVault

Route modules:
- auth: Sign up, login, profile
- theses: Catalog, PDF links, access requests, borrowing
- scans: QR scans and bookshelf activity
- admin: Request review and record maintenance
"""

from thesisvault.api.routes.auth import router as auth_router
from thesisvault.api.routes.theses import router as theses_router
from thesisvault.api.routes.scans import router as scans_router
from thesisvault.api.routes.admin import router as admin_router

__all__ = [
    "auth_router",
    "theses_router",
    "scans_router",
    "admin_router",
]
