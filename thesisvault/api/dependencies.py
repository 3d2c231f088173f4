"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Service instances (repositories, ledger, interpreter, etc.)
- Authentication
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from thesisvault.access.auth import UserProfile
from thesisvault.access.ledger import require_admin
from thesisvault.errors import NotAuthenticatedError
from thesisvault.security import decode_access_token


# =============================================================================
# Configuration
# =============================================================================

def _split(value: str) -> tuple:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite:///./thesisvault.db"
    database_echo: bool = False

    # Hosted file storage
    storage_base_url: str = "http://localhost:54321"
    storage_buckets: str = "thesis_files,thesis-files,thesisfiles"
    storage_folders: str = "thesis-pdfs,pdfs,"
    storage_api_key: Optional[str] = None
    qr_storage_markers: str = "storage"

    # Auth
    secret_key: str = "change-me-in-production"
    access_token_expire_minutes: int = 60

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_requests_per_minute: int = 10
    trust_proxy_headers: bool = False

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            storage_base_url=os.getenv("STORAGE_BASE_URL", cls.storage_base_url),
            storage_buckets=os.getenv("STORAGE_BUCKETS", cls.storage_buckets),
            storage_folders=os.getenv("STORAGE_FOLDERS", cls.storage_folders),
            storage_api_key=os.getenv("STORAGE_API_KEY"),
            qr_storage_markers=os.getenv("QR_STORAGE_MARKERS", cls.qr_storage_markers),
            secret_key=os.getenv("SECRET_KEY", cls.secret_key),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", cls.access_token_expire_minutes)),
            rate_limit_enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
            rate_limit_requests_per_minute=int(os.getenv("RATE_LIMIT_RPM", cls.rate_limit_requests_per_minute)),
            trust_proxy_headers=os.getenv("TRUST_PROXY_HEADERS", "false").lower() == "true",
            environment=os.getenv("THESISVAULT_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )

    @property
    def bucket_list(self) -> tuple:
        return _split(self.storage_buckets)

    @property
    def folder_list(self) -> tuple:
        # A trailing comma keeps the bucket root ("") in the probe order.
        return tuple(part.strip() for part in self.storage_folders.split(","))

    @property
    def storage_marker_list(self) -> tuple:
        return _split(self.qr_storage_markers) or ("storage",)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Service Dependencies (Lazy Loading)
# =============================================================================

class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    The database is opened on first access, so building the app does not
    touch the network or the filesystem.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._database = None
        self._thesis_repository = None
        self._user_repository = None
        self._access_repository = None
        self._activity_repository = None
        self._pdf_storage = None
        self._ledger = None
        self._interpreter = None
        self._issuer = None
        self._recorder = None
        self._auth_gate = None

    @property
    def database(self):
        if self._database is None:
            from thesisvault.storage.database import Database
            self._database = Database(
                database_url=self.settings.database_url,
                echo=self.settings.database_echo,
            )
        return self._database

    @property
    def thesis_repository(self):
        if self._thesis_repository is None:
            from thesisvault.storage.thesis_repository import ThesisRepository
            self._thesis_repository = ThesisRepository(self.database)
        return self._thesis_repository

    @property
    def user_repository(self):
        if self._user_repository is None:
            from thesisvault.storage.user_repository import UserRepository
            self._user_repository = UserRepository(self.database)
        return self._user_repository

    @property
    def access_repository(self):
        if self._access_repository is None:
            from thesisvault.storage.access_repository import AccessRequestRepository
            self._access_repository = AccessRequestRepository(self.database)
        return self._access_repository

    @property
    def activity_repository(self):
        if self._activity_repository is None:
            from thesisvault.storage.activity_repository import ActivityRepository
            self._activity_repository = ActivityRepository(self.database)
        return self._activity_repository

    @property
    def pdf_storage(self):
        """Get hosted PDF storage client."""
        if self._pdf_storage is None:
            from thesisvault.storage.pdf_storage import PdfStorage
            self._pdf_storage = PdfStorage(
                base_url=self.settings.storage_base_url,
                buckets=self.settings.bucket_list,
                folders=self.settings.folder_list,
                api_key=self.settings.storage_api_key,
            )
        return self._pdf_storage

    @property
    def ledger(self):
        """Get access request ledger."""
        if self._ledger is None:
            from thesisvault.access.ledger import AccessLedger
            self._ledger = AccessLedger(self.access_repository, self.thesis_repository)
        return self._ledger

    @property
    def interpreter(self):
        """Get QR payload interpreter."""
        if self._interpreter is None:
            from thesisvault.access.qr import QRPayloadInterpreter
            self._interpreter = QRPayloadInterpreter(
                self.thesis_repository,
                storage_markers=self.settings.storage_marker_list,
            )
        return self._interpreter

    @property
    def issuer(self):
        """Get borrow session issuer."""
        if self._issuer is None:
            from thesisvault.access.borrow import BorrowSessionIssuer
            self._issuer = BorrowSessionIssuer(self.ledger, self.thesis_repository)
        return self._issuer

    @property
    def recorder(self):
        """Get scan/activity recorder."""
        if self._recorder is None:
            from thesisvault.access.activity import ScanRecorder
            self._recorder = ScanRecorder(self.activity_repository, self.access_repository)
        return self._recorder

    @property
    def auth_gate(self):
        """Get auth gate."""
        if self._auth_gate is None:
            from thesisvault.access.auth import AuthGate
            self._auth_gate = AuthGate(self.user_repository)
        return self._auth_gate

    def close(self) -> None:
        if self._database is not None:
            self._database.dispose()


# Global service container
_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings)
    return _service_container


def get_service_container() -> ServiceContainer:
    """Get service container instance."""
    if _service_container is None:
        # Auto-initialize with default settings if not explicitly initialized
        return init_services(get_settings())
    return _service_container


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_thesis_repository(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for thesis repository."""
    return container.thesis_repository


def get_pdf_storage(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for PDF storage client."""
    return container.pdf_storage


def get_ledger(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for access ledger."""
    return container.ledger


def get_interpreter(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for QR interpreter."""
    return container.interpreter


def get_issuer(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for borrow session issuer."""
    return container.issuer


def get_recorder(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for scan recorder."""
    return container.recorder


def get_auth_gate(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for auth gate."""
    return container.auth_gate


# =============================================================================
# Authentication Dependencies
# =============================================================================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


def get_current_user(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    container: ServiceContainer = Depends(get_service_container),
) -> UserProfile:
    """
    Resolve the bearer token to a fresh profile.

    The account is re-read on every request so role changes apply at once.

    Raises:
        NotAuthenticatedError: missing, invalid or expired token, or user gone
    """
    if not token:
        raise NotAuthenticatedError(detail="Bearer token required")

    payload = decode_access_token(token, secret_key=container.settings.secret_key)
    subject = payload.get("sub")
    if subject is None:
        raise NotAuthenticatedError("Could not validate credentials")

    return container.auth_gate.validate_session(subject)


def get_current_admin(
    current_user: UserProfile = Depends(get_current_user),
) -> UserProfile:
    """Current user, required to be an administrator."""
    require_admin(current_user)
    return current_user


CurrentUser = Annotated[UserProfile, Depends(get_current_user)]
CurrentAdmin = Annotated[UserProfile, Depends(get_current_admin)]


# =============================================================================
# Request Context Dependencies
# =============================================================================

async def get_client_ip(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str:
    """Extract client IP from request, reading proxy headers only behind a trusted proxy."""
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

    if request.client:
        return request.client.host

    return "unknown"
