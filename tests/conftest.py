"""
Pytest configuration and fixtures for ThesisVault tests.
"""

import sys
from datetime import date, datetime
from pathlib import Path
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from thesisvault.api.main import create_app
from thesisvault.api.dependencies import ServiceContainer, Settings, get_service_container, get_settings
from thesisvault.security import get_password_hash
from thesisvault.storage.models import ScanRecord, utcnow
from thesisvault.storage.user_repository import StudentRecord


# =============================================================================
# Test Settings
# =============================================================================

STUDENT_PASSWORD = "secret123"
ADMIN_PASSWORD = "adminpass"
GUEST_PASSWORD = "guestpass"
LEGACY_PASSWORD = "plainpass"


def get_test_settings() -> Settings:
    """Return settings configured for testing."""
    return Settings(
        database_url="sqlite:///:memory:",
        storage_base_url="https://files.example.edu",
        secret_key="test-secret-key",
        environment="test",
        debug=True,
        rate_limit_enabled=False,
    )


@pytest.fixture
def settings() -> Settings:
    return get_test_settings()


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def container(settings):
    """Service container bound to a fresh in-memory database."""
    services = ServiceContainer(settings)
    yield services
    services.close()


@pytest.fixture
def seeded(container) -> dict:
    """
    Seed theses and accounts.

    Returns:
        Ids of the seeded rows by name
    """
    theses = container.thesis_repository
    users = container.user_repository

    ml = theses.create(
        thesis_id=42,
        title="Machine Learning in Healthcare",
        author="Maria Santos",
        abstract="Predicting readmission with gradient boosting.",
        college_department="CCS",
        batch="2023",
        pdf_file_url="thesis-pdfs/ML_Healthcare_2023.pdf",
        available_copies=1,
    )
    farming = theses.create(
        thesis_id=108,
        title="Smart Farming with IoT Sensors",
        author="Jose Reyes",
        college_department="CEA",
        batch="2022",
        pdf_file_url="https://files.example.edu/storage/v1/object/public/thesis_files/thesis-pdfs/Smart_Farming.pdf",
        available_copies=2,
    )
    archived = theses.create(
        thesis_id=7,
        title="Archived Study of Campus Wi-Fi",
        author="Ana Cruz",
        college_department="CCS",
        batch="2015",
        pdf_file_url="thesis-pdfs/Campus_WiFi.pdf",
        available_copies=0,
    )
    report_a = theses.create(
        thesis_id=200,
        title="Annual Report A",
        author="Office A",
        pdf_file_url="thesis-pdfs/a/report.pdf",
    )
    report_b = theses.create(
        thesis_id=201,
        title="Annual Report B",
        author="Office B",
        pdf_file_url="thesis-pdfs/b/report.pdf",
    )

    student = users.create(
        username="jdelacruz",
        password=get_password_hash(STUDENT_PASSWORD),
        full_name="Juan Dela Cruz",
        email="juan@example.edu",
        birthdate=date(2003, 5, 14),
        student=StudentRecord(
            student_id="2021-00123",
            year_level="3rd Year",
            college_department="CCS",
            course="BSCS",
        ),
    )
    admin = users.create(
        username="librarian",
        password=get_password_hash(ADMIN_PASSWORD),
        full_name="Lourdes Bautista",
        email="library@example.edu",
    )
    users.add_admin(admin.user_id, position="Head Librarian", college_department="Library")

    guest = users.create(
        username="guest",
        password=get_password_hash(GUEST_PASSWORD),
        full_name="Visiting Researcher",
        email="guest@example.org",
    )
    legacy = users.create(
        username="legacy",
        password=LEGACY_PASSWORD,
        full_name="Old Account",
        email="legacy@example.edu",
    )

    return {
        "ml": ml.thesis_id,
        "farming": farming.thesis_id,
        "archived": archived.thesis_id,
        "report_a": report_a.thesis_id,
        "report_b": report_b.thesis_id,
        "student": student.user_id,
        "admin": admin.user_id,
        "guest": guest.user_id,
        "legacy": legacy.user_id,
    }


def grant_access(container, user_id: int, thesis_id: int, status: str = "approved",
                 request_date: Optional[datetime] = None,
                 expires: Optional[datetime] = None):
    """Insert a request and move it straight to `status`."""
    repo = container.access_repository
    created = repo.create_pending(user_id, thesis_id, request_date=request_date)
    if status != "pending":
        repo.resolve_pending(
            created.access_request_id,
            status,
            approved_date=utcnow() if status == "approved" else None,
            remove_access_date=expires,
        )
    return repo.get(created.access_request_id)


def scan_rows(container, user_id: int, thesis_id: int) -> int:
    """Number of stored scan rows for the pair."""
    with container.database.get_session() as session:
        return session.query(ScanRecord).filter(
            ScanRecord.user_id == user_id,
            ScanRecord.thesis_id == thesis_id,
        ).count()


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def app(settings, container, seeded):
    """Create FastAPI application for testing."""
    application = create_app(settings)

    # Override dependencies
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_service_container] = lambda: container

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def login(client: AsyncClient, username: str, password: str) -> dict:
    """Log in through the token endpoint and return auth headers."""
    response = await client.post(
        "/api/v1/auth/token",
        data={"username": username, "password": password},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def student_headers(client) -> dict:
    return await login(client, "jdelacruz", STUDENT_PASSWORD)


@pytest_asyncio.fixture
async def admin_headers(client) -> dict:
    return await login(client, "librarian", ADMIN_PASSWORD)
