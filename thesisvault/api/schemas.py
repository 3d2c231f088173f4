"""
API Schemas for ThesisVault

Pydantic models for request validation and response serialization:
- Thesis models
- Access and borrowing models
- Scan and bookshelf models
- Account models
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from thesisvault.access.ledger import AccessState


# =============================================================================
# Thesis Schemas
# =============================================================================

class ThesisResponse(BaseModel):
    """Thesis response model."""

    thesis_id: int
    title: str
    author: str
    abstract: Optional[str] = None
    college_department: Optional[str] = None
    batch: Optional[str] = None
    pdf_file_url: Optional[str] = None
    available_copies: int = 1
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ThesisListResponse(BaseModel):
    """Page of theses."""

    theses: list[ThesisResponse]
    count: int
    limit: int
    offset: int


class PdfLinkResponse(BaseModel):
    """Resolved public link to a thesis PDF."""

    thesis_id: int
    url: str


# =============================================================================
# Access Schemas
# =============================================================================

class AccessStatusResponse(BaseModel):
    """Access status for the caller and one thesis."""

    thesis_id: Optional[int] = None
    status: AccessState
    has_access: bool = False
    is_expired: bool = False
    expiry_date: Optional[datetime] = None
    access_request_id: Optional[int] = None
    request_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    error: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "thesis_id": 42,
                "status": "approved",
                "has_access": True,
                "is_expired": False,
                "expiry_date": "2025-06-30T00:00:00",
            }
        }
    )


class AccessRequestResponse(BaseModel):
    """Stored access request."""

    access_request_id: int
    user_id: int
    thesis_id: int
    status: str
    request_date: datetime
    approved_date: Optional[datetime] = None
    remove_access_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AccessDecisionRequest(BaseModel):
    """Administrator decision on a pending request."""

    decision: Literal["approved", "denied"]
    expires_at: Optional[datetime] = Field(
        None, description="Removal date for an approval; omit for permanent access"
    )


class BorrowSessionResponse(BaseModel):
    """Payload to render as the borrow QR code."""

    thesis_id: int
    user_id: int
    qr_payload: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "thesis_id": 42,
                "user_id": 7,
                "qr_payload": '{"thesis_id":42,"user_id":7}',
            }
        }
    )


# =============================================================================
# Scan / Bookshelf Schemas
# =============================================================================

class ScanRequest(BaseModel):
    """Raw text decoded from a QR code."""

    qr_data: str = Field(..., max_length=4096)


class ScanResponse(BaseModel):
    """Thesis identified by a scan."""

    thesis: ThesisResponse
    access: AccessStatusResponse
    recorded: bool


class RecentScanResponse(BaseModel):
    thesis: ThesisResponse
    scanned_date: datetime


class BookshelfLogRequest(BaseModel):
    """Borrow or return reported by the bookshelf."""

    thesis_id: int = Field(..., ge=1)
    status: Literal["borrowed", "returned"]


class BookshelfLogResponse(BaseModel):
    log_id: int
    user_id: int
    thesis_id: int
    status: str
    created_at: datetime
    thesis_title: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ActivityStatsResponse(BaseModel):
    bookshelf_logs: int
    access_requests: int


# =============================================================================
# Account Schemas
# =============================================================================

class SignupRequest(BaseModel):
    """Registration request."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    birthdate: Optional[date] = None

    is_student: bool = False
    student_id: Optional[str] = Field(None, max_length=50)
    year_level: Optional[str] = None
    college_department: Optional[str] = None
    course: Optional[str] = None

    @field_validator("username", "full_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "jdelacruz",
                "password": "s3cret!",
                "full_name": "Juan Dela Cruz",
                "email": "juan@example.edu",
                "birthdate": "2003-05-14",
                "is_student": True,
                "student_id": "2021-00123",
                "year_level": "3rd Year",
                "college_department": "CCS",
                "course": "BSCS",
            }
        }
    )


class UserProfileResponse(BaseModel):
    """Signed-in user with role-specific fields."""

    user_id: int
    username: str
    full_name: str
    email: str
    role: Literal["admin", "student", "user"]
    phone: Optional[str] = None
    birthdate: Optional[date] = None
    created_at: Optional[datetime] = None

    student_id: Optional[str] = None
    year_level: Optional[str] = None
    course: Optional[str] = None
    admin_id: Optional[int] = None
    position: Optional[str] = None
    college_department: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserProfileResponse


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; only sent fields change."""

    username: Optional[str] = Field(None, min_length=1, max_length=255)
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    birthdate: Optional[date] = None


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class UsernameAvailabilityResponse(BaseModel):
    username: str
    available: bool


class StudentRecordUpdate(BaseModel):
    """Academic fields an administrator may change."""

    year_level: Optional[str] = None
    college_department: Optional[str] = None
    course: Optional[str] = None


# =============================================================================
# Error Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
    code: str
    timestamp: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Thesis not found",
                "detail": "No Thesis with identifier '999' exists",
                "code": "NOT_FOUND",
                "timestamp": "2025-01-20T12:00:00Z",
            }
        }
    )


# =============================================================================
# Health Check
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
