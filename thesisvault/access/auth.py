"""
Auth Gate

Username/password login, registration, and the account maintenance the
settings screen needs. Role comes from the presence of Student / Admin
rows: admin > student > user. Role-restricted writes are checked here,
not left to the client.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from thesisvault.access.identity import UserId
from thesisvault.access.ledger import require_admin
from thesisvault.errors import (
    ConflictError,
    InvalidInputError,
    NotAuthenticatedError,
    NotFoundError,
    UpstreamError,
)
from thesisvault.security import (
    burn_verification,
    get_password_hash,
    needs_rehash,
    verify_password,
)
from thesisvault.storage.models import utcnow
from thesisvault.storage.user_repository import StoredUser, StudentRecord, UserRepository

ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"
ROLE_USER = "user"

MIN_PASSWORD_LENGTH = 6
MIN_AGE = 13
MAX_AGE = 100

PROFILE_FIELDS = {"username", "full_name", "email", "phone", "birthdate"}
STUDENT_FIELDS = {"year_level", "college_department", "course"}

INVALID_CREDENTIALS = "Invalid username or password"


@dataclass
class UserProfile:
    """Logged-in user with role-specific fields merged in."""

    user_id: int
    username: str
    full_name: str
    email: str
    role: str = ROLE_USER
    phone: Optional[str] = None
    birthdate: Optional[date] = None
    created_at: Optional[datetime] = None

    # Student
    student_id: Optional[str] = None
    year_level: Optional[str] = None
    course: Optional[str] = None

    # Admin
    admin_id: Optional[int] = None
    position: Optional[str] = None

    # Student or admin department (admin wins when both exist)
    college_department: Optional[str] = None

    @classmethod
    def from_user(cls, user: StoredUser) -> "UserProfile":
        profile = cls(
            user_id=user.user_id,
            username=user.username,
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
            birthdate=user.birthdate,
            created_at=user.created_at,
        )

        if user.student is not None:
            profile.role = ROLE_STUDENT
            profile.student_id = user.student.student_id
            profile.year_level = user.student.year_level
            profile.college_department = user.student.college_department
            profile.course = user.student.course

        if user.admin is not None:
            profile.role = ROLE_ADMIN
            profile.admin_id = user.admin.admin_id
            profile.position = user.admin.position
            profile.college_department = user.admin.college_department

        return profile

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "birthdate": self.birthdate.isoformat() if self.birthdate else None,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "student_id": self.student_id,
            "year_level": self.year_level,
            "course": self.course,
            "admin_id": self.admin_id,
            "position": self.position,
            "college_department": self.college_department,
        }


@dataclass
class Registration:
    """Sign-up form data."""

    username: str
    password: str
    full_name: str
    email: str
    phone: Optional[str] = None
    birthdate: Optional[date] = None
    is_student: bool = False
    student_id: Optional[str] = None
    year_level: Optional[str] = None
    college_department: Optional[str] = None
    course: Optional[str] = None


def _age_on(birthdate: date, today: date) -> int:
    years = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        years -= 1
    return years


class AuthGate:
    """Authentication and account maintenance."""

    def __init__(self, user_repository: UserRepository):
        self.users = user_repository

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> UserProfile:
        """
        Authenticate by username and password.

        Unknown usernames and wrong passwords fail with the same message.

        Raises:
            NotAuthenticatedError: credentials rejected
            UpstreamError: account store unavailable
        """
        user = self._check_credentials(username, password)
        logger.info(f"User {user.user_id} logged in")
        return UserProfile.from_user(user)

    def verify_password(self, username: str, password: str) -> UserProfile:
        """Re-authentication check (e.g. before sensitive changes)."""
        return UserProfile.from_user(self._check_credentials(username, password))

    def _check_credentials(self, username: str, password: str) -> StoredUser:
        if not username or not password:
            raise NotAuthenticatedError(INVALID_CREDENTIALS)

        try:
            user = self.users.get_by_username(username)
        except SQLAlchemyError as e:
            logger.error(f"Login lookup failed: {e}")
            raise UpstreamError("Account service", detail=str(e))

        if user is None:
            burn_verification(password)
            logger.info("Login rejected: unknown username")
            raise NotAuthenticatedError(INVALID_CREDENTIALS)

        if not verify_password(password, user.password):
            logger.info(f"Login rejected: bad password for user {user.user_id}")
            raise NotAuthenticatedError(INVALID_CREDENTIALS)

        if needs_rehash(user.password):
            self._upgrade_password_hash(user, password)

        return user

    def _upgrade_password_hash(self, user: StoredUser, password: str) -> None:
        try:
            self.users.update(user.user_id, password=get_password_hash(password))
            logger.info(f"Upgraded stored password for user {user.user_id}")
        except SQLAlchemyError as e:
            # Login already succeeded; the upgrade is retried on the next one.
            logger.warning(f"Password rehash failed for user {user.user_id}: {e}")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, registration: Registration, today: Optional[date] = None) -> UserProfile:
        """
        Create an account, plus a student row when requested.

        Uniqueness is checked before anything is written; the user and
        student rows are then inserted in one transaction.

        Raises:
            InvalidInputError: missing or invalid fields
            ConflictError: username, email or student ID already registered
            UpstreamError: account store unavailable
        """
        self._validate_registration(registration, today or utcnow().date())

        try:
            if self.users.username_taken(registration.username):
                raise ConflictError(
                    "Username already exists. Please choose a different one.",
                    code="USERNAME_TAKEN",
                )

            if self.users.email_taken(registration.email):
                raise ConflictError(
                    "Email already registered. Please use a different email.",
                    code="EMAIL_TAKEN",
                )

            if registration.is_student and self.users.student_id_taken(registration.student_id):
                raise ConflictError(
                    "Student ID already registered. Please use a different student ID.",
                    code="STUDENT_ID_TAKEN",
                )

            student = None
            if registration.is_student:
                student = StudentRecord(
                    student_id=registration.student_id.strip(),
                    year_level=registration.year_level,
                    college_department=registration.college_department,
                    course=registration.course,
                )

            user = self.users.create(
                username=registration.username,
                password=get_password_hash(registration.password),
                full_name=registration.full_name,
                email=registration.email,
                phone=registration.phone or None,
                birthdate=registration.birthdate,
                student=student,
            )

        except IntegrityError as e:
            logger.warning(f"Registration lost a uniqueness race: {e.orig}")
            raise ConflictError("Account details are already registered", detail=str(e.orig))

        except SQLAlchemyError as e:
            logger.error(f"Registration failed: {e}")
            raise UpstreamError("Account service", detail=str(e))

        return UserProfile.from_user(user)

    def _validate_registration(self, registration: Registration, today: date) -> None:
        for name in ("username", "full_name", "email"):
            if not (getattr(registration, name) or "").strip():
                raise InvalidInputError(f"{name.replace('_', ' ').capitalize()} is required")

        self._validate_new_password(registration.password)

        if registration.birthdate is not None:
            age = _age_on(registration.birthdate, today)
            if age < MIN_AGE:
                raise InvalidInputError(f"You must be at least {MIN_AGE} years old to register")
            if age > MAX_AGE:
                raise InvalidInputError("Please enter a valid birthdate")

        if registration.is_student:
            required = {
                "student_id": "Please enter your student ID",
                "college_department": "Please select your college department",
                "course": "Please select your course/program",
                "year_level": "Please select your year level",
            }
            for name, message in required.items():
                if not (getattr(registration, name) or "").strip():
                    raise InvalidInputError(message)

    @staticmethod
    def _validate_new_password(password: Optional[str]) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

    # ------------------------------------------------------------------
    # Sessions and profiles
    # ------------------------------------------------------------------

    def validate_session(self, user_id: Any) -> UserProfile:
        """
        Confirm a stored session still belongs to an existing account.

        Raises:
            NotAuthenticatedError: id unusable or account gone
        """
        try:
            key = UserId.parse(user_id).as_key()
            user = self.users.get(key)
        except InvalidInputError:
            raise NotAuthenticatedError("Session expired or user not found")
        except SQLAlchemyError as e:
            logger.error(f"Session validation failed: {e}")
            raise UpstreamError("Account service", detail=str(e))

        if user is None:
            raise NotAuthenticatedError("Session expired or user not found")

        return UserProfile.from_user(user)

    def get_profile(self, user_id: Any) -> UserProfile:
        key = UserId.parse(user_id).as_key()
        user = self.users.get(key)
        if user is None:
            raise NotFoundError("User", key)
        return UserProfile.from_user(user)

    def is_username_available(self, username: str, exclude_user_id: Optional[int] = None) -> bool:
        if not username or not username.strip():
            return False
        return not self.users.username_taken(username, exclude_user_id=exclude_user_id)

    def update_profile(self, user_id: Any, **changes) -> UserProfile:
        """
        Update the caller's own contact fields.

        Academic fields are not accepted here; see update_student_record.

        Raises:
            InvalidInputError: unknown or blank fields
            ConflictError: username or email belongs to someone else
            NotFoundError: no such user
        """
        key = UserId.parse(user_id).as_key()

        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields not editable here: {', '.join(sorted(unknown))}")

        for name in ("username", "full_name", "email"):
            if name in changes and not (changes[name] or "").strip():
                raise InvalidInputError(f"{name.replace('_', ' ').capitalize()} is required")

        if "username" in changes and self.users.username_taken(changes["username"], exclude_user_id=key):
            raise ConflictError("Username is already taken. Please choose a different one.", code="USERNAME_TAKEN")

        if "email" in changes and self.users.email_taken(changes["email"], exclude_user_id=key):
            raise ConflictError("Email already registered. Please use a different email.", code="EMAIL_TAKEN")

        try:
            user = self.users.update(key, **changes)
        except IntegrityError as e:
            raise ConflictError("Account details are already registered", detail=str(e.orig))

        if user is None:
            raise NotFoundError("User", key)

        logger.info(f"User {key} updated fields: {', '.join(sorted(changes))}")
        return UserProfile.from_user(user)

    def change_password(self, user_id: Any, current_password: str, new_password: str) -> None:
        """
        Raises:
            NotAuthenticatedError: current password is wrong
            InvalidInputError: new password too short
            NotFoundError: no such user
        """
        key = UserId.parse(user_id).as_key()
        user = self.users.get(key)
        if user is None:
            raise NotFoundError("User", key)

        if not verify_password(current_password, user.password):
            raise NotAuthenticatedError("Current password is incorrect")

        self._validate_new_password(new_password)

        self.users.update(key, password=get_password_hash(new_password))
        logger.info(f"Password changed for user {key}")

    def update_student_record(self, actor: Any, user_id: Any, **changes) -> UserProfile:
        """
        Change a student's year level, department or course. Administrators only.

        Raises:
            PermissionDeniedError: actor is not an administrator
            InvalidInputError: unknown fields
            NotFoundError: user has no student row
        """
        require_admin(actor)

        key = UserId.parse(user_id).as_key()

        unknown = set(changes) - STUDENT_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields not editable here: {', '.join(sorted(unknown))}")

        if self.users.update_student(key, **changes) is None:
            raise NotFoundError("Student", key)

        logger.info(f"Admin {actor.user_id} updated student record of user {key}")
        return self.get_profile(key)
