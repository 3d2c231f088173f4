"""
Database models for ThesisVault.

Table and column names follow the hosted schema the mobile client was
built against, so existing rows load without a migration.
"""

from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """User account."""
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(150), unique=True, index=True, nullable=False)
    # argon2 hash; legacy rows may still hold plaintext until the next login
    password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50))
    birthdate = Column(Date)
    created_at = Column(DateTime, default=utcnow)

    student = relationship("Student", uselist=False, back_populates="user")
    admin = relationship("Admin", uselist=False, back_populates="user")


class Student(Base):
    """Student profile, 1:1 with User."""
    __tablename__ = "students"

    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True)
    student_id = Column(String(50), unique=True, index=True, nullable=False)
    year_level = Column(String(50))
    college_department = Column(String(255))
    course = Column(String(255))

    user = relationship("User", back_populates="student")


class Admin(Base):
    """Administrator profile, 1:1 with User."""
    __tablename__ = "admins"

    admin_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), unique=True, nullable=False)
    position = Column(String(255))
    college_department = Column(String(255))

    user = relationship("User", back_populates="admin")


class Thesis(Base):
    """Thesis record with a reference to its stored PDF."""
    __tablename__ = "theses"

    thesis_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(500), nullable=False, index=True)
    abstract = Column(Text)
    college_department = Column(String(255), index=True)
    batch = Column(String(50), index=True)
    pdf_file_url = Column(String(1000))
    available_copies = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)


class AccessRequest(Base):
    """Per-(user, thesis) request to view a protected PDF."""
    __tablename__ = "thesis_access_requests"

    access_request_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    thesis_id = Column(Integer, ForeignKey("theses.thesis_id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, denied
    request_date = Column(DateTime, nullable=False, default=utcnow)
    approved_date = Column(DateTime)
    remove_access_date = Column(DateTime)  # NULL on an approved row means permanent

    __table_args__ = (
        # At most one pending row per pair, even under concurrent inserts.
        Index(
            "uq_access_requests_pending",
            "user_id",
            "thesis_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("idx_access_requests_latest", "user_id", "thesis_id", "request_date"),
    )


class ScanRecord(Base):
    """Last time a user scanned/viewed a thesis."""
    __tablename__ = "user_recent_scanned"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    thesis_id = Column(Integer, ForeignKey("theses.thesis_id"), nullable=False)
    scanned_date = Column(DateTime, nullable=False, default=utcnow)

    thesis = relationship("Thesis")

    __table_args__ = (
        UniqueConstraint("user_id", "thesis_id", name="uq_recent_scanned_pair"),
    )


class BookshelfLog(Base):
    """Append-only borrow/return log."""
    __tablename__ = "bookshelf_logs"

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    thesis_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class BookshelfInventory(Base):
    """Physical slot state reported for a thesis on the smart bookshelf."""
    __tablename__ = "bookshelf_inventory"

    inventory_id = Column(Integer, primary_key=True, autoincrement=True)
    thesis_id = Column(Integer, ForeignKey("theses.thesis_id"), unique=True, nullable=False)
    current_status = Column(String(20), nullable=False, default="available")
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
