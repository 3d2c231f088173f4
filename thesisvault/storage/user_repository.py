"""
User Repository for ThesisVault

Users with their optional Student and Admin rows.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from loguru import logger

from .database import Database
from .models import Admin, Student, User


@dataclass
class StudentRecord:
    """Student row."""

    student_id: str
    year_level: Optional[str] = None
    college_department: Optional[str] = None
    course: Optional[str] = None

    @classmethod
    def from_model(cls, model: Student) -> "StudentRecord":
        return cls(
            student_id=model.student_id,
            year_level=model.year_level,
            college_department=model.college_department,
            course=model.course,
        )


@dataclass
class AdminRecord:
    """Admin row."""

    admin_id: int
    position: Optional[str] = None
    college_department: Optional[str] = None

    @classmethod
    def from_model(cls, model: Admin) -> "AdminRecord":
        return cls(
            admin_id=model.admin_id,
            position=model.position,
            college_department=model.college_department,
        )


@dataclass
class StoredUser:
    """User row joined with its role rows."""

    user_id: int
    username: str
    password: str
    full_name: str
    email: str
    phone: Optional[str] = None
    birthdate: Optional[date] = None
    created_at: Optional[datetime] = None
    student: Optional[StudentRecord] = None
    admin: Optional[AdminRecord] = None

    @classmethod
    def from_model(cls, model: User) -> "StoredUser":
        return cls(
            user_id=model.user_id,
            username=model.username,
            password=model.password,
            full_name=model.full_name,
            email=model.email,
            phone=model.phone,
            birthdate=model.birthdate,
            created_at=model.created_at,
            student=StudentRecord.from_model(model.student) if model.student else None,
            admin=AdminRecord.from_model(model.admin) if model.admin else None,
        )


class UserRepository:
    """Repository for user accounts."""

    def __init__(self, database: Database):
        self.database = database

    def get(self, user_id: int) -> Optional[StoredUser]:
        """Get user by ID, with role rows."""
        with self.database.get_session() as session:
            user = session.get(User, user_id)
            if user:
                return StoredUser.from_model(user)
            return None

    def get_by_username(self, username: str) -> Optional[StoredUser]:
        with self.database.get_session() as session:
            user = session.query(User).filter(User.username == username).first()
            if user:
                return StoredUser.from_model(user)
            return None

    def username_taken(self, username: str, exclude_user_id: Optional[int] = None) -> bool:
        with self.database.get_session() as session:
            query = session.query(User.user_id).filter(User.username == username)
            if exclude_user_id is not None:
                query = query.filter(User.user_id != exclude_user_id)
            return query.first() is not None

    def email_taken(self, email: str, exclude_user_id: Optional[int] = None) -> bool:
        with self.database.get_session() as session:
            query = session.query(User.user_id).filter(User.email == email)
            if exclude_user_id is not None:
                query = query.filter(User.user_id != exclude_user_id)
            return query.first() is not None

    def student_id_taken(self, student_id: str) -> bool:
        with self.database.get_session() as session:
            return session.query(Student.user_id).filter(
                Student.student_id == student_id,
            ).first() is not None

    def create(
        self,
        username: str,
        password: str,
        full_name: str,
        email: str,
        phone: Optional[str] = None,
        birthdate: Optional[date] = None,
        student: Optional[StudentRecord] = None,
    ) -> StoredUser:
        """
        Create a user and, optionally, its student row in one transaction.

        Either both rows are committed or neither is: a failing student
        insert rolls back the user insert as well.

        Raises:
            sqlalchemy.exc.IntegrityError: a unique column collided
        """
        with self.database.get_session() as session:
            with session.begin():
                user = User(
                    username=username,
                    password=password,
                    full_name=full_name,
                    email=email,
                    phone=phone,
                    birthdate=birthdate,
                )
                session.add(user)
                session.flush()

                if student is not None:
                    session.add(Student(
                        user_id=user.user_id,
                        student_id=student.student_id,
                        year_level=student.year_level,
                        college_department=student.college_department,
                        course=student.course,
                    ))
                    session.flush()

            session.refresh(user)
            logger.info(f"Created user {user.user_id} ({username})")
            return StoredUser.from_model(user)

    def add_admin(
        self,
        user_id: int,
        position: Optional[str] = None,
        college_department: Optional[str] = None,
    ) -> AdminRecord:
        with self.database.get_session() as session:
            admin = Admin(user_id=user_id, position=position, college_department=college_department)
            session.add(admin)
            session.commit()
            session.refresh(admin)
            return AdminRecord.from_model(admin)

    def update(self, user_id: int, **updates) -> Optional[StoredUser]:
        """
        Update user columns.

        Args:
            user_id: User ID
            **updates: Column values to set

        Returns:
            Updated StoredUser or None
        """
        with self.database.get_session() as session:
            user = session.get(User, user_id)
            if not user:
                return None

            for key, value in updates.items():
                if hasattr(User, key):
                    setattr(user, key, value)

            session.commit()
            session.refresh(user)
            return StoredUser.from_model(user)

    def update_student(self, user_id: int, **updates) -> Optional[StudentRecord]:
        with self.database.get_session() as session:
            student = session.get(Student, user_id)
            if not student:
                return None

            for key, value in updates.items():
                if hasattr(Student, key):
                    setattr(student, key, value)

            session.commit()
            session.refresh(student)
            return StudentRecord.from_model(student)
