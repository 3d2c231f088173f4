"""
Thesis Repository for ThesisVault

Read access to thesis records:
- Lookup by id
- Case-insensitive partial match on the stored PDF reference
- Text search with department/batch filters

Theses are administrator-managed; `create` exists for seeding and imports.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import or_

from .database import Database
from .models import Thesis


@dataclass
class StoredThesis:
    """Data class for thesis data transfer."""

    thesis_id: int
    title: str
    author: str

    abstract: Optional[str] = None
    college_department: Optional[str] = None
    batch: Optional[str] = None
    pdf_file_url: Optional[str] = None
    available_copies: int = 1
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: Thesis) -> "StoredThesis":
        """Create from SQLAlchemy model."""
        return cls(
            thesis_id=model.thesis_id,
            title=model.title,
            author=model.author,
            abstract=model.abstract,
            college_department=model.college_department,
            batch=model.batch,
            pdf_file_url=model.pdf_file_url,
            available_copies=model.available_copies if model.available_copies is not None else 1,
            created_at=model.created_at,
        )

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0


class ThesisRepository:
    """
    Repository for thesis lookups.

    Usage:
        repo = ThesisRepository(Database("sqlite:///thesisvault.db"))

        thesis = repo.get(42)
        matches = repo.find_by_file_fragment("ML_Healthcare_2023.pdf")
    """

    def __init__(self, database: Database):
        self.database = database

    def create(self, title: str, author: str, **kwargs) -> StoredThesis:
        """
        Create a thesis record.

        Args:
            title: Thesis title
            author: Author name(s)
            **kwargs: Additional columns

        Returns:
            Created StoredThesis
        """
        with self.database.get_session() as session:
            thesis = Thesis(title=title, author=author, **kwargs)
            session.add(thesis)
            session.commit()
            session.refresh(thesis)

            logger.debug(f"Created thesis {thesis.thesis_id}: {title}")
            return StoredThesis.from_model(thesis)

    def get(self, thesis_id: int) -> Optional[StoredThesis]:
        """
        Get thesis by ID.

        Args:
            thesis_id: Thesis ID

        Returns:
            StoredThesis or None
        """
        with self.database.get_session() as session:
            thesis = session.get(Thesis, thesis_id)
            if thesis:
                return StoredThesis.from_model(thesis)
            return None

    def find_by_file_fragment(self, fragment: str, limit: int = 2) -> list[StoredThesis]:
        """
        Find theses whose PDF reference contains `fragment` (case-insensitive).

        Callers pass limit=2 to tell "unique" from "ambiguous" without
        loading every collision.
        """
        pattern = f"%{_escape_like(fragment)}%"

        with self.database.get_session() as session:
            theses = session.query(Thesis).filter(
                Thesis.pdf_file_url.ilike(pattern, escape="\\"),
            ).order_by(Thesis.thesis_id).limit(limit).all()

            return [StoredThesis.from_model(t) for t in theses]

    def search(
        self,
        query: Optional[str] = None,
        college_department: Optional[str] = None,
        batch: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[StoredThesis]:
        """
        Search theses by title/author/abstract.

        Args:
            query: Free text, matched as a substring
            college_department: Exact department filter
            batch: Exact batch filter
            limit: Max results
            offset: Skip count

        Returns:
            Matching theses, newest first
        """
        with self.database.get_session() as session:
            q = session.query(Thesis)

            if query:
                pattern = f"%{_escape_like(query)}%"
                q = q.filter(
                    or_(
                        Thesis.title.ilike(pattern, escape="\\"),
                        Thesis.author.ilike(pattern, escape="\\"),
                        Thesis.abstract.ilike(pattern, escape="\\"),
                    )
                )

            if college_department:
                q = q.filter(Thesis.college_department == college_department)

            if batch:
                q = q.filter(Thesis.batch == batch)

            theses = q.order_by(
                Thesis.created_at.desc(),
                Thesis.thesis_id.desc(),
            ).offset(offset).limit(limit).all()

            return [StoredThesis.from_model(t) for t in theses]


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
