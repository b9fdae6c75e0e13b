"""Key-value row model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, Session, mapped_column

from lyriq.db import Base


class StoredValue(Base):
    """
    Represents one entry of the application's key-value store.
    """

    __tablename__ = "stored_values"

    #: The key.
    key: Mapped[str] = mapped_column(String, primary_key=True)
    #: The serialized value.
    value: Mapped[str] = mapped_column(Text, nullable=False)
    #: The date and time the value was last written.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    @classmethod
    def get(cls, session: Session, key: str) -> StoredValue | None:
        """
        Get a stored value by key.

        Args:
            session: SQLAlchemy session
            key: The key

        Returns:
            StoredValue or None if not found

        """
        return session.get(cls, key)
