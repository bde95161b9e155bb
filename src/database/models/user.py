"""
User account.

Pure schema. Passwords are stored as bcrypt hashes; OAuth-only accounts
have no hash.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Account identity; the string id is also the JWT `userId` claim."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    hashed_password: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="bcrypt hash; NULL for accounts without password login",
    )

    profile_image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    has_completed_onboarding: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "profileImageUrl": self.profile_image_url,
            "hasCompletedOnboarding": bool(self.has_completed_onboarding),
        }
