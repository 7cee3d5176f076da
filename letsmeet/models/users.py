"""
User model.

Users are owned by the account side of the application; the matching core
only refers to them by id.
"""

from typing import Optional, TYPE_CHECKING

from sqlalchemy import Float, String, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from letsmeet.models.base import BaseModel

if TYPE_CHECKING:
    from letsmeet.models.availability import AvailabilityInstance


class User(BaseModel):
    """A person who publishes availability and gets matched."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Display name"
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Contact email; registration rejects one already in use"
    )

    city: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
        doc="Home city"
    )

    latitude: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
    )

    longitude: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
    )

    instances: Mapped[list["AvailabilityInstance"]] = relationship(
        "AvailabilityInstance",
        back_populates="user",
        passive_deletes=True,
        doc="Availability published by this user"
    )

    __table_args__ = (
        Index("idx_user_email", "email"),
        Index("idx_user_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<User(name='{self.name}', id={self.id})>"
