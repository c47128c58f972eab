"""SQLAlchemy models: User, SavedVenue."""

from datetime import datetime
from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class User(Base):
    """Telegram user of the directory bot."""

    __tablename__ = "users"

    telegram_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)

    # Venue IDs (backend) this user may edit as owner
    owned_venue_ids: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, default=list, server_default="{}"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    saved_venues: Mapped[list["SavedVenue"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def owns(self, venue_id: str) -> bool:
        return venue_id in (self.owned_venue_ids or [])

    def __repr__(self) -> str:
        return f"<User {self.telegram_id}: {self.full_name}>"


class SavedVenue(Base):
    """Venue bookmarked by a user."""

    __tablename__ = "saved_venues"
    __table_args__ = (
        UniqueConstraint("user_id", "venue_id", name="uq_saved_venue"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.telegram_id", ondelete="CASCADE"), nullable=False
    )
    venue_id: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped["User"] = relationship(back_populates="saved_venues")

    def __repr__(self) -> str:
        return f"<SavedVenue user={self.user_id} venue={self.venue_id}>"
