"""Integration model: stored third-party credentials."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import IntegrationType
from db.base import BaseModel


class Integration(BaseModel):
    """A connected provider account for one user.

    Attributes:
        id: Unique identifier (UUID string)
        user_id: Foreign key to the owning User
        name: Display name
        type: Provider (GMAIL, SLACK, GOOGLE_SHEETS, GITHUB)
        access_token: OAuth access token / bot token
        refresh_token: OAuth refresh token
        token_expires_at: Access token expiry
        config: Provider-specific settings
        is_active: Only active integrations are used by workflow steps
    """

    __tablename__ = "integrations"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(nullable=False, default="")
    type: Mapped[str] = mapped_column(
        default=IntegrationType.GMAIL.value, index=True
    )
    access_token: Mapped[Optional[str]] = mapped_column(nullable=True)
    refresh_token: Mapped[Optional[str]] = mapped_column(nullable=True)
    token_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    config: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, index=True)

    user: Mapped["User"] = relationship(
        "User", back_populates="integrations", lazy="noload"
    )
