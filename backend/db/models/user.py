"""User model: owner of workflows and integrations."""

from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import BaseModel


class User(BaseModel):
    """Workflow owner.

    Accounts are managed elsewhere; the engine only needs the id to scope
    integrations and executions.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(nullable=False, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(nullable=True)

    workflows: Mapped[list["Workflow"]] = relationship(
        "Workflow",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="noload",
    )
    integrations: Mapped[list["Integration"]] = relationship(
        "Integration",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="noload",
    )
