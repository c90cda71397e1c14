"""Organisation and its role groups."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organisation(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organisations"

    name: str = Field(nullable=False)
    slug: str = Field(unique=True, nullable=False, index=True)
    type: str = Field(default="ORGANISATION", nullable=False)
    owner_user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")


class OrganisationGroup(UUIDMixin, SQLModel, table=True):
    """Role group: membership in a group grants its organisation role."""

    __tablename__ = "organisation_groups"

    organisation_id: uuid.UUID = Field(foreign_key="organisations.id", index=True, nullable=False)
    role: str = Field(nullable=False)  # ADMIN | MANAGER | MEMBER
    type: str = Field(default="INTERNAL_ORGANISATION", nullable=False)
