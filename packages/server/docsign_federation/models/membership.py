"""User-Organisation membership, granted through a role group."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class OrganisationMember(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "organisation_members"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "organisation_id", name="uq_member_user_org"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True, nullable=False)
    organisation_id: uuid.UUID = Field(foreign_key="organisations.id", index=True, nullable=False)
    group_id: uuid.UUID = Field(foreign_key="organisation_groups.id", nullable=False)
