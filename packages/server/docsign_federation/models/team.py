"""Team model."""

import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Team(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "teams"

    organisation_id: uuid.UUID = Field(foreign_key="organisations.id", index=True, nullable=False)
    name: str = Field(nullable=False)
    url: str = Field(unique=True, nullable=False)
