"""Per-team API token minted for partner back-channel calls."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class ApiToken(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "api_tokens"
    __table_args__ = (
        sa.UniqueConstraint("team_id", "name", name="uq_api_token_team_name"),
    )

    name: str = Field(nullable=False)
    token_hash: str = Field(nullable=False)  # bcrypt hash, raw value is never stored
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    team_id: uuid.UUID = Field(foreign_key="teams.id", index=True, nullable=False)
