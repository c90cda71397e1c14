"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class User(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)  # always lower-case
    name: Optional[str] = None
    identity_provider: str = Field(default="EMAIL", nullable=False)  # EXTERNAL | EMAIL
    email_verified_at: Optional[datetime] = Field(
        default=None, sa_type=sa.DateTime(timezone=True)
    )
