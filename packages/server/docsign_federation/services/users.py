"""
Identity resolution for federated users.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from docsign_federation.models.membership import OrganisationMember
from docsign_federation.models.organization import Organisation
from docsign_federation.models.team import Team
from docsign_federation.models.user import User
from docsign_federation_shared.schemas.common import IdentityProvider

log = structlog.get_logger()


def canonical_email(email: str) -> str:
    return email.strip().lower()


def is_external_user(user: Optional[User]) -> bool:
    if not user:
        return False
    return user.identity_provider == IdentityProvider.EXTERNAL.value


async def find_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.email == canonical_email(email))
    )
    return result.scalar_one_or_none()


async def resolve_external_user(
    email: str, name: str, session: AsyncSession
) -> User:
    """Find-or-create the user for a partner-verified identity.

    New users are marked EXTERNAL with a verified email. An existing user's
    name follows whatever the partner sent last.
    """
    email = canonical_email(email)
    user = await find_user_by_email(email, session)

    if user is None:
        try:
            async with session.begin_nested():
                user = User(
                    email=email,
                    name=name,
                    identity_provider=IdentityProvider.EXTERNAL.value,
                    email_verified_at=datetime.now(timezone.utc),
                )
                session.add(user)
                await session.flush()
            log.info("user.created", user_id=str(user.id), source="external")
            return user
        except IntegrityError:
            log.info("user.create_conflict")
            user = await find_user_by_email(email, session)
            if user is None:
                raise

    if name and name != user.name:
        user.name = name
        session.add(user)
        await session.flush()
        log.info("user.renamed", user_id=str(user.id))

    return user


async def describe_user(email: str, session: AsyncSession) -> Optional[dict]:
    """The user with their organisations and each organisation's teams."""
    user = await find_user_by_email(email, session)
    if user is None:
        return None

    result = await session.execute(
        select(Organisation)
        .join(OrganisationMember, OrganisationMember.organisation_id == Organisation.id)
        .where(OrganisationMember.user_id == user.id)
        .order_by(Organisation.created_at)
    )
    organisations = result.scalars().all()

    described = []
    for org in organisations:
        teams = await session.execute(
            select(Team).where(Team.organisation_id == org.id).order_by(Team.created_at)
        )
        described.append(
            {
                "id": org.id,
                "name": org.name,
                "url": org.slug,
                "teams": [
                    {"id": t.id, "name": t.name, "url": t.url}
                    for t in teams.scalars().all()
                ],
            }
        )

    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "external": is_external_user(user),
        "organisations": described,
    }
