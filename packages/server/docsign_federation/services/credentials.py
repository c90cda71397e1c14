"""
Per-team API token handed to the partner for back-channel calls.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from docsign_federation.core.security import generate_api_token, hash_api_token
from docsign_federation.models.api_token import ApiToken
from docsign_federation.models.organization import Organisation
from docsign_federation.models.team import Team
from docsign_federation.models.user import User

log = structlog.get_logger()

CREDENTIAL_NAME_PREFIX = "yc-external-"


def credential_name(organisation: Organisation) -> str:
    return f"{CREDENTIAL_NAME_PREFIX}{organisation.id}"


async def ensure_team_api_token(
    team: Team, organisation: Organisation, user: User, session: AsyncSession
) -> Optional[str]:
    """Mint the tenant's partner token if the team does not have one yet.

    Returns the raw token only when it was created by this call, else None.
    """
    name = credential_name(organisation)
    result = await session.execute(
        select(ApiToken).where(ApiToken.team_id == team.id, ApiToken.name == name)
    )
    if result.scalars().first():
        return None

    raw_token = generate_api_token()
    try:
        async with session.begin_nested():
            session.add(
                ApiToken(
                    name=name,
                    token_hash=hash_api_token(raw_token),
                    user_id=user.id,
                    team_id=team.id,
                )
            )
            await session.flush()
    except IntegrityError:
        log.info("api_token.create_conflict", team_id=str(team.id))
        return None

    log.info("api_token.created", team_id=str(team.id), org_id=str(organisation.id))
    return raw_token
