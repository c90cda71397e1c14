"""
Tenant provisioning: organisation/team/membership find-or-create keyed by the
partner's business id.

Concurrency relies on the unique constraints on `organisations.slug` and on
`(user_id, organisation_id)` memberships: a caller that loses a creation race
re-reads and continues as if the row had been there all along.
"""

from __future__ import annotations

import re
import secrets
import uuid
from typing import Optional, Protocol

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from docsign_federation.core.errors import ProvisioningConflict
from docsign_federation.models.membership import OrganisationMember
from docsign_federation.models.organization import Organisation, OrganisationGroup
from docsign_federation.models.team import Team
from docsign_federation.models.user import User
from docsign_federation.services.roles import map_role
from docsign_federation.services.users import find_user_by_email

from docsign_federation_shared.schemas.common import (
    ExternalRole,
    GroupType,
    OrganisationRole,
    OrganisationType,
)

log = structlog.get_logger()

SLUG_PREFIX = "yc-"
_SLUG_INVALID = re.compile(r"[^a-z0-9-]")


def deterministic_slug(business_id: str) -> str:
    """`yc-<business id>` lower-cased, with anything outside [a-z0-9-] turned into `-`."""
    return _SLUG_INVALID.sub("-", f"{SLUG_PREFIX}{business_id}".lower())


def generate_team_url() -> str:
    return f"team_{secrets.token_hex(8)}"


# ---------------------------------------------------------------------------
# Creation collaborator
# ---------------------------------------------------------------------------

class OrganisationFactory(Protocol):
    async def create_organisation(
        self, session: AsyncSession, *, name: str, slug: str, owner: User
    ) -> Organisation: ...

    async def create_team(
        self, session: AsyncSession, *, organisation: Organisation, name: str
    ) -> Team: ...


class SqlOrganisationFactory:
    """Creates organisations with their default role groups and teams."""

    async def create_organisation(
        self, session: AsyncSession, *, name: str, slug: str, owner: User
    ) -> Organisation:
        org = Organisation(
            name=name,
            slug=slug,
            type=OrganisationType.ORGANISATION.value,
            owner_user_id=owner.id,
        )
        session.add(org)
        await session.flush()

        groups = {
            role: OrganisationGroup(
                organisation_id=org.id,
                role=role.value,
                type=GroupType.INTERNAL_ORGANISATION.value,
            )
            for role in OrganisationRole
        }
        session.add_all(groups.values())
        await session.flush()

        # The owner is always an admin of the organisation they brought into existence.
        session.add(
            OrganisationMember(
                user_id=owner.id,
                organisation_id=org.id,
                group_id=groups[OrganisationRole.ADMIN].id,
            )
        )
        await session.flush()
        return org

    async def create_team(
        self, session: AsyncSession, *, organisation: Organisation, name: str
    ) -> Team:
        team = Team(organisation_id=organisation.id, name=name, url=generate_team_url())
        session.add(team)
        await session.flush()
        return team


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def find_organisation(slug: str, session: AsyncSession) -> Optional[Organisation]:
    result = await session.execute(select(Organisation).where(Organisation.slug == slug))
    return result.scalar_one_or_none()


async def canonical_team(organisation_id: uuid.UUID, session: AsyncSession) -> Optional[Team]:
    """The organisation's oldest team."""
    result = await session.execute(
        select(Team)
        .where(Team.organisation_id == organisation_id)
        .order_by(Team.created_at, Team.id)
        .limit(1)
    )
    return result.scalars().first()


async def find_role_group(
    organisation_id: uuid.UUID, role: OrganisationRole, session: AsyncSession
) -> Optional[OrganisationGroup]:
    result = await session.execute(
        select(OrganisationGroup).where(
            OrganisationGroup.organisation_id == organisation_id,
            OrganisationGroup.role == role.value,
        )
    )
    return result.scalars().first()


async def find_membership(
    user_id: uuid.UUID, organisation_id: uuid.UUID, session: AsyncSession
) -> Optional[OrganisationMember]:
    result = await session.execute(
        select(OrganisationMember).where(
            OrganisationMember.user_id == user_id,
            OrganisationMember.organisation_id == organisation_id,
        )
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------

class TenantProvisioner:
    """Resolves a partner business to an organisation + default team."""

    def __init__(self, session: AsyncSession, factory: OrganisationFactory | None = None):
        self.session = session
        self.factory = factory or SqlOrganisationFactory()

    async def provision(
        self,
        user: User,
        business_id: str,
        business_name: str,
        role: ExternalRole = ExternalRole.MEMBER,
    ) -> tuple[Organisation, Optional[Team]]:
        slug = deterministic_slug(business_id)
        org = await find_organisation(slug, self.session)

        if org is None:
            try:
                org = await self._create_tenant(user, slug, business_name)
            except ProvisioningConflict:
                org = await find_organisation(slug, self.session)
                if org is None:
                    raise
                log.info("tenant.create_conflict_recovered", slug=slug, org_id=str(org.id))
                await self._ensure_membership(user, org, map_role(role))
        else:
            await self._ensure_membership(user, org, map_role(role))

        team = await canonical_team(org.id, self.session)
        return org, team

    async def _create_tenant(self, user: User, slug: str, business_name: str) -> Organisation:
        try:
            async with self.session.begin_nested():
                org = await self.factory.create_organisation(
                    self.session, name=business_name, slug=slug, owner=user
                )
                team = await self.factory.create_team(
                    self.session, organisation=org, name=business_name
                )
        except IntegrityError as exc:
            raise ProvisioningConflict(slug) from exc

        log.info(
            "tenant.created",
            org_id=str(org.id),
            team_id=str(team.id),
            slug=slug,
            owner=str(user.id),
        )
        return org

    async def _ensure_membership(
        self, user: User, org: Organisation, role: OrganisationRole
    ) -> None:
        if await find_membership(user.id, org.id, self.session):
            return

        group = await find_role_group(org.id, role, self.session)
        if group is None:
            log.warning(
                "tenant.role_group_missing",
                org_id=str(org.id),
                user_id=str(user.id),
                role=role.value,
            )
            return

        try:
            async with self.session.begin_nested():
                self.session.add(
                    OrganisationMember(
                        user_id=user.id, organisation_id=org.id, group_id=group.id
                    )
                )
                await self.session.flush()
        except IntegrityError:
            # Someone else added the same membership first.
            log.info("member.create_conflict", org_id=str(org.id), user_id=str(user.id))
            return

        log.info("member.added", org_id=str(org.id), user_id=str(user.id), role=role.value)


async def remove_member(email: str, business_id: str, session: AsyncSession) -> str:
    """Remove a user from the business's organisation. Missing rows are a no-op."""
    user = await find_user_by_email(email, session)
    if user is None:
        return "User not found"

    org = await find_organisation(deterministic_slug(business_id), session)
    if org is None:
        return "Organisation not found"

    await session.execute(
        delete(OrganisationMember).where(
            OrganisationMember.user_id == user.id,
            OrganisationMember.organisation_id == org.id,
        )
    )
    await session.flush()
    log.info("member.removed", org_id=str(org.id), user_id=str(user.id))
    return "Member removed from organisation"
