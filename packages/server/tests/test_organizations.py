"""
Integration tests for tenant provisioning.

Tests cover:
- Deterministic slugs
- Organisation + role groups + default team creation
- Idempotent re-provisioning and role mapping for later members
- Recovery when another caller creates the same tenant first
- Member removal
"""

from __future__ import annotations

import re

import pytest
from sqlalchemy import delete, func
from sqlmodel import select

from docsign_federation.models.membership import OrganisationMember
from docsign_federation.models.organization import Organisation, OrganisationGroup
from docsign_federation.models.team import Team
from docsign_federation.services.organizations import (
    SqlOrganisationFactory,
    TenantProvisioner,
    deterministic_slug,
    find_membership,
    remove_member,
)
from docsign_federation.services.users import resolve_external_user
from docsign_federation_shared.schemas.common import ExternalRole


async def count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def group_role(session, member: OrganisationMember) -> str:
    group = await session.get(OrganisationGroup, member.group_id)
    return group.role


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------

class TestDeterministicSlug:
    def test_prefix_and_lowercase(self):
        assert deterministic_slug("ABC123") == "yc-abc123"

    def test_invalid_characters_replaced(self):
        assert deterministic_slug("Happy_Paws 123") == "yc-happy-paws-123"

    def test_only_allowed_characters(self):
        slug = deterministic_slug("biz/ü.#$%_x")
        assert re.fullmatch(r"[a-z0-9-]+", slug)

    def test_stable(self):
        assert deterministic_slug("biz_1") == deterministic_slug("biz_1")


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------

class TestProvision:
    @pytest.mark.asyncio
    async def test_first_call_creates_tenant(self, session):
        user = await resolve_external_user("a@b.com", "A", session)
        org, team = await TenantProvisioner(session).provision(
            user, "biz_1", "Biz", ExternalRole.ADMIN
        )
        await session.commit()

        assert org.slug == "yc-biz-1"
        assert org.name == "Biz"
        assert org.owner_user_id == user.id
        assert team is not None
        assert team.organisation_id == org.id
        assert team.name == "Biz"
        assert team.url.startswith("team_")

        groups = (
            await session.execute(
                select(OrganisationGroup).where(OrganisationGroup.organisation_id == org.id)
            )
        ).scalars().all()
        assert sorted(g.role for g in groups) == ["ADMIN", "MANAGER", "MEMBER"]
        assert {g.type for g in groups} == {"INTERNAL_ORGANISATION"}

        member = await find_membership(user.id, org.id, session)
        assert member is not None
        assert await group_role(session, member) == "ADMIN"

    @pytest.mark.asyncio
    async def test_creator_is_admin_whatever_the_role(self, session):
        user = await resolve_external_user("m@b.com", "M", session)
        org, _ = await TenantProvisioner(session).provision(
            user, "biz_2", "Biz Two", ExternalRole.MEMBER
        )

        member = await find_membership(user.id, org.id, session)
        assert await group_role(session, member) == "ADMIN"

    @pytest.mark.asyncio
    async def test_idempotent(self, session):
        user = await resolve_external_user("a@b.com", "A", session)
        provisioner = TenantProvisioner(session)

        org1, team1 = await provisioner.provision(user, "biz_1", "Biz", ExternalRole.ADMIN)
        await session.commit()
        org2, team2 = await provisioner.provision(user, "biz_1", "Biz", ExternalRole.ADMIN)
        await session.commit()

        assert org1.id == org2.id
        assert team1.id == team2.id
        assert await count(session, Organisation) == 1
        assert await count(session, Team) == 1
        assert await count(session, OrganisationMember) == 1

    @pytest.mark.asyncio
    async def test_existing_name_kept(self, session):
        user = await resolve_external_user("a@b.com", "A", session)
        provisioner = TenantProvisioner(session)
        await provisioner.provision(user, "biz_1", "Biz", ExternalRole.ADMIN)
        org, team = await provisioner.provision(user, "biz_1", "Renamed Biz", ExternalRole.ADMIN)

        assert org.name == "Biz"
        assert team.name == "Biz"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "external_role, expected",
        [
            (ExternalRole.ADMIN, "ADMIN"),
            (ExternalRole.MANAGER, "MANAGER"),
            (ExternalRole.MEMBER, "MEMBER"),
        ],
    )
    async def test_later_member_gets_mapped_role(self, session, external_role, expected):
        owner = await resolve_external_user("owner@b.com", "Owner", session)
        provisioner = TenantProvisioner(session)
        org, _ = await provisioner.provision(owner, "biz_1", "Biz", ExternalRole.ADMIN)

        joiner = await resolve_external_user("joiner@b.com", "Joiner", session)
        await provisioner.provision(joiner, "biz_1", "Biz", external_role)
        await session.commit()

        member = await find_membership(joiner.id, org.id, session)
        assert await group_role(session, member) == expected
        assert await count(session, OrganisationMember) == 2

    @pytest.mark.asyncio
    async def test_existing_membership_role_not_changed(self, session):
        owner = await resolve_external_user("owner@b.com", "Owner", session)
        provisioner = TenantProvisioner(session)
        org, _ = await provisioner.provision(owner, "biz_1", "Biz", ExternalRole.ADMIN)
        await provisioner.provision(owner, "biz_1", "Biz", ExternalRole.MEMBER)

        member = await find_membership(owner.id, org.id, session)
        assert await group_role(session, member) == "ADMIN"

    @pytest.mark.asyncio
    async def test_missing_role_group_skips_membership(self, session):
        owner = await resolve_external_user("owner@b.com", "Owner", session)
        provisioner = TenantProvisioner(session)
        org, _ = await provisioner.provision(owner, "biz_1", "Biz", ExternalRole.ADMIN)
        await session.execute(
            delete(OrganisationGroup).where(
                OrganisationGroup.organisation_id == org.id,
                OrganisationGroup.role == "MEMBER",
            )
        )
        await session.commit()

        joiner = await resolve_external_user("joiner@b.com", "Joiner", session)
        org2, team = await provisioner.provision(joiner, "biz_1", "Biz", ExternalRole.MEMBER)

        assert org2.id == org.id
        assert team is not None
        assert await find_membership(joiner.id, org.id, session) is None

    @pytest.mark.asyncio
    async def test_team_missing_returns_none(self, session):
        owner = await resolve_external_user("owner@b.com", "Owner", session)
        provisioner = TenantProvisioner(session)
        org, _ = await provisioner.provision(owner, "biz_1", "Biz", ExternalRole.ADMIN)
        await session.execute(delete(Team).where(Team.organisation_id == org.id))
        await session.commit()

        org2, team = await provisioner.provision(owner, "biz_1", "Biz", ExternalRole.ADMIN)
        assert org2.id == org.id
        assert team is None


# ---------------------------------------------------------------------------
# Creation races
# ---------------------------------------------------------------------------

class RacingFactory(SqlOrganisationFactory):
    """Lets a rival finish provisioning the same business before creating."""

    def __init__(self, rival):
        self.rival = rival
        self.raced = False

    async def create_organisation(self, session, *, name, slug, owner):
        if not self.raced:
            self.raced = True
            await self.rival()
        return await super().create_organisation(session, name=name, slug=slug, owner=owner)


class TestProvisionConflict:
    @pytest.mark.asyncio
    async def test_loser_converges_on_winner(self, session, session_factory):
        rival_ids = {}

        async def rival():
            async with session_factory() as other:
                rival_user = await resolve_external_user("rival@b.com", "Rival", other)
                org, team = await TenantProvisioner(other).provision(
                    rival_user, "biz_1", "Biz", ExternalRole.ADMIN
                )
                await other.commit()
                rival_ids["org"], rival_ids["team"] = org.id, team.id

        user = await resolve_external_user("a@b.com", "A", session)
        await session.commit()

        factory = RacingFactory(rival)
        org, team = await TenantProvisioner(session, factory).provision(
            user, "biz_1", "Biz", ExternalRole.MEMBER
        )
        await session.commit()

        assert factory.raced
        assert org.id == rival_ids["org"]
        assert team.id == rival_ids["team"]
        assert await count(session, Organisation) == 1
        assert await count(session, Team) == 1
        assert await count(session, OrganisationMember) == 2

        member = await find_membership(user.id, org.id, session)
        assert await group_role(session, member) == "MEMBER"


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------

class TestRemoveMember:
    @pytest.mark.asyncio
    async def test_unknown_user(self, session):
        assert await remove_member("nobody@b.com", "biz_1", session) == "User not found"

    @pytest.mark.asyncio
    async def test_unknown_organisation(self, session):
        await resolve_external_user("a@b.com", "A", session)
        assert await remove_member("a@b.com", "biz_x", session) == "Organisation not found"

    @pytest.mark.asyncio
    async def test_removes_membership(self, session):
        user = await resolve_external_user("a@b.com", "A", session)
        org, _ = await TenantProvisioner(session).provision(
            user, "biz_1", "Biz", ExternalRole.ADMIN
        )

        message = await remove_member("A@B.com", "biz_1", session)
        assert message == "Member removed from organisation"
        assert await find_membership(user.id, org.id, session) is None

        # A second removal is a no-op with the same outcome.
        assert await remove_member("a@b.com", "biz_1", session) == "Member removed from organisation"
