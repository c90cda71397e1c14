"""
Federation flow shared by `exchange-token`, `authorize-business` and the
browser sign-in page: resolve identity → provision tenant → ensure the
tenant's partner API token.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from docsign_federation.core.config import Settings
from docsign_federation.core.errors import FederationError, InternalError, redact
from docsign_federation.models.organization import Organisation
from docsign_federation.models.team import Team
from docsign_federation.models.user import User
from docsign_federation.services.credentials import ensure_team_api_token
from docsign_federation.services.organizations import OrganisationFactory, TenantProvisioner
from docsign_federation.services.token_store import PendingClaim
from docsign_federation.services.users import resolve_external_user

from docsign_federation_shared.schemas.external import (
    FederatedSessionResponse,
    OrganisationSummary,
    TeamSummary,
    UserSummary,
)

log = structlog.get_logger()


@dataclass
class FederationOutcome:
    user: User
    organisation: Organisation
    team: Optional[Team]
    business_id: str
    api_token: Optional[str] = None  # raw value, only when minted by this call

    @property
    def redirect_url(self) -> str:
        if self.team:
            return f"/t/{self.team.url}"
        return f"/o/{self.organisation.slug}"

    @property
    def documents_url(self) -> Optional[str]:
        if self.team:
            return f"/t/{self.team.url}/documents"
        return None

    def to_response(self) -> FederatedSessionResponse:
        return FederatedSessionResponse(
            user=UserSummary(id=self.user.id, email=self.user.email, name=self.user.name),
            organisation=OrganisationSummary(
                id=self.organisation.id,
                name=self.organisation.name,
                url=self.organisation.slug,
            ),
            team=(
                TeamSummary(id=self.team.id, name=self.team.name, url=self.team.url)
                if self.team
                else None
            ),
            redirect_url=self.redirect_url,
            documents_url=self.documents_url,
        )


async def federate(
    claim: PendingClaim,
    session: AsyncSession,
    settings: Settings,
    factory: OrganisationFactory | None = None,
) -> FederationOutcome:
    """Run the provisioning flow for a verified claim and commit it."""
    try:
        user = await resolve_external_user(claim.email, claim.name, session)
        org, team = await TenantProvisioner(session, factory).provision(
            user, claim.business_id, claim.business_name, claim.role
        )
        api_token = (
            await ensure_team_api_token(team, org, user, session) if team else None
        )
        # The token must be durable before it is announced to the partner.
        await session.commit()
    except FederationError:
        raise
    except Exception as exc:
        log.exception("federation.failed", business_id=claim.business_id)
        message = redact(
            str(exc) or "An error occurred",
            settings.external_auth_secret,
            settings.partner_webhook_secret,
        )
        raise InternalError(message) from exc

    log.info(
        "federation.completed",
        user_id=str(user.id),
        org_id=str(org.id),
        team_id=str(team.id) if team else None,
        api_token_minted=api_token is not None,
    )
    return FederationOutcome(
        user=user,
        organisation=org,
        team=team,
        business_id=claim.business_id,
        api_token=api_token,
    )
