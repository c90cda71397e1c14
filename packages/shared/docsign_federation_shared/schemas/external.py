"""Partner federation schemas.

Request fields are all optional at the parsing layer: the shared secret is
checked before required-field validation, so a missing field must not turn
into a parse error ahead of the secret check.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from .common import CamelModel


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class AuthorizeRequest(CamelModel):
    email: Optional[str] = None
    name: Optional[str] = None
    external_secret: Optional[str] = None


class BusinessAuthorizeRequest(CamelModel):
    """Body of both `generate-token` and `authorize-business`."""
    email: Optional[str] = None
    name: Optional[str] = None
    business_id: Optional[str] = None
    business_name: Optional[str] = None
    role: Optional[str] = None
    external_secret: Optional[str] = None


class ExchangeTokenRequest(CamelModel):
    token: Optional[str] = None


class VerifyRequest(CamelModel):
    email: Optional[str] = None
    external_secret: Optional[str] = None


class RemoveMemberRequest(CamelModel):
    email: Optional[str] = None
    business_id: Optional[str] = None
    external_secret: Optional[str] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserSummary(CamelModel):
    id: uuid.UUID
    email: str
    name: Optional[str] = None


class OrganisationSummary(CamelModel):
    id: uuid.UUID
    name: str
    url: str


class TeamSummary(CamelModel):
    id: uuid.UUID
    name: str
    url: str


class GenerateTokenResponse(CamelModel):
    success: bool = True
    token: str
    redirect_url: str


class AuthorizeResponse(CamelModel):
    success: bool = True
    user: UserSummary


class FederatedSessionResponse(CamelModel):
    """Returned by `exchange-token` and `authorize-business`."""
    success: bool = True
    user: UserSummary
    organisation: OrganisationSummary
    team: Optional[TeamSummary] = None
    redirect_url: str
    documents_url: Optional[str] = None


class VerifiedOrganisation(OrganisationSummary):
    teams: List[TeamSummary] = []


class VerifiedUser(UserSummary):
    external: bool = False
    organisations: List[VerifiedOrganisation] = []


class VerifyResponse(CamelModel):
    exists: bool
    user: Optional[VerifiedUser] = None


class RemoveMemberResponse(CamelModel):
    success: bool = True
    message: str
