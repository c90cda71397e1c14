"""Partner role strings → internal organisation roles."""

from __future__ import annotations

from typing import Optional

from docsign_federation.core.errors import RequestValidationFailed

from docsign_federation_shared.schemas.common import ExternalRole, OrganisationRole

ROLE_MAP: dict[ExternalRole, OrganisationRole] = {
    ExternalRole.ADMIN: OrganisationRole.ADMIN,
    ExternalRole.MANAGER: OrganisationRole.MANAGER,
    ExternalRole.MEMBER: OrganisationRole.MEMBER,
}


def parse_external_role(value: Optional[str]) -> ExternalRole:
    """Validate a partner-supplied role. Missing means MEMBER."""
    if value is None:
        return ExternalRole.MEMBER
    try:
        return ExternalRole(value)
    except ValueError:
        raise RequestValidationFailed("role must be one of ADMIN, MANAGER, MEMBER")


def map_role(role: ExternalRole) -> OrganisationRole:
    return ROLE_MAP[role]
