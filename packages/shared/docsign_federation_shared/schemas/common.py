from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ExternalRole(str, Enum):
    """Role strings accepted from the partner system."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


class OrganisationRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


class IdentityProvider(str, Enum):
    EXTERNAL = "EXTERNAL"
    EMAIL = "EMAIL"


class OrganisationType(str, Enum):
    ORGANISATION = "ORGANISATION"


class GroupType(str, Enum):
    INTERNAL_ORGANISATION = "INTERNAL_ORGANISATION"


class CamelModel(BaseModel):
    """Base for partner-facing payloads (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(CamelModel):
    message: str
    status_code: int
