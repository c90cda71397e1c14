# Imported for their side effect of registering tables on SQLModel.metadata.
from .base import UUIDMixin, TimestampMixin, CreatedAtMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organisation, OrganisationGroup  # noqa: F401
from .team import Team  # noqa: F401
from .membership import OrganisationMember  # noqa: F401
from .api_token import ApiToken  # noqa: F401
