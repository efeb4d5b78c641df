"""Platform API client and resource models."""

from usersync.client.api import (
    APIError,
    AuthenticationError,
    ConflictError,
    Domain,
    ForbiddenError,
    GoneError,
    Label,
    NotFoundError,
    PlatformClient,
    Project,
)
from usersync.client.models import (
    ClientRecord,
    DomainUser,
    ExistingFilter,
    ProjectUser,
    Role,
    UserGroup,
)

__all__ = [
    # Errors
    "APIError",
    "AuthenticationError",
    "ConflictError",
    "ForbiddenError",
    "GoneError",
    "NotFoundError",
    # Client
    "Domain",
    "Label",
    "PlatformClient",
    "Project",
    # Models
    "ClientRecord",
    "DomainUser",
    "ExistingFilter",
    "ProjectUser",
    "Role",
    "UserGroup",
]
