"""Platform resources returned by the API client.

This module provides plain dataclasses built from API payloads:
- DomainUser: Account registered in an organization (domain)
- ProjectUser: Membership of an account in a project
- Role, UserGroup: Project roles and user groups
- ClientRecord: Client workspace of a data product
- ExistingFilter: Data permission assigned to a project user
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

USER_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "sso_provider",
    "language",
    "company",
    "position",
    "country",
    "phone",
    "ip_whitelist",
    "authentication_modes",
)

# API name of each user field in an accountSetting payload
ACCOUNT_SETTING_KEYS = {
    "login": "login",
    "email": "email",
    "first_name": "firstName",
    "last_name": "lastName",
    "password": "password",
    "sso_provider": "ssoProvider",
    "language": "language",
    "company": "companyName",
    "position": "position",
    "country": "country",
    "phone": "phoneNumber",
    "ip_whitelist": "ipWhitelist",
    "authentication_modes": "authenticationModes",
}


@dataclass
class DomainUser:
    """Account in an organization."""

    login: str
    uri: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    sso_provider: str | None = None
    language: str | None = None
    company: str | None = None
    position: str | None = None
    country: str | None = None
    phone: str | None = None
    ip_whitelist: list[str] | None = None
    authentication_modes: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DomainUser:
        """Create from an ``accountSetting`` payload."""
        setting = data.get("accountSetting", data)
        values = {
            name: setting.get(key)
            for name, key in ACCOUNT_SETTING_KEYS.items()
            if name != "password"
        }
        return cls(uri=setting["links"]["self"], **values)


@dataclass
class ProjectUser:
    """Account membership in a project."""

    login: str
    uri: str
    role_uri: str | None = None
    status: str = "ENABLED"
    email: str | None = None

    @property
    def enabled(self) -> bool:
        return self.status.upper() == "ENABLED"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectUser:
        """Create from a project ``user`` payload."""
        user = data.get("user", data)
        content = user.get("content", {})
        roles = content.get("userRoles") or []
        return cls(
            login=content["login"],
            uri=user["links"]["self"],
            role_uri=roles[0] if roles else None,
            status=content.get("status", "ENABLED"),
            email=content.get("email"),
        )


@dataclass(frozen=True)
class Role:
    """Project role."""

    uri: str
    identifier: str
    title: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Role:
        role = data.get("projectRole", data)
        meta = role.get("meta", {})
        return cls(
            uri=role["links"]["self"],
            identifier=meta.get("identifier", ""),
            title=meta.get("title", ""),
        )


@dataclass
class UserGroup:
    """Project user group with member profile URIs."""

    uri: str
    name: str
    member_uris: set[str] = field(default_factory=set)

    @classmethod
    def from_dict(cls, data: dict[str, Any], members: set[str] | None = None) -> UserGroup:
        group = data.get("userGroup", data)
        return cls(
            uri=group["links"]["self"],
            name=group["content"]["name"],
            member_uris=set(members or ()),
        )


@dataclass(frozen=True)
class ClientRecord:
    """Client workspace of a data product.

    A client without ``project_uri`` is valid but cannot receive users.
    """

    client_id: str
    segment_uri: str | None = None
    project_uri: str | None = None

    @property
    def project_id(self) -> str | None:
        """Project id extracted from the project URI."""
        if not self.project_uri:
            return None
        return self.project_uri.rstrip("/").rsplit("/", 1)[-1]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientRecord:
        client = data.get("client", data)
        return cls(
            client_id=str(client["id"]),
            segment_uri=client.get("segment"),
            project_uri=client.get("project"),
        )


@dataclass(frozen=True)
class ExistingFilter:
    """Data permission already stored on a project.

    Attributes:
        uri: URI of the filter object.
        related_user_uri: Profile URI of the user it is assigned to.
        expression: Filter expression of the object.
        raw_payload: Payload as returned by the API.
    """

    uri: str
    related_user_uri: str | None
    expression: str = ""
    raw_payload: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
