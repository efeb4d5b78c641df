"""HTTP client for the platform REST API.

This module provides:
- PlatformClient: HTTP client for communicating with the platform
- Domain: Organization-level user and client operations
- Project: Project membership, groups, labels and data permissions
- Label: Attribute label with value lookup
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from usersync.client.models import (
    ACCOUNT_SETTING_KEYS,
    USER_FIELDS,
    ClientRecord,
    DomainUser,
    ExistingFilter,
    ProjectUser,
    Role,
    UserGroup,
)
from usersync.core.config import ServerConfig

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class ForbiddenError(APIError):
    """Account is not allowed to access the resource."""


class NotFoundError(APIError):
    """Resource not found."""


class ConflictError(APIError):
    """Resource already exists or was modified concurrently."""


class GoneError(APIError):
    """Resource was deleted or access to it was revoked."""


def _detail(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("detail"):
            return str(body["detail"])
    return default


def account_setting(values: dict[str, Any]) -> dict[str, Any]:
    """Build an ``accountSetting`` payload from user field values.

    Fields with a None value are omitted.
    """
    content = {
        ACCOUNT_SETTING_KEYS[name]: value
        for name, value in values.items()
        if name in ACCOUNT_SETTING_KEYS and value is not None
    }
    return {"accountSetting": content}


class PlatformClient:
    """HTTP client for the platform API."""

    def __init__(self, config: ServerConfig) -> None:
        """Initialize the client.

        Args:
            config: Server connection settings.
        """
        self._config = config
        self._client = httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Accept": "application/json",
            },
        )
        self._current_login: str | None = None

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> PlatformClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired token", 401)
        if response.status_code == 403:
            raise ForbiddenError(_detail(response, "Forbidden"), 403)
        if response.status_code == 404:
            raise NotFoundError(_detail(response, "Resource not found"), 404)
        if response.status_code == 409:
            raise ConflictError(_detail(response, "Conflict"), 409)
        if response.status_code == 410:
            raise GoneError(_detail(response, "Gone"), 410)
        if response.status_code >= 400:
            raise APIError(_detail(response, "Unknown error"), response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        data: dict[str, Any] = response.json()
        return data

    # === Generic operations ===

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = self._handle_response(self._client.get(path, params=params))
        return self._json(response)

    def post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = self._handle_response(self._client.post(path, json=payload))
        return self._json(response)

    def put(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = self._handle_response(self._client.put(path, json=payload))
        return self._json(response)

    def delete(self, path: str) -> None:
        self._handle_response(self._client.delete(path))

    def create(self, path: str, payload: dict[str, Any]) -> str:
        """Create an object and return its URI.

        Raises:
            APIError: If the response carries no URI.
        """
        data = self.post(path, payload)
        uri = data.get("uri")
        if not uri:
            raise APIError(f"Creating object at {path} returned no uri")
        return str(uri)

    def paginate(self, path: str, root: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Collect ``items`` of every page of a paged collection.

        Args:
            path: First page path.
            root: Top-level key of the payload (e.g. "accountSettings").
            params: Query parameters of the first request.

        Returns:
            All items across pages.
        """
        items: list[Any] = []
        next_path: str | None = path
        next_params = dict(params or {})
        while next_path:
            data = self.get(next_path, params=next_params or None).get(root, {})
            items.extend(data.get("items", []))
            next_path = (data.get("paging") or {}).get("next")
            next_params = {}
        return items

    # === Collaborators ===

    @property
    def current_login(self) -> str:
        """Login of the account performing the run."""
        if self._current_login is None:
            data = self.get("/gdc/account/profile/current")
            self._current_login = str(data["accountSetting"]["login"])
        return self._current_login

    def projects(self, project_id: str | None) -> Project | None:
        """Get a project by id or URI.

        Returns:
            The project, or None if ``project_id`` is empty or unknown.
        """
        if not project_id:
            return None
        pid = str(project_id).rstrip("/").rsplit("/", 1)[-1]
        try:
            data = self.get(f"/gdc/projects/{pid}")
        except NotFoundError:
            return None
        state = data.get("project", {}).get("content", {}).get("state", "ENABLED")
        return Project(self, pid, state=state)

    def domain(self, name: str) -> Domain:
        return Domain(self, name)


class Domain:
    """Organization-level operations."""

    def __init__(self, client: PlatformClient, name: str) -> None:
        self._client = client
        self.name = name

    @property
    def uri(self) -> str:
        return f"/gdc/account/domains/{self.name}"

    def list_users(self) -> list[DomainUser]:
        """List all accounts of the domain."""
        items = self._client.paginate(
            f"{self.uri}/users", "accountSettings", {"limit": PAGE_SIZE}
        )
        return [DomainUser.from_dict(item) for item in items]

    def find_user_by_login(self, login: str) -> DomainUser | None:
        """Find an account by login (case-insensitive)."""
        data = self._client.get(f"{self.uri}/users", params={"login": login})
        for item in data.get("accountSettings", {}).get("items", []):
            user = DomainUser.from_dict(item)
            if user.login.lower() == login.lower():
                return user
        return None

    def create_user(self, values: dict[str, Any]) -> DomainUser:
        """Create an account and return it."""
        uri = self._client.create(f"{self.uri}/users", account_setting(values))
        fields = {k: v for k, v in values.items() if k in USER_FIELDS}
        return DomainUser(login=values["login"], uri=uri, **fields)

    def update_user(self, user: DomainUser, values: dict[str, Any]) -> None:
        self._client.put(user.uri, account_setting(values))

    def delete_user(self, user: DomainUser) -> None:
        self._client.delete(user.uri)

    def clients(self, data_product: str | None = None) -> list[ClientRecord]:
        """List client workspaces of a data product (or of the whole domain)."""
        base = f"/gdc/domains/{self.name}"
        path = f"{base}/dataproducts/{data_product}/clients" if data_product else f"{base}/clients"
        items = self._client.paginate(path, "clients", {"limit": PAGE_SIZE})
        return [ClientRecord.from_dict(item) for item in items]


class Label:
    """Attribute label (display form)."""

    def __init__(self, client: PlatformClient, data: dict[str, Any]) -> None:
        self._client = client
        form = data.get("attributeDisplayForm", data)
        meta = form.get("meta", {})
        self.uri: str = meta["uri"]
        self.identifier: str = meta.get("identifier", "")
        self.attribute_uri: str = form.get("content", {}).get("formOf", "")
        self._values_count: int | None = None

    @property
    def values_count(self) -> int:
        if self._values_count is None:
            data = self._client.get(f"{self.uri}/elements", params={"limit": 1})
            meta = data.get("attributeDisplayFormElements", {}).get("elementsMeta", {})
            self._values_count = int(meta.get("count", 0))
        return self._values_count

    def find_value_uri(self, value: str) -> str | None:
        """Find the element URI of a literal value.

        Returns:
            Element URI, or None when the label has no such value.
        """
        data = self._client.get(f"{self.uri}/elements", params={"filter": value})
        for element in data.get("attributeDisplayFormElements", {}).get("elements", []):
            if element.get("title") == value:
                return str(element["uri"])
        return None


class Project:
    """Project-level operations."""

    def __init__(self, client: PlatformClient, pid: str, state: str = "ENABLED") -> None:
        self._client = client
        self.pid = pid
        self.state = state

    @property
    def uri(self) -> str:
        return f"/gdc/projects/{self.pid}"

    @property
    def deleted(self) -> bool:
        return self.state.upper() == "DELETED"

    def metadata(self) -> dict[str, str]:
        data = self._client.get(f"{self.uri}/dataload/metadata")
        items = data.get("metadata", {}).get("items", [])
        return {i["metadataItem"]["key"]: i["metadataItem"]["value"] for i in items}

    # === Membership ===

    def users(self) -> list[ProjectUser]:
        items = self._client.paginate(f"{self.uri}/users", "users", {"limit": PAGE_SIZE})
        return [ProjectUser.from_dict(item) for item in items]

    def roles(self) -> list[Role]:
        data = self._client.get(f"{self.uri}/roles")
        return [Role.from_dict(r) for r in data.get("projectRoles", {}).get("roles", [])]

    def _update_membership(self, user_uri: str, role_uri: str | None, status: str) -> None:
        content: dict[str, Any] = {"status": status}
        if role_uri:
            content["userRoles"] = [role_uri]
        data = self._client.post(
            f"{self.uri}/users",
            {"user": {"content": content, "links": {"self": user_uri}}},
        )
        failed = data.get("projectUsersUpdateResult", {}).get("failed") or []
        if failed:
            message = failed[0].get("message", "membership update failed")
            raise APIError(f"{user_uri}: {message}")

    def add_user(self, user_uri: str, role_uri: str) -> None:
        self._update_membership(user_uri, role_uri, "ENABLED")

    def set_user_role(self, user_uri: str, role_uri: str) -> None:
        self._update_membership(user_uri, role_uri, "ENABLED")

    def disable_user(self, user_uri: str) -> None:
        self._update_membership(user_uri, None, "DISABLED")

    def remove_user(self, user_uri: str) -> None:
        user_id = user_uri.rstrip("/").rsplit("/", 1)[-1]
        self._client.delete(f"{self.uri}/users/{user_id}")

    # === User groups ===

    def user_groups(self) -> list[UserGroup]:
        items = self._client.paginate(
            "/gdc/userGroups", "userGroups", {"project": self.pid, "limit": PAGE_SIZE}
        )
        groups = []
        for item in items:
            group = UserGroup.from_dict(item)
            members = self._client.paginate(f"{group.uri}/members", "userGroupMembers")
            group.member_uris = {m["user"]["links"]["self"] for m in members}
            groups.append(group)
        return groups

    def create_user_group(self, name: str) -> UserGroup:
        uri = self._client.create(
            "/gdc/userGroups",
            {"userGroup": {"content": {"name": name, "project": self.uri}}},
        )
        return UserGroup(uri=uri, name=name)

    def _modify_members(self, group: UserGroup, operation: str, user_uris: list[str]) -> None:
        self._client.post(
            f"{group.uri}/modifyMembers",
            {"modifyMembers": {"operation": operation, "items": user_uris}},
        )

    def add_group_members(self, group: UserGroup, user_uris: list[str]) -> None:
        self._modify_members(group, "ADD", user_uris)
        group.member_uris.update(user_uris)

    def remove_group_members(self, group: UserGroup, user_uris: list[str]) -> None:
        self._modify_members(group, "REMOVE", user_uris)
        group.member_uris.difference_update(user_uris)

    # === Labels and data permissions ===

    def labels(self, id_or_uri: str) -> Label:
        """Get a label by identifier or URI.

        Raises:
            NotFoundError: If no label has this identifier.
        """
        uri = id_or_uri
        if not id_or_uri.startswith("/gdc/"):
            data = self._client.post(
                f"/gdc/md/{self.pid}/identifiers", {"identifierToUri": [id_or_uri]}
            )
            found = data.get("identifiers") or []
            if not found:
                raise NotFoundError(f"Label {id_or_uri} not found in project {self.pid}", 404)
            uri = found[0]["uri"]
        return Label(self._client, self._client.get(uri))

    def data_permissions(self) -> list[ExistingFilter]:
        """List filters assigned to project users, one entry per assignment."""
        assignments = self._client.paginate(
            f"/gdc/md/{self.pid}/userfilters", "userFilters", {"count": PAGE_SIZE}
        )
        filter_uris = sorted({uri for a in assignments for uri in a.get("userFilters", [])})
        objects: dict[str, dict[str, Any]] = {}
        for start in range(0, len(filter_uris), PAGE_SIZE):
            batch = filter_uris[start:start + PAGE_SIZE]
            data = self._client.post(f"/gdc/md/{self.pid}/objects/get", {"get": {"items": batch}})
            for item in data.get("objects", {}).get("items", []):
                obj = item.get("userFilter", {})
                objects[obj.get("meta", {}).get("uri", "")] = item

        permissions = []
        for assignment in assignments:
            for uri in assignment.get("userFilters", []):
                payload = objects.get(uri, {})
                expression = payload.get("userFilter", {}).get("content", {}).get("expression", "")
                permissions.append(
                    ExistingFilter(
                        uri=uri,
                        related_user_uri=assignment.get("user"),
                        expression=expression,
                        raw_payload=payload,
                    )
                )
        return permissions
