"""
Azure Connectors for the Orphan Engine.

Provides the Azure session (subscriptions as scopes), the role-assignment
binding connector backed by Azure Resource Manager, and the Microsoft Graph
directory connector used to check whether a principal still exists.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

import requests
from azure.core.exceptions import AzureError, ClientAuthenticationError
from azure.identity import DefaultAzureCredential
from azure.mgmt.authorization import AuthorizationManagementClient
from azure.mgmt.resource import SubscriptionClient

from ..config import NOT_FOUND_SENTINEL
from ..exceptions import (
    AuthenticationRequired,
    EnumerationError,
    ResolutionError,
    SetupError,
    describe_error,
)
from ..models import Binding, Scope
from .base_connector import BindingConnector, ConnectorResult, DirectoryConnector, ProviderSession
from .normalize import normalize_subject

logger = logging.getLogger(__name__)

MANAGEMENT_SCOPE = "https://management.azure.com/.default"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
GRAPH_BATCH_SIZE = 1000


def _guid(resource_id: Optional[str]) -> str:
    """Last path segment of an ARM resource id, lower-cased."""
    return (resource_id or "").rstrip("/").rsplit("/", 1)[-1].lower()


def _role_name(role_names: Dict[str, str], role_definition_id: Optional[str]) -> str:
    """Role name for a role definition id; the GUID itself when the definition is not listed."""
    guid = _guid(role_definition_id)
    return role_names.get(guid, guid)


class AzureSession(ProviderSession):
    """Azure session exposing the accessible subscriptions as scopes."""

    def __init__(self, credential: Optional[Any] = None, tenant_id: Optional[str] = None,
                 subscription_client: Optional[Any] = None):
        self.credential = credential or DefaultAzureCredential()
        self.tenant_id = tenant_id
        self._subscription_client = subscription_client

    @property
    def subscription_client(self):
        if self._subscription_client is None:
            self._subscription_client = SubscriptionClient(self.credential)
        return self._subscription_client

    def ensure_authenticated(self) -> None:
        try:
            self.credential.get_token(MANAGEMENT_SCOPE)
        except ClientAuthenticationError as e:
            raise AuthenticationRequired(f"No authenticated Azure session: {e}") from e

    def list_scopes(self) -> List[Scope]:
        try:
            subscriptions = list(self.subscription_client.subscriptions.list())
        except AzureError as e:
            raise SetupError(f"Failed to list Azure subscriptions: {describe_error(e)}") from e

        scopes = []
        for sub in subscriptions:
            if self.tenant_id and getattr(sub, "tenant_id", None) not in (None, self.tenant_id):
                continue
            state = getattr(sub, "state", None) or "Enabled"
            state = str(getattr(state, "value", state))
            if state.lower() != "enabled":
                logger.debug(f"Skipping subscription {sub.subscription_id} in state {state}")
                continue
            scopes.append(Scope(id=sub.subscription_id, display_name=sub.display_name or ""))

        logger.info(f"Found {len(scopes)} accessible Azure subscriptions")
        return scopes


class GraphDirectoryConnector(DirectoryConnector):
    """Microsoft Graph connector for user, group and service principal lookups."""

    def __init__(self, credential: Optional[Any] = None, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.credential = credential or DefaultAzureCredential()
        self.base_url = self.config.get("graph_base_url", "https://graph.microsoft.com/v1.0").rstrip("/")
        self.timeout = self.config.get("graph_timeout", 30)

    def _headers(self) -> Dict[str, str]:
        token = self.credential.get_token(GRAPH_SCOPE).token
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def _lookup(self, collection: str, subject_id: str) -> ConnectorResult:
        url = f"{self.base_url}/{collection}/{subject_id}"
        try:
            response = requests.get(url, headers=self._headers(), params={"$select": "id,displayName"},
                                    timeout=self.timeout)
        except (requests.RequestException, ClientAuthenticationError) as e:
            error_msg = f"Graph lookup {collection}/{subject_id} failed: {e}"
            logger.warning(error_msg)
            return ConnectorResult(False, error_msg, error=describe_error(e))

        if response.status_code == 200:
            data = response.json()
            return ConnectorResult(True, f"Found {collection} {data.get('displayName', subject_id)}", data)
        if response.status_code == 404:
            return ConnectorResult(False, f"{collection} {subject_id} not found")

        error_msg = f"Graph lookup {collection}/{subject_id} returned {response.status_code}"
        logger.warning(f"{error_msg}: {response.text[:200]}")
        return ConnectorResult(False, error_msg, error=f"HTTP {response.status_code}")

    def lookup_user(self, subject_id: str) -> ConnectorResult:
        return self._lookup("users", subject_id)

    def lookup_group(self, subject_id: str) -> ConnectorResult:
        return self._lookup("groups", subject_id)

    def lookup_service_identity(self, subject_id: str) -> ConnectorResult:
        return self._lookup("servicePrincipals", subject_id)

    def get_display_names(self, subject_ids: Iterable[str]) -> Dict[str, str]:
        """
        Resolve display names for many directory objects at once.

        Objects that no longer exist are absent from the returned mapping.

        Raises:
            ResolutionError: If the batch lookup fails
        """
        ids = sorted(set(i for i in subject_ids if i))
        names: Dict[str, str] = {}

        for start in range(0, len(ids), GRAPH_BATCH_SIZE):
            chunk = ids[start:start + GRAPH_BATCH_SIZE]
            try:
                response = requests.post(
                    f"{self.base_url}/directoryObjects/getByIds",
                    headers=self._headers(),
                    json={"ids": chunk, "types": ["user", "group", "servicePrincipal"]},
                    timeout=self.timeout,
                )
            except (requests.RequestException, ClientAuthenticationError) as e:
                raise ResolutionError(chunk[0], f"batch display-name lookup failed: {e}") from e

            if response.status_code >= 400:
                raise ResolutionError(chunk[0], f"batch display-name lookup returned {response.status_code}")

            for obj in response.json().get("value", []):
                names[obj["id"]] = obj.get("displayName") or ""

        return names


class AzureBindingConnector(BindingConnector):
    """Azure RBAC role-assignment connector, one management client per subscription."""

    def __init__(self, credential: Optional[Any] = None, directory: Optional[GraphDirectoryConnector] = None,
                 config: Optional[Dict[str, Any]] = None, client_factory=None):
        super().__init__(config)

        self.credential = credential or DefaultAzureCredential()
        self.directory = directory
        self.sentinel = self.config.get("not_found_sentinel", NOT_FOUND_SENTINEL)
        self._client_factory = client_factory or AuthorizationManagementClient
        self._clients: Dict[str, Any] = {}
        self._role_names: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

    def _client(self, scope: Scope):
        with self._lock:
            if scope.id not in self._clients:
                self._clients[scope.id] = self._client_factory(self.credential, scope.id)
            return self._clients[scope.id]

    def _role_definition_names(self, scope: Scope) -> Dict[str, str]:
        """Role definition GUID -> role name for a subscription."""
        with self._lock:
            cached = self._role_names.get(scope.id)
        if cached is not None:
            return cached

        definitions = self._client(scope).role_definitions.list(f"/subscriptions/{scope.id}")
        names = {_guid(rd.id): rd.role_name for rd in definitions}
        with self._lock:
            self._role_names[scope.id] = names
        return names

    def _assignments(self, scope: Scope, principal_id: Optional[str] = None) -> List[Any]:
        flt = f"principalId eq '{principal_id}'" if principal_id else None
        return list(self._client(scope).role_assignments.list_for_subscription(filter=flt))

    def list_bindings(self, scope: Scope) -> List[Binding]:
        try:
            assignments = self._assignments(scope)
            role_names = self._role_definition_names(scope)
            display_names = None
            if self.directory is not None:
                display_names = self.directory.get_display_names(a.principal_id for a in assignments)
        except (AzureError, ResolutionError) as e:
            raise EnumerationError(scope.id, describe_error(e)) from e

        bindings = []
        for assignment in assignments:
            if display_names is None:
                display_name = assignment.principal_id
            else:
                display_name = display_names.get(assignment.principal_id, self.sentinel)
            bindings.append(Binding(
                binding_id=assignment.id,
                subject=normalize_subject(assignment.principal_id, assignment.principal_type,
                                          display_name, sentinel=self.sentinel),
                role_name=_role_name(role_names, assignment.role_definition_id),
                scope=scope,
                scope_path=assignment.scope or "",
            ))

        logger.info(f"Enumerated {len(bindings)} role assignments in subscription {scope}")
        return bindings

    def delete_binding(self, subject_id: str, role_name: str, scope: Scope,
                       scope_path: Optional[str] = None) -> ConnectorResult:
        try:
            role_names = self._role_definition_names(scope)
            matches = [
                a for a in self._assignments(scope, principal_id=subject_id)
                if _role_name(role_names, a.role_definition_id) == role_name
                and (scope_path is None or (a.scope or "").lower() == scope_path.lower())
            ]

            if len(matches) != 1:
                error = f"expected exactly one matching role assignment, found {len(matches)}"
                logger.error(f"Cannot remove {role_name} from {subject_id} in {scope.id}: {error}")
                return ConnectorResult(False, f"Ambiguous removal of {role_name} from {subject_id}", error=error)

            assignment_id = matches[0].id
            self._client(scope).role_assignments.delete_by_id(assignment_id)

            logger.info(f"Deleted role assignment {assignment_id} ({role_name} for {subject_id})")
            return ConnectorResult(True, f"Removed {role_name} from {subject_id}", {"binding_id": assignment_id})

        except AzureError as e:
            error_msg = f"Failed to remove {role_name} from {subject_id}: {e}"
            logger.error(error_msg)
            return ConnectorResult(False, error_msg, error=describe_error(e))


class AzureProvider:
    """Azure session, Graph directory and RBAC binding connectors sharing one credential."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, credential: Optional[Any] = None):
        config = config or {}
        self.credential = credential or DefaultAzureCredential()
        self.session = AzureSession(self.credential, tenant_id=config.get("tenant_id"))
        self.directory = GraphDirectoryConnector(self.credential, config)
        self.binding_client = AzureBindingConnector(self.credential, directory=self.directory, config=config)
