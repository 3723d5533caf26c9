"""
Tests for the Azure connectors.

The Azure SDK clients and Graph HTTP calls are replaced with mocks; no
network access or credentials are needed.
"""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
import requests
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError, ServiceRequestError

from orphan_engine.connectors.azure_connector import (
    AzureBindingConnector,
    AzureSession,
    GraphDirectoryConnector,
)
from orphan_engine.exceptions import AuthenticationRequired, EnumerationError, SetupError
from orphan_engine.models import Scope, SubjectKind

SUB = "11111111-1111-1111-1111-111111111111"
READER_GUID = "acdd72a7-3385-48ef-bd42-f606fba81ae7"
OWNER_GUID = "8e3af657-a8ff-443c-a75c-2fe8c4bcb635"


def role_definition(guid, name):
    return SimpleNamespace(id=f"/subscriptions/{SUB}/providers/Microsoft.Authorization/roleDefinitions/{guid}",
                           role_name=name)


def assignment(ra_id, principal_id, role_guid, principal_type="User", scope=None):
    return SimpleNamespace(
        id=f"/subscriptions/{SUB}/providers/Microsoft.Authorization/roleAssignments/{ra_id}",
        principal_id=principal_id,
        principal_type=principal_type,
        role_definition_id=f"/subscriptions/{SUB}/providers/Microsoft.Authorization/roleDefinitions/{role_guid}",
        scope=scope or f"/subscriptions/{SUB}",
    )


def http_response(status_code, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = ""
    return response


@pytest.fixture
def scope():
    return Scope(id=SUB, display_name="Production")


@pytest.fixture
def credential():
    cred = Mock()
    cred.get_token.return_value = SimpleNamespace(token="t0ken")
    return cred


@pytest.fixture
def auth_client():
    client = Mock()
    client.role_definitions.list.return_value = [role_definition(READER_GUID, "Reader"),
                                                  role_definition(OWNER_GUID, "Owner")]
    client.role_assignments.list_for_subscription.return_value = [
        assignment("ra-1", "u-1", READER_GUID),
        assignment("ra-2", "u-gone", OWNER_GUID, scope=f"/subscriptions/{SUB}/resourceGroups/rg-1"),
        assignment("ra-3", "sp-1", READER_GUID, principal_type="ServicePrincipal"),
    ]
    return client


class TestAzureSession:
    """Test cases for AzureSession."""

    def test_unauthenticated(self):
        credential = Mock()
        credential.get_token.side_effect = ClientAuthenticationError(message="no credential")

        with pytest.raises(AuthenticationRequired):
            AzureSession(credential).ensure_authenticated()

    def test_lists_enabled_subscriptions_in_tenant(self, credential):
        subs = Mock()
        subs.subscriptions.list.return_value = [
            SimpleNamespace(subscription_id="s-1", display_name="Prod", state="Enabled", tenant_id="t-1"),
            SimpleNamespace(subscription_id="s-2", display_name="Old", state=SimpleNamespace(value="Disabled"),
                            tenant_id="t-1"),
            SimpleNamespace(subscription_id="s-3", display_name="Other", state="Enabled", tenant_id="t-2"),
        ]

        scopes = AzureSession(credential, tenant_id="t-1", subscription_client=subs).list_scopes()

        assert scopes == [Scope(id="s-1", display_name="Prod")]

    def test_listing_failure_is_setup_error(self, credential):
        subs = Mock()
        subs.subscriptions.list.side_effect = HttpResponseError(message="forbidden")

        with pytest.raises(SetupError):
            AzureSession(credential, subscription_client=subs).list_scopes()

    def test_network_failure_is_setup_error(self, credential):
        subs = Mock()
        subs.subscriptions.list.side_effect = ServiceRequestError(message="name resolution failed")

        with pytest.raises(SetupError, match="name resolution failed"):
            AzureSession(credential, subscription_client=subs).list_scopes()


class TestGraphDirectoryConnector:
    """Test cases for GraphDirectoryConnector."""

    @pytest.fixture
    def graph(self, credential):
        return GraphDirectoryConnector(credential, {"graph_base_url": "https://graph.example/v1.0"})

    def test_lookup_found(self, graph):
        with patch("orphan_engine.connectors.azure_connector.requests.get") as get:
            get.return_value = http_response(200, {"id": "u-1", "displayName": "Alice"})

            result = graph.lookup_user("u-1")

        assert result.success
        assert get.call_args[0][0] == "https://graph.example/v1.0/users/u-1"
        assert get.call_args[1]["headers"]["Authorization"] == "Bearer t0ken"

    def test_lookup_not_found_is_clean(self, graph):
        with patch("orphan_engine.connectors.azure_connector.requests.get") as get:
            get.return_value = http_response(404)

            result = graph.lookup_group("g-1")

        assert not result.success
        assert result.error is None
        assert get.call_args[0][0].endswith("/groups/g-1")

    def test_lookup_errors(self, graph):
        with patch("orphan_engine.connectors.azure_connector.requests.get") as get:
            get.return_value = http_response(503)
            throttled = graph.lookup_service_identity("sp-1")

            get.side_effect = requests.ConnectionError("reset")
            broken = graph.lookup_user("u-1")

        assert throttled.failed and throttled.error == "HTTP 503"
        assert broken.failed

    def test_get_display_names(self, graph):
        with patch("orphan_engine.connectors.azure_connector.requests.post") as post:
            post.return_value = http_response(200, {"value": [{"id": "u-1", "displayName": "Alice"}]})

            names = graph.get_display_names(["u-1", "u-gone", "u-1"])

        assert names == {"u-1": "Alice"}
        assert post.call_args[1]["json"]["ids"] == ["u-1", "u-gone"]


class TestAzureBindingConnector:
    """Test cases for AzureBindingConnector."""

    @pytest.fixture
    def directory(self):
        directory = Mock()
        directory.get_display_names.return_value = {"u-1": "Alice", "sp-1": "deploy-bot"}
        return directory

    @pytest.fixture
    def connector(self, credential, directory, auth_client):
        return AzureBindingConnector(credential, directory=directory, client_factory=lambda cred, sub: auth_client)

    def test_list_bindings(self, connector, scope):
        bindings = connector.list_bindings(scope)

        assert [b.role_name for b in bindings] == ["Reader", "Owner", "Reader"]
        assert bindings[0].subject.display_name == "Alice"
        assert bindings[0].subject.kind == SubjectKind.USER
        assert bindings[1].subject.display_name == "Identity not found"
        assert bindings[1].subject.kind == SubjectKind.UNKNOWN
        assert bindings[1].scope_path.endswith("/resourceGroups/rg-1")
        assert bindings[2].subject.kind == SubjectKind.SERVICE_IDENTITY
        assert all(b.scope == scope for b in bindings)

    def test_list_failure_is_enumeration_error(self, connector, auth_client, scope):
        auth_client.role_assignments.list_for_subscription.side_effect = HttpResponseError(message="denied")

        with pytest.raises(EnumerationError):
            connector.list_bindings(scope)

    def test_delete_binding(self, connector, auth_client, scope):
        auth_client.role_assignments.list_for_subscription.return_value = [
            assignment("ra-2", "u-gone", OWNER_GUID, scope=f"/subscriptions/{SUB}/resourceGroups/rg-1"),
            assignment("ra-4", "u-gone", OWNER_GUID),
        ]

        result = connector.delete_binding("u-gone", "Owner", scope, scope_path=f"/subscriptions/{SUB}")

        assert result.success
        auth_client.role_assignments.list_for_subscription.assert_called_with(filter="principalId eq 'u-gone'")
        auth_client.role_assignments.delete_by_id.assert_called_once_with(
            f"/subscriptions/{SUB}/providers/Microsoft.Authorization/roleAssignments/ra-4")

    def test_delete_ambiguous(self, connector, auth_client, scope):
        auth_client.role_assignments.list_for_subscription.return_value = [
            assignment("ra-2", "u-gone", OWNER_GUID, scope=f"/subscriptions/{SUB}/resourceGroups/rg-1"),
            assignment("ra-4", "u-gone", OWNER_GUID),
        ]

        result = connector.delete_binding("u-gone", "Owner", scope)

        assert not result.success
        assert "found 2" in result.error
        auth_client.role_assignments.delete_by_id.assert_not_called()

    def test_delete_rejected(self, connector, auth_client, scope):
        auth_client.role_assignments.list_for_subscription.return_value = [assignment("ra-2", "u-gone", OWNER_GUID)]
        auth_client.role_assignments.delete_by_id.side_effect = HttpResponseError(message="locked")

        result = connector.delete_binding("u-gone", "Owner", scope)

        assert result.failed
        assert "locked" in result.error

    def test_unlisted_role_definition_is_removable(self, credential, directory, scope):
        """A role missing from the subscription's definitions is named by its GUID on both paths."""
        custom_guid = "0f0e0d0c-0000-4000-8000-00000000abcd"
        client = Mock()
        client.role_definitions.list.return_value = []
        client.role_assignments.list_for_subscription.return_value = [assignment("ra-7", "u-gone", custom_guid)]
        connector = AzureBindingConnector(credential, directory=directory, client_factory=lambda cred, sub: client)

        binding = connector.list_bindings(scope)[0]
        result = connector.delete_binding(binding.subject.id, binding.role_name, scope, binding.scope_path)

        assert binding.role_name == custom_guid
        assert result.success, result.error
        client.role_assignments.delete_by_id.assert_called_once_with(
            f"/subscriptions/{SUB}/providers/Microsoft.Authorization/roleAssignments/ra-7")
