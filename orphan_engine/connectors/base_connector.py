"""
Base Connector Classes for the Orphan Engine.

This module defines the provider collaborators the engine consumes: an
authenticated session that knows the accessible scopes, a directory
connector used to look subjects up, and a binding connector used to list
and delete authorization bindings.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import Binding, Scope

logger = logging.getLogger(__name__)


class ConnectorResult:
    """
    Result of a connector operation.

    For directory lookups, success means the subject was found. A failed
    result without an error means a clean "not found"; a failed result with
    an error means the lookup itself failed.
    """

    def __init__(self, success: bool, message: str = "", data: Optional[Any] = None,
                 error: Optional[str] = None):
        self.success = success
        self.message = message
        self.data = data
        self.error = error

    @property
    def failed(self) -> bool:
        """True when the operation errored, as opposed to a clean negative answer."""
        return not self.success and self.error is not None

    def __bool__(self):
        return self.success

    def __str__(self):
        return f"{'✓' if self.success else '✗'} {self.message}"

    def __repr__(self):
        return f"ConnectorResult(success={self.success!r}, message={self.message!r}, error={self.error!r})"


class BaseConnector(ABC):
    """Common construction for all provider connectors."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the connector.

        Args:
            config: Provider settings (tenant, endpoints, timeouts, etc.)
        """
        self.config = config or {}

        logger.debug(f"Initialized {self.__class__.__name__}")


class ProviderSession(ABC):
    """
    Authenticated provider context.

    The session never holds an "active" scope; every binding call receives
    the scope it operates on explicitly.
    """

    @abstractmethod
    def ensure_authenticated(self) -> None:
        """
        Verify that an authenticated session is available.

        Raises:
            AuthenticationRequired: If no usable credential is present
        """

    @abstractmethod
    def list_scopes(self) -> List[Scope]:
        """
        List every scope the session can access.

        Raises:
            SetupError: If the scope listing itself fails
        """

    def get_scope(self, scope_id: str) -> Optional[Scope]:
        """Find an accessible scope by id, or None when it is not accessible."""
        for scope in self.list_scopes():
            if scope.id == scope_id:
                return scope
        return None


class DirectoryConnector(BaseConnector):
    """Looks subjects up in the identity directory, one call per subject kind."""

    @abstractmethod
    def lookup_user(self, subject_id: str) -> ConnectorResult:
        """
        Look a user up by object id.

        Args:
            subject_id: Directory object identifier

        Returns:
            ConnectorResult with success=True if the user exists
        """

    @abstractmethod
    def lookup_group(self, subject_id: str) -> ConnectorResult:
        """Look a group up by object id."""

    @abstractmethod
    def lookup_service_identity(self, subject_id: str) -> ConnectorResult:
        """Look a service identity (service principal, managed identity) up by object id."""


class BindingConnector(BaseConnector):
    """Lists and deletes authorization bindings within a scope."""

    @abstractmethod
    def list_bindings(self, scope: Scope) -> List[Binding]:
        """
        List every binding granted within a scope.

        Args:
            scope: The scope to enumerate

        Returns:
            Bindings in provider order

        Raises:
            EnumerationError: If the scope cannot be listed
        """

    @abstractmethod
    def delete_binding(self, subject_id: str, role_name: str, scope: Scope,
                       scope_path: Optional[str] = None) -> ConnectorResult:
        """
        Delete the single binding identified by subject, role and scope.

        Args:
            subject_id: Directory object identifier of the subject
            role_name: Name of the granted role
            scope: Scope the binding was enumerated from
            scope_path: Exact resource path of the grant, when known

        Returns:
            ConnectorResult; zero or several matching bindings is a failure
        """
