"""
Mock Provider for the Orphan Engine.

In-memory session, directory and binding backends for testing and for
offline demonstrations of the CLI. State can be seeded from a YAML fixture
file, and faults can be injected per scope, per subject and per binding.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

import yaml

from ..config import NOT_FOUND_SENTINEL
from ..exceptions import AuthenticationRequired, EnumerationError, ResolutionError
from ..models import Binding, Scope, SubjectKind
from .base_connector import BindingConnector, ConnectorResult, DirectoryConnector, ProviderSession
from .normalize import normalize_subject

logger = logging.getLogger(__name__)


class MockSession(ProviderSession):
    """Mock provider session holding a fixed list of scopes."""

    def __init__(self, scopes: Optional[Iterable[Scope]] = None, authenticated: bool = True):
        self.scopes: List[Scope] = list(scopes or [])
        self.authenticated = authenticated

    def ensure_authenticated(self) -> None:
        if not self.authenticated:
            raise AuthenticationRequired("No authenticated mock session")

    def list_scopes(self) -> List[Scope]:
        return list(self.scopes)


class MockDirectoryConnector(DirectoryConnector):
    """
    Mock identity directory.

    Keeps one id set per subject kind. Lookups for ids listed in
    ``failing_ids`` return an error result, or raise ResolutionError when
    ``raise_on_failure`` is set.
    """

    def __init__(self, users: Optional[Iterable[str]] = None, groups: Optional[Iterable[str]] = None,
                 service_identities: Optional[Iterable[str]] = None,
                 config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.users: Set[str] = set(users or [])
        self.groups: Set[str] = set(groups or [])
        self.service_identities: Set[str] = set(service_identities or [])
        self.failing_ids: Set[str] = set()
        self.raise_on_failure = False

        self.lookup_calls = 0
        self.lookups: List[tuple] = []
        self._lock = threading.Lock()

    def _lookup(self, kind: SubjectKind, subject_id: str, known: Set[str]) -> ConnectorResult:
        with self._lock:
            self.lookup_calls += 1
            self.lookups.append((kind, subject_id))

        if subject_id in self.failing_ids:
            if self.raise_on_failure:
                raise ResolutionError(subject_id, "mock directory unavailable", kind=kind.value)
            return ConnectorResult(False, f"Lookup of {subject_id} failed", error="mock directory unavailable")

        if subject_id in known:
            return ConnectorResult(True, f"Found {kind.value} {subject_id}", {"id": subject_id})
        return ConnectorResult(False, f"{kind.value} {subject_id} not found")

    def lookup_user(self, subject_id: str) -> ConnectorResult:
        return self._lookup(SubjectKind.USER, subject_id, self.users)

    def lookup_group(self, subject_id: str) -> ConnectorResult:
        return self._lookup(SubjectKind.GROUP, subject_id, self.groups)

    def lookup_service_identity(self, subject_id: str) -> ConnectorResult:
        return self._lookup(SubjectKind.SERVICE_IDENTITY, subject_id, self.service_identities)


class MockBindingConnector(BindingConnector):
    """
    Mock binding store.

    Scopes listed in ``failing_scopes`` raise EnumerationError when listed;
    bindings listed in ``failing_deletes`` fail when deleted.
    """

    def __init__(self, bindings: Optional[Iterable[Binding]] = None,
                 config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.bindings: List[Binding] = list(bindings or [])
        self.failing_scopes: Set[str] = set()
        self.failing_deletes: Set[str] = set()

        self.delete_calls: List[tuple] = []
        self._lock = threading.Lock()

    def list_bindings(self, scope: Scope) -> List[Binding]:
        if scope.id in self.failing_scopes:
            raise EnumerationError(scope.id, "mock scope is not accessible")

        with self._lock:
            return [b for b in self.bindings if b.scope.id == scope.id]

    def delete_binding(self, subject_id: str, role_name: str, scope: Scope,
                       scope_path: Optional[str] = None) -> ConnectorResult:
        with self._lock:
            self.delete_calls.append((subject_id, role_name, scope.id, scope_path))
            matches = [
                b for b in self.bindings
                if b.key == (subject_id, role_name, scope.id)
                and (scope_path is None or b.scope_path == scope_path)
            ]

            if len(matches) != 1:
                error = f"expected exactly one matching binding, found {len(matches)}"
                return ConnectorResult(False, f"Cannot remove {role_name} from {subject_id}", error=error)

            binding = matches[0]
            if binding.binding_id in self.failing_deletes:
                return ConnectorResult(False, f"Failed to remove {binding.binding_id}",
                                       error="mock provider rejected the delete")

            self.bindings.remove(binding)

        logger.info(f"Mock removed binding {binding.binding_id} ({role_name} for {subject_id})")
        return ConnectorResult(True, f"Removed {role_name} from {subject_id}", {"binding_id": binding.binding_id})


class MockProvider:
    """Bundle of mock session, directory and binding connectors sharing one state."""

    def __init__(self, session: Optional[MockSession] = None,
                 directory: Optional[MockDirectoryConnector] = None,
                 bindings: Optional[MockBindingConnector] = None):
        self.session = session or MockSession()
        self.directory = directory or MockDirectoryConnector()
        self.binding_client = bindings or MockBindingConnector()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], sentinel: str = NOT_FOUND_SENTINEL) -> "MockProvider":
        """
        Build a mock provider from fixture data.

        Expected layout::

            scopes:
              - id: sub-1
                display_name: Production
            directory:
              users: [u-1]
              groups: [g-1]
              service_identities: [sp-1]
            bindings:
              - binding_id: ra-1
                scope: sub-1
                subject_id: u-1
                subject_kind: User
                display_name: Alice
                role_name: Reader
                scope_path: /subscriptions/sub-1
            failing_scopes: [sub-2]
            failing_lookups: [u-9]
            failing_deletes: [ra-3]
        """
        scopes = [Scope(id=s["id"], display_name=s.get("display_name", "")) for s in data.get("scopes", [])]
        scopes_by_id = {s.id: s for s in scopes}

        bindings = []
        for raw in data.get("bindings", []):
            scope = scopes_by_id.get(raw["scope"])
            if scope is None:
                raise ValueError(f"Binding {raw.get('binding_id')} references unknown scope {raw['scope']}")
            bindings.append(Binding(
                binding_id=raw["binding_id"],
                subject=normalize_subject(raw["subject_id"], raw.get("subject_kind"),
                                          raw.get("display_name"), sentinel=sentinel),
                role_name=raw["role_name"],
                scope=scope,
                scope_path=raw.get("scope_path", ""),
            ))

        directory_data = data.get("directory", {})
        directory = MockDirectoryConnector(
            users=directory_data.get("users"),
            groups=directory_data.get("groups"),
            service_identities=directory_data.get("service_identities"),
        )
        directory.failing_ids.update(data.get("failing_lookups", []))

        binding_client = MockBindingConnector(bindings)
        binding_client.failing_scopes.update(data.get("failing_scopes", []))
        binding_client.failing_deletes.update(data.get("failing_deletes", []))

        session = MockSession(scopes, authenticated=data.get("authenticated", True))
        return cls(session, directory, binding_client)

    @classmethod
    def from_file(cls, path: Union[str, Path], sentinel: str = NOT_FOUND_SENTINEL) -> "MockProvider":
        """Load a mock provider from a YAML fixture file."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info(f"Loaded mock provider fixture from {path}")
        return cls.from_dict(data, sentinel=sentinel)
