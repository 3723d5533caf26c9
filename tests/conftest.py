"""
Shared fixtures for the Orphan Engine tests.
"""

import pytest

from orphan_engine.config import EngineConfig
from orphan_engine.connectors import MockBindingConnector, MockDirectoryConnector, MockProvider, MockSession
from orphan_engine.models import Binding, Scope, SubjectKind, SubjectReference


@pytest.fixture
def scope_a():
    return Scope(id="sub-a", display_name="Alpha")


@pytest.fixture
def scope_b():
    return Scope(id="sub-b", display_name="Bravo")


@pytest.fixture
def make_binding(scope_a):
    """Factory for bindings; subject kind defaults to User with a display name."""
    def _make(binding_id, subject_id, kind=SubjectKind.USER, display_name="Some Name",
              role_name="Reader", scope=None, scope_path=""):
        return Binding(
            binding_id=binding_id,
            subject=SubjectReference(id=subject_id, kind=kind, display_name=display_name),
            role_name=role_name,
            scope=scope or scope_a,
            scope_path=scope_path,
        )
    return _make


@pytest.fixture
def directory():
    return MockDirectoryConnector(users=["u-1", "u-2", "u-3"], groups=["g-1"], service_identities=["sp-1"])


@pytest.fixture
def make_provider(scope_a, scope_b, directory):
    """Factory for a mock provider over the given bindings."""
    def _make(bindings, scopes=None, authenticated=True):
        session = MockSession(scopes if scopes is not None else [scope_a, scope_b], authenticated=authenticated)
        return MockProvider(session, directory, MockBindingConnector(bindings))
    return _make


@pytest.fixture
def engine_config(tmp_path):
    return EngineConfig(
        provider="mock",
        export_dir=str(tmp_path / "exports"),
        audit_dir=str(tmp_path / "audit"),
    )
