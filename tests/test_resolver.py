"""
Tests for the Identity Resolver.

Covers the short-circuit rules, existence under any subject kind, and the
treatment of lookup errors in default and strict mode.
"""

from unittest.mock import Mock

import pytest

from orphan_engine.connectors import ConnectorResult
from orphan_engine.engine import IdentityResolver, ResolutionStatus
from orphan_engine.models import SubjectKind, SubjectReference


def subject(subject_id, kind=SubjectKind.USER, display_name="Jane Doe"):
    return SubjectReference(id=subject_id, kind=kind, display_name=display_name)


class TestShortCircuit:
    """Subjects that are absent without any directory call."""

    @pytest.mark.parametrize("ref", [
        subject("u-1", kind=SubjectKind.UNKNOWN),
        subject("u-1", display_name=""),
        subject("u-1", display_name="   "),
        subject("u-1", display_name="Identity not found"),
        subject("g-1", kind=SubjectKind.GROUP, display_name="Identity not found"),
    ])
    def test_absent_without_lookup(self, directory, ref):
        """Unknown kind, empty name and the sentinel are orphan evidence on their own."""
        resolver = IdentityResolver(directory)

        assert resolver.exists(ref) is False
        assert resolver.resolve(ref).status == ResolutionStatus.ABSENT
        assert directory.lookup_calls == 0

    def test_custom_sentinel(self, directory):
        resolver = IdentityResolver(directory, not_found_sentinel="<deleted>")

        assert resolver.exists(subject("u-1", display_name="<deleted>")) is False
        assert directory.lookup_calls == 0

        # The default sentinel is an ordinary name once another one is configured
        assert resolver.exists(subject("u-1", display_name="Identity not found")) is True


class TestLookups:
    """Subjects resolved through directory lookups."""

    def test_user_found(self, directory):
        resolver = IdentityResolver(directory)

        resolution = resolver.resolve(subject("u-1"))

        assert resolution.status == ResolutionStatus.EXISTS
        assert resolution.lookups == 1
        assert directory.lookups == [(SubjectKind.USER, "u-1")]

    def test_declared_kind_is_looked_up_first(self, directory):
        resolver = IdentityResolver(directory)

        assert resolver.exists(subject("sp-1", kind=SubjectKind.SERVICE_IDENTITY)) is True
        assert directory.lookups[0] == (SubjectKind.SERVICE_IDENTITY, "sp-1")
        assert directory.lookup_calls == 1

    def test_found_under_another_kind(self, directory):
        """A subject reported as a user but existing as a group still exists."""
        resolver = IdentityResolver(directory)

        resolution = resolver.resolve(subject("g-1", kind=SubjectKind.USER))

        assert resolution.status == ResolutionStatus.EXISTS
        assert resolution.lookups == 2

    def test_not_found_under_any_kind(self, directory):
        resolver = IdentityResolver(directory)

        resolution = resolver.resolve(subject("u-gone"))

        assert resolution.status == ResolutionStatus.ABSENT
        assert resolution.lookups == 3
        assert {kind for kind, _ in directory.lookups} == {
            SubjectKind.USER, SubjectKind.GROUP, SubjectKind.SERVICE_IDENTITY
        }


class TestLookupErrors:
    """Lookup errors count as not found unless strict mode is on."""

    def test_errors_treated_as_absent(self, directory):
        directory.failing_ids.add("u-1")
        resolver = IdentityResolver(directory)

        resolution = resolver.resolve(subject("u-1"))

        assert resolution.status == ResolutionStatus.ABSENT
        assert "lookup errors" in resolution.reason

    def test_raised_errors_treated_as_absent(self, directory):
        directory.failing_ids.add("u-1")
        directory.raise_on_failure = True
        resolver = IdentityResolver(directory)

        assert resolver.exists(subject("u-1")) is False
        assert directory.lookup_calls == 3

    def test_strict_mode_reports_indeterminate(self, directory):
        directory.failing_ids.add("u-1")
        resolver = IdentityResolver(directory, strict=True)

        resolution = resolver.resolve(subject("u-1"))

        assert resolution.status == ResolutionStatus.INDETERMINATE
        assert resolver.exists(subject("u-1")) is False

    def test_strict_mode_still_finds_existing_subjects(self):
        """One successful lookup wins even when the others error."""
        client = Mock()
        client.lookup_user.return_value = ConnectorResult(False, "boom", error="timeout")
        client.lookup_group.return_value = ConnectorResult(True, "found")
        client.lookup_service_identity.return_value = ConnectorResult(False, "boom", error="timeout")

        resolver = IdentityResolver(client, strict=True)

        assert resolver.resolve(subject("x-1")).status == ResolutionStatus.EXISTS
        client.lookup_service_identity.assert_not_called()

    def test_strict_mode_clean_not_found_is_absent(self, directory):
        resolver = IdentityResolver(directory, strict=True)

        assert resolver.resolve(subject("u-gone")).status == ResolutionStatus.ABSENT
