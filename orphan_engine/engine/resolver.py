"""
Identity Resolver for the Orphan Engine.

Decides whether the subject of a binding still exists in the identity
directory, querying each concrete subject kind in turn.
"""

import logging
from enum import Enum
from typing import Callable, List, NamedTuple

from ..config import NOT_FOUND_SENTINEL
from ..connectors.base_connector import ConnectorResult, DirectoryConnector
from ..exceptions import describe_error
from ..models import SubjectKind, SubjectReference

logger = logging.getLogger(__name__)


class ResolutionStatus(str, Enum):
    """Outcome of resolving a subject against the directory."""
    EXISTS = "Exists"
    ABSENT = "Absent"
    INDETERMINATE = "Indeterminate"


class Resolution(NamedTuple):
    status: ResolutionStatus
    reason: str
    lookups: int = 0


LOOKUP_ORDER = [SubjectKind.USER, SubjectKind.GROUP, SubjectKind.SERVICE_IDENTITY]


class IdentityResolver:
    """
    Resolves subject references against a directory connector.

    Subjects of Unknown kind, with an empty display name, or carrying the
    provider's "not found" sentinel are absent without any directory call.
    Otherwise the declared kind is looked up first, then the remaining
    kinds, and the subject exists as soon as one lookup finds it.

    A lookup that errors counts as "not found". With ``strict`` enabled, a
    subject that no lookup found but at least one lookup errored on is
    reported as indeterminate instead of absent.
    """

    def __init__(self, directory: DirectoryConnector, strict: bool = False,
                 not_found_sentinel: str = NOT_FOUND_SENTINEL):
        self.directory = directory
        self.strict = strict
        self.not_found_sentinel = not_found_sentinel

    def exists(self, subject: SubjectReference) -> bool:
        """True only when at least one directory lookup found the subject."""
        return self.resolve(subject).status == ResolutionStatus.EXISTS

    def resolve(self, subject: SubjectReference) -> Resolution:
        short_circuit = self._short_circuit_reason(subject)
        if short_circuit:
            logger.debug(f"Subject {subject.id} absent without lookup: {short_circuit}")
            return Resolution(ResolutionStatus.ABSENT, short_circuit)

        errors: List[str] = []
        lookups = 0
        for kind in self._lookup_order(subject.kind):
            lookups += 1
            result = self._safe_lookup(kind, subject.id)
            if result.success:
                return Resolution(ResolutionStatus.EXISTS, f"found as {kind.value}", lookups)
            if result.failed:
                errors.append(f"{kind.value}: {result.error}")

        if errors:
            logger.warning(f"Directory lookups for {subject.id} failed: {'; '.join(errors)}")
            if self.strict:
                return Resolution(ResolutionStatus.INDETERMINATE,
                                  f"lookup errors: {'; '.join(errors)}", lookups)
            return Resolution(ResolutionStatus.ABSENT,
                              f"not found (lookup errors treated as absent: {'; '.join(errors)})", lookups)

        return Resolution(ResolutionStatus.ABSENT, "not found in directory", lookups)

    def _short_circuit_reason(self, subject: SubjectReference) -> str:
        if subject.kind == SubjectKind.UNKNOWN:
            return "subject kind is Unknown"
        name = (subject.display_name or "").strip()
        if not name:
            return "display name is empty"
        if name == self.not_found_sentinel:
            return f"display name is '{self.not_found_sentinel}'"
        return ""

    def _lookup_order(self, declared: SubjectKind) -> List[SubjectKind]:
        return [declared] + [k for k in LOOKUP_ORDER if k != declared]

    def _lookup_method(self, kind: SubjectKind) -> Callable[[str], ConnectorResult]:
        return {
            SubjectKind.USER: self.directory.lookup_user,
            SubjectKind.GROUP: self.directory.lookup_group,
            SubjectKind.SERVICE_IDENTITY: self.directory.lookup_service_identity,
        }[kind]

    def _safe_lookup(self, kind: SubjectKind, subject_id: str) -> ConnectorResult:
        # Errors raised by the directory client count as failed lookups
        try:
            return self._lookup_method(kind)(subject_id)
        except Exception as e:
            logger.warning(f"{kind.value} lookup for {subject_id} raised: {e}")
            return ConnectorResult(False, f"{kind.value} lookup raised", error=describe_error(e))
