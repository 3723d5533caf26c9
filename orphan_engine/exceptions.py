"""
Error taxonomy for the Orphan Engine.

Setup errors are fatal and abort a run. Enumeration, resolution and
remediation errors are recovered at their own boundary and surface in
the end-of-run summary.
"""

from typing import Optional


class OrphanEngineError(Exception):
    """Base class for all engine errors."""


class SetupError(OrphanEngineError):
    """Fatal error: no session, no accessible scope, or unusable configuration."""


class AuthenticationRequired(SetupError):
    """Raised when no authenticated provider session is available."""


class ConfigurationError(SetupError):
    """Raised when the configuration file cannot be loaded or validated."""


class EnumerationError(OrphanEngineError):
    """Listing the bindings of a single scope failed."""

    def __init__(self, scope_id: str, message: str):
        super().__init__(f"Failed to enumerate bindings for scope {scope_id}: {message}")
        self.scope_id = scope_id
        self.message = message


class ResolutionError(OrphanEngineError):
    """A directory lookup failed for a reason other than 'not found'."""

    def __init__(self, subject_id: str, message: str, kind: Optional[str] = None):
        super().__init__(f"Directory lookup failed for {subject_id}: {message}")
        self.subject_id = subject_id
        self.kind = kind
        self.message = message


class RemediationError(OrphanEngineError):
    """Removing a single binding failed."""

    def __init__(self, binding_id: str, message: str):
        super().__init__(f"Failed to remove binding {binding_id}: {message}")
        self.binding_id = binding_id
        self.message = message


class ExportError(SetupError):
    """The orphaned-bindings export could not be written; nothing may be removed."""


def describe_error(error: BaseException) -> str:
    """Message of an exception, or its class name when the message is empty."""
    return str(error) or type(error).__name__
