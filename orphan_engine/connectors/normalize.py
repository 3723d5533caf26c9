"""
Subject normalization at the provider boundary.

Providers report principal kinds as loose string tags and signal deleted
principals through a display-name sentinel. Both are mapped onto the closed
SubjectKind variant here, before any binding reaches the reconciler.
"""

from typing import Optional

from ..config import NOT_FOUND_SENTINEL
from ..models import SubjectKind, SubjectReference

# Provider tag (lower-cased) -> kind
KIND_ALIASES = {
    "user": SubjectKind.USER,
    "foreignuser": SubjectKind.USER,
    "group": SubjectKind.GROUP,
    "foreigngroup": SubjectKind.GROUP,
    "serviceprincipal": SubjectKind.SERVICE_IDENTITY,
    "serviceidentity": SubjectKind.SERVICE_IDENTITY,
    "managedidentity": SubjectKind.SERVICE_IDENTITY,
    "msi": SubjectKind.SERVICE_IDENTITY,
    "application": SubjectKind.SERVICE_IDENTITY,
    "device": SubjectKind.UNKNOWN,
    "unknown": SubjectKind.UNKNOWN,
}


def normalize_kind(tag: Optional[str]) -> SubjectKind:
    """Map a provider principal-type tag onto SubjectKind."""
    if not tag:
        return SubjectKind.UNKNOWN
    return KIND_ALIASES.get(str(tag).replace(" ", "").lower(), SubjectKind.UNKNOWN)


def normalize_subject(subject_id: str, kind_tag: Optional[str], display_name: Optional[str],
                      sentinel: str = NOT_FOUND_SENTINEL) -> SubjectReference:
    """
    Build a SubjectReference from raw provider fields.

    A display name equal to the provider's "not found" sentinel forces the
    kind to Unknown.
    """
    name = (display_name or "").strip()
    kind = normalize_kind(kind_tag)
    if name == sentinel:
        kind = SubjectKind.UNKNOWN
    return SubjectReference(id=subject_id, kind=kind, display_name=name)
