"""
Audit Package.

Exports AuditLogger and ExportWriter.
"""

from .audit_logger import AuditLogger
from .export_writer import EXPORT_COLUMNS, ExportWriter

__all__ = ["AuditLogger", "ExportWriter", "EXPORT_COLUMNS"]
