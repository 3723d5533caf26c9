"""
Audit Logging Module.

This module records every remediation action, performed or simulated, as
append-only JSON lines so that removals can be traced back to the run and
operator that made them.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..models import AuditRecord, RemediationOutcome

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Append-only logger for remediation events.

    Persists audit records to one JSONL file per UTC day under the audit
    directory. The directory is created on the first write;
    existing lines are never rewritten.
    """

    def __init__(self, audit_dir: Union[str, Path] = "audit"):
        """
        Initialize the audit logger.

        Args:
            audit_dir: Directory to store audit logs
        """
        self.audit_dir = Path(audit_dir)

    def log_event(self, record: AuditRecord) -> str:
        """
        Log an audit event.

        Args:
            record: The audit record to log

        Returns:
            The record ID
        """
        date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        log_file = self.audit_dir / f"audit_{date_str}.jsonl"

        try:
            self.audit_dir.mkdir(parents=True, exist_ok=True)
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(record.model_dump(mode="json")) + "\n")
        except OSError as e:
            logger.error(f"Failed to log audit event: {e}")
            raise

        logger.debug(f"Logged audit event {record.id} for binding {record.binding_id}")
        return record.id

    def log_outcomes(self, run_id: str, outcomes: Iterable[RemediationOutcome]) -> List[str]:
        """Write one audit record per remediation outcome."""
        ids = []
        for outcome in outcomes:
            binding = outcome.binding
            record = AuditRecord(
                id=str(uuid.uuid4()),
                run_id=run_id,
                action="remove" if outcome.attempted else "would_remove",
                binding_id=binding.binding_id,
                subject_id=binding.subject.id,
                subject_kind=binding.subject.kind,
                display_name=binding.subject.display_name,
                role_name=binding.role_name,
                scope_id=binding.scope.id,
                scope_path=binding.scope_path,
                attempted=outcome.attempted,
                success=outcome.succeeded,
                error_message=outcome.error,
            )
            ids.append(self.log_event(record))
        return ids

    def get_events(
        self,
        run_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditRecord]:
        """
        Retrieve audit events, most recent first.

        Args:
            run_id: Filter by sweep run
            subject_id: Filter by subject
            limit: Maximum number of records to return

        Returns:
            List of matching AuditRecords
        """
        results: List[AuditRecord] = []

        for log_file in sorted(self.audit_dir.glob("audit_*.jsonl"), reverse=True):
            if len(results) >= limit:
                break

            with open(log_file, encoding="utf-8") as f:
                lines = f.readlines()

            for line in reversed(lines):
                if len(results) >= limit:
                    break
                if not line.strip():
                    continue

                try:
                    record = AuditRecord(**json.loads(line))
                except (ValueError, TypeError) as e:
                    logger.warning(f"Failed to parse audit record in {log_file}: {e}")
                    continue

                if run_id and record.run_id != run_id:
                    continue
                if subject_id and record.subject_id != subject_id:
                    continue

                results.append(record)

        return results
