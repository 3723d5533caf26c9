"""
Orphaned-binding export.

Writes the orphaned bindings found by a run to a CSV file named after the
run timestamp. Files are created exclusively: an existing export is never
overwritten, a numeric suffix is added instead.
"""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Sequence, TextIO, Tuple, Union

from ..exceptions import ExportError, describe_error
from ..models import Binding

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "scope_name",
    "scope_id",
    "binding_id",
    "subject_id",
    "display_name",
    "role_name",
    "scope_path",
    "subject_kind",
]


def export_row(binding: Binding) -> List[str]:
    return [
        binding.scope.display_name,
        binding.scope.id,
        binding.binding_id,
        binding.subject.id,
        binding.subject.display_name,
        binding.role_name,
        binding.scope_path,
        binding.subject.kind.value,
    ]


class ExportWriter:
    """CSV audit sink for orphaned bindings, one file per run."""

    def __init__(self, export_dir: Union[str, Path] = "exports", prefix: str = "orphaned_bindings"):
        self.export_dir = Path(export_dir)
        self.prefix = prefix

    def filename_for(self, run_timestamp: datetime) -> str:
        return f"{self.prefix}_{run_timestamp.strftime('%Y%m%d_%H%M%S')}.csv"

    def write(self, orphaned: Sequence[Binding], run_timestamp: datetime) -> Path:
        """
        Write the export for a run.

        Args:
            orphaned: Orphaned bindings, already in report order
            run_timestamp: Start time of the run, used to name the file

        Returns:
            Path of the written file

        Raises:
            ExportError: If the export directory or file cannot be written
        """
        try:
            self.export_dir.mkdir(parents=True, exist_ok=True)
            path, f = self._open_exclusive(self.export_dir / self.filename_for(run_timestamp))

            with f:
                writer = csv.writer(f)
                writer.writerow(EXPORT_COLUMNS)
                for binding in orphaned:
                    writer.writerow(export_row(binding))
        except OSError as e:
            raise ExportError(f"Failed to write export to {self.export_dir}: {describe_error(e)}") from e

        logger.info(f"Exported {len(orphaned)} orphaned bindings to {path}")
        return path

    def _open_exclusive(self, base: Path) -> Tuple[Path, TextIO]:
        path = base
        attempt = 0
        while True:
            try:
                return path, open(path, "x", newline="", encoding="utf-8")
            except FileExistsError:
                attempt += 1
                path = base.with_name(f"{base.stem}_{attempt}{base.suffix}")
