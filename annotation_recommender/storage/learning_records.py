"""Storage of learning records as JSON lines files."""

import threading
from collections import Counter
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from rich.console import Console

from ..recommendation.models import LearningRecord, LearningRecordType

console = Console(stderr=True)


class LearningRecordStore:
    """Appends user decisions to one JSON lines file per project and data owner."""

    def __init__(self, base_path: str | Path = "data/learning_records"):
        """Initialize the store.

        Args:
            base_path: Directory holding the record files
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _generate_filename(self, project_id: int, data_owner: str) -> str:
        """Generate the filename for the records of a data owner.

        Args:
            project_id: Project id
            data_owner: User whose annotations the records refer to

        Returns:
            Filename string
        """
        return f"project_{project_id}_{data_owner}.jsonl"

    def _get_file_path(self, project_id: int, data_owner: str) -> Path:
        return self.base_path / self._generate_filename(project_id, data_owner)

    def log_record(self, record: LearningRecord) -> Path:
        """Append a record.

        Args:
            record: Decision to store

        Returns:
            Path to the file the record was appended to
        """
        file_path = self._get_file_path(record.project_id, record.data_owner)
        with self._lock:
            with open(file_path, "a", encoding="utf-8") as f:
                f.write(record.model_dump_json() + "\n")
        return file_path

    def log_records(self, records: Iterable[LearningRecord]) -> int:
        count = 0
        for record in records:
            self.log_record(record)
            count += 1
        return count

    def _read_file(self, file_path: Path) -> list[LearningRecord]:
        if not file_path.exists():
            return []

        records = []
        with self._lock:
            lines = file_path.read_text(encoding="utf-8").splitlines()

        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                records.append(LearningRecord.model_validate_json(line))
            except ValidationError as e:
                console.print(
                    f"Skipping unreadable record in {file_path.name} "
                    f"line {line_number}: {e.error_count()} validation errors"
                )
        return records

    def load_records(self, project_id: int, data_owner: str) -> list[LearningRecord]:
        """All records of a data owner in a project, oldest first."""
        return self._read_file(self._get_file_path(project_id, data_owner))

    def list_records(
        self,
        user: str,
        data_owner: str,
        project_id: int,
        layer_id: int | None = None,
    ) -> list[LearningRecord]:
        """Records a session owner made on a data owner's annotations.

        Args:
            user: Session owner who made the decisions
            data_owner: User whose annotations were affected
            project_id: Project id
            layer_id: Only records of this layer (optional)

        Returns:
            Matching records, newest first
        """
        records = [
            r
            for r in self.load_records(project_id, data_owner)
            if r.user == user and (layer_id is None or r.layer_id == layer_id)
        ]
        records.sort(key=lambda r: r.changed_at, reverse=True)
        return records

    def has_skipped_suggestions(
        self,
        user: str,
        data_owner: str,
        project_id: int,
        layer_id: int | None = None,
    ) -> bool:
        return any(
            r.action == LearningRecordType.SKIPPED
            for r in self.list_records(user, data_owner, project_id, layer_id)
        )

    def delete_skipped_records(
        self,
        user: str,
        data_owner: str,
        project_id: int,
        layer_id: int | None = None,
    ) -> int:
        """Remove skip decisions so the skipped suggestions can come back.

        Returns:
            Number of deleted records
        """
        file_path = self._get_file_path(project_id, data_owner)
        records = self._read_file(file_path)

        def is_deleted(record: LearningRecord) -> bool:
            return (
                record.action == LearningRecordType.SKIPPED
                and record.user == user
                and (layer_id is None or record.layer_id == layer_id)
            )

        kept = [r for r in records if not is_deleted(r)]
        deleted = len(records) - len(kept)
        if deleted == 0:
            return 0

        try:
            with self._lock:
                with open(file_path, "w", encoding="utf-8") as f:
                    for record in kept:
                        f.write(record.model_dump_json() + "\n")
        except OSError as e:
            console.print(f"Error rewriting {file_path}: {e}")
            raise

        return deleted

    def list_record_files(self, project_id: int | None = None) -> list[str]:
        """List stored record filenames, optionally of one project."""
        pattern = "*.jsonl"
        if project_id is not None:
            pattern = f"project_{project_id}_*.jsonl"
        return sorted(f.name for f in self.base_path.glob(pattern))

    def get_storage_stats(self, project_id: int | None = None) -> dict[str, Any]:
        """Get statistics about stored records.

        Returns:
            Dictionary with record counts per action and per data owner
        """
        action_counts: Counter[str] = Counter()
        owner_counts: Counter[str] = Counter()
        for name in self.list_record_files(project_id):
            for record in self._read_file(self.base_path / name):
                action_counts[record.action.value] += 1
                owner_counts[record.data_owner] += 1

        return {
            "total_records": sum(action_counts.values()),
            "actions": dict(action_counts),
            "data_owners": dict(owner_counts),
            "storage_path": str(self.base_path.absolute()),
        }
