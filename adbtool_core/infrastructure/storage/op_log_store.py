"""
Operation history storage.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, List, Optional, Union

from adbtool_core.logic.models import OpLogEntry
from ..shared.error_handling import ErrorSeverity, log_and_continue, safe_execute

COMPONENT = "storage.op_log"

# A stored record is either a decoded entry or the raw JSON item it came from
Record = Union[OpLogEntry, Any]


class OpLogStore:
    """
    Append-only operation history persisted as a JSON array.

    The whole file is rewritten on every append so it stays valid JSON after
    each operation. Items this version cannot decode are kept verbatim and
    written back in place, so other writers of the same file never lose
    history.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._records: List[Record] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger(COMPONENT)

    @property
    def entries(self) -> List[OpLogEntry]:
        with self._lock:
            return self._decoded()

    def _decoded(self) -> List[OpLogEntry]:
        return [record for record in self._records if isinstance(record, OpLogEntry)]

    def load(self) -> List[OpLogEntry]:
        """Load history from disk; an unreadable file loads as empty."""
        records = safe_execute(
            self._read_file,
            default_value=[],
            operation="load_op_log",
            component=COMPONENT,
            exceptions=(OSError, ValueError)
        )
        with self._lock:
            self._records = records
            entries = self._decoded()
        skipped = len(records) - len(entries)
        self.logger.info(f"Loaded {len(entries)} operation history entries ({skipped} kept undecoded)")
        return entries

    def _read_file(self) -> List[Record]:
        if not self.path.exists():
            return []
        data = self.path.read_text(encoding='utf-8')
        if not data.strip():
            return []
        items = json.loads(data)
        if not isinstance(items, list):
            raise ValueError(f"Operation history in {self.path} is not a JSON array")
        return [self._decode(index, item) for index, item in enumerate(items)]

    def _decode(self, index: int, item: Any) -> Record:
        try:
            return OpLogEntry.from_dict(item)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            log_and_continue(
                f"Keeping undecodable history item {index} as-is: {e}",
                component=COMPONENT,
                severity=ErrorSeverity.WARNING,
                path=str(self.path)
            )
            return item

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        records = [record.to_dict() if isinstance(record, OpLogEntry) else record for record in self._records]
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(records, f, indent=2, ensure_ascii=False)

    def add_entry(self, entry: OpLogEntry) -> None:
        with self._lock:
            self._records.append(entry)
            self._save()

    def get_entries(self, op_type: Optional[str] = None, device: Optional[str] = None) -> List[OpLogEntry]:
        """Entries filtered by operation type and/or device serial."""
        with self._lock:
            return [
                entry for entry in self._decoded()
                if (not op_type or entry.op_type == op_type)
                and (not device or entry.device == device)
            ]

    def clear(self) -> None:
        with self._lock:
            self._records = []
            self._save()
