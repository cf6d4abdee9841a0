"""
Historical Action Store

Keyed persistence for past corrective actions and the corpus reader that
feeds verdict-tagged records to the extractor.

The external collaborator adds records; the engine reads them and writes
only the verdict fields (through the feedback processor).
"""

import json
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, List

from .errors import PersistenceError
from .file_locks import lock_for
from .pattern_model import ActionRecord

logger = logging.getLogger("action_store")


# -----------------------------------------------------------------------------
# Action Store (JSON snapshot, atomic writes)
# -----------------------------------------------------------------------------
class ActionStore:
    """
    Historical record store keyed by action id.

    Every read comes from the snapshot file, so records added by the
    external producer through another instance are visible immediately.
    Writes are read-modify-write under a lock shared by every instance on
    the same file, and rewrite the snapshot atomically (temp file + rename).
    """

    def __init__(self, actions_file: Path):
        self._actions_file = actions_file
        self._lock = lock_for(actions_file)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _read_all(self) -> Dict[str, ActionRecord]:
        """Load records from persistent storage."""
        if not self._actions_file.exists():
            return {}

        try:
            with open(self._actions_file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load action records: {e}")
            raise PersistenceError("Failed to load action records", error=str(e))

        records: Dict[str, ActionRecord] = {}
        for action_id, record_data in data.get("actions", {}).items():
            try:
                records[action_id] = ActionRecord.from_dict(record_data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed action record {action_id}: {e}")
        return records

    def _write_all(self, records: Dict[str, ActionRecord]) -> None:
        """Save records to persistent storage. Caller holds the lock."""
        try:
            self._actions_file.parent.mkdir(parents=True, exist_ok=True)
            data = {
                "version": "1.0",
                "updated_at": datetime.utcnow().isoformat(),
                "actions": {
                    action_id: record.to_dict()
                    for action_id, record in records.items()
                },
            }
            temp_file = self._actions_file.with_suffix(".tmp")
            with open(temp_file, "w") as f:
                json.dump(data, f, indent=2)
            temp_file.replace(self._actions_file)
        except OSError as e:
            logger.error(f"Failed to save action records: {e}")
            raise PersistenceError("Failed to save action records", error=str(e))

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def add_record(self, record: ActionRecord) -> ActionRecord:
        """Add or replace an action record. Used by the record producer."""
        with self._lock:
            records = self._read_all()
            records[record.id] = record
            self._write_all(records)
        logger.debug(f"Stored action record {record.id}")
        return record

    def get_record(self, action_id: str) -> Optional[ActionRecord]:
        return self._read_all().get(action_id)

    def list_reviewed(self, limit: int) -> List[ActionRecord]:
        """Most recent records that carry a verdict, newest first."""
        reviewed = [r for r in self._read_all().values() if r.has_verdict]
        reviewed.sort(key=lambda r: r.created_at, reverse=True)
        return reviewed[:limit]

    def apply_verdict(
        self,
        action_id: str,
        verdict: str,
        reason: Optional[str],
        learning_weight: float,
        reviewer_id: Optional[str] = None,
    ) -> Optional[ActionRecord]:
        """
        Overwrite the verdict fields of a record.

        Returns the updated record, or None if the id is unknown.
        """
        with self._lock:
            records = self._read_all()
            current = records.get(action_id)
            if current is None:
                return None
            updated = replace(
                current,
                verdict=verdict,
                verdict_reason=reason,
                learning_weight=learning_weight,
                reviewer_id=reviewer_id,
                reviewed_at=datetime.utcnow().isoformat(),
            )
            records[action_id] = updated
            self._write_all(records)
        return updated

    def count(self) -> int:
        return len(self._read_all())


# -----------------------------------------------------------------------------
# Historical Corpus Reader
# -----------------------------------------------------------------------------
class CorpusReader:
    """
    Supplies the most recent verdict-tagged records, capped at page_size.

    An empty result is a valid "nothing to learn from" outcome.
    """

    def __init__(self, action_store: ActionStore, page_size: int):
        self._store = action_store
        self._page_size = page_size

    def read_recent(self) -> List[ActionRecord]:
        records = self._store.list_reviewed(limit=self._page_size)
        logger.debug(f"Corpus reader returned {len(records)} reviewed records")
        return records
