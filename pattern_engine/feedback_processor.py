"""
Feedback Processor

Records a human verdict against a past action and derives the learning
weight used by later extraction passes.

Re-reviews overwrite the verdict on the record. Every review, including
a re-review, is also appended to an immutable feedback log (fsync'd JSONL)
that keeps the previous verdict.
"""

import json
import logging
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List

from .action_store import ActionStore
from .errors import InvalidRequestError, NotFoundError, PersistenceError
from .pattern_model import (
    ActionRecord,
    FeedbackEvent,
    Verdict,
    learning_weight_for,
)

logger = logging.getLogger("feedback_processor")

REVIEW_VERDICTS = frozenset({
    Verdict.APPROVED.value,
    Verdict.REJECTED.value,
    Verdict.MODIFIED.value,
})


# -----------------------------------------------------------------------------
# Feedback Log (Append-Only)
# -----------------------------------------------------------------------------
class FeedbackLog:
    """Append-only JSONL log of review events."""

    def __init__(self, log_file: Path):
        self._log_file = log_file

    def append(self, event: FeedbackEvent) -> None:
        try:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._log_file, "a") as f:
                f.write(json.dumps(event.to_dict()) + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            logger.error(f"Failed to append feedback event for {event.action_id}: {e}")
            raise PersistenceError("Failed to append feedback event", error=str(e))

    def read(self, action_id: Optional[str] = None) -> List[FeedbackEvent]:
        """Events in the order they were recorded."""
        if not self._log_file.exists():
            return []

        events = []
        with open(self._log_file, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                    event = FeedbackEvent.from_dict(record)
                except (json.JSONDecodeError, AttributeError, KeyError, TypeError):
                    logger.warning(f"Skipping malformed feedback log line in {self._log_file}")
                    continue
                if action_id and event.action_id != action_id:
                    continue
                events.append(event)
        return events


# -----------------------------------------------------------------------------
# Feedback Processor
# -----------------------------------------------------------------------------
class FeedbackProcessor:
    """Applies human verdicts to action records."""

    def __init__(self, action_store: ActionStore, feedback_log: FeedbackLog):
        self._actions = action_store
        self._log = feedback_log

    def apply(
        self,
        action_id: str,
        verdict: str,
        reason: Optional[str] = None,
        reviewer_id: Optional[str] = None,
    ) -> ActionRecord:
        """
        Set the verdict on an action record.

        Raises:
            InvalidRequestError: verdict is not approved/rejected/modified
            NotFoundError: no record with this id
        """
        if verdict not in REVIEW_VERDICTS:
            raise InvalidRequestError(
                f"Invalid verdict: {verdict!r}",
                details={"allowed": sorted(REVIEW_VERDICTS)},
            )

        current = self._actions.get_record(action_id)
        if current is None:
            raise NotFoundError("Action", action_id)

        weight = learning_weight_for(verdict)
        updated = self._actions.apply_verdict(
            action_id,
            verdict=verdict,
            reason=reason,
            learning_weight=weight,
            reviewer_id=reviewer_id,
        )
        if updated is None:
            raise NotFoundError("Action", action_id)

        if current.has_verdict and current.verdict != verdict:
            logger.warning(f"Verdict changed for {action_id}: {current.verdict} -> {verdict}")

        event = FeedbackEvent(
            event_id=f"fb-{uuid.uuid4().hex[:12]}",
            action_id=action_id,
            verdict=verdict,
            previous_verdict=current.verdict,
            reason=reason,
            reviewer_id=reviewer_id,
            learning_weight=weight,
            recorded_at=updated.reviewed_at or datetime.utcnow().isoformat(),
        )
        try:
            self._log.append(event)
        except PersistenceError:
            # A review without its audit event is not kept
            logger.error(f"Rolling back verdict on {action_id}: feedback event not recorded")
            self._actions.add_record(current)
            raise

        logger.info(f"Feedback applied: {action_id} -> {verdict} (weight={weight})")
        return updated

    def history(self, action_id: str) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self._log.read(action_id=action_id)]
