"""
Pattern Store

Durable repository of learned patterns keyed by exact name.

- Reads always come from the snapshot file, so every store instance on
  the same file sees the same patterns.
- Every read-then-upsert runs under one lock per file: concurrent train
  calls fold their evidence in one after another, none is lost.
- Writes are atomic (temp file + rename).
- Patterns are never deleted; deactivation is an explicit admin action.
"""

import json
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List

from .confidence_merger import CONFIDENCE_CEILING, merge_patterns, prepare_insert
from .errors import NotFoundError, PersistenceError
from .file_locks import lock_for
from .pattern_model import (
    Pattern,
    SuccessRatePolicy,
    UpsertOutcome,
    UpsertResult,
)

logger = logging.getLogger("pattern_store")

STORE_VERSION = "1.0"


# -----------------------------------------------------------------------------
# Pattern Store
# -----------------------------------------------------------------------------
class PatternStore:
    """Keyed pattern persistence with upsert-merge semantics."""

    def __init__(
        self,
        patterns_file: Path,
        confidence_ceiling: float = CONFIDENCE_CEILING,
        success_rate_policy: str = SuccessRatePolicy.LAST_WRITE.value,
    ):
        self._patterns_file = patterns_file
        self._confidence_ceiling = confidence_ceiling
        self._success_rate_policy = success_rate_policy
        self._lock = lock_for(patterns_file)

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def upsert(self, candidate: Pattern) -> UpsertResult:
        """
        Insert a novel pattern or merge into the stored one of the same name.

        Raises PersistenceError if the snapshot cannot be read or written.
        """
        with self._lock:
            patterns = self._read_all()
            now = datetime.utcnow().isoformat()
            existing = patterns.get(candidate.name)

            if existing is None:
                stored = prepare_insert(candidate, now)
                outcome = UpsertOutcome.INSERTED.value
            else:
                stored = merge_patterns(
                    existing,
                    candidate,
                    now,
                    ceiling=self._confidence_ceiling,
                    policy=self._success_rate_policy,
                )
                outcome = UpsertOutcome.UPDATED.value

            patterns[candidate.name] = stored
            self._write_all(patterns, failed_name=candidate.name)

        logger.info(
            f"Pattern {outcome}: {candidate.name} "
            f"(confidence={stored.confidence_score}, usage={stored.usage_frequency})"
        )
        return UpsertResult(name=candidate.name, outcome=outcome, pattern=stored)

    def set_active(self, name: str, active: bool) -> Pattern:
        """Soft-enable or soft-disable a pattern. Administrative action."""
        with self._lock:
            patterns = self._read_all()
            existing = patterns.get(name)
            if existing is None:
                raise NotFoundError("Pattern", name)
            updated = replace(existing, is_active=active, updated_at=datetime.utcnow().isoformat())
            patterns[name] = updated
            self._write_all(patterns, failed_name=name)

        logger.info(f"Pattern {'activated' if active else 'deactivated'}: {name}")
        return updated

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get(self, name: str) -> Optional[Pattern]:
        return self._read_all().get(name)

    def list_patterns(
        self,
        category: Optional[str] = None,
        active_only: bool = False,
        min_confidence: Optional[float] = None,
    ) -> List[Pattern]:
        """Patterns ordered by confidence descending, then name."""
        patterns = []
        for pattern in self._read_all().values():
            if category and pattern.category != category:
                continue
            if active_only and not pattern.is_active:
                continue
            if min_confidence is not None and pattern.confidence_score < min_confidence:
                continue
            patterns.append(pattern)
        patterns.sort(key=lambda p: (-p.confidence_score, p.name))
        return patterns

    def count(self) -> int:
        return len(self._read_all())

    # -------------------------------------------------------------------------
    # Internal Helpers
    # -------------------------------------------------------------------------

    def _read_all(self) -> Dict[str, Pattern]:
        if not self._patterns_file.exists():
            return {}
        try:
            with open(self._patterns_file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read pattern store {self._patterns_file}: {e}")
            raise PersistenceError("Failed to read pattern store", error=str(e))

        patterns: Dict[str, Pattern] = {}
        for name, record in data.get("patterns", {}).items():
            try:
                patterns[name] = Pattern.from_dict(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed pattern {name}: {e}")
        return patterns

    def _write_all(self, patterns: Dict[str, Pattern], failed_name: str) -> None:
        data: Dict[str, Any] = {
            "version": STORE_VERSION,
            "updated_at": datetime.utcnow().isoformat(),
            "patterns": {name: p.to_dict() for name, p in patterns.items()},
        }
        try:
            self._patterns_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self._patterns_file.with_suffix(".tmp")
            with open(temp_file, "w") as f:
                json.dump(data, f, indent=2)
            temp_file.replace(self._patterns_file)
        except OSError as e:
            logger.error(f"Failed to persist pattern {failed_name}: {e}")
            raise PersistenceError(
                f"Failed to persist pattern '{failed_name}'",
                pattern_name=failed_name,
                error=str(e),
            )
