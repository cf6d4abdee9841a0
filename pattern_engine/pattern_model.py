"""
Pattern Engine - Data Models

Frozen dataclasses and enums for action records, learned patterns,
prediction contexts and engine results.

Records and patterns are IMMUTABLE values: updates produce new instances
(dataclasses.replace), stores decide what gets persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional, Dict, Any, Tuple, Iterable

from .errors import InvalidRequestError


# -----------------------------------------------------------------------------
# Verdict Enum
# -----------------------------------------------------------------------------
class Verdict(str, Enum):
    """Human verdict on a past corrective action."""
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"
    UNSET = "unset"


# -----------------------------------------------------------------------------
# Pattern Category Enum
# -----------------------------------------------------------------------------
class PatternCategory(str, Enum):
    """
    Category of a learned pattern.

    Determines which extraction and recommendation rules apply.
    """
    STYLE_CONVENTION = "style_convention"
    LAYOUT_STRATEGY = "layout_strategy"
    STRUCTURAL_CONVENTION = "structural_convention"
    GENERIC_STRATEGY = "generic_strategy"


class UpsertOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


class SuccessRatePolicy(str, Enum):
    """
    How success_rate is carried through a merge.

    LAST_WRITE: the incoming candidate's rate replaces the stored one.
    ACCUMULATED: recomputed from the summed usage_frequency.
    """
    LAST_WRITE = "last_write"
    ACCUMULATED = "accumulated"


# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------
DEFAULT_LEARNING_WEIGHT = 1.0
LEARNING_WEIGHTS: Dict[str, float] = {
    Verdict.APPROVED.value: 1.5,
    Verdict.REJECTED.value: 0.5,
}
MAX_EXAMPLE_CASES = 10


def clamp_unit(value: float) -> float:
    """Clamp a score into [0.0, 1.0]."""
    return max(0.0, min(1.0, float(value)))


def laplace_success_rate(evidence_count: int) -> float:
    """Conservative success estimate: n / (n + 1)."""
    if evidence_count <= 0:
        return 0.0
    return evidence_count / (evidence_count + 1)


def learning_weight_for(verdict: str) -> float:
    """Learning-weight multiplier derived from a verdict."""
    return LEARNING_WEIGHTS.get(verdict, DEFAULT_LEARNING_WEIGHT)


def _normalize_tokens(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """A string or a list/tuple of strings, as a tuple. Raises TypeError otherwise."""
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        raise TypeError(f"expected a string or a list of strings, got {type(values).__name__}")
    if not all(isinstance(v, str) for v in values):
        raise TypeError("expected a list of strings")
    return tuple(v for v in values if v)


def _normalize_file_type(value: str) -> str:
    return value.strip().lower().lstrip(".")


# -----------------------------------------------------------------------------
# Action Record (Frozen)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ActionRecord:
    """
    One historical corrective action.

    Created by the external collaborator when the action is taken.
    Only the verdict fields change, through the feedback processor.
    """
    id: str
    method: str  # How the action was produced (grouping key)
    description: str
    artifacts_touched: Tuple[str, ...]  # Path-like strings, in order
    created_at: str  # ISO format
    verdict: str = Verdict.UNSET.value
    verdict_reason: Optional[str] = None
    learning_weight: float = DEFAULT_LEARNING_WEIGHT
    reviewer_id: Optional[str] = None
    reviewed_at: Optional[str] = None

    @property
    def has_verdict(self) -> bool:
        return self.verdict != Verdict.UNSET.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "method": self.method,
            "description": self.description,
            "artifacts_touched": list(self.artifacts_touched),
            "created_at": self.created_at,
            "verdict": self.verdict,
            "verdict_reason": self.verdict_reason,
            "learning_weight": self.learning_weight,
            "reviewer_id": self.reviewer_id,
            "reviewed_at": self.reviewed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionRecord":
        weight = data.get("learning_weight")
        return cls(
            id=data["id"],
            method=data.get("method", ""),
            description=data.get("description") or "",
            artifacts_touched=tuple(data.get("artifacts_touched") or ()),
            created_at=data["created_at"],
            verdict=data.get("verdict") or Verdict.UNSET.value,
            verdict_reason=data.get("verdict_reason"),
            learning_weight=DEFAULT_LEARNING_WEIGHT if weight is None else float(weight),
            reviewer_id=data.get("reviewer_id"),
            reviewed_at=data.get("reviewed_at"),
        )


# -----------------------------------------------------------------------------
# Applicable Contexts (Frozen)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ApplicableContexts:
    """
    Conditions a live context must satisfy for a pattern to match.

    An empty tuple means no constraint on that dimension.
    """
    file_types: Tuple[str, ...] = ()
    issue_types: Tuple[str, ...] = ()
    directory_prefixes: Tuple[str, ...] = ()
    screen_sizes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_types": list(self.file_types),
            "issue_types": list(self.issue_types),
            "directory_prefixes": list(self.directory_prefixes),
            "screen_sizes": list(self.screen_sizes),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ApplicableContexts":
        data = data or {}
        return cls(
            file_types=tuple(_normalize_file_type(t) for t in _normalize_tokens(data.get("file_types"))),
            issue_types=_normalize_tokens(data.get("issue_types")),
            directory_prefixes=_normalize_tokens(data.get("directory_prefixes")),
            screen_sizes=_normalize_tokens(data.get("screen_sizes")),
        )


# -----------------------------------------------------------------------------
# Pattern (Frozen)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Pattern:
    """
    A learned, named, confidence-scored insight.

    name is the natural key of the store (exact, case-sensitive match).
    Scores are clamped to [0, 1] on construction.
    """
    name: str
    category: str  # PatternCategory value
    confidence_score: float
    success_rate: float
    usage_frequency: int
    rule_payload: Dict[str, Any] = field(default_factory=dict)
    applicable_contexts: ApplicableContexts = field(default_factory=ApplicableContexts)
    description: str = ""
    example_cases: Tuple[str, ...] = ()  # Contributing action ids
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_applied: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "confidence_score", clamp_unit(self.confidence_score))
        object.__setattr__(self, "success_rate", clamp_unit(self.success_rate))
        object.__setattr__(self, "usage_frequency", max(0, int(self.usage_frequency)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "confidence_score": self.confidence_score,
            "success_rate": self.success_rate,
            "usage_frequency": self.usage_frequency,
            "rule_payload": dict(self.rule_payload),
            "applicable_contexts": self.applicable_contexts.to_dict(),
            "description": self.description,
            "example_cases": list(self.example_cases),
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "last_applied": self.last_applied,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pattern":
        return cls(
            name=data["name"],
            category=data.get("category", PatternCategory.GENERIC_STRATEGY.value),
            confidence_score=data.get("confidence_score") or 0.0,
            success_rate=data.get("success_rate") or 0.0,
            usage_frequency=data.get("usage_frequency") or 0,
            rule_payload=dict(data.get("rule_payload") or {}),
            applicable_contexts=ApplicableContexts.from_dict(data.get("applicable_contexts")),
            description=data.get("description") or "",
            example_cases=tuple(data.get("example_cases") or ()),
            is_active=data.get("is_active", True) is not False,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            last_applied=data.get("last_applied"),
        )


# -----------------------------------------------------------------------------
# Prediction Context (Frozen)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class PredictionContext:
    """
    Description of a live problem to find remediations for.

    file_types are normalized (lower case, no leading dot). When none are
    given they are derived from file_path's extension.
    """
    file_types: Tuple[str, ...] = ()
    issue_types: Tuple[str, ...] = ()
    file_path: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PredictionContext":
        """
        Parse a request context.

        Raises:
            InvalidRequestError: a field has the wrong type
        """
        if not isinstance(data, dict):
            raise InvalidRequestError("context must be an object")
        for key in ("file_type", "file_extension", "issue_type", "file_path", "description"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise InvalidRequestError(f"context.{key} must be a string", details={"field": key})

        try:
            file_types = list(_normalize_tokens(data.get("file_types")))
            issue_types = list(_normalize_tokens(data.get("issue_types")))
        except TypeError as e:
            raise InvalidRequestError(f"Invalid context: {e}")

        for key in ("file_type", "file_extension"):
            if data.get(key):
                file_types.append(data[key])
        file_path = data.get("file_path")
        if not file_types and file_path:
            suffix = PurePosixPath(file_path).suffix
            if suffix:
                file_types.append(suffix)

        if data.get("issue_type"):
            issue_types.append(data["issue_type"])

        return cls(
            file_types=tuple(dict.fromkeys(_normalize_file_type(t) for t in file_types)),
            issue_types=tuple(dict.fromkeys(issue_types)),
            file_path=file_path,
            description=data.get("description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_types": list(self.file_types),
            "issue_types": list(self.issue_types),
            "file_path": self.file_path,
            "description": self.description,
        }


# -----------------------------------------------------------------------------
# Results (Frozen)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Prediction:
    """One ranked remediation candidate."""
    pattern_name: str
    category: str
    recommendation: str
    reasoning: str
    confidence: float
    success_rate: float
    usage_frequency: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern_name": self.pattern_name,
            "category": self.category,
            "recommendation": self.recommendation,
            "reasoning": self.reasoning,
            "confidence": self.confidence,
            "success_rate": self.success_rate,
            "usage_frequency": self.usage_frequency,
        }


@dataclass(frozen=True)
class PredictionResult:
    predictions: Tuple[Prediction, ...]
    highest_confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "predictions": [p.to_dict() for p in self.predictions],
            "highest_confidence": self.highest_confidence,
            "prediction_count": len(self.predictions),
        }


@dataclass(frozen=True)
class UpsertResult:
    name: str
    outcome: str  # UpsertOutcome value
    pattern: Pattern


@dataclass(frozen=True)
class TrainResult:
    """Outcome of one train pass."""
    records_analyzed: int
    patterns_learned: int
    inserted: Tuple[str, ...]
    updated: Tuple[str, ...]
    failed: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records_analyzed": self.records_analyzed,
            "patterns_learned": self.patterns_learned,
            "inserted": list(self.inserted),
            "updated": list(self.updated),
            "failed": list(self.failed),
        }


@dataclass(frozen=True)
class FeedbackEvent:
    """
    Immutable record of one human review.

    Appended to the feedback log on every call, including re-reviews,
    so verdict flips stay visible after the record is overwritten.
    """
    event_id: str
    action_id: str
    verdict: str
    previous_verdict: str
    reason: Optional[str]
    reviewer_id: Optional[str]
    learning_weight: float
    recorded_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "action_id": self.action_id,
            "verdict": self.verdict,
            "previous_verdict": self.previous_verdict,
            "reason": self.reason,
            "reviewer_id": self.reviewer_id,
            "learning_weight": self.learning_weight,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedbackEvent":
        return cls(
            event_id=data["event_id"],
            action_id=data["action_id"],
            verdict=data["verdict"],
            previous_verdict=data.get("previous_verdict", Verdict.UNSET.value),
            reason=data.get("reason"),
            reviewer_id=data.get("reviewer_id"),
            learning_weight=data.get("learning_weight", DEFAULT_LEARNING_WEIGHT),
            recorded_at=data["recorded_at"],
        )
