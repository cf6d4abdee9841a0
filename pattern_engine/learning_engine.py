"""
Pattern Learning Engine - Facade

Four operations over the pattern store:
- train: corpus reader -> extractor -> confidence merger (batch of upserts)
- analyze: read-only listing of stored patterns with summary counts
- predict: context matcher, ranked remediations
- feedback: human verdict on a past action

The enable/disable gate comes from the injected EngineConfig and is checked
before every operation; a disabled engine fails fast with no side effects.
Between calls the engine is stateless apart from the stores.
"""

import logging
from typing import Optional, Dict, Any, Callable

from .action_store import ActionStore, CorpusReader
from .context_matcher import (
    ApplicabilityPredicate,
    ContextMatcher,
    MembershipPredicate,
    PathScopedPredicate,
)
from .engine_config import EngineConfig, load_engine_config
from .errors import (
    EngineDisabledError,
    EngineError,
    InvalidRequestError,
    PersistenceError,
    UnknownActionError,
)
from .feedback_processor import FeedbackLog, FeedbackProcessor
from .pattern_extractor import extract_patterns
from .pattern_model import (
    ActionRecord,
    Pattern,
    PatternCategory,
    PredictionContext,
    PredictionResult,
    TrainResult,
    UpsertOutcome,
)
from .pattern_store import PatternStore

logger = logging.getLogger("learning_engine")

ACTION_TRAIN = "train"
ACTION_ANALYZE = "analyze"
ACTION_PREDICT = "predict"
ACTION_FEEDBACK = "feedback"
VALID_ACTIONS = (ACTION_TRAIN, ACTION_ANALYZE, ACTION_PREDICT, ACTION_FEEDBACK)

_CATEGORY_VALUES = frozenset(c.value for c in PatternCategory)


# -----------------------------------------------------------------------------
# Pattern Learning Engine
# -----------------------------------------------------------------------------
class PatternLearningEngine:
    """Facade orchestrating extraction, storage, matching and feedback."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        action_store: Optional[ActionStore] = None,
        pattern_store: Optional[PatternStore] = None,
        feedback_log: Optional[FeedbackLog] = None,
        predicate: Optional[ApplicabilityPredicate] = None,
    ):
        self._config = config or load_engine_config()
        self._actions = action_store or ActionStore(self._config.actions_file)
        self._patterns = pattern_store or PatternStore(
            self._config.patterns_file,
            confidence_ceiling=self._config.confidence_ceiling,
            success_rate_policy=self._config.success_rate_policy,
        )
        self._reader = CorpusReader(self._actions, self._config.corpus_page_size)

        if predicate is None:
            predicate = PathScopedPredicate() if self._config.match_directory_prefixes else MembershipPredicate()
        self._matcher = ContextMatcher(
            self._patterns,
            predicate=predicate,
            min_confidence=self._config.min_prediction_confidence,
        )
        self._feedback = FeedbackProcessor(
            self._actions,
            feedback_log or FeedbackLog(self._config.feedback_log_file),
        )

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def action_store(self) -> ActionStore:
        return self._actions

    @property
    def pattern_store(self) -> PatternStore:
        return self._patterns

    def _check_enabled(self, action: str) -> None:
        if not self._config.enabled:
            logger.warning(f"Rejected {action}: pattern engine is disabled")
            raise EngineDisabledError(action)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def train(self) -> TrainResult:
        """
        Learn patterns from the most recent reviewed actions.

        A pattern that fails to persist is logged and skipped; patterns
        already persisted in this pass are kept.
        """
        self._check_enabled(ACTION_TRAIN)

        records = self._reader.read_recent()
        if not records:
            logger.info("Train: no reviewed records, nothing to learn")
            return TrainResult(records_analyzed=0, patterns_learned=0, inserted=(), updated=(), failed=())

        inserted, updated, failed = [], [], []
        for candidate in extract_patterns(records):
            try:
                result = self._patterns.upsert(candidate)
            except PersistenceError as e:
                logger.error(f"Train: failed to persist pattern {candidate.name}: {e.message}")
                failed.append(candidate.name)
                continue
            if result.outcome == UpsertOutcome.INSERTED.value:
                inserted.append(result.name)
            else:
                updated.append(result.name)

        learned = len(inserted) + len(updated)
        logger.info(
            f"Train: {learned} patterns learned from {len(records)} records "
            f"({len(inserted)} new, {len(updated)} updated, {len(failed)} failed)"
        )
        return TrainResult(
            records_analyzed=len(records),
            patterns_learned=learned,
            inserted=tuple(inserted),
            updated=tuple(updated),
            failed=tuple(failed),
        )

    def analyze(self, pattern_type: Optional[str] = None, include_inactive: bool = False) -> Dict[str, Any]:
        """List stored patterns, optionally by category, with summary counts."""
        self._check_enabled(ACTION_ANALYZE)

        if pattern_type is not None and (not isinstance(pattern_type, str) or pattern_type not in _CATEGORY_VALUES):
            raise InvalidRequestError(
                f"Unknown pattern_type: {pattern_type!r}",
                details={"allowed": sorted(_CATEGORY_VALUES)},
            )

        patterns = self._patterns.list_patterns(
            category=pattern_type,
            active_only=not include_inactive,
        )
        by_category: Dict[str, int] = {}
        for pattern in patterns:
            by_category[pattern.category] = by_category.get(pattern.category, 0) + 1

        threshold = self._config.high_confidence_threshold
        return {
            "patterns": [p.to_dict() for p in patterns],
            "total_patterns": len(patterns),
            "high_confidence_patterns": sum(1 for p in patterns if p.confidence_score >= threshold),
            "by_category": by_category,
        }

    def predict(self, context: PredictionContext) -> PredictionResult:
        self._check_enabled(ACTION_PREDICT)
        return self._matcher.predict(context)

    def feedback(
        self,
        action_id: str,
        verdict: str,
        reason: Optional[str] = None,
        reviewer_id: Optional[str] = None,
    ) -> ActionRecord:
        self._check_enabled(ACTION_FEEDBACK)
        return self._feedback.apply(action_id, verdict, reason=reason, reviewer_id=reviewer_id)

    def feedback_history(self, action_id: str):
        self._check_enabled(ACTION_FEEDBACK)
        return self._feedback.history(action_id)

    def set_pattern_active(self, name: str, active: bool) -> Pattern:
        """Administrative soft-disable / re-enable of a stored pattern."""
        self._check_enabled("deactivate" if not active else "activate")
        return self._patterns.set_active(name, active)

    # -------------------------------------------------------------------------
    # Request Boundary
    # -------------------------------------------------------------------------

    def handle_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Dispatch a {action, data?, pattern_type?, context?} payload.

        Never raises: engine errors come back as {success: false, error}.
        """
        action = payload.get("action") if isinstance(payload, dict) else None
        try:
            self._check_enabled(str(action))
            handler = self._handlers().get(action)
            if handler is None:
                raise UnknownActionError(action)
            response = handler(payload)
        except EngineError as e:
            logger.info(f"Request {action!r} failed: {e.code} - {e.message}")
            return e.to_dict()

        response["success"] = True
        response["action"] = action
        return response

    def _handlers(self) -> Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]]:
        return {
            ACTION_TRAIN: self._handle_train,
            ACTION_ANALYZE: self._handle_analyze,
            ACTION_PREDICT: self._handle_predict,
            ACTION_FEEDBACK: self._handle_feedback,
        }

    def _handle_train(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.train().to_dict()

    def _handle_analyze(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise InvalidRequestError("analyze data must be an object")
        include_inactive = data.get("include_inactive", False)
        if not isinstance(include_inactive, bool):
            raise InvalidRequestError("data.include_inactive must be a boolean")
        return self.analyze(
            pattern_type=payload.get("pattern_type") or data.get("pattern_type"),
            include_inactive=include_inactive,
        )

    def _handle_predict(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raw_context = payload.get("context") or payload.get("data")
        if not isinstance(raw_context, dict):
            raise InvalidRequestError("predict requires a context object")
        return self.predict(PredictionContext.from_dict(raw_context)).to_dict()

    def _handle_feedback(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = payload.get("data")
        if not isinstance(data, dict) or not data.get("action_id") or not data.get("verdict"):
            raise InvalidRequestError("feedback requires data.action_id and data.verdict")
        record = self.feedback(
            str(data["action_id"]),
            str(data["verdict"]),
            reason=data.get("reason"),
            reviewer_id=data.get("reviewer_id"),
        )
        return {
            "feedback_applied": True,
            "action_id": record.id,
            "verdict": record.verdict,
            "learning_weight": record.learning_weight,
        }


# -----------------------------------------------------------------------------
# Module-Level Functions
# -----------------------------------------------------------------------------

# Singleton instance
_engine: Optional[PatternLearningEngine] = None


def get_pattern_engine() -> PatternLearningEngine:
    """Get the pattern engine singleton, built from the loaded config."""
    global _engine
    if _engine is None:
        _engine = PatternLearningEngine(config=load_engine_config())
    return _engine


def handle_engine_request(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Dispatch a request payload. Convenience function using singleton engine."""
    return get_pattern_engine().handle_request(payload)
