"""
Context Matcher

Filters stored patterns by an applicability predicate and ranks the
matches by confidence. READ-ONLY: never modifies the pattern store.

Predicates are strategies: the matcher only calls matches(pattern, context),
so richer rules can be plugged in without changing predict().
"""

import logging
from typing import Optional, Sequence

from .pattern_model import (
    Pattern,
    PatternCategory,
    Prediction,
    PredictionContext,
    PredictionResult,
)
from .pattern_store import PatternStore

logger = logging.getLogger("context_matcher")

DEFAULT_MIN_CONFIDENCE = 0.7
RECOMMENDATION_TOKEN_LIMIT = 3


# -----------------------------------------------------------------------------
# Applicability Predicates
# -----------------------------------------------------------------------------
def _dimension_satisfied(required: Sequence[str], offered: Sequence[str]) -> bool:
    """An empty restriction always passes; otherwise one offered value must be allowed."""
    if not required:
        return True
    return any(value in required for value in offered)


class ApplicabilityPredicate:
    """Decides whether a pattern applies to a live context."""

    def matches(self, pattern: Pattern, context: PredictionContext) -> bool:
        raise NotImplementedError


class MembershipPredicate(ApplicabilityPredicate):
    """
    Conjunctive membership test over file types and issue types.

    A pattern with no restriction on a dimension matches any context on it.
    """

    def matches(self, pattern: Pattern, context: PredictionContext) -> bool:
        contexts = pattern.applicable_contexts
        return (
            _dimension_satisfied(contexts.file_types, context.file_types)
            and _dimension_satisfied(contexts.issue_types, context.issue_types)
        )


class PathScopedPredicate(MembershipPredicate):
    """Membership test plus directory-prefix containment of the context's file path."""

    def matches(self, pattern: Pattern, context: PredictionContext) -> bool:
        if not super().matches(pattern, context):
            return False
        prefixes = pattern.applicable_contexts.directory_prefixes
        if not prefixes:
            return True
        if not context.file_path:
            return False
        path = "/" + context.file_path.replace("\\", "/").lstrip("/")
        return any(f"/{prefix.strip('/')}/" in path for prefix in prefixes)


# -----------------------------------------------------------------------------
# Recommendation Text
# -----------------------------------------------------------------------------
def build_recommendation(pattern: Pattern) -> str:
    """Short, category-specific remediation text."""
    payload = pattern.rule_payload
    if pattern.category == PatternCategory.LAYOUT_STRATEGY.value:
        tokens = payload.get("breakpoint_tokens") or []
        if tokens:
            return f"Apply responsive utilities: {', '.join(tokens[:RECOMMENDATION_TOKEN_LIMIT])}"
    elif pattern.category == PatternCategory.STYLE_CONVENTION.value:
        imports = payload.get("import_patterns") or []
        if imports:
            return f"Follow established import convention: {imports[0]}"
    return pattern.name


def build_reasoning(pattern: Pattern) -> str:
    return (
        f"Learned from {pattern.usage_frequency} approved fixes "
        f"with {pattern.success_rate * 100:.0f}% success rate"
    )


# -----------------------------------------------------------------------------
# Context Matcher
# -----------------------------------------------------------------------------
class ContextMatcher:
    """Ranks active, confident patterns that apply to a context."""

    def __init__(
        self,
        store: PatternStore,
        predicate: Optional[ApplicabilityPredicate] = None,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ):
        self._store = store
        self._predicate = predicate or MembershipPredicate()
        self._min_confidence = min_confidence

    def predict(self, context: PredictionContext) -> PredictionResult:
        candidates = self._store.list_patterns(
            active_only=True,
            min_confidence=self._min_confidence,
        )

        predictions = tuple(
            Prediction(
                pattern_name=pattern.name,
                category=pattern.category,
                recommendation=build_recommendation(pattern),
                reasoning=build_reasoning(pattern),
                confidence=pattern.confidence_score,
                success_rate=pattern.success_rate,
                usage_frequency=pattern.usage_frequency,
            )
            for pattern in candidates
            if self._predicate.matches(pattern, context)
        )
        highest = max((p.confidence for p in predictions), default=0.0)

        logger.debug(
            f"Matched {len(predictions)} of {len(candidates)} candidate patterns "
            f"for file_types={list(context.file_types)} issue_types={list(context.issue_types)}"
        )
        return PredictionResult(predictions=predictions, highest_confidence=highest)
