"""
Confidence Merger

Folds a newly derived pattern into the stored pattern of the same name.

Merge rules:
- confidence_score: mean of old and new, capped at the confidence ceiling
- usage_frequency: sum of old and new (never reset)
- success_rate: candidate's rate (LAST_WRITE) or recomputed from the
  summed frequency (ACCUMULATED)
- rule_payload / applicable_contexts / description: candidate's (replaced)
- example_cases: ordered union, newest first, capped
- is_active / created_at: kept from the stored pattern
"""

from dataclasses import replace

from .pattern_model import (
    Pattern,
    SuccessRatePolicy,
    MAX_EXAMPLE_CASES,
    laplace_success_rate,
)

CONFIDENCE_CEILING = 0.95


def merge_confidence(existing: float, candidate: float, ceiling: float = CONFIDENCE_CEILING) -> float:
    """Arithmetic mean, never above the ceiling (itself capped at CONFIDENCE_CEILING)."""
    ceiling = min(ceiling, CONFIDENCE_CEILING)
    return round(min(ceiling, (existing + candidate) / 2.0), 4)


def merge_patterns(
    existing: Pattern,
    candidate: Pattern,
    now: str,
    ceiling: float = CONFIDENCE_CEILING,
    policy: str = SuccessRatePolicy.LAST_WRITE.value,
) -> Pattern:
    """Return the stored pattern updated with the candidate's evidence."""
    usage_frequency = existing.usage_frequency + candidate.usage_frequency

    if policy == SuccessRatePolicy.ACCUMULATED.value:
        success_rate = laplace_success_rate(usage_frequency)
    else:
        success_rate = candidate.success_rate

    example_cases = tuple(dict.fromkeys(candidate.example_cases + existing.example_cases))

    return replace(
        existing,
        category=candidate.category,
        confidence_score=merge_confidence(existing.confidence_score, candidate.confidence_score, ceiling),
        success_rate=success_rate,
        usage_frequency=usage_frequency,
        rule_payload=dict(candidate.rule_payload),
        applicable_contexts=candidate.applicable_contexts,
        description=candidate.description or existing.description,
        example_cases=example_cases[:MAX_EXAMPLE_CASES],
        updated_at=now,
        last_applied=now,
    )


def prepare_insert(candidate: Pattern, now: str) -> Pattern:
    """A novel pattern is stored unchanged apart from bookkeeping timestamps."""
    return replace(
        candidate,
        created_at=now,
        updated_at=now,
        last_applied=now,
    )
