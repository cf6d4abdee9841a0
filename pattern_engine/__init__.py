"""
Pattern Engine Module

Adaptive pattern learning and recommendation engine for corrective actions.
Learns reusable patterns from human-reviewed fixes and recommends ranked
remediations for new problems.

Components:
- Historical Corpus Reader: verdict-tagged action records (action_store)
- Pattern Extractor: per-category pure extraction functions (pattern_extractor)
- Pattern Store: keyed, confidence-scored pattern persistence (pattern_store)
- Confidence Merger: folds new evidence into stored patterns (confidence_merger)
- Context Matcher: applicability predicates and ranking (context_matcher)
- Feedback Processor: human verdicts and learning weights (feedback_processor)
- Engine Facade: train / analyze / predict / feedback (learning_engine)
- HTTP boundary: FastAPI router and app (api_router, main)

RULE-BASED ONLY: no gradient models, no embeddings.
ADVISORY ONLY: the engine never applies a fix itself.
"""

__version__ = "1.2.0"
