"""
Pattern Extractor

Turns a batch of reviewed action records into zero or more pattern
candidates. One pure function per category; each takes an immutable
record sequence and returns a Pattern or None.

RULE-BASED ONLY: keyword and regex scans over descriptions and touched
artifact paths. Records are never mutated.
"""

import logging
import re
from pathlib import PurePosixPath
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .errors import ExtractionSkipped
from .pattern_model import (
    ActionRecord,
    ApplicableContexts,
    Pattern,
    PatternCategory,
    Verdict,
    MAX_EXAMPLE_CASES,
    laplace_success_rate,
)

logger = logging.getLogger("pattern_extractor")


# -----------------------------------------------------------------------------
# Pattern Names
# -----------------------------------------------------------------------------
STYLE_PATTERN_NAME = "learned_style_conventions"
LAYOUT_PATTERN_NAME = "responsive_layout_fixes"
STRUCTURAL_PATTERN_NAME = "component_structure_conventions"

# -----------------------------------------------------------------------------
# Thresholds & Confidence Curves
# -----------------------------------------------------------------------------
STYLE_MIN_RECORDS = 3
LAYOUT_MIN_RECORDS = 2
STRUCTURAL_MIN_RECORDS = 2

# (base, per-record step, cap)
STYLE_CONFIDENCE = (0.6, 0.05, 0.95)
LAYOUT_CONFIDENCE = (0.7, 0.04, 0.92)
STRUCTURAL_CONFIDENCE = (0.65, 0.05, 0.88)

# -----------------------------------------------------------------------------
# Scanners
# -----------------------------------------------------------------------------
IMPORT_RE = re.compile(r"import\s+[^;\n]+?\s+from\s+['\"][^'\"]+['\"]")
HOOK_RE = re.compile(r"\buse[A-Z]\w*")
COMPONENT_MENTION_RE = re.compile(r"\b[A-Z]\w*\s+(?:[Cc]omponent|[Hh]ook)s?\b")

PRACTICE_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("toast", "use_toast_for_notifications"),
    ("query", "use_async_data_fetching"),
    ("semantic", "use_semantic_color_tokens"),
)

LAYOUT_KEYWORD_RE = re.compile(r"\b(?:responsive|mobile|overflow|grid|breakpoint)", re.IGNORECASE)
BREAKPOINT_TOKEN_RE = re.compile(r"\b[a-z0-9]+:[a-z0-9][\w-]*")
LAYOUT_MENTION_RE = re.compile(r"\b(?:grid|flex)(?:-\w+)*")

COMPONENT_DIR_RE = re.compile(r"^(?P<prefix>(?:.*/)?(?P<dir>components|hooks))/")
UI_PRIMITIVE_RE = re.compile(
    r"\b(?:Card|Button|Badge|Dialog|Input|Select|Tabs|Table|Form|Modal|Sheet|Tooltip)\b"
)

STYLE_FILE_TYPES = ("tsx", "ts", "jsx", "js")
LAYOUT_ISSUE_TYPES = ("mobile_break", "overflow", "responsive")
LAYOUT_SCREEN_SIZES = ("small", "medium", "large")
STRUCTURAL_FILE_TYPES = ("tsx", "jsx", "ts", "js")


def _ordered_unique(values: Iterable[str]) -> List[str]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(v for v in values if v))


def _confidence(record_count: int, curve: Tuple[float, float, float]) -> float:
    base, step, cap = curve
    return round(min(cap, base + step * record_count), 4)


def _approved(records: Sequence[ActionRecord]) -> List[ActionRecord]:
    return [r for r in records if r.verdict == Verdict.APPROVED.value]


def _require(condition: bool, category: PatternCategory, reason: str) -> None:
    if not condition:
        raise ExtractionSkipped(category.value, reason)


def _example_cases(records: Sequence[ActionRecord]) -> Tuple[str, ...]:
    return tuple(r.id for r in records[:MAX_EXAMPLE_CASES])


# -----------------------------------------------------------------------------
# Category Builders (raise ExtractionSkipped when nothing to emit)
# -----------------------------------------------------------------------------
def _build_style_convention(records: Sequence[ActionRecord]) -> Pattern:
    category = PatternCategory.STYLE_CONVENTION
    qualifying = _approved(records)
    _require(
        len(qualifying) >= STYLE_MIN_RECORDS,
        category,
        f"{len(qualifying)} approved records, need {STYLE_MIN_RECORDS}",
    )

    imports: List[str] = []
    mentions: List[str] = []
    practices: List[str] = []
    for record in qualifying:
        text = record.description
        imports.extend(IMPORT_RE.findall(text))
        mentions.extend(HOOK_RE.findall(text))
        mentions.extend(COMPONENT_MENTION_RE.findall(text))
        lowered = text.lower()
        practices.extend(tag for keyword, tag in PRACTICE_KEYWORDS if keyword in lowered)

    payload = {
        "import_patterns": _ordered_unique(imports),
        "structure_mentions": _ordered_unique(mentions),
        "preferred_practices": _ordered_unique(practices),
    }
    _require(any(payload.values()), category, "no conventions found in descriptions")
    payload["methods"] = _ordered_unique(r.method for r in qualifying)

    count = len(qualifying)
    return Pattern(
        name=STYLE_PATTERN_NAME,
        category=category.value,
        confidence_score=_confidence(count, STYLE_CONFIDENCE),
        success_rate=laplace_success_rate(count),
        usage_frequency=count,
        rule_payload=payload,
        applicable_contexts=ApplicableContexts(file_types=STYLE_FILE_TYPES),
        description=f"Import and component conventions observed across {count} approved fixes",
        example_cases=_example_cases(qualifying),
    )


def _build_layout_strategy(records: Sequence[ActionRecord]) -> Pattern:
    category = PatternCategory.LAYOUT_STRATEGY
    qualifying = [
        r for r in _approved(records)
        if LAYOUT_KEYWORD_RE.search(r.description)
    ]
    _require(
        len(qualifying) >= LAYOUT_MIN_RECORDS,
        category,
        f"{len(qualifying)} responsive fixes, need {LAYOUT_MIN_RECORDS}",
    )

    tokens: List[str] = []
    layouts: List[str] = []
    for record in qualifying:
        tokens.extend(BREAKPOINT_TOKEN_RE.findall(record.description))
        layouts.extend(LAYOUT_MENTION_RE.findall(record.description))

    payload = {
        "breakpoint_tokens": _ordered_unique(tokens),
        "layout_mentions": _ordered_unique(layouts),
    }
    _require(any(payload.values()), category, "no breakpoint or layout tokens found")

    count = len(qualifying)
    return Pattern(
        name=LAYOUT_PATTERN_NAME,
        category=category.value,
        confidence_score=_confidence(count, LAYOUT_CONFIDENCE),
        success_rate=laplace_success_rate(count),
        usage_frequency=count,
        rule_payload=payload,
        applicable_contexts=ApplicableContexts(
            issue_types=LAYOUT_ISSUE_TYPES,
            screen_sizes=LAYOUT_SCREEN_SIZES,
        ),
        description=f"Responsive layout fixes observed across {count} approved fixes",
        example_cases=_example_cases(qualifying),
    )


def _component_artifacts(record: ActionRecord) -> List[Tuple[str, str, str]]:
    """(directory prefix, directory kind, base name) per component/hook artifact."""
    found = []
    for artifact in record.artifacts_touched:
        normalized = artifact.replace("\\", "/")
        match = COMPONENT_DIR_RE.match(normalized)
        if match:
            found.append((match.group("prefix"), match.group("dir"), PurePosixPath(normalized).stem))
    return found


def _build_structural_convention(records: Sequence[ActionRecord]) -> Pattern:
    category = PatternCategory.STRUCTURAL_CONVENTION
    qualifying = [r for r in _approved(records) if _component_artifacts(r)]
    _require(
        len(qualifying) >= STRUCTURAL_MIN_RECORDS,
        category,
        f"{len(qualifying)} component-directory fixes, need {STRUCTURAL_MIN_RECORDS}",
    )

    component_types: List[str] = []
    hook_names: List[str] = []
    directories: List[str] = []
    primitives: List[str] = []
    for record in qualifying:
        for prefix, kind, stem in _component_artifacts(record):
            directories.append(prefix)
            if kind == "components":
                component_types.append(stem)
            else:
                hook_names.append(stem)
        primitives.extend(UI_PRIMITIVE_RE.findall(record.description))

    payload = {
        "component_types": _ordered_unique(component_types),
        "hook_names": _ordered_unique(hook_names),
        "ui_primitives": _ordered_unique(primitives),
    }
    _require(any(payload.values()), category, "no component conventions found")
    directory_prefixes = tuple(_ordered_unique(directories))
    payload["directories"] = list(directory_prefixes)

    count = len(qualifying)
    return Pattern(
        name=STRUCTURAL_PATTERN_NAME,
        category=category.value,
        confidence_score=_confidence(count, STRUCTURAL_CONFIDENCE),
        success_rate=laplace_success_rate(count),
        usage_frequency=count,
        rule_payload=payload,
        applicable_contexts=ApplicableContexts(
            file_types=STRUCTURAL_FILE_TYPES,
            directory_prefixes=directory_prefixes,
        ),
        description=f"Component and hook conventions observed across {count} approved fixes",
        example_cases=_example_cases(qualifying),
    )


# -----------------------------------------------------------------------------
# Public Extraction Functions
# -----------------------------------------------------------------------------
def _run(
    builder: Callable[[Sequence[ActionRecord]], Pattern],
    records: Sequence[ActionRecord],
) -> Optional[Pattern]:
    try:
        return builder(records)
    except ExtractionSkipped as skipped:
        logger.debug(f"Extraction skipped - {skipped}")
        return None


def extract_style_convention(records: Sequence[ActionRecord]) -> Optional[Pattern]:
    return _run(_build_style_convention, records)


def extract_layout_strategy(records: Sequence[ActionRecord]) -> Optional[Pattern]:
    return _run(_build_layout_strategy, records)


def extract_structural_convention(records: Sequence[ActionRecord]) -> Optional[Pattern]:
    return _run(_build_structural_convention, records)


EXTRACTORS: Tuple[Callable[[Sequence[ActionRecord]], Optional[Pattern]], ...] = (
    extract_style_convention,
    extract_layout_strategy,
    extract_structural_convention,
)


def extract_patterns(records: Sequence[ActionRecord]) -> List[Pattern]:
    """
    Run every category extractor over the batch.

    Categories are independent: one batch may yield several patterns,
    or none at all.
    """
    batch = tuple(records)
    patterns = []
    for extractor in EXTRACTORS:
        pattern = extractor(batch)
        if pattern is not None:
            patterns.append(pattern)
    logger.info(f"Extracted {len(patterns)} patterns from {len(batch)} records")
    return patterns
