"""
Pattern Engine Configuration

Engine settings are loaded once, from an optional YAML file plus
environment overrides, and injected into the engine at construction.
The enable/disable gate lives here, not in module-level state.
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Dict, Any

import yaml

from .errors import InvalidRequestError
from .pattern_model import SuccessRatePolicy

logger = logging.getLogger("engine_config")

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------
DEFAULT_DATA_DIR = Path(os.getenv("PATTERN_ENGINE_DIR", "data/pattern_engine"))
DEFAULT_CORPUS_PAGE_SIZE = 100
DEFAULT_MIN_PREDICTION_CONFIDENCE = 0.7
DEFAULT_HIGH_CONFIDENCE_THRESHOLD = 0.8
DEFAULT_CONFIDENCE_CEILING = 0.95

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EngineConfig:
    """Immutable engine settings."""
    enabled: bool = True
    data_dir: Path = DEFAULT_DATA_DIR
    corpus_page_size: int = DEFAULT_CORPUS_PAGE_SIZE
    min_prediction_confidence: float = DEFAULT_MIN_PREDICTION_CONFIDENCE
    high_confidence_threshold: float = DEFAULT_HIGH_CONFIDENCE_THRESHOLD
    confidence_ceiling: float = DEFAULT_CONFIDENCE_CEILING
    success_rate_policy: str = SuccessRatePolicy.LAST_WRITE.value
    match_directory_prefixes: bool = False

    @property
    def actions_file(self) -> Path:
        return self.data_dir / "actions.json"

    @property
    def patterns_file(self) -> Path:
        return self.data_dir / "patterns.json"

    @property
    def feedback_log_file(self) -> Path:
        return self.data_dir / "feedback_events.jsonl"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "data_dir": str(self.data_dir),
            "corpus_page_size": self.corpus_page_size,
            "min_prediction_confidence": self.min_prediction_confidence,
            "high_confidence_threshold": self.high_confidence_threshold,
            "confidence_ceiling": self.confidence_ceiling,
            "success_rate_policy": self.success_rate_policy,
            "match_directory_prefixes": self.match_directory_prefixes,
        }


# -----------------------------------------------------------------------------
# Value Coercion
# -----------------------------------------------------------------------------
def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise InvalidRequestError(f"Invalid boolean for {key}: {value!r}", code="INVALID_CONFIG")


def _parse_positive_int(key: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid integer for {key}: {value!r}", code="INVALID_CONFIG")
    if number <= 0:
        raise InvalidRequestError(f"{key} must be positive, got {number}", code="INVALID_CONFIG")
    return number


def _parse_unit_float(key: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid number for {key}: {value!r}", code="INVALID_CONFIG")
    if not 0.0 <= number <= 1.0:
        raise InvalidRequestError(f"{key} must be within [0, 1], got {number}", code="INVALID_CONFIG")
    return number


def _parse_ceiling(key: str, value: Any) -> float:
    number = _parse_unit_float(key, value)
    if number > DEFAULT_CONFIDENCE_CEILING:
        raise InvalidRequestError(
            f"{key} may only lower the ceiling of {DEFAULT_CONFIDENCE_CEILING}, got {number}",
            code="INVALID_CONFIG",
        )
    return number


def _parse_policy(key: str, value: Any) -> str:
    try:
        return SuccessRatePolicy(str(value)).value
    except ValueError:
        raise InvalidRequestError(f"Invalid {key}: {value!r}", code="INVALID_CONFIG")


_PARSERS = {
    "enabled": _parse_bool,
    "data_dir": lambda key, value: Path(str(value)),
    "corpus_page_size": _parse_positive_int,
    "min_prediction_confidence": _parse_unit_float,
    "high_confidence_threshold": _parse_unit_float,
    "confidence_ceiling": _parse_ceiling,
    "success_rate_policy": _parse_policy,
    "match_directory_prefixes": _parse_bool,
}

_ENV_OVERRIDES = {
    "PATTERN_ENGINE_ENABLED": "enabled",
    "PATTERN_ENGINE_DIR": "data_dir",
    "PATTERN_ENGINE_PAGE_SIZE": "corpus_page_size",
}


def config_from_mapping(data: Dict[str, Any], base: Optional[EngineConfig] = None) -> EngineConfig:
    """Build a config from a plain mapping, validating every known key."""
    base = base or EngineConfig()
    known = {f.name for f in fields(EngineConfig)}
    updates: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        updates[key] = _PARSERS[key](key, value)
    return replace(base, **updates)


def load_engine_config(config_file: Optional[Path] = None) -> EngineConfig:
    """
    Load engine configuration.

    Order: defaults, then the YAML file (argument or PATTERN_ENGINE_CONFIG),
    then environment overrides.
    """
    config = EngineConfig()

    path = config_file or (Path(os.environ["PATTERN_ENGINE_CONFIG"]) if os.getenv("PATTERN_ENGINE_CONFIG") else None)
    if path is not None:
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise InvalidRequestError(f"Config file {path} must contain a mapping", code="INVALID_CONFIG")
            config = config_from_mapping(data, config)
            logger.info(f"Loaded engine config from {path}")
        else:
            logger.warning(f"Engine config file not found: {path}, using defaults")

    env_values = {
        field_name: os.environ[env_key]
        for env_key, field_name in _ENV_OVERRIDES.items()
        if os.getenv(env_key)
    }
    if env_values:
        config = config_from_mapping(env_values, config)

    return config
