"""
Pytest configuration for Pattern Engine tests.

This module provides:
1. Temp-dir backed engine configuration and stores
2. An action record factory
3. Sample record batches per pattern category
"""

import pytest
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Sequence

from pattern_engine.action_store import ActionStore
from pattern_engine.engine_config import EngineConfig
from pattern_engine.learning_engine import PatternLearningEngine
from pattern_engine.pattern_model import ActionRecord, Verdict
from pattern_engine.pattern_store import PatternStore


# -----------------------------------------------------------------------------
# Test Constants
# -----------------------------------------------------------------------------
BASE_TIME = datetime(2026, 1, 15, 12, 0, 0)


# -----------------------------------------------------------------------------
# Record Factory
# -----------------------------------------------------------------------------
@pytest.fixture
def make_record():
    """
    Factory for action records.

    Records created later in a test get later created_at values, so
    newest-first ordering follows creation order.
    """
    counter = {"n": 0}

    def _make(
        action_id: Optional[str] = None,
        description: str = "",
        verdict: str = Verdict.APPROVED.value,
        artifacts: Sequence[str] = (),
        method: str = "auto_fix",
    ) -> ActionRecord:
        counter["n"] += 1
        return ActionRecord(
            id=action_id or f"act-{counter['n']:03d}",
            method=method,
            description=description,
            artifacts_touched=tuple(artifacts),
            created_at=(BASE_TIME + timedelta(minutes=counter["n"])).isoformat(),
            verdict=verdict,
        )

    return _make


# -----------------------------------------------------------------------------
# Engine Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def data_dir(tmp_path) -> Path:
    path = tmp_path / "pattern_engine"
    path.mkdir()
    return path


@pytest.fixture
def engine_config(data_dir) -> EngineConfig:
    return EngineConfig(data_dir=data_dir)


@pytest.fixture
def engine(engine_config) -> PatternLearningEngine:
    return PatternLearningEngine(config=engine_config)


@pytest.fixture
def action_store(engine_config) -> ActionStore:
    return ActionStore(engine_config.actions_file)


@pytest.fixture
def pattern_store(engine_config) -> PatternStore:
    return PatternStore(engine_config.patterns_file)


# -----------------------------------------------------------------------------
# Sample Batches
# -----------------------------------------------------------------------------
@pytest.fixture
def style_records(make_record):
    """Three approved fixes, each citing an import."""
    return [
        make_record(description="Replaced alert with toast: import { toast } from 'sonner'"),
        make_record(description="Switched to import { Button } from '@/components/ui/button'"),
        make_record(description="Data loading via import { useQuery } from '@tanstack/react-query'"),
    ]


@pytest.fixture
def layout_records(make_record):
    """Two approved responsive fixes with breakpoint tokens."""
    return [
        make_record(description="Fixed mobile overflow using sm:flex-col and md:grid-cols-2"),
        make_record(description="Responsive grid fix: lg:grid-cols-3 with overflow-x-auto"),
    ]


@pytest.fixture
def structural_records(make_record):
    """Two approved fixes touching component and hook directories."""
    return [
        make_record(
            description="Wrapped stats in Card with Button actions",
            artifacts=("src/components/ui/StatsCard.tsx", "src/pages/Home.tsx"),
        ),
        make_record(
            description="Extracted data hook and Badge display",
            artifacts=("src/components/PollBadge.tsx", "src/hooks/usePolls.ts"),
        ),
    ]
