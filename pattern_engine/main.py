"""
Pattern Engine Service

FastAPI application exposing the pattern engine.

Run with:
    uvicorn pattern_engine.main:app --port 8000
"""

import logging

from fastapi import Depends, FastAPI

from . import __version__
from .api_router import router as pattern_router
from .learning_engine import PatternLearningEngine, get_pattern_engine

# -----------------------------------------------------------------------------
# Logging Configuration
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("pattern_engine")

# -----------------------------------------------------------------------------
# Application
# -----------------------------------------------------------------------------
app = FastAPI(
    title="Pattern Engine",
    description="Adaptive pattern learning and remediation recommendations",
    version=__version__,
)
app.include_router(pattern_router)


@app.get("/health")
async def health(engine: PatternLearningEngine = Depends(get_pattern_engine)) -> dict:
    """Liveness plus the engine gate state."""
    return {
        "status": "ok",
        "version": __version__,
        "engine_enabled": engine.config.enabled,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
