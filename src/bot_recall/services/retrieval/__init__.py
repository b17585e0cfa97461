from .orchestrator import RetrievalOrchestrator, default_strategies
from .strategies import (
    KeywordSearchStrategy,
    PrecomputedCosineStrategy,
    RetrievalRequest,
    RetrievalStrategy,
    TierOutcome,
    TierResult,
    VectorIndexStrategy,
)

__all__ = [
    "KeywordSearchStrategy",
    "PrecomputedCosineStrategy",
    "RetrievalOrchestrator",
    "RetrievalRequest",
    "RetrievalStrategy",
    "TierOutcome",
    "TierResult",
    "VectorIndexStrategy",
    "default_strategies",
]
