from .analysis import derive_intent, derive_topics, is_greeting
from .consolidation import Consolidation, MemoryConsolidator
from .engine import CustomerMemoryEngine
from .rules import DEFAULT_RULES, FactExtractor, RegexFactRule, default_rules, propose_facts
from .save_commands import SaveCommands, parse_save_commands
from .scoring import EngagementTier, engagement_tier, potential_score
from .service import MemoryService

__all__ = [
    "DEFAULT_RULES",
    "Consolidation",
    "CustomerMemoryEngine",
    "EngagementTier",
    "FactExtractor",
    "MemoryConsolidator",
    "MemoryService",
    "RegexFactRule",
    "SaveCommands",
    "derive_intent",
    "derive_topics",
    "default_rules",
    "engagement_tier",
    "is_greeting",
    "parse_save_commands",
    "potential_score",
    "propose_facts",
]
