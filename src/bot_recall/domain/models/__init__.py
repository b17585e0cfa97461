"""Domain models for Bot Recall."""

from .bot import BotProfile, BotStatus, RagSettings
from .conversation import ChatMessage, GenerationOptions, MessageRole
from .knowledge import (
    ExtractedKnowledge,
    FragmentDraft,
    KnowledgeFragment,
    MergedKnowledgeItem,
    Provenance,
    RetrievalCandidate,
    ScoreBreakdown,
    SourceMeta,
)
from .memory import (
    ConversationTurn,
    CustomerMemory,
    CustomerPreferences,
    FactSource,
    FactValue,
    MemoryFact,
)

__all__ = [
    # Bot
    "BotProfile",
    "BotStatus",
    # Conversation
    "ChatMessage",
    # Memory
    "ConversationTurn",
    "CustomerMemory",
    "CustomerPreferences",
    # Knowledge
    "ExtractedKnowledge",
    "FactSource",
    "FactValue",
    "FragmentDraft",
    "GenerationOptions",
    "KnowledgeFragment",
    "MemoryFact",
    "MergedKnowledgeItem",
    "MessageRole",
    "Provenance",
    "RagSettings",
    "RetrievalCandidate",
    "ScoreBreakdown",
    "SourceMeta",
]
