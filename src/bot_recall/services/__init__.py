"""Service layer: chunking, retrieval, memory and the chat pipeline."""

from .bot_profiles import BotProfileService
from .chat import ChatReply, ChatTurnService
from .chunking import DocumentChunker, chunk_document
from .ingestion import DocumentIngestionService, IngestionReport
from .maintenance import EmbeddingBackfill, MaintenanceJobs

__all__ = [
    "BotProfileService",
    "ChatReply",
    "ChatTurnService",
    "DocumentChunker",
    "DocumentIngestionService",
    "EmbeddingBackfill",
    "IngestionReport",
    "MaintenanceJobs",
    "chunk_document",
]
