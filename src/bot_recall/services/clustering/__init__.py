from .merge_service import KnowledgeMerger

__all__ = ["KnowledgeMerger"]
