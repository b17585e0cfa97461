from .null_store import NullDocumentStore

__all__ = ["NullDocumentStore"]
