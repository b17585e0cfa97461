"""Retrieval-augmented knowledge and customer memory for chat bots."""

__version__ = "0.1.0"
