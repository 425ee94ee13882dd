"""Tutor AI: multi-provider generation and semantic search for learning content."""

__version__ = "0.1.0"
