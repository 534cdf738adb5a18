"""Vocabulary sentence generation and flashcard export service."""

__version__ = "0.3.0"
