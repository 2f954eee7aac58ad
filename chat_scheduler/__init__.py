"""Conversational scheduling assistant."""

__version__ = "1.0.0"
