"""Analyse and clean up Cursor chat/agent sessions."""

__version__ = "0.1.0"
