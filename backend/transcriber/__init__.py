"""Chunked audio transcription service."""

__version__ = "1.0.0"
