"""Batch-fix LibriVox zip archives into a tagged, renamed MP3 library."""

__version__ = "0.1.0"
