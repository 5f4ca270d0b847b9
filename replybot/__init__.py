"""Transcript-grounded reply drafting and posting for YouTube comments."""

__version__ = "0.1.0"
