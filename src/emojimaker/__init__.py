"""Emoji Maker - prompt-to-emoji generation with a shared, likeable gallery."""

__version__ = "0.1.0"
