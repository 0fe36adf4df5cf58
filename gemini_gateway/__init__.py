"""Gemini educational gateway: chat enrichment, auto-grading and material evaluation."""

__version__ = "2.4.0"
