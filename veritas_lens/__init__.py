"""Veritas Lens — forensic analysis pipeline for image, video and audio evidence."""

__version__ = "0.1.0"
