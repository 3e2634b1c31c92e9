"""Disput.ai - conversational dispute intake for online purchases."""

__version__ = "0.1.0"
