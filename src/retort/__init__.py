"""Retort - branching chat history and change application for AI pair programming."""

__version__ = "0.1.0"
