"""Database models and data classes."""
