"""File context resolution for conversation turns."""

from retort.context.engine import (
    DEFAULT_STAGE,
    ContextEngine,
    make_file_reader,
    merge_context,
)

__all__ = ["DEFAULT_STAGE", "ContextEngine", "make_file_reader", "merge_context"]
