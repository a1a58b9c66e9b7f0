"""
Parsed change data models.

Intermediate dataclasses produced by the change parser and consumed right
away by the change applier. Nothing here is stored in the database.
"""

import enum
from dataclasses import dataclass, field
from typing import Optional


class EditFormat(str, enum.Enum):
    """How a change block expresses the edit."""

    UNIFIED_DIFF = "unified_diff"
    SEARCH_REPLACE = "search_replace"


@dataclass
class FileChange:
    """One proposed edit to one file."""

    path: str
    diff_content: str
    edit_format: EditFormat = EditFormat.UNIFIED_DIFF
    # Only set for SEARCH/REPLACE blocks
    search_content: Optional[str] = None
    replace_content: Optional[str] = None


@dataclass
class ParsedResponse:
    """Result of splitting a response into commit message and changes."""

    commit_message: str
    changes: list[FileChange] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    @property
    def is_ambiguous(self) -> bool:
        return bool(self.warnings)
