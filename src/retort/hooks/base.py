"""Base class and result type for post-response hooks."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class HookResult:
    """What a hook did with a response.

    Attributes:
        hook_name: Name of the hook that produced this result
        commit_id: Commit created by the hook, if any
        files_changed: Repository-relative paths the hook committed
        warnings: Non-fatal problems (e.g. unreadable change blocks)
    """

    hook_name: str
    commit_id: Optional[str] = None
    files_changed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hook": self.hook_name,
            "commit_id": self.commit_id,
            "files_changed": list(self.files_changed),
            "warnings": list(self.warnings),
        }


class PostResponseHook(ABC):
    """Runs against raw response text before the response is recorded.

    Implementations may mutate external state (files, repositories). Raising
    stops the pipeline and prevents the response from being recorded.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in logs and stored results."""
        ...

    @abstractmethod
    def run(self, response_text: str) -> HookResult:
        """Process a response.

        Args:
            response_text: Complete assistant response

        Returns:
            HookResult describing any side effects
        """
        ...
