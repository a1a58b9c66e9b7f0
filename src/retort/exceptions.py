"""Custom exceptions for Retort."""

from typing import Optional, Sequence


class RetortError(Exception):
    """Base exception for all Retort errors."""

    pass


class NotFoundError(RetortError):
    """Raised when a message or tag does not exist."""

    pass


class MessageNotFoundError(NotFoundError):
    """Raised when a message id does not exist."""

    def __init__(self, message_id: int):
        self.message_id = message_id
        super().__init__(f"Message with ID '{message_id}' not found.")


class TagNotFoundError(NotFoundError):
    """Raised when a tag name does not exist."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Tag '{tag}' not found.")


class DanglingParentError(RetortError):
    """Raised when appending under a parent id that does not exist."""

    def __init__(self, parent_id: int):
        self.parent_id = parent_id
        super().__init__(f"Parent message {parent_id} does not exist")


class CycleDetectedError(RetortError):
    """Raised when walking parent links visits more nodes than exist."""

    def __init__(self, leaf_id: int, steps: int):
        self.leaf_id = leaf_id
        self.steps = steps
        super().__init__(
            f"Cycle detected while reconstructing history of message {leaf_id} "
            f"(walked {steps} nodes)"
        )


class ImmutableMessageError(RetortError):
    """Raised when a persisted message is about to be updated or deleted."""

    def __init__(self, message_id: Optional[int], operation: str):
        self.message_id = message_id
        self.operation = operation
        super().__init__(f"Messages are immutable: refusing to {operation} {message_id}")


class FileUnreadableError(RetortError):
    """Raised when a context file is missing or cannot be read."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"Context file is unreadable: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class PathOutsideProjectRootError(RetortError):
    """Raised when a change targets a file outside the allowed boundary."""

    def __init__(self, path: str, root: str):
        self.path = path
        self.root = root
        super().__init__(
            f"Attempted to modify file {path} which is outside the project root {root}."
        )


class PatchFailedError(RetortError):
    """Raised when a change cannot be applied cleanly.

    ``touched_files`` lists files this invocation already modified on disk;
    they are left in place, unstaged, for manual reconciliation.
    """

    def __init__(self, path: str, reason: str, touched_files: Sequence[str] = ()):
        self.path = path
        self.reason = reason
        self.touched_files = list(touched_files)
        message = f"Failed to apply change to {path}: {reason}"
        if self.touched_files:
            message += (
                f". Already modified (not committed): {', '.join(self.touched_files)}"
            )
        super().__init__(message)


class CommitFailedError(PatchFailedError):
    """Raised when applied changes cannot be staged or committed."""

    def __init__(self, reason: str, touched_files: Sequence[str]):
        self.path = ""
        self.reason = reason
        self.touched_files = list(touched_files)
        RetortError.__init__(
            self,
            f"Failed to commit applied changes: {reason}. "
            f"Modified (not committed): {', '.join(self.touched_files)}",
        )


class GitCommandError(RetortError):
    """Raised when a git invocation exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"`{' '.join(self.command)}` failed with exit code {returncode}: "
            f"{stderr.strip()}"
        )


class LLMProviderError(RetortError):
    """Raised when the language model provider cannot produce a response."""

    pass
