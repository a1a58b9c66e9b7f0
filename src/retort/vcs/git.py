"""
Git binding.

Runs the ``git`` executable for the few primitives change application needs:
checking and applying patches, staging paths and committing.
"""

import logging
import subprocess
from pathlib import Path
from typing import Iterable, Optional, Sequence

from retort.exceptions import GitCommandError

logger = logging.getLogger(__name__)


class GitRepository:
    """A git working tree, addressed through any directory inside it."""

    def __init__(self, workdir: Path | str | None = None):
        self.workdir = Path(workdir or Path.cwd()).resolve()
        self._toplevel: Optional[Path] = None

    def _run(
        self,
        args: Sequence[str],
        input: Optional[str] = None,
        cwd: Optional[Path] = None,
    ) -> str:
        command = ["git", *args]
        logger.debug(f"Running {' '.join(command)}")
        try:
            proc = subprocess.run(
                command,
                cwd=cwd or self.workdir,
                input=input,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise GitCommandError(command, 127, "git executable not found") from e

        if proc.returncode != 0:
            raise GitCommandError(
                command, proc.returncode, proc.stderr or proc.stdout
            )
        return proc.stdout

    @property
    def toplevel(self) -> Path:
        """Absolute, symlink-free path of the working tree root."""
        if self._toplevel is None:
            output = self._run(["rev-parse", "--show-toplevel"])
            self._toplevel = Path(output.strip()).resolve()
        return self._toplevel

    def check_patch(self, patch: str) -> None:
        """Raise GitCommandError if ``patch`` would not apply cleanly."""
        self._run(
            ["apply", "--check", "--recount", "--whitespace=nowarn", "-"],
            input=patch,
            cwd=self.toplevel,
        )

    def apply_patch(self, patch: str) -> None:
        """Apply a patch (paths relative to the top level) to the working tree."""
        self._run(
            ["apply", "--recount", "--whitespace=nowarn", "-"],
            input=patch,
            cwd=self.toplevel,
        )

    def add(self, paths: Iterable[str]) -> None:
        """Stage paths (relative to the top level), including deletions."""
        paths = list(paths)
        if paths:
            self._run(["add", "-A", "--", *paths], cwd=self.toplevel)

    def commit(self, message: str) -> str:
        """Commit the index and return the new commit id."""
        self._run(["commit", "-m", message], cwd=self.toplevel)
        return self.head()

    def head(self) -> str:
        return self._run(["rev-parse", "HEAD"]).strip()

    def status(self) -> list[str]:
        """``git status --porcelain`` lines (empty when the tree is clean)."""
        output = self._run(["status", "--porcelain"], cwd=self.toplevel)
        return [line for line in output.splitlines() if line.strip()]
