"""
Change applier.

Applies parsed file changes to a git working tree and commits them. Every
target path is checked against the write boundary, and every diff is
normalised, before any file is touched; only then are changes applied, one
by one, and committed together.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from retort.exceptions import (
    CommitFailedError,
    GitCommandError,
    PatchFailedError,
    PathOutsideProjectRootError,
)
from retort.models.changes import EditFormat, FileChange
from retort.vcs.git import GitRepository

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Apply changes from LLM"

_DIFF_METADATA_PREFIXES = (
    "diff --git",
    "index ",
    "new file mode",
    "deleted file mode",
    "old mode",
    "new mode",
    "similarity index",
    "rename from",
    "rename to",
    "copy from",
    "copy to",
)

# Lines that open another file's section once hunks have started
_FILE_SECTION_PREFIXES = (
    "diff --git",
    "rename from",
    "rename to",
    "copy from",
    "copy to",
)


@dataclass(frozen=True)
class ResolvedChange:
    """A change with its canonical target and repository-relative path."""

    change: FileChange
    target: Path
    repo_path: str
    patch: Optional[str] = None


def _starts_file_section(lines: list[str], index: int) -> bool:
    line = lines[index]
    if line.startswith(_FILE_SECTION_PREFIXES):
        return True
    return (
        line.startswith("--- ")
        and index + 1 < len(lines)
        and lines[index + 1].startswith("+++ ")
    )


def normalize_patch(diff_content: str, repo_path: str) -> str:
    """
    Rewrite a diff's file headers to point at ``repo_path``.

    Header lines before the first hunk are replaced; ``/dev/null`` on either
    side is kept so file creation and deletion still work.

    Raises:
        PatchFailedError: If another file section follows the first hunk
    """
    old_path, new_path = f"a/{repo_path}", f"b/{repo_path}"
    lines = diff_content.splitlines()
    body: list[str] = []
    in_hunks = False

    for index, line in enumerate(lines):
        if in_hunks:
            if _starts_file_section(lines, index):
                raise PatchFailedError(
                    repo_path,
                    f"diff also changes another file (line {index + 1}: {line!r}); "
                    "each file needs its own block",
                )
            body.append(line)
            continue
        if line.startswith("--- "):
            if line[4:].strip().startswith("/dev/null"):
                old_path = "/dev/null"
        elif line.startswith("+++ "):
            if line[4:].strip().startswith("/dev/null"):
                new_path = "/dev/null"
        elif line.startswith("@@"):
            in_hunks = True
            body.append(line)
        elif not line.startswith(_DIFF_METADATA_PREFIXES) and line.strip():
            logger.debug(f"Discarding text before first hunk: {line!r}")

    return "\n".join([f"--- {old_path}", f"+++ {new_path}", *body]) + "\n"


def apply_search_replace(target: Path, change: FileChange) -> None:
    """
    Apply a SEARCH/REPLACE change in place.

    An empty search section replaces the whole file. Otherwise the search text
    must occur exactly once.

    Raises:
        PatchFailedError: If the search text is missing or ambiguous, or the
            file cannot be read or written
    """
    search = change.search_content or ""
    replace = change.replace_content or ""

    if not search:
        new_content = replace
    else:
        try:
            original = target.read_text(encoding="utf-8")
        except OSError as e:
            raise PatchFailedError(change.path, e.strerror or str(e)) from e

        occurrences = original.count(search)
        if occurrences == 0:
            raise PatchFailedError(change.path, "SEARCH block not found in file")
        if occurrences > 1:
            raise PatchFailedError(
                change.path,
                f"SEARCH block appears {occurrences} times in file; "
                "ambiguous which one to replace",
            )
        new_content = original.replace(search, replace, 1)

    if new_content and not new_content.endswith("\n"):
        new_content += "\n"

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(new_content, encoding="utf-8")
    except OSError as e:
        raise PatchFailedError(change.path, e.strerror or str(e)) from e


class ChangeApplier:
    """Applies file changes inside a boundary and records one commit."""

    def __init__(self, git: Optional[GitRepository] = None):
        self.git = git or GitRepository()

    def resolve(
        self, changes: Sequence[FileChange], project_root: Optional[Path | str]
    ) -> list[ResolvedChange]:
        """
        Canonicalize every target, check it against the boundaries and
        normalise its diff.

        Relative paths resolve against the repository's working directory.
        The repository top level is always a boundary; ``project_root``, when
        set, narrows it. Nothing on disk is modified.

        Raises:
            PathOutsideProjectRootError: For the first target outside a boundary
            PatchFailedError: For a diff that reaches beyond its own file
        """
        toplevel = self.git.toplevel
        boundary = Path(project_root).expanduser().resolve() if project_root else None
        resolved = []

        for change in changes:
            path = Path(change.path).expanduser()
            if not path.is_absolute():
                path = self.git.workdir / path
            target = path.resolve()

            if boundary is not None and not target.is_relative_to(boundary):
                raise PathOutsideProjectRootError(change.path, str(boundary))
            if not target.is_relative_to(toplevel):
                raise PathOutsideProjectRootError(change.path, str(toplevel))

            repo_path = target.relative_to(toplevel).as_posix()
            patch = None
            if change.edit_format != EditFormat.SEARCH_REPLACE:
                patch = normalize_patch(change.diff_content, repo_path)

            resolved.append(
                ResolvedChange(
                    change=change, target=target, repo_path=repo_path, patch=patch
                )
            )
        return resolved

    def _apply_one(self, item: ResolvedChange) -> None:
        change = item.change
        if item.patch is None:
            apply_search_replace(item.target, change)
            return

        try:
            self.git.check_patch(item.patch)
            self.git.apply_patch(item.patch)
        except GitCommandError as e:
            raise PatchFailedError(change.path, e.stderr.strip()) from e

    def apply_and_commit(
        self,
        project_root: Optional[Path | str],
        commit_message: str,
        changes: Sequence[FileChange],
    ) -> Optional[str]:
        """
        Apply changes and commit them.

        Args:
            project_root: Directory outside which nothing may be written
            commit_message: Message for the commit (a default is used if empty)
            changes: Parsed file changes, applied in order

        Returns:
            The new commit id, or None when there was nothing to apply

        Raises:
            PathOutsideProjectRootError: Before any file is modified
            PatchFailedError: With the list of files already modified; those
                are left on disk, unstaged and uncommitted
            CommitFailedError: When staging or committing fails after every
                change was written; the files are left on disk
        """
        if not changes:
            return None

        resolved = self.resolve(changes, project_root)

        touched: list[str] = []
        for item in resolved:
            logger.info(f"Applying changes to {item.change.path}")
            try:
                self._apply_one(item)
            except PatchFailedError as e:
                raise PatchFailedError(e.path, e.reason, touched) from e
            if item.repo_path not in touched:
                touched.append(item.repo_path)

        try:
            self.git.add(touched)
            commit_id = self.git.commit(commit_message or DEFAULT_COMMIT_MESSAGE)
        except GitCommandError as e:
            raise CommitFailedError(e.stderr.strip(), touched) from e

        logger.info(f"Committed {len(touched)} file(s) as {commit_id[:12]}")
        return commit_id
