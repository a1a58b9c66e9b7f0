"""
Change parser.

Splits an assistant response into a commit message and a list of per-file
changes. Two block shapes are recognised:

Unified diff::

    path/to/file.py
    ```diff
    --- a/path/to/file.py
    +++ b/path/to/file.py
    @@ -1,3 +1,3 @@
    ...
    ```

SEARCH/REPLACE::

    path/to/file.py
    <<<<<<< SEARCH
    old text
    =======
    new text
    >>>>>>> REPLACE

All text outside the blocks, in order, becomes the commit message.
"""

import logging
import re
from typing import Optional

from retort.models.changes import EditFormat, FileChange, ParsedResponse

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"^\s*(?P<fence>`{3,}|~{3,})\s*(?P<info>[\w+.-]*)\s*$")
DIFF_INFO_STRINGS = {"diff", "patch", "udiff"}

SEARCH_MARKER = "<<<<<<< SEARCH"
DIVIDER_MARKER = "======="
REPLACE_MARKER = ">>>>>>> REPLACE"


class ParseAmbiguity(Exception):
    """A change block that starts correctly but cannot be read."""

    pass


def as_path(line: str) -> Optional[str]:
    """
    Interpret a line as a file path, or return None.

    Surrounding markdown emphasis/backticks and a trailing colon are ignored.
    """
    if FENCE_RE.match(line):
        return None
    candidate = line.strip().strip("*`").rstrip(":").strip("*`")
    if not candidate or candidate.startswith(("#", "<<<<<<<", ">>>>>>>", "=======")):
        return None
    if any(ch.isspace() for ch in candidate):
        return None
    return candidate


def _fence_info(line: str) -> Optional[tuple[str, str]]:
    match = FENCE_RE.match(line)
    if not match:
        return None
    return match.group("fence"), match.group("info").lower()


def _is_diff_fence(line: str) -> bool:
    info = _fence_info(line)
    return info is not None and info[1] in DIFF_INFO_STRINGS


def _closes(line: str, fence: str) -> bool:
    stripped = line.strip()
    return (
        len(stripped) >= len(fence)
        and set(stripped) == {fence[0]}
    )


def _fenced_body(lines: list[str], start: int) -> Optional[list[str]]:
    """Lines between the fence at ``start`` and its closing fence, or None."""
    fence, _ = _fence_info(lines[start])
    body: list[str] = []
    for line in lines[start + 1 :]:
        if _closes(line, fence):
            return body
        body.append(line)
    return None


def _same_file(path: str, header_path: str) -> bool:
    """Whether a path line and a diff header plausibly name the same file."""
    path = path.removeprefix("./")
    return (
        path == header_path
        or path.endswith("/" + header_path)
        or header_path.endswith("/" + path)
    )


def path_from_diff_headers(diff_lines: list[str]) -> Optional[str]:
    """Take the target path from ``+++``/``---`` headers, dropping a/ b/ prefixes."""
    new_path = old_path = None
    for line in diff_lines:
        if line.startswith("@@"):
            break
        if line.startswith("+++ "):
            new_path = line[4:].split("\t")[0].strip()
        elif line.startswith("--- "):
            old_path = line[4:].split("\t")[0].strip()

    for header, prefix in ((new_path, "b/"), (old_path, "a/")):
        if header and header != "/dev/null":
            return header[len(prefix):] if header.startswith(prefix) else header
    return None


class ChangeParser:
    """Extracts a commit message and file changes from response text."""

    def parse(self, response_text: str) -> ParsedResponse:
        """
        Parse a response.

        Returns:
            ParsedResponse. A response without blocks yields no changes and the
            whole text as commit message. A malformed block yields no changes
            at all, the whole text as commit message, and a warning.
        """
        lines = response_text.splitlines()
        kept: list[str] = []
        changes: list[FileChange] = []

        i = 0
        try:
            while i < len(lines):
                consumed = self._match_block(lines, i, changes)
                if consumed:
                    i += consumed
                else:
                    kept.append(lines[i])
                    i += 1
        except ParseAmbiguity as e:
            warning = f"Ignoring proposed changes: {e}"
            logger.warning(warning)
            return ParsedResponse(
                commit_message=response_text.strip(), changes=[], warnings=[warning]
            )

        logger.debug(f"Parsed {len(changes)} change block(s)")
        return ParsedResponse(commit_message="\n".join(kept).strip(), changes=changes)

    def _match_block(self, lines: list[str], i: int, changes: list[FileChange]) -> int:
        """Try to read a block starting at line ``i``; return lines consumed."""
        line = lines[i]
        next_line = lines[i + 1] if i + 1 < len(lines) else None
        path = as_path(line)

        if path and next_line is not None:
            if _is_diff_fence(next_line):
                body = _fenced_body(lines, i + 1)
                header_path = path_from_diff_headers(body) if body else None
                if header_path and not _same_file(path, header_path):
                    # The line is prose; let the fence be read on its own
                    return 0
                return 1 + self._read_diff(lines, i + 1, path, changes)
            if next_line.strip() == SEARCH_MARKER:
                return 1 + self._read_search_replace(lines, i + 1, path, changes)
            # SEARCH/REPLACE wrapped in a non-diff fence
            after = lines[i + 2] if i + 2 < len(lines) else None
            info = _fence_info(next_line)
            if info and after is not None and after.strip() == SEARCH_MARKER:
                consumed = self._read_search_replace(lines, i + 2, path, changes)
                close_at = i + 2 + consumed
                if close_at < len(lines) and _closes(lines[close_at], info[0]):
                    consumed += 1
                return 2 + consumed

        if _is_diff_fence(line):
            return self._read_diff(lines, i, None, changes)

        return 0

    def _read_diff(
        self,
        lines: list[str],
        start: int,
        path: Optional[str],
        changes: list[FileChange],
    ) -> int:
        body = _fenced_body(lines, start)
        if body is None:
            raise ParseAmbiguity(f"unterminated diff block at line {start + 1}")
        end = start + 1 + len(body)

        if not any(line.startswith("@@") for line in body):
            raise ParseAmbiguity(f"diff block at line {start + 1} has no hunks")

        path = path or path_from_diff_headers(body)
        if not path:
            raise ParseAmbiguity(f"diff block at line {start + 1} names no file")

        changes.append(
            FileChange(
                path=path,
                diff_content="\n".join(body) + "\n",
                edit_format=EditFormat.UNIFIED_DIFF,
            )
        )
        return end - start + 1

    def _read_search_replace(
        self,
        lines: list[str],
        start: int,
        path: str,
        changes: list[FileChange],
    ) -> int:
        search: list[str] = []
        replace: list[str] = []
        in_search = True
        end = start + 1
        while end < len(lines):
            marker = lines[end].strip()
            if marker == DIVIDER_MARKER and in_search:
                in_search = False
            elif marker == REPLACE_MARKER:
                break
            elif in_search:
                search.append(lines[end])
            else:
                replace.append(lines[end])
            end += 1

        if end >= len(lines) or in_search:
            raise ParseAmbiguity(
                f"unterminated SEARCH/REPLACE block for {path} at line {start + 1}"
            )

        changes.append(
            FileChange(
                path=path,
                diff_content="\n".join(lines[start : end + 1]),
                edit_format=EditFormat.SEARCH_REPLACE,
                search_content="\n".join(search),
                replace_content="\n".join(replace),
            )
        )
        return end - start + 1
