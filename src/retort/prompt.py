"""
Prompt assembly.

Builds the system prompt and message list sent to the model from the prior
conversation and the files in the turn's context.
"""

import platform
from typing import Sequence

from retort.llm.base import ChatMessage
from retort.models.context import ContextSnapshot, FileSnapshot
from retort.models.db import Message

SYSTEM_PROMPT = """\
You are an expert software developer acting as a pair programmer.
Pay careful attention to the scope of the user's request. Do what they ask, \
but no more. Do not improve, comment, fix or modify unrelated parts of the code.

Only propose edits to files the user has added to the chat as editable. \
To edit a file, write its path on a line by itself, followed by a fenced code \
block tagged `diff` containing a unified diff of the change:

path/to/file.py
```diff
--- a/path/to/file.py
+++ b/path/to/file.py
@@ -1,3 +1,3 @@
 unchanged line
-old line
+new line
```

Alternatively, use a SEARCH/REPLACE block: the path on its own line, then
<<<<<<< SEARCH, the exact existing lines, =======, the replacement lines, and
>>>>>>> REPLACE. An empty SEARCH section replaces the whole file.

Everything you write outside these blocks is used as the commit message, so \
start with a one-line summary in the style of a git commit subject.

Platform: {platform}
"""

READ_WRITE_PREFIX = (
    "I have added these files to the chat. You may propose edits to them."
)
READ_ONLY_PREFIX = (
    "Here are some read-only files for reference. Do not edit them."
)
CONTEXT_ACK = "Ok, I will use these files as the current state of the code."


def build_system_prompt() -> str:
    return SYSTEM_PROMPT.format(platform=platform.system() or "unknown")


def _render_files(prefix: str, files: Sequence[FileSnapshot]) -> str:
    parts = [prefix, ""]
    for file in files:
        parts.append(file.path)
        parts.append("```")
        parts.append((file.content or "").rstrip("\n"))
        parts.append("```")
        parts.append("")
    return "\n".join(parts).rstrip() + "\n"


def build_prompt_messages(
    history: Sequence[Message],
    prompt: str,
    snapshot: ContextSnapshot,
) -> list[ChatMessage]:
    """
    Assemble the messages for one turn.

    Args:
        history: Prior messages, root first
        prompt: The new user prompt
        snapshot: Files in context, with their current content

    Returns:
        Messages oldest first, ending with the new user prompt
    """
    messages = [
        ChatMessage(role=message.role.value, content=message.content)
        for message in history
    ]

    context_blocks = []
    if snapshot.read_only_files:
        context_blocks.append(_render_files(READ_ONLY_PREFIX, snapshot.read_only_files))
    if snapshot.read_write_files:
        context_blocks.append(
            _render_files(READ_WRITE_PREFIX, snapshot.read_write_files)
        )
    if context_blocks:
        messages.append(ChatMessage(role="user", content="\n".join(context_blocks)))
        messages.append(ChatMessage(role="assistant", content=CONTEXT_ACK))

    messages.append(ChatMessage(role="user", content=prompt))
    return messages
