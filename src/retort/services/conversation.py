"""
Conversation service.

Runs one turn end to end: pick the continuation point, resolve the file
context, ask the model, run post-response hooks, and only then record the
user and assistant messages. Nothing is written to the database until every
earlier step has succeeded.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

from retort.config import Settings, settings as default_settings
from retort.context import ContextEngine, make_file_reader
from retort.db.repositories import ProfileRepository
from retort.exceptions import RetortError, TagNotFoundError
from retort.graph import GraphStore
from retort.hooks import HookPipeline, HookResult, build_default_pipeline
from retort.llm import LLMProvider
from retort.models.context import ContextSnapshot, ResolvedContext
from retort.models.db import Message, MessageRole
from retort.prompt import build_prompt_messages, build_system_prompt

logger = logging.getLogger(__name__)


@dataclass
class Continuation:
    """Where a new turn attaches and which tag follows it."""

    parent_id: Optional[int] = None
    tag: Optional[str] = None


@dataclass
class SendOutcome:
    """Result of one recorded turn."""

    user_message_id: int
    assistant_message_id: int
    response: str
    snapshot: ContextSnapshot
    tag: Optional[str] = None
    previous_tag_target: Optional[int] = None
    hook_results: list[HookResult] = field(default_factory=list)

    @property
    def commit_ids(self) -> list[str]:
        return [r.commit_id for r in self.hook_results if r.commit_id]


class ConversationService:
    """Orchestrates graph store, context engine, provider and hooks."""

    def __init__(
        self,
        session: Session,
        provider: LLMProvider,
        pipeline: Optional[HookPipeline] = None,
        workdir: Optional[Path | str] = None,
        config: Optional[Settings] = None,
    ):
        self.session = session
        self.provider = provider
        self.config = config or default_settings
        self.workdir = Path(workdir or Path.cwd())
        self.graph = GraphStore(session)
        self.context = ContextEngine(session)
        self.profiles = ProfileRepository(session)
        self._pipeline = pipeline

    @property
    def profile(self):
        return self.profiles.get_or_create(self.config.default_profile)

    def pipeline(self) -> HookPipeline:
        if self._pipeline is None:
            self._pipeline = build_default_pipeline(
                project_root=self.profile.project_root, workdir=self.workdir
            )
        return self._pipeline

    def continuation(
        self,
        parent_id: Optional[int] = None,
        chat_tag: Optional[str] = None,
        new: bool = False,
    ) -> Continuation:
        """
        Decide where the next turn attaches.

        ``new`` starts a root and moves no tag; ``parent_id`` branches from a
        message and moves no tag; ``chat_tag`` continues from the tag (or starts
        it) and moves it; otherwise the profile's active chat tag is used the
        same way, and without one a new root is started.
        """
        if new:
            return Continuation()
        if parent_id is not None:
            self.graph.get(parent_id)
            return Continuation(parent_id=parent_id)

        tag = chat_tag or self.profile.active_chat_tag
        if tag is None:
            return Continuation()
        return Continuation(parent_id=self.graph.get_tag(tag), tag=tag)

    def resolve_target(
        self,
        target: Optional[str] = None,
        as_tag: bool = False,
        as_message: bool = False,
    ) -> int:
        """
        Turn a history target into a message id.

        No target means the active chat tag. A bare target is a tag name unless
        ``as_message`` is set, in which case it must be a message id.
        """
        if as_tag and as_message:
            raise RetortError("A target cannot be both a tag and a message id.")

        if target is None:
            active = self.profile.active_chat_tag
            if not active:
                raise RetortError(
                    "No active chat tag set. Use `retort profile --active-chat <tag>`."
                )
            message_id = self.graph.get_tag(active)
            if message_id is None:
                raise RetortError(
                    f"Active chat tag '{active}' does not point to a valid message."
                )
            return message_id

        if as_message:
            try:
                message_id = int(target)
            except ValueError as e:
                raise RetortError(f"'{target}' is not a message id.") from e
            return self.graph.get(message_id).id

        message_id = self.graph.get_tag(target)
        if message_id is None:
            raise TagNotFoundError(target)
        return message_id

    def prepare_context(
        self,
        parent: Optional[Message],
        ignore_inherited: bool = False,
    ) -> tuple[ResolvedContext, ContextSnapshot]:
        stage = self.context.get_stage(self.config.default_stage)
        resolved = self.context.resolve_context(parent, stage, ignore_inherited)
        snapshot = self.context.snapshot(resolved, make_file_reader(self.workdir))
        return resolved, snapshot

    def send(
        self,
        prompt: str,
        parent_id: Optional[int] = None,
        chat_tag: Optional[str] = None,
        new: bool = False,
        ignore_inherited: bool = False,
    ) -> SendOutcome:
        """
        Run and record one turn.

        The caller owns the transaction: the two appends, the stage reset and
        the tag move are flushed on this session and committed together.
        """
        target = self.continuation(parent_id=parent_id, chat_tag=chat_tag, new=new)
        parent = (
            self.graph.get(target.parent_id) if target.parent_id is not None else None
        )

        _, snapshot = self.prepare_context(parent, ignore_inherited)
        history = self.graph.history(parent.id) if parent else []

        messages = build_prompt_messages(history, prompt, snapshot)
        response = self.provider.complete(
            build_system_prompt(),
            messages,
            max_tokens=self.config.openai_max_tokens,
            temperature=self.config.openai_temperature,
        )
        logger.info(
            f"Received {len(response.content)} chars from {self.provider.provider_name}"
        )

        hook_results = self.pipeline().run_post_response(response.content)

        user_id = self.graph.append(
            target.parent_id, MessageRole.USER, prompt, snapshot.to_metadata()
        )
        assistant_id = self.graph.append(
            user_id,
            MessageRole.ASSISTANT,
            response.content,
            {
                "provider": self.provider.provider_name,
                "model": response.model,
                "temperature": self.config.openai_temperature,
                "finish_reason": response.finish_reason,
                "usage": {
                    "prompt_tokens": response.prompt_tokens,
                    "completion_tokens": response.completion_tokens,
                    "total_tokens": response.total_tokens,
                },
                "hooks": [result.to_dict() for result in hook_results],
            },
        )
        self.context.clear_stage(self.config.default_stage)

        previous = None
        if target.tag:
            previous = self.graph.set_tag(target.tag, assistant_id)

        return SendOutcome(
            user_message_id=user_id,
            assistant_message_id=assistant_id,
            response=response.content,
            snapshot=snapshot,
            tag=target.tag,
            previous_tag_target=previous,
            hook_results=hook_results,
        )
