"""
Tests for running and recording conversation turns.
"""

from pathlib import Path

import pytest

from retort.db.repositories import ProfileRepository
from retort.exceptions import (
    FileUnreadableError,
    MessageNotFoundError,
    RetortError,
    TagNotFoundError,
)
from retort.hooks import HookPipeline, HookResult, PostResponseHook
from retort.llm.mock_provider import MockProvider
from retort.models.context import ContextSnapshot
from retort.models.db import MessageRole
from retort.prompt import CONTEXT_ACK
from retort.services import ConversationService
from retort.utils.hashing import calculate_content_hash


class ExplodingHook(PostResponseHook):
    @property
    def name(self) -> str:
        return "exploding"

    def run(self, response_text: str) -> HookResult:
        raise RetortError("cannot apply")


@pytest.fixture
def provider() -> MockProvider:
    return MockProvider(content="Sure, here you go.")


@pytest.fixture
def service(db_session, provider: MockProvider, tmp_path: Path) -> ConversationService:
    return ConversationService(
        db_session, provider, pipeline=HookPipeline(), workdir=tmp_path
    )


class TestContinuation:
    """Tests for choosing where a turn attaches."""

    def test_nothing_set_starts_new_root(self, service: ConversationService):
        target = service.continuation()

        assert target.parent_id is None
        assert target.tag is None

    def test_new_ignores_active_tag(self, service: ConversationService):
        outcome = service.send("hello", chat_tag="main")
        service.profiles.set_active_chat_tag("main")

        target = service.continuation(new=True)

        assert target.parent_id is None
        assert target.tag is None
        assert outcome.tag == "main"

    def test_parent_does_not_move_tags(self, service: ConversationService):
        first = service.send("hello", chat_tag="main")

        target = service.continuation(parent_id=first.user_message_id)

        assert target.parent_id == first.user_message_id
        assert target.tag is None

    def test_unknown_parent_raises(self, service: ConversationService):
        with pytest.raises(MessageNotFoundError):
            service.continuation(parent_id=99)

    def test_active_chat_tag_is_used(self, service: ConversationService):
        first = service.send("hello", chat_tag="main")
        service.profiles.set_active_chat_tag("main")

        target = service.continuation()

        assert target.parent_id == first.assistant_message_id
        assert target.tag == "main"

    def test_new_chat_tag_starts_root(self, service: ConversationService):
        target = service.continuation(chat_tag="fresh")

        assert target.parent_id is None
        assert target.tag == "fresh"


class TestSend:
    """Tests for sending a prompt and recording the turn."""

    def test_first_turn(self, service: ConversationService, provider: MockProvider):
        outcome = service.send("hello", new=True)

        user = service.graph.get(outcome.user_message_id)
        assistant = service.graph.get(outcome.assistant_message_id)
        assert user.is_root
        assert user.role == MessageRole.USER
        assert user.content == "hello"
        assert assistant.parent_id == user.id
        assert assistant.role == MessageRole.ASSISTANT
        assert assistant.content == "Sure, here you go."
        assert outcome.tag is None
        assert len(provider.requests) == 1

    def test_assistant_metadata(self, service: ConversationService):
        outcome = service.send("hello")

        metadata = service.graph.get(outcome.assistant_message_id).extra_data
        assert metadata["provider"] == "mock"
        assert metadata["model"] == "mock"
        assert metadata["usage"]["total_tokens"] == 0
        assert metadata["hooks"] == []

    def test_chat_tag_follows_conversation(self, service: ConversationService):
        """Test that continuing a chat moves its tag to the newest reply."""
        first = service.send("one", chat_tag="main")
        second = service.send("two", chat_tag="main")

        assert first.previous_tag_target is None
        assert second.previous_tag_target == first.assistant_message_id
        assert service.graph.get_tag("main") == second.assistant_message_id
        history = service.graph.history(second.assistant_message_id)
        assert [m.content for m in history] == [
            "one",
            "Sure, here you go.",
            "two",
            "Sure, here you go.",
        ]

    def test_branching_from_parent_leaves_tag(self, service: ConversationService):
        first = service.send("one", chat_tag="main")

        branch = service.send("alt", parent_id=first.user_message_id)

        assert service.graph.get_tag("main") == first.assistant_message_id
        assert service.graph.get(branch.user_message_id).parent_id == first.user_message_id
        assert len(service.graph.leaves_since()) == 2

    def test_history_is_sent_to_provider(
        self, service: ConversationService, provider: MockProvider
    ):
        service.send("one", chat_tag="main")
        service.send("two", chat_tag="main")

        _, messages = provider.requests[-1]
        assert [(m.role, m.content) for m in messages] == [
            ("user", "one"),
            ("assistant", "Sure, here you go."),
            ("user", "two"),
        ]


class TestSendContext:
    """Tests for file context handling while sending."""

    def test_snapshot_recorded_and_stage_cleared(
        self, service: ConversationService, tmp_path: Path
    ):
        (tmp_path / "main.py").write_text("print(1)\n")
        service.context.stage_add("default", "main.py")

        outcome = service.send("explain", new=True)

        user = service.graph.get(outcome.user_message_id)
        snapshot = ContextSnapshot.from_metadata(user.extra_data)
        assert [f.path for f in snapshot.read_write_files] == ["main.py"]
        assert snapshot.read_write_files[0].content_hash == calculate_content_hash(
            "print(1)\n"
        )
        assert service.context.get_stage().is_empty

    def test_files_are_sent_before_prompt(
        self, service: ConversationService, provider: MockProvider, tmp_path: Path
    ):
        (tmp_path / "main.py").write_text("print(1)\n")
        service.context.stage_add("default", "main.py")

        service.send("explain", new=True)

        _, messages = provider.requests[-1]
        assert "main.py" in messages[0].content
        assert "print(1)" in messages[0].content
        assert messages[1].content == CONTEXT_ACK
        assert messages[-1].content == "explain"

    def test_context_is_inherited_by_next_turn(
        self, service: ConversationService, tmp_path: Path
    ):
        (tmp_path / "main.py").write_text("v1\n")
        service.context.stage_add("default", "main.py")
        first = service.send("one", chat_tag="main")

        (tmp_path / "main.py").write_text("v2\n")
        second = service.send("two", chat_tag="main")

        snapshot = ContextSnapshot.from_metadata(
            service.graph.get(second.user_message_id).extra_data
        )
        assert [f.path for f in snapshot.read_write_files] == ["main.py"]
        assert snapshot.read_write_files[0].content_hash == calculate_content_hash("v2\n")
        assert first.snapshot.read_write_files[0].content_hash != (
            snapshot.read_write_files[0].content_hash
        )

    def test_ignore_inherited(self, service: ConversationService, tmp_path: Path):
        (tmp_path / "main.py").write_text("v1\n")
        service.context.stage_add("default", "main.py")
        service.send("one", chat_tag="main")

        second = service.send("two", chat_tag="main", ignore_inherited=True)

        assert not second.snapshot

    def test_unreadable_file_sends_nothing(
        self, service: ConversationService, provider: MockProvider
    ):
        """Test that a missing context file aborts before the provider is called."""
        service.context.stage_add("default", "missing.py")

        with pytest.raises(FileUnreadableError):
            service.send("explain", new=True)

        assert provider.requests == []
        assert service.graph.messages.count() == 0


class TestSendHooks:
    """Tests for post-response hooks during send."""

    def test_hook_failure_records_nothing(self, db_session, provider, tmp_path: Path):
        """Test that a failing hook prevents both messages from being stored."""
        pipeline = HookPipeline()
        pipeline.register(ExplodingHook())
        service = ConversationService(
            db_session, provider, pipeline=pipeline, workdir=tmp_path
        )

        with pytest.raises(RetortError, match="cannot apply"):
            service.send("hello", chat_tag="main")

        assert service.graph.messages.count() == 0
        assert service.graph.get_tag("main") is None

    def test_commit_recorded_in_metadata(self, db_session, git_repo: Path, git):
        provider = MockProvider(
            content=(
                "Say hi\n\n"
                "hello.py\n"
                "<<<<<<< SEARCH\n"
                "    return 'hello'\n"
                "=======\n"
                "    return 'hi'\n"
                ">>>>>>> REPLACE\n"
            )
        )
        service = ConversationService(db_session, provider, workdir=git_repo)

        outcome = service.send("greet with hi", new=True)

        head = git(git_repo, "rev-parse", "HEAD").strip()
        assert outcome.commit_ids == [head]
        hooks = service.graph.get(outcome.assistant_message_id).extra_data["hooks"]
        assert hooks[0]["commit_id"] == head
        assert hooks[0]["files_changed"] == ["hello.py"]


class TestResolveTarget:
    """Tests for resolving history targets."""

    def test_tag_target(self, service: ConversationService):
        outcome = service.send("hello", chat_tag="main")

        assert service.resolve_target("main") == outcome.assistant_message_id

    def test_message_target(self, service: ConversationService):
        outcome = service.send("hello")

        assert (
            service.resolve_target(str(outcome.user_message_id), as_message=True)
            == outcome.user_message_id
        )

    def test_unknown_tag(self, service: ConversationService):
        with pytest.raises(TagNotFoundError):
            service.resolve_target("nope")

    def test_non_numeric_message_target(self, service: ConversationService):
        with pytest.raises(RetortError):
            service.resolve_target("abc", as_message=True)

    def test_default_is_active_chat(self, service: ConversationService, db_session):
        outcome = service.send("hello", chat_tag="main")
        ProfileRepository(db_session).set_active_chat_tag("main")

        assert service.resolve_target() == outcome.assistant_message_id

    def test_no_active_chat(self, service: ConversationService):
        with pytest.raises(RetortError, match="No active chat tag"):
            service.resolve_target()
