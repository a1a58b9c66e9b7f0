"""
Tests for context resolution, staging and snapshots.
"""

from pathlib import Path

import pytest

from retort.context import ContextEngine, make_file_reader, merge_context
from retort.exceptions import FileUnreadableError
from retort.graph import GraphStore
from retort.models.context import (
    ContextSnapshot,
    FileSnapshot,
    ResolvedContext,
)
from retort.models.db import ContextStage, MessageRole
from retort.utils.hashing import calculate_content_hash


def _stage(rw=(), ro=(), dropped=()) -> ContextStage:
    return ContextStage(
        name="test",
        read_write_files=list(rw),
        read_only_files=list(ro),
        dropped_files=list(dropped),
    )


def _snapshot_metadata(rw=(), ro=()) -> dict:
    return ContextSnapshot(
        read_write_files=[FileSnapshot(p, "hash-" + p) for p in rw],
        read_only_files=[FileSnapshot(p, "hash-" + p) for p in ro],
    ).to_metadata()


class TestMergeContext:
    """Tests for overlaying a stage on inherited context."""

    def test_empty_inputs(self):
        assert merge_context(ResolvedContext(), _stage()) == ResolvedContext()

    def test_inherited_passes_through(self):
        inherited = ResolvedContext(frozenset({"a.py"}), frozenset({"b.md"}))

        assert merge_context(inherited, _stage()) == inherited

    def test_stage_adds_files(self):
        inherited = ResolvedContext(read_write=frozenset({"a.py"}))

        merged = merge_context(inherited, _stage(rw=["c.py"], ro=["d.md"]))

        assert merged.read_write == {"a.py", "c.py"}
        assert merged.read_only == {"d.md"}

    def test_stage_overrides_inherited_role(self):
        """Test that staging a read-write file as read-only changes its role."""
        inherited = ResolvedContext(read_write=frozenset({"a.py"}))

        merged = merge_context(inherited, _stage(ro=["a.py"]))

        assert merged.read_write == frozenset()
        assert merged.read_only == {"a.py"}

    def test_drop_removes_inherited_file(self):
        inherited = ResolvedContext(frozenset({"a.py"}), frozenset({"b.md"}))

        merged = merge_context(inherited, _stage(dropped=["a.py", "b.md"]))

        assert not merged

    def test_roles_are_disjoint(self):
        inherited = ResolvedContext(frozenset({"a.py"}), frozenset({"b.py"}))

        merged = merge_context(inherited, _stage(rw=["b.py"], ro=["a.py"]))

        assert merged.read_write.isdisjoint(merged.read_only)
        assert merged.read_write == {"b.py"}
        assert merged.read_only == {"a.py"}


class TestStaging:
    """Tests for the prepared stage."""

    def test_stage_starts_empty(self, db_session):
        engine = ContextEngine(db_session)

        assert engine.get_stage().is_empty

    def test_add_read_write_and_read_only(self, db_session):
        engine = ContextEngine(db_session)

        engine.stage_add("default", "main.py")
        stage = engine.stage_add("default", "README.md", read_only=True)

        assert stage.read_write_files == ["main.py"]
        assert stage.read_only_files == ["README.md"]

    def test_adding_twice_keeps_one_entry(self, db_session):
        engine = ContextEngine(db_session)

        engine.stage_add("default", "main.py")
        stage = engine.stage_add("default", "main.py")

        assert stage.read_write_files == ["main.py"]

    def test_restaging_switches_role(self, db_session):
        engine = ContextEngine(db_session)

        engine.stage_add("default", "main.py")
        stage = engine.stage_add("default", "main.py", read_only=True)

        assert stage.read_write_files == []
        assert stage.read_only_files == ["main.py"]

    def test_remove_drops_file(self, db_session):
        """Test that removing a staged file also drops it from inheritance."""
        engine = ContextEngine(db_session)
        engine.stage_add("default", "main.py")

        stage = engine.stage_remove("default", "main.py")

        assert stage.read_write_files == []
        assert stage.dropped_files == ["main.py"]

    def test_add_after_remove_undrops(self, db_session):
        engine = ContextEngine(db_session)
        engine.stage_remove("default", "main.py")

        stage = engine.stage_add("default", "main.py")

        assert stage.dropped_files == []
        assert stage.read_write_files == ["main.py"]

    def test_stage_persists_across_lookups(self, db_session):
        ContextEngine(db_session).stage_add("default", "main.py")
        db_session.expire_all()

        assert ContextEngine(db_session).get_stage().read_write_files == ["main.py"]

    def test_clear_stage(self, db_session):
        engine = ContextEngine(db_session)
        engine.stage_add("default", "main.py")
        engine.stage_remove("default", "old.py")

        assert engine.clear_stage().is_empty

    def test_stages_are_independent(self, db_session):
        engine = ContextEngine(db_session)
        engine.stage_add("one", "a.py")

        assert engine.get_stage("two").is_empty


class TestResolveContext:
    """Tests for resolving the context of the next turn."""

    def test_root_turn_uses_stage_only(self, db_session):
        engine = ContextEngine(db_session)
        stage = engine.stage_add("default", "main.py")

        resolved = engine.resolve_context(None, stage)

        assert resolved.read_write == {"main.py"}

    def test_inherits_from_parent_user_message(self, db_session, graph: GraphStore):
        """Test that continuing from an assistant reply inherits its turn's files."""
        user = graph.append(
            None, MessageRole.USER, "q", _snapshot_metadata(rw=["a.py"], ro=["b.md"])
        )
        assistant = graph.append(user, MessageRole.ASSISTANT, "a")
        engine = ContextEngine(db_session)

        resolved = engine.resolve_context(graph.get(assistant), engine.get_stage())

        assert resolved.read_write == {"a.py"}
        assert resolved.read_only == {"b.md"}

    def test_inherits_nearest_user_turn(self, db_session, graph: GraphStore):
        """Test that only the most recent user turn's snapshot is inherited."""
        first = graph.append(None, MessageRole.USER, "q1", _snapshot_metadata(rw=["a.py"]))
        reply = graph.append(first, MessageRole.ASSISTANT, "a1")
        second = graph.append(reply, MessageRole.USER, "q2", _snapshot_metadata(rw=["c.py"]))
        leaf = graph.append(second, MessageRole.ASSISTANT, "a2")
        engine = ContextEngine(db_session)

        resolved = engine.resolve_context(graph.get(leaf), engine.get_stage())

        assert resolved.read_write == {"c.py"}

    def test_ignore_inherited(self, db_session, graph: GraphStore):
        user = graph.append(None, MessageRole.USER, "q", _snapshot_metadata(rw=["a.py"]))
        engine = ContextEngine(db_session)
        stage = engine.stage_add("default", "new.py")

        resolved = engine.resolve_context(graph.get(user), stage, ignore_inherited=True)

        assert resolved.read_write == {"new.py"}

    def test_drop_overrides_inheritance(self, db_session, graph: GraphStore):
        user = graph.append(
            None, MessageRole.USER, "q", _snapshot_metadata(rw=["a.py", "b.py"])
        )
        engine = ContextEngine(db_session)
        stage = engine.stage_remove("default", "a.py")

        resolved = engine.resolve_context(graph.get(user), stage)

        assert resolved.read_write == {"b.py"}

    def test_message_without_snapshot_inherits_nothing(
        self, db_session, graph: GraphStore
    ):
        user = graph.append(None, MessageRole.USER, "q", {"unrelated": 1})
        engine = ContextEngine(db_session)

        assert not engine.resolve_context(graph.get(user), engine.get_stage())


class TestSnapshot:
    """Tests for reading and hashing context files."""

    def test_snapshot_hashes_current_content(self, db_session, tmp_path: Path):
        (tmp_path / "a.py").write_text("print('a')\n")
        (tmp_path / "b.md").write_text("# docs\n")
        resolved = ResolvedContext(frozenset({"a.py"}), frozenset({"b.md"}))

        snapshot = ContextEngine(db_session).snapshot(
            resolved, make_file_reader(tmp_path)
        )

        assert snapshot.read_write_files == [
            FileSnapshot("a.py", calculate_content_hash("print('a')\n"))
        ]
        assert snapshot.read_only_files == [
            FileSnapshot("b.md", calculate_content_hash("# docs\n"))
        ]
        assert snapshot.read_write_files[0].content == "print('a')\n"

    def test_snapshot_is_sorted_by_path(self, db_session):
        resolved = ResolvedContext(read_write=frozenset({"z.py", "a.py", "m.py"}))

        snapshot = ContextEngine(db_session).snapshot(resolved, lambda path: b"x")

        assert [f.path for f in snapshot.read_write_files] == ["a.py", "m.py", "z.py"]

    def test_missing_file_raises(self, db_session, tmp_path: Path):
        """Test that an unreadable file fails the whole snapshot."""
        (tmp_path / "a.py").write_text("ok")
        resolved = ResolvedContext(read_write=frozenset({"a.py", "missing.py"}))

        with pytest.raises(FileUnreadableError) as exc_info:
            ContextEngine(db_session).snapshot(resolved, make_file_reader(tmp_path))

        assert exc_info.value.path == "missing.py"

    def test_empty_context_snapshot(self, db_session):
        snapshot = ContextEngine(db_session).snapshot(ResolvedContext())

        assert not snapshot
        assert snapshot.to_metadata() == {"read_write_files": [], "read_only_files": []}


class TestSnapshotMetadata:
    """Tests for storing snapshots in message metadata."""

    def test_round_trip_through_message(self, graph: GraphStore):
        snapshot = ContextSnapshot(
            read_write_files=[FileSnapshot("a.py", "abc")],
            read_only_files=[FileSnapshot("b.md", "def")],
        )
        message_id = graph.append(None, MessageRole.USER, "q", snapshot.to_metadata())

        restored = ContextSnapshot.from_metadata(graph.get(message_id).extra_data)

        assert restored == snapshot

    def test_metadata_does_not_store_content(self):
        snapshot = ContextSnapshot(
            read_write_files=[FileSnapshot("a.py", "abc", content="secret")]
        )

        assert snapshot.to_metadata()["read_write_files"] == [
            {"path": "a.py", "content_hash": "abc"}
        ]

    def test_unknown_and_malformed_entries_are_ignored(self):
        metadata = {
            "read_write_files": [{"path": "a.py", "content_hash": "x"}, "bogus", {}],
            "read_only_files": "not a list",
            "future_key": {"anything": True},
        }

        snapshot = ContextSnapshot.from_metadata(metadata)

        assert [f.path for f in snapshot.read_write_files] == ["a.py"]
        assert snapshot.read_only_files == []

    def test_none_metadata(self):
        assert not ContextSnapshot.from_metadata(None)
