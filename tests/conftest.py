"""
Pytest configuration and fixtures for Retort tests.

This module provides shared fixtures for testing database models, repositories,
the context engine and change application against a real git repository.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from retort.db.connection import create_sqlite_engine
from retort.graph import GraphStore
from retort.models.db import Base, Message, MessageRole


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    engine = create_sqlite_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test gets a fresh session with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection)()

    yield session

    session.close()
    if transaction.is_active:
        transaction.rollback()
    connection.close()


@pytest.fixture
def graph(db_session: Session) -> GraphStore:
    return GraphStore(db_session)


@pytest.fixture
def sample_conversation(graph: GraphStore) -> list[Message]:
    """A three-turn linear conversation: user, assistant, user, assistant."""
    ids = []
    parent = None
    for role, content in [
        (MessageRole.USER, "How do I read a file?"),
        (MessageRole.ASSISTANT, "Use open()."),
        (MessageRole.USER, "And write one?"),
        (MessageRole.ASSISTANT, "Open it with mode 'w'."),
    ]:
        parent = graph.append(parent, role, content)
        ids.append(parent)
    return [graph.get(id) for id in ids]


def _git(repo: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return proc.stdout


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """An initialized git repository with one committed file, ``hello.py``."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Retort Tests")
    _git(repo, "config", "commit.gpgsign", "false")

    (repo / "hello.py").write_text("def greet():\n    return 'hello'\n")
    _git(repo, "add", "hello.py")
    _git(repo, "commit", "-q", "-m", "Initial commit")
    return repo


@pytest.fixture
def git():
    """Run a git command in a repository and return its stdout."""
    return _git
