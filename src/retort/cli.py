"""
Retort CLI - command-line interface for branching AI pair-programming chats.

Every command opens one database session; everything a command writes is
committed together when it succeeds and rolled back when it fails.
"""

from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from retort.logging_config import setup_logging

app = typer.Typer(
    name="retort",
    help="Retort - branching chat history and change application for AI pair programming",
    no_args_is_help=True,
)
tag_app = typer.Typer(help="Manage chat tags", no_args_is_help=True)
app.add_typer(tag_app, name="tag")

console = Console()


def _init_logging() -> None:
    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.WARNING)


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


@app.callback()
def main() -> None:
    """Initialize logging for every command."""
    _init_logging()


@app.command()
def send(
    prompt: str = typer.Argument(..., help="The prompt to send"),
    parent: Optional[int] = typer.Option(
        None, help="Message ID to branch from (does not move any tag)"
    ),
    chat: Optional[str] = typer.Option(
        None, help="Chat tag to continue from (the tag is moved to the reply)"
    ),
    new: bool = typer.Option(False, "--new", help="Start a new chat"),
    ignore_inherited: bool = typer.Option(
        False,
        "--ignore-inherited",
        help="Do not carry over the files from the previous turn",
    ),
) -> None:
    """
    Send a prompt to the model.

    Continues from the active chat tag unless --parent, --chat or --new is
    given. File changes in the reply are applied and committed before the
    reply is recorded.
    """
    from retort.config import settings
    from retort.db.connection import db_session
    from retort.exceptions import RetortError
    from retort.llm import create_provider
    from retort.services import ConversationService

    if sum([parent is not None, chat is not None, new]) > 1:
        console.print(
            "[bold red]Error:[/bold red] --parent, --chat and --new are mutually exclusive"
        )
        raise typer.Exit(2)

    try:
        provider = create_provider(settings)
    except ValueError as e:
        _fail(e)

    try:
        with db_session() as session:
            service = ConversationService(session, provider, workdir=Path.cwd())
            outcome = service.send(
                prompt,
                parent_id=parent,
                chat_tag=chat,
                new=new,
                ignore_inherited=ignore_inherited,
            )
    except RetortError as e:
        _fail(e)

    console.print("---")
    console.print("CONTEXT (for this message):")
    _print_file_lists(
        [f.path for f in outcome.snapshot.read_write_files],
        [f.path for f in outcome.snapshot.read_only_files],
    )
    console.print("---")
    console.print(escape(outcome.response), soft_wrap=True)
    console.print()

    for result in outcome.hook_results:
        for warning in result.warnings:
            console.print(f"[yellow]⚠ {escape(warning)}[/yellow]")
        if result.commit_id:
            console.print(
                f"[green]✓ Committed {len(result.files_changed)} file(s)[/green] "
                f"{result.commit_id[:12]}"
            )

    console.print(f"Added user message with ID: {outcome.user_message_id}")
    console.print(f"Added assistant message with ID: {outcome.assistant_message_id}")
    if outcome.tag:
        if outcome.previous_tag_target is None:
            console.print(f"Creating new chat with tag '{escape(outcome.tag)}'")
        console.print(
            f"Updated tag '{escape(outcome.tag)}' to point to message ID "
            f"{outcome.assistant_message_id}"
        )


@app.command()
def history(
    target: Optional[str] = typer.Argument(
        None, help="Tag or message ID to show. Defaults to the active chat tag."
    ),
    tag: bool = typer.Option(False, "--tag", "-t", help="Treat TARGET as a tag"),
    message: bool = typer.Option(
        False, "--message", "-m", help="Treat TARGET as a message ID"
    ),
) -> None:
    """Show the conversation ending at a tag or message."""
    from retort.db.connection import db_session
    from retort.exceptions import RetortError
    from retort.graph import GraphStore
    from retort.services.conversation import ConversationService

    try:
        with db_session() as session:
            service = ConversationService(session, provider=None)
            leaf_id = service.resolve_target(target, as_tag=tag, as_message=message)
            messages = GraphStore(session).history(leaf_id)
            rendered = [(m.role.value, m.content) for m in messages]
    except RetortError as e:
        _fail(e)

    for i, (role, content) in enumerate(rendered):
        console.print(escape(f"[{role}]"))
        console.print(escape(content), soft_wrap=True)
        if i < len(rendered) - 1:
            console.print("---")


@app.command("list")
def list_chats() -> None:
    """List conversations (one per leaf), newest first."""
    from retort.db.connection import db_session
    from retort.graph import GraphStore

    with db_session() as session:
        rows = [
            (summary.id, ", ".join(summary.tags) or "-", summary.preview)
            for summary in GraphStore(session).list_conversations()
        ]

    if not rows:
        console.print("No chats found.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Tag")
    table.add_column("Last User Message", overflow="ellipsis", no_wrap=True)
    for leaf_id, tags, preview in rows:
        table.add_row(str(leaf_id), escape(tags), escape(preview))
    console.print(table)


@tag_app.command("set")
def tag_set(
    name: str = typer.Argument(..., help="Tag name"),
    message_id: int = typer.Argument(..., help="Message ID to point the tag at"),
) -> None:
    """Create a tag or move it to another message."""
    from retort.db.connection import db_session
    from retort.exceptions import RetortError
    from retort.graph import GraphStore

    try:
        with db_session() as session:
            previous = GraphStore(session).set_tag(name, message_id)
    except RetortError as e:
        _fail(e)

    if previous is None:
        console.print(f"Tagged message {message_id} with '{escape(name)}'")
    elif previous == message_id:
        console.print(f"Tag '{escape(name)}' already points to message {message_id}.")
    else:
        console.print(
            f"Moved tag '{escape(name)}' from message {previous} to {message_id}."
        )


@tag_app.command("delete")
def tag_delete(name: str = typer.Argument(..., help="Tag name")) -> None:
    """Delete a tag (the messages it pointed to are kept)."""
    from retort.db.connection import db_session
    from retort.graph import GraphStore

    with db_session() as session:
        message_id = GraphStore(session).delete_tag(name)

    if message_id is None:
        console.print(f"Tag '{escape(name)}' not found.")
        raise typer.Exit(1)
    console.print(
        f"Deleted tag '{escape(name)}' which pointed to message ID {message_id}"
    )


@tag_app.command("list")
def tag_list() -> None:
    """List all tags."""
    from retort.db.connection import db_session
    from retort.graph import GraphStore

    with db_session() as session:
        tags = GraphStore(session).list_tags()

    if not tags:
        console.print("No tags found.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Tag")
    table.add_column("Message ID", justify="right")
    for name, message_id in tags.items():
        table.add_row(escape(name), str(message_id))
    console.print(table)


def _print_file_lists(read_write: list[str], read_only: list[str]) -> None:
    if read_write:
        console.print("  Read-Write:")
        for path in read_write:
            console.print(f"    - {escape(path)}")
    if read_only:
        console.print("  Read-Only:")
        for path in read_only:
            console.print(f"    - {escape(path)}")
    if not read_write and not read_only:
        console.print("  (empty)")


@app.command()
def stage(
    file_path: Optional[str] = typer.Argument(
        None, help="File to stage. Without it, show the current context."
    ),
    read_only: bool = typer.Option(
        False, "--read-only", "-r", help="Stage the file as read-only"
    ),
    drop: bool = typer.Option(
        False, "--drop", "-d", help="Remove the file from the next turn's context"
    ),
) -> None:
    """Prepare the files that accompany the next message."""
    from retort.config import settings
    from retort.context import ContextEngine
    from retort.db.connection import db_session
    from retort.exceptions import RetortError
    from retort.graph import GraphStore
    from retort.services.conversation import ConversationService

    stage_name = settings.default_stage

    if file_path is not None:
        with db_session() as session:
            engine = ContextEngine(session)
            if drop:
                engine.stage_remove(stage_name, file_path)
            else:
                engine.stage_add(stage_name, file_path, read_only=read_only)

        if drop:
            console.print(f"Removed {escape(file_path)} from stage.")
        else:
            kind = "read-only" if read_only else "read-write"
            console.print(f"Staged {escape(file_path)} as {kind}.")
        return

    try:
        with db_session() as session:
            service = ConversationService(session, provider=None)
            target = service.continuation()
            parent = (
                GraphStore(session).get(target.parent_id)
                if target.parent_id is not None
                else None
            )
            engine = ContextEngine(session)
            inherited = engine.inherited_snapshot(parent)
            prepared = engine.get_stage(stage_name)
            inherited_rw = [f.path for f in inherited.read_write_files]
            inherited_ro = [f.path for f in inherited.read_only_files]
            prepared_rw = list(prepared.read_write_files)
            prepared_ro = list(prepared.read_only_files)
            dropped = list(prepared.dropped_files)
    except RetortError as e:
        _fail(e)

    console.print("Inherited Context (from active chat):")
    _print_file_lists(inherited_rw, inherited_ro)
    console.print()
    console.print("Prepared Context (for next message):")
    _print_file_lists(prepared_rw, prepared_ro)
    if dropped:
        console.print("  Dropped:")
        for path in dropped:
            console.print(f"    - {escape(path)}")


@app.command()
def profile(
    active_chat: Optional[str] = typer.Option(
        None, "--active-chat", help="Set the default chat tag to continue from"
    ),
    set_project_root: Optional[Path] = typer.Option(
        None,
        "--set-project-root",
        help="Directory outside which changes may not be written",
    ),
) -> None:
    """Show or update the active profile."""
    from retort.config import settings
    from retort.db.connection import db_session
    from retort.db.repositories import ProfileRepository

    name = settings.default_profile

    try:
        with db_session() as session:
            profiles = ProfileRepository(session)
            current = profiles.get_or_create(name)
            if active_chat is not None:
                current = profiles.set_active_chat_tag(active_chat, name)
            if set_project_root is not None:
                current = profiles.set_project_root(set_project_root, name)
            active_tag, project_root = current.active_chat_tag, current.project_root
    except (FileNotFoundError, NotADirectoryError) as e:
        _fail(e)

    if active_chat is not None:
        console.print(f"Set active chat tag to: {escape(active_chat)}")
    if set_project_root is not None:
        console.print(f"Set project root to: {escape(project_root)}")
    if active_chat is None and set_project_root is None:
        console.print(f"Active Profile: {escape(name)}")
        console.print(f"  active_chat_tag: {escape(active_tag or 'None')}")
        console.print(f"  project_root: {escape(project_root or 'None')}")


if __name__ == "__main__":
    app()
