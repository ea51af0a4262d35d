"""CLI entry point for rcc."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from rcc import __version__

app = typer.Typer(
    name="rcc",
    help="Threaded comments, live chat and votes for a Reddit-style community backend.",
    no_args_is_help=True,
)


def version_callback(value: bool):
    if value:
        typer.echo(f"rcc {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(None, "--version", callback=version_callback, is_eager=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log sync and store activity"),
):
    """rcc: rebuild comment threads and follow live updates from the record store."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def tree(
    records_file: Path = typer.Argument(..., help="JSON or YAML export of comment rows", exists=True),
):
    """Print the comment thread contained in an exported records file."""
    from rcc.core.formatting import format_thread
    from rcc.core.parser import load_records, parse_comment
    from rcc.core.tree import build_tree, find_orphans

    try:
        comments = [parse_comment(row) for row in load_records(records_file)]
    except ValueError as e:
        typer.echo(f"Could not read {records_file}: {e}", err=True)
        raise typer.Exit(1)

    forest = build_tree(comments)
    _print_thread(forest, format_thread)

    orphans = find_orphans(comments)
    if orphans:
        typer.echo(f"  ({len(orphans)} comments with missing parents not shown)", err=True)


@app.command()
def thread(
    post_id: str = typer.Argument(..., help="Post id"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Keep following new comments"),
):
    """Show the comment thread of a post from the configured store."""
    from rcc.config import Settings
    from rcc.core.formatting import format_thread
    from rcc.store.base import StoreError
    from rcc.sync.comments import CommentThread

    settings = Settings.load()
    store = _create_store(settings)

    def _show(view: CommentThread) -> None:
        if watch:
            typer.echo(f"--- post {view.post_id} ---")
        _print_thread(view.forest, format_thread)

    view = CommentThread(
        store,
        settings.identity(),
        post_id,
        on_change=_show,
        retry_delay=settings.resubscribe_delay,
        max_attempts=settings.max_resubscribe_attempts,
    )

    try:
        if watch:
            asyncio.run(view.run())
        else:
            asyncio.run(view.refresh())
    except StoreError as e:
        typer.echo(f"Store error: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        typer.echo()


@app.command()
def comment(
    post_id: str = typer.Argument(..., help="Post id"),
    content: str = typer.Argument(..., help="Comment text"),
    reply_to: Optional[str] = typer.Option(None, "--reply-to", "-r", help="Parent comment id"),
):
    """Post a comment (or a reply) as the configured user."""
    from rcc.config import Settings
    from rcc.store.base import NotAuthenticatedError, StoreError
    from rcc.sync.comments import CommentThread

    settings = Settings.load()
    view = CommentThread(_create_store(settings), settings.identity(), post_id)

    try:
        row = asyncio.run(view.post_comment(content, parent_id=reply_to))
    except NotAuthenticatedError as e:
        typer.echo(f"{e} (set RCC_USER_ID)", err=True)
        raise typer.Exit(1)
    except StoreError as e:
        typer.echo(f"Error posting comment: {e}", err=True)
        raise typer.Exit(1)

    if row is None:
        typer.echo("Nothing to post.")
        return
    typer.echo(f"Posted comment {row.get('id', '?')} on post {post_id}")


@app.command()
def vote(
    post_id: str = typer.Argument(..., help="Post id"),
    direction: str = typer.Argument(..., help="up or down"),
):
    """Vote on a post; voting the same way twice retracts the vote."""
    from rcc.config import Settings
    from rcc.store.base import NotAuthenticatedError, StoreError

    value = {"up": 1, "down": -1}.get(direction.lower())
    if value is None:
        typer.echo(f"Unknown vote direction: {direction!r} (use 'up' or 'down')", err=True)
        raise typer.Exit(2)

    settings = Settings.load()
    store = _create_store(settings)
    try:
        tally = asyncio.run(_cast_post_vote(store, settings.identity(), post_id, value))
    except NotAuthenticatedError as e:
        typer.echo(f"{e} (set RCC_USER_ID)", err=True)
        raise typer.Exit(1)
    except (StoreError, LookupError) as e:
        typer.echo(f"Vote failed: {e}", err=True)
        raise typer.Exit(1)

    mine = {1: "up", -1: "down", None: "none"}[tally.current]
    typer.echo(f"score {tally.score} (+{tally.upvotes}/-{tally.downvotes}), your vote: {mine}")


@app.command()
def chat(
    follow: bool = typer.Option(False, "--follow", "-f", help="Keep printing new messages"),
):
    """Print the live chat room."""
    from rcc.config import Settings
    from rcc.core.formatting import format_message
    from rcc.store.base import StoreError
    from rcc.sync.chat import ChatRoom

    settings = Settings.load()
    room = ChatRoom(
        _create_store(settings),
        on_message=lambda m: typer.echo(format_message(m)),
        retry_delay=settings.resubscribe_delay,
        max_attempts=settings.max_resubscribe_attempts,
    )

    async def _run() -> None:
        await room.load()
        if not room.messages:
            typer.echo("No messages yet.")
        for message in room.messages:
            typer.echo(format_message(message))
        if follow:
            await room.run()

    try:
        asyncio.run(_run())
    except StoreError as e:
        typer.echo(f"Store error: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        typer.echo()


@app.command()
def send(
    username: str = typer.Argument(..., help="Name shown next to the message"),
    message: str = typer.Argument(..., help="Message text"),
):
    """Send a chat message."""
    from rcc.config import Settings
    from rcc.store.base import StoreError
    from rcc.sync.chat import ChatRoom

    settings = Settings.load()
    room = ChatRoom(_create_store(settings))
    try:
        row = asyncio.run(room.send(username, message))
    except StoreError as e:
        typer.echo(f"Error sending message: {e}", err=True)
        raise typer.Exit(1)
    if row is None:
        typer.echo("Nothing to send.")
        return
    typer.echo("Message sent.")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_store(settings):
    try:
        return settings.create_store()
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)


def _print_thread(forest, format_thread) -> None:
    if not forest:
        typer.echo("No comments yet. Be the first to comment!")
        return
    for line in format_thread(forest):
        typer.echo(line)


async def _cast_post_vote(store, identity, post_id: str, value: int):
    """Load the post's counters and the user's vote, then cast through a VoteTracker."""
    from rcc.core.parser import parse_post
    from rcc.core.votes import VoteTally, VoteTracker
    from rcc.store.base import NotAuthenticatedError

    user = identity.current_user()
    if user is None:
        raise NotAuthenticatedError("Please log in to vote")

    rows = await store.query("posts", filters={"id": post_id})
    if not rows:
        raise LookupError(f"post {post_id} not found")
    post = parse_post(rows[0])

    existing = await store.query("post_votes", filters={"post_id": post_id, "user_id": user.id})
    current = int(existing[0]["vote_type"]) if existing else None

    tracker = VoteTracker(
        store,
        identity,
        post_id,
        VoteTally(upvotes=post.upvotes, downvotes=post.downvotes, current=current),
    )
    return await tracker.cast(value)
