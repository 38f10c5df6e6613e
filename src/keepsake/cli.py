"""Command-line front end.

Thin collaborator over the sync engine: every command loads the working
set, performs one action, prints the resulting state and closes.
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path

from .config import KeepsakeConfig, load_config
from .environment import LocalEnvironment
from .logging import configure_logger
from .media import DisplayHandleCache
from .memory import LocalStore, MediaFile, Memory, SortMode
from .remote import create_gateway
from .sync import SyncEngine
from .view import MemoryViewModel

Handler = Callable[[SyncEngine, argparse.Namespace], Awaitable[int]]


def build_engine(config: KeepsakeConfig) -> SyncEngine:
    """Wire the store, gateway, environment and view model for a config."""
    store = LocalStore(config.db_path)
    store.init_db()

    online = False if config.force_offline else None
    environment = LocalEnvironment(store, remote_url=config.supabase_url, online=online)
    view = MemoryViewModel(DisplayHandleCache(config.media_dir))
    journal = configure_logger(config.log_dir)

    return SyncEngine(
        store,
        create_gateway(config),
        environment,
        view=view,
        journal=journal,
    )


def _format_memory(memory: Memory, liked: bool) -> str:
    """One line per memory."""
    created = datetime.fromtimestamp(memory.created_at / 1000).strftime("%Y-%m-%d %H:%M")
    heart = "♥" if liked else "♡"
    local = " [local]" if memory.has_local_payload else ""
    return (
        f"{memory.id[:12]:<12}  {memory.year:<6} {heart} {memory.likes:<4} "
        f"{len(memory.comments):>3} comments  {created}  {memory.title}{local}"
    )


async def cmd_list(engine: SyncEngine, args: argparse.Namespace) -> int:
    """List memories in time or heat order."""
    engine.view.sort_mode = SortMode(args.sort)
    memories = engine.view.sorted_memories
    if not memories:
        print("No memories yet.")
        return 0

    for memory in memories:
        print(_format_memory(memory, engine.is_liked(memory.id)))
    print(f"\nTotal: {len(memories)} memory(ies)")
    return 0


async def cmd_years(engine: SyncEngine, args: argparse.Namespace) -> int:
    """Show memories grouped by year."""
    groups = engine.view.grouped_by_year
    if not groups:
        print("No memories yet.")
        return 0

    for group in groups:
        print(f"\n{group.year}")
        print("-" * 40)
        for memory in group.items:
            print(f"  {memory.title}")
    return 0


async def cmd_add(engine: SyncEngine, args: argparse.Namespace) -> int:
    """Add a memory from a media file."""
    path = Path(args.path)
    if not path.is_file():
        print(f"Error: File not found: {path}")
        return 1

    memory = await engine.add_memory(
        MediaFile.from_path(path),
        title=args.title,
        year=args.year,
        story=args.story or "",
    )
    where = "locally (pending sync)" if memory.has_local_payload else "and uploaded"
    print(f"Added {memory.id} {where}")
    return 0


async def cmd_like(engine: SyncEngine, args: argparse.Namespace) -> int:
    """Toggle a like on a memory."""
    memory = await engine.toggle_like(args.id)
    if memory is None:
        print(f"Error: Memory '{args.id}' not found.")
        return 1
    state = "Liked" if engine.is_liked(memory.id) else "Unliked"
    print(f"{state} {memory.id} ({memory.likes} likes)")
    return 0


async def cmd_comment(engine: SyncEngine, args: argparse.Namespace) -> int:
    """Comment on a memory."""
    if engine.view.get(args.id) is None:
        print(f"Error: Memory '{args.id}' not found.")
        return 1
    comment = await engine.add_comment(args.id, args.content, author=args.author)
    if comment is None:
        print("Error: Comment cannot be empty.")
        return 1
    print(f"{comment.author}: {comment.content}")
    return 0


async def cmd_delete(engine: SyncEngine, args: argparse.Namespace) -> int:
    """Delete a memory owned by this installation."""
    if await engine.delete_memory(args.id):
        print(f"Deleted {args.id}")
        return 0
    print(f"Error: Cannot delete '{args.id}' (not found or not yours).")
    return 1


async def cmd_reconcile(engine: SyncEngine, args: argparse.Namespace) -> int:
    """Push local-only memories to the backend."""
    if not engine.is_online:
        print("Offline: nothing to reconcile.")
        return 1
    count = await engine.reconcile()
    print(f"Reconciled {count} memory(ies), status: {engine.status.value}")
    return 0


async def cmd_status(engine: SyncEngine, args: argparse.Namespace) -> int:
    """Show sync state."""
    pending = sum(1 for m in engine.view.memories if m.has_local_payload)
    print(f"Online: {'yes' if engine.is_online else 'no'}")
    print(f"Remote configured: {'yes' if engine.gateway.configured else 'no'}")
    print(f"Sync status: {engine.status.value}")
    print(f"Memories: {len(engine.view.memories)} ({pending} local-only)")
    print(f"User id: {await engine.identity.current_id()}")
    return 0


COMMANDS: dict[str, Handler] = {
    "list": cmd_list,
    "years": cmd_years,
    "add": cmd_add,
    "like": cmd_like,
    "comment": cmd_comment,
    "delete": cmd_delete,
    "reconcile": cmd_reconcile,
    "status": cmd_status,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="keepsake",
        description="Share memories offline-first",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    list_parser = subparsers.add_parser("list", help="List memories")
    list_parser.add_argument(
        "-s", "--sort",
        choices=[mode.value for mode in SortMode],
        default=SortMode.TIME.value,
        help="Order by time or heat (likes)",
    )

    subparsers.add_parser("years", help="List memories grouped by year")

    add_parser = subparsers.add_parser("add", help="Add a memory")
    add_parser.add_argument("path", help="Image or video file")
    add_parser.add_argument("-t", "--title", required=True, help="Title")
    add_parser.add_argument("-y", "--year", required=True, help="Year of the memory")
    add_parser.add_argument("--story", help="The story behind it")

    like_parser = subparsers.add_parser("like", help="Like or unlike a memory")
    like_parser.add_argument("id", help="Memory id")

    comment_parser = subparsers.add_parser("comment", help="Comment on a memory")
    comment_parser.add_argument("id", help="Memory id")
    comment_parser.add_argument("content", help="Comment text")
    comment_parser.add_argument("-a", "--author", help="Your name")

    delete_parser = subparsers.add_parser("delete", help="Delete one of your memories")
    delete_parser.add_argument("id", help="Memory id")

    subparsers.add_parser("reconcile", help="Push local-only memories to the backend")
    subparsers.add_parser("status", help="Show sync status")

    return parser


async def _run(handler: Handler, args: argparse.Namespace, config: KeepsakeConfig) -> int:
    engine = build_engine(config)
    try:
        await engine.load()
        return await handler(engine, args)
    finally:
        await engine.close()


def run_cli(argv: list[str] | None = None, config: KeepsakeConfig | None = None) -> int:
    """Run the CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.
        config: Configuration. Loaded from the environment if None.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return asyncio.run(_run(handler, args, config or load_config()))


if __name__ == "__main__":
    sys.exit(run_cli())
