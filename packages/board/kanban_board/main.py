"""
Board CLI entry point.

Loads configuration, configures logging, and runs one board command
against the remote task store.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from kanban_shared.schemas.common import DueBucket, TaskPriority

from .board import KanbanBoard
from .config import load_config
from .errors import BoardValidationError
from .events import GestureAdapter
from .filters import BoardFilters


def configure_logging(level: str = "info", fmt: str = "text") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def render(board: KanbanBoard) -> str:
    lines = []
    for board_list, tasks in board.columns():
        lines.append(f"{board_list.emoji} {board_list.name} ({len(tasks)})  [{board_list.id}]")
        for task in tasks:
            due = f"  due {task.due_date:%Y-%m-%d}" if task.due_date else ""
            lines.append(f"   {task.order:>3}. {task.title}  <{task.priority.value}>{due}  [{task.id}]")
    return "\n".join(lines)


async def _run_command(board: KanbanBoard, args: argparse.Namespace) -> int:
    if args.command == "show":
        board.set_filters(
            BoardFilters(
                search=args.search,
                assignee=args.assignee,
                priority=TaskPriority(args.priority) if args.priority else None,
                due=DueBucket(args.due),
            )
        )
        print(render(board))
        return 0

    if args.command == "add-list":
        created = await board.lists.create_list(args.name, color=args.color, emoji=args.emoji)
        return 0 if created else 1

    if args.command == "delete-list":
        return 0 if await board.lists.delete_list(args.list_id) else 1

    if args.command == "move":
        gestures = GestureAdapter(board.engine)
        payload = {"active": {"id": args.task_id}, "over": {"id": args.over_id}}
        gestures.feed("dragStart", payload)
        gestures.feed("dragOver", payload)
        commit = gestures.feed("dragEnd", payload)
        await board.sync.drain()
        print(f"{commit.kind.value}: {commit.task_id}")
        return 0

    if args.command == "comment":
        updated = await board.sync.add_comment(args.task_id, args.text, args.author)
        return 0 if updated else 1

    return 2


async def _main(args: argparse.Namespace, config) -> int:
    board = KanbanBoard(config)
    try:
        if not await board.start():
            print("Error: could not load the board from the task store", file=sys.stderr)
            return 1
        return await _run_command(board, args)
    except BoardValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await board.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Kanban board ordering & sync client")
    parser.add_argument(
        "-c", "--config",
        default="kanban-board.yaml",
        help="Path to configuration file (default: kanban-board.yaml)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print the board columns")
    show.add_argument("--search", default="")
    show.add_argument("--assignee", default=None)
    show.add_argument("--priority", choices=[p.value for p in TaskPriority], default=None)
    show.add_argument("--due", choices=[b.value for b in DueBucket], default=DueBucket.NONE.value)

    add_list = sub.add_parser("add-list", help="Create a column")
    add_list.add_argument("name")
    add_list.add_argument("--color", default=None)
    add_list.add_argument("--emoji", default=None)

    delete_list = sub.add_parser("delete-list", help="Delete a column")
    delete_list.add_argument("list_id")

    move = sub.add_parser("move", help="Drag a task onto a column or another task")
    move.add_argument("task_id")
    move.add_argument("over_id")

    comment = sub.add_parser("comment", help="Append a comment to a task")
    comment.add_argument("task_id")
    comment.add_argument("text")
    comment.add_argument("--author", default="cli")
    return parser


def run() -> None:
    """CLI entry point for the board client."""
    args = build_parser().parse_args()

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level, config.logging.format)
    log = structlog.get_logger()
    log.info("board.config_loaded", config_path=args.config, command=args.command)

    try:
        sys.exit(asyncio.run(_main(args, config)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
