# src/trimatrix/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Union

from ..core.state import AppState
from ..errors import ValidationError
from ..matrix.quadrants import MATRIX_TITLES, QUADRANTS, Matrix, get_quadrant, matrix_of
from ..tasks.task_models import Task

CommandEmitter = Callable[[str], None]
CommandResult = Union[str, Awaitable[str]]
CommandHandler = Callable[[AppState, list[str], Union[CommandEmitter, None]], CommandResult]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        result = handler(state, parts[1:], emit)
        if inspect.isawaitable(result):
            result = await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("Any line that is not a command is added as a new task.")
        return "\n".join(lines)


registry = CommandRegistry()


def _task_by_number(state: AppState, raw: str | None) -> Task | None:
    """Tasks are addressed by their 1-based position in /list."""
    try:
        n = int(raw or "")
    except ValueError:
        return None
    tasks = state.session.store.list_tasks()
    if 1 <= n <= len(tasks):
        return tasks[n - 1]
    return None


def _render_matrix(state: AppState, matrix: Matrix) -> str:
    session = state.session
    numbers = {t.id: i for i, t in enumerate(session.store.list_tasks(), start=1)}
    progress = session.store.progress()

    lines = [f"Matrix {matrix.value}: {MATRIX_TITLES[matrix]}"]
    for q in QUADRANTS[matrix]:
        lines.append(f"  [{q.key}] {q.title} ({q.label})")
        tasks = session.store.tasks_in(matrix, q.key)
        if not tasks:
            lines.append("      -")
        for t in tasks:
            mark = "x" if t.completed else " "
            lines.append(f"    {numbers[t.id]:>3}. [{mark}] {t.text}")
    lines.append(f"Progress: {progress.completed}/{progress.total} done ({progress.percent}%)")

    if session.is_loading or session.queue.pending:
        lines.append(f"Classifying... (queued: {len(session.queue.pending)}, in flight: {session.queue.in_flight})")
    if session.suggestion is not None:
        lines.append(f"Next up: {session.suggestion.task_text} ({session.suggestion.reason})")
    if session.error:
        lines.append(f"Error: {session.error}")
    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    mode = "OFFLINE DEMO" if state.offline else "ONLINE"
    models = ", ".join(list(getattr(state.llm, "models", []) or [])) or "-"
    progress = session.store.progress()
    return (
        "Status:\n"
        f"  Mode: {mode}\n"
        f"  Models (priority -> fallback): {models}\n"
        f"  Active matrix: {session.active_matrix.value}\n"
        f"  Tasks: {progress.total} ({progress.active} active)\n"
        f"  Queue: {session.queue.state.value}, pending={len(session.queue.pending)}, "
        f"in flight={session.queue.in_flight}, batches sent={session.queue.batches_sent}\n"
        f"  Cached classifications: {len(session.cache)}"
    )


def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    matrix = Matrix.parse(args[0]) if args else state.session.active_matrix
    if matrix is None:
        return "Usage: /list [A|B|C]"
    return _render_matrix(state, matrix)


def cmd_matrix(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    matrix = Matrix.parse(args[0]) if args else None
    if matrix is None:
        return f"Active matrix: {state.session.active_matrix.value}. Usage: /matrix A|B|C"
    state.session.active_matrix = matrix
    return _render_matrix(state, matrix)


def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    task = _task_by_number(state, args[0] if args else None)
    if task is None:
        return "Usage: /done <task number> (see /list)"
    state.session.toggle_completed(task.id)
    return f"{'Reopened' if task.completed else 'Completed'}: {task.text}"


def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    task = _task_by_number(state, args[0] if args else None)
    if task is None:
        return "Usage: /rm <task number> (see /list)"
    state.session.delete(task.id)
    return f"Deleted: {task.text}"


def cmd_move(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/move <n> <key> -> move a task within the active matrix."""
    if len(args) < 2:
        return "Usage: /move <task number> <quadrant key> (e.g. /move 3 Q2)"
    task = _task_by_number(state, args[0])
    if task is None:
        return f"No task number {args[0]}. See /list."

    key = args[1].upper()
    try:
        state.session.move(task.id, key)
    except ValidationError as e:
        owner = matrix_of(key)
        hint = f" Switch with /matrix {owner.value} first." if owner is not None else ""
        return f"Cannot move: {e}.{hint}"
    quadrant = get_quadrant(key)
    label = f" ({quadrant.label})" if quadrant else ""
    return f"Moved: {task.text} -> {key}{label}"


def cmd_clear(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/clear yes -> delete all completed tasks."""
    done = state.session.store.progress().completed
    if not done:
        return "No completed tasks."
    if not args or args[0].lower() not in ("yes", "y"):
        return f"This deletes {done} completed task(s). Confirm with /clear yes."
    removed = state.session.clear_completed()
    return f"Deleted {removed} completed task(s)."


async def cmd_suggest(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("Asking the AI what to do next...")
    suggestion = await state.session.request_suggestion()
    if suggestion is None:
        return state.session.error or "No suggestion (the task list changed meanwhile)."
    return f"Next up: {suggestion.task_text}\n  Why: {suggestion.reason}"


async def cmd_split(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /split <n>          -> ask the AI to break task n into sub-tasks
    /split add all|i j  -> add the chosen sub-tasks and delete task n
    /split cancel       -> drop the proposal
    """
    if args and args[0].lower() == "cancel":
        state.pending_split = None
        return "Split cancelled."

    if args and args[0].lower() == "add":
        if state.pending_split is None:
            return "Nothing to add. Use /split <task number> first."
        parent_id, subtasks = state.pending_split
        picks = args[1:] or ["all"]
        if picks[0].lower() == "all":
            chosen = list(subtasks)
        else:
            chosen = [subtasks[int(p) - 1] for p in picks if p.isdigit() and 1 <= int(p) <= len(subtasks)]
        if not chosen:
            return "No valid sub-task numbers given."
        state.session.add_subtasks(parent_id, chosen)
        state.pending_split = None
        return f"Queued {len(chosen)} sub-task(s); the original task was removed."

    task = _task_by_number(state, args[0] if args else None)
    if task is None:
        return "Usage: /split <task number> | /split add all|<i> <j> ... | /split cancel"

    if emit:
        emit(f"Decomposing: {task.text} ...")
    subtasks = await state.session.decompose(task.id)
    if not subtasks:
        return state.session.error or "Could not generate sub-tasks."
    state.pending_split = (task.id, subtasks)
    lines = [f"Sub-tasks for: {task.text}"]
    lines.extend(f"  {i}. {s}" for i, s in enumerate(subtasks, start=1))
    lines.append("Add them with /split add all (or /split add 1 3), or /split cancel.")
    return "\n".join(lines)


def cmd_share(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    url = state.snapshot.share_url
    if not url:
        return "Nothing to share yet (the task list is empty)."
    return f"Share link (restore with --restore):\n{url}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show mode, models, queue and cache state.")
registry.register("list", cmd_list, help_text="Show a matrix: /list [A|B|C].", aliases=["ls"])
registry.register("matrix", cmd_matrix, help_text="Switch the active matrix: /matrix A|B|C.")
registry.register("done", cmd_done, help_text="Toggle completion: /done <n>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <n>.", aliases=["del"])
registry.register("move", cmd_move, help_text="Move a task in the active matrix: /move <n> <key>.")
registry.register("clear", cmd_clear, help_text="Delete completed tasks: /clear yes.")
registry.register("suggest", cmd_suggest, help_text="Ask the AI which task to do next.")
registry.register("split", cmd_split, help_text="Break a task into sub-tasks: /split <n>.")
registry.register("share", cmd_share, help_text="Print the shareable link for this list.")
