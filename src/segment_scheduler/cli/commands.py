# src/segment_scheduler/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.state import AppState
from ..segments.errors import SegmentError
from ..segments.models import UNASSIGNED, ResolvedSpan

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console loop (/help, /resolve, ...)."""

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

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Engine errors and malformed arguments become one-line replies.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args)
        except (SegmentError, ValueError) as e:
            logger.debug("/%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ints(args: list[str], n_min: int, n_max: int, usage: str) -> list[int]:
    if not (n_min <= len(args) <= n_max):
        raise ValueError(f"usage: {usage}")
    return [int(a) for a in args]


def _label(resolution: object) -> str:
    if resolution == UNASSIGNED:
        return "unassigned"
    return f"segment {resolution}"


def _format_span(span: ResolvedSpan) -> str:
    if span.is_conflict:
        ids = ", ".join(str(c) for c in span.resolution.candidates)  # type: ignore[union-attr]
        what = f"CONFLICT between segments {ids}"
    else:
        what = _label(span.resolution)
    return f"  [{span.start}, {span.end}) {what}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    resolver = state.resolver
    return (
        "Status:\n"
        f"  Segments: {len(resolver.segments())}\n"
        f"  Override ranges: {len(resolver.ranges())}\n"
        f"  Strict schedules: {'ON' if resolver.strict else 'OFF'}\n"
        f"  Database: {getattr(state.settings, 'db_path', '?')}"
    )


def cmd_segments(state: AppState, args: list[str]) -> str:
    segs = state.resolver.segments()
    if not segs:
        return "No segments defined."
    lines = ["Segments:"]
    for s in segs:
        window = "" if s.window is None else f" window={s.window}"
        lines.append(f"  {s.id}. {s.name} start={s.start} period={s.period}{window}")
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <name> <start> <period> [window]"""
    if len(args) < 3:
        return "Usage: /add <name> <start> <period> [window]"
    name = args[0]
    start, period, *rest = _ints(args[1:], 2, 3, "/add <name> <start> <period> [window]")
    window = rest[0] if rest else None
    segment_id = state.resolver.create_segment(name, start, period, window)
    return f"Created segment {segment_id} ({name})."


def cmd_redefine(state: AppState, args: list[str]) -> str:
    """/redefine <id> <start> <period> [window]"""
    segment_id, start, period, *rest = _ints(args, 3, 4, "/redefine <id> <start> <period> [window]")
    window = rest[0] if rest else None
    seg = state.resolver.redefine_segment(segment_id, start, period, window)
    return f"Segment {seg.id} now starts at {seg.start} every {seg.period}."


def cmd_delete(state: AppState, args: list[str]) -> str:
    (segment_id,) = _ints(args, 1, 1, "/delete <id>")
    state.resolver.delete_segment(segment_id)
    return f"Deleted segment {segment_id}."


def cmd_override(state: AppState, args: list[str]) -> str:
    segment_id, start, end = _ints(args, 3, 3, "/override <segment_id> <start> <end>")
    stored = state.resolver.add_override_range(segment_id, start, end)
    return f"Override stored: segment {stored.segment_id} [{stored.start}, {stored.end})."


def cmd_unoverride(state: AppState, args: list[str]) -> str:
    segment_id, start, end = _ints(args, 3, 3, "/unoverride <segment_id> <start> <end>")
    state.resolver.remove_override_range(segment_id, start, end)
    return f"Override removed: segment {segment_id} [{start}, {end})."


def cmd_overrides(state: AppState, args: list[str]) -> str:
    ranges = state.resolver.ranges()
    if not ranges:
        return "No override ranges."
    lines = ["Override ranges:"]
    lines.extend(f"  segment {r.segment_id} [{r.start}, {r.end})" for r in ranges)
    return "\n".join(lines)


def cmd_resolve(state: AppState, args: list[str]) -> str:
    (instant,) = _ints(args, 1, 1, "/resolve <instant>")
    return f"{instant} -> {_label(state.resolver.resolve(instant))}"


def cmd_timetable(state: AppState, args: list[str]) -> str:
    lo, hi = _ints(args, 2, 2, "/timetable <lo> <hi>")
    spans = state.resolver.resolve_range(lo, hi)
    return "\n".join([f"Timetable [{lo}, {hi}):", *(_format_span(s) for s in spans)])


def cmd_validate(state: AppState, args: list[str]) -> str:
    (segment_id,) = _ints(args, 1, 1, "/validate <time_segment_id>")
    state.resolver.validate_binding(segment_id)
    return f"time_segment_id={segment_id} is valid."


def cmd_check(state: AppState, args: list[str]) -> str:
    conflicts = state.resolver.validate_all()
    if not conflicts:
        return "No overlapping recurrences."
    pairs = ", ".join(f"{a}/{b}" for a, b in conflicts)
    return f"Overlapping recurrences: {pairs}"


def cmd_task(state: AppState, args: list[str]) -> str:
    """/task <time_segment_id> <description...>"""
    if len(args) < 2:
        return "Usage: /task <time_segment_id> <description>"
    segment_id = int(args[0])
    state.resolver.validate_binding(segment_id)
    task_id = state.store.add_task(" ".join(args[1:]), time_segment_id=segment_id)
    return f"Task {task_id} bound to {_label(segment_id)}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show engine status.")
registry.register("segments", cmd_segments, help_text="List segments.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Create a segment: /add <name> <start> <period> [window].")
registry.register(
    "redefine", cmd_redefine, help_text="Change a recurrence: /redefine <id> <start> <period> [window]."
)
registry.register("delete", cmd_delete, help_text="Delete an unused segment: /delete <id>.")
registry.register("override", cmd_override, help_text="Pin a range: /override <segment_id> <start> <end>.")
registry.register(
    "unoverride", cmd_unoverride, help_text="Unpin a range: /unoverride <segment_id> <start> <end>."
)
registry.register("overrides", cmd_overrides, help_text="List override ranges.")
registry.register("resolve", cmd_resolve, help_text="Resolve an instant: /resolve <instant>.")
registry.register("timetable", cmd_timetable, help_text="Resolve a window: /timetable <lo> <hi>.")
registry.register("validate", cmd_validate, help_text="Check a task binding: /validate <time_segment_id>.")
registry.register("check", cmd_check, help_text="List overlapping recurrences.")
registry.register("task", cmd_task, help_text="Add a bound task: /task <time_segment_id> <description>.")
