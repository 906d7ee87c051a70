"""
Cadence: terminal interface for the scheduling core.

Commands:
- cadence card add/review/due/stats   - Spaced repetition flashcards
- cadence task add/complete/show/list - Recurring tasks
- cadence focus start/status/pause/resume/cancel/next - Pomodoro sessions
- cadence timeline                    - Recent activity
- cadence status                      - Store summary and live sessions
"""
from __future__ import annotations

import sys
from datetime import datetime, time
from typing import List, Optional

import typer
from dateutil import parser as date_parser
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from cadence.core.clock import SystemClock
from cadence.core.errors import SchedulingError
from cadence.db.state_store import StateStore
from cadence.notifications import ConsoleNotifier
from cadence.orchestrator import StudyOrchestrator
from cadence.study.review_scheduler import MemorizationItem
from cadence.study.session_timer import FocusSession, SessionType
from cadence.tasks.recurrence import RecurrenceRule, RecurrenceType, RecurringTaskInstance, TaskStatus
from cadence.timeline.events import (
    CardReviewed,
    FocusSessionFinished,
    TaskCompleted,
    TaskRecurred,
    group_by_day,
    streak,
    total_focus_minutes,
)


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="cadence",
    help="Cadence: spaced repetition, recurring tasks and focus sessions",
    no_args_is_help=True,
)
card_app = typer.Typer(help="Flashcards and spaced repetition", no_args_is_help=True)
task_app = typer.Typer(help="Recurring tasks", no_args_is_help=True)
focus_app = typer.Typer(help="Pomodoro focus sessions", no_args_is_help=True)
app.add_typer(card_app, name="card")
app.add_typer(task_app, name="task")
app.add_typer(focus_app, name="focus")

console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "ok": "bold green",
    "error": "bold red",
    "info": "bold cyan",
    "dim": "dim",
    "mastery": {
        "new": "blue",
        "learning": "yellow",
        "review": "cyan",
        "mastered": "green",
    },
    "session": {
        "focus": "magenta",
        "short_break": "green",
        "long_break": "bright_green",
    },
}


def style_mastery(state: str) -> str:
    color = STYLES["mastery"].get(state, "white")
    return f"[{color}]{state}[/{color}]"


def style_session(session_type: str) -> str:
    color = STYLES["session"].get(session_type, "white")
    return f"[{color}]{session_type.replace('_', ' ')}[/{color}]"


# =============================================================================
# Wiring
# =============================================================================

def build_orchestrator() -> StudyOrchestrator:
    """Assemble the orchestrator from settings."""
    settings = get_settings()
    return StudyOrchestrator(
        repository=StateStore(settings.database_url),
        clock=SystemClock(settings.timezone),
        review_policy=settings.review_policy(),
        cycle_config=settings.cycle_config(),
        notifier=ConsoleNotifier(
            console,
            sound_enabled=settings.sound_enabled,
            vibration_enabled=settings.vibration_enabled,
        ),
    )


def parse_when(
    value: str | None,
    clock: SystemClock | None = None,
    end_of_day: bool = False,
) -> datetime | None:
    """
    Parse a user-supplied date; naive values are read in the configured zone.

    With end_of_day, a value without a time of day means the last moment
    of that day, so "--until 2024-01-10" still admits a 09:00 occurrence
    on the 10th.
    """
    if value is None:
        return None
    clock = clock or SystemClock(get_settings().timezone)
    # Fields missing from the input are taken from the default
    today = clock.now().date()
    try:
        parsed = date_parser.parse(value, default=datetime.combine(today, time.min), fuzzy=True)
        if end_of_day:
            latest = date_parser.parse(value, default=datetime.combine(today, time.max), fuzzy=True)
            if (latest.hour, latest.minute) != (parsed.hour, parsed.minute):
                parsed = latest
    except (ValueError, OverflowError) as exc:
        raise typer.BadParameter(f"Cannot parse date {value!r}: {exc}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=clock.zone)
    return parsed


def reject(exc: SchedulingError) -> None:
    """Report a rejected action and exit non-zero."""
    logger.warning(f"Rejected: {exc}")
    console.print(f"[{STYLES['error']}]Rejected:[/{STYLES['error']}] {exc}")
    raise typer.Exit(1)


# =============================================================================
# Display Helpers
# =============================================================================

def display_item(item: MemorizationItem) -> None:
    content = (
        f"[bold]{item.front}[/bold]\n{item.back}\n\n"
        f"State: {style_mastery(item.mastery_state.value)}  |  "
        f"Interval: {item.interval_days}d  |  "
        f"Ease: {item.ease_factor:.2f}  |  "
        f"Reps: {item.repetition_count}\n"
        f"Next review: {item.next_review_at:%Y-%m-%d %H:%M}"
    )
    console.print(Panel(content, title=f"Card {item.item_id}", title_align="left", border_style="cyan"))


def display_task(task: RecurringTaskInstance) -> None:
    lines = [f"[bold]{task.title}[/bold]  ({task.status.value})"]
    if task.due_at:
        lines.append(f"Due: {task.due_at:%Y-%m-%d %H:%M}")
    if task.recurrence_rule:
        lines.append(f"Repeats {task.recurrence_rule.describe()}")
    for subtask in task.subtasks:
        mark = "[green]x[/green]" if subtask.completed else " "
        lines.append(f"  [{mark}] {subtask.title}")
    console.print(Panel("\n".join(lines), title=f"Task {task.task_id}", title_align="left", border_style="cyan"))


def display_session(session: FocusSession) -> None:
    remaining = session.remaining_seconds
    content = (
        f"{style_session(session.session_type.value)}  |  {session.state.value}\n"
        f"Elapsed: {session.elapsed_seconds // 60:02d}:{session.elapsed_seconds % 60:02d}  "
        f"Remaining: {remaining // 60:02d}:{remaining % 60:02d}  "
        f"({session.progress * 100:.0f}%)\n"
        f"Focus sessions this cycle: {session.completed_focus_count}"
    )
    console.print(Panel(content, title=f"Session {session.session_id}", title_align="left", border_style="magenta"))


# =============================================================================
# Flashcards
# =============================================================================

@card_app.command("add")
def card_add(
    front: str = typer.Argument(..., help="Question / term"),
    back: str = typer.Argument(..., help="Answer / definition"),
    deck: str = typer.Option("default", "--deck", "-d", help="Deck id"),
) -> None:
    """Add a flashcard (due immediately)."""
    item = build_orchestrator().add_card(front, back, deck_id=deck)
    console.print(f"[{STYLES['ok']}]Added card {item.item_id}[/{STYLES['ok']}]")


@card_app.command("review")
def card_review(
    item_id: str = typer.Argument(..., help="Card id"),
    quality: str = typer.Argument(..., help="again | hard | good | easy"),
) -> None:
    """Record how well a card was recalled."""
    try:
        item = build_orchestrator().review_card(item_id, quality)
    except SchedulingError as exc:
        reject(exc)
    display_item(item)


@card_app.command("due")
def card_due(
    deck: Optional[str] = typer.Option(None, "--deck", "-d", help="Only this deck"),
    max_new: Optional[int] = typer.Option(None, "--new", "-n", help="New cards to include"),
) -> None:
    """Show the study queue: due cards first, then new ones."""
    settings = get_settings()
    queue = build_orchestrator().study_queue(
        deck, max_new=settings.cards_per_session if max_new is None else max_new
    )
    if not queue:
        console.print("[dim]Nothing due. Come back later.[/dim]")
        return

    table = Table(title="Study Queue")
    table.add_column("ID")
    table.add_column("Front")
    table.add_column("State")
    table.add_column("Due")
    for item in queue:
        table.add_row(
            item.item_id,
            item.front,
            style_mastery(item.mastery_state.value),
            f"{item.next_review_at:%Y-%m-%d}",
        )
    console.print(table)


@card_app.command("stats")
def card_stats(
    deck: Optional[str] = typer.Option(None, "--deck", "-d", help="Only this deck"),
) -> None:
    """Show deck progress by mastery state."""
    stats = build_orchestrator().deck_stats(deck)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Total cards", str(stats.total))
    table.add_row("Due now", str(stats.due))
    for state, count in stats.by_state.items():
        table.add_row(style_mastery(state), str(count))

    console.print("\n[bold cyan]Deck Statistics[/bold cyan]")
    console.print(table)


# =============================================================================
# Tasks
# =============================================================================

@task_app.command("add")
def task_add(
    title: str = typer.Argument(..., help="Task title"),
    due: Optional[str] = typer.Option(None, "--due", help="Due date, e.g. '2024-01-31 09:00'"),
    every: Optional[RecurrenceType] = typer.Option(None, "--every", help="Repeat cadence"),
    interval: int = typer.Option(1, "--interval", "-i", help="Repeat every N units"),
    until: Optional[str] = typer.Option(None, "--until", help="Last permissible due date"),
    subtask: Optional[List[str]] = typer.Option(None, "--subtask", "-s", help="Subtask title (repeatable)"),
) -> None:
    """Create a task, optionally recurring."""
    due_at = parse_when(due)
    if every is not None and due_at is None:
        console.print(f"[{STYLES['error']}]Recurring tasks need --due[/{STYLES['error']}]")
        raise typer.Exit(1)

    try:
        rule = RecurrenceRule(every, interval, parse_when(until, end_of_day=True)) if every else None
        task = build_orchestrator().add_task(title, due_at, rule, subtask or [])
    except SchedulingError as exc:
        reject(exc)
    display_task(task)


@task_app.command("complete")
def task_complete(task_id: str = typer.Argument(..., help="Task id")) -> None:
    """Complete a task; recurring tasks schedule their next occurrence."""
    try:
        result = build_orchestrator().complete_task(task_id)
    except SchedulingError as exc:
        reject(exc)

    console.print(f"[{STYLES['ok']}]Completed '{result.completed.title}'[/{STYLES['ok']}]")
    if result.successor is not None:
        console.print("Next occurrence:")
        display_task(result.successor)
    elif result.recurrence_ended:
        console.print("[yellow]Recurrence has ended; no further occurrences.[/yellow]")


@task_app.command("show")
def task_show(task_id: str = typer.Argument(..., help="Task id")) -> None:
    """Show one task with its subtasks."""
    store = StateStore(get_settings().database_url)
    try:
        task = store.load_task(task_id)
    except SchedulingError as exc:
        reject(exc)
    display_task(task)


@task_app.command("list")
def task_list(
    all_tasks: bool = typer.Option(False, "--all", "-a", help="Include completed tasks"),
) -> None:
    """List tasks by due date."""
    store = StateStore(get_settings().database_url)
    now = SystemClock(get_settings().timezone).now()
    tasks = store.list_tasks(None if all_tasks else TaskStatus.OPEN)
    if not tasks:
        console.print("[dim]No tasks.[/dim]")
        return

    table = Table(title="Tasks")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Due")
    table.add_column("Repeats")
    table.add_column("Status")
    for task in tasks:
        due = "-"
        if task.due_at:
            due = f"{task.due_at.astimezone(now.tzinfo):%Y-%m-%d}"
            if task.is_overdue(now):
                due = f"[red]{due} overdue[/red]"
            elif task.is_due_today(now):
                due = f"[yellow]{due} today[/yellow]"
        table.add_row(
            task.task_id,
            task.title,
            due,
            task.recurrence_rule.describe() if task.recurrence_rule else "-",
            task.status.value,
        )
    console.print(table)


# =============================================================================
# Focus Sessions
# =============================================================================

@focus_app.command("start")
def focus_start(
    session_type: SessionType = typer.Option(SessionType.FOCUS, "--type", "-t", help="Session type"),
    task_id: Optional[str] = typer.Option(None, "--task", help="Attribute the session to a task"),
    count: int = typer.Option(0, "--count", help="Focus sessions already completed this cycle"),
) -> None:
    """Start a focus or break session."""
    try:
        session = build_orchestrator().start_focus(session_type, task_id=task_id, completed_focus_count=count)
    except SchedulingError as exc:
        reject(exc)
    display_session(session)


@focus_app.command("status")
def focus_status(session_id: str = typer.Argument(..., help="Session id")) -> None:
    """Show a session, catching it up with the clock."""
    try:
        session = build_orchestrator().sync_focus(session_id)
    except SchedulingError as exc:
        reject(exc)
    display_session(session)


@focus_app.command("pause")
def focus_pause(session_id: str = typer.Argument(..., help="Session id")) -> None:
    """Pause a running session."""
    try:
        session = build_orchestrator().pause_focus(session_id)
    except SchedulingError as exc:
        reject(exc)
    display_session(session)


@focus_app.command("resume")
def focus_resume(session_id: str = typer.Argument(..., help="Session id")) -> None:
    """Resume a paused session."""
    try:
        session = build_orchestrator().resume_focus(session_id)
    except SchedulingError as exc:
        reject(exc)
    display_session(session)


@focus_app.command("cancel")
def focus_cancel(session_id: str = typer.Argument(..., help="Session id")) -> None:
    """Cancel a running or paused session."""
    try:
        session = build_orchestrator().cancel_focus(session_id)
    except SchedulingError as exc:
        reject(exc)
    display_session(session)


@focus_app.command("next")
def focus_next(
    session_id: str = typer.Argument(..., help="Completed session id"),
    start: bool = typer.Option(False, "--start", help="Start the next session now"),
) -> None:
    """Decide (and optionally start) the session after a completed one."""
    try:
        decision = build_orchestrator().next_focus(session_id, start=start)
    except SchedulingError as exc:
        reject(exc)

    console.print(
        f"Next: {style_session(decision.next_type.value)} "
        f"(focus sessions this cycle: {decision.completed_focus_count})"
    )
    if decision.session is not None:
        display_session(decision.session)
    else:
        console.print(
            f"[dim]Start it with: cadence focus start --type {decision.next_type.value} "
            f"--count {decision.completed_focus_count}[/dim]"
        )


# =============================================================================
# Timeline
# =============================================================================

@app.command()
def timeline(
    limit: int = typer.Option(20, "--limit", "-l", help="Number of activities"),
) -> None:
    """Show recent activity grouped by day, with the activity streak."""
    settings = get_settings()
    store = StateStore(settings.database_url)
    now = SystemClock(settings.timezone).now()
    activities = store.recent_activities(limit=limit)
    if not activities:
        console.print("[dim]No activity yet.[/dim]")
        return

    table = Table(title="Timeline")
    table.add_column("When")
    table.add_column("What")
    table.add_column("Details", style="dim")
    for day in group_by_day(activities, now.tzinfo):
        for activity in day.activities:
            if isinstance(activity, CardReviewed):
                details = f"{activity.quality} -> {activity.interval_days}d ({activity.mastery_state})"
            elif isinstance(activity, TaskCompleted):
                details = "recurrence ended" if activity.recurrence_ended else ""
            elif isinstance(activity, TaskRecurred):
                details = f"next due {activity.next_due_at.astimezone(now.tzinfo):%Y-%m-%d}"
            elif isinstance(activity, FocusSessionFinished):
                details = f"{activity.elapsed_seconds // 60}/{activity.duration_seconds // 60} min"
            else:
                details = ""
            table.add_row(f"{activity.occurred_at.astimezone(now.tzinfo):%Y-%m-%d %H:%M}", activity.title, details)
        table.add_section()

    console.print(table)
    console.print(f"Focus time shown: {total_focus_minutes(activities)} min")

    days = streak(store.recent_activities(limit=None), now.date(), now.tzinfo)
    console.print(f"Streak: {days.current} day(s), longest {days.longest}")


@app.command()
def status() -> None:
    """Show store totals and sessions still in progress."""
    store = StateStore(get_settings().database_url)
    stats = store.get_stats()

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Cards", str(stats["items"]))
    table.add_row("Tasks", str(stats["tasks"]))
    table.add_row("Focus sessions", str(stats["sessions"]))
    table.add_row("Activities", str(stats["activities"]))

    console.print("\n[bold cyan]Cadence Status[/bold cyan]")
    console.print(table)

    for session in store.active_sessions():
        display_session(session)


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")

    app()


if __name__ == "__main__":
    main()
