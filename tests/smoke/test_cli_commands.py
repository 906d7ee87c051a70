"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.
Each test points the CLI at its own SQLite file through CADENCE_DATABASE_URL.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cadence.db.state_store import StateStore  # noqa: E402


@pytest.fixture
def cli(db_url):
    """Runner bound to a throwaway database."""

    def run(*args: str, timeout: int = 30) -> tuple[int, str, str]:
        """
        Run a CLI command and return exit code, stdout, stderr.

        Args:
            args: Arguments after 'python -m cadence'
            timeout: Maximum time to wait

        Returns:
            Tuple of (exit_code, stdout, stderr)
        """
        env = {
            **os.environ,
            "CADENCE_DATABASE_URL": db_url,
            "CADENCE_SOUND_ENABLED": "false",
            "CADENCE_LOG_LEVEL": "WARNING",
            "CADENCE_TIMEZONE": "UTC",
        }
        result = subprocess.run(
            [sys.executable, "-m", "cadence", *args],
            cwd=PROJECT_ROOT,
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode, result.stdout, result.stderr

    return run


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, cli):
        """Main help should display without errors."""
        code, stdout, stderr = cli("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "Commands" in stdout
        for group in ("card", "task", "focus", "timeline"):
            assert group in stdout

    @pytest.mark.parametrize("group", ["card", "task", "focus"])
    def test_group_help(self, cli, group):
        """Sub-command group help should work."""
        code, stdout, stderr = cli(group, "--help")

        assert code == 0, f"{group} help failed: {stderr}"


class TestCLICards:
    """Test flashcard commands."""

    def test_add_review_and_stats(self, cli, db_url):
        """A card can be added, reviewed and counted."""
        code, stdout, stderr = cli("card", "add", "Capital of Peru?", "Lima", "--deck", "geo")
        assert code == 0, f"card add failed: {stderr}"
        assert "Added card" in stdout

        (card,) = StateStore(db_url).list_items("geo")

        code, stdout, stderr = cli("card", "review", card.item_id, "good")
        assert code == 0, f"card review failed: {stderr}"
        assert "Interval: 1d" in stdout

        code, stdout, stderr = cli("card", "stats", "--deck", "geo")
        assert code == 0, f"card stats failed: {stderr}"
        assert "Total cards" in stdout

    def test_due_on_empty_deck(self, cli):
        """An empty queue is reported, not an error."""
        code, stdout, stderr = cli("card", "due")

        assert code == 0, f"card due failed: {stderr}"
        assert "Nothing due" in stdout

    def test_bad_quality_rejected(self, cli, db_url):
        """An unknown quality exits with code 1."""
        cli("card", "add", "front", "back")
        (card,) = StateStore(db_url).list_items()

        code, stdout, stderr = cli("card", "review", card.item_id, "perfect")
        assert code == 1
        assert "Rejected" in stdout

    def test_unknown_card_rejected(self, cli):
        """Reviewing a missing card exits with code 1."""
        code, stdout, stderr = cli("card", "review", "missing", "good")

        assert code == 1
        assert "not found" in stdout


class TestCLITasks:
    """Test task commands."""

    def test_recurring_task_roundtrip(self, cli, db_url):
        """Completing a monthly task creates the next one, clamped to month end."""
        code, stdout, stderr = cli(
            "task", "add", "Water plants",
            "--due", "2024-01-31 09:00",
            "--every", "monthly",
            "--subtask", "Balcony",
        )
        assert code == 0, f"task add failed: {stderr}"
        assert "every 1 month" in stdout

        (task,) = StateStore(db_url).list_tasks()

        code, stdout, stderr = cli("task", "complete", task.task_id)
        assert code == 0, f"task complete failed: {stderr}"
        assert "Next occurrence" in stdout
        assert "2024-02-29" in stdout

        code, stdout, stderr = cli("task", "list")
        assert code == 0, f"task list failed: {stderr}"
        assert "Water plants" in stdout

    def test_until_date_covers_whole_day(self, cli, db_url):
        """A date-only --until still admits an occurrence later that day."""
        code, stdout, stderr = cli(
            "task", "add", "Weekly review",
            "--due", "2024-01-03 09:00",
            "--every", "weekly",
            "--until", "2024-01-10",
        )
        assert code == 0, f"task add failed: {stderr}"

        (task,) = StateStore(db_url).list_tasks()
        assert task.recurrence_rule.end_at.hour == 23

        code, stdout, stderr = cli("task", "complete", task.task_id)
        assert code == 0, f"task complete failed: {stderr}"
        assert "Next occurrence" in stdout
        assert "2024-01-10" in stdout

    def test_until_with_time_is_exact(self, cli, db_url):
        """An explicit time on --until is kept as given."""
        cli(
            "task", "add", "Weekly review",
            "--due", "2024-01-03 09:00",
            "--every", "weekly",
            "--until", "2024-01-10 08:00",
        )
        (task,) = StateStore(db_url).list_tasks()

        code, stdout, stderr = cli("task", "complete", task.task_id)
        assert code == 0, f"task complete failed: {stderr}"
        assert "Recurrence has ended" in stdout

    def test_list_marks_overdue(self, cli):
        """Past due open tasks are flagged in the list."""
        cli("task", "add", "File taxes", "--due", "2020-04-15 09:00")

        code, stdout, stderr = cli("task", "list")
        assert code == 0, f"task list failed: {stderr}"
        assert "overdue" in stdout

    def test_recurring_task_needs_due_date(self, cli):
        """--every without --due is refused."""
        code, stdout, stderr = cli("task", "add", "Stretch", "--every", "daily")

        assert code == 1

    def test_show_unknown_task(self, cli):
        """Showing a missing task exits with code 1."""
        code, stdout, stderr = cli("task", "show", "missing")

        assert code == 1


class TestCLIFocus:
    """Test focus session commands."""

    def test_start_pause_resume_cancel(self, cli, db_url):
        """A session can be driven through its lifecycle."""
        code, stdout, stderr = cli("focus", "start")
        assert code == 0, f"focus start failed: {stderr}"

        (session,) = StateStore(db_url).active_sessions()

        for command in ("status", "pause", "resume", "cancel"):
            code, stdout, stderr = cli("focus", command, session.session_id)
            assert code == 0, f"focus {command} failed: {stderr}"

        assert "canceled" in stdout

    def test_invalid_transition_rejected(self, cli, db_url):
        """Resuming a running session exits with code 1."""
        cli("focus", "start", "--type", "short_break")
        (session,) = StateStore(db_url).active_sessions()

        code, stdout, stderr = cli("focus", "resume", session.session_id)
        assert code == 1
        assert "Rejected" in stdout

    def test_next_requires_completed(self, cli, db_url):
        """Sequencing a running session exits with code 1."""
        cli("focus", "start")
        (session,) = StateStore(db_url).active_sessions()

        code, stdout, stderr = cli("focus", "next", session.session_id)
        assert code == 1


class TestCLIOverview:
    """Test timeline and status."""

    def test_timeline_empty(self, cli):
        """Timeline on a fresh database should complete."""
        code, stdout, stderr = cli("timeline")

        assert code == 0, f"timeline failed: {stderr}"
        assert "No activity" in stdout

    def test_timeline_after_review(self, cli, db_url):
        """Reviews appear on the timeline."""
        cli("card", "add", "front", "back")
        (card,) = StateStore(db_url).list_items()
        cli("card", "review", card.item_id, "easy")

        code, stdout, stderr = cli("timeline")
        assert code == 0, f"timeline failed: {stderr}"
        assert "Reviewed" in stdout

    def test_timeline_shows_streak(self, cli, db_url):
        """Activity today starts a one-day streak."""
        cli("card", "add", "front", "back")
        (card,) = StateStore(db_url).list_items()
        cli("card", "review", card.item_id, "good")

        code, stdout, stderr = cli("timeline")
        assert code == 0, f"timeline failed: {stderr}"
        assert "Streak: 1 day(s), longest 1" in stdout

    def test_status(self, cli):
        """Status shows store totals."""
        cli("focus", "start")
        code, stdout, stderr = cli("status")

        assert code == 0, f"status failed: {stderr}"
        assert "Focus sessions" in stdout
