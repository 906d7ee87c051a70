"""
Notification collaborators.

Invoked by the orchestrator when a focus session completes; the timer
itself only reports the transition.
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger
from rich.console import Console

from cadence.study.session_timer import FocusSession, SessionType

_LABELS = {
    SessionType.FOCUS: "Focus",
    SessionType.SHORT_BREAK: "Short break",
    SessionType.LONG_BREAK: "Long break",
}


class Notifier(Protocol):
    def session_completed(self, session: FocusSession) -> None: ...


class ConsoleNotifier:
    """Terminal notifier: prints a message and rings the bell if sound is on."""

    def __init__(
        self,
        console: Console | None = None,
        sound_enabled: bool = True,
        vibration_enabled: bool = True,
    ):
        self.console = console or Console()
        self.sound_enabled = sound_enabled
        # Terminals cannot vibrate; kept so settings round-trip to richer notifiers
        self.vibration_enabled = vibration_enabled

    def session_completed(self, session: FocusSession) -> None:
        label = _LABELS[session.session_type]
        minutes = session.duration_seconds // 60
        self.console.print(f"[bold green]{label} session complete[/bold green] ({minutes} min)")
        if self.sound_enabled:
            self.console.bell()
        logger.debug(f"Notified completion of {session.session_id}")


class NullNotifier:
    """Notifier that does nothing."""

    def session_completed(self, session: FocusSession) -> None:
        return None
