"""
Cadence: study and productivity scheduling core.

Three pure engines decide when a flashcard resurfaces, when a recurring
task regenerates and how a Pomodoro session progresses. The orchestrator,
SQLite state store and terminal CLI wrap them for day-to-day use.
"""

__version__ = "1.0.0"
