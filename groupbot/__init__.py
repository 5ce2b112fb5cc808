"""Group chat bot features: reminders, group management, sign-in scores, sleep tracking and more."""

__version__ = "0.1.0"