"""Sessions - active session tracking and plan limits."""

from shareguard.sessions.registry import SessionRegistry, max_sessions_for

__all__ = ["SessionRegistry", "max_sessions_for"]
