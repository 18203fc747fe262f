"""
Append-only audit logging.
"""

from src.kernel.events.event_store import EventStore

__all__ = [
    "EventStore",
]
