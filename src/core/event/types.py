"""
Event bus value types.

Events published by the progression services:

- ``activity.logged`` / ``activity.deleted`` / ``activity.migrated``
- ``progression.level_up`` / ``progression.level_down``
- ``decay.applied``
- ``backup.imported``
- ``profile.reset``
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Payloads stay JSON-friendly so they can be logged verbatim
EventPayload = dict[str, Any]

CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


class ListenerPriority(Enum):
    """
    Execution tier of a listener; lower values run first.

    CRITICAL and HIGH listeners run one at a time with a timeout, NORMAL
    listeners run concurrently, LOW listeners are scheduled and not awaited.
    """

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


@dataclass(slots=True, frozen=True)
class EventListener:
    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> EventListener:
        """
        Wrap `callback`; the default identifier is ``module.qualname@event``.

        >>> EventListener.from_callback("decay.applied", on_decay, ListenerPriority.NORMAL).identifier
        'handlers.on_decay@decay.applied'
        """
        if identifier is None:
            name = getattr(callback, "__qualname__", None) or getattr(callback, "__name__", "callback")
            identifier = f"{getattr(callback, '__module__', 'unknown')}.{name}@{event_name}"
        return cls(callback=callback, priority=priority, identifier=identifier, once=once)
