"""
Async publish/subscribe bus for progression events.

Purpose
-------
Decouples the progression services from whatever reacts to their outcomes
(level-up celebrations, toasts, analytics, backup schedulers).

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners according to a tiered concurrency model:
  * CRITICAL: sequential, ordered, awaited with timeout
  * HIGH: sequential, ordered, awaited with timeout
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Error isolation: a failing listener is logged and never reaches the
  publisher, so a notification bug cannot fail a committed transaction.

Design Decisions
----------------
- **Instance-based**: tests create their own bus; the application shares
  the module-level `event_bus`.
- **Single-threaded**: all methods are called from one event loop.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from typing import Any, Optional

from src.core.event.router import EventRouter
from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 5.0


class EventBus:
    """
    Tiered async EventBus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("progression.level_up", on_level_up, priority=ListenerPriority.HIGH)
    >>> await bus.publish("progression.level_up", {"profile_id": "p-1", "new_level": 2})
    """

    def __init__(
        self,
        router: Optional[EventRouter] = None,
        *,
        critical_timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        high_timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._router = router or EventRouter()
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._critical_timeout = critical_timeout_seconds
        self._high_timeout = high_timeout_seconds
        self._published_count = 0
        self._listener_errors = 0

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        if not callable(callback):
            raise ValueError(f"Event callback must be callable; got {type(callback).__name__}")

        try:
            signature = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        try:
            signature.bind({})
        except TypeError as exc:
            raise ValueError(
                f"Event callback {callback!r} must accept exactly one payload argument"
            ) from exc

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns
        -------
        str:
            The listener identifier (for unsubscribing later).

        Raises
        ------
        ValueError:
            If the callback cannot accept a single payload argument.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        existing = self._listeners[event_name]
        if any(item.identifier == listener.identifier for item in existing):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        existing.append(listener)
        existing.sort(key=lambda item: item.priority.value)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": listener.once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        """Remove a listener; returns True if one was removed."""
        existing = self._listeners.get(event_name, [])
        remaining = [item for item in existing if item.identifier != identifier]
        removed = len(remaining) != len(existing)

        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove all listeners from all events."""
        total = self.get_listener_count()
        self._listeners.clear()
        logger.info("EventBus: cleared all listeners", extra={"previous_listener_count": total})

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def _extract_listeners(self, event_name: str) -> list[EventListener]:
        matched: list[EventListener] = []
        for pattern in list(self._listeners.keys()):
            if not self._router.matches(event_name, pattern):
                continue
            listeners = self._listeners[pattern]
            matched.extend(listeners)
            # One-shot listeners are pruned before they run
            kept = [item for item in listeners if not item.once]
            if kept:
                self._listeners[pattern] = kept
            else:
                del self._listeners[pattern]

        matched.sort(key=lambda item: item.priority.value)
        return matched

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all subscribed listeners.

        Returns
        -------
        list[Any]:
            Results from CRITICAL/HIGH/NORMAL listeners. LOW-tier listeners
            are fire-and-forget and not included.
        """
        self._published_count += 1
        listeners = self._extract_listeners(event_name)

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )

        if not listeners:
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority is ListenerPriority.CRITICAL:
                results.append(
                    await self._run_with_timeout(listener, event_name, data, self._critical_timeout)
                )
        for listener in listeners:
            if listener.priority is ListenerPriority.HIGH:
                results.append(
                    await self._run_with_timeout(listener, event_name, data, self._high_timeout)
                )

        normal = [item for item in listeners if item.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *[self._run_listener(item, event_name, data) for item in normal]
                )
            )

        loop = asyncio.get_running_loop()
        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                task = loop.create_task(
                    self._run_listener(listener, event_name, data),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        timeout: Optional[float],
    ) -> Any:
        if timeout is None or timeout <= 0:
            return await self._run_listener(listener, event_name, payload)

        try:
            return await asyncio.wait_for(
                self._run_listener(listener, event_name, payload), timeout=timeout
            )
        except asyncio.TimeoutError:
            self._listener_errors += 1
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "timeout_seconds": timeout,
                },
            )
            return None

    async def _run_listener(
        self, listener: EventListener, event_name: str, payload: EventPayload
    ) -> Any:
        try:
            result = listener.callback(payload)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            self._listener_errors += 1
            logger.error(
                "EventBus listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is not None:
            return len(self._listeners.get(event_name, []))
        return sum(len(items) for items in self._listeners.values())

    def get_all_events(self) -> list[str]:
        return sorted(self._listeners.keys())

    def get_metrics_summary(self) -> dict[str, Any]:
        return {
            "published": self._published_count,
            "listener_errors": self._listener_errors,
            "listeners": self.get_listener_count(),
            "background_tasks": len(self._background_tasks),
        }
