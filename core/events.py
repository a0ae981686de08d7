"""
Event Bus - Best-effort publish/subscribe for execution events.

Publishing sits off the critical path of the agent loop: handlers run on a
small thread pool and their failures are logged, never raised back into
the run that published the event.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

TOOL_EXECUTED = "tool_executed"

EventHandler = Callable[[Any], None]


@dataclass(frozen=True)
class ExecutionEvent:
    """Published after every tool execution. Observability only."""
    tool: str
    args: Dict[str, Any]
    result: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    run_id: Optional[str] = None


class EventBus:
    """
    Topic-based event bus.

    Args:
        synchronous: Deliver inline instead of on the thread pool. Handler
            errors are still swallowed and logged.
        max_workers: Size of the delivery pool
    """

    def __init__(self, synchronous: bool = False, max_workers: int = 2):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._lock = threading.Lock()
        self._synchronous = synchronous
        self._executor: Optional[ThreadPoolExecutor] = None
        if not synchronous:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="event-bus",
            )

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Register a handler for a topic."""
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)

    def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        with self._lock:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, topic: str, payload: Any) -> None:
        """
        Deliver a payload to every handler of the topic.

        Returns immediately when delivery is asynchronous.
        """
        with self._lock:
            handlers = list(self._handlers.get(topic, []))

        for handler in handlers:
            if self._executor is None:
                self._deliver(topic, handler, payload)
                continue
            try:
                future = self._executor.submit(self._deliver, topic, handler, payload)
            except RuntimeError:
                # Pool already shut down
                logger.warning(f"⚠️  Event bus closed, dropping '{topic}' event")
                return
            future.add_done_callback(self._log_future_error)

    @staticmethod
    def _deliver(topic: str, handler: EventHandler, payload: Any) -> None:
        try:
            handler(payload)
        except Exception as e:
            logger.warning(f"⚠️  Event handler for '{topic}' failed: {e}", exc_info=True)

    @staticmethod
    def _log_future_error(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning(f"⚠️  Event delivery failed: {error}")

    def shutdown(self, wait: bool = True) -> None:
        """Stop the delivery pool, optionally waiting for pending events."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
