"""
Execution Progress Channel.

Publishes node transitions of running executions to live observers
(WebSocket subscribers), keyed by execution id. Publishing never blocks
the run: each subscriber owns an unbounded queue.
"""

from typing import Any, Dict, Set
import asyncio
import logging


logger = logging.getLogger(__name__)


class ProgressChannel:
    """Fan-out of progress events per execution."""

    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    def subscribe(self, execution_id: str) -> asyncio.Queue:
        """Start receiving events for an execution."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(execution_id, set()).add(queue)
        logger.debug(f"Subscribed to execution: {execution_id}")
        return queue

    def unsubscribe(self, execution_id: str, queue: asyncio.Queue) -> None:
        if execution_id in self._subscribers:
            self._subscribers[execution_id].discard(queue)
            if not self._subscribers[execution_id]:
                del self._subscribers[execution_id]
        logger.debug(f"Unsubscribed from execution: {execution_id}")

    def publish(self, execution_id: str, event: Dict[str, Any]) -> int:
        """
        Send an event to every subscriber of an execution.

        Returns:
            Number of subscribers the event was delivered to
        """
        message = {"execution_id": execution_id, **event}
        queues = self._subscribers.get(execution_id, set())
        for queue in queues:
            queue.put_nowait(message)
        return len(queues)

    def subscriber_count(self, execution_id: str) -> int:
        return len(self._subscribers.get(execution_id, ()))


# Global progress channel
progress_channel = ProgressChannel()
