"""
In-process realtime fan-out.

Each websocket subscriber owns a bounded queue per game. Publishing is
best-effort: a subscriber whose queue is full is dropped and left with a
single resync notice, and publishing never raises into the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)

# Last message a dropped subscriber receives; clients reload the snapshot.
RESYNC = "resync"


class RealtimeNotifier:
    """Broadcasts committed game updates to subscribed clients."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    def subscribe(self, game_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(game_id, set()).add(queue)
        logger.debug(f"Subscriber added to {game_id} ({self.subscriber_count(game_id)} total)")
        return queue

    def unsubscribe(self, game_id: str, queue: asyncio.Queue) -> None:
        clients = self._subscribers.get(game_id)
        if not clients:
            return
        clients.discard(queue)
        if not clients:
            del self._subscribers[game_id]

    def subscriber_count(self, game_id: str) -> int:
        return len(self._subscribers.get(game_id, ()))

    def publish(self, game_id: str, message: Dict[str, Any]) -> int:
        """
        Queue a message for every subscriber of a game.

        Returns:
            Number of subscribers the message was delivered to
        """
        delivered = 0
        for queue in list(self._subscribers.get(game_id, ())):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                # Drop client if it cannot keep up
                logger.warning(f"Dropping slow subscriber of {game_id}")
                self.unsubscribe(game_id, queue)
                self._send_resync(game_id, queue)
        return delivered

    @staticmethod
    def _send_resync(game_id: str, queue: asyncio.Queue) -> None:
        """Replace the backlog of a dropped subscriber with a single resync notice."""
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait({"type": RESYNC, "game_id": game_id})
