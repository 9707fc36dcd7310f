from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

from ..core.enums import EventKind
from .publisher import ClassroomEvent, EventPublisher

logger = logging.getLogger(__name__)

Subscriber = Callable[[ClassroomEvent], None]


class ClassroomBroker(EventPublisher):
    """In-process fan-out of classroom events.

    Each classroom behaves like a room: subscribers only see events of the
    classroom they joined. Delivery never raises back into the publisher.
    """

    def __init__(self, *, queue_size: int = 100):
        self._lock = threading.Lock()
        self._rooms: dict[int, list[Subscriber]] = {}
        self._queue_size = int(queue_size)

    def subscribe(self, classroom_id: int, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._rooms.setdefault(int(classroom_id), []).append(callback)

        def unsubscribe() -> None:
            self._remove(int(classroom_id), callback)

        return unsubscribe

    def subscribe_queue(self, classroom_id: int) -> tuple["queue.Queue[ClassroomEvent]", Callable[[], None]]:
        """Subscribe with a bounded queue; the oldest event is dropped when full."""
        q: "queue.Queue[ClassroomEvent]" = queue.Queue(maxsize=self._queue_size)

        def put(event: ClassroomEvent) -> None:
            while True:
                try:
                    q.put_nowait(event)
                    return
                except queue.Full:
                    try:
                        q.get_nowait()
                    except queue.Empty:
                        pass

        return q, self.subscribe(classroom_id, put)

    def subscriber_count(self, classroom_id: int) -> int:
        with self._lock:
            return len(self._rooms.get(int(classroom_id), []))

    def _remove(self, classroom_id: int, callback: Subscriber) -> None:
        with self._lock:
            subs = self._rooms.get(classroom_id, [])
            if callback in subs:
                subs.remove(callback)
            if not subs:
                self._rooms.pop(classroom_id, None)

    def publish(self, classroom_id: int, kind: EventKind, payload: dict[str, Any]) -> None:
        event = ClassroomEvent(classroom_id=int(classroom_id), kind=kind, payload=dict(payload))
        with self._lock:
            subs = list(self._rooms.get(event.classroom_id, []))

        for callback in subs:
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber failed for %s in classroom %s", kind.value, classroom_id)
