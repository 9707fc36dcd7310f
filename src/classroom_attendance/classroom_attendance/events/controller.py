from __future__ import annotations

import json
import queue

from flask import Flask, Response, stream_with_context

from ..common.web import login_required
from ..container import Container

HEARTBEAT_SECONDS = 15


def register(app: Flask, container: Container) -> None:
    broker = container.broker

    @app.route("/api/classrooms/<int:classroom_id>/events", methods=["GET"], endpoint="api_classroom_events")
    @login_required()
    def classroom_events(classroom_id: int):
        """Server-sent events stream of one classroom's attendance events."""
        events, unsubscribe = broker.subscribe_queue(classroom_id)

        def stream():
            try:
                yield ": connected\n\n"
                while True:
                    try:
                        event = events.get(timeout=HEARTBEAT_SECONDS)
                    except queue.Empty:
                        yield ": keep-alive\n\n"
                        continue
                    yield f"event: {event.kind.value}\ndata: {json.dumps(event.to_dict())}\n\n"
            finally:
                unsubscribe()

        return Response(
            stream_with_context(stream()),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
