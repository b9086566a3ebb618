"""LLM routing API routes."""

import logging

from flask import Blueprint, Response, request

from hylo.api.async_bridge import iter_async
from hylo.core.validation import parse_request

from . import get_service

logger = logging.getLogger(__name__)

bp = Blueprint("llm", __name__)


@bp.route("/route", methods=["POST"])
def route_request():
    """
    Route a travel query and stream progress as Server-Sent Events.

    Request body:
        {
            "query": "Plan a 3-day trip to Lisbon",
            "options": {"maxTokens": 1000, "temperature": 0.7},
            "metadata": {"sessionId": "abc", "userPreference": "groq"}
        }

    Returns:
        text/event-stream of started, step, complexity, routing, completed
        and metrics events, or a single error event after started.
        Invalid bodies are rejected with 400 before the stream opens.
    """
    llm_request = parse_request(
        request.get_json(silent=True), user_agent=request.headers.get("User-Agent")
    )
    service = get_service()
    logger.info("Streaming request %s", llm_request.metadata.request_id)

    def frames():
        for event in iter_async(lambda cancel: service.stream_events(llm_request, cancel)):
            yield event.encode()

    return Response(
        frames(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "X-Request-Id": llm_request.metadata.request_id,
        },
    )
