"""Inbound request validation.

Runs before complexity analysis; anything rejected here is a caller-input
error and is never retried.
"""

import time
import uuid
from typing import Any, Dict, Optional

from hylo.core import constants
from hylo.core.errors import InvalidInputError
from hylo.providers.base import LLMOptions, LLMRequest, RequestMetadata


def new_request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError(key, "must be a string")
    return value or None


def parse_request(payload: Any, user_agent: Optional[str] = None) -> LLMRequest:
    """Build an LLMRequest from a decoded JSON body.

    Args:
        payload: Request body ({"query", "options"?, "metadata"?})
        user_agent: Caller user agent, recorded in metadata

    Returns:
        Immutable, normalized request

    Raises:
        InvalidInputError: If the query is missing, blank, oversized or an
            option has the wrong type
    """
    if not isinstance(payload, dict):
        raise InvalidInputError("body", "must be a JSON object")

    query = payload.get("query")
    if not isinstance(query, str):
        raise InvalidInputError("query", "is required and must be a string")
    if not query.strip():
        raise InvalidInputError("query", "must not be empty")
    if len(query) > constants.MAX_QUERY_LENGTH:
        raise InvalidInputError(
            "query", f"exceeds maximum length of {constants.MAX_QUERY_LENGTH} characters"
        )

    options = payload.get("options") or {}
    if not isinstance(options, dict):
        raise InvalidInputError("options", "must be an object")

    max_tokens = options.get("maxTokens", options.get("max_tokens"))
    if max_tokens is None:
        max_tokens = constants.DEFAULT_MAX_TOKENS
    if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens < 1:
        raise InvalidInputError("maxTokens", "must be a positive integer")
    max_tokens = min(max_tokens, constants.MAX_TOKENS_CAP)

    temperature = options.get("temperature")
    if temperature is None:
        temperature = constants.DEFAULT_TEMPERATURE
    if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
        raise InvalidInputError("temperature", "must be a number")
    temperature = max(0.0, min(2.0, float(temperature)))

    stop = options.get("stopSequences", options.get("stop_sequences")) or []
    if not isinstance(stop, list) or not all(isinstance(s, str) for s in stop):
        raise InvalidInputError("stopSequences", "must be a list of strings")
    if len(stop) > constants.MAX_STOP_SEQUENCES:
        raise InvalidInputError(
            "stopSequences", f"at most {constants.MAX_STOP_SEQUENCES} entries allowed"
        )

    metadata = payload.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise InvalidInputError("metadata", "must be an object")

    return LLMRequest(
        query=query,
        options=LLMOptions(
            max_tokens=max_tokens,
            temperature=temperature,
            stream=bool(options.get("stream", False)),
            stop_sequences=tuple(stop),
        ),
        metadata=RequestMetadata(
            request_id=_optional_str(metadata, "requestId") or new_request_id(),
            timestamp=int(time.time() * 1000),
            session_id=_optional_str(metadata, "sessionId"),
            user_preference=_optional_str(metadata, "userPreference"),
            user_agent=user_agent,
        ),
    )
