"""Server-sent event helpers for both directions of the chat stream.

Upstream, the completion API answers with ``data: {json}`` lines ending in
``data: [DONE]``; :func:`aiter_sse_data` splits those lines into payloads
and :func:`parse_completion_delta` pulls the text fragment out of each.

Downstream, :func:`encode_event` renders our own stream events as frames
for the browser and :data:`DONE_FRAME` marks a successful end.

None of these functions touch the network, so the framing rules are unit
tested on plain lists of lines.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator

from pydantic import BaseModel

from sitechat.utils.errors import CompletionError

DONE_MARKER = "[DONE]"
DONE_FRAME = f"data: {DONE_MARKER}\n\n"

_DATA_PREFIX = "data:"

# Headers that keep proxies from buffering the stream.
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# ---------------------------------------------------------------------------
# Downstream (to the browser)
# ---------------------------------------------------------------------------

def encode_event(event: BaseModel | dict) -> str:
    """Render one stream event as a ``data: {json}\\n\\n`` frame."""
    if isinstance(event, BaseModel):
        payload = event.model_dump_json()
    else:
        payload = json.dumps(event)
    return f"{_DATA_PREFIX} {payload}\n\n"


# ---------------------------------------------------------------------------
# Upstream (from the completion provider)
# ---------------------------------------------------------------------------

def _data_payload(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or None for any other line.

    Comments (``:keep-alive``), ``event:``/``id:`` fields and blank frame
    separators carry no data.
    """
    line = line.strip()
    if not line.startswith(_DATA_PREFIX):
        return None
    return line[len(_DATA_PREFIX):].strip()


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield data payloads from SSE *lines*, stopping at ``[DONE]``."""
    for line in lines:
        payload = _data_payload(line)
        if payload is None or payload == "":
            continue
        if payload == DONE_MARKER:
            return
        yield payload


async def aiter_sse_data(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Async twin of :func:`iter_sse_data` for streamed HTTP responses."""
    async for line in lines:
        payload = _data_payload(line)
        if payload is None or payload == "":
            continue
        if payload == DONE_MARKER:
            return
        yield payload


def parse_completion_delta(payload: str) -> str:
    """Extract ``choices[0].delta.content`` from one chat-completion chunk.

    Returns ``""`` for chunks without text (role announcements, finish
    reasons).

    Raises:
        CompletionError: If the payload is not JSON, is a provider error
            object, or has choices or deltas of the wrong shape.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise CompletionError(message=f"Malformed stream frame: {payload[:80]}") from exc

    if not isinstance(data, dict):
        raise CompletionError(message="Stream frame is not a JSON object")
    if "error" in data:
        error = data["error"]
        detail = error.get("message", "") if isinstance(error, dict) else str(error)
        raise CompletionError(message=f"Provider stream error: {detail}")

    choices = data.get("choices") or []
    if not choices:
        return ""
    if not isinstance(choices, list) or not isinstance(choices[0], dict):
        raise CompletionError(message=f"Unexpected choices in stream frame: {payload[:80]}")
    delta = choices[0].get("delta") or {}
    if not isinstance(delta, dict):
        raise CompletionError(message=f"Unexpected delta in stream frame: {payload[:80]}")
    content = delta.get("content") or ""
    if not isinstance(content, str):
        raise CompletionError(message=f"Unexpected content in stream frame: {payload[:80]}")
    return content
