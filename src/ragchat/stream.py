"""
Data-stream wire format shared by the endpoint and the chat client.

Each part is one line: a type code, a colon and a JSON value.

    0:"Hyper"          text fragment
    3:"An error..."    error
    d:{"finishReason":"stop"}
"""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Any

logger = logging.getLogger(__name__)

TEXT_PART = "0"
ERROR_PART = "3"
FINISH_PART = "d"

MEDIA_TYPE = "text/plain; charset=utf-8"
STREAM_HEADERS = {
    "X-Vercel-AI-Data-Stream": "v1",
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}

GENERIC_ERROR_MESSAGE = "An error occurred."


@dataclass
class StreamPart:
    type: str
    value: Any


def encode_part(type_code: str, value: Any) -> str:
    return f"{type_code}:{json.dumps(value, ensure_ascii=False, separators=(',', ':'))}\n"


def encode_text(fragment: str) -> str:
    return encode_part(TEXT_PART, fragment)


def encode_error(message: str) -> str:
    return encode_part(ERROR_PART, message)


def encode_finish(reason: str = "stop") -> str:
    return encode_part(FINISH_PART, {"finishReason": reason})


def decode_line(line: str) -> StreamPart | None:
    line = line.strip()
    if not line:
        return None
    type_code, sep, payload = line.partition(":")
    if not sep:
        raise ValueError(f"Malformed stream part: {line[:80]!r}")
    return StreamPart(type=type_code, value=json.loads(payload))


async def data_stream(fragments: AsyncIterable[str]) -> AsyncIterator[str]:
    """
    Relay generation fragments as data-stream parts, one part per fragment.

    Nothing is buffered: each fragment is encoded and yielded as soon as the
    producer hands it over. A failure after streaming has started cannot
    change the HTTP status any more, so it is reported in-band as an error
    part followed by an error finish.
    """
    try:
        async for fragment in fragments:
            if fragment:
                yield encode_text(fragment)
    except Exception as e:
        logger.error(f"Generation stream failed: {e}")
        yield encode_error(GENERIC_ERROR_MESSAGE)
        yield encode_finish("error")
        return
    yield encode_finish("stop")
