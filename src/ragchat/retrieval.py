from __future__ import annotations
import logging
from typing import Any, Iterator
import httpx
from pydantic import ValidationError

from .config import Settings
from .exceptions import RetrievalError
from .schemas import ChatMessage, RetrievalContext, RetrievalRequest, RetrievedChunk

logger = logging.getLogger(__name__)

NUM_RESULTS = 5


class RetrievalClient:
    """Client for the hosted retrieval/reranking pipeline"""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.url = settings.vectorize_retrieval_url
        self.token = settings.vectorize_token
        self.timeout = settings.retrieval_timeout
        self.transport = transport

    def build_request(self, question: str, history: list[ChatMessage]) -> RetrievalRequest:
        return RetrievalRequest(
            question=question,
            num_results=NUM_RESULTS,
            rerank=True,
            context=RetrievalContext(messages=history) if history else None,
        )

    async def retrieve(self, question: str, history: list[ChatMessage]) -> Any:
        """
        Ask the pipeline for context relevant to `question`.

        Prior turns are sent as conversational context only when there are
        any. The parsed JSON body is returned untouched. Any non-2xx status
        raises RetrievalError; there is no retry.
        """
        payload = self.build_request(question, history).to_payload()
        headers = {"Content-Type": "application/json", "Authorization": self.token}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                r = await client.post(self.url, headers=headers, json=payload)
                r.raise_for_status()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                raise RetrievalError(
                    f"Failed to fetch data: {status} {e.response.reason_phrase}",
                    status_code=status,
                ) from e
            except httpx.RequestError as e:
                raise RetrievalError(f"Cannot reach retrieval service at {self.url}: {e}") from e

        try:
            return r.json()
        except ValueError as e:
            raise RetrievalError("Retrieval service returned a non-JSON body", status_code=r.status_code) from e


def iter_chunks(result: Any) -> Iterator[RetrievedChunk]:
    """
    Best-effort view of a retrieval result as chunks.

    Accepts either a list of chunk objects or a mapping with a `documents`
    list. Items that do not fit the chunk shape are skipped. Chunks are numbered
    from 1 in result order when they carry no index of their own.
    """
    if isinstance(result, dict):
        items = result.get("documents") or []
    elif isinstance(result, list):
        items = result
    else:
        return

    for position, item in enumerate(items, 1):
        if not isinstance(item, dict):
            continue
        try:
            yield RetrievedChunk(
                source_index=item.get("source_index", item.get("sourceIndex", position)),
                source_url=item.get("source_url") or item.get("sourceUrl") or item.get("source") or "",
                content=item.get("content") or item.get("text") or "",
                relevance_score=item.get("relevance_score", item.get("relevancy")),
            )
        except ValidationError:
            logger.debug(f"Skipping unrecognized retrieval item #{position}")
