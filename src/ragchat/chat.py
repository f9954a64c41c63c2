from __future__ import annotations
import logging
from typing import AsyncIterator
from .config import Settings
from .llm import LLM, get_llm
from .prompts import SYSTEM_PROMPT, build_augmented_prompt
from .retrieval import RetrievalClient, iter_chunks
from .schemas import ChatMessage

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, settings: Settings, retriever: RetrievalClient | None = None, llm: LLM | None = None):
        settings.ensure_complete()
        self.settings = settings
        self.retriever = retriever or RetrievalClient(settings)
        self.llm = llm or get_llm(settings)
        self.system_prompt = SYSTEM_PROMPT

    async def prepare_messages(self, messages: list[ChatMessage]) -> list[ChatMessage]:
        """
        Retrieve context for the last turn and rewrite it into the augmented prompt.

        The caller's list is left untouched; a copy with the rewritten last
        turn is returned. An empty conversation or an empty retrieval result
        passes through unchanged. RetrievalError propagates.
        """
        if not messages:
            logger.info("No messages available, skipping retrieval")
            return []

        prior, last = messages[:-1], messages[-1]
        context = await self.retriever.retrieve(last.content, prior)

        if not context:
            logger.info("Retrieval returned no context, forwarding conversation unmodified")
            return list(messages)

        logger.info(f"Retrieved {sum(1 for _ in iter_chunks(context))} chunks for: '{last.content[:80]}'")
        rewritten = last.model_copy(update={"content": build_augmented_prompt(last.content, context)})
        return [*prior, rewritten]

    async def generate(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        logger.info(f"Sending {len(messages)} messages to the LLM ({self.settings.model})")
        async for fragment in self.llm.stream(self.system_prompt, messages):
            yield fragment
