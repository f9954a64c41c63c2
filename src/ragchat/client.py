"""
Chat client for the /api/chat endpoint.

Keeps the conversation in memory for the lifetime of the session and
accumulates each streamed answer into the in-progress assistant turn.
Run `python -m ragchat.client` for a terminal chat.
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from dataclasses import dataclass
from typing import Callable
import httpx

from .prompts import extract_citations
from .schemas import ChatMessage
from .stream import ERROR_PART, FINISH_PART, TEXT_PART, decode_line

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:8000/api/chat"


@dataclass(frozen=True)
class Suggestion:
    emoji: str
    text: str


SUGGESTIONS = [
    Suggestion("⚡️", "What is Hypertension?"),
    Suggestion("🤖", "How do I improve my health?"),
    Suggestion("🌟", "What is Cardiovascular Disease?"),
]


class ChatSession:
    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 120.0,
    ):
        self.endpoint = endpoint
        self.transport = transport
        self.timeout = timeout
        self.messages: list[ChatMessage] = []
        self.suggestions: list[Suggestion] = list(SUGGESTIONS)
        self.status = "idle"  # idle | streaming | complete | errored
        self.error: str | None = None

    def new_chat(self) -> None:
        self.messages = []
        self.suggestions = list(SUGGESTIONS)
        self.status = "idle"
        self.error = None

    def choose_suggestion(self, index: int, on_fragment: Callable[[str], None] | None = None) -> ChatMessage | None:
        return self.submit(self.suggestions[index].text, on_fragment=on_fragment)

    def submit(self, text: str, on_fragment: Callable[[str], None] | None = None) -> ChatMessage | None:
        """
        Append a user turn, send the whole conversation and stream the reply.

        Returns the assistant turn, or None when the request failed before
        any text arrived. A stream that breaks off midway leaves the partial
        answer in place with status "errored".
        """
        text = text.strip()
        if not text:
            return None

        self.suggestions = []
        self.messages.append(ChatMessage(role="user", content=text))
        payload = {"messages": [m.model_dump() for m in self.messages]}

        answer = ChatMessage(role="assistant", content="")
        self.messages.append(answer)
        self.status = "streaming"
        self.error = None
        finished = False

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                with client.stream("POST", self.endpoint, json=payload) as r:
                    if r.status_code != 200:
                        r.read()
                        self._fail(f"Request failed: {r.status_code} {self._detail(r)}")
                        return None
                    for line in r.iter_lines():
                        part = decode_line(line)
                        if part is None:
                            continue
                        if part.type == TEXT_PART:
                            answer.content += part.value
                            if on_fragment:
                                on_fragment(part.value)
                        elif part.type == ERROR_PART:
                            self.error = str(part.value)
                        elif part.type == FINISH_PART:
                            finished = (part.value or {}).get("finishReason") == "stop"
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Stream interrupted: {e}")
            self.error = str(e)

        if not answer.content and not finished:
            self._fail(self.error or "Empty response")
            return None

        self.status = "complete" if finished and self.error is None else "errored"
        return answer

    def _fail(self, message: str) -> None:
        if self.messages and self.messages[-1].role == "assistant" and not self.messages[-1].content:
            self.messages.pop()
        self.status = "errored"
        self.error = message

    @staticmethod
    def _detail(r: httpx.Response) -> str:
        try:
            return str(r.json().get("detail", ""))
        except ValueError:
            return r.text[:200]

    def inspect(self, index: int) -> str:
        """Raw structure of one turn, pretty-printed"""
        return json.dumps(self.messages[index].model_dump(), indent=2, ensure_ascii=False)

    def sources(self, index: int = -1) -> list[tuple[int, str]]:
        return extract_citations(self.messages[index].content)


def _print_fragment(fragment: str) -> None:
    sys.stdout.write(fragment)
    sys.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Chat with the grounded answer service.")
    parser.add_argument("--endpoint", default=DEFAULT_ENDPOINT, help="Chat endpoint URL")
    args = parser.parse_args(argv)

    session = ChatSession(args.endpoint)
    print("Commands: /new starts a new chat, /raw N shows turn N, /quit exits.")

    while True:
        if session.suggestions:
            for i, s in enumerate(session.suggestions, 1):
                print(f"  {i}. {s.emoji} {s.text}")
        try:
            text = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return 0

        if text in ("/quit", "/exit"):
            return 0
        if text == "/new":
            session.new_chat()
            continue
        if text.startswith("/raw"):
            try:
                print(session.inspect(int(text.split()[1])))
            except (IndexError, ValueError):
                print("Usage: /raw N (0-based turn index)")
            continue

        if session.suggestions and text.isdigit() and 1 <= int(text) <= len(session.suggestions):
            session.choose_suggestion(int(text) - 1, on_fragment=_print_fragment)
        else:
            session.submit(text, on_fragment=_print_fragment)
        print()
        if session.status == "errored":
            print(f"[incomplete answer: {session.error}]")


if __name__ == "__main__":
    sys.exit(main())
