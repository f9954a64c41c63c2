"""Shared fixtures: complete settings and in-memory collaborators that count calls"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ragchat.config import Settings
from ragchat.exceptions import GenerationError, RetrievalError


class FakeRetriever:
    def __init__(self, result=None, error: RetrievalError | None = None):
        self.result = result
        self.error = error
        self.calls = []

    async def retrieve(self, question, history):
        self.calls.append((question, list(history)))
        if self.error:
            raise self.error
        return self.result


class FakeLLM:
    def __init__(self, fragments=("Hello", ", ", "world"), fail_after: int | None = None):
        self.fragments = list(fragments)
        self.fail_after = fail_after
        self.calls = []

    async def stream(self, system, messages):
        self.calls.append((system, list(messages)))
        for i, fragment in enumerate(self.fragments):
            if self.fail_after is not None and i == self.fail_after:
                raise GenerationError("upstream closed the stream")
            yield fragment


@pytest.fixture
def settings():
    return Settings(
        model="llama-3.3-70b-versatile",
        groq_api_key="gsk-test",
        vectorize_token="vectorize-token",
        vectorize_retrieval_url="https://retrieval.test/retrieve",
    )


@pytest.fixture
def two_chunks():
    return [
        {"source_index": 1, "source_url": "https://a.example/htn", "content": "Hypertension is high blood pressure."},
        {"source_index": 2, "source_url": "https://b.example/bp", "content": "Normal blood pressure is below 120/80."},
    ]
