"""
Unit Tests for Individual Components

Tests prompt building, citations, the data-stream codec and configuration
in isolation, without any network.

Run with: pytest tests/test_unit.py -v
"""

import json

import pytest

from ragchat.config import Settings
from ragchat.exceptions import ConfigurationError
from ragchat.prompts import (
    SYSTEM_PROMPT,
    build_augmented_prompt,
    extract_citations,
    format_citation,
    serialize_context,
)
from ragchat.retrieval import RetrievalClient, iter_chunks
from ragchat.schemas import ChatMessage, RetrievalContext, RetrievalRequest
from ragchat.stream import decode_line, encode_error, encode_finish, encode_text


class TestAugmentedPrompt:
    """Test the rewrite of the last user turn"""

    def test_contains_question_verbatim(self, two_chunks):
        """The original question is embedded unchanged"""
        prompt = build_augmented_prompt("What is Hypertension?", two_chunks)

        assert "<question>\nWhat is Hypertension?\n</question>" in prompt

    def test_contains_every_chunk(self, two_chunks):
        """Each returned chunk appears in serialized form"""
        prompt = build_augmented_prompt("What is Hypertension?", two_chunks)

        for chunk in two_chunks:
            assert serialize_context(chunk) in prompt, "Every chunk should be serialized into the prompt"
        assert f"<chunks>\n{serialize_context(two_chunks)}\n</chunks>" in prompt

    def test_is_deterministic(self, two_chunks):
        """Same inputs give the same prompt"""
        assert build_augmented_prompt("q", two_chunks) == build_augmented_prompt("q", two_chunks)

    def test_opaque_result_embedded_as_is(self):
        """A mapping result is embedded without interpretation"""
        result = {"documents": [{"text": "Salt raises blood pressure", "source": "https://c.example"}], "average_relevancy": 0.8}
        prompt = build_augmented_prompt("Salt?", result)

        assert json.dumps(result, separators=(",", ":")) in prompt

    def test_non_ascii_kept_readable(self):
        """Non-ASCII text is not escaped"""
        prompt = build_augmented_prompt("Qu'est-ce que l'hypertension?", [{"content": "Tension artérielle élevée"}])

        assert "artérielle élevée" in prompt

    def test_citation_instructions(self, two_chunks):
        """The prompt describes the citation format with a worked example"""
        prompt = build_augmented_prompt("q", two_chunks)

        assert "[source=3&link=https://example.com/page]" in prompt
        assert "[3](https://example.com/page)" in prompt
        assert "Sorry I don't know" in prompt

    def test_system_prompt_requires_markdown(self):
        assert "valid markdown" in SYSTEM_PROMPT


class TestCitations:
    """Test the citation markdown contract"""

    def test_format_citation(self):
        assert format_citation(3, "https://example.com/page") == "[3](https://example.com/page)"

    def test_extract_citations(self):
        """Cited pairs come back in order of first appearance"""
        text = (
            "Hypertension is high blood pressure [1](https://a.example/htn). "
            "Normal is below 120/80 [2](https://b.example/bp). "
            "Again [1](https://a.example/htn)."
        )
        assert extract_citations(text) == [(1, "https://a.example/htn"), (2, "https://b.example/bp")]

    def test_extract_ignores_plain_links(self):
        """Links with a non-numeric label are not citations"""
        assert extract_citations("See [the guide](https://example.com).") == []

    def test_round_trip_with_format(self):
        text = f"Fact one {format_citation(4, 'https://d.example/x?y=1')}."
        assert extract_citations(text) == [(4, "https://d.example/x?y=1")]


class TestDataStream:
    """Test the data-stream line format"""

    def test_text_part(self):
        assert encode_text("Hello") == '0:"Hello"\n'

    def test_text_part_escapes_newlines(self):
        """A fragment with newlines stays on one wire line"""
        line = encode_text("line1\nline2")
        assert line.count("\n") == 1
        assert decode_line(line).value == "line1\nline2"

    def test_finish_part(self):
        part = decode_line(encode_finish())
        assert part.type == "d"
        assert part.value == {"finishReason": "stop"}

    def test_error_part(self):
        part = decode_line(encode_error("boom"))
        assert part.type == "3"
        assert part.value == "boom"

    def test_blank_line(self):
        assert decode_line("   ") is None

    def test_malformed_line(self):
        with pytest.raises(ValueError):
            decode_line("no separator here")


class TestConfig:
    """Test configuration validation"""

    def test_complete_settings(self, settings):
        settings.ensure_complete()
        assert settings.is_configured

    def test_all_missing_reported_together(self):
        """One error names every missing variable on its own line"""
        with pytest.raises(ConfigurationError) as exc:
            Settings().ensure_complete()

        assert exc.value.missing == ["MODEL", "VECTORIZE_TOKEN", "VECTORIZE_RETRIEVAL_URL", "GROQ_API_KEY"]
        lines = str(exc.value).splitlines()
        assert len(lines) == 4
        assert len(set(lines)) == 4, "Each missing variable gets a distinct message"

    @pytest.mark.parametrize("field,env_name", [
        ("model", "MODEL"),
        ("vectorize_token", "VECTORIZE_TOKEN"),
        ("vectorize_retrieval_url", "VECTORIZE_RETRIEVAL_URL"),
        ("groq_api_key", "GROQ_API_KEY"),
    ])
    def test_single_missing(self, settings, field, env_name):
        incomplete = settings.model_copy(update={field: None})
        with pytest.raises(ConfigurationError) as exc:
            incomplete.ensure_complete()
        assert exc.value.missing == [env_name]
        assert env_name in str(exc.value)

    def test_ollama_needs_no_groq_key(self, settings):
        settings.model_copy(update={"llm_provider": "ollama", "groq_api_key": None}).ensure_complete()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MODEL", "llama3-8b-8192")
        monkeypatch.setenv("VECTORIZE_TOKEN", "t")
        monkeypatch.setenv("VECTORIZE_RETRIEVAL_URL", "https://r.example")
        monkeypatch.setenv("GROQ_API_KEY", "k")

        loaded = Settings.from_env()

        assert loaded.model == "llama3-8b-8192"
        assert loaded.is_configured

    def test_from_env_treats_empty_as_missing(self, monkeypatch):
        monkeypatch.setenv("MODEL", "")
        assert Settings.from_env().model is None


class TestRetrievalPayload:
    """Test the outbound retrieval request body"""

    def test_without_history(self):
        payload = RetrievalRequest(question="What is Hypertension?").to_payload()
        assert payload == {"question": "What is Hypertension?", "numResults": 5, "rerank": True}

    def test_environment_cannot_change_result_count(self, monkeypatch):
        """Five reranked results are always requested, whatever the environment says"""
        monkeypatch.setenv("NUM_RESULTS", "8")
        monkeypatch.setenv("RERANK", "false")
        client = RetrievalClient(Settings.from_env())

        payload = client.build_request("q", []).to_payload()

        assert payload["numResults"] == 5
        assert payload["rerank"] is True

    def test_with_history(self):
        history = [ChatMessage(role="user", content="hi"), ChatMessage(role="assistant", content="hello")]
        payload = RetrievalRequest(question="q", context=RetrievalContext(messages=history)).to_payload()

        assert payload["context"] == {"messages": [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]}


class TestChunkView:
    """Test reading retrieval results as chunks"""

    def test_list_of_chunks(self, two_chunks):
        chunks = list(iter_chunks(two_chunks))
        assert [c.source_index for c in chunks] == [1, 2]
        assert chunks[0].source_url == "https://a.example/htn"

    def test_documents_mapping(self):
        result = {"documents": [
            {"text": "First", "source": "https://a.example", "relevancy": 0.9},
            {"text": "Second", "source": "https://b.example", "relevancy": 0.4},
        ]}
        chunks = list(iter_chunks(result))

        assert [c.source_index for c in chunks] == [1, 2], "Unnumbered chunks are numbered from 1"
        assert chunks[0].relevance_score == 0.9
        assert chunks[1].content == "Second"

    def test_unknown_shapes(self):
        assert list(iter_chunks("plain text")) == []
        assert list(iter_chunks([1, 2, 3])) == []


# Run with: pytest tests/test_unit.py -v
