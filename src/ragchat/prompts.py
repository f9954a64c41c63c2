import json
import re

SYSTEM_PROMPT = (
    "You are the best Hypertension Doctor capable of generating the best treatment plan "
    "based on the patient overview. You always generate your responses as correctly "
    "structured, valid markdown."
)

AUGMENTED_PROMPT_TEMPLATE = """
You are tasked with generating a treatment plan using provided chunks of information, consider first steps first before using medications. Your goal is to provide an accurate answer while citing your sources using a specific markdown format.

Here is the question you need to answer:
<question>
{question}
</question>

Below are chunks of information that you can use to answer the question. Each chunk is preceded by a 
source identifier in the format [source=X&link=Y], where X is the source number and Y is the URL of the source:

<chunks>
{chunks}
</chunks>

Your task is to answer the question using the information provided in these chunks. 
When you use information from a specific chunk in your answer, you must cite it using a markdown link format. 
The citation should appear at the end of the sentence where the information is used.

If you cannot answer the question using the provided chunks, say "Sorry I don't know".

The citation format should be as follows:
[Chunk source](URL)

For example, if you're using information from the chunk labeled {example_tag}, your citation would look like this:
{example_citation} and would open a new tab to the source URL when clicked.
"""

EXAMPLE_INDEX = 3
EXAMPLE_URL = "https://example.com/page"

# [3](https://example.com/page); the label is digits only so ordinary links are skipped
CITATION_RE = re.compile(r"\[(\d+)\]\((\S+?)\)")


def format_citation(index: int, url: str) -> str:
    return f"[{index}]({url})"


def format_source_tag(index: int, url: str) -> str:
    return f"[source={index}&link={url}]"


def serialize_context(context) -> str:
    """Serialize the retrieval result verbatim, as compact JSON"""
    return json.dumps(context, ensure_ascii=False, separators=(",", ":"))


def build_augmented_prompt(question: str, context) -> str:
    """
    Build the replacement content for the last user turn.

    Pure function of the question, the retrieval result and the fixed
    template; the result is embedded as-is without interpretation.
    """
    return AUGMENTED_PROMPT_TEMPLATE.format(
        question=question,
        chunks=serialize_context(context),
        example_tag=format_source_tag(EXAMPLE_INDEX, EXAMPLE_URL),
        example_citation=format_citation(EXAMPLE_INDEX, EXAMPLE_URL),
    )


def extract_citations(text: str) -> list[tuple[int, str]]:
    """Return (index, url) pairs cited in generated markdown, first occurrence order, no repeats"""
    seen: set[tuple[int, str]] = set()
    citations: list[tuple[int, str]] = []
    for match in CITATION_RE.finditer(text):
        pair = (int(match.group(1)), match.group(2))
        if pair not in seen:
            seen.add(pair)
            citations.append(pair)
    return citations
