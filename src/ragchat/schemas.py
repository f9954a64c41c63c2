from pydantic import BaseModel, Field

class ChatMessage(BaseModel):
    role: str = Field(..., examples=["user", "assistant"])
    content: str = ""

class ChatRequest(BaseModel):
    messages: list[ChatMessage] = []

class RetrievedChunk(BaseModel):
    source_index: int
    source_url: str
    content: str
    relevance_score: float | None = None

class RetrievalContext(BaseModel):
    messages: list[ChatMessage]

class RetrievalRequest(BaseModel):
    question: str
    num_results: int = Field(5, serialization_alias="numResults")
    rerank: bool = True
    context: RetrievalContext | None = None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
