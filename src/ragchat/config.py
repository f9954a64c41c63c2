from pydantic import BaseModel
from dotenv import load_dotenv
import os

from .exceptions import ConfigurationError

load_dotenv()

_ENV_HINT = "Please add it to your environment settings (e.g. the .env file)."


class Settings(BaseModel):
    model: str | None = None
    llm_provider: str = "groq"

    groq_api_key: str | None = None
    groq_base_url: str = "https://api.groq.com/openai/v1"
    ollama_base_url: str = "http://localhost:11434"

    vectorize_token: str | None = None
    vectorize_retrieval_url: str | None = None

    retrieval_timeout: float = 30.0
    generation_timeout: float = 120.0

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the process environment (and .env)"""
        return cls(
            model=os.getenv("MODEL") or None,
            llm_provider=os.getenv("LLM_PROVIDER", "groq").lower(),
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            groq_base_url=os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1"),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            vectorize_token=os.getenv("VECTORIZE_TOKEN") or None,
            vectorize_retrieval_url=os.getenv("VECTORIZE_RETRIEVAL_URL") or None,
            retrieval_timeout=float(os.getenv("RETRIEVAL_TIMEOUT", "30")),
            generation_timeout=float(os.getenv("GENERATION_TIMEOUT", "120")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def missing_fields(self) -> dict[str, str]:
        missing: dict[str, str] = {}
        if not self.model:
            missing["MODEL"] = "It selects which hosted language model answers. " + _ENV_HINT
        if not self.vectorize_token:
            missing["VECTORIZE_TOKEN"] = "It authorizes calls to the retrieval service. " + _ENV_HINT
        if not self.vectorize_retrieval_url:
            missing["VECTORIZE_RETRIEVAL_URL"] = "It is the retrieval pipeline endpoint. " + _ENV_HINT
        if self.llm_provider == "groq" and not self.groq_api_key:
            missing["GROQ_API_KEY"] = "It authorizes calls to the generation service. " + _ENV_HINT
        return missing

    def ensure_complete(self) -> None:
        """Raise ConfigurationError listing every missing required setting"""
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(missing)

    @property
    def is_configured(self) -> bool:
        return not self.missing_fields()


settings = Settings.from_env()
