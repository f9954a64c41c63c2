from __future__ import annotations


class RagChatError(Exception):
    """Base error for the chat service"""


class ConfigurationError(RagChatError):
    """One or more required settings are missing.

    All missing variables are reported together; each gets its own line in
    the message so the operator can fix them in one pass.
    """

    def __init__(self, missing: dict[str, str]):
        self.missing = list(missing)
        lines = [f"{name} is not set. {hint}" for name, hint in missing.items()]
        super().__init__("\n".join(lines))


class RetrievalError(RagChatError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class GenerationError(RagChatError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
