"""Domain exceptions raised by services and translated to HTTP by the routes."""


class SpeacyError(Exception):
    """Base class for service-layer errors."""


class LLMNotConfiguredError(SpeacyError):
    """OPENAI_API_KEY is missing."""

    def __init__(self) -> None:
        super().__init__("Missing OPENAI_API_KEY")


class UpstreamServiceError(SpeacyError):
    """OpenAI rejected a request or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None, details: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class InvalidStatusTransition(SpeacyError):
    """An assessment was asked to move backwards (or sideways) in its lifecycle."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move assessment from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested
