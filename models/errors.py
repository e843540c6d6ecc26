"""Exception taxonomy shared by the clients, the search tools and the pipeline."""


class IllustrationError(Exception):
    """Base class for every error raised by this project."""


class ConfigurationError(IllustrationError):
    """A credential, base URL or model identifier required for a call is missing."""


class TransportError(IllustrationError):
    """An external service answered with a non-success status or could not be reached."""

    def __init__(self, message: str, *, service: str = "unknown", status_code: int | None = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{self.service} HTTP {self.status_code}: {base}"
        return f"{self.service}: {base}"


class ParseError(IllustrationError):
    """A model response did not contain the structured data we asked for."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class StageTimeoutError(IllustrationError):
    """A pipeline stage did not finish within its time budget."""

    def __init__(self, stage: str, timeout_s: float):
        super().__init__(f"stage '{stage}' timed out after {timeout_s:g}s")
        self.stage = stage
        self.timeout_s = timeout_s
