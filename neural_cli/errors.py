"""Error types raised by Neural CLI."""

from __future__ import annotations

from pathlib import Path


class NeuralError(RuntimeError):
    """Base class for all Neural CLI errors."""


class TransportError(NeuralError):
    """The HTTP request never completed (connection refused, DNS, timeout)."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class UpstreamError(NeuralError):
    """The inference server answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = ""):
        message = f"Ollama API error: {status_code}"
        if body:
            message = f"{message} {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ResponseFormatError(NeuralError):
    """The server response was not the JSON shape we expect."""


class LocalIOError(NeuralError):
    """Reading or writing a local file failed."""

    def __init__(self, message: str, path: Path | str, cause: BaseException | None = None):
        super().__init__(f"{message}: {path}" + (f" ({cause})" if cause else ""))
        self.path = Path(path)
        self.cause = cause
