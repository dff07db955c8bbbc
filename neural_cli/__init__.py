"""Neural CLI - Fast local translation powered by Ollama."""

__version__ = "0.1.0"

from .config import (
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_URL,
    PROMPT_TEMPLATES,
    get_config,
)
from .errors import (
    NeuralError,
    TransportError,
    UpstreamError,
    ResponseFormatError,
    LocalIOError,
)
from .client import (
    OllamaClient,
    TranslationRequest,
    TranslationResult,
    HealthStatus,
    build_prompt,
)
from .session import (
    TranslatorSession,
    CommandError,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "DEFAULT_MODEL",
    "DEFAULT_OLLAMA_URL",
    "PROMPT_TEMPLATES",
    "get_config",
    # Errors
    "NeuralError",
    "TransportError",
    "UpstreamError",
    "ResponseFormatError",
    "LocalIOError",
    # Client
    "OllamaClient",
    "TranslationRequest",
    "TranslationResult",
    "HealthStatus",
    "build_prompt",
    # Session
    "TranslatorSession",
    "CommandError",
]
