"""Ollama inference client used by both the CLI and the interactive session."""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlsplit
from urllib.request import Request, urlopen

from .config import (
    DEFAULT_HEALTH_TIMEOUT,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT,
    DEFAULT_TOP_P,
    PROMPT_TEMPLATES,
    PromptStyle,
)
from .errors import ResponseFormatError, TransportError, UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranslationRequest:
    """A single piece of text to translate between two free-form language names."""

    text: str
    source_language: str
    target_language: str


@dataclass(frozen=True)
class TranslationResult:
    translated_text: str


@dataclass(frozen=True)
class HealthStatus:
    """Outcome of probing ``/api/tags``."""

    reachable: bool
    models: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return self.reachable


def build_prompt(
    text: str,
    source_language: str,
    target_language: str,
    style: PromptStyle = "document",
) -> str:
    """
    Build the instruction prompt sent to the model.

    Args:
        text: Text to translate, embedded verbatim
        source_language: Human-readable source language name
        target_language: Human-readable target language name
        style: "document" keeps markdown structure, "text" is plain prose

    Returns:
        Prompt string
    """
    try:
        template = PROMPT_TEMPLATES[style]
    except KeyError:
        raise ValueError(
            f"Unknown prompt style: {style}. Must be one of {tuple(PROMPT_TEMPLATES)}"
        ) from None
    # Plain concatenation so braces inside the text are never interpreted
    head, _, _ = template.partition("{text}")
    return head.format(source=source_language, target=target_language) + text


def parse_generate_response(body: bytes) -> str:
    """Extract and trim the ``response`` field of a generate reply."""
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ResponseFormatError(f"Failed to parse Ollama response: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("response"), str):
        raise ResponseFormatError("Failed to parse Ollama response: missing 'response' field")
    return data["response"].strip()


def parse_model_names(body: bytes) -> list[str]:
    """
    Extract model names from a ``/api/tags`` reply.

    Entries without a string ``name`` are skipped.
    """
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ResponseFormatError(f"Failed to parse Ollama model list: {e}") from e

    if not isinstance(data, dict):
        raise ResponseFormatError("Failed to parse Ollama model list: expected a JSON object")
    models = data.get("models", [])
    if not isinstance(models, list):
        raise ResponseFormatError("Failed to parse Ollama model list: 'models' is not a list")

    names = []
    for entry in models:
        name = entry.get("name") if isinstance(entry, dict) else None
        if isinstance(name, str):
            names.append(name)
    return names


class OllamaClient:
    """
    Client for a local Ollama server.

    The client holds only immutable settings, so a single instance can be
    shared freely between threads and tasks. Every call is one independent
    HTTP request with no retries.

    Usage:
        client = OllamaClient(model="qwen2.5:3b")
        client.translate("Hello", "English", "Japanese")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        health_timeout: float = DEFAULT_HEALTH_TIMEOUT,
        prompt_style: PromptStyle = "document",
        num_predict: int | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        top_p: float = DEFAULT_TOP_P,
    ):
        """
        Initialize the client.

        Args:
            base_url: Origin of the Ollama server (default: http://localhost:11434)
            model: Model name to use (default: qwen2.5:3b)
            timeout: Seconds to wait for a translation
            health_timeout: Seconds to wait for a health check
            prompt_style: Prompt template, "document" or "text"
            num_predict: Token limit sent to the server, omitted when None
            temperature: Sampling temperature
            top_p: Nucleus sampling threshold
        """
        if urlsplit(base_url).scheme not in ("http", "https"):
            raise ValueError(f"Invalid Ollama URL: {base_url}. Must start with http:// or https://")
        if prompt_style not in PROMPT_TEMPLATES:
            raise ValueError(
                f"Unknown prompt style: {prompt_style}. Must be one of {tuple(PROMPT_TEMPLATES)}"
            )
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._health_timeout = health_timeout
        self._prompt_style = prompt_style
        self._num_predict = num_predict
        self._temperature = temperature
        self._top_p = top_p

    @classmethod
    def from_config(cls, config, **overrides: Any) -> "OllamaClient":
        """Build a client from a Config, with keyword overrides taking precedence."""
        settings = {
            "base_url": config.ollama_url,
            "model": config.model,
            "timeout": config.timeout,
            "health_timeout": config.health_timeout,
            "num_predict": config.num_predict,
            "temperature": config.temperature,
            "top_p": config.top_p,
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**settings)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def prompt_style(self) -> PromptStyle:
        return self._prompt_style

    @property
    def num_predict(self) -> int | None:
        return self._num_predict

    def build_payload(self, prompt: str) -> dict:
        """Build the JSON body for ``/api/generate``."""
        options: dict[str, Any] = {
            "temperature": self._temperature,
            "top_p": self._top_p,
        }
        if self._num_predict is not None:
            options["num_predict"] = self._num_predict

        return {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }

    def _send(self, req: Request, timeout: float) -> bytes:
        """Send a request and return the body of a 2xx reply."""
        url = req.full_url
        try:
            with urlopen(req, timeout=timeout) as response:
                return response.read()
        except HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            logger.debug("%s %s -> %s", req.get_method(), url, e.code)
            raise UpstreamError(e.code, body.strip()) from e
        except (OSError, http.client.HTTPException) as e:
            # URLError, socket timeouts and dropped connections all land here
            reason = getattr(e, "reason", None) or e
            logger.debug("%s %s failed: %s", req.get_method(), url, reason)
            raise TransportError(f"Cannot connect to Ollama at {self._base_url}: {reason}", e) from e

    def translate(self, text: str, source_language: str, target_language: str) -> str:
        """
        Translate text with a single generate request.

        Args:
            text: Text to translate, may be empty
            source_language: Source language name (e.g. "English")
            target_language: Target language name (e.g. "Japanese")

        Returns:
            Translated text with surrounding whitespace removed

        Raises:
            TransportError: The request did not complete within the timeout
            UpstreamError: The server answered with a non-2xx status
            ResponseFormatError: The reply lacked a string ``response`` field
        """
        prompt = build_prompt(text, source_language, target_language, self._prompt_style)
        payload = self.build_payload(prompt)

        req = Request(
            f"{self._base_url}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
        )
        req.add_header("Content-Type", "application/json")
        req.add_header("Accept", "application/json")

        logger.debug(
            "Translating %d chars %s -> %s with %s", len(text), source_language, target_language, self._model
        )
        body = self._send(req, self._timeout)
        return parse_generate_response(body)

    def translate_request(self, request: TranslationRequest) -> TranslationResult:
        """Translate a TranslationRequest."""
        translated = self.translate(request.text, request.source_language, request.target_language)
        return TranslationResult(translated_text=translated)

    def _fetch_tags(self) -> bytes:
        req = Request(f"{self._base_url}/api/tags", method="GET")
        req.add_header("Accept", "application/json")
        return self._send(req, self._health_timeout)

    def check_health(self) -> HealthStatus:
        """
        Check whether the server is up.

        Never raises: any failure is reported as an unreachable status. A
        reachable server whose model list cannot be parsed reports no models.
        """
        try:
            body = self._fetch_tags()
        except (TransportError, UpstreamError) as e:
            logger.debug("Health check failed: %s", e)
            return HealthStatus(reachable=False)

        try:
            models = parse_model_names(body)
        except ResponseFormatError as e:
            logger.debug("Ignoring unreadable model list: %s", e)
            models = []
        return HealthStatus(reachable=True, models=tuple(models))

    def diagnose_health(self) -> HealthStatus:
        """
        Check the server and explain why it is down.

        Raises:
            TransportError: The server could not be reached
            UpstreamError: The server answered with a non-2xx status
            ResponseFormatError: The model list could not be parsed
        """
        body = self._fetch_tags()
        return HealthStatus(reachable=True, models=tuple(parse_model_names(body)))

    def list_models(self) -> list[str]:
        """Get list of available models on Ollama."""
        return list(self.diagnose_health().models)

    def has_model(self, model: str | None = None, status: HealthStatus | None = None) -> bool:
        """Check if a model is listed by a reachable server, asking it unless ``status`` is given."""
        model = model or self._model
        if status is None:
            status = self.check_health()
        # "qwen2.5" is listed as "qwen2.5:latest"
        return any(m == model or m == f"{model}:latest" for m in status.models)

    async def atranslate(self, text: str, source_language: str, target_language: str) -> str:
        """Awaitable translate(); the request runs in a worker thread."""
        return await asyncio.to_thread(self.translate, text, source_language, target_language)

    async def acheck_health(self) -> HealthStatus:
        return await asyncio.to_thread(self.check_health)

    async def adiagnose_health(self) -> HealthStatus:
        return await asyncio.to_thread(self.diagnose_health)

    def __repr__(self) -> str:
        return f"OllamaClient(base_url={self._base_url!r}, model={self._model!r})"
