"""Tests for the Ollama client."""

import asyncio
import time

import pytest

from neural_cli.client import (
    OllamaClient,
    TranslationRequest,
    TranslationResult,
    HealthStatus,
    build_prompt,
    parse_generate_response,
    parse_model_names,
)
from neural_cli.config import PROMPT_TEMPLATES, Config
from neural_cli.errors import (
    NeuralError,
    TransportError,
    UpstreamError,
    ResponseFormatError,
)


class TestBuildPrompt:
    """Test prompt construction."""

    @pytest.mark.parametrize("style", sorted(PROMPT_TEMPLATES))
    def test_contains_inputs_verbatim(self, style):
        """Text and both language names appear unchanged in the prompt."""
        text = "Hello {world}\n  with *markdown*"
        prompt = build_prompt(text, "English", "Simplified Chinese", style)

        assert text in prompt
        assert "English" in prompt
        assert "Simplified Chinese" in prompt
        assert prompt.endswith("\n\n" + text)

    def test_document_style_mentions_markdown(self):
        prompt = build_prompt("x", "English", "Japanese", "document")
        assert "markdown" in prompt
        assert prompt.startswith("Translate the following markdown document from English to Japanese.")

    def test_text_style_is_generic(self):
        prompt = build_prompt("x", "English", "Japanese", "text")
        assert "markdown" not in prompt
        assert prompt.startswith("Translate the following text from English to Japanese.")

    def test_empty_text(self):
        prompt = build_prompt("", "English", "French")
        assert prompt.endswith(":\n\n")

    def test_language_names_not_validated(self):
        prompt = build_prompt("hi", "{source}", "Klingon!!")
        assert "{source}" in prompt
        assert "Klingon!!" in prompt

    def test_unknown_style(self):
        with pytest.raises(ValueError, match="Unknown prompt style"):
            build_prompt("hi", "English", "French", "poem")


class TestParsing:
    """Test response parsing helpers."""

    def test_generate_response_trimmed(self):
        assert parse_generate_response(b'{"response": "  hola \\n"}') == "hola"

    def test_generate_response_extra_fields_ignored(self):
        body = b'{"model": "qwen2.5:3b", "response": "ok", "done": true}'
        assert parse_generate_response(body) == "ok"

    @pytest.mark.parametrize("body", [b"not json", b'{"done": true}', b'{"response": 3}', b"[]"])
    def test_generate_response_malformed(self, body):
        with pytest.raises(ResponseFormatError):
            parse_generate_response(body)

    def test_model_names_skip_entries_without_name(self):
        body = b'{"models": [{"name": "a"}, {"size": 1}, "junk", {"name": "b"}]}'
        assert parse_model_names(body) == ["a", "b"]

    def test_model_names_missing_key(self):
        assert parse_model_names(b"{}") == []

    def test_model_names_not_a_list(self):
        with pytest.raises(ResponseFormatError):
            parse_model_names(b'{"models": "a"}')


class TestClientSetup:
    """Test client construction."""

    def test_defaults(self):
        client = OllamaClient()

        assert client.base_url == "http://localhost:11434"
        assert client.model == "qwen2.5:3b"
        assert client.timeout == 300
        assert client.num_predict is None
        assert client.prompt_style == "document"

    def test_trailing_slash_stripped(self):
        client = OllamaClient(base_url="http://localhost:11434/")
        assert client.base_url == "http://localhost:11434"

    def test_invalid_url(self):
        with pytest.raises(ValueError, match="Invalid Ollama URL"):
            OllamaClient(base_url="localhost:11434")

    def test_invalid_prompt_style(self):
        with pytest.raises(ValueError, match="Unknown prompt style"):
            OllamaClient(prompt_style="poem")

    def test_payload_with_num_predict(self):
        client = OllamaClient(num_predict=4096)
        payload = client.build_payload("p")

        assert payload == {
            "model": "qwen2.5:3b",
            "prompt": "p",
            "stream": False,
            "options": {"temperature": 0.3, "top_p": 0.9, "num_predict": 4096},
        }

    def test_payload_without_num_predict(self):
        payload = OllamaClient().build_payload("p")
        assert "num_predict" not in payload["options"]

    def test_from_config(self, temp_config_dir):
        config = Config(temp_config_dir / "config.yaml")
        client = OllamaClient.from_config(config, model="llama3", prompt_style="text")

        assert client.model == "llama3"
        assert client.base_url == "http://localhost:11434"
        assert client.num_predict == 4096
        assert client.prompt_style == "text"


class TestTranslate:
    """Test translate against a stub server."""

    def test_trims_response(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", body={"response": "  hola  "})
        client = OllamaClient(base_url=ollama_stub.url)

        result = client.translate("hello", "English", "Spanish")

        assert result == "hola"
        assert result == result.strip()

    def test_request_body(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", body={"response": "hola"})
        client = OllamaClient(base_url=ollama_stub.url, model="llama3", num_predict=4096)

        client.translate("hello", "English", "Spanish")

        sent = ollama_stub.last_json()
        assert ollama_stub.requests[-1]["path"] == "/api/generate"
        assert sent["model"] == "llama3"
        assert sent["stream"] is False
        assert sent["options"] == {"temperature": 0.3, "top_p": 0.9, "num_predict": 4096}
        assert "hello" in sent["prompt"]
        assert "English" in sent["prompt"]
        assert "Spanish" in sent["prompt"]

    def test_empty_text(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", body={"response": ""})
        client = OllamaClient(base_url=ollama_stub.url)

        assert client.translate("", "English", "Spanish") == ""

    def test_translate_request(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", body={"response": "Bonjour\n"})
        client = OllamaClient(base_url=ollama_stub.url)

        result = client.translate_request(TranslationRequest("Hello", "English", "French"))

        assert result == TranslationResult(translated_text="Bonjour")

    def test_server_error(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", status=500, raw="model crashed")
        client = OllamaClient(base_url=ollama_stub.url)

        with pytest.raises(UpstreamError) as exc_info:
            client.translate("hello", "English", "Spanish")

        assert exc_info.value.status_code == 500
        assert "model crashed" in exc_info.value.body
        assert "500" in str(exc_info.value)

    def test_model_not_found(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", status=404, body={"error": "model not found"})
        client = OllamaClient(base_url=ollama_stub.url)

        with pytest.raises(UpstreamError) as exc_info:
            client.translate("hello", "English", "Spanish")
        assert exc_info.value.status_code == 404

    def test_malformed_json(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", raw="<html>oops</html>")
        client = OllamaClient(base_url=ollama_stub.url)

        with pytest.raises(ResponseFormatError):
            client.translate("hello", "English", "Spanish")

    def test_missing_response_field(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", body={"done": True})
        client = OllamaClient(base_url=ollama_stub.url)

        with pytest.raises(ResponseFormatError):
            client.translate("hello", "English", "Spanish")

    def test_connection_refused(self, unreachable_url):
        client = OllamaClient(base_url=unreachable_url)

        with pytest.raises(TransportError) as exc_info:
            client.translate("hello", "English", "Spanish")

        assert exc_info.value.cause is not None
        assert isinstance(exc_info.value, NeuralError)

    def test_timeout(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", hang=True)
        client = OllamaClient(base_url=ollama_stub.url, timeout=0.5)

        start = time.monotonic()
        with pytest.raises(TransportError):
            client.translate("hello", "English", "Spanish")

        assert time.monotonic() - start < 5


class TestHealth:
    """Test health checks against a stub server."""

    def test_lists_models_in_order(self, ollama_stub):
        ollama_stub.reply(
            "GET", "/api/tags",
            body={"models": [{"name": "qwen2.5:3b"}, {"name": "llama3"}]},
        )
        client = OllamaClient(base_url=ollama_stub.url)

        status = client.check_health()

        assert status.reachable is True
        assert status.models == ("qwen2.5:3b", "llama3")
        assert status

    def test_no_models(self, ollama_stub):
        ollama_stub.reply("GET", "/api/tags", body={"models": []})
        status = OllamaClient(base_url=ollama_stub.url).check_health()

        assert status == HealthStatus(reachable=True, models=())

    def test_unreadable_body_still_reachable(self, ollama_stub):
        ollama_stub.reply("GET", "/api/tags", raw="ok")
        status = OllamaClient(base_url=ollama_stub.url).check_health()

        assert status.reachable is True
        assert status.models == ()

    def test_unreachable_does_not_raise(self, unreachable_url):
        status = OllamaClient(base_url=unreachable_url).check_health()

        assert status.reachable is False
        assert not status

    def test_error_status_is_unreachable(self, ollama_stub):
        ollama_stub.reply("GET", "/api/tags", status=500)
        status = OllamaClient(base_url=ollama_stub.url).check_health()

        assert status.reachable is False

    def test_diagnose_reports_status_code(self, ollama_stub):
        ollama_stub.reply("GET", "/api/tags", status=503)
        client = OllamaClient(base_url=ollama_stub.url)

        with pytest.raises(UpstreamError) as exc_info:
            client.diagnose_health()
        assert exc_info.value.status_code == 503

    def test_diagnose_unreachable(self, unreachable_url):
        with pytest.raises(TransportError):
            OllamaClient(base_url=unreachable_url).diagnose_health()

    def test_diagnose_malformed(self, ollama_stub):
        ollama_stub.reply("GET", "/api/tags", raw="nope")
        with pytest.raises(ResponseFormatError):
            OllamaClient(base_url=ollama_stub.url).diagnose_health()

    def test_list_models(self, ollama_stub):
        ollama_stub.reply("GET", "/api/tags", body={"models": [{"name": "a"}, {"name": "b"}]})
        assert OllamaClient(base_url=ollama_stub.url).list_models() == ["a", "b"]

    def test_has_model(self, ollama_stub):
        ollama_stub.reply("GET", "/api/tags", body={"models": [{"name": "qwen2.5:3b"}, {"name": "llama3:latest"}]})

        assert OllamaClient(base_url=ollama_stub.url).has_model() is True
        assert OllamaClient(base_url=ollama_stub.url, model="llama3").has_model() is True
        assert OllamaClient(base_url=ollama_stub.url, model="mistral").has_model() is False

    def test_has_model_uses_given_status(self, ollama_stub):
        """An unreachable status passed in is trusted; the server is not asked again."""
        ollama_stub.reply("GET", "/api/tags", body={"models": [{"name": "qwen2.5:3b"}]})
        client = OllamaClient(base_url=ollama_stub.url)

        assert client.has_model(status=HealthStatus(False)) is False
        assert ollama_stub.requests == []

    def test_has_model_with_reachable_status(self, ollama_stub):
        client = OllamaClient(base_url=ollama_stub.url)

        assert client.has_model(status=HealthStatus(True, ("qwen2.5:3b",))) is True
        assert ollama_stub.requests == []


class TestAsync:
    """Test the awaitable variants."""

    def test_concurrent_translations(self, ollama_stub):
        ollama_stub.reply("POST", "/api/generate", body={"response": " hola "})
        client = OllamaClient(base_url=ollama_stub.url)

        async def run():
            return await asyncio.gather(
                client.atranslate("hello", "English", "Spanish"),
                client.atranslate("hi", "English", "Spanish"),
            )

        assert asyncio.run(run()) == ["hola", "hola"]
        assert len(ollama_stub.requests) == 2

    def test_acheck_health(self, unreachable_url):
        status = asyncio.run(OllamaClient(base_url=unreachable_url).acheck_health())
        assert status.reachable is False

    def test_adiagnose_health(self, ollama_stub):
        ollama_stub.reply("GET", "/api/tags", body={"models": [{"name": "a"}]})
        status = asyncio.run(OllamaClient(base_url=ollama_stub.url).adiagnose_health())
        assert status.models == ("a",)
