"""Shared fixtures for Neural CLI tests."""

import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


class StubOllama:
    """A tiny in-process HTTP server that answers like Ollama."""

    def __init__(self):
        self.routes = {}
        self.requests = []
        self.release = threading.Event()
        self.server = ThreadingHTTPServer(("127.0.0.1", 0), self._make_handler())
        self.server.daemon_threads = True
        self.url = f"http://127.0.0.1:{self.server.server_port}"
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    def reply(self, method, path, status=200, body=None, raw=None, hang=False):
        """Configure the reply for a route. ``raw`` is sent as-is instead of JSON."""
        if raw is None:
            raw = json.dumps(body if body is not None else {}).encode("utf-8")
        elif isinstance(raw, str):
            raw = raw.encode("utf-8")
        self.routes[(method, path)] = (status, raw, hang)

    def last_json(self):
        return json.loads(self.requests[-1]["body"])

    def _make_handler(self):
        stub = self

        class Handler(BaseHTTPRequestHandler):
            def _handle(self):
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length else b""
                stub.requests.append({"method": self.command, "path": self.path, "body": body})

                status, raw, hang = stub.routes.get((self.command, self.path), (404, b"not found", False))
                if hang:
                    stub.release.wait(10)
                    return

                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(raw)))
                self.end_headers()
                self.wfile.write(raw)

            do_GET = _handle
            do_POST = _handle

            def log_message(self, format, *args):
                pass

        return Handler

    def start(self):
        self._thread.start()

    def stop(self):
        self.release.set()
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture
def ollama_stub():
    """Run a stub Ollama server for the duration of a test."""
    stub = StubOllama()
    stub.start()
    yield stub
    stub.stop()


@pytest.fixture
def unreachable_url():
    """URL of a local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def mock_config(temp_config_dir, monkeypatch):
    """Patch config paths to use temp directories."""
    from neural_cli import config, cli

    monkeypatch.setattr(config, "DEFAULT_CONFIG_DIR", temp_config_dir)
    monkeypatch.setattr(cli, "DEFAULT_CONFIG_DIR", temp_config_dir)

    # Reset global config
    config.reset_config()

    yield config.get_config()

    # Cleanup
    config.reset_config()


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()
