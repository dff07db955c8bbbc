"""Interactive translation session with clipboard and shortcut support."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

from prompt_toolkit.clipboard import ClipboardData, InMemoryClipboard

from .client import OllamaClient
from .config import (
    AUTO_LANGUAGE,
    DEFAULT_SHORTCUT,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    WATCH_INTERVAL,
)
from .errors import NeuralError

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """A session command failed; the message is shown to the user as-is."""


class Clipboard(Protocol):
    """Text clipboard used by the session."""

    def read_text(self) -> str: ...

    def write_text(self, text: str) -> None: ...


class PromptToolkitClipboard:
    """Adapts a prompt_toolkit clipboard to the Clipboard protocol."""

    def __init__(self, clipboard=None):
        self.clipboard = clipboard or InMemoryClipboard()

    def read_text(self) -> str:
        return self.clipboard.get_data().text

    def write_text(self, text: str) -> None:
        self.clipboard.set_data(ClipboardData(text))


class TranslatorSession:
    """
    State for one interactive session.

    The client itself is stateless; the lock only protects the session's own
    fields (languages, input and last translation) when commands are
    dispatched from several threads, e.g. a key binding and the main loop.
    """

    def __init__(
        self,
        client: OllamaClient,
        clipboard: Clipboard | None = None,
        source_language: str = AUTO_LANGUAGE,
        target_language: str = DEFAULT_TARGET_LANGUAGE,
    ):
        self.client = client
        self.clipboard = clipboard or PromptToolkitClipboard()
        self.source_language = source_language
        self.target_language = target_language
        self.input_text = ""
        self.translated_text = ""
        self.watching = False
        self._last_clipboard = ""
        self._lock = threading.Lock()
        self._shortcuts: dict[str, Callable[[], None]] = {}

    def set_source_language(self, language: str) -> None:
        with self._lock:
            self.source_language = language

    def set_target_language(self, language: str) -> None:
        if not language or language == AUTO_LANGUAGE:
            raise CommandError("Target language cannot be Auto")
        with self._lock:
            self.target_language = language

    @staticmethod
    def resolve_source(language: str) -> str:
        """Map the "Auto" source choice to a concrete language."""
        return DEFAULT_SOURCE_LANGUAGE if language == AUTO_LANGUAGE else language

    def translate(self, text: str, from_lang: str | None = None, to_lang: str | None = None) -> dict:
        """
        Translate text and remember it as the latest result.

        Returns:
            {"translated_text": ...}

        Raises:
            CommandError: with the failure message
        """
        with self._lock:
            source = self.resolve_source(from_lang or self.source_language)
            target = to_lang or self.target_language
            if not target or target == AUTO_LANGUAGE:
                raise CommandError("A target language is required")

            try:
                translated = self.client.translate(text, source, target)
            except NeuralError as e:
                logger.debug("Translation failed: %s", e)
                raise CommandError(str(e)) from e

            self.input_text = text
            self.translated_text = translated
            return {"translated_text": translated}

    def check_ollama_health(self) -> bool:
        return self.client.check_health().reachable

    def get_clipboard_text(self) -> str:
        try:
            return self.clipboard.read_text()
        except Exception as e:
            raise CommandError(f"Failed to read clipboard: {e}") from e

    def set_clipboard_text(self, text: str) -> None:
        try:
            self.clipboard.write_text(text)
        except Exception as e:
            raise CommandError(f"Failed to write to clipboard: {e}") from e

    def copy_translation(self) -> bool:
        """Copy the latest translation to the clipboard. Returns False if there is none."""
        if not self.translated_text:
            return False
        self.set_clipboard_text(self.translated_text)
        return True

    def translate_clipboard(self) -> dict | None:
        """Translate the clipboard contents, or return None when it holds only whitespace."""
        text = self.get_clipboard_text()
        if not text.strip():
            return None
        return self.translate(text)

    def toggle_watch(self) -> bool:
        """Turn clipboard watching on or off and return the new state."""
        with self._lock:
            self.watching = not self.watching
            return self.watching

    def poll_clipboard(self) -> dict | None:
        """
        Translate the clipboard if it changed since the last poll.

        Blank text and text already seen are ignored and return None.
        """
        text = self.get_clipboard_text()
        with self._lock:
            if not text.strip() or text == self._last_clipboard:
                return None
            self._last_clipboard = text
        return self.translate(text)

    def swap_languages(self) -> None:
        """Swap source and target, and feed the latest translation back as input."""
        with self._lock:
            if self.source_language == AUTO_LANGUAGE:
                raise CommandError("Cannot swap languages while the source is Auto")
            self.source_language, self.target_language = self.target_language, self.source_language
            self.input_text = self.translated_text
            self.translated_text = ""

    def on_shortcut(self, binding: str, callback: Callable[[], None]) -> None:
        """Register a callback for a key binding (e.g. "c-t")."""
        self._shortcuts[binding] = callback

    def trigger_shortcut(self, binding: str) -> None:
        callback = self._shortcuts.get(binding)
        if callback is None:
            raise CommandError(f"No shortcut registered for {binding}")
        callback()

    @property
    def shortcuts(self) -> dict[str, Callable[[], None]]:
        return dict(self._shortcuts)

    def register_default_shortcut(
        self,
        on_result: Callable[[dict | None], None],
        binding: str = DEFAULT_SHORTCUT,
    ) -> None:
        """Bind ``binding`` to "translate whatever is on the clipboard"."""
        self.on_shortcut(binding, lambda: on_result(self.translate_clipboard()))


class ClipboardWatcher(threading.Thread):
    """Background thread that polls the clipboard while the session is watching."""

    def __init__(
        self,
        session: TranslatorSession,
        on_result: Callable[[dict], None],
        on_error: Callable[[CommandError], None],
        interval: float = WATCH_INTERVAL,
    ):
        super().__init__(name="clipboard-watcher", daemon=True)
        self.session = session
        self.on_result = on_result
        self.on_error = on_error
        self.interval = interval
        self._stopped = threading.Event()

    def poll_once(self) -> None:
        if not self.session.watching:
            return
        try:
            result = self.session.poll_clipboard()
        except CommandError as e:
            self.on_error(e)
            return
        if result is not None:
            self.on_result(result)

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            self.poll_once()

    def stop(self) -> None:
        self._stopped.set()
