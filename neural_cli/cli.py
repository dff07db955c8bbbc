"""Command-line interface for Neural CLI."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from prompt_toolkit import PromptSession
from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.clipboard.pyperclip import PyperclipClipboard
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.styles import Style

from .client import OllamaClient
from .config import (
    get_config,
    create_default_config,
    DEFAULT_CONFIG_DIR,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_URL,
    AUTO_LANGUAGE,
    SESSION_LANGUAGES,
)
from .errors import LocalIOError, NeuralError, UpstreamError
from .session import ClipboardWatcher, CommandError, PromptToolkitClipboard, TranslatorSession

app = typer.Typer(
    name="neural",
    help="Fast local translation using Ollama",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)

# Prompt style
prompt_style = Style.from_dict({
    "prompt": "#00aa00 bold",
})


def setup_logging(verbose: bool) -> None:
    """Route log records through rich; debug level when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def read_input_file(path: Path) -> str:
    """Read a UTF-8 text file, raising LocalIOError on failure."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LocalIOError("Failed to read input file", path, e) from e


def write_output_file(path: Path, content: str) -> int:
    """Write content to a file and return its size in bytes."""
    try:
        path.write_text(content, encoding="utf-8")
        return path.stat().st_size
    except OSError as e:
        raise LocalIOError("Failed to write output file", path, e) from e


def fail(error: Exception) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show debug logging",
    ),
):
    """
    Translate text and documents with a local Ollama model.

    Examples:

        neural translate README.md --to Japanese -o README.ja.md

        neural text --to French "Good morning"

        neural health
    """
    setup_logging(verbose)

    # init must still be able to overwrite a broken file
    if ctx.invoked_subcommand == "init":
        return
    try:
        get_config()
    except (ValueError, yaml.YAMLError) as e:
        fail(e)


@app.command("translate")
def translate_cmd(
    input_file: Path = typer.Argument(..., metavar="FILE", help="Input file path"),
    to: str = typer.Option(..., "--to", help="Target language (e.g. Japanese, Simplified Chinese)"),
    output: Path = typer.Option(..., "--output", "-o", metavar="FILE", help="Output file path"),
    from_lang: Optional[str] = typer.Option(
        None,
        "--from",
        help="Source language (e.g. English, Japanese) [default: English]",
    ),
    ollama_url: Optional[str] = typer.Option(
        None,
        "--ollama-url",
        help=f"Ollama base URL [default: {DEFAULT_OLLAMA_URL}]",
    ),
    model: Optional[str] = typer.Option(
        None,
        "--model", "-m",
        help=f"Model name [default: {DEFAULT_MODEL}]",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the model [default: 300]",
    ),
):
    """Translate a file, preserving markdown structure."""
    config = get_config()
    source = from_lang or config.source_language

    try:
        client = OllamaClient.from_config(
            config,
            base_url=ollama_url,
            model=model,
            timeout=timeout,
            prompt_style="document",
        )
    except ValueError as e:
        fail(e)

    console.print(f"Translating [cyan]{source}[/cyan] → [cyan]{to}[/cyan]")
    console.print(f"  Input:  {input_file}")
    console.print(f"  Output: {output}")
    console.print(f"  Model:  {client.model}")

    try:
        content = read_input_file(input_file)
        logger.debug("Read %d characters from %s", len(content), input_file)

        status = client.check_health()
        if status.reachable and not client.has_model(status=status):
            console.print(f"[yellow]Model {client.model} is not listed by Ollama; "
                          f"try 'ollama pull {client.model}'[/yellow]")

        with console.status("Translating... (this may take a few minutes)"):
            translated = client.translate(content, source, to)

        size = write_output_file(output, translated)
    except NeuralError as e:
        fail(e)

    console.print("[green]✓ Translation complete[/green]")
    console.print(f"  Output size: {size} bytes")


@app.command("text")
def text_cmd(
    text: str = typer.Argument(..., help="Text to translate, or - to read stdin"),
    to: str = typer.Option(..., "--to", "-t", help="Target language"),
    from_lang: Optional[str] = typer.Option(None, "--from", "-f", help="Source language [default: English]"),
    ollama_url: Optional[str] = typer.Option(None, "--ollama-url", help="Ollama base URL"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name"),
):
    """Translate a short text and print the result."""
    config = get_config()

    if text == "-":
        text = sys.stdin.read()

    try:
        client = OllamaClient.from_config(config, base_url=ollama_url, model=model, prompt_style="text")
        translation = client.translate(text, from_lang or config.source_language, to)
    except (ValueError, NeuralError) as e:
        fail(e)

    print(translation)


@app.command("health")
def health_cmd(
    ollama_url: Optional[str] = typer.Option(None, "--ollama-url", help="Ollama base URL"),
):
    """Check that Ollama is running and list its models."""
    config = get_config()

    try:
        client = OllamaClient.from_config(config, base_url=ollama_url)
    except ValueError as e:
        fail(e)

    console.print(f"Checking Ollama health at {client.base_url}...\n")
    try:
        status = client.diagnose_health()
    except UpstreamError as e:
        console.print(f"[red]Ollama health check failed: {e.status_code}[/red]")
        raise typer.Exit(1)
    except NeuralError as e:
        fail(e)

    console.print(f"[green]✓ Ollama is running at {client.base_url}[/green]")
    if status.models:
        console.print("\n[bold]Available models:[/bold]")
        for name in status.models:
            console.print(f"  - {name}")
    else:
        console.print("\n[dim]No models installed. Try 'ollama pull qwen2.5:3b'.[/dim]")


def print_welcome(session: TranslatorSession):
    """Print welcome message."""
    healthy = session.check_ollama_health()
    status = "[green]connected[/green]" if healthy else "[red]not reachable[/red]"

    console.print()
    console.print(
        Panel(
            f"[bold]Neural Interactive[/bold] ({session.source_language} → {session.target_language})\n"
            f"[dim]Model: {session.client.model} | Ollama: [/dim]{status}"
            f"[dim] | Type /help for commands[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_help():
    """Print help message."""
    help_text = """
[bold]Commands:[/bold]
  [cyan]/from <lang>[/cyan]   - Set source language (Auto uses English)
  [cyan]/to <lang>[/cyan]     - Set target language
  [cyan]/swap[/cyan]          - Swap languages and reuse the last translation as input
  [cyan]/paste[/cyan]         - Translate the clipboard (also Ctrl+T)
  [cyan]/copy[/cyan]          - Copy the last translation to the clipboard
  [cyan]/watch[/cyan]         - Toggle translating new clipboard text automatically
  [cyan]/health[/cyan]        - Check the Ollama server
  [cyan]/langs[/cyan]         - List suggested languages
  [cyan]/config[/cyan]        - Show current configuration
  [cyan]/clear[/cyan]         - Clear screen
  [cyan]/help[/cyan]          - Show this help
  [cyan]/quit[/cyan]          - Exit (or /exit, Ctrl+D)
"""
    console.print(help_text)


def print_languages():
    """Print the suggested languages."""
    table = Table(title="Languages")
    table.add_column("Language", style="cyan")
    table.add_column("Note", style="dim")

    for lang in SESSION_LANGUAGES:
        note = "source only, treated as English" if lang == AUTO_LANGUAGE else ""
        table.add_row(lang, note)

    console.print(table)
    console.print("[dim]Any language name the model understands works.[/dim]")


def print_config(session: TranslatorSession):
    """Print current configuration."""
    config = get_config()
    client = session.client

    console.print("\n[bold]Current Configuration:[/bold]")
    console.print(f"  Ollama URL: [cyan]{client.base_url}[/cyan]")
    console.print(f"  Model: [cyan]{client.model}[/cyan]")
    console.print(f"  Timeout: [cyan]{client.timeout:g}s[/cyan]")
    console.print(f"  Languages: [cyan]{session.source_language} → {session.target_language}[/cyan]")
    console.print(f"  Shortcut: [cyan]{config.shortcut}[/cyan]")
    console.print(f"\n  Config file: [dim]{config.config_path}[/dim]")
    console.print()


def show_result(result: Optional[dict]) -> None:
    if result is None:
        console.print("[dim]Clipboard is empty.[/dim]")
    else:
        console.print(result["translated_text"], markup=False, highlight=False)


def handle_command(command: str, session: TranslatorSession) -> bool:
    """
    Handle slash commands.

    Returns:
        True if should continue REPL, False to exit
    """
    cmd = command.strip()
    cmd_lower = cmd.lower()

    try:
        if cmd_lower in ("/quit", "/exit", "/q"):
            console.print("[dim]Goodbye![/dim]")
            return False

        elif cmd_lower == "/help":
            print_help()

        elif cmd_lower == "/from" or cmd_lower.startswith("/from "):
            lang = cmd[5:].strip()
            if not lang:
                console.print("[yellow]Usage: /from <language>[/yellow]")
            else:
                session.set_source_language(lang)
                console.print(f"[green]Source language set to: {lang}[/green]")

        elif cmd_lower == "/to" or cmd_lower.startswith("/to "):
            lang = cmd[3:].strip()
            if not lang:
                console.print("[yellow]Usage: /to <language>[/yellow]")
                console.print("[dim]Example: /to Japanese, /to French[/dim]")
            else:
                session.set_target_language(lang)
                console.print(f"[green]Target language set to: {lang}[/green]")

        elif cmd_lower == "/swap":
            session.swap_languages()
            console.print(f"[green]Now translating {session.source_language} → {session.target_language}[/green]")
            if session.input_text:
                console.print(f"[dim]Input: {session.input_text}[/dim]")

        elif cmd_lower == "/paste":
            show_result(session.translate_clipboard())

        elif cmd_lower == "/copy":
            if session.copy_translation():
                console.print("[green]✓ Copied to clipboard[/green]")
            else:
                console.print("[yellow]Nothing to copy yet[/yellow]")

        elif cmd_lower == "/watch":
            if session.toggle_watch():
                console.print("[green]Watching the clipboard; new text is translated automatically[/green]")
            else:
                console.print("[green]Stopped watching the clipboard[/green]")

        elif cmd_lower == "/health":
            if session.check_ollama_health():
                console.print("[green]✓ Ollama is running[/green]")
            else:
                console.print("[red]Ollama is not reachable[/red]")

        elif cmd_lower == "/langs":
            print_languages()

        elif cmd_lower == "/config":
            print_config(session)

        elif cmd_lower == "/clear":
            console.clear()
            print_welcome(session)

        else:
            console.print(f"[yellow]Unknown command: {escape(command)}[/yellow]")
            console.print("[dim]Type /help for available commands.[/dim]")

    except CommandError as e:
        console.print(f"[red]{escape(str(e))}[/red]")

    return True


def build_key_bindings(session: TranslatorSession) -> KeyBindings:
    """Expose every session shortcut as a prompt_toolkit key binding."""
    kb = KeyBindings()

    for binding in session.shortcuts:
        def handler(event, binding=binding):
            def run():
                try:
                    session.trigger_shortcut(binding)
                except CommandError as e:
                    console.print(f"[red]{escape(str(e))}[/red]")
            run_in_terminal(run)

        kb.add(binding)(handler)

    return kb


def run_interactive(session: TranslatorSession):
    """Run the interactive REPL."""
    config = get_config()
    session.register_default_shortcut(show_result, config.shortcut)

    print_welcome(session)

    # Set up prompt with history
    history_file = DEFAULT_CONFIG_DIR / "history.txt"
    history_file.parent.mkdir(parents=True, exist_ok=True)

    prompt: PromptSession = PromptSession(
        history=FileHistory(str(history_file)),
        style=prompt_style,
        key_bindings=build_key_bindings(session),
    )

    watcher = ClipboardWatcher(
        session,
        on_result=show_result,
        on_error=lambda e: console.print(f"[red]{escape(str(e))}[/red]"),
    )
    watcher.start()

    # Watcher output is printed above the prompt instead of through it
    with patch_stdout():
        try:
            prompt_loop(prompt, session)
        finally:
            watcher.stop()


def prompt_loop(prompt: PromptSession, session: TranslatorSession):
    """Read lines until /quit or Ctrl+D."""
    while True:
        try:
            text = prompt.prompt("> ")

            if not text.strip():
                continue

            if text.startswith("/"):
                if not handle_command(text, session):
                    break
                continue

            try:
                result = session.translate(text)
                console.print(result["translated_text"], markup=False, highlight=False)
            except CommandError as e:
                console.print(f"[red]Translation error: {escape(str(e))}[/red]")

        except KeyboardInterrupt:
            console.print()
            continue

        except EOFError:
            # Ctrl+D
            console.print("\n[dim]Goodbye![/dim]")
            break


@app.command("interactive")
def interactive_cmd(
    from_lang: str = typer.Option(AUTO_LANGUAGE, "--from", "-f", help="Source language"),
    to: Optional[str] = typer.Option(None, "--to", "-t", help="Target language [default: Japanese]"),
    ollama_url: Optional[str] = typer.Option(None, "--ollama-url", help="Ollama base URL"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name"),
):
    """Start an interactive translation session."""
    config = get_config()

    if not sys.stdin.isatty():
        console.print("[yellow]Interactive mode requires a terminal.[/yellow]")
        console.print("[dim]Usage: neural text --to Japanese \"text to translate\"[/dim]")
        raise typer.Exit(1)

    target = to or config.target_language
    if target == AUTO_LANGUAGE:
        console.print("[red]Target language cannot be Auto[/red]")
        raise typer.Exit(1)

    try:
        # Short texts: plain prompt, no token cap
        client = OllamaClient(
            base_url=ollama_url or config.ollama_url,
            model=model or config.model,
            timeout=config.timeout,
            health_timeout=config.health_timeout,
            prompt_style="text",
            temperature=config.temperature,
            top_p=config.top_p,
        )
    except ValueError as e:
        fail(e)

    # System clipboard, so text copied in other applications is visible
    clipboard = PromptToolkitClipboard(PyperclipClipboard())
    run_interactive(
        TranslatorSession(client, clipboard=clipboard, source_language=from_lang, target_language=target)
    )


@app.command("init")
def init_cmd(
    force: bool = typer.Option(
        False,
        "--force", "-f",
        help="Overwrite existing config file",
    ),
):
    """Initialize configuration file with defaults."""
    config_path = DEFAULT_CONFIG_DIR / "config.yaml"

    if config_path.exists() and not force:
        console.print(f"[yellow]Config file already exists:[/yellow] {config_path}")
        console.print("[dim]Use --force to overwrite with defaults.[/dim]")
        raise typer.Exit(0)

    # Remove existing config if force is set
    if config_path.exists() and force:
        config_path.unlink()

    create_default_config(config_path)
    console.print(f"[green]✓ Created config file:[/green] {config_path}")
    console.print("\n[bold]Default configuration:[/bold]")
    console.print(f"  Ollama: {DEFAULT_OLLAMA_URL}")
    console.print(f"  Model: {DEFAULT_MODEL}")
    console.print("  Languages: English → Japanese")
    console.print(f"\n[dim]Edit {config_path} to customize.[/dim]")


if __name__ == "__main__":
    app()
