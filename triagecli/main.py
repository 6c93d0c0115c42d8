"""Main entry point for the triagecli application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any, Coroutine, Dict, Optional, TypeVar

import groq
import openai
import typer

from triagecli.core.command_handler import CACHE_SUBDIRS, CommandHandler
from triagecli.domain.errors import TriageCliError
from triagecli.infrastructure.ai.client_factory import create_client
from triagecli.infrastructure.cli.display import ConsoleDisplay, format_error
from triagecli.infrastructure.config.settings import load_configuration
from triagecli.infrastructure.monitoring.logger_setup import configure_logging
from triagecli.infrastructure.resilience.api_retry import TRANSIENT_EXCEPTIONS

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors a command may end with; rendered with a hint instead of a traceback
COMMAND_ERRORS = (
    TriageCliError,
    ValueError,
    OSError,
    openai.APIError,
    groq.APIError,
) + TRANSIENT_EXCEPTIONS

# Filled in by the app callback before any command runs
_dependencies: Dict[str, Any] = {}


def create_dependencies(verbose: bool = False) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    ui = ConsoleDisplay()
    try:
        load_configuration(force=True)
        configure_logging(verbose=verbose)
        handler = CommandHandler(ui=ui, client_factory=create_client)
    except TriageCliError as e:
        ui.display_error(format_error(e))
        raise typer.Exit(code=1)
    logger.debug("All dependencies initialized.")
    return {"ui": ui, "command_handler": handler}


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Runs a command coroutine, rendering expected errors and exiting with status 1."""
    try:
        return asyncio.run(coro)
    except COMMAND_ERRORS as e:
        logger.debug(f"Command failed: {type(e).__name__}", exc_info=True)
        _dependencies["ui"].display_error(format_error(e))
        raise typer.Exit(code=1)


# --- Typer App Definition ---
app = typer.Typer(
    name="triagecli",
    help="triagecli: AI-assisted issue triage with retries, circuit breaking and caching.",
    add_completion=False,
)

ProviderOption = Annotated[
    Optional[str],
    typer.Option("--provider", "-p", help="AI provider to use ('openai', 'openrouter', 'groq'). Uses config if not set."),
]


@app.command()
def triage(
    issues_file: Annotated[Path, typer.Argument(
        exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True,
        help="YAML or JSON file with the issues to triage.",
    )],
    provider: ProviderOption = None,
    model: Annotated[Optional[str], typer.Option("--model", "-m", help="Model to use.")] = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Re-triage issues that were already triaged.")] = False,
):
    """Triage every issue in ISSUES_FILE with the AI provider."""
    handler: CommandHandler = _dependencies["command_handler"]
    result = run_async(handler.handle_triage(issues_file, provider=provider, model=model, force=force))
    if result.total > 0 and result.failed == result.total:
        raise typer.Exit(code=1)


@app.command()
def models(provider: ProviderOption = None):
    """List the models available from a provider."""
    handler: CommandHandler = _dependencies["command_handler"]
    run_async(handler.handle_list_models(provider))


@app.command(name="clear-cache")
def clear_cache_command(
    subdir: Annotated[Optional[str], typer.Option(help=f"Cache to clear ({', '.join(CACHE_SUBDIRS)}). All if not set.")] = None,
):
    """Clears the application cache."""
    handler: CommandHandler = _dependencies["command_handler"]
    run_async(handler.handle_clear_cache(subdir))


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """AI-assisted issue triage."""
    _dependencies.clear()
    _dependencies.update(create_dependencies(verbose=verbose))


def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
