import logging
from typing import Any, List, Optional

from rich.box import HEAVY, SIMPLE
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from triagecli.domain.errors import (
    CacheCorruptedError,
    CircuitOpenError,
    ConfigError,
    InvalidAIResponseError,
    NotAuthenticatedError,
    ProviderError,
    RateLimitedError,
    TruncatedResponseError,
)
from triagecli.domain.interfaces.user_interface import UserInterface
from triagecli.domain.models.ai import ProviderModel
from triagecli.domain.models.bulk import BulkResult, Failed, Skipped, Success
from triagecli.infrastructure.resilience.api_retry import TRANSIENT_EXCEPTIONS

logger = logging.getLogger(__name__)


def format_error(error: BaseException) -> str:
    """Renders an error for the user, with a hint on what to do about it."""
    message = str(error)
    if isinstance(error, RateLimitedError):
        hint = f"Wait {error.retry_after}s before retrying, or switch provider with --provider."
    elif isinstance(error, CircuitOpenError):
        hint = f"{error.provider} failed repeatedly. Wait a minute before retrying, or use another provider."
    elif isinstance(error, TruncatedResponseError):
        hint = "The model stopped before finishing its answer. Retry, or choose a model with a larger output limit."
    elif isinstance(error, NotAuthenticatedError):
        hint = f"Set the {error.env_var} environment variable (or add it to a .env file)."
    elif isinstance(error, InvalidAIResponseError):
        hint = "The model did not answer in the expected JSON format. Retry or try a different model."
    elif isinstance(error, ConfigError):
        hint = "Check your config file (~/.config/triagecli/config.yaml) and TRIAGECLI_* environment variables."
    elif isinstance(error, CacheCorruptedError):
        hint = "Run 'triagecli clear-cache' to remove the damaged cache entries."
    elif isinstance(error, ProviderError) and error.retryable:
        hint = "The provider is having trouble. Try again later."
    elif isinstance(error, TRANSIENT_EXCEPTIONS):
        message = message or type(error).__name__
        hint = "Could not reach the provider. Check your network connection and try again."
    else:
        return message
    return f"{message}\nHint: {hint}"


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(Text(info_message, style="blue"))

    def show_progress(self, current: int, total: int, label: str) -> None:
        self.console.print(f"[dim]\\[{current}/{total}][/dim] {escape(label)}")

    def display_bulk_result(self, result: BulkResult) -> None:
        """Prints the succeeded/failed/skipped counts, then one row per item."""
        summary = (
            f"[green]{result.succeeded} succeeded[/green], "
            f"[red]{result.failed} failed[/red], "
            f"[yellow]{result.skipped} skipped[/yellow] "
            f"(total {result.total})"
        )
        self.console.print(Panel(summary, title="[bold]Summary[/bold]", box=SIMPLE))

        if not result.outcomes:
            return
        table = Table(show_header=True, header_style="bold")
        table.add_column("Item")
        table.add_column("Status")
        table.add_column("Details")
        for item_id, outcome in sorted(result.outcomes, key=lambda pair: str(pair[0])):
            if isinstance(outcome, Success):
                table.add_row(str(item_id), "[green]ok[/green]", Text(self._describe_value(outcome.value)))
            elif isinstance(outcome, Skipped):
                table.add_row(str(item_id), "[yellow]skipped[/yellow]", Text(outcome.reason))
            elif isinstance(outcome, Failed):
                table.add_row(str(item_id), "[red]failed[/red]", Text(outcome.reason))
        self.console.print(table)

    @staticmethod
    def _describe_value(value: Any) -> str:
        summary = getattr(value, "summary", None)
        if summary is None:
            return str(value)
        labels = getattr(value, "suggested_labels", None) or []
        details = summary
        if labels:
            details += f"\nLabels: {', '.join(labels)}"
        questions = getattr(value, "clarifying_questions", None) or []
        for question in questions:
            details += f"\n? {question}"
        return details

    def display_models(self, provider: str, models: List[ProviderModel]) -> None:
        if not models:
            self.display_warning(f"No models reported by {provider}.")
            return
        table = Table(title=f"Models available from {provider}", show_header=True, header_style="bold")
        table.add_column("Model ID")
        table.add_column("Owned by")
        for model in sorted(models, key=lambda m: m.model_id):
            table.add_row(model.model_id, model.owned_by or "")
        self.console.print(table)
