import httpx
import pytest
from rich.console import Console

from triagecli.domain.errors import (
    CircuitOpenError,
    ConfigError,
    NotAuthenticatedError,
    ProviderError,
    RateLimitedError,
    TruncatedResponseError,
)
from triagecli.domain.models.ai import ProviderModel
from triagecli.domain.models.bulk import BulkResult, Failed, Skipped, Success
from triagecli.domain.models.issue import TriageResult
from triagecli.infrastructure.cli.display import ConsoleDisplay, format_error


@pytest.fixture
def console():
    return Console(record=True, width=120, force_terminal=False, color_system=None)


@pytest.fixture
def console_display(console):
    """ConsoleDisplay writing into a recording console."""
    return ConsoleDisplay(console=console)


@pytest.mark.parametrize("error, hint", [
    (RateLimitedError("groq", 12), "Wait 12s"),
    (CircuitOpenError("openai"), "failed repeatedly"),
    (TruncatedResponseError("openai"), "larger output limit"),
    (NotAuthenticatedError("openrouter", "OPENROUTER_API_KEY"), "OPENROUTER_API_KEY"),
    (ConfigError("bad threshold"), "config.yaml"),
    (ProviderError("overloaded", status=503), "Try again later"),
    (httpx.ConnectTimeout("timed out"), "Check your network connection"),
    (ConnectionError("reset by peer"), "Check your network connection"),
])
def test_format_error_adds_hints(error, hint):
    rendered = format_error(error)
    assert rendered.startswith(str(error))
    assert hint in rendered


def test_format_error_without_hint():
    assert format_error(ValueError("plain")) == "plain"
    assert format_error(ProviderError("bad request", status=400)) == "AI provider error: bad request"


def test_show_progress(console_display, console):
    console_display.show_progress(2, 5, "Processing octocat/hello#[3]")
    assert "[2/5] Processing octocat/hello#[3]" in console.export_text()


def test_display_bulk_result(console_display, console):
    result = BulkResult()
    result.record("o/r#1", Success(TriageResult(1, "Crash", "App crashes.", ["bug"], ["Which OS?"])))
    result.record("o/r#2", Skipped("Skipped"))
    result.record("o/r#3", Failed("Rate limit exceeded on groq, retry after 5s"))

    console_display.display_bulk_result(result)
    text = console.export_text()

    assert "1 succeeded, 1 failed, 1 skipped (total 3)" in text
    assert "App crashes." in text
    assert "Labels: bug" in text
    assert "Rate limit exceeded on groq" in text


def test_display_models(console_display, console):
    console_display.display_models("groq", [ProviderModel("llama-3.3-70b-versatile", "groq", "Meta")])
    text = console.export_text()
    assert "llama-3.3-70b-versatile" in text
    assert "Meta" in text


def test_display_models_empty(console_display, console):
    console_display.display_models("groq", [])
    assert "No models reported by groq." in console.export_text()


def test_display_error(console_display, console):
    console_display.display_error("Something went wrong")
    text = console.export_text()
    assert "Error" in text
    assert "Something went wrong" in text
