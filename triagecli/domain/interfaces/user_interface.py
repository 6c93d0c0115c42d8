"""Interface for presenting results and messages to the user."""

import abc
from typing import Any, List

from ..models.ai import ProviderModel
from ..models.bulk import BulkResult


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""

    @abc.abstractmethod
    def show_progress(self, current: int, total: int, label: str) -> None:
        """Reports that item ``current`` of ``total`` has started.

        Matches the bulk processor's progress callback signature.
        """

    @abc.abstractmethod
    def display_bulk_result(self, result: BulkResult) -> None:
        """Displays the summary and per-item details of a bulk run."""

    @abc.abstractmethod
    def display_models(self, provider: str, models: List[ProviderModel]) -> None:
        """Displays the models offered by a provider."""
