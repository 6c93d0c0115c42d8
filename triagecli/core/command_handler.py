"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), builds the services a
command needs and delegates the work to them. Errors propagate to the caller,
which renders them for the user.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

import yaml

from triagecli.core.services.triage_service import TriageService
from triagecli.domain.interfaces.ai_model import AIModel
from triagecli.domain.interfaces.user_interface import UserInterface
from triagecli.domain.models.ai import ProviderModel
from triagecli.domain.models.bulk import BulkResult
from triagecli.domain.models.issue import IssueDetails
from triagecli.infrastructure.cache.file_cache import (
    MODELS_SUBDIR,
    TRIAGE_SUBDIR,
    FileCacheImpl,
)
from triagecli.infrastructure.config import settings

logger = logging.getLogger(__name__)

CACHE_SUBDIRS = (MODELS_SUBDIR, TRIAGE_SUBDIR)

ClientFactory = Callable[..., AIModel]


def load_issues(path: Path, default_repo: Optional[str] = None) -> List[IssueDetails]:
    """Loads issues from a YAML or JSON file holding a list of mappings.

    A mapping with an ``issues`` list is accepted too, with an optional
    top-level ``repository`` applied to entries that name none.

    Raises:
        ValueError: If the file does not have that shape.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Could not parse {path}: {e}") from e

    if isinstance(data, dict):
        default_repo = data.get("repository", default_repo)
        data = data.get("issues")
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a list of issues")
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError(f"Issue entries must be mappings, got: {entry!r}")
    return [IssueDetails.from_dict(entry, default_repo=default_repo) for entry in data]


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        ui: UserInterface,
        client_factory: ClientFactory,
        cache_root: Optional[Path] = None,
    ):
        """Initializes the CommandHandler.

        Args:
            ui: Where progress and results are displayed.
            client_factory: Builds an AIModel from ``provider`` and ``model`` keywords.
            cache_root: Cache root directory; the configured root when None.
        """
        self.ui = ui
        self.client_factory = client_factory
        self.cache_root = cache_root or settings.get_cache_root()

    def _cache(self, subdirectory: str) -> FileCacheImpl:
        return FileCacheImpl(subdirectory, settings.get_cache_ttl(subdirectory), cache_root=self.cache_root)

    async def handle_triage(
        self,
        issues_file: Path,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        force: bool = False,
    ) -> BulkResult:
        """Triages every issue in ``issues_file`` and displays the outcome."""
        issues = load_issues(issues_file)
        logger.info(f"Handling 'triage' for {len(issues)} issues from {issues_file}")
        if not issues:
            self.ui.display_warning(f"No issues found in {issues_file}.")

        ai_model = self.client_factory(provider=provider, model=model)
        service = TriageService(ai_model, self._cache(TRIAGE_SUBDIR), force=force)
        result = await service.triage_bulk(issues, self.ui.show_progress)
        self.ui.display_bulk_result(result)
        return result

    async def handle_list_models(self, provider: Optional[str] = None) -> List[ProviderModel]:
        """Lists a provider's models, from cache when fresh and stale when the provider is down."""
        selected_provider = provider or settings.get_ai_provider()
        logger.info(f"Handling 'models' command for provider: {selected_provider}")
        client = self.client_factory(provider=selected_provider)
        models = await client.list_available_models(cache=self._cache(MODELS_SUBDIR))
        self.ui.display_models(selected_provider, models)
        return models

    async def handle_clear_cache(self, subdirectory: Optional[str] = None) -> None:
        """Removes one cache subdirectory, or all of them when none is given."""
        if subdirectory is not None and subdirectory not in CACHE_SUBDIRS:
            raise ValueError(f"Unknown cache '{subdirectory}'. Choose from: {', '.join(CACHE_SUBDIRS)}")
        targets = [subdirectory] if subdirectory else list(CACHE_SUBDIRS)
        for name in targets:
            await self._cache(name).clear()
        self.ui.display_info(f"Cleared cache: {', '.join(targets)}")
