"""
Core service for AI triage of issues.

Builds the triage prompt, asks the AI model for a JSON verdict, validates it
and caches the result per issue. Bulk triage runs the same flow for many
issues through the bulk processor.
"""

import json
import logging
from typing import List, Optional, Sequence

from triagecli.core.services.bulk_processor import ProgressCallback, process_bulk
from triagecli.domain.errors import InvalidAIResponseError, TruncatedResponseError
from triagecli.domain.interfaces.ai_model import AIModel
from triagecli.domain.interfaces.cache import FileCache
from triagecli.domain.models.ai import ChatMessage
from triagecli.domain.models.bulk import BulkResult
from triagecli.domain.models.common import MessageRole
from triagecli.domain.models.issue import IssueDetails, TriageResult
from triagecli.infrastructure.cache.file_cache import cache_key_issue
from triagecli.infrastructure.resilience.api_retry import RetryPolicy

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 4000

SYSTEM_PROMPT = """You are an experienced open-source maintainer triaging GitHub issues.
Respond with a single JSON object and nothing else, using exactly these fields:
{
  "summary": "<two or three sentence summary of the issue>",
  "suggested_labels": ["<label>", ...],
  "clarifying_questions": ["<question for the reporter>", ...]
}
Use an empty list when no labels or questions apply."""


def build_triage_messages(issue: IssueDetails) -> List[ChatMessage]:
    """Creates the chat messages asking the model to triage ``issue``."""
    body = issue.body or "(no description provided)"
    if len(body) > MAX_BODY_CHARS:
        body = body[:MAX_BODY_CHARS] + "\n[... truncated ...]"
    labels = ", ".join(issue.labels) if issue.labels else "none"
    user_prompt = (
        f"Repository: {issue.owner}/{issue.repo}\n"
        f"Issue #{issue.number}: {issue.title}\n"
        f"Existing labels: {labels}\n\n"
        f"{body}"
    )
    return [
        ChatMessage(role=MessageRole("system"), content=SYSTEM_PROMPT),
        ChatMessage(role=MessageRole("user"), content=user_prompt),
    ]


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        text = text[first_newline + 1:] if first_newline != -1 else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_triage_response(content: str, provider: str) -> dict:
    """Parses the model's answer into the triage JSON object.

    Raises:
        TruncatedResponseError: If the JSON document ends before it is complete.
        InvalidAIResponseError: If the answer is not a valid triage object.
    """
    text = _strip_code_fence(content)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        # Running out of input, inside or outside a string, means the document was cut off
        if text and (e.pos >= len(text) or e.msg.startswith("Unterminated string")):
            raise TruncatedResponseError(provider) from e
        raise InvalidAIResponseError(f"Response from {provider} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidAIResponseError(f"Expected a JSON object from {provider}, got {type(data).__name__}")
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise InvalidAIResponseError(f"Response from {provider} has no summary")
    for field_name in ("suggested_labels", "clarifying_questions"):
        value = data.get(field_name, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise InvalidAIResponseError(f"'{field_name}' from {provider} must be a list of strings")
    return data


class TriageService:
    """Orchestrates triage of single issues and batches of issues."""

    def __init__(self, ai_model: AIModel, cache: FileCache, force: bool = False):
        """Initializes the TriageService.

        Args:
            ai_model: Model used for triage.
            cache: Cache of previous triage results.
            force: Re-triage issues that already have a cached result.
        """
        self.ai_model = ai_model
        self.cache = cache
        self.force = force
        logger.info(f"TriageService initialized with AI model: {ai_model.__class__.__name__}")

    async def triage_issue(self, issue: IssueDetails) -> Optional[TriageResult]:
        """Triages one issue.

        Returns:
            The triage result, or None if the issue was already triaged and
            ``force`` is off.
        """
        key = cache_key_issue(issue.owner, issue.repo, issue.number)
        if not self.force and await self.cache.get(key) is not None:
            logger.info(f"Skipping {issue.reference}: already triaged")
            return None

        response = await self.ai_model.complete(build_triage_messages(issue))
        data = parse_triage_response(response.content, self.ai_model.provider_name)
        result = TriageResult(
            issue_number=issue.number,
            issue_title=issue.title,
            summary=data["summary"].strip(),
            suggested_labels=data.get("suggested_labels", []),
            clarifying_questions=data.get("clarifying_questions", []),
            model_name=response.model_name,
        )
        await self.cache.set(key, result.to_dict())
        logger.debug(f"Triaged {issue.reference}: labels={result.suggested_labels}")
        return result

    async def triage_bulk(
        self,
        issues: Sequence[IssueDetails],
        progress: ProgressCallback,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> BulkResult:
        """Triages many issues concurrently. Outcomes are keyed by ``IssueDetails.reference``."""

        async def triage_one(_reference: str, issue: IssueDetails) -> Optional[TriageResult]:
            return await self.triage_issue(issue)

        items = [(issue.reference, issue) for issue in issues]
        return await process_bulk(items, triage_one, progress, retry_policy=retry_policy)
