"""Domain models for issue triage."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class IssueDetails:
    """An issue exported from the source-code hosting service."""
    owner: str
    repo: str
    number: int
    title: str
    body: str = ""
    labels: List[str] = field(default_factory=list)

    @property
    def reference(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_repo: Optional[str] = None) -> "IssueDetails":
        """Builds an issue from an exported mapping.

        Accepts either ``owner``/``repo`` fields or a ``repository`` field of the
        form ``owner/repo``; ``default_repo`` is used when neither is present.
        """
        owner = data.get("owner")
        repo = data.get("repo")
        full_name = data.get("repository") or default_repo
        if (not owner or not repo) and full_name:
            owner, _, repo = str(full_name).partition("/")
        if not owner or not repo:
            raise ValueError(f"Issue {data.get('number')!r} has no repository")
        if "number" not in data or "title" not in data:
            raise ValueError(f"Issue entry is missing 'number' or 'title': {data!r}")
        return cls(
            owner=owner,
            repo=repo,
            number=int(data["number"]),
            title=str(data["title"]),
            body=str(data.get("body") or ""),
            labels=[str(label) for label in data.get("labels") or []],
        )


@dataclass
class TriageResult:
    """AI triage of a single issue."""
    issue_number: int
    issue_title: str
    summary: str
    suggested_labels: List[str] = field(default_factory=list)
    clarifying_questions: List[str] = field(default_factory=list)
    model_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue_number": self.issue_number,
            "issue_title": self.issue_title,
            "summary": self.summary,
            "suggested_labels": list(self.suggested_labels),
            "clarifying_questions": list(self.clarifying_questions),
            "model_name": self.model_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TriageResult":
        return cls(
            issue_number=int(data["issue_number"]),
            issue_title=data["issue_title"],
            summary=data["summary"],
            suggested_labels=list(data.get("suggested_labels") or []),
            clarifying_questions=list(data.get("clarifying_questions") or []),
            model_name=data.get("model_name"),
        )
