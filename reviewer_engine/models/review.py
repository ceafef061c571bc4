"""Suggestion and assignment models produced by the assignment engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from reviewer_engine.models.change_request import Priority
from reviewer_engine.models.person import Person
from reviewer_engine.utils.time import as_utc


class ReasonType(str, Enum):
    """Why a reviewer was suggested."""

    EXPERTISE_MATCH = "expertise_match"
    WORKLOAD_BALANCE = "workload_balance"
    AVAILABILITY = "availability"
    COLLABORATION_HISTORY = "collaboration_history"
    FILE_OWNERSHIP = "file_ownership"
    TEAM_DIVERSITY = "team_diversity"
    REQUIRED_REVIEWER = "required_reviewer"


@dataclass
class Reason:
    """A single explanation attached to a suggestion."""

    type: ReasonType
    description: str
    weight: float = 0.0
    evidence: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "weight": round(self.weight, 4),
            "evidence": self.evidence,
        }


@dataclass
class Suggestion:
    """A candidate reviewer with a confidence score and its reasons."""

    reviewer: Person
    confidence: float = 0.0  # 0.0 to 1.0
    reasons: list[Reason] = field(default_factory=list)
    estimated_minutes: int = 0
    workload_impact: float = 0.0  # 0.0 to 1.0
    availability_score: float = 0.0  # 0.0 to 1.0

    def __post_init__(self) -> None:
        self.confidence = max(0.0, min(1.0, self.confidence))

    @property
    def reviewer_id(self) -> str:
        return self.reviewer.id

    def has_reason(self, reason_type: ReasonType) -> bool:
        return any(r.type == reason_type for r in self.reasons)

    def reasons_of(self, reason_type: ReasonType) -> list[Reason]:
        return [r for r in self.reasons if r.type == reason_type]


@dataclass
class Assignment:
    """A finalized reviewer assignment. Persisted by the caller."""

    pull_request_id: str
    reviewer_id: str
    assigned_at: datetime
    confidence: float
    reasons: list[Reason]
    priority: Priority
    estimated_minutes: int
    deadline: datetime

    def __post_init__(self) -> None:
        self.assigned_at = as_utc(self.assigned_at)
        self.deadline = as_utc(self.deadline)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "pull_request_id": self.pull_request_id,
            "reviewer_id": self.reviewer_id,
            "assigned_at": self.assigned_at.isoformat(),
            "confidence": round(self.confidence, 4),
            "reasons": [r.to_dict() for r in self.reasons],
            "priority": self.priority.value,
            "estimated_minutes": self.estimated_minutes,
            "deadline": self.deadline.isoformat(),
        }
