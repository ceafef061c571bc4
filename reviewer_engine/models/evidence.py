"""
Evidence records consumed from external collaborators.

- GitAnalysis: per-person history mined from source control
- CodePatternObservation: technology usage spotted in reviewed code
- CompletedReview: outcome of a finished review, used for effectiveness analysis

These arrive over the wire, so they are validated on parse.
"""

import hashlib
import json
from datetime import datetime
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reviewer_engine.utils.time import as_utc


def content_fingerprint(record: BaseModel) -> str:
    """Digest of a record's content. Equal records give equal fingerprints."""
    payload = json.dumps(record.model_dump(mode="json"), sort_keys=True)
    return hashlib.sha256(payload.encode()).hexdigest()[:16]


class GitAnalysis(BaseModel):
    """Historical activity of one person, as produced by the history miner."""

    model_config = ConfigDict(frozen=True)

    person_id: str = Field(min_length=1)
    analyzed_at: datetime | None = None

    commit_count: int = Field(default=0, ge=0)
    review_count: int = Field(default=0, ge=0)

    # Language name -> lines authored
    lines_by_language: dict[str, int] = Field(default_factory=dict)
    # Language name -> commits touching it (falls back to commit_count)
    commits_by_language: dict[str, int] = Field(default_factory=dict)

    files_touched: list[str] = Field(default_factory=list)

    @field_validator("analyzed_at")
    @classmethod
    def ensure_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value else None

    @property
    def fingerprint(self) -> str:
        return content_fingerprint(self)

    def commits_for(self, language: str) -> int:
        return self.commits_by_language.get(language, self.commit_count)


class CodePatternObservation(BaseModel):
    """A technology pattern observed in a person's code."""

    model_config = ConfigDict(frozen=True)

    person_id: str = Field(min_length=1)
    technology: str = Field(min_length=1)
    occurrences: int = Field(default=1, ge=0)
    quality: float = Field(default=0.5, ge=0.0, le=1.0)
    observed_at: datetime | None = None

    @field_validator("observed_at")
    @classmethod
    def ensure_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value else None

    @property
    def fingerprint(self) -> str:
        return content_fingerprint(self)


class ReviewOutcome(str, Enum):
    """How a completed review ended."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    DECLINED = "declined"


class CompletedReview(BaseModel):
    """A review that was carried out by an assigned reviewer."""

    model_config = ConfigDict(frozen=True)

    pull_request_id: str
    reviewer_id: str
    completed_at: datetime
    review_minutes: int = Field(ge=0)
    outcome: ReviewOutcome = ReviewOutcome.APPROVED

    @field_validator("completed_at")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def key(self) -> "ReviewKey":
        return ReviewKey(self.pull_request_id, self.reviewer_id)


class ReviewKey(NamedTuple):
    """Composite key joining assignments to completed reviews."""

    pull_request_id: str
    reviewer_id: str
