"""Reviewer roster models: people, their expertise, workload and availability."""

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import NamedTuple

from reviewer_engine.utils.time import as_utc, utcnow


class ExpertiseLevel(str, Enum):
    """
    Expertise levels on a fixed ordinal scale.
    novice < intermediate < advanced < expert
    """

    NOVICE = "novice"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    @classmethod
    def from_string(cls, level_str: str | None) -> "ExpertiseLevel":
        """Convert a string to a level, defaulting to novice for unknown values."""
        if not level_str:
            return cls.NOVICE
        try:
            return cls(level_str.lower())
        except ValueError:
            return cls.NOVICE

    def at_least(self, other: "ExpertiseLevel") -> bool:
        """Check if this level is equal to or above another level."""
        return self.rank >= other.rank

    @classmethod
    def highest(cls, *levels: "ExpertiseLevel") -> "ExpertiseLevel":
        return max(levels, key=lambda level: level.rank)


_LEVEL_ORDER = [
    ExpertiseLevel.NOVICE,
    ExpertiseLevel.INTERMEDIATE,
    ExpertiseLevel.ADVANCED,
    ExpertiseLevel.EXPERT,
]


class EvidenceKey(NamedTuple):
    """Identity of a single piece of applied evidence for a person."""

    person_id: str
    source: str  # "git", "pattern"
    technology: str
    fingerprint: str  # digest of the evidence record

    @property
    def token(self) -> str:
        """Key without the person id, as exchanged with clients."""
        return f"{self.source}:{self.technology}:{self.fingerprint}"

    @classmethod
    def from_token(cls, person_id: str, token: str) -> "EvidenceKey":
        try:
            source, rest = token.split(":", 1)
            technology, fingerprint = rest.rsplit(":", 1)
        except ValueError as e:
            raise ValueError(f"Malformed evidence token: {token!r}") from e
        if not (source and technology and fingerprint):
            raise ValueError(f"Malformed evidence token: {token!r}")
        return cls(person_id, source, technology, fingerprint)


@dataclass
class ExpertiseArea:
    """A (technology, level, confidence) triple describing demonstrated skill."""

    technology: str
    level: ExpertiseLevel = ExpertiseLevel.NOVICE
    confidence: float = 0.0  # 0.0 to 1.0
    last_updated: datetime = field(default_factory=utcnow)
    evidence_count: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.level, ExpertiseLevel):
            self.level = ExpertiseLevel.from_string(self.level)
        self.confidence = max(0.0, min(1.0, self.confidence))
        self.last_updated = as_utc(self.last_updated)

    def matches(self, technology: str) -> bool:
        return self.technology.lower() == technology.lower()


@dataclass
class WorkloadState:
    """Current review burden of a person."""

    current_reviews: int = 0
    average_review_hours: float = 1.0
    review_capacity: int = 5
    weekly_commit_count: int = 0
    last_activity: datetime = field(default_factory=utcnow)

    @property
    def remaining_capacity(self) -> int:
        return max(self.review_capacity - self.current_reviews, 0)

    def __post_init__(self) -> None:
        self.last_activity = as_utc(self.last_activity)


@dataclass(frozen=True)
class WorkingHours:
    """Working-hours window in the person's local time, as HH:MM strings."""

    start: str = "09:00"
    end: str = "17:00"

    def contains(self, moment: time) -> bool:
        start = time.fromisoformat(self.start)
        end = time.fromisoformat(self.end)
        if start <= end:
            return start <= moment <= end
        # Window wraps past midnight
        return moment >= start or moment <= end


@dataclass(frozen=True)
class OutOfOffice:
    """An out-of-office interval."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))

    def covers(self, moment: datetime) -> bool:
        return self.start <= as_utc(moment) <= self.end


@dataclass
class AvailabilityState:
    """Availability of a person. Read-only for the assignment engine."""

    is_available: bool = True
    timezone: str = "UTC"
    working_hours: WorkingHours = field(default_factory=WorkingHours)
    out_of_office: OutOfOffice | None = None

    def is_out_of_office(self, moment: datetime) -> bool:
        return self.out_of_office is not None and self.out_of_office.covers(moment)


@dataclass
class ReviewPreferences:
    """Per-person review preferences."""

    max_reviews_per_day: int = 5
    preferred_file_types: list[str] = field(default_factory=list)
    avoided_file_types: list[str] = field(default_factory=list)


@dataclass
class Person:
    """
    An individual capable of reviewing.

    Expertise is mutated whenever new activity is analyzed. People are
    never deleted, only deactivated.
    """

    id: str
    team_id: str
    name: str | None = None
    skills: set[str] = field(default_factory=set)
    expertise: list[ExpertiseArea] = field(default_factory=list)
    workload: WorkloadState = field(default_factory=WorkloadState)
    availability: AvailabilityState = field(default_factory=AvailabilityState)
    preferences: ReviewPreferences = field(default_factory=ReviewPreferences)
    is_active: bool = True

    # Fed from history analysis
    touched_files: set[str] = field(default_factory=set)
    applied_evidence: set[EvidenceKey] = field(default_factory=set)

    def expertise_for(self, technology: str) -> ExpertiseArea | None:
        """Find the expertise area for a technology (case-insensitive)."""
        for area in self.expertise:
            if area.matches(technology):
                return area
        return None

    def deactivate(self) -> None:
        self.is_active = False

    @property
    def display_name(self) -> str:
        return self.name or self.id
