"""
Algorithm configuration for reviewer assignment.

An AlgorithmConfig is an immutable snapshot. Updates never mutate a
snapshot in place; they produce a new validated one which the engine
swaps in, so a single assignment cycle always reads one consistent config.
"""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, TypeVar

import structlog
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    ValidationError,
    WrapSerializer,
    model_validator,
)

from reviewer_engine.assignment.errors import ConfigInvalidError
from reviewer_engine.config import Settings
from reviewer_engine.models.change_request import Priority, SizeClass
from reviewer_engine.models.person import ExpertiseLevel

logger = structlog.get_logger()

_FROZEN = ConfigDict(frozen=True, extra="forbid")

K = TypeVar("K")
V = TypeVar("V")

# Read-only mapping field. Validated as a dict, stored as a MappingProxyType,
# dumped back through the dict serializer.
FrozenMap = Annotated[
    dict[K, V],
    AfterValidator(MappingProxyType),
    WrapSerializer(lambda value, handler: handler(dict(value))),
]


class Weights(BaseModel):
    """Weight of each signal in the combined confidence."""

    model_config = _FROZEN

    expertise: NonNegativeFloat = 0.4
    workload: NonNegativeFloat = 0.3
    availability: NonNegativeFloat = 0.15
    collaboration: NonNegativeFloat = 0.1
    diversity: NonNegativeFloat = 0.05


class Constraints(BaseModel):
    """Hard constraints applied to every suggestion list."""

    model_config = _FROZEN

    max_reviewers_per_pr: int = Field(default=3, gt=0)
    min_expertise_level: ExpertiseLevel = ExpertiseLevel.INTERMEDIATE
    max_workload_threshold: float = Field(default=0.8, gt=0.0, le=1.0)
    require_team_diversity: bool = True
    avoid_same_author: bool = True


class Preferences(BaseModel):
    """Soft preferences that switch parts of the algorithm on or off."""

    model_config = _FROZEN

    favor_recent_collaborators: bool = True
    balance_workload: bool = True
    prioritize_experts: bool = True
    consider_timezone: bool = True


class LevelThreshold(BaseModel):
    """Evidence needed to qualify for an expertise tier. All three must be met."""

    model_config = _FROZEN

    commits: NonNegativeInt = 0
    lines: NonNegativeInt = 0
    reviews: NonNegativeInt = 0

    def satisfied_by(self, commits: int, lines: int, reviews: int) -> bool:
        return commits >= self.commits and lines >= self.lines and reviews >= self.reviews


def _default_level_thresholds() -> dict[ExpertiseLevel, LevelThreshold]:
    return {
        ExpertiseLevel.NOVICE: LevelThreshold(commits=0, lines=0, reviews=0),
        ExpertiseLevel.INTERMEDIATE: LevelThreshold(commits=10, lines=1_000, reviews=5),
        ExpertiseLevel.ADVANCED: LevelThreshold(commits=50, lines=10_000, reviews=25),
        ExpertiseLevel.EXPERT: LevelThreshold(commits=200, lines=50_000, reviews=100),
    }


class Tuning(BaseModel):
    """Numeric constants used across the expertise and workload models."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    # Expertise tiers
    level_thresholds: FrozenMap[ExpertiseLevel, LevelThreshold] = Field(
        default_factory=_default_level_thresholds
    )
    pattern_saturation: PositiveFloat = 20.0  # Occurrences for full pattern confidence

    # Review-time estimation (minutes)
    base_review_minutes: PositiveFloat = 30.0
    complexity_factor: NonNegativeFloat = 0.1
    size_multipliers: FrozenMap[SizeClass, PositiveFloat] = Field(
        default_factory=lambda: {
            SizeClass.XS: 0.5,
            SizeClass.SMALL: 1.0,
            SizeClass.MEDIUM: 2.0,
            SizeClass.LARGE: 4.0,
            SizeClass.XL: 8.0,
        }
    )
    priority_multipliers: FrozenMap[Priority, PositiveFloat] = Field(
        default_factory=lambda: {
            Priority.LOW: 0.8,
            Priority.MEDIUM: 1.0,
            Priority.HIGH: 1.5,
            Priority.CRITICAL: 2.0,
        }
    )
    expertise_time_multipliers: FrozenMap[ExpertiseLevel, PositiveFloat] = Field(
        default_factory=lambda: {
            ExpertiseLevel.EXPERT: 0.7,
            ExpertiseLevel.ADVANCED: 0.8,
            ExpertiseLevel.INTERMEDIATE: 1.0,
            ExpertiseLevel.NOVICE: 1.5,
        }
    )

    # Deadlines
    deadline_buffer_hours: FrozenMap[Priority, NonNegativeFloat] = Field(
        default_factory=lambda: {
            Priority.CRITICAL: 2,
            Priority.HIGH: 8,
            Priority.MEDIUM: 24,
            Priority.LOW: 72,
        }
    )

    # Workload
    review_load_weight: NonNegativeFloat = 0.6
    time_load_weight: NonNegativeFloat = 0.3
    reference_review_hours: PositiveFloat = 4.0
    # (max days since last activity, multiplier), checked in order
    activity_factors: tuple[tuple[NonNegativeFloat, NonNegativeFloat], ...] = (
        (1, 1.0),
        (3, 0.8),
        (7, 0.6),
    )
    stale_activity_factor: NonNegativeFloat = 0.3
    max_capacity_ratio: PositiveFloat = 2.0

    # Availability
    off_hours_availability: NonNegativeFloat = 0.3
    out_of_office_availability: NonNegativeFloat = 0.1
    availability_reason_threshold: NonNegativeFloat = 0.8

    # Suggestion floors
    min_expertise_match: NonNegativeFloat = 0.3
    min_workload_score: NonNegativeFloat = 0.1
    min_collaboration_score: NonNegativeFloat = 0.2
    ownership_bonus: NonNegativeFloat = 0.3
    confidence_override: NonNegativeFloat = 0.7

    # Collaboration affinity
    same_team_affinity: NonNegativeFloat = 0.6
    shared_skill_affinity: NonNegativeFloat = 0.1
    max_skill_affinity: NonNegativeFloat = 0.4

    @model_validator(mode="after")
    def _check_tiers(self) -> "Tuning":
        missing = [level.value for level in ExpertiseLevel if level not in self.level_thresholds]
        if missing:
            raise ValueError(f"Missing level thresholds for: {', '.join(missing)}")

        previous: LevelThreshold | None = None
        for level in sorted(self.level_thresholds, key=lambda lv: lv.rank):
            current = self.level_thresholds[level]
            if previous is not None and not (
                current.commits >= previous.commits
                and current.lines >= previous.lines
                and current.reviews >= previous.reviews
            ):
                raise ValueError(f"Level thresholds must not decrease (at {level.value})")
            previous = current
        return self


class AlgorithmConfig(BaseModel):
    """Complete, immutable configuration snapshot for the assignment engine."""

    model_config = _FROZEN

    weights: Weights = Field(default_factory=Weights)
    constraints: Constraints = Field(default_factory=Constraints)
    preferences: Preferences = Field(default_factory=Preferences)
    tuning: Tuning = Field(default_factory=Tuning)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlgorithmConfig":
        """Build the initial config from application settings."""
        return cls(
            constraints=Constraints(
                max_reviewers_per_pr=settings.max_reviewers_per_pr,
                min_expertise_level=ExpertiseLevel(settings.min_expertise_level),
                max_workload_threshold=settings.max_workload_threshold,
                require_team_diversity=settings.require_team_diversity,
                avoid_same_author=settings.avoid_same_author,
            )
        )

    def merged(self, partial: "Mapping[str, Any] | AlgorithmConfig") -> "AlgorithmConfig":
        """
        Return a new config with a partial update applied.

        Nested sections are merged key by key, so {"weights": {"expertise": 0.5}}
        only changes that one weight.

        Raises:
            ConfigInvalidError: If the merged config fails validation.
        """
        if isinstance(partial, AlgorithmConfig):
            return partial

        merged = _deep_merge(self.model_dump(mode="json"), partial)
        try:
            return AlgorithmConfig.model_validate(merged)
        except ValidationError as e:
            logger.warning("Rejected invalid algorithm config", error_count=e.error_count())
            raise ConfigInvalidError(
                f"Invalid algorithm config: {e.error_count()} validation error(s)",
                errors=e.errors(include_url=False, include_context=False),
            ) from e


def _deep_merge(base: dict[str, Any], update: Mapping[Any, Any]) -> dict[str, Any]:
    """Recursively merge update into a copy of base."""
    result = dict(base)
    for key, value in update.items():
        if isinstance(key, Enum):
            key = key.value
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        if isinstance(value, Mapping) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
