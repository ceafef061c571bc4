"""Domain models for reviewer assignment."""

from reviewer_engine.models.change_request import (
    ChangeKind,
    ChangeRequest,
    FileDelta,
    Priority,
    SizeClass,
)
from reviewer_engine.models.evidence import (
    CodePatternObservation,
    CompletedReview,
    GitAnalysis,
    ReviewKey,
    ReviewOutcome,
)
from reviewer_engine.models.person import (
    AvailabilityState,
    EvidenceKey,
    ExpertiseArea,
    ExpertiseLevel,
    OutOfOffice,
    Person,
    ReviewPreferences,
    WorkingHours,
    WorkloadState,
)
from reviewer_engine.models.review import Assignment, Reason, ReasonType, Suggestion

__all__ = [
    # Roster
    "Person",
    "ExpertiseArea",
    "ExpertiseLevel",
    "EvidenceKey",
    "WorkloadState",
    "AvailabilityState",
    "WorkingHours",
    "OutOfOffice",
    "ReviewPreferences",
    # Change requests
    "ChangeRequest",
    "FileDelta",
    "ChangeKind",
    "SizeClass",
    "Priority",
    # Evidence
    "GitAnalysis",
    "CodePatternObservation",
    "CompletedReview",
    "ReviewOutcome",
    "ReviewKey",
    # Output
    "Suggestion",
    "Assignment",
    "Reason",
    "ReasonType",
]
