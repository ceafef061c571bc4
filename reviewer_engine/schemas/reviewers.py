"""Reviewer assignment schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from reviewer_engine.assignment.effectiveness import EffectivenessReport
from reviewer_engine.models import (
    Assignment,
    AvailabilityState,
    ChangeKind,
    ChangeRequest,
    CompletedReview,
    EvidenceKey,
    ExpertiseArea,
    ExpertiseLevel,
    FileDelta,
    OutOfOffice,
    Person,
    Priority,
    Reason,
    ReviewPreferences,
    SizeClass,
    Suggestion,
    WorkingHours,
    WorkloadState,
)
from reviewer_engine.utils.time import utcnow

_HH_MM = r"^([01]\d|2[0-3]):[0-5]\d$"


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------


class ExpertiseAreaSchema(BaseModel):
    """Schema for one expertise area."""

    technology: str = Field(min_length=1)
    level: ExpertiseLevel = ExpertiseLevel.NOVICE
    confidence: float = Field(default=0.0, ge=0, le=1)
    last_updated: datetime | None = None
    evidence_count: int = Field(default=0, ge=0)

    def to_domain(self) -> ExpertiseArea:
        return ExpertiseArea(
            technology=self.technology,
            level=self.level,
            confidence=self.confidence,
            last_updated=self.last_updated or utcnow(),
            evidence_count=self.evidence_count,
        )

    @classmethod
    def from_domain(cls, area: ExpertiseArea) -> "ExpertiseAreaSchema":
        return cls(
            technology=area.technology,
            level=area.level,
            confidence=round(area.confidence, 4),
            last_updated=area.last_updated,
            evidence_count=area.evidence_count,
        )


class WorkloadSchema(BaseModel):
    """Schema for a person's current workload."""

    current_reviews: int = Field(default=0, ge=0)
    average_review_hours: float = Field(default=1.0, ge=0)
    review_capacity: int = Field(default=5, ge=0)
    weekly_commit_count: int = Field(default=0, ge=0)
    last_activity: datetime | None = None


class OutOfOfficeSchema(BaseModel):
    """Schema for an out-of-office interval."""

    start: datetime
    end: datetime


class AvailabilitySchema(BaseModel):
    """Schema for a person's availability."""

    is_available: bool = True
    timezone: str = "UTC"
    working_hours_start: str = Field(default="09:00", pattern=_HH_MM)
    working_hours_end: str = Field(default="17:00", pattern=_HH_MM)
    out_of_office: OutOfOfficeSchema | None = None


class PersonSchema(BaseModel):
    """Schema for a candidate reviewer."""

    id: str = Field(min_length=1)
    team_id: str = Field(min_length=1)
    name: str | None = None
    skills: list[str] = Field(default_factory=list)
    expertise: list[ExpertiseAreaSchema] = Field(default_factory=list)
    workload: WorkloadSchema = Field(default_factory=WorkloadSchema)
    availability: AvailabilitySchema = Field(default_factory=AvailabilitySchema)
    max_reviews_per_day: int = Field(default=5, ge=0)
    is_active: bool = True
    touched_files: list[str] = Field(default_factory=list)
    # Evidence already folded into expertise, as returned by /suggestions
    applied_evidence: list[str] = Field(default_factory=list)

    @field_validator("applied_evidence")
    @classmethod
    def check_evidence_tokens(cls, value: list[str]) -> list[str]:
        for token in value:
            EvidenceKey.from_token("", token)
        return value

    def to_domain(self) -> Person:
        workload = self.workload
        availability = self.availability
        out_of_office = None
        if availability.out_of_office is not None:
            out_of_office = OutOfOffice(
                start=availability.out_of_office.start,
                end=availability.out_of_office.end,
            )

        return Person(
            id=self.id,
            team_id=self.team_id,
            name=self.name,
            skills=set(self.skills),
            expertise=[area.to_domain() for area in self.expertise],
            workload=WorkloadState(
                current_reviews=workload.current_reviews,
                average_review_hours=workload.average_review_hours,
                review_capacity=workload.review_capacity,
                weekly_commit_count=workload.weekly_commit_count,
                last_activity=workload.last_activity or utcnow(),
            ),
            availability=AvailabilityState(
                is_available=availability.is_available,
                timezone=availability.timezone,
                working_hours=WorkingHours(
                    start=availability.working_hours_start,
                    end=availability.working_hours_end,
                ),
                out_of_office=out_of_office,
            ),
            preferences=ReviewPreferences(max_reviews_per_day=self.max_reviews_per_day),
            is_active=self.is_active,
            touched_files=set(self.touched_files),
            applied_evidence={EvidenceKey.from_token(self.id, t) for t in self.applied_evidence},
        )


# ---------------------------------------------------------------------------
# Change requests
# ---------------------------------------------------------------------------


class FileDeltaSchema(BaseModel):
    """Schema for a changed file."""

    path: str = Field(min_length=1)
    change_kind: ChangeKind = ChangeKind.MODIFIED
    lines_added: int = Field(default=0, ge=0)
    lines_removed: int = Field(default=0, ge=0)
    language: str | None = None
    complexity: int = Field(default=1, ge=1, le=10)


class ChangeRequestSchema(BaseModel):
    """Schema for a change request awaiting review."""

    id: str = Field(min_length=1)
    author: str = Field(min_length=1)
    repository: str = ""
    files: list[FileDeltaSchema] = Field(default_factory=list)
    size: SizeClass = SizeClass.MEDIUM
    priority: Priority = Priority.MEDIUM
    labels: list[str] = Field(default_factory=list)
    required_reviewers: list[str] = Field(default_factory=list)
    excluded_reviewers: list[str] = Field(default_factory=list)
    is_draft: bool = False

    def to_domain(self) -> ChangeRequest:
        return ChangeRequest(
            id=self.id,
            author=self.author,
            repository=self.repository,
            files=[FileDelta(**f.model_dump()) for f in self.files],
            size=self.size,
            priority=self.priority,
            labels=self.labels,
            required_reviewers=self.required_reviewers,
            excluded_reviewers=self.excluded_reviewers,
            is_draft=self.is_draft,
        )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SuggestionRequest(BaseModel):
    """Schema for a reviewer suggestion request."""

    change_request: ChangeRequestSchema
    candidates: list[PersonSchema] = Field(default_factory=list)
    # Raw records; malformed ones are skipped rather than rejected
    evidence: list[dict[str, Any]] = Field(default_factory=list)


class AssignmentRequest(BaseModel):
    """Schema for a reviewer assignment request."""

    change_request: ChangeRequestSchema
    candidates: list[PersonSchema] = Field(default_factory=list)
    max_assignments: int | None = Field(default=None, ge=0)


class AssignmentRecord(BaseModel):
    """Schema for a past assignment submitted for analysis."""

    pull_request_id: str
    reviewer_id: str
    assigned_at: datetime
    deadline: datetime
    priority: Priority = Priority.MEDIUM
    confidence: float = Field(default=0.0, ge=0, le=1)
    estimated_minutes: int = Field(default=0, ge=0)

    def to_domain(self) -> Assignment:
        return Assignment(
            pull_request_id=self.pull_request_id,
            reviewer_id=self.reviewer_id,
            assigned_at=self.assigned_at,
            confidence=self.confidence,
            reasons=[],
            priority=self.priority,
            estimated_minutes=self.estimated_minutes,
            deadline=self.deadline,
        )


class EffectivenessRequest(BaseModel):
    """Schema for an effectiveness analysis request."""

    assignments: list[AssignmentRecord] = Field(default_factory=list)
    completed_reviews: list[CompletedReview] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ReasonResponse(BaseModel):
    """Schema for a suggestion reason."""

    type: str
    description: str
    weight: float
    evidence: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, reason: Reason) -> "ReasonResponse":
        return cls(**reason.to_dict())


class SuggestionResponse(BaseModel):
    """Schema for one reviewer suggestion."""

    reviewer_id: str
    reviewer_name: str
    team_id: str
    confidence: float = Field(ge=0, le=1)
    reasons: list[ReasonResponse]
    estimated_minutes: int
    workload_impact: float
    availability_score: float

    @classmethod
    def from_domain(cls, suggestion: Suggestion) -> "SuggestionResponse":
        reviewer = suggestion.reviewer
        return cls(
            reviewer_id=reviewer.id,
            reviewer_name=reviewer.display_name,
            team_id=reviewer.team_id,
            confidence=round(suggestion.confidence, 4),
            reasons=[ReasonResponse.from_domain(r) for r in suggestion.reasons],
            estimated_minutes=suggestion.estimated_minutes,
            workload_impact=round(suggestion.workload_impact, 4),
            availability_score=round(suggestion.availability_score, 4),
        )


class SuggestionsResponse(BaseModel):
    """Schema for the suggestion endpoint response."""

    pull_request_id: str
    suggestions: list[SuggestionResponse]
    # Expertise after evidence was applied, per candidate that received evidence
    updated_expertise: dict[str, list[ExpertiseAreaSchema]] = Field(default_factory=dict)
    # Tokens of the evidence applied so far; send back on PersonSchema.applied_evidence
    applied_evidence: dict[str, list[str]] = Field(default_factory=dict)


class AssignmentResponse(BaseModel):
    """Schema for one reviewer assignment."""

    pull_request_id: str
    reviewer_id: str
    assigned_at: datetime
    confidence: float
    reasons: list[ReasonResponse]
    priority: Priority
    estimated_minutes: int
    deadline: datetime

    @classmethod
    def from_domain(cls, assignment: Assignment) -> "AssignmentResponse":
        return cls(
            pull_request_id=assignment.pull_request_id,
            reviewer_id=assignment.reviewer_id,
            assigned_at=assignment.assigned_at,
            confidence=round(assignment.confidence, 4),
            reasons=[ReasonResponse.from_domain(r) for r in assignment.reasons],
            priority=assignment.priority,
            estimated_minutes=assignment.estimated_minutes,
            deadline=assignment.deadline,
        )


class AssignmentsResponse(BaseModel):
    """Schema for the assignment endpoint response."""

    pull_request_id: str
    assignments: list[AssignmentResponse]


class EffectivenessResponse(BaseModel):
    """Schema for an effectiveness report."""

    accuracy: float = Field(ge=0, le=1)
    average_review_hours: float = Field(ge=0)
    workload_balance: float = Field(ge=0, le=1)
    suggestions: list[str]

    @classmethod
    def from_domain(cls, report: EffectivenessReport) -> "EffectivenessResponse":
        return cls(**report.to_dict())
