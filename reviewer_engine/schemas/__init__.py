"""Pydantic schemas for request/response validation."""

from reviewer_engine.schemas.reviewers import (
    AssignmentRecord,
    AssignmentRequest,
    AssignmentResponse,
    AssignmentsResponse,
    ChangeRequestSchema,
    EffectivenessRequest,
    EffectivenessResponse,
    ExpertiseAreaSchema,
    FileDeltaSchema,
    PersonSchema,
    ReasonResponse,
    SuggestionRequest,
    SuggestionResponse,
    SuggestionsResponse,
)

__all__ = [
    # Inputs
    "PersonSchema",
    "ExpertiseAreaSchema",
    "ChangeRequestSchema",
    "FileDeltaSchema",
    "SuggestionRequest",
    "AssignmentRequest",
    "AssignmentRecord",
    "EffectivenessRequest",
    # Outputs
    "ReasonResponse",
    "SuggestionResponse",
    "SuggestionsResponse",
    "AssignmentResponse",
    "AssignmentsResponse",
    "EffectivenessResponse",
]
