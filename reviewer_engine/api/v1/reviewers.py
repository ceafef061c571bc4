"""Reviewer assignment API endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException

from reviewer_engine.assignment import AssignmentEngine, ConfigInvalidError
from reviewer_engine.schemas.reviewers import (
    AssignmentRequest,
    AssignmentResponse,
    AssignmentsResponse,
    EffectivenessRequest,
    EffectivenessResponse,
    ExpertiseAreaSchema,
    SuggestionRequest,
    SuggestionResponse,
    SuggestionsResponse,
)

logger = structlog.get_logger()

router = APIRouter()

# Shared engine; the config it holds is process-wide
assignment_engine = AssignmentEngine()


def get_engine() -> AssignmentEngine:
    """Get the assignment engine."""
    return assignment_engine


@router.post("/suggestions", response_model=SuggestionsResponse)
async def suggest_reviewers(
    request: SuggestionRequest,
    engine: AssignmentEngine = Depends(get_engine),
) -> SuggestionsResponse:
    """Suggest reviewers for a change request, best first."""
    change_request = request.change_request.to_domain()
    candidates = [c.to_domain() for c in request.candidates]

    suggestions = engine.suggest_reviewers(change_request, candidates, request.evidence)

    updated_expertise = {}
    applied_evidence = {}
    if request.evidence:
        evidence_owners = {r.get("person_id") for r in request.evidence}
        for person in candidates:
            if person.id not in evidence_owners:
                continue
            updated_expertise[person.id] = [
                ExpertiseAreaSchema.from_domain(a) for a in person.expertise
            ]
            applied_evidence[person.id] = sorted(k.token for k in person.applied_evidence)

    return SuggestionsResponse(
        pull_request_id=change_request.id,
        suggestions=[SuggestionResponse.from_domain(s) for s in suggestions],
        updated_expertise=updated_expertise,
        applied_evidence=applied_evidence,
    )


@router.post("/assignments", response_model=AssignmentsResponse)
async def assign_reviewers(
    request: AssignmentRequest,
    engine: AssignmentEngine = Depends(get_engine),
) -> AssignmentsResponse:
    """Assign the top suggested reviewers to a change request."""
    change_request = request.change_request.to_domain()
    candidates = [c.to_domain() for c in request.candidates]

    assignments = engine.assign_reviewers(
        change_request,
        candidates,
        max_assignments=request.max_assignments,
    )

    return AssignmentsResponse(
        pull_request_id=change_request.id,
        assignments=[AssignmentResponse.from_domain(a) for a in assignments],
    )


@router.get("/config")
async def get_config(
    engine: AssignmentEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Get the active algorithm configuration."""
    return engine.config.model_dump(mode="json")


@router.patch("/config")
async def update_config(
    updates: dict[str, Any] = Body(...),
    engine: AssignmentEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Apply a partial algorithm configuration update."""
    try:
        config = engine.update_config(updates)
    except ConfigInvalidError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "errors": e.errors},
        )

    return config.model_dump(mode="json")


@router.post("/effectiveness", response_model=EffectivenessResponse)
async def analyze_effectiveness(
    request: EffectivenessRequest,
    engine: AssignmentEngine = Depends(get_engine),
) -> EffectivenessResponse:
    """Analyze how well past assignments worked out."""
    report = engine.analyze_assignment_effectiveness(
        [a.to_domain() for a in request.assignments],
        request.completed_reviews,
    )
    return EffectivenessResponse.from_domain(report)
