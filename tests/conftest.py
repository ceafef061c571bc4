"""Pytest fixtures and configuration."""

from datetime import datetime, timezone
from typing import AsyncGenerator, Generator

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from reviewer_engine.api.v1.reviewers import get_engine
from reviewer_engine.assignment import AlgorithmConfig, AssignmentEngine, WorkloadModel
from reviewer_engine.main import app
from reviewer_engine.models import (
    ChangeRequest,
    ExpertiseArea,
    ExpertiseLevel,
    FileDelta,
    Person,
    WorkloadState,
)

# Monday afternoon, inside default 09:00-17:00 UTC working hours
NOW = datetime(2024, 6, 3, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> AlgorithmConfig:
    """Default algorithm config."""
    return AlgorithmConfig()


@pytest.fixture
def engine(config) -> AssignmentEngine:
    """Engine with a frozen clock."""
    return AssignmentEngine(config, clock=lambda: NOW)


@pytest.fixture
def workload_model(config) -> WorkloadModel:
    return WorkloadModel(config, clock=lambda: NOW)


# Factories
@pytest.fixture
def make_person():
    """Build a Person from compact arguments.

    expertise is a list of (technology, level, confidence) tuples.
    """

    def _make(
        person_id: str,
        team_id: str = "team1",
        expertise: list[tuple[str, str, float]] | None = None,
        current_reviews: int = 0,
        review_capacity: int = 5,
        average_review_hours: float = 1.0,
        **kwargs,
    ) -> Person:
        return Person(
            id=person_id,
            team_id=team_id,
            name=person_id.title(),
            expertise=[
                ExpertiseArea(
                    technology=tech,
                    level=ExpertiseLevel(level),
                    confidence=confidence,
                    last_updated=NOW,
                    evidence_count=10,
                )
                for tech, level, confidence in (expertise or [])
            ],
            workload=WorkloadState(
                current_reviews=current_reviews,
                review_capacity=review_capacity,
                average_review_hours=average_review_hours,
                last_activity=NOW,
            ),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_request():
    """Build a ChangeRequest touching TypeScript files by default."""

    def _make(
        request_id: str = "pr-1",
        author: str = "eve",
        paths: list[str] | None = None,
        **kwargs,
    ) -> ChangeRequest:
        paths = paths or ["src/components/Button.tsx", "src/utils/format.ts"]
        complexities = kwargs.pop("complexities", None) or [3, 2] + [1] * max(len(paths) - 2, 0)
        return ChangeRequest(
            id=request_id,
            author=author,
            repository="acme/web",
            files=[
                FileDelta(path=path, lines_added=40, lines_removed=10, complexity=complexity)
                for path, complexity in zip(paths, complexities)
            ],
            **kwargs,
        )

    return _make


@pytest.fixture
def team_pool(make_person) -> list[Person]:
    """Alice/Bob on team1, Charlie/Diana on team2."""
    return [
        make_person(
            "alice",
            "team1",
            [("TypeScript", "expert", 0.9)],
            current_reviews=2,
            review_capacity=5,
        ),
        make_person(
            "bob",
            "team1",
            [("JavaScript", "advanced", 0.8), ("Node.js", "advanced", 0.7)],
            current_reviews=5,
            review_capacity=8,
        ),
        make_person(
            "charlie",
            "team2",
            [("Python", "intermediate", 0.6)],
            current_reviews=1,
            review_capacity=3,
        ),
        make_person(
            "diana",
            "team2",
            [("TypeScript", "advanced", 0.75), ("Vue", "advanced", 0.6)],
            current_reviews=3,
            review_capacity=6,
        ),
    ]


# API payloads
@pytest.fixture
def team_pool_payload() -> list[dict]:
    """JSON form of team_pool."""
    return [
        {
            "id": "alice",
            "team_id": "team1",
            "expertise": [{"technology": "TypeScript", "level": "expert", "confidence": 0.9}],
            "workload": {"current_reviews": 2, "review_capacity": 5},
        },
        {
            "id": "bob",
            "team_id": "team1",
            "expertise": [
                {"technology": "JavaScript", "level": "advanced", "confidence": 0.8},
                {"technology": "Node.js", "level": "advanced", "confidence": 0.7},
            ],
            "workload": {"current_reviews": 5, "review_capacity": 8},
        },
        {
            "id": "charlie",
            "team_id": "team2",
            "expertise": [{"technology": "Python", "level": "intermediate", "confidence": 0.6}],
            "workload": {"current_reviews": 1, "review_capacity": 3},
        },
        {
            "id": "diana",
            "team_id": "team2",
            "expertise": [
                {"technology": "TypeScript", "level": "advanced", "confidence": 0.75},
                {"technology": "Vue", "level": "advanced", "confidence": 0.6},
            ],
            "workload": {"current_reviews": 3, "review_capacity": 6},
        },
    ]


@pytest.fixture
def change_request_payload() -> dict:
    return {
        "id": "pr-42",
        "author": "eve",
        "repository": "acme/web",
        "files": [
            {"path": "src/components/Button.tsx", "complexity": 3},
            {"path": "src/utils/format.ts", "complexity": 2},
        ],
    }


# Test client
@pytest.fixture
def client(engine) -> Generator:
    """Create test client backed by a fresh engine."""
    app.dependency_overrides[get_engine] = lambda: engine

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# Async test client
@pytest.fixture
async def async_client(engine) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    app.dependency_overrides[get_engine] = lambda: engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
