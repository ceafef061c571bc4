"""
Workload Model - Capacity-aware workload scoring and balancing.

Scores how much spare review capacity each candidate has relative to the
rest of the pool, estimates the cost of one more review, and decides who
is eligible to take it.
"""

import math
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from reviewer_engine.assignment.config import AlgorithmConfig
from reviewer_engine.models.change_request import ChangeRequest
from reviewer_engine.models.person import Person, WorkloadState
from reviewer_engine.models.review import Reason, ReasonType, Suggestion
from reviewer_engine.utils.time import as_utc, utcnow

logger = structlog.get_logger()


class WorkloadModel:
    """
    Computes workload scores, review impact and eligibility.

    Every public method accepts an explicit config snapshot so that a
    caller running an assignment cycle can pin one config for the whole
    cycle. Without it, the model's own config is used.
    """

    def __init__(
        self,
        config: AlgorithmConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config or AlgorithmConfig()
        self._clock = clock

    def now(self) -> datetime:
        return as_utc(self._clock())

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def workload_scores(
        self,
        candidates: Sequence[Person],
        config: AlgorithmConfig | None = None,
        now: datetime | None = None,
    ) -> dict[str, float]:
        """
        Comparative workload score per candidate (higher = more room).

        Raw loads are normalized across the pool (least loaded -> 1,
        most loaded -> 0) and scaled by a capacity factor so people with
        no capacity score near zero.
        """
        if not candidates:
            return {}

        config = config or self.config
        now = now or self.now()

        loads = [self.raw_load(c.workload, config, now) for c in candidates]
        min_load = min(loads)
        load_range = max(loads) - min_load

        scores = {}
        for candidate, load in zip(candidates, loads):
            normalized = (load - min_load) / load_range if load_range > 0 else 0.0
            score = (1 - normalized) * self.capacity_factor(candidate.workload, config)
            scores[candidate.id] = max(0.0, min(1.0, score))
        return scores

    def raw_load(
        self,
        workload: WorkloadState,
        config: AlgorithmConfig | None = None,
        now: datetime | None = None,
    ) -> float:
        """Weighted review and time load, scaled by recent activity."""
        tuning = (config or self.config).tuning
        review_load = workload.current_reviews / max(workload.review_capacity, 1)
        time_load = workload.average_review_hours / tuning.reference_review_hours
        activity = self.activity_factor(workload.last_activity, config, now)
        return (review_load * tuning.review_load_weight + time_load * tuning.time_load_weight) * activity

    def activity_factor(
        self,
        last_activity: datetime,
        config: AlgorithmConfig | None = None,
        now: datetime | None = None,
    ) -> float:
        tuning = (config or self.config).tuning
        now = now or self.now()
        days_since = (now - as_utc(last_activity)).total_seconds() / 86400

        for max_days, factor in tuning.activity_factors:
            if days_since <= max_days:
                return factor
        return tuning.stale_activity_factor

    def capacity_factor(
        self,
        workload: WorkloadState,
        config: AlgorithmConfig | None = None,
    ) -> float:
        """min(capacity / current reviews, max ratio) / max ratio."""
        max_ratio = (config or self.config).tuning.max_capacity_ratio
        ratio = workload.review_capacity / max(workload.current_reviews, 1)
        return min(ratio, max_ratio) / max_ratio

    def availability_score(
        self,
        person: Person,
        config: AlgorithmConfig | None = None,
        now: datetime | None = None,
    ) -> float:
        """1.0 inside working hours, lower outside them or when out of office."""
        config = config or self.config
        tuning = config.tuning
        now = now or self.now()
        availability = person.availability

        if not person.is_active or not availability.is_available:
            return 0.0

        score = 1.0
        if config.preferences.consider_timezone:
            local_time = now.astimezone(_zone(availability.timezone)).time()
            if not availability.working_hours.contains(local_time):
                score = tuning.off_hours_availability

        if availability.is_out_of_office(now):
            score *= tuning.out_of_office_availability

        return score

    # ------------------------------------------------------------------
    # Review cost
    # ------------------------------------------------------------------

    def estimate_review_minutes(
        self,
        request: ChangeRequest,
        config: AlgorithmConfig | None = None,
    ) -> int:
        """base x size multiplier x (1 + factor x total complexity) x priority multiplier."""
        tuning = (config or self.config).tuning
        minutes = (
            tuning.base_review_minutes
            * tuning.size_multipliers.get(request.size, 1.0)
            * (1 + tuning.complexity_factor * request.total_complexity)
            * tuning.priority_multipliers.get(request.priority, 1.0)
        )
        # Round first so float noise never bumps the ceiling
        return math.ceil(round(minutes, 6))

    def estimate_impact(
        self,
        person: Person,
        request: ChangeRequest,
        config: AlgorithmConfig | None = None,
    ) -> float:
        """Share of remaining review capacity one more review would consume."""
        workload = person.workload
        remaining = workload.remaining_capacity
        if remaining <= 0 or workload.average_review_hours <= 0:
            return 1.0

        minutes = self.estimate_review_minutes(request, config)
        impact = minutes / (remaining * workload.average_review_hours * 60)
        return min(impact, 1.0)

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def is_eligible(
        self,
        person: Person,
        request: ChangeRequest,
        config: AlgorithmConfig | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Check whether a person may be asked to review a request."""
        config = config or self.config
        constraints = config.constraints
        now = now or self.now()

        if not person.is_active or not person.availability.is_available:
            return False

        if constraints.avoid_same_author and person.id == request.author:
            return False

        if request.is_excluded(person.id):
            return False

        if self.estimate_impact(person, request, config) > constraints.max_workload_threshold:
            return False

        if person.availability.is_out_of_office(now):
            return False

        return True

    # ------------------------------------------------------------------
    # Prediction and balancing
    # ------------------------------------------------------------------

    def predict_future_load(
        self,
        person: Person,
        horizon_days: int = 7,
    ) -> WorkloadState:
        """
        Linear extrapolation of the weekly review rate over a horizon.

        Current open reviews are taken as the weekly rate. The prediction
        never exceeds the remaining capacity, and the returned state carries
        the capacity left once the predicted reviews are taken.
        """
        current = person.workload
        daily_rate = current.current_reviews / 7
        predicted = math.ceil(round(daily_rate * max(horizon_days, 0), 6))
        predicted = min(predicted, current.remaining_capacity)
        return replace(
            current,
            current_reviews=predicted,
            review_capacity=max(current.review_capacity - predicted, 0),
        )

    def balance_assignments(
        self,
        request: ChangeRequest,
        candidates: Sequence[Person],
        config: AlgorithmConfig | None = None,
        now: datetime | None = None,
    ) -> list[Suggestion]:
        """Workload-based suggestions for every eligible candidate."""
        config = config or self.config
        now = now or self.now()

        available = [c for c in candidates if self.is_eligible(c, request, config, now)]
        if not available:
            return []

        scores = self.workload_scores(available, config, now)
        suggestions = []

        for person in available:
            workload_score = scores.get(person.id, 0.0)
            impact = self.estimate_impact(person, request, config)
            if workload_score <= config.tuning.min_workload_score:
                continue
            if impact >= config.constraints.max_workload_threshold:
                continue
            suggestions.append(
                self._workload_suggestion(person, request, workload_score, impact, config, now)
            )

        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        return suggestions

    def _workload_suggestion(
        self,
        person: Person,
        request: ChangeRequest,
        workload_score: float,
        impact: float,
        config: AlgorithmConfig,
        now: datetime,
    ) -> Suggestion:
        workload = person.workload
        availability_score = self.availability_score(person, config, now)

        reasons = [
            Reason(
                type=ReasonType.WORKLOAD_BALANCE,
                description=(
                    f"Low current workload ({workload.current_reviews}/"
                    f"{workload.review_capacity} reviews)"
                ),
                weight=workload_score,
                evidence={
                    "current_reviews": workload.current_reviews,
                    "capacity": workload.review_capacity,
                    "average_review_hours": workload.average_review_hours,
                },
            )
        ]

        if availability_score > config.tuning.availability_reason_threshold:
            reasons.append(
                Reason(
                    type=ReasonType.AVAILABILITY,
                    description="High availability based on timezone and working hours",
                    weight=availability_score * 0.3,
                    evidence={
                        "timezone": person.availability.timezone,
                        "working_hours": {
                            "start": person.availability.working_hours.start,
                            "end": person.availability.working_hours.end,
                        },
                    },
                )
            )

        confidence = (
            workload_score * config.weights.workload
            + availability_score * config.weights.availability
        )

        return Suggestion(
            reviewer=person,
            confidence=min(confidence, 1.0),
            reasons=reasons,
            estimated_minutes=self.estimate_review_minutes(request, config),
            workload_impact=impact,
            availability_score=availability_score,
        )

    def optimize_assignments(
        self,
        requests: Sequence[ChangeRequest],
        candidates: Sequence[Person],
        max_iterations: int = 100,
        config: AlgorithmConfig | None = None,
    ) -> dict[str, list[str]]:
        """
        Greedily spread a batch of requests across the candidate pool.

        Each pass adds at most one reviewer per request, preferring people
        with fewer assignments in this batch and more spare capacity, until
        every request is full or nobody else can be added.
        """
        config = config or self.config
        now = self.now()
        assignments: dict[str, list[str]] = {r.id: [] for r in requests}

        for _ in range(max_iterations):
            improved = False
            for request in requests:
                assignees = assignments[request.id]
                if len(assignees) >= config.constraints.max_reviewers_per_pr:
                    continue

                best = self._find_best_reviewer(request, candidates, assignments, config, now)
                if best is not None:
                    assignees.append(best.id)
                    improved = True

            if not improved:
                break

        logger.info(
            "Batch assignments optimized",
            request_count=len(requests),
            assigned=sum(len(a) for a in assignments.values()),
        )
        return assignments

    def _find_best_reviewer(
        self,
        request: ChangeRequest,
        candidates: Sequence[Person],
        assignments: dict[str, list[str]],
        config: AlgorithmConfig,
        now: datetime,
    ) -> Person | None:
        best: Person | None = None
        best_score = 0.0
        assignees = assignments[request.id]

        for person in candidates:
            if person.id in assignees:
                continue
            if not self.is_eligible(person, request, config, now):
                continue

            batch_load = sum(1 for ids in assignments.values() if person.id in ids)
            spread_score = 1 / (batch_load + 1)
            capacity_score = person.workload.review_capacity / max(
                person.workload.current_reviews, 1
            )
            score = spread_score * capacity_score

            if score > best_score:
                best_score = score
                best = person

        return best


def _zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, falling back to UTC", timezone=name)
        return timezone.utc
