"""Effectiveness analysis of past reviewer assignments."""

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from statistics import mean, pstdev
from typing import Any

import structlog

from reviewer_engine.models.evidence import CompletedReview, ReviewKey, ReviewOutcome
from reviewer_engine.models.review import Assignment

logger = structlog.get_logger()

# Thresholds that trigger improvement suggestions
LOW_ACCURACY = 0.7
LOW_BALANCE = 0.8
HIGH_LATE_RATIO = 0.2
HIGH_DECLINE_RATIO = 0.2


@dataclass
class EffectivenessReport:
    """How well a set of past assignments worked out."""

    accuracy: float = 0.0  # Share of assignments that led to a completed review
    average_review_hours: float = 0.0
    workload_balance: float = 0.0  # 1.0 = perfectly even across reviewers
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "accuracy": round(self.accuracy, 4),
            "average_review_hours": round(self.average_review_hours, 2),
            "workload_balance": round(self.workload_balance, 4),
            "suggestions": self.suggestions,
        }


def workload_balance(assignments: Sequence[Assignment]) -> float:
    """1 - coefficient of variation of assignments per reviewer, clamped to [0, 1]."""
    counts = list(Counter(a.reviewer_id for a in assignments).values())
    if not counts:
        return 0.0
    if len(counts) == 1:
        return 1.0
    average = mean(counts)
    return max(0.0, min(1.0, 1 - pstdev(counts) / average))


def analyze_assignment_effectiveness(
    past_assignments: Sequence[Assignment],
    completed_reviews: Sequence[CompletedReview],
    reference_review_hours: float = 4.0,
) -> EffectivenessReport:
    """
    Join assignments to completed reviews and summarise the outcome.

    A review counts towards an assignment when both share the same
    (pull request, reviewer) key. Reviews without a matching assignment
    are ignored.

    Args:
        past_assignments: Assignments made earlier
        completed_reviews: Reviews that were actually carried out
        reference_review_hours: Average review time considered normal

    Returns:
        EffectivenessReport with accuracy, timing, balance and suggestions
    """
    if not past_assignments:
        return EffectivenessReport()

    reviews: dict[ReviewKey, CompletedReview] = {}
    for review in completed_reviews:
        reviews.setdefault(review.key, review)

    matched = [
        (assignment, reviews[key])
        for assignment in past_assignments
        if (key := ReviewKey(assignment.pull_request_id, assignment.reviewer_id)) in reviews
    ]

    accuracy = len(matched) / len(past_assignments)
    average_hours = mean(r.review_minutes for _, r in matched) / 60 if matched else 0.0
    balance = workload_balance(past_assignments)

    late = sum(1 for a, r in matched if r.completed_at > a.deadline)
    declined = sum(1 for _, r in matched if r.outcome == ReviewOutcome.DECLINED)

    suggestions = []
    if accuracy < LOW_ACCURACY:
        suggestions.append(
            f"Only {accuracy:.0%} of assignments led to a completed review; "
            "consider raising the expertise weight or the minimum expertise level"
        )
    if balance < LOW_BALANCE:
        suggestions.append(
            "Review load is unevenly distributed; consider raising the workload weight"
        )
    if matched and late / len(matched) > HIGH_LATE_RATIO:
        suggestions.append(
            f"{late} of {len(matched)} reviews finished after their deadline; "
            "consider longer deadline buffers or fewer reviewers per request"
        )
    if matched and declined / len(matched) > HIGH_DECLINE_RATIO:
        suggestions.append(
            "Assigned reviewers frequently decline; check availability data and preferences"
        )
    if average_hours > reference_review_hours:
        suggestions.append(
            f"Reviews take {average_hours:.1f}h on average; "
            "prefer reviewers with stronger expertise in the changed areas"
        )

    report = EffectivenessReport(
        accuracy=accuracy,
        average_review_hours=average_hours,
        workload_balance=balance,
        suggestions=suggestions,
    )

    logger.info(
        "Assignment effectiveness analyzed",
        assignments=len(past_assignments),
        completed=len(matched),
        accuracy=round(accuracy, 4),
        workload_balance=round(balance, 4),
    )
    return report
