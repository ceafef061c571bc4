"""
Assignment Engine - Produces ranked reviewer suggestions and assignments.

Workflow for one change request:
1. Fold fresh evidence into candidate expertise (optional)
2. Generate expertise, workload and collaboration suggestions independently
3. Merge them per candidate
4. Filter by hard constraints
5. Keep one candidate per team (when team diversity is required)
6. Rank and truncate, then optionally stamp assignments with deadlines
"""

import math
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any, Protocol

import structlog

from reviewer_engine.assignment.config import AlgorithmConfig
from reviewer_engine.assignment.effectiveness import (
    EffectivenessReport,
    analyze_assignment_effectiveness,
)
from reviewer_engine.assignment.errors import EvidenceMalformedError
from reviewer_engine.assignment.expertise import Evidence, ExpertiseModel, parse_evidence
from reviewer_engine.assignment.workload import WorkloadModel
from reviewer_engine.config import settings
from reviewer_engine.models.change_request import ChangeRequest
from reviewer_engine.models.evidence import CompletedReview
from reviewer_engine.models.person import ExpertiseArea, ExpertiseLevel, Person
from reviewer_engine.models.review import Assignment, Reason, ReasonType, Suggestion
from reviewer_engine.utils.time import as_utc, utcnow

logger = structlog.get_logger()


class AssignmentListener(Protocol):
    """Receives the engine's side effects. Both hooks are optional."""

    def expertise_updated(self, person: Person, expertise: list[ExpertiseArea]) -> None: ...

    def assignments_created(
        self, request: ChangeRequest, assignments: list[Assignment]
    ) -> None: ...


class AssignmentEngine:
    """
    Suggests and assigns reviewers for change requests.

    Each call reads a single config snapshot captured at its start, so a
    concurrent update_config never affects a cycle already in progress.

    Candidate Person objects are shared, mutable state (expertise updates
    write to them). Callers that run cycles concurrently must synchronise
    access to the candidate pool themselves.
    """

    def __init__(
        self,
        config: AlgorithmConfig | None = None,
        *,
        expertise_model: ExpertiseModel | None = None,
        workload_model: WorkloadModel | None = None,
        listener: AssignmentListener | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._config = config or AlgorithmConfig.from_settings(settings)
        self._config_lock = threading.Lock()
        self._clock = clock
        self.expertise = expertise_model or ExpertiseModel(self._config)
        self.workload = workload_model or WorkloadModel(self._config, clock)
        self.listener = listener

    @property
    def config(self) -> AlgorithmConfig:
        """The current config snapshot."""
        return self._config

    def update_config(self, partial: Mapping[str, Any] | AlgorithmConfig) -> AlgorithmConfig:
        """
        Apply a partial config update and swap in the new snapshot.

        Raises:
            ConfigInvalidError: If the result is invalid. The previous
                config remains active.
        """
        with self._config_lock:
            new_config = self._config.merged(partial)
            self._config = new_config
            self.expertise.config = new_config
            self.workload.config = new_config

        logger.info(
            "Algorithm config updated",
            max_reviewers_per_pr=new_config.constraints.max_reviewers_per_pr,
            require_team_diversity=new_config.constraints.require_team_diversity,
        )
        return new_config

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def suggest_reviewers(
        self,
        request: ChangeRequest,
        candidates: Sequence[Person],
        evidence: Iterable[Evidence | Mapping[str, Any]] | None = None,
    ) -> list[Suggestion]:
        """
        Suggest reviewers for a change request, best first.

        Args:
            request: The change request needing review
            candidates: Candidate pool (snapshot of the roster)
            evidence: Optional fresh history evidence to fold in first

        Returns:
            At most max_reviewers_per_pr suggestions, ordered by confidence
        """
        config = self._config
        return self._suggest(request, candidates, evidence, config, self._now())

    def assign_reviewers(
        self,
        request: ChangeRequest,
        candidates: Sequence[Person],
        max_assignments: int | None = None,
    ) -> list[Assignment]:
        """Turn the top suggestions into assignments with deadlines."""
        config = self._config
        now = self._now()
        if max_assignments is None:
            max_assignments = settings.default_max_assignments

        suggestions = self._suggest(request, candidates, None, config, now)
        buffer_hours = config.tuning.deadline_buffer_hours.get(request.priority, 24)
        deadline = now + timedelta(hours=buffer_hours)

        assignments = []
        for suggestion in suggestions[: max(min(max_assignments, len(suggestions)), 0)]:
            assignments.append(
                Assignment(
                    pull_request_id=request.id,
                    reviewer_id=suggestion.reviewer_id,
                    assigned_at=now,
                    confidence=suggestion.confidence,
                    reasons=list(suggestion.reasons),
                    priority=request.priority,
                    estimated_minutes=suggestion.estimated_minutes
                    or self.workload.estimate_review_minutes(request, config),
                    deadline=deadline,
                )
            )

        logger.info(
            "Reviewers assigned",
            pull_request_id=request.id,
            reviewers=[a.reviewer_id for a in assignments],
            deadline=deadline.isoformat(),
        )

        if assignments and self.listener is not None:
            self.listener.assignments_created(request, assignments)

        return assignments

    def analyze_assignment_effectiveness(
        self,
        past_assignments: Sequence[Assignment],
        completed_reviews: Sequence[CompletedReview],
    ) -> EffectivenessReport:
        """Measure how well past assignments worked out."""
        return analyze_assignment_effectiveness(
            past_assignments,
            completed_reviews,
            reference_review_hours=self._config.tuning.reference_review_hours,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _suggest(
        self,
        request: ChangeRequest,
        candidates: Sequence[Person],
        evidence: Iterable[Evidence | Mapping[str, Any]] | None,
        config: AlgorithmConfig,
        now: datetime,
    ) -> list[Suggestion]:
        if not candidates:
            return []

        if request.is_draft:
            logger.info("Skipping draft change request", pull_request_id=request.id)
            return []

        if evidence:
            self._apply_evidence(candidates, evidence, config)

        expertise_suggestions = self._expertise_suggestions(request, candidates, config, now)
        workload_suggestions = (
            self.workload.balance_assignments(request, candidates, config, now)
            if config.preferences.balance_workload
            else []
        )
        collaboration_suggestions = (
            self._collaboration_suggestions(request, candidates, config)
            if config.preferences.favor_recent_collaborators
            else []
        )
        required_suggestions = self._required_suggestions(request, candidates)

        combined = self._combine(
            expertise_suggestions,
            workload_suggestions,
            collaboration_suggestions,
            required_suggestions,
        )
        self._apply_diversity_bonus(combined, request, candidates, config)

        filtered = self._apply_constraints(combined, request, config, now)
        if config.constraints.require_team_diversity:
            filtered = self._ensure_team_diversity(filtered, config)

        ranked = self._rank(filtered, config)[: config.constraints.max_reviewers_per_pr]

        logger.info(
            "Reviewer suggestions generated",
            pull_request_id=request.id,
            candidates=len(candidates),
            merged=len(combined),
            after_constraints=len(filtered),
            suggested=[s.reviewer_id for s in ranked],
        )
        return ranked

    def _apply_evidence(
        self,
        candidates: Sequence[Person],
        evidence: Iterable[Evidence | Mapping[str, Any]],
        config: AlgorithmConfig,
    ) -> None:
        """Parse evidence and fold it into matching candidates. Bad records are skipped."""
        by_person: dict[str, list[Evidence]] = {}
        for record in evidence:
            try:
                parsed = parse_evidence(record)
            except EvidenceMalformedError as e:
                logger.warning("Skipping malformed evidence record", error=str(e))
                continue
            by_person.setdefault(parsed.person_id, []).append(parsed)

        for person in candidates:
            records = by_person.get(person.id)
            if not records:
                continue
            expertise = self.expertise.update_expertise(person, records, config)
            if self.listener is not None:
                self.listener.expertise_updated(person, expertise)

    def _expertise_suggestions(
        self,
        request: ChangeRequest,
        candidates: Sequence[Person],
        config: AlgorithmConfig,
        now: datetime,
    ) -> list[Suggestion]:
        required = self.expertise.infer_required_technologies(request)
        if not required:
            return []

        tuning = config.tuning
        base_minutes = self.workload.estimate_review_minutes(request, config)
        changed_files = set(request.file_paths)
        suggestions = []

        for person in candidates:
            match = self.expertise.match_score(person.expertise, required)
            if match.score <= tuning.min_expertise_match:
                continue

            reasons = [
                Reason(
                    type=ReasonType.EXPERTISE_MATCH,
                    description=f"Strong expertise in {', '.join(match.matched_areas)}",
                    weight=match.score,
                    evidence={
                        "matched_areas": match.matched_areas,
                        "expertise_level": match.level.value,
                        "confidence": round(match.confidence, 4),
                    },
                )
            ]

            bonus = 0.0
            owned_files = sorted(changed_files & person.touched_files)
            if owned_files:
                bonus = min(len(owned_files) / len(changed_files), 1.0) * tuning.ownership_bonus
                reasons.append(
                    Reason(
                        type=ReasonType.FILE_OWNERSHIP,
                        description=f"Has worked on {len(owned_files)} of the modified files",
                        weight=bonus,
                        evidence={"owned_files": owned_files},
                    )
                )

            multiplier = tuning.expertise_time_multipliers.get(match.level, 1.0)
            suggestions.append(
                Suggestion(
                    reviewer=person,
                    confidence=(match.score + bonus) * config.weights.expertise,
                    reasons=reasons,
                    estimated_minutes=math.ceil(round(base_minutes * multiplier, 6)),
                    workload_impact=self.workload.estimate_impact(person, request, config),
                    availability_score=self.workload.availability_score(person, config, now),
                )
            )

        return suggestions

    def _collaboration_suggestions(
        self,
        request: ChangeRequest,
        candidates: Sequence[Person],
        config: AlgorithmConfig,
    ) -> list[Suggestion]:
        author = next((c for c in candidates if c.id == request.author), None)
        if author is None:
            return []

        suggestions = []
        for person in candidates:
            if person.id == author.id:
                continue

            score = self.collaboration_score(author, person, config)
            if score <= config.tuning.min_collaboration_score:
                continue

            shared_skills = sorted(author.skills & person.skills)
            suggestions.append(
                Suggestion(
                    reviewer=person,
                    confidence=score * config.weights.collaboration,
                    reasons=[
                        Reason(
                            type=ReasonType.COLLABORATION_HISTORY,
                            description="Has collaborated frequently with the PR author",
                            weight=score,
                            evidence={
                                "collaboration_score": round(score, 4),
                                "same_team": person.team_id == author.team_id,
                                "shared_skills": shared_skills,
                            },
                        )
                    ],
                )
            )
        return suggestions

    def collaboration_score(
        self,
        author: Person,
        reviewer: Person,
        config: AlgorithmConfig | None = None,
    ) -> float:
        """Same team -> fixed affinity, otherwise proportional to shared skills."""
        tuning = (config or self._config).tuning
        if author.team_id == reviewer.team_id:
            return tuning.same_team_affinity
        shared = len(author.skills & reviewer.skills)
        return min(shared * tuning.shared_skill_affinity, tuning.max_skill_affinity)

    def _required_suggestions(
        self,
        request: ChangeRequest,
        candidates: Sequence[Person],
    ) -> list[Suggestion]:
        return [
            Suggestion(
                reviewer=person,
                reasons=[
                    Reason(
                        type=ReasonType.REQUIRED_REVIEWER,
                        description="Listed as a required reviewer on the change request",
                    )
                ],
            )
            for person in candidates
            if request.is_required(person.id)
        ]

    @staticmethod
    def _combine(*suggestion_sets: list[Suggestion]) -> list[Suggestion]:
        """Merge per candidate: confidences add up (capped at 1), reasons concatenate, scores take the max."""
        merged: dict[str, Suggestion] = {}

        for suggestions in suggestion_sets:
            for suggestion in suggestions:
                existing = merged.get(suggestion.reviewer_id)
                if existing is None:
                    merged[suggestion.reviewer_id] = Suggestion(
                        reviewer=suggestion.reviewer,
                        confidence=suggestion.confidence,
                        reasons=list(suggestion.reasons),
                        estimated_minutes=suggestion.estimated_minutes,
                        workload_impact=suggestion.workload_impact,
                        availability_score=suggestion.availability_score,
                    )
                    continue

                existing.confidence = min(existing.confidence + suggestion.confidence, 1.0)
                existing.reasons.extend(suggestion.reasons)
                # First estimate wins, expertise estimates are level-adjusted
                existing.estimated_minutes = existing.estimated_minutes or suggestion.estimated_minutes
                existing.workload_impact = max(existing.workload_impact, suggestion.workload_impact)
                existing.availability_score = max(
                    existing.availability_score, suggestion.availability_score
                )

        return list(merged.values())

    @staticmethod
    def _apply_diversity_bonus(
        suggestions: list[Suggestion],
        request: ChangeRequest,
        candidates: Sequence[Person],
        config: AlgorithmConfig,
    ) -> None:
        """Reward candidates from a different team than the author."""
        weight = config.weights.diversity
        author = next((c for c in candidates if c.id == request.author), None)
        if author is None or weight <= 0:
            return

        for suggestion in suggestions:
            if suggestion.reviewer_id == author.id or suggestion.reviewer.team_id == author.team_id:
                continue
            suggestion.confidence = min(suggestion.confidence + weight, 1.0)
            suggestion.reasons.append(
                Reason(
                    type=ReasonType.TEAM_DIVERSITY,
                    description=f"Brings a perspective from team {suggestion.reviewer.team_id}",
                    weight=weight,
                    evidence={
                        "reviewer_team": suggestion.reviewer.team_id,
                        "author_team": author.team_id,
                    },
                )
            )

    def _apply_constraints(
        self,
        suggestions: list[Suggestion],
        request: ChangeRequest,
        config: AlgorithmConfig,
        now: datetime,
    ) -> list[Suggestion]:
        constraints = config.constraints
        kept = []

        for suggestion in suggestions:
            required = request.is_required(suggestion.reviewer_id)
            level = _matched_level(suggestion)
            has_min_expertise = level is not None and level.at_least(
                constraints.min_expertise_level
            )
            confident = suggestion.confidence > config.tuning.confidence_override

            if not (has_min_expertise or confident or required):
                logger.debug(
                    "Dropped candidate below minimum expertise",
                    reviewer_id=suggestion.reviewer_id,
                    confidence=round(suggestion.confidence, 4),
                )
                continue

            if not self.workload.is_eligible(suggestion.reviewer, request, config, now):
                logger.debug("Dropped ineligible candidate", reviewer_id=suggestion.reviewer_id)
                continue

            kept.append(suggestion)

        return kept

    def _ensure_team_diversity(
        self,
        suggestions: list[Suggestion],
        config: AlgorithmConfig,
    ) -> list[Suggestion]:
        """Keep the best candidate per team. Required reviewers are always kept."""
        best_per_team: dict[str, Suggestion] = {}
        required = []

        for suggestion in self._rank(suggestions, config):
            if suggestion.has_reason(ReasonType.REQUIRED_REVIEWER):
                required.append(suggestion)
                continue
            best_per_team.setdefault(suggestion.reviewer.team_id, suggestion)

        return required + list(best_per_team.values())

    @staticmethod
    def _rank(suggestions: list[Suggestion], config: AlgorithmConfig) -> list[Suggestion]:
        """Required reviewers first, then confidence, then expertise level, then id."""
        prioritize_experts = config.preferences.prioritize_experts

        def sort_key(s: Suggestion) -> tuple:
            level = _matched_level(s)
            level_rank = level.rank if (level is not None and prioritize_experts) else -1
            return (
                not s.has_reason(ReasonType.REQUIRED_REVIEWER),
                -s.confidence,
                -level_rank,
                s.reviewer_id,
            )

        return sorted(suggestions, key=sort_key)

    def _now(self) -> datetime:
        return as_utc(self._clock())


def _matched_level(suggestion: Suggestion) -> ExpertiseLevel | None:
    """Highest expertise level recorded on a suggestion's expertise reasons."""
    levels = [
        ExpertiseLevel.from_string(r.evidence.get("expertise_level"))
        for r in suggestion.reasons_of(ReasonType.EXPERTISE_MATCH)
    ]
    return ExpertiseLevel.highest(*levels) if levels else None
