"""
Expertise Model - Infers and scores per-technology expertise.

Turns history evidence (GitAnalysis records, code-pattern observations)
into ExpertiseArea entries, and scores how well a person's expertise
matches the technologies a change request touches.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Union

import structlog
from pydantic import ValidationError

from reviewer_engine.assignment.config import AlgorithmConfig
from reviewer_engine.assignment.errors import EvidenceMalformedError
from reviewer_engine.models.change_request import ChangeRequest
from reviewer_engine.models.evidence import CodePatternObservation, GitAnalysis
from reviewer_engine.models.person import (
    EvidenceKey,
    ExpertiseArea,
    ExpertiseLevel,
    Person,
)
from reviewer_engine.utils.time import utcnow

logger = structlog.get_logger()

Evidence = Union[GitAnalysis, CodePatternObservation]

# File extension -> technology
LANGUAGE_TABLE: dict[str, str] = {
    "ts": "TypeScript",
    "tsx": "TypeScript",
    "js": "JavaScript",
    "jsx": "JavaScript",
    "py": "Python",
    "java": "Java",
    "go": "Go",
    "rs": "Rust",
    "cpp": "C++",
    "cs": "C#",
    "php": "PHP",
    "rb": "Ruby",
    "swift": "Swift",
    "kt": "Kotlin",
    "vue": "Vue",
}

# (path fragments, technology). Matched against the lower-cased path.
PATH_HEURISTICS: list[tuple[tuple[str, ...], str]] = [
    (("docker",), "Docker"),
    ((".k8s.", "k8s/", "kubernetes"), "Kubernetes"),
    (("terraform",), "Terraform"),
    (("package.json",), "Node.js"),
    (("requirements.txt", "pyproject.toml"), "Python"),
]

# Canonical technology names, keyed by lower-case spelling
KNOWN_TECHNOLOGIES: dict[str, str] = {
    name.lower(): name
    for name in [*LANGUAGE_TABLE.values(), *(tech for _, tech in PATH_HEURISTICS)]
}


def canonical_technology(name: str | None) -> str | None:
    """Resolve a language or extension name to its canonical technology."""
    if not name:
        return None
    key = name.strip().lower()
    if key in KNOWN_TECHNOLOGIES:
        return KNOWN_TECHNOLOGIES[key]
    return LANGUAGE_TABLE.get(key.lstrip("."))


@dataclass
class ExpertiseMatch:
    """How well a person's expertise covers a set of required technologies."""

    score: float = 0.0
    matched_areas: list[str] = field(default_factory=list)
    level: ExpertiseLevel = ExpertiseLevel.NOVICE
    confidence: float = 0.0


def parse_evidence(record: Evidence | Mapping[str, Any]) -> Evidence:
    """
    Parse a raw evidence record.

    Dicts with a "technology" key are code-pattern observations,
    everything else is treated as a GitAnalysis record.

    Raises:
        EvidenceMalformedError: If the record cannot be parsed.
    """
    if isinstance(record, (GitAnalysis, CodePatternObservation)):
        return record
    if not isinstance(record, Mapping):
        raise EvidenceMalformedError(
            f"Unsupported evidence record type: {type(record).__name__}", record
        )
    model = CodePatternObservation if "technology" in record else GitAnalysis
    try:
        return model.model_validate(record)
    except ValidationError as e:
        raise EvidenceMalformedError(
            f"Malformed {model.__name__} record: {e.error_count()} error(s)", record
        ) from e


class ExpertiseModel:
    """
    Infers expertise from evidence and scores expertise matches.

    Merging discipline: confidence is averaged weighted by evidence count,
    the higher of the two levels wins, evidence counts add up. Evidence that
    was already applied to a person is skipped, so updates are idempotent
    and independent of the order evidence arrives in.
    """

    def __init__(self, config: AlgorithmConfig | None = None):
        self.config = config or AlgorithmConfig()

    def infer_required_technologies(self, request: ChangeRequest) -> set[str]:
        """Derive required technologies from file extensions and path patterns."""
        technologies: set[str] = set()

        for file in request.files:
            language = canonical_technology(file.language) or LANGUAGE_TABLE.get(file.extension)
            if language:
                technologies.add(language)

            path = file.path.lower()
            for fragments, technology in PATH_HEURISTICS:
                if any(fragment in path for fragment in fragments):
                    technologies.add(technology)
            if path.endswith(".tf"):
                technologies.add("Terraform")

        return technologies

    def match_score(
        self,
        expertise: Iterable[ExpertiseArea],
        required: Iterable[str],
    ) -> ExpertiseMatch:
        """
        Score a person's expertise against required technologies.

        score = mean matched confidence * (matched count / required count).
        The reported level is that of the single highest-confidence match.
        """
        required = sorted(set(required))
        areas = list(expertise)
        if not required or not areas:
            return ExpertiseMatch()

        matches: list[ExpertiseArea] = []
        for technology in required:
            match = next((a for a in areas if a.matches(technology)), None)
            if match:
                matches.append(match)

        if not matches:
            return ExpertiseMatch()

        avg_confidence = sum(m.confidence for m in matches) / len(matches)
        match_ratio = len(matches) / len(required)
        best = max(matches, key=lambda m: m.confidence)

        return ExpertiseMatch(
            score=max(0.0, min(1.0, avg_confidence * match_ratio)),
            matched_areas=[m.technology for m in matches],
            level=best.level,
            confidence=avg_confidence,
        )

    def level_for(
        self,
        commits: int,
        lines: int,
        reviews: int,
        config: AlgorithmConfig | None = None,
    ) -> ExpertiseLevel:
        """Highest tier whose commit, line and review thresholds are all met."""
        thresholds = (config or self.config).tuning.level_thresholds
        level = ExpertiseLevel.NOVICE
        for candidate in sorted(thresholds, key=lambda lv: lv.rank):
            if thresholds[candidate].satisfied_by(commits, lines, reviews):
                level = candidate
        return level

    def observe(
        self,
        analysis: GitAnalysis,
        config: AlgorithmConfig | None = None,
    ) -> list[ExpertiseArea]:
        """Convert one GitAnalysis record into fresh expertise areas."""
        config = config or self.config
        expert = config.tuning.level_thresholds[ExpertiseLevel.EXPERT]
        areas: dict[str, ExpertiseArea] = {}

        for language, lines in analysis.lines_by_language.items():
            technology = canonical_technology(language)
            if technology is None:
                logger.debug("Ignoring unknown language", language=language)
                continue
            if lines <= 0:
                continue

            commits = analysis.commits_for(language)
            confidence = (
                _progress(commits, expert.commits)
                + _progress(lines, expert.lines)
                + _progress(analysis.review_count, expert.reviews)
            ) / 3
            area = ExpertiseArea(
                technology=technology,
                level=self.level_for(commits, lines, analysis.review_count, config),
                confidence=confidence,
                last_updated=analysis.analyzed_at or utcnow(),
                evidence_count=max(commits, 1),
            )
            # Two spellings of one language collapse into one area
            existing = areas.get(technology)
            areas[technology] = self.merge_area(existing, area) if existing else area

        return list(areas.values())

    def observe_patterns(
        self,
        observations: Iterable[CodePatternObservation],
        config: AlgorithmConfig | None = None,
    ) -> list[ExpertiseArea]:
        """
        Convert code-pattern observations into fresh expertise areas.

        Patterns raise confidence only; levels come from history evidence.
        """
        saturation = (config or self.config).tuning.pattern_saturation
        areas = []
        for observation in observations:
            if observation.occurrences <= 0:
                continue
            technology = canonical_technology(observation.technology) or observation.technology
            areas.append(
                ExpertiseArea(
                    technology=technology,
                    level=ExpertiseLevel.NOVICE,
                    confidence=observation.quality * min(observation.occurrences / saturation, 1.0),
                    last_updated=observation.observed_at or utcnow(),
                    evidence_count=observation.occurrences,
                )
            )
        return areas

    def update_expertise(
        self,
        person: Person,
        evidence: Evidence | Iterable[Evidence] | None,
        config: AlgorithmConfig | None = None,
    ) -> list[ExpertiseArea]:
        """
        Merge new evidence into a person's expertise.

        Evidence for other people is ignored. Returns the updated expertise
        list, which is also stored on the person.
        """
        config = config or self.config
        if evidence is None:
            return person.expertise
        if isinstance(evidence, (GitAnalysis, CodePatternObservation)):
            evidence = [evidence]

        expertise = list(person.expertise)
        applied = 0

        for record in evidence:
            if record.person_id != person.id:
                continue

            if isinstance(record, GitAnalysis):
                person.touched_files.update(record.files_touched)
                observed = self.observe(record, config)
                source = "git"
            else:
                observed = self.observe_patterns([record], config)
                source = "pattern"
            fingerprint = record.fingerprint

            for area in observed:
                key = EvidenceKey(
                    person_id=person.id,
                    source=source,
                    technology=area.technology.lower(),
                    fingerprint=fingerprint,
                )
                if key in person.applied_evidence:
                    continue

                index = next(
                    (i for i, a in enumerate(expertise) if a.matches(area.technology)),
                    None,
                )
                if index is None:
                    expertise.append(area)
                else:
                    expertise[index] = self.merge_area(expertise[index], area)
                person.applied_evidence.add(key)
                applied += 1

        person.expertise = expertise
        if applied:
            logger.debug(
                "Expertise updated",
                person_id=person.id,
                areas_applied=applied,
                technologies=[a.technology for a in expertise],
            )
        return expertise

    @staticmethod
    def merge_area(existing: ExpertiseArea, new: ExpertiseArea) -> ExpertiseArea:
        """Evidence-weighted merge of two observations of one technology."""
        existing_weight = max(existing.evidence_count, 1)
        new_weight = max(new.evidence_count, 1)
        total = existing_weight + new_weight

        return replace(
            existing,
            level=ExpertiseLevel.highest(existing.level, new.level),
            confidence=(existing.confidence * existing_weight + new.confidence * new_weight)
            / total,
            last_updated=max(existing.last_updated, new.last_updated),
            evidence_count=total,
        )


def _progress(value: int, target: int) -> float:
    if target <= 0:
        return 1.0
    return min(value / target, 1.0)
