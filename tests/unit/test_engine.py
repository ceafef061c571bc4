"""Tests for the assignment engine."""

from datetime import timedelta

import pytest

from reviewer_engine.assignment import AlgorithmConfig, AssignmentEngine
from reviewer_engine.models import GitAnalysis, Priority, ReasonType

from tests.conftest import NOW


class RecordingListener:
    """Collects engine callbacks."""

    def __init__(self):
        self.expertise_updates = []
        self.created = []

    def expertise_updated(self, person, expertise):
        self.expertise_updates.append((person.id, list(expertise)))

    def assignments_created(self, request, assignments):
        self.created.append((request.id, list(assignments)))


def _engine(**overrides) -> AssignmentEngine:
    return AssignmentEngine(AlgorithmConfig().merged(overrides), clock=lambda: NOW)


class TestSuggestReviewers:
    """Tests for reviewer suggestions."""

    def test_end_to_end_team_scenario(self, engine, team_pool, make_request):
        """Test the expert with spare capacity ranks first and teams are diversified."""
        suggestions = engine.suggest_reviewers(make_request(), team_pool)

        ids = [s.reviewer_id for s in suggestions]
        assert ids == ["alice", "diana"]
        assert len({s.reviewer.team_id for s in suggestions}) == 2
        assert "charlie" not in ids

    def test_alice_reasons(self, engine, team_pool, make_request):
        """Test the top suggestion carries expertise and workload reasons."""
        alice = engine.suggest_reviewers(make_request(), team_pool)[0]

        assert alice.has_reason(ReasonType.EXPERTISE_MATCH)
        assert alice.has_reason(ReasonType.WORKLOAD_BALANCE)
        expertise_reason = alice.reasons_of(ReasonType.EXPERTISE_MATCH)[0]
        assert expertise_reason.evidence["matched_areas"] == ["TypeScript"]
        assert expertise_reason.evidence["expertise_level"] == "expert"
        assert alice.confidence == pytest.approx(0.36 + 0.3 * 0.7714 + 0.15, abs=1e-3)

    def test_empty_pool(self, engine, make_request):
        """Test empty candidate pool yields no suggestions."""
        assert engine.suggest_reviewers(make_request(), []) == []

    def test_draft_request(self, engine, team_pool, make_request):
        """Test drafts are not assigned reviewers."""
        assert engine.suggest_reviewers(make_request(is_draft=True), team_pool) == []

    def test_confidence_bounds(self, engine, team_pool, make_request):
        """Test every confidence is within [0, 1]."""
        for person in team_pool:
            person.touched_files.update({"src/components/Button.tsx", "src/utils/format.ts"})
            person.skills = {"react", "testing"}

        request = make_request(author="bob")
        for suggestion in engine.suggest_reviewers(request, team_pool):
            assert 0.0 <= suggestion.confidence <= 1.0
            assert 0.0 <= suggestion.workload_impact <= 1.0
            assert 0.0 <= suggestion.availability_score <= 1.0

    def test_author_never_suggested(self, engine, team_pool, make_request):
        """Test the author is never suggested to review their own change."""
        suggestions = engine.suggest_reviewers(make_request(author="alice"), team_pool)

        ids = [s.reviewer_id for s in suggestions]
        assert "alice" not in ids
        assert ids

    def test_excluded_never_suggested(self, engine, team_pool, make_request):
        """Test excluded reviewers are dropped."""
        request = make_request(excluded_reviewers=["alice"])

        ids = [s.reviewer_id for s in engine.suggest_reviewers(request, team_pool)]
        assert "alice" not in ids

    def test_one_per_team_with_two_teams(self, team_pool, make_request):
        """Test team diversity with max 2 reviewers yields one reviewer per team."""
        engine = _engine(constraints={"max_reviewers_per_pr": 2})

        suggestions = engine.suggest_reviewers(make_request(), team_pool)

        assert len(suggestions) == 2
        assert sorted(s.reviewer.team_id for s in suggestions) == ["team1", "team2"]

    def test_without_team_diversity(self, team_pool, make_request):
        """Test several reviewers from one team when diversity is off."""
        engine = _engine(
            constraints={"require_team_diversity": False},
            tuning={"confidence_override": 0.0},
        )

        suggestions = engine.suggest_reviewers(make_request(), team_pool)

        assert len(suggestions) == 3
        assert suggestions[0].reviewer_id == "alice"

    def test_workload_monotonicity(self, make_person, make_request):
        """Test the less loaded of two identical experts ranks at least as high."""
        engine = _engine(constraints={"require_team_diversity": False})
        a = make_person("a", expertise=[("TypeScript", "expert", 0.9)], current_reviews=2, review_capacity=5)
        b = make_person("b", expertise=[("TypeScript", "expert", 0.9)], current_reviews=5, review_capacity=8)

        suggestions = {s.reviewer_id: s for s in engine.suggest_reviewers(make_request(), [b, a])}

        assert suggestions["a"].confidence >= suggestions["b"].confidence

    def test_minimum_expertise_level(self, make_person, make_request):
        """Test an intermediate-only candidate is dropped when advanced is required."""
        candidate = make_person("ivan", expertise=[("TypeScript", "intermediate", 0.5)])

        strict = _engine(constraints={"min_expertise_level": "advanced"})
        lenient = _engine()

        assert strict.suggest_reviewers(make_request(), [candidate]) == []
        assert [s.reviewer_id for s in lenient.suggest_reviewers(make_request(), [candidate])] == ["ivan"]

    def test_high_confidence_overrides_minimum_level(self, make_person, make_request):
        """Test a merged confidence above the override keeps a lower-level candidate."""
        candidate = make_person(
            "ivan",
            expertise=[("TypeScript", "intermediate", 1.0)],
            touched_files={"src/components/Button.tsx", "src/utils/format.ts"},
        )
        engine = _engine(constraints={"min_expertise_level": "expert"})

        suggestions = engine.suggest_reviewers(make_request(), [candidate])

        assert [s.reviewer_id for s in suggestions] == ["ivan"]
        assert suggestions[0].confidence > 0.7

    def test_file_ownership_bonus(self, engine, make_person, make_request):
        """Test touching changed files adds an ownership reason and raises confidence."""
        owner = make_person(
            "olga",
            expertise=[("TypeScript", "advanced", 0.6)],
            touched_files={"src/utils/format.ts"},
        )
        other = make_person("oscar", team_id="team2", expertise=[("TypeScript", "advanced", 0.6)])

        suggestions = {s.reviewer_id: s for s in engine.suggest_reviewers(make_request(), [owner, other])}

        ownership = suggestions["olga"].reasons_of(ReasonType.FILE_OWNERSHIP)
        assert ownership
        assert ownership[0].evidence["owned_files"] == ["src/utils/format.ts"]
        assert suggestions["olga"].confidence > suggestions["oscar"].confidence

    def test_expertise_level_adjusts_review_time(self, engine, make_person, make_request):
        """Test experts are estimated to review faster."""
        expert = make_person("xena", expertise=[("TypeScript", "expert", 0.9)])

        suggestion = engine.suggest_reviewers(make_request(), [expert])[0]

        # 30 min x 2.0 (medium) x 1.5 (complexity 5) x 1.0 (medium) x 0.7 (expert)
        assert suggestion.estimated_minutes == 63

    def test_collaboration_with_author(self, make_person, make_request):
        """Test a teammate of the author gets a collaboration reason."""
        engine = _engine(constraints={"require_team_diversity": False})
        author = make_person("eve", team_id="team1")
        teammate = make_person("tom", team_id="team1", expertise=[("TypeScript", "advanced", 0.8)])

        suggestions = engine.suggest_reviewers(make_request(author="eve"), [author, teammate])

        assert [s.reviewer_id for s in suggestions] == ["tom"]
        reason = suggestions[0].reasons_of(ReasonType.COLLABORATION_HISTORY)[0]
        assert reason.evidence["same_team"] is True
        assert reason.weight == pytest.approx(0.6)

    def test_collaboration_score(self, engine, make_person):
        """Test collaboration affinity from teams and shared skills."""
        author = make_person("eve", team_id="team1", skills={"react", "graphql", "css", "jest", "node"})
        teammate = make_person("tom", team_id="team1")
        stranger = make_person("sam", team_id="team2", skills={"react", "graphql"})
        polymath = make_person("pia", team_id="team3", skills={"react", "graphql", "css", "jest", "node"})

        assert engine.collaboration_score(author, teammate) == pytest.approx(0.6)
        assert engine.collaboration_score(author, stranger) == pytest.approx(0.2)
        assert engine.collaboration_score(author, polymath) == pytest.approx(0.4)

    def test_team_diversity_reason(self, engine, make_person, make_request):
        """Test reviewers from another team than the author get a diversity reason."""
        author = make_person("eve", team_id="team1")
        outsider = make_person("otto", team_id="team2", expertise=[("TypeScript", "expert", 0.9)])

        suggestion = engine.suggest_reviewers(make_request(), [author, outsider])[0]

        assert suggestion.has_reason(ReasonType.TEAM_DIVERSITY)

    def test_request_without_files(self, make_person):
        """Test a request with no files still gets workload suggestions."""
        from reviewer_engine.models import ChangeRequest

        engine = _engine(tuning={"confidence_override": 0.4})
        request = ChangeRequest(id="pr-empty", author="eve")
        person = make_person("wes", expertise=[("Go", "expert", 0.9)])

        suggestions = engine.suggest_reviewers(request, [person])

        assert [s.reviewer_id for s in suggestions] == ["wes"]
        assert not suggestions[0].has_reason(ReasonType.EXPERTISE_MATCH)

    def test_inactive_candidates_are_skipped(self, engine, team_pool, make_request):
        """Test deactivated people are never suggested."""
        team_pool[0].deactivate()

        ids = [s.reviewer_id for s in engine.suggest_reviewers(make_request(), team_pool)]
        assert "alice" not in ids


class TestRequiredReviewers:
    """Tests for required reviewers."""

    def test_required_reviewer_ranked_first(self, engine, team_pool, make_request):
        """Test a required reviewer is kept despite lacking expertise."""
        request = make_request(required_reviewers=["charlie"])

        suggestions = engine.suggest_reviewers(request, team_pool)

        assert [s.reviewer_id for s in suggestions] == ["charlie", "alice", "diana"]
        assert suggestions[0].has_reason(ReasonType.REQUIRED_REVIEWER)

    def test_required_reviewer_counts_toward_max(self, team_pool, make_request):
        """Test required reviewers use up reviewer slots."""
        engine = _engine(constraints={"max_reviewers_per_pr": 2})
        request = make_request(required_reviewers=["charlie"])

        ids = [s.reviewer_id for s in engine.suggest_reviewers(request, team_pool)]
        assert ids == ["charlie", "alice"]

    def test_excluded_required_reviewer_dropped(self, engine, team_pool, make_request):
        """Test exclusion wins over a required listing."""
        request = make_request(required_reviewers=["charlie"], excluded_reviewers=["charlie"])

        ids = [s.reviewer_id for s in engine.suggest_reviewers(request, team_pool)]
        assert "charlie" not in ids


class TestEvidence:
    """Tests for evidence supplied alongside a suggestion request."""

    def test_evidence_updates_expertise(self, engine, make_person, make_request):
        """Test fresh history evidence turns a newcomer into a suggested expert."""
        listener = RecordingListener()
        engine.listener = listener
        newcomer = make_person("nina")
        evidence = [
            {
                "person_id": "nina",
                "analyzed_at": NOW.isoformat(),
                "commit_count": 250,
                "review_count": 120,
                "lines_by_language": {"TypeScript": 60000},
                "files_touched": ["src/utils/format.ts"],
            }
        ]

        suggestions = engine.suggest_reviewers(make_request(), [newcomer], evidence)

        assert [s.reviewer_id for s in suggestions] == ["nina"]
        area = newcomer.expertise_for("typescript")
        assert area is not None
        assert area.level.value == "expert"
        assert "src/utils/format.ts" in newcomer.touched_files
        assert listener.expertise_updates[0][0] == "nina"

    def test_malformed_evidence_skipped(self, engine, make_person, make_request):
        """Test malformed records are skipped while valid ones still apply."""
        person = make_person("nina")
        evidence = [
            {"person_id": "", "commit_count": 5},
            {"person_id": "nina", "commit_count": -1},
            {"person_id": "nina", "technology": "TypeScript", "quality": 3},
            GitAnalysis(
                person_id="nina",
                analyzed_at=NOW,
                commit_count=60,
                review_count=30,
                lines_by_language={"TypeScript": 12000},
            ),
        ]

        engine.suggest_reviewers(make_request(), [person], evidence)

        assert [a.technology for a in person.expertise] == ["TypeScript"]
        assert person.expertise[0].level.value == "advanced"


class TestAssignReviewers:
    """Tests for assignment creation."""

    @pytest.fixture
    def roomy_pool(self, make_person):
        """Two experts with plenty of spare capacity, even for critical reviews."""
        return [
            make_person("rita", "team1", [("TypeScript", "expert", 0.9)], review_capacity=10),
            make_person("raj", "team2", [("TypeScript", "advanced", 0.8)], review_capacity=10),
        ]

    def test_default_max_assignments(self, engine, team_pool, make_request):
        """Test at most two assignments by default."""
        request = make_request(required_reviewers=["charlie"])

        assignments = engine.assign_reviewers(request, team_pool)

        assert [a.reviewer_id for a in assignments] == ["charlie", "alice"]
        assert all(a.pull_request_id == "pr-1" for a in assignments)
        assert all(a.assigned_at == NOW for a in assignments)

    def test_max_assignments_capped_by_suggestions(self, engine, team_pool, make_request):
        """Test asking for more assignments than suggestions."""
        assignments = engine.assign_reviewers(make_request(), team_pool, max_assignments=10)

        assert len(assignments) == 2

    @pytest.mark.parametrize(
        "priority,hours",
        [
            (Priority.CRITICAL, 2),
            (Priority.HIGH, 8),
            (Priority.MEDIUM, 24),
            (Priority.LOW, 72),
        ],
    )
    def test_deadline_by_priority(self, engine, roomy_pool, make_request, priority, hours):
        """Test deadlines follow the priority buffer."""
        assignments = engine.assign_reviewers(make_request(priority=priority), roomy_pool)

        assert assignments
        for assignment in assignments:
            assert assignment.deadline - assignment.assigned_at == timedelta(hours=hours)
            assert assignment.priority == priority

    def test_critical_within_two_hours_low_at_least_72(self, engine, roomy_pool, make_request):
        """Test critical requests are due quickly and low ones are not rushed."""
        critical = engine.assign_reviewers(make_request(priority="critical"), roomy_pool)[0]
        low = engine.assign_reviewers(make_request(priority="low"), roomy_pool)[0]

        assert critical.deadline - critical.assigned_at <= timedelta(hours=2)
        assert low.deadline - low.assigned_at >= timedelta(hours=72)

    def test_listener_notified(self, engine, team_pool, make_request):
        """Test the listener receives created assignments."""
        listener = RecordingListener()
        engine.listener = listener

        assignments = engine.assign_reviewers(make_request(), team_pool)

        assert listener.created == [("pr-1", assignments)]

    def test_no_notification_without_assignments(self, engine, make_request):
        """Test no callback when nothing was assigned."""
        listener = RecordingListener()
        engine.listener = listener

        assert engine.assign_reviewers(make_request(), []) == []
        assert listener.created == []


class TestUpdateConfig:
    """Tests for config updates on a live engine."""

    def test_partial_update(self, engine):
        """Test a partial update only changes the given keys."""
        config = engine.update_config({"weights": {"expertise": 0.5}})

        assert engine.config is config
        assert config.weights.expertise == 0.5
        assert config.weights.workload == 0.3
        assert engine.expertise.config is config
        assert engine.workload.config is config

    def test_invalid_update_keeps_previous(self, engine):
        """Test an invalid update raises and leaves the config untouched."""
        from reviewer_engine.assignment import ConfigInvalidError

        previous = engine.config
        with pytest.raises(ConfigInvalidError):
            engine.update_config({"constraints": {"max_reviewers_per_pr": 0}})

        assert engine.config is previous

    def test_update_applies_to_next_cycle(self, engine, team_pool, make_request):
        """Test updated constraints apply to subsequent calls."""
        engine.update_config({"constraints": {"max_reviewers_per_pr": 1}})

        assert len(engine.suggest_reviewers(make_request(), team_pool)) == 1

    def test_running_cycle_keeps_its_snapshot(self, engine, make_person, make_request):
        """Test a config swap during a cycle does not affect that cycle."""
        class ShrinkingListener(RecordingListener):
            def expertise_updated(self, person, expertise):
                super().expertise_updated(person, expertise)
                engine.update_config({"constraints": {"max_reviewers_per_pr": 1}})

        engine.listener = ShrinkingListener()
        pool = [
            make_person("p1", "team1", [("TypeScript", "expert", 0.9)]),
            make_person("p2", "team2", [("TypeScript", "expert", 0.9)]),
        ]
        evidence = [{"person_id": "p1", "technology": "TypeScript", "occurrences": 5, "quality": 0.8}]

        during = engine.suggest_reviewers(make_request(), pool, evidence)
        after = engine.suggest_reviewers(make_request(), pool)

        assert len(during) == 2
        assert len(after) == 1
