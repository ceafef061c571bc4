"""
Reviewer assignment module.

Combines expertise, workload and collaboration signals to determine:
- Who should review a change request
- How long the review will take and when it is due
- How well past assignments worked out
"""

from reviewer_engine.assignment.config import AlgorithmConfig, Constraints, Preferences, Tuning, Weights
from reviewer_engine.assignment.effectiveness import (
    EffectivenessReport,
    analyze_assignment_effectiveness,
)
from reviewer_engine.assignment.engine import AssignmentEngine, AssignmentListener
from reviewer_engine.assignment.errors import (
    AssignmentError,
    ConfigInvalidError,
    EvidenceMalformedError,
)
from reviewer_engine.assignment.expertise import ExpertiseMatch, ExpertiseModel, parse_evidence
from reviewer_engine.assignment.workload import WorkloadModel

__all__ = [
    "AssignmentEngine",
    "AssignmentListener",
    "ExpertiseModel",
    "ExpertiseMatch",
    "parse_evidence",
    "WorkloadModel",
    "AlgorithmConfig",
    "Weights",
    "Constraints",
    "Preferences",
    "Tuning",
    "EffectivenessReport",
    "analyze_assignment_effectiveness",
    "AssignmentError",
    "ConfigInvalidError",
    "EvidenceMalformedError",
]
