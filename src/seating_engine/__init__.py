"""SeatingEngine package."""
from .models import (
    AssignmentScore,
    Constraint,
    Guest,
    OptimizationResult,
    OptimizationViolation,
    Relationship,
    ScoreReason,
    Table,
    TableOptimizationScore,
)
from .config import OptimizationOptions, OptimizationWeights
from .scoring import RelationshipIndex, score_guest_at_table
from .violations import detect_violations
from .search import AssignmentSearch
from .explain import explain
from .engine import optimize_seating

__all__ = [
    "AssignmentScore",
    "Constraint",
    "Guest",
    "OptimizationResult",
    "OptimizationViolation",
    "Relationship",
    "ScoreReason",
    "Table",
    "TableOptimizationScore",
    "OptimizationOptions",
    "OptimizationWeights",
    "RelationshipIndex",
    "score_guest_at_table",
    "detect_violations",
    "AssignmentSearch",
    "explain",
    "optimize_seating",
]
