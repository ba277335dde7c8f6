"""Before/after diff and per-guest, per-table score breakdowns."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .config import DEFAULT_WEIGHTS, OptimizationWeights
from .models import (
    AssignmentScore,
    Constraint,
    Guest,
    Table,
    TableOptimizationScore,
    restrict_constraints,
)
from .scoring import (
    RelationshipIndex,
    compatibility_score,
    conflicting_pairs,
    grade_compatibility,
    score_guest_at_table,
)


@dataclass(frozen=True)
class Explanation:
    moved_guest_ids: Tuple[str, ...]
    guest_scores: Dict[str, AssignmentScore]
    table_scores: Tuple[TableOptimizationScore, ...]


def moved_guests(
    before: Mapping[str, Optional[str]],
    after: Mapping[str, Optional[str]],
    guest_ids: Optional[Sequence[str]] = None,
) -> List[str]:
    """Guests whose table differs between ``before`` and ``after``.

    Moves to and from unassigned count. Order follows ``guest_ids`` when
    given, else the keys of ``after`` then any keys only in ``before``.
    """
    if guest_ids is None:
        guest_ids = list(dict.fromkeys([*after, *before]))
    return [gid for gid in guest_ids if before.get(gid) != after.get(gid)]


def _tablemates(assignment: Mapping[str, Optional[str]], guests: Sequence[Guest]) -> Dict[str, List[Guest]]:
    seated: Dict[str, List[Guest]] = {}
    for guest in guests:
        table_id = assignment.get(guest.id)
        if table_id is not None:
            seated.setdefault(table_id, []).append(guest)
    return seated


def score_assignment(
    assignment: Mapping[str, Optional[str]],
    guests: Sequence[Guest],
    constraints: Sequence[Constraint] = (),
    weights: Optional[OptimizationWeights] = None,
) -> Dict[str, AssignmentScore]:
    """Score every guest against its tablemates in ``assignment``.

    Unassigned guests get an empty zero score.
    """
    weights = weights or DEFAULT_WEIGHTS
    active = restrict_constraints(constraints, [g.id for g in guests])
    index = RelationshipIndex(guests)
    seated = _tablemates(assignment, guests)
    scores: Dict[str, AssignmentScore] = {}
    for guest in guests:
        table_id = assignment.get(guest.id)
        if table_id is None:
            scores[guest.id] = AssignmentScore(guest_id=guest.id, table_id=None, total_score=0.0)
            continue
        scores[guest.id] = score_guest_at_table(
            guest, seated[table_id], active, weights, index, table_id
        )
    return scores


def assignment_total(
    assignment: Mapping[str, Optional[str]],
    guests: Sequence[Guest],
    constraints: Sequence[Constraint] = (),
    weights: Optional[OptimizationWeights] = None,
) -> float:
    """Sum of all guest scores for an assignment."""
    return sum(s.total_score for s in score_assignment(assignment, guests, constraints, weights).values())


def score_tables(
    assignment: Mapping[str, Optional[str]],
    tables: Sequence[Table],
    guests: Sequence[Guest],
    constraints: Sequence[Constraint] = (),
    weights: Optional[OptimizationWeights] = None,
) -> List[TableOptimizationScore]:
    """Compatibility, counts and issues for every table, in table order."""
    weights = weights or DEFAULT_WEIGHTS
    active = restrict_constraints(constraints, [g.id for g in guests])
    index = RelationshipIndex(guests)
    seated = _tablemates(assignment, guests)
    out: List[TableOptimizationScore] = []
    for table in tables:
        members = seated.get(table.id, [])
        score = compatibility_score(members, active, weights, index)
        issues: List[str] = []
        if len(members) > max(table.capacity, 0):
            issues.append(f"over capacity ({len(members)}/{table.capacity})")
        for a, b in conflicting_pairs(members, active, index):
            issues.append(f"conflicting guests seated together: {a.display_name} & {b.display_name}")
        if members and score < weights.low_compatibility_threshold:
            issues.append("low compatibility")
        out.append(TableOptimizationScore(
            table_id=table.id,
            table_name=table.display_name,
            compatibility_score=score,
            guest_count=len(members),
            capacity=table.capacity,
            issues=tuple(issues),
            guest_ids=tuple(m.id for m in members),
            grade=grade_compatibility(score),
        ))
    return out


def explain(
    before: Mapping[str, Optional[str]],
    after: Mapping[str, Optional[str]],
    tables: Sequence[Table],
    guests: Sequence[Guest],
    constraints: Sequence[Constraint] = (),
    weights: Optional[OptimizationWeights] = None,
) -> Explanation:
    """Diff two assignments and explain the ``after`` one.

    Scores always describe the final occupants of each table, never an
    intermediate search state.
    """
    ids = [g.id for g in guests] if guests else None
    return Explanation(
        moved_guest_ids=tuple(moved_guests(before, after, ids)),
        guest_scores=score_assignment(after, guests, constraints, weights),
        table_scores=tuple(score_tables(after, tables, guests, constraints, weights)),
    )
