"""Single entry point tying search, explanation and violation checks together."""
from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Sequence

from .config import DEFAULT_OPTIONS, DEFAULT_WEIGHTS, OptimizationOptions, OptimizationWeights
from .explain import assignment_total, explain, moved_guests
from .models import Constraint, Guest, OptimizationResult, Table, freeze_mapping
from .search import AssignmentSearch
from .violations import detect_violations, rank_violations

logger = logging.getLogger(__name__)


def optimize_seating(
    guests: Sequence[Guest],
    tables: Sequence[Table],
    constraints: Sequence[Constraint] = (),
    current_assignment: Optional[Mapping[str, Optional[str]]] = None,
    weights: Optional[OptimizationWeights] = None,
    options: Optional[OptimizationOptions] = None,
) -> OptimizationResult:
    """Propose a seating for a snapshot of guests, tables and constraints.

    ``current_assignment`` maps guest id to table id and defaults to each
    guest's ``table_id``. Nothing in the inputs is modified and no state is
    kept between calls, so concurrent calls on separate snapshots are safe.
    Problems never raise: they are reported in ``violations`` and in the
    score reasons of the result.
    """
    weights = weights or DEFAULT_WEIGHTS
    options = options or DEFAULT_OPTIONS
    guests = list(guests)
    tables = list(tables)
    constraints = list(constraints)

    current: Dict[str, Optional[str]] = {}
    for guest in guests:
        if current_assignment is None:
            current[guest.id] = guest.table_id
        else:
            current[guest.id] = current_assignment.get(guest.id)

    eligible = [g for g in guests if not g.declined]
    search = AssignmentSearch(weights, options)
    search.build(eligible, tables, constraints, current)
    outcome = search.solve()

    proposed: Dict[str, Optional[str]] = {g.id: outcome.assignment.get(g.id) for g in guests}
    explanation = explain(current, proposed, tables, eligible, constraints, weights)
    violations = detect_violations(proposed, tables, constraints, eligible, weights)
    violations = rank_violations([*violations, *outcome.notes])

    # declined guests lose their seat, which counts as a move
    moved = tuple(moved_guests(current, proposed, [g.id for g in guests]))

    eligible_current = {g.id: current[g.id] for g in eligible}
    previous_score = assignment_total(eligible_current, eligible, constraints, weights)
    total_score = sum(s.total_score for s in explanation.guest_scores.values())

    logger.info(
        "engine.optimize guests=%d tables=%d moved=%d violations=%d score=%.2f previous=%.2f",
        len(guests), len(tables), len(moved), len(violations),
        total_score, previous_score,
    )
    return OptimizationResult(
        current_assignments=freeze_mapping(current),
        proposed_assignments=freeze_mapping(proposed),
        moved_guest_ids=moved,
        guest_scores=freeze_mapping(explanation.guest_scores),
        table_scores=explanation.table_scores,
        violations=tuple(violations),
        total_score=total_score,
        previous_score=previous_score,
    )
