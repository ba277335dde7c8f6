"""Violation detection for a finished or candidate assignment."""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .config import DEFAULT_WEIGHTS, OptimizationWeights
from .models import (
    KEEP_APART,
    SEVERITIES,
    Constraint,
    Guest,
    OptimizationViolation,
    Table,
    restrict_constraints,
)
from .scoring import RelationshipIndex, compatibility_score, conflicting_pairs


_SEVERITY_BY_PRIORITY = {
    "required": "critical",
    "preferred": "warning",
    "optional": "info",
}


def rank_violations(violations: Iterable[OptimizationViolation]) -> List[OptimizationViolation]:
    """Stable sort: critical, then warning, then info."""
    order = {s: i for i, s in enumerate(SEVERITIES)}
    return sorted(violations, key=lambda v: order.get(v.severity, len(order)))


def occupants_by_table(assignment: Mapping[str, Optional[str]]) -> Dict[str, List[str]]:
    """Group guest ids by table id, keeping assignment order."""
    seated: Dict[str, List[str]] = {}
    for guest_id, table_id in assignment.items():
        if table_id is not None:
            seated.setdefault(table_id, []).append(guest_id)
    return seated


def detect_violations(
    assignment: Mapping[str, Optional[str]],
    tables: Sequence[Table],
    constraints: Sequence[Constraint],
    guests: Sequence[Guest] = (),
    weights: Optional[OptimizationWeights] = None,
) -> List[OptimizationViolation]:
    """Evaluate an assignment against capacity, constraints and compatibility.

    Pure and deterministic: violations are generated in table and constraint
    input order and then ranked by severity. When ``guests`` is given,
    constraint members that name no known guest are ignored; otherwise the
    assignment keys are the known guests.
    """
    weights = weights or DEFAULT_WEIGHTS
    by_id: Dict[str, Guest] = {g.id: g for g in guests}
    known = list(by_id) if guests else list(assignment)
    active = restrict_constraints(constraints, known)
    seated = occupants_by_table(assignment)
    table_names = {t.id: t.display_name for t in tables}
    index = RelationshipIndex(guests)

    def name(guest_id: str) -> str:
        guest = by_id.get(guest_id)
        return guest.display_name if guest else guest_id

    def guest_obj(guest_id: str) -> Guest:
        return by_id.get(guest_id) or Guest(id=guest_id)

    violations: List[OptimizationViolation] = []

    # Capacity
    for table in tables:
        count = len(seated.get(table.id, []))
        if count > max(table.capacity, 0):
            violations.append(OptimizationViolation(
                severity="critical",
                message=f"Table {table.display_name} is over capacity ({count}/{table.capacity})",
                guest_ids=tuple(seated.get(table.id, [])),
                table_id=table.id,
            ))

    # Constraints
    for c in active:
        severity = _SEVERITY_BY_PRIORITY[c.priority]
        placement = {gid: assignment.get(gid) for gid in c.guest_ids}
        if c.type == KEEP_APART:
            together: Dict[str, List[str]] = {}
            for gid, tid in placement.items():
                if tid is not None:
                    together.setdefault(tid, []).append(gid)
            for tid, members in together.items():
                if len(members) < 2:
                    continue
                names = ", ".join(name(g) for g in members)
                violations.append(OptimizationViolation(
                    severity=severity,
                    message=f"Guests {names} should be kept apart but share table "
                            f"{table_names.get(tid, tid)} ({c.priority})",
                    guest_ids=tuple(members),
                    table_id=tid,
                    constraint_id=c.id,
                ))
        else:
            spots = list(dict.fromkeys(placement.values()))
            if len(spots) > 1:
                names = ", ".join(name(g) for g in c.guest_ids)
                unassigned = sum(1 for t in placement.values() if t is None)
                detail = f"{len(spots)} placements"
                if unassigned:
                    detail += f", {unassigned} unassigned"
                violations.append(OptimizationViolation(
                    severity=severity,
                    message=f"Guests {names} should sit together but are split ({detail}, {c.priority})",
                    guest_ids=tuple(c.guest_ids),
                    constraint_id=c.id,
                ))

    # Avoid relationships seated together
    if guests:
        for table in tables:
            members = [guest_obj(g) for g in seated.get(table.id, [])]
            for a, b in conflicting_pairs(members, (), index):
                violations.append(OptimizationViolation(
                    severity="warning",
                    message=f'"{a.display_name}" and "{b.display_name}" should avoid each other '
                            f"but are at table {table.display_name}",
                    guest_ids=(a.id, b.id),
                    table_id=table.id,
                ))

    # Compatibility
    for table in tables:
        members = [guest_obj(g) for g in seated.get(table.id, [])]
        if not members:
            continue
        score = compatibility_score(members, active, weights, index)
        if score < weights.low_compatibility_threshold:
            violations.append(OptimizationViolation(
                severity="warning",
                message=f"Table {table.display_name} has low compatibility ({score:.0f}/100)",
                guest_ids=tuple(m.id for m in members),
                table_id=table.id,
            ))

    return rank_violations(violations)
