"""
Relationship aware score model.

A guest's score at a table is the sum of:
    relationship points toward every tablemate (symmetric lookup),
    a diminishing group bonus for co-group tablemates,
    a capped bonus for interests shared with tablemates,
    a keep-together bonus once all other members share the table,
    a keep-apart penalty per constraint with another member present.
Every non-zero contribution is recorded as a ScoreReason and the total is
the sum of those reasons. Weights are documented in ``config``.

Table compatibility is the mean pairwise score among occupants mapped onto
0..100 around a neutral 50 and graded A to F.
"""
from __future__ import annotations

from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import DEFAULT_WEIGHTS, OptimizationWeights
from .models import (
    KEEP_APART,
    KEEP_TOGETHER,
    AssignmentScore,
    Constraint,
    Guest,
    Relationship,
    ScoreReason,
)


# ----------------------------- relationships -----------------------------
class RelationshipIndex:
    """Adjacency map of relationship records keyed by guest id.

    Records are stored as given. ``between`` is the only query and is
    symmetric: asking about (a, b) sees a record stored on b about a when a
    holds none about b.
    """

    def __init__(self, guests: Iterable[Guest] = ()) -> None:
        self._edges: Dict[str, Dict[str, Relationship]] = {}
        for guest in guests:
            self.add(guest)

    def add(self, guest: Guest) -> None:
        edges = self._edges.setdefault(guest.id, {})
        for rel in guest.relationships:
            # first record about a guest wins
            edges.setdefault(rel.guest_id, rel)

    def between(self, a: str, b: str) -> Optional[Relationship]:
        rel = self._edges.get(a, {}).get(b)
        if rel is not None:
            return rel
        return self._edges.get(b, {}).get(a)

    def strength_between(self, a: str, b: str) -> int:
        rel = self.between(a, b)
        return rel.strength if rel is not None else 0


def _index_for(guest: Guest, occupants: Sequence[Guest], relationships: Optional[RelationshipIndex]) -> RelationshipIndex:
    if relationships is not None:
        return relationships
    return RelationshipIndex([guest, *occupants])


def _names(guests: Iterable[Guest]) -> str:
    return ", ".join(f'"{g.display_name}"' for g in guests)


# ----------------------------- guest score -----------------------------
def score_guest_at_table(
    guest: Guest,
    table_occupants: Sequence[Guest],
    constraints: Sequence[Constraint] = (),
    weights: Optional[OptimizationWeights] = None,
    relationships: Optional[RelationshipIndex] = None,
    table_id: Optional[str] = None,
) -> AssignmentScore:
    """Score ``guest`` against the guests already seated at a candidate table.

    ``table_occupants`` may include ``guest`` itself; it is skipped. The
    result does not depend on occupant order except for the order in which
    relationship reasons are listed.
    """
    weights = weights or DEFAULT_WEIGHTS
    occupants = [o for o in table_occupants if o.id != guest.id]
    index = _index_for(guest, occupants, relationships)
    reasons: List[ScoreReason] = []

    # Relationships
    for other in occupants:
        rel = index.between(guest.id, other.id)
        if rel is None:
            continue
        points = weights.relationship_value(rel.type, rel.strength)
        if points == 0:
            continue
        label = rel.type.capitalize()
        reasons.append(ScoreReason(
            type="relationship",
            description=f'{label} "{other.display_name}" at same table (strength {rel.strength})',
            points=points,
            involved_guest_ids=(other.id,),
        ))

    # Group cohesion, diminishing returns
    if guest.group:
        same_group = [o for o in occupants if o.group == guest.group]
        if same_group:
            bonus = weights.group_first_bonus + weights.group_additional_bonus * (len(same_group) - 1)
            bonus = min(bonus, weights.group_bonus_cap)
            reasons.append(ScoreReason(
                type="group",
                description=f'{len(same_group)} member(s) of "{guest.group}" at same table',
                points=bonus,
                involved_guest_ids=tuple(o.id for o in same_group),
            ))

    # Shared interests, counted per tablemate
    if guest.interests:
        mine = set(guest.interests)
        shared = 0
        involved: List[str] = []
        for other in occupants:
            matches = len(mine.intersection(other.interests))
            if matches:
                shared += matches
                involved.append(other.id)
        if shared:
            bonus = min(shared * weights.interest_bonus, weights.interest_bonus_cap)
            reasons.append(ScoreReason(
                type="interest",
                description=f"{shared} shared interest(s) with tablemates",
                points=bonus,
                involved_guest_ids=tuple(involved),
            ))

    # Constraints
    present = {o.id: o for o in occupants}
    for constraint in constraints:
        if not constraint.supported or guest.id not in constraint.guest_ids:
            continue
        others = [gid for gid in constraint.guest_ids if gid != guest.id]
        here = [present[gid] for gid in others if gid in present]
        if constraint.type == KEEP_APART and here:
            penalty = weights.keep_apart_penalty.get(constraint.priority, 0.0)
            if penalty:
                reasons.append(ScoreReason(
                    type="penalty",
                    description=f"Keep apart ({constraint.priority}) broken by {_names(here)} at same table",
                    points=penalty,
                    involved_guest_ids=tuple(o.id for o in here),
                ))
        elif constraint.type == KEEP_TOGETHER and here and len(here) == len(others):
            bonus = weights.keep_together_bonus.get(constraint.priority, 0.0)
            if bonus:
                reasons.append(ScoreReason(
                    type="constraint",
                    description=f"Kept together ({constraint.priority}) with {_names(here)}",
                    points=bonus,
                    involved_guest_ids=tuple(o.id for o in here),
                ))

    total = sum(r.points for r in reasons)
    return AssignmentScore(guest_id=guest.id, table_id=table_id, total_score=total, reasons=tuple(reasons))


# ----------------------------- table score -----------------------------
def pair_score(
    a: Guest,
    b: Guest,
    constraints: Sequence[Constraint] = (),
    weights: Optional[OptimizationWeights] = None,
    relationships: Optional[RelationshipIndex] = None,
) -> float:
    """Mutual score of two tablemates.

    Mean of both relationship directions plus the penalty of every keep-apart
    constraint naming both guests.
    """
    weights = weights or DEFAULT_WEIGHTS
    index = relationships if relationships is not None else RelationshipIndex([a, b])
    total = 0.0
    for x, y in ((a, b), (b, a)):
        rel = index.between(x.id, y.id)
        if rel is not None:
            total += weights.relationship_value(rel.type, rel.strength) / 2
    for constraint in constraints:
        if (
            constraint.supported
            and constraint.type == KEEP_APART
            and a.id in constraint.guest_ids
            and b.id in constraint.guest_ids
        ):
            total += weights.keep_apart_penalty.get(constraint.priority, 0.0)
    return total


def compatibility_score(
    occupants: Sequence[Guest],
    constraints: Sequence[Constraint] = (),
    weights: Optional[OptimizationWeights] = None,
    relationships: Optional[RelationshipIndex] = None,
) -> float:
    """Normalized 0..100 compatibility of a set of tablemates."""
    weights = weights or DEFAULT_WEIGHTS
    index = relationships if relationships is not None else RelationshipIndex(occupants)
    total = 0.0
    pairs = 0
    for a, b in combinations(occupants, 2):
        total += pair_score(a, b, constraints, weights, index)
        pairs += 1
    raw = 50.0 + total / (pairs or 1) * weights.compatibility_scale
    return max(0.0, min(100.0, raw))


def grade_compatibility(score: float) -> str:
    """Assign A to F based on compatibility thresholds."""
    if score >= 80:
        return "A"
    if score >= 65:
        return "B"
    if score >= 50:
        return "C"
    if score >= 40:
        return "D"
    return "F"


def conflicting_pairs(
    occupants: Sequence[Guest],
    constraints: Sequence[Constraint] = (),
    relationships: Optional[RelationshipIndex] = None,
) -> List[Tuple[Guest, Guest]]:
    """Pairs of tablemates that avoid each other or must be kept apart."""
    index = relationships if relationships is not None else RelationshipIndex(occupants)
    apart = [c for c in constraints if c.supported and c.type == KEEP_APART]
    out = []
    for a, b in combinations(occupants, 2):
        rel = index.between(a.id, b.id)
        avoid = rel is not None and rel.type == "avoid"
        if avoid or any(a.id in c.guest_ids and b.id in c.guest_ids for c in apart):
            out.append((a, b))
    return out


# ----------------------------- tie-break -----------------------------
def table_sort_key(score: float, occupants: int, capacity: int, table_id: str) -> Tuple[float, float, str]:
    """Sort key for candidate tables; the smallest key is the best table.

    Higher score first, then lower occupancy ratio, then smaller table id.
    """
    ratio = occupants / capacity if capacity > 0 else float("inf")
    return (-score, ratio, table_id)
