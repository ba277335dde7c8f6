"""
Greedy construction plus pairwise swap local search.

Guests tied by required keep-together constraints form a unit that is
placed and moved as a whole. Construction keeps every legal current seat and
places the rest most-connected first. Local search then applies any swap of
two units, or move of a unit into free seats, that seats more guests or
strictly raises the summed guest score without seating two members of a
required keep-apart constraint together.
"""
from __future__ import annotations

import logging
import time
from bisect import insort
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

import networkx as nx

from .config import DEFAULT_OPTIONS, DEFAULT_WEIGHTS, OptimizationOptions, OptimizationWeights
from .models import (
    KEEP_APART,
    KEEP_TOGETHER,
    Constraint,
    Guest,
    OptimizationViolation,
    Table,
    restrict_constraints,
)
from .scoring import RelationshipIndex, score_guest_at_table, table_sort_key

logger = logging.getLogger(__name__)

Unit = Tuple[str, ...]

# Score gains below this are float noise, not improvements.
_EPSILON = 1e-9


@dataclass
class SearchOutcome:
    assignment: Dict[str, Optional[str]]
    notes: List[OptimizationViolation] = field(default_factory=list)
    iterations: int = 0
    evaluations: int = 0
    exhausted: bool = False


class AssignmentSearch:
    """Seat guests at tables, first greedily, then by local swaps."""

    def __init__(
        self,
        weights: Optional[OptimizationWeights] = None,
        options: Optional[OptimizationOptions] = None,
    ) -> None:
        self.weights = weights or DEFAULT_WEIGHTS
        self.options = options or DEFAULT_OPTIONS
        # Inputs
        self.guests: List[Guest] = []
        self.tables: List[Table] = []
        self.constraints: List[Constraint] = []
        self.current: Dict[str, Optional[str]] = {}
        # Lookups
        self.by_id: Dict[str, Guest] = {}
        self.order: Dict[str, int] = {}
        self.capacity: Dict[str, int] = {}
        self.candidates: List[str] = []
        self._candidate_set: Set[str] = set()
        self.relationships = RelationshipIndex()
        self.strengths: Dict[str, Dict[str, int]] = {}
        self.constraints_of: Dict[str, List[Constraint]] = {}
        self.required_apart: Dict[str, Set[str]] = {}
        self.pinned: Set[str] = set()
        # Search state
        self.assignment: Dict[str, Optional[str]] = {}
        self.seated: Dict[str, List[str]] = {}
        self._scores: Dict[str, float] = {}
        self.iterations = 0
        self.evaluations = 0

    def build(
        self,
        guests: Sequence[Guest],
        tables: Sequence[Table],
        constraints: Sequence[Constraint],
        current_assignment: Optional[Mapping[str, Optional[str]]] = None,
    ) -> None:
        """Store a snapshot and precompute lookups.

        Declined guests are left out. ``current_assignment`` defaults to each
        guest's own ``table_id``.
        """
        self.guests = [g for g in guests if not g.declined]
        self.tables = list(tables)
        self.by_id = {g.id: g for g in self.guests}
        self.order = {g.id: i for i, g in enumerate(self.guests)}
        self.constraints = restrict_constraints(constraints, self.by_id)
        if current_assignment is None:
            self.current = {g.id: g.table_id for g in self.guests}
        else:
            self.current = {g.id: current_assignment.get(g.id) for g in self.guests}

        self.capacity = {t.id: t.capacity for t in self.tables}
        selected_tables = self.options.selected_table_ids
        self.candidates = [
            t.id for t in self.tables
            if t.capacity > 0 and (selected_tables is None or t.id in selected_tables)
        ]
        self._candidate_set = set(self.candidates)

        self.relationships = RelationshipIndex(self.guests)
        self.strengths = {g.id: {} for g in self.guests}
        for g in self.guests:
            for rel in g.relationships:
                if rel.guest_id not in self.by_id or rel.guest_id == g.id:
                    continue
                s = self.relationships.strength_between(g.id, rel.guest_id)
                self.strengths[g.id][rel.guest_id] = s
                self.strengths[rel.guest_id][g.id] = s

        self.constraints_of = {g.id: [] for g in self.guests}
        self.required_apart = {g.id: set() for g in self.guests}
        for c in self.constraints:
            for gid in c.guest_ids:
                self.constraints_of[gid].append(c)
                if c.type == KEEP_APART and c.priority == "required":
                    self.required_apart[gid].update(o for o in c.guest_ids if o != gid)

        self.pinned = set()
        selected_guests = self.options.selected_guest_ids
        if selected_guests is not None:
            self.pinned.update(g.id for g in self.guests if g.id not in selected_guests)
        if selected_tables is not None:
            self.pinned.update(
                gid for gid, tid in self.current.items()
                if tid is not None and tid not in selected_tables
            )

    # ----------------------------- units -----------------------------
    def _build_units(self) -> Tuple[List[Unit], Dict[str, str]]:
        """Union guests chained by required keep-together constraints.

        A member that is also required to be kept apart from an earlier
        member of its unit cannot be seated legally and is excluded, with
        the reason keyed by guest id.
        """
        graph = nx.Graph()
        graph.add_nodes_from(g.id for g in self.guests)
        for c in self.constraints:
            if c.type == KEEP_TOGETHER and c.priority == "required":
                first = c.guest_ids[0]
                graph.add_edges_from((first, other) for other in c.guest_ids[1:])

        excluded: Dict[str, str] = {}
        for component in nx.connected_components(graph):
            if len(component) < 2:
                continue
            kept: List[str] = []
            for gid in sorted(component, key=lambda g: (g not in self.pinned, self.order[g])):
                clash = [k for k in kept if k in self.required_apart[gid]]
                if clash and gid not in self.pinned:
                    names = ", ".join(self.by_id[k].display_name for k in clash)
                    excluded[gid] = (
                        f"Guest {self.by_id[gid].display_name} is required both to sit with and "
                        f"apart from {names}; left unassigned"
                    )
                else:
                    kept.append(gid)
        graph.remove_nodes_from(excluded)

        units = [
            tuple(sorted(component, key=self.order.__getitem__))
            for component in nx.connected_components(graph)
        ]
        units.sort(key=lambda u: self.order[u[0]])
        return units, excluded

    # ----------------------------- state -----------------------------
    def _count(self, table_id: str) -> int:
        return len(self.seated.get(table_id, ()))

    def _move(self, unit: Unit, table_id: Optional[str]) -> None:
        for gid in unit:
            old = self.assignment.get(gid)
            if old is not None:
                self.seated[old].remove(gid)
                self._forget(old)
            self.assignment[gid] = table_id
            self._scores.pop(gid, None)
            if table_id is not None:
                insort(self.seated.setdefault(table_id, []), gid, key=self.order.__getitem__)
                self._forget(table_id)

    def _forget(self, table_id: str) -> None:
        for gid in self.seated.get(table_id, ()):
            self._scores.pop(gid, None)

    def _guest_score(self, guest_id: str) -> float:
        cached = self._scores.get(guest_id)
        if cached is not None:
            return cached
        table_id = self.assignment.get(guest_id)
        if table_id is None:
            score = 0.0
        else:
            occupants = [self.by_id[o] for o in self.seated[table_id] if o != guest_id]
            score = score_guest_at_table(
                self.by_id[guest_id],
                occupants,
                self.constraints_of[guest_id],
                self.weights,
                self.relationships,
                table_id,
            ).total_score
        self._scores[guest_id] = score
        return score

    def _fits(self, unit: Unit, table_id: str) -> bool:
        """Capacity check for a unit that is not seated at ``table_id``."""
        return self._count(table_id) + len(unit) <= self.capacity.get(table_id, 0)

    def _clashes(self, unit: Unit, table_id: Optional[str]) -> bool:
        """True when a unit member would share ``table_id`` with a required keep-apart partner."""
        if table_id is None:
            return False
        present = set(self.seated.get(table_id, ())) - set(unit)
        return any(self.required_apart[gid] & present for gid in unit)

    def _legal(self, unit: Unit, table_id: str) -> bool:
        return (
            table_id in self.capacity
            and table_id in self._candidate_set
            and self._fits(unit, table_id)
            and not self._clashes(unit, table_id)
        )

    def _unit_score_at(self, unit: Unit, table_id: str) -> float:
        self._move(unit, table_id)
        score = sum(self._guest_score(gid) for gid in unit)
        self._move(unit, None)
        return score

    # ----------------------------- construction -----------------------------
    def _construct(self, units: List[Unit]) -> List[Unit]:
        """Seat pinned and legally seated units, then place the queue greedily.

        Returns the movable units in stable order.
        """
        movable: List[Unit] = []
        for unit in units:
            if any(gid in self.pinned for gid in unit):
                for gid in unit:
                    self._move((gid,), self.current.get(gid))
            else:
                movable.append(unit)

        queue: List[Unit] = []
        for unit in movable:
            spots = {self.current.get(gid) for gid in unit}
            table_id = next(iter(spots))
            if len(spots) == 1 and table_id is not None and self._legal(unit, table_id):
                self._move(unit, table_id)
            else:
                queue.append(unit)
        kept = len(movable) - len(queue)

        # Affinity of each queued unit to guests already seated.
        unit_of = {gid: unit for unit in queue for gid in unit}
        affinity: Dict[Unit, int] = {unit: 0 for unit in queue}

        def decide(guest_ids: Sequence[str]) -> None:
            for gid in guest_ids:
                for other, strength in self.strengths.get(gid, {}).items():
                    unit = unit_of.get(other)
                    if unit is not None and unit in affinity:
                        affinity[unit] += strength

        decide([gid for gid, tid in self.assignment.items() if tid is not None])

        placed = 0
        while affinity:
            unit = min(affinity, key=lambda u: (-affinity[u], min(u)))
            del affinity[unit]
            best: Optional[Tuple[Tuple[float, float, str], str]] = None
            for table_id in self.candidates:
                if not self._legal(unit, table_id):
                    continue
                score = self._unit_score_at(unit, table_id)
                key = table_sort_key(score, self._count(table_id), self.capacity[table_id], table_id)
                if best is None or key < best[0]:
                    best = (key, table_id)
            if best is None:
                continue
            self._move(unit, best[1])
            placed += 1
            decide(unit)

        logger.debug(
            "search.construction kept=%d placed=%d unplaced=%d",
            kept, placed, len(queue) - placed,
        )
        return movable

    # ----------------------------- local search -----------------------------
    def _candidate_moves(self, units: List[Unit]) -> Iterator[Tuple[Unit, Optional[Unit], Optional[str]]]:
        """Yield (unit, other unit, None) swaps and (unit, None, table) moves in stable order."""
        for i, first in enumerate(units):
            for second in units[i + 1:]:
                yield first, second, None
            for table_id in self.candidates:
                yield first, None, table_id

    def _objective(self, guest_ids: Sequence[str]) -> float:
        return sum(self._guest_score(gid) for gid in guest_ids)

    def _affected(self, units: Sequence[Unit], tables: Sequence[Optional[str]]) -> List[str]:
        ids = {gid for unit in units for gid in unit}
        for table_id in tables:
            if table_id is not None:
                ids.update(self.seated.get(table_id, ()))
        return sorted(ids, key=self.order.__getitem__)

    def _try_swap(self, first: Unit, second: Unit) -> bool:
        t1 = self.assignment[first[0]]
        t2 = self.assignment[second[0]]
        if t1 == t2:
            return False
        for dest, incoming, outgoing in ((t2, first, second), (t1, second, first)):
            if dest is None:
                continue
            if dest not in self._candidate_set:
                return False
            if self._count(dest) - len(outgoing) + len(incoming) > self.capacity[dest]:
                return False
        seated_gain = 0
        seated_gain += len(first) if t2 is not None else 0
        seated_gain += len(second) if t1 is not None else 0
        seated_gain -= len(first) if t1 is not None else 0
        seated_gain -= len(second) if t2 is not None else 0
        if seated_gain < 0:
            return False

        affected = self._affected((first, second), (t1, t2))
        saved = {gid: self._guest_score(gid) for gid in affected}
        before = sum(saved.values())
        self._move(first, None)
        self._move(second, t1)
        self._move(first, t2)
        legal = not self._clashes(first, t2) and not self._clashes(second, t1)
        if legal and (seated_gain > 0 or self._objective(affected) - before > _EPSILON):
            return True
        self._move(second, None)
        self._move(first, t1)
        self._move(second, t2)
        self._scores.update(saved)
        return False

    def _try_relocate(self, unit: Unit, table_id: str) -> bool:
        origin = self.assignment[unit[0]]
        if origin == table_id or not self._legal(unit, table_id):
            return False
        affected = self._affected((unit,), (origin, table_id))
        saved = {gid: self._guest_score(gid) for gid in affected}
        before = sum(saved.values())
        self._move(unit, table_id)
        if origin is None or self._objective(affected) - before > _EPSILON:
            return True
        self._move(unit, origin)
        self._scores.update(saved)
        return False

    def _out_of_budget(self, max_iterations: int, deadline: Optional[float]) -> bool:
        if self.iterations >= max_iterations:
            return True
        if self.evaluations >= self.options.max_evaluations:
            return True
        return deadline is not None and time.monotonic() >= deadline

    def _improve(self, units: List[Unit]) -> bool:
        """Hill climb until a full pass finds nothing. Returns True if a budget ran out."""
        max_iterations = self.options.iteration_budget(len(self.guests))
        deadline = None
        if self.options.time_budget is not None:
            deadline = time.monotonic() + self.options.time_budget
        passes = 0
        while True:
            passes += 1
            improved = False
            for first, second, table_id in self._candidate_moves(units):
                if self._out_of_budget(max_iterations, deadline):
                    logger.info(
                        "search.local.budget_exhausted passes=%d iterations=%d evaluations=%d",
                        passes, self.iterations, self.evaluations,
                    )
                    return True
                self.evaluations += 1
                if second is not None:
                    moved = self._try_swap(first, second)
                else:
                    moved = self._try_relocate(first, table_id)
                if moved:
                    self.iterations += 1
                    improved = True
            if not improved:
                logger.debug(
                    "search.local.converged passes=%d iterations=%d evaluations=%d",
                    passes, self.iterations, self.evaluations,
                )
                return False

    # ----------------------------- main solve -----------------------------
    def solve(self) -> SearchOutcome:
        """Run construction and local search on the built snapshot."""
        self.assignment = {g.id: None for g in self.guests}
        self.seated = {}
        self._scores = {}
        self.iterations = 0
        self.evaluations = 0

        units, excluded = self._build_units()
        largest = max((self.capacity[t] for t in self.candidates), default=0)
        oversized = [
            u for u in units
            if len(u) > max(largest, 1) and not any(g in self.pinned for g in u)
        ]
        units = [u for u in units if u not in oversized]

        movable = self._construct(units)
        exhausted = self._improve(movable)

        notes: List[OptimizationViolation] = []
        for gid, message in sorted(excluded.items(), key=lambda kv: self.order[kv[0]]):
            notes.append(OptimizationViolation(severity="info", message=message, guest_ids=(gid,)))
        for unit in oversized:
            notes.append(OptimizationViolation(
                severity="info",
                message=f"{self._describe(unit)} must sit together but no table seats {len(unit)}; left unassigned",
                guest_ids=unit,
            ))
        for unit in movable:
            if self.assignment[unit[0]] is not None:
                continue
            if any(self._fits(unit, t) for t in self.candidates):
                reason = "every table with room would break a required keep-apart constraint"
            else:
                reason = "no table has remaining capacity"
            notes.append(OptimizationViolation(
                severity="info",
                message=f"{self._describe(unit)} left unassigned: {reason}",
                guest_ids=unit,
            ))
        if exhausted:
            notes.append(OptimizationViolation(
                severity="info",
                message=(
                    f"Search stopped at its budget after {self.iterations} moves and "
                    f"{self.evaluations} evaluations; the proposal may still be improvable"
                ),
            ))

        logger.info(
            "search.done guests=%d seated=%d iterations=%d evaluations=%d exhausted=%s",
            len(self.guests),
            sum(1 for t in self.assignment.values() if t is not None),
            self.iterations, self.evaluations, exhausted,
        )
        return SearchOutcome(
            assignment=dict(self.assignment),
            notes=notes,
            iterations=self.iterations,
            evaluations=self.evaluations,
            exhausted=exhausted,
        )

    def _describe(self, unit: Unit) -> str:
        names = ", ".join(self.by_id[g].display_name for g in unit)
        return f"Guest {names}" if len(unit) == 1 else f"Guests {names}"
