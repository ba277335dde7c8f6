"""Data models for SeatingEngine."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
import math


RELATIONSHIP_TYPES = ("partner", "family", "friend", "colleague", "acquaintance", "avoid")

KEEP_TOGETHER = "keep-together"
KEEP_APART = "keep-apart"

# Constraint names used by older event documents.
_CONSTRAINT_ALIASES = {
    "keep-together": KEEP_TOGETHER,
    "keep_together": KEEP_TOGETHER,
    "must_sit_together": KEEP_TOGETHER,
    "same_table": KEEP_TOGETHER,
    "keep-apart": KEEP_APART,
    "keep_apart": KEEP_APART,
    "must_not_sit_together": KEEP_APART,
    "different_table": KEEP_APART,
}

PRIORITIES = ("required", "preferred", "optional")
SEVERITIES = ("critical", "warning", "info")

# guest id -> table id, None when unassigned
Assignment = Dict[str, Optional[str]]


def parse_pipe_list(value: object) -> List[str]:
    """Split a pipe separated string into a list.

    Empty values such as ``""`` or ``None`` return an empty list.
    ``pandas`` often provides ``float('nan')`` for missing values which is
    also treated as empty.
    """
    if value is None:
        return []
    if isinstance(value, float) and math.isnan(value):
        return []
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return []
    return [part.strip() for part in text.split("|") if part.strip()]


def parse_optional(value: object) -> Optional[str]:
    """Return a stripped string or None for blank and NaN cells."""
    items = parse_pipe_list(value)
    if not items:
        return None
    return str(value).strip()


@dataclass(frozen=True)
class Relationship:
    """Directed relationship record held by a guest about ``guest_id``."""

    guest_id: str
    type: str
    strength: int = 3


@dataclass
class Guest:
    """Guest snapshot handed to the engine."""

    id: str
    name: str = ""
    relationships: List[Relationship] = field(default_factory=list)
    group: Optional[str] = None
    interests: List[str] = field(default_factory=list)
    table_id: Optional[str] = None
    seat_index: Optional[int] = None
    rsvp_status: str = "confirmed"

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def declined(self) -> bool:
        return self.rsvp_status == "declined"


@dataclass
class Table:
    """Dinner table definition."""

    id: str
    name: str = ""
    capacity: int = 0

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass
class Constraint:
    """Explicit seating rule over two or more guests."""

    id: str
    type: str
    guest_ids: List[str] = field(default_factory=list)
    priority: str = "required"
    description: str = ""

    def __post_init__(self) -> None:
        self.type = _CONSTRAINT_ALIASES.get(self.type, self.type)

    @property
    def supported(self) -> bool:
        """True when the engine knows how to evaluate this constraint."""
        return self.type in (KEEP_TOGETHER, KEEP_APART) and self.priority in PRIORITIES


@dataclass(frozen=True)
class ScoreReason:
    """One signed contribution to a guest's score."""

    type: str  # relationship | constraint | group | interest | penalty
    description: str
    points: float
    involved_guest_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AssignmentScore:
    """Score of a guest at a table with the reasons that add up to it."""

    guest_id: str
    table_id: Optional[str]
    total_score: float
    reasons: Tuple[ScoreReason, ...] = ()

    def _subtotal(self, kind: str) -> float:
        return sum(r.points for r in self.reasons if r.type == kind)

    @property
    def relationship_score(self) -> float:
        return self._subtotal("relationship")

    @property
    def constraint_score(self) -> float:
        return self._subtotal("constraint")

    @property
    def group_score(self) -> float:
        return self._subtotal("group")

    @property
    def interest_score(self) -> float:
        return self._subtotal("interest")

    @property
    def penalty_score(self) -> float:
        return self._subtotal("penalty")


@dataclass(frozen=True)
class TableOptimizationScore:
    """Compatibility summary for one table."""

    table_id: str
    table_name: str
    compatibility_score: float
    guest_count: int
    capacity: int
    issues: Tuple[str, ...] = ()
    guest_ids: Tuple[str, ...] = ()
    grade: str = "C"


@dataclass(frozen=True)
class OptimizationViolation:
    severity: str  # critical | warning | info
    message: str
    guest_ids: Tuple[str, ...] = ()
    table_id: Optional[str] = None
    constraint_id: Optional[str] = None


@dataclass(frozen=True)
class OptimizationResult:
    """Immutable outcome of a single optimizer run.

    ``current_assignments`` and ``proposed_assignments`` cover every guest of
    the snapshot, ``None`` marking an unassigned guest. The caller either
    applies ``proposed_assignments`` to its own records or discards the
    result; the engine keeps nothing.
    """

    current_assignments: Mapping[str, Optional[str]]
    proposed_assignments: Mapping[str, Optional[str]]
    moved_guest_ids: Tuple[str, ...]
    guest_scores: Mapping[str, AssignmentScore]
    table_scores: Tuple[TableOptimizationScore, ...]
    violations: Tuple[OptimizationViolation, ...]
    total_score: float = 0.0
    previous_score: float = 0.0

    @property
    def score_improvement(self) -> float:
        return self.total_score - self.previous_score

    @property
    def unassigned_guest_ids(self) -> Tuple[str, ...]:
        return tuple(g for g, t in self.proposed_assignments.items() if t is None)

    def violations_by_severity(self, severity: str) -> Tuple[OptimizationViolation, ...]:
        return tuple(v for v in self.violations if v.severity == severity)

    @property
    def has_critical(self) -> bool:
        return any(v.severity == "critical" for v in self.violations)


def restrict_constraints(constraints: Iterable[Constraint], guest_ids: Iterable[str]) -> List[Constraint]:
    """Copy supported constraints keeping only members that name known guests.

    Unknown ids drop out of the constraint while the remaining members are
    still enforced. Constraints left with fewer than two members and
    unsupported types or priorities are skipped.
    """
    known = set(guest_ids)
    out: List[Constraint] = []
    for c in constraints:
        if not c.supported:
            continue
        members = list(dict.fromkeys(gid for gid in c.guest_ids if gid in known))
        if len(members) < 2:
            continue
        out.append(Constraint(id=c.id, type=c.type, guest_ids=members, priority=c.priority,
                              description=c.description))
    return out


def freeze_mapping(values: Mapping) -> Mapping:
    """Read-only view over a private copy of ``values``."""
    return MappingProxyType(dict(values))
