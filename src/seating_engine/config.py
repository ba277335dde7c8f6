"""Tunable weights and run options for the optimizer.

The default weights are part of the public contract. Tests pin the exact
values below, so changing one is a breaking change.

Relationship points (scaled by ``strength / 5``):
    partner: +30
    family: +20
    friend: +12
    colleague: +6
    acquaintance: 0
    avoid: -40
Group bonus: +8 for the first co-group tablemate, +3 per additional one,
capped at +20. Interest bonus: +2 per shared interest, capped at +10.
Keep-apart penalty: -50 required, -15 preferred, -5 optional.
Keep-together bonus once every other member shares the table:
+10 required, +5 preferred, +2 optional.
Table compatibility: ``clamp(50 + mean pair score * 2.0, 0, 100)``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional


DEFAULT_RELATIONSHIP_POINTS: Mapping[str, float] = {
    "partner": 30.0,
    "family": 20.0,
    "friend": 12.0,
    "colleague": 6.0,
    "acquaintance": 0.0,
    "avoid": -40.0,
}

DEFAULT_KEEP_APART_PENALTY: Mapping[str, float] = {
    "required": -50.0,
    "preferred": -15.0,
    "optional": -5.0,
}

DEFAULT_KEEP_TOGETHER_BONUS: Mapping[str, float] = {
    "required": 10.0,
    "preferred": 5.0,
    "optional": 2.0,
}

MAX_STRENGTH = 5
ITERATIONS_PER_GUEST = 20
DEFAULT_MAX_EVALUATIONS = 100_000


@dataclass(frozen=True)
class OptimizationWeights:
    relationship_points: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_RELATIONSHIP_POINTS)
    )
    group_first_bonus: float = 8.0
    group_additional_bonus: float = 3.0
    group_bonus_cap: float = 20.0
    interest_bonus: float = 2.0
    interest_bonus_cap: float = 10.0
    keep_apart_penalty: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_KEEP_APART_PENALTY)
    )
    keep_together_bonus: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_KEEP_TOGETHER_BONUS)
    )
    compatibility_scale: float = 2.0
    low_compatibility_threshold: float = 40.0

    def relationship_value(self, rel_type: str, strength: int) -> float:
        """Points for one relationship record, 0 for unknown types."""
        base = self.relationship_points.get(rel_type, 0.0)
        s = min(max(int(strength), 1), MAX_STRENGTH)
        return base * s / MAX_STRENGTH


@dataclass(frozen=True)
class OptimizationOptions:
    """Search budget and scope.

    ``max_iterations`` bounds applied improving moves and defaults to
    ``guest count * 20``. ``max_evaluations`` bounds candidate moves looked
    at. ``time_budget`` is wall clock seconds and is off by default because
    a clock-bound run is not reproducible.

    ``selected_guest_ids`` restricts which guests may move; all others stay
    exactly where the current assignment puts them, even on a full table.
    ``selected_table_ids`` restricts placement to those tables and pins
    guests already seated elsewhere.
    """

    max_iterations: Optional[int] = None
    max_evaluations: int = DEFAULT_MAX_EVALUATIONS
    time_budget: Optional[float] = None
    selected_guest_ids: Optional[FrozenSet[str]] = None
    selected_table_ids: Optional[FrozenSet[str]] = None

    def __post_init__(self) -> None:
        # Accept any iterable of ids from callers.
        if self.selected_guest_ids is not None:
            object.__setattr__(self, "selected_guest_ids", frozenset(self.selected_guest_ids))
        if self.selected_table_ids is not None:
            object.__setattr__(self, "selected_table_ids", frozenset(self.selected_table_ids))

    def iteration_budget(self, guest_count: int) -> int:
        if self.max_iterations is not None:
            return max(0, int(self.max_iterations))
        return max(1, guest_count) * ITERATIONS_PER_GUEST


DEFAULT_WEIGHTS = OptimizationWeights()
DEFAULT_OPTIONS = OptimizationOptions()

