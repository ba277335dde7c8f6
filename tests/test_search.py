"""
Tests for the greedy construction and local swap search.
"""

from seating_engine.config import OptimizationOptions, OptimizationWeights
from seating_engine.models import Constraint, Guest, Relationship, Table
from seating_engine.search import AssignmentSearch


def guest(gid, rels=(), **kw):
    return Guest(id=gid, name=gid.upper(), relationships=[Relationship(*r) for r in rels], **kw)


def run(guests, tables, constraints=(), current=None, weights=None, **options):
    search = AssignmentSearch(weights, OptimizationOptions(**options))
    search.build(guests, tables, list(constraints), current)
    return search.solve()


def same_table(assignment, *ids):
    return len({assignment[g] for g in ids}) == 1 and assignment[ids[0]] is not None


class TestConstruction:
    def test_fills_least_occupied_table_on_ties(self):
        guests = [guest(x) for x in "abcd"]
        tables = [Table("t1", capacity=4), Table("t2", capacity=4)]
        outcome = run(guests, tables)
        assert outcome.assignment == {"a": "t1", "b": "t2", "c": "t1", "d": "t2"}

    def test_places_connected_guests_together(self):
        guests = [
            guest("a", [("d", "family", 5)]),
            guest("b"),
            guest("c"),
            guest("d", [("a", "family", 5)]),
        ]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        outcome = run(guests, tables)
        assert same_table(outcome.assignment, "a", "d")

    def test_keeps_legal_current_seats(self):
        guests = [guest(x) for x in "abc"]
        tables = [Table("t1", capacity=4), Table("t2", capacity=4)]
        current = {"a": "t2", "b": "t2", "c": "t1"}
        outcome = run(guests, tables, current=current)
        assert outcome.assignment == current
        assert outcome.iterations == 0

    def test_defaults_to_guest_table_ids(self):
        guests = [guest("a", table_id="t2"), guest("b")]
        outcome = run(guests, [Table("t1", capacity=4), Table("t2", capacity=4)])
        assert outcome.assignment["a"] == "t2"

    def test_requeues_guests_on_unusable_tables(self):
        guests = [guest("a"), guest("b")]
        tables = [Table("t0", capacity=0), Table("t1", capacity=2)]
        outcome = run(guests, tables, current={"a": "t0", "b": "gone"})
        assert outcome.assignment == {"a": "t1", "b": "t1"}

    def test_requeues_guest_that_breaks_required_keep_apart(self):
        guests = [guest("a"), guest("b")]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        apart = Constraint("c", "keep-apart", ["a", "b"], "required")
        outcome = run(guests, tables, [apart], current={"a": "t1", "b": "t1"})
        assert outcome.assignment == {"a": "t1", "b": "t2"}

    def test_overflow_guests_stay_unassigned_with_note(self):
        guests = [guest(x) for x in "abc"]
        outcome = run(guests, [Table("t1", capacity=2)])
        assert outcome.assignment == {"a": "t1", "b": "t1", "c": None}
        assert [n.severity for n in outcome.notes] == ["info"]
        assert outcome.notes[0].guest_ids == ("c",)
        assert "no table has remaining capacity" in outcome.notes[0].message

    def test_no_tables(self):
        outcome = run([guest("a")], [])
        assert outcome.assignment == {"a": None}
        assert len(outcome.notes) == 1

    def test_empty_snapshot(self):
        outcome = run([], [Table("t1", capacity=2)])
        assert outcome.assignment == {}
        assert outcome.notes == []
        assert outcome.exhausted is False

    def test_declined_guests_are_left_out(self):
        guests = [guest("a"), guest("b", rsvp_status="declined")]
        outcome = run(guests, [Table("t1", capacity=2)])
        assert outcome.assignment == {"a": "t1"}


class TestRequiredGroups:
    def test_keep_together_group_is_seated_as_a_unit(self):
        guests = [guest(x) for x in "abcde"]
        tables = [Table("t1", capacity=2), Table("t2", capacity=3)]
        together = Constraint("c", "keep-together", ["b", "d", "e"], "required")
        outcome = run(guests, tables, [together])
        assert same_table(outcome.assignment, "b", "d", "e")
        assert outcome.assignment["b"] == "t2"

    def test_chained_constraints_merge(self):
        guests = [guest(x) for x in "abcd"]
        tables = [Table("t1", capacity=3), Table("t2", capacity=3)]
        constraints = [
            Constraint("c1", "keep-together", ["a", "c"], "required"),
            Constraint("c2", "keep-together", ["c", "d"], "required"),
        ]
        outcome = run(guests, tables, constraints)
        assert same_table(outcome.assignment, "a", "c", "d")

    def test_group_larger_than_any_table_is_left_unassigned(self):
        guests = [guest(x) for x in "abcd"]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        together = Constraint("c", "keep-together", ["a", "b", "c"], "required")
        outcome = run(guests, tables, [together])
        assert [outcome.assignment[g] for g in "abc"] == [None, None, None]
        assert outcome.assignment["d"] is not None
        assert any("no table seats 3" in n.message for n in outcome.notes)

    def test_contradictory_guest_is_left_unassigned(self):
        guests = [guest("a"), guest("g"), guest("b")]
        tables = [Table("t1", capacity=3), Table("t2", capacity=3)]
        constraints = [
            Constraint("c1", "keep-together", ["g", "a"], "required"),
            Constraint("c2", "keep-apart", ["g", "a"], "required"),
        ]
        outcome = run(guests, tables, constraints)
        assert outcome.assignment["g"] is None
        assert outcome.assignment["a"] is not None
        assert outcome.notes[0].guest_ids == ("g",)
        assert "both to sit with and apart" in outcome.notes[0].message

    def test_group_is_never_split_by_swaps(self):
        guests = [
            guest("a", [("x", "partner", 5)]),
            guest("b"),
            guest("x", [("a", "partner", 5)]),
            guest("y"),
        ]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        together = Constraint("c", "keep-together", ["a", "b"], "required")
        outcome = run(guests, tables, [together], current={"a": "t1", "b": "t1", "x": "t2", "y": "t2"})
        assert same_table(outcome.assignment, "a", "b")


class TestLocalSearch:
    def test_swaps_partners_together(self):
        guests = [
            guest("a", [("b", "partner", 5)]),
            guest("b", [("a", "partner", 5)]),
            guest("c", [("d", "partner", 5)]),
            guest("d", [("c", "partner", 5)]),
        ]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        outcome = run(guests, tables, current={"a": "t1", "c": "t1", "b": "t2", "d": "t2"})
        assert same_table(outcome.assignment, "a", "b")
        assert same_table(outcome.assignment, "c", "d")
        assert outcome.iterations >= 1
        assert outcome.exhausted is False

    def test_moves_into_free_seats(self):
        guests = [guest("a", [("b", "friend", 5)]), guest("b"), guest("c")]
        tables = [Table("t1", capacity=3), Table("t2", capacity=3)]
        outcome = run(guests, tables, current={"a": "t1", "b": "t2"})
        assert same_table(outcome.assignment, "a", "b")

    def test_never_introduces_required_keep_apart(self):
        # Without a penalty only legality keeps the partners apart.
        weights = OptimizationWeights(keep_apart_penalty={"required": 0.0, "preferred": 0.0, "optional": 0.0})
        guests = [
            guest("a", [("b", "partner", 5)]),
            guest("x"),
            guest("b", [("a", "partner", 5)]),
            guest("y"),
        ]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        apart = Constraint("c", "keep-apart", ["a", "b"], "required")
        outcome = run(guests, tables, [apart], current={"a": "t1", "x": "t1", "b": "t2", "y": "t2"},
                      weights=weights)
        assert outcome.assignment["a"] != outcome.assignment["b"]

    def test_swaps_unassigned_guest_for_unhappy_one(self):
        guests = [guest("a", [("x", "avoid", 5)]), guest("x"), guest("u")]
        outcome = run(guests, [Table("t", capacity=2)], current={"a": "t", "x": "t"})
        assert outcome.assignment["u"] == "t"
        assert [outcome.assignment["a"], outcome.assignment["x"]].count(None) == 1
        assert len(outcome.notes) == 1

    def test_iteration_budget_stops_early(self):
        guests = [
            guest("a", [("b", "partner", 5)]),
            guest("b", [("a", "partner", 5)]),
            guest("c", [("d", "partner", 5)]),
            guest("d", [("c", "partner", 5)]),
        ]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        current = {"a": "t1", "c": "t1", "b": "t2", "d": "t2"}
        outcome = run(guests, tables, current=current, max_iterations=0)
        assert outcome.assignment == current
        assert outcome.exhausted is True
        assert "budget" in outcome.notes[-1].message

    def test_time_budget_stops_early(self):
        guests = [
            guest("a", [("b", "partner", 5)]),
            guest("b", [("a", "partner", 5)]),
            guest("c", [("d", "partner", 5)]),
            guest("d", [("c", "partner", 5)]),
        ]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        current = {"a": "t1", "c": "t1", "b": "t2", "d": "t2"}
        outcome = run(guests, tables, current=current, time_budget=0.0)
        assert outcome.assignment == current
        assert (outcome.iterations, outcome.evaluations) == (0, 0)
        assert outcome.exhausted is True
        assert outcome.notes[-1].severity == "info"
        assert "budget" in outcome.notes[-1].message

    def test_evaluation_budget_stops_early(self):
        guests = [guest(x) for x in "abcdef"]
        outcome = run(guests, [Table("t1", capacity=3), Table("t2", capacity=3)], max_evaluations=2)
        assert outcome.evaluations == 2
        assert outcome.exhausted is True
        assert all(t is not None for t in outcome.assignment.values())


class TestScope:
    def test_unselected_guests_stay_put_even_over_capacity(self):
        guests = [guest(x) for x in "abc"]
        current = {"a": "t", "b": "t", "c": "t"}
        outcome = run(guests, [Table("t", capacity=2)], current=current, selected_guest_ids=[])
        assert outcome.assignment == current

    def test_selected_guests_move_around_pinned_ones(self):
        guests = [guest("a", [("b", "partner", 5)]), guest("b"), guest("c")]
        tables = [Table("t1", capacity=2), Table("t2", capacity=2)]
        current = {"a": "t1", "b": "t2", "c": "t1"}
        outcome = run(guests, tables, current=current, selected_guest_ids=["b", "c"])
        assert outcome.assignment == {"a": "t1", "b": "t1", "c": "t2"}

    def test_selected_tables_limit_placement(self):
        guests = [guest("a"), guest("b"), guest("c", table_id="t1")]
        tables = [Table("t1", capacity=4), Table("t2", capacity=4)]
        outcome = run(guests, tables, selected_table_ids=["t2"])
        assert outcome.assignment == {"a": "t2", "b": "t2", "c": "t1"}


def test_solve_is_deterministic():
    guests = [
        guest("a", [("c", "friend", 4)], group="x", interests=["golf"]),
        guest("b", [("d", "avoid", 3)], group="x"),
        guest("c", interests=["golf"]),
        guest("d", [("e", "colleague", 5)]),
        guest("e", group="y"),
        guest("f", group="y"),
    ]
    tables = [Table("t1", capacity=3), Table("t2", capacity=3), Table("t3", capacity=2)]
    constraints = [Constraint("k", "keep-apart", ["a", "f"], "preferred")]
    first = run(guests, tables, constraints)
    second = run(guests, tables, constraints)
    assert first.assignment == second.assignment
    assert first.notes == second.notes
    assert (first.iterations, first.evaluations) == (second.iterations, second.evaluations)
