import pytest

from seating_engine.explain import assignment_total, explain, moved_guests, score_tables
from seating_engine.models import Constraint, Guest, Relationship, Table


def guest(gid, rels=(), **kw):
    return Guest(id=gid, name=gid.upper(), relationships=[Relationship(*r) for r in rels], **kw)


GUESTS = [
    guest("a", [("b", "partner", 5)]),
    guest("b", [("a", "partner", 5)]),
    guest("c", [("d", "avoid", 5)]),
    guest("d"),
]
TABLES = [Table("t1", "One", 2), Table("t2", "Two", 2)]


def test_moved_guests_include_unassignment_both_ways():
    before = {"a": "t1", "b": None, "c": "t2", "d": "t1"}
    after = {"a": "t1", "b": "t1", "c": None, "d": "t2"}
    assert moved_guests(before, after) == ["b", "c", "d"]
    assert moved_guests(before, after, ["d", "c"]) == ["d", "c"]
    assert moved_guests(after, after) == []


def test_guest_scores_reflect_final_occupants():
    before = {"a": "t1", "b": "t2", "c": "t1", "d": "t2"}
    after = {"a": "t1", "b": "t1", "c": "t2", "d": "t2"}
    result = explain(before, after, TABLES, GUESTS)
    assert result.moved_guest_ids == ("b", "c")
    assert result.guest_scores["a"].total_score == pytest.approx(30.0)
    assert result.guest_scores["a"].table_id == "t1"
    assert result.guest_scores["d"].total_score == pytest.approx(-40.0)
    for score in result.guest_scores.values():
        assert score.total_score == sum(r.points for r in score.reasons)


def test_unassigned_guest_has_empty_score():
    result = explain({}, {"a": None}, TABLES, [guest("a")])
    assert result.guest_scores["a"].total_score == 0
    assert result.guest_scores["a"].table_id is None
    assert result.guest_scores["a"].reasons == ()


def test_table_scores_and_issues():
    after = {"a": "t1", "b": "t1", "c": "t2", "d": "t2"}
    t1, t2 = score_tables(after, TABLES, GUESTS)
    assert (t1.table_id, t1.table_name, t1.guest_count, t1.capacity) == ("t1", "One", 2, 2)
    assert t1.compatibility_score == 100
    assert t1.grade == "A"
    assert t1.issues == ()
    assert t2.compatibility_score == 0
    assert t2.grade == "F"
    assert t2.issues == ("conflicting guests seated together: C & D", "low compatibility")
    assert t2.guest_ids == ("c", "d")


def test_over_capacity_issue_and_empty_table():
    after = {"a": "t1", "b": "t1", "c": "t1", "d": None}
    t1, t2 = score_tables(after, TABLES, GUESTS)
    assert t1.issues[0] == "over capacity (3/2)"
    assert t2.guest_count == 0
    assert t2.compatibility_score == 50
    assert t2.issues == ()


def test_keep_apart_constraint_counts_as_conflict():
    apart = Constraint("k", "keep-apart", ["a", "b"], "optional")
    (t1,) = score_tables({"a": "t1", "b": "t1"}, TABLES[:1], GUESTS[:2], [apart])
    assert "conflicting guests seated together: A & B" in t1.issues


def test_assignment_total():
    after = {"a": "t1", "b": "t1", "c": "t2", "d": "t2"}
    assert assignment_total(after, GUESTS) == pytest.approx(60.0 - 80.0)
    assert assignment_total({}, GUESTS) == 0
