"""CSV loading utilities for optimizer snapshots."""
from __future__ import annotations

from pathlib import Path
from typing import IO, Any, Dict, List, Tuple, Union

import pandas as pd

from .models import (
    RELATIONSHIP_TYPES,
    Constraint,
    Guest,
    Relationship,
    Table,
    parse_optional,
    parse_pipe_list,
)

CsvSource = Union[Path, str, IO[Any]]


def _read(path: CsvSource) -> pd.DataFrame:
    # ids stay strings; "007" is not 7
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def _int(value: object, default: int = 0) -> int:
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return default
    return int(float(text))


def load_guests(path: CsvSource) -> List[Guest]:
    """Load guests from ``guests.csv``.

    Required column ``id``. Optional: ``name``, ``group``, ``interests``
    (pipe separated), ``table_id``, ``seat_index``, ``rsvp_status``.
    """
    df = _read(path)
    guests: List[Guest] = []
    seen = set()
    for _, row in df.iterrows():
        gid = str(row["id"]).strip()
        if gid in seen:
            raise ValueError(f"Duplicate guest id: {gid}")
        seen.add(gid)
        seat = parse_optional(row.get("seat_index", ""))
        guests.append(Guest(
            id=gid,
            name=str(row.get("name", "")).strip(),
            group=parse_optional(row.get("group", "")),
            interests=parse_pipe_list(row.get("interests", "")),
            table_id=parse_optional(row.get("table_id", "")),
            seat_index=_int(seat) if seat is not None else None,
            rsvp_status=str(row.get("rsvp_status", "")).strip() or "confirmed",
        ))
    return guests


def load_tables(path: CsvSource) -> List[Table]:
    """Load table definitions: ``id``, ``capacity`` and optional ``name``."""
    df = _read(path)
    tables: List[Table] = []
    for _, row in df.iterrows():
        tables.append(
            Table(
                id=str(row["id"]).strip(),
                name=str(row.get("name", "")).strip(),
                capacity=_int(row["capacity"]),
            )
        )
    return tables


def load_relationships(path: CsvSource, guests: List[Guest]) -> List[Guest]:
    """Attach relationships from ``relationships.csv`` to ``guests``.

    Each row ``guest1_id,guest2_id,relationship,strength`` is stored on both
    guests. Rows naming an unknown guest or relationship type raise
    ``ValueError``. Returns ``guests`` for chaining.
    """
    by_id: Dict[str, Guest] = {g.id: g for g in guests}
    df = _read(path)
    for _, row in df.iterrows():
        a = str(row["guest1_id"]).strip()
        b = str(row["guest2_id"]).strip()
        if a not in by_id or b not in by_id:
            raise ValueError(f"Relationship references unknown guest: {a}, {b}")
        relation = str(row.get("relationship", "acquaintance")).strip().lower() or "acquaintance"
        if relation not in RELATIONSHIP_TYPES:
            raise ValueError(f"Unknown relationship type for {a}, {b}: {relation}")
        strength = _int(row.get("strength", ""), default=3)
        by_id[a].relationships.append(Relationship(guest_id=b, type=relation, strength=strength))
        by_id[b].relationships.append(Relationship(guest_id=a, type=relation, strength=strength))
    return guests


def load_constraints(path: CsvSource) -> List[Constraint]:
    """Load constraints: ``id``, ``type``, ``guest_ids`` (pipe separated), ``priority``.

    Member ids are not validated; the optimizer ignores ids it does not know.
    """
    df = _read(path)
    constraints: List[Constraint] = []
    for i, row in df.iterrows():
        cid = str(row.get("id", "")).strip() or f"c{i + 1}"
        constraints.append(Constraint(
            id=cid,
            type=str(row["type"]).strip(),
            guest_ids=parse_pipe_list(row["guest_ids"]),
            priority=str(row.get("priority", "")).strip() or "required",
            description=str(row.get("description", "")).strip(),
        ))
    return constraints


def load_all(
    guests_path: CsvSource,
    relationships_path: CsvSource,
    tables_path: CsvSource,
    constraints_path: CsvSource | None = None,
) -> Tuple[List[Guest], List[Table], List[Constraint]]:
    """Convenience wrapper returning guests (with relationships), tables and constraints."""
    guests = load_relationships(relationships_path, load_guests(guests_path))
    tables = load_tables(tables_path)
    constraints = load_constraints(constraints_path) if constraints_path is not None else []
    return guests, tables, constraints
