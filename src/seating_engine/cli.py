"""Command line interface for SeatingEngine."""
from __future__ import annotations

import argparse
import csv
import logging
from pathlib import Path
from typing import Sequence

from .config import OptimizationOptions
from .csv_loader import load_all
from .engine import optimize_seating


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Optimize event seating from CSV snapshots")
    parser.add_argument("--guests", required=True, help="Path to guests.csv")
    parser.add_argument("--relationships", required=True, help="Path to relationships.csv")
    parser.add_argument("--tables", required=True, help="Path to tables.csv")
    parser.add_argument("--constraints", help="Path to constraints.csv")
    parser.add_argument("--max-iterations", type=int,
                        help="Cap on improving moves during local search (default: 20 per guest).")
    parser.add_argument("--max-evaluations", type=int,
                        help="Cap on candidate moves evaluated during local search.")
    parser.add_argument("--time-budget", type=float,
                        help="Wall clock seconds for local search. Results may vary between runs.")
    parser.add_argument("--only-guests",
                        help="Pipe separated guest ids allowed to move; everyone else stays put.")
    parser.add_argument("--out-assignments", type=Path,
                        help="Write assignments CSV: guest,table,moved.")
    parser.add_argument("--out-report", type=Path,
                        help="Write per-table report CSV with compatibility and grades.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log search progress.")
    return parser


def _options(args: argparse.Namespace) -> OptimizationOptions:
    kwargs = {}
    if args.max_iterations is not None:
        kwargs["max_iterations"] = args.max_iterations
    if args.max_evaluations is not None:
        kwargs["max_evaluations"] = args.max_evaluations
    if args.time_budget is not None:
        kwargs["time_budget"] = args.time_budget
    if args.only_guests:
        kwargs["selected_guest_ids"] = [g.strip() for g in args.only_guests.split("|") if g.strip()]
    return OptimizationOptions(**kwargs)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by ``seating-engine`` and ``python -m seating_engine.cli``.

    Returns 1 when the proposal still has critical violations, else 0.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    guests, tables, constraints = load_all(args.guests, args.relationships, args.tables, args.constraints)
    result = optimize_seating(guests, tables, constraints, options=_options(args))
    moved = set(result.moved_guest_ids)

    # Print simple assignments
    for guest, table in sorted(result.proposed_assignments.items()):
        print(f"{guest},{table or ''}")

    if args.out_assignments:
        args.out_assignments.parent.mkdir(parents=True, exist_ok=True)
        with args.out_assignments.open("w", newline="") as f:
            w = csv.writer(f)
            w.writerow(["guest", "table", "moved"])
            for guest, table in sorted(result.proposed_assignments.items()):
                w.writerow([guest, table or "", "true" if guest in moved else "false"])

    # Print a compact table summary
    for s in result.table_scores:
        print(f"[REPORT] {s.table_name} grade={s.grade} compatibility={s.compatibility_score:.1f} "
              f"seated={s.guest_count}/{s.capacity}")
    for v in result.violations:
        print(f"[{v.severity.upper()}] {v.message}")
    print(f"[SCORE] total={result.total_score:.2f} previous={result.previous_score:.2f} "
          f"moved={len(result.moved_guest_ids)}")

    if args.out_report:
        args.out_report.parent.mkdir(parents=True, exist_ok=True)
        with args.out_report.open("w", newline="") as f:
            w = csv.DictWriter(f, fieldnames=[
                "table", "grade", "compatibility", "guest_count", "capacity", "issues", "members"
            ])
            w.writeheader()
            for s in result.table_scores:
                w.writerow({
                    "table": s.table_id,
                    "grade": s.grade,
                    "compatibility": f"{s.compatibility_score:.2f}",
                    "guest_count": s.guest_count,
                    "capacity": s.capacity,
                    "issues": "|".join(s.issues),
                    "members": "|".join(s.guest_ids),
                })

    return 1 if result.has_critical else 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
