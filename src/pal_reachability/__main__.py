"""Entry point for `python -m pal_reachability` and the `pal-reach` CLI script."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
from pathlib import Path

from pal_reachability.breeding_db import PalBreedingDB
from pal_reachability.models import Pal, ReachabilityCancelled, SortOrder
from pal_reachability.observers import LoggingIterationObserver
from pal_reachability.reachability import BreedingReachability
from pal_reachability.report import ReachablePalsReport
from pal_reachability.settings import RuntimeSettings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="List every pal reachable by breeding from an owned set")
    parser.add_argument("--db", type=Path, required=True, help="Path to a breeding database JSON document")
    owned = parser.add_mutually_exclusive_group(required=True)
    owned.add_argument("--owned", nargs="+", default=None, help="Owned pal ids (repeat an id once per instance)")
    owned.add_argument("--owned-file", type=Path, default=None, help="JSON list of owned pal ids")
    parser.add_argument(
        "--sort",
        type=lambda value: value.lower(),
        default=None,
        choices=[order.value for order in SortOrder],
        help="Display order (default: PAL_REACH_DEFAULT_SORT or name)",
    )
    parser.add_argument("--only-new", action="store_true", help="Hide pals that are already owned")
    parser.add_argument("--json", action="store_true", help="Print the report as canonical JSON")
    parser.add_argument("--max-workers", type=int, default=None, help="Worker threads for pair evaluation")
    parser.add_argument("--timeout", type=float, default=None, help="Abort after this many seconds")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity",
    )
    return parser.parse_args(argv)


def load_owned_ids(*, owned: list[str] | None, owned_file: Path | None) -> list[str]:
    if owned is not None:
        return owned
    if owned_file is None:
        raise ValueError("owned ids are required")
    if not owned_file.is_file():
        raise FileNotFoundError(f"Owned pal file does not exist: {owned_file}")
    payload = json.loads(owned_file.read_text(encoding="utf-8"))
    if not isinstance(payload, list) or not all(isinstance(item, str) for item in payload):
        raise ValueError(f"Owned pal file must contain a JSON list of id strings: {owned_file}")
    return payload


def resolve_owned(db: PalBreedingDB, raw_ids: list[str]) -> list[Pal]:
    pals: list[Pal] = []
    for raw in raw_ids:
        try:
            pals.append(db.pal(raw))
        except KeyError as exc:
            raise ValueError(f"Owned pal {raw!r} is not in the breeding database") from exc
    return pals


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = RuntimeSettings.from_env()
        if args.max_workers is not None:
            settings = dataclasses.replace(settings, max_workers=args.max_workers).normalized()
        if args.timeout is not None:
            settings = dataclasses.replace(settings, timeout_seconds=args.timeout).normalized()
        db = PalBreedingDB.load(args.db)
        owned = resolve_owned(db, load_owned_ids(owned=args.owned, owned_file=args.owned_file))
    except (OSError, ValueError) as exc:
        logging.error("Unable to load input: %s", exc)
        return 1

    engine = BreedingReachability(db, settings=settings, observer=LoggingIterationObserver())
    try:
        result = engine.compute(owned)
    except ReachabilityCancelled as exc:
        logging.error("Reachability calculation aborted: %s", exc)
        return 2

    sort_by = SortOrder(args.sort) if args.sort is not None else settings.sort_order
    report = ReachablePalsReport.build(
        result.reachable_ids,
        result.owned_ids,
        db,
        sort_by=sort_by,
        only_new=args.only_new,
    )
    if args.json:
        print(report.to_json())
        return 0

    print(f"reachable_count={report.reachable_count}")
    print(f"owned_count={report.owned_count}")
    print(f"iterations={result.iterations}")
    for pal in report.pals:
        marker = "*" if pal.id in report.owned_ids else " "
        print(f"{marker} {pal.id!s:>5} {pal.name} (power {pal.breeding_power})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
