#!/usr/bin/env python3
"""
Plan one week of bakery production from a JSON snapshot.

Reads products, sales, losses, calendar events and planning settings from a
snapshot file (see bakery_planning/persistence/json_snapshot.py) and prints
the planning response as JSON.

Usage:
    python tools/plan_week.py --snapshot data/snapshot.json --start 2026-02-09 --end 2026-02-15
    python tools/plan_week.py --snapshot snap.json --start 2026-02-09 --end 2026-02-15 --workers 4
    python tools/plan_week.py --snapshot snap.json --start ... --end ... --output plan.json
    python tools/plan_week.py --snapshot snap.json --start ... --end ... -vv      # DEBUG to stderr

Exit codes:
    0  plan produced
    1  snapshot missing or unreadable
    2  invalid target week (missing, unparseable or inverted bounds)
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from bakery_planning.domain.validation import PlanningInputError
from bakery_planning.persistence.json_snapshot import load_snapshot
from bakery_planning.utils.logging_config import get_logger, setup_logging, verbosity_to_level
from bakery_planning.workflows.planning import PlanningWorkflow


EXIT_OK = 0
EXIT_SNAPSHOT_ERROR = 1
EXIT_INPUT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Suggest weekly production quantities from a data snapshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--snapshot", required=True, help="Snapshot JSON file")
    parser.add_argument("--start", required=True, help="Target week start (YYYY-MM-DD)")
    parser.add_argument("--end", required=True, help="Target week end (YYYY-MM-DD)")
    parser.add_argument("--workers", type=int, default=1, help="Parallel workers (default: 1)")
    parser.add_argument("--threads", action="store_true", help="Use threads instead of processes")
    parser.add_argument("--log-dir", type=str, help="Log directory (default: <project>/logs)")
    parser.add_argument("--output", type=str, help="Write JSON here instead of stdout")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="More log output on stderr (-v info, -vv debug incl. skipped rows)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(log_dir=args.log_dir, console_level=verbosity_to_level(args.verbose))
    logger = get_logger()

    try:
        snapshot = load_snapshot(args.snapshot)
    except (OSError, ValueError) as e:
        logger.error("Cannot load snapshot %s: %s", args.snapshot, e)
        print(f"Error: cannot load snapshot {args.snapshot}: {e}", file=sys.stderr)
        return EXIT_SNAPSHOT_ERROR

    workflow = PlanningWorkflow(
        settings=snapshot.settings,
        n_workers=args.workers,
        use_processes=not args.threads,
    )

    try:
        response = workflow.run(
            snapshot.products,
            snapshot.sales,
            snapshot.losses,
            snapshot.events,
            start=args.start,
            end=args.end,
            reference=snapshot.reference,
        )
    except PlanningInputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    payload = response.to_json()
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        print(f"Plan for {len(response.products)} products written to {args.output}")
    else:
        print(payload)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
