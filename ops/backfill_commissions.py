from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date


def _bootstrap_app():
    from comercial import create_app

    app = create_app()
    app.app_context().push()
    return app


def main():
    parser = argparse.ArgumentParser(description="Allocate missing manager/admin commissions and release due ones.")
    parser.add_argument("--limit", type=int, default=None, help="Maximum parcels per query.")
    parser.add_argument("--release", action="store_true", help="Also run the release sweep after the backfill.")
    parser.add_argument("--as-of", default="", help="Release reference date (YYYY-MM-DD).")
    args = parser.parse_args()

    _bootstrap_app()
    from comercial.jobs.commission_runner import run_commission_sweep
    from comercial.services.commission_service import backfill_commissions

    if args.release:
        summary = run_commission_sweep(
            as_of=date.fromisoformat(args.as_of) if args.as_of else None,
            limit=args.limit,
        )
    else:
        summary = backfill_commissions(limit=args.limit)

    print(json.dumps(summary, indent=2, default=str))
    return 0 if summary.get("ok") else 2


if __name__ == "__main__":
    os.environ.setdefault("FLASK_APP", "main.py")
    sys.exit(main())
