from __future__ import annotations

import logging
from datetime import date, datetime

from comercial.services.commission_service import backfill_commissions
from comercial.services.commission_status_service import (
    ReleasePolicy,
    release_due_commissions,
    release_policy_from_env,
)
from comercial.utils.job_runs import record_job_run

logger = logging.getLogger(__name__)


def run_commission_sweep(
    *,
    as_of: date | None = None,
    policy: ReleasePolicy | None = None,
    limit: int | None = None,
) -> dict:
    """Allocate missing commissions, then promote the ones that are due."""
    started = datetime.utcnow()
    backfill = backfill_commissions(limit=limit)
    release = release_due_commissions(as_of=as_of, policy=policy or release_policy_from_env())
    record_job_run(
        job_name="commission_release",
        ok=True,
        started_at=started,
        processed=release["checked"],
        created=release["released"],
        skipped=release["overdue"],
    )
    logger.info(
        "commission_sweep_done backfill_ok=%s released=%s overdue=%s",
        backfill["ok"],
        release["released"],
        release["overdue"],
    )
    return {"ok": bool(backfill["ok"]), "backfill": backfill, "release": release}
