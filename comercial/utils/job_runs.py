from __future__ import annotations

from datetime import datetime

from comercial.extensions import db
from comercial.models import JobRun


def record_job_run(
    *,
    job_name: str,
    ok: bool,
    started_at: datetime,
    processed: int = 0,
    created: int = 0,
    skipped: int = 0,
    error: str | None = None,
) -> JobRun | None:
    """Persist one background run; audit failures never break the job itself."""
    duration_ms = max(0, int((datetime.utcnow() - started_at).total_seconds() * 1000))
    try:
        row = JobRun(
            job_name=(job_name or "unknown").strip()[:64],
            ran_at=datetime.utcnow(),
            ok=bool(ok),
            duration_ms=duration_ms,
            processed=int(processed or 0),
            created=int(created or 0),
            skipped=int(skipped or 0),
            error=(error or "")[:1000] or None,
        )
        db.session.add(row)
        db.session.commit()
        return row
    except Exception:
        db.session.rollback()
        return None
