from __future__ import annotations

import json
import time
from datetime import date, datetime

from celery import shared_task
from flask import current_app

from comercial.jobs.commission_runner import run_commission_sweep as _run_commission_sweep


def _task_log(task_name: str, *, status: str, started_at: float, trace_id: str = "", **extra):
    duration_ms = int(max(0.0, (time.perf_counter() - float(started_at))) * 1000.0)
    payload = {
        "task_name": task_name,
        "status": status,
        "duration_ms": duration_ms,
        "trace_id": str(trace_id or ""),
        "timestamp": datetime.utcnow().isoformat(),
    }
    payload.update(extra or {})
    current_app.logger.info(json.dumps(payload))


@shared_task(name="comercial.tasks.commission_tasks.run_commission_sweep")
def run_commission_sweep(*, as_of: str = "", limit: int | None = None, trace_id: str = ""):
    started = time.perf_counter()
    result = _run_commission_sweep(
        as_of=date.fromisoformat(as_of) if as_of else None,
        limit=limit,
    )
    _task_log(
        "run_commission_sweep",
        status="ok" if result["ok"] else "partial",
        started_at=started,
        trace_id=trace_id,
        created=result["backfill"]["created"],
        failed=result["backfill"]["failed"],
        released=result["release"]["released"],
    )
    return result
