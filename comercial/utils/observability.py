from __future__ import annotations

import json
import os
import time
import uuid
from datetime import datetime

from flask import g, request

_SCRUBBED_HEADERS = ("authorization", "x-api-key", "cookie", "set-cookie")


def get_request_id() -> str:
    return getattr(g, "request_id", "")


def init_sentry(app) -> None:
    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        app.logger.info("sentry_disabled_no_dsn")
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration

    try:
        traces_rate = float((os.getenv("SENTRY_TRACES_SAMPLE_RATE") or "0.0").strip())
    except ValueError:
        traces_rate = 0.0

    sentry_sdk.init(
        dsn=dsn,
        environment=(os.getenv("SENTRY_ENVIRONMENT") or os.getenv("COMERCIAL_ENV") or "dev"),
        release=(os.getenv("GIT_SHA") or "unknown"),
        integrations=[FlaskIntegration()],
        send_default_pii=False,
        traces_sample_rate=max(0.0, min(traces_rate, 1.0)),
        before_send=_before_send_scrub,
    )
    app.logger.info("sentry_enabled")


def _before_send_scrub(event, hint):
    req = event.get("request") or {}
    headers = req.get("headers") or {}
    for key in list(headers.keys()):
        if key.lower() in _SCRUBBED_HEADERS:
            headers[key] = "[REDACTED]"
    req["headers"] = headers
    event["request"] = req
    return event


def install_request_observers(app) -> None:
    @app.before_request
    def _request_observer_begin():
        rid = (request.headers.get("X-Request-Id") or "").strip()
        g.request_id = rid or uuid.uuid4().hex
        g.request_started_at = time.perf_counter()

    @app.after_request
    def _request_observer_end(response):
        rid = getattr(g, "request_id", "") or uuid.uuid4().hex
        response.headers["X-Request-Id"] = rid
        started = getattr(g, "request_started_at", None)
        latency_ms = None
        if started is not None:
            latency_ms = round((time.perf_counter() - float(started)) * 1000.0, 2)
        payload = {
            "ts": datetime.utcnow().isoformat(),
            "request_id": rid,
            "path": request.path,
            "method": request.method,
            "status": int(response.status_code),
            "latency_ms": latency_ms,
            "actor": getattr(g, "auth_subject", None),
            "role": getattr(g, "auth_role", None),
        }
        app.logger.info(json.dumps(payload))
        return response
