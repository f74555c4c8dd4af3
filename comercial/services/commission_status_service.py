from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from comercial.errors import InvalidTransitionError, NotFoundError
from comercial.extensions import db
from comercial.models import CommissionRecord, CommissionTransition, PaymentBatch, SaleOrigin, SaleStatus

logger = logging.getLogger(__name__)


class CommissionStatus:
    PENDING = "pending"
    RELEASED = "released"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"

    ALLOWED = {
        PENDING: {PENDING, RELEASED, OVERDUE, CANCELLED},
        OVERDUE: {OVERDUE, RELEASED, CANCELLED},
        RELEASED: {RELEASED, PAID, CANCELLED},
        PAID: {PAID},
        CANCELLED: {CANCELLED},
    }

    OPEN = (PENDING, OVERDUE)


@dataclass(frozen=True)
class ReleasePolicy:
    holding_days: int = 0
    # Day of month from which paid commissions are released; 0 releases any day.
    release_day: int = 5


def _env_bounded_int(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("invalid_env_int name=%s value=%s", name, raw)
        return default
    return max(minimum, min(maximum, value))


def release_policy_from_env() -> ReleasePolicy:
    return ReleasePolicy(
        holding_days=_env_bounded_int("COMMISSION_HOLDING_DAYS", 0, minimum=0, maximum=365),
        release_day=_env_bounded_int("COMMISSION_RELEASE_DAY", 5, minimum=0, maximum=28),
    )


def _parse_actor(actor) -> tuple[str, str | None]:
    if isinstance(actor, dict):
        actor_type = str(actor.get("type") or "system")
        actor_id = actor.get("id")
        return actor_type, (str(actor_id)[:64] if actor_id is not None else None)
    return "system", None


def transition_commission(
    record: CommissionRecord,
    to_status: str,
    *,
    actor=None,
    reason: str = "",
    commit: bool = True,
) -> CommissionTransition | None:
    """Move a commission through its lifecycle; same-state moves return None."""
    current = (record.status or CommissionStatus.PENDING).strip().lower()
    target = (to_status or "").strip().lower()
    if target not in CommissionStatus.ALLOWED:
        raise InvalidTransitionError(f"unknown commission status {target!r}", commission_id=record.id)
    if target not in CommissionStatus.ALLOWED.get(current, {current}):
        raise InvalidTransitionError(
            f"invalid_commission_transition {current}->{target}",
            commission_id=record.id,
        )
    if target == current:
        return None

    now = datetime.utcnow()
    record.status = target
    if target == CommissionStatus.RELEASED:
        record.released_at = now
    elif target == CommissionStatus.PAID:
        record.paid_at = now

    actor_type, actor_id = _parse_actor(actor)
    row = CommissionTransition(
        commission_id=int(record.id),
        from_status=current,
        to_status=target,
        actor_type=actor_type[:32],
        actor_id=actor_id,
        reason=(reason or "")[:240],
        created_at=now,
    )
    db.session.add(row)
    if commit:
        db.session.commit()
    return row


def _paid_on(record: CommissionRecord) -> date | None:
    """Date the underlying parcel was paid, or None while it is still open."""
    installment = record.installment
    if installment is not None:
        return installment.paid_at.date() if installment.is_paid and installment.paid_at else None
    sale = record.sale
    if sale is None:
        return None
    # Checkout payments settle upfront; invoiced sales wait for the payment mark.
    if sale.origin in (SaleOrigin.ONLINE, SaleOrigin.MERCADOPAGO) or sale.status == SaleStatus.PAID:
        confirmed = sale.confirmed_at or sale.created_at
        return confirmed.date() if confirmed else None
    return None


def release_due_commissions(as_of: date | None = None, policy: ReleasePolicy | None = None) -> dict:
    today = as_of or datetime.utcnow().date()
    rules = policy or ReleasePolicy()
    release_window_open = not rules.release_day or today.day >= rules.release_day

    summary = {"as_of": today.isoformat(), "checked": 0, "released": 0, "overdue": 0}
    candidates = (
        CommissionRecord.query.filter(CommissionRecord.status.in_(CommissionStatus.OPEN))
        .order_by(CommissionRecord.id.asc())
        .all()
    )
    actor = {"type": "system", "id": "release_sweep"}
    for record in candidates:
        summary["checked"] += 1
        paid_on = _paid_on(record)
        if paid_on is not None:
            if release_window_open and paid_on + timedelta(days=rules.holding_days) <= today:
                transition_commission(record, CommissionStatus.RELEASED, actor=actor, reason="parcel_paid", commit=False)
                summary["released"] += 1
            continue
        if record.status == CommissionStatus.PENDING and record.due_date and record.due_date < today:
            transition_commission(record, CommissionStatus.OVERDUE, actor=actor, reason="parcel_past_due", commit=False)
            summary["overdue"] += 1
    db.session.commit()
    logger.info(
        "commission_release_done as_of=%s checked=%s released=%s overdue=%s",
        summary["as_of"],
        summary["checked"],
        summary["released"],
        summary["overdue"],
    )
    return summary


def get_commission(commission_id: int) -> CommissionRecord:
    record = db.session.get(CommissionRecord, int(commission_id))
    if record is None:
        raise NotFoundError("commission not found", commission_id=int(commission_id))
    return record


def release_commission(commission_id: int, *, actor=None, reason: str = "manual_release") -> CommissionRecord:
    record = get_commission(commission_id)
    transition_commission(record, CommissionStatus.RELEASED, actor=actor, reason=reason)
    return record


def cancel_commission(commission_id: int, *, actor=None, reason: str = "") -> CommissionRecord:
    record = get_commission(commission_id)
    if record.batch_id is not None:
        batch = db.session.get(PaymentBatch, int(record.batch_id))
        if batch is not None and batch.status == PaymentBatch.STATUS_OPEN:
            raise InvalidTransitionError("commission belongs to an open payment batch", batch_id=int(batch.id))
    transition_commission(record, CommissionStatus.CANCELLED, actor=actor, reason=reason or "cancelled")
    return record
