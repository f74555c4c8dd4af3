from __future__ import annotations

import csv
import io
import logging
import re
from datetime import date, datetime

from comercial.errors import InvalidTransitionError, NotFoundError, ValidationError
from comercial.extensions import db
from comercial.models import CommissionRecord, PaymentBatch, Vendor
from comercial.services.commission_status_service import CommissionStatus, transition_commission
from comercial.utils.money import money_minor_to_major

logger = logging.getLogger(__name__)

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")
_MONTH_ABBR = ("jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez")

CSV_HEADERS = ("Vendedor", "Cliente", "Tipo", "Vencimento", "Valor Comissão")


def _period_bounds(period: str) -> tuple[date, date]:
    match = _PERIOD_RE.match((period or "").strip())
    if not match:
        raise ValidationError("period must be YYYY-MM", period=period)
    year, month = int(match.group(1)), int(match.group(2))
    if month < 1 or month > 12:
        raise ValidationError("period must be YYYY-MM", period=period)
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def default_reference(period: str) -> str:
    start, _ = _period_bounds(period)
    return f"Pagamento Dia 05 - {_MONTH_ABBR[start.month - 1]}/{start.year}"


def _released_unbatched(period: str | None = None):
    query = CommissionRecord.query.filter(
        CommissionRecord.status == CommissionStatus.RELEASED,
        CommissionRecord.batch_id.is_(None),
    )
    if period:
        start, end = _period_bounds(period)
        query = query.filter(CommissionRecord.due_date >= start, CommissionRecord.due_date < end)
    return query


def summarize_released(period: str | None = None) -> list[dict]:
    """Released, not yet batched commissions grouped by beneficiary."""
    groups: dict[str, dict] = {}
    for record in _released_unbatched(period).order_by(CommissionRecord.id.asc()).all():
        key = (record.beneficiary_email or "").lower()
        group = groups.setdefault(
            key,
            {
                "beneficiary_email": record.beneficiary_email or "",
                "beneficiary_name": record.beneficiary_name or "",
                "beneficiary_type": record.beneficiary_type or "",
                "count": 0,
                "total_minor": 0,
            },
        )
        group["count"] += 1
        group["total_minor"] += int(record.amount_minor or 0)
    rows = sorted(groups.values(), key=lambda g: g["beneficiary_email"])
    for row in rows:
        row["total"] = str(money_minor_to_major(row["total_minor"]))
    return rows


def create_payment_batch(
    beneficiary_email: str,
    period: str,
    reference: str | None = None,
    *,
    created_by: str | None = None,
) -> PaymentBatch:
    email = (beneficiary_email or "").strip()
    if not email:
        raise ValidationError("beneficiary_email required")
    records = (
        _released_unbatched(period)
        .filter(db.func.lower(CommissionRecord.beneficiary_email) == email.lower())
        .order_by(CommissionRecord.due_date.asc(), CommissionRecord.id.asc())
        .all()
    )
    if not records:
        raise ValidationError("no released commissions for beneficiary in period", beneficiary=email, period=period)

    batch = PaymentBatch(
        reference=(reference or default_reference(period)).strip()[:120],
        beneficiary_email=email,
        period=period,
        total_minor=sum(int(r.amount_minor or 0) for r in records),
        item_count=len(records),
        status=PaymentBatch.STATUS_OPEN,
        created_by=(created_by or "")[:64] or None,
        created_at=datetime.utcnow(),
    )
    db.session.add(batch)
    db.session.flush()
    for record in records:
        record.batch_id = int(batch.id)
    db.session.commit()
    logger.info("payment_batch_created batch=%s beneficiary=%s items=%s", batch.id, email, batch.item_count)
    return batch


def get_payment_batch(batch_id: int) -> PaymentBatch:
    batch = db.session.get(PaymentBatch, int(batch_id))
    if batch is None:
        raise NotFoundError("payment batch not found", batch_id=int(batch_id))
    return batch


def list_payment_batches(status: str | None = None) -> list[PaymentBatch]:
    query = PaymentBatch.query
    if status:
        query = query.filter_by(status=status.strip().lower())
    return query.order_by(PaymentBatch.id.desc()).all()


def settle_payment_batch(batch_id: int, *, actor=None) -> PaymentBatch:
    batch = get_payment_batch(batch_id)
    if batch.status != PaymentBatch.STATUS_OPEN:
        raise InvalidTransitionError(f"invalid_batch_transition {batch.status}->paid", batch_id=int(batch.id))
    for record in batch.items:
        transition_commission(record, CommissionStatus.PAID, actor=actor, reason=f"batch:{batch.id}", commit=False)
    batch.status = PaymentBatch.STATUS_PAID
    batch.paid_at = datetime.utcnow()
    db.session.commit()
    logger.info("payment_batch_settled batch=%s items=%s", batch.id, batch.item_count)
    return batch


def _brl(minor: int) -> str:
    major = money_minor_to_major(minor)
    whole, cents = f"{major:,.2f}".split(".")
    return f"{whole.replace(',', '.')},{cents}"


def export_batch_csv(batch: PaymentBatch) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    vendor_names: dict[int, str] = {}
    for record in batch.items:
        vendor_id = record.origin_vendor_id
        if vendor_id is not None and vendor_id not in vendor_names:
            vendor = db.session.get(Vendor, int(vendor_id))
            vendor_names[vendor_id] = vendor.name if vendor else ""
        customer = record.sale.customer if record.sale is not None else None
        writer.writerow(
            (
                vendor_names.get(vendor_id, ""),
                customer.name if customer is not None else "",
                record.beneficiary_type or "",
                record.due_date.strftime("%d/%m/%Y") if record.due_date else "",
                _brl(record.amount_minor),
            )
        )
    return buf.getvalue()
