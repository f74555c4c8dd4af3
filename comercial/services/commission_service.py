from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError

from comercial.errors import ConfigurationError, ValidationError
from comercial.extensions import db
from comercial.models import (
    CommissionConfig,
    CommissionRecord,
    Sale,
    SaleInstallment,
    SaleStatus,
    Vendor,
)
from comercial.utils.job_runs import record_job_run
from comercial.utils.money import (
    bps_to_percent,
    money_major_to_minor,
    money_minor_to_major,
    percent_of,
    percent_to_bps,
    round_money,
    to_decimal,
)

logger = logging.getLogger(__name__)


class BeneficiaryType:
    VENDOR = "vendor"
    MANAGER = "manager"
    ADMIN = "admin"

    ALL = (VENDOR, MANAGER, ADMIN)


PENDING = "pending"
ADMIN_DISPLAY_NAME = "Administrador"

# Days after the start date for each installment of a billing term.
BILLING_TERMS: dict[str, tuple[int, ...]] = {
    "30": (30,),
    "60_direto": (60,),
    "60": (30, 60),
    "60_90": (60, 90),
    "90": (30, 60, 90),
}


@dataclass(frozen=True)
class VendorNode:
    id: int
    name: str
    email: str
    commission_percent: Decimal
    manager_id: int | None = None


@dataclass(frozen=True)
class AdminCommissionConfig:
    percent: Decimal
    beneficiary_email: str
    beneficiary_name: str = ADMIN_DISPLAY_NAME
    active: bool = True


@dataclass(frozen=True)
class InstallmentInput:
    parcel_ref: str
    sale_id: int
    installment_id: int | None
    amount: Decimal
    due_date: date | None


@dataclass(frozen=True)
class AllocatedCommission:
    parcel_ref: str
    beneficiary_type: str
    beneficiary_id: int | None
    beneficiary_email: str
    beneficiary_name: str
    origin_vendor_id: int
    sale_id: int
    installment_id: int | None
    sale_amount: Decimal
    percent: Decimal
    amount: Decimal
    due_date: date | None
    status: str = PENDING

    def to_dict(self) -> dict:
        return {
            "parcel_ref": self.parcel_ref,
            "beneficiary_type": self.beneficiary_type,
            "beneficiary_id": self.beneficiary_id,
            "beneficiary_email": self.beneficiary_email,
            "beneficiary_name": self.beneficiary_name,
            "origin_vendor_id": self.origin_vendor_id,
            "sale_id": self.sale_id,
            "installment_id": self.installment_id,
            "sale_amount": str(self.sale_amount),
            "percent": str(self.percent),
            "amount": str(self.amount),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status,
        }


@dataclass
class AllocationOutcome:
    created: int = 0
    skipped: int = 0
    records: list | None = None

    def to_dict(self) -> dict:
        return {
            "created": int(self.created),
            "skipped": int(self.skipped),
            "records": [r.to_dict() for r in (self.records or [])],
        }


@dataclass(frozen=True)
class PlannedInstallment:
    number: int
    total_count: int
    amount: Decimal
    due_date: date

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "total_count": self.total_count,
            "amount": str(self.amount),
            "due_date": self.due_date.isoformat(),
        }


def allocate_installment(
    installment: InstallmentInput,
    *,
    vendor: VendorNode,
    manager: VendorNode | None,
    admin_config: AdminCommissionConfig | None,
) -> list[AllocatedCommission]:
    """Manager and admin commission for one installment.

    The admin share is mandatory: a missing or inactive admin configuration
    raises ``ConfigurationError`` instead of allocating with a default.
    """
    if admin_config is None or not admin_config.active:
        raise ConfigurationError("admin commission config missing or inactive", parcel=installment.parcel_ref)
    if not (admin_config.beneficiary_email or "").strip():
        raise ConfigurationError("admin commission beneficiary missing", parcel=installment.parcel_ref)
    amount = round_money(installment.amount)
    if amount < 0:
        raise ValidationError("installment amount must not be negative", parcel=installment.parcel_ref)

    def _record(beneficiary_type, beneficiary_id, email, name, percent):
        return AllocatedCommission(
            parcel_ref=installment.parcel_ref,
            beneficiary_type=beneficiary_type,
            beneficiary_id=beneficiary_id,
            beneficiary_email=email,
            beneficiary_name=name,
            origin_vendor_id=vendor.id,
            sale_id=installment.sale_id,
            installment_id=installment.installment_id,
            sale_amount=amount,
            percent=to_decimal(percent),
            amount=percent_of(amount, percent),
            due_date=installment.due_date,
        )

    records = []
    if manager is not None and vendor.manager_id is not None and manager.id == vendor.manager_id:
        records.append(
            _record(BeneficiaryType.MANAGER, manager.id, manager.email, manager.name, manager.commission_percent)
        )
    records.append(
        _record(
            BeneficiaryType.ADMIN,
            None,
            admin_config.beneficiary_email,
            admin_config.beneficiary_name or ADMIN_DISPLAY_NAME,
            admin_config.percent,
        )
    )
    return records


def _vendor_node(row: Vendor) -> VendorNode:
    return VendorNode(
        id=int(row.id),
        name=row.name or "",
        email=row.email or "",
        commission_percent=bps_to_percent(row.commission_bps),
        manager_id=int(row.manager_id) if row.manager_id is not None else None,
    )


def load_admin_config() -> AdminCommissionConfig | None:
    row = (
        CommissionConfig.query.filter_by(kind=CommissionConfig.KIND_ADMIN, is_active=True)
        .order_by(CommissionConfig.id.desc())
        .first()
    )
    if row is None:
        return None
    return AdminCommissionConfig(
        percent=bps_to_percent(row.percent_bps),
        beneficiary_email=row.beneficiary_email or "",
        beneficiary_name=row.beneficiary_name or ADMIN_DISPLAY_NAME,
        active=bool(row.is_active),
    )


def installment_parcel_ref(installment_id: int) -> str:
    return f"installment:{int(installment_id)}"


def sale_parcel_ref(sale_id: int) -> str:
    return f"sale:{int(sale_id)}"


def _installment_input(row: SaleInstallment) -> InstallmentInput:
    return InstallmentInput(
        parcel_ref=installment_parcel_ref(row.id),
        sale_id=int(row.sale_id),
        installment_id=int(row.id),
        amount=money_minor_to_major(row.amount_minor),
        due_date=row.due_date,
    )


def _sale_input(sale: Sale) -> InstallmentInput:
    confirmed = sale.confirmed_at or sale.created_at or datetime.utcnow()
    return InstallmentInput(
        parcel_ref=sale_parcel_ref(sale.id),
        sale_id=int(sale.id),
        installment_id=None,
        amount=money_minor_to_major(sale.total_minor),
        due_date=confirmed.date(),
    )


def _resolve_hierarchy(sale: Sale) -> tuple[VendorNode, VendorNode | None]:
    vendor_row = db.session.get(Vendor, int(sale.vendor_id)) if sale.vendor_id is not None else None
    if vendor_row is None:
        raise ValidationError("vendor not found", sale_id=int(sale.id))
    manager = None
    if vendor_row.manager_id is not None:
        manager_row = db.session.get(Vendor, int(vendor_row.manager_id))
        if manager_row is not None:
            manager = _vendor_node(manager_row)
    return _vendor_node(vendor_row), manager


def _to_row(record: AllocatedCommission) -> CommissionRecord:
    return CommissionRecord(
        parcel_ref=record.parcel_ref,
        beneficiary_type=record.beneficiary_type,
        beneficiary_id=record.beneficiary_id,
        beneficiary_email=record.beneficiary_email,
        beneficiary_name=record.beneficiary_name,
        origin_vendor_id=record.origin_vendor_id,
        sale_id=record.sale_id,
        installment_id=record.installment_id,
        sale_amount_minor=money_major_to_minor(record.sale_amount),
        percent_bps=percent_to_bps(record.percent),
        amount_minor=money_major_to_minor(record.amount),
        due_date=record.due_date,
        status=record.status,
    )


def _existing_beneficiaries(parcel_ref: str) -> set[str]:
    return {row.beneficiary_type for row in CommissionRecord.query.filter_by(parcel_ref=parcel_ref).all()}


def _persist(parcel: InstallmentInput, sale: Sale, admin_config: AdminCommissionConfig | None) -> AllocationOutcome:
    vendor, manager = _resolve_hierarchy(sale)
    allocated = allocate_installment(parcel, vendor=vendor, manager=manager, admin_config=admin_config)

    existing = _existing_beneficiaries(parcel.parcel_ref)
    outcome = AllocationOutcome(records=[])
    for record in allocated:
        if record.beneficiary_type in existing:
            outcome.skipped += 1
            continue
        row = _to_row(record)
        try:
            with db.session.begin_nested():
                db.session.add(row)
                db.session.flush()
        except IntegrityError:
            # Another worker inserted the same parcel/beneficiary first.
            outcome.skipped += 1
            logger.info(
                "commission_allocation_duplicate parcel=%s beneficiary=%s",
                parcel.parcel_ref,
                record.beneficiary_type,
            )
            continue
        outcome.created += 1
        outcome.records.append(row)
    db.session.commit()
    return outcome


def allocate_for_installment(
    installment: SaleInstallment,
    *,
    admin_config: AdminCommissionConfig | None = None,
) -> AllocationOutcome:
    """Insert-or-skip the commission rows of one installment."""
    config = admin_config if admin_config is not None else load_admin_config()
    return _persist(_installment_input(installment), installment.sale, config)


def allocate_for_sale(sale: Sale, *, admin_config: AdminCommissionConfig | None = None) -> AllocationOutcome:
    """Sales without installments are allocated as a single parcel."""
    config = admin_config if admin_config is not None else load_admin_config()
    return _persist(_sale_input(sale), sale, config)


def _pending_parcels(limit: int | None) -> list[tuple[InstallmentInput, Sale]]:
    """Confirmed parcels with no commission rows yet; ``limit`` caps the whole run."""
    remaining = int(limit) if limit else None

    allocated_installment = exists().where(CommissionRecord.installment_id == SaleInstallment.id)
    installments = (
        SaleInstallment.query.join(Sale, Sale.id == SaleInstallment.sale_id)
        .filter(Sale.status.in_(SaleStatus.COMMISSIONABLE))
        .filter(~allocated_installment)
        .order_by(SaleInstallment.id.asc())
    )
    if remaining is not None:
        installments = installments.limit(remaining)
    parcels = [(_installment_input(row), row.sale) for row in installments.all()]
    if remaining is not None:
        remaining -= len(parcels)
        if remaining <= 0:
            return parcels

    allocated_sale = exists().where(
        CommissionRecord.sale_id == Sale.id,
        CommissionRecord.installment_id.is_(None),
    )
    bare_sales = (
        Sale.query.filter(Sale.status.in_(SaleStatus.COMMISSIONABLE))
        .filter(~Sale.installments.any())
        .filter(~allocated_sale)
        .order_by(Sale.id.asc())
    )
    if remaining is not None:
        bare_sales = bare_sales.limit(remaining)
    parcels.extend((_sale_input(sale), sale) for sale in bare_sales.all())
    return parcels


def backfill_commissions(limit: int | None = None) -> dict:
    """Allocate every confirmed parcel that still lacks commission rows.

    Per-parcel failures are logged and reported; the sweep keeps going.
    """
    started = datetime.utcnow()
    admin_config = load_admin_config()
    if admin_config is None:
        logger.warning("commission_backfill_admin_config_missing")

    summary = {"processed": 0, "created": 0, "skipped": 0, "failed": 0, "errors": []}
    for parcel, sale in _pending_parcels(limit):
        summary["processed"] += 1
        try:
            outcome = _persist(parcel, sale, admin_config)
        except (ConfigurationError, ValidationError) as exc:
            db.session.rollback()
            summary["failed"] += 1
            summary["errors"].append({"parcel_ref": parcel.parcel_ref, "error": exc.code, "message": exc.message})
            logger.warning("commission_allocation_failed parcel=%s err=%s", parcel.parcel_ref, exc.message)
            continue
        summary["created"] += outcome.created
        summary["skipped"] += outcome.skipped

    summary["ok"] = summary["failed"] == 0
    error_text = "; ".join(f"{e['parcel_ref']}:{e['error']}" for e in summary["errors"][:20]) or None
    record_job_run(
        job_name="commission_backfill",
        ok=summary["ok"],
        started_at=started,
        processed=summary["processed"],
        created=summary["created"],
        skipped=summary["skipped"],
        error=error_text,
    )
    logger.info(
        "commission_backfill_done processed=%s created=%s skipped=%s failed=%s",
        summary["processed"],
        summary["created"],
        summary["skipped"],
        summary["failed"],
    )
    return summary


def build_installment_plan(total, term: str, start: date) -> list[PlannedInstallment]:
    offsets = BILLING_TERMS.get((term or "").strip())
    if offsets is None:
        raise ValidationError("unknown billing term", term=term)
    total_minor = money_major_to_minor(total)
    if total_minor < 0:
        raise ValidationError("sale total must not be negative")

    count = len(offsets)
    base = total_minor // count
    plan = []
    for index, days in enumerate(offsets, start=1):
        amount_minor = base
        if index == count:
            amount_minor = total_minor - base * (count - 1)
        plan.append(
            PlannedInstallment(
                number=index,
                total_count=count,
                amount=money_minor_to_major(amount_minor),
                due_date=start + timedelta(days=days),
            )
        )
    return plan


def schedule_installments(sale: Sale, *, term: str | None = None, start: date | None = None) -> list[SaleInstallment]:
    if sale.installments:
        return list(sale.installments)
    billing_term = term or sale.billing_term or "30"
    start_date = start or (sale.confirmed_at or datetime.utcnow()).date()
    rows = []
    for planned in build_installment_plan(money_minor_to_major(sale.total_minor), billing_term, start_date):
        row = SaleInstallment(
            sale_id=int(sale.id),
            number=planned.number,
            total_count=planned.total_count,
            amount_minor=money_major_to_minor(planned.amount),
            due_date=planned.due_date,
        )
        db.session.add(row)
        rows.append(row)
    sale.billing_term = billing_term
    db.session.commit()
    return rows


def confirm_installment_payment(installment: SaleInstallment, *, paid_at: datetime | None = None) -> AllocationOutcome:
    """Mark an installment paid and allocate its commissions."""
    sale = installment.sale
    if sale is None or sale.status not in SaleStatus.COMMISSIONABLE:
        raise ValidationError("sale is not confirmed", installment_id=int(installment.id))
    if not installment.is_paid:
        installment.status = SaleInstallment.STATUS_PAID
        installment.paid_at = paid_at or datetime.utcnow()
        if all(row.is_paid for row in sale.installments):
            sale.status = SaleStatus.PAID
        db.session.commit()
        logger.info("installment_paid installment=%s sale=%s", installment.id, sale.id)
    return allocate_for_installment(installment)
