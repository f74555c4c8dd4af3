from __future__ import annotations

from datetime import date

from flask import Blueprint, Response, jsonify, request

from comercial.errors import NotFoundError, ValidationError
from comercial.extensions import db
from comercial.models import PaymentBatch, SaleInstallment
from comercial.services.commission_service import allocate_for_installment, backfill_commissions, confirm_installment_payment
from comercial.services.commission_status_service import (
    cancel_commission,
    release_commission,
    release_due_commissions,
    release_policy_from_env,
)
from comercial.services.payment_batch_service import (
    create_payment_batch,
    export_batch_csv,
    get_payment_batch,
    list_payment_batches,
    settle_payment_batch,
    summarize_released,
)
from comercial.utils.jwt_utils import ROLE_ADMIN, decode_token, get_bearer_token

commissions_admin_bp = Blueprint("commissions_admin_bp", __name__, url_prefix="/api/admin/commissions")


def _current_claims() -> dict | None:
    token = get_bearer_token(request.headers.get("Authorization", ""))
    if not token:
        return None
    return decode_token(token)


def _is_admin(claims: dict | None) -> bool:
    if not claims:
        return False
    return (str(claims.get("role") or "")).strip().lower() == ROLE_ADMIN


@commissions_admin_bp.before_request
def _require_admin():
    claims = _current_claims()
    if claims is None:
        return jsonify({"ok": False, "error": "Unauthorized", "message": "Bearer token required", "status": 401}), 401
    if not _is_admin(claims):
        return jsonify({"ok": False, "error": "Forbidden", "message": "Admin role required", "status": 403}), 403
    return None


def _actor() -> dict:
    claims = _current_claims() or {}
    return {"type": "admin", "id": claims.get("sub")}


def _installment_or_404(installment_id: int) -> SaleInstallment:
    row = db.session.get(SaleInstallment, int(installment_id))
    if row is None:
        raise NotFoundError("installment not found", installment_id=int(installment_id))
    return row


def _parse_date(value) -> date | None:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError("as_of must be YYYY-MM-DD", as_of=text) from exc


@commissions_admin_bp.post("/allocate/<int:installment_id>")
def allocate_installment_commissions(installment_id: int):
    outcome = allocate_for_installment(_installment_or_404(installment_id))
    return jsonify({"ok": True, **outcome.to_dict()}), 200


@commissions_admin_bp.post("/installments/<int:installment_id>/confirm-payment")
def confirm_payment(installment_id: int):
    installment = _installment_or_404(installment_id)
    outcome = confirm_installment_payment(installment)
    return jsonify({"ok": True, "installment": installment.to_dict(), **outcome.to_dict()}), 200


@commissions_admin_bp.post("/backfill")
def run_backfill():
    payload = request.get_json(silent=True) or {}
    limit = payload.get("limit")
    try:
        limit = int(limit) if limit is not None else None
    except (TypeError, ValueError) as exc:
        raise ValidationError("limit must be an integer") from exc
    summary = backfill_commissions(limit=limit)
    return jsonify(summary), 200


@commissions_admin_bp.post("/release")
def run_release():
    payload = request.get_json(silent=True) or {}
    summary = release_due_commissions(as_of=_parse_date(payload.get("as_of")), policy=release_policy_from_env())
    return jsonify({"ok": True, **summary}), 200


@commissions_admin_bp.post("/<int:commission_id>/release")
def release_one(commission_id: int):
    payload = request.get_json(silent=True) or {}
    record = release_commission(commission_id, actor=_actor(), reason=str(payload.get("reason") or "manual_release"))
    return jsonify({"ok": True, "commission": record.to_dict()}), 200


@commissions_admin_bp.post("/<int:commission_id>/cancel")
def cancel_one(commission_id: int):
    payload = request.get_json(silent=True) or {}
    record = cancel_commission(commission_id, actor=_actor(), reason=str(payload.get("reason") or ""))
    return jsonify({"ok": True, "commission": record.to_dict()}), 200


@commissions_admin_bp.get("/released-summary")
def released_summary():
    period = (request.args.get("period") or "").strip() or None
    return jsonify({"ok": True, "period": period, "items": summarize_released(period)}), 200


@commissions_admin_bp.post("/batches")
def create_batch():
    payload = request.get_json(silent=True) or {}
    batch = create_payment_batch(
        str(payload.get("beneficiary_email") or ""),
        str(payload.get("period") or ""),
        payload.get("reference"),
        created_by=_actor().get("id"),
    )
    return jsonify({"ok": True, "batch": batch.to_dict(include_items=True)}), 201


@commissions_admin_bp.get("/batches")
def list_batches():
    status = (request.args.get("status") or "").strip() or None
    return jsonify({"ok": True, "items": [b.to_dict() for b in list_payment_batches(status)]}), 200


@commissions_admin_bp.post("/batches/<int:batch_id>/settle")
def settle_batch(batch_id: int):
    batch = settle_payment_batch(batch_id, actor=_actor())
    return jsonify({"ok": True, "batch": batch.to_dict(include_items=True)}), 200


@commissions_admin_bp.get("/batches/<int:batch_id>/export.csv")
def export_batch(batch_id: int):
    batch: PaymentBatch = get_payment_batch(batch_id)
    body = export_batch_csv(batch)
    filename = f"lote-comissoes-{batch.id}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
