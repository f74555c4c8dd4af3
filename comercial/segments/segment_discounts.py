from __future__ import annotations

from flask import Blueprint, jsonify, request

from comercial.errors import NotFoundError, ValidationError
from comercial.extensions import db
from comercial.models import Customer
from comercial.services.discount_service import (
    CartLineItem,
    CustomerProfile,
    discount_config_from_env,
    profile_from_customer,
    reseller_tier_progress,
    resolve_discount,
)
from comercial.utils.money import to_decimal

discounts_bp = Blueprint("discounts_bp", __name__, url_prefix="/api/discounts")


def _decimal_field(data: dict, key: str, default="0"):
    try:
        return to_decimal(data.get(key, default))
    except ValueError as exc:
        raise ValidationError(f"{key} must be numeric") from exc


def _quantity_field(entry: dict, index: int) -> int:
    raw = entry.get("quantity", 1)
    if isinstance(raw, bool):
        raise ValidationError("quantity must be an integer", index=index)
    try:
        value = to_decimal(raw)
    except ValueError as exc:
        raise ValidationError("quantity must be an integer", index=index) from exc
    if value != value.to_integral_value():
        raise ValidationError("quantity must be an integer", index=index)
    return int(value)


def _parse_items(raw) -> list[CartLineItem]:
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")
    items = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError("item must be an object", index=index)
        quantity = _quantity_field(entry, index)
        items.append(
            CartLineItem(
                product_id=str(entry.get("product_id") or ""),
                title=str(entry.get("title") or ""),
                unit_price=_decimal_field(entry, "unit_price"),
                quantity=quantity,
                category=(str(entry.get("category")).strip() or None) if entry.get("category") else None,
                promotional=bool(entry.get("promotional", False)),
            )
        )
    return items


def _parse_profile(raw) -> CustomerProfile:
    data = raw if isinstance(raw, dict) else {}
    categories = data.get("category_percents") or {}
    if not isinstance(categories, dict):
        raise ValidationError("category_percents must be an object")
    return CustomerProfile(
        customer_type=str(data.get("customer_type") or ""),
        special_discount_percent=_decimal_field(data, "special_discount_percent"),
        b2b_discount_percent=_decimal_field(data, "b2b_discount_percent"),
        revenue_bracket=str(data.get("revenue_bracket") or ""),
        onboarding_complete=bool(data.get("onboarding_complete", False)),
        category_percents={str(k): _decimal_field(categories, k) for k in categories},
    )


@discounts_bp.post("/preview")
def preview_discount():
    payload = request.get_json(silent=True) or {}
    customer_id = payload.get("customer_id")
    if customer_id is not None:
        try:
            customer = db.session.get(Customer, int(customer_id))
        except (TypeError, ValueError) as exc:
            raise ValidationError("customer_id must be an integer") from exc
        if customer is None:
            raise NotFoundError("customer not found", customer_id=customer_id)
        profile = profile_from_customer(customer)
    else:
        profile = _parse_profile(payload.get("profile"))

    config = discount_config_from_env()
    result = resolve_discount(profile, _parse_items(payload.get("items") or []), config)
    progress = reseller_tier_progress(result.subtotal, config.reseller_tiers)
    return jsonify(
        {
            "ok": True,
            "discount": result.to_dict(),
            "reseller_progress": progress.to_dict() if profile.is_reseller else None,
        }
    ), 200
