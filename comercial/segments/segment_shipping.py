from flask import Blueprint, jsonify, request

from comercial.errors import ValidationError
from comercial.services.shipping_boxes import BOX_TABLE, pack_weight

shipping_bp = Blueprint("shipping_bp", __name__, url_prefix="/api/shipping")


@shipping_bp.get("/boxes")
def list_boxes():
    return jsonify({"ok": True, "items": [box.to_dict() for box in BOX_TABLE]}), 200


@shipping_bp.post("/boxes")
def pack_boxes():
    payload = request.get_json(silent=True) or {}
    if payload.get("weight_kg") in (None, ""):
        raise ValidationError("weight_kg is required")
    result = pack_weight(payload.get("weight_kg"))
    return jsonify({"ok": True, **result.to_dict()}), 200
