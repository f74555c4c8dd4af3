from flask import Blueprint, jsonify, request

from comercial.utils.documents import (
    clean_document,
    document_error,
    format_cpf_cnpj,
    validate_cpf_or_cnpj,
)

documents_bp = Blueprint("documents_bp", __name__, url_prefix="/api/documents")


@documents_bp.post("/validate")
def validate_document():
    payload = request.get_json(silent=True) or {}
    raw = str(payload.get("document") or "")
    valid, kind = validate_cpf_or_cnpj(raw)
    return jsonify(
        {
            "ok": True,
            "document": clean_document(raw),
            "formatted": format_cpf_cnpj(raw),
            "valid": bool(valid),
            "kind": kind,
            "error": document_error(raw),
        }
    ), 200
