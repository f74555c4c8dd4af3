"""CPF / CNPJ helpers (Brazilian taxpayer documents).

Both documents end with two modulo-11 check digits. Sequences made of a
single repeated digit are rejected before any checksum runs.
"""
from __future__ import annotations

import re

CPF_LENGTH = 11
CNPJ_LENGTH = 14

KIND_CPF = "cpf"
KIND_CNPJ = "cnpj"

_CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_WEIGHTS_2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)

_NON_DIGITS = re.compile(r"[^0-9]")


def clean_document(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def _is_repeated(digits: str) -> bool:
    return len(set(digits)) == 1


def _cpf_check_digit(digits: str, length: int) -> int:
    total = sum(int(d) * (length + 1 - i) for i, d in enumerate(digits[:length]))
    remainder = (total * 10) % 11
    return 0 if remainder == 10 else remainder


def _cnpj_check_digit(digits: str, weights: tuple[int, ...]) -> int:
    total = sum(int(d) * w for d, w in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cpf(value: str | None) -> bool:
    digits = clean_document(value)
    if len(digits) != CPF_LENGTH:
        return False
    if _is_repeated(digits):
        return False
    if _cpf_check_digit(digits, 9) != int(digits[9]):
        return False
    return _cpf_check_digit(digits, 10) == int(digits[10])


def validate_cnpj(value: str | None) -> bool:
    digits = clean_document(value)
    if len(digits) != CNPJ_LENGTH:
        return False
    if _is_repeated(digits):
        return False
    if _cnpj_check_digit(digits, _CNPJ_WEIGHTS_1) != int(digits[12]):
        return False
    return _cnpj_check_digit(digits, _CNPJ_WEIGHTS_2) == int(digits[13])


def validate_cpf_or_cnpj(value: str | None) -> tuple[bool, str | None]:
    digits = clean_document(value)
    if len(digits) == CPF_LENGTH:
        return validate_cpf(digits), KIND_CPF
    if len(digits) == CNPJ_LENGTH:
        return validate_cnpj(digits), KIND_CNPJ
    return False, None


def format_cpf_cnpj(value: str | None) -> str:
    """Mask a (possibly partial) document as 000.000.000-00 or 00.000.000/0000-00."""
    digits = clean_document(value)
    if len(digits) <= CPF_LENGTH:
        parts = [digits[0:3], digits[3:6], digits[6:9]]
        head = ".".join(p for p in parts if p)
        tail = digits[9:11]
        return f"{head}-{tail}" if tail else head
    digits = digits[:CNPJ_LENGTH]
    head = ".".join(p for p in (digits[0:2], digits[2:5], digits[5:8]) if p)
    branch = digits[8:12]
    tail = digits[12:14]
    out = f"{head}/{branch}"
    return f"{out}-{tail}" if tail else out


def document_error(value: str | None) -> str | None:
    """User-facing error for a document field; None means acceptable (or empty)."""
    digits = clean_document(value)
    if not digits:
        return None
    if len(digits) == CPF_LENGTH:
        return None if validate_cpf(digits) else "CPF inválido"
    if len(digits) == CNPJ_LENGTH:
        return None if validate_cnpj(digits) else "CNPJ inválido"
    if len(digits) < CNPJ_LENGTH:
        return "Documento incompleto"
    return "Documento com muitos dígitos"
