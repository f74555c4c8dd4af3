from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
BPS_SCALE = Decimal("10000")


def to_decimal(value: int | float | str | Decimal | None) -> Decimal:
    """Parse a money/percent value without float artifacts."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip().replace(",", "."))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"invalid_decimal {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"invalid_decimal {value!r}")
    return result


def round_money(value: int | float | str | Decimal | None) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: int | float | str | Decimal | None, percent: int | float | str | Decimal | None) -> Decimal:
    """round_half_up(amount * percent / 100, 2)"""
    raw = to_decimal(amount) * to_decimal(percent) / HUNDRED
    return raw.quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_percent(percent: int | float | str | Decimal | None) -> Decimal:
    value = to_decimal(percent)
    if value < 0:
        return Decimal("0")
    if value > HUNDRED:
        return HUNDRED
    return value


def money_major_to_minor(amount: int | float | str | Decimal | None) -> int:
    minor = (to_decimal(amount) * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)


def money_minor_to_major(minor: int | None) -> Decimal:
    return (Decimal(int(minor or 0)) / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_to_bps(percent: int | float | str | Decimal | None) -> int:
    bps = (to_decimal(percent) * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(bps)


def bps_to_percent(bps: int | None) -> Decimal:
    return Decimal(int(bps or 0)) / HUNDRED
