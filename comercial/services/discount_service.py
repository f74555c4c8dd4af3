"""Cart discount resolution.

Exactly one discount applies per evaluation. Candidates are tried in a fixed
order and the first one that yields a discount wins:

    promotional -> reseller_tier -> setup -> special_vendor
    -> b2b_bracket -> representative_category -> none

Thresholds, percentages and promotional SKUs arrive through ``DiscountConfig``;
nothing here reads configuration or the database.
"""
from __future__ import annotations

import os
import unicodedata
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping

from comercial.errors import ValidationError
from comercial.utils.money import (
    HUNDRED,
    bps_to_percent,
    clamp_percent,
    percent_of,
    round_money,
    to_decimal,
)

ZERO = Decimal("0")
_PERCENT_PLACES = Decimal("0.01")


class DiscountType:
    NONE = "none"
    PROMOTIONAL = "promotional"
    RESELLER_TIER = "reseller_tier"
    SETUP = "setup"
    SPECIAL_VENDOR = "special_vendor"
    B2B_BRACKET = "b2b_bracket"
    REPRESENTATIVE_CATEGORY = "representative_category"

    ALL = (
        NONE,
        PROMOTIONAL,
        RESELLER_TIER,
        SETUP,
        SPECIAL_VENDOR,
        B2B_BRACKET,
        REPRESENTATIVE_CATEGORY,
    )


@dataclass(frozen=True)
class ResellerTier:
    label: str
    threshold: Decimal
    percent: Decimal

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "threshold": str(self.threshold),
            "percent": str(self.percent),
        }


DEFAULT_RESELLER_TIERS: tuple[ResellerTier, ...] = (
    ResellerTier("Bronze", Decimal("299.90"), Decimal("20")),
    ResellerTier("Prata", Decimal("499.90"), Decimal("25")),
    ResellerTier("Ouro", Decimal("699.90"), Decimal("30")),
)

# Church accounts that finished onboarding. The first bracket starts at one cent.
DEFAULT_SETUP_TIERS: tuple[ResellerTier, ...] = (
    ResellerTier("Básico", Decimal("0.01"), Decimal("20")),
    ResellerTier("Avançado", Decimal("301"), Decimal("25")),
    ResellerTier("Premium", Decimal("501"), Decimal("30")),
)

DEFAULT_PROMOTIONAL_PRODUCT_IDS = frozenset(
    {
        "gid://shopify/Product/8053892432047",
        "gid://shopify/Product/8053891186863",
    }
)

DEFAULT_PROMOTIONAL_TITLE_TERMS: tuple[str, ...] = (
    "evangelho de joão",
    "evangelho de joao",
    "milagre do novo nascimento",
    "carta aos efésios",
    "carta aos efesios",
)


def validate_tiers(tiers: Iterable[ResellerTier], *, name: str = "tiers") -> tuple[ResellerTier, ...]:
    """Tiers must be strictly ascending in both threshold and percent."""
    rows = tuple(tiers)
    previous: ResellerTier | None = None
    for tier in rows:
        if tier.threshold <= 0:
            raise ValidationError(f"{name} thresholds must be positive", tier=tier.label)
        if tier.percent < 0 or tier.percent > HUNDRED:
            raise ValidationError(f"{name} percent out of range", tier=tier.label)
        if previous is not None:
            if tier.threshold <= previous.threshold or tier.percent <= previous.percent:
                raise ValidationError(f"{name} must be strictly ascending", tier=tier.label)
        previous = tier
    return rows


@dataclass(frozen=True)
class DiscountConfig:
    reseller_tiers: tuple[ResellerTier, ...] = DEFAULT_RESELLER_TIERS
    setup_tiers: tuple[ResellerTier, ...] = DEFAULT_SETUP_TIERS
    promotional_percent: Decimal = Decimal("50")
    promotional_base_percent: Decimal = ZERO
    promotional_product_ids: frozenset = DEFAULT_PROMOTIONAL_PRODUCT_IDS
    promotional_title_terms: tuple[str, ...] = DEFAULT_PROMOTIONAL_TITLE_TERMS

    def __post_init__(self):
        validate_tiers(self.reseller_tiers, name="reseller_tiers")
        validate_tiers(self.setup_tiers, name="setup_tiers")
        for label, value in (
            ("promotional_percent", self.promotional_percent),
            ("promotional_base_percent", self.promotional_base_percent),
        ):
            if value < 0 or value > HUNDRED:
                raise ValidationError(f"{label} out of range", value=str(value))


@dataclass(frozen=True)
class CustomerProfile:
    customer_type: str = ""
    special_discount_percent: Decimal = ZERO
    b2b_discount_percent: Decimal = ZERO
    revenue_bracket: str = ""
    onboarding_complete: bool = False
    category_percents: Mapping[str, Decimal] = field(default_factory=dict)

    @property
    def _kind(self) -> str:
        return (self.customer_type or "").strip().upper()

    @property
    def is_promotional_account(self) -> bool:
        return "ADVEC" in self._kind

    @property
    def is_reseller(self) -> bool:
        return self._kind == "REVENDEDOR"

    @property
    def is_representative(self) -> bool:
        return self._kind == "REPRESENTANTE"

    @property
    def is_church(self) -> bool:
        kind = self._kind
        if "ADVEC" in kind:
            return False
        return "IGREJA" in kind or "CNPJ" in kind or "CPF" in kind


@dataclass(frozen=True)
class CartLineItem:
    product_id: str
    title: str
    unit_price: Decimal
    quantity: int = 1
    category: str | None = None
    promotional: bool = False

    @property
    def line_total(self) -> Decimal:
        return round_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class CategoryDiscountLine:
    product: str
    category: str
    percent: Decimal
    amount: Decimal

    def to_dict(self) -> dict:
        return {
            "product": self.product,
            "category": self.category,
            "percent": str(self.percent),
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class CalculatedDiscount:
    discount_type: str
    percent: Decimal
    amount: Decimal
    subtotal: Decimal
    tier_label: str = ""
    breakdown: tuple[CategoryDiscountLine, ...] = ()
    promotional_items: tuple[str, ...] = ()

    @property
    def total(self) -> Decimal:
        return self.subtotal - self.amount

    def to_dict(self) -> dict:
        return {
            "discount_type": self.discount_type,
            "percent": str(self.percent),
            "amount": str(self.amount),
            "subtotal": str(self.subtotal),
            "total": str(self.total),
            "tier_label": self.tier_label,
            "breakdown": [line.to_dict() for line in self.breakdown],
            "promotional_items": list(self.promotional_items),
        }


@dataclass(frozen=True)
class TierProgress:
    current: ResellerTier | None
    next_tier: ResellerTier | None
    missing: Decimal
    progress_percent: Decimal

    def to_dict(self) -> dict:
        return {
            "current": self.current.to_dict() if self.current else None,
            "next": self.next_tier.to_dict() if self.next_tier else None,
            "missing": str(self.missing),
            "progress_percent": str(self.progress_percent),
        }


CATEGORY_REVISTAS_EBD = "revistas_ebd"
CATEGORY_BIBLIAS = "biblias"
CATEGORY_INFANTIL = "infantil"
CATEGORY_KITS = "kits"
CATEGORY_LIVROS = "livros"
CATEGORY_OUTROS = "outros"

# First matching rule wins; keywords are compared accent-free and lowercased.
_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (CATEGORY_KITS, ("kit ", "kits", "kit-", "combo")),
    (CATEGORY_REVISTAS_EBD, ("revista", "ebd", "licoes biblicas", "escola dominical")),
    (CATEGORY_BIBLIAS, ("biblia",)),
    (CATEGORY_INFANTIL, ("infantil", "crianca", "kids", "juvenil")),
    (CATEGORY_LIVROS, ("livro", "devocional", "evangelho", "carta aos", "estudo")),
)


def _fold(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text or "")
    return "".join(ch for ch in normalized if not unicodedata.combining(ch)).lower()


def categorize_product(title: str | None) -> str:
    folded = f"{_fold(title or '')} "
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in folded for keyword in keywords):
            return category
    return CATEGORY_OUTROS


def _validate_items(items: Iterable[CartLineItem]) -> tuple[CartLineItem, ...]:
    rows = tuple(items or ())
    for item in rows:
        if item.unit_price < 0:
            raise ValidationError("unit_price must not be negative", product=item.product_id)
        if item.quantity < 0:
            raise ValidationError("quantity must not be negative", product=item.product_id)
    return rows


def _weighted_percent(amount: Decimal, subtotal: Decimal) -> Decimal:
    if subtotal <= 0:
        return ZERO
    return (amount / subtotal * HUNDRED).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)


def _tier_for(value: Decimal, tiers: tuple[ResellerTier, ...]) -> ResellerTier | None:
    match = None
    for tier in tiers:
        if value >= tier.threshold:
            match = tier
    return match


def reseller_tier_for(subtotal, tiers: tuple[ResellerTier, ...] = DEFAULT_RESELLER_TIERS) -> ResellerTier | None:
    return _tier_for(to_decimal(subtotal), validate_tiers(tiers, name="reseller_tiers"))


def reseller_tier_progress(subtotal, tiers: tuple[ResellerTier, ...] = DEFAULT_RESELLER_TIERS) -> TierProgress:
    """Current tier plus what is missing to reach the next one."""
    value = round_money(subtotal)
    rows = validate_tiers(tiers, name="reseller_tiers")
    current = _tier_for(value, rows)
    next_tier = next((tier for tier in rows if value < tier.threshold), None)
    if next_tier is None:
        return TierProgress(current=current, next_tier=None, missing=ZERO, progress_percent=HUNDRED)
    missing = round_money(next_tier.threshold - value)
    progress = clamp_percent(value / next_tier.threshold * HUNDRED).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)
    return TierProgress(current=current, next_tier=next_tier, missing=missing, progress_percent=progress)


def _is_promotional_item(item: CartLineItem, config: DiscountConfig) -> bool:
    if item.promotional:
        return True
    if item.product_id and item.product_id in config.promotional_product_ids:
        return True
    title = (item.title or "").lower()
    return any(term in title for term in config.promotional_title_terms)


def _flat(discount_type: str, percent: Decimal, subtotal: Decimal, label: str = "") -> CalculatedDiscount:
    pct = clamp_percent(percent)
    return CalculatedDiscount(
        discount_type=discount_type,
        percent=pct,
        amount=min(percent_of(subtotal, pct), subtotal),
        subtotal=subtotal,
        tier_label=label,
    )


def _promotional(profile, items, subtotal, config) -> CalculatedDiscount | None:
    if not profile.is_promotional_account:
        return None
    flagged = [item for item in items if _is_promotional_item(item, config)]
    if not flagged:
        return None
    amount = ZERO
    for item in items:
        pct = config.promotional_percent if item in flagged else config.promotional_base_percent
        amount += percent_of(item.line_total, pct)
    amount = min(amount, subtotal)
    return CalculatedDiscount(
        discount_type=DiscountType.PROMOTIONAL,
        percent=_weighted_percent(amount, subtotal),
        amount=amount,
        subtotal=subtotal,
        tier_label=f"ADVEC {config.promotional_percent.normalize():f}%",
        promotional_items=tuple(item.title for item in flagged),
    )


def _reseller(profile, subtotal, config) -> CalculatedDiscount | None:
    if not profile.is_reseller:
        return None
    tier = _tier_for(subtotal, config.reseller_tiers)
    if tier is None:
        return None
    return _flat(DiscountType.RESELLER_TIER, tier.percent, subtotal, tier.label)


def _setup(profile, subtotal, config) -> CalculatedDiscount | None:
    if not (profile.is_church and profile.onboarding_complete):
        return None
    tier = _tier_for(subtotal, config.setup_tiers)
    if tier is None:
        return None
    return _flat(DiscountType.SETUP, tier.percent, subtotal, tier.label)


def _representative(profile, items, subtotal) -> CalculatedDiscount | None:
    if not profile.is_representative:
        return None
    percents = {key: clamp_percent(value) for key, value in (profile.category_percents or {}).items()}
    if not any(value > 0 for value in percents.values()):
        return None
    lines = []
    amount = ZERO
    for item in items:
        category = item.category or categorize_product(item.title)
        pct = percents.get(category, ZERO)
        line_amount = percent_of(item.line_total, pct)
        amount += line_amount
        lines.append(CategoryDiscountLine(product=item.title, category=category, percent=pct, amount=line_amount))
    amount = min(amount, subtotal)
    return CalculatedDiscount(
        discount_type=DiscountType.REPRESENTATIVE_CATEGORY,
        percent=_weighted_percent(amount, subtotal),
        amount=amount,
        subtotal=subtotal,
        tier_label="Por Categoria",
        breakdown=tuple(lines),
    )


def resolve_discount(
    profile: CustomerProfile,
    items: Iterable[CartLineItem],
    config: DiscountConfig | None = None,
) -> CalculatedDiscount:
    cfg = config or DiscountConfig()
    rows = _validate_items(items)
    subtotal = sum((item.line_total for item in rows), ZERO)
    if subtotal <= 0:
        return CalculatedDiscount(discount_type=DiscountType.NONE, percent=ZERO, amount=ZERO, subtotal=ZERO)

    result = _promotional(profile, rows, subtotal, cfg)
    if result is None:
        result = _reseller(profile, subtotal, cfg)
    if result is None:
        result = _setup(profile, subtotal, cfg)
    if result is None and profile.special_discount_percent > 0:
        result = _flat(DiscountType.SPECIAL_VENDOR, profile.special_discount_percent, subtotal, "Vendedor")
    if result is None and profile.b2b_discount_percent > 0:
        result = _flat(DiscountType.B2B_BRACKET, profile.b2b_discount_percent, subtotal, profile.revenue_bracket or "B2B")
    if result is None:
        result = _representative(profile, rows, subtotal)
    if result is None:
        result = CalculatedDiscount(discount_type=DiscountType.NONE, percent=ZERO, amount=ZERO, subtotal=subtotal)
    return result


def profile_from_customer(customer) -> CustomerProfile:
    """Read-only view of a CRM ``Customer`` row."""
    return CustomerProfile(
        customer_type=customer.customer_type or "",
        special_discount_percent=bps_to_percent(customer.special_discount_bps),
        b2b_discount_percent=bps_to_percent(customer.b2b_discount_bps),
        revenue_bracket=customer.revenue_bracket or "",
        onboarding_complete=bool(customer.onboarding_complete),
        category_percents={k: bps_to_percent(v) for k, v in customer.category_discount_bps().items()},
    )


def parse_tiers(raw: str) -> tuple[ResellerTier, ...]:
    """Parse ``Label:threshold:percent`` entries separated by commas."""
    tiers = []
    for chunk in (raw or "").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = [p.strip() for p in chunk.split(":")]
        if len(parts) != 3 or not parts[0]:
            raise ValidationError("invalid tier entry", entry=chunk)
        try:
            tiers.append(ResellerTier(parts[0], to_decimal(parts[1]), to_decimal(parts[2])))
        except ValueError as exc:
            raise ValidationError("invalid tier entry", entry=chunk) from exc
    if not tiers:
        raise ValidationError("no tiers configured")
    return validate_tiers(tiers, name="reseller_tiers")


def discount_config_from_env() -> DiscountConfig:
    raw = (os.getenv("RESELLER_TIERS") or "").strip()
    if not raw:
        return DiscountConfig()
    return DiscountConfig(reseller_tiers=parse_tiers(raw))
