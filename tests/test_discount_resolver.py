from __future__ import annotations

import os
import unittest
from decimal import Decimal
from unittest import mock

from comercial.errors import ValidationError
from comercial.services.discount_service import (
    CartLineItem,
    CustomerProfile,
    DiscountConfig,
    DiscountType,
    ResellerTier,
    categorize_product,
    discount_config_from_env,
    parse_tiers,
    reseller_tier_for,
    reseller_tier_progress,
    resolve_discount,
)


def _cart(*prices, title="Livro"):
    return [CartLineItem(product_id=f"p{i}", title=title, unit_price=Decimal(str(p))) for i, p in enumerate(prices)]


RESELLER = CustomerProfile(customer_type="REVENDEDOR")


class ResellerTierTestCase(unittest.TestCase):
    def test_650_lands_on_prata(self):
        result = resolve_discount(RESELLER, _cart("650.00"))
        self.assertEqual(result.discount_type, DiscountType.RESELLER_TIER)
        self.assertEqual(result.tier_label, "Prata")
        self.assertEqual(result.percent, Decimal("25"))
        self.assertEqual(result.amount, Decimal("162.50"))
        self.assertEqual(result.total, Decimal("487.50"))

    def test_threshold_ties_take_the_higher_tier(self):
        cases = {
            "299.89": (DiscountType.NONE, Decimal("0")),
            "299.90": (DiscountType.RESELLER_TIER, Decimal("20")),
            "499.89": (DiscountType.RESELLER_TIER, Decimal("20")),
            "499.90": (DiscountType.RESELLER_TIER, Decimal("25")),
            "699.90": (DiscountType.RESELLER_TIER, Decimal("30")),
            "5000": (DiscountType.RESELLER_TIER, Decimal("30")),
        }
        for value, (kind, percent) in cases.items():
            result = resolve_discount(RESELLER, _cart(value))
            self.assertEqual(result.discount_type, kind, value)
            self.assertEqual(result.percent, percent, value)

    def test_percent_is_monotonic_in_cart_value(self):
        previous = Decimal("0")
        for cents in range(0, 90000, 1370):
            value = Decimal(cents) / 100
            result = resolve_discount(RESELLER, _cart(value))
            self.assertGreaterEqual(result.percent, previous, str(value))
            previous = result.percent

    def test_tier_helpers(self):
        self.assertIsNone(reseller_tier_for("100"))
        self.assertEqual(reseller_tier_for("699.90").label, "Ouro")

        progress = reseller_tier_progress("400")
        self.assertEqual(progress.current.label, "Bronze")
        self.assertEqual(progress.next_tier.label, "Prata")
        self.assertEqual(progress.missing, Decimal("99.90"))
        self.assertEqual(progress.progress_percent, Decimal("80.02"))

        top = reseller_tier_progress("700")
        self.assertEqual(top.current.label, "Ouro")
        self.assertIsNone(top.next_tier)
        self.assertEqual(top.missing, Decimal("0"))

    def test_tiers_must_ascend(self):
        with self.assertRaises(ValidationError):
            DiscountConfig(
                reseller_tiers=(
                    ResellerTier("A", Decimal("500"), Decimal("20")),
                    ResellerTier("B", Decimal("300"), Decimal("25")),
                )
            )
        with self.assertRaises(ValidationError):
            DiscountConfig(
                reseller_tiers=(
                    ResellerTier("A", Decimal("100"), Decimal("20")),
                    ResellerTier("B", Decimal("300"), Decimal("20")),
                )
            )

    def test_custom_tiers_are_input_data(self):
        config = DiscountConfig(reseller_tiers=(ResellerTier("Único", Decimal("100"), Decimal("10")),))
        result = resolve_discount(RESELLER, _cart("150"), config)
        self.assertEqual(result.tier_label, "Único")
        self.assertEqual(result.amount, Decimal("15.00"))


class PrecedenceTestCase(unittest.TestCase):
    def test_promotional_applies_per_line_item(self):
        profile = CustomerProfile(customer_type="ADVEC SEDE", special_discount_percent=Decimal("10"))
        items = [
            CartLineItem("a", "O Evangelho de João - Milagre do Novo Nascimento", Decimal("20.00"), 2),
            CartLineItem("b", "Bíblia Sagrada", Decimal("100.00"), 1),
        ]
        result = resolve_discount(profile, items)
        self.assertEqual(result.discount_type, DiscountType.PROMOTIONAL)
        self.assertEqual(result.subtotal, Decimal("140.00"))
        self.assertEqual(result.amount, Decimal("20.00"))
        self.assertEqual(result.percent, Decimal("14.29"))
        self.assertEqual(result.promotional_items, ("O Evangelho de João - Milagre do Novo Nascimento",))

    def test_promotional_by_product_id_and_flag(self):
        profile = CustomerProfile(customer_type="ADVEC")
        items = [
            CartLineItem("gid://shopify/Product/8053891186863", "Epístola", Decimal("10.00")),
            CartLineItem("x", "Outro", Decimal("10.00"), promotional=True),
        ]
        result = resolve_discount(profile, items)
        self.assertEqual(result.amount, Decimal("10.00"))
        self.assertEqual(len(result.promotional_items), 2)

    def test_promotional_without_matching_item_falls_through(self):
        profile = CustomerProfile(customer_type="ADVEC", special_discount_percent=Decimal("10"))
        result = resolve_discount(profile, _cart("200"))
        self.assertEqual(result.discount_type, DiscountType.SPECIAL_VENDOR)
        self.assertEqual(result.amount, Decimal("20.00"))

        bare = resolve_discount(CustomerProfile(customer_type="ADVEC"), _cart("200"))
        self.assertEqual(bare.discount_type, DiscountType.NONE)

    def test_promotional_base_percent_for_other_items(self):
        config = DiscountConfig(promotional_base_percent=Decimal("40"))
        profile = CustomerProfile(customer_type="ADVEC")
        items = [
            CartLineItem("a", "Carta aos Efésios", Decimal("10.00")),
            CartLineItem("b", "Outro livro", Decimal("10.00")),
        ]
        result = resolve_discount(profile, items, config)
        self.assertEqual(result.amount, Decimal("9.00"))
        self.assertEqual(result.percent, Decimal("45.00"))

    def test_reseller_beats_special_vendor(self):
        profile = CustomerProfile(customer_type="REVENDEDOR", special_discount_percent=Decimal("40"))
        self.assertEqual(resolve_discount(profile, _cart("650")).discount_type, DiscountType.RESELLER_TIER)
        below = resolve_discount(profile, _cart("100"))
        self.assertEqual(below.discount_type, DiscountType.SPECIAL_VENDOR)
        self.assertEqual(below.amount, Decimal("40.00"))

    def test_setup_tiers_for_onboarded_church(self):
        profile = CustomerProfile(customer_type="IGREJA CNPJ", onboarding_complete=True)
        cases = {"100": ("Básico", "20"), "301": ("Avançado", "25"), "600": ("Premium", "30")}
        for value, (label, percent) in cases.items():
            result = resolve_discount(profile, _cart(value))
            self.assertEqual(result.discount_type, DiscountType.SETUP, value)
            self.assertEqual(result.tier_label, label)
            self.assertEqual(result.percent, Decimal(percent))

        not_onboarded = CustomerProfile(customer_type="IGREJA CPF", special_discount_percent=Decimal("12"))
        result = resolve_discount(not_onboarded, _cart("200"))
        self.assertEqual(result.discount_type, DiscountType.SPECIAL_VENDOR)
        self.assertEqual(result.amount, Decimal("24.00"))

    def test_special_vendor_beats_b2b(self):
        profile = CustomerProfile(special_discount_percent=Decimal("5"), b2b_discount_percent=Decimal("8"))
        self.assertEqual(resolve_discount(profile, _cart("1000")).discount_type, DiscountType.SPECIAL_VENDOR)

    def test_b2b_bracket(self):
        profile = CustomerProfile(b2b_discount_percent=Decimal("8"), revenue_bracket="R$ 50k-100k")
        result = resolve_discount(profile, _cart("1000"))
        self.assertEqual(result.discount_type, DiscountType.B2B_BRACKET)
        self.assertEqual(result.amount, Decimal("80.00"))
        self.assertEqual(result.tier_label, "R$ 50k-100k")

    def test_representative_category_blend(self):
        profile = CustomerProfile(
            customer_type="REPRESENTANTE",
            category_percents={"biblias": Decimal("10"), "revistas_ebd": Decimal("30")},
        )
        items = [
            CartLineItem("b", "Bíblia Sagrada", Decimal("100.00")),
            CartLineItem("r", "Revista EBD Adultos", Decimal("10.00"), 5),
            CartLineItem("c", "Caneca", Decimal("20.00")),
        ]
        result = resolve_discount(profile, items)
        self.assertEqual(result.discount_type, DiscountType.REPRESENTATIVE_CATEGORY)
        self.assertEqual(result.amount, Decimal("25.00"))
        self.assertEqual(result.percent, Decimal("14.71"))
        self.assertEqual([line.category for line in result.breakdown], ["biblias", "revistas_ebd", "outros"])
        self.assertEqual(sum(line.amount for line in result.breakdown), result.amount)

    def test_explicit_category_tag_wins_over_keywords(self):
        profile = CustomerProfile(customer_type="REPRESENTANTE", category_percents={"kits": Decimal("15")})
        items = [CartLineItem("k", "Bíblia", Decimal("100.00"), category="kits")]
        self.assertEqual(resolve_discount(profile, items).amount, Decimal("15.00"))

    def test_representative_without_positive_percent_is_none(self):
        profile = CustomerProfile(customer_type="REPRESENTANTE", category_percents={"biblias": Decimal("0")})
        self.assertEqual(resolve_discount(profile, _cart("100")).discount_type, DiscountType.NONE)


class ResolverGuaranteesTestCase(unittest.TestCase):
    def test_zero_value_cart_is_none(self):
        for items in ([], _cart("0"), [CartLineItem("a", "Livro", Decimal("10"), 0)]):
            result = resolve_discount(RESELLER, items)
            self.assertEqual(result.discount_type, DiscountType.NONE)
            self.assertEqual(result.amount, Decimal("0"))

    def test_negative_input_rejected(self):
        with self.assertRaises(ValidationError):
            resolve_discount(RESELLER, _cart("-1"))
        with self.assertRaises(ValidationError):
            resolve_discount(RESELLER, [CartLineItem("a", "Livro", Decimal("10"), -1)])

    def test_amount_and_percent_are_bounded(self):
        profiles = [
            RESELLER,
            CustomerProfile(customer_type="ADVEC"),
            CustomerProfile(special_discount_percent=Decimal("150")),
            CustomerProfile(b2b_discount_percent=Decimal("100")),
            CustomerProfile(customer_type="REPRESENTANTE", category_percents={"livros": Decimal("120")}),
            CustomerProfile(customer_type="IGREJA CPF", onboarding_complete=True),
        ]
        carts = [_cart("0.01"), _cart("299.90", "0.33"), _cart("1234.56", title="Carta aos Efésios")]
        for profile in profiles:
            for items in carts:
                result = resolve_discount(profile, items)
                self.assertIn(result.discount_type, DiscountType.ALL)
                self.assertGreaterEqual(result.amount, Decimal("0"))
                self.assertLessEqual(result.amount, result.subtotal)
                self.assertGreaterEqual(result.percent, Decimal("0"))
                self.assertLessEqual(result.percent, Decimal("100"))


class CategorizerAndConfigTestCase(unittest.TestCase):
    def test_categorize_product(self):
        self.assertEqual(categorize_product("Kit Professor EBD"), "kits")
        self.assertEqual(categorize_product("Revista Lições Bíblicas Jovens"), "revistas_ebd")
        self.assertEqual(categorize_product("Bíblia de Estudo"), "biblias")
        self.assertEqual(categorize_product("Histórias Infantis"), "infantil")
        self.assertEqual(categorize_product("Livro Devocional"), "livros")
        self.assertEqual(categorize_product("Camiseta"), "outros")
        self.assertEqual(categorize_product(None), "outros")

    def test_parse_tiers(self):
        tiers = parse_tiers("A:100:10, B:200.50:15")
        self.assertEqual(tiers[1].threshold, Decimal("200.50"))
        with self.assertRaises(ValidationError):
            parse_tiers("bad")
        with self.assertRaises(ValidationError):
            parse_tiers("")

    def test_config_from_env(self):
        with mock.patch.dict(os.environ, {"RESELLER_TIERS": "Bronze:100:10,Prata:200:20,Ouro:300:30"}):
            config = discount_config_from_env()
        self.assertEqual(config.reseller_tiers[0].threshold, Decimal("100"))
        with mock.patch.dict(os.environ, {"RESELLER_TIERS": ""}):
            self.assertEqual(discount_config_from_env().reseller_tiers[1].label, "Prata")


if __name__ == "__main__":
    unittest.main()
