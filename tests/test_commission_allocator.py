from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from comercial.errors import ConfigurationError, ValidationError
from comercial.services.commission_service import (
    AdminCommissionConfig,
    InstallmentInput,
    VendorNode,
    allocate_installment,
    build_installment_plan,
)

MANAGER = VendorNode(id=1, name="Gerente", email="gerente@editora.test", commission_percent=Decimal("10"))
VENDOR = VendorNode(id=2, name="Vendedor", email="vendedor@editora.test", commission_percent=Decimal("5"), manager_id=1)
ADMIN = AdminCommissionConfig(percent=Decimal("1.5"), beneficiary_email="admin@editora.test")


def _installment(amount="1000.00", due=date(2026, 4, 10)):
    return InstallmentInput(
        parcel_ref="installment:7",
        sale_id=3,
        installment_id=7,
        amount=Decimal(amount),
        due_date=due,
    )


class AllocateInstallmentTestCase(unittest.TestCase):
    def test_manager_and_admin_records(self):
        records = allocate_installment(_installment(), vendor=VENDOR, manager=MANAGER, admin_config=ADMIN)
        self.assertEqual([r.beneficiary_type for r in records], ["manager", "admin"])
        manager, admin = records
        self.assertEqual(manager.amount, Decimal("100.00"))
        self.assertEqual(manager.beneficiary_email, "gerente@editora.test")
        self.assertEqual(admin.amount, Decimal("15.00"))
        self.assertEqual(admin.beneficiary_name, "Administrador")
        for record in records:
            self.assertEqual(record.status, "pending")
            self.assertEqual(record.due_date, date(2026, 4, 10))
            self.assertEqual(record.origin_vendor_id, 2)

    def test_vendor_without_manager_gets_admin_only(self):
        lone = VendorNode(id=5, name="Solo", email="solo@editora.test", commission_percent=Decimal("5"))
        records = allocate_installment(_installment(), vendor=lone, manager=None, admin_config=ADMIN)
        self.assertEqual([r.beneficiary_type for r in records], ["admin"])

    def test_manager_must_match_vendor_hierarchy(self):
        other = VendorNode(id=9, name="Outro", email="outro@editora.test", commission_percent=Decimal("10"))
        records = allocate_installment(_installment(), vendor=VENDOR, manager=other, admin_config=ADMIN)
        self.assertEqual([r.beneficiary_type for r in records], ["admin"])

    def test_missing_or_inactive_admin_config_raises(self):
        with self.assertRaises(ConfigurationError):
            allocate_installment(_installment(), vendor=VENDOR, manager=MANAGER, admin_config=None)
        inactive = AdminCommissionConfig(percent=Decimal("1.5"), beneficiary_email="admin@editora.test", active=False)
        with self.assertRaises(ConfigurationError):
            allocate_installment(_installment(), vendor=VENDOR, manager=MANAGER, admin_config=inactive)
        no_email = AdminCommissionConfig(percent=Decimal("1.5"), beneficiary_email="")
        with self.assertRaises(ConfigurationError):
            allocate_installment(_installment(), vendor=VENDOR, manager=MANAGER, admin_config=no_email)

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValidationError):
            allocate_installment(_installment("-1"), vendor=VENDOR, manager=MANAGER, admin_config=ADMIN)

    def test_amount_identity_half_up(self):
        for raw in ("0.01", "333.33", "1234.57", "99999.99"):
            for record in allocate_installment(_installment(raw), vendor=VENDOR, manager=MANAGER, admin_config=ADMIN):
                expected = (Decimal(raw) * record.percent / Decimal("100")).quantize(
                    Decimal("0.01"), rounding=ROUND_HALF_UP
                )
                self.assertEqual(record.amount, expected, raw)
        admin = allocate_installment(_installment("333.33"), vendor=VENDOR, manager=None, admin_config=ADMIN)[-1]
        self.assertEqual(admin.amount, Decimal("5.00"))


class InstallmentPlanTestCase(unittest.TestCase):
    def test_three_installments_remainder_on_last(self):
        plan = build_installment_plan("100.00", "90", date(2026, 1, 1))
        self.assertEqual([p.amount for p in plan], [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")])
        self.assertEqual([p.due_date for p in plan], [date(2026, 1, 31), date(2026, 3, 2), date(2026, 4, 1)])
        self.assertEqual(sum(p.amount for p in plan), Decimal("100.00"))
        self.assertEqual({p.total_count for p in plan}, {3})

    def test_single_and_double_terms(self):
        direct = build_installment_plan("80", "60_direto", date(2026, 1, 1))
        self.assertEqual(len(direct), 1)
        self.assertEqual(direct[0].due_date, date(2026, 3, 2))
        split = build_installment_plan("80", "60_90", date(2026, 1, 1))
        self.assertEqual([p.due_date for p in split], [date(2026, 3, 2), date(2026, 4, 1)])
        self.assertEqual([p.amount for p in split], [Decimal("40.00"), Decimal("40.00")])

    def test_unknown_term_rejected(self):
        with self.assertRaises(ValidationError):
            build_installment_plan("80", "120", date(2026, 1, 1))


if __name__ == "__main__":
    unittest.main()
