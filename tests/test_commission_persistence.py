from __future__ import annotations

import os
import unittest
from datetime import date, datetime
from unittest.mock import patch

from comercial import create_app
from comercial.errors import ConfigurationError, ValidationError
from comercial.extensions import db
from comercial.models import (
    CommissionConfig,
    CommissionRecord,
    Customer,
    CustomerCategoryDiscount,
    JobRun,
    Sale,
    SaleInstallment,
    Vendor,
)
from comercial.services.commission_service import (
    allocate_for_installment,
    allocate_for_sale,
    backfill_commissions,
    confirm_installment_payment,
    load_admin_config,
    schedule_installments,
)
from comercial.services.discount_service import profile_from_customer


class CommissionPersistenceTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._prev_db_uri = os.getenv("SQLALCHEMY_DATABASE_URI")
        os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        cls.app = create_app()
        cls.app.config.update(TESTING=True)

    @classmethod
    def tearDownClass(cls):
        if cls._prev_db_uri is None:
            os.environ.pop("SQLALCHEMY_DATABASE_URI", None)
        else:
            os.environ["SQLALCHEMY_DATABASE_URI"] = cls._prev_db_uri

    def setUp(self):
        self.ctx = self.app.app_context()
        self.ctx.push()
        db.drop_all()
        db.create_all()

    def tearDown(self):
        db.session.remove()
        self.ctx.pop()

    def _seed_hierarchy(self, *, admin=True):
        manager = Vendor(name="Gerente", email="gerente@editora.test", commission_bps=1000, is_manager=True)
        db.session.add(manager)
        db.session.flush()
        vendor = Vendor(name="Vendedor", email="vendedor@editora.test", commission_bps=500, manager_id=manager.id)
        db.session.add(vendor)
        if admin:
            db.session.add(CommissionConfig(kind="admin", percent_bps=150, beneficiary_email="admin@editora.test"))
        db.session.commit()
        return vendor

    def _sale(self, vendor_id, *, total_minor=100000, status="approved", term=None):
        sale = Sale(
            vendor_id=vendor_id,
            subtotal_minor=total_minor,
            total_minor=total_minor,
            status=status,
            billing_term=term,
            confirmed_at=datetime(2026, 3, 1, 12, 0),
        )
        db.session.add(sale)
        db.session.commit()
        return sale

    def test_allocation_is_idempotent(self):
        vendor = self._seed_hierarchy()
        sale = self._sale(vendor.id, term="30")
        installment = schedule_installments(sale)[0]

        first = allocate_for_installment(installment)
        self.assertEqual((first.created, first.skipped), (2, 0))
        second = allocate_for_installment(installment)
        self.assertEqual((second.created, second.skipped), (0, 2))

        rows = CommissionRecord.query.order_by(CommissionRecord.beneficiary_type.asc()).all()
        self.assertEqual([r.beneficiary_type for r in rows], ["admin", "manager"])
        self.assertEqual([r.amount_minor for r in rows], [1500, 10000])
        self.assertEqual({r.parcel_ref for r in rows}, {f"installment:{installment.id}"})
        self.assertEqual({r.status for r in rows}, {"pending"})
        self.assertEqual({r.due_date for r in rows}, {date(2026, 3, 31)})

    def test_duplicate_insert_race_is_skipped(self):
        vendor = self._seed_hierarchy()
        installment = schedule_installments(self._sale(vendor.id, term="30"))[0]
        allocate_for_installment(installment)

        # Rows written by a concurrent worker are invisible to the existence check.
        with patch("comercial.services.commission_service._existing_beneficiaries", return_value=set()):
            outcome = allocate_for_installment(installment)
        self.assertEqual((outcome.created, outcome.skipped), (0, 2))
        self.assertEqual(CommissionRecord.query.count(), 2)

    def test_sale_without_installments_uses_sale_parcel(self):
        vendor = self._seed_hierarchy()
        sale = self._sale(vendor.id)
        outcome = allocate_for_sale(sale)
        self.assertEqual(outcome.created, 2)
        self.assertEqual({r.parcel_ref for r in CommissionRecord.query.all()}, {f"sale:{sale.id}"})

    def test_missing_admin_config_raises_without_rows(self):
        vendor = self._seed_hierarchy(admin=False)
        sale = self._sale(vendor.id, term="30")
        installment = schedule_installments(sale)[0]
        self.assertIsNone(load_admin_config())
        with self.assertRaises(ConfigurationError):
            allocate_for_installment(installment)
        self.assertEqual(CommissionRecord.query.count(), 0)

    def test_backfill_reports_config_errors_and_recovers(self):
        vendor = self._seed_hierarchy(admin=False)
        schedule_installments(self._sale(vendor.id, term="60"))

        summary = backfill_commissions()
        self.assertEqual(summary["processed"], 2)
        self.assertEqual(summary["failed"], 2)
        self.assertFalse(summary["ok"])
        self.assertEqual(summary["errors"][0]["error"], "CONFIGURATION_ERROR")
        run = JobRun.query.filter_by(job_name="commission_backfill").order_by(JobRun.id.desc()).first()
        self.assertFalse(run.ok)

        db.session.add(CommissionConfig(kind="admin", percent_bps=150, beneficiary_email="admin@editora.test"))
        db.session.commit()
        summary = backfill_commissions()
        self.assertTrue(summary["ok"])
        self.assertEqual(summary["created"], 4)
        again = backfill_commissions()
        self.assertEqual((again["processed"], again["created"], again["skipped"]), (0, 0, 0))

    def test_limited_backfill_moves_forward(self):
        vendor = self._seed_hierarchy()
        schedule_installments(self._sale(vendor.id, term="90"))
        self._sale(vendor.id)

        runs = [backfill_commissions(limit=1) for _ in range(4)]
        self.assertEqual([r["processed"] for r in runs], [1, 1, 1, 1])
        self.assertEqual([r["created"] for r in runs], [2, 2, 2, 2])
        self.assertEqual(CommissionRecord.query.count(), 8)
        parcel_refs = {r.parcel_ref for r in CommissionRecord.query.all()}
        self.assertEqual(len(parcel_refs), 4)
        self.assertEqual(backfill_commissions(limit=1)["processed"], 0)

    def test_backfill_continues_past_missing_vendor(self):
        vendor = self._seed_hierarchy()
        schedule_installments(self._sale(vendor.id, term="30"))
        schedule_installments(self._sale(999, term="30"))
        self._sale(vendor.id, status="draft")

        summary = backfill_commissions()
        self.assertEqual(summary["processed"], 2)
        self.assertEqual(summary["created"], 2)
        self.assertEqual(summary["failed"], 1)
        self.assertEqual(summary["errors"][0]["error"], "VALIDATION_ERROR")

    def test_confirm_payment_marks_paid_and_allocates(self):
        vendor = self._seed_hierarchy()
        sale = self._sale(vendor.id, total_minor=90000, term="60")
        first, second = schedule_installments(sale)
        self.assertEqual([first.amount_minor, second.amount_minor], [45000, 45000])

        outcome = confirm_installment_payment(first, paid_at=datetime(2026, 4, 2))
        self.assertEqual(outcome.created, 2)
        self.assertTrue(first.is_paid)
        self.assertEqual(db.session.get(Sale, sale.id).status, "approved")

        confirm_installment_payment(second)
        self.assertEqual(db.session.get(Sale, sale.id).status, "paid")
        self.assertEqual(CommissionRecord.query.count(), 4)

    def test_confirm_payment_requires_confirmed_sale(self):
        vendor = self._seed_hierarchy()
        sale = self._sale(vendor.id, status="draft", term="30")
        installment = schedule_installments(sale)[0]
        with self.assertRaises(ValidationError):
            confirm_installment_payment(installment)
        self.assertEqual(db.session.get(SaleInstallment, installment.id).status, "open")

    def test_profile_from_customer(self):
        customer = Customer(
            name="Livraria Central",
            customer_type="REPRESENTANTE",
            special_discount_bps=250,
            b2b_discount_bps=800,
            onboarding_complete=True,
        )
        customer.category_discounts.append(CustomerCategoryDiscount(category="biblias", percent_bps=1000))
        db.session.add(customer)
        db.session.commit()

        profile = profile_from_customer(db.session.get(Customer, customer.id))
        self.assertTrue(profile.is_representative)
        self.assertEqual(str(profile.special_discount_percent), "2.5")
        self.assertEqual(str(profile.b2b_discount_percent), "8")
        self.assertEqual(str(profile.category_percents["biblias"]), "10")


if __name__ == "__main__":
    unittest.main()
