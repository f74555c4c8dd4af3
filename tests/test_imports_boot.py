from __future__ import annotations

import importlib
import os
import unittest
from unittest.mock import patch

from flask import Flask

from comercial.utils.observability import init_sentry


class ImportsBootTestCase(unittest.TestCase):
    def test_import_create_app(self):
        module = importlib.import_module("comercial")
        create_app = getattr(module, "create_app", None)
        self.assertTrue(callable(create_app))

    def test_import_main_app(self):
        module = importlib.import_module("main")
        app = getattr(module, "app", None)
        self.assertIsNotNone(app)

    def test_import_commission_admin_segment(self):
        module = importlib.import_module("comercial.segments.segment_commissions_admin")
        self.assertIsNotNone(getattr(module, "commissions_admin_bp", None))

    def test_celery_beat_schedules_commission_sweep(self):
        from comercial import create_app
        from comercial.celery_app import create_celery_app

        with patch.dict(os.environ, {"SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:", "COMMISSION_SWEEP_INTERVAL_SECONDS": "5"}):
            celery = create_celery_app(create_app())
        entry = celery.conf.beat_schedule["commission-sweep"]
        self.assertEqual(entry["task"], "comercial.tasks.commission_tasks.run_commission_sweep")
        self.assertEqual(entry["schedule"], 60.0)

    def test_sentry_init_is_noop_without_dsn(self):
        app = Flask(__name__)
        with patch.dict(os.environ, {"SENTRY_DSN": ""}, clear=False):
            init_sentry(app)


if __name__ == "__main__":
    unittest.main()
