import unittest
from decimal import Decimal

from laundrypos import create_app
from laundrypos.errors import ValidationError
from laundrypos.extensions import db
from laundrypos.models import POSSettings
from laundrypos.services import settings_service


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "TESTING": True,
            "DEFAULT_TAX_RATE": 5.0,
            "DEFAULT_CURRENCY": "AED",
            "DEFAULT_BUSINESS_NAME": "Fresh Press Laundry",
            "LOG_LEVEL": "WARNING",
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(POSSettings).delete()
        db.session.commit()

    def test_defaults_come_from_config(self):
        settings = settings_service.get_settings()
        self.assertEqual(settings.tax_rate, Decimal("5.00"))
        self.assertEqual(settings.currency, "AED")
        self.assertEqual(settings.business_name, "Fresh Press Laundry")
        self.assertEqual(db.session.query(POSSettings).count(), 1)

    def test_single_row_is_reused(self):
        first = settings_service.get_settings()
        second = settings_service.get_settings()
        self.assertEqual(first.id, second.id)
        self.assertEqual(db.session.query(POSSettings).count(), 1)

    def test_update_accepts_camel_case(self):
        settings_service.update_settings({"taxRate": "7.5", "businessName": "Press & Fold"})
        self.assertEqual(settings_service.current_tax_rate(), Decimal("7.50"))
        self.assertEqual(settings_service.get_settings().business_name, "Press & Fold")

    def test_update_ignores_unknown_keys(self):
        settings_service.update_settings({"id": 99, "updated_at": "yesterday", "currency": "USD"})
        settings = settings_service.get_settings()
        self.assertEqual(settings.id, settings_service.SETTINGS_ID)
        self.assertEqual(settings.currency, "USD")

    def test_tax_rate_out_of_range_is_rejected(self):
        for bad in (-1, 101, "abc"):
            with self.assertRaises(ValidationError):
                settings_service.update_settings({"tax_rate": bad})
        self.assertEqual(settings_service.current_tax_rate(), Decimal("5.00"))


if __name__ == "__main__":
    unittest.main()
