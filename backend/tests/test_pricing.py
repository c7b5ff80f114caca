import unittest
from decimal import Decimal

from laundrypos.errors import ValidationError
from laundrypos.services.pricing import (
    TAX_EXCLUSIVE,
    TAX_INCLUSIVE,
    CartDiscount,
    LineItem,
    compute_totals,
    rate_for_service,
)

D = Decimal


def _money(value):
    return value.quantize(D("0.01"))


class ComputeTotalsTests(unittest.TestCase):
    def test_percentage_discount_with_exclusive_tax(self):
        totals = compute_totals(
            [LineItem(D("10"), 2), LineItem(D("20"), 1, D("50"))],
            CartDiscount("percentage", D("10")),
            5,
            TAX_EXCLUSIVE,
        )
        self.assertEqual(totals.subtotal, D("30"))
        self.assertEqual(totals.discount, D("3"))
        self.assertEqual(_money(totals.tax), D("1.35"))
        self.assertEqual(_money(totals.total), D("28.35"))

    def test_flat_discount_below_subtotal_with_exclusive_tax(self):
        totals = compute_totals([LineItem(D("10"), 2)], CartDiscount("flat", D("10")), 5, TAX_EXCLUSIVE)
        self.assertEqual(totals.subtotal, D("20"))
        self.assertEqual(totals.discount, D("10"))
        self.assertEqual(_money(totals.tax), D("0.50"))
        self.assertEqual(_money(totals.total), D("10.50"))

    def test_flat_discount_larger_than_subtotal_is_clamped(self):
        totals = compute_totals([LineItem(D("10"), 1)], CartDiscount("flat", D("50")), 5, TAX_EXCLUSIVE)
        self.assertEqual(totals.discount, D("10"))
        self.assertEqual(totals.tax, D("0"))
        self.assertEqual(totals.total, D("0"))

    def test_inclusive_tax_is_carved_out_of_the_discounted_subtotal(self):
        totals = compute_totals([LineItem(D("105"), 1)], None, 5, TAX_INCLUSIVE)
        self.assertEqual(totals.total, D("105"))
        self.assertEqual(_money(totals.pre_tax_amount), D("100.00"))
        self.assertEqual(_money(totals.tax), D("5.00"))
        self.assertEqual(totals.pre_tax_amount + totals.tax, totals.total)

    def test_same_cart_differs_between_conventions(self):
        lines = [LineItem(D("100"), 1)]
        exclusive = compute_totals(lines, None, 5, TAX_EXCLUSIVE)
        inclusive = compute_totals(lines, None, 5, TAX_INCLUSIVE)
        self.assertEqual(exclusive.total, D("105"))
        self.assertEqual(inclusive.total, D("100"))

    def test_empty_cart_is_all_zero(self):
        totals = compute_totals([], CartDiscount("percentage", D("20")), 5)
        self.assertEqual((totals.subtotal, totals.discount, totals.tax, totals.total), (0, 0, 0, 0))

    def test_pure_for_identical_inputs(self):
        args = ([LineItem(D("7.35"), 3, D("12.5"))], CartDiscount("flat", D("1.10")), D("5"), TAX_EXCLUSIVE)
        self.assertEqual(compute_totals(*args), compute_totals(*args))

    def test_no_intermediate_rounding(self):
        # 3 x 0.333 would round to 1.00 per line if rounded early
        totals = compute_totals([LineItem(D("0.333"), 3)], None, 0)
        self.assertEqual(totals.total, D("0.999"))

    def test_totals_stay_within_bounds(self):
        carts = [
            ([LineItem(D("12.50"), 4, D("5"))], CartDiscount("percentage", D("100")), 5),
            ([LineItem(D("3"), 1), LineItem(D("9.99"), 2)], CartDiscount("flat", D("4")), D("7.5")),
            ([LineItem(D("0"), 10)], CartDiscount("flat", D("1")), 5),
        ]
        for lines, discount, rate in carts:
            totals = compute_totals(lines, discount, rate, TAX_EXCLUSIVE)
            self.assertGreaterEqual(totals.discount, 0)
            self.assertLessEqual(totals.discount, totals.subtotal)
            self.assertGreaterEqual(totals.total, 0)
            self.assertEqual(totals.total, totals.subtotal - totals.discount + totals.tax)

    def test_rejects_out_of_range_inputs(self):
        with self.assertRaises(ValidationError):
            compute_totals([LineItem(D("10"), 1, D("101"))])
        with self.assertRaises(ValidationError):
            compute_totals([LineItem(D("10"), 1)], CartDiscount("percentage", D("120")))
        with self.assertRaises(ValidationError):
            compute_totals([LineItem(D("10"), 1)], CartDiscount("coupon", D("1")))
        with self.assertRaises(ValidationError):
            compute_totals([LineItem(D("10"), 1)], None, -1)
        with self.assertRaises(ValidationError):
            compute_totals([LineItem(D("10"), 1)], None, 5, "gross")

    def test_to_dict_rounds_for_presentation(self):
        totals = compute_totals([LineItem(D("0.335"), 1)], None, 0)
        self.assertEqual(totals.to_dict()["total"], 0.34)


class CartDiscountTests(unittest.TestCase):
    def test_from_payload_defaults_to_percentage(self):
        discount = CartDiscount.from_payload({"value": "15"})
        self.assertEqual(discount, CartDiscount("percentage", D("15")))

    def test_none_is_no_discount(self):
        self.assertEqual(CartDiscount.from_payload(None).amount_for(D("40")), D("0"))

    def test_negative_value_rejected(self):
        with self.assertRaises(ValidationError):
            CartDiscount.from_payload({"type": "flat", "value": -2})


class RateForServiceTests(unittest.TestCase):
    def test_reads_tier_rate(self):
        product = {"id": "P1", "iron_rate": "4.50", "wash_and_iron_rate": 12, "dry_clean_rate": None}
        self.assertEqual(rate_for_service(product, "iron"), D("4.50"))
        self.assertEqual(rate_for_service(product, "washAndIron"), D("12"))

    def test_missing_or_unknown_rate_fails_closed_to_zero(self):
        product = {"id": "P1", "iron_rate": "abc", "dry_clean_rate": None}
        with self.assertLogs("laundrypos.services.pricing", level="WARNING"):
            self.assertEqual(rate_for_service(product, "dryClean"), D("0"))
        with self.assertLogs("laundrypos.services.pricing", level="WARNING"):
            self.assertEqual(rate_for_service(product, "iron"), D("0"))
        with self.assertLogs("laundrypos.services.pricing", level="WARNING"):
            self.assertEqual(rate_for_service(product, "starch"), D("0"))


if __name__ == "__main__":
    unittest.main()
