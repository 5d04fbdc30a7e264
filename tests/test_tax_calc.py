"""Tests for the invoice calculation engine."""

from decimal import Decimal

import pytest
from tax_calc import (
    GST_RATE,
    InvalidInput,
    InvoiceTotals,
    LineItem,
    TaxMode,
    booking_line_item,
    calculate_gst_breakdown,
    calculate_invoice_total,
    calculate_line_item,
    calculate_payment_balance,
    money,
    payment_status,
)


def _item(**overrides):
    defaults = {
        "quantity": 1,
        "unit_price": 100,
        "tax_rate": 12,
        "tax_inclusive": False,
        "discount_rate": 0,
    }
    defaults.update(overrides)
    return LineItem(**defaults)


class TestMoney:
    def test_rounds_half_away_from_zero(self):
        assert money("2.345") == Decimal("2.35")
        assert money("-2.345") == Decimal("-2.35")

    def test_float_input_uses_its_repr(self):
        assert money(0.1 + 0.2) == Decimal("0.30")
        assert money(1.005) == Decimal("1.01")

    def test_rejects_non_numbers(self):
        with pytest.raises(InvalidInput):
            money("abc")
        with pytest.raises(InvalidInput):
            money(float("nan"))


class TestCalculateLineItem:
    def test_tax_inclusive_extracts_embedded_gst(self):
        res = calculate_line_item(_item(unit_price=112, tax_inclusive=True))
        assert res.tax_amount == Decimal("12.00")
        assert res.line_total == Decimal("100.00")
        assert res.discount_amount == Decimal("0.00")
        assert res.final_amount == Decimal("112.00")

    def test_tax_exclusive_taxes_discounted_base(self):
        res = calculate_line_item(_item(quantity=2, discount_rate=10))
        assert res.line_total == Decimal("200.00")
        assert res.discount_amount == Decimal("20.00")
        assert res.tax_amount == Decimal("21.60")
        assert res.final_amount == Decimal("201.60")

    def test_tax_inclusive_discount_leaves_tax_untouched(self):
        res = calculate_line_item(_item(unit_price=1120, tax_inclusive=True, discount_rate=10))
        assert res.line_total == Decimal("1000.00")
        assert res.discount_amount == Decimal("100.00")
        assert res.tax_amount == Decimal("120.00")
        assert res.final_amount == Decimal("1020.00")

    def test_zero_rate_has_no_tax(self):
        res = calculate_line_item(_item(tax_rate=0, unit_price="49.99", quantity=3))
        assert res.tax_amount == Decimal("0.00")
        assert res.final_amount == Decimal("149.97")

    def test_fractional_quantity(self):
        res = calculate_line_item(_item(quantity="1.5", unit_price=200, tax_rate=5))
        assert res.line_total == Decimal("300.00")
        assert res.tax_amount == Decimal("15.00")

    def test_full_discount_leaves_only_zero_base(self):
        res = calculate_line_item(_item(discount_rate=100))
        assert res.line_total - res.discount_amount == Decimal("0.00")
        assert res.tax_amount == Decimal("0.00")

    def test_free_item_is_allowed(self):
        res = calculate_line_item(_item(unit_price=0))
        assert res.final_amount == Decimal("0.00")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"quantity": 0},
            {"quantity": -1},
            {"unit_price": "-0.01"},
            {"tax_rate": 150},
            {"tax_rate": -1},
            {"discount_rate": 101},
        ],
    )
    def test_invalid_input_raises(self, overrides):
        with pytest.raises(InvalidInput):
            calculate_line_item(_item(**overrides))

    def test_invalid_input_is_not_clamped(self):
        with pytest.raises(InvalidInput) as exc_info:
            calculate_line_item(_item(tax_rate=150))
        assert exc_info.value.errors == ["Tax rate must be between 0 and 100"]

    def test_non_numeric_field_raises_on_construction(self):
        with pytest.raises(InvalidInput, match="quantity"):
            _item(quantity="two")

    @pytest.mark.parametrize("flag", ["false", 0, 1, None])
    def test_tax_inclusive_must_be_bool(self, flag):
        with pytest.raises(InvalidInput, match="tax_inclusive"):
            _item(unit_price=112, tax_inclusive=flag)

    def test_amounts_beyond_default_decimal_precision(self):
        res = calculate_line_item(_item(unit_price="1e27"))
        assert res.line_total == Decimal("1e27")
        assert res.tax_amount == Decimal("1.2e26")
        assert res.final_amount == Decimal("1.12e27")
        assert res.final_amount.as_tuple().exponent == -2

    def test_large_amount_keeps_paise(self):
        res = calculate_line_item(_item(quantity=3, unit_price="123456789012345678901234567.89"))
        assert res.line_total == Decimal("370370367037037036703703703.67")
        assert res.tax_amount == Decimal("44444444044444444404444444.44")
        assert res.final_amount == Decimal("414814811081481481108148148.11")


class TestNoTaxMode:
    def test_line_mode_none_forces_zero_tax(self):
        res = calculate_line_item(_item(tax_rate=18, tax_mode=TaxMode.NONE))
        assert res.tax_amount == Decimal("0")
        assert res.final_amount == Decimal("100.00")

    def test_line_mode_none_skips_inclusive_extraction(self):
        res = calculate_line_item(_item(unit_price=112, tax_inclusive=True, tax_mode=TaxMode.NONE))
        assert res.line_total == Decimal("112.00")
        assert res.tax_amount == Decimal("0")

    def test_mode_accepts_string_value(self):
        assert _item(tax_mode="none").tax_mode is TaxMode.NONE

    def test_invoice_level_none_overrides_every_line(self):
        items = [_item(tax_rate=12), _item(tax_rate=28, tax_inclusive=True, unit_price=128)]
        totals = calculate_invoice_total(items, tax_mode=TaxMode.NONE)
        assert totals.total_tax == Decimal("0")
        assert all(r.tax_amount == 0 for r in totals.line_items)
        assert totals.total_amount == Decimal("228.00")


class TestCalculateInvoiceTotal:
    def test_empty_invoice_is_all_zero(self):
        totals = calculate_invoice_total([])
        assert totals.subtotal == 0
        assert totals.total_discount == 0
        assert totals.total_tax == 0
        assert totals.total_amount == 0
        assert totals.line_items == ()

    def test_aggregates_lines_in_order(self):
        items = [
            _item(quantity=2, discount_rate=10),
            _item(unit_price=112, tax_inclusive=True),
        ]
        totals = calculate_invoice_total(items)
        assert [r.final_amount for r in totals.line_items] == [Decimal("201.60"), Decimal("112.00")]
        assert totals.subtotal == Decimal("300.00")
        assert totals.total_discount == Decimal("20.00")
        assert totals.total_tax == Decimal("33.60")
        assert totals.total_amount == Decimal("313.60")

    def test_sum_of_lines_reconciles_with_total(self):
        items = [
            _item(quantity=3, unit_price="33.33", tax_rate=18, discount_rate="7.5"),
            _item(quantity=7, unit_price="19.99", tax_rate=5, tax_inclusive=True, discount_rate=3),
            _item(quantity="2.5", unit_price="1234.567", tax_rate=12, tax_inclusive=True),
        ]
        totals = calculate_invoice_total(items)
        line_sum = sum(r.final_amount for r in totals.line_items)
        assert abs(line_sum - totals.total_amount) <= Decimal("0.02") * len(items)

    def test_large_invoice_totals_do_not_overflow_precision(self):
        totals = calculate_invoice_total([_item(unit_price="1e27"), _item(unit_price="0.01", tax_rate=0)])
        assert totals.subtotal == Decimal("1000000000000000000000000000.01")
        assert totals.total_amount == Decimal("1120000000000000000000000000.01")

    def test_idempotent(self):
        items = [_item(quantity=3, unit_price="10.10", discount_rate=5), _item(tax_inclusive=True)]
        assert calculate_invoice_total(items) == calculate_invoice_total(items)

    def test_all_lines_validated_before_any_result(self):
        seen = []
        items = [_item(), _item(quantity=0), _item(tax_rate=150)]
        with pytest.raises(InvalidInput) as exc_info:
            calculate_invoice_total(items, observer=lambda item, res: seen.append(res))
        assert exc_info.value.errors == [
            "Line item 2: Quantity must be greater than 0",
            "Line item 3: Tax rate must be between 0 and 100",
        ]
        assert seen == []

    def test_observer_sees_every_line(self):
        seen = []
        items = [_item(), _item(quantity=2)]
        totals = calculate_invoice_total(items, observer=lambda item, res: seen.append((item, res)))
        assert [s[0] for s in seen] == items
        assert tuple(s[1] for s in seen) == totals.line_items

    def test_accepts_generator(self):
        totals = calculate_invoice_total(_item() for _ in range(3))
        assert len(totals.line_items) == 3

    def test_as_dict_uses_persisted_field_names(self):
        data = calculate_invoice_total([_item(quantity=2, discount_rate=10)]).as_dict()
        assert data == {
            "subtotal": 200.0,
            "total_discount": 20.0,
            "total_tax": 21.6,
            "total_amount": 201.6,
            "line_items": [
                {"line_total": 200.0, "discount_amount": 20.0, "tax_amount": 21.6, "final_amount": 201.6}
            ],
        }

    def test_default_totals_are_zero(self):
        assert InvoiceTotals().total_amount == Decimal("0.00")


class TestGSTBreakdown:
    def _items(self):
        return [
            booking_line_item(1000, 2, tax_inclusive=False),
            _item(unit_price=500, tax_rate=5),
            _item(unit_price=80, tax_rate=0),
        ]

    def test_intra_state_splits_cgst_sgst(self):
        slabs = calculate_gst_breakdown(self._items(), "Maharashtra", " maharashtra ")
        assert [s.rate for s in slabs] == [Decimal("5"), Decimal("12")]
        food, room = slabs
        assert food.taxable_amount == Decimal("500.00")
        assert food.cgst == food.sgst == Decimal("12.50")
        assert room.cgst == room.sgst == Decimal("120.00")
        assert room.igst == 0

    def test_inter_state_uses_igst(self):
        slabs = calculate_gst_breakdown(self._items(), "Maharashtra", "Karnataka")
        room = slabs[-1]
        assert room.igst == Decimal("240.00")
        assert room.cgst == room.sgst == 0

    def test_odd_paise_split_still_adds_up(self):
        slabs = calculate_gst_breakdown([_item(unit_price="0.50", tax_rate=10)], "Goa", "Goa")
        assert slabs[0].cgst + slabs[0].sgst == slabs[0].tax_amount == Decimal("0.05")

    def test_taxable_amount_excludes_discount_and_inclusive_tax(self):
        slabs = calculate_gst_breakdown(
            [_item(unit_price=1120, tax_inclusive=True, discount_rate=10)], "Goa", "Kerala"
        )
        assert slabs[0].taxable_amount == Decimal("900.00")

    def test_no_tax_mode_has_no_slabs(self):
        assert calculate_gst_breakdown(self._items(), "Goa", "Goa", tax_mode=TaxMode.NONE) == []


class TestBookingLineItem:
    def test_room_rate_times_nights_inclusive_by_default(self):
        item = booking_line_item(2240, 3)
        assert item.quantity == 3
        assert item.tax_rate == GST_RATE
        assert item.tax_inclusive is True
        res = calculate_line_item(item)
        assert res.line_total == Decimal("6000.00")
        assert res.tax_amount == Decimal("720.00")

    def test_zero_nights_rejected(self):
        with pytest.raises(InvalidInput, match="nights"):
            booking_line_item(2000, 0)


class TestPayments:
    def test_balance(self):
        assert calculate_payment_balance("1020.00", 500) == Decimal("520.00")
        assert calculate_payment_balance(100.1, 100.1) == Decimal("0.00")

    def test_large_balance(self):
        assert calculate_payment_balance("1e30", "0.01") == Decimal("999999999999999999999999999999.99")

    @pytest.mark.parametrize(
        "paid, expected",
        [(0, "pending"), (250, "partial"), (1000, "paid"), (1200, "paid")],
    )
    def test_status(self, paid, expected):
        assert payment_status(1000, paid) == expected
