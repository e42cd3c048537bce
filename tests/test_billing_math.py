from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import AlreadyInvoiced
from app.models.consignment import ConsignmentRow
from app.schemas.billing import RateOverrides
from app.services.billing_reconciler import (
    BillingStatus,
    derive_billing_status,
    fallback_amount,
    price_line,
)
from app.services.invoice_number_service import financial_year_for
from app.services.rate_resolver import RateBreakdown, compute_breakdown, round2, normalize_code


class TestRounding:
    def test_round_half_up(self):
        assert round2("10.005") == Decimal("10.01")
        assert round2("10.004") == Decimal("10.00")
        assert round2(None) == Decimal("0.00")
        assert round2(2.675) == Decimal("2.68")

    def test_breakdown_components(self):
        breakdown = compute_breakdown("100", fuel_pct="10", packing="5", handling="2.50", gst_pct="18")
        assert breakdown.fuel == Decimal("10.00")
        assert breakdown.subtotal == Decimal("117.50")
        assert breakdown.gst == Decimal("21.15")
        assert breakdown.total == Decimal("138.65")

    def test_components_are_rounded_before_summing(self):
        breakdown = compute_breakdown("99.99", fuel_pct="12.5", gst_pct="18")
        assert breakdown.fuel == Decimal("12.50")
        assert breakdown.subtotal == Decimal("112.49")
        assert breakdown.gst == Decimal("20.25")
        assert breakdown.total == Decimal("132.74")

    @pytest.mark.parametrize("base,fuel_pct,packing,handling,gst_pct", [
        ("0", "0", "0", "0", "0"),
        ("33.33", "7.77", "1.11", "0.99", "5"),
        ("1234.56", "15", "20", "12.34", "18"),
    ])
    def test_total_closes_over_subtotal_and_gst(self, base, fuel_pct, packing, handling, gst_pct):
        breakdown = compute_breakdown(base, fuel_pct, packing, handling, gst_pct)
        assert breakdown.subtotal == breakdown.base + breakdown.fuel + breakdown.packing + breakdown.handling
        assert breakdown.total == breakdown.subtotal + breakdown.gst

    def test_json_round_trip_keeps_precision(self):
        breakdown = compute_breakdown("250", fuel_pct="12", gst_pct="18")
        assert RateBreakdown.from_json(breakdown.to_json()) == breakdown

    def test_normalize_code(self):
        assert normalize_code(" Non Document ") == "NON_DOCUMENT"
        assert normalize_code("non-document") == "NON_DOCUMENT"
        assert normalize_code(None) == ""


class TestLinePricing:
    def test_fallback_amount_order(self):
        assert fallback_amount(ConsignmentRow(calculated_amount=Decimal("120"), final_collected=Decimal("90"))) == Decimal("120.00")
        assert fallback_amount(ConsignmentRow(calculated_amount=Decimal("0"), final_collected=Decimal("90"))) == Decimal("0.00")
        assert fallback_amount(ConsignmentRow(final_collected=Decimal("90"), retail_price=Decimal("75"))) == Decimal("90.00")
        assert fallback_amount(ConsignmentRow(retail_price=Decimal("75.5"))) == Decimal("75.50")
        assert fallback_amount(ConsignmentRow()) == Decimal("0.00")

    def test_row_without_breakup_is_billed_at_its_amount(self):
        line = price_line(ConsignmentRow(calculated_amount=Decimal("150")))
        assert line.subtotal == Decimal("150.00")
        assert line.gst == Decimal("0.00")
        assert line.total == Decimal("150.00")

    def test_zero_priced_row_bills_zero(self):
        line = price_line(ConsignmentRow(calculated_amount=Decimal("0"), final_collected=Decimal("90")))
        assert line.total == Decimal("0.00")

    def test_stored_breakup_is_used(self):
        stored = compute_breakdown("100", fuel_pct="10", gst_pct="18")
        row = ConsignmentRow(
            calculated_amount=stored.total,
            pricing_meta={"rate_breakup": stored.to_json()},
        )
        line = price_line(row)
        assert line == stored

    def test_overrides_replace_only_supplied_components(self):
        stored = compute_breakdown("100", fuel_pct="10", packing="5", gst_pct="18")
        row = ConsignmentRow(
            calculated_amount=stored.total,
            pricing_meta={"rate_breakup": stored.to_json()},
        )
        line = price_line(row, RateOverrides(gst_pct=Decimal("5")))
        assert line.base == Decimal("100.00")
        assert line.fuel == Decimal("10.00")
        assert line.packing == Decimal("5.00")
        assert line.subtotal == Decimal("115.00")
        assert line.gst == Decimal("5.75")

    def test_override_without_breakup_uses_row_amount_as_base(self):
        line = price_line(ConsignmentRow(final_collected=Decimal("200")), RateOverrides(fuel_pct=Decimal("10")))
        assert line.base == Decimal("200.00")
        assert line.fuel == Decimal("20.00")
        assert line.total == Decimal("220.00")

    def test_empty_overrides_are_ignored(self):
        row = ConsignmentRow(calculated_amount=Decimal("80"))
        assert price_line(row, RateOverrides()) == price_line(row)


class TestBillingStatus:
    @pytest.mark.parametrize("unbilled,billed,paid,expected", [
        (2, "500", "500", BillingStatus.PENDING),
        (0, "500", "500", BillingStatus.PAID),
        (0, "500", "600", BillingStatus.PAID),
        (0, "500", "200", BillingStatus.PARTIALLY_PAID),
        (0, "500", "0", BillingStatus.BILLED),
        (0, "0", "0", BillingStatus.PENDING),
    ])
    def test_derivation(self, unbilled, billed, paid, expected):
        assert derive_billing_status(unbilled, Decimal(billed), Decimal(paid)) == expected


class TestInvoiceNumbering:
    @pytest.mark.parametrize("on_date,expected", [
        (date(2026, 4, 1), "2026-27"),
        (date(2026, 10, 19), "2026-27"),
        (date(2027, 3, 31), "2026-27"),
        (date(2027, 1, 15), "2026-27"),
        (date(2099, 12, 1), "2099-00"),
    ])
    def test_financial_year(self, on_date, expected):
        assert financial_year_for(on_date) == expected


class TestAlreadyInvoicedMessage:
    def test_preview_is_capped(self):
        identifiers = [f"CN{i:03d}" for i in range(12)]
        error = AlreadyInvoiced.for_identifiers(identifiers, 10)
        assert error.message.endswith("CN009 and 2 more")
        assert error.diagnostics["consignments"] == identifiers[:10]
        assert error.diagnostics["more_count"] == 2
        assert error.diagnostics["total_count"] == 12

    def test_short_list_has_no_suffix(self):
        error = AlreadyInvoiced.for_identifiers(["CN1", "CN2"], 10)
        assert error.message.endswith("CN1, CN2")
        assert error.diagnostics["more_count"] == 0
