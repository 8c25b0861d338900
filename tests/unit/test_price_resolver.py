"""Unit tests for the price resolver."""

import math

import pytest

from models.line_item import LineItem
from services.price_resolver import (
    resolve_prices,
    resolve_proposed_bid,
    resolve_quantity,
    resolve_total_price,
    resolve_unit_price,
    sum_proposed_bids,
)


class TestResolveUnitPrice:
    """Tests for unit price precedence."""

    def test_calculated_unit_price_wins(self):
        record = {
            "calculatedUnitPrice": 25,
            "priceCalculation": {"unitPrice": 24},
            "pricesheetMatch": {"itemPrice": 22},
            "pricing": "20",
            "price": 19,
            "unitPrice": "18",
        }
        assert resolve_unit_price(record) == 25

    def test_falls_through_invalid_candidates(self):
        record = {
            "calculatedUnitPrice": "abc",
            "priceCalculation": {"unitPrice": 0},
            "pricesheetMatch": {"itemPrice": -5},
            "pricing": "",
            "price": None,
            "unitPrice": "18",
        }
        assert resolve_unit_price(record) == 18

    def test_pricesheet_match_before_legacy_fields(self):
        record = {"pricesheetMatch": {"itemPrice": "22.50"}, "unitPrice": "18"}
        assert resolve_unit_price(record) == 22.5

    def test_currency_decoration_is_stripped(self):
        assert resolve_unit_price({"pricing": "$1,250.75"}) == 1250.75

    def test_original_data_price_is_last_resort(self):
        assert resolve_unit_price({"originalData": {"price": 12}}) == 12

    @pytest.mark.parametrize("value", [True, float("nan"), float("inf"), "NaN", [], {}])
    def test_invalid_values_are_skipped(self, value):
        assert resolve_unit_price({"calculatedUnitPrice": value, "unitPrice": "7"}) == 7

    def test_defaults_to_zero(self):
        assert resolve_unit_price({}) == 0.0


class TestResolveTotalPrice:
    """Tests for total price precedence."""

    def test_calculated_total_wins(self):
        record = {"calculatedTotalPrice": 100, "unitPrice": "10", "measurements": {"quantity": "4"}}
        assert resolve_total_price(record) == 100

    def test_price_calculation_total(self):
        record = {"priceCalculation": {"totalPrice": "99.5"}, "unitPrice": "10"}
        assert resolve_total_price(record) == 99.5

    def test_unit_price_times_quantity(self):
        record = {"unitPrice": "10", "measurements": {"quantity": "4"}, "totalPrice": "35"}
        assert resolve_total_price(record) == 40

    def test_legacy_total_when_no_unit_price(self):
        assert resolve_total_price({"totalPrice": "35"}) == 35
        assert resolve_total_price({"proposedBid": "30"}) == 30
        assert resolve_total_price({"originalData": {"proposedBid": 12}}) == 12

    def test_defaults_to_zero(self):
        assert resolve_total_price({"totalPrice": "-3"}) == 0.0


class TestResolveProposedBid:
    """Tests for proposed bid precedence."""

    def test_explicit_proposed_bid_wins_over_calculated(self):
        record = {"proposedBid": "150", "calculatedTotalPrice": 100}
        assert resolve_proposed_bid(record) == 150

    def test_calculated_total_when_no_override(self):
        record = {"calculatedTotalPrice": 100, "totalPrice": "80"}
        assert resolve_proposed_bid(record) == 100

    def test_falls_back_to_derived_total(self):
        record = {"priceCalculation": {"unitPrice": 5}, "quantity": 3}
        assert resolve_proposed_bid(record) == 15

    def test_never_undefined(self):
        assert resolve_proposed_bid({}) == 0.0


class TestQuantity:

    def test_measurements_quantity_first(self):
        assert resolve_quantity({"measurements": {"quantity": "4"}, "quantity": 9}) == 4

    def test_floored_and_at_least_one(self):
        assert resolve_quantity({"quantity": "2.7"}) == 2
        assert resolve_quantity({"quantity": "0"}) == 1
        assert resolve_quantity({"quantity": "lots"}) == 1

    def test_default_is_one(self):
        assert resolve_quantity({}) == 1


class TestLineItemsAndSums:

    def test_line_item_quantity_is_authoritative(self):
        item = LineItem(
            id="a",
            quantity=3,
            unit_price=10,
            measurements={"quantity": "1", "unit": "Each"},
        )
        assert resolve_total_price(item) == 30

    def test_resolve_prices_from_line_item(self):
        item = LineItem(id="a", unit_price=10, proposed_total=45, quantity=4)
        prices = resolve_prices(item)
        assert prices.unit_price == 10
        assert prices.proposed_bid == 45
        assert prices.quantity == 4

    def test_results_never_negative_or_nan(self):
        records = [
            {"calculatedUnitPrice": -1, "calculatedTotalPrice": "nan"},
            {"pricing": "not a number"},
            {"unitPrice": float("-inf")},
        ]
        for record in records:
            prices = resolve_prices(record)
            for value in (prices.unit_price, prices.total_price, prices.proposed_bid):
                assert value >= 0
                assert not math.isnan(value)

    def test_sum_proposed_bids_rounds_to_cents(self):
        items = [{"proposedBid": "0.1"}, {"proposedBid": "0.2"}]
        assert sum_proposed_bids(items) == 0.3

    def test_sum_of_empty_list_is_zero(self):
        assert sum_proposed_bids([]) == 0
