"""Unit tests for line item field validation."""

import pytest

from config.errors import ErrorCode, ValidationError
from validators.line_item_validator import (
    INVALID_PRICE,
    INVALID_PROPOSED_BID,
    MEASUREMENT_REQUIRED,
    NAME_REQUIRED,
    check_fields,
    validate_line_item_fields,
)


def _valid_fields(**overrides):
    fields = {"name": "Remove wall", "measurement": "2 Each", "price": "50", "proposedBid": 100}
    fields.update(overrides)
    return fields


class TestCheckFields:

    def test_valid_fields(self):
        result = check_fields(_valid_fields())

        assert result.is_valid is True
        assert result.errors == []
        assert result.values == {"name": "Remove wall", "measurement": "2 Each", "price": 50, "proposedBid": 100}

    @pytest.mark.parametrize("overrides,message,field", [
        ({"name": "   "}, NAME_REQUIRED, "name"),
        ({"measurement": None}, MEASUREMENT_REQUIRED, "measurement"),
        ({"price": "abc"}, INVALID_PRICE, "price"),
        ({"price": -1}, INVALID_PRICE, "price"),
        ({"proposedBid": ""}, INVALID_PROPOSED_BID, "proposedBid"),
    ])
    def test_single_failure(self, overrides, message, field):
        result = check_fields(_valid_fields(**overrides))

        assert result.is_valid is False
        assert result.errors == [message]
        assert result.failed_field == field

    def test_zero_price_is_allowed(self):
        assert check_fields(_valid_fields(price=0, proposedBid="0")).is_valid is True

    def test_missing_fields_fail_on_create(self):
        result = check_fields({})

        assert result.errors == [NAME_REQUIRED, MEASUREMENT_REQUIRED, INVALID_PRICE, INVALID_PROPOSED_BID]
        assert result.failed_field == "name"

    def test_partial_only_checks_present_fields(self):
        assert check_fields({"notes": "anything"}, partial=True).is_valid is True
        assert check_fields({"unit_price": "x"}, partial=True).failed_field == "price"

    def test_attribute_names_are_accepted(self):
        result = check_fields({"proposed_total": "$1,200"}, partial=True)
        assert result.values == {"proposed_total": 1200}


class TestValidateLineItemFields:

    def test_raises_first_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_line_item_fields(_valid_fields(name="", price="x"))

        error = exc_info.value
        assert error.code == ErrorCode.MISSING_FIELD
        assert error.message == NAME_REQUIRED
        assert error.field == "name"
        assert error.details["errors"] == [NAME_REQUIRED, INVALID_PRICE]

    def test_bad_price_is_invalid_not_missing(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_line_item_fields({"price": "abc"}, partial=True)

        assert exc_info.value.code == ErrorCode.INVALID_FIELD
        assert exc_info.value.field == "price"

    def test_fresh_results_do_not_share_state(self):
        first = check_fields({"name": "A"}, partial=True)
        second = check_fields({}, partial=True)

        assert first.values == {"name": "A"}
        assert second.values == {}
        assert second.errors == []

    def test_returns_cleaned_values(self):
        assert validate_line_item_fields({"name": "  Permit "}, partial=True) == {"name": "Permit"}
