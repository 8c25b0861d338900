"""Unit tests for the schema mapper and response envelopes."""

import pytest

from models.envelope import EnvelopeKind, normalize_items_payload
from models.line_item import ItemOrigin, LineItem
from services.price_resolver import resolve_proposed_bid, resolve_unit_price
from services.schema_mapper import (
    apply_edit,
    build_update_payload,
    line_item_to_record,
    line_items_to_records,
    map_items_payload,
    record_to_line_item,
)


class TestNormalizeItemsPayload:
    """Tests for envelope detection."""

    def test_ai_extracted_wins_over_empty_root(self, sample_demolition_payload):
        envelope = normalize_items_payload(sample_demolition_payload)
        assert envelope.kind == EnvelopeKind.AI_EXTRACTED
        assert len(envelope) == 2

    def test_root_array(self):
        envelope = normalize_items_payload({"demolitionItems": [{"name": "a"}]})
        assert envelope.kind == EnvelopeKind.ROOT

    def test_data_then_items(self):
        assert normalize_items_payload({"data": [{"name": "a"}], "items": [{"name": "b"}]}).kind == EnvelopeKind.DATA
        assert normalize_items_payload({"data": [], "items": [{"name": "b"}]}).kind == EnvelopeKind.ITEMS

    def test_bare_list(self):
        envelope = normalize_items_payload([{"name": "a"}, "junk", 3])
        assert envelope.kind == EnvelopeKind.BARE
        assert len(envelope) == 1
        assert envelope.skipped == 2

    @pytest.mark.parametrize("payload", [None, {}, "text", {"demolitionItems": []}, []])
    def test_empty(self, payload):
        envelope = normalize_items_payload(payload)
        assert envelope.kind == EnvelopeKind.EMPTY
        assert len(envelope) == 0


class TestForwardMapping:
    """Tests for storage -> UI mapping."""

    def test_maps_full_record(self, sample_demolition_record):
        item = record_to_line_item(sample_demolition_record)

        assert item.id == "bid_item_1700000000000_0"
        assert item.name == "Remove drywall"
        assert item.category == "Wall"
        assert item.quantity == 4
        assert item.unit == "sq ft"
        assert item.measurement == "4 sq ft"
        assert item.unit_price == 25
        assert item.proposed_total == 100
        assert item.origin == ItemOrigin.DEMOLITION
        assert item.pricesheet_match == {"itemPrice": 22, "sheetName": "2024 rates"}

    def test_unknown_fields_are_carried(self, sample_demolition_record):
        item = record_to_line_item(sample_demolition_record)

        assert item.extra["confidence"] == 0.92
        assert item.extra["location"] == "Suite 200"
        assert "name" not in item.extra

    def test_empty_record_gets_placeholders(self):
        item = record_to_line_item({})

        assert item.name == "Unnamed Item"
        assert item.measurement == "TBD"
        assert item.category == "Demolition"
        assert item.quantity == 1
        assert item.unit == "Each"
        assert item.unit_price == 0
        assert item.proposed_total == 0
        assert item.id
        assert not item.is_temporary

    def test_name_falls_back_to_description(self):
        assert record_to_line_item({"description": "Haul debris"}).name == "Haul debris"
        assert record_to_line_item({"originalBidItem": {"name": "Snapshot"}}).name == "Snapshot"

    def test_original_data_fallbacks(self):
        item = record_to_line_item({
            "originalData": {"description": "Old sink", "category": "plumbing", "price": 12},
        })

        assert item.name == "Old sink"
        assert item.category == "Plumbing"
        assert item.unit_price == 12

    def test_structural_token_shows_as_demolition(self):
        assert record_to_line_item({"category": "structural"}).category == "Demolition"

    def test_id_fallbacks(self):
        assert record_to_line_item({"id": 7}).id == "7"
        assert record_to_line_item({"_id": "abc"}).id == "abc"

    def test_explicit_measurement_is_kept(self):
        item = record_to_line_item({"measurement": "500 sq ft", "measurements": {"quantity": "500"}})
        assert item.measurement == "500 sq ft"

    def test_map_items_payload_never_drops_items(self):
        items = map_items_payload({"data": [{}, {"name": ""}, {"name": "Ok"}]})
        assert [item.name for item in items] == ["Unnamed Item", "Unnamed Item", "Ok"]


class TestReverseMapping:
    """Tests for UI -> storage mapping."""

    def test_numbers_are_strings(self, sample_demolition_record):
        record = line_item_to_record(record_to_line_item(sample_demolition_record)).to_payload()

        assert record["pricing"] == "25"
        assert record["unitPrice"] == "25"
        assert record["totalPrice"] == "100"
        assert record["measurements"] == {"quantity": "4", "unit": "sq ft", "dimensions": "10x12"}

    def test_extra_and_provenance_written_back(self, sample_demolition_record):
        record = line_item_to_record(record_to_line_item(sample_demolition_record)).to_payload()

        assert record["confidence"] == 0.92
        assert record["location"] == "Suite 200"
        assert record["specifications"] == "5/8 in. type X"
        assert record["calculatedUnitPrice"] == 25
        assert record["calculatedTotalPrice"] == 100
        assert record["pricesheetMatch"]["itemPrice"] == 22
        assert record["category"] == "wall"
        assert record["originalBidItem"]["name"] == "Remove drywall"

    def test_round_trip_preserves_ui_values(self, sample_demolition_record):
        first = record_to_line_item(sample_demolition_record)
        second = record_to_line_item(line_item_to_record(first).to_payload())

        for field in ("id", "name", "measurement", "quantity", "unit", "category",
                      "unit_price", "proposed_total", "description", "notes"):
            assert getattr(second, field) == getattr(first, field), field
        assert second.extra["confidence"] == first.extra["confidence"]

    def test_new_items_get_generated_keys(self):
        items = [
            LineItem(id="temp_1", name="A"),
            LineItem(id="new_2", name="B"),
            LineItem(id="", name="C"),
            LineItem(id="kept", name="D"),
        ]
        records = line_items_to_records(items, now_ms=1700000000000)

        assert [record.item_number for record in records] == [
            "bid_item_1700000000000_0",
            "bid_item_1700000000000_1",
            "bid_item_1700000000000_2",
            "kept",
        ]

    def test_description_fallbacks(self):
        assert line_item_to_record(LineItem(id="a", name="Permit")).description == "Permit"
        assert line_item_to_record(LineItem(id="a", name="")).description == "No description"

    def test_unrecognized_category_becomes_other(self):
        assert line_item_to_record(LineItem(id="a", category="Landscaping")).category == "other"

    def test_user_override_survives_round_trip(self):
        item = LineItem(id="a", name="Permit", measurement="1 Each", unit_price=10, proposed_total=35)
        record = line_item_to_record(item).to_payload()

        assert record["proposedBid"] == "35"
        assert record["totalPrice"] == "35"
        assert record_to_line_item(record).proposed_total == 35

    def test_no_override_written_when_derived(self):
        item = LineItem(id="a", unit_price=10, proposed_total=10)
        assert "proposedBid" not in line_item_to_record(item).to_payload()

    def test_stored_total_price_is_not_promoted_to_override(self):
        stored = {
            "itemNumber": "bid_item_1",
            "pricing": "10",
            "unitPrice": "10",
            "totalPrice": "50",
            "measurements": {"quantity": "5", "unit": "Each"},
        }
        item = record_to_line_item(stored)
        written = line_item_to_record(item).to_payload()

        assert item.proposed_total == 50
        assert "proposedBid" not in written
        assert written["totalPrice"] == "50"

        # A later pricing run still takes effect on the next read.
        written["calculatedTotalPrice"] = "80"
        assert record_to_line_item(written).proposed_total == 80

    def test_unit_price_only_record_round_trips_without_override(self):
        item = record_to_line_item({"itemNumber": "bid_item_2", "unitPrice": "10",
                                    "measurements": {"quantity": "5"}})
        assert "proposedBid" not in line_item_to_record(item).to_payload()

    def test_stored_override_is_kept(self):
        item = record_to_line_item({"itemNumber": "bid_item_3", "unitPrice": "10",
                                    "totalPrice": "50", "proposedBid": "65"})
        assert line_item_to_record(item).to_payload()["proposedBid"] == "65"


class TestApplyEdit:
    """Tests for local edits."""

    def test_price_edit_supersedes_calculated_price(self, sample_demolition_record):
        item = record_to_line_item(sample_demolition_record)
        edited = apply_edit(item, {"price": "30"})

        assert edited.unit_price == 30
        assert resolve_unit_price(edited) == 30
        assert record_to_line_item(line_item_to_record(edited).to_payload()).unit_price == 30

    def test_proposed_edit_survives_round_trip(self, sample_demolition_record):
        item = record_to_line_item(sample_demolition_record)
        edited = apply_edit(item, {"proposedBid": 150})

        assert resolve_proposed_bid(edited) == 150
        assert record_to_line_item(line_item_to_record(edited).to_payload()).proposed_total == 150

    def test_original_item_is_unchanged(self):
        item = LineItem(id="a", name="Before")
        apply_edit(item, {"name": "After"})
        assert item.name == "Before"

    def test_unknown_keys_are_ignored(self):
        item = LineItem(id="a", name="Before")
        edited = apply_edit(item, {"id": "other", "origin": "manual", "name": "After"})
        assert edited.id == "a"
        assert edited.name == "After"

    def test_update_payload_only_touches_changed_fields(self, sample_demolition_record):
        item = record_to_line_item(sample_demolition_record)
        changes = {"price": 30}
        payload = build_update_payload(apply_edit(item, changes), changes)

        assert payload == {
            "itemNumber": "bid_item_1700000000000_0",
            "calculatedUnitPrice": 30,
            "pricing": "30",
            "unitPrice": "30",
        }
