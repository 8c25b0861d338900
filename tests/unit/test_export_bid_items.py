"""Unit tests for the bid export script."""

import pytest
from unittest.mock import AsyncMock

from models.aggregate import BidAggregate, TotalProposedAmountResponse
from scripts.export_bid_items import export_bid


@pytest.mark.asyncio
async def test_export_bid(mock_api_client, sample_demolition_payload):
    mock_api_client.fetch_demolition_items = AsyncMock(return_value=sample_demolition_payload)
    mock_api_client.get_total = AsyncMock(return_value=TotalProposedAmountResponse(
        success=True,
        data=BidAggregate(bid_id="bid-1", total_proposed_amount=140),
    ))

    export = await export_bid("bid-1", mock_api_client, with_records=True)

    assert export["itemCount"] == 2
    assert export["totalProposedAmount"] == 150
    assert export["storedTotal"] == 140
    assert export["items"][0]["resolved"]["unitPrice"] == 25
    assert [record["name"] for record in export["records"]] == ["Remove drywall", "Remove ceiling tiles"]


@pytest.mark.asyncio
async def test_export_without_stored_total(mock_api_client):
    export = await export_bid("bid-1", mock_api_client)

    assert export["itemCount"] == 0
    assert export["storedTotal"] is None
    assert "records" not in export
