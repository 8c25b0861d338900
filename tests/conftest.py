"""Pytest configuration and shared fixtures for BidSync tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock
from typing import Dict, Any, List


# ============================================================================
# Ensure local imports work (config/, models/, services/, utils/, validators/)
# ============================================================================
#
# The codebase uses absolute imports like `from models...` / `from services...`.
# This guarantees that the repository root is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client."""
    client = MagicMock()

    # Mock collection and document methods
    collection_mock = MagicMock()
    document_mock = MagicMock()

    # Set up chain: client.collection().document()
    client.collection.return_value = collection_mock
    collection_mock.document.return_value = document_mock

    # Mock async methods
    document_mock.get = AsyncMock(return_value=MagicMock(
        exists=False,
        to_dict=lambda: {}
    ))
    document_mock.set = AsyncMock()
    document_mock.delete = AsyncMock()

    # Mock subcollection: .collection().document() returns the same document
    subcollection_mock = MagicMock()
    document_mock.collection.return_value = subcollection_mock
    subcollection_mock.document.return_value = document_mock

    return client


@pytest.fixture
def snapshot_cache(mock_firestore_client):
    """SnapshotCache with mocked client."""
    from services.snapshot_cache import SnapshotCache

    return SnapshotCache(db=mock_firestore_client, enabled=True)


# ============================================================================
# Backend Mocks
# ============================================================================

@pytest.fixture
def mock_api_client():
    """Mock BidBackendClient with successful defaults."""
    from models.aggregate import TotalProposedAmountResponse
    from services.bid_api_client import BidBackendClient

    client = MagicMock(spec=BidBackendClient)
    client.fetch_demolition_items = AsyncMock(return_value={"demolitionItems": []})
    client.create_demolition_item = AsyncMock(return_value={"success": True, "item": {"_id": "backend-1"}})
    client.update_demolition_item = AsyncMock(return_value={"success": True})
    client.delete_item = AsyncMock(return_value={"success": True})
    client.replace_demolition_items = AsyncMock(return_value={"success": True})
    client.get_total = AsyncMock(return_value=TotalProposedAmountResponse(success=False))
    client.set_total = AsyncMock(return_value=TotalProposedAmountResponse(success=True))
    client.update_total = AsyncMock(return_value=TotalProposedAmountResponse(success=True))
    client.clear_total = AsyncMock(return_value=TotalProposedAmountResponse(success=True))
    client.calculate_total = AsyncMock(return_value=TotalProposedAmountResponse(success=True))
    client.extract_created_id = BidBackendClient.extract_created_id
    return client


@pytest.fixture
def notifier():
    """Notifier that only records history."""
    from utils.notifications import Notifier

    return Notifier()


@pytest.fixture
def item_store():
    from services.item_store import ItemStore

    return ItemStore()


# ============================================================================
# Sample Data
# ============================================================================

@pytest.fixture
def sample_demolition_record() -> Dict[str, Any]:
    """Demolition record as stored by the backend, with upstream pricing."""
    return {
        "itemNumber": "bid_item_1700000000000_0",
        "name": "Remove drywall",
        "description": "Remove drywall in suite 200",
        "category": "wall",
        "action": "Remove",
        "measurements": {"quantity": "4", "unit": "sq ft", "dimensions": "10x12"},
        "pricing": "20",
        "unitPrice": "20",
        "totalPrice": "80",
        "calculatedUnitPrice": 25,
        "calculatedTotalPrice": 100,
        "pricesheetMatch": {"itemPrice": 22, "sheetName": "2024 rates"},
        "location": "Suite 200",
        "specifications": "5/8 in. type X",
        "isActive": True,
        "confidence": 0.92,
    }


@pytest.fixture
def sample_demolition_payload(sample_demolition_record) -> Dict[str, Any]:
    """Backend items payload with the AI-extracted envelope."""
    second = {
        "itemNumber": "bid_item_1700000000000_1",
        "name": "Remove ceiling tiles",
        "category": "ceiling",
        "measurements": {"quantity": "10", "unit": "Each"},
        "unitPrice": "5",
        "totalPrice": "50",
    }
    return {
        "demolitionItems": [],
        "aiExtractedData": {"demolitionItems": [sample_demolition_record, second]},
    }


@pytest.fixture
def sample_line_items() -> List:
    """Mixed demolition and manual line items."""
    from models.line_item import ItemOrigin, LineItem

    return [
        LineItem(
            id="bid_item_1",
            name="Remove wall",
            measurement="2 Each",
            quantity=2,
            category="Demolition",
            unit_price=50,
            proposed_total=100,
            origin=ItemOrigin.DEMOLITION,
        ),
        LineItem(
            id="manual-1",
            name="Permit",
            measurement="1 Each",
            category="Regular",
            unit_price=250,
            proposed_total=250,
            origin=ItemOrigin.MANUAL,
        ),
    ]
