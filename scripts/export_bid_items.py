"""
Export a bid's line items and reconciled total from the backend to JSON.

Fetches the demolition items of one bid, maps them to line items, resolves
every price and writes the result together with the computed total. Useful
for checking what the UI will display for a bid without opening it.

Usage:
  BIDSYNC_API_BASE_URL=http://localhost:5000/api \\
  python scripts/export_bid_items.py --bid-id 66f0c1... --out bid-export.json

  # include the storage records that would be written back
  python scripts/export_bid_items.py --bid-id 66f0c1... --with-records
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import structlog  # noqa: E402

from config.errors import BidSyncError  # noqa: E402
from config.settings import settings  # noqa: E402
from services.bid_api_client import BidBackendClient  # noqa: E402
from services.price_resolver import resolve_prices, sum_proposed_bids  # noqa: E402
from services.schema_mapper import line_items_to_records, map_items_payload  # noqa: E402
from utils.logging import configure_logging  # noqa: E402

logger = structlog.get_logger()


def _item_row(item) -> Dict[str, Any]:
    prices = resolve_prices(item)
    row = item.to_wire()
    row["resolved"] = {
        "unitPrice": prices.unit_price,
        "totalPrice": prices.total_price,
        "proposedBid": prices.proposed_bid,
        "quantity": prices.quantity,
    }
    return row


async def export_bid(bid_id: str, client: BidBackendClient, with_records: bool = False) -> Dict[str, Any]:
    """Build the export document for one bid.

    Raises:
        BidSyncError: The backend could not be read.
    """
    payload = await client.fetch_demolition_items(bid_id)
    items = map_items_payload(payload)

    export: Dict[str, Any] = {
        "bidId": bid_id,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "itemCount": len(items),
        "totalProposedAmount": sum_proposed_bids(items),
        "items": [_item_row(item) for item in items],
    }

    stored = await client.get_total(bid_id)
    export["storedTotal"] = stored.data.total_proposed_amount if stored.success and stored.data else None

    if with_records:
        records: List[Dict[str, Any]] = [record.to_payload() for record in line_items_to_records(items)]
        export["records"] = records
    return export


def main() -> int:
    parser = argparse.ArgumentParser(description="Export a bid's reconciled line items to JSON")
    parser.add_argument("--bid-id", required=True, help="Backend bid id")
    parser.add_argument("--out", required=False, help="Output file path (defaults to ./bid-export.json)")
    parser.add_argument("--base-url", required=False, help="API root (defaults to BIDSYNC_API_BASE_URL)")
    parser.add_argument("--token", required=False, help="Bearer token (defaults to BIDSYNC_API_TOKEN)")
    parser.add_argument(
        "--with-records",
        action="store_true",
        help="Also include the storage records a bulk save would send",
    )
    parser.add_argument("--log-level", required=False, help="Log level (defaults to LOG_LEVEL)")
    args = parser.parse_args()

    configure_logging(args.log_level)
    try:
        settings.validate()
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 2
    out_path = args.out or "bid-export.json"
    client = BidBackendClient(base_url=args.base_url, token=args.token)

    try:
        export = asyncio.run(export_bid(args.bid_id, client, with_records=args.with_records))
    except BidSyncError as e:
        logger.error("bid_export_failed", bid_id=args.bid_id, code=e.code, error=e.message)
        print(f"Export failed: {e.message}")
        return 2

    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(export, f, indent=2, sort_keys=True, default=str)

    print(f"Wrote {out_path} ({export['itemCount']} items, total {export['totalProposedAmount']:.2f})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
