import httpx
import pytest

from roofdesk.models.vendor import Vendor, VendorProduct, VendorSyncStatus
from roofdesk.services.vendor_sync import (
    chunked,
    normalize_feed_rows,
    sync_all_vendors,
    sync_vendor,
    upsert_products,
)

FEED = {
    "products": [
        {"id": "SH-1", "name": "Duration Shingle", "price": "$1,234.50", "unit": "SQ", "sku": 1001},
        {"sku": "DE-2", "title": "Drip Edge", "price": "n/a"},
        {"id": "SH-1", "name": "Duration Shingle (2026)", "price": 99},
        {"name": "No id"},
        {"id": "X-9"},
        "garbage",
    ]
}


def _feed_handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "good.test":
        return httpx.Response(200, json=FEED)
    if request.url.host == "items.test":
        return httpx.Response(200, json={"items": [{"external_id": "I-1", "name": "Ice shield"}]})
    return httpx.Response(500, json={"error": "down"})


@pytest.fixture
def transport():
    return httpx.MockTransport(_feed_handler)


def test_normalize_feed_rows_keys_by_external_id():
    rows, skipped = normalize_feed_rows(FEED)
    assert skipped == 3
    assert [r["external_id"] for r in rows] == ["SH-1", "DE-2"]
    shingle = rows[0]
    assert shingle["name"] == "Duration Shingle (2026)"
    assert shingle["price"] == 99.0
    assert shingle["sku"] is None
    drip = rows[1]
    assert drip["name"] == "Drip Edge"
    assert drip["sku"] == "DE-2"
    assert drip["price"] is None
    assert drip["currency"] == "USD"


def test_normalize_feed_rows_parses_money_strings():
    rows, _ = normalize_feed_rows([{"id": "A", "name": "A", "price": "$1,234.50"}])
    assert rows[0]["price"] == 1234.5


def test_normalize_feed_rows_rejects_non_list_payloads():
    with pytest.raises(ValueError):
        normalize_feed_rows("not a feed")


def test_chunked_splits_evenly():
    assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]


def test_upsert_products_commits_per_batch_and_updates_in_place(sync_db):
    vendor = Vendor(slug="abc-supply", name="ABC Supply")
    sync_db.add(vendor)
    sync_db.commit()

    rows = [{"external_id": f"P-{i}", "name": f"Product {i}", "price": float(i)} for i in range(5)]
    first = upsert_products(sync_db, vendor, rows, batch_size=2)
    assert (first.created, first.updated, first.batches, first.upserted) == (5, 0, 3, 5)

    rows[0]["name"] = "Renamed"
    second = upsert_products(sync_db, vendor, rows[:2], batch_size=10)
    assert (second.created, second.updated, second.batches) == (0, 2, 1)

    products = sync_db.query(VendorProduct).filter(VendorProduct.vendor_id == vendor.id).all()
    assert len(products) == 5
    assert {p.name for p in products if p.external_id == "P-0"} == {"Renamed"}
    assert all(p.synced_at is not None for p in products)


def test_sync_vendor_records_success(sync_db, transport):
    vendor = Vendor(slug="good", name="Good Supply", feed_url="https://good.test/feed.json")
    sync_db.add(vendor)
    sync_db.commit()

    result = sync_vendor(sync_db, vendor, transport=transport)
    assert result.status == "success"
    assert result.upserted == 2
    assert result.skipped == 3

    sync_db.refresh(vendor)
    assert vendor.last_sync_status == VendorSyncStatus.success
    assert vendor.last_sync_count == 2
    assert vendor.last_sync_error is None


def test_sync_all_vendors_isolates_failures(sync_db, transport):
    good = Vendor(slug="good", name="Good", feed_url="https://good.test/feed", auto_sync=True)
    items = Vendor(slug="items", name="Items", feed_url="https://items.test/feed", auto_sync=True)
    broken = Vendor(slug="broken", name="Broken", feed_url="https://broken.test/feed", auto_sync=True)
    no_feed = Vendor(slug="nofeed", name="No Feed", auto_sync=True)
    manual = Vendor(slug="manual", name="Manual", feed_url="https://good.test/feed", auto_sync=False)
    sync_db.add_all([good, items, broken, no_feed, manual])
    sync_db.commit()

    summary = sync_all_vendors(sync_db, transport=transport)
    assert summary.vendors == 4
    assert summary.succeeded == 2
    assert summary.failed == 2

    for vendor in (good, items, broken, no_feed, manual):
        sync_db.refresh(vendor)
    assert good.last_sync_status == VendorSyncStatus.success
    assert items.last_sync_count == 1
    assert broken.last_sync_status == VendorSyncStatus.failed
    assert "HTTPStatusError" in broken.last_sync_error
    assert no_feed.last_sync_error == "Vendor has no feed_url"
    assert manual.last_sync_status == VendorSyncStatus.never
    assert sync_db.query(VendorProduct).filter(VendorProduct.vendor_id == manual.id).count() == 0
