"""Vendor catalog sync.

Pull each auto-sync vendor's product feed over HTTP and upsert the rows into
``vendor_products`` by (vendor_id, external_id). Feeds are fetched
concurrently; writes are applied vendor by vendor with one commit per batch.
A vendor's failure is recorded on its own row and does not stop the others.
There is no retry: the next run re-upserts everything.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import httpx
from sqlalchemy.orm import Session

from roofdesk.config import get_settings
from roofdesk.logging_config import get_logger
from roofdesk.models.vendor import Vendor, VendorProduct, VendorSyncStatus

logger = get_logger(__name__)

USER_AGENT = "roofdesk-catalog-sync/1.0"


@dataclass
class VendorSyncResult:
    vendor_id: int
    status: str
    upserted: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    batches: int = 0
    error: Optional[str] = None


@dataclass
class SyncRunSummary:
    vendors: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[VendorSyncResult] = field(default_factory=list)


def _external_id(row: Dict[str, Any]) -> Optional[str]:
    for key in ("external_id", "id", "sku"):
        value = row.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _price(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace("$", "").replace(",", ""))
    except ValueError:
        return None


def normalize_feed_rows(payload: Any) -> Tuple[List[Dict[str, Any]], int]:
    """Rows keyed by external id, plus the count of rows skipped.

    Accepts a JSON list or an object wrapping it under ``products`` or
    ``items``. Later rows with a repeated external id replace earlier ones.
    """
    if isinstance(payload, dict):
        payload = payload.get("products") or payload.get("items") or []
    if not isinstance(payload, list):
        raise ValueError("Feed payload must be a list or an object with 'products' or 'items'")

    rows: Dict[str, Dict[str, Any]] = {}
    skipped = 0
    for raw in payload:
        if not isinstance(raw, dict):
            skipped += 1
            continue
        external_id = _external_id(raw)
        name = str(raw.get("name") or raw.get("title") or "").strip()
        if not external_id or not name:
            skipped += 1
            continue
        colors = raw.get("colors") or []
        rows[external_id] = {
            "external_id": external_id,
            "sku": str(raw["sku"]) if raw.get("sku") is not None else None,
            "name": name[:500],
            "category": raw.get("category"),
            "description": raw.get("description"),
            "unit": raw.get("unit"),
            "price": _price(raw.get("price")),
            "currency": str(raw.get("currency") or "USD")[:8],
            "colors": colors if isinstance(colors, list) else [],
            "data_sheet_url": raw.get("data_sheet_url") or raw.get("dataSheetUrl"),
            "image_url": raw.get("image_url") or raw.get("imageUrl"),
            "raw_json": raw,
        }
    return list(rows.values()), skipped


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    size = max(1, int(size))
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def fetch_feed(client: httpx.AsyncClient, feed_url: str) -> Any:
    response = await client.get(feed_url)
    response.raise_for_status()
    return response.json()


async def _fetch_all(
    targets: List[Tuple[int, str]],
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Any]:
    async with httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        transport=transport,
    ) as client:
        return await asyncio.gather(
            *(fetch_feed(client, url) for _vendor_id, url in targets),
            return_exceptions=True,
        )


def fetch_all_feeds(
    targets: List[Tuple[int, str]],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[int, Any]:
    """Fetch every (vendor_id, feed_url) concurrently; failures come back as exceptions."""
    if not targets:
        return {}
    settings = get_settings()
    results = asyncio.run(_fetch_all(targets, settings.vendor_sync_timeout_seconds, transport))
    return {vendor_id: result for (vendor_id, _url), result in zip(targets, results)}


def upsert_products(
    db: Session,
    vendor: Vendor,
    rows: List[Dict[str, Any]],
    batch_size: Optional[int] = None,
) -> VendorSyncResult:
    settings = get_settings()
    batch_size = batch_size or settings.vendor_sync_batch_size
    result = VendorSyncResult(vendor_id=vendor.id, status="running")
    now = datetime.utcnow()

    for batch in chunked(rows, batch_size):
        ids = [row["external_id"] for row in batch]
        existing = {
            product.external_id: product
            for product in db.query(VendorProduct)
            .filter(VendorProduct.vendor_id == vendor.id, VendorProduct.external_id.in_(ids))
            .all()
        }
        for row in batch:
            product = existing.get(row["external_id"])
            if product is None:
                product = VendorProduct(vendor_id=vendor.id, external_id=row["external_id"])
                db.add(product)
                result.created += 1
            else:
                result.updated += 1
            for key, value in row.items():
                if key != "external_id":
                    setattr(product, key, value)
            product.synced_at = now
        db.commit()
        result.batches += 1
        result.upserted += len(batch)

    return result


def _record_failure(db: Session, vendor: Vendor, error: str) -> VendorSyncResult:
    db.rollback()
    vendor.last_sync_at = datetime.utcnow()
    vendor.last_sync_status = VendorSyncStatus.failed
    vendor.last_sync_error = error[:2000]
    db.commit()
    logger.warning("Vendor %s (%s) sync failed: %s", vendor.id, vendor.slug, error)
    return VendorSyncResult(vendor_id=vendor.id, status="failed", error=error)


def apply_feed(db: Session, vendor: Vendor, payload: Any) -> VendorSyncResult:
    """Upsert one fetched feed and stamp the vendor's last-sync fields."""
    if isinstance(payload, BaseException):
        return _record_failure(db, vendor, f"{type(payload).__name__}: {payload}")
    try:
        rows, skipped = normalize_feed_rows(payload)
        result = upsert_products(db, vendor, rows)
    except Exception as exc:
        return _record_failure(db, vendor, f"{type(exc).__name__}: {exc}")

    result.skipped = skipped
    result.status = "success"
    vendor.last_sync_at = datetime.utcnow()
    vendor.last_sync_status = VendorSyncStatus.success
    vendor.last_sync_error = None
    vendor.last_sync_count = result.upserted
    db.commit()
    logger.info(
        "Vendor %s (%s) synced: %s upserted (%s new), %s skipped",
        vendor.id,
        vendor.slug,
        result.upserted,
        result.created,
        skipped,
    )
    return result


def sync_vendors(
    db: Session,
    vendors: List[Vendor],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SyncRunSummary:
    summary = SyncRunSummary(vendors=len(vendors))
    missing_feed = [v for v in vendors if not v.feed_url]
    targets = [(v.id, v.feed_url) for v in vendors if v.feed_url]

    for vendor in vendors:
        vendor.last_sync_status = VendorSyncStatus.running
    db.commit()

    for vendor in missing_feed:
        summary.results.append(_record_failure(db, vendor, "Vendor has no feed_url"))

    fetched = fetch_all_feeds(targets, transport=transport)
    by_id = {v.id: v for v in vendors}
    for vendor_id, payload in fetched.items():
        summary.results.append(apply_feed(db, by_id[vendor_id], payload))

    summary.succeeded = sum(1 for r in summary.results if r.status == "success")
    summary.failed = sum(1 for r in summary.results if r.status == "failed")
    return summary


def sync_vendor(
    db: Session,
    vendor: Vendor,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> VendorSyncResult:
    return sync_vendors(db, [vendor], transport=transport).results[0]


def sync_all_vendors(db: Session, transport: Optional[httpx.AsyncBaseTransport] = None) -> SyncRunSummary:
    vendors = db.query(Vendor).filter(Vendor.auto_sync.is_(True)).order_by(Vendor.id).all()
    logger.info("Starting catalog sync for %s auto-sync vendors", len(vendors))
    summary = sync_vendors(db, vendors, transport=transport)
    logger.info("Catalog sync finished: %s succeeded, %s failed", summary.succeeded, summary.failed)
    return summary
