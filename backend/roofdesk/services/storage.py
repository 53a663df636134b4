"""S3-compatible object storage for generated packets."""
from __future__ import annotations

from typing import Optional

import boto3

from roofdesk.config import get_settings
from roofdesk.logging_config import get_logger

logger = get_logger(__name__)


class PacketStorage:
    def __init__(self, client=None, bucket: Optional[str] = None) -> None:
        settings = get_settings()
        if client is None:
            client = boto3.client(
                "s3",
                region_name=settings.storage_region,
                endpoint_url=settings.storage_endpoint_url or None,
            )
        self._client = client
        self.bucket = bucket or settings.storage_bucket
        self.prefix = settings.storage_prefix.strip("/")
        self.url_ttl_seconds = settings.packet_url_ttl_seconds

    def packet_key(self, org_id: int, claim_id: int, public_id: str) -> str:
        return f"{self.prefix}/{org_id}/{claim_id}/{public_id}.pdf"

    def put_pdf(self, key: str, data: bytes, *, filename: str) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType="application/pdf",
            ContentDisposition=f'inline; filename="{filename}"',
        )
        logger.info("Uploaded %s bytes to s3://%s/%s", len(data), self.bucket, key)

    def presigned_url(self, key: str, expires_in: Optional[int] = None) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=int(expires_in or self.url_ttl_seconds),
        )
