"""
Object Store Gateway -- photo bytes in an S3-compatible bucket.

boto3 is blocking, so every call is pushed onto a worker thread with
``asyncio.to_thread`` to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.domain.errors import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    reference: str
    url: str


class ObjectStoreGateway:
    def __init__(
        self,
        bucket: str,
        client: Any = None,
        endpoint_url: Optional[str] = None,
        region_name: str = "us-east-1",
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        public_url: Optional[str] = None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.public_url = public_url
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region_name,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )

    def object_key(self, original_name: str, slot: str, driver_ref: str | int) -> str:
        extension = os.path.splitext(original_name or "")[1].lower()
        return f"{driver_ref}/{slot}/{uuid.uuid4()}{extension}"

    def url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def upload(
        self,
        data: bytes,
        original_name: str,
        mime_type: str,
        slot: str,
        driver_ref: str | int,
    ) -> StoredObject:
        """Store *data* privately; raise ``UpstreamFailure`` on any error."""
        key = self.object_key(original_name, slot, driver_ref)
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=mime_type,
                ACL="private",
                Metadata={
                    "original-name": original_name,
                    "photo-type": slot,
                    "driver-id": str(driver_ref),
                    "upload-date": datetime.now(timezone.utc).isoformat(),
                },
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Upload of %s failed: %s", key, exc)
            raise UpstreamFailure(f"Photo upload failed: {exc}") from exc
        return StoredObject(reference=key, url=self.url_for(key))

    async def delete(self, reference: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self.bucket, Key=reference
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Delete of %s failed: %s", reference, exc)
            return False
        return True
