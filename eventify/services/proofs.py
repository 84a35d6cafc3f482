"""Object storage for uploaded payment proofs."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError  # type: ignore[import-untyped]

from eventify.core.config import Settings, get_settings
from eventify.services.errors import ValidationFailedError

logger = logging.getLogger(__name__)

_ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "application/pdf": "pdf",
}


@dataclass(slots=True, frozen=True)
class StoredProof:
    """Location of a stored proof artifact."""

    key: str
    location: str
    content_type: str
    size: int


class PaymentProofStorage:
    """Writes proof artifacts to S3 and hands back an opaque reference."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._s3_client_factory = s3_client_factory or self._default_s3_client
        self._s3_client: Any | None = None
        self._bucket_ready = False

    def _default_s3_client(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _get_s3_client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = self._s3_client_factory()
        return self._s3_client

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        client = self._get_s3_client()
        bucket = self._settings.payment_proof_bucket
        try:
            client.head_bucket(Bucket=bucket)
        except ClientError:
            client.create_bucket(Bucket=bucket)
        self._bucket_ready = True

    def store(
        self,
        *,
        reservation_id: str,
        file_bytes: bytes,
        content_type: str | None,
        filename: str | None = None,
    ) -> StoredProof:
        """Validate and upload a proof, returning its ``s3://`` reference."""

        media_type = (content_type or "").split(";")[0].strip().lower()
        extension = _ALLOWED_CONTENT_TYPES.get(media_type)
        if extension is None:
            allowed = ", ".join(sorted(_ALLOWED_CONTENT_TYPES))
            raise ValidationFailedError(f"Payment proof must be one of: {allowed}")
        if not file_bytes:
            raise ValidationFailedError("Payment proof file is empty")
        if len(file_bytes) > self._settings.payment_proof_max_bytes:
            raise ValidationFailedError(
                f"Payment proof exceeds {self._settings.payment_proof_max_bytes} bytes"
            )

        self._ensure_bucket()
        prefix = self._settings.payment_proof_prefix.rstrip("/")
        key = f"{prefix}/{reservation_id}/{datetime.now(UTC):%Y/%m/%d}/{uuid4().hex}.{extension}"
        self._get_s3_client().put_object(
            Bucket=self._settings.payment_proof_bucket,
            Key=key,
            Body=file_bytes,
            ContentType=media_type,
            Metadata={"reservation_id": reservation_id, "filename": filename or ""},
        )
        location = f"s3://{self._settings.payment_proof_bucket}/{key}"
        logger.info(
            "stored payment proof",
            extra={"reservation_id": reservation_id, "location": location, "size": len(file_bytes)},
        )
        return StoredProof(key=key, location=location, content_type=media_type, size=len(file_bytes))


__all__ = ["PaymentProofStorage", "StoredProof"]
