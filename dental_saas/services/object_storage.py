from __future__ import annotations

import logging
import os
import re
from typing import BinaryIO, Iterable

from botocore.exceptions import BotoCoreError, ClientError

from dental_saas.core.config import (
    SIGNED_URL_TTL_SECONDS,
    STORAGE_BUCKET_NAME,
    STORAGE_ENDPOINT_URL,
    STORAGE_REGION,
)

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    pass


def _get_required_env(var_name: str) -> str:
    value = os.getenv(var_name, "").strip()
    if not value:
        raise RuntimeError(f"Variável de ambiente obrigatória ausente: {var_name}")
    return value


def _build_s3_client():
    import boto3

    return boto3.client(
        "s3",
        endpoint_url=STORAGE_ENDPOINT_URL,
        aws_access_key_id=_get_required_env("STORAGE_ACCESS_KEY_ID"),
        aws_secret_access_key=_get_required_env("STORAGE_SECRET_ACCESS_KEY"),
        region_name=STORAGE_REGION,
    )


def sanitize_filename(filename: str | None) -> str:
    base = os.path.basename((filename or "").strip()) or "arquivo"
    return _UNSAFE_FILENAME_CHARS.sub("_", base)


def build_treatment_file_key(treatment_id: int, filename: str | None, timestamp_ms: int) -> str:
    return f"{treatment_id}/{timestamp_ms}-{sanitize_filename(filename)}"


class ObjectStorage:
    """Bucket S3 compatível onde ficam os arquivos dos tratamentos."""

    def __init__(self, client=None, bucket: str = STORAGE_BUCKET_NAME):
        self._client = client
        self.bucket = bucket

    @property
    def client(self):
        if self._client is None:
            self._client = _build_s3_client()
        return self._client

    def upload(self, key: str, fileobj: BinaryIO, content_type: str | None = None) -> str:
        extra_args = {"ContentType": content_type} if content_type else None
        fileobj.seek(0)
        try:
            if extra_args:
                self.client.upload_fileobj(fileobj, self.bucket, key, ExtraArgs=extra_args)
            else:
                self.client.upload_fileobj(fileobj, self.bucket, key)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("Storage upload failed key=%s", key)
            raise StorageError(str(exc)) from exc
        return key

    def remove(self, keys: Iterable[str]) -> None:
        objects = [{"Key": key} for key in keys]
        if not objects:
            return
        try:
            self.client.delete_objects(Bucket=self.bucket, Delete={"Objects": objects})
        except (BotoCoreError, ClientError) as exc:
            logger.exception("Storage removal failed keys=%s", [item["Key"] for item in objects])
            raise StorageError(str(exc)) from exc

    def create_signed_url(self, key: str, expires_in: int = SIGNED_URL_TTL_SECONDS) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("Signed URL generation failed key=%s", key)
            raise StorageError(str(exc)) from exc
