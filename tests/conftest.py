"""
Pytest configuration and fixtures for timeline-media tests.
Provides AWS mocking, DynamoDB and S3 fixtures, and in-memory stores
for exercising the coordinator without AWS.
"""

import os
import threading
from collections.abc import Callable
from enum import Enum
from io import BytesIO
from typing import Any

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws
from PIL import Image

os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("MEDIA_S3_BUCKET_NAME", "timeline-media-test")
os.environ.setdefault("MEDIA_ACCOUNTS_TABLE_NAME", "timeline-accounts-test")
os.environ.setdefault("MEDIA_ATTACHMENTS_TABLE_NAME", "timeline-attachments-test")
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "timeline-media")

from timeline_media.core.models.errors import AttachmentNotFound, StoreFailure  # noqa: E402
from timeline_media.core.models.media import (  # noqa: E402
    Account,
    Attachment,
    StoredObject,
    Tier,
)
from timeline_media.core.repositories.metadata_repository import MetadataStore  # noqa: E402
from timeline_media.core.repositories.storage_repository import ObjectStore  # noqa: E402
from timeline_media.core.utils.time import utc_now_iso  # noqa: E402


# ----------------------------------------------------------------------
# AWS
# ----------------------------------------------------------------------


@pytest.fixture(scope="function")
def aws_mock():
    with mock_aws():
        yield


@pytest.fixture(scope="function")
def dynamodb_resource(aws_mock):
    return boto3.resource("dynamodb", region_name=os.getenv("AWS_REGION"))


@pytest.fixture(scope="function")
def accounts_table(dynamodb_resource):
    table = dynamodb_resource.create_table(
        TableName=os.getenv("MEDIA_ACCOUNTS_TABLE_NAME"),
        BillingMode="PAY_PER_REQUEST",
        KeySchema=[{"AttributeName": "account_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "account_id", "AttributeType": "S"}],
    )
    table.wait_until_exists()
    return table


@pytest.fixture(scope="function")
def attachments_table(dynamodb_resource):
    table = dynamodb_resource.create_table(
        TableName=os.getenv("MEDIA_ATTACHMENTS_TABLE_NAME"),
        BillingMode="PAY_PER_REQUEST",
        KeySchema=[{"AttributeName": "attachment_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "attachment_id", "AttributeType": "S"},
            {"AttributeName": "account_id", "AttributeType": "S"},
            {"AttributeName": "entry_id", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "account-index",
                "KeySchema": [{"AttributeName": "account_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
            {
                "IndexName": "entry-index",
                "KeySchema": [{"AttributeName": "entry_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
    )
    table.wait_until_exists()
    return table


@pytest.fixture
def put_account(accounts_table) -> Callable[..., dict[str, Any]]:
    """
    Helper to insert an account row.

    Usage:
        put_account("acct_1", tier="personal", storage_used_mb=590)
    """
    from decimal import Decimal

    def _put(account_id: str, *, tier: str = "personal", storage_used_mb: float = 0) -> dict[str, Any]:
        item = {
            "account_id": account_id,
            "tier": tier,
            "storage_used_mb": Decimal(str(storage_used_mb)),
        }
        accounts_table.put_item(Item=item)
        return item

    return _put


@pytest.fixture(scope="function")
def s3_client(aws_mock):
    return boto3.client("s3", region_name=os.getenv("AWS_REGION"))


@pytest.fixture(scope="function")
def s3_bucket(s3_client):
    bucket_name = os.getenv("MEDIA_S3_BUCKET_NAME")
    try:
        s3_client.create_bucket(Bucket=bucket_name)
    except ClientError as e:
        if e.response["Error"]["Code"] != "BucketAlreadyOwnedByYou":
            raise
    return s3_client


@pytest.fixture
def s3_get_object(s3_bucket) -> Callable[[str], bytes]:
    def _get(key: str) -> bytes:
        response = s3_bucket.get_object(Bucket=os.getenv("MEDIA_S3_BUCKET_NAME"), Key=key)
        data: bytes = response["Body"].read()
        return data

    return _get


@pytest.fixture
def s3_put_object(s3_bucket) -> Callable[..., None]:
    def _put(key: str, body: bytes, content_type: str = "application/octet-stream") -> None:
        s3_bucket.put_object(
            Bucket=os.getenv("MEDIA_S3_BUCKET_NAME"),
            Key=key,
            Body=body,
            ContentType=content_type,
        )

    return _put


@pytest.fixture
def s3_keys(s3_bucket) -> Callable[[], list[str]]:
    def _keys() -> list[str]:
        response = s3_bucket.list_objects_v2(Bucket=os.getenv("MEDIA_S3_BUCKET_NAME"))
        return sorted(obj["Key"] for obj in response.get("Contents", []))

    return _keys


# ----------------------------------------------------------------------
# In-memory stores
# ----------------------------------------------------------------------


class InMemoryObjectStore(ObjectStore):
    """Dict-backed object store; signed URLs are fake but deterministic."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.metadata: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    def put(
        self,
        *,
        data: bytes,
        key: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        with self._lock:
            self.objects[key] = data
            self.content_types[key] = content_type
            self.metadata[key] = dict(metadata or {})
        return StoredObject(key=key, size=len(data))

    def delete(self, *, key: str) -> bool:
        with self._lock:
            self.objects.pop(key, None)
            self.content_types.pop(key, None)
            self.metadata.pop(key, None)
        return True

    def sign(self, *, key: str, ttl_seconds: int) -> str:
        return f"https://media.test/{key}?expires={ttl_seconds}"

    def fetch(self, *, key: str) -> bytes:
        with self._lock:
            if key not in self.objects:
                raise AttachmentNotFound(message="Media not found", details={"key": key})
            return self.objects[key]

    def list_keys(self, *, prefix: str) -> list[str]:
        with self._lock:
            return sorted(key for key in self.objects if key.startswith(prefix))


class InMemoryMetadataStore(MetadataStore):
    """Lock-protected metadata store with the same reservation semantics as DynamoDB."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.attachments: dict[str, Attachment] = {}
        self._lock = threading.Lock()

    def add_account(self, account_id: str, *, tier: Tier = Tier.PERSONAL, storage_used_mb: float = 0.0) -> Account:
        account = Account(account_id=account_id, tier=tier, storage_used_mb=storage_used_mb)
        self.accounts[account_id] = account
        return account

    def add_attachment(self, attachment: Attachment) -> Attachment:
        self.attachments[attachment.attachment_id] = attachment
        return attachment

    def usage(self, account_id: str) -> float:
        return self.accounts[account_id].storage_used_mb

    def get_account(self, *, account_id: str) -> Account | None:
        with self._lock:
            account = self.accounts.get(account_id)
            return account.model_copy() if account else None

    def list_account_ids(self) -> list[str]:
        with self._lock:
            return sorted(self.accounts)

    def update_usage(self, *, account_id: str, storage_used_mb: float) -> None:
        with self._lock:
            account = self.accounts[account_id]
            self.accounts[account_id] = account.model_copy(
                update={"storage_used_mb": max(0.0, storage_used_mb)}
            )

    def reserve_usage(self, *, account_id: str, size_mb: float, ceiling_mb: float | None) -> bool:
        with self._lock:
            account = self.accounts[account_id]
            if ceiling_mb is not None and account.storage_used_mb + size_mb > ceiling_mb:
                return False
            self.accounts[account_id] = account.model_copy(
                update={"storage_used_mb": account.storage_used_mb + size_mb}
            )
            return True

    def release_usage(self, *, account_id: str, size_mb: float) -> None:
        with self._lock:
            account = self.accounts[account_id]
            self.accounts[account_id] = account.model_copy(
                update={"storage_used_mb": max(0.0, account.storage_used_mb - size_mb)}
            )

    def create_attachment(self, *, attachment: Attachment) -> str:
        with self._lock:
            if attachment.attachment_id in self.attachments:
                raise StoreFailure(message="Attachment already exists")
            self.attachments[attachment.attachment_id] = attachment
        return attachment.attachment_id

    def get_attachment(self, *, attachment_id: str) -> Attachment | None:
        with self._lock:
            attachment = self.attachments.get(attachment_id)
            return attachment.model_copy() if attachment else None

    def update_attachment(self, *, attachment_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            attachment = self.attachments.get(attachment_id)
            if attachment is None:
                raise AttachmentNotFound(message="Attachment not found")
            update = {
                key: value.value if isinstance(value, Enum) else value
                for key, value in {**fields, "updated_at": utc_now_iso()}.items()
            }
            self.attachments[attachment_id] = Attachment.model_validate(
                {**attachment.model_dump(), **update}
            )

    def delete_attachment(self, *, attachment_id: str) -> Attachment | None:
        with self._lock:
            return self.attachments.pop(attachment_id, None)

    def list_account_attachments(self, *, account_id: str) -> list[Attachment]:
        with self._lock:
            return [a.model_copy() for a in self.attachments.values() if a.account_id == account_id]

    def list_entry_attachments(self, *, entry_id: str) -> list[Attachment]:
        with self._lock:
            return [a.model_copy() for a in self.attachments.values() if a.entry_id == entry_id]


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def metadata_store() -> InMemoryMetadataStore:
    return InMemoryMetadataStore()


# ----------------------------------------------------------------------
# Media samples
# ----------------------------------------------------------------------


def make_image(width: int, height: int, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """Encode a solid-colour image with Pillow."""
    color: Any = {"RGBA": (200, 120, 40, 255), "P": 1}.get(mode, (200, 120, 40))
    buffer = BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_factory() -> Callable[..., bytes]:
    return make_image


@pytest.fixture
def sample_png() -> bytes:
    return make_image(64, 48)


@pytest.fixture
def sample_mp4_header() -> bytes:
    """ISO base media header; enough for content sniffing, not for decoding."""
    return b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom" + b"\x00" * 64
