from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest


@pytest.fixture
def lambda_context():
    return SimpleNamespace(
        aws_request_id="test-request-id",
        function_name="test-function",
        memory_limit_in_mb=256,
        invoked_function_arn="arn:aws:lambda:us-east-1:000000000000:function:test",
        log_group_name="/aws/lambda/test-function",
        log_stream_name="2024/01/01/[$LATEST]test",
    )


@pytest.fixture
def attachment_item() -> dict[str, Any]:
    return {
        "attachment_id": "att_video",
        "entry_id": "entry_1",
        "account_id": "acct_1",
        "media_kind": "video",
        "object_key": "users/acct_1/1700000000000_0123456789abcdef_clip.mp4",
        "thumbnail_key": None,
        "original_filename": "clip.mp4",
        "content_type": "video/mp4",
        "file_size_mb": Decimal("2"),
        "dimensions_measured": False,
        "status": "complete",
        "created_at": "2024-01-01T10:00:00+00:00",
    }


@pytest.fixture
def scheduled_event() -> dict[str, Any]:
    return {
        "version": "0",
        "id": "d0f5e7a2-0000-0000-0000-000000000000",
        "detail-type": "Scheduled Event",
        "source": "aws.events",
        "time": "2024-01-01T00:00:00Z",
        "region": "us-east-1",
        "resources": [],
        "detail": {},
    }
