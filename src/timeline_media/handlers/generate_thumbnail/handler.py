"""
Lambda handler populating video thumbnails after upload.
"""

from typing import Any

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from timeline_media.core.config import MediaConfig
from timeline_media.core.infrastructure.aws.dynamodb_metadata import DynamoDBMetadata
from timeline_media.core.infrastructure.aws.s3_object_store import S3ObjectStore
from timeline_media.core.models.errors import AttachmentNotFound, TransformFailure
from timeline_media.core.services.coordinator import AccountingCoordinator

from .models import GenerateThumbnailRequest, GenerateThumbnailResponse

logger = Logger(UTC=True)
tracer = Tracer()
metrics = Metrics(namespace="TimelineMedia")


@tracer.capture_lambda_handler
@metrics.log_metrics()
def handler(event: dict[str, Any], context: LambdaContext) -> dict[str, Any]:
    """
    Generate the thumbnail for one video attachment.

    A missing attachment (deleted since upload) and an unextractable frame
    are final outcomes and return normally. Store failures propagate so the
    asynchronous invocation is retried.

    Args:
        event: ``{"attachment_id": "att_..."}``
        context: AWS Lambda execution context

    Returns:
        Attachment id and thumbnail key
    """
    request = GenerateThumbnailRequest.model_validate(event)
    logger.append_keys(attachment_id=request.attachment_id)
    logger.info(
        "Received thumbnail request",
        extra={"request_id": getattr(context, "aws_request_id", None)},
    )

    coordinator = AccountingCoordinator(
        object_store=S3ObjectStore(),
        metadata_store=DynamoDBMetadata(),
        config=MediaConfig.from_env(),
    )

    try:
        thumbnail_key = coordinator.generate_thumbnail(attachment_id=request.attachment_id)
    except AttachmentNotFound:
        logger.warning("Attachment gone before thumbnail generation")
        thumbnail_key = None
    except TransformFailure as exc:
        logger.warning("Thumbnail extraction failed", extra={"details": exc.details})
        metrics.add_metric(name="ThumbnailFailures", unit=MetricUnit.Count, value=1)
        thumbnail_key = None
    else:
        if thumbnail_key:
            metrics.add_metric(name="ThumbnailsGenerated", unit=MetricUnit.Count, value=1)

    return GenerateThumbnailResponse(
        attachment_id=request.attachment_id,
        thumbnail_key=thumbnail_key,
    ).model_dump()
