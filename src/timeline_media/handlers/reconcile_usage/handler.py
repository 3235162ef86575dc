"""
Lambda handler for the scheduled storage reconciliation sweep.
"""

from typing import Any

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from timeline_media.core.utils.time import utc_now_iso

from .models import ReconcileRequest, ReconcileResponse
from .service import ReconcileService

logger = Logger(UTC=True)
tracer = Tracer()
metrics = Metrics(namespace="TimelineMedia")


@tracer.capture_lambda_handler
@metrics.log_metrics()
def handler(event: dict[str, Any], context: LambdaContext) -> dict[str, Any]:
    """
    Restore usage counters and remove orphans.

    Args:
        event: EventBridge schedule event or ``{"account_ids": [...]}``
        context: AWS Lambda execution context

    Returns:
        Sweep summary

    Raises:
        pydantic.ValidationError: If the event payload is malformed
    """
    logger.info(
        "Received reconciliation request",
        extra={
            "source": event.get("source"),
            "request_id": getattr(context, "aws_request_id", None),
        },
    )

    request = ReconcileRequest.model_validate(event)
    reports, failed = ReconcileService().sweep(request.account_ids)

    fixes = sum(len(report.entries) for report in reports)
    metrics.add_metric(name="AccountsReconciled", unit=MetricUnit.Count, value=len(reports))
    metrics.add_metric(name="ReconciliationFixes", unit=MetricUnit.Count, value=fixes)
    if failed:
        metrics.add_metric(name="ReconciliationFailures", unit=MetricUnit.Count, value=len(failed))

    response = ReconcileResponse(
        accounts_swept=len(reports),
        accounts_failed=failed,
        fixes=fixes,
        completed_at=utc_now_iso(),
    )
    logger.info("Reconciliation finished", extra=response.model_dump())
    return response.model_dump()
