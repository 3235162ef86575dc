"""Timeline Media Package."""

__version__ = "1.0.0"
__description__ = (
    "Media ingestion and storage accounting for timeline entries, backed by S3 and DynamoDB"
)

__all__ = ["handlers", "core"]
