"""
AWS client factory for the S3 blob store and the SQS transport.
Credentials fall back to the standard boto3 chain (env vars, profile, role).
"""
from __future__ import annotations

import os
import structlog
from typing import Any, Optional

import boto3
from botocore.config import Config

logger = structlog.get_logger()


def _credentials() -> dict[str, Optional[str]]:
    return {
        "aws_access_key_id": os.getenv("AWS_ACCESS_KEY_ID"),
        "aws_secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY"),
        "aws_session_token": os.getenv("AWS_SESSION_TOKEN"),  # optional, temporary creds
    }


def create_aws_client(
    service: str,
    region: str = "us-east-1",
    endpoint_url: str = "",
    max_attempts: int = 3,
) -> Any:
    """Create a boto3 client. `endpoint_url` points at LocalStack/MinIO in dev."""
    config = Config(retries={"max_attempts": max_attempts, "mode": "standard"})
    kwargs: dict[str, Any] = {"region_name": region, "config": config, **_credentials()}
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    try:
        client = boto3.client(service, **kwargs)
    except Exception as e:
        logger.error("aws_client_init_failed", service=service, region=region, error=str(e))
        raise
    logger.info("aws_client_initialized", service=service, region=region)
    return client
