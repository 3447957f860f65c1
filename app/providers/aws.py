"""
Shared aioboto3 session helpers for the S3 and SES providers.
"""
from __future__ import annotations

import aioboto3
from botocore.config import Config as BotoConfig


def create_aws_session(
    access_key_id: str | None,
    secret_access_key: str | None,
    region: str,
) -> aioboto3.Session:
    """Create an aioboto3 session from explicit credentials."""
    return aioboto3.Session(
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        region_name=region,
    )


def client_config(timeout: float) -> BotoConfig:
    """
    Botocore client config bounded by the provider call timeout.

    botocore's own retries are limited so the outer asyncio timeout stays
    the single source of truth for how long a call may take.
    """
    return BotoConfig(
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"max_attempts": 2, "mode": "standard"},
    )
