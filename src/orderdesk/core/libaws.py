"""libaws module

Factory for boto3 clients pointed at an S3-compatible object store.
"""
import boto3
from botocore.config import Config as BotoConfig

from orderdesk.shared import Secrets
from orderdesk.shared.config import Storage


def session(**kwargs):
    return boto3.session.Session(**kwargs)


def s3_client(settings: Storage, secrets: Secrets | None = None, **kwargs):
    secrets = secrets or Secrets.from_env()
    return session().client(
        service_name="s3",
        endpoint_url=settings.endpoint_url,
        region_name=settings.region,
        aws_access_key_id=secrets.storage_access_key_id,
        aws_secret_access_key=secrets.storage_secret_access_key,
        config=BotoConfig(retries={"max_attempts": 3, "mode": "standard"}),
        **kwargs,
    )
