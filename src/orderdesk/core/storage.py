"""storage module

Facade over the S3 client used for payment proofs.

All boto calls and botocore exceptions stay in here; the rest of the code
only sees ``ObjectStorage``, ``StoredObject`` and the errors below.
"""
from dataclasses import dataclass
from urllib.parse import urlsplit

from botocore.exceptions import ClientError

from orderdesk.shared import Logger

logger = Logger(__name__).get_logger()

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageError(Exception):
    pass


class ObjectNotFound(StorageError):
    pass


@dataclass(frozen=True, slots=True)
class StoredObject:
    key: str
    size: int
    content_type: str
    body: bytes = b""


class ObjectStorage:
    def __init__(self, client, bucket: str, endpoint_url: str):
        self._client = client
        self.bucket = bucket
        self._host = urlsplit(endpoint_url).netloc or endpoint_url

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.{self._host}/{key}"

    def key_from_url(self, url: str) -> str:
        """
        Reverse of :meth:`url_for`.

        :raises StorageError: if the URL does not point into this bucket
        """
        parts = urlsplit(url)
        if parts.netloc != f"{self.bucket}.{self._host}" or not parts.path.strip("/"):
            raise StorageError(f"URL does not belong to bucket {self.bucket}: {url}")
        return parts.path.lstrip("/")

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket, Key=key, Body=data, ContentType=content_type
            )
        except ClientError as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.info("Stored object %s (%d bytes)", key, len(data))
        return self.url_for(key)

    def get(self, key: str) -> StoredObject:
        try:
            resp = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise self._translate(key, e) from e

        body = resp["Body"].read()
        return StoredObject(
            key=key,
            size=len(body),
            content_type=resp.get("ContentType", "application/octet-stream"),
            body=body,
        )

    def head(self, key: str) -> StoredObject:
        try:
            resp = self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise self._translate(key, e) from e

        return StoredObject(
            key=key,
            size=resp.get("ContentLength", 0),
            content_type=resp.get("ContentType", "application/octet-stream"),
        )

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

        logger.info("Deleted object %s", key)

    @staticmethod
    def _translate(key: str, e: ClientError) -> StorageError:
        code = str(e.response.get("Error", {}).get("Code", ""))
        if code in _NOT_FOUND_CODES:
            return ObjectNotFound(f"Object not found: {key}")
        return StorageError(f"Failed to read {key}: {e}")
