import base64
import io
import os
import threading
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

TESTS_DIR = Path(__file__).parent

# Must be in place before anything under orderdesk loads its config
os.environ["ORDERDESK_CONFIG"] = str(TESTS_DIR / "config.test.toml")
os.environ["ENCRYPT_KEY"] = base64.b64encode(bytes(32)).decode()
Path("test_orderdesk.db").unlink(missing_ok=True)

from fastapi.testclient import TestClient  # noqa: E402

from orderdesk.core.notifier import Notifier  # noqa: E402
from orderdesk.core.storage import ObjectStorage  # noqa: E402
from orderdesk.main import app  # noqa: E402
from orderdesk.shared.dependencies import get_notifier, get_storage  # noqa: E402

ZERO_KEY_B64 = os.environ["ENCRYPT_KEY"]


class FakeS3Client:
    """In-memory stand-in for the handful of boto3 S3 calls we make."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_puts = False

    @staticmethod
    def _missing(operation):
        return ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, operation
        )

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail_puts:
            raise ClientError(
                {"Error": {"Code": "InternalError", "Message": "boom"}}, "PutObject"
            )
        self.objects[Key] = (Body, ContentType)
        return {}

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise self._missing("GetObject")
        body, content_type = self.objects[Key]
        return {"Body": io.BytesIO(body), "ContentType": content_type}

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        body, content_type = self.objects[Key]
        return {"ContentLength": len(body), "ContentType": content_type}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)
        return {}


class RecordingTransport:
    def __init__(self):
        self.sent = []
        self.fail = False
        self.release = threading.Event()
        self.block = False
        self._in_flight = 0
        self._idle = threading.Condition()

    def send(self, task):
        with self._idle:
            self._in_flight += 1
        try:
            if self.block:
                self.release.wait(timeout=10)
            if self.fail:
                raise ConnectionError("smtp unreachable")
            self.sent.append(task)
        finally:
            with self._idle:
                self._in_flight -= 1
                self._idle.notify_all()

    def wait_idle(self, timeout=5.0):
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)


@pytest.fixture(scope="session")
def s3_client():
    return FakeS3Client()


@pytest.fixture(scope="session")
def storage(s3_client):
    return ObjectStorage(s3_client, bucket="orderdesk", endpoint_url="https://s3.example.com")


@pytest.fixture(scope="session")
def transport():
    return RecordingTransport()


@pytest.fixture(scope="session")
def notifier(transport):
    return Notifier(transport, grace_period=0.5, deadline=2.0, max_workers=2)


@pytest.fixture(scope="session")
def client(storage, notifier):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_fakes(transport, s3_client):
    transport.sent.clear()
    transport.fail = False
    transport.block = False
    transport.release.clear()
    s3_client.fail_puts = False
    yield
    transport.release.set()
    transport.wait_idle()
