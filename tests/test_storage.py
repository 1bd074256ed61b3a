import asyncio
import re

import pytest

from orderdesk.core.storage import ObjectNotFound, ObjectStorage, StorageError
from orderdesk.core.uploads import (
    UploadRejected,
    check_upload,
    content_type_for,
    generate_object_key,
    read_upload,
    save_upload,
)
from orderdesk.shared.config import Uploads

from .conftest import FakeS3Client


@pytest.fixture
def fresh_storage():
    return ObjectStorage(FakeS3Client(), bucket="proofs", endpoint_url="https://s3.example.com")


def test_put_returns_bucket_url(fresh_storage):
    url = fresh_storage.put("payment_proofs/a.png", b"data", "image/png")
    assert url == "https://proofs.s3.example.com/payment_proofs/a.png"
    assert fresh_storage.key_from_url(url) == "payment_proofs/a.png"


def test_get_and_head(fresh_storage):
    fresh_storage.put("k.pdf", b"%PDF-1.7", "application/pdf")

    stored = fresh_storage.get("k.pdf")
    assert stored.body == b"%PDF-1.7"
    assert stored.content_type == "application/pdf"

    head = fresh_storage.head("k.pdf")
    assert head.size == 8
    assert head.body == b""


def test_missing_object(fresh_storage):
    with pytest.raises(ObjectNotFound):
        fresh_storage.get("nope")
    with pytest.raises(ObjectNotFound):
        fresh_storage.head("nope")


def test_put_failure_is_wrapped():
    client = FakeS3Client()
    client.fail_puts = True
    storage = ObjectStorage(client, bucket="proofs", endpoint_url="https://s3.example.com")
    with pytest.raises(StorageError):
        storage.put("k", b"x", "text/plain")


def test_key_from_foreign_url_is_rejected(fresh_storage):
    with pytest.raises(StorageError):
        fresh_storage.key_from_url("https://elsewhere.example.com/payment_proofs/a.png")


def test_delete(fresh_storage):
    fresh_storage.put("gone.png", b"x", "image/png")
    fresh_storage.delete("gone.png")
    with pytest.raises(ObjectNotFound):
        fresh_storage.get("gone.png")


class TestUploadPolicy:
    policy = Uploads(max_file_size=10)

    @pytest.mark.parametrize("name", ["a.jpg", "a.JPEG", "scan.png", "doc.pdf"])
    def test_allowed(self, name):
        check_upload(name, 10, self.policy)

    @pytest.mark.parametrize("name", ["a.exe", "a.gif", "noext", ""])
    def test_rejected_extension(self, name):
        with pytest.raises(UploadRejected, match="extension"):
            check_upload(name, 1, self.policy)

    def test_rejected_size(self):
        with pytest.raises(UploadRejected, match="too large"):
            check_upload("a.png", 11, self.policy)


class StreamedFile:
    """Records how much the caller asked to read."""

    def __init__(self, data, size=None):
        self.data = data
        self.size = size
        self.requested = []

    async def read(self, size=-1):
        self.requested.append(size)
        return self.data if size < 0 else self.data[:size]


class TestReadUpload:
    policy = Uploads(max_file_size=10)

    def test_reads_at_most_one_byte_past_the_limit(self):
        upload = StreamedFile(b"x" * 1000)

        with pytest.raises(UploadRejected, match="too large"):
            asyncio.run(read_upload(upload, self.policy))

        assert upload.requested == [11]

    def test_declared_size_is_rejected_before_reading(self):
        upload = StreamedFile(b"x" * 1000, size=1000)

        with pytest.raises(UploadRejected, match="1000 bytes"):
            asyncio.run(read_upload(upload, self.policy))

        assert upload.requested == []

    def test_within_limit(self):
        upload = StreamedFile(b"x" * 10, size=10)
        assert asyncio.run(read_upload(upload, self.policy)) == b"x" * 10


def test_generated_key_ignores_client_name():
    key = generate_object_key("payment_proofs", "../../etc/passwd.PNG")
    assert re.fullmatch(r"payment_proofs/\d+_[0-9a-f]{8}\.png", key)


def test_content_type_for():
    assert content_type_for("x.JPG") == "image/jpeg"
    assert content_type_for("x.pdf") == "application/pdf"
    assert content_type_for("x.bin") == "application/octet-stream"


def test_save_upload_falls_back_to_extension_content_type(fresh_storage):
    key, url = save_upload(
        fresh_storage, "proof.png", b"png", None, Uploads(), "payment_proofs"
    )
    assert url.endswith(key)
    assert fresh_storage.head(key).content_type == "image/png"
