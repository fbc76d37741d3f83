"""Tests for data URI decoding and attachment storage."""

import base64
from pathlib import Path

import pytest

from notice_intake.domain.notices import FileUploadDraft, FileUploadKind
from notice_intake.services.errors import MalformedPayload, StorageFailure
from notice_intake.services.file_uploads import (
    DEFAULT_MEDIA_TYPE,
    FileAttachmentDecoder,
    decode_data_uri,
)
from notice_intake.services.storage import (
    BlobStorageError,
    DeferredBlobStorage,
    StorageConfigurationError,
    generate_object_key,
)


class BrokenStorage:
    def store(self, data: bytes, filename: str, *, content_type: str | None = None) -> str:
        raise BlobStorageError("disk full")

    def delete(self, locator: str) -> None:
        raise BlobStorageError("disk gone")


def test_decodes_text_payload_and_media_type():
    decoded = decode_data_uri("data:text/plain;base64," + base64.b64encode(b"Hello, world").decode())

    assert decoded.media_type == "text/plain"
    assert decoded.data == b"Hello, world"


def test_keeps_media_type_parameters():
    value = "data:text/html;charset=utf-8;base64," + base64.b64encode(b"<p>hi</p>").decode()

    assert decode_data_uri(value).media_type == "text/html;charset=utf-8"


def test_missing_media_type_defaults_to_ascii_text():
    decoded = decode_data_uri("data:;base64," + base64.b64encode(b"plain").decode())

    assert decoded.media_type == DEFAULT_MEDIA_TYPE


def test_binary_payload_with_mime_line_breaks_roundtrips():
    """MIME encoders wrap base64 output every 76 characters."""
    data = bytes(range(256)) * 4
    wrapped = base64.encodebytes(data).decode("ascii")
    assert "\n" in wrapped

    decoded = decode_data_uri("data:application/octet-stream;base64," + wrapped)

    assert decoded.data == data


@pytest.mark.parametrize(
    "value",
    [
        None,
        "",
        "Hello, world",
        "data:text/plain,Hello",
        "data:text/plain;base64",
        "data:text/plain;base64,",
        "data:text/plain;base64,not*base64!",
        "data:text/plain;base64,SGVsbG8",
    ],
)
def test_malformed_values_are_rejected(value):
    with pytest.raises(MalformedPayload):
        decode_data_uri(value)


def test_decoder_builds_draft_without_storing(blob_storage):
    decoder = FileAttachmentDecoder(blob_storage)

    draft = decoder.decode(
        kind=FileUploadKind.ORIGINAL,
        file="data:text/plain;base64," + base64.b64encode(b"notice text").decode(),
        file_name="notice.txt",
    )

    assert draft.kind == FileUploadKind.ORIGINAL
    assert draft.content_type == "text/plain"
    assert draft.locator is None
    assert not Path(blob_storage.root).exists()


async def test_store_writes_bytes_and_sets_locator(blob_storage):
    decoder = FileAttachmentDecoder(blob_storage)
    draft = FileUploadDraft(
        kind=FileUploadKind.SUPPORTING,
        file_name="evidence.bin",
        content_type="application/octet-stream",
        data=b"\x00\x01\x02",
    )

    stored = await decoder.store(draft)

    assert stored.locator is not None
    assert stored.locator.endswith("evidence.bin")
    assert blob_storage.read(stored.locator) == b"\x00\x01\x02"


async def test_store_failure_is_reported_as_storage_failure():
    decoder = FileAttachmentDecoder(BrokenStorage())
    draft = FileUploadDraft(
        kind=FileUploadKind.ORIGINAL, file_name="a.txt", content_type="text/plain", data=b"a"
    )

    with pytest.raises(StorageFailure):
        await decoder.store(draft)


def test_object_keys_are_unique_and_path_safe():
    first = generate_object_key("../../etc/passwd")
    second = generate_object_key("../../etc/passwd")

    assert first != second
    assert ".." not in first
    assert first.startswith("notices/")
    assert first.endswith("/passwd")


async def test_discard_removes_stored_blobs(blob_storage):
    decoder = FileAttachmentDecoder(blob_storage)
    draft = FileUploadDraft(
        kind=FileUploadKind.ORIGINAL, file_name="a.txt", content_type="text/plain", data=b"a"
    )
    stored = await decoder.store(draft)

    await decoder.discard([stored, draft])

    assert not Path(stored.locator).exists()


async def test_discard_failures_are_not_raised():
    decoder = FileAttachmentDecoder(BrokenStorage())
    draft = FileUploadDraft(
        kind=FileUploadKind.ORIGINAL,
        file_name="a.txt",
        content_type="text/plain",
        data=b"a",
        locator="/nowhere/a.txt",
    )

    await decoder.discard([draft])


async def test_misconfigured_storage_fails_only_when_written():
    calls = []

    def factory():
        calls.append(1)
        raise StorageConfigurationError("S3/MinIO environment variables are not fully set")

    storage = DeferredBlobStorage(factory)
    decoder = FileAttachmentDecoder(storage)
    draft = FileUploadDraft(
        kind=FileUploadKind.ORIGINAL, file_name="a.txt", content_type="text/plain", data=b"a"
    )

    assert calls == []
    with pytest.raises(StorageFailure):
        await decoder.store(draft)
    assert calls == [1]


def test_deferred_storage_builds_the_backend_once(blob_storage):
    builds = []

    def factory():
        builds.append(1)
        return blob_storage

    storage = DeferredBlobStorage(factory)
    first = storage.store(b"one", "one.txt")
    storage.store(b"two", "two.txt")
    storage.delete(first)

    assert builds == [1]
    assert not Path(first).exists()
