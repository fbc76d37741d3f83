"""Decoding of data URI attachments and hand-off to blob storage."""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from dataclasses import dataclass

import structlog

from ..domain.notices import FileUploadDraft, FileUploadKind
from ..telemetry import observe_attachment
from .errors import MalformedPayload, StorageFailure
from .storage import BlobStorage, BlobStorageError

logger = structlog.get_logger()

DEFAULT_MEDIA_TYPE = "text/plain;charset=US-ASCII"
MAX_MEDIA_TYPE_LENGTH = 255

_whitespace = re.compile(r"\s+")


@dataclass(frozen=True)
class DecodedFile:
    media_type: str
    data: bytes


def decode_data_uri(value: str | None) -> DecodedFile:
    """Parse ``data:<media-type>;base64,<payload>`` into its media type and bytes.

    Line breaks inside the payload (as written by MIME base64 encoders) are
    ignored; any other non-alphabet character makes the payload malformed.
    """

    if not value or not value.startswith("data:"):
        raise MalformedPayload("must be a data URI of the form data:<media-type>;base64,<payload>")
    header, separator, payload = value[len("data:"):].partition(",")
    if not separator:
        raise MalformedPayload("is missing the ',' separating metadata from the payload")

    parameters = header.split(";")
    if parameters[-1].strip().lower() != "base64":
        raise MalformedPayload("must be base64 encoded")
    media_type = ";".join(part.strip() for part in parameters[:-1]).strip() or DEFAULT_MEDIA_TYPE
    if len(media_type) > MAX_MEDIA_TYPE_LENGTH:
        raise MalformedPayload(f"has a media type longer than {MAX_MEDIA_TYPE_LENGTH} characters")

    compact = _whitespace.sub("", payload)
    if not compact:
        raise MalformedPayload("contains no data")
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPayload("has an invalid base64 payload") from exc
    return DecodedFile(media_type=media_type, data=data)


class FileAttachmentDecoder:
    """Turns file upload submissions into drafts and stores their bytes."""

    def __init__(self, storage: BlobStorage) -> None:
        self._storage = storage

    def decode(self, *, kind: FileUploadKind, file: str | None, file_name: str) -> FileUploadDraft:
        decoded = decode_data_uri(file)
        observe_attachment(kind.value, len(decoded.data))
        return FileUploadDraft(
            kind=kind,
            file_name=file_name,
            content_type=decoded.media_type,
            data=decoded.data,
        )

    async def store(self, draft: FileUploadDraft) -> FileUploadDraft:
        """Write the draft's bytes to blob storage and attach the locator."""

        try:
            locator = await asyncio.to_thread(
                self._storage.store,
                draft.data,
                draft.file_name,
                content_type=draft.content_type,
            )
        except BlobStorageError as exc:
            logger.error("file_uploads.store_failed", file_name=draft.file_name, error=str(exc))
            raise StorageFailure("Unable to store attachment") from exc
        return draft.model_copy(update={"locator": locator})

    async def discard(self, drafts: list[FileUploadDraft]) -> None:
        """Best-effort removal of blobs stored for a notice that was not saved."""

        for draft in drafts:
            if not draft.locator:
                continue
            try:
                await asyncio.to_thread(self._storage.delete, draft.locator)
            except BlobStorageError as exc:
                logger.warning("file_uploads.discard_failed", locator=draft.locator, error=str(exc))
