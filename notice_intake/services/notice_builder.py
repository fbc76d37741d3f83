"""
Notice Builder

Runs a submitted notice through the intake pipeline:

    received -> authorized -> shaped -> resolved -> validated -> persisted | rejected

Authentication and authorization failures stop the pipeline immediately.
Every later problem is collected so the caller sees all of them in one
response, and nothing is written unless the whole notice is valid.
"""

from __future__ import annotations

import copy
import mimetypes
from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from ..domain.notices import (
    EntityRoleName,
    FileUploadDraft,
    FileUploadKind,
    FileUploadSubmission,
    Notice,
    NoticeGraph,
    NoticeSubmission,
    NoticeType,
    UrlDraft,
    UrlSubmission,
    WorkDraft,
)
from ..domain.users import User
from ..repositories.notices import NoticesRepository
from ..telemetry import record_outcome, record_split, tracer
from .entities import EntityResolver, pydantic_error_paths
from .errors import (
    ErrorCollector,
    Forbidden,
    MalformedPayload,
    NotFound,
    StorageFailure,
    Unauthorized,
    ValidationFailed,
)
from .file_uploads import FileAttachmentDecoder
from .intake_gate import IntakeGate
from .url_deconcatenation import UrlDeconcatenator, url_deconcatenator

logger = structlog.get_logger()

MAX_TITLE_LENGTH = 255
MAX_URL_LENGTH = 8192
BLANK = "can't be blank"

_http_url = TypeAdapter(AnyHttpUrl)


def url_problem(value: str) -> str | None:
    """Describe why ``value`` is not a usable http(s) URL, or return None."""

    if len(value) > MAX_URL_LENGTH:
        return f"is too long (maximum is {MAX_URL_LENGTH} characters)"
    stripped = value.strip()
    if not stripped:
        return BLANK
    if any(char.isspace() for char in stripped):
        return "must not contain whitespace"
    try:
        _http_url.validate_python(stripped)
    except ValidationError as exc:
        return exc.errors()[0]["msg"]
    return None


def _discard_invalid(data: dict[str, Any], loc: Sequence[str | int]) -> bool:
    """Drop the innermost mapping key on ``loc``; return False if none was found."""

    parent: tuple[dict[str, Any], str] | None = None
    node: Any = data
    for step in loc:
        if isinstance(node, dict):
            key: Any = step
            if isinstance(step, int):
                # Indexed form collections arrive as {"0": ..., "1": ...}.
                try:
                    keys = sorted(node, key=int)
                except (TypeError, ValueError):
                    break
                if step >= len(keys):
                    break
                key = keys[step]
            if key not in node:
                break
            parent = (node, key)
            node = node[key]
        elif isinstance(node, list) and isinstance(step, int) and step < len(node):
            node = node[step]
        else:
            break
    if parent is None:
        return False
    container, key = parent
    del container[key]
    return True


class NoticeBuilder:
    """Assembles, validates and stores notices submitted through the API."""

    def __init__(
        self,
        *,
        gate: IntakeGate,
        entity_resolver: EntityResolver,
        file_decoder: FileAttachmentDecoder,
        notices: NoticesRepository,
        deconcatenator: UrlDeconcatenator = url_deconcatenator,
    ) -> None:
        self._gate = gate
        self._entities = entity_resolver
        self._files = file_decoder
        self._notices = notices
        self._deconcatenator = deconcatenator

    async def submit(self, payload: Mapping[str, Any], *, header_token: str | None = None) -> Notice:
        """Authorize the caller, then build and store the notice in ``payload``.

        Raises ``Unauthorized``/``Forbidden`` before looking at the notice,
        ``ValidationFailed`` with every collected problem, or ``StorageFailure``.
        """

        with tracer.start_as_current_span("notice_intake.submit") as span:
            raw_notice = payload.get("notice")
            body_token = payload.get("authentication_token")
            type_tag = raw_notice.get("type") if isinstance(raw_notice, Mapping) else None
            try:
                user, notice_type = await self._gate.admit(
                    body_token=body_token if isinstance(body_token, str) else None,
                    header_token=header_token,
                    type_tag=type_tag if isinstance(type_tag, str) else None,
                )
            except (Unauthorized, Forbidden) as exc:
                record_outcome(type(exc).__name__.lower())
                raise
            span.set_attribute("notice_intake.notice_type", notice_type.value)

            errors = ErrorCollector()
            submission = self._parse(raw_notice, errors, notice_type)
            return await self.create(
                submission, notice_type=notice_type, user=user, errors=errors
            )

    async def create(
        self,
        submission: NoticeSubmission,
        *,
        notice_type: NoticeType,
        user: User | None,
        errors: ErrorCollector | None = None,
    ) -> Notice:
        errors = errors if errors is not None else ErrorCollector()
        graph = await self.assemble(submission, notice_type=notice_type, user=user, errors=errors)
        self.validate(graph, errors)
        if errors:
            record_outcome("rejected", notice_type.value)
            logger.info(
                "notice_intake.rejected",
                user_id=str(user.id) if user else None,
                fields=list(errors),
            )
            raise ValidationFailed(errors)
        return await self.persist(graph)

    def _parse(
        self, raw_notice: Any, errors: ErrorCollector, notice_type: NoticeType
    ) -> NoticeSubmission:
        """Validate the submitted shape, dropping unusable fields into ``errors``."""

        if not isinstance(raw_notice, Mapping):
            record_outcome("rejected", notice_type.value)
            raise ValidationFailed({"notice": ["must be an object describing the notice"]})
        data = copy.deepcopy(dict(raw_notice))
        while True:
            try:
                return NoticeSubmission.model_validate(data)
            except ValidationError as exc:
                for field, messages in pydantic_error_paths(exc).items():
                    for message in messages:
                        errors.add(field, message)
                # Later positions first so indexed keys keep their order.
                discarded = [
                    _discard_invalid(data, error["loc"]) for error in reversed(exc.errors())
                ]
                if not any(discarded):
                    record_outcome("rejected", notice_type.value)
                    raise ValidationFailed(errors) from exc

    async def assemble(
        self,
        submission: NoticeSubmission,
        *,
        notice_type: NoticeType,
        user: User | None,
        errors: ErrorCollector,
    ) -> NoticeGraph:
        """Build the unsaved notice graph, recording problems instead of stopping."""

        graph = NoticeGraph(
            title=submission.title,
            type=notice_type,
            subject=submission.subject,
            body=submission.body,
            date_sent=submission.date_sent,
            date_received=submission.date_received,
            source=submission.source,
            action_taken=submission.action_taken,
            language=submission.language,
            tag_list=submission.tag_list,
            jurisdiction_list=submission.jurisdiction_list,
            submitter_user_id=user.id if user else None,
        )

        for work in submission.works_attributes:
            graph.works.append(
                WorkDraft(
                    description=work.description,
                    kind=work.kind,
                    infringing_urls=self._expand_urls(work.infringing_urls_attributes, "infringing"),
                    copyrighted_urls=self._expand_urls(work.copyrighted_urls_attributes, "copyrighted"),
                )
            )

        submitted_roles: set[str] = set()
        for index, role in enumerate(submission.entity_notice_roles_attributes):
            path = f"entity_notice_roles[{index}]"
            submitted_roles.add((role.name or "").strip().lower())
            try:
                graph.roles.append(await self._entities.resolve(role))
            except ValidationFailed as exc:
                for field, messages in exc.errors.items():
                    for message in messages:
                        errors.add(f"{path}.{field}", message)
            except NotFound:
                errors.add(f"{path}.entity_id", "does not reference an existing entity")
        graph.roles.extend(await self._entities.default_roles(submitted_roles, user))

        for index, upload in enumerate(submission.file_uploads_attributes):
            draft = self._decode_upload(upload, f"file_uploads[{index}]", errors)
            if draft is not None:
                graph.file_uploads.append(draft)

        return graph

    def validate(self, graph: NoticeGraph, errors: ErrorCollector) -> None:
        if graph.title is None or not graph.title.strip():
            errors.add("title", BLANK)
        elif len(graph.title) > MAX_TITLE_LENGTH:
            errors.add("title", f"is too long (maximum is {MAX_TITLE_LENGTH} characters)")

        if not graph.works:
            errors.add("works", "must include at least one work")

        if not graph.has_role(EntityRoleName.RECIPIENT):
            errors.add("entity_notice_roles", "must include a recipient")

        for work_index, work in enumerate(graph.works):
            for label, urls in (
                ("infringing_urls", work.infringing_urls),
                ("copyrighted_urls", work.copyrighted_urls),
            ):
                for url_index, url in enumerate(urls):
                    problem = url_problem(url.url)
                    if problem:
                        errors.add(f"works[{work_index}].{label}[{url_index}].url", problem)

    async def persist(self, graph: NoticeGraph) -> Notice:
        """Store attachments, then write the notice graph in one transaction.

        Blobs written for a notice that fails to save are removed again.
        """

        stored: list[FileUploadDraft] = []
        try:
            for draft in graph.file_uploads:
                stored.append(await self._files.store(draft))
            notice = await self._notices.save(graph.model_copy(update={"file_uploads": stored}))
        except StorageFailure:
            await self._files.discard(stored)
            record_outcome("storage_failure", graph.type.value)
            raise
        record_outcome("created", notice.type.value)
        logger.info(
            "notice_intake.created",
            notice_id=str(notice.id),
            notice_type=notice.type.value,
            works=len(notice.works),
            file_uploads=len(notice.file_uploads),
        )
        return notice

    def _expand_urls(self, submissions: list[UrlSubmission], field: str) -> list[UrlDraft]:
        drafts: list[UrlDraft] = []
        for submission in submissions:
            raw = submission.url
            if raw is None or not raw.strip():
                continue
            parts = self._deconcatenator.deconcatenate(raw)
            if len(parts) > 1:
                record_split(field)
            drafts.extend(UrlDraft(url=part, url_original=raw) for part in parts)
        return drafts

    def _decode_upload(
        self, upload: FileUploadSubmission, path: str, errors: ErrorCollector
    ) -> FileUploadDraft | None:
        kind: FileUploadKind | None = None
        try:
            kind = FileUploadKind((upload.kind or "").strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in FileUploadKind)
            errors.add(f"{path}.kind", f"must be one of {allowed}")

        try:
            draft = self._files.decode(
                kind=kind or FileUploadKind.SUPPORTING,
                file=upload.file,
                file_name=(upload.file_name or "").strip() or "attachment",
            )
        except MalformedPayload as exc:
            errors.add(f"{path}.file", str(exc))
            return None
        if kind is None:
            return None
        if not (upload.file_name or "").strip():
            extension = mimetypes.guess_extension(draft.content_type.split(";")[0].strip()) or ""
            draft = draft.model_copy(update={"file_name": f"{kind.value}_document{extension}"})
        return draft
