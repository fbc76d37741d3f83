from __future__ import annotations

import json
import re
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from ...core.config import Settings, get_settings
from ...domain.notices import (
    NoticeCreatedResponse,
    UnauthorizedResponse,
    ValidationErrorResponse,
)
from ...domain.users import User
from ...repositories.notices import NoticesRepository
from ...services.errors import Forbidden, StorageFailure, Unauthorized, ValidationFailed
from ...services.notice_builder import NoticeBuilder
from ..dependencies import (
    get_header_token,
    get_notice_builder,
    get_notices_repository,
    get_viewer,
)

router = APIRouter(prefix="/notices", tags=["notices"])

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
_bracket = re.compile(r"\[([^\]]*)\]")
_form_key = re.compile(r"^([^\[\]]+)((?:\[[^\]]*\])*)$")


def _nest_form(items: list[tuple[str, Any]]) -> dict[str, Any]:
    """Expand ``notice[works_attributes][0][description]`` style keys into mappings.

    Empty brackets append: ``tag_list[]`` collects values under "0", "1", ...
    and ``roles[][name]`` starts a new entry once the current one has ``name``.
    """

    payload: dict[str, Any] = {}
    for raw_key, value in items:
        if not isinstance(value, str):
            continue
        match = _form_key.match(raw_key)
        if match is None:
            payload[raw_key] = value
            continue
        path = [match.group(1), *_bracket.findall(match.group(2))]
        node = payload
        for position, step in enumerate(path[:-1]):
            following = path[position + 1]
            if step == "":
                latest = node.get(str(len(node) - 1))
                if isinstance(latest, dict) and following and following not in latest:
                    step = str(len(node) - 1)
                else:
                    step = str(len(node))
            child = node.get(step)
            if not isinstance(child, dict):
                child = {}
                node[step] = child
            node = child
        last = path[-1] or str(len(node))
        node[last] = value
    return payload


async def _read_payload(request: Request) -> dict[str, Any]:
    """Return the request body as a mapping; unreadable bodies become empty."""

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type in _FORM_CONTENT_TYPES:
        form = await request.form()
        payload = _nest_form(form.multi_items())
        notice = payload.get("notice")
        if isinstance(notice, str):
            try:
                payload["notice"] = json.loads(notice)
            except json.JSONDecodeError:
                payload["notice"] = None
        return payload

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


@router.post(
    "",
    response_model=NoticeCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": UnauthorizedResponse},
        status.HTTP_403_FORBIDDEN: {"description": "Caller may not submit this notice type"},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ValidationErrorResponse},
    },
)
async def create_notice(
    request: Request,
    response: Response,
    header_token: str | None = Depends(get_header_token),
    builder: NoticeBuilder = Depends(get_notice_builder),
    settings: Settings = Depends(get_settings),
):
    payload = await _read_payload(request)
    try:
        notice = await builder.submit(payload, header_token=header_token)
    except Unauthorized:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=UnauthorizedResponse(
                documentation_link=settings.api_documentation_link
            ).model_dump(),
        )
    except Forbidden as exc:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": str(exc), "documentation_link": settings.api_documentation_link},
        )
    except ValidationFailed as exc:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ValidationErrorResponse(errors=exc.errors).model_dump(),
        )
    except StorageFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to store notice",
        ) from exc

    response.headers["Location"] = str(request.url_for("get_notice", notice_id=str(notice.id)))
    return NoticeCreatedResponse(id=notice.id, type=notice.type, title=notice.title)


@router.get("/{notice_id}", name="get_notice")
async def get_notice(
    notice_id: UUID,
    repo: NoticesRepository = Depends(get_notices_repository),
    viewer: User | None = Depends(get_viewer),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    notice = await repo.get(notice_id)
    if notice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notice not found")
    allowed = {role.lower() for role in settings.original_url_roles}
    return notice.serialize(
        include_original_urls=viewer is not None and viewer.has_any_role(allowed)
    )
