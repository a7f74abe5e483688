"""FastAPI router for consultation records and drafts."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from consultflow.consultation.service import (
    ConsultationError,
    ConsultationNotFound,
    ConsultationService,
    InvalidSectionData,
    InvalidTransition,
)
from consultflow.core.types import ConsultationStatus

router = APIRouter()


# --- Request models ---


class DraftSaveRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    auto_save: bool = True


# --- Helpers ---


def _service(request: Request) -> ConsultationService:
    return request.app.state.consultation_service


def _user_id(request: Request) -> str:
    """Resolve the caller from the ambient session cookie."""
    server = request.app.state.settings.server
    user_id = request.cookies.get(server.session_cookie_name)
    if user_id:
        return user_id
    if server.require_session:
        raise HTTPException(status_code=401, detail="Authentication required")
    return "anonymous"


def _http_error(exc: ConsultationError) -> HTTPException:
    if isinstance(exc, ConsultationNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidTransition, InvalidSectionData)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


# --- Consultation endpoints ---


@router.get("/consultations")
async def list_consultations(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    status: str | None = None,
) -> dict[str, Any]:
    user_id = _user_id(request)
    server = request.app.state.settings.server
    limit = min(limit or server.default_page_size, server.max_page_size)

    status_filter = None
    if status:
        try:
            status_filter = ConsultationStatus(status)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail="Invalid status. Must be one of: draft, completed, archived",
            )

    result = await _service(request).list_consultations(
        user_id, page=page, limit=limit, status=status_filter
    )
    return result.model_dump(mode="json")


@router.post("/consultations", status_code=201)
async def create_consultation(
    request: Request,
    body: dict[str, Any] | None = Body(default=None),
) -> dict[str, Any]:
    user_id = _user_id(request)
    try:
        consultation = await _service(request).create(user_id, body or {})
    except ConsultationError as exc:
        raise _http_error(exc)
    return consultation.model_dump(mode="json")


@router.get("/consultations/{consultation_id}")
async def get_consultation(consultation_id: str, request: Request) -> dict[str, Any]:
    user_id = _user_id(request)
    try:
        consultation = await _service(request).get(user_id, consultation_id)
    except ConsultationError as exc:
        raise _http_error(exc)
    return consultation.model_dump(mode="json")


@router.put("/consultations/{consultation_id}")
async def update_consultation(
    consultation_id: str,
    request: Request,
    body: dict[str, Any] | None = Body(default=None),
) -> dict[str, Any]:
    user_id = _user_id(request)
    try:
        consultation = await _service(request).update(user_id, consultation_id, body or {})
    except ConsultationError as exc:
        raise _http_error(exc)
    return consultation.model_dump(mode="json")


@router.delete("/consultations/{consultation_id}", status_code=204)
async def delete_consultation(consultation_id: str, request: Request) -> Response:
    user_id = _user_id(request)
    try:
        await _service(request).delete(user_id, consultation_id)
    except ConsultationError as exc:
        raise _http_error(exc)
    return Response(status_code=204)


@router.post("/consultations/{consultation_id}/complete")
async def complete_consultation(consultation_id: str, request: Request) -> dict[str, Any]:
    user_id = _user_id(request)
    try:
        consultation = await _service(request).complete(user_id, consultation_id)
    except ConsultationError as exc:
        raise _http_error(exc)
    return consultation.model_dump(mode="json")


@router.post("/consultations/{consultation_id}/archive")
async def archive_consultation(consultation_id: str, request: Request) -> dict[str, Any]:
    user_id = _user_id(request)
    try:
        consultation = await _service(request).archive(user_id, consultation_id)
    except ConsultationError as exc:
        raise _http_error(exc)
    return consultation.model_dump(mode="json")


# --- Draft endpoints ---


@router.post("/consultations/{consultation_id}/drafts")
async def save_draft(
    consultation_id: str, body: DraftSaveRequest, request: Request
) -> dict[str, Any]:
    user_id = _user_id(request)
    try:
        draft = await _service(request).save_draft(
            user_id, consultation_id, body.data, auto_save=body.auto_save
        )
    except ConsultationError as exc:
        raise _http_error(exc)
    return draft.model_dump(mode="json")


@router.get("/consultations/{consultation_id}/drafts")
async def get_draft(consultation_id: str, request: Request) -> dict[str, Any]:
    user_id = _user_id(request)
    try:
        draft = await _service(request).get_draft(user_id, consultation_id)
    except ConsultationError as exc:
        raise _http_error(exc)
    return draft.model_dump(mode="json")


@router.delete("/consultations/{consultation_id}/drafts", status_code=204)
async def delete_draft(consultation_id: str, request: Request) -> Response:
    user_id = _user_id(request)
    try:
        await _service(request).delete_draft(user_id, consultation_id)
    except ConsultationError as exc:
        raise _http_error(exc)
    return Response(status_code=204)


# --- Form definition ---


@router.get("/form/definition")
async def get_form_definition(request: Request) -> dict[str, Any]:
    return request.app.state.form_definition.model_dump(mode="json")
