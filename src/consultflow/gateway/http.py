"""HTTP/JSON persistence gateway for the consultation REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx
import pydantic

from consultflow.consultation.models import Consultation, ConsultationDraft, ConsultationPage
from consultflow.core.config import GatewayConfig
from consultflow.core.types import ConsultationStatus
from consultflow.gateway.base import SectionMap, sections_to_json
from consultflow.gateway.errors import (
    GatewayError,
    NotFoundError,
    TransientNetworkError,
    error_for_status,
)

logger = logging.getLogger(__name__)

_ModelT = type[pydantic.BaseModel]


class HttpPersistenceGateway:
    """Talks to the consultation service over HTTP.

    Requests are credentialed by the ambient session cookie only. Each call
    carries the configured network timeout; a timeout is reported as a
    :class:`TransientNetworkError` like any other transport failure.
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or GatewayConfig()
        cookies: dict[str, str] = {}
        if self.config.session_cookie:
            cookies[self.config.session_cookie_name] = self.config.session_cookie
        self._http = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout_seconds),
            cookies=cookies,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    # -- contract --------------------------------------------------------------

    async def create(self, initial: SectionMap | None = None) -> Consultation:
        body = sections_to_json(initial or {})
        resp = await self._request("POST", "/consultations", json=body)
        return self._parse(resp, Consultation)

    async def fetch(self, consultation_id: str) -> Consultation:
        resp = await self._request("GET", f"/consultations/{consultation_id}")
        return self._parse(resp, Consultation)

    async def update(self, consultation_id: str, sections: SectionMap) -> Consultation:
        resp = await self._request(
            "PUT", f"/consultations/{consultation_id}", json=sections_to_json(sections)
        )
        return self._parse(resp, Consultation)

    async def save_draft(self, consultation_id: str, sections: SectionMap) -> ConsultationDraft:
        payload = {"data": sections_to_json(sections), "auto_save": True}
        resp = await self._request(
            "POST", f"/consultations/{consultation_id}/drafts", json=payload
        )
        return self._parse(resp, ConsultationDraft)

    async def fetch_draft(self, consultation_id: str) -> ConsultationDraft | None:
        try:
            resp = await self._request("GET", f"/consultations/{consultation_id}/drafts")
        except NotFoundError:
            return None
        return self._parse(resp, ConsultationDraft)

    async def complete(self, consultation_id: str) -> Consultation:
        resp = await self._request(
            "POST", f"/consultations/{consultation_id}/complete", json={}
        )
        return self._parse(resp, Consultation)

    # -- additional endpoints --------------------------------------------------

    async def list_consultations(
        self,
        page: int = 1,
        limit: int = 20,
        status: ConsultationStatus | None = None,
    ) -> ConsultationPage:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if status is not None:
            params["status"] = status.value
        resp = await self._request("GET", "/consultations", params=params)
        return self._parse(resp, ConsultationPage)

    async def archive(self, consultation_id: str) -> Consultation:
        resp = await self._request(
            "POST", f"/consultations/{consultation_id}/archive", json={}
        )
        return self._parse(resp, Consultation)

    async def delete_draft(self, consultation_id: str) -> None:
        await self._request("DELETE", f"/consultations/{consultation_id}/drafts")

    async def close(self) -> None:
        await self._http.aclose()

    # -- internals -------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Request %s %s timed out: %s", method, url, exc)
            raise TransientNetworkError(f"Request to {url} timed out") from exc
        except httpx.TransportError as exc:
            logger.warning("Transport error on %s %s: %s", method, url, exc)
            raise TransientNetworkError(f"Transport error on {url}: {exc}") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.debug("%s %s returned %d: %s", method, url, resp.status_code, message)
            raise error_for_status(resp.status_code, message)
        return resp

    @staticmethod
    def _parse(resp: httpx.Response, model: _ModelT) -> Any:
        try:
            return model.model_validate(resp.json())
        except (ValueError, pydantic.ValidationError) as exc:
            raise GatewayError(
                f"Malformed response from {resp.request.url}: {exc}", resp.status_code
            ) from exc


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return resp.reason_phrase
