"""Persistence gateway protocol used by the form session."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from consultflow.consultation.models import Consultation, ConsultationDraft
from consultflow.core.types import FormSection

SectionMap = dict[FormSection, dict[str, Any]]


@runtime_checkable
class PersistenceGateway(Protocol):
    """Server operations the consultation form depends on.

    Every call returns the canonical server representation. Failures are
    raised as :class:`consultflow.gateway.errors.GatewayError` subclasses.
    """

    async def create(self, initial: SectionMap | None = None) -> Consultation: ...

    async def fetch(self, consultation_id: str) -> Consultation: ...

    async def update(self, consultation_id: str, sections: SectionMap) -> Consultation: ...

    async def save_draft(self, consultation_id: str, sections: SectionMap) -> ConsultationDraft: ...

    async def fetch_draft(self, consultation_id: str) -> ConsultationDraft | None: ...

    async def complete(self, consultation_id: str) -> Consultation: ...

    async def close(self) -> None: ...


def sections_to_json(sections: SectionMap) -> dict[str, dict[str, Any]]:
    return {FormSection(key).value: value for key, value in sections.items()}
