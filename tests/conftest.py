"""Shared test fixtures and helpers."""

from __future__ import annotations

from typing import Any

import pytest

from consultflow.consultation.models import Consultation, ConsultationDraft
from consultflow.consultation.service import (
    ConsultationNotFound,
    ConsultationService,
    DraftNotFound,
)
from consultflow.core.types import FormSection
from consultflow.form.scheduling import ManualScheduler
from consultflow.gateway.base import SectionMap, sections_to_json
from consultflow.gateway.errors import NotFoundError, TransientNetworkError


TEST_USER = "user-1"


CONTACT = {
    "business_name": "Acme Web Co",
    "contact_person": "Alex Doe",
    "email": "alex@acme.example",
}
BUSINESS = {"industry": "Retail", "team_size": 8}
PAIN_POINTS = {"primary_challenges": ["Slow site", "No mobile layout"]}
GOALS = {"primary_goals": ["Double online sales"], "budget_range": "10k-25k"}

FULL_FORM: dict[FormSection, dict[str, Any]] = {
    FormSection.CONTACT_INFO: CONTACT,
    FormSection.BUSINESS_CONTEXT: BUSINESS,
    FormSection.PAIN_POINTS: PAIN_POINTS,
    FormSection.GOALS_OBJECTIVES: GOALS,
}


class InProcessGateway:
    """PersistenceGateway backed directly by a ConsultationService.

    Records every call and can be told to fail ``save_draft`` a number of
    times (or forever) with a transient error.
    """

    def __init__(self, service: ConsultationService | None = None, user_id: str = TEST_USER) -> None:
        self.service = service or ConsultationService()
        self.user_id = user_id
        self.calls: list[str] = []
        self.save_draft_failures = 0
        self.save_draft_always_fails = False
        self.saved_snapshots: list[SectionMap] = []
        self.closed = False

    async def create(self, initial: SectionMap | None = None) -> Consultation:
        self.calls.append("create")
        return await self.service.create(self.user_id, sections_to_json(initial or {}))

    async def fetch(self, consultation_id: str) -> Consultation:
        self.calls.append("fetch")
        try:
            return await self.service.get(self.user_id, consultation_id)
        except ConsultationNotFound as exc:
            raise NotFoundError(str(exc), 404) from exc

    async def update(self, consultation_id: str, sections: SectionMap) -> Consultation:
        self.calls.append("update")
        try:
            return await self.service.update(
                self.user_id, consultation_id, sections_to_json(sections)
            )
        except ConsultationNotFound as exc:
            raise NotFoundError(str(exc), 404) from exc

    async def save_draft(self, consultation_id: str, sections: SectionMap) -> ConsultationDraft:
        self.calls.append("save_draft")
        self.saved_snapshots.append(sections)
        if self.save_draft_always_fails:
            raise TransientNetworkError("Service unavailable", 503)
        if self.save_draft_failures > 0:
            self.save_draft_failures -= 1
            raise TransientNetworkError("Service unavailable", 503)
        return await self.service.save_draft(
            self.user_id, consultation_id, sections_to_json(sections)
        )

    async def fetch_draft(self, consultation_id: str) -> ConsultationDraft | None:
        self.calls.append("fetch_draft")
        try:
            return await self.service.get_draft(self.user_id, consultation_id)
        except DraftNotFound:
            return None
        except ConsultationNotFound as exc:
            raise NotFoundError(str(exc), 404) from exc

    async def complete(self, consultation_id: str) -> Consultation:
        self.calls.append("complete")
        try:
            return await self.service.complete(self.user_id, consultation_id)
        except ConsultationNotFound as exc:
            raise NotFoundError(str(exc), 404) from exc

    async def close(self) -> None:
        self.closed = True

    def count(self, name: str) -> int:
        return self.calls.count(name)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def gateway() -> InProcessGateway:
    return InProcessGateway()
