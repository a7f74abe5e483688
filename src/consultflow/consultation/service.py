"""Consultation service: lifecycle, drafts and completion tracking.

Backs the reference REST API. Every operation is scoped to the calling user;
a consultation owned by someone else is reported as not found.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

import pydantic

from consultflow.consultation.models import (
    Consultation,
    ConsultationDraft,
    ConsultationPage,
    compute_completion_percentage,
    parse_section,
)
from consultflow.consultation.store import ConsultationStore
from consultflow.core.types import ConsultationStatus, FormSection, can_transition
from consultflow.repositories import resolve

logger = logging.getLogger(__name__)


class ConsultationError(Exception):
    """Base class for consultation service failures."""


class ConsultationNotFound(ConsultationError):
    """The consultation does not exist or belongs to another user."""


class DraftNotFound(ConsultationNotFound):
    """No draft has been saved for the consultation yet."""


class InvalidTransition(ConsultationError):
    """The requested status change is not allowed from the current status."""


class InvalidSectionData(ConsultationError):
    """A section payload has the wrong shape."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConsultationService:
    """Create, edit, draft and complete consultations.

    Works against any store satisfying
    :class:`consultflow.repositories.protocols.ConsultationRepository`,
    sync or async.
    """

    def __init__(self, store: Any | None = None) -> None:
        self._store = store if store is not None else ConsultationStore()

    @property
    def store(self) -> Any:
        return self._store

    # -- consultations ---------------------------------------------------------

    async def create(
        self,
        user_id: str,
        sections: dict[str, Any] | None = None,
    ) -> Consultation:
        parsed = self._parse_sections(sections or {})
        consultation = Consultation(
            user_id=user_id,
            **{section.value: data for section, data in parsed.items()},
        )
        consultation.completion_percentage = compute_completion_percentage(
            consultation.sections()
        )
        await resolve(self._store.save_consultation(consultation))
        logger.info("Created consultation %s for user %s", consultation.id, user_id)
        return consultation

    async def get(self, user_id: str, consultation_id: str) -> Consultation:
        consultation = await resolve(self._store.get_consultation(consultation_id))
        if consultation is None or consultation.user_id != user_id:
            raise ConsultationNotFound(f"Consultation {consultation_id!r} not found")
        return consultation

    async def list_consultations(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        status: ConsultationStatus | None = None,
    ) -> ConsultationPage:
        page = max(page, 1)
        limit = max(limit, 1)
        consultations = await resolve(self._store.list_consultations(user_id))
        if status is not None:
            consultations = [c for c in consultations if c.status == status]

        total = len(consultations)
        start = (page - 1) * limit
        items = consultations[start:start + limit]
        return ConsultationPage(
            consultations=[c.to_summary() for c in items],
            total=total,
            page=page,
            limit=limit,
            has_more=page < math.ceil(total / limit),
        )

    async def update(
        self,
        user_id: str,
        consultation_id: str,
        payload: dict[str, Any],
    ) -> Consultation:
        """Replace the supplied sections; sections not in ``payload`` are kept.

        A ``status`` key requests a lifecycle transition. Other keys that are
        not section names (``completion_percentage``, timestamps) are ignored.

        Raises:
            ConsultationNotFound: Unknown id or another user's consultation.
            InvalidSectionData: A section payload has the wrong shape.
            InvalidTransition: The record is archived, or the status change
                is not allowed.
        """
        consultation = await self.get(user_id, consultation_id)
        if consultation.status == ConsultationStatus.ARCHIVED:
            raise InvalidTransition("Archived consultations cannot be edited")

        parsed = self._parse_sections(payload)
        target = payload.get("status")
        if target is not None:
            try:
                target = ConsultationStatus(target)
            except ValueError as exc:
                raise InvalidTransition(
                    "Invalid status. Must be one of: draft, completed, archived"
                ) from exc
            if target != consultation.status and not can_transition(consultation.status, target):
                raise InvalidTransition(
                    f"Cannot move consultation from {consultation.status} to {target}"
                )

        for section, data in parsed.items():
            setattr(consultation, section.value, data)

        if target is not None and target != consultation.status:
            self._transition(consultation, target)
        elif consultation.status == ConsultationStatus.DRAFT:
            consultation.completion_percentage = compute_completion_percentage(
                consultation.sections()
            )
        consultation.updated_at = _now()

        await resolve(self._store.save_consultation(consultation))
        logger.debug(
            "Updated consultation %s sections=%s",
            consultation_id, [s.value for s in parsed],
        )
        return consultation

    async def complete(self, user_id: str, consultation_id: str) -> Consultation:
        """Mark a draft consultation completed and drop its draft.

        Raises:
            ConsultationNotFound: Unknown id or another user's consultation.
            InvalidTransition: The consultation is not a draft.
        """
        consultation = await self.get(user_id, consultation_id)
        self._transition(consultation, ConsultationStatus.COMPLETED)
        consultation.updated_at = _now()
        await resolve(self._store.save_consultation(consultation))
        await resolve(self._store.delete_draft(consultation_id))
        logger.info("Consultation %s completed", consultation_id)
        return consultation

    async def archive(self, user_id: str, consultation_id: str) -> Consultation:
        consultation = await self.get(user_id, consultation_id)
        self._transition(consultation, ConsultationStatus.ARCHIVED)
        consultation.updated_at = _now()
        await resolve(self._store.save_consultation(consultation))
        logger.info("Consultation %s archived", consultation_id)
        return consultation

    async def delete(self, user_id: str, consultation_id: str) -> None:
        await self.get(user_id, consultation_id)
        await resolve(self._store.delete_consultation(consultation_id))
        logger.info("Consultation %s deleted", consultation_id)

    # -- drafts ----------------------------------------------------------------

    async def save_draft(
        self,
        user_id: str,
        consultation_id: str,
        data: dict[str, Any],
        auto_save: bool = True,
    ) -> ConsultationDraft:
        """Replace the consultation's draft wholesale with ``data``.

        Sections missing from ``data`` are empty in the new draft; nothing is
        merged with the previous draft.
        """
        consultation = await self.get(user_id, consultation_id)
        if consultation.status == ConsultationStatus.ARCHIVED:
            raise InvalidTransition("Archived consultations cannot be edited")

        parsed = self._parse_sections(data)
        previous = await resolve(self._store.get_draft(consultation_id))
        draft = ConsultationDraft(
            consultation_id=consultation_id,
            user_id=user_id,
            auto_saved=auto_save,
            **{section.value: value for section, value in parsed.items()},
        )
        if previous is not None:
            draft.id = previous.id
            draft.created_at = previous.created_at

        await resolve(self._store.save_draft(draft))
        logger.debug("Saved draft for consultation %s", consultation_id)
        return draft

    async def get_draft(self, user_id: str, consultation_id: str) -> ConsultationDraft:
        await self.get(user_id, consultation_id)
        draft = await resolve(self._store.get_draft(consultation_id))
        if draft is None:
            raise DraftNotFound(f"No draft for consultation {consultation_id!r}")
        return draft

    async def delete_draft(self, user_id: str, consultation_id: str) -> None:
        await self.get(user_id, consultation_id)
        await resolve(self._store.delete_draft(consultation_id))

    # -- internals -------------------------------------------------------------

    @staticmethod
    def _transition(consultation: Consultation, target: ConsultationStatus) -> None:
        if not can_transition(consultation.status, target):
            raise InvalidTransition(
                f"Cannot move consultation from {consultation.status} to {target}"
            )
        consultation.status = target
        if target == ConsultationStatus.COMPLETED:
            consultation.completed_at = _now()
            consultation.completion_percentage = 100

    @staticmethod
    def _parse_sections(payload: dict[str, Any]) -> dict[FormSection, dict[str, Any]]:
        """Validate the section entries of ``payload``; other keys are skipped.

        The stored value is the payload as sent, so unknown fields survive.
        """
        sections: dict[FormSection, dict[str, Any]] = {}
        for section in FormSection.ordered():
            if section.value not in payload:
                continue
            data = payload[section.value]
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise InvalidSectionData(f"Section {section.value!r} must be an object")
            try:
                parse_section(section, data)
            except pydantic.ValidationError as exc:
                raise InvalidSectionData(
                    f"Invalid {section.value.replace('_', ' ')}: {exc.errors()[0]['msg']}"
                ) from exc
            sections[section] = dict(data)
        return sections
