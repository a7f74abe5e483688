"""In-memory store for consultations and their drafts."""

from __future__ import annotations

from consultflow.consultation.models import Consultation, ConsultationDraft


class ConsultationStore:
    """In-memory dict store for consultations and drafts.

    Suitable for single-instance deployment and tests. At most one draft is
    kept per consultation; saving a draft replaces the previous one.
    """

    def __init__(self) -> None:
        self._consultations: dict[str, Consultation] = {}
        self._drafts: dict[str, ConsultationDraft] = {}

    # -- Consultations --

    def save_consultation(self, consultation: Consultation) -> None:
        self._consultations[consultation.id] = consultation

    def get_consultation(self, consultation_id: str) -> Consultation | None:
        return self._consultations.get(consultation_id)

    def list_consultations(self, user_id: str) -> list[Consultation]:
        return sorted(
            (c for c in self._consultations.values() if c.user_id == user_id),
            key=lambda c: c.created_at,
            reverse=True,
        )

    def delete_consultation(self, consultation_id: str) -> bool:
        self._drafts.pop(consultation_id, None)
        return self._consultations.pop(consultation_id, None) is not None

    # -- Drafts --

    def save_draft(self, draft: ConsultationDraft) -> None:
        self._drafts[draft.consultation_id] = draft

    def get_draft(self, consultation_id: str) -> ConsultationDraft | None:
        return self._drafts.get(consultation_id)

    def delete_draft(self, consultation_id: str) -> bool:
        return self._drafts.pop(consultation_id, None) is not None
