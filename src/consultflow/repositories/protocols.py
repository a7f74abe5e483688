"""Protocol definition for consultation storage.

Mirrors the public methods of :class:`ConsultationStore` so that both the
sync in-memory store and the async SQL repository satisfy it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from consultflow.consultation.models import Consultation, ConsultationDraft


@runtime_checkable
class ConsultationRepository(Protocol):
    """Protocol for consultation and draft storage."""

    def save_consultation(self, consultation: Consultation) -> None: ...

    def get_consultation(self, consultation_id: str) -> Consultation | None: ...

    def list_consultations(self, user_id: str) -> list[Consultation]: ...

    def delete_consultation(self, consultation_id: str) -> bool: ...

    def save_draft(self, draft: ConsultationDraft) -> None: ...

    def get_draft(self, consultation_id: str) -> ConsultationDraft | None: ...

    def delete_draft(self, consultation_id: str) -> bool: ...
