"""Core type definitions shared across all consultflow modules."""

from __future__ import annotations

from enum import StrEnum


class FormSection(StrEnum):
    """Sections of the consultation form, in step order."""

    CONTACT_INFO = "contact_info"
    BUSINESS_CONTEXT = "business_context"
    PAIN_POINTS = "pain_points"
    GOALS_OBJECTIVES = "goals_objectives"

    @classmethod
    def ordered(cls) -> list[FormSection]:
        """Return the fixed step sequence."""
        return list(cls)


class ConsultationStatus(StrEnum):
    """Lifecycle status of a consultation record."""

    DRAFT = "draft"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class UrgencyLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_ALLOWED_TRANSITIONS: dict[ConsultationStatus, set[ConsultationStatus]] = {
    ConsultationStatus.DRAFT: {ConsultationStatus.COMPLETED, ConsultationStatus.ARCHIVED},
    ConsultationStatus.COMPLETED: {ConsultationStatus.ARCHIVED},
    ConsultationStatus.ARCHIVED: set(),
}


def can_transition(current: ConsultationStatus, target: ConsultationStatus) -> bool:
    """Return True if a consultation may move from ``current`` to ``target``."""
    return target in _ALLOWED_TRANSITIONS.get(current, set())
