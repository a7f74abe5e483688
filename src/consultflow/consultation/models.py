"""Shared models for consultation records, drafts and section payloads."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from consultflow.core.types import ConsultationStatus, FormSection, UrgencyLevel


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SectionModel(BaseModel):
    """Base for section payloads. Every field is optional; unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ContactInfo(SectionModel):
    business_name: str | None = None
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    social_media: dict[str, Any] | None = None


class BusinessContext(SectionModel):
    industry: str | None = None
    business_type: str | None = None
    team_size: int | None = None
    current_platform: str | None = None
    digital_presence: list[str] | None = None
    marketing_channels: list[str] | None = None


class PainPoints(SectionModel):
    primary_challenges: list[str] | None = None
    technical_issues: list[str] | None = None
    urgency_level: UrgencyLevel | None = None
    impact_assessment: str | None = None
    current_solution_gaps: list[str] | None = None


class Timeline(SectionModel):
    desired_start: str | None = None
    target_completion: str | None = None
    milestones: list[str] | None = None


class GoalsObjectives(SectionModel):
    primary_goals: list[str] | None = None
    secondary_goals: list[str] | None = None
    success_metrics: list[str] | None = None
    kpis: list[str] | None = None
    timeline: Timeline | None = None
    budget_range: str | None = None
    budget_constraints: list[str] | None = None


SECTION_MODELS: dict[FormSection, type[SectionModel]] = {
    FormSection.CONTACT_INFO: ContactInfo,
    FormSection.BUSINESS_CONTEXT: BusinessContext,
    FormSection.PAIN_POINTS: PainPoints,
    FormSection.GOALS_OBJECTIVES: GoalsObjectives,
}


def parse_section(section: FormSection, data: dict[str, Any]) -> SectionModel:
    """Parse raw section data into its typed model.

    Raises:
        pydantic.ValidationError: If a known field has the wrong shape.
    """
    return SECTION_MODELS[section].model_validate(data)


class Consultation(BaseModel):
    """Server-owned consultation record."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = ""
    contact_info: dict[str, Any] = Field(default_factory=dict)
    business_context: dict[str, Any] = Field(default_factory=dict)
    pain_points: dict[str, Any] = Field(default_factory=dict)
    goals_objectives: dict[str, Any] = Field(default_factory=dict)
    status: ConsultationStatus = ConsultationStatus.DRAFT
    completion_percentage: int = Field(default=0, ge=0, le=100)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None

    def sections(self) -> dict[FormSection, dict[str, Any]]:
        """Return the non-empty sections of this record."""
        return _non_empty_sections(self)

    def to_summary(self) -> ConsultationSummary:
        return ConsultationSummary(
            id=self.id,
            user_id=self.user_id,
            business_name=self.contact_info.get("business_name"),
            contact_person=self.contact_info.get("contact_person"),
            email=self.contact_info.get("email"),
            industry=self.business_context.get("industry"),
            status=self.status,
            completion_percentage=self.completion_percentage,
            created_at=self.created_at,
            updated_at=self.updated_at,
            completed_at=self.completed_at,
        )


class ConsultationDraft(BaseModel):
    """Latest auto-saved snapshot for a consultation. One per consultation."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    consultation_id: str
    user_id: str = ""
    contact_info: dict[str, Any] = Field(default_factory=dict)
    business_context: dict[str, Any] = Field(default_factory=dict)
    pain_points: dict[str, Any] = Field(default_factory=dict)
    goals_objectives: dict[str, Any] = Field(default_factory=dict)
    auto_saved: bool = True
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def sections(self) -> dict[FormSection, dict[str, Any]]:
        """Return the non-empty sections of this draft."""
        return _non_empty_sections(self)


class ConsultationSummary(BaseModel):
    """Condensed consultation view for list screens."""

    id: str
    user_id: str = ""
    business_name: str | None = None
    contact_person: str | None = None
    email: str | None = None
    industry: str | None = None
    status: ConsultationStatus
    completion_percentage: int = 0
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class ConsultationPage(BaseModel):
    """One page of consultation summaries."""

    consultations: list[ConsultationSummary] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    has_more: bool = False


def _non_empty_sections(record: Consultation | ConsultationDraft) -> dict[FormSection, dict[str, Any]]:
    result: dict[FormSection, dict[str, Any]] = {}
    for section in FormSection.ordered():
        value = getattr(record, section.value)
        if value:
            result[section] = value
    return result


# Minimally-required field per section for server-side completion tracking.
_COMPLETION_FIELDS: dict[FormSection, str] = {
    FormSection.CONTACT_INFO: "business_name",
    FormSection.BUSINESS_CONTEXT: "industry",
    FormSection.PAIN_POINTS: "primary_challenges",
    FormSection.GOALS_OBJECTIVES: "primary_goals",
}


def compute_completion_percentage(sections: dict[FormSection, dict[str, Any]]) -> int:
    """Percentage of sections whose minimally-required field is populated."""
    total = len(_COMPLETION_FIELDS)
    filled = 0
    for section, field in _COMPLETION_FIELDS.items():
        value = (sections.get(section) or {}).get(field)
        if isinstance(value, list):
            if value:
                filled += 1
        elif isinstance(value, str):
            if value.strip():
                filled += 1
        elif value is not None:
            filled += 1
    return (filled * 100) // total
