"""YAML-backed consultation form definition.

Step order is always :meth:`FormSection.ordered`; the definition file only
supplies titles, descriptions and per-field validation rules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from consultflow.core.types import FormSection

_DEFAULT_DEFINITION_PATH = Path(__file__).resolve().parents[3] / "config" / "consultation_form.yml"


class FieldRule(BaseModel):
    """Validation rule for a single field within a section."""

    field: str
    label: str
    validators: list[str] = Field(default_factory=list)
    message: str | None = None


class StepDefinition(BaseModel):
    section: FormSection
    title: str
    description: str = ""
    rules: list[FieldRule] = Field(default_factory=list)


class FormDefinition(BaseModel):
    """Titles and rules for every step of the consultation form."""

    id: str = "consultation"
    title: str = "Consultation"
    steps: list[StepDefinition] = Field(default_factory=list)

    def step(self, section: FormSection) -> StepDefinition:
        for step in self.steps:
            if step.section == section:
                return step
        return StepDefinition(section=section, title=_default_title(section))


def _default_title(section: FormSection) -> str:
    return section.value.replace("_", " ").title()


_BUILTIN_RULES: dict[FormSection, tuple[str, list[FieldRule]]] = {
    FormSection.CONTACT_INFO: (
        "Contact Information",
        [
            FieldRule(field="email", label="Email", validators=["required", "email"]),
            FieldRule(field="website", label="Website", validators=["url"]),
        ],
    ),
    FormSection.BUSINESS_CONTEXT: (
        "Business Context",
        [
            FieldRule(field="industry", label="Industry", validators=["required"]),
            FieldRule(field="team_size", label="Team size", validators=["positive_int"]),
        ],
    ),
    FormSection.PAIN_POINTS: (
        "Pain Points",
        [
            FieldRule(
                field="primary_challenges",
                label="Primary challenge",
                validators=["non_empty_list"],
            ),
        ],
    ),
    FormSection.GOALS_OBJECTIVES: (
        "Goals & Objectives",
        [
            FieldRule(field="primary_goals", label="Primary goal", validators=["non_empty_list"]),
        ],
    ),
}


def builtin_definition() -> FormDefinition:
    """Definition used when no YAML file is available."""
    return FormDefinition(
        steps=[
            StepDefinition(section=section, title=title, rules=list(rules))
            for section, (title, rules) in _BUILTIN_RULES.items()
        ]
    )


def _parse_rule(data: dict[str, Any]) -> FieldRule:
    return FieldRule(
        field=data["field"],
        label=data.get("label", data["field"].replace("_", " ").capitalize()),
        validators=data.get("validators", []),
        message=data.get("message"),
    )


def _parse_step(data: dict[str, Any]) -> StepDefinition:
    section = FormSection(data["section"])
    return StepDefinition(
        section=section,
        title=data.get("title", _default_title(section)),
        description=data.get("description", ""),
        rules=[_parse_rule(r) for r in data.get("rules", [])],
    )


def load_form_definition(path: str | Path | None = None) -> FormDefinition:
    """Load the form definition from YAML, falling back to the built-in rules.

    Raises:
        ValueError: If the file names an unknown section.
    """
    path = Path(path) if path else _DEFAULT_DEFINITION_PATH
    if not path.exists():
        return builtin_definition()
    with open(path) as fh:
        data = yaml.safe_load(fh) or {}

    steps = [_parse_step(s) for s in data.get("steps", [])]
    by_section = {s.section: s for s in steps}
    return FormDefinition(
        id=data.get("id", "consultation"),
        title=data.get("title", "Consultation"),
        steps=[
            by_section.get(section) or builtin_definition().step(section)
            for section in FormSection.ordered()
        ],
    )
