"""In-memory progress state for one consultation form session."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Callable

from consultflow.consultation.models import Consultation, ConsultationDraft
from consultflow.core.types import FormSection
from consultflow.form.definition import FormDefinition, StepDefinition, builtin_definition
from consultflow.form.validation import SectionValidator, is_section_filled

logger = logging.getLogger(__name__)

ChangeListener = Callable[[FormSection], None]


class SaveStatus(StrEnum):
    """Passive save indicator shown next to the form."""

    SAVED = "saved"
    SAVING = "saving"
    UNSAVED = "unsaved"
    NOT_SAVED = "not_saved"


class FormState:
    """Partially-entered consultation data plus step and save bookkeeping.

    One instance per form session; it is never shared. Navigation and
    validation methods never raise: a disallowed call returns ``False`` and
    leaves the state unchanged.

    ``revision`` increases on every edit so a save can tell whether the data
    it sent is still the latest.
    """

    def __init__(
        self,
        definition: FormDefinition | None = None,
        validator: SectionValidator | None = None,
    ) -> None:
        self.definition = definition or builtin_definition()
        self.steps: tuple[FormSection, ...] = tuple(FormSection.ordered())
        self._validator = validator or SectionValidator(self.definition)
        self._listeners: list[ChangeListener] = []
        self._disposed = False
        self.reset()

    def reset(self) -> None:
        """Return to a blank form on the first step."""
        self.current_step_index = 0
        self.completed_step_indices: set[int] = set()
        self.data: dict[FormSection, dict[str, Any]] = {}
        self.errors: dict[FormSection, list[str]] = {}
        self.is_dirty = False
        self.is_auto_saving = False
        self.auto_save_failed = False
        self.last_saved_at: datetime | None = None
        self.revision = 0

    # -- derived views -------------------------------------------------------

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def current_section(self) -> FormSection:
        return self.steps[self.current_step_index]

    @property
    def current_step(self) -> StepDefinition:
        return self.definition.step(self.current_section)

    @property
    def is_first_step(self) -> bool:
        return self.current_step_index == 0

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index == self.step_count - 1

    @property
    def progress_percentage(self) -> int:
        return round(len(self.completed_step_indices) / self.step_count * 100)

    @property
    def is_complete(self) -> bool:
        return len(self.completed_step_indices) == self.step_count

    @property
    def has_unsaved_changes(self) -> bool:
        return self.is_dirty and not self.is_auto_saving

    @property
    def save_status(self) -> SaveStatus:
        if self.is_auto_saving:
            return SaveStatus.SAVING
        if self.is_dirty and self.auto_save_failed:
            return SaveStatus.NOT_SAVED
        if self.is_dirty:
            return SaveStatus.UNSAVED
        return SaveStatus.SAVED

    @property
    def disposed(self) -> bool:
        return self._disposed

    def section_data(self, section: FormSection) -> dict[str, Any]:
        return copy.deepcopy(self.data.get(section, {}))

    def snapshot(self) -> dict[FormSection, dict[str, Any]]:
        """Deep copy of the current data, safe to hand to a network call."""
        return copy.deepcopy(self.data)

    # -- mutation ------------------------------------------------------------

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callback run after every section edit."""
        self._listeners.append(listener)

    def update_section(self, section: FormSection | str, data: Mapping[str, Any]) -> None:
        """Replace a section's data wholesale and mark the form dirty."""
        if self._disposed:
            return
        try:
            section = FormSection(section)
        except ValueError:
            logger.warning("Ignoring update for unknown section %r", section)
            return

        if not isinstance(data, Mapping):
            logger.warning(
                "Ignoring update for section %s: expected a mapping, got %s",
                section, type(data).__name__,
            )
            return

        self.data[section] = copy.deepcopy(dict(data))
        self.is_dirty = True
        self.revision += 1
        self.errors.pop(section, None)
        self.recompute_completed_steps()

        for listener in list(self._listeners):
            try:
                listener(section)
            except Exception:
                logger.exception("Section change listener failed for %s", section)

    def recompute_completed_steps(self) -> set[int]:
        """Rebuild the completed set from the per-step predicate."""
        self.completed_step_indices = {
            index for index in range(self.step_count) if self.is_step_filled(index)
        }
        return set(self.completed_step_indices)

    def hydrate(
        self,
        consultation: Consultation | None,
        draft: ConsultationDraft | None = None,
    ) -> None:
        """Load server data. Draft sections replace record sections of the same name."""
        merged: dict[FormSection, dict[str, Any]] = {}
        if consultation is not None:
            merged.update(consultation.sections())
        if draft is not None:
            merged.update(draft.sections())

        self.data = copy.deepcopy(merged)
        self.errors = {}
        self.recompute_completed_steps()
        self.is_dirty = False
        self.auto_save_failed = False

    def mark_saved(self, revision: int, saved_at: datetime | None = None) -> None:
        """Record a successful save of the data as of ``revision``.

        Edits made after the snapshot was taken keep the form dirty.
        """
        if self._disposed:
            return
        self.last_saved_at = saved_at or datetime.now(timezone.utc)
        self.auto_save_failed = False
        if revision == self.revision:
            self.is_dirty = False

    def dispose(self) -> None:
        """End the session. Later edits and save completions are ignored."""
        self._disposed = True
        self._listeners.clear()

    # -- navigation ----------------------------------------------------------

    def is_step_filled(self, index: int) -> bool:
        if not 0 <= index < self.step_count:
            return False
        return is_section_filled(self.data.get(self.steps[index]))

    def can_advance(self) -> bool:
        return self.is_step_filled(self.current_step_index)

    def advance(self) -> bool:
        if not self.can_advance():
            return False
        self.completed_step_indices.add(self.current_step_index)
        if self.is_last_step:
            return False
        self.current_step_index += 1
        return True

    def retreat(self) -> bool:
        if self.is_first_step:
            return False
        self.current_step_index -= 1
        return True

    def go_to_step(self, index: int) -> bool:
        # Earlier steps need not be complete; power users may skip ahead.
        if not isinstance(index, int) or not 0 <= index < self.step_count:
            return False
        self.current_step_index = index
        return True

    # -- validation ----------------------------------------------------------

    def validate_current_step(self) -> bool:
        return self.validate_section(self.current_section)

    def validate_section(self, section: FormSection) -> bool:
        errors = self._validator.validate(section, self.data.get(section))
        if errors:
            self.errors[section] = errors
            return False
        self.errors.pop(section, None)
        return True

    def validate_all(self) -> list[FormSection]:
        """Validate every section. Returns the sections that failed."""
        return [s for s in self.steps if not self.validate_section(s)]

    def set_section_errors(self, section: FormSection, errors: list[str]) -> None:
        self.errors[section] = list(errors)

    def get_section_errors(self, section: FormSection) -> list[str]:
        return list(self.errors.get(section, []))
