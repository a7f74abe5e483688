"""Per-user consultation form session.

Wires a :class:`FormState`, an :class:`AutoSaveController` and a persistence
gateway together. One instance per form session, passed explicitly to
whatever drives the form.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Mapping

from consultflow.consultation.models import Consultation, ConsultationDraft
from consultflow.core.config import AutoSaveConfig
from consultflow.core.types import ConsultationStatus, FormSection
from consultflow.form.autosave import AutoSaveController
from consultflow.form.definition import FormDefinition
from consultflow.form.scheduling import AsyncioScheduler, Scheduler
from consultflow.form.state import FormState
from consultflow.gateway.base import PersistenceGateway
from consultflow.gateway.errors import GatewayError

logger = logging.getLogger(__name__)


class SubmitPhase(StrEnum):
    """Progress of the final submission workflow."""

    IDLE = "idle"
    FLUSHING = "flushing"
    COMPLETING = "completing"
    SUBMITTED = "submitted"
    FAILED = "failed"


class SessionNotStartedError(RuntimeError):
    """Raised when a server call is attempted before :meth:`ConsultationSession.start`."""


class IncompleteFormError(Exception):
    """Submission attempted while some sections fail validation."""

    def __init__(self, sections: list[FormSection]) -> None:
        names = ", ".join(s.value for s in sections)
        super().__init__(f"Sections not ready for submission: {names}")
        self.sections = sections


class ConsultationSession:
    """Drives one consultation form from start to submission."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        scheduler: Scheduler | None = None,
        autosave_config: AutoSaveConfig | None = None,
        definition: FormDefinition | None = None,
    ) -> None:
        self._gateway = gateway
        self._scheduler = scheduler or AsyncioScheduler()
        self._autosave_config = autosave_config or AutoSaveConfig()
        self.state = FormState(definition)
        self.state.add_listener(self._on_section_changed)
        self.consultation: Consultation | None = None
        self.draft: ConsultationDraft | None = None
        self.autosave: AutoSaveController | None = None
        self.submit_phase = SubmitPhase.IDLE

    @property
    def gateway(self) -> PersistenceGateway:
        return self._gateway

    @property
    def consultation_id(self) -> str | None:
        return self.consultation.id if self.consultation else None

    async def start(self, consultation_id: str | None = None) -> bool:
        """Create a new consultation or load an existing one with its draft.

        Returns:
            True on success; failures are logged and leave the session unstarted.
        """
        try:
            if consultation_id:
                consultation = await self._gateway.fetch(consultation_id)
            else:
                consultation = await self._gateway.create()
            draft = await self._gateway.fetch_draft(consultation.id)
        except GatewayError as exc:
            logger.error("Failed to initialize consultation form: %s", exc)
            return False

        self.consultation = consultation
        self.draft = draft
        self.state.reset()
        self.state.hydrate(consultation, draft)
        self.autosave = AutoSaveController(
            self.state,
            self._gateway,
            consultation.id,
            self._scheduler,
            self._autosave_config,
        )
        logger.info("Consultation form session started for %s", consultation.id)
        return True

    def update_section(self, section: FormSection | str, data: Mapping[str, Any]) -> None:
        self.state.update_section(section, data)

    async def save(self) -> Consultation:
        """Persist the current data to the consultation record.

        Raises:
            GatewayError: Always surfaced to the caller; manual saves are not retried.
        """
        consultation = self._require_consultation()
        revision = self.state.revision
        try:
            updated = await self._gateway.update(consultation.id, self.state.snapshot())
        except GatewayError as exc:
            logger.error("Failed to save consultation %s: %s", consultation.id, exc)
            raise
        self.consultation = updated
        self.state.mark_saved(revision)
        return updated

    async def submit(self) -> Consultation:
        """Flush the latest edits and complete the consultation.

        Both ``update`` and ``complete`` must succeed for the session to reach
        :attr:`SubmitPhase.SUBMITTED`; ``complete`` always runs after a
        successful ``update``.

        Raises:
            IncompleteFormError: If any section fails validation.
            GatewayError: If either server call fails; phase becomes FAILED.
        """
        consultation = self._require_consultation()
        if self.submit_phase == SubmitPhase.SUBMITTED:
            return consultation

        failed = self.state.validate_all()
        if failed:
            raise IncompleteFormError(failed)

        if self.autosave is not None:
            # A draft save landing after complete would resurrect the draft row.
            self.autosave.suspend()
            await self.autosave.wait_idle()

        try:
            self.submit_phase = SubmitPhase.FLUSHING
            revision = self.state.revision
            updated = await self._gateway.update(consultation.id, self.state.snapshot())
            self.consultation = updated
            self.state.mark_saved(revision)

            self.submit_phase = SubmitPhase.COMPLETING
            completed = await self._gateway.complete(consultation.id)
            if completed.status != ConsultationStatus.COMPLETED:
                raise GatewayError(
                    f"Consultation {consultation.id} was not completed "
                    f"(status: {completed.status})"
                )
        except GatewayError as exc:
            self.submit_phase = SubmitPhase.FAILED
            logger.error("Failed to submit consultation %s: %s", consultation.id, exc)
            if self.autosave is not None:
                self.autosave.resume()
            raise

        self.consultation = completed
        self.submit_phase = SubmitPhase.SUBMITTED
        if self.autosave is not None:
            self.autosave.dispose()
        logger.info("Consultation %s completed", consultation.id)
        return completed

    async def close(self) -> None:
        """End the session. A save still in flight completes into a disposed state."""
        if self.autosave is not None:
            self.autosave.dispose()
        self.state.dispose()

    def _on_section_changed(self, section: FormSection) -> None:
        # Nothing to auto-save until a server-side record exists.
        if self.autosave is not None:
            self.autosave.notify_edit()

    def _require_consultation(self) -> Consultation:
        if self.consultation is None:
            raise SessionNotStartedError("Consultation session has not been started")
        return self.consultation
