"""Debounced draft auto-save with exponential backoff."""

from __future__ import annotations

import asyncio
import logging

from consultflow.consultation.models import ConsultationDraft
from consultflow.core.config import AutoSaveConfig
from consultflow.form.scheduling import ScheduledCall, Scheduler
from consultflow.form.state import FormState
from consultflow.gateway.base import PersistenceGateway
from consultflow.gateway.errors import GatewayError

logger = logging.getLogger(__name__)


class AutoSaveController:
    """Synchronizes a :class:`FormState` to the draft endpoint.

    Edits re-arm a single debounce timer; when it fires the full data snapshot
    is sent with ``save_draft``. Transient failures are retried after
    ``backoff_base ** attempt`` seconds up to ``max_retries`` times, after which
    the controller goes quiet until the next edit. Failures are logged and
    reflected in ``state.save_status``; they are never raised.
    """

    def __init__(
        self,
        state: FormState,
        gateway: PersistenceGateway,
        consultation_id: str,
        scheduler: Scheduler,
        config: AutoSaveConfig | None = None,
    ) -> None:
        self._state = state
        self._gateway = gateway
        self._consultation_id = consultation_id
        self._scheduler = scheduler
        self.config = config or AutoSaveConfig()
        self._timer: ScheduledCall | None = None
        self._retries = 0
        self._disposed = False
        self._suspended = False
        self._idle = asyncio.Event()
        self._idle.set()
        self.last_draft: ConsultationDraft | None = None

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def suspended(self) -> bool:
        return self._suspended

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.cancelled

    def notify_edit(self) -> None:
        """Restart the debounce timer after a section edit."""
        if self._disposed:
            return
        if self.config.reset_retries_on_edit:
            self._retries = 0
        self._arm(self.config.delay_seconds, "debounce")

    async def flush(self) -> None:
        """Save immediately instead of waiting for the timer."""
        self.cancel()
        await self._save()

    async def wait_idle(self) -> None:
        """Wait until no save_draft call is in flight."""
        await self._idle.wait()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def suspend(self) -> None:
        """Stop starting new saves until :meth:`resume`. A save in flight is not interrupted."""
        self.cancel()
        self._suspended = True

    def resume(self) -> None:
        self._suspended = False
        if self._state.is_dirty and not self._disposed:
            self._arm(self.config.delay_seconds, "debounce")

    def dispose(self) -> None:
        self.cancel()
        self._disposed = True

    # -- internals -----------------------------------------------------------

    def _arm(self, delay: float, label: str) -> None:
        self.cancel()
        if self._suspended:
            return
        call = self._scheduler.schedule(delay, lambda: self._on_timer(call), label)
        self._timer = call

    async def _on_timer(self, call: ScheduledCall) -> None:
        # A timer superseded by a later edit may still fire once on the loop.
        if call.cancelled:
            return
        if self._timer is call:
            self._timer = None
        await self._save()

    async def _save(self) -> None:
        state = self._state
        if self._disposed or self._suspended or state.disposed:
            return
        if not state.is_dirty:
            return
        if state.is_auto_saving:
            # The in-flight save re-arms on completion if edits are left over.
            return

        revision = state.revision
        snapshot = state.snapshot()
        state.is_auto_saving = True
        self._idle.clear()
        try:
            draft = await self._gateway.save_draft(self._consultation_id, snapshot)
        except GatewayError as exc:
            self._on_failure(exc)
            return
        finally:
            state.is_auto_saving = False
            self._idle.set()

        if self._disposed or state.disposed:
            return

        self.last_draft = draft
        self._retries = 0
        state.mark_saved(revision)
        logger.debug("Auto-saved draft for consultation %s", self._consultation_id)

        if state.is_dirty and not self.pending:
            self._arm(self.config.delay_seconds, "debounce")

    def _on_failure(self, exc: GatewayError) -> None:
        if self._disposed or self._state.disposed:
            return

        if not exc.is_transient:
            logger.warning(
                "Auto-save for consultation %s failed permanently: %s",
                self._consultation_id, exc,
            )
            self._state.auto_save_failed = True
            return

        if self._retries < self.config.max_retries:
            self._retries += 1
            delay = self.config.backoff_base_seconds ** self._retries
            logger.warning(
                "Auto-save for consultation %s failed: %s, retrying in %.1fs (%d/%d)",
                self._consultation_id, exc, delay, self._retries, self.config.max_retries,
            )
            self._arm(delay, f"retry-{self._retries}")
            return

        logger.warning(
            "Auto-save for consultation %s gave up after %d retries: %s",
            self._consultation_id, self._retries, exc,
        )
        self._state.auto_save_failed = True
