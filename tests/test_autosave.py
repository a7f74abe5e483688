"""Tests for the debounced auto-save controller."""

from __future__ import annotations

import asyncio

import pytest

from consultflow.core.config import AutoSaveConfig
from consultflow.core.types import FormSection
from consultflow.form.autosave import AutoSaveController
from consultflow.form.scheduling import AsyncioScheduler
from consultflow.form.state import FormState, SaveStatus
from consultflow.gateway.errors import NotFoundError

from tests.conftest import BUSINESS, CONTACT, GOALS, InProcessGateway


class HookedGateway(InProcessGateway):
    """Runs ``on_save`` while a save_draft call is in flight."""

    def __init__(self) -> None:
        super().__init__()
        self.on_save = None
        self.save_error = None

    async def save_draft(self, consultation_id, sections):
        if self.on_save is not None:
            hook, self.on_save = self.on_save, None
            hook()
        if self.save_error is not None:
            self.calls.append("save_draft")
            raise self.save_error
        return await super().save_draft(consultation_id, sections)


async def _setup(gateway, scheduler, **config):
    consultation = await gateway.create()
    state = FormState()
    controller = AutoSaveController(
        state, gateway, consultation.id, scheduler, AutoSaveConfig(**config)
    )
    state.add_listener(lambda _section: controller.notify_edit())
    return state, controller


class TestDebounce:
    async def test_burst_of_edits_collapses_into_one_save(self, gateway, scheduler):
        state, _ = await _setup(gateway, scheduler)

        state.update_section(FormSection.CONTACT_INFO, {"business_name": "A"})
        await scheduler.advance(0.5)
        state.update_section(FormSection.CONTACT_INFO, {"business_name": "Ac"})
        await scheduler.advance(0.5)
        state.update_section(FormSection.CONTACT_INFO, CONTACT)

        await scheduler.advance(1.5)
        assert gateway.count("save_draft") == 0

        await scheduler.advance(0.5)
        assert gateway.count("save_draft") == 1
        assert gateway.saved_snapshots[-1] == {FormSection.CONTACT_INFO: CONTACT}
        assert state.is_dirty is False
        assert state.last_saved_at is not None
        assert state.save_status == SaveStatus.SAVED

    async def test_delay_is_configurable(self, gateway, scheduler):
        state, _ = await _setup(gateway, scheduler, delay_seconds=5.0)
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.advance(4.5)
        assert gateway.count("save_draft") == 0
        await scheduler.advance(0.5)
        assert gateway.count("save_draft") == 1

    async def test_no_save_when_already_clean(self, gateway, scheduler):
        state, _ = await _setup(gateway, scheduler)
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        state.mark_saved(state.revision)
        await scheduler.run_all()
        assert gateway.count("save_draft") == 0

    async def test_no_second_save_while_one_is_in_flight(self, gateway, scheduler):
        state, _ = await _setup(gateway, scheduler)
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        state.is_auto_saving = True
        await scheduler.advance(2)
        assert gateway.count("save_draft") == 0

    async def test_draft_is_stored_server_side(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler)
        state.update_section(FormSection.BUSINESS_CONTEXT, BUSINESS)
        await scheduler.run_all()
        assert controller.last_draft is not None
        assert controller.last_draft.business_context == BUSINESS


class TestEditsDuringSave:
    async def test_edit_in_flight_is_saved_afterwards(self, scheduler):
        gateway = HookedGateway()
        state, _ = await _setup(gateway, scheduler)
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        gateway.on_save = lambda: state.update_section(FormSection.GOALS_OBJECTIVES, GOALS)

        await scheduler.advance(2)
        assert gateway.count("save_draft") == 1
        # The save covered the older revision only
        assert state.is_dirty is True

        await scheduler.run_all()
        assert gateway.count("save_draft") == 2
        assert gateway.saved_snapshots[-1] == {
            FormSection.CONTACT_INFO: CONTACT,
            FormSection.GOALS_OBJECTIVES: GOALS,
        }
        assert state.is_dirty is False

    async def test_late_completion_into_disposed_state(self, scheduler):
        gateway = HookedGateway()
        state, controller = await _setup(gateway, scheduler)
        state.update_section(FormSection.CONTACT_INFO, CONTACT)

        def end_session():
            controller.dispose()
            state.dispose()

        gateway.on_save = end_session
        await scheduler.run_all()

        assert gateway.count("save_draft") == 1
        assert state.last_saved_at is None
        assert controller.last_draft is None
        assert controller.pending is False


class TestRetry:
    async def test_fails_twice_then_succeeds(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler)
        gateway.save_draft_failures = 2

        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()

        assert gateway.count("save_draft") == 3
        times = [t for t, _ in scheduler.fired]
        assert times == [2.0, 4.0, 8.0]
        gaps = [b - a for a, b in zip(times, times[1:])]
        assert gaps == [2.0, 4.0]
        assert state.is_dirty is False
        assert controller.retries == 0
        assert state.save_status == SaveStatus.SAVED

    async def test_stops_after_max_retries(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler)
        gateway.save_draft_always_fails = True

        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()

        # First attempt plus three retries at 2s, 4s and 8s
        assert gateway.count("save_draft") == 4
        assert [label for _, label in scheduler.fired] == [
            "debounce", "retry-1", "retry-2", "retry-3",
        ]
        assert controller.pending is False
        assert state.is_dirty is True
        assert state.is_auto_saving is False
        assert state.save_status == SaveStatus.NOT_SAVED

        await scheduler.advance(600)
        assert gateway.count("save_draft") == 4

    async def test_new_edit_rearms_after_exhaustion(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler)
        gateway.save_draft_always_fails = True
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()
        assert gateway.count("save_draft") == 4

        state.update_section(FormSection.BUSINESS_CONTEXT, BUSINESS)
        assert controller.retries == 0
        await scheduler.run_all()
        # The counter was reset by the edit, so a full retry cycle runs again
        assert gateway.count("save_draft") == 8

    async def test_counter_kept_across_edits_when_reset_disabled(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler, reset_retries_on_edit=False)
        gateway.save_draft_always_fails = True
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()
        assert controller.retries == 3

        state.update_section(FormSection.BUSINESS_CONTEXT, BUSINESS)
        await scheduler.run_all()
        assert gateway.count("save_draft") == 5

        gateway.save_draft_always_fails = False
        state.update_section(FormSection.BUSINESS_CONTEXT, BUSINESS)
        await scheduler.run_all()
        assert state.is_dirty is False
        assert controller.retries == 0

    async def test_recovers_after_exhaustion(self, gateway, scheduler):
        state, _ = await _setup(gateway, scheduler)
        gateway.save_draft_always_fails = True
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()

        gateway.save_draft_always_fails = False
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()
        assert state.is_dirty is False
        assert state.save_status == SaveStatus.SAVED

    async def test_non_transient_errors_are_not_retried(self, scheduler):
        gateway = HookedGateway()
        state, controller = await _setup(gateway, scheduler)
        gateway.save_error = NotFoundError("Consultation not found", 404)

        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()

        assert gateway.count("save_draft") == 1
        assert controller.pending is False
        assert state.save_status == SaveStatus.NOT_SAVED

    @pytest.mark.parametrize("base,expected", [(2.0, [2.0, 4.0, 8.0]), (3.0, [3.0, 9.0, 27.0])])
    async def test_backoff_is_exponential(self, gateway, scheduler, base, expected):
        state, _ = await _setup(gateway, scheduler, backoff_base_seconds=base)
        gateway.save_draft_always_fails = True
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()
        times = [t for t, _ in scheduler.fired]
        assert [b - a for a, b in zip(times, times[1:])] == expected


class TestFlushAndCancel:
    async def test_flush_saves_now(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler)
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        assert controller.pending is True

        await controller.flush()
        assert gateway.count("save_draft") == 1
        assert controller.pending is False
        assert state.is_dirty is False

        await scheduler.run_all()
        assert gateway.count("save_draft") == 1

    async def test_cancel_drops_pending_timer(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler)
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        controller.cancel()
        await scheduler.run_all()
        assert gateway.count("save_draft") == 0
        assert state.is_dirty is True

    async def test_dispose_ignores_later_edits(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler)
        controller.dispose()
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()
        assert gateway.count("save_draft") == 0


class TestSupersededTimers:
    async def test_stale_timer_does_not_clear_the_live_one(self, gateway, scheduler):
        state, controller = await _setup(gateway, scheduler)
        handles = []
        schedule = scheduler.schedule

        def recording(delay, callback, label=""):
            call = schedule(delay, callback, label)
            handles.append(call)
            return call

        scheduler.schedule = recording
        state.update_section(FormSection.CONTACT_INFO, {"business_name": "A"})
        state.update_section(FormSection.CONTACT_INFO, CONTACT)
        first, second = handles
        assert first.cancelled is True

        # The first timer already fired on the loop before the second edit cancelled it.
        await first.callback()
        assert gateway.count("save_draft") == 0
        assert controller.pending is True

        controller.cancel()
        assert second.cancelled is True
        await scheduler.run_all()
        assert gateway.count("save_draft") == 0

    async def test_rearm_on_event_loop(self, gateway):
        state, controller = await _setup(gateway, AsyncioScheduler(), delay_seconds=0.05)
        loop = asyncio.get_running_loop()

        state.update_section(FormSection.CONTACT_INFO, {"business_name": "A"})
        loop.call_later(0.05, state.update_section, FormSection.CONTACT_INFO, CONTACT)
        await asyncio.sleep(0.06)
        assert controller.pending is True

        await asyncio.sleep(0.1)
        assert controller.pending is False
        assert state.is_dirty is False
        assert gateway.saved_snapshots[-1] == {FormSection.CONTACT_INFO: CONTACT}
