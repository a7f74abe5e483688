"""Tests for ConsultationSession: start, hydrate, manual save and submit."""

from __future__ import annotations

import asyncio

import pytest

from consultflow.core.config import AutoSaveConfig
from consultflow.core.types import ConsultationStatus, FormSection
from consultflow.form.session import (
    ConsultationSession,
    IncompleteFormError,
    SessionNotStartedError,
    SubmitPhase,
)
from consultflow.gateway.errors import GatewayError, NotFoundError, TransientNetworkError

from tests.conftest import BUSINESS, CONTACT, FULL_FORM, GOALS, PAIN_POINTS, InProcessGateway


class GatedGateway(InProcessGateway):
    """Holds save_draft calls until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def save_draft(self, consultation_id, sections):
        self.calls.append("save_draft:start")
        await self.gate.wait()
        return await super().save_draft(consultation_id, sections)


class FlakyGateway(InProcessGateway):
    def __init__(self) -> None:
        super().__init__()
        self.fail_update = 0
        self.fail_complete = 0

    async def update(self, consultation_id, sections):
        if self.fail_update:
            self.fail_update -= 1
            self.calls.append("update")
            raise TransientNetworkError("Bad gateway", 502)
        return await super().update(consultation_id, sections)

    async def complete(self, consultation_id):
        if self.fail_complete:
            self.fail_complete -= 1
            self.calls.append("complete")
            raise TransientNetworkError("Bad gateway", 502)
        return await super().complete(consultation_id)


def _session(gateway, scheduler) -> ConsultationSession:
    return ConsultationSession(gateway, scheduler=scheduler, autosave_config=AutoSaveConfig())


def _fill(session: ConsultationSession) -> None:
    for section, data in FULL_FORM.items():
        session.update_section(section, data)


class TestStart:
    async def test_new_consultation(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        assert await session.start() is True
        assert gateway.calls == ["create", "fetch_draft"]
        assert session.consultation.status == ConsultationStatus.DRAFT
        assert session.autosave is not None
        assert session.state.is_dirty is False

    async def test_edits_before_start_make_no_network_calls(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        session.update_section(FormSection.CONTACT_INFO, CONTACT)
        await scheduler.run_all()
        assert gateway.calls == []
        assert scheduler.fired == []

    async def test_existing_consultation_merges_draft(self, gateway, scheduler):
        consultation = await gateway.service.create(
            gateway.user_id,
            {"contact_info": CONTACT, "business_context": {"industry": "Old"}},
        )
        await gateway.service.save_draft(
            gateway.user_id, consultation.id, {"business_context": BUSINESS}
        )

        session = _session(gateway, scheduler)
        assert await session.start(consultation.id) is True
        assert session.state.data == {
            FormSection.CONTACT_INFO: CONTACT,
            FormSection.BUSINESS_CONTEXT: BUSINESS,
        }
        assert session.draft is not None
        assert session.state.completed_step_indices == {0, 1}

    async def test_unknown_consultation(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        assert await session.start("missing") is False
        assert session.consultation is None
        assert session.autosave is None

    async def test_edit_after_start_arms_autosave(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        await session.start()
        session.update_section(FormSection.CONTACT_INFO, CONTACT)
        assert session.autosave.pending is True
        await scheduler.run_all()
        assert gateway.count("save_draft") == 1


class TestManualSave:
    async def test_save_updates_record(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        await session.start()
        session.update_section(FormSection.CONTACT_INFO, CONTACT)

        updated = await session.save()
        assert updated.contact_info == CONTACT
        assert updated.completion_percentage == 25
        assert session.state.is_dirty is False
        assert session.state.last_saved_at is not None

    async def test_save_failure_is_surfaced(self, scheduler):
        gateway = FlakyGateway()
        session = _session(gateway, scheduler)
        await session.start()
        session.update_section(FormSection.CONTACT_INFO, CONTACT)
        gateway.fail_update = 1

        with pytest.raises(TransientNetworkError):
            await session.save()
        assert gateway.count("update") == 1
        assert session.state.is_dirty is True

    async def test_save_before_start(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        with pytest.raises(SessionNotStartedError):
            await session.save()


class TestSubmit:
    async def test_update_then_complete(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        await session.start()
        _fill(session)

        completed = await session.submit()

        assert gateway.calls[-2:] == ["update", "complete"]
        assert completed.status == ConsultationStatus.COMPLETED
        assert completed.completion_percentage == 100
        assert completed.completed_at is not None
        assert completed.goals_objectives == GOALS
        assert session.submit_phase == SubmitPhase.SUBMITTED
        assert session.state.is_dirty is False

    async def test_draft_removed_and_timers_stopped(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        await session.start()
        _fill(session)
        await scheduler.run_all()
        assert await gateway.fetch_draft(session.consultation_id) is not None

        session.update_section(FormSection.GOALS_OBJECTIVES, GOALS)
        assert session.autosave.pending is True
        await session.submit()

        assert await gateway.fetch_draft(session.consultation_id) is None
        await scheduler.run_all()
        assert gateway.count("save_draft") == 1

    async def test_waits_for_in_flight_autosave(self, scheduler):
        gateway = GatedGateway()
        session = _session(gateway, scheduler)
        await session.start()
        _fill(session)

        timer = asyncio.create_task(scheduler.advance(2.0))
        while not session.state.is_auto_saving:
            await asyncio.sleep(0)
        submit = asyncio.create_task(session.submit())
        for _ in range(5):
            await asyncio.sleep(0)
        assert "update" not in gateway.calls
        assert session.autosave.suspended is True

        gateway.gate.set()
        await timer
        completed = await submit

        assert gateway.calls[-4:] == ["save_draft:start", "save_draft", "update", "complete"]
        assert completed.status == ConsultationStatus.COMPLETED
        assert await gateway.fetch_draft(session.consultation_id) is None

    async def test_failed_submit_resumes_autosave(self, scheduler):
        gateway = FlakyGateway()
        session = _session(gateway, scheduler)
        await session.start()
        _fill(session)
        gateway.fail_update = 1

        with pytest.raises(TransientNetworkError):
            await session.submit()
        assert session.autosave.suspended is False
        assert session.autosave.pending is True
        await scheduler.run_all()
        assert gateway.count("save_draft") == 1

    async def test_incomplete_form_is_rejected(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        await session.start()
        session.update_section(FormSection.CONTACT_INFO, CONTACT)
        session.update_section(FormSection.PAIN_POINTS, PAIN_POINTS)

        with pytest.raises(IncompleteFormError) as exc_info:
            await session.submit()
        assert exc_info.value.sections == [
            FormSection.BUSINESS_CONTEXT,
            FormSection.GOALS_OBJECTIVES,
        ]
        assert "update" not in gateway.calls
        assert "complete" not in gateway.calls
        assert session.submit_phase == SubmitPhase.IDLE
        assert session.state.get_section_errors(FormSection.GOALS_OBJECTIVES)

    async def test_complete_failure_leaves_failed_phase(self, scheduler):
        gateway = FlakyGateway()
        session = _session(gateway, scheduler)
        await session.start()
        _fill(session)
        gateway.fail_complete = 1

        with pytest.raises(GatewayError):
            await session.submit()
        assert session.submit_phase == SubmitPhase.FAILED
        consultation = await gateway.fetch(session.consultation_id)
        assert consultation.status == ConsultationStatus.DRAFT

        completed = await session.submit()
        assert completed.status == ConsultationStatus.COMPLETED
        assert gateway.calls[-2:] == ["update", "complete"]

    async def test_update_failure_skips_nothing_on_retry(self, scheduler):
        gateway = FlakyGateway()
        session = _session(gateway, scheduler)
        await session.start()
        _fill(session)
        gateway.fail_update = 1

        with pytest.raises(TransientNetworkError):
            await session.submit()
        assert "complete" not in gateway.calls
        assert session.submit_phase == SubmitPhase.FAILED

        await session.submit()
        assert gateway.count("complete") == 1
        assert session.submit_phase == SubmitPhase.SUBMITTED

    async def test_submit_twice_completes_once(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        await session.start()
        _fill(session)
        await session.submit()
        await session.submit()
        assert gateway.count("complete") == 1

    async def test_submit_for_deleted_consultation(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        await session.start()
        _fill(session)
        await gateway.service.delete(gateway.user_id, session.consultation_id)

        with pytest.raises(NotFoundError):
            await session.submit()
        assert session.submit_phase == SubmitPhase.FAILED


class TestDraftRoundTrip:
    async def test_autosaved_draft_reloads_field_for_field(self, gateway, scheduler):
        first = _session(gateway, scheduler)
        await first.start()
        _fill(first)
        await scheduler.run_all()
        assert first.state.is_dirty is False
        await first.close()

        second = _session(gateway, scheduler)
        assert await second.start(first.consultation_id) is True
        assert second.state.data == FULL_FORM
        assert second.state.is_complete is True


class TestClose:
    async def test_close_disposes_state(self, gateway, scheduler):
        session = _session(gateway, scheduler)
        await session.start()
        session.update_section(FormSection.CONTACT_INFO, CONTACT)
        await session.close()

        assert session.state.disposed is True
        await scheduler.run_all()
        assert gateway.count("save_draft") == 0
