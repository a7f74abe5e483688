"""Client-side consultation form: state, validation, auto-save and sessions."""

from consultflow.form.autosave import AutoSaveController
from consultflow.form.scheduling import AsyncioScheduler, ManualScheduler, Scheduler
from consultflow.form.session import ConsultationSession, IncompleteFormError, SubmitPhase
from consultflow.form.state import FormState, SaveStatus

__all__ = [
    "AsyncioScheduler",
    "AutoSaveController",
    "ConsultationSession",
    "FormState",
    "IncompleteFormError",
    "ManualScheduler",
    "SaveStatus",
    "Scheduler",
    "SubmitPhase",
]
