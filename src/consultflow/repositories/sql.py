"""SQL consultation repository (PostgreSQL in production, SQLite in tests)."""

from __future__ import annotations

from sqlalchemy import delete, func, select

from consultflow.consultation.models import Consultation, ConsultationDraft
from consultflow.core.types import ConsultationStatus
from consultflow.db.engine import DatabaseManager
from consultflow.db.models import ConsultationDraftRow, ConsultationRow

_SECTION_COLUMNS = ("contact_info", "business_context", "pain_points", "goals_objectives")


class SqlConsultationRepository:
    """SQL-backed consultation and draft storage."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def save_consultation(self, consultation: Consultation) -> None:
        async with self._db.session() as db:
            existing = await db.get(ConsultationRow, consultation.id)
            if existing:
                for column in _SECTION_COLUMNS:
                    setattr(existing, column, getattr(consultation, column))
                existing.user_id = consultation.user_id
                existing.status = consultation.status.value
                existing.completion_percentage = consultation.completion_percentage
                existing.updated_at = consultation.updated_at
                existing.completed_at = consultation.completed_at
            else:
                db.add(
                    ConsultationRow(
                        id=consultation.id,
                        user_id=consultation.user_id,
                        contact_info=consultation.contact_info,
                        business_context=consultation.business_context,
                        pain_points=consultation.pain_points,
                        goals_objectives=consultation.goals_objectives,
                        status=consultation.status.value,
                        completion_percentage=consultation.completion_percentage,
                        created_at=consultation.created_at,
                        updated_at=consultation.updated_at,
                        completed_at=consultation.completed_at,
                    )
                )
            await db.commit()

    async def get_consultation(self, consultation_id: str) -> Consultation | None:
        async with self._db.session() as db:
            row = await db.get(ConsultationRow, consultation_id)
            if row is None:
                return None
            return self._row_to_consultation(row)

    async def list_consultations(self, user_id: str) -> list[Consultation]:
        async with self._db.session() as db:
            result = await db.execute(
                select(ConsultationRow)
                .where(ConsultationRow.user_id == user_id)
                .order_by(ConsultationRow.created_at.desc())
            )
            return [self._row_to_consultation(r) for r in result.scalars().all()]

    async def delete_consultation(self, consultation_id: str) -> bool:
        async with self._db.session() as db:
            await db.execute(
                delete(ConsultationDraftRow).where(
                    ConsultationDraftRow.consultation_id == consultation_id
                )
            )
            result = await db.execute(
                delete(ConsultationRow).where(ConsultationRow.id == consultation_id)
            )
            await db.commit()
            return result.rowcount > 0

    async def save_draft(self, draft: ConsultationDraft) -> None:
        async with self._db.session() as db:
            result = await db.execute(
                select(ConsultationDraftRow).where(
                    ConsultationDraftRow.consultation_id == draft.consultation_id
                )
            )
            existing = result.scalar_one_or_none()
            if existing:
                for column in _SECTION_COLUMNS:
                    setattr(existing, column, getattr(draft, column))
                existing.user_id = draft.user_id
                existing.auto_saved = draft.auto_saved
                existing.updated_at = draft.updated_at
            else:
                db.add(
                    ConsultationDraftRow(
                        id=draft.id,
                        consultation_id=draft.consultation_id,
                        user_id=draft.user_id,
                        contact_info=draft.contact_info,
                        business_context=draft.business_context,
                        pain_points=draft.pain_points,
                        goals_objectives=draft.goals_objectives,
                        auto_saved=draft.auto_saved,
                        created_at=draft.created_at,
                        updated_at=draft.updated_at,
                    )
                )
            await db.commit()

    async def get_draft(self, consultation_id: str) -> ConsultationDraft | None:
        async with self._db.session() as db:
            result = await db.execute(
                select(ConsultationDraftRow).where(
                    ConsultationDraftRow.consultation_id == consultation_id
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return self._row_to_draft(row)

    async def delete_draft(self, consultation_id: str) -> bool:
        async with self._db.session() as db:
            result = await db.execute(
                delete(ConsultationDraftRow).where(
                    ConsultationDraftRow.consultation_id == consultation_id
                )
            )
            await db.commit()
            return result.rowcount > 0

    async def async_consultation_count(self) -> int:
        async with self._db.session() as db:
            result = await db.execute(select(func.count()).select_from(ConsultationRow))
            return result.scalar_one()

    @staticmethod
    def _row_to_consultation(row: ConsultationRow) -> Consultation:
        return Consultation(
            id=row.id,
            user_id=row.user_id,
            contact_info=row.contact_info or {},
            business_context=row.business_context or {},
            pain_points=row.pain_points or {},
            goals_objectives=row.goals_objectives or {},
            status=ConsultationStatus(row.status),
            completion_percentage=row.completion_percentage,
            created_at=row.created_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
        )

    @staticmethod
    def _row_to_draft(row: ConsultationDraftRow) -> ConsultationDraft:
        return ConsultationDraft(
            id=row.id,
            consultation_id=row.consultation_id,
            user_id=row.user_id,
            contact_info=row.contact_info or {},
            business_context=row.business_context or {},
            pain_points=row.pain_points or {},
            goals_objectives=row.goals_objectives or {},
            auto_saved=row.auto_saved,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
