"""FastAPI application for the reference consultation service.

Implements the REST contract the consultation form talks to, backed by the
in-memory store or, when a database URL is configured, by SQL storage.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from consultflow import __version__
from consultflow.consultation.service import ConsultationService
from consultflow.consultation.store import ConsultationStore
from consultflow.core.config import Settings
from consultflow.core.logging import configure_logging
from consultflow.db.engine import DatabaseManager
from consultflow.form.definition import load_form_definition
from consultflow.repositories.sql import SqlConsultationRepository
from consultflow.web.consultation_router import router as consultation_router


def create_app(
    settings: Settings | None = None,
    store: Any | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances.

    Args:
        settings: Application settings. Defaults to Settings().
        store: Optional pre-built consultation store. When omitted, SQL
            storage is used if ``settings.database.url`` is set, otherwise
            an in-memory :class:`ConsultationStore`.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()
    configure_logging(settings)

    database: DatabaseManager | None = None
    if store is None:
        if settings.database.url:
            database = DatabaseManager.from_config(settings.database)
            store = SqlConsultationRepository(database)
        else:
            store = ConsultationStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if database is not None and database.is_sqlite:
            await database.create_all()
        yield
        if database is not None:
            await database.close()

    app = FastAPI(
        title="Consultflow",
        description="Consultation intake, drafts and completion tracking",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.server.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.database = database
    app.state.consultation_service = ConsultationService(store)
    app.state.form_definition = load_form_definition(settings.form.definition_path)

    app.include_router(consultation_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app
