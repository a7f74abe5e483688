#!/usr/bin/env python3
"""Seed demo consultations into a running consultflow API.

Usage:
    # Start the API first:
    uvicorn consultflow.web.app:create_app --factory --port 4001

    # Seed demo data:
    python3 scripts/seed_consultations.py --user demo-user

Every consultation is entered through a ConsultationSession, exactly as the
form would do it, so drafts, auto-save and completion all go through the
public API.

Data created:
    - 1 consultation with only contact details (draft)
    - 1 consultation half filled in (draft, auto-saved draft row)
    - 2 completed consultations
    - 1 archived consultation
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

# Ensure the project source is importable when running the script directly.
_project_root = Path(__file__).resolve().parent.parent
_src = _project_root / "src"
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from consultflow.core.config import GatewayConfig, Settings  # noqa: E402
from consultflow.core.logging import configure_logging  # noqa: E402
from consultflow.core.types import FormSection  # noqa: E402
from consultflow.form.session import ConsultationSession  # noqa: E402
from consultflow.gateway import GatewayError, HttpPersistenceGateway  # noqa: E402

logger = logging.getLogger("consultflow.scripts.seed")

DEFAULT_BASE_URL = "http://localhost:4001"


# ---------------------------------------------------------------------------
# Demo data
# ---------------------------------------------------------------------------

BUSINESSES: list[dict[FormSection, dict[str, Any]]] = [
    {
        FormSection.CONTACT_INFO: {
            "business_name": "Harbour Street Bakery",
            "contact_person": "Maya Lindqvist",
            "email": "maya@harbourbakery.example",
            "phone": "+1 555 0142",
        },
    },
    {
        FormSection.CONTACT_INFO: {
            "business_name": "Northline Physio",
            "contact_person": "Sam Okafor",
            "email": "sam@northlinephysio.example",
            "website": "https://northlinephysio.example",
        },
        FormSection.BUSINESS_CONTEXT: {
            "industry": "Healthcare",
            "business_type": "Clinic",
            "team_size": 12,
            "digital_presence": ["website", "google_business"],
        },
    },
    {
        FormSection.CONTACT_INFO: {
            "business_name": "Copperleaf Interiors",
            "contact_person": "Priya Raman",
            "email": "priya@copperleaf.example",
        },
        FormSection.BUSINESS_CONTEXT: {
            "industry": "Interior Design",
            "team_size": 4,
            "marketing_channels": ["instagram", "referrals"],
        },
        FormSection.PAIN_POINTS: {
            "primary_challenges": ["Portfolio is out of date", "No online booking"],
            "urgency_level": "high",
        },
        FormSection.GOALS_OBJECTIVES: {
            "primary_goals": ["Showcase recent projects", "Book consultations online"],
            "budget_range": "5k-10k",
            "timeline": {"desired_start": "next month"},
        },
    },
    {
        FormSection.CONTACT_INFO: {
            "business_name": "Tidewater Outfitters",
            "contact_person": "Jonah Reyes",
            "email": "jonah@tidewater.example",
        },
        FormSection.BUSINESS_CONTEXT: {
            "industry": "Retail",
            "current_platform": "WooCommerce",
        },
        FormSection.PAIN_POINTS: {
            "primary_challenges": ["Checkout abandonment"],
            "technical_issues": ["Slow product pages"],
        },
        FormSection.GOALS_OBJECTIVES: {
            "primary_goals": ["Migrate store", "Cut page load under 2s"],
            "success_metrics": ["conversion rate"],
        },
    },
]


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


async def enter(session: ConsultationSession, sections: dict[FormSection, dict[str, Any]]) -> None:
    """Fill sections step by step, the way a user walks the form."""
    for section, data in sections.items():
        session.state.go_to_step(session.state.steps.index(section))
        session.update_section(section, data)
        session.state.advance()
    if session.autosave is not None:
        await session.autosave.flush()


async def seed(gateway_config: GatewayConfig, settings: Settings) -> int:
    created = 0

    async def new_session() -> ConsultationSession:
        gateway = HttpPersistenceGateway(gateway_config)
        session = ConsultationSession(gateway, autosave_config=settings.autosave)
        if not await session.start():
            await gateway.close()
            raise SystemExit("Could not create a consultation; is the API running?")
        return session

    for index, sections in enumerate(BUSINESSES):
        session = await new_session()
        try:
            await enter(session, sections)
            name = sections[FormSection.CONTACT_INFO]["business_name"]
            if session.state.is_complete:
                completed = await session.submit()
                logger.info("Completed %s (%s)", name, completed.id)
            else:
                logger.info(
                    "Left %s as draft at %d%%", name, session.state.progress_percentage
                )
            created += 1
        except GatewayError as exc:
            logger.error("Seeding consultation %d failed: %s", index, exc)
        finally:
            await session.close()
            await session.gateway.close()

    gateway = HttpPersistenceGateway(gateway_config)
    session = ConsultationSession(gateway, autosave_config=settings.autosave)
    try:
        if await session.start():
            session.update_section(
                FormSection.CONTACT_INFO,
                {"business_name": "Old Mill Cafe (duplicate)", "email": "hello@oldmill.example"},
            )
            await session.save()
            archived = await gateway.archive(session.consultation_id)
            logger.info("Archived %s", archived.id)
            created += 1
    finally:
        await session.close()
        await gateway.close()

    return created


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed demo consultations.")
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"Consultation API base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--user",
        default="demo-user",
        help="Session cookie value identifying the user to seed for.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = Settings()
    configure_logging(settings)
    gateway_config = settings.gateway.model_copy(
        update={"base_url": args.base_url, "session_cookie": args.user}
    )
    created = asyncio.run(seed(gateway_config, settings))
    print(f"Seeded {created} consultations at {args.base_url}")


if __name__ == "__main__":
    main()
