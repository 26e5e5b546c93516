"""Enrichment proposal repository."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import EnrichmentProposal

logger = logging.getLogger(__name__)


async def get(
    session: AsyncSession, tenant_id: str, proposal_id: str
) -> Optional[EnrichmentProposal]:
    result = await session.execute(
        select(EnrichmentProposal)
        .where(EnrichmentProposal.id == proposal_id)
        .where(EnrichmentProposal.organization_id == tenant_id)
    )
    return result.scalar_one_or_none()


async def list_by_contact(
    session: AsyncSession, tenant_id: str, contact_id: str
) -> list[EnrichmentProposal]:
    """Return every proposal for the contact, newest first."""
    result = await session.execute(
        select(EnrichmentProposal)
        .where(EnrichmentProposal.contact_id == contact_id)
        .where(EnrichmentProposal.organization_id == tenant_id)
        .order_by(EnrichmentProposal.created_at.desc(), EnrichmentProposal.id.desc())
    )
    return list(result.scalars().all())


async def latest_pending(
    session: AsyncSession, tenant_id: str, contact_id: str
) -> Optional[EnrichmentProposal]:
    result = await session.execute(
        select(EnrichmentProposal)
        .where(EnrichmentProposal.contact_id == contact_id)
        .where(EnrichmentProposal.organization_id == tenant_id)
        .where(EnrichmentProposal.review_status == "pending")
        .order_by(EnrichmentProposal.created_at.desc(), EnrichmentProposal.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create(
    session: AsyncSession,
    tenant_id: str,
    contact_id: str,
    source: str,
    proposed_changes: dict,
) -> EnrichmentProposal:
    proposal = EnrichmentProposal(
        organization_id=tenant_id,
        contact_id=contact_id,
        source=source,
        proposed_changes=proposed_changes,
        review_status="pending",
        accepted_fields=[],
    )
    session.add(proposal)
    await session.flush()
    return proposal


async def record_review(
    session: AsyncSession,
    tenant_id: str,
    proposal_id: str,
    status: str,
    accepted_fields: list[str],
    reviewed_by: str,
    reviewed_at: datetime,
) -> None:
    await session.execute(
        update(EnrichmentProposal)
        .where(EnrichmentProposal.id == proposal_id)
        .where(EnrichmentProposal.organization_id == tenant_id)
        .values(
            review_status=status,
            accepted_fields=accepted_fields,
            reviewed_by=reviewed_by,
            reviewed_at=reviewed_at,
            updated_at=func.now(),
        )
    )
    await session.flush()


async def count_pending(session: AsyncSession, tenant_id: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(EnrichmentProposal)
        .where(EnrichmentProposal.organization_id == tenant_id)
        .where(EnrichmentProposal.review_status == "pending")
    )
    return int(result.scalar_one())
