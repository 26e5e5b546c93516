"""Contact staleness repository — the derived review-queue table."""
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Contact, ContactStaleness

logger = logging.getLogger(__name__)


async def get_for_contact(
    session: AsyncSession, tenant_id: str, contact_id: str
) -> Optional[ContactStaleness]:
    result = await session.execute(
        select(ContactStaleness)
        .where(ContactStaleness.contact_id == contact_id)
        .where(ContactStaleness.organization_id == tenant_id)
    )
    return result.scalar_one_or_none()


async def get_for_contacts(
    session: AsyncSession, tenant_id: str, contact_ids: Iterable[str]
) -> list[ContactStaleness]:
    contact_ids = list(contact_ids)
    if not contact_ids:
        return []
    result = await session.execute(
        select(ContactStaleness)
        .where(ContactStaleness.contact_id.in_(contact_ids))
        .where(ContactStaleness.organization_id == tenant_id)
    )
    return list(result.scalars().all())


async def insert_many(session: AsyncSession, tenant_id: str, rows: list[dict]) -> None:
    """Insert fresh staleness rows in one batch.

    rows: dicts with keys id, contact_id, staleness_score, staleness_flags and
    optionally last_verified_at, last_verified_by
    """
    if not rows:
        return
    session.add_all([ContactStaleness(organization_id=tenant_id, **row) for row in rows])
    await session.flush()


async def update_score(
    session: AsyncSession,
    tenant_id: str,
    staleness_id: str,
    score: float,
    flags: list[str],
) -> None:
    await session.execute(
        update(ContactStaleness)
        .where(ContactStaleness.id == staleness_id)
        .where(ContactStaleness.organization_id == tenant_id)
        .values(staleness_score=score, staleness_flags=flags, updated_at=func.now())
    )
    await session.flush()


async def set_verified(
    session: AsyncSession,
    tenant_id: str,
    staleness_id: str,
    verified_at: datetime,
    verified_by: str,
) -> None:
    await session.execute(
        update(ContactStaleness)
        .where(ContactStaleness.id == staleness_id)
        .where(ContactStaleness.organization_id == tenant_id)
        .values(last_verified_at=verified_at, last_verified_by=verified_by, updated_at=func.now())
    )
    await session.flush()


async def get_queue(
    session: AsyncSession,
    tenant_id: str,
    min_score: float,
    search: Optional[str],
    offset: int,
    limit: int,
) -> tuple[list[dict], int]:
    """Return (page rows, total) of contacts with score >= min_score, highest first."""
    conditions = [
        ContactStaleness.organization_id == tenant_id,
        Contact.organization_id == tenant_id,
        ContactStaleness.staleness_score >= min_score,
    ]
    if search and search.strip():
        pattern = f"%{_escape_like(search.strip())}%"
        conditions.append(or_(
            Contact.first_name.ilike(pattern, escape="\\"),
            Contact.last_name.ilike(pattern, escape="\\"),
            Contact.title.ilike(pattern, escape="\\"),
        ))

    rows_result = await session.execute(
        select(
            ContactStaleness.id,
            ContactStaleness.contact_id,
            Contact.first_name,
            Contact.last_name,
            Contact.title,
            ContactStaleness.staleness_score.label("score"),
            ContactStaleness.staleness_flags.label("flags"),
            ContactStaleness.last_verified_at,
        )
        .join(Contact, ContactStaleness.contact_id == Contact.id)
        .where(*conditions)
        # id breaks score ties so repeated identical queries page identically
        .order_by(ContactStaleness.staleness_score.desc(), ContactStaleness.id)
        .offset(offset)
        .limit(limit)
    )
    count_result = await session.execute(
        select(func.count())
        .select_from(ContactStaleness)
        .join(Contact, ContactStaleness.contact_id == Contact.id)
        .where(*conditions)
    )
    return [dict(row._mapping) for row in rows_result.all()], int(count_result.scalar_one())


async def count_flagged(session: AsyncSession, tenant_id: str, threshold: float) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(ContactStaleness)
        .where(ContactStaleness.organization_id == tenant_id)
        .where(ContactStaleness.staleness_score >= threshold)
    )
    return int(result.scalar_one())


async def count_verified_since(session: AsyncSession, tenant_id: str, since: datetime) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(ContactStaleness)
        .where(ContactStaleness.organization_id == tenant_id)
        .where(ContactStaleness.last_verified_at >= since)
    )
    return int(result.scalar_one())


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
