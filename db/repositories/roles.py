"""Contact ↔ company role repository."""
import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ContactCompanyRole, new_id
from services.errors import ConflictError

logger = logging.getLogger(__name__)


async def get_for_contacts(
    session: AsyncSession, tenant_id: str, contact_ids: Iterable[str]
) -> list[ContactCompanyRole]:
    """Return every role edge of the given contacts."""
    contact_ids = list(contact_ids)
    if not contact_ids:
        return []
    result = await session.execute(
        select(ContactCompanyRole)
        .where(ContactCompanyRole.contact_id.in_(contact_ids))
        .where(ContactCompanyRole.organization_id == tenant_id)
    )
    return list(result.scalars().all())


async def exists(
    session: AsyncSession, tenant_id: str, contact_id: str, company_id: str
) -> bool:
    result = await session.execute(
        select(ContactCompanyRole.id)
        .where(ContactCompanyRole.contact_id == contact_id)
        .where(ContactCompanyRole.company_id == company_id)
        .where(ContactCompanyRole.organization_id == tenant_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def insert(
    session: AsyncSession,
    tenant_id: str,
    contact_id: str,
    company_id: str,
    role: str,
    is_primary: bool = True,
    role_id: Optional[str] = None,
) -> str:
    """Insert a role edge and return its id.

    Raises ConflictError when the (contact_id, company_id) pair already has one.
    """
    stmt = (
        pg_insert(ContactCompanyRole)
        .values(
            id=role_id or new_id(),
            organization_id=tenant_id,
            contact_id=contact_id,
            company_id=company_id,
            role=role,
            is_primary=is_primary,
        )
        .on_conflict_do_nothing(constraint="uq_contact_company_role")
        .returning(ContactCompanyRole.id)
    )
    result = await session.execute(stmt)
    await session.flush()
    inserted_id = result.scalar_one_or_none()
    if inserted_id is None:
        raise ConflictError(f"Role link already exists for contact {contact_id} / company {company_id}")
    return inserted_id
