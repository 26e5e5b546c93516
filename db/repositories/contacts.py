"""Contact repository — tenant-filtered lookups, inserts and field updates."""
import logging
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Contact

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


async def get(session: AsyncSession, tenant_id: str, contact_id: str) -> Optional[Contact]:
    """Return the tenant's Contact with this id, or None."""
    result = await session.execute(
        select(Contact)
        .where(Contact.id == contact_id)
        .where(Contact.organization_id == tenant_id)
    )
    return result.scalar_one_or_none()


async def get_many(
    session: AsyncSession, tenant_id: str, contact_ids: Iterable[str]
) -> list[Contact]:
    """Return the tenant's contacts among contact_ids (unknown ids are dropped)."""
    contact_ids = list(contact_ids)
    if not contact_ids:
        return []
    result = await session.execute(
        select(Contact)
        .where(Contact.id.in_(contact_ids))
        .where(Contact.organization_id == tenant_id)
    )
    return list(result.scalars().all())


async def list_ids(session: AsyncSession, tenant_id: str) -> list[str]:
    """Return every contact id of the tenant, oldest first."""
    result = await session.execute(
        select(Contact.id)
        .where(Contact.organization_id == tenant_id)
        .order_by(Contact.created_at, Contact.id)
    )
    return [row[0] for row in result.all()]


async def get_ids_by_emails(
    session: AsyncSession, tenant_id: str, emails: Iterable[str]
) -> dict[str, str]:
    """Map lowercased email -> contact id for the tenant's contacts with those emails."""
    emails = [e for e in (normalize_email(e) for e in emails) if e]
    if not emails:
        return {}
    result = await session.execute(
        select(Contact.id, Contact.email)
        .where(func.lower(Contact.email).in_(emails))
        .where(Contact.organization_id == tenant_id)
    )
    found: dict[str, str] = {}
    for contact_id, email in result.all():
        if email:
            found.setdefault(email.lower(), contact_id)
    return found


async def insert(session: AsyncSession, tenant_id: str, data: dict) -> Contact:
    """Insert a contact for the tenant.

    data dict keys: id (optional), first_name, last_name, email, phone, title,
    linkedin_url, contact_type, contact_subtype, source, status
    """
    data = {**data, "email": normalize_email(data.get("email"))}
    contact = Contact(organization_id=tenant_id, **data)
    session.add(contact)
    await session.flush()
    return contact


async def update_fields(
    session: AsyncSession, tenant_id: str, contact_id: str, values: dict
) -> bool:
    """Overwrite the given columns of one contact. Returns False if no row matched."""
    if not values:
        return False
    if "email" in values:
        values = {**values, "email": normalize_email(values["email"])}
    result = await session.execute(
        update(Contact)
        .where(Contact.id == contact_id)
        .where(Contact.organization_id == tenant_id)
        .values(**values, updated_at=func.now())
        .returning(Contact.id)
    )
    await session.flush()
    return result.scalar_one_or_none() is not None


async def count(session: AsyncSession, tenant_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(Contact).where(Contact.organization_id == tenant_id)
    )
    return int(result.scalar_one())
