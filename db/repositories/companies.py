"""Company repository — case-insensitive name lookup and insert."""
import logging
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Company

logger = logging.getLogger(__name__)


async def get_ids_by_names(
    session: AsyncSession, tenant_id: str, names: Iterable[str]
) -> dict[str, str]:
    """Map lowercased company name -> id for the tenant's companies with those names."""
    names = list({n.strip().lower() for n in names if n and n.strip()})
    if not names:
        return {}
    result = await session.execute(
        select(Company.id, Company.name)
        .where(func.lower(Company.name).in_(names))
        .where(Company.organization_id == tenant_id)
        .order_by(Company.created_at)
    )
    found: dict[str, str] = {}
    for company_id, name in result.all():
        # Oldest company wins when a tenant already holds case-variant duplicates
        found.setdefault(name.lower(), company_id)
    return found


async def insert(session: AsyncSession, tenant_id: str, data: dict) -> Company:
    """Insert a company for the tenant.

    data dict keys: id (optional), name, entity_type, entity_subtype,
    listing_status, industry, website, ticker_symbol
    """
    company = Company(organization_id=tenant_id, **data)
    session.add(company)
    await session.flush()
    return company
