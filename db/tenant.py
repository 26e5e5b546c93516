"""Tenant context guard.

Every tenant-scoped unit of work runs inside tenant_session(). It binds the
tenant id to the open transaction with

    SELECT set_config('app.current_tenant', :tenant_id, true)

The third argument (is_local) makes the setting transaction-local: it is
cleared on COMMIT/ROLLBACK, so a pooled connection handed to the next request
never carries a previous tenant. The row-level security policies created in
migration 002 read the same setting and hide every row when it is unset or
empty.

Repositories still filter on organization_id explicitly; RLS is the second,
independent line of defense.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.connection import get_session_factory
from services.errors import TenantContextError

logger = logging.getLogger(__name__)

TENANT_SETTING = "app.current_tenant"


def require_tenant(tenant_id: Optional[str]) -> str:
    """Return the stripped tenant id, or raise TenantContextError if there is none."""
    if tenant_id is None or not str(tenant_id).strip():
        raise TenantContextError("No active organization for this request")
    return str(tenant_id).strip()


async def bind_tenant(session: AsyncSession, tenant_id: Optional[str]) -> str:
    """Bind tenant_id to the session's current transaction."""
    tenant_id = require_tenant(tenant_id)
    await session.execute(
        text("SELECT set_config(:setting, :tenant_id, true)"),
        {"setting": TENANT_SETTING, "tenant_id": tenant_id},
    )
    return tenant_id


async def current_tenant(session: AsyncSession) -> Optional[str]:
    """Return the tenant bound to the current transaction, or None."""
    result = await session.execute(
        text("SELECT current_setting(:setting, true)"),
        {"setting": TENANT_SETTING},
    )
    value = result.scalar_one_or_none()
    return value or None


@asynccontextmanager
async def tenant_session(
    tenant_id: Optional[str],
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncIterator[AsyncSession]:
    """Yield a session whose transaction is scoped to tenant_id.

    Commits when the block exits normally, rolls back on any exception.

    Usage:
        async with tenant_session(org_id) as session:
            await enrichment.mark_verified(session, org_id, contact_id, user_id)
    """
    tenant_id = require_tenant(tenant_id)
    factory = session_factory or get_session_factory()
    async with factory() as session:
        try:
            await bind_tenant(session, tenant_id)
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Tenant session for %s rolled back due to exception", tenant_id)
            raise
