"""Database package for the CRM enrichment core."""
from db.connection import dispose_engine, get_db, get_engine, get_session_factory
from db.tenant import bind_tenant, current_tenant, tenant_session

__all__ = [
    "get_engine",
    "get_session_factory",
    "get_db",
    "dispose_engine",
    "tenant_session",
    "bind_tenant",
    "current_tenant",
]
