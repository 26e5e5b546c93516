"""Row-level security on every tenant-scoped crm table.

Each table gets a tenant_isolation policy comparing organization_id with the
transaction-local app.current_tenant setting (bound by db.tenant). NULLIF turns
an unset or empty setting into NULL, so such sessions see no rows and cannot
write any. FORCE applies the policy to the table owner too.

Revision ID: 002
Revises: 001
Create Date: 2026-10-05
"""
from alembic import op

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

TENANT_SCOPED_TABLES = (
    "contacts",
    "companies",
    "contact_company_roles",
    "contact_staleness",
    "enrichment_proposals",
)

_TENANT_PREDICATE = "organization_id = NULLIF(current_setting('app.current_tenant', true), '')"


def upgrade() -> None:
    for table in TENANT_SCOPED_TABLES:
        op.execute(f"ALTER TABLE crm.{table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE crm.{table} FORCE ROW LEVEL SECURITY")
        op.execute(
            f"""
            CREATE POLICY tenant_isolation ON crm.{table}
                USING ({_TENANT_PREDICATE})
                WITH CHECK ({_TENANT_PREDICATE})
            """
        )


def downgrade() -> None:
    for table in reversed(TENANT_SCOPED_TABLES):
        op.execute(f"DROP POLICY IF EXISTS tenant_isolation ON crm.{table}")
        op.execute(f"ALTER TABLE crm.{table} NO FORCE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE crm.{table} DISABLE ROW LEVEL SECURITY")
