"""Initial schema: crm tenants, contacts, companies, roles, staleness, proposals.

Revision ID: 001
Revises:
Create Date: 2026-10-05

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS crm")

    op.create_table(
        "organizations",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("slug", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("slug", name="uq_organization_slug"),
        schema="crm",
    )

    op.create_table(
        "contacts",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("organization_id", sa.Text, nullable=False),
        sa.Column("first_name", sa.Text, nullable=False),
        sa.Column("last_name", sa.Text, nullable=False),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("linkedin_url", sa.Text, nullable=True),
        sa.Column("contact_type", sa.Text, nullable=True),
        sa.Column("contact_subtype", sa.Text, nullable=True),
        sa.Column("source", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["organization_id"], ["crm.organizations.id"], name="fk_contact_org", ondelete="CASCADE"
        ),
        schema="crm",
    )
    op.create_index("ix_contacts_org_email", "contacts", ["organization_id", "email"], schema="crm")

    op.create_table(
        "companies",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("organization_id", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("entity_type", sa.Text, nullable=False),
        sa.Column("entity_subtype", sa.Text, nullable=True),
        sa.Column("listing_status", sa.Text, nullable=False, server_default="unknown"),
        sa.Column("industry", sa.Text, nullable=True),
        sa.Column("website", sa.Text, nullable=True),
        sa.Column("ticker_symbol", sa.Text, nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["organization_id"], ["crm.organizations.id"], name="fk_company_org", ondelete="CASCADE"
        ),
        schema="crm",
    )
    # Case-insensitive name lookup used by the linked import
    op.create_index(
        "ix_companies_org_lower_name",
        "companies",
        ["organization_id", sa.text("lower(name)")],
        schema="crm",
    )

    op.create_table(
        "contact_company_roles",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("organization_id", sa.Text, nullable=False),
        sa.Column("contact_id", sa.Text, nullable=False),
        sa.Column("company_id", sa.Text, nullable=False),
        sa.Column("role", sa.Text, nullable=False),
        sa.Column("is_primary", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("contact_id", "company_id", name="uq_contact_company_role"),
        sa.ForeignKeyConstraint(
            ["organization_id"], ["crm.organizations.id"], name="fk_role_org", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["contact_id"], ["crm.contacts.id"], name="fk_role_contact", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["company_id"], ["crm.companies.id"], name="fk_role_company", ondelete="CASCADE"),
        schema="crm",
    )
    op.create_index(
        "ix_crm_contact_company_roles_contact_id", "contact_company_roles", ["contact_id"], schema="crm"
    )

    op.create_table(
        "contact_staleness",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("organization_id", sa.Text, nullable=False),
        sa.Column("contact_id", sa.Text, nullable=False),
        sa.Column("staleness_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("staleness_flags", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("last_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_verified_by", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("contact_id", name="uq_contact_staleness_contact"),
        sa.ForeignKeyConstraint(
            ["organization_id"], ["crm.organizations.id"], name="fk_staleness_org", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["contact_id"], ["crm.contacts.id"], name="fk_staleness_contact", ondelete="CASCADE"
        ),
        schema="crm",
        comment="derived: rebuildable from contacts + contact_company_roles",
    )
    op.create_index(
        "ix_contact_staleness_org_score",
        "contact_staleness",
        ["organization_id", "staleness_score"],
        schema="crm",
    )

    op.create_table(
        "enrichment_proposals",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("organization_id", sa.Text, nullable=False),
        sa.Column("contact_id", sa.Text, nullable=False),
        sa.Column("source", sa.Text, nullable=False),
        sa.Column("proposed_changes", postgresql.JSONB, nullable=False),
        sa.Column("review_status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.Text, nullable=True),
        sa.Column("accepted_fields", postgresql.JSONB, nullable=False, server_default="[]"),
        *_timestamps(),
        sa.CheckConstraint(
            "review_status IN ('pending', 'accepted', 'rejected', 'partially_accepted')",
            name="ck_enrichment_proposal_review_status",
        ),
        sa.ForeignKeyConstraint(
            ["organization_id"], ["crm.organizations.id"], name="fk_proposal_org", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["contact_id"], ["crm.contacts.id"], name="fk_proposal_contact", ondelete="CASCADE"
        ),
        schema="crm",
    )
    op.create_index("ix_enrichment_proposals_contact", "enrichment_proposals", ["contact_id"], schema="crm")
    op.create_index(
        "ix_enrichment_proposals_org_status",
        "enrichment_proposals",
        ["organization_id", "review_status"],
        schema="crm",
    )


def downgrade() -> None:
    op.drop_index("ix_enrichment_proposals_org_status", table_name="enrichment_proposals", schema="crm")
    op.drop_index("ix_enrichment_proposals_contact", table_name="enrichment_proposals", schema="crm")
    op.drop_index("ix_contact_staleness_org_score", table_name="contact_staleness", schema="crm")
    op.drop_index(
        "ix_crm_contact_company_roles_contact_id", table_name="contact_company_roles", schema="crm"
    )
    op.drop_index("ix_companies_org_lower_name", table_name="companies", schema="crm")
    op.drop_index("ix_contacts_org_email", table_name="contacts", schema="crm")
    # Drop in reverse dependency order
    op.drop_table("enrichment_proposals", schema="crm")
    op.drop_table("contact_staleness", schema="crm")
    op.drop_table("contact_company_roles", schema="crm")
    op.drop_table("companies", schema="crm")
    op.drop_table("contacts", schema="crm")
    op.drop_table("organizations", schema="crm")
