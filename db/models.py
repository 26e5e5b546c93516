"""SQLAlchemy 2.0 ORM models for the CRM enrichment core.

All tables live in the `crm` schema:
  - organizations (the tenant; owned by the auth provider)
  - contacts, companies, contact_company_roles
  - contact_staleness (derived cache, rebuildable from the tables above)
  - enrichment_proposals

Every tenant-scoped table carries organization_id and is covered by a
row-level security policy (see migration 002).
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


def new_id() -> str:
    """Globally unique, unordered string id for new rows."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


_REVIEW_STATUS_CHECK = (
    "review_status IN ('pending', 'accepted', 'rejected', 'partially_accepted')"
)


# ===========================================================================
# Schema: crm
# ===========================================================================


class Organization(Base):
    """crm.organizations — the tenant, root of isolation."""

    __tablename__ = "organizations"
    __table_args__ = {"schema": "crm"}

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Contact(Base):
    """crm.contacts — individual people, one tenant each."""

    __tablename__ = "contacts"
    __table_args__ = (
        Index("ix_contacts_org_email", "organization_id", "email"),
        {"schema": "crm"},
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_subtype: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default="active")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    company_roles: Mapped[list["ContactCompanyRole"]] = relationship(
        "ContactCompanyRole", back_populates="contact", cascade="all, delete-orphan"
    )
    staleness: Mapped[Optional["ContactStaleness"]] = relationship(
        "ContactStaleness", back_populates="contact", cascade="all, delete-orphan", uselist=False
    )
    enrichment_proposals: Mapped[list["EnrichmentProposal"]] = relationship(
        "EnrichmentProposal", back_populates="contact", cascade="all, delete-orphan"
    )


class Company(Base):
    """crm.companies — organizations a tenant's contacts work at."""

    __tablename__ = "companies"
    # The (organization_id, lower(name)) lookup index is created in migration 001.
    __table_args__ = {"schema": "crm"}

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_subtype: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    listing_status: Mapped[str] = mapped_column(Text, nullable=False, server_default="unknown")
    industry: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ticker_symbol: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    contact_roles: Mapped[list["ContactCompanyRole"]] = relationship(
        "ContactCompanyRole", back_populates="company", cascade="all, delete-orphan"
    )


class ContactCompanyRole(Base):
    """crm.contact_company_roles — contact ↔ company edge with a role label."""

    __tablename__ = "contact_company_roles"
    __table_args__ = (
        UniqueConstraint("contact_id", "company_id", name="uq_contact_company_role"),
        {"schema": "crm"},
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    contact_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    company_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, server_default="false", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    contact: Mapped["Contact"] = relationship("Contact", back_populates="company_roles")
    company: Mapped["Company"] = relationship("Company", back_populates="contact_roles")


class ContactStaleness(Base):
    """crm.contact_staleness — derived, rebuildable data-quality cache.

    One row per contact. staleness_score and staleness_flags are always
    recomputable from the contact, its roles and last_verified_at; only
    last_verified_at / last_verified_by are original data.
    """

    __tablename__ = "contact_staleness"
    __table_args__ = (
        UniqueConstraint("contact_id", name="uq_contact_staleness_contact"),
        Index("ix_contact_staleness_org_score", "organization_id", "staleness_score"),
        {"schema": "crm", "comment": "derived: rebuildable from contacts + contact_company_roles"},
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    contact_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.contacts.id", ondelete="CASCADE"),
        nullable=False,
    )
    staleness_score: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    staleness_flags: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, server_default="[]"
    )
    last_verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # 'import' | 'manual' | user id
    last_verified_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    contact: Mapped["Contact"] = relationship("Contact", back_populates="staleness")


class EnrichmentProposal(Base):
    """crm.enrichment_proposals — suggested field changes awaiting review."""

    __tablename__ = "enrichment_proposals"
    __table_args__ = (
        CheckConstraint(_REVIEW_STATUS_CHECK, name="ck_enrichment_proposal_review_status"),
        Index("ix_enrichment_proposals_contact", "contact_id"),
        Index("ix_enrichment_proposals_org_status", "organization_id", "review_status"),
        {"schema": "crm"},
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    contact_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("crm.contacts.id", ondelete="CASCADE"),
        nullable=False,
    )
    # 'manual' | 'import_conflict' | other upstream producers
    source: Mapped[str] = mapped_column(Text, nullable=False)
    # field name -> {"current": ..., "proposed": ..., "confidence": ...}
    proposed_changes: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    review_status: Mapped[str] = mapped_column(Text, nullable=False, server_default="pending")
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reviewed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    accepted_fields: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, server_default="[]"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    contact: Mapped["Contact"] = relationship("Contact", back_populates="enrichment_proposals")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "Base",
    "new_id",
    "Organization",
    "Contact",
    "Company",
    "ContactCompanyRole",
    "ContactStaleness",
    "EnrichmentProposal",
]
