"""Bulk import of contacts with automatic company creation and role linking.

For each row, in input order:
  1. find or create the company named by company_name (case-insensitive)
  2. skip / overwrite / create the contact, deduplicating by email
  3. link contact and company with a role edge unless one already exists

A row that fails is reported in the result and rolled back to its savepoint;
the rest of the batch carries on. Staleness is recomputed for every touched
contact at the end.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.companies as companies_repo
import db.repositories.contacts as contacts_repo
import db.repositories.roles as roles_repo
from config import get_settings
from schemas.imports import (
    BulkLinkedImportInput,
    DuplicateStrategy,
    ImportRowError,
    LinkedImportResult,
    LinkedImportRow,
)
from services.classification import DEFAULT_COMPANY, classify_company, classify_contact
from services.errors import ConflictError
from services.staleness import recompute_many

logger = logging.getLogger(__name__)

# Names / emails per pre-fetch query.
BATCH_SIZE = 100

CANONICAL_ROLES = (
    "ceo", "cfo", "cto", "founder", "partner", "managing_director",
    "vice_president", "director", "analyst", "associate", "board_member",
    "advisor", "investor", "other",
)

_ROLE_ALIASES = {
    "ceo": "ceo",
    "chief executive": "ceo",
    "cfo": "cfo",
    "chief financial": "cfo",
    "cto": "cto",
    "chief technology": "cto",
    "founder": "founder",
    "co-founder": "founder",
    "partner": "partner",
    "managing director": "managing_director",
    "md": "managing_director",
    "vice president": "vice_president",
    "vp": "vice_president",
    "director": "director",
    "analyst": "analyst",
    "associate": "associate",
    "board member": "board_member",
    "board": "board_member",
    "advisor": "advisor",
    "adviser": "advisor",
    "investor": "investor",
}


def normalize_role(label: Optional[str]) -> str:
    """Map a free-text role label to a canonical role; unknown labels become 'other'."""
    if not label or not label.strip():
        return "other"
    return _ROLE_ALIASES.get(label.strip().lower(), "other")


@dataclass
class _RowOutcome:
    """What one row changed; folded into the result only if the row commits."""

    counter: Optional[str] = None
    contact_id: Optional[str] = None
    new_company: Optional[tuple[str, str]] = None
    new_email: Optional[tuple[str, str]] = None
    role_created: bool = False


def _raw_value(raw: Any, snake: str, camel: str) -> Optional[str]:
    if not isinstance(raw, dict):
        return None
    value = raw.get(snake, raw.get(camel))
    if isinstance(value, str) and value.strip():
        return value.strip().lower()
    return None


def _chunks(values: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


async def _prefetch_companies(
    session: AsyncSession, tenant_id: str, rows: list
) -> dict[str, str]:
    names = list(dict.fromkeys(
        name for name in (_raw_value(r, "company_name", "companyName") for r in rows) if name
    ))
    cache: dict[str, str] = {}
    for batch in _chunks(names, BATCH_SIZE):
        cache.update(await companies_repo.get_ids_by_names(session, tenant_id, batch))
    return cache


async def _prefetch_contacts(
    session: AsyncSession, tenant_id: str, rows: list
) -> dict[str, str]:
    emails = list(dict.fromkeys(
        email for email in (_raw_value(r, "email", "email") for r in rows) if email
    ))
    cache: dict[str, str] = {}
    for batch in _chunks(emails, BATCH_SIZE):
        cache.update(await contacts_repo.get_ids_by_emails(session, tenant_id, batch))
    return cache


def _contact_classification(row: LinkedImportRow, auto_classify: bool) -> tuple[Optional[str], Optional[str]]:
    if auto_classify and (not row.contact_type or row.contact_type == "person") and not row.contact_subtype:
        classification = classify_contact(row.title)
        return classification.contact_type, classification.contact_subtype
    return row.contact_type, row.contact_subtype


def _contact_values(row: LinkedImportRow, auto_classify: bool) -> dict:
    contact_type, contact_subtype = _contact_classification(row, auto_classify)
    values = {
        "first_name": row.first_name,
        "last_name": row.last_name,
        "email": row.email,
        "phone": row.phone,
        "title": row.title,
        "linkedin_url": row.linkedin_url,
        "source": row.source,
        "status": row.status,
    }
    if contact_type is not None:
        values["contact_type"] = contact_type
    if contact_subtype is not None:
        values["contact_subtype"] = contact_subtype
    return values


async def _link_role(
    session: AsyncSession,
    tenant_id: str,
    contact_id: str,
    company_id: str,
    role_label: Optional[str],
) -> bool:
    """Create the contact→company edge if missing. Returns True if one was created."""
    if await roles_repo.exists(session, tenant_id, contact_id, company_id):
        return False
    try:
        await roles_repo.insert(
            session, tenant_id, contact_id, company_id, normalize_role(role_label), is_primary=True
        )
    except ConflictError:
        logger.debug("Role link %s -> %s created concurrently, ignoring", contact_id, company_id)
        return False
    return True


async def _import_row(
    session: AsyncSession,
    tenant_id: str,
    raw: Any,
    data: BulkLinkedImportInput,
    company_cache: dict[str, str],
    email_cache: dict[str, str],
) -> _RowOutcome:
    outcome = _RowOutcome()
    row = LinkedImportRow.model_validate(raw)

    company_id: Optional[str] = None
    company_name = row.company_name.strip() if row.company_name else None
    if company_name:
        key = company_name.lower()
        company_id = company_cache.get(key)
        if company_id is None:
            classification = classify_company(company_name) if data.auto_classify else DEFAULT_COMPANY
            company = await companies_repo.insert(session, tenant_id, {
                "name": company_name,
                "entity_type": classification.entity_type,
                "entity_subtype": classification.entity_subtype,
                "listing_status": classification.listing_status,
            })
            company_id = company.id
            outcome.new_company = (key, company_id)

    existing_id: Optional[str] = None
    if data.duplicate_strategy is not DuplicateStrategy.CREATE_ANYWAY and row.email:
        existing_id = email_cache.get(row.email)

    if existing_id and data.duplicate_strategy is DuplicateStrategy.SKIP:
        outcome.counter = "skipped"
        outcome.contact_id = existing_id
    elif existing_id and data.duplicate_strategy is DuplicateStrategy.OVERWRITE:
        await contacts_repo.update_fields(
            session, tenant_id, existing_id, _contact_values(row, data.auto_classify)
        )
        outcome.counter = "updated"
        outcome.contact_id = existing_id
    else:
        values = _contact_values(row, data.auto_classify)
        values.setdefault("contact_type", "person")
        contact = await contacts_repo.insert(session, tenant_id, values)
        outcome.counter = "imported"
        outcome.contact_id = contact.id
        if row.email:
            outcome.new_email = (row.email, contact.id)

    if company_id:
        outcome.role_created = await _link_role(
            session, tenant_id, outcome.contact_id, company_id, row.company_role
        )
    return outcome


def _error_details(exc: Exception) -> tuple[Optional[str], str]:
    if isinstance(exc, PydanticValidationError):
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        return field, f"{field}: {first['msg']}" if field else first["msg"]
    return None, str(exc) or "Import failed"


async def bulk_linked_import(
    session: AsyncSession,
    tenant_id: str,
    data: BulkLinkedImportInput,
    now: Optional[datetime] = None,
) -> LinkedImportResult:
    """Import rows, creating/linking companies, and rescore every touched contact."""
    result = LinkedImportResult()
    company_cache = await _prefetch_companies(session, tenant_id, data.rows)
    email_cache: dict[str, str] = {}
    if data.duplicate_strategy is not DuplicateStrategy.CREATE_ANYWAY:
        email_cache = await _prefetch_contacts(session, tenant_id, data.rows)

    touched: dict[str, None] = {}
    for row_number, raw in enumerate(data.rows, start=1):
        try:
            async with session.begin_nested():
                outcome = await _import_row(session, tenant_id, raw, data, company_cache, email_cache)
        except Exception as exc:
            field, message = _error_details(exc)
            logger.warning("Import row %d failed: %s", row_number, message)
            result.errors.append(ImportRowError(row=row_number, field=field, message=message))
            continue

        if outcome.new_company:
            key, company_id = outcome.new_company
            company_cache[key] = company_id
            result.companies_created += 1
        if outcome.new_email:
            email, contact_id = outcome.new_email
            email_cache[email] = contact_id
        if outcome.role_created:
            result.roles_created += 1
        setattr(result, outcome.counter, getattr(result, outcome.counter) + 1)
        touched[outcome.contact_id] = None

    if touched:
        scores = await recompute_many(session, tenant_id, list(touched), now)
        threshold = get_settings().staleness_threshold
        result.flagged_for_review = sum(1 for s in scores.values() if s.score >= threshold)

    logger.info(
        "Linked import for tenant %s: %d imported, %d updated, %d skipped, "
        "%d companies, %d roles, %d errors, %d flagged",
        tenant_id, result.imported, result.updated, result.skipped,
        result.companies_created, result.roles_created, len(result.errors),
        result.flagged_for_review,
    )
    return result
