"""Staleness scoring and maintenance of the contact_staleness cache.

compute_staleness_score() is pure. recompute_one() / recompute_many() bring
contact_staleness rows back in line with the current contact and role data;
every code path that changes a contact's email, phone, title, LinkedIn URL or
company roles must call one of them afterwards.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.contacts as contacts_repo
import db.repositories.roles as roles_repo
import db.repositories.staleness as staleness_repo
from db.models import new_id
from schemas.enrichment import STALENESS_WEIGHTS, StalenessFlag, StalenessResult

logger = logging.getLogger(__name__)

# Contacts per bulk fetch in recompute_many; bounds the IN (...) list size.
BATCH_SIZE = 100

_SECONDS_PER_DAY = 24 * 60 * 60


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_staleness_score(
    contact: Any,
    company_roles: Sequence[Any],
    last_verified_at: Optional[datetime],
    now: Optional[datetime] = None,
    weights: Mapping[StalenessFlag, float] = STALENESS_WEIGHTS,
) -> StalenessResult:
    """Score how incomplete / unverified a contact is.

    contact needs email, phone, title and linkedin_url attributes. Flags come
    out in evaluation order: the five completeness signals, then at most one
    recency flag. A contact that was never verified gets the 365-day flag.
    """
    now = _utc(now or datetime.now(timezone.utc))
    flags: list[StalenessFlag] = []

    if not getattr(contact, "email", None):
        flags.append(StalenessFlag.NO_EMAIL)
    if not getattr(contact, "phone", None):
        flags.append(StalenessFlag.NO_PHONE)
    title = getattr(contact, "title", None)
    if not title or not title.strip():
        flags.append(StalenessFlag.TITLE_EMPTY)
    if len(company_roles) == 0:
        flags.append(StalenessFlag.NO_COMPANY_ROLE)
    if not getattr(contact, "linkedin_url", None):
        flags.append(StalenessFlag.LINKEDIN_MISSING)

    if last_verified_at is None:
        flags.append(StalenessFlag.NOT_VERIFIED_365D)
    else:
        days_since_verified = (now - _utc(last_verified_at)).total_seconds() / _SECONDS_PER_DAY
        if days_since_verified >= 365:
            flags.append(StalenessFlag.NOT_VERIFIED_365D)
        elif days_since_verified >= 180:
            flags.append(StalenessFlag.NOT_VERIFIED_180D)
        elif days_since_verified >= 90:
            flags.append(StalenessFlag.NOT_VERIFIED_90D)

    score = 0.0
    for flag in flags:
        score += weights[flag]
    return StalenessResult(score=min(1.0, score), flags=flags)


def flag_values(result: StalenessResult) -> list[str]:
    """Flags as the plain strings persisted in staleness_flags."""
    return [flag.value for flag in result.flags]


async def recompute_one(
    session: AsyncSession,
    tenant_id: str,
    contact_id: str,
    now: Optional[datetime] = None,
) -> Optional[StalenessResult]:
    """Recompute and store the staleness row of one contact.

    Returns None (and writes nothing) when the contact does not exist for
    this tenant, e.g. because it was deleted concurrently.
    """
    contact = await contacts_repo.get(session, tenant_id, contact_id)
    if contact is None:
        logger.debug("Skipping staleness recompute for missing contact %s", contact_id)
        return None

    roles = await roles_repo.get_for_contacts(session, tenant_id, [contact_id])
    existing = await staleness_repo.get_for_contact(session, tenant_id, contact_id)
    result = compute_staleness_score(
        contact, roles, existing.last_verified_at if existing else None, now
    )

    if existing is not None:
        await staleness_repo.update_score(
            session, tenant_id, existing.id, result.score, flag_values(result)
        )
    else:
        await staleness_repo.insert_many(session, tenant_id, [{
            "id": new_id(),
            "contact_id": contact_id,
            "staleness_score": result.score,
            "staleness_flags": flag_values(result),
        }])
    return result


async def recompute_many(
    session: AsyncSession,
    tenant_id: str,
    contact_ids: Iterable[str],
    now: Optional[datetime] = None,
) -> dict[str, StalenessResult]:
    """Recompute staleness for many contacts in chunks of BATCH_SIZE.

    Each chunk costs three bulk reads and one batched insert; rows that
    already exist are updated one statement at a time.
    Returns contact id -> result for every contact found.
    """
    ids = list(dict.fromkeys(cid for cid in contact_ids if cid))
    results: dict[str, StalenessResult] = {}
    if not ids:
        return results

    for start in range(0, len(ids), BATCH_SIZE):
        batch_ids = ids[start:start + BATCH_SIZE]

        contacts = await contacts_repo.get_many(session, tenant_id, batch_ids)
        roles = await roles_repo.get_for_contacts(session, tenant_id, batch_ids)
        existing_rows = await staleness_repo.get_for_contacts(session, tenant_id, batch_ids)

        roles_by_contact: dict[str, list] = {}
        for role in roles:
            roles_by_contact.setdefault(role.contact_id, []).append(role)
        existing_by_contact = {row.contact_id: row for row in existing_rows}
        contacts_by_id = {contact.id: contact for contact in contacts}

        to_insert: list[dict] = []
        to_update: list[tuple[str, StalenessResult]] = []
        # Walk batch_ids rather than the fetch result to keep input order
        for contact_id in batch_ids:
            contact = contacts_by_id.get(contact_id)
            if contact is None:
                continue
            existing = existing_by_contact.get(contact_id)
            result = compute_staleness_score(
                contact,
                roles_by_contact.get(contact_id, []),
                existing.last_verified_at if existing else None,
                now,
            )
            results[contact_id] = result
            if existing is not None:
                to_update.append((existing.id, result))
            else:
                to_insert.append({
                    "id": new_id(),
                    "contact_id": contact_id,
                    "staleness_score": result.score,
                    "staleness_flags": flag_values(result),
                })

        await staleness_repo.insert_many(session, tenant_id, to_insert)
        # TODO: replace the per-row loop with one INSERT .. ON CONFLICT (contact_id) DO UPDATE per chunk
        for staleness_id, result in to_update:
            await staleness_repo.update_score(
                session, tenant_id, staleness_id, result.score, flag_values(result)
            )

    logger.info(
        "Recomputed staleness for %d of %d contacts (tenant %s)",
        len(results), len(ids), tenant_id,
    )
    return results
