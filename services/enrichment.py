"""Enrichment review: staleness queue, proposals, verification and stats."""
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from dateutil.relativedelta import relativedelta
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.contacts as contacts_repo
import db.repositories.proposals as proposals_repo
import db.repositories.roles as roles_repo
import db.repositories.staleness as staleness_repo
from config import get_settings
from db.models import EnrichmentProposal, new_id
from schemas.enrichment import (
    EnrichableField,
    EnrichmentStats,
    ProposedChange,
    ReviewAction,
    ReviewProposalInput,
    ReviewStatus,
    StalenessQueueFilter,
    StalenessQueueItem,
    StalenessQueuePage,
    StalenessResult,
)
from services.errors import NotFoundError, ProposalAlreadyReviewedError, ValidationError
from services.staleness import compute_staleness_score, flag_values, recompute_one

logger = logging.getLogger(__name__)

_ACTION_TO_STATUS = {
    ReviewAction.ACCEPT: ReviewStatus.ACCEPTED,
    ReviewAction.REJECT: ReviewStatus.REJECTED,
}


async def get_staleness_queue(
    session: AsyncSession, tenant_id: str, filters: StalenessQueueFilter
) -> StalenessQueuePage:
    """Contacts whose score is at least filters.min_score, highest score first."""
    min_score = filters.min_score
    if min_score is None:
        min_score = get_settings().staleness_threshold
    rows, total = await staleness_repo.get_queue(
        session,
        tenant_id,
        min_score=min_score,
        search=filters.search,
        offset=(filters.page - 1) * filters.limit,
        limit=filters.limit,
    )
    return StalenessQueuePage(
        items=[StalenessQueueItem(**row) for row in rows],
        total=total,
    )


async def get_proposals_by_contact(
    session: AsyncSession, tenant_id: str, contact_id: str
) -> list[EnrichmentProposal]:
    """All proposals for a contact, newest first."""
    return await proposals_repo.list_by_contact(session, tenant_id, contact_id)


async def get_pending_proposal(
    session: AsyncSession, tenant_id: str, contact_id: str
) -> Optional[EnrichmentProposal]:
    """The most recent pending proposal for a contact, the one reviewers see."""
    return await proposals_repo.latest_pending(session, tenant_id, contact_id)


def validate_proposed_changes(changes: Mapping[str, Any]) -> dict[str, dict]:
    """Check a producer's change map against the enrichable-field allow-list.

    Returns the map keyed by canonical snake_case field names.
    """
    if not changes:
        raise ValidationError("A proposal needs at least one proposed change", field="proposed_changes")
    validated: dict[str, dict] = {}
    for name, change in changes.items():
        field = EnrichableField.parse(name)
        if field is None:
            raise ValidationError(f"Field is not enrichable: {name}", field=name)
        try:
            validated[field.value] = ProposedChange.model_validate(change).model_dump()
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            raise ValidationError(f"{name}: {first['msg']}", field=name) from exc
    return validated


async def submit_proposal(
    session: AsyncSession,
    tenant_id: str,
    contact_id: str,
    changes: Mapping[str, Any],
    source: str = "manual",
) -> EnrichmentProposal:
    """Store a pending proposal from an upstream enrichment producer."""
    proposed_changes = validate_proposed_changes(changes)
    contact = await contacts_repo.get(session, tenant_id, contact_id)
    if contact is None:
        raise NotFoundError("contact", contact_id)
    proposal = await proposals_repo.create(
        session, tenant_id, contact_id, source, proposed_changes
    )
    logger.info(
        "Proposal %s submitted for contact %s (%d fields, source=%s)",
        proposal.id, contact_id, len(proposed_changes), source,
    )
    return proposal


async def review_proposal(
    session: AsyncSession,
    tenant_id: str,
    data: ReviewProposalInput,
    reviewer_id: str,
    now: Optional[datetime] = None,
) -> ReviewStatus:
    """Accept, reject or partially accept a pending proposal.

    The review fields are always written. For accept/partial, each accepted
    field that is enrichable and present in the proposal is copied onto the
    contact; any other name is skipped. A partial review with no accepted
    fields still ends as partially_accepted.
    """
    now = now or datetime.now(timezone.utc)
    proposal = await proposals_repo.get(session, tenant_id, data.proposal_id)
    if proposal is None:
        raise NotFoundError("enrichment_proposal", data.proposal_id)
    if proposal.review_status != ReviewStatus.PENDING.value:
        raise ProposalAlreadyReviewedError(proposal.id, proposal.review_status)

    status = _ACTION_TO_STATUS.get(data.action, ReviewStatus.PARTIALLY_ACCEPTED)
    accepted_fields = list(data.accepted_fields)

    await proposals_repo.record_review(
        session,
        tenant_id,
        proposal.id,
        status=status.value,
        accepted_fields=accepted_fields,
        reviewed_by=reviewer_id,
        reviewed_at=now,
    )

    if status is ReviewStatus.REJECTED or not accepted_fields:
        logger.info("Proposal %s reviewed as %s by %s", proposal.id, status.value, reviewer_id)
        return status

    proposed_changes = proposal.proposed_changes or {}
    changes: dict[str, Any] = {}
    for name in accepted_fields:
        field = EnrichableField.parse(name)
        if field is None:
            continue
        # Stored keys are snake_case, or camelCase when written by an external producer
        change = proposed_changes.get(field.value) or proposed_changes.get(to_camel(field.value))
        if not change or not isinstance(change.get("proposed"), str):
            continue
        changes[field.value] = change["proposed"]

    if changes:
        await contacts_repo.update_fields(session, tenant_id, proposal.contact_id, changes)
        await recompute_one(session, tenant_id, proposal.contact_id, now)

    logger.info(
        "Proposal %s reviewed as %s by %s (%d of %d accepted fields applied)",
        proposal.id, status.value, reviewer_id, len(changes), len(accepted_fields),
    )
    return status


async def mark_verified(
    session: AsyncSession,
    tenant_id: str,
    contact_id: str,
    verified_by: str = "manual",
    now: Optional[datetime] = None,
) -> Optional[StalenessResult]:
    """Record that a person verified the contact now, then rescore it.

    The only code path that advances last_verified_at. Returns the new score.
    """
    now = now or datetime.now(timezone.utc)
    existing = await staleness_repo.get_for_contact(session, tenant_id, contact_id)

    if existing is not None:
        await staleness_repo.set_verified(session, tenant_id, existing.id, now, verified_by)
    else:
        contact = await contacts_repo.get(session, tenant_id, contact_id)
        if contact is None:
            raise NotFoundError("contact", contact_id)
        roles = await roles_repo.get_for_contacts(session, tenant_id, [contact_id])
        result = compute_staleness_score(contact, roles, now, now)
        await staleness_repo.insert_many(session, tenant_id, [{
            "id": new_id(),
            "contact_id": contact_id,
            "staleness_score": result.score,
            "staleness_flags": flag_values(result),
            "last_verified_at": now,
            "last_verified_by": verified_by,
        }])

    result = await recompute_one(session, tenant_id, contact_id, now)
    logger.info("Contact %s marked verified by %s", contact_id, verified_by)
    return result


async def get_enrichment_stats(
    session: AsyncSession, tenant_id: str, now: Optional[datetime] = None
) -> EnrichmentStats:
    """Dashboard counters for the tenant."""
    now = now or datetime.now(timezone.utc)
    start_of_month = now + relativedelta(day=1, hour=0, minute=0, second=0, microsecond=0)
    threshold = get_settings().staleness_threshold
    return EnrichmentStats(
        total_contacts=await contacts_repo.count(session, tenant_id),
        flagged_contacts=await staleness_repo.count_flagged(session, tenant_id, threshold),
        pending_proposals=await proposals_repo.count_pending(session, tenant_id),
        verified_this_month=await staleness_repo.count_verified_since(
            session, tenant_id, start_of_month
        ),
    )
