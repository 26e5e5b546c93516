"""CRM enrichment core command line.

Every command runs in one tenant-scoped transaction and prints JSON to stdout.

Usage:
  # Import contacts (JSON array of row objects) and link them to companies
  python cli.py import --tenant org_123 --file contacts.json --duplicate-strategy overwrite

  # Rescore some contacts, or every contact of the tenant
  python cli.py recompute --tenant org_123 --contact-id c1 --contact-id c2
  python cli.py recompute --tenant org_123 --all

  # Review queue and dashboard counters
  python cli.py queue --tenant org_123 --min-score 0.5 --search smith
  python cli.py stats --tenant org_123

  # Verification and proposals
  python cli.py verify --tenant org_123 --contact-id c1 --by user_42
  python cli.py propose --tenant org_123 --contact-id c1 \
      --changes '{"title": {"current": null, "proposed": "CFO", "confidence": "high"}}'
  python cli.py proposals --tenant org_123 --contact-id c1 --pending
  python cli.py review --tenant org_123 --proposal-id p1 --action partial \
      --field title --field phone --reviewer user_42
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

import db.repositories.contacts as contacts_repo
from db.connection import dispose_engine
from db.models import EnrichmentProposal
from db.tenant import tenant_session
from logging_config import configure_logging
from schemas.enrichment import ReviewAction, ReviewProposalInput, StalenessQueueFilter
from schemas.imports import BulkLinkedImportInput, DuplicateStrategy
from services import enrichment, linked_import, staleness
from services.errors import CrmError

logger = logging.getLogger(__name__)


def _proposal_dict(proposal: EnrichmentProposal) -> dict:
    return {
        "id": proposal.id,
        "contact_id": proposal.contact_id,
        "source": proposal.source,
        "proposed_changes": proposal.proposed_changes,
        "review_status": proposal.review_status,
        "accepted_fields": proposal.accepted_fields,
        "reviewed_by": proposal.reviewed_by,
        "reviewed_at": proposal.reviewed_at.isoformat() if proposal.reviewed_at else None,
        "created_at": proposal.created_at.isoformat() if proposal.created_at else None,
    }


async def run_import(tenant_id: str, path: Path, strategy: str, auto_classify: bool) -> dict:
    rows = json.loads(path.read_text())
    data = BulkLinkedImportInput(
        rows=rows,
        duplicate_strategy=DuplicateStrategy(strategy),
        auto_classify=auto_classify,
    )
    async with tenant_session(tenant_id) as session:
        result = await linked_import.bulk_linked_import(session, tenant_id, data)
    return result.model_dump(mode="json")


async def run_recompute(tenant_id: str, contact_ids: list[str], all_contacts: bool) -> dict:
    async with tenant_session(tenant_id) as session:
        if all_contacts:
            contact_ids = await contacts_repo.list_ids(session, tenant_id)
        results = await staleness.recompute_many(session, tenant_id, contact_ids)
    return {
        contact_id: result.model_dump(mode="json")
        for contact_id, result in results.items()
    }


async def run_queue(
    tenant_id: str, min_score: Optional[float], search: Optional[str], page: int, limit: int
) -> dict:
    filters = StalenessQueueFilter(min_score=min_score, search=search, page=page, limit=limit)
    async with tenant_session(tenant_id) as session:
        queue = await enrichment.get_staleness_queue(session, tenant_id, filters)
    return queue.model_dump(mode="json")


async def run_verify(tenant_id: str, contact_id: str, verified_by: str) -> dict:
    async with tenant_session(tenant_id) as session:
        result = await enrichment.mark_verified(session, tenant_id, contact_id, verified_by)
    return {"contact_id": contact_id, "staleness": result.model_dump(mode="json") if result else None}


async def run_propose(tenant_id: str, contact_id: str, changes: dict, source: str) -> dict:
    async with tenant_session(tenant_id) as session:
        proposal = await enrichment.submit_proposal(session, tenant_id, contact_id, changes, source)
        return _proposal_dict(proposal)


async def run_proposals(tenant_id: str, contact_id: str, pending_only: bool) -> Any:
    async with tenant_session(tenant_id) as session:
        if pending_only:
            proposal = await enrichment.get_pending_proposal(session, tenant_id, contact_id)
            return _proposal_dict(proposal) if proposal else None
        proposals = await enrichment.get_proposals_by_contact(session, tenant_id, contact_id)
        return [_proposal_dict(p) for p in proposals]


async def run_review(
    tenant_id: str, proposal_id: str, action: str, fields: list[str], reviewer_id: str
) -> dict:
    data = ReviewProposalInput(
        proposal_id=proposal_id,
        action=ReviewAction(action),
        accepted_fields=fields,
    )
    async with tenant_session(tenant_id) as session:
        status = await enrichment.review_proposal(session, tenant_id, data, reviewer_id)
    return {"proposal_id": proposal_id, "review_status": status.value}


async def run_stats(tenant_id: str) -> dict:
    async with tenant_session(tenant_id) as session:
        stats = await enrichment.get_enrichment_stats(session, tenant_id)
    return stats.model_dump(mode="json")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CRM contact staleness and enrichment")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    sub = parser.add_subparsers(dest="command")

    def command(name: str, help_text: str) -> argparse.ArgumentParser:
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--tenant", required=True, help="Organization id to act for")
        return cmd

    imp = command("import", "Bulk import contacts with company linking")
    imp.add_argument("--file", required=True, type=Path, help="JSON array of row objects")
    imp.add_argument(
        "--duplicate-strategy",
        choices=[s.value for s in DuplicateStrategy],
        default=DuplicateStrategy.SKIP.value,
    )
    imp.add_argument("--auto-classify", action="store_true", default=False)

    recompute = command("recompute", "Recompute staleness scores")
    recompute.add_argument("--contact-id", action="append", default=[], dest="contact_ids")
    recompute.add_argument("--all", action="store_true", default=False, dest="all_contacts")

    queue = command("queue", "Show the staleness review queue")
    queue.add_argument("--min-score", type=float, default=None)
    queue.add_argument("--search", default=None)
    queue.add_argument("--page", type=int, default=1)
    queue.add_argument("--limit", type=int, default=25)

    verify = command("verify", "Mark a contact as verified now")
    verify.add_argument("--contact-id", required=True)
    verify.add_argument("--by", default="manual", dest="verified_by")

    propose = command("propose", "Submit an enrichment proposal for a contact")
    propose.add_argument("--contact-id", required=True)
    propose.add_argument("--changes", required=True, help="JSON object: field -> change")
    propose.add_argument("--source", default="manual")

    proposals = command("proposals", "List enrichment proposals of a contact")
    proposals.add_argument("--contact-id", required=True)
    proposals.add_argument("--pending", action="store_true", default=False)

    review = command("review", "Review an enrichment proposal")
    review.add_argument("--proposal-id", required=True)
    review.add_argument("--action", required=True, choices=[a.value for a in ReviewAction])
    review.add_argument("--field", action="append", default=[], dest="fields")
    review.add_argument("--reviewer", required=True)

    command("stats", "Show enrichment dashboard counters")

    return parser


async def _dispatch(args: argparse.Namespace) -> Any:
    try:
        if args.command == "import":
            return await run_import(args.tenant, args.file, args.duplicate_strategy, args.auto_classify)
        if args.command == "recompute":
            return await run_recompute(args.tenant, args.contact_ids, args.all_contacts)
        if args.command == "queue":
            return await run_queue(args.tenant, args.min_score, args.search, args.page, args.limit)
        if args.command == "verify":
            return await run_verify(args.tenant, args.contact_id, args.verified_by)
        if args.command == "propose":
            return await run_propose(args.tenant, args.contact_id, json.loads(args.changes), args.source)
        if args.command == "proposals":
            return await run_proposals(args.tenant, args.contact_id, args.pending)
        if args.command == "review":
            return await run_review(args.tenant, args.proposal_id, args.action, args.fields, args.reviewer)
        if args.command == "stats":
            return await run_stats(args.tenant)
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await dispose_engine()


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    configure_logging(args.log_level)
    try:
        output = asyncio.run(_dispatch(args))
    except CrmError as e:
        logger.error("%s failed: %s", args.command, e)
        print(json.dumps({"error": type(e).__name__, "message": str(e)}), file=sys.stderr)
        return 2
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{field}: {first['msg']}" if field else first["msg"]
        logger.error("%s failed: %s", args.command, message)
        print(json.dumps({"error": "ValidationError", "message": message}), file=sys.stderr)
        return 2
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
