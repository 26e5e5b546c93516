"""Shared fixtures: an in-memory stand-in for the repository layer.

FakeStore keeps rows as SimpleNamespace objects and replaces the functions of
db.repositories.* with tenant-filtering equivalents, so service code runs
unchanged without PostgreSQL. Every call is recorded in store.calls.
"""
import copy
import itertools
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

import db.repositories.companies as companies_repo
import db.repositories.contacts as contacts_repo
import db.repositories.proposals as proposals_repo
import db.repositories.roles as roles_repo
import db.repositories.staleness as staleness_repo
from config import get_settings
from services.errors import ConflictError

TENANT_A = "org_a"
TENANT_B = "org_b"
NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)

_TABLES = ("contacts", "companies", "roles", "staleness", "proposals")


class FakeSession:
    """Just enough of AsyncSession for the services: nested transactions."""

    def __init__(self, store: "FakeStore"):
        self.store = store
        self.savepoints = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def begin_nested(self):
        snapshot = self.store.snapshot()
        self.savepoints += 1
        try:
            yield self
        except Exception:
            self.store.restore(snapshot)
            self.rollbacks += 1
            raise


class FakeStore:
    def __init__(self):
        self.contacts: dict[str, SimpleNamespace] = {}
        self.companies: dict[str, SimpleNamespace] = {}
        self.roles: dict[str, SimpleNamespace] = {}
        self.staleness: dict[str, SimpleNamespace] = {}
        self.proposals: dict[str, SimpleNamespace] = {}
        self.calls: list[tuple[str, tuple]] = []
        # first_name values whose insert should blow up, e.g. a DB error
        self.fail_contact_inserts: set[str] = set()
        # (contact_id, company_id) pairs that "another writer" links first
        self.racing_roles: set[tuple[str, str]] = set()
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    # -- helpers ----------------------------------------------------------

    def next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def _tick(self) -> datetime:
        return datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=next(self._clock))

    def snapshot(self) -> dict:
        return {name: copy.deepcopy(getattr(self, name)) for name in _TABLES}

    def restore(self, snapshot: dict) -> None:
        for name, rows in snapshot.items():
            setattr(self, name, rows)

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))

    def call_count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def add_contact(self, tenant_id: str = TENANT_A, **fields) -> SimpleNamespace:
        contact = SimpleNamespace(
            id=fields.pop("id", None) or self.next_id("contact"),
            organization_id=tenant_id,
            first_name=fields.pop("first_name", "Ada"),
            last_name=fields.pop("last_name", "Lovelace"),
            email=None,
            phone=None,
            title=None,
            linkedin_url=None,
            contact_type=None,
            contact_subtype=None,
            source=None,
            status="active",
            created_at=self._tick(),
        )
        for key, value in fields.items():
            setattr(contact, key, value)
        self.contacts[contact.id] = contact
        return contact

    def add_company(self, tenant_id: str = TENANT_A, name: str = "Acme Ltd", **fields) -> SimpleNamespace:
        company = SimpleNamespace(
            id=fields.pop("id", None) or self.next_id("company"),
            organization_id=tenant_id,
            name=name,
            entity_type=fields.pop("entity_type", "private_company"),
            entity_subtype=fields.pop("entity_subtype", "sme"),
            listing_status=fields.pop("listing_status", "unknown"),
            created_at=self._tick(),
        )
        self.companies[company.id] = company
        return company

    def add_role(self, contact_id: str, company_id: str, tenant_id: str = TENANT_A, role: str = "other"):
        edge = SimpleNamespace(
            id=self.next_id("role"),
            organization_id=tenant_id,
            contact_id=contact_id,
            company_id=company_id,
            role=role,
            is_primary=True,
        )
        self.roles[edge.id] = edge
        return edge

    def add_staleness(self, contact_id: str, tenant_id: str = TENANT_A, **fields) -> SimpleNamespace:
        row = SimpleNamespace(
            id=self.next_id("staleness"),
            organization_id=tenant_id,
            contact_id=contact_id,
            staleness_score=fields.pop("staleness_score", 0.0),
            staleness_flags=fields.pop("staleness_flags", []),
            last_verified_at=fields.pop("last_verified_at", None),
            last_verified_by=fields.pop("last_verified_by", None),
        )
        self.staleness[row.id] = row
        return row

    def add_proposal(self, contact_id: str, proposed_changes: dict, tenant_id: str = TENANT_A, **fields):
        proposal = SimpleNamespace(
            id=fields.pop("id", None) or self.next_id("proposal"),
            organization_id=tenant_id,
            contact_id=contact_id,
            source=fields.pop("source", "manual"),
            proposed_changes=proposed_changes,
            review_status=fields.pop("review_status", "pending"),
            reviewed_at=None,
            reviewed_by=None,
            accepted_fields=[],
            created_at=self._tick(),
        )
        self.proposals[proposal.id] = proposal
        return proposal

    def staleness_for(self, contact_id: str):
        for row in self.staleness.values():
            if row.contact_id == contact_id:
                return row
        return None

    # -- contacts ---------------------------------------------------------

    async def contacts_get(self, session, tenant_id, contact_id):
        self._record("contacts.get", tenant_id, contact_id)
        contact = self.contacts.get(contact_id)
        return contact if contact and contact.organization_id == tenant_id else None

    async def contacts_get_many(self, session, tenant_id, contact_ids):
        contact_ids = list(contact_ids)
        self._record("contacts.get_many", tenant_id, contact_ids)
        return [
            c for c in self.contacts.values()
            if c.id in contact_ids and c.organization_id == tenant_id
        ]

    async def contacts_list_ids(self, session, tenant_id):
        return [c.id for c in self.contacts.values() if c.organization_id == tenant_id]

    async def contacts_get_ids_by_emails(self, session, tenant_id, emails):
        emails = [e.strip().lower() for e in emails if e]
        self._record("contacts.get_ids_by_emails", tenant_id, emails)
        found = {}
        for c in self.contacts.values():
            if c.organization_id == tenant_id and c.email and c.email.lower() in emails:
                found.setdefault(c.email.lower(), c.id)
        return found

    async def contacts_insert(self, session, tenant_id, data):
        self._record("contacts.insert", tenant_id, data)
        if data.get("first_name") in self.fail_contact_inserts:
            raise RuntimeError(f"insert failed for {data['first_name']}")
        data = dict(data)
        if data.get("email"):
            data["email"] = data["email"].strip().lower()
        return self.add_contact(tenant_id, **data)

    async def contacts_update_fields(self, session, tenant_id, contact_id, values):
        self._record("contacts.update_fields", tenant_id, contact_id, values)
        contact = self.contacts.get(contact_id)
        if contact is None or contact.organization_id != tenant_id or not values:
            return False
        for key, value in values.items():
            if key == "email" and value:
                value = value.strip().lower()
            setattr(contact, key, value)
        return True

    async def contacts_count(self, session, tenant_id):
        return sum(1 for c in self.contacts.values() if c.organization_id == tenant_id)

    # -- companies --------------------------------------------------------

    async def companies_get_ids_by_names(self, session, tenant_id, names):
        names = [n.strip().lower() for n in names if n and n.strip()]
        self._record("companies.get_ids_by_names", tenant_id, names)
        found = {}
        for company in sorted(self.companies.values(), key=lambda c: c.created_at):
            if company.organization_id == tenant_id and company.name.lower() in names:
                found.setdefault(company.name.lower(), company.id)
        return found

    async def companies_insert(self, session, tenant_id, data):
        self._record("companies.insert", tenant_id, data)
        return self.add_company(tenant_id, **data)

    # -- roles ------------------------------------------------------------

    async def roles_get_for_contacts(self, session, tenant_id, contact_ids):
        contact_ids = list(contact_ids)
        self._record("roles.get_for_contacts", tenant_id, contact_ids)
        return [
            r for r in self.roles.values()
            if r.contact_id in contact_ids and r.organization_id == tenant_id
        ]

    async def roles_exists(self, session, tenant_id, contact_id, company_id):
        return any(
            r.contact_id == contact_id and r.company_id == company_id and r.organization_id == tenant_id
            for r in self.roles.values()
        )

    async def roles_insert(self, session, tenant_id, contact_id, company_id, role, is_primary=True, role_id=None):
        self._record("roles.insert", tenant_id, contact_id, company_id, role)
        if (contact_id, company_id) in self.racing_roles:
            self.add_role(contact_id, company_id, tenant_id)
            raise ConflictError("role link already exists")
        if any(r.contact_id == contact_id and r.company_id == company_id for r in self.roles.values()):
            raise ConflictError("role link already exists")
        return self.add_role(contact_id, company_id, tenant_id, role=role).id

    # -- staleness --------------------------------------------------------

    async def staleness_get_for_contact(self, session, tenant_id, contact_id):
        row = self.staleness_for(contact_id)
        return row if row and row.organization_id == tenant_id else None

    async def staleness_get_for_contacts(self, session, tenant_id, contact_ids):
        contact_ids = list(contact_ids)
        self._record("staleness.get_for_contacts", tenant_id, contact_ids)
        return [
            r for r in self.staleness.values()
            if r.contact_id in contact_ids and r.organization_id == tenant_id
        ]

    async def staleness_insert_many(self, session, tenant_id, rows):
        self._record("staleness.insert_many", tenant_id, rows)
        for row in rows:
            if self.staleness_for(row["contact_id"]) is not None:
                raise ConflictError(f"staleness row exists for {row['contact_id']}")
            fields = {"last_verified_at": None, "last_verified_by": None, **row}
            self.staleness[row["id"]] = SimpleNamespace(organization_id=tenant_id, **fields)

    async def staleness_update_score(self, session, tenant_id, staleness_id, score, flags):
        self._record("staleness.update_score", tenant_id, staleness_id)
        row = self.staleness.get(staleness_id)
        if row is not None and row.organization_id == tenant_id:
            row.staleness_score = score
            row.staleness_flags = list(flags)

    async def staleness_set_verified(self, session, tenant_id, staleness_id, verified_at, verified_by):
        self._record("staleness.set_verified", tenant_id, staleness_id)
        row = self.staleness.get(staleness_id)
        if row is not None and row.organization_id == tenant_id:
            row.last_verified_at = verified_at
            row.last_verified_by = verified_by

    async def staleness_get_queue(self, session, tenant_id, min_score, search, offset, limit):
        self._record("staleness.get_queue", tenant_id, min_score, search, offset, limit)
        items = []
        for row in self.staleness.values():
            contact = self.contacts.get(row.contact_id)
            if row.organization_id != tenant_id or contact is None or contact.organization_id != tenant_id:
                continue
            if row.staleness_score < min_score:
                continue
            if search and search.strip():
                needle = search.strip().lower()
                columns = (contact.first_name, contact.last_name, contact.title)
                if not any(value and needle in value.lower() for value in columns):
                    continue
            items.append({
                "id": row.id,
                "contact_id": row.contact_id,
                "first_name": contact.first_name,
                "last_name": contact.last_name,
                "title": contact.title,
                "score": row.staleness_score,
                "flags": row.staleness_flags,
                "last_verified_at": row.last_verified_at,
            })
        items.sort(key=lambda item: (-item["score"], item["id"]))
        return items[offset:offset + limit], len(items)

    async def staleness_count_flagged(self, session, tenant_id, threshold):
        return sum(
            1 for r in self.staleness.values()
            if r.organization_id == tenant_id and r.staleness_score >= threshold
        )

    async def staleness_count_verified_since(self, session, tenant_id, since):
        return sum(
            1 for r in self.staleness.values()
            if r.organization_id == tenant_id and r.last_verified_at and r.last_verified_at >= since
        )

    # -- proposals --------------------------------------------------------

    async def proposals_get(self, session, tenant_id, proposal_id):
        proposal = self.proposals.get(proposal_id)
        return proposal if proposal and proposal.organization_id == tenant_id else None

    async def proposals_list_by_contact(self, session, tenant_id, contact_id):
        rows = [
            p for p in self.proposals.values()
            if p.contact_id == contact_id and p.organization_id == tenant_id
        ]
        return sorted(rows, key=lambda p: (p.created_at, p.id), reverse=True)

    async def proposals_latest_pending(self, session, tenant_id, contact_id):
        rows = await self.proposals_list_by_contact(session, tenant_id, contact_id)
        pending = [p for p in rows if p.review_status == "pending"]
        return pending[0] if pending else None

    async def proposals_create(self, session, tenant_id, contact_id, source, proposed_changes):
        return self.add_proposal(contact_id, proposed_changes, tenant_id, source=source)

    async def proposals_record_review(
        self, session, tenant_id, proposal_id, status, accepted_fields, reviewed_by, reviewed_at
    ):
        self._record("proposals.record_review", tenant_id, proposal_id, status)
        proposal = self.proposals.get(proposal_id)
        if proposal is not None and proposal.organization_id == tenant_id:
            proposal.review_status = status
            proposal.accepted_fields = list(accepted_fields)
            proposal.reviewed_by = reviewed_by
            proposal.reviewed_at = reviewed_at

    async def proposals_count_pending(self, session, tenant_id):
        return sum(
            1 for p in self.proposals.values()
            if p.organization_id == tenant_id and p.review_status == "pending"
        )


_PATCHES = {
    contacts_repo: ("get", "get_many", "list_ids", "get_ids_by_emails", "insert", "update_fields", "count"),
    companies_repo: ("get_ids_by_names", "insert"),
    roles_repo: ("get_for_contacts", "exists", "insert"),
    staleness_repo: (
        "get_for_contact", "get_for_contacts", "insert_many", "update_score",
        "set_verified", "get_queue", "count_flagged", "count_verified_since",
    ),
    proposals_repo: ("get", "list_by_contact", "latest_pending", "create", "record_review", "count_pending"),
}


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Run every test with default settings, whatever the local environment says."""
    monkeypatch.delenv("CRM_STALENESS_THRESHOLD", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store(monkeypatch) -> FakeStore:
    fake = FakeStore()
    for module, names in _PATCHES.items():
        prefix = module.__name__.rsplit(".", 1)[-1]
        for name in names:
            monkeypatch.setattr(module, name, getattr(fake, f"{prefix}_{name}"))
    return fake


@pytest.fixture
def session(store) -> FakeSession:
    return FakeSession(store)
