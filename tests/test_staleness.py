"""Tests for staleness scoring and the recompute service."""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from schemas.enrichment import STALENESS_WEIGHTS, StalenessFlag
from services.staleness import (
    BATCH_SIZE,
    compute_staleness_score,
    flag_values,
    recompute_many,
    recompute_one,
)
from tests.conftest import NOW, TENANT_A, TENANT_B


def _contact(**fields):
    base = {"email": None, "phone": None, "title": None, "linkedin_url": None}
    base.update(fields)
    return SimpleNamespace(**base)


def _complete_contact():
    return _contact(
        email="ada@example.com",
        phone="+44 20 7946 0000",
        title="CFO",
        linkedin_url="https://linkedin.com/in/ada",
    )


ROLE = SimpleNamespace(contact_id="c1", company_id="co1", role="cfo")


# ---------------------------------------------------------------------------
# compute_staleness_score
# ---------------------------------------------------------------------------


class TestComputeStalenessScore:
    def test_empty_contact_gets_six_flags_in_order(self):
        result = compute_staleness_score(_contact(), [], None, NOW)

        assert result.flags == [
            StalenessFlag.NO_EMAIL,
            StalenessFlag.NO_PHONE,
            StalenessFlag.TITLE_EMPTY,
            StalenessFlag.NO_COMPANY_ROLE,
            StalenessFlag.LINKEDIN_MISSING,
            StalenessFlag.NOT_VERIFIED_365D,
        ]
        assert result.score == pytest.approx(1.0)

    def test_complete_recently_verified_contact_scores_zero(self):
        result = compute_staleness_score(_complete_contact(), [ROLE], NOW - timedelta(days=10), NOW)

        assert result.flags == []
        assert result.score == 0.0

    @pytest.mark.parametrize(
        "days, expected_flag, expected_score",
        [
            (89, None, 0.0),
            (90, StalenessFlag.NOT_VERIFIED_90D, 0.10),
            (179, StalenessFlag.NOT_VERIFIED_90D, 0.10),
            (180, StalenessFlag.NOT_VERIFIED_180D, 0.20),
            (364, StalenessFlag.NOT_VERIFIED_180D, 0.20),
            (365, StalenessFlag.NOT_VERIFIED_365D, 0.35),
            (1000, StalenessFlag.NOT_VERIFIED_365D, 0.35),
        ],
    )
    def test_recency_buckets(self, days, expected_flag, expected_score):
        result = compute_staleness_score(_complete_contact(), [ROLE], NOW - timedelta(days=days), NOW)

        assert result.flags == ([expected_flag] if expected_flag else [])
        assert result.score == pytest.approx(expected_score)

    def test_never_verified_counts_as_older_than_a_year(self):
        result = compute_staleness_score(_complete_contact(), [ROLE], None, NOW)

        assert result.flags == [StalenessFlag.NOT_VERIFIED_365D]

    def test_whitespace_title_is_empty(self):
        contact = _complete_contact()
        contact.title = "   "

        result = compute_staleness_score(contact, [ROLE], NOW, NOW)

        assert result.flags == [StalenessFlag.TITLE_EMPTY]
        assert result.score == pytest.approx(0.15)

    def test_missing_company_role(self):
        result = compute_staleness_score(_complete_contact(), [], NOW, NOW)

        assert result.flags == [StalenessFlag.NO_COMPANY_ROLE]
        assert result.score == pytest.approx(0.20)

    def test_threshold_example(self):
        """Missing email and title, verified 100 days ago: above the 0.4 threshold."""
        contact = _complete_contact()
        contact.email = None
        contact.title = ""

        result = compute_staleness_score(contact, [ROLE], NOW - timedelta(days=100), NOW)

        assert flag_values(result) == ["no_email", "title_empty", "not_verified_90d"]
        assert result.score == pytest.approx(0.40)

    def test_naive_datetimes_are_utc(self):
        naive_now = datetime(2026, 6, 15, 12, 0)
        verified = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc) - timedelta(days=91)

        result = compute_staleness_score(_complete_contact(), [ROLE], verified, naive_now)

        assert result.flags == [StalenessFlag.NOT_VERIFIED_90D]

    def test_score_is_clamped_to_one(self):
        heavy = {flag: 0.5 for flag in STALENESS_WEIGHTS}

        result = compute_staleness_score(_contact(), [], None, NOW, weights=heavy)

        assert result.score == 1.0

    def test_deterministic(self):
        verified = NOW - timedelta(days=200)
        first = compute_staleness_score(_contact(email="a@b.co"), [], verified, NOW)
        second = compute_staleness_score(_contact(email="a@b.co"), [], verified, NOW)

        assert first == second

    def test_weights_sum_to_one_for_worst_case(self):
        worst = [
            StalenessFlag.NO_EMAIL,
            StalenessFlag.NO_PHONE,
            StalenessFlag.TITLE_EMPTY,
            StalenessFlag.NO_COMPANY_ROLE,
            StalenessFlag.LINKEDIN_MISSING,
            StalenessFlag.NOT_VERIFIED_365D,
        ]
        assert sum(STALENESS_WEIGHTS[f] for f in worst) == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# recompute_one
# ---------------------------------------------------------------------------


class TestRecomputeOne:
    @pytest.mark.asyncio
    async def test_missing_contact_is_a_noop(self, store, session):
        result = await recompute_one(session, TENANT_A, "nope", NOW)

        assert result is None
        assert store.staleness == {}

    @pytest.mark.asyncio
    async def test_inserts_row_when_absent(self, store, session):
        contact = store.add_contact(email="ada@example.com")

        result = await recompute_one(session, TENANT_A, contact.id, NOW)

        row = store.staleness_for(contact.id)
        assert row is not None
        assert row.organization_id == TENANT_A
        assert row.staleness_score == pytest.approx(result.score)
        assert row.staleness_flags == flag_values(result)
        assert "no_email" not in row.staleness_flags

    @pytest.mark.asyncio
    async def test_update_keeps_last_verified_at(self, store, session):
        contact = store.add_contact(email="ada@example.com", phone="1", title="CFO", linkedin_url="x")
        company = store.add_company()
        store.add_role(contact.id, company.id)
        verified = NOW - timedelta(days=5)
        row = store.add_staleness(contact.id, staleness_score=0.9, last_verified_at=verified)

        result = await recompute_one(session, TENANT_A, contact.id, NOW)

        assert result.score == 0.0
        assert row.staleness_score == 0.0
        assert row.staleness_flags == []
        assert row.last_verified_at == verified

    @pytest.mark.asyncio
    async def test_idempotent(self, store, session):
        contact = store.add_contact()

        first = await recompute_one(session, TENANT_A, contact.id, NOW)
        second = await recompute_one(session, TENANT_A, contact.id, NOW)

        assert first == second
        assert len(store.staleness) == 1

    @pytest.mark.asyncio
    async def test_other_tenants_contact_is_invisible(self, store, session):
        contact = store.add_contact(tenant_id=TENANT_A)

        result = await recompute_one(session, TENANT_B, contact.id, NOW)

        assert result is None
        assert store.staleness == {}


# ---------------------------------------------------------------------------
# recompute_many
# ---------------------------------------------------------------------------


class TestRecomputeMany:
    @pytest.mark.asyncio
    async def test_empty_input(self, store, session):
        assert await recompute_many(session, TENANT_A, [], NOW) == {}
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_batches_of_one_hundred(self, store, session):
        ids = [store.add_contact(first_name=f"C{i}").id for i in range(250)]

        results = await recompute_many(session, TENANT_A, ids, NOW)

        assert len(results) == 250
        assert len(store.staleness) == 250
        fetches = [args for name, args in store.calls if name == "contacts.get_many"]
        assert [len(args[1]) for args in fetches] == [BATCH_SIZE, BATCH_SIZE, 50]
        assert store.call_count("roles.get_for_contacts") == 3
        assert store.call_count("staleness.get_for_contacts") == 3
        assert store.call_count("staleness.insert_many") == 3

    @pytest.mark.asyncio
    async def test_updates_existing_and_inserts_new(self, store, session):
        existing = store.add_contact(email="old@example.com")
        fresh = store.add_contact()
        row = store.add_staleness(existing.id, staleness_score=0.0)

        results = await recompute_many(session, TENANT_A, [existing.id, fresh.id], NOW)

        assert set(results) == {existing.id, fresh.id}
        assert row.staleness_score == pytest.approx(results[existing.id].score)
        assert store.staleness_for(fresh.id).staleness_score == pytest.approx(results[fresh.id].score)
        assert len(store.staleness) == 2

    @pytest.mark.asyncio
    async def test_deduplicates_and_keeps_order(self, store, session):
        a = store.add_contact()
        b = store.add_contact()

        results = await recompute_many(session, TENANT_A, [b.id, a.id, b.id, None], NOW)

        assert list(results) == [b.id, a.id]
        assert len(store.staleness) == 2

    @pytest.mark.asyncio
    async def test_skips_unknown_and_foreign_contacts(self, store, session):
        mine = store.add_contact(tenant_id=TENANT_A)
        theirs = store.add_contact(tenant_id=TENANT_B)

        results = await recompute_many(session, TENANT_A, [mine.id, theirs.id, "ghost"], NOW)

        assert list(results) == [mine.id]
        assert store.staleness_for(theirs.id) is None

    @pytest.mark.asyncio
    async def test_converges_on_rerun(self, store, session):
        ids = [store.add_contact(first_name=f"C{i}").id for i in range(5)]

        first = await recompute_many(session, TENANT_A, ids, NOW)
        second = await recompute_many(session, TENANT_A, ids, NOW)

        assert first == second
        assert len(store.staleness) == 5
