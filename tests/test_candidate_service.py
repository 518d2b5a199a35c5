"""Unit tests for the exclusion set builder and candidate selector."""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from amora.exceptions import NotFound, StorageFailure
from amora.services.candidate_service import CandidateSelector
from amora.services.exclusion_service import ExclusionSetBuilder


@pytest.fixture
def exclusions(profile_store, decision_store, match_store):
    return ExclusionSetBuilder(profile_store, decision_store, match_store)


@pytest.fixture
def pool(profile_store, make_profile, base_time):
    """Ten profiles, most recently active first."""
    return [
        profile_store.add(
            make_profile(name=f"P{i}", last_active_at=base_time - timedelta(minutes=i))
        )
        for i in range(10)
    ]


class TestExclusionSetBuilder:
    """Tests for exclusion set derivation."""

    @pytest.mark.asyncio
    async def test_unknown_user(self, exclusions, make_profile):
        with pytest.raises(NotFound):
            await exclusions.build(make_profile().id)

    @pytest.mark.asyncio
    async def test_collects_every_relation(
        self, exclusions, requester, pool, decision_store, match_store,
    ):
        me = requester.id
        await decision_store.insert_like(me, pool[0].id)
        await decision_store.insert_pass(me, pool[1].id)
        await decision_store.insert_pass(pool[2].id, me)
        await match_store.insert_match(pool[3].id, me)
        await decision_store.insert_like(pool[4].id, me)

        result = await exclusions.build(me)

        assert result.excluded == {me, pool[0].id, pool[1].id, pool[2].id, pool[3].id}
        assert result.liked_me == {pool[4].id}

    @pytest.mark.asyncio
    async def test_storage_failure_fails_whole_build(self, exclusions, requester, decision_store):
        decision_store.list_passes_by_receiver = AsyncMock(side_effect=StorageFailure("down"))
        with pytest.raises(StorageFailure):
            await exclusions.build(requester.id)


class TestCandidateSelector:
    """Tests for bounded candidate selection."""

    @pytest.mark.asyncio
    async def test_three_exclusions_out_of_ten(
        self, exclusions, profile_store, requester, pool, decision_store,
    ):
        me = requester.id
        await decision_store.insert_like(me, pool[2].id)
        await decision_store.insert_pass(me, pool[5].id)
        await decision_store.insert_pass(pool[7].id, me)
        excluded = {pool[2].id, pool[5].id, pool[7].id}

        selector = CandidateSelector(profile_store, exclusions)
        candidates = await selector.select(me, pool_size=10)

        ids = [c.profile.id for c in candidates]
        assert len(ids) <= 7
        assert not excluded & set(ids)
        assert me not in ids

    @pytest.mark.asyncio
    async def test_recency_order_and_truncation(self, exclusions, profile_store, requester, pool):
        selector = CandidateSelector(profile_store, exclusions, overfetch_factor=3)
        candidates = await selector.select(requester.id, pool_size=4)

        assert [c.profile.id for c in candidates] == [p.id for p in pool[:4]]
        assert profile_store.list_calls == [12]

    @pytest.mark.asyncio
    async def test_liked_me_flagged_not_excluded(
        self, exclusions, profile_store, requester, pool, decision_store,
    ):
        await decision_store.insert_like(pool[1].id, requester.id)

        selector = CandidateSelector(profile_store, exclusions)
        candidates = await selector.select(requester.id, pool_size=3)

        flags = {c.profile.id: c.has_liked_me for c in candidates}
        assert flags[pool[1].id] is True
        assert flags[pool[0].id] is False

    @pytest.mark.asyncio
    async def test_everyone_excluded_returns_empty(
        self, exclusions, profile_store, requester, pool, decision_store,
    ):
        for profile in pool:
            await decision_store.insert_pass(requester.id, profile.id)

        selector = CandidateSelector(profile_store, exclusions)
        assert await selector.select(requester.id, pool_size=5) == []

    @pytest.mark.asyncio
    async def test_no_widening_by_default(
        self, exclusions, profile_store, requester, pool, decision_store,
    ):
        await decision_store.insert_pass(requester.id, pool[0].id)
        await decision_store.insert_pass(requester.id, pool[1].id)

        selector = CandidateSelector(profile_store, exclusions, overfetch_factor=1)
        assert await selector.select(requester.id, pool_size=2) == []
        assert profile_store.list_calls == [2]

    @pytest.mark.asyncio
    async def test_opt_in_widening(
        self, exclusions, profile_store, requester, pool, decision_store,
    ):
        await decision_store.insert_pass(requester.id, pool[0].id)
        await decision_store.insert_pass(requester.id, pool[1].id)

        selector = CandidateSelector(
            profile_store, exclusions, overfetch_factor=1, widen_attempts=2,
        )
        candidates = await selector.select(requester.id, pool_size=1)

        assert [c.profile.id for c in candidates] == [pool[2].id]
        assert profile_store.list_calls == [1, 2, 4]

    @pytest.mark.asyncio
    async def test_widening_stops_on_short_page(
        self, exclusions, profile_store, requester, pool, decision_store,
    ):
        for profile in pool:
            await decision_store.insert_pass(requester.id, profile.id)

        selector = CandidateSelector(
            profile_store, exclusions, overfetch_factor=2, widen_attempts=5,
        )
        assert await selector.select(requester.id, pool_size=4) == []
        assert profile_store.list_calls == [8, 16]

    @pytest.mark.asyncio
    async def test_invalid_pool_size(self, exclusions, profile_store, requester):
        selector = CandidateSelector(profile_store, exclusions)
        with pytest.raises(ValueError):
            await selector.select(requester.id, pool_size=0)
