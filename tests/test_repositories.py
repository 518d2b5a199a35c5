"""Unit tests for the repository layer (no database; sessions are mocked)."""
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from amora.exceptions import DuplicateDecision, StorageFailure
from amora.models.match import Match, normalise_pair
from amora.models.ranking import UserRanking
from amora.repositories.decisions import DecisionRepository
from amora.repositories.profiles import ProfileRepository
from amora.repositories.rankings import RankingCache, build_snapshot_rows
from amora.schemas.ranking import RankedUser


def _session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    session.begin.return_value.__aenter__ = AsyncMock(return_value=session)
    session.begin.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


@pytest.fixture
def session():
    return MagicMock()


class TestErrorTranslation:
    """SQLAlchemy errors never escape the repositories."""

    @pytest.mark.asyncio
    async def test_operational_error_becomes_storage_failure(self, session):
        session.execute = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
        )
        repo = ProfileRepository(_session_factory(session))

        with pytest.raises(StorageFailure, match="get_profile"):
            await repo.get_profile(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_unique_violation_becomes_duplicate_decision(self, session):
        session.flush = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("uq_like_pair"))
        )
        repo = DecisionRepository(_session_factory(session))

        with pytest.raises(DuplicateDecision):
            await repo.insert_like(uuid.uuid4(), uuid.uuid4())

    @pytest.mark.asyncio
    async def test_integrity_error_elsewhere_is_storage_failure(self, session):
        session.execute = AsyncMock(
            side_effect=IntegrityError("DELETE", {}, Exception("fk violation"))
        )
        repo = RankingCache(_session_factory(session))

        with pytest.raises(StorageFailure):
            await repo.invalidate(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_id_lookup(self, session):
        ids = [uuid.uuid4(), uuid.uuid4()]
        result = MagicMock()
        result.scalars.return_value.all.return_value = ids
        session.execute = AsyncMock(return_value=result)
        repo = DecisionRepository(_session_factory(session))

        assert await repo.list_likes_by_sender(uuid.uuid4()) == ids


class TestSnapshotRows:
    """Tests for cache row construction."""

    def test_positions_and_expiry(self, make_profile, base_time):
        owner = uuid.uuid4()
        ranked = [
            RankedUser(**make_profile().model_dump(), score=s, match_percentage=s, reasons=["r"])
            for s in (90, 70, 40)
        ]

        rows = build_snapshot_rows(owner, ranked, base_time, timedelta(hours=24))

        assert [r.position for r in rows] == [1, 2, 3]
        assert [r.target_user_id for r in rows] == [r.id for r in ranked]
        assert all(r.user_id == owner for r in rows)
        assert all(r.expires_at == base_time + timedelta(hours=24) for r in rows)
        assert rows[0].score == 90
        assert rows[0].reasons == ["r"]


class TestMatchPair:
    """Tests for unordered pair normalisation."""

    def test_normalise_is_order_independent(self):
        x, y = uuid.uuid4(), uuid.uuid4()
        assert normalise_pair(x, y) == normalise_pair(y, x)
        low, high = normalise_pair(x, y)
        assert low < high

    def test_other(self):
        a, b = sorted([uuid.uuid4(), uuid.uuid4()])
        match = Match(id=uuid.uuid4(), user_a_id=a, user_b_id=b)
        assert match.other(a) == b
        assert match.other(b) == a


def _recording_session(results):
    """Session that records ``execute`` and ``add_all`` calls in order."""
    session = MagicMock()
    calls = []
    pending = iter(results)

    async def execute(stmt):
        calls.append(("execute", stmt))
        return next(pending)

    session.execute = AsyncMock(side_effect=execute)
    session.add_all = MagicMock(side_effect=lambda rows: calls.append(("add_all", list(rows))))
    return session, calls


def _scalars(values):
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def _row(owner, target, position, base_time, score=50):
    return UserRanking(
        user_id=owner,
        target_user_id=target,
        score=score,
        match_percentage=score,
        reasons=["r"],
        has_liked_me=False,
        position=position,
        created_at=base_time,
        expires_at=base_time + timedelta(hours=24),
    )


class TestRankingCache:
    """Statement order and positions on the real cache repository."""

    @pytest.mark.asyncio
    async def test_store_locks_drops_decided_then_replaces(self, make_profile, base_time, one_day):
        owner = uuid.uuid4()
        ranked = [
            RankedUser(**make_profile().model_dump(), score=s, match_percentage=s)
            for s in (90, 70, 40)
        ]
        session, calls = _recording_session([MagicMock(), _scalars([ranked[1].id]), MagicMock()])
        cache = RankingCache(_session_factory(session))

        stored = await cache.store(owner, ranked, base_time, one_day)

        assert [kind for kind, _ in calls] == ["execute", "execute", "execute", "add_all"]
        assert "pg_advisory_xact_lock" in str(calls[0][1])
        assert "UNION" in str(calls[1][1])
        assert str(calls[2][1]).startswith("DELETE FROM user_rankings")
        rows = calls[3][1]
        assert [r.target_user_id for r in rows] == [ranked[0].id, ranked[2].id]
        assert [r.position for r in rows] == [1, 2]
        assert [(r.id, r.position) for r in stored] == [(ranked[0].id, 1), (ranked[2].id, 2)]
        session.begin.assert_called_once()

    @pytest.mark.asyncio
    async def test_discard_renumbers_survivors(self, base_time):
        owner = uuid.uuid4()
        targets = [uuid.uuid4() for _ in range(3)]
        current = [_row(owner, t, i, base_time) for i, t in enumerate(targets, start=1)]
        session, calls = _recording_session([MagicMock(), _scalars(current), MagicMock()])
        cache = RankingCache(_session_factory(session))

        removed = await cache.discard(owner, [targets[1]])

        assert removed == 1
        assert [kind for kind, _ in calls] == ["execute", "execute", "execute", "add_all"]
        assert "pg_advisory_xact_lock" in str(calls[0][1])
        assert str(calls[2][1]).startswith("DELETE FROM user_rankings")
        rows = calls[3][1]
        assert [(r.target_user_id, r.position) for r in rows] == [(targets[0], 1), (targets[2], 2)]

    @pytest.mark.asyncio
    async def test_discard_without_match_writes_nothing(self, base_time):
        owner = uuid.uuid4()
        current = [_row(owner, uuid.uuid4(), 1, base_time)]
        session, calls = _recording_session([MagicMock(), _scalars(current)])
        cache = RankingCache(_session_factory(session))

        assert await cache.discard(owner, [uuid.uuid4()]) == 0
        assert [kind for kind, _ in calls] == ["execute", "execute"]

    @pytest.mark.asyncio
    async def test_get_fresh_filters_and_renumbers(self, make_profile, base_time):
        owner = uuid.uuid4()
        first, second = make_profile(), make_profile()
        result = MagicMock()
        result.all.return_value = [
            (_row(owner, first.id, 2, base_time, score=80), first),
            (_row(owner, second.id, 5, base_time, score=60), second),
        ]
        session, calls = _recording_session([result])
        cache = RankingCache(_session_factory(session))

        ranked = await cache.get_fresh(owner, base_time)

        sql = str(calls[0][1])
        assert "user_rankings.expires_at >" in sql
        assert "NOT IN" in sql
        assert "ORDER BY user_rankings.position ASC" in sql
        assert [(r.id, r.position, r.score) for r in ranked] == [
            (first.id, 1, 80), (second.id, 2, 60),
        ]

    @pytest.mark.asyncio
    async def test_get_fresh_miss(self, base_time):
        result = MagicMock()
        result.all.return_value = []
        session, _ = _recording_session([result])
        cache = RankingCache(_session_factory(session))

        assert await cache.get_fresh(uuid.uuid4(), base_time) is None
