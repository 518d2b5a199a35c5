"""HTTP-level tests: routing, pagination and error mapping (services mocked)."""
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from amora.api.deps import get_decision_service, get_profile_service, get_ranking_service
from amora.exceptions import (
    DuplicateDecision,
    InvalidDecision,
    NotFound,
    ProfileIncomplete,
    StorageFailure,
)
from amora.main import app
from amora.models.decision import Like
from amora.models.match import Match
from amora.schemas.ranking import RankedUser
from amora.services.decision_service import LikeOutcome

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def ranking_service():
    return MagicMock()


@pytest.fixture
def decision_service():
    return MagicMock()


@pytest.fixture
def profile_service():
    return MagicMock()


@pytest.fixture
def client(ranking_service, decision_service, profile_service):
    app.dependency_overrides[get_ranking_service] = lambda: ranking_service
    app.dependency_overrides[get_decision_service] = lambda: decision_service
    app.dependency_overrides[get_profile_service] = lambda: profile_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _ranked(make_profile, n):
    return [
        RankedUser(**make_profile().model_dump(), score=90 - i, match_percentage=90 - i, position=i + 1)
        for i in range(n)
    ]


class TestRankingEndpoints:

    def test_returns_ranked_list(self, client, ranking_service, make_profile):
        user_id = uuid.uuid4()
        ranked = _ranked(make_profile, 3)
        ranking_service.get_ranked_users = AsyncMock(return_value=ranked)

        response = client.get(f"/api/v1/ranking/{user_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 3
        assert body["total"] == 3
        assert [u["id"] for u in body["data"]] == [str(r.id) for r in ranked]
        assert body["data"][0]["position"] == 1
        ranking_service.get_ranked_users.assert_awaited_once_with(user_id)

    def test_pagination(self, client, ranking_service, make_profile):
        ranked = _ranked(make_profile, 5)
        ranking_service.get_ranked_users = AsyncMock(return_value=ranked)

        body = client.get(f"/api/v1/ranking/{uuid.uuid4()}?limit=2&offset=1").json()

        assert body["count"] == 2
        assert body["total"] == 5
        assert [u["position"] for u in body["data"]] == [2, 3]

    def test_empty_is_success(self, client, ranking_service):
        ranking_service.get_ranked_users = AsyncMock(return_value=[])

        response = client.get(f"/api/v1/ranking/{uuid.uuid4()}")

        assert response.status_code == 200
        assert response.json()["count"] == 0

    @pytest.mark.parametrize("exc, status, kind", [
        (NotFound("missing"), 404, "NotFound"),
        (ProfileIncomplete("verify first"), 422, "ProfileIncomplete"),
        (StorageFailure("db down"), 503, "StorageFailure"),
    ])
    def test_error_mapping(self, client, ranking_service, exc, status, kind):
        ranking_service.get_ranked_users = AsyncMock(side_effect=exc)

        response = client.get(f"/api/v1/ranking/{uuid.uuid4()}")

        assert response.status_code == status
        assert response.json() == {"success": False, "error": str(exc), "type": kind}

    def test_invalidate(self, client, ranking_service):
        ranking_service.invalidate = AsyncMock(return_value=4)
        response = client.delete(f"/api/v1/ranking/{uuid.uuid4()}")
        assert response.status_code == 204

    def test_bad_uuid(self, client):
        assert client.get("/api/v1/ranking/not-a-uuid").status_code == 422


class TestDecisionEndpoints:

    def _payload(self):
        return {"sender_id": str(uuid.uuid4()), "receiver_id": str(uuid.uuid4())}

    def test_like_with_match(self, client, decision_service):
        payload = self._payload()
        like = Like(
            id=uuid.uuid4(),
            sender_id=uuid.UUID(payload["sender_id"]),
            receiver_id=uuid.UUID(payload["receiver_id"]),
            created_at=NOW,
        )
        match = Match(id=uuid.uuid4(), user_a_id=uuid.uuid4(), user_b_id=uuid.uuid4(), matched_at=NOW)
        decision_service.like = AsyncMock(return_value=LikeOutcome(like=like, match=match))

        response = client.post("/api/v1/decisions/like", json=payload)

        assert response.status_code == 201
        body = response.json()
        assert body["is_match"] is True
        assert body["match_id"] == str(match.id)
        assert body["like"]["sender_id"] == payload["sender_id"]

    @pytest.mark.parametrize("exc, status", [
        (DuplicateDecision("dup"), 409),
        (InvalidDecision("self"), 400),
        (NotFound("nobody"), 404),
    ])
    def test_like_errors(self, client, decision_service, exc, status):
        decision_service.like = AsyncMock(side_effect=exc)
        response = client.post("/api/v1/decisions/like", json=self._payload())
        assert response.status_code == status

    def test_unlike(self, client, decision_service):
        decision_service.unlike = AsyncMock(return_value=None)
        response = client.request("DELETE", "/api/v1/decisions/like", json=self._payload())
        assert response.status_code == 204

    def test_list_matches(self, client, decision_service):
        user_id = uuid.uuid4()
        match = Match(id=uuid.uuid4(), user_a_id=user_id, user_b_id=uuid.uuid4(), matched_at=NOW)
        decision_service.list_matches = AsyncMock(return_value=[match])

        response = client.get(f"/api/v1/decisions/{user_id}/matches")

        assert response.status_code == 200
        assert response.json()[0]["id"] == str(match.id)


class TestProfileEndpoints:

    def test_patch_validation(self, client, profile_service):
        profile_service.update_profile = AsyncMock()
        response = client.patch(f"/api/v1/profiles/{uuid.uuid4()}", json={"age": 12})
        assert response.status_code == 422
        profile_service.update_profile.assert_not_awaited()

    def test_get_profile(self, client, profile_service, make_profile):
        profile = make_profile()
        profile_service.get_profile = AsyncMock(return_value=profile)

        response = client.get(f"/api/v1/profiles/{profile.id}")

        assert response.status_code == 200
        assert response.json()["name"] == profile.name


class TestHealth:

    def test_liveness(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
