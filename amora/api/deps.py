"""
Amora — Service wiring for the API layer.

Services are process-wide singletons built lazily from settings and the
shared clients opened in the application lifespan.  Routes depend on the
``get_*_service`` functions, which tests replace through
``app.dependency_overrides``.
"""

from __future__ import annotations

from datetime import timedelta

import httpx
import structlog

from amora.config import get_settings
from amora.database import get_session_factory
from amora.repositories.decisions import DecisionRepository
from amora.repositories.matches import MatchRepository
from amora.repositories.profiles import ProfileRepository
from amora.repositories.rankings import RankingCache
from amora.services.candidate_service import CandidateSelector
from amora.services.credentials import CredentialRotator
from amora.services.decision_service import DecisionService
from amora.services.events import MatchEventPublisher
from amora.services.exclusion_service import ExclusionSetBuilder
from amora.services.oracle_client import GeminiOracleClient
from amora.services.profile_service import ProfileService
from amora.services.ranking_service import RankingService
from amora.services.scoring_service import CompatibilityScorer
from amora.utils.locks import RedisUserLock

logger = structlog.get_logger("amora.api.deps")

# ── Shared clients (set by the lifespan) ──────────────────────────────────────

_http_client: httpx.AsyncClient | None = None
_redis_client = None

# ── Service singletons ────────────────────────────────────────────────────────

_ranking_service: RankingService | None = None
_decision_service: DecisionService | None = None
_profile_service: ProfileService | None = None


def configure_clients(http_client: httpx.AsyncClient | None, redis_client=None) -> None:
    """Install the shared clients and drop any services built without them."""
    global _http_client, _redis_client
    global _ranking_service, _decision_service, _profile_service
    _http_client = http_client
    _redis_client = redis_client
    _ranking_service = None
    _decision_service = None
    _profile_service = None


def get_redis():
    return _redis_client


def _repositories() -> tuple[ProfileRepository, DecisionRepository, MatchRepository, RankingCache]:
    factory = get_session_factory()
    return (
        ProfileRepository(factory),
        DecisionRepository(factory),
        MatchRepository(factory),
        RankingCache(factory),
    )


def build_scorer() -> CompatibilityScorer:
    settings = get_settings()
    rotator = CredentialRotator(settings.gemini_api_keys_list)
    oracle = (
        GeminiOracleClient.from_settings(_http_client, settings)
        if _http_client is not None
        else None
    )
    if oracle is None or not rotator:
        logger.warning(
            "oracle_not_configured",
            has_http_client=_http_client is not None,
            key_count=len(rotator),
        )
    return CompatibilityScorer(
        oracle=oracle,
        rotator=rotator,
        batch_size=settings.SCORER_BATCH_SIZE,
        max_concurrency=settings.ORACLE_MAX_CONCURRENCY,
        batch_timeout=settings.ORACLE_BATCH_TIMEOUT_SECONDS,
        deadline=settings.ORACLE_DEADLINE_SECONDS,
    )


def get_ranking_service() -> RankingService:
    global _ranking_service
    if _ranking_service is None:
        settings = get_settings()
        profiles, decisions, matches, cache = _repositories()
        selector = CandidateSelector(
            profiles,
            ExclusionSetBuilder(profiles, decisions, matches),
            overfetch_factor=settings.RANKING_OVERFETCH_FACTOR,
            widen_attempts=settings.RANKING_WIDEN_ATTEMPTS,
        )
        user_lock = (
            RedisUserLock(_redis_client, timeout=settings.RANKING_LOCK_TIMEOUT_SECONDS)
            if _redis_client is not None
            else None
        )
        _ranking_service = RankingService(
            profiles=profiles,
            cache=cache,
            selector=selector,
            scorer=build_scorer(),
            pool_size=settings.RANKING_POOL_SIZE,
            ttl=timedelta(hours=settings.RANKING_TTL_HOURS),
            user_lock=user_lock,
        )
    return _ranking_service


def get_decision_service() -> DecisionService:
    global _decision_service
    if _decision_service is None:
        profiles, decisions, matches, cache = _repositories()
        _decision_service = DecisionService(
            profiles,
            decisions,
            matches,
            cache,
            events=MatchEventPublisher(_redis_client),
        )
    return _decision_service


def get_profile_service() -> ProfileService:
    global _profile_service
    if _profile_service is None:
        profiles, _, _, cache = _repositories()
        _profile_service = ProfileService(profiles, cache)
    return _profile_service
