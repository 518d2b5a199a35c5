"""
Amora — Main API Router

Aggregates all sub-routers under a single prefix so that ``amora.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from amora.api import decisions, profiles, ranking

router = APIRouter()

router.include_router(ranking.router, prefix="/ranking", tags=["Ranking"])
router.include_router(decisions.router, prefix="/decisions", tags=["Decisions"])
router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
