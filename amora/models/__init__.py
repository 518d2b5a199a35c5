"""
Amora — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from amora.models.profile import UserProfile
from amora.models.decision import Like, Pass
from amora.models.match import Match
from amora.models.ranking import UserRanking

__all__ = [
    "UserProfile",
    "Like",
    "Pass",
    "Match",
    "UserRanking",
]
