"""Shared API dependencies — single import point for all routers.

Re-exports database, authentication, challenge and judge dependencies so
that router modules can import everything they need from one place::

    from app.api.deps import get_db, get_current_active_user
"""

from app.auth.dependencies import get_current_active_user, get_current_user, get_optional_user
from app.challenges.store import get_challenge_store
from app.database import get_db, get_session_factory
from app.judge.judge0 import get_judge

__all__ = [
    "get_db",
    "get_session_factory",
    "get_current_user",
    "get_current_active_user",
    "get_optional_user",
    "get_challenge_store",
    "get_judge",
]
