"""SQLAlchemy models for StrathLearn.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from app.models.submission import Submission
from app.models.subscription import Subscription
from app.models.user import User

__all__ = [
    "Submission",
    "Subscription",
    "User",
]
