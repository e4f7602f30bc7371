"""Pydantic v2 schemas for the learner profile and submission history.

Serialized in camelCase like the challenge schemas, since both feed the
browser editor.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DailySubmissions(BaseModel):
    model_config = _camel

    date: date
    count: int


class SubmissionHistoryResponse(BaseModel):
    """Per-day submission counts in the requested range plus streaks."""

    model_config = _camel

    start_date: date
    end_date: date
    submissions: list[DailySubmissions]
    active_streak: int
    longest_streak: int


class ProfileUser(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str
    email: str


class ProfileStats(BaseModel):
    """Lifetime totals; a challenge counts as solved once any run passes every case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    total_submissions: int
    challenges_solved: int
    first_submission: datetime | None = None
    last_submission: datetime | None = None


class ProfileResponse(BaseModel):
    model_config = _camel

    user: ProfileUser
    stats: ProfileStats
