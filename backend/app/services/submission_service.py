"""Submission service — judged-run history, daily activity and profile stats."""

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.submission import Submission
from app.schemas.challenge import CaseResult
from app.services.subscription_service import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionStats:
    total_submissions: int
    challenges_solved: int
    first_submission: datetime | None
    last_submission: datetime | None


async def record_submission(
    db: AsyncSession,
    *,
    user_id: str,
    challenge_id: str,
    code: str,
    language_id: int,
    results: list[CaseResult],
    now: datetime | None = None,
) -> Submission:
    """Store one judged run. A run passes only if it had cases and all passed."""
    now = now or utcnow()
    passed_count = sum(1 for r in results if r.passed)
    submission = Submission(
        user_id=user_id,
        challenge_id=challenge_id,
        code=code,
        language_id=language_id,
        passed=bool(results) and passed_count == len(results),
        passed_count=passed_count,
        total_count=len(results),
        created_at=now,
        updated_at=now,
    )
    db.add(submission)
    await db.flush()
    logger.info(
        "Recorded submission %s for user %s on %s (%d/%d passed)",
        submission.id,
        user_id,
        challenge_id,
        passed_count,
        len(results),
    )
    return submission


async def daily_submission_counts(
    db: AsyncSession,
    user_id: str,
    start_date: date,
    end_date: date,
) -> dict[date, int]:
    """Submissions per calendar day (UTC) between two dates, both inclusive."""
    result = await db.execute(
        select(Submission.created_at).where(
            Submission.user_id == user_id,
            Submission.created_at >= datetime.combine(start_date, time.min),
            Submission.created_at < datetime.combine(end_date + timedelta(days=1), time.min),
        )
    )
    counts = Counter(created_at.date() for created_at in result.scalars().all())
    return dict(sorted(counts.items()))


def calculate_streaks(days: Iterable[date], today: date) -> tuple[int, int]:
    """Return ``(active_streak, longest_streak)`` for a set of active days.

    A streak is a run of consecutive calendar days. The active streak is the
    run ending on the last active day, and only counts while that day is
    today or yesterday.
    """
    ordered = sorted(set(days))
    if not ordered:
        return 0, 0

    longest = run = 1
    for previous, current in zip(ordered, ordered[1:]):
        run = run + 1 if (current - previous).days == 1 else 1
        longest = max(longest, run)

    active = run if (today - ordered[-1]).days <= 1 else 0
    return active, longest


async def get_submission_stats(db: AsyncSession, user_id: str) -> SubmissionStats:
    totals = await db.execute(
        select(
            func.count(Submission.id),
            func.min(Submission.created_at),
            func.max(Submission.created_at),
        ).where(Submission.user_id == user_id)
    )
    total, first, last = totals.one()

    solved = await db.execute(
        select(func.count(func.distinct(Submission.challenge_id))).where(
            Submission.user_id == user_id,
            Submission.passed.is_(True),
        )
    )
    return SubmissionStats(
        total_submissions=total,
        challenges_solved=solved.scalar_one(),
        first_submission=first,
        last_submission=last,
    )
