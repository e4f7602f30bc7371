"""Profile API — lifetime stats and day-by-day submission history with streaks."""

from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_active_user, get_db
from app.models.user import User
from app.schemas.profile import (
    DailySubmissions,
    ProfileResponse,
    ProfileStats,
    ProfileUser,
    SubmissionHistoryResponse,
)
from app.services.submission_service import (
    calculate_streaks,
    daily_submission_counts,
    get_submission_stats,
)
from app.services.subscription_service import utcnow

router = APIRouter(prefix="/api/profile", tags=["profile"])

HISTORY_DEFAULT_DAYS = 365


@router.get("", response_model=ProfileResponse)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ProfileResponse:
    """Total submissions, challenges solved, first and last submission."""
    stats = await get_submission_stats(db, current_user.id)
    return ProfileResponse(
        user=ProfileUser.model_validate(current_user),
        stats=ProfileStats.model_validate(stats),
    )


@router.get("/submissions", response_model=SubmissionHistoryResponse)
async def get_submission_history(
    start_date: date | None = Query(None, alias="startDate", description="First day, YYYY-MM-DD"),
    end_date: date | None = Query(None, alias="endDate", description="Last day, YYYY-MM-DD"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> SubmissionHistoryResponse:
    """Submission counts per day, defaulting to the last year.

    Streaks are computed over the returned range; the active streak is
    measured against today.
    """
    today = utcnow().date()
    end_date = end_date or today
    start_date = start_date or end_date - timedelta(days=HISTORY_DEFAULT_DAYS)
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="endDate must not be before startDate",
        )

    counts = await daily_submission_counts(db, current_user.id, start_date, end_date)
    active_streak, longest_streak = calculate_streaks(counts, today)
    return SubmissionHistoryResponse(
        start_date=start_date,
        end_date=end_date,
        submissions=[DailySubmissions(date=day, count=count) for day, count in counts.items()],
        active_streak=active_streak,
        longest_streak=longest_streak,
    )
