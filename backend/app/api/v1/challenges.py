"""Challenge API — list, detail and code submission for the browser editor."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_challenge_store, get_db, get_judge, get_optional_user
from app.challenges.store import ChallengeStore
from app.judge.judge0 import Judge0Runner
from app.models.user import User
from app.schemas.challenge import (
    CaseResult,
    Challenge,
    ChallengeSummary,
    SubmissionRequest,
    SubmissionResponse,
)
from app.services.submission_service import record_submission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["challenges"])


def all_passed(results: list[CaseResult]) -> bool:
    """True only for a non-empty result list where every case passed."""
    return bool(results) and all(r.passed for r in results)


@router.get("/challenges", response_model=dict[str, ChallengeSummary])
async def list_challenges(
    store: ChallengeStore = Depends(get_challenge_store),
) -> dict[str, ChallengeSummary]:
    """Map of challenge ID to ``{id, title}``."""
    return store.summaries()


@router.get("/challenge/{challenge_id}", response_model=Challenge)
async def get_challenge(
    challenge_id: str,
    store: ChallengeStore = Depends(get_challenge_store),
) -> Challenge:
    """Full challenge definition (reference solutions excluded)."""
    challenge = store.get(challenge_id)
    if challenge is None:
        logger.info("Challenge not found: %s", challenge_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Challenge not found: {challenge_id}",
        )
    return challenge


@router.post("/submit", response_model=SubmissionResponse)
async def submit_solution(
    body: SubmissionRequest,
    store: ChallengeStore = Depends(get_challenge_store),
    judge: Judge0Runner = Depends(get_judge),
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
) -> SubmissionResponse:
    """Run the submitted code against every test case of the challenge.

    Runs by signed-in learners are saved to their submission history.
    """
    challenge = store.get(body.challenge_id)
    if challenge is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Challenge not found: {body.challenge_id}",
        )

    results = await judge.run_tests(body.code, challenge)
    submission_id = None
    if user is not None:
        submission = await record_submission(
            db,
            user_id=user.id,
            challenge_id=challenge.id,
            code=body.code,
            language_id=judge.language_id,
            results=results,
        )
        submission_id = submission.id
    return SubmissionResponse(
        success=all_passed(results),
        message="Submission processed",
        test_results=results,
        submission_id=submission_id,
    )
