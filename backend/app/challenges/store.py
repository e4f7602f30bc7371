"""Read-only challenge store loaded from a directory of JSON files."""

import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError

from app.config import settings
from app.schemas.challenge import Challenge, ChallengeSummary, ChallengeTestCase

logger = logging.getLogger(__name__)

# backend/challenges, next to the app package
BUNDLED_CHALLENGES_DIR = Path(__file__).resolve().parents[2] / "challenges"

SAMPLE_CHALLENGE = Challenge(
    id="hello-world",
    title="Hello, World",
    difficulty="beginner",
    description=(
        "Write a C program that prints the message 'Hello, World!' to the console.\n\n"
        "This is the traditional first program and confirms your environment works."
    ),
    hints=[
        "Use the printf function from the stdio.h library to output text",
        "Include the stdio.h header at the top of your program",
        "main should return an integer (0 for success)",
    ],
    test_cases=[ChallengeTestCase(id="test1", input="", expected_output="Hello, World!")],
    initial_code="#include <stdio.h>\n\nint main() {\n    // Write your code here\n    \n    return 0;\n}",
)


class ChallengeStore:
    """Immutable mapping of challenge ID to :class:`Challenge`."""

    def __init__(self, challenges: dict[str, Challenge]) -> None:
        self._challenges = dict(challenges)

    @classmethod
    def load(cls, directory: str | Path) -> "ChallengeStore":
        """Load every ``*.json`` file in ``directory``.

        Files that fail to parse are logged and skipped. A missing or empty
        directory yields a store holding only the built-in sample challenge.
        """
        directory = Path(directory)
        challenges: dict[str, Challenge] = {}
        logger.info("Loading challenges from %s", directory)

        if not directory.is_dir():
            logger.warning("Challenges directory %s does not exist", directory)
        else:
            for path in sorted(directory.glob("*.json")):
                try:
                    challenge = Challenge.model_validate(json.loads(path.read_text(encoding="utf-8")))
                except (OSError, json.JSONDecodeError, ValidationError) as exc:
                    logger.error("Skipping challenge file %s: %s", path, exc)
                    continue
                if not challenge.id:
                    challenge = challenge.model_copy(update={"id": path.stem})
                if challenge.id in challenges:
                    logger.warning("Duplicate challenge id %s in %s; keeping the later file", challenge.id, path)
                challenges[challenge.id] = challenge
                logger.info("Loaded challenge %s (%s) from %s", challenge.id, challenge.title, path.name)

        if not challenges:
            logger.warning("No challenges found, serving the built-in sample")
            challenges[SAMPLE_CHALLENGE.id] = SAMPLE_CHALLENGE

        return cls(challenges)

    def __len__(self) -> int:
        return len(self._challenges)

    def __contains__(self, challenge_id: object) -> bool:
        return challenge_id in self._challenges

    def get(self, challenge_id: str) -> Challenge | None:
        return self._challenges.get(challenge_id)

    def all(self) -> list[Challenge]:
        return list(self._challenges.values())

    def summaries(self) -> dict[str, ChallengeSummary]:
        """ID -> ``{id, title}`` for the challenge selector."""
        return {cid: ChallengeSummary(id=c.id, title=c.title) for cid, c in self._challenges.items()}

    def default_id(self, preferred: str | None = None) -> str | None:
        """The preferred challenge if present, otherwise the first one loaded."""
        if preferred and preferred in self._challenges:
            return preferred
        return next(iter(self._challenges), None)


@lru_cache
def get_challenge_store() -> ChallengeStore:
    """Process-wide store, loaded on first use (FastAPI dependency)."""
    directory = Path(settings.challenges_dir) if settings.challenges_dir else BUNDLED_CHALLENGES_DIR
    return ChallengeStore.load(directory)
