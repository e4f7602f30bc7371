"""Pydantic v2 schemas for challenges and code submissions.

Field names are snake_case in Python and camelCase on the wire, matching
the challenge JSON files and the browser editor.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChallengeTestCase(BaseModel):
    """One input/expected-output pair; hidden cases are not shown in the UI."""

    model_config = _camel

    id: str
    input: str = ""
    expected_output: str
    hidden: bool = False


class Challenge(BaseModel):
    """A coding challenge as loaded from its JSON definition."""

    model_config = _camel

    id: str = ""
    title: str
    difficulty: str = "beginner"
    description: str = ""
    hints: list[str] = Field(default_factory=list)
    test_cases: list[ChallengeTestCase] = Field(default_factory=list)
    initial_code: str = ""
    solutions: list[str] = Field(default_factory=list, exclude=True)  # never served
    time_limit: int = 1  # seconds
    memory_limit: int = 128  # MB

    @property
    def visible_test_cases(self) -> list[ChallengeTestCase]:
        return [tc for tc in self.test_cases if not tc.hidden]


class ChallengeSummary(BaseModel):
    """Entry in the challenge selector."""

    id: str
    title: str


class SubmissionRequest(BaseModel):
    """Code submitted for a challenge."""

    model_config = _camel

    challenge_id: str = Field(..., min_length=1)
    code: str


class CaseResult(BaseModel):
    """Judge verdict for a single test case."""

    model_config = _camel

    test_case_id: str
    passed: bool = False
    output: str = ""
    error: str = ""
    execution_time: float | None = None  # seconds
    memory: int | None = None  # KB


class SubmissionResponse(BaseModel):
    """Aggregate verdict returned to the editor."""

    model_config = _camel

    success: bool
    message: str
    test_results: list[CaseResult]
    submission_id: str | None = None  # set when the run was saved to history
