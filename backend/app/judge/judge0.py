"""Judge0 client — compiles and runs submissions against challenge test cases."""

import asyncio
import base64
import binascii
import logging
from functools import lru_cache

import httpx

from app.config import settings
from app.judge.output import clean_output, format_for_display
from app.schemas.challenge import CaseResult, Challenge, ChallengeTestCase

logger = logging.getLogger(__name__)

# Judge0 status IDs
STATUS_IN_QUEUE = 1
STATUS_PROCESSING = 2
STATUS_ACCEPTED = 3
STATUS_TIME_LIMIT = 5
STATUS_COMPILATION_ERROR = 6
RUNTIME_ERROR_STATUSES = range(7, 13)  # SIGSEGV, SIGXFSZ, SIGFPE, SIGABRT, NZEC, other

_RESULT_FIELDS = "stdout,stderr,compile_output,message,status,time,memory"


class JudgeError(Exception):
    """Judge0 could not accept or report on a submission."""


def _decode(value: str | None) -> str:
    if not value:
        return ""
    try:
        return base64.b64decode(value).decode("utf-8", errors="replace").strip()
    except (binascii.Error, ValueError):
        logger.warning("Judge0 returned a field that is not valid base64")
        return ""


class Judge0Runner:
    """Runs each test case as a separate Judge0 submission and polls for the verdict."""

    def __init__(
        self,
        base_url: str,
        *,
        language_id: int = 50,
        request_timeout: float = 30.0,
        poll_interval: float = 0.5,
        max_polls: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.language_id = language_id
        self.request_timeout = request_timeout
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.request_timeout,
            transport=self._transport,
        )

    async def run_tests(self, code: str, challenge: Challenge) -> list[CaseResult]:
        """Judge ``code`` against every test case of ``challenge``, in order.

        A failure talking to Judge0 fails only the affected test case.
        """
        logger.info("Running %d test(s) for challenge %s", len(challenge.test_cases), challenge.id)
        results: list[CaseResult] = []
        async with self._client() as client:
            for test_case in challenge.test_cases:
                try:
                    token = await self._submit(client, code, test_case, challenge)
                except (JudgeError, httpx.HTTPError) as exc:
                    logger.error("Judge0 submission failed for %s/%s: %s", challenge.id, test_case.id, exc)
                    results.append(CaseResult(test_case_id=test_case.id, error=f"Submission error: {exc}"))
                    continue
                try:
                    verdict = await self._wait_for_result(client, token)
                except (JudgeError, httpx.HTTPError) as exc:
                    logger.error("Judge0 result failed for %s/%s: %s", challenge.id, test_case.id, exc)
                    results.append(CaseResult(test_case_id=test_case.id, error=f"Execution error: {exc}"))
                    continue
                results.append(self._to_result(test_case, verdict))
        return results

    async def _submit(
        self,
        client: httpx.AsyncClient,
        code: str,
        test_case: ChallengeTestCase,
        challenge: Challenge,
    ) -> str:
        response = await client.post(
            "/submissions",
            params={"base64_encoded": "false", "wait": "false"},
            json={
                "source_code": code,
                "language_id": self.language_id,
                "stdin": test_case.input,
                "cpu_time_limit": float(challenge.time_limit),
                "memory_limit": challenge.memory_limit * 1024,
            },
        )
        if response.status_code != httpx.codes.CREATED:
            raise JudgeError(f"status {response.status_code}: {response.text}")
        token = response.json().get("token")
        if not token:
            raise JudgeError("empty token")
        logger.debug("Submitted test %s, token %s", test_case.id, token)
        return token

    async def _wait_for_result(self, client: httpx.AsyncClient, token: str) -> dict:
        for _ in range(self.max_polls):
            response = await client.get(
                f"/submissions/{token}",
                params={"base64_encoded": "true", "fields": _RESULT_FIELDS},
            )
            if response.status_code != httpx.codes.OK:
                raise JudgeError(f"status {response.status_code}: {response.text}")
            data = response.json()
            status_id = (data.get("status") or {}).get("id", STATUS_IN_QUEUE)
            if status_id >= STATUS_ACCEPTED:
                for key in ("stdout", "stderr", "compile_output", "message"):
                    data[key] = _decode(data.get(key))
                return data
            await asyncio.sleep(self.poll_interval)
        raise JudgeError(f"timed out waiting for submission result after {self.max_polls} attempts")

    @staticmethod
    def _to_result(test_case: ChallengeTestCase, verdict: dict) -> CaseResult:
        status = verdict.get("status") or {}
        status_id = status.get("id")
        result = CaseResult(test_case_id=test_case.id)

        if status_id == STATUS_ACCEPTED:
            result.output = clean_output(verdict["stdout"])
            expected = clean_output(test_case.expected_output)
            result.passed = result.output == expected
            if not result.passed:
                result.error = (
                    f"Expected '{format_for_display(expected)}' but got '{format_for_display(result.output)}'"
                )
            if verdict.get("time"):
                try:
                    result.execution_time = float(verdict["time"])
                except ValueError:
                    pass
            result.memory = verdict.get("memory")
        elif status_id == STATUS_TIME_LIMIT:
            result.error = "Time limit exceeded"
        elif status_id == STATUS_COMPILATION_ERROR:
            result.error = "Compilation error: " + verdict["compile_output"]
        elif status_id in RUNTIME_ERROR_STATUSES:
            result.output = verdict["stdout"]
            result.error = "Runtime error: " + (verdict["message"] or verdict["stderr"] or status.get("description", ""))
        else:
            parts = [f"Error: {status.get('description', 'unknown status')}"]
            parts += [verdict[k] for k in ("compile_output", "stderr", "message") if verdict.get(k)]
            result.error = " - ".join(parts)
        return result


@lru_cache
def get_judge() -> Judge0Runner:
    """Judge0 runner configured from settings (FastAPI dependency)."""
    return Judge0Runner(
        settings.judge0_url,
        language_id=settings.judge0_language_id,
        request_timeout=settings.judge0_request_timeout_seconds,
        poll_interval=settings.judge0_poll_interval_seconds,
        max_polls=settings.judge0_max_polls,
    )
