"""Named response checks and their evaluation."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

import structlog

from ..models.errors import ErrorType, LoadEngineException
from ..models.results import CheckResult, HttpResponse
from .requests import GET_TAG, MESSAGE_PATH, POST_TAG

logger = structlog.get_logger(__name__)

Predicate = Callable[[HttpResponse], bool]


@dataclass(frozen=True)
class Check:
    """A named boolean assertion against a response."""

    name: str
    predicate: Predicate


def status_check(method: str, path: str, expected_status: int) -> Check:
    """Check named ``"<METHOD>: <path>: <status>"`` asserting the status code."""
    return Check(
        name=f"{method}: {path}: {expected_status}",
        predicate=lambda r: r.status_code == expected_status,
    )


def default_checks() -> dict:
    """Checks for each step of the message workload, keyed by request tag."""
    return {
        POST_TAG: [status_check("POST", MESSAGE_PATH, 202)],
        GET_TAG: [status_check("GET", MESSAGE_PATH, 200)],
    }


class CheckEvaluator:
    """Evaluates checks independently, one CheckResult per check per call.

    Evaluation never raises. A predicate that raises, or a step that
    produced no response, yields a failed result tagged with the error
    category.
    """

    def evaluate(
        self,
        response: Optional[HttpResponse],
        checks: Iterable[Check],
        error: Optional[LoadEngineException] = None,
        vu_id: Optional[int] = None,
        tag: Optional[str] = None,
    ) -> List[CheckResult]:
        results = []
        for check in checks:
            now = datetime.now(timezone.utc)

            if response is None:
                error_type = error.error_type if error is not None else ErrorType.CHECK_ERROR
                results.append(
                    CheckResult(
                        name=check.name,
                        passed=False,
                        timestamp=now,
                        vu_id=vu_id,
                        tag=tag,
                        error_type=error_type,
                    )
                )
                continue

            try:
                passed = bool(check.predicate(response))
                error_type = None
            except Exception as e:
                logger.debug("Check could not be evaluated", check=check.name, error=str(e))
                passed = False
                error_type = ErrorType.CHECK_ERROR

            results.append(
                CheckResult(
                    name=check.name,
                    passed=passed,
                    timestamp=now,
                    vu_id=vu_id,
                    tag=tag or response.tag,
                    error_type=error_type,
                )
            )
        return results
