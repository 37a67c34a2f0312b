"""Repeat test invocations until enough of them pass."""

import logging
from collections.abc import Awaitable, Callable, Sequence

from runner_compare.errors import InvocationError, InvocationTimeoutError
from runner_compare.models.result import TestRunResult

log = logging.getLogger(__name__)

AttemptFn = Callable[[int], Awaitable[TestRunResult]]


async def run_with_retry(
    *,
    max_attempts: int,
    required_stable: int,
    kill_on_fail: bool,
    run_once: AttemptFn,
) -> Sequence[TestRunResult]:
    """Run attempts until ``required_stable`` of them pass.

    Every attempt is recorded, passing or not. An attempt is stable when its
    invocation exited cleanly. Attempts stop at ``max_attempts`` whatever the
    number of stable ones.

    Args:
        max_attempts: Ceiling on the number of attempts
        required_stable: Stable attempts to collect before stopping
        kill_on_fail: Raise on the first failing attempt instead of retrying
        run_once: Runs one attempt; receives the zero-based attempt index

    Returns:
        Results of every attempt, in the order they ran

    Raises:
        InvocationError: If ``kill_on_fail`` is set and an attempt fails
        InvocationTimeoutError: If ``kill_on_fail`` is set and an attempt
            timed out

    """
    results: list[TestRunResult] = []
    stable = 0

    for attempt in range(max_attempts):
        result = await run_once(attempt)
        results.append(result)

        if not result.failed:
            stable += 1
            if stable >= required_stable:
                break
            continue

        if kill_on_fail:
            if result.timed_out:
                raise InvocationTimeoutError(f"Attempt {attempt + 1} timed out")
            raise InvocationError(f"Attempt {attempt + 1} failed")
    else:
        log.warning(
            "Reached %d attempt(s) with %d/%d stable collection(s)",
            max_attempts,
            stable,
            required_stable,
        )

    return results
