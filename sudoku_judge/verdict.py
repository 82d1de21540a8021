"""
Reduction of one harness run to a submission verdict.

Case outcomes are applied in index order and stop at the first case that did
not pass. Runner-level signals (wall-clock timeout, measured time over the
total limit) override the case-derived verdict with TLE. A runtime fault
inside the submission (status 5) is a wrong answer for that case; RE is only
produced by the judge itself when orchestration fails.
"""
from typing import List, Optional

from .config import CLIP_LENGTH
from .harness import CaseStatus
from .models import JudgeStatus
from .results import BatchResult
from .runner import RunResult


def clip(text, max_len: int = CLIP_LENGTH) -> str:
    text = str(text or "")
    if len(text) <= max_len:
        return text
    return text[:max_len] + "\n...[clipped]"


class CaseOutcome:
    def __init__(self, index: int, status: JudgeStatus, time_ms: Optional[int]):
        self.index = index
        self.status = status
        self.time_ms = time_ms


class Verdict:
    def __init__(self, status: JudgeStatus, cases: List[CaseOutcome],
                 exec_time_ms: Optional[int] = None, memory_kb: Optional[int] = None, message: str = ""):
        self.status = status
        self.cases = cases
        self.exec_time_ms = exec_time_ms
        self.memory_kb = memory_kb
        self.message = message

    @property
    def failed_case(self) -> Optional[int]:
        for case in self.cases:
            if case.status != JudgeStatus.ACCEPTED:
                return case.index
        return None


def case_outcomes(parsed: BatchResult, timeout: bool) -> List[CaseOutcome]:
    """Per-case statuses up to and including the first failing case."""
    outcomes = []
    for idx, code in enumerate(parsed.statuses):
        if code == CaseStatus.PASS:
            outcomes.append(CaseOutcome(idx, JudgeStatus.ACCEPTED, parsed.times[idx]))
            continue
        if code is None and timeout:
            status = JudgeStatus.TIME_LIMIT
        else:
            # Any failing code, a caught runtime fault included, and a case the
            # program died before reporting
            status = JudgeStatus.WRONG_ANSWER
        outcomes.append(CaseOutcome(idx, status, parsed.times[idx]))
        break
    return outcomes


def attribute_time(cases: List[CaseOutcome], run: RunResult, request_elapsed_ms: int) -> int:
    ac_total = sum(c.time_ms or 0 for c in cases if c.status == JudgeStatus.ACCEPTED)
    if ac_total > 0:
        return ac_total
    if run.exec_time_ms is not None and run.exec_time_ms > 0:
        return run.exec_time_ms
    reported = [c.time_ms for c in cases if c.time_ms is not None]
    if reported:
        return max(reported)
    return request_elapsed_ms


def resolve_verdict(run: RunResult, parsed: BatchResult, total_limit_ms: int,
                    request_elapsed_ms: int) -> Verdict:
    cases = case_outcomes(parsed, run.timeout)

    status = JudgeStatus.ACCEPTED
    message = ""
    for case in cases:
        if case.status != JudgeStatus.ACCEPTED:
            status = case.status
            message = f"case {case.index}: {case.status.value}"
            break

    if status == JudgeStatus.ACCEPTED and (run.output_overflow or run.exit_code != 0):
        status = JudgeStatus.WRONG_ANSWER
        message = "output limit exceeded" if run.output_overflow else f"exit code {run.exit_code}"

    measured_ms = run.exec_time_ms if run.exec_time_ms is not None else run.wall_time_ms
    if run.timeout or measured_ms > total_limit_ms:
        status = JudgeStatus.TIME_LIMIT
        message = f"total time limit exceeded ({total_limit_ms} ms)"

    return Verdict(
        status,
        cases,
        exec_time_ms=attribute_time(cases, run, request_elapsed_ms),
        memory_kb=run.memory_kb,
        message=message,
    )
