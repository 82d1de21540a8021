import re
from typing import List, NamedTuple, Optional

# CASE <idx> STATUS <status> TIME_MS <elapsed>
CASE_LINE = re.compile(r"CASE\s+(\d+)\s+STATUS\s+(-?\d+)\s+TIME_MS\s+(-?\d+)")


class BatchResult(NamedTuple):
    statuses: List[Optional[int]]
    times: List[Optional[int]]

    @property
    def reported(self) -> int:
        return sum(1 for s in self.statuses if s is not None)


def parse_batch_result(stdout: str, case_count: int) -> BatchResult:
    """Collect per-case status codes and times from harness output.

    Lines for indices outside [0, case_count) are ignored and a later line for
    the same index replaces an earlier one. Cases never reported stay None.
    """
    statuses: List[Optional[int]] = [None] * case_count
    times: List[Optional[int]] = [None] * case_count
    for m in CASE_LINE.finditer(stdout or ""):
        idx = int(m.group(1))
        if 0 <= idx < case_count:
            statuses[idx] = int(m.group(2))
            times[idx] = int(m.group(3))
    return BatchResult(statuses, times)
