"""
Resource-bounded execution of compiled harnesses.

A runner executes one command with empty stdin under a wall-clock timer and a
cap on the combined stdout+stderr size. The process is started in its own
process group so that the whole tree can be killed on timeout or overflow.

`TimeRunner` additionally wraps the command in GNU time (`time -v`) and reads
the user CPU time and the peak resident set size from its report. Other
backends (containers, a stricter sandbox) can be used by subclassing
`ProcessRunner` and overriding `wrap_command` / `collect_metrics`.
"""
import asyncio
import logging
import os
import re
import signal
import time
from pathlib import Path
from typing import List, Optional

from .config import RUN_GRACE_MS, MAX_OUTPUT_BYTES, OVERFLOW_EXIT_CODE, TIME_PATH, RUNNER

logger = logging.getLogger(__name__)

TRUNCATION_NOTICE = "\n[truncated: output exceeded 1MB]\n"
_READ_CHUNK = 64 * 1024

_USER_TIME = re.compile(r"User time \(seconds\):\s+([0-9]+(?:\.[0-9]+)?)")
_MAX_RSS = re.compile(r"Maximum resident set size \(kbytes\):\s+(\d+)")


def parse_user_time(text: str) -> Optional[float]:
    """User CPU time in seconds from a `time -v` report, or None."""
    m = _USER_TIME.search(text or "")
    return float(m.group(1)) if m else None


def parse_max_rss(text: str) -> Optional[int]:
    """Peak resident set size in KB from a `time -v` report, or None."""
    m = _MAX_RSS.search(text or "")
    return int(m.group(1)) if m else None


class RunResult:
    def __init__(self, timeout: bool, exit_code: int, stdout: str, stderr: str,
                 exec_time_ms: Optional[int] = None, memory_kb: Optional[int] = None,
                 output_overflow: bool = False, wall_time_ms: int = 0):
        self.timeout = timeout
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.exec_time_ms = exec_time_ms
        self.memory_kb = memory_kb
        self.output_overflow = output_overflow
        self.wall_time_ms = wall_time_ms


class ProcessRunner:
    """Runs a command with a wall-clock timeout and an output cap."""

    def __init__(self, grace_ms: int = RUN_GRACE_MS, max_output_bytes: int = MAX_OUTPUT_BYTES):
        self.grace_ms = grace_ms
        self.max_output_bytes = max_output_bytes

    def wrap_command(self, command: List[str]) -> List[str]:
        return list(command)

    def collect_metrics(self, stderr: str):
        """Return (exec_time_ms, memory_kb) measured by the backend."""
        return None, None

    async def run(self, command: List[str], cwd: Path, time_limit_ms: int) -> RunResult:
        argv = self.wrap_command(command)
        started = time.perf_counter()

        # Spawn errors propagate to the caller
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
            start_new_session=True,
        )

        stdout = bytearray()
        stderr = bytearray()
        state = {"captured": 0, "overflow": False, "timeout": False}

        async def pump(stream: asyncio.StreamReader, sink: bytearray):
            while True:
                chunk = await stream.read(_READ_CHUNK)
                if not chunk:
                    return
                if state["overflow"]:
                    continue  # drain until the killed group closes the pipe
                room = self.max_output_bytes - state["captured"]
                if len(chunk) > room:
                    sink.extend(chunk[:max(room, 0)])
                    state["captured"] = self.max_output_bytes
                    state["overflow"] = True
                    logger.info("[Runner] Output exceeded %d bytes, killing pid %d",
                                self.max_output_bytes, process.pid)
                    self._kill(process)
                    continue
                sink.extend(chunk)
                state["captured"] += len(chunk)

        timeout_s = (time_limit_ms + self.grace_ms) / 1000.0
        try:
            await asyncio.wait_for(
                asyncio.gather(pump(process.stdout, stdout), pump(process.stderr, stderr), process.wait()),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            state["timeout"] = True
            logger.info("[Runner] Wall-clock limit of %d ms exceeded, killing pid %d",
                        time_limit_ms + self.grace_ms, process.pid)
            self._kill(process)
            await process.wait()

        wall_time_ms = int((time.perf_counter() - started) * 1000)

        out_text = stdout.decode("utf-8", errors="replace")
        err_text = stderr.decode("utf-8", errors="replace")
        if state["overflow"]:
            err_text += TRUNCATION_NOTICE
            exit_code = OVERFLOW_EXIT_CODE
        elif process.returncode < 0:
            exit_code = 128 - process.returncode  # killed by signal
        else:
            exit_code = process.returncode

        exec_time_ms, memory_kb = self.collect_metrics(err_text)
        return RunResult(
            timeout=state["timeout"],
            exit_code=exit_code,
            stdout=out_text,
            stderr=err_text,
            exec_time_ms=exec_time_ms,
            memory_kb=memory_kb,
            output_overflow=state["overflow"],
            wall_time_ms=wall_time_ms,
        )

    @staticmethod
    def _kill(process):
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass  # already exited


class TimeRunner(ProcessRunner):
    """ProcessRunner measuring CPU time and peak memory with GNU time."""

    def __init__(self, time_path: str = TIME_PATH, **kwargs):
        super().__init__(**kwargs)
        self.time_path = time_path

    def wrap_command(self, command: List[str]) -> List[str]:
        return [self.time_path, "-v"] + list(command)

    def collect_metrics(self, stderr: str):
        user_time = parse_user_time(stderr)
        exec_time_ms = int(round(user_time * 1000)) if user_time is not None else None
        return exec_time_ms, parse_max_rss(stderr)


def create_runner(kind: str = RUNNER) -> ProcessRunner:
    if kind == "time":
        return TimeRunner()
    if kind == "plain":
        return ProcessRunner()
    raise ValueError(f"Unknown runner: {kind}")
