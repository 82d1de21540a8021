import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import List, NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .compiler import compile_source
from .config import TOTAL_TIME_LIMIT_MS, CLIP_LENGTH
from .harness import build_harness
from .models import JudgeStatus, Problem, Submission, SubmissionResult, TestCase, User
from .ranking import update_user_ranking
from .results import parse_batch_result
from .runner import create_runner
from .verdict import clip, resolve_verdict

logger = logging.getLogger(__name__)


class JudgeResult:
    def __init__(self, submission_id: int, status: JudgeStatus, exec_time_ms: Optional[int] = None,
                 memory_kb: Optional[int] = None, message: str = "", total_cases: int = 0,
                 case_results: Optional[list] = None):
        self.submission_id = submission_id
        self.status = status
        self.exec_time_ms = exec_time_ms
        self.memory_kb = memory_kb
        self.message = message
        self.total_cases = total_cases
        self.case_results = case_results or []

    @property
    def processed_cases(self) -> int:
        return len(self.case_results)

    def to_dict(self) -> dict:
        return {
            "submission_id": self.submission_id,
            "status": self.status.value,
            "exec_time_ms": self.exec_time_ms,
            "memory_kb": self.memory_kb,
            "message": self.message,
            "processed_cases": self.processed_cases,
            "total_cases": self.total_cases,
            "case_results": self.case_results,
        }


class CaseText(NamedTuple):
    input_text: str
    expected_output: str


async def get_or_create_user(session: AsyncSession, username: str, phone: str) -> User:
    result = await session.execute(select(User).where(User.username == username, User.phone == phone))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(username=username, phone=phone)
        session.add(user)
        await session.commit()
        await session.refresh(user)
    return user


async def load_cases(session: AsyncSession, problem_id: int) -> List[TestCase]:
    result = await session.execute(select(TestCase).where(TestCase.problem_id == problem_id).order_by(TestCase.id))
    return list(result.scalars().all())


class Judge:
    """Grades one submission: harness, compile, one batched run, verdict, persistence."""

    def __init__(self, session: AsyncSession, compiler=compile_source, runner=None,
                 total_limit_ms: int = TOTAL_TIME_LIMIT_MS):
        self.session = session
        self.compiler = compiler
        self.runner = runner if runner is not None else create_runner()
        self.total_limit_ms = total_limit_ms

    async def run(self, user_id: int, problem: Problem, cases: List[TestCase], code: str) -> JudgeResult:
        if not cases:
            raise ValueError(f"Problem {problem.id} has no test cases")

        # Plain copies: the ORM objects expire on commit in some session setups
        problem_id = problem.id
        case_ids = [tc.id for tc in cases]
        case_texts = [CaseText(tc.input_text, tc.expected_output) for tc in cases]

        started = time.perf_counter()
        submission = Submission(user_id=user_id, problem_id=problem_id, code=code,
                                language="cpp", status=JudgeStatus.PENDING.value)
        self.session.add(submission)
        await self.session.commit()
        await self.session.refresh(submission)
        sid = submission.id
        logger.info("[Judge #%d] User: %d, Problem: %d, Cases: %d", sid, user_id, problem_id, len(cases))

        work_dir = Path(tempfile.mkdtemp(prefix="sudoku_judge_"))
        rows: List[SubmissionResult] = []
        exec_time_ms = None
        memory_kb = None
        message = ""
        try:
            source_file = work_dir / "main.cpp"
            exe_file = work_dir / "main"
            source_file.write_text(build_harness(code, case_texts), encoding="utf-8")

            logger.info("[Judge #%d] Compiling...", sid)
            compile_result = await self.compiler(source_file, exe_file, work_dir)
            if not compile_result.ok:
                logger.info("[Judge #%d] Compile Error: %s", sid, compile_result.stderr[:200])
                status = JudgeStatus.COMPILE_ERROR
                message = "compilation failed"
                rows.append(SubmissionResult(submission_id=sid, test_case_id=case_ids[0],
                                             status=status.value, stdout="",
                                             stderr=clip(compile_result.stderr, CLIP_LENGTH)))
            else:
                logger.info("[Judge #%d] Running %d cases...", sid, len(cases))
                run = await self.runner.run([str(exe_file)], work_dir, self.total_limit_ms)
                parsed = parse_batch_result(run.stdout, len(cases))
                verdict = resolve_verdict(run, parsed, self.total_limit_ms,
                                          int((time.perf_counter() - started) * 1000))
                status = verdict.status
                message = verdict.message
                exec_time_ms = verdict.exec_time_ms
                memory_kb = verdict.memory_kb
                stderr = clip(run.stderr, CLIP_LENGTH)
                for case in verdict.cases:
                    rows.append(SubmissionResult(submission_id=sid, test_case_id=case_ids[case.index],
                                                 status=case.status.value, exec_time_ms=case.time_ms,
                                                 stdout="", stderr=stderr))
        except Exception as e:
            logger.exception("[Judge #%d] Judge failure", sid)
            status = JudgeStatus.RUNTIME_ERROR
            message = "judge error"
            exec_time_ms = None
            memory_kb = None
            rows = [SubmissionResult(submission_id=sid, test_case_id=case_ids[0],
                                     status=status.value, stdout="",
                                     stderr=clip(f"{type(e).__name__}: {e}", CLIP_LENGTH))]
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        case_results = [
            {"test_case_id": row.test_case_id, "status": row.status, "exec_time_ms": row.exec_time_ms}
            for row in rows
        ]
        self.session.add_all(rows)
        submission.status = status.value
        submission.exec_time_ms = exec_time_ms
        submission.memory_kb = memory_kb
        await self.session.commit()
        logger.info("[Judge #%d] Result: %s, Time: %sms, Memory: %sKB",
                    sid, status.value, exec_time_ms, memory_kb)

        if status == JudgeStatus.ACCEPTED:
            try:
                await update_user_ranking(self.session, user_id)
            except Exception:
                # The submission stays AC whatever happens to the leaderboard
                logger.exception("[Judge #%d] Ranking update failed", sid)
                await self.session.rollback()

        return JudgeResult(
            sid,
            status,
            exec_time_ms=exec_time_ms,
            memory_kb=memory_kb,
            message=message,
            total_cases=len(cases),
            case_results=case_results,
        )
