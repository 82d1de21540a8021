from asyncio import Semaphore
import io
import logging
import os
import zipfile
from typing import Optional

from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func

from .compiler import compile_source
from .config import MAX_CONCURRENT_JUDGES, DEFAULT_TIME_LIMIT, DEFAULT_MEMORY_LIMIT, MAX_TESTCASE_ARCHIVE_SIZE
from .judge import Judge, get_or_create_user, load_cases
from .models import init_db, get_session, Problem, TestCase, Submission, SubmissionResult, User
from .runner import create_runner
from .sudoku import compare_grids

logger = logging.getLogger(__name__)

app = FastAPI(title="Sudoku Judge")

# Semaphore for concurrent judge limit
judge_semaphore = Semaphore(MAX_CONCURRENT_JUDGES)

@app.on_event("startup")
async def startup():
    await init_db()

def get_compiler():
    return compile_source

def get_runner():
    return create_runner()

@app.get("/health")
async def health(session: AsyncSession = Depends(get_session)):
    try:
        result = await session.execute(select(1))
        return {"ok": True, "db": result.scalar()}
    except Exception as e:
        raise HTTPException(500, f"Database unavailable: {e}")

# ===== Problem APIs =====

def read_testcase_archive(data: bytes) -> list:
    """Extract (input, expected) pairs from a zip of <n>.in / <n>.out files, ordered by n"""
    inputs, outputs = {}, {}
    with zipfile.ZipFile(io.BytesIO(data), "r") as zf:
        for name in zf.namelist():
            basename = os.path.basename(name)
            stem, ext = os.path.splitext(basename)
            if ext not in (".in", ".out") or not stem:
                continue
            target = inputs if ext == ".in" else outputs
            target[stem] = zf.read(name).decode("utf-8", errors="replace")

    def order(stem):
        return (0, int(stem), stem) if stem.isdigit() else (1, 0, stem)

    return [(inputs[stem], outputs[stem]) for stem in sorted(inputs, key=order) if stem in outputs]

def problem_to_dict(problem: Problem, test_case_count: int) -> dict:
    return {
        "id": problem.id,
        "title": problem.title,
        "description": problem.description,
        "time_limit_ms": problem.time_limit_ms,
        "memory_limit_kb": problem.memory_limit_kb,
        "test_case_count": test_case_count,
    }

@app.post("/api/problems")
async def create_problem(
    title: str = Form(...),
    description: str = Form(""),
    time_limit_ms: int = Form(DEFAULT_TIME_LIMIT),
    memory_limit_kb: int = Form(DEFAULT_MEMORY_LIMIT),
    samples: int = Form(0),
    testcases: UploadFile = File(...),
    session: AsyncSession = Depends(get_session)
):
    """Create a problem from a zip of <n>.in / <n>.out sudoku grids; the first `samples` cases are samples"""
    data = await testcases.read()
    if len(data) > MAX_TESTCASE_ARCHIVE_SIZE:
        raise HTTPException(400, "Test case archive too large")
    try:
        pairs = read_testcase_archive(data)
    except zipfile.BadZipFile as e:
        raise HTTPException(400, f"Failed to extract test cases: {e}")
    if not pairs:
        raise HTTPException(400, "No test cases found in archive")

    problem = Problem(
        title=title,
        description=description,
        time_limit_ms=time_limit_ms,
        memory_limit_kb=memory_limit_kb
    )
    session.add(problem)
    await session.flush()
    for idx, (input_text, expected_output) in enumerate(pairs):
        session.add(TestCase(
            problem_id=problem.id,
            input_text=input_text,
            expected_output=expected_output,
            is_sample=idx < samples
        ))
    await session.commit()

    return {"success": True, **problem_to_dict(problem, len(pairs))}

@app.get("/api/problems")
async def list_problems(session: AsyncSession = Depends(get_session)):
    """List all problems"""
    counts = dict((await session.execute(
        select(TestCase.problem_id, func.count(TestCase.id)).group_by(TestCase.problem_id)
    )).all())
    result = await session.execute(select(Problem).order_by(Problem.id))
    return [problem_to_dict(p, counts.get(p.id, 0)) for p in result.scalars().all()]

@app.get("/api/problems/{problem_id}")
async def get_problem(problem_id: int, session: AsyncSession = Depends(get_session)):
    """Get problem details with its sample cases"""
    problem = await session.get(Problem, problem_id)
    if not problem:
        raise HTTPException(404, "Problem not found")

    cases = await load_cases(session, problem_id)
    return {
        **problem_to_dict(problem, len(cases)),
        "samples": [
            {"id": tc.id, "input": tc.input_text, "output": tc.expected_output}
            for tc in cases if tc.is_sample
        ]
    }

@app.delete("/api/problems/{problem_id}")
async def delete_problem(problem_id: int, session: AsyncSession = Depends(get_session)):
    """Delete a problem with its test cases and submissions"""
    problem = await session.get(Problem, problem_id)
    if problem:
        submission_ids = select(Submission.id).where(Submission.problem_id == problem_id)
        await session.execute(delete(SubmissionResult).where(SubmissionResult.submission_id.in_(submission_ids)))
        await session.execute(delete(Submission).where(Submission.problem_id == problem_id))
        await session.execute(delete(TestCase).where(TestCase.problem_id == problem_id))
        await session.delete(problem)
        await session.commit()

    return {"success": True}

# ===== Submission APIs =====

@app.post("/api/submit")
async def submit(
    user_name: str = Form(...),
    phone: str = Form(...),
    problem_id: int = Form(...),
    code: str = Form(...),
    session: AsyncSession = Depends(get_session),
    compiler=Depends(get_compiler),
    runner=Depends(get_runner)
):
    """Submit a solveSudoku implementation and grade it"""
    user_name = user_name.strip()
    phone = phone.strip()
    if not user_name or not phone or not code.strip():
        raise HTTPException(400, "user_name, phone, problem_id, code required")

    problem = await session.get(Problem, problem_id)
    if not problem:
        raise HTTPException(404, "Problem not found")

    cases = await load_cases(session, problem_id)
    if not cases:
        raise HTTPException(500, "No test cases for this problem")

    user = await get_or_create_user(session, user_name, phone)

    async with judge_semaphore:
        judge = Judge(session, compiler=compiler, runner=runner)
        result = await judge.run(user.id, problem, cases, code)

    return result.to_dict()

@app.get("/api/submissions")
async def list_submissions(
    user_name: str,
    phone: str,
    problem_id: Optional[int] = None,
    limit: int = 50,
    session: AsyncSession = Depends(get_session)
):
    """List a user's recent submissions"""
    user = (await session.execute(
        select(User).where(User.username == user_name.strip(), User.phone == phone.strip())
    )).scalar_one_or_none()
    if not user:
        return []

    query = select(Submission).where(Submission.user_id == user.id)
    if problem_id:
        query = query.where(Submission.problem_id == problem_id)
    query = query.order_by(Submission.id.desc()).limit(min(limit, 50))

    result = await session.execute(query)
    return [
        {
            "id": s.id,
            "problem_id": s.problem_id,
            "language": s.language,
            "status": s.status,
            "exec_time_ms": s.exec_time_ms,
            "memory_kb": s.memory_kb,
            "created_at": s.created_at.isoformat()
        }
        for s in result.scalars().all()
    ]

@app.get("/api/submissions/{submission_id}")
async def get_submission(submission_id: int, session: AsyncSession = Depends(get_session)):
    """Get submission status and per-case results"""
    submission = await session.get(Submission, submission_id)
    if not submission:
        raise HTTPException(404, "Submission not found")

    result = await session.execute(
        select(SubmissionResult)
        .where(SubmissionResult.submission_id == submission_id)
        .order_by(SubmissionResult.id)
    )
    return {
        "id": submission.id,
        "user_id": submission.user_id,
        "problem_id": submission.problem_id,
        "language": submission.language,
        "status": submission.status,
        "exec_time_ms": submission.exec_time_ms,
        "memory_kb": submission.memory_kb,
        "created_at": submission.created_at.isoformat(),
        "results": [
            {"test_case_id": r.test_case_id, "status": r.status, "exec_time_ms": r.exec_time_ms}
            for r in result.scalars().all()
        ]
    }

# ===== Leaderboard =====

@app.get("/api/leaderboard")
async def leaderboard(session: AsyncSession = Depends(get_session)):
    """Ranked users; users without an accepted submission are not listed"""
    result = await session.execute(select(User).where(User.rank.is_not(None)).order_by(User.rank))
    return [
        {
            "rank": u.rank,
            "user_name": u.username,
            "total_time_ms": u.total_time_ms,
            "total_memory_kb": u.total_memory_kb
        }
        for u in result.scalars().all()
    ]

# ===== Tools =====

@app.post("/api/sudoku/compare")
async def compare(output: str = Form(...), expected: str = Form(...)):
    """Compare a textual sudoku answer against the expected grid"""
    return compare_grids(output, expected).to_dict()

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
