import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from sudoku_judge.compiler import CompileResult
from sudoku_judge.models import Base, Problem, TestCase, User
from sudoku_judge.runner import RunResult

PUZZLE = """\
530070000
600195000
098000060
800060003
400803001
700020006
060000280
000419005
000080079
"""

SOLUTION = """\
534678912
672195348
198342567
859761423
426853791
713924856
961537284
287419635
345286179
"""


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


async def make_problem(session, case_count=3, title="classic"):
    problem = Problem(title=title)
    session.add(problem)
    await session.flush()
    cases = [TestCase(problem_id=problem.id, input_text=PUZZLE, expected_output=SOLUTION, is_sample=i == 0)
             for i in range(case_count)]
    session.add_all(cases)
    await session.commit()
    return problem, cases


async def make_user(session, username="alice", phone="010"):
    user = User(username=username, phone=phone)
    session.add(user)
    await session.commit()
    return user


class FakeCompiler:
    def __init__(self, ok=True, stderr=""):
        self.ok = ok
        self.stderr = stderr
        self.sources = []

    async def __call__(self, source_file, exe_file, cwd):
        self.sources.append(source_file.read_text(encoding="utf-8"))
        return CompileResult(self.ok, self.stderr)


class FakeRunner:
    """Replays a canned harness run."""

    def __init__(self, stdout="", exit_code=0, timeout=False, exec_time_ms=None, memory_kb=None,
                 output_overflow=False, wall_time_ms=5, error=None):
        self.result = RunResult(timeout, exit_code, stdout, "", exec_time_ms, memory_kb,
                                output_overflow, wall_time_ms)
        self.error = error
        self.commands = []

    async def run(self, command, cwd, time_limit_ms):
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return self.result


def case_lines(*cases):
    """Protocol lines from (status, time_ms) pairs."""
    return "".join(f"CASE {i} STATUS {status} TIME_MS {ms}\n" for i, (status, ms) in enumerate(cases))
