import io
import zipfile

import httpx
import pytest

from sudoku_judge.main import app, get_compiler, get_runner, read_testcase_archive
from sudoku_judge.models import get_session

from conftest import PUZZLE, SOLUTION, FakeCompiler, FakeRunner, case_lines


def make_archive(count=2):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for i in range(count, 0, -1):
            zf.writestr(f"tests/{i}.in", PUZZLE)
            zf.writestr(f"tests/{i}.out", SOLUTION)
        zf.writestr("README.txt", "ignored")
    return buf.getvalue()


@pytest.fixture
def runner():
    return FakeRunner(case_lines((0, 3), (0, 4)), memory_kb=1024)


@pytest.fixture
async def client(session_factory, runner):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_compiler] = lambda: FakeCompiler()
    app.dependency_overrides[get_runner] = lambda: runner
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def create_problem(client, count=2):
    response = await client.post(
        "/api/problems",
        data={"title": "classic", "time_limit_ms": "1000", "samples": "1"},
        files={"testcases": ("cases.zip", make_archive(count), "application/zip")},
    )
    assert response.status_code == 200
    return response.json()


def test_archive_ordering():
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for i in (10, 2, 1):
            zf.writestr(f"{i}.in", f"in{i}")
            zf.writestr(f"{i}.out", f"out{i}")
        zf.writestr("3.in", "no expected output")
    assert read_testcase_archive(buf.getvalue()) == [("in1", "out1"), ("in2", "out2"), ("in10", "out10")]


async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"ok": True, "db": 1}


async def test_problem_lifecycle(client):
    problem = await create_problem(client)
    assert problem["test_case_count"] == 2
    assert problem["time_limit_ms"] == 1000

    listed = (await client.get("/api/problems")).json()
    assert [p["id"] for p in listed] == [problem["id"]]

    detail = (await client.get(f"/api/problems/{problem['id']}")).json()
    assert len(detail["samples"]) == 1

    await client.delete(f"/api/problems/{problem['id']}")
    assert (await client.get(f"/api/problems/{problem['id']}")).status_code == 404


async def test_submit_and_query(client):
    problem = await create_problem(client)
    form = {"user_name": "alice", "phone": "010", "problem_id": str(problem["id"]),
            "code": "Grid solveSudoku(Grid g) { return g; }"}

    response = await client.post("/api/submit", data=form)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "AC"
    assert body["exec_time_ms"] == 7
    assert body["processed_cases"] == body["total_cases"] == 2

    submissions = (await client.get("/api/submissions", params={"user_name": "alice", "phone": "010"})).json()
    assert [s["id"] for s in submissions] == [body["submission_id"]]

    detail = (await client.get(f"/api/submissions/{body['submission_id']}")).json()
    assert [r["status"] for r in detail["results"]] == ["AC", "AC"]

    board = (await client.get("/api/leaderboard")).json()
    assert board == [{"rank": 1, "user_name": "alice", "total_time_ms": 7, "total_memory_kb": 1024}]


async def test_submit_validation(client):
    form = {"user_name": "alice", "phone": "010", "problem_id": "999", "code": "x"}
    assert (await client.post("/api/submit", data=form)).status_code == 404
    form["code"] = "   "
    assert (await client.post("/api/submit", data=form)).status_code == 400


async def test_unknown_user_has_no_submissions(client):
    response = await client.get("/api/submissions", params={"user_name": "nobody", "phone": "0"})
    assert response.json() == []


async def test_compare_endpoint(client):
    response = await client.post("/api/sudoku/compare", data={"output": SOLUTION, "expected": SOLUTION})
    assert response.json() == {"ok": True}
    response = await client.post("/api/sudoku/compare", data={"output": "1", "expected": SOLUTION})
    assert response.json()["reason"] == "invalid_format"
