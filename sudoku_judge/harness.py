"""
Harness generation.

The submission is pasted verbatim into a single C++17 translation unit together
with every test case of the problem and a driver which validates each answer
and reports one protocol line per case:

    CASE <index> STATUS <code> TIME_MS <elapsed>

The driver stops at the first case that does not pass and exits with that
case's status code, so the reported cases are always a prefix of the case list.
Submitted code is compiled and run as-is; there is no static analysis of it.
"""
import enum
from typing import Iterable, List

from .sudoku import parse_grid

class CaseStatus(enum.IntEnum):
    PASS = 0
    OUT_OF_RANGE = 1
    CLUE_VIOLATION = 2
    INVALID_SOLUTION = 3
    MISMATCH = 4
    RUNTIME_FAULT = 5


PRELUDE = """\
#include <bits/stdc++.h>
using namespace std;

using Grid = array<array<int, 9>, 9>;

// ===== submission =====
"""

VALIDATORS = """\
// ===== end of submission =====

static bool judgeValidRange(const Grid& g) {
  for (int r = 0; r < 9; r++) for (int c = 0; c < 9; c++) {
    if (g[r][c] < 1 || g[r][c] > 9) return false;
  }
  return true;
}

static bool judgeRespectsClues(const Grid& in, const Grid& out) {
  for (int r = 0; r < 9; r++) for (int c = 0; c < 9; c++) {
    if (in[r][c] != 0 && out[r][c] != in[r][c]) return false;
  }
  return true;
}

static bool judgeValidSudoku(const Grid& g) {
  for (int i = 0; i < 9; i++) {
    bool row[10] = {false}, col[10] = {false};
    for (int j = 0; j < 9; j++) {
      int a = g[i][j], b = g[j][i];
      if (a < 1 || a > 9 || b < 1 || b > 9) return false;
      if (row[a] || col[b]) return false;
      row[a] = true;
      col[b] = true;
    }
  }
  for (int br = 0; br < 9; br += 3) for (int bc = 0; bc < 9; bc += 3) {
    bool seen[10] = {false};
    for (int r = 0; r < 3; r++) for (int c = 0; c < 3; c++) {
      int v = g[br + r][bc + c];
      if (v < 1 || v > 9 || seen[v]) return false;
      seen[v] = true;
    }
  }
  return true;
}

static bool judgeEqualsExpected(const Grid& g, const Grid& expected) {
  for (int r = 0; r < 9; r++) for (int c = 0; c < 9; c++) {
    if (g[r][c] != expected[r][c]) return false;
  }
  return true;
}
"""

MAIN = """\
int main() {
  for (int idx = 0; idx < JUDGE_CASE_COUNT; ++idx) {
    const Grid& input = JUDGE_CASES[idx].in;
    const Grid& expected = JUDGE_CASES[idx].exp;

    Grid out{};
    int status = %(PASS)d;
    auto t0 = chrono::steady_clock::now();
    try {
      out = solveSudoku(input);
    } catch (...) {
      status = %(RUNTIME_FAULT)d;
    }
    auto t1 = chrono::steady_clock::now();

    if (status == %(PASS)d) {
      if (!judgeValidRange(out)) status = %(OUT_OF_RANGE)d;
      else if (!judgeRespectsClues(input, out)) status = %(CLUE_VIOLATION)d;
      else if (!judgeValidSudoku(out)) status = %(INVALID_SOLUTION)d;
      else if (!judgeEqualsExpected(out, expected)) status = %(MISMATCH)d;
    }

    long long elapsed = chrono::duration_cast<chrono::milliseconds>(t1 - t0).count();
    cout << "CASE " << idx << " STATUS " << status << " TIME_MS " << elapsed << endl;
    if (status != %(PASS)d) {
      return status;
    }
  }
  return 0;
}
""" % {status.name: status.value for status in CaseStatus}


def grid_to_cpp(grid: List[List[int]], indent: str = "      ") -> str:
    """Render a grid as the body of a C++ Grid initializer."""
    return ",\n".join("%s{%s}" % (indent, ",".join(str(v) for v in row)) for row in grid)


def _case_block(idx: int, input_text: str, expected_text: str) -> str:
    return (
        "  { // case %d\n"
        "    {{\n%s\n    }},\n"
        "    {{\n%s\n    }}\n"
        "  }" % (idx, grid_to_cpp(parse_grid(input_text)), grid_to_cpp(parse_grid(expected_text)))
    )


def build_harness(user_code: str, cases: Iterable) -> str:
    """Build the complete harness source.

    `cases` are objects with `input_text` and `expected_output` attributes, in
    processing order. Raises GridFormatError if a case does not hold a grid.
    """
    cases = list(cases)
    if not cases:
        raise ValueError("a harness needs at least one test case")
    blocks = [_case_block(idx, tc.input_text, tc.expected_output) for idx, tc in enumerate(cases)]
    case_table = (
        "struct JudgeCase { Grid in; Grid exp; };\n\n"
        "static const JudgeCase JUDGE_CASES[] = {\n%s\n};\n"
        "static const int JUDGE_CASE_COUNT = sizeof(JUDGE_CASES) / sizeof(JUDGE_CASES[0]);\n\n"
        % ",\n".join(blocks)
    )
    return PRELUDE + user_code + "\n" + VALIDATORS + "\n" + case_table + MAIN
