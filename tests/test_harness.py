import re
from types import SimpleNamespace

import pytest

from sudoku_judge.harness import CaseStatus, build_harness, grid_to_cpp
from sudoku_judge.sudoku import GridFormatError, parse_grid

from conftest import PUZZLE, SOLUTION

USER_CODE = """\
Grid solveSudoku(Grid g) {
  // user's marker: {braces} and %s survive untouched
  return g;
}
"""


def case(input_text=PUZZLE, expected=SOLUTION):
    return SimpleNamespace(input_text=input_text, expected_output=expected)


def test_user_code_embedded_verbatim():
    source = build_harness(USER_CODE, [case()])
    assert USER_CODE in source
    assert source.index("using Grid") < source.index(USER_CODE) < source.index("int main()")


def test_every_case_embedded_in_order():
    other = SOLUTION.replace("5", "0", 1)
    source = build_harness(USER_CODE, [case(), case(other, SOLUTION), case()])
    assert "// case 0" in source and "// case 1" in source and "// case 2" in source
    assert "// case 3" not in source
    assert source.index("// case 0") < source.index("// case 1") < source.index("// case 2")
    assert "{5,3,0,0,7,0,0,0,0}" in source
    assert "{0,3,4,6,7,8,9,1,2}" in source  # case 1 input


def test_grid_initializer():
    body = grid_to_cpp(parse_grid(SOLUTION), indent="")
    assert body.splitlines()[0] == "{5,3,4,6,7,8,9,1,2},"
    assert len(body.splitlines()) == 9


def test_protocol_and_halt():
    source = build_harness(USER_CODE, [case()])
    assert '"CASE " << idx << " STATUS " << status << " TIME_MS " << elapsed' in source
    # stop at the first failing case with its status as exit code
    assert re.search(r"if \(status != 0\) \{\s*return status;", source)
    assert "catch (...)" in source


def test_validation_order_uses_status_codes():
    source = build_harness(USER_CODE, [case()])
    checks = [
        "status = %d;" % CaseStatus.OUT_OF_RANGE,
        "status = %d;" % CaseStatus.CLUE_VIOLATION,
        "status = %d;" % CaseStatus.INVALID_SOLUTION,
        "status = %d;" % CaseStatus.MISMATCH,
    ]
    positions = [source.index(c) for c in checks]
    assert positions == sorted(positions)
    assert "status = %d;" % CaseStatus.RUNTIME_FAULT in source


def test_status_codes():
    assert [s.value for s in CaseStatus] == [0, 1, 2, 3, 4, 5]


def test_unparseable_case_raises():
    with pytest.raises(GridFormatError):
        build_harness(USER_CODE, [case(), case(input_text="12 34")])


def test_no_cases_rejected():
    with pytest.raises(ValueError):
        build_harness(USER_CODE, [])
