import pytest

from vcompiler import (
    SAMPLE_PROGRAM,
    CompilerSession,
    Lexer,
    compile_program,
    compile_source,
    format_report,
    is_assignment_candidate,
)


@pytest.fixture
def sample():
    return compile_source(SAMPLE_PROGRAM)


def test_sample_program_statuses(sample):
    statuses = [(r.lineno, r.status) for r in sample['lines']]
    assert statuses == [
        (1, "skipped"),
        (2, "skipped"),
        (3, "skipped"),
        (4, "error"),
        (5, "compiled"),
        (6, "error"),
        (7, "compiled"),
        (8, "compiled"),
        (9, "skipped"),
        (10, "error"),
        (11, "skipped"),
    ]


def test_sample_program_errors(sample):
    assert sample['errors'] == [
        "Line 4: Syntax error: illegal operator combination '*/'",
        "Line 6: Semantic error: invalid symbol '%'",
        "Line 10: Lexical error: misspelled keyword 'WRITEE'",
    ]


def test_sample_program_shares_temporaries(sample):
    lines = sample['lines']
    assert [repr(t) for t in lines[4].tac] == ["t1 = a + c", "G = t1"]
    assert [repr(t) for t in lines[6].tac] == ["t2 = A / B", "t3 = t2 + C", "M = t3"]
    assert [repr(t) for t in lines[7].tac] == [
        "t4 = G / H",
        "t5 = t4 - I",
        "t6 = a * B",
        "t7 = t6 / c",
        "t8 = t5 + t7",
        "N = t8",
    ]


@pytest.mark.parametrize("line, expected", [
    ("LET G = a + c", True),
    ("G = a", True),
    ("temp", True),
    ("BEGIN", False),
    ("INTEGER A, B", False),
    ("INPUT A", False),
    ("WRITE M", False),
    ("END", False),
    ("   ", False),
])
def test_assignment_candidates(line, expected):
    assert is_assignment_candidate(Lexer(line).tokens) is expected


def test_non_assignment_line_goes_through_parser():
    [res] = compile_program(["temp"])
    assert res.status == "error"
    assert res.failed_stage == "parser"
    assert res.error.message == "expected '=' in assignment"


def test_session_can_be_supplied():
    session = CompilerSession()
    compile_program(["X = a + b"], session)
    compile_program(["Y = a + b"], session)
    assert session.temp_count == 2


def test_report_for_compiled_line():
    report = format_report(compile_program(["LET G = a + c"]))
    assert report == "\n".join([
        "Processing line 1: LET G = a + c",
        "Lexical Analysis Tokens:",
        "  [KEYWORD : LET]",
        "  [IDENTIFIER : G]",
        "  [SYMBOL : =]",
        "  [IDENTIFIER : a]",
        "  [OPERATOR : +]",
        "  [IDENTIFIER : c]",
        "Syntax Analysis: No Syntax Errors.",
        "Semantic Analysis: No Semantic Errors.",
        "Intermediate Code (Three-Address Code):",
        "  t1 = a + c",
        "  G = t1",
        "Assembly Code:",
        "  LDA a",
        "  OPER +",
        "  LDA c",
        "  STR t1",
        "  MOV t1 TO G",
        "Optimized Assembly Code:",
        "  LDA a",
        "  OPER +",
        "  LDA c",
        "  STR t1",
        "  MOV t1 TO G",
        "Target Machine Code (Binary):",
        "  01001100 01100001",
        "  01001111 00101011",
        "  01001100 01100011",
        "  01010011 01110100",
        "  01001101 01110100 01010100 01000111",
    ]) + "\n"


def test_report_for_rejected_lines():
    report = format_report(compile_program(["BEGIN", "X = a;", "X = a b", "X = é"]))
    assert "Processing line 1: BEGIN\nNo errors detected. (This line cannot be processed)" in report
    assert "Error detected: Syntax error: semicolon at end not allowed" in report
    assert "Syntax Analysis Error: unexpected tokens after valid assignment expression" in report
    assert "Semantic Analysis Error: invalid identifier: é" in report
    assert "Intermediate Code" not in report


def test_empty_report():
    assert format_report([]) == ""


def test_each_line_is_gated_and_lexed_once(monkeypatch):
    import vcompiler

    calls = {"gate": 0, "lex": 0}
    real_check_line = vcompiler.check_line

    def counting_check_line(line):
        calls["gate"] += 1
        return real_check_line(line)

    class CountingLexer(vcompiler.Lexer):
        def __init__(self, line):
            calls["lex"] += 1
            super().__init__(line)

    monkeypatch.setattr(vcompiler, "check_line", counting_check_line)
    monkeypatch.setattr(vcompiler, "Lexer", CountingLexer)

    results = compile_program(["BEGIN", "LET G = a + c", "X = a;"])
    assert [r.status for r in results] == ["skipped", "compiled", "error"]
    assert calls == {"gate": 3, "lex": 2}
