import os
import subprocess
import sys
from pathlib import Path

import pytest

import ir_inspect


SCRIPT = Path(__file__).resolve().parents[1] / "ir_inspect.py"

SOURCE = """; ModuleID = 'sample.c'
define i32 @answer() {
entry:
  %x = add i32 40, 2
  ret i32 %x
}
"""


def _write_source(base: Path) -> Path:
    path = base / "sample.ll"
    path.write_text(SOURCE, "utf-8")
    return path


def _run(*args: str, stdin: str = "") -> subprocess.CompletedProcess:
    env = dict(os.environ, PYTHONIOENCODING="utf-8")
    return subprocess.run(
        [sys.executable, str(SCRIPT), *args],
        input=stdin,
        capture_output=True,
        text=True,
        encoding="utf-8",
        env=env,
    )


def test_cli_writes_report_file(tmp_path: Path) -> None:
    source = _write_source(tmp_path)
    report = tmp_path / "report.txt"

    result = _run(str(source), "--output", str(report))

    assert result.returncode == 0, result.stderr
    assert f"report written to {report}" in result.stdout
    assert "total execution time" in result.stdout
    text = report.read_text("utf-8")
    assert f"📁 Module: {source}" in text
    assert "🔧 Function Definition: answer()" in text
    assert "Value: x" in text


def test_cli_reports_to_stderr_by_default(tmp_path: Path) -> None:
    source = _write_source(tmp_path)

    result = _run(str(source))

    assert result.returncode == 0, result.stderr
    assert "🔍 LLVM MODULE ANALYSIS" in result.stderr
    assert "LLVM MODULE ANALYSIS" not in result.stdout


def test_cli_reads_standard_input() -> None:
    result = _run("-", stdin=SOURCE)

    assert result.returncode == 0, result.stderr
    assert "📁 Module: <stdin>" in result.stderr


def test_cli_rejects_missing_input(tmp_path: Path) -> None:
    missing = tmp_path / "absent.ll"

    result = _run(str(missing))

    assert result.returncode != 0
    assert f"missing input file: {missing}" in result.stderr


def test_cli_reports_parse_errors(tmp_path: Path) -> None:
    broken = tmp_path / "broken.ll"
    broken.write_text("define i32 @f() {\nentry:\n  ret i32 %nope\n}\n", "utf-8")

    with pytest.raises(SystemExit) as excinfo:
        ir_inspect.main([str(broken)])

    assert "line 3: use of undefined value '%nope'" in str(excinfo.value)


def test_parse_args_defaults() -> None:
    args = ir_inspect.parse_args(["a.ll"])

    assert args.inputs == ["a.ll"]
    assert args.output is None
    assert args.datalayout is None
    assert args.opt_level == 0
    assert args.log_level == "WARNING"


def test_main_with_datalayout_override(tmp_path: Path, capsys) -> None:
    source = tmp_path / "wide.ll"
    source.write_text("define void @f() {\nentry:\n  %p = alloca i64\n  ret void\n}\n", "utf-8")
    report = tmp_path / "wide.txt"

    ir_inspect.main([str(source), "--datalayout", "e-i64:32:32", "--output", str(report), "-O", "2"])

    assert "Alignment: 4 bytes" in report.read_text("utf-8")
    assert "report written to" in capsys.readouterr().out
