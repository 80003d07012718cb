"""
Command line tests
Tests script execution, exit codes, debug views and the interactive prompt
"""

import pytest
import main
from error_handling import EXIT_OK, EXIT_USAGE, EXIT_SOURCE_ERROR, EXIT_NO_INPUT, EXIT_RUNTIME_ERROR


@pytest.fixture
def script(tmp_path):
  """Write Lox source to a temporary script file and return its path"""

  def write(source, name="script.lox"):
    path = tmp_path / name
    path.write_text(source, encoding="utf-8")
    return str(path)

  return write


def scripted_input(lines):
  """Stand-in for input() that replays lines, then signals end of input"""
  pending = list(lines)

  def fake_input(prompt=""):
    if not pending:
      raise EOFError
    return pending.pop(0)

  return fake_input


class TestScriptExecution:
  """Test running script files"""

  def test_successful_run(self, script, capsys):
    """Test output and exit status of a clean script"""
    status = main.main([script("print 1 + 2;\nprint \"done\";")])
    captured = capsys.readouterr()
    assert status == EXIT_OK
    assert captured.out.splitlines() == ["3", "done"]
    assert captured.err == ""

  def test_syntax_error_status(self, script, capsys):
    """Test that parse errors exit 65 without running anything"""
    status = main.main([script("print 1;\nprint ;")])
    captured = capsys.readouterr()
    assert status == EXIT_SOURCE_ERROR
    assert captured.out == ""
    assert "[line 2] Error at ';': Expect expression." in captured.err

  def test_static_error_status(self, script, capsys):
    """Test that resolver errors exit 65"""
    status = main.main([script("return 1;")])
    assert status == EXIT_SOURCE_ERROR
    assert "Can't return from top-level code." in capsys.readouterr().err

  def test_runtime_error_status(self, script, capsys):
    """Test that runtime errors exit 70 after earlier output"""
    status = main.main([script("print \"before\";\nprint 1 / 0;")])
    captured = capsys.readouterr()
    assert status == EXIT_RUNTIME_ERROR
    assert captured.out.splitlines() == ["before"]
    assert "[line 2] Error: Division by zero." in captured.err

  def test_deep_recursion_runs(self, script, capsys):
    """Test that a recursive script hundreds of calls deep completes"""
    source = "fun s(n) { if (n == 0) return 0; return n + s(n - 1); }\nprint s(300);"
    status = main.main([script(source)])
    assert status == EXIT_OK
    assert capsys.readouterr().out.splitlines() == ["45150"]

  def test_stack_overflow_status(self, script, capsys):
    """Test that runaway recursion exits 70 with a diagnostic"""
    status = main.main([script("fun f() { f(); }\nf();")])
    assert status == EXIT_RUNTIME_ERROR
    assert "[line 1] Error: Stack overflow." in capsys.readouterr().err

  def test_missing_file(self, tmp_path, capsys):
    """Test that an unreadable script exits 66"""
    status = main.main([str(tmp_path / "absent.lox")])
    assert status == EXIT_NO_INPUT
    assert "not found" in capsys.readouterr().err

  def test_debug_traces_go_to_stderr(self, script, capsys):
    """Test that --debug traces without disturbing program output"""
    status = main.main(["--debug", script("{ var a = 1; print a; }")])
    captured = capsys.readouterr()
    assert status == EXIT_OK
    assert captured.out.splitlines() == ["1"]
    assert "[debug]" in captured.err


class TestDebugViews:
  """Test --parse and --analyze"""

  def test_parse_view(self, script, capsys):
    """Test that --parse prints the syntax tree without running"""
    status = main.main(["--parse", script("var x = 1 + 2;\nprint x;")])
    captured = capsys.readouterr()
    assert status == EXIT_OK
    assert captured.out.splitlines() == ["(var x = (+ 1 2))", "(print x)"]

  def test_parse_view_reports_errors(self, script, capsys):
    status = main.main(["--parse", script("var = 1;")])
    assert status == EXIT_SOURCE_ERROR
    assert "Expect variable name." in capsys.readouterr().err

  def test_analyze_view(self, script, capsys):
    """Test that --analyze lists resolved references"""
    status = main.main(["--analyze", script("{ var a = 1;\nprint a; }")])
    captured = capsys.readouterr()
    assert status == EXIT_OK
    assert "Resolved 1 local reference(s):" in captured.out
    assert "[line 2] read 'a' -> distance 0" in captured.out

  def test_view_without_script(self, capsys):
    """Test that debug views need a script"""
    assert main.main(["--parse"]) == EXIT_USAGE
    assert "need a script file" in capsys.readouterr().err

  def test_version(self, capsys):
    with pytest.raises(SystemExit) as excinfo:
      main.main(["--version"])
    assert excinfo.value.code == 0
    assert main.VERSION in capsys.readouterr().out


class TestInteractiveMode:
  """Test the REPL loop"""

  @pytest.fixture(autouse=True)
  def no_readline(self, monkeypatch):
    """Keep tests away from the user's history file"""
    monkeypatch.setattr(main, "setup_readline", lambda: None)

  def test_state_persists_between_lines(self, capsys):
    """Test that each line sees earlier definitions"""
    main.run_interactive_mode(input_func=scripted_input([
        "var a = 1;",
        "fun twice(x) { return x * 2; }",
        "print twice(a + 1);",
        "exit",
    ]))
    assert "4" in capsys.readouterr().out.splitlines()

  def test_errors_do_not_end_session(self, capsys):
    """Test that the prompt keeps going after an error"""
    main.run_interactive_mode(input_func=scripted_input([
        "print missing;",
        "print (;",
        "print 5;",
    ]))
    captured = capsys.readouterr()
    assert "Undefined variable 'missing'." in captured.err
    assert "Expect expression." in captured.err
    assert "5" in captured.out.splitlines()

  def test_env_command(self, capsys):
    """Test that :env lists user bindings"""
    main.run_interactive_mode(input_func=scripted_input([
        "var greeting = \"hi\";",
        ":env",
    ]))
    out = capsys.readouterr().out
    assert "  greeting = hi" in out
    assert "clock" not in out

  def test_parse_command(self, capsys):
    """Test that :parse shows the tree without running it"""
    main.run_interactive_mode(input_func=scripted_input([":parse print 1 + 2;"]))
    out = capsys.readouterr().out.splitlines()
    assert "(print (+ 1 2))" in out
    assert "3" not in out

  def test_help_command(self, capsys):
    main.run_interactive_mode(input_func=scripted_input([":help"]))
    assert "REPL Commands:" in capsys.readouterr().out
