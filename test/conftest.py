"""
Test configuration for Lox interpreter tests
"""

import io
import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser
from semantics import create_analyzer
from interpreter import create_interpreter
from error_handling import LoxErrorReporter


@pytest.fixture
def reporter():
  """Provide a fresh diagnostic reporter for each test"""
  return LoxErrorReporter()


@pytest.fixture
def run_source():
  """Run a program through every stage, returning (output lines, reporter, runtime error)"""

  def run(source):
    reporter = LoxErrorReporter(source)
    output = io.StringIO()
    statements = create_parser().parse_string(source, reporter)
    if reporter.had_error:
      return [], reporter, None

    resolutions = create_analyzer().analyze(statements, reporter)
    if reporter.had_error:
      return [], reporter, None

    error = create_interpreter(output=output).interpret(statements, resolutions)
    if error is not None:
      reporter.runtime_error(error)
    return output.getvalue().splitlines(), reporter, error

  return run
