"""
Lox Programming Language - Main Entry Point
Runs a script file or an interactive prompt through scan, parse, resolve, and evaluate
"""

import sys
import argparse
from pathlib import Path
from typing import Optional, List
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from parsing import create_parser, create_debug_parser, pretty_print_program, KEYWORDS, Variable
from semantics import create_analyzer, create_debug_analyzer
from interpreter import Interpreter, create_interpreter, create_debug_interpreter
from error_handling import (
    LoxErrorReporter,
    EXIT_OK, EXIT_USAGE, EXIT_SOURCE_ERROR, EXIT_NO_INPUT, EXIT_RUNTIME_ERROR,
)
from stdlib import stringify

VERSION = 'Lox v1.0.0 (Tree-Walking Interpreter)'
HISTORY_FILE = "~/.lox_history"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='lox',
      description='Lox Programming Language - a small dynamically-typed scripting language',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.lox             # Run a Lox script
  %(prog)s                        # Interactive mode
  %(prog)s --parse script.lox     # Parse and show the syntax tree
  %(prog)s --analyze script.lox   # Parse, resolve and show scope distances
  %(prog)s --debug script.lox     # Run with stage tracing on stderr
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Lox script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show the syntax tree (for debugging)'
  )

  parser.add_argument(
      '--analyze',
      action='store_true',
      help='Parse and resolve file, show the resolution table (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


# ============================================================================
# PIPELINE
# ============================================================================

def run_source(source: str, interpreter: Interpreter, reporter: LoxErrorReporter,
               debug: bool = False) -> int:
  """Scan, parse, resolve and run `source`; returns the exit status"""
  parser = create_debug_parser() if debug else create_parser()
  statements = parser.parse_string(source, reporter)
  if reporter.had_error:
    return EXIT_SOURCE_ERROR

  analyzer = create_debug_analyzer() if debug else create_analyzer()
  resolutions = analyzer.analyze(statements, reporter)
  if reporter.had_error:
    return EXIT_SOURCE_ERROR

  error = interpreter.interpret(statements, resolutions)
  if error is not None:
    reporter.runtime_error(error)
    return EXIT_RUNTIME_ERROR

  return EXIT_OK


def read_script(script_path: str) -> Optional[str]:
  """Read a script, reporting unreadable files on stderr"""
  try:
    return Path(script_path).read_text(encoding='utf-8')
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found", file=sys.stderr)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'", file=sys.stderr)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}", file=sys.stderr)
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding", file=sys.stderr)
  except IsADirectoryError:
    print(f"Error: '{script_path}' is a directory", file=sys.stderr)
  return None


def parse_file(script_path: str, debug: bool = False) -> int:
  """Parse a Lox script file and show the syntax tree"""
  source = read_script(script_path)
  if source is None:
    return EXIT_NO_INPUT

  reporter = LoxErrorReporter(source, script_path)
  parser = create_debug_parser() if debug else create_parser()
  statements = parser.parse_string(source, reporter)

  print(pretty_print_program(statements))
  reporter.report(with_context=debug)
  return reporter.exit_code()


def analyze_file(script_path: str, debug: bool = False) -> int:
  """Parse and resolve a Lox script file and show each resolved reference"""
  source = read_script(script_path)
  if source is None:
    return EXIT_NO_INPUT

  reporter = LoxErrorReporter(source, script_path)
  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()

  statements = parser.parse_string(source, reporter)
  if not reporter.had_error:
    resolutions = analyzer.analyze(statements, reporter)
    entries = sorted(resolutions.items(), key=lambda item: item[0].name.line)
    print(f"Resolved {len(entries)} local reference(s):")
    for expr, distance in entries:
      kind = "read" if isinstance(expr, Variable) else "assign"
      print(f"  [line {expr.name.line}] {kind} '{expr.name.lexeme}' -> distance {distance}")

  reporter.report(with_context=debug)
  return reporter.exit_code()


def run_script_file(script_path: str, debug: bool = False) -> int:
  """Run a Lox script file with full interpretation"""
  source = read_script(script_path)
  if source is None:
    return EXIT_NO_INPUT

  reporter = LoxErrorReporter(source, script_path)
  interpreter = create_debug_interpreter() if debug else create_interpreter()
  status = run_source(source, interpreter, reporter, debug)
  reporter.report(with_context=debug)
  return status


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

def setup_readline() -> None:
  """Setup readline with history and keyword completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First run, no history yet

  readline.set_history_length(1000)

  completions = sorted(KEYWORDS) + ["clock", "assert", ":parse", ":env", ":help", "exit"]

  def completer(text, state):
    options = [word for word in completions if word.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(_save_history, history_file)


def _save_history(history_file: str) -> None:
  try:
    readline.write_history_file(history_file)
  except OSError:
    pass


def show_help() -> None:
  print("REPL Commands:")
  print("  :parse <source>   - Show the parsed syntax tree")
  print("  :env              - Show user-defined globals")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")


def run_interactive_mode(debug: bool = False, input_func=input) -> None:
  """Run Lox in interactive mode; globals persist between lines"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if debug:
    print("Debug mode enabled")

  setup_readline()

  parser = create_debug_parser() if debug else create_parser()
  interpreter = create_debug_interpreter() if debug else create_interpreter()
  reporter = LoxErrorReporter()

  while True:
    try:
      line = input_func("> ")
    except (EOFError, KeyboardInterrupt):
      print()
      break

    code = line.strip()
    if not code:
      continue
    if code == "exit":
      break

    reporter.reset(line)

    if code == ":help":
      show_help()
    elif code == ":env":
      bindings = interpreter.user_globals()
      if not bindings:
        print("  (no user-defined bindings)")
      for name, value in bindings.items():
        print(f"  {name} = {stringify(value)}")
    elif code.startswith(":parse"):
      statements = parser.parse_string(code[len(":parse"):], reporter)
      if statements:
        print(pretty_print_program(statements))
    else:
      run_source(line, interpreter, reporter, debug)

    reporter.report(with_context=debug)


# ============================================================================
# ENTRY POINT
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
  """Main entry point for Lox; returns the process exit status"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.script:
    if args.parse:
      return parse_file(args.script, debug=args.debug)
    if args.analyze:
      return analyze_file(args.script, debug=args.debug)
    return run_script_file(args.script, debug=args.debug)

  if args.parse or args.analyze:
    arg_parser.print_usage(sys.stderr)
    print("Error: --parse and --analyze need a script file", file=sys.stderr)
    return EXIT_USAGE

  run_interactive_mode(debug=args.debug)
  return EXIT_OK


if __name__ == "__main__":
  sys.exit(main())
