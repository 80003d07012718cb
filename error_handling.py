"""
Error handling for the Lox interpreter
Diagnostic records, formatting, and the reporter that accumulates them per run
"""

from typing import List, Optional, Dict, TextIO
import sys


EXIT_OK = 0
EXIT_USAGE = 64
EXIT_SOURCE_ERROR = 65
EXIT_NO_INPUT = 66
EXIT_RUNTIME_ERROR = 70

STAGES = ('scan', 'parse', 'resolve', 'runtime')


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_diagnostic(line: int, message: str, where: str = "", stage: str = "scan") -> Dict:
    """Create an immutable diagnostic structure"""
    if stage not in STAGES:
        raise ValueError(f"Unknown diagnostic stage: {stage}")
    return {
        'line': line,
        'where': where,
        'message': message,
        'stage': stage,
    }


def format_diagnostic(diagnostic: Dict) -> str:
    """Format a diagnostic as `[line N] Error<where>: message`"""
    return f"[line {diagnostic['line']}] Error{diagnostic['where']}: {diagnostic['message']}"


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def where_for_token(token) -> str:
    """Location suffix for a diagnostic tied to a token"""
    if token.type == 'EOF':
        return " at end"
    return f" at '{token.lexeme}'"


def get_context_lines(source_text: str, line_num: int, context_lines: int = 1) -> str:
    """Get the lines around a diagnostic line, marking the offending one"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        marker = ">" if i == line_num - 1 else " "
        context_parts.append(f"{marker}{i + 1:4d}: {lines[i]}")

    return '\n'.join(context_parts)


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class LoxError(Exception):
    """Base class for errors raised by the Lox pipeline"""
    pass


class LoxParseError(LoxError):
    """Raised inside the parser to unwind to the nearest declaration boundary"""

    def __init__(self, token, message: str):
        self.token = token
        self.message = message
        super().__init__(message)


class LoxAssignmentTargetError(LoxParseError):
    """Assignment to something other than a variable; ends the parse"""
    pass


class LoxSemanticsError(LoxError):
    """Static errors found by the resolver, raised as a single exception"""

    def __init__(self, diagnostics: List[Dict]):
        self.diagnostics = diagnostics
        super().__init__("\n".join(format_diagnostic(d) for d in diagnostics))


class LoxRuntimeError(LoxError):
    """Fatal runtime error tied to the token where it happened"""

    def __init__(self, token, message: str):
        self.token = token
        self.message = message
        super().__init__(message)

    @property
    def line(self) -> int:
        return self.token.line if self.token is not None else 0

    def __str__(self) -> str:
        return format_diagnostic(make_diagnostic(self.line, self.message, stage="runtime"))


class LoxResolutionMismatch(AssertionError):
    """The resolver's scope distance disagrees with the runtime environment chain"""
    pass


# ============================================================================
# REPORTER
# ============================================================================

class LoxErrorReporter:
    """Collects diagnostics from every stage of one run"""

    def __init__(self, source_text: str = "", filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename
        self.diagnostics: List[Dict] = []

    def error(self, line: int, message: str, stage: str = "scan") -> Dict:
        """Record a diagnostic that has no token attached"""
        diagnostic = make_diagnostic(line, message, "", stage)
        self.diagnostics.append(diagnostic)
        return diagnostic

    def token_error(self, token, message: str, stage: str = "parse") -> Dict:
        """Record a diagnostic located at a token"""
        diagnostic = make_diagnostic(token.line, message, where_for_token(token), stage)
        self.diagnostics.append(diagnostic)
        return diagnostic

    def runtime_error(self, error: LoxRuntimeError) -> Dict:
        """Record the runtime error that halted execution"""
        return self.error(error.line, error.message, stage="runtime")

    @property
    def had_error(self) -> bool:
        """True when a scan, parse, or resolve diagnostic was reported"""
        return any(d['stage'] != 'runtime' for d in self.diagnostics)

    @property
    def had_runtime_error(self) -> bool:
        return any(d['stage'] == 'runtime' for d in self.diagnostics)

    def by_stage(self, stage: str) -> List[Dict]:
        return [d for d in self.diagnostics if d['stage'] == stage]

    def messages(self) -> List[str]:
        return [format_diagnostic(d) for d in self.diagnostics]

    def exit_code(self) -> int:
        """Process status for the diagnostics gathered so far"""
        if self.had_error:
            return EXIT_SOURCE_ERROR
        if self.had_runtime_error:
            return EXIT_RUNTIME_ERROR
        return EXIT_OK

    def context_for(self, line: int) -> Optional[str]:
        if not self.source_text or line <= 0:
            return None
        return get_context_lines(self.source_text, line)

    def report(self, stream: Optional[TextIO] = None, with_context: bool = False) -> None:
        """Write every diagnostic to stderr (or the given stream)"""
        stream = stream if stream is not None else sys.stderr
        for diagnostic in self.diagnostics:
            print(format_diagnostic(diagnostic), file=stream)
            if with_context:
                context = self.context_for(diagnostic['line'])
                if context:
                    print(context, file=stream)

    def reset(self, source_text: str = "") -> None:
        """Start a fresh run, as the REPL does for every line"""
        self.source_text = source_text
        self.diagnostics = []
