"""
Lox Programming Language Parser
Tokenizer, syntax tree, and recursive-descent parser with panic-mode recovery
"""

from typing import List, Dict, Any, Optional, Callable, Tuple
from dataclasses import dataclass, field
import sys

# Import pyparsing with error handling
try:
    from pyparsing import Regex, MatchFirst, one_of, lineno
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from error_handling import (
    LoxErrorReporter, LoxParseError, LoxAssignmentTargetError
)


MAX_ARGUMENTS = 255


# ============================================================================
# TOKENS
# ============================================================================

SINGLE_CHAR_TOKENS = {
    '(': 'LEFT_PAREN', ')': 'RIGHT_PAREN',
    '{': 'LEFT_BRACE', '}': 'RIGHT_BRACE',
    ',': 'COMMA', '.': 'DOT', '-': 'MINUS', '+': 'PLUS',
    ';': 'SEMICOLON', '/': 'SLASH', '*': 'STAR',
    '!': 'BANG', '=': 'EQUAL', '>': 'GREATER', '<': 'LESS',
}

DOUBLE_CHAR_TOKENS = {
    '!=': 'BANG_EQUAL', '==': 'EQUAL_EQUAL',
    '>=': 'GREATER_EQUAL', '<=': 'LESS_EQUAL',
}

KEYWORDS = {
    'and': 'AND', 'class': 'CLASS', 'else': 'ELSE', 'false': 'FALSE',
    'for': 'FOR', 'fun': 'FUN', 'if': 'IF', 'nil': 'NIL', 'or': 'OR',
    'print': 'PRINT', 'return': 'RETURN', 'super': 'SUPER', 'this': 'THIS',
    'true': 'TRUE', 'var': 'VAR', 'while': 'WHILE',
}

# Token types that begin a declaration or statement; recovery stops before them
STATEMENT_STARTS = frozenset({'CLASS', 'FUN', 'VAR', 'FOR', 'IF', 'WHILE', 'PRINT', 'RETURN'})

WHITESPACE = " \t\r\n"


@dataclass(frozen=True)
class Token:
    """Lox token with the source line it ended on"""
    type: str
    lexeme: str
    literal: Any
    line: int

    def __str__(self) -> str:
        return f"{self.type} {self.lexeme} {self.literal}"


class LoxTokenizer:
    """Lox tokenizer built from pyparsing token expressions"""

    def __init__(self, reporter: Optional[LoxErrorReporter] = None):
        self.reporter = reporter if reporter is not None else LoxErrorReporter()
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns for Lox"""

        # Comments run to end of line; listed before operators so '//' beats '/'
        comment = Regex(r"//[^\n]*").set_parse_action(lambda t: ("COMMENT", t[0]))

        # Strings may span lines; an opening quote with no closing one eats the rest
        string = Regex(r'"[^"]*"').set_parse_action(lambda t: ("STRING", t[0]))
        unterminated = Regex(r'"[^"]*').set_parse_action(lambda t: ("UNTERMINATED", t[0]))

        # A trailing '.' without digits is left for the DOT token
        number = Regex(r"[0-9]+(\.[0-9]+)?").set_parse_action(lambda t: ("NUMBER", t[0]))

        identifier = Regex(r"[A-Za-z_][A-Za-z0-9_]*").set_parse_action(
            lambda t: ("IDENTIFIER", t[0])
        )

        # one_of reorders alternatives so the longest operator wins
        operators = one_of(list(DOUBLE_CHAR_TOKENS) + list(SINGLE_CHAR_TOKENS)).set_parse_action(
            lambda t: ("OPERATOR", t[0])
        )

        self.token_expr = MatchFirst(
            [comment, string, unterminated, number, identifier, operators]
        ).parse_with_tabs()
        self.token_expr.set_whitespace_chars(WHITESPACE)

    def tokenize(self, text: str) -> List[Token]:
        """Scan source text into tokens terminated by EOF"""
        tokens = []
        position = 0

        for result, start, end in self.token_expr.scan_string(text):
            self._report_unexpected(text, position, start)
            position = end

            kind, lexeme = result[0]
            token = self._make_token(kind, lexeme, lineno(end, text))
            if token is not None:
                tokens.append(token)

        self._report_unexpected(text, position, len(text))
        tokens.append(Token('EOF', '', None, lineno(len(text), text)))
        return tokens

    def _make_token(self, kind: str, lexeme: str, line: int) -> Optional[Token]:
        """Convert a pyparsing match into a Token, or None for skipped text"""
        if kind == "COMMENT":
            return None
        if kind == "UNTERMINATED":
            self.reporter.error(line, "Unterminated string.")
            return None
        if kind == "STRING":
            return Token('STRING', lexeme, lexeme[1:-1], line)
        if kind == "NUMBER":
            return Token('NUMBER', lexeme, float(lexeme), line)
        if kind == "IDENTIFIER":
            if lexeme in KEYWORDS:
                return Token(KEYWORDS[lexeme], lexeme, None, line)
            return Token('IDENTIFIER', lexeme, lexeme, line)

        token_type = DOUBLE_CHAR_TOKENS.get(lexeme) or SINGLE_CHAR_TOKENS[lexeme]
        return Token(token_type, lexeme, None, line)

    def _report_unexpected(self, text: str, start: int, end: int) -> None:
        """Report every non-whitespace character the token patterns skipped"""
        for pos in range(start, end):
            if text[pos] not in WHITESPACE:
                self.reporter.error(lineno(pos, text), "Unexpected character.")


# ============================================================================
# SYNTAX TREE
# ============================================================================
# Nodes compare by identity: the resolver keys its side table on each node.

class Expr:
    """Base class for expression nodes"""
    pass


class Stmt:
    """Base class for statement nodes"""
    pass


@dataclass(frozen=True, eq=False)
class Literal(Expr):
    value: Any
    token: Optional[Token] = None


@dataclass(frozen=True, eq=False)
class Grouping(Expr):
    expression: Expr


@dataclass(frozen=True, eq=False)
class Unary(Expr):
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Binary(Expr):
    left: Expr
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Logical(Expr):
    left: Expr
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Variable(Expr):
    name: Token


@dataclass(frozen=True, eq=False)
class Assign(Expr):
    name: Token
    value: Expr


@dataclass(frozen=True, eq=False)
class Call(Expr):
    callee: Expr
    paren: Token
    arguments: List[Expr] = field(default_factory=list)


@dataclass(frozen=True, eq=False)
class ExpressionStmt(Stmt):
    expression: Expr


@dataclass(frozen=True, eq=False)
class Print(Stmt):
    expression: Expr


@dataclass(frozen=True, eq=False)
class Var(Stmt):
    name: Token
    initializer: Optional[Expr] = None


@dataclass(frozen=True, eq=False)
class Block(Stmt):
    statements: List[Stmt] = field(default_factory=list)


@dataclass(frozen=True, eq=False)
class If(Stmt):
    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt] = None


@dataclass(frozen=True, eq=False)
class While(Stmt):
    condition: Expr
    body: Stmt


@dataclass(frozen=True, eq=False)
class Function(Stmt):
    name: Token
    params: List[Token] = field(default_factory=list)
    body: List[Stmt] = field(default_factory=list)


@dataclass(frozen=True, eq=False)
class Return(Stmt):
    keyword: Token
    value: Optional[Expr] = None


@dataclass(frozen=True, eq=False)
class Class(Stmt):
    name: Token
    methods: List[Function] = field(default_factory=list)


@dataclass(frozen=True, eq=False)
class NoOp(Stmt):
    """Stands in for a declaration discarded by error recovery"""
    pass


# ============================================================================
# GRAMMAR
# ============================================================================

class LoxGrammar:
    """Recursive-descent parser over an already scanned token list"""

    def __init__(self, tokens: List[Token], reporter: LoxErrorReporter, debug: bool = False):
        self.tokens = tokens
        self.reporter = reporter
        self.debug = debug
        self.current = 0

    # ---------------------------------------------------------------- program

    def program(self) -> List[Stmt]:
        """program -> declaration* EOF"""
        statements = []
        try:
            while not self._is_at_end():
                statements.append(self._declaration())
        except LoxAssignmentTargetError:
            if self.debug:
                print("[debug] parse stopped at invalid assignment target", file=sys.stderr)
        return statements

    def single_expression(self) -> Optional[Expr]:
        """Parse exactly one expression followed by EOF"""
        try:
            expr = self._expression()
            if not self._is_at_end():
                raise self._error(self._peek(), "Expect end of expression.")
            return expr
        except LoxParseError:
            return None

    # ----------------------------------------------------------- declarations

    def _declaration(self) -> Stmt:
        try:
            if self._match('CLASS'):
                return self._class_declaration()
            if self._match('FUN'):
                return self._function("function")
            if self._match('VAR'):
                return self._var_declaration()
            return self._statement()
        except LoxAssignmentTargetError:
            raise
        except LoxParseError:
            self._synchronize()
            return NoOp()

    def _class_declaration(self) -> Stmt:
        name = self._consume('IDENTIFIER', "Expect class name.")
        self._consume('LEFT_BRACE', "Expect '{' before class body.")

        methods = []
        while not self._check('RIGHT_BRACE') and not self._is_at_end():
            methods.append(self._function("method"))

        self._consume('RIGHT_BRACE', "Expect '}' after class body.")
        return Class(name, methods)

    def _function(self, kind: str) -> Function:
        name = self._consume('IDENTIFIER', f"Expect {kind} name.")
        self._consume('LEFT_PAREN', f"Expect '(' after {kind} name.")

        params = []
        if not self._check('RIGHT_PAREN'):
            while True:
                if len(params) >= MAX_ARGUMENTS:
                    self._error(self._peek(), f"Can't have more than {MAX_ARGUMENTS} parameters.")
                params.append(self._consume('IDENTIFIER', "Expect parameter name."))
                if not self._match('COMMA'):
                    break
        self._consume('RIGHT_PAREN', "Expect ')' after parameters.")

        self._consume('LEFT_BRACE', f"Expect '{{' before {kind} body.")
        body = self._block()
        return Function(name, params, body)

    def _var_declaration(self) -> Stmt:
        name = self._consume('IDENTIFIER', "Expect variable name.")

        initializer = None
        if self._match('EQUAL'):
            initializer = self._expression()

        self._consume('SEMICOLON', "Expect ';' after variable declaration.")
        return Var(name, initializer)

    # ------------------------------------------------------------- statements

    def _statement(self) -> Stmt:
        if self._match('FOR'):
            return self._for_statement()
        if self._match('IF'):
            return self._if_statement()
        if self._match('PRINT'):
            return self._print_statement()
        if self._match('RETURN'):
            return self._return_statement()
        if self._match('WHILE'):
            return self._while_statement()
        if self._match('LEFT_BRACE'):
            return Block(self._block())
        return self._expression_statement()

    def _for_statement(self) -> Stmt:
        """Desugar `for (init; cond; incr) body` into a while loop"""
        self._consume('LEFT_PAREN', "Expect '(' after 'for'.")

        if self._match('SEMICOLON'):
            initializer = None
        elif self._match('VAR'):
            initializer = self._var_declaration()
        else:
            initializer = self._expression_statement()

        condition = None
        if not self._check('SEMICOLON'):
            condition = self._expression()
        self._consume('SEMICOLON', "Expect ';' after loop condition.")

        increment = None
        if not self._check('RIGHT_PAREN'):
            increment = self._expression()
        self._consume('RIGHT_PAREN', "Expect ')' after for clauses.")

        body = self._statement()

        if increment is not None:
            body = Block([body, ExpressionStmt(increment)])
        if condition is None:
            condition = Literal(True)
        body = While(condition, body)
        if initializer is not None:
            body = Block([initializer, body])

        return body

    def _if_statement(self) -> Stmt:
        self._consume('LEFT_PAREN', "Expect '(' after 'if'.")
        condition = self._expression()
        self._consume('RIGHT_PAREN', "Expect ')' after if condition.")

        then_branch = self._statement()
        else_branch = None
        if self._match('ELSE'):
            else_branch = self._statement()

        return If(condition, then_branch, else_branch)

    def _print_statement(self) -> Stmt:
        value = self._expression()
        self._consume('SEMICOLON', "Expect ';' after value.")
        return Print(value)

    def _return_statement(self) -> Stmt:
        keyword = self._previous()
        value = None
        if not self._check('SEMICOLON'):
            value = self._expression()

        self._consume('SEMICOLON', "Expect ';' after return value.")
        return Return(keyword, value)

    def _while_statement(self) -> Stmt:
        self._consume('LEFT_PAREN', "Expect '(' after 'while'.")
        condition = self._expression()
        self._consume('RIGHT_PAREN', "Expect ')' after condition.")
        body = self._statement()
        return While(condition, body)

    def _block(self) -> List[Stmt]:
        statements = []
        while not self._check('RIGHT_BRACE') and not self._is_at_end():
            statements.append(self._declaration())

        self._consume('RIGHT_BRACE', "Expect '}' after block.")
        return statements

    def _expression_statement(self) -> Stmt:
        expr = self._expression()
        self._consume('SEMICOLON', "Expect ';' after expression.")
        return ExpressionStmt(expr)

    # ------------------------------------------------------------ expressions

    def _expression(self) -> Expr:
        return self._assignment()

    def _assignment(self) -> Expr:
        expr = self._or()

        if self._match('EQUAL'):
            equals = self._previous()
            value = self._assignment()

            if isinstance(expr, Variable):
                return Assign(expr.name, value)

            self.reporter.token_error(equals, "Invalid assignment target.")
            raise LoxAssignmentTargetError(equals, "Invalid assignment target.")

        return expr

    def _binary_level(self, operand: Callable[[], Expr], operator_types: Tuple[str, ...],
                      node_type: type = Binary) -> Expr:
        """Parse a left-associative run of `operand (op operand)*`"""
        expr = operand()
        while self._match(*operator_types):
            operator = self._previous()
            right = operand()
            expr = node_type(expr, operator, right)
        return expr

    def _or(self) -> Expr:
        return self._binary_level(self._and, ('OR',), Logical)

    def _and(self) -> Expr:
        return self._binary_level(self._equality, ('AND',), Logical)

    def _equality(self) -> Expr:
        return self._binary_level(self._comparison, ('BANG_EQUAL', 'EQUAL_EQUAL'))

    def _comparison(self) -> Expr:
        return self._binary_level(
            self._term, ('GREATER', 'GREATER_EQUAL', 'LESS', 'LESS_EQUAL')
        )

    def _term(self) -> Expr:
        return self._binary_level(self._factor, ('MINUS', 'PLUS'))

    def _factor(self) -> Expr:
        return self._binary_level(self._unary, ('SLASH', 'STAR'))

    def _unary(self) -> Expr:
        if self._match('BANG', 'MINUS'):
            operator = self._previous()
            right = self._unary()
            return Unary(operator, right)
        return self._call()

    def _call(self) -> Expr:
        expr = self._primary()
        while self._match('LEFT_PAREN'):
            expr = self._finish_call(expr)
        return expr

    def _finish_call(self, callee: Expr) -> Expr:
        arguments = []
        if not self._check('RIGHT_PAREN'):
            while True:
                if len(arguments) >= MAX_ARGUMENTS:
                    # Reported but not raised: parsing carries on
                    self._error(self._peek(), f"Can't have more than {MAX_ARGUMENTS} arguments.")
                arguments.append(self._expression())
                if not self._match('COMMA'):
                    break

        paren = self._consume('RIGHT_PAREN', "Expect ')' after arguments.")
        return Call(callee, paren, arguments)

    def _primary(self) -> Expr:
        if self._match('FALSE'):
            return Literal(False, self._previous())
        if self._match('TRUE'):
            return Literal(True, self._previous())
        if self._match('NIL'):
            return Literal(None, self._previous())
        if self._match('NUMBER', 'STRING'):
            token = self._previous()
            return Literal(token.literal, token)
        if self._match('IDENTIFIER'):
            return Variable(self._previous())
        if self._match('LEFT_PAREN'):
            expr = self._expression()
            self._consume('RIGHT_PAREN', "Expect ')' after expression.")
            return Grouping(expr)

        raise self._error(self._peek(), "Expect expression.")

    # ---------------------------------------------------------------- cursor

    def _match(self, *types: str) -> bool:
        for token_type in types:
            if self._check(token_type):
                self._advance()
                return True
        return False

    def _check(self, token_type: str) -> bool:
        if self._is_at_end():
            return False
        return self._peek().type == token_type

    def _advance(self) -> Token:
        if not self._is_at_end():
            self.current += 1
        return self._previous()

    def _is_at_end(self) -> bool:
        return self._peek().type == 'EOF'

    def _peek(self) -> Token:
        return self.tokens[self.current]

    def _previous(self) -> Token:
        return self.tokens[self.current - 1]

    def _consume(self, token_type: str, message: str) -> Token:
        if self._check(token_type):
            return self._advance()
        raise self._error(self._peek(), message)

    def _error(self, token: Token, message: str) -> LoxParseError:
        self.reporter.token_error(token, message, stage="parse")
        return LoxParseError(token, message)

    def _synchronize(self) -> None:
        """Discard tokens until a likely statement boundary"""
        self._advance()
        while not self._is_at_end():
            if self._previous().type == 'SEMICOLON':
                return
            if self._peek().type in STATEMENT_STARTS:
                return
            self._advance()


# ============================================================================
# PARSER FACADE
# ============================================================================

class LoxParser:
    """Main Lox parser combining tokenizer and grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def tokenize(self, text: str, reporter: Optional[LoxErrorReporter] = None) -> List[Token]:
        """Tokenize Lox source code"""
        tokens = LoxTokenizer(reporter).tokenize(text)
        if self.debug:
            print(f"[debug] scanned {len(tokens)} tokens", file=sys.stderr)
        return tokens

    def parse_string(self, text: str, reporter: Optional[LoxErrorReporter] = None) -> List[Stmt]:
        """Parse Lox source code from string"""
        if reporter is None:
            reporter = LoxErrorReporter(text)
        tokens = self.tokenize(text, reporter)
        statements = LoxGrammar(tokens, reporter, self.debug).program()
        if self.debug:
            print(f"[debug] parsed {len(statements)} statements", file=sys.stderr)
        return statements

    def parse_expression(self, text: str, reporter: Optional[LoxErrorReporter] = None) -> Optional[Expr]:
        """Parse a single Lox expression"""
        if reporter is None:
            reporter = LoxErrorReporter(text)
        tokens = self.tokenize(text, reporter)
        return LoxGrammar(tokens, reporter, self.debug).single_expression()


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> LoxParser:
    """Create a Lox parser"""
    return LoxParser(debug=debug)


def create_debug_parser() -> LoxParser:
    """Create a Lox parser with debug enabled"""
    return LoxParser(debug=True)


# ============================================================================
# PRETTY PRINTING
# ============================================================================

def _parenthesize(name: str, *parts: Any) -> str:
    pieces = [name]
    for part in parts:
        if isinstance(part, (Expr, Stmt)):
            pieces.append(pretty_print_ast(part))
        else:
            pieces.append(str(part))
    return "(" + " ".join(pieces) + ")"


def _literal_text(value: Any) -> str:
    if value is None:
        return "nil"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def _print_function(node: Function, keyword: str = "fun") -> str:
    params = " ".join(p.lexeme for p in node.params)
    return _parenthesize(f"{keyword} {node.name.lexeme}({params})", *node.body)


AST_PRINTERS: Dict[type, Callable[[Any], str]] = {
    Literal: lambda n: _literal_text(n.value),
    Grouping: lambda n: _parenthesize("group", n.expression),
    Unary: lambda n: _parenthesize(n.operator.lexeme, n.right),
    Binary: lambda n: _parenthesize(n.operator.lexeme, n.left, n.right),
    Logical: lambda n: _parenthesize(n.operator.lexeme, n.left, n.right),
    Variable: lambda n: n.name.lexeme,
    Assign: lambda n: _parenthesize("=", n.name.lexeme, n.value),
    Call: lambda n: _parenthesize("call", n.callee, *n.arguments),
    ExpressionStmt: lambda n: _parenthesize(";", n.expression),
    Print: lambda n: _parenthesize("print", n.expression),
    Var: lambda n: (_parenthesize("var", n.name.lexeme, "=", n.initializer)
                    if n.initializer is not None else _parenthesize("var", n.name.lexeme)),
    Block: lambda n: _parenthesize("block", *n.statements),
    If: lambda n: (_parenthesize("if", n.condition, n.then_branch, n.else_branch)
                   if n.else_branch is not None else _parenthesize("if", n.condition, n.then_branch)),
    While: lambda n: _parenthesize("while", n.condition, n.body),
    Function: _print_function,
    Return: lambda n: (_parenthesize("return", n.value)
                       if n.value is not None else "(return)"),
    Class: lambda n: _parenthesize(f"class {n.name.lexeme}",
                                   *[_print_function(m, "method") for m in n.methods]),
    NoOp: lambda n: "(noop)",
}


def pretty_print_ast(node: Any) -> str:
    """Render a node in parenthesized prefix form for debugging"""
    printer = AST_PRINTERS.get(type(node))
    if printer is None:
        raise TypeError(f"Cannot print node of type {type(node).__name__}")
    return printer(node)


def pretty_print_program(statements: List[Stmt]) -> str:
    return "\n".join(pretty_print_ast(stmt) for stmt in statements)
