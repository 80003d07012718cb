"""
Lox Semantics Analysis - Static Scope Resolution
Walks the syntax tree once, recording how many scopes separate each variable
use from its declaration
"""

from typing import Any, Callable, Dict, List, Optional
import sys

from parsing import (
    Token, Expr, Stmt,
    Literal, Grouping, Unary, Binary, Logical, Variable, Assign, Call,
    ExpressionStmt, Print, Var, Block, If, While, Function, Return, Class, NoOp,
)
from error_handling import LoxErrorReporter, LoxSemanticsError


# Kinds of code the resolver can be inside of
FUNCTION_NONE = "none"
FUNCTION_FUNCTION = "function"
FUNCTION_METHOD = "method"


class Resolver:
  """Static pass that builds the resolution table for the interpreter

  The scope stack mirrors the environments the interpreter will create:
  one per block and one per function call. The global scope is not on the
  stack, so names that are never found there resolve to globals at runtime.
  """

  def __init__(self, reporter: Optional[LoxErrorReporter] = None, debug: bool = False):
    self.reporter = reporter if reporter is not None else LoxErrorReporter()
    self.debug = debug
    self.scopes: List[Dict[str, bool]] = []
    self.current_function = FUNCTION_NONE
    self.locals: Dict[Expr, int] = {}

    self._statement_handlers: Dict[type, Callable[[Any], None]] = {
        Block: self._resolve_block,
        Var: self._resolve_var,
        Function: self._resolve_function_declaration,
        Class: self._resolve_class,
        ExpressionStmt: lambda stmt: self.resolve_expression(stmt.expression),
        Print: lambda stmt: self.resolve_expression(stmt.expression),
        If: self._resolve_if,
        While: self._resolve_while,
        Return: self._resolve_return,
        NoOp: lambda stmt: None,
    }
    self._expression_handlers: Dict[type, Callable[[Any], None]] = {
        Variable: self._resolve_variable,
        Assign: self._resolve_assign,
        Binary: self._resolve_operands,
        Logical: self._resolve_operands,
        Unary: lambda expr: self.resolve_expression(expr.right),
        Grouping: lambda expr: self.resolve_expression(expr.expression),
        Call: self._resolve_call,
        Literal: lambda expr: None,
    }

  # ==========================================================================
  # ENTRY POINTS
  # ==========================================================================

  def resolve(self, statements: List[Stmt]) -> Dict[Expr, int]:
    """Resolve a whole program and return the node -> distance table"""
    for statement in statements:
      self.resolve_statement(statement)
    return self.locals

  def resolve_statement(self, stmt: Stmt) -> None:
    handler = self._statement_handlers.get(type(stmt))
    if handler is None:
      raise TypeError(f"Unknown statement node: {type(stmt).__name__}")
    handler(stmt)

  def resolve_expression(self, expr: Expr) -> None:
    handler = self._expression_handlers.get(type(expr))
    if handler is None:
      raise TypeError(f"Unknown expression node: {type(expr).__name__}")
    handler(expr)

  # ==========================================================================
  # SCOPES
  # ==========================================================================

  def _begin_scope(self) -> None:
    self.scopes.append({})

  def _end_scope(self) -> None:
    self.scopes.pop()

  def _declare(self, name: Token) -> None:
    if not self.scopes:
      return

    scope = self.scopes[-1]
    if name.lexeme in scope:
      self.reporter.token_error(name, "Already a variable with this name in this scope.", stage="resolve")
    scope[name.lexeme] = False

  def _define(self, name: Token) -> None:
    if not self.scopes:
      return
    self.scopes[-1][name.lexeme] = True

  def _resolve_local(self, expr: Expr, name: Token) -> None:
    """Record the hop count to the nearest scope declaring `name`"""
    for depth, scope in enumerate(reversed(self.scopes)):
      if name.lexeme in scope:
        self.locals[expr] = depth
        if self.debug:
          print(f"[debug] resolved '{name.lexeme}' (line {name.line}) at distance {depth}", file=sys.stderr)
        return
    # Not found: left unresolved and looked up in globals at runtime

  # ==========================================================================
  # STATEMENTS
  # ==========================================================================

  def _resolve_block(self, stmt: Block) -> None:
    self._begin_scope()
    for statement in stmt.statements:
      self.resolve_statement(statement)
    self._end_scope()

  def _resolve_var(self, stmt: Var) -> None:
    self._declare(stmt.name)
    if stmt.initializer is not None:
      self.resolve_expression(stmt.initializer)
    self._define(stmt.name)

  def _resolve_function_declaration(self, stmt: Function) -> None:
    # Defined before the body so the function can refer to itself
    self._declare(stmt.name)
    self._define(stmt.name)
    self._resolve_function(stmt, FUNCTION_FUNCTION)

  def _resolve_function(self, function: Function, function_type: str) -> None:
    enclosing_function = self.current_function
    self.current_function = function_type

    self._begin_scope()
    for param in function.params:
      self._declare(param)
      self._define(param)
    for statement in function.body:
      self.resolve_statement(statement)
    self._end_scope()

    self.current_function = enclosing_function

  def _resolve_class(self, stmt: Class) -> None:
    self._declare(stmt.name)
    self._define(stmt.name)
    for method in stmt.methods:
      self._resolve_function(method, FUNCTION_METHOD)

  def _resolve_if(self, stmt: If) -> None:
    self.resolve_expression(stmt.condition)
    self.resolve_statement(stmt.then_branch)
    if stmt.else_branch is not None:
      self.resolve_statement(stmt.else_branch)

  def _resolve_while(self, stmt: While) -> None:
    self.resolve_expression(stmt.condition)
    self.resolve_statement(stmt.body)

  def _resolve_return(self, stmt: Return) -> None:
    if self.current_function == FUNCTION_NONE:
      self.reporter.token_error(stmt.keyword, "Can't return from top-level code.", stage="resolve")
    if stmt.value is not None:
      self.resolve_expression(stmt.value)

  # ==========================================================================
  # EXPRESSIONS
  # ==========================================================================

  def _resolve_variable(self, expr: Variable) -> None:
    name = expr.name.lexeme
    for scope in reversed(self.scopes):
      if name in scope:
        if scope[name] is False:
          self.reporter.token_error(
              expr.name, "Can't read local variable in its own initializer.", stage="resolve"
          )
        break
    self._resolve_local(expr, expr.name)

  def _resolve_assign(self, expr: Assign) -> None:
    self.resolve_expression(expr.value)
    self._resolve_local(expr, expr.name)

  def _resolve_operands(self, expr) -> None:
    self.resolve_expression(expr.left)
    self.resolve_expression(expr.right)

  def _resolve_call(self, expr: Call) -> None:
    self.resolve_expression(expr.callee)
    for argument in expr.arguments:
      self.resolve_expression(argument)


# ============================================================================
# FACTORY FUNCTIONS (for compatibility with main.py)
# ============================================================================

def resolve_program(statements: List[Stmt], reporter: Optional[LoxErrorReporter] = None,
                    debug: bool = False) -> Dict[Expr, int]:
  """Resolve statements, reporting static errors into `reporter`"""
  return Resolver(reporter, debug).resolve(statements)


def create_analyzer(debug: bool = False):
  """Factory function returning an analyzer object"""

  def analyze(statements: List[Stmt], reporter: Optional[LoxErrorReporter] = None) -> Dict[Expr, int]:
    return resolve_program(statements, reporter, debug)

  def analyze_strict(statements: List[Stmt]) -> Dict[Expr, int]:
    """Resolve, raising LoxSemanticsError instead of collecting diagnostics"""
    reporter = LoxErrorReporter()
    table = resolve_program(statements, reporter, debug)
    if reporter.had_error:
      raise LoxSemanticsError(reporter.by_stage("resolve"))
    return table

  return type('Analyzer', (), {
      'analyze': lambda self, statements, reporter=None: analyze(statements, reporter),
      'analyze_strict': lambda self, statements: analyze_strict(statements),
      'debug': debug,
  })()


def create_debug_analyzer():
  """Factory function returning a debug analyzer"""
  return create_analyzer(debug=True)
