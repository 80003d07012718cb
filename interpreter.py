"""
Lox Interpreter - Tree-Walking Evaluation
Executes resolved statements against a chain of shared, mutable environments
"""

from typing import Any, Callable, Dict, List, Optional, TextIO
import operator
import sys

from parsing import (
    Token, Expr, Stmt,
    Literal, Grouping, Unary, Binary, Logical, Variable, Assign, Call,
    ExpressionStmt, Print, Var, Block, If, While, Function, Return, Class, NoOp,
)
from error_handling import LoxRuntimeError, LoxResolutionMismatch
from utilities import (
  is_truthy,
  is_equal,
  check_number_operand,
  binary_arithmetic_op,
  lox_add,
  lox_divide,
  arity_error,
  undefined_variable_error,
)
from stdlib import LoxCallable, builtin_functions, stringify


# Marks a name declared by `var x;` that has not been assigned yet
UNASSIGNED = object()

# Python frames available to nested Lox calls; each call costs about eight
RECURSION_LIMIT = 10000


def ensure_recursion_limit(limit: int = RECURSION_LIMIT) -> None:
  """Raise the interpreter's recursion limit, never lowering it"""
  if sys.getrecursionlimit() < limit:
    sys.setrecursionlimit(limit)


# ============================================================================
# ENVIRONMENT
# ============================================================================

class Environment:
  """One scope's bindings plus a link to the enclosing scope

  Frames are shared by reference: every closure created while a frame was
  active holds that same frame, so assignments through one closure are seen
  by all the others.
  """

  def __init__(self, enclosing: Optional['Environment'] = None):
    self.values: Dict[str, Any] = {}
    self.enclosing = enclosing

  def define(self, name: str, value: Any = UNASSIGNED) -> None:
    """Bind in this frame only, overwriting any existing binding"""
    self.values[name] = value

  def get(self, name: Token) -> Any:
    environment = self
    while environment is not None:
      if name.lexeme in environment.values:
        return _read(environment.values[name.lexeme])
      environment = environment.enclosing
    raise undefined_variable_error(name)

  def assign(self, name: Token, value: Any) -> None:
    """Overwrite the nearest existing binding; never creates a new one"""
    environment = self
    while environment is not None:
      if name.lexeme in environment.values:
        environment.values[name.lexeme] = value
        return
      environment = environment.enclosing
    raise undefined_variable_error(name)

  def ancestor(self, distance: int) -> 'Environment':
    environment = self
    for hop in range(distance):
      environment = environment.enclosing
      if environment is None:
        raise LoxResolutionMismatch(
            f"No enclosing environment {hop + 1} hops out (wanted {distance})"
        )
    return environment

  def get_at(self, distance: int, name: Token) -> Any:
    values = self.ancestor(distance).values
    if name.lexeme not in values:
      raise LoxResolutionMismatch(
          f"'{name.lexeme}' (line {name.line}) resolved to distance {distance} but is not bound there"
      )
    return _read(values[name.lexeme])

  def assign_at(self, distance: int, name: Token, value: Any) -> None:
    values = self.ancestor(distance).values
    if name.lexeme not in values:
      raise LoxResolutionMismatch(
          f"'{name.lexeme}' (line {name.line}) resolved to distance {distance} but is not bound there"
      )
    values[name.lexeme] = value

  def __repr__(self) -> str:
    return f"Environment({list(self.values)}, enclosing={self.enclosing is not None})"


def _read(value: Any) -> Any:
  return None if value is UNASSIGNED else value


# ============================================================================
# RUNTIME VALUES
# ============================================================================

class ReturnSignal(Exception):
  """Unwinds from a `return` statement to the enclosing function call"""

  def __init__(self, value: Any):
    self.value = value
    super().__init__()


class LoxFunction(LoxCallable):
  """A user-defined function closed over its defining environment"""

  def __init__(self, declaration: Function, closure: Environment):
    self.declaration = declaration
    self.closure = closure

  @property
  def name(self) -> str:
    return self.declaration.name.lexeme

  def arity(self) -> int:
    return len(self.declaration.params)

  def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
    # New frame hangs off the closure, not the caller
    environment = Environment(self.closure)
    for param, argument in zip(self.declaration.params, arguments):
      environment.define(param.lexeme, argument)

    try:
      interpreter.execute_block(self.declaration.body, environment)
    except ReturnSignal as signal:
      return signal.value
    return None

  def __str__(self) -> str:
    return f"<fn {self.name}>"


class LoxClass:
  """Value bound by a class declaration; carries its name and methods only"""

  lox_type = "class"

  def __init__(self, name: str, methods: Dict[str, LoxFunction]):
    self.name = name
    self.methods = methods

  def __str__(self) -> str:
    return f"<class {self.name}>"


# ============================================================================
# OPERATORS
# ============================================================================

BINARY_OPERATIONS: Dict[str, Callable[[Token, Any, Any], Any]] = {
    'PLUS': lox_add,
    'MINUS': binary_arithmetic_op(operator.sub),
    'STAR': binary_arithmetic_op(operator.mul),
    'SLASH': lox_divide,
    'GREATER': binary_arithmetic_op(operator.gt),
    'GREATER_EQUAL': binary_arithmetic_op(operator.ge),
    'LESS': binary_arithmetic_op(operator.lt),
    'LESS_EQUAL': binary_arithmetic_op(operator.le),
    'EQUAL_EQUAL': is_equal,
    'BANG_EQUAL': lambda op, left, right: not is_equal(op, left, right),
}


# ============================================================================
# INTERPRETER
# ============================================================================

class Interpreter:
  """Evaluates resolved Lox programs

  One interpreter owns one global environment for its whole lifetime, so
  successive `interpret` calls (as in the REPL) share state.
  """

  def __init__(self, output: Optional[TextIO] = None, debug: bool = False):
    self.output = output
    self.debug = debug
    ensure_recursion_limit()
    self.globals = Environment()
    for name, function in builtin_functions().items():
      self.globals.define(name, function)
    self.environment = self.globals
    self.locals: Dict[Expr, int] = {}

    self._statement_handlers: Dict[type, Callable[[Any], None]] = {
        ExpressionStmt: lambda stmt: self.evaluate(stmt.expression),
        Print: self._execute_print,
        Var: self._execute_var,
        Block: lambda stmt: self.execute_block(stmt.statements, Environment(self.environment)),
        If: self._execute_if,
        While: self._execute_while,
        Function: self._execute_function,
        Return: self._execute_return,
        Class: self._execute_class,
        NoOp: lambda stmt: None,
    }
    self._expression_handlers: Dict[type, Callable[[Any], Any]] = {
        Literal: lambda expr: expr.value,
        Grouping: lambda expr: self.evaluate(expr.expression),
        Unary: self._evaluate_unary,
        Binary: self._evaluate_binary,
        Logical: self._evaluate_logical,
        Variable: lambda expr: self._look_up_variable(expr.name, expr),
        Assign: self._evaluate_assign,
        Call: self._evaluate_call,
    }

  # ==========================================================================
  # ENTRY POINTS
  # ==========================================================================

  def interpret(self, statements: List[Stmt], resolutions: Optional[Dict[Expr, int]] = None) -> Optional[LoxRuntimeError]:
    """Run statements in order, stopping at the first runtime error

    Returns:
        The runtime error that halted execution, or None on success
    """
    if resolutions:
      self.locals.update(resolutions)

    try:
      for statement in statements:
        self.execute(statement)
    except LoxRuntimeError as error:
      if self.debug:
        print(f"[debug] halted: {error}", file=sys.stderr)
      return error
    return None

  def execute(self, stmt: Stmt) -> None:
    handler = self._statement_handlers.get(type(stmt))
    if handler is None:
      raise TypeError(f"Unknown statement node: {type(stmt).__name__}")
    if self.debug:
      print(f"[debug] executing {type(stmt).__name__}", file=sys.stderr)
    handler(stmt)

  def execute_block(self, statements: List[Stmt], environment: Environment) -> None:
    """Run statements in `environment`, restoring the caller's on every exit"""
    previous = self.environment
    self.environment = environment
    try:
      for statement in statements:
        self.execute(statement)
    finally:
      self.environment = previous

  def evaluate(self, expr: Expr) -> Any:
    handler = self._expression_handlers.get(type(expr))
    if handler is None:
      raise TypeError(f"Unknown expression node: {type(expr).__name__}")
    return handler(expr)

  def user_globals(self) -> Dict[str, Any]:
    """Global bindings other than the built-ins, for the REPL's :env"""
    builtins = builtin_functions()
    return {
        name: _read(value) for name, value in self.globals.values.items()
        if name not in builtins
    }

  # ==========================================================================
  # STATEMENTS
  # ==========================================================================

  def _execute_print(self, stmt: Print) -> None:
    value = self.evaluate(stmt.expression)
    print(stringify(value), file=self.output if self.output is not None else sys.stdout)

  def _execute_var(self, stmt: Var) -> None:
    if stmt.initializer is None:
      self.environment.define(stmt.name.lexeme)
    else:
      self.environment.define(stmt.name.lexeme, self.evaluate(stmt.initializer))

  def _execute_if(self, stmt: If) -> None:
    if is_truthy(self.evaluate(stmt.condition)):
      self.execute(stmt.then_branch)
    elif stmt.else_branch is not None:
      self.execute(stmt.else_branch)

  def _execute_while(self, stmt: While) -> None:
    while is_truthy(self.evaluate(stmt.condition)):
      self.execute(stmt.body)

  def _execute_function(self, stmt: Function) -> None:
    function = LoxFunction(stmt, self.environment)
    self.environment.define(stmt.name.lexeme, function)

  def _execute_return(self, stmt: Return) -> None:
    value = None
    if stmt.value is not None:
      value = self.evaluate(stmt.value)
    raise ReturnSignal(value)

  def _execute_class(self, stmt: Class) -> None:
    methods = {
        method.name.lexeme: LoxFunction(method, self.environment)
        for method in stmt.methods
    }
    self.environment.define(stmt.name.lexeme, LoxClass(stmt.name.lexeme, methods))

  # ==========================================================================
  # EXPRESSIONS
  # ==========================================================================

  def _evaluate_unary(self, expr: Unary) -> Any:
    right = self.evaluate(expr.right)

    if expr.operator.type == 'BANG':
      return not is_truthy(right)
    if expr.operator.type == 'MINUS':
      return -check_number_operand(expr.operator, right)

    raise LoxRuntimeError(expr.operator, f"Unknown unary operator '{expr.operator.lexeme}'.")

  def _evaluate_binary(self, expr: Binary) -> Any:
    left = self.evaluate(expr.left)
    right = self.evaluate(expr.right)

    operation = BINARY_OPERATIONS.get(expr.operator.type)
    if operation is None:
      raise LoxRuntimeError(expr.operator, f"Unknown binary operator '{expr.operator.lexeme}'.")
    return operation(expr.operator, left, right)

  def _evaluate_logical(self, expr: Logical) -> Any:
    left = self.evaluate(expr.left)

    if expr.operator.type == 'OR':
      if is_truthy(left):
        return left
    elif not is_truthy(left):
      return left

    return self.evaluate(expr.right)

  def _evaluate_assign(self, expr: Assign) -> Any:
    value = self.evaluate(expr.value)

    distance = self.locals.get(expr)
    if distance is not None:
      self.environment.assign_at(distance, expr.name, value)
    else:
      self.globals.assign(expr.name, value)
    return value

  def _evaluate_call(self, expr: Call) -> Any:
    callee = self.evaluate(expr.callee)
    arguments = [self.evaluate(argument) for argument in expr.arguments]

    if not isinstance(callee, LoxCallable):
      raise LoxRuntimeError(expr.paren, "Can only call functions and classes.")
    if len(arguments) != callee.arity():
      raise arity_error(expr.paren, callee.arity(), len(arguments))

    if self.debug:
      print(f"[debug] calling {callee} with {len(arguments)} argument(s)", file=sys.stderr)
    try:
      return callee.call(self, arguments)
    except RecursionError:
      raise LoxRuntimeError(expr.paren, "Stack overflow.") from None

  def _look_up_variable(self, name: Token, expr: Expr) -> Any:
    distance = self.locals.get(expr)
    if distance is not None:
      return self.environment.get_at(distance, name)
    return self.globals.get(name)


# ============================================================================
# FACTORY FUNCTIONS (for compatibility with main.py)
# ============================================================================

def create_interpreter(debug: bool = False, output: Optional[TextIO] = None) -> Interpreter:
  """Factory function returning an interpreter"""
  return Interpreter(output=output, debug=debug)


def create_debug_interpreter(output: Optional[TextIO] = None) -> Interpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True, output=output)
