"""
Utilities module for the Lox interpreter
Runtime value helpers shared by the interpreter and the standard library
"""

from typing import Any, Callable, Dict, Optional

from error_handling import LoxRuntimeError


# ==================== TYPE CHECKING UTILITIES ====================

def type_name(value: Any) -> str:
  """
  Name of the Lox runtime type of a Python value

  Args:
    value: Runtime value (None, bool, float, str, or a callable object)

  Returns:
    One of "nil", "boolean", "number", "string", or the object's own
    `lox_type` attribute for functions and classes

  Examples:
    type_name(None) -> "nil"
    type_name(2.0) -> "number"
  """
  if value is None:
    return "nil"
  # bool before float: True is an int in Python
  if isinstance(value, bool):
    return "boolean"
  if isinstance(value, float):
    return "number"
  if isinstance(value, str):
    return "string"
  return getattr(value, 'lox_type', type(value).__name__)


def is_number(value: Any) -> bool:
  return isinstance(value, float) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
  """nil and false are falsy; everything else, including 0, is truthy"""
  if value is None:
    return False
  if isinstance(value, bool):
    return value
  return True


# ==================== ERROR MESSAGE BUILDERS ====================

def operand_error(operator, message: str) -> LoxRuntimeError:
  """
  Generate an operand type error at an operator token

  Args:
    operator: Operator token, used for the line number
    message: Complete error message

  Returns:
    LoxRuntimeError located at the operator
  """
  return LoxRuntimeError(operator, message)


def arity_error(paren, expected: int, got: int) -> LoxRuntimeError:
  """
  Generate arity mismatch error

  Args:
    paren: Closing parenthesis token of the call
    expected: Declared arity
    got: Number of arguments supplied

  Returns:
    LoxRuntimeError with formatted message
  """
  return LoxRuntimeError(paren, f"Expected {expected} arguments but got {got}.")


def undefined_variable_error(name) -> LoxRuntimeError:
  return LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")


# ==================== VALIDATION UTILITIES ====================

def check_number_operand(operator, operand: Any) -> float:
  if is_number(operand):
    return operand
  raise operand_error(operator, "Operand must be a number.")


def check_number_operands(operator, left: Any, right: Any) -> None:
  if is_number(left) and is_number(right):
    return
  raise operand_error(operator, "Operands must be numbers.")


def is_equal(operator, left: Any, right: Any) -> bool:
  """
  Same-type equality; mixing types is an error rather than `false`

  Args:
    operator: The `==` or `!=` token
    left: Left operand
    right: Right operand

  Returns:
    True when both operands are the same type and equal

  Raises:
    LoxRuntimeError if the operands have different types
  """
  if type_name(left) != type_name(right):
    raise operand_error(operator, "Operands must be of the same type.")
  if left is None:
    return True
  if isinstance(left, (bool, float, str)):
    return left == right
  # Functions and classes compare by identity
  return left is right


# ==================== BINARY OPERATION FACTORIES ====================

def binary_arithmetic_op(op: Callable[[float, float], Any]) -> Callable[[Any, Any, Any], Any]:
  """
  Factory for number-only binary operations

  Args:
    op: Python operator function (e.g., operator.sub)

  Returns:
    Function taking (operator token, left, right) that checks both operands

  Examples:
    lox_sub = binary_arithmetic_op(operator.sub)
    lox_sub(token, 3.0, 1.0) -> 2.0
  """
  def arithmetic(operator, left: Any, right: Any) -> Any:
    check_number_operands(operator, left, right)
    return op(left, right)

  return arithmetic


def lox_add(operator, left: Any, right: Any) -> Any:
  """`+` adds two numbers or concatenates two strings"""
  if is_number(left) and is_number(right):
    return left + right
  if isinstance(left, str) and isinstance(right, str):
    return left + right
  raise operand_error(operator, "Operands must be two numbers or two strings.")


def lox_divide(operator, left: Any, right: Any) -> float:
  check_number_operands(operator, left, right)
  if right == 0:
    raise operand_error(operator, "Division by zero.")
  return left / right


def dispatch_by_type(value: Any, handlers: Dict[str, Callable[[Any], Any]],
                     default_handler: Optional[Callable[[Any], Any]] = None) -> Any:
  """
  Generic type-based dispatch on a Lox runtime value

  Args:
    value: Runtime value
    handlers: Map of Lox type names to handler functions
    default_handler: Fallback handler

  Returns:
    Result of calling the appropriate handler

  Raises:
    ValueError if no handler found and no default
  """
  value_type = type_name(value)
  handler = handlers.get(value_type, default_handler)
  if handler is None:
    raise ValueError(f"No handler for type: {value_type}")
  return handler(value)
