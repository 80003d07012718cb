"""
Lox Standard Library
The callable contract, value display, and the native functions seeded into
the global environment
"""

from typing import Any, Callable, Dict, List
import time

from utilities import dispatch_by_type


# ============================================================================
# CALLABLE CONTRACT
# ============================================================================

class LoxCallable:
  """Anything a Lox call expression can invoke

  The interpreter evaluates the callee and all arguments, checks that the
  argument count equals `arity()`, and only then calls `call`.
  """

  lox_type = "function"

  def arity(self) -> int:
    raise NotImplementedError

  def call(self, interpreter, arguments: List[Any]) -> Any:
    raise NotImplementedError


class NativeFunction(LoxCallable):
  """A built-in function with a fixed arity and a Python body"""

  def __init__(self, name: str, arity: int, body: Callable[[List[Any]], Any]):
    self.name = name
    self._arity = arity
    self.body = body

  def arity(self) -> int:
    return self._arity

  def call(self, interpreter, arguments: List[Any]) -> Any:
    return self.body(arguments)

  def __str__(self) -> str:
    return "<native fn>"

  def __repr__(self) -> str:
    return f"NativeFunction({self.name!r}, arity={self._arity})"


# ============================================================================
# PRINT FUNCTIONS
# ============================================================================

def format_number(value: float) -> str:
  """Integral numbers print without a fractional part; -0 keeps its sign"""
  if value.is_integer():
    return f"{value:.0f}"
  return repr(value)


def stringify(value: Any) -> str:
  """Convert a runtime value to the text `print` writes"""
  return dispatch_by_type(value, {
      "nil": lambda v: "nil",
      "boolean": lambda v: "true" if v else "false",
      "number": format_number,
      "string": lambda v: v,
  }, default_handler=str)


# ============================================================================
# NATIVE FUNCTIONS
# ============================================================================

def lox_clock(arguments: List[Any]) -> float:
  """Milliseconds since the Unix epoch"""
  return float(int(time.time() * 1000))


def lox_assert(arguments: List[Any]) -> bool:
  """True when both arguments print the same way"""
  expected, actual = arguments
  return stringify(expected) == stringify(actual)


def builtin_functions() -> Dict[str, NativeFunction]:
  """Fresh native function values, keyed by global name"""
  return {
      "clock": NativeFunction("clock", 0, lox_clock),
      "assert": NativeFunction("assert", 2, lox_assert),
  }
