"""
Parser tests for the Lox grammar
Tests precedence, statements, for-loop desugaring and error recovery
"""

import pytest
from parsing import (
    create_parser, pretty_print_ast, pretty_print_program,
    Block, While, Var, Print, ExpressionStmt, Literal, Call, Class, Function, NoOp,
)


class TestExpressions:
  """Test expression parsing and precedence"""

  @pytest.fixture
  def parser(self):
    """Provide a fresh parser instance for each test"""
    return create_parser()

  def parse(self, parser, reporter, text):
    expr = parser.parse_expression(text, reporter)
    assert not reporter.had_error, reporter.messages()
    return pretty_print_ast(expr)

  def test_factor_binds_tighter_than_term(self, parser, reporter):
    """Test that * binds tighter than +"""
    assert self.parse(parser, reporter, "1 + 2 * 3") == "(+ 1 (* 2 3))"

  def test_binary_operators_are_left_associative(self, parser, reporter):
    """Test left associativity of subtraction"""
    assert self.parse(parser, reporter, "1 - 2 - 3") == "(- (- 1 2) 3)"

  def test_assignment_is_right_associative(self, parser, reporter):
    """Test that chained assignment nests to the right"""
    assert self.parse(parser, reporter, "a = b = 1") == "(= a (= b 1))"

  def test_and_binds_tighter_than_or(self, parser, reporter):
    """Test logical operator precedence"""
    assert self.parse(parser, reporter, "a or b and c") == "(or a (and b c))"

  def test_unary_and_grouping(self, parser, reporter):
    """Test nested unary operators and parentheses"""
    assert self.parse(parser, reporter, "!!true") == "(! (! true))"
    assert self.parse(parser, reporter, "-(1 + 2)") == "(- (group (+ 1 2)))"

  def test_comparison_below_equality(self, parser, reporter):
    """Test that comparisons group before equality"""
    assert self.parse(parser, reporter, "1 < 2 == true") == "(== (< 1 2) true)"

  def test_chained_calls(self, parser, reporter):
    """Test that calls chain left to right"""
    assert self.parse(parser, reporter, "f(1)(2, x)") == "(call (call f 1) 2 x)"

  def test_literals(self, parser, reporter):
    """Test literal rendering"""
    assert self.parse(parser, reporter, '"hi"') == '"hi"'
    assert self.parse(parser, reporter, "nil") == "nil"
    assert self.parse(parser, reporter, "2.5") == "2.5"

  def test_trailing_tokens_rejected(self, parser, reporter):
    """Test that a single expression must consume all input"""
    assert parser.parse_expression("1 2", reporter) is None
    assert reporter.messages() == ["[line 1] Error at '2': Expect end of expression."]


class TestStatements:
  """Test statement parsing"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_var_declarations(self, parser, reporter):
    """Test variable declarations with and without initializer"""
    statements = parser.parse_string("var x = 1; var y;", reporter)
    assert pretty_print_program(statements) == "(var x = 1)\n(var y)"
    assert statements[1].initializer is None

  def test_if_else(self, parser, reporter):
    """Test if statement with an else branch"""
    statements = parser.parse_string("if (a) print 1; else print 2;", reporter)
    assert pretty_print_ast(statements[0]) == "(if a (print 1) (print 2))"

  def test_function_declaration(self, parser, reporter):
    """Test function declaration with parameters and body"""
    statements = parser.parse_string("fun add(a, b) { return a + b; }", reporter)
    function = statements[0]
    assert isinstance(function, Function)
    assert [param.lexeme for param in function.params] == ["a", "b"]
    assert pretty_print_ast(function) == "(fun add(a b) (return (+ a b)))"

  def test_class_declaration(self, parser, reporter):
    """Test that a class holds its methods as functions"""
    statements = parser.parse_string("class Box { open() { return 1; } close() {} }", reporter)
    assert not reporter.had_error
    klass = statements[0]
    assert isinstance(klass, Class)
    assert [method.name.lexeme for method in klass.methods] == ["open", "close"]

  def test_block(self, parser, reporter):
    """Test nested block statements"""
    statements = parser.parse_string("{ var a = 1; { print a; } }", reporter)
    assert pretty_print_program(statements) == "(block (var a = 1) (block (print a)))"


class TestForDesugaring:
  """Test that for loops become while loops"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_full_for_loop(self, parser, reporter):
    """Test initializer, condition and increment all present"""
    statements = parser.parse_string("for (var i = 0; i < 3; i = i + 1) print i;", reporter)
    assert len(statements) == 1
    outer = statements[0]
    assert isinstance(outer, Block)
    assert isinstance(outer.statements[0], Var)
    loop = outer.statements[1]
    assert isinstance(loop, While)
    assert isinstance(loop.body, Block)
    assert isinstance(loop.body.statements[0], Print)
    assert isinstance(loop.body.statements[1], ExpressionStmt)
    assert pretty_print_ast(outer) == (
        "(block (var i = 0) (while (< i 3) (block (print i) (; (= i (+ i 1))))))"
    )

  def test_empty_clauses(self, parser, reporter):
    """Test that a missing condition becomes a literal true"""
    statements = parser.parse_string("for (;;) print 1;", reporter)
    loop = statements[0]
    assert isinstance(loop, While)
    assert isinstance(loop.condition, Literal)
    assert loop.condition.value is True
    assert isinstance(loop.body, Print)


class TestParseErrors:
  """Test error reporting and recovery"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_two_errors_in_one_pass(self, parser, reporter):
    """Test that recovery lets a second error be reported"""
    statements = parser.parse_string("print ;\nvar 1 = 2;\nprint 3;", reporter)
    assert reporter.messages() == [
        "[line 1] Error at ';': Expect expression.",
        "[line 2] Error at '1': Expect variable name.",
    ]
    assert isinstance(statements[0], NoOp)
    assert isinstance(statements[1], NoOp)
    assert isinstance(statements[2], Print)

  def test_error_at_end(self, parser, reporter):
    """Test that errors at EOF are located at end"""
    parser.parse_string("print 1", reporter)
    assert reporter.messages() == ["[line 1] Error at end: Expect ';' after value."]

  def test_invalid_assignment_target_stops_parse(self, parser, reporter):
    """Test that assigning to a non-variable ends parsing"""
    statements = parser.parse_string("1 = 2; print 3;", reporter)
    assert statements == []
    assert reporter.messages() == ["[line 1] Error at '=': Invalid assignment target."]

  def test_this_is_not_an_expression(self, parser, reporter):
    """Test that reserved class keywords have no expression form"""
    parser.parse_string("print this;", reporter)
    assert reporter.messages() == ["[line 1] Error at 'this': Expect expression."]

  def test_too_many_arguments(self, parser, reporter):
    """Test that the argument cap is reported without aborting the call"""
    source = "f(" + ", ".join(["1"] * 256) + ");"
    statements = parser.parse_string(source, reporter)
    assert reporter.messages() == ["[line 1] Error at '1': Can't have more than 255 arguments."]
    call = statements[0].expression
    assert isinstance(call, Call)
    assert len(call.arguments) == 256

  def test_scan_errors_are_collected_with_parse_errors(self, parser, reporter):
    """Test that scan and parse diagnostics share one reporter"""
    parser.parse_string("print @;", reporter)
    assert len(reporter.by_stage("scan")) == 1
    assert len(reporter.by_stage("parse")) == 1
