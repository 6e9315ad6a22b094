"""Boolean expression evaluator for condition nodes.

Supports:
    - References: $input.field, $var.name, $<node-id>.path
    - Literals: numbers, 'strings', "strings", true, false, null, undefined
    - Logical: && || ! (also and, or, not)
    - Equality: == != === !==
    - Comparison: < > <= >=
    - Arithmetic: + - * / %
    - Parentheses

Expressions are parsed into a small tree and evaluated with JavaScript
semantics for truthiness, loose equality and short-circuiting. Nothing
is ever handed to eval().
"""

from typing import Any, List, Tuple
import logging
import math
import re

from mcpflow.engine.context import ExecutionContext
from mcpflow.engine.errors import ConditionError
from mcpflow.engine.references import MISSING, resolve_reference


logger = logging.getLogger(__name__)


# Tokenizer patterns, tried in order
TOKEN_PATTERNS = [
    (r'\s+', None),
    (r'\$[\w-]+(?:\.\w+)*', 'REF'),
    (r'===|!==|==|!=|<=|>=|&&|\|\||[<>!+\-*/%]', 'OP'),
    (r'\band\b', 'AND'),
    (r'\bor\b', 'OR'),
    (r'\bnot\b', 'NOT'),
    (r'\btrue\b', 'TRUE'),
    (r'\bfalse\b', 'FALSE'),
    (r'\bnull\b', 'NULL'),
    (r'\bundefined\b', 'UNDEFINED'),
    (r'"(?:[^"\\]|\\.)*"', 'STRING'),
    (r"'(?:[^'\\]|\\.)*'", 'STRING'),
    (r'\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+', 'NUMBER'),
    (r'\(', 'LPAREN'),
    (r'\)', 'RPAREN'),
]

_COMPILED = [(re.compile(p), t) for p, t in TOKEN_PATTERNS]

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}

Token = Tuple[str, str]

# Deepest allowed chain of unary operators and parentheses
MAX_NESTING = 64


def tokenize(expr: str) -> List[Token]:
    """Tokenize a condition expression."""
    tokens = []
    pos = 0
    while pos < len(expr):
        for regex, token_type in _COMPILED:
            match = regex.match(expr, pos)
            if match:
                if token_type == 'OP' and match.group() in ('&&', '||', '!'):
                    token_type = {'&&': 'AND', '||': 'OR', '!': 'NOT'}[match.group()]
                if token_type:
                    tokens.append((token_type, match.group()))
                pos = match.end()
                break
        else:
            raise ConditionError(f"Invalid character at position {pos}: {expr[pos]!r}")
    return tokens


class Parser:
    """
    Recursive descent parser producing a nested-tuple expression tree.

    Precedence, loosest first: or, and, equality, comparison,
    additive, multiplicative, unary, primary.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self):
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def consume(self, expected_type: str = None) -> Token:
        token = self.peek()
        if token is None:
            raise ConditionError("Unexpected end of expression")
        if expected_type and token[0] != expected_type:
            raise ConditionError(f"Expected {expected_type}, got {token[0]}")
        self.pos += 1
        return token

    def _nested(self, parse_fn):
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise ConditionError(f"Expression nested deeper than {MAX_NESTING} levels")
        try:
            return parse_fn()
        finally:
            self.depth -= 1

    def _at_op(self, *ops: str) -> bool:
        token = self.peek()
        return token is not None and token[0] == 'OP' and token[1] in ops

    def parse(self):
        tree = self.parse_or()
        if self.peek() is not None:
            raise ConditionError(f"Unexpected token: {self.peek()[1]!r}")
        return tree

    def parse_or(self):
        left = self.parse_and()
        while self.peek() and self.peek()[0] == 'OR':
            self.consume('OR')
            left = ('or', left, self.parse_and())
        return left

    def parse_and(self):
        left = self.parse_equality()
        while self.peek() and self.peek()[0] == 'AND':
            self.consume('AND')
            left = ('and', left, self.parse_equality())
        return left

    def parse_equality(self):
        left = self.parse_comparison()
        while self._at_op('==', '!=', '===', '!=='):
            op = self.consume('OP')[1]
            left = ('binary', op, left, self.parse_comparison())
        return left

    def parse_comparison(self):
        left = self.parse_additive()
        while self._at_op('<', '>', '<=', '>='):
            op = self.consume('OP')[1]
            left = ('binary', op, left, self.parse_additive())
        return left

    def parse_additive(self):
        left = self.parse_multiplicative()
        while self._at_op('+', '-'):
            op = self.consume('OP')[1]
            left = ('binary', op, left, self.parse_multiplicative())
        return left

    def parse_multiplicative(self):
        left = self.parse_unary()
        while self._at_op('*', '/', '%'):
            op = self.consume('OP')[1]
            left = ('binary', op, left, self.parse_unary())
        return left

    def parse_unary(self):
        token = self.peek()
        if token and token[0] == 'NOT':
            self.consume('NOT')
            return ('not', self._nested(self.parse_unary))
        if self._at_op('-', '+'):
            op = self.consume('OP')[1]
            return ('neg' if op == '-' else 'pos', self._nested(self.parse_unary))
        return self.parse_primary()

    def parse_primary(self):
        token = self.peek()
        if token is None:
            raise ConditionError("Unexpected end of expression")

        kind, text = token
        if kind == 'LPAREN':
            self.consume('LPAREN')
            inner = self._nested(self.parse_or)
            self.consume('RPAREN')
            return inner
        self.consume()
        if kind == 'REF':
            return ('ref', text)
        if kind == 'STRING':
            return ('lit', _unquote(text))
        if kind == 'NUMBER':
            value = float(text)
            return ('lit', int(value) if value.is_integer() and '.' not in text and 'e' not in text.lower() else value)
        if kind == 'TRUE':
            return ('lit', True)
        if kind == 'FALSE':
            return ('lit', False)
        if kind in ('NULL', 'UNDEFINED'):
            return ('lit', None)
        raise ConditionError(f"Unexpected token: {text!r}")


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r'\\(.)', lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


# ============================================================
# JavaScript value semantics
# ============================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
    """JavaScript truthiness: empty containers are truthy, NaN is not."""
    if value is None or value is MISSING or value is False:
        return False
    if _is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _to_number(value: Any) -> float:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if _is_number(value):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        try:
            return float(stripped)
        except ValueError:
            return math.nan
    raise ConditionError(f"Cannot use {type(value).__name__} as a number")


def _to_string(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        raise ConditionError("Cannot concatenate objects")
    return str(value)


def _js_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if _js_type(left) == _js_type(right):
        return left == right
    if _js_type(left) == "object" or _js_type(right) == "object":
        return False
    return _to_number(left) == _to_number(right)


def strict_equals(left: Any, right: Any) -> bool:
    return _js_type(left) == _js_type(right) and left == right


def _compare(op: str, left: Any, right: Any) -> bool:
    if not (isinstance(left, str) and isinstance(right, str)):
        left, right = _to_number(left), _to_number(right)
    if op == '<':
        return left < right
    if op == '>':
        return left > right
    if op == '<=':
        return left <= right
    return left >= right


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == '+' and (isinstance(left, str) or isinstance(right, str)):
        return _to_string(left) + _to_string(right)
    left, right = _to_number(left), _to_number(right)
    if op == '+':
        return left + right
    if op == '-':
        return left - right
    if op == '*':
        return left * right
    if right == 0:
        if op == '%' or left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1, right)
    if op == '/':
        return left / right
    return math.fmod(left, right)


class Evaluator:
    """Walks an expression tree against an execution context."""

    def __init__(self, context: ExecutionContext):
        self.context = context

    def eval(self, tree) -> Any:
        kind = tree[0]

        if kind == 'lit':
            return tree[1]
        if kind == 'ref':
            value = resolve_reference(tree[1], self.context)
            if value is MISSING:
                raise ConditionError(f"Unresolved reference {tree[1]}")
            return value
        if kind == 'not':
            return not is_truthy(self.eval(tree[1]))
        if kind == 'neg':
            return -_to_number(self.eval(tree[1]))
        if kind == 'pos':
            return _to_number(self.eval(tree[1]))
        if kind == 'and':
            left = self.eval(tree[1])
            return self.eval(tree[2]) if is_truthy(left) else left
        if kind == 'or':
            left = self.eval(tree[1])
            return left if is_truthy(left) else self.eval(tree[2])

        _, op, left_tree, right_tree = tree
        left, right = self.eval(left_tree), self.eval(right_tree)
        if op == '==':
            return loose_equals(left, right)
        if op == '!=':
            return not loose_equals(left, right)
        if op == '===':
            return strict_equals(left, right)
        if op == '!==':
            return not strict_equals(left, right)
        if op in ('<', '>', '<=', '>='):
            return _compare(op, left, right)
        return _arithmetic(op, left, right)


def parse(expr: str):
    """Parse an expression into its tree, raising ConditionError if malformed."""
    tokens = tokenize(expr)
    if not tokens:
        raise ConditionError("Empty condition")
    return Parser(tokens).parse()


def evaluate(expr: str, context: ExecutionContext) -> bool:
    """Evaluate a condition expression against a context.

    Args:
        expr: Condition expression (e.g., "$input.amount > 100 && $var.tier == 'pro'")
        context: The run's execution context

    Returns:
        Boolean result. Any tokenize, parse or evaluation error, including a
        reference that resolves to nothing, yields False.
    """
    try:
        return is_truthy(Evaluator(context).eval(parse(expr)))
    except ConditionError as e:
        logger.debug(f"Condition {expr!r} evaluated to false: {e}")
        return False
    except (TypeError, ValueError, OverflowError, RecursionError) as e:
        logger.debug(f"Condition {expr!r} failed: {e}")
        return False
