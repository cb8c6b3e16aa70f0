# src/physlab_report/expression.py
"""
Safe evaluation of user-authored formulas.

Formulas are typed by students in the derived-quantity editor, e.g.
"g = 4*pi^2*L/T^2". They are tokenized and parsed by a small recursive-descent
parser over a closed grammar:

    expression := term (('+' | '-') term)*
    term       := unary (('*' | '/') unary)*
    unary      := ('+' | '-') unary | power
    power      := primary ('^' unary)?          # right associative
    primary    := NUMBER | FUNC '(' expression ')' | SYMBOL | CONST
                | '(' expression ')'

Only the whitelisted functions and constants below are callable; nothing from
the formula text is ever executed. ``evaluate_expression`` never raises and
returns NaN for any malformed or failing formula.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Tuple


class ExpressionError(ValueError):
    """Raised when a formula cannot be tokenized or parsed."""


FUNCTIONS: Dict[str, Callable[[float], float]] = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "log": math.log10,
    "ln": math.log,
    "exp": math.exp,
    "abs": abs,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
}

CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}

_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_NAME_RE = re.compile(r"[^\W\d]\w*")
_WORD_RE = re.compile(r"\w")


class _Token(NamedTuple):
    kind: str  # "num" | "sym" | "name" | "op" | "(" | ")"
    text: str
    value: float = 0.0


def strip_assignment(formula: str) -> str:
    """'v = d/t' -> 'd/t'. Text after the last '=' is the expression."""
    return str(formula).split("=")[-1]


def _order_symbols(symbols: Iterable[str]) -> Tuple[str, ...]:
    # longest first, so "x0" is tried before "x"
    return tuple(sorted({str(s) for s in symbols if str(s)}, key=lambda s: (-len(s), s)))


def _is_word(ch: str) -> bool:
    return bool(_WORD_RE.match(ch))


def _symbol_at(text: str, i: int, symbols: Tuple[str, ...]) -> str:
    for sym in symbols:
        if not text.startswith(sym, i):
            continue
        end = i + len(sym)
        # word-boundary rules: a symbol must not be glued to neighbouring word characters
        if _is_word(sym[0]) and i > 0 and _is_word(text[i - 1]):
            continue
        if _is_word(sym[-1]) and end < len(text) and _is_word(text[end]):
            continue
        return sym
    return ""


def _tokenize(text: str, symbols: Tuple[str, ...]) -> List[_Token]:
    tokens: List[_Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if text.startswith("**", i):
            tokens.append(_Token("op", "^"))
            i += 2
            continue
        if ch in "+-*/^":
            tokens.append(_Token("op", ch))
            i += 1
            continue
        if ch in "()":
            tokens.append(_Token(ch, ch))
            i += 1
            continue

        sym = _symbol_at(text, i, symbols)
        if sym:
            tokens.append(_Token("sym", sym))
            i += len(sym)
            continue

        if ch.isdigit() or ch == ".":
            m = _NUMBER_RE.match(text, i)
            if not m:
                raise ExpressionError(f"Malformed number at position {i}")
            tokens.append(_Token("num", m.group(0), float(m.group(0))))
            i = m.end()
            continue

        m = _NAME_RE.match(text, i)
        if m:
            tokens.append(_Token("name", m.group(0)))
            i = m.end()
            continue

        raise ExpressionError(f"Unexpected character {ch!r} at position {i}")
    return tokens


# Parse tree nodes are plain tuples:
#   ("num", value) | ("sym", name) | ("neg", node) | ("bin", op, left, right) | ("call", fname, node)
Node = Tuple[Any, ...]


class _Parser:
    def __init__(self, tokens: List[_Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> _Token:
        tok = self._peek()
        if tok is None:
            raise ExpressionError("Unexpected end of formula")
        self.pos += 1
        return tok

    def _expect(self, kind: str) -> None:
        tok = self._take()
        if tok.kind != kind:
            raise ExpressionError(f"Expected {kind!r}, got {tok.text!r}")

    def parse(self) -> Node:
        if not self.tokens:
            raise ExpressionError("Empty formula")
        node = self._expression()
        if self._peek() is not None:
            raise ExpressionError(f"Unexpected token {self._peek().text!r}")
        return node

    def _expression(self) -> Node:
        node = self._term()
        while True:
            tok = self._peek()
            if tok is None or tok.kind != "op" or tok.text not in "+-":
                return node
            self.pos += 1
            node = ("bin", tok.text, node, self._term())

    def _term(self) -> Node:
        node = self._unary()
        while True:
            tok = self._peek()
            if tok is None or tok.kind != "op" or tok.text not in "*/":
                return node
            self.pos += 1
            node = ("bin", tok.text, node, self._unary())

    def _unary(self) -> Node:
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.text in "+-":
            self.pos += 1
            operand = self._unary()
            return ("neg", operand) if tok.text == "-" else operand
        return self._power()

    def _power(self) -> Node:
        base = self._primary()
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.text == "^":
            self.pos += 1
            return ("bin", "^", base, self._unary())
        return base

    def _call(self, fname: str) -> Node:
        self._expect("(")
        arg = self._expression()
        self._expect(")")
        return ("call", fname, arg)

    def _primary(self) -> Node:
        tok = self._take()
        nxt = self._peek()
        calls = nxt is not None and nxt.kind == "("
        if tok.kind == "num":
            return ("num", tok.value)
        if tok.kind == "sym":
            # a symbol that shadows a function name still works as a call
            if calls and tok.text in FUNCTIONS:
                return self._call(tok.text)
            return ("sym", tok.text)
        if tok.kind == "name":
            if tok.text in FUNCTIONS:
                if not calls:
                    raise ExpressionError(f"Function {tok.text!r} needs parentheses")
                return self._call(tok.text)
            if tok.text in CONSTANTS:
                return ("num", CONSTANTS[tok.text])
            raise ExpressionError(f"Unknown name {tok.text!r}")
        if tok.kind == "(":
            node = self._expression()
            self._expect(")")
            return node
        raise ExpressionError(f"Unexpected token {tok.text!r}")


def _eval(node: Node, values: Mapping[str, float]) -> float:
    kind = node[0]
    if kind == "num":
        return node[1]
    if kind == "sym":
        return float(values[node[1]])
    if kind == "neg":
        return -_eval(node[1], values)
    if kind == "call":
        return float(FUNCTIONS[node[1]](_eval(node[2], values)))
    op, left, right = node[1], _eval(node[2], values), _eval(node[3], values)
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        return left / right
    # math.pow raises instead of returning complex for negative bases
    return math.pow(left, right)


def _collect_symbols(node: Node, out: set) -> None:
    kind = node[0]
    if kind == "sym":
        out.add(node[1])
    elif kind == "neg":
        _collect_symbols(node[1], out)
    elif kind == "call":
        _collect_symbols(node[2], out)
    elif kind == "bin":
        _collect_symbols(node[2], out)
        _collect_symbols(node[3], out)


@lru_cache(maxsize=1024)
def _parse_cached(text: str, symbols: Tuple[str, ...]) -> Node:
    return _Parser(_tokenize(text, symbols)).parse()


@dataclass(frozen=True)
class CompiledExpression:
    formula: str
    tree: Node
    symbols: FrozenSet[str]

    def evaluate(self, values: Mapping[str, float]) -> float:
        """Evaluate against a symbol table; NaN on any failure."""
        try:
            result = _eval(self.tree, values)
        except (ArithmeticError, ValueError, TypeError, KeyError, RecursionError):
            return math.nan
        return result if math.isfinite(result) else math.nan


def compile_expression(formula: str, symbols: Iterable[str]) -> CompiledExpression:
    """
    Parse a formula once for repeated evaluation.
    Raises ExpressionError when the formula is malformed or names something
    outside the known symbols, functions and constants.
    """
    text = strip_assignment(formula)
    tree = _parse_cached(text, _order_symbols(symbols))
    used: set = set()
    _collect_symbols(tree, used)
    return CompiledExpression(formula=str(formula), tree=tree, symbols=frozenset(used))


def evaluate_expression(formula: str, symbol_values: Mapping[str, float]) -> float:
    """Evaluate ``formula`` with ``symbol_values``; NaN for any malformed or failing formula."""
    try:
        compiled = compile_expression(formula, symbol_values.keys())
    except (ExpressionError, RecursionError):
        return math.nan
    return compiled.evaluate(symbol_values)


def referenced_symbols(formula: str, symbols: Iterable[str]) -> FrozenSet[str]:
    """Known symbols that appear in the formula text (empty when it cannot be tokenized)."""
    try:
        tokens = _tokenize(strip_assignment(formula), _order_symbols(symbols))
    except ExpressionError:
        return frozenset()
    return frozenset(t.text for t in tokens if t.kind == "sym")


def unknown_identifiers(formula: str, symbols: Iterable[str]) -> List[str]:
    """Identifiers that are neither known symbols, whitelisted functions nor constants."""
    try:
        tokens = _tokenize(strip_assignment(formula), _order_symbols(symbols))
    except ExpressionError:
        return []
    out: List[str] = []
    for t in tokens:
        if t.kind == "name" and t.text not in FUNCTIONS and t.text not in CONSTANTS and t.text not in out:
            out.append(t.text)
    return out
