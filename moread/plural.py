#!/usr/bin/env python3
"""
Plural-Forms rule extraction and evaluation.

A catalog declares its plural rule in the metadata entry, e.g.:

    Plural-Forms: nplurals=3; plural=(n==1) ? 0 : ((n>=2 && n<=4) ? 1 : 2);

The expression is C syntax over a single variable ``n``. It comes from file
content, so it is never handed to eval(). Instead it is:

1. filtered down to a safe character set,
2. rewritten so every ternary branch is fully parenthesized,
3. tokenized and parsed by a small precedence-climbing parser,
4. evaluated on the resulting tree with C integer semantics.

Supported: integers, n, parentheses, + - * / %, < > <= >= == !=, ! && ||,
and the ternary ?: operator.
"""

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from .errors import PluralRuleError

logger = logging.getLogger(__name__)

DEFAULT_PLURAL_FORMS = "nplurals=2; plural=n == 1 ? 0 : 1;"

MAX_EXPRESSION_LENGTH = 1000
MAX_NESTING = 64

PLURAL_FORMS_PATTERN = re.compile(r"(^|\n)plural-forms: ([^\n]*)\n", re.IGNORECASE)
UNSAFE_CHARS_PATTERN = re.compile(r"[^a-zA-Z0-9_:;()?|&=!<>+*/%-]")
RULE_PATTERN = re.compile(r"nplurals\s*=\s*(\d+)\s*;\s*plural\s*=\s*(.+$)")

_TOKEN_PATTERN = re.compile(r"""
        (?P<WHITESPACES>[ \t]+)                    |
        (?P<NUMBER>[0-9]+\b)                       |
        (?P<NAME>n\b)                              |
        (?P<PARENTHESIS>[()])                      |
        (?P<OPERATOR>[-*/%+?:]|[><!]=?|==|&&|\|\|) |
        (?P<INVALID>\w+|.)
    """, re.VERBOSE | re.DOTALL)

# Binary operators by priority, loosest first
_BINARY_OPS = (
    ("||",),
    ("&&",),
    ("==", "!="),
    ("<", ">", "<=", ">="),
    ("+", "-"),
    ("*", "/", "%"),
)
_BINARY_OPS = {op: i for i, ops in enumerate(_BINARY_OPS, 1) for op in ops}


def extract_plural_forms(header: str) -> str:
    """
    Return the verbatim Plural-Forms value from a metadata header.

    Falls back to the two-form English rule when the header has no
    Plural-Forms line.
    """
    match = PLURAL_FORMS_PATTERN.search(header)
    if match:
        return match.group(2)
    return DEFAULT_PLURAL_FORMS


def strip_unsafe_chars(expr: str) -> str:
    """Drop every character outside the plural expression alphabet."""
    return UNSAFE_CHARS_PATTERN.sub("", expr)


def sanitize_plural_expression(expr: str) -> str:
    """
    Filter expr and fully parenthesize its ternary branches.

    Each '?' opens a parenthesis, each ':' closes the true branch and opens
    the false one, and each ';' closes everything opened since the previous
    ';'. So "n==1?0:n<5?1:2" becomes "n==1 ? (0) : (n<5 ? (1) : (2));".
    """
    expr = strip_unsafe_chars(expr) + ";"
    res = []
    depth = 0
    for ch in expr:
        if ch == "?":
            res.append(" ? (")
            depth += 1
        elif ch == ":":
            res.append(") : (")
        elif ch == ";":
            res.append(")" * depth + ";")
            depth = 0
        else:
            res.append(ch)
    return "".join(res)


def _tokenize(expr: str):
    for mo in _TOKEN_PATTERN.finditer(expr):
        kind = mo.lastgroup
        if kind == "WHITESPACES":
            continue
        value = mo.group(kind)
        if kind == "INVALID":
            raise PluralRuleError(f"invalid token in plural form: {value}")
        yield value
    yield ""


def _error(value: str) -> PluralRuleError:
    if value:
        return PluralRuleError(f"unexpected token in plural form: {value}")
    return PluralRuleError("unexpected end of plural form")


def _parse(tokens, priority: int = -1, depth: int = 0):
    """
    Parse one (sub)expression and return (tree, next_token).

    Tree nodes are tuples: ("num", value), ("n",), ("!", operand),
    ("?", cond, if_true, if_false) and (op, left, right) for binary ops.
    """
    if depth > MAX_NESTING:
        raise PluralRuleError("plural form expression is too complex")

    nexttok = next(tokens)
    negations = 0
    while nexttok == "!":
        negations += 1
        nexttok = next(tokens)

    if nexttok == "(":
        node, nexttok = _parse(tokens, depth=depth + 1)
        if nexttok != ")":
            raise PluralRuleError("unbalanced parenthesis in plural form")
    elif nexttok == "n":
        node = ("n",)
    else:
        try:
            node = ("num", int(nexttok, 10))
        except ValueError:
            raise _error(nexttok) from None
    for _ in range(negations):
        node = ("!", node)
    nexttok = next(tokens)

    while nexttok in _BINARY_OPS:
        level = _BINARY_OPS[nexttok]
        if level < priority:
            break
        op = nexttok
        right, nexttok = _parse(tokens, level + 1, depth + 1)
        node = (op, node, right)

    if nexttok == "?" and priority <= 0:
        if_true, nexttok = _parse(tokens, 0, depth + 1)
        if nexttok != ":":
            raise _error(nexttok)
        if_false, nexttok = _parse(tokens, depth=depth + 1)
        node = ("?", node, if_true, if_false)

    return node, nexttok


def parse_expression(expr: str) -> tuple:
    """
    Parse a plural expression into a tree.

    Raises:
        PluralRuleError: If expr is too long, too deep or not well formed
    """
    if len(expr) > MAX_EXPRESSION_LENGTH:
        raise PluralRuleError("plural form expression is too long")
    tokens = _tokenize(expr)
    try:
        tree, nexttok = _parse(tokens)
    except RecursionError:
        raise PluralRuleError("plural form expression is too complex") from None
    if nexttok:
        raise _error(nexttok)
    return tree


def _c_div(a: int, b: int) -> int:
    if b == 0:
        raise PluralRuleError("division by zero in plural form")
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _c_mod(a: int, b: int) -> int:
    return a - b * _c_div(a, b)


_ARITHMETIC = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _c_div,
    "%": _c_mod,
    "==": lambda a, b: int(a == b),
    "!=": lambda a, b: int(a != b),
    "<": lambda a, b: int(a < b),
    ">": lambda a, b: int(a > b),
    "<=": lambda a, b: int(a <= b),
    ">=": lambda a, b: int(a >= b),
}


def evaluate(tree: tuple, n: int) -> int:
    """Evaluate a parsed expression tree for quantity n."""
    kind = tree[0]
    if kind == "num":
        return tree[1]
    if kind == "n":
        return n
    if kind == "!":
        return int(not evaluate(tree[1], n))
    if kind == "?":
        branch = tree[2] if evaluate(tree[1], n) else tree[3]
        return evaluate(branch, n)
    if kind == "&&":
        return int(bool(evaluate(tree[1], n)) and bool(evaluate(tree[2], n)))
    if kind == "||":
        return int(bool(evaluate(tree[1], n)) or bool(evaluate(tree[2], n)))
    return _ARITHMETIC[kind](evaluate(tree[1], n), evaluate(tree[2], n))


def as_quantity(n) -> int:
    """
    Return n as an int for plural selection.

    Integral numbers such as 2.0 are accepted. Fractions and non-numbers
    raise TypeError.
    """
    if isinstance(n, int):
        return n
    try:
        i = round(n)
    except (TypeError, ValueError, OverflowError):
        raise TypeError(f"Plural value must be an integer, got {type(n).__name__}") from None
    if i != n:
        raise TypeError(f"Plural value must be an integer, got {n!r}")
    return int(i)


@dataclass
class PluralRule:
    """Parsed Plural-Forms rule."""
    nplurals: int
    expression: str
    tree: tuple = field(repr=False, default=("?", ("==", ("n",), ("num", 1)), ("num", 0), ("num", 1)))

    @classmethod
    def from_plural_forms(cls, plural_forms: str) -> Optional["PluralRule"]:
        """
        Build a rule from a raw Plural-Forms value.

        Returns None when the value has no "nplurals=N; plural=..." shape.
        An expression that does not parse leaves the English default tree in
        place.
        """
        sanitized = sanitize_plural_expression(plural_forms)
        match = RULE_PATTERN.search(sanitized)
        if not match:
            logger.warning("Unrecognized Plural-Forms value: %r", plural_forms)
            return None

        nplurals = int(match.group(1))
        expression = match.group(2).split(";")[0].strip()
        rule = cls(nplurals=nplurals, expression=expression)

        try:
            rule.tree = parse_expression(expression)
            return rule
        except PluralRuleError as e:
            first_error = e

        # Retry on the filtered text without the ternary rewrite
        plain = RULE_PATTERN.search(strip_unsafe_chars(plural_forms) + ";")
        if plain:
            try:
                rule.tree = parse_expression(plain.group(2).split(";")[0])
                return rule
            except PluralRuleError:
                pass

        logger.warning(
            "Cannot parse plural expression %r (%s), using n != 1",
            expression, first_error,
        )
        return rule

    def evaluate(self, n: int) -> int:
        """Raw expression value for n."""
        return evaluate(self.tree, n)

    def select(self, n: int) -> int:
        """Plural form index for n, clamped into [0, nplurals - 1]."""
        try:
            value = self.evaluate(n)
        except PluralRuleError as e:
            logger.warning("Plural expression %r failed for n=%d: %s", self.expression, n, e)
            value = int(n != 1)
        return min(max(value, 0), max(self.nplurals - 1, 0))


class PluralRuleEvaluator:
    """
    Lazily derives the catalog's plural rule and selects plural forms.

    The metadata header is fetched through header_loader on first use, and
    the resulting rule is memoized.
    """

    def __init__(self, header_loader: Callable[[], str]):
        self._header_loader = header_loader
        self._lock = threading.Lock()
        self._loaded = False
        self._plural_forms: Optional[str] = None
        self._rule: Optional[PluralRule] = None

    def _load(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            raw = extract_plural_forms(self._header_loader())
            self._plural_forms = sanitize_plural_expression(raw)
            self._rule = PluralRule.from_plural_forms(raw)
            self._loaded = True
            logger.debug("Plural rule: %s", self._plural_forms)

    def get_plural_forms(self) -> str:
        """Sanitized Plural-Forms header field."""
        self._load()
        return self._plural_forms

    def get_rule(self) -> Optional[PluralRule]:
        """Memoized rule, or None if the header value is malformed."""
        self._load()
        return self._rule

    def select(self, quantity) -> int:
        """Index of the plural form to use for quantity."""
        quantity = as_quantity(quantity)
        rule = self.get_rule()
        if rule is None:
            return 1
        return rule.select(quantity)
