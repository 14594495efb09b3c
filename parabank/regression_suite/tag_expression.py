"""Parse and evaluate cucumber-style tag expressions.

Supported grammar::

    expr    := or_expr
    or_expr := and_expr ("or" and_expr)*
    and_expr:= not_expr ("and" not_expr)*
    not_expr:= "not" not_expr | "(" expr ")" | TAG

An empty expression matches everything.
"""

import re
from collections.abc import Callable, Iterable

Predicate = Callable[[frozenset[str]], bool]

_TOKEN_RE = re.compile(r"\(|\)|[^\s()]+")


def _normalize(tag: str) -> str:
    tag = tag.strip().lower()
    return tag if tag.startswith("@") else f"@{tag}"


class _Parser:
    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = _TOKEN_RE.findall(expression)
        self.pos = 0

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            raise ValueError(f"Unexpected end of tag expression: {self.expression!r}")
        self.pos += 1
        return token

    def parse(self) -> Predicate:
        if not self.tokens:
            return lambda tags: True
        predicate = self._or()
        if self._peek() is not None:
            raise ValueError(
                f"Unexpected token {self._peek()!r} in tag expression: "
                f"{self.expression!r}"
            )
        return predicate

    def _or(self) -> Predicate:
        left = self._and()
        while self._peek() == "or":
            self._next()
            right = self._and()
            left = (lambda a, b: lambda tags: a(tags) or b(tags))(left, right)
        return left

    def _and(self) -> Predicate:
        left = self._not()
        while self._peek() == "and":
            self._next()
            right = self._not()
            left = (lambda a, b: lambda tags: a(tags) and b(tags))(left, right)
        return left

    def _not(self) -> Predicate:
        token = self._next()
        if token == "not":
            inner = self._not()
            return lambda tags: not inner(tags)
        if token == "(":
            inner = self._or()
            if self._next() != ")":
                raise ValueError(f"Missing ')' in tag expression: {self.expression!r}")
            return inner
        if token in {")", "and", "or"}:
            raise ValueError(
                f"Unexpected token {token!r} in tag expression: {self.expression!r}"
            )
        tag = _normalize(token)
        return lambda tags: tag in tags


def compile_tag_expression(expression: str) -> Predicate:
    """Compile an expression into a predicate over a normalized tag set.

    Raises:
        ValueError: If the expression is malformed

    """
    return _Parser(expression).parse()


def matches(expression: str, tags: Iterable[str]) -> bool:
    """Check whether a scenario's tags satisfy the expression."""
    return compile_tag_expression(expression)(frozenset(_normalize(t) for t in tags))
