"""
Rule expressions used by ``@injectRuleValue`` and ``ifRule`` arguments.

The grammar covers literals, dotted/indexed names, function calls, unary and
binary operators, ternaries and parentheses. Only the built-in functions may
be called. Strings are quoted with ``"`` or backticks; single quotes are
turned into backticks before parsing.

Usage:
    expression = parse_rule("isEmpty(arguments.name) ? headers.name : user.name")
    expression.names()  # {"arguments.name", "headers.name", "user.name"}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

BUILTIN_FUNCTIONS = ("isEmpty", "isAllEmpty", "isAnyEmpty", "stringContains", "arrayContains")

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|`[^`]*`)
  | (?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<op>&&|\|\||\?\?|==|!=|<=|>=|[-+*/%<>!?:.,()\[\]])
    """,
    re.VERBOSE,
)

# Binary operator precedence, higher binds tighter
_BINARY = {
    "??": 1,
    "||": 2,
    "&&": 3,
    "==": 4,
    "!=": 4,
    "<": 5,
    "<=": 5,
    ">": 5,
    ">=": 5,
    "+": 6,
    "-": 6,
    "*": 7,
    "/": 7,
    "%": 7,
}


class RuleSyntaxError(ValueError):
    pass


@dataclass
class Literal:
    value: Any


@dataclass
class Name:
    parts: list[str]


@dataclass
class Index:
    target: "Node"
    index: "Node"


@dataclass
class Call:
    name: str
    args: list["Node"] = field(default_factory=list)


@dataclass
class Unary:
    op: str
    operand: "Node"


@dataclass
class Binary:
    op: str
    left: "Node"
    right: "Node"


@dataclass
class Ternary:
    condition: "Node"
    then: "Node"
    otherwise: "Node"


@dataclass
class ArrayLiteral:
    items: list["Node"] = field(default_factory=list)


Node = Union[Literal, Name, Index, Call, Unary, Binary, Ternary, ArrayLiteral]


@dataclass
class _Token:
    kind: str
    value: str
    pos: int


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_PATTERN.match(text, pos)
        if match is None:
            raise RuleSyntaxError(f"unexpected character [{text[pos]}] at {pos}")
        kind = match.lastgroup
        if kind != "space":
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    tokens.append(_Token("end", "", pos))
    return tokens


class _Parser:
    def __init__(self, text: str):
        self.tokens = _tokenize(text)
        self.index = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def advance(self) -> _Token:
        token = self.current
        self.index += 1
        return token

    def expect(self, value: str) -> None:
        token = self.advance()
        if token.value != value:
            raise RuleSyntaxError(f"expected [{value}] at {token.pos}, found [{token.value or 'end'}]")

    def parse(self) -> Node:
        node = self.expression()
        if self.current.kind != "end":
            raise RuleSyntaxError(f"unexpected [{self.current.value}] at {self.current.pos}")
        return node

    def expression(self) -> Node:
        condition = self.binary(1)
        if self.current.value != "?":
            return condition
        self.advance()
        then = self.expression()
        self.expect(":")
        return Ternary(condition, then, self.expression())

    def binary(self, min_precedence: int) -> Node:
        left = self.unary()
        while True:
            token = self.current
            precedence = _BINARY.get(token.value) if token.kind == "op" else None
            if precedence is None or precedence < min_precedence:
                return left
            self.advance()
            left = Binary(token.value, left, self.binary(precedence + 1))

    def unary(self) -> Node:
        if self.current.value in ("!", "-"):
            op = self.advance().value
            return Unary(op, self.unary())
        return self.postfix(self.primary())

    def primary(self) -> Node:
        token = self.advance()
        if token.kind == "number":
            return Literal(float(token.value) if "." in token.value else int(token.value))
        if token.kind == "string":
            return Literal(_unquote(token.value))
        if token.kind == "name":
            if token.value in ("true", "false"):
                return Literal(token.value == "true")
            if token.value in ("nil", "null"):
                return Literal(None)
            if self.current.value == "(":
                return self.call(token)
            return Name([token.value])
        if token.value == "(":
            node = self.expression()
            self.expect(")")
            return node
        if token.value == "[":
            return ArrayLiteral(self.arguments("]"))
        raise RuleSyntaxError(f"unexpected [{token.value or 'end'}] at {token.pos}")

    def call(self, token: _Token) -> Node:
        if token.value not in BUILTIN_FUNCTIONS:
            raise RuleSyntaxError(f"unknown function [{token.value}] at {token.pos}")
        self.expect("(")
        return Call(token.value, self.arguments(")"))

    def arguments(self, closing: str) -> list[Node]:
        args: list[Node] = []
        if self.current.value == closing:
            self.advance()
            return args
        while True:
            args.append(self.expression())
            if self.current.value == closing:
                self.advance()
                return args
            self.expect(",")

    def postfix(self, node: Node) -> Node:
        while True:
            if self.current.value == ".":
                self.advance()
                token = self.advance()
                if token.kind != "name":
                    raise RuleSyntaxError(f"expected name after [.] at {token.pos}")
                if isinstance(node, Name):
                    node = Name([*node.parts, token.value])
                else:
                    node = Index(node, Literal(token.value))
            elif self.current.value == "[":
                self.advance()
                index = self.expression()
                self.expect("]")
                node = Index(node, index)
            else:
                return node


def _unquote(value: str) -> str:
    if value.startswith("`"):
        return value[1:-1]
    return bytes(value[1:-1], "utf-8").decode("unicode_escape")


@dataclass
class RuleExpression:
    source: str
    root: Node

    def names(self) -> set[str]:
        return {".".join(node.parts) for node in _walk(self.root) if isinstance(node, Name)}

    def functions(self) -> set[str]:
        return {node.name for node in _walk(self.root) if isinstance(node, Call)}


def _walk(node: Node) -> Iterator[Node]:
    yield node
    children: list[Optional[Node]] = []
    if isinstance(node, Index):
        children = [node.target, node.index]
    elif isinstance(node, (Call, ArrayLiteral)):
        children = list(node.args if isinstance(node, Call) else node.items)
    elif isinstance(node, Unary):
        children = [node.operand]
    elif isinstance(node, Binary):
        children = [node.left, node.right]
    elif isinstance(node, Ternary):
        children = [node.condition, node.then, node.otherwise]
    for child in children:
        if child is not None:
            yield from _walk(child)


def normalize_rule(text: str) -> str:
    return text.replace("'", "`")


def parse_rule(text: str) -> RuleExpression:
    """
    Parse a rule expression.

    Raises:
        RuleSyntaxError: On any syntax error or unknown function
    """
    source = normalize_rule(text)
    if not source.strip():
        raise RuleSyntaxError("expression is empty")
    return RuleExpression(source, _Parser(source).parse())
