"""Boolean query language over geo layers.

A query such as ``tag:#food AND NOT path:"Archive"`` is preprocessed so
that every ``key:value`` predicate becomes one quoted identifier, then
tokenized and compiled once into postfix form. ``Query.test_layer`` runs
the postfix program as a stack machine for each layer.

Operator precedence is ``NOT`` > ``AND`` > ``OR``; parentheses group.
An empty query matches every layer.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..layers import patterns
from ..layers.models import GeoLayer, LayerKind
from ..notes.models import SourceRef
from ..notes.store import DocumentStore


logger = logging.getLogger(__name__)


class QueryError(ValueError):
    """Raised when a query string cannot be compiled."""


class TokenType(str, Enum):
    IDENTIFIER = "IDENTIFIER"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str

    def __str__(self) -> str:
        if self.type == TokenType.IDENTIFIER:
            return f'"{self.value}"'
        return self.value


_PRECEDENCE = {"NOT": 3, "AND": 2, "OR": 1}


def preprocess_query_string(query_string: str) -> str:
    """Turn each ``key:value`` / ``key:"some value"`` into ``"key:value"``."""

    def _quote(m) -> str:
        value = m.group("quoted") if m.group("quoted") is not None else m.group("bare")
        return f'"{m.group("key")}:{value}"'

    return patterns.QUERY_PREDICATE.sub(_quote, query_string)


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        ch = text[pos]
        if ch.isspace():
            pos += 1
        elif ch == "(":
            tokens.append(Token(TokenType.LPAREN, ch))
            pos += 1
        elif ch == ")":
            tokens.append(Token(TokenType.RPAREN, ch))
            pos += 1
        elif ch == '"':
            end = text.find('"', pos + 1)
            if end == -1:
                raise QueryError(f"Unterminated string in query at position {pos}")
            tokens.append(Token(TokenType.IDENTIFIER, text[pos + 1:end]))
            pos = end + 1
        else:
            m = patterns.QUERY_WORD.match(text, pos)
            word = m.group(0)
            if word in patterns.QUERY_OPERATORS:
                tokens.append(Token(TokenType.OPERATOR, word))
            else:
                tokens.append(Token(TokenType.IDENTIFIER, word))
            pos = m.end()
    return tokens


def to_postfix(tokens: Iterable[Token]) -> list[Token]:
    """Shunting-yard conversion that also rejects malformed expressions."""
    output: list[Token] = []
    stack: list[Token] = []
    expect_operand = True

    for token in tokens:
        if token.type == TokenType.IDENTIFIER:
            if not expect_operand:
                raise QueryError(f"Expected an operator before {token.value!r}")
            output.append(token)
            expect_operand = False
        elif token.type == TokenType.OPERATOR and token.value == "NOT":
            if not expect_operand:
                raise QueryError("NOT must precede an operand")
            stack.append(token)
        elif token.type == TokenType.OPERATOR:
            if expect_operand:
                raise QueryError(f"{token.value} is missing its left operand")
            while (
                stack
                and stack[-1].type == TokenType.OPERATOR
                and _PRECEDENCE[stack[-1].value] >= _PRECEDENCE[token.value]
            ):
                output.append(stack.pop())
            stack.append(token)
            expect_operand = True
        elif token.type == TokenType.LPAREN:
            if not expect_operand:
                raise QueryError("Expected an operator before '('")
            stack.append(token)
        elif token.type == TokenType.RPAREN:
            if expect_operand:
                raise QueryError("Expected an operand before ')'")
            while stack and stack[-1].type != TokenType.LPAREN:
                output.append(stack.pop())
            if not stack:
                raise QueryError("Unbalanced ')' in query")
            stack.pop()

    if expect_operand:
        raise QueryError("Query ends without an operand")
    while stack:
        token = stack.pop()
        if token.type == TokenType.LPAREN:
            raise QueryError("Unbalanced '(' in query")
        output.append(token)
    return output


def _validate_identifier(value: str) -> None:
    if value.startswith("tag:#"):
        return
    if value.startswith(("name:", "path:", "linkedto:", "linkedfrom:")):
        return
    if value.startswith("lines:"):
        if not patterns.LINES_RANGE.match(value[len("lines:"):]):
            raise QueryError(f"Malformed line range {value}, expected lines:<from>-<to>")
        return
    raise QueryError(f"Unsupported query format {value}")


class Query:
    """A compiled query, reusable across any number of layers."""

    def __init__(self, query_string: Optional[str], store: Optional[DocumentStore] = None):
        self.query_string = query_string or ""
        self.store = store
        self._postfix: tuple[Token, ...] = ()
        self._link_targets: dict[str, Optional[SourceRef]] = {}
        self.is_empty = not self.query_string.strip()
        if not self.is_empty:
            tokens = tokenize(preprocess_query_string(self.query_string))
            postfix = to_postfix(tokens)
            for token in postfix:
                if token.type == TokenType.IDENTIFIER:
                    _validate_identifier(token.value)
            self._postfix = tuple(postfix)
        self._link_targets = self._resolve_link_targets()

    @property
    def postfix(self) -> tuple[Token, ...]:
        return self._postfix

    def __str__(self) -> str:
        return " ".join(str(t) for t in self._postfix)

    def test_layer(self, layer: GeoLayer) -> bool:
        if self.is_empty:
            return True
        stack: list[bool] = []
        for token in self._postfix:
            if token.type == TokenType.IDENTIFIER:
                # Only point markers are matched against predicates
                if layer.kind == LayerKind.POINT_MARKER:
                    stack.append(self.test_identifier(layer, token.value))
                else:
                    stack.append(False)
            elif token.value == "NOT":
                stack.append(not stack.pop())
            elif token.value == "AND":
                right, left = stack.pop(), stack.pop()
                stack.append(left and right)
            elif token.value == "OR":
                right, left = stack.pop(), stack.pop()
                stack.append(left or right)
            else:
                raise QueryError(f"Unsupported operator {token.value}")
        return stack[0]

    def filter(self, layers: Iterable[GeoLayer]) -> list[GeoLayer]:
        return [layer for layer in layers if self.test_layer(layer)]

    def test_identifier(self, layer: GeoLayer, value: str) -> bool:
        if value.startswith("tag:#"):
            pattern = value[len("tag:"):]
            return any(fnmatch.fnmatchcase(tag, pattern) for tag in layer.tags)
        if value.startswith("name:"):
            query = value[len("name:"):].lower()
            if not query:
                return False
            if layer.display_name:
                return query in layer.display_name.lower()
            return query in layer.source.basename.lower()
        if value.startswith("path:"):
            query = value[len("path:"):].lower()
            if not query:
                return False
            return query in layer.source.path.lower()
        if value.startswith("linkedto:"):
            return self._linked_to(layer, value[len("linkedto:"):])
        if value.startswith("linkedfrom:"):
            return self._linked_from(layer, value[len("linkedfrom:"):])
        if value.startswith("lines:"):
            m = patterns.LINES_RANGE.match(value[len("lines:"):])
            if not m or layer.source_line is None:
                return False
            return int(m.group("from")) <= layer.source_line <= int(m.group("to"))
        raise QueryError(f"Unsupported query format {value}")

    def _resolve_link_targets(self) -> dict[str, Optional[SourceRef]]:
        """Resolve the note named by each linkedto:/linkedfrom: predicate once."""
        targets: dict[str, Optional[SourceRef]] = {}
        if self.store is None:
            return targets
        for token in self._postfix:
            if token.type != TokenType.IDENTIFIER:
                continue
            for prefix in ("linkedto:", "linkedfrom:"):
                if token.value.startswith(prefix):
                    name = token.value[len(prefix):]
                    if name and name not in targets:
                        targets[name] = self.store.resolve_link(name, None)
        return targets

    def _linked_to(self, layer: GeoLayer, query: str) -> bool:
        if self.store is None or not query:
            return False
        destination = self._link_targets.get(query)
        if destination is None:
            return False
        metadata = self.store.get_metadata(layer.source)
        if metadata is None:
            return False
        return any(self.store.resolve_link(link.link, layer.source) == destination for link in metadata.links)

    def _linked_from(self, layer: GeoLayer, query: str) -> bool:
        if self.store is None or not query:
            return False
        origin = self._link_targets.get(query)
        if origin is None:
            return False
        if origin.path == layer.source.path:
            return True
        metadata = self.store.get_metadata(origin)
        if metadata is None:
            return False
        basename = layer.source.basename.lower()
        return any(
            link.target_name.lower() == basename or link.display_text.lower() == basename
            for link in metadata.links
        )


def compile_query(query_string: Optional[str], store: Optional[DocumentStore] = None) -> Query:
    return Query(query_string, store)


def test_layer(query: Query, layer: GeoLayer) -> bool:
    return query.test_layer(layer)
