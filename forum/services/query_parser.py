"""Search query parsing.

Turns a user query such as ``"exact phrase" (foo OR bar) -baz`` into a small
boolean tree. The tree can be evaluated two ways:

- ``node.to_sql(column)`` builds a SQLAlchemy clause (case-insensitive
  ``LIKE '%...%'`` per leaf) that repositories drop into their WHERE clause.
- ``node.matches(text)`` evaluates the same logic in memory.

Grammar (OR binds looser than AND, adjacency means AND)::

    query    := or_expr EOF
    or_expr  := and_expr ("OR" and_expr)*
    and_expr := unary (["AND"] unary)*
    unary    := "-" (WORD | PHRASE) | primary
    primary  := WORD | PHRASE | "(" or_expr ")"

Keywords are case-insensitive. A phrase may contain ``\\"`` for a literal
quote.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, not_
from sqlalchemy.sql.elements import ColumnElement

from ..exceptions import SearchParseError

# Character used to escape LIKE wildcards in generated patterns.
LIKE_ESCAPE = "\\"

WORD = "WORD"
PHRASE = "PHRASE"
AND = "AND"
OR = "OR"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
EXCLUDE = "EXCLUDE"
EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """One lexical token. ``negated`` is only set on WORD and PHRASE."""

    kind: str
    value: str
    position: int
    negated: bool = False


def escape_like(value: str) -> str:
    """Escape ``\\``, ``%`` and ``_`` so *value* is matched literally by LIKE."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _contains(column, text: str) -> ColumnElement:
    pattern = "%" + escape_like(text.lower()) + "%"
    return func.lower(func.coalesce(column, "")).like(pattern, escape=LIKE_ESCAPE)


class SearchNode:
    """Base class for nodes of a parsed search query."""

    def matches(self, text: Optional[str]) -> bool:
        raise NotImplementedError

    def to_sql(self, column) -> ColumnElement:
        raise NotImplementedError


@dataclass(frozen=True)
class Term(SearchNode):
    """A single word, matched as a case-insensitive substring."""

    text: str

    def matches(self, text: Optional[str]) -> bool:
        return self.text.lower() in (text or "").lower()

    def to_sql(self, column) -> ColumnElement:
        return _contains(column, self.text)


@dataclass(frozen=True)
class Phrase(SearchNode):
    """A quoted phrase, matched as one contiguous substring."""

    text: str

    def matches(self, text: Optional[str]) -> bool:
        return self.text.lower() in (text or "").lower()

    def to_sql(self, column) -> ColumnElement:
        return _contains(column, self.text)


@dataclass(frozen=True)
class And(SearchNode):
    left: SearchNode
    right: SearchNode

    def matches(self, text: Optional[str]) -> bool:
        return self.left.matches(text) and self.right.matches(text)

    def to_sql(self, column) -> ColumnElement:
        return self.left.to_sql(column) & self.right.to_sql(column)


@dataclass(frozen=True)
class Or(SearchNode):
    left: SearchNode
    right: SearchNode

    def matches(self, text: Optional[str]) -> bool:
        return self.left.matches(text) or self.right.matches(text)

    def to_sql(self, column) -> ColumnElement:
        return self.left.to_sql(column) | self.right.to_sql(column)


@dataclass(frozen=True)
class Not(SearchNode):
    child: SearchNode

    def matches(self, text: Optional[str]) -> bool:
        return not self.child.matches(text)

    def to_sql(self, column) -> ColumnElement:
        return not_(self.child.to_sql(column))


def _read_phrase(query: str, start: int) -> tuple[str, int]:
    """Read a quoted phrase whose opening quote is at *start*.

    Returns the unescaped text and the index just past the closing quote.
    """
    i = start + 1
    chars: List[str] = []
    while i < len(query):
        ch = query[i]
        if ch == "\\" and i + 1 < len(query) and query[i + 1] == '"':
            chars.append('"')
            i += 2
            continue
        if ch == '"':
            return "".join(chars), i + 1
        chars.append(ch)
        i += 1
    raise SearchParseError("Unterminated quoted phrase", position=start)


def tokenize(query: str) -> List[Token]:
    """Split *query* into tokens, ending with an EOF token."""
    tokens: List[Token] = []
    i = 0
    length = len(query)

    while i < length:
        ch = query[i]

        if ch.isspace():
            i += 1
            continue

        if ch == '"':
            text, i_next = _read_phrase(query, i)
            tokens.append(Token(PHRASE, text, i))
            i = i_next
            continue

        if ch == "(":
            tokens.append(Token(LPAREN, ch, i))
            i += 1
            continue

        if ch == ")":
            tokens.append(Token(RPAREN, ch, i))
            i += 1
            continue

        if ch == "-":
            # Exclusion prefix: must be glued to a word or a phrase.
            nxt = query[i + 1] if i + 1 < length else ""
            if nxt == '"':
                text, i_next = _read_phrase(query, i + 1)
                tokens.append(Token(PHRASE, text, i, negated=True))
                i = i_next
                continue
            if not nxt or nxt.isspace() or nxt in "()":
                raise SearchParseError(
                    "Exclusion '-' must be followed by a term or phrase", position=i
                )

        start = i
        while i < length and not query[i].isspace() and query[i] not in '()"':
            i += 1
        word = query[start:i]

        if word.startswith("-"):
            tokens.append(Token(WORD, word[1:], start, negated=True))
        elif word.upper() == AND:
            tokens.append(Token(AND, word, start))
        elif word.upper() == OR:
            tokens.append(Token(OR, word, start))
        else:
            tokens.append(Token(WORD, word, start))

    tokens.append(Token(EOF, "", length))
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != EOF:
            self.pos += 1
        return token

    def parse(self) -> SearchNode:
        node = self._or_expr()
        token = self.current
        if token.kind == RPAREN:
            raise SearchParseError("Unbalanced ')'", position=token.position)
        if token.kind != EOF:
            raise SearchParseError(f"Unexpected '{token.value}'", position=token.position)
        return node

    def _or_expr(self) -> SearchNode:
        node = self._and_expr()
        while self.current.kind == OR:
            operator = self._advance()
            node = Or(node, self._operand(operator))
        return node

    def _and_expr(self) -> SearchNode:
        node = self._unary()
        while True:
            token = self.current
            if token.kind == AND:
                self._advance()
                node = And(node, self._operand(token))
            elif token.kind in (WORD, PHRASE, LPAREN):
                node = And(node, self._unary())
            else:
                return node

    def _operand(self, operator: Token) -> SearchNode:
        """Parse the right-hand side of an explicit operator."""
        if self.current.kind not in (WORD, PHRASE, LPAREN):
            raise SearchParseError(
                f"Operator '{operator.value.upper()}' is missing its right operand",
                position=operator.position,
            )
        if operator.kind == OR:
            return self._and_expr()
        return self._unary()

    def _unary(self) -> SearchNode:
        token = self.current

        if token.kind in (WORD, PHRASE):
            self._advance()
            leaf: SearchNode = Term(token.value) if token.kind == WORD else Phrase(token.value)
            if token.kind == PHRASE and not token.value.strip():
                raise SearchParseError("Empty phrase", position=token.position)
            return Not(leaf) if token.negated else leaf

        if token.kind == LPAREN:
            self._advance()
            if self.current.kind == RPAREN:
                raise SearchParseError("Empty group", position=token.position)
            node = self._or_expr()
            if self.current.kind != RPAREN:
                raise SearchParseError("Unbalanced '('", position=token.position)
            self._advance()
            return node

        if token.kind in (AND, OR):
            raise SearchParseError(
                f"Operator '{token.value.upper()}' is missing its left operand",
                position=token.position,
            )
        if token.kind == RPAREN:
            raise SearchParseError("Unbalanced ')'", position=token.position)
        raise SearchParseError("Unexpected end of query", position=token.position)


def parse_query(query: str) -> SearchNode:
    """Parse *query* into a search tree.

    Raises:
        SearchParseError: the query is empty after trimming, or its syntax
            is malformed (unbalanced parentheses or quotes, an operator
            without an operand, a dangling ``-``).
    """
    if not query or not query.strip():
        raise SearchParseError("Search query is empty", position=0)
    return _Parser(tokenize(query)).parse()
