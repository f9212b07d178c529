"""Tokenizer for run search filter expressions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional


class TokenKind(IntEnum):
    """Kinds of tokens produced by :func:`tokenize`."""

    EOF = 0
    NUMBER = 1
    STRING = 2
    IDENTIFIER = 3
    OPEN_PAREN = 4
    CLOSE_PAREN = 5
    EQUALS = 6
    NOT_EQUALS = 7
    LESS = 8
    LESS_EQUALS = 9
    GREATER = 10
    GREATER_EQUALS = 11
    DOT = 12
    COMMA = 13
    IN = 14
    NOT = 15
    LIKE = 16
    ILIKE = 17
    AND = 18


_KIND_NAMES = {
    TokenKind.EOF: "eof",
    TokenKind.NUMBER: "number",
    TokenKind.STRING: "string",
    TokenKind.IDENTIFIER: "identifier",
    TokenKind.OPEN_PAREN: "open_paren",
    TokenKind.CLOSE_PAREN: "close_paren",
    TokenKind.EQUALS: "equals",
    TokenKind.NOT_EQUALS: "not_equals",
    TokenKind.LESS: "less",
    TokenKind.LESS_EQUALS: "less_equals",
    TokenKind.GREATER: "greater",
    TokenKind.GREATER_EQUALS: "greater_equals",
    TokenKind.AND: "and",
    TokenKind.DOT: "dot",
    TokenKind.COMMA: "comma",
    TokenKind.IN: "in",
    TokenKind.NOT: "not",
    TokenKind.LIKE: "like",
    TokenKind.ILIKE: "ilike",
}

_RESERVED = {
    "AND": TokenKind.AND,
    "NOT": TokenKind.NOT,
    "IN": TokenKind.IN,
    "LIKE": TokenKind.LIKE,
    "ILIKE": TokenKind.ILIKE,
}

_VALUED_KINDS = frozenset({TokenKind.IDENTIFIER, TokenKind.NUMBER, TokenKind.STRING})


def token_kind_string(kind: int) -> str:
    """Return the lower-case name of a token kind, or ``unknown(n)``."""
    try:
        return _KIND_NAMES[TokenKind(kind)]
    except (ValueError, KeyError):
        return f"unknown({int(kind)})"


@dataclass(frozen=True)
class Token:
    """A single lexical token."""

    kind: TokenKind
    value: str

    def debug(self) -> str:
        """Describe the token, including its text for literals and identifiers."""
        name = token_kind_string(self.kind)
        if self.kind in _VALUED_KINDS:
            return f"{name}({self.value})"
        return name


class LexerError(Exception):
    """Raised when the input holds text that is not a valid token."""


_TokenMaker = Callable[[str], Token]


def _symbol_token(text: str) -> Token:
    return Token(_RESERVED.get(text.upper(), TokenKind.IDENTIFIER), text)


def _fixed(kind: TokenKind) -> _TokenMaker:
    return lambda text: Token(kind, text)


# A maker of None means the matched text is skipped.
_PATTERNS: list[tuple[re.Pattern[str], Optional[_TokenMaker]]] = [
    (re.compile(r"[\t\n\f\r ]+"), None),
    (re.compile(r'"[^"]*"'), _fixed(TokenKind.STRING)),
    (re.compile(r"'[^']*'"), _fixed(TokenKind.STRING)),
    (re.compile(r"`[^`]*`"), _fixed(TokenKind.STRING)),
    (re.compile(r"-?[0-9]+(\.[0-9]+)?"), _fixed(TokenKind.NUMBER)),
    (re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*"), _symbol_token),
    (re.compile(r"\("), _fixed(TokenKind.OPEN_PAREN)),
    (re.compile(r"\)"), _fixed(TokenKind.CLOSE_PAREN)),
    (re.compile(r"!="), _fixed(TokenKind.NOT_EQUALS)),
    (re.compile(r"="), _fixed(TokenKind.EQUALS)),
    (re.compile(r"<="), _fixed(TokenKind.LESS_EQUALS)),
    (re.compile(r"<"), _fixed(TokenKind.LESS)),
    (re.compile(r">="), _fixed(TokenKind.GREATER_EQUALS)),
    (re.compile(r">"), _fixed(TokenKind.GREATER)),
    (re.compile(r"\."), _fixed(TokenKind.DOT)),
    (re.compile(r","), _fixed(TokenKind.COMMA)),
]


def tokenize(source: str) -> list[Token]:
    """Split a filter expression into tokens, ending with an EOF token."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        for pattern, make in _PATTERNS:
            match = pattern.match(source, pos)
            if match is None:
                continue
            if make is not None:
                tokens.append(make(match.group(0)))
            pos = match.end()
            break
        else:
            raise LexerError(f"unrecognized token near '{source[pos:]}'")
    tokens.append(Token(TokenKind.EOF, "EOF"))
    return tokens