"""
Lexer for the restricted GLSL subset used by node bodies.

Only what signature extraction needs is tokenized: identifiers, the symbols
``( ) , ; { } [ ]`` and whole directive lines. Numbers and operators are
dropped.

Metadata directives are line comments that start with ``//[`` (legacy
``//[Item(Label, 2)]``) or ``//Item[`` (``//Item[Label,2]``). They survive
comment stripping so the extractor can still read them.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import List

SYMBOLS = frozenset('(),;{}[]')

_IDENT_START = re.compile(r'[A-Za-z_]')
_IDENT_CHAR = re.compile(r'[A-Za-z0-9_]')


class TokenKind(Enum):
    IDENTIFIER = auto()
    SYMBOL = auto()
    DIRECTIVE = auto()  # '#' line or preserved metadata comment


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    line: int


def is_metadata_comment(code: str, pos: int) -> bool:
    """True when the '//' at pos opens a metadata directive."""
    return code[pos + 2:pos + 3] == '[' or code.startswith('Item[', pos + 2)


def strip_comments(code: str) -> str:
    """
    Remove line and block comments.

    Metadata directive comments are kept verbatim. Block comments are
    replaced by the newlines they contained so line numbers stay stable.
    """
    if not code:
        return ''

    out = []
    i = 0
    n = len(code)
    while i < n:
        ch = code[i]
        nxt = code[i + 1] if i + 1 < n else ''

        if ch == '/' and nxt == '/':
            if is_metadata_comment(code, i):
                out.append('//')
                i += 2
            else:
                i += 2
                while i < n and code[i] != '\n':
                    i += 1
        elif ch == '/' and nxt == '*':
            i += 2
            while i < n and not (code[i] == '*' and code[i + 1:i + 2] == '/'):
                if code[i] == '\n':
                    out.append('\n')
                i += 1
            i += 2
        else:
            out.append(ch)
            i += 1
    return ''.join(out)


def _read_line(code: str, i: int) -> int:
    while i < len(code) and code[i] != '\n':
        i += 1
    return i


def tokenize(code: str) -> List[Token]:
    """Tokenize comment-stripped code."""
    tokens: List[Token] = []
    i = 0
    line = 1
    n = len(code)

    while i < n:
        ch = code[i]

        if ch == '\n':
            line += 1
            i += 1
            continue

        if ch.isspace():
            i += 1
            continue

        if ch == '#' or (ch == '/' and code[i + 1:i + 2] == '/' and is_metadata_comment(code, i)):
            end = _read_line(code, i)
            tokens.append(Token(TokenKind.DIRECTIVE, code[i:end], line))
            i = end
            continue

        if _IDENT_START.match(ch):
            start = i
            while i < n and _IDENT_CHAR.match(code[i]):
                i += 1
            tokens.append(Token(TokenKind.IDENTIFIER, code[start:i], line))
            continue

        if ch in SYMBOLS:
            tokens.append(Token(TokenKind.SYMBOL, ch, line))

        i += 1

    return tokens
