"""
Tokenizer for the nginx-like configuration syntax.

Recognizes identifiers (dotted names allowed), quoted strings,
numbers, durations, booleans, braces, semicolons and # comments.
Durations are normalized to milliseconds.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class TokenType(Enum):
    """Token types for the configuration syntax."""

    IDENTIFIER = auto()  # directive name or bare word value
    STRING = auto()      # "quoted string"
    NUMBER = auto()      # 123, 4.5
    DURATION = auto()    # 500ms, 5s, 1m (value in milliseconds)
    BOOLEAN = auto()     # on, off, true, false, yes, no

    LBRACE = auto()
    RBRACE = auto()
    SEMICOLON = auto()

    EOF = auto()


@dataclass
class Token:
    """A single token from the lexer."""

    type: TokenType
    value: str | int | float | bool
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class LexerError(Exception):
    """Exception raised for lexer errors."""

    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, column {column}: {message}")


class Lexer:
    """
    Tokenizer for the configuration syntax.

    Example:
        show {
            gpu on;
        }
        update_interval 2s;
    """

    BOOLEAN_KEYWORDS = {
        "on": True,
        "off": False,
        "true": True,
        "false": False,
        "yes": True,
        "no": False,
    }

    # Duration units in milliseconds
    DURATION_UNITS = {
        "ms": 1,
        "s": 1000,
        "m": 60_000,
        "h": 3_600_000,
    }

    _TOKEN_RE = re.compile(
        r"""
        (?P<space>[ \t\r]+)
      | (?P<newline>\n)
      | (?P<comment>\#[^\n]*)
      | (?P<number>\d+(?:\.\d+)?)(?P<unit>[A-Za-z]+)?
      | (?P<ident>[A-Za-z_][A-Za-z0-9_.\-]*)
      | (?P<quote>["'])
      | (?P<punct>[{};])
        """,
        re.VERBOSE,
    )

    _ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\"}

    _PUNCTUATION = {
        "{": TokenType.LBRACE,
        "}": TokenType.RBRACE,
        ";": TokenType.SEMICOLON,
    }

    def __init__(self, source: str, filename: str = "<string>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.line_start = 0

    @property
    def column(self) -> int:
        return self.pos - self.line_start + 1

    def _read_string(self, quote: str) -> Token:
        """Read a quoted string starting after the opening quote."""
        line, column = self.line, self.column - 1
        chars: list[str] = []

        while self.pos < len(self.source):
            char = self.source[self.pos]
            self.pos += 1

            if char == quote:
                return Token(TokenType.STRING, "".join(chars), line, column)
            if char == "\n":
                break
            if char == "\\":
                if self.pos >= len(self.source):
                    break
                escaped = self.source[self.pos]
                self.pos += 1
                chars.append(self._ESCAPES.get(escaped, escaped))
            else:
                chars.append(char)

        raise LexerError("Unterminated string literal", line, column)

    def _number_token(self, text: str, unit: str | None, line: int, column: int) -> Token:
        value: int | float = float(text) if "." in text else int(text)

        if unit is None:
            return Token(TokenType.NUMBER, value, line, column)

        factor = self.DURATION_UNITS.get(unit.lower())
        if factor is None:
            raise LexerError(f"Unknown duration unit: {unit}", line, column)

        millis = value * factor
        if isinstance(millis, float) and millis.is_integer():
            millis = int(millis)
        return Token(TokenType.DURATION, millis, line, column)

    def next_token(self) -> Token:
        """Return the next significant token."""
        while self.pos < len(self.source):
            line, column = self.line, self.column
            match = self._TOKEN_RE.match(self.source, self.pos)
            if match is None:
                raise LexerError(f"Unexpected character: {self.source[self.pos]!r}", line, column)

            self.pos = match.end()
            kind = match.lastgroup

            if kind == "newline":
                self.line += 1
                self.line_start = self.pos
            elif kind in ("space", "comment"):
                continue
            elif kind in ("number", "unit"):
                return self._number_token(match.group("number"), match.group("unit"), line, column)
            elif kind == "ident":
                word = match.group("ident")
                if word.lower() in self.BOOLEAN_KEYWORDS:
                    return Token(TokenType.BOOLEAN, self.BOOLEAN_KEYWORDS[word.lower()], line, column)
                return Token(TokenType.IDENTIFIER, word, line, column)
            elif kind == "quote":
                return self._read_string(match.group("quote"))
            else:
                char = match.group("punct")
                return Token(self._PUNCTUATION[char], char, line, column)

        return Token(TokenType.EOF, "", self.line, self.column)

    def tokenize(self) -> Iterator[Token]:
        """Generate all tokens from the source, ending with EOF."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def __iter__(self) -> Iterator[Token]:
        return self.tokenize()


def tokenize(source: str, filename: str = "<string>") -> list[Token]:
    """Convenience function to tokenize a source string."""
    return list(Lexer(source, filename))
