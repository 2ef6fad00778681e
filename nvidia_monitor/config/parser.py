"""
Recursive descent parser for the configuration syntax.

Produces a tree of blocks and directives, which can be flattened into
dotted keys:

    show {              ->  show.gpu = True
        gpu on;
    }
    alignment right;    ->  alignment = "right"
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .lexer import Lexer, Token, TokenType


class ParseError(Exception):
    """Exception raised for parser errors."""

    def __init__(self, message: str, token: Token | None = None):
        self.token = token
        if token:
            super().__init__(f"Line {token.line}, column {token.column}: {message}")
        else:
            super().__init__(message)


@dataclass
class Directive:
    """
    A directive with a name and values.

    Examples:
        port 1883;            -> Directive(name="port", values=[1883])
        gpu on;               -> Directive(name="gpu", values=[True])
    """

    name: str
    values: list[Any] = field(default_factory=list)
    line: int = 0

    @property
    def value(self) -> Any:
        """Single value, list of values, or True for a bare directive."""
        if not self.values:
            return True
        if len(self.values) == 1:
            return self.values[0]
        return list(self.values)


@dataclass
class Block:
    """A named block of directives and nested blocks."""

    name: str
    directives: list[Directive] = field(default_factory=list)
    blocks: list["Block"] = field(default_factory=list)
    line: int = 0


@dataclass
class ConfigDocument:
    """Root of a parsed configuration."""

    directives: list[Directive] = field(default_factory=list)
    blocks: list[Block] = field(default_factory=list)
    filename: str = "<string>"

    def flatten(self) -> dict[str, Any]:
        """
        Flatten the tree into a dict of dotted keys.

        Later definitions override earlier ones.
        """
        result: dict[str, Any] = {}
        _flatten_into(result, "", self.directives, self.blocks)
        return result


def _flatten_into(
    result: dict[str, Any],
    prefix: str,
    directives: list[Directive],
    blocks: list[Block],
) -> None:
    for directive in directives:
        result[f"{prefix}{directive.name}"] = directive.value
    for block in blocks:
        _flatten_into(result, f"{prefix}{block.name}.", block.directives, block.blocks)


class ConfigParser:
    """
    Parser for the configuration syntax.

    Grammar:
        document    := (block | directive)*
        block       := IDENTIFIER '{' (block | directive)* '}'
        directive   := IDENTIFIER value* ';'
        value       := STRING | NUMBER | DURATION | BOOLEAN | IDENTIFIER
    """

    VALUE_TYPES = (
        TokenType.STRING,
        TokenType.NUMBER,
        TokenType.DURATION,
        TokenType.BOOLEAN,
        TokenType.IDENTIFIER,
    )

    def __init__(self, source: str, filename: str = "<string>"):
        self.lexer = Lexer(source, filename)
        self.filename = filename
        self.current: Token = self.lexer.next_token()

    def _advance(self) -> Token:
        previous = self.current
        self.current = self.lexer.next_token()
        return previous

    def _expect(self, token_type: TokenType, message: str) -> Token:
        if self.current.type != token_type:
            raise ParseError(message, self.current)
        return self._advance()

    def parse(self) -> ConfigDocument:
        """Parse the entire document."""
        doc = ConfigDocument(filename=self.filename)
        self._parse_items(doc.directives, doc.blocks, closing=TokenType.EOF)
        return doc

    def _parse_items(
        self,
        directives: list[Directive],
        blocks: list[Block],
        closing: TokenType,
    ) -> None:
        while self.current.type != closing:
            if self.current.type == TokenType.EOF:
                raise ParseError("Unexpected end of input, expected '}'", self.current)
            if self.current.type != TokenType.IDENTIFIER:
                raise ParseError(
                    f"Expected directive or block name, got {self.current.type.name}",
                    self.current,
                )

            item = self._parse_block_or_directive()
            if isinstance(item, Block):
                blocks.append(item)
            else:
                directives.append(item)

    def _parse_block_or_directive(self) -> Block | Directive:
        name_token = self._advance()
        name = str(name_token.value)

        if self.current.type == TokenType.LBRACE:
            self._advance()
            block = Block(name=name, line=name_token.line)
            self._parse_items(block.directives, block.blocks, closing=TokenType.RBRACE)
            self._expect(TokenType.RBRACE, f"Expected '}}' to close '{name}' block")
            return block

        values: list[Any] = []
        while self.current.type in self.VALUE_TYPES:
            values.append(self._advance().value)

        self._expect(TokenType.SEMICOLON, f"Expected ';' after directive '{name}'")
        return Directive(name=name, values=values, line=name_token.line)


def parse_config(source: str, filename: str = "<string>") -> ConfigDocument:
    """Parse a configuration string."""
    return ConfigParser(source, filename).parse()


def parse_config_file(path: str | Path) -> ConfigDocument:
    """Parse a configuration file."""
    path = Path(path)
    return parse_config(path.read_text(encoding="utf-8"), str(path))
