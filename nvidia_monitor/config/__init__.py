"""
Configuration parsing module with nginx-like syntax support.
"""

from .lexer import Lexer, LexerError, Token, TokenType
from .loader import (
    ConfigError,
    ConfigLoader,
    ConfigProvider,
    FileConfigProvider,
    StaticConfigProvider,
)
from .parser import ConfigParser, ParseError
from .schema import (
    Alignment,
    AppConfig,
    MemoryUnit,
    MQTTConfig,
    OutputMode,
    Settings,
    TemperatureUnit,
)

__all__ = [
    "Lexer",
    "LexerError",
    "Token",
    "TokenType",
    "ConfigParser",
    "ParseError",
    "ConfigError",
    "ConfigLoader",
    "ConfigProvider",
    "FileConfigProvider",
    "StaticConfigProvider",
    "Alignment",
    "AppConfig",
    "MemoryUnit",
    "MQTTConfig",
    "OutputMode",
    "Settings",
    "TemperatureUnit",
]
