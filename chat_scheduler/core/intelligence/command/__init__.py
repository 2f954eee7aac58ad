"""Command parsing module."""

from .types import Action, ParsedCommand, Timeframe
from .parser import (
    COMMAND_PATTERNS,
    CommandParser,
    CommandPattern,
    get_command_parser,
    parse_command,
)

__all__ = [
    # Types
    "Action",
    "ParsedCommand",
    "Timeframe",
    # Parser
    "COMMAND_PATTERNS",
    "CommandParser",
    "CommandPattern",
    "get_command_parser",
    "parse_command",
]
