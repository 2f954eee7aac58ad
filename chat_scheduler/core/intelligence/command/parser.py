"""
Rule-based command parser.

Turns a free-text chat message into a ParsedCommand. Patterns run against an
accent-free, lowercase copy of the message; an offset map lets the patient
name be cut from the original text so typed accents survive.

The pattern table is ordered: schedule, cancel, view, block, help, and
most-specific first inside each group. The first match wins.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from functools import partial
from typing import Callable, Optional

from chat_scheduler.core.clock import local_now
from chat_scheduler.core.text import fold_with_offsets, title_case
from .types import Action, ParsedCommand, Timeframe

logger = logging.getLogger(__name__)


WEEKDAY_INDEX = {
    "segunda": 0, "seg": 0,
    "terca": 1, "ter": 1,
    "quarta": 2, "qua": 2,
    "quinta": 3, "qui": 3,
    "sexta": 4, "sex": 4,
    "sabado": 5, "sab": 5,
    "domingo": 6, "dom": 6,
}

# Confidence per pattern family, with and without a date reference
DATED_CONFIDENCE = {
    Action.SCHEDULE: 0.9,
    Action.CANCEL: 0.85,
    Action.BLOCK: 0.8,
}
UNDATED_CONFIDENCE = 0.3
VIEW_CONFIDENCE = 0.95
HELP_CONFIDENCE = 1.0

# Block periods (start, end)
PERIODS = {
    "manha": (time(6, 0), time(12, 0)),
    "tarde": (time(12, 0), time(18, 0)),
    "noite": (time(18, 0), time(23, 59)),
}


# Building blocks (applied to folded text)
_WEEKDAY = (
    r"(?P<weekday>segunda|terca|quarta|quinta|sexta|sabado|domingo"
    r"|seg|ter|qua|qui|sex|sab|dom)\b"
)
_FEIRA = r"(?:\s*-?\s*feira)?"
_RELATIVE = r"(?P<relative>hoje|amanha)\b"
# Numbers must be whole: "140", "14:3" or "10/08/202" match nothing
_DATE = (
    r"(?<![\d/])(?P<day>\d{1,2})/(?P<month>\d{1,2})"
    r"(?:/(?P<year>\d{4}|\d{2}))?(?![\d/])"
)
_TIME = r"(?<!\d)(?P<hour>\d{1,2})(?:(?::|h)(?P<minute>\d{2}))?(?:horas|h)?(?![\d:h])"
_END_TIME = (
    r"(?<!\d)(?P<end_hour>\d{1,2})(?:(?::|h)(?P<end_minute>\d{2}))?(?:horas|h)?(?![\d:h])"
)
_NAME = r"(?P<name>[a-z][a-z\s]*?)"
_AT = r"(?:as\s+)?"

# A bare name may not start with, or run into, a day word
_DAY_WORDS = (
    r"(?:segunda|terca|quarta|quinta|sexta|sabado|domingo"
    r"|seg|ter|qua|qui|sex|sab|dom|hoje|amanha|dia|na|no|proxima|proximo)"
)
_NAME_WORD = rf"(?!{_DAY_WORDS}\b)[a-z]+"
_BARE_NAME = rf"(?P<name>{_NAME_WORD}(?:\s+{_NAME_WORD})*)(?=\s|$)"

_SCHEDULE = r"\b(?:agendar|marcar)"
_CANCEL = r"\b(?:cancelar|desmarcar)"
_BLOCK = r"\b(?:bloquear|nao\s+atender)"
_AGENDA = r"(?:(?:a\s+|minha\s+)?agenda\s+)?"
# View phrasings also occur inside block commands ("bloquear a agenda hoje")
_NOT_BLOCK = rf"^(?!.*{_BLOCK})"
_DAYREF = (
    rf"(?:(?:no\s+)?(?:dia\s+)?{_DATE}"
    rf"|(?:na\s+|no\s+)?(?:proxima\s+|proximo\s+)?{_WEEKDAY}{_FEIRA}"
    rf"|{_RELATIVE})"
)


@dataclass
class _Utterance:
    """One message, folded for matching, with a way back to the original."""

    raw: str
    folded: str
    offsets: list[int]
    now: datetime

    @classmethod
    def build(cls, message: str, now: datetime) -> "_Utterance":
        folded, offsets = fold_with_offsets(message)
        return cls(raw=message, folded=folded, offsets=offsets, now=now)

    def original(self, match: re.Match, group: str) -> Optional[str]:
        """Slice of the original message behind a matched group."""
        start, end = match.span(group)
        if start < 0 or end <= start:
            return None
        return self.raw[self.offsets[start]:self.offsets[end - 1] + 1]


@dataclass(frozen=True)
class CommandPattern:
    """One entry of the ordered pattern table."""

    action: Action
    regex: re.Pattern
    extract: Callable[[re.Match, _Utterance], ParsedCommand]


def _resolve_day(groups: dict, today: date) -> Optional[date]:
    """
    Resolve the date reference of a match.

    Raises:
        ValueError: if the literal is not a real calendar date.
    """
    if groups.get("weekday"):
        target = WEEKDAY_INDEX[groups["weekday"]]
        days_ahead = (target - today.weekday()) % 7 or 7
        return today + timedelta(days=days_ahead)

    if groups.get("relative"):
        if groups["relative"] == "amanha":
            return today + timedelta(days=1)
        return today

    if groups.get("day"):
        year = today.year
        if groups.get("year"):
            year = int(groups["year"])
            if year < 100:
                year += 2000
        return date(year, int(groups["month"]), int(groups["day"]))

    return None


def _resolve_time(hour: str, minute: Optional[str]) -> time:
    """Build a time of day; raises ValueError when out of range."""
    return time(int(hour), int(minute) if minute else 0)


def _has_date_ref(groups: dict) -> bool:
    return any(groups.get(key) for key in ("weekday", "relative", "day"))


def _extract_appointment(
    action: Action,
    match: re.Match,
    utterance: _Utterance,
) -> ParsedCommand:
    """Entities for schedule and cancel commands."""
    groups = match.groupdict()
    name = utterance.original(match, "name")
    dated = _has_date_ref(groups)

    command = ParsedCommand(
        action=action,
        confidence=DATED_CONFIDENCE[action] if dated else UNDATED_CONFIDENCE,
        raw_text=utterance.raw,
        patient_name_raw=title_case(name) if name else None,
        has_time=groups.get("hour") is not None,
    )

    if not dated:
        return command

    try:
        day = _resolve_day(groups, utterance.now.date())
        at = time()
        if command.has_time:
            at = _resolve_time(groups["hour"], groups.get("minute"))
        command.proposed_datetime = datetime.combine(day, at)
    except ValueError:
        command.invalid_date = True
        logger.debug(f"Invalid date literal in: {utterance.raw!r}")

    return command


def _extract_block(match: re.Match, utterance: _Utterance) -> ParsedCommand:
    """Entities for block commands: a start and an end."""
    groups = match.groupdict()
    dated = _has_date_ref(groups)

    command = ParsedCommand(
        action=Action.BLOCK,
        confidence=DATED_CONFIDENCE[Action.BLOCK] if dated else UNDATED_CONFIDENCE,
        raw_text=utterance.raw,
        has_time=groups.get("hour") is not None,
    )

    if not dated:
        return command

    try:
        day = _resolve_day(groups, utterance.now.date())
        if command.has_time:
            start = datetime.combine(day, _resolve_time(groups["hour"], groups.get("minute")))
            end = datetime.combine(
                day, _resolve_time(groups["end_hour"], groups.get("end_minute"))
            )
        elif groups.get("period"):
            period_start, period_end = PERIODS[groups["period"]]
            start = datetime.combine(day, period_start)
            end = datetime.combine(day, period_end)
        else:
            start = datetime.combine(day, time())
            end = start + timedelta(days=1)
        command.proposed_datetime = start
        command.block_end = end
    except ValueError:
        command.invalid_date = True

    return command


def _extract_view(match: re.Match, utterance: _Utterance) -> ParsedCommand:
    text = utterance.folded
    if "semana" in text:
        timeframe = Timeframe.WEEK
    elif re.search(r"\bmes\b", text):
        timeframe = Timeframe.MONTH
    elif re.search(r"\b(?:hoje|dia)\b", text):
        timeframe = Timeframe.DAY
    else:
        timeframe = Timeframe.WEEK

    return ParsedCommand(
        action=Action.VIEW,
        confidence=VIEW_CONFIDENCE,
        raw_text=utterance.raw,
        timeframe=timeframe,
    )


def _extract_help(match: re.Match, utterance: _Utterance) -> ParsedCommand:
    return ParsedCommand(
        action=Action.HELP,
        confidence=HELP_CONFIDENCE,
        raw_text=utterance.raw,
    )


def _pattern(action: Action, regex: str, extract=None) -> CommandPattern:
    if extract is None:
        extract = partial(_extract_appointment, action)
    return CommandPattern(action=action, regex=re.compile(regex), extract=extract)


COMMAND_PATTERNS: tuple[CommandPattern, ...] = (
    # Schedule
    _pattern(Action.SCHEDULE, rf"{_SCHEDULE}\s+{_NAME}\s+(?:no\s+)?dia\s+{_DATE}\s+{_AT}{_TIME}"),
    _pattern(
        Action.SCHEDULE,
        rf"{_SCHEDULE}\s+{_NAME}\s+(?:na\s+|no\s+)?(?:proxima\s+|proximo\s+)?"
        rf"{_WEEKDAY}{_FEIRA}\s+{_AT}{_TIME}",
    ),
    _pattern(Action.SCHEDULE, rf"{_SCHEDULE}\s+{_NAME}\s+{_RELATIVE}\s+{_AT}{_TIME}"),
    _pattern(Action.SCHEDULE, rf"{_SCHEDULE}\s+{_NAME}\s+{_DATE}\s+{_AT}{_TIME}"),
    _pattern(Action.SCHEDULE, rf"{_SCHEDULE}\s+{_BARE_NAME}"),
    # Cancel
    _pattern(
        Action.CANCEL,
        rf"{_CANCEL}\s+{_NAME}\s+(?:no\s+)?dia\s+{_DATE}(?:\s+{_AT}{_TIME})?",
    ),
    _pattern(
        Action.CANCEL,
        rf"{_CANCEL}\s+{_NAME}\s+(?:na\s+|no\s+)?(?:proxima\s+|proximo\s+)?"
        rf"{_WEEKDAY}{_FEIRA}(?:\s+{_AT}{_TIME})?",
    ),
    _pattern(Action.CANCEL, rf"{_CANCEL}\s+{_NAME}\s+{_RELATIVE}(?:\s+{_AT}{_TIME})?"),
    _pattern(Action.CANCEL, rf"{_CANCEL}\s+{_NAME}\s+{_DATE}(?:\s+{_AT}{_TIME})?"),
    _pattern(Action.CANCEL, rf"{_CANCEL}\s+{_BARE_NAME}"),
    # View
    _pattern(
        Action.VIEW,
        rf"{_NOT_BLOCK}.*?\b(?:mostrar|ver|exibir)\s+(?:a\s+|minha\s+)?"
        r"(?:agenda|semana|dia|mes)\b",
        _extract_view,
    ),
    _pattern(
        Action.VIEW,
        rf"{_NOT_BLOCK}.*?\bagenda\s+(?:da\s+|de\s+|do\s+)?(?:semana|hoje|amanha|mes)\b",
        _extract_view,
    ),
    _pattern(
        Action.VIEW,
        r"^\s*(?:como\s+esta\s+)?(?:a\s+|minha\s+)?(?:semana|hoje|amanha)\b",
        _extract_view,
    ),
    _pattern(
        Action.VIEW,
        rf"{_NOT_BLOCK}.*?\bo\s+que\s+tenho\s+"
        r"(?:hoje|amanha|(?:essa|esta|nesta|nessa)\s+semana)\b",
        _extract_view,
    ),
    # Block
    _pattern(
        Action.BLOCK,
        rf"{_BLOCK}\s+{_AGENDA}{_DAYREF}\s+(?:das\s+|de\s+)?{_TIME}"
        rf"\s*(?:as|ate|a|-)\s*{_END_TIME}",
        _extract_block,
    ),
    _pattern(
        Action.BLOCK,
        rf"{_BLOCK}\s+{_AGENDA}{_DAYREF}"
        r"(?:\s+(?:a\s+|de\s+|pela\s+|na\s+)?(?P<period>manha|tarde|noite))?",
        _extract_block,
    ),
    _pattern(Action.BLOCK, rf"{_BLOCK}\b", _extract_block),
    # Help
    _pattern(Action.HELP, r"\b(?:ajuda|help|comandos|como\s+usar)\b", _extract_help),
    _pattern(Action.HELP, r"\bo\s+que\s+(?:posso|voce\s+pode)\s+fazer\b", _extract_help),
)


class CommandParser:
    """
    Parses owner messages into structured commands.

    Deterministic for a given ``now`` and never raises: anything it does not
    recognize comes back as an UNKNOWN command with zero confidence.
    """

    def __init__(self, patterns: tuple[CommandPattern, ...] = COMMAND_PATTERNS):
        self.patterns = patterns

    def parse(self, message: str, now: Optional[datetime] = None) -> ParsedCommand:
        """
        Parse a message.

        Args:
            message: Raw chat text
            now: Reference local time for relative dates (defaults to the
                calendar clock)

        Returns:
            ParsedCommand for the first matching pattern
        """
        if not message or not message.strip():
            return ParsedCommand.unknown(message or "")

        utterance = _Utterance.build(message, now or local_now())

        for pattern in self.patterns:
            match = pattern.regex.search(utterance.folded)
            if match:
                command = pattern.extract(match, utterance)
                logger.debug(
                    f"Parsed {command.action.value} "
                    f"(confidence={command.confidence}) from {message!r}"
                )
                return command

        logger.debug(f"No command pattern matched: {message!r}")
        return ParsedCommand.unknown(message)


# Singleton
_parser: Optional[CommandParser] = None


def get_command_parser() -> CommandParser:
    """Get singleton CommandParser."""
    global _parser
    if _parser is None:
        _parser = CommandParser()
    return _parser


def parse_command(message: str, now: Optional[datetime] = None) -> ParsedCommand:
    """
    Convenience function to parse a message.

    Usage:
        command = parse_command("agendar Ana quinta 14h")
        print(command.action)  # Action.SCHEDULE
    """
    return get_command_parser().parse(message, now=now)
