"""
Parser for the metadata mini-language embedded in task text.

Main API:
    parse_metadata(raw, today) -> ParsedText

Token grammar (whitespace separated, any order):

    !VALUE    deadline  (YYYY-MM-DD, today, tomorrow, yesterday, day name)
    @VALUE    reminder  (same values as deadline)
    #TAG      tag       ([A-Za-z0-9_-]+, lower-cased, deduplicated)
    $N        importance (1..5)
    //TEXT    notes     (the rest of the line, taken verbatim)

Every other word is part of the description. Deadline, reminder and
importance are last-wins when repeated. The parser is strict: a token with a
recognised prefix and an unusable value raises ParseError instead of being
dropped or left in the description.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Set

from yarmtl.errors import ParseError, ParseErrorKind
from yarmtl.models.task import TAG_RE, MAX_IMPORTANCE, MIN_IMPORTANCE
from yarmtl.utils.dates import resolve_date

ID_TOKEN_RE = re.compile(r"^\[id:([A-Za-z0-9_-]+)\]$")
NOTES_PREFIX = "//"
IMPORTANCE_RE = re.compile(r"[0-9]+")


@dataclass
class ParsedText:
    """Result of splitting raw task text into description and metadata."""

    description: str
    deadline: Optional[date] = None
    reminder: Optional[date] = None
    tags: Set[str] = field(default_factory=set)
    notes: Optional[str] = None
    importance: Optional[int] = None
    task_id: Optional[str] = None

    @property
    def has_metadata(self) -> bool:
        return any((
            self.deadline is not None,
            self.reminder is not None,
            self.tags,
            self.notes is not None,
            self.importance is not None,
            self.task_id is not None,
        ))


def _parse_date_token(token: str, today: date) -> date:
    resolved = resolve_date(token[1:], today)
    if resolved is None:
        raise ParseError(ParseErrorKind.INVALID_DATE, token)
    return resolved


def _parse_importance_token(token: str) -> int:
    value = token[1:]
    if not IMPORTANCE_RE.fullmatch(value):
        raise ParseError(ParseErrorKind.INVALID_IMPORTANCE, token)
    importance = int(value)
    if not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE:
        raise ParseError(ParseErrorKind.INVALID_IMPORTANCE, token)
    return importance


def _parse_tag_token(token: str) -> str:
    name = token[1:]
    if not TAG_RE.match(name):
        raise ParseError(ParseErrorKind.INVALID_TAG, token)
    return name.lower()


def parse_metadata(raw: str, today: date, *, allow_id: bool = False) -> ParsedText:
    """
    Split raw task text into its description and metadata fields.

    Args:
        raw: Free text typed by the user (or the body of a task line)
        today: Reference date for relative keywords like ``!tomorrow``
        allow_id: Accept a ``[id:...]`` token (only valid when reading tasks.md)

    Returns:
        ParsedText with the description whitespace-collapsed and trimmed

    Raises:
        ParseError: if any token is malformed
    """
    result = ParsedText(description="")
    words: List[str] = []

    for match in re.finditer(r"\S+", raw):
        token = match.group()

        if token.startswith(NOTES_PREFIX):
            notes = raw[match.start() + len(NOTES_PREFIX):].strip()
            result.notes = notes or None
            break

        prefix = token[0]
        if prefix == "!":
            result.deadline = _parse_date_token(token, today)
        elif prefix == "@":
            result.reminder = _parse_date_token(token, today)
        elif prefix == "#":
            result.tags.add(_parse_tag_token(token))
        elif prefix == "$":
            result.importance = _parse_importance_token(token)
        elif ID_TOKEN_RE.match(token):
            if not allow_id:
                raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, token)
            result.task_id = ID_TOKEN_RE.match(token).group(1)
        else:
            words.append(token)

    result.description = " ".join(words)
    return result
