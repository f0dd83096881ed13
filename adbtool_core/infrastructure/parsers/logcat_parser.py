"""
Logcat line tokenizer for `adb logcat -v threadtime` output.

A threadtime line looks like:

    01-15 12:34:56.789  1234  5678 D MyTag   : hello

Tokenizing is a pure function of the line. Lines that do not carry the
timestamp prefix (such as `--------- beginning of main`) are rejected with
None, which is normal control flow rather than an error.
"""

from typing import Optional

from adbtool_core.logic.models import LogcatLine, VALID_LEVELS

MIN_LINE_LENGTH = 20
TIMESTAMP_LENGTH = 18

# MM-DD HH:MM:SS.mmm
TIMESTAMP_SEPARATORS = ((2, '-'), (5, ' '), (8, ':'), (11, ':'), (14, '.'))

TAG_SEPARATOR = ": "


def _has_timestamp_prefix(line: str) -> bool:
    return all(line[position] == separator for position, separator in TIMESTAMP_SEPARATORS)


def _split_tag_message(text: str):
    """
    Split `TAG: message` on the first ": ".

    Message bodies may contain colons, so the first separator wins. Without
    one, a trailing ':' still ends the tag; otherwise the whole text is the tag.
    """
    separator = text.find(TAG_SEPARATOR)
    if separator != -1:
        return text[:separator].strip(), text[separator + len(TAG_SEPARATOR):]
    if text.endswith(':'):
        return text[:-1].strip(), ""
    return text.strip(), ""


def parse_logcat_line(raw_line: str) -> Optional[LogcatLine]:
    """
    Parse one threadtime line.

    Args:
        raw_line: Line as read from logcat, with or without the newline

    Returns:
        LogcatLine, or None if the line is not a threadtime log line
    """
    line = raw_line.strip()
    if len(line) < MIN_LINE_LENGTH or not _has_timestamp_prefix(line):
        return None

    timestamp = line[:TIMESTAMP_LENGTH]

    # PID, TID, level, then everything else
    fields = line[TIMESTAMP_LENGTH:].split(None, 3)
    if len(fields) < 4:
        return None

    pid, tid, level, remainder = fields
    if level not in VALID_LEVELS:
        return None

    tag, message = _split_tag_message(remainder)

    return LogcatLine(
        timestamp=timestamp,
        pid=pid,
        tid=tid,
        level=level,
        tag=tag,
        message=message,
        raw=raw_line
    )


def to_event(raw_line: str) -> Optional[LogcatLine]:
    """
    Turn a streamed line into the event relayed to subscribers.

    Untokenizable but non-blank lines become raw-only records so no content
    is lost; blank lines produce no event.
    """
    parsed = parse_logcat_line(raw_line)
    if parsed is not None:
        return parsed
    if raw_line.strip():
        return LogcatLine.raw_only(raw_line)
    return None
