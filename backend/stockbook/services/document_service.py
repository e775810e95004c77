# Overview: Service-layer operations for document numbering; derives the next human-readable number.

"""
Numbering Service

Formats:
    long   -> PREFIX-YYYY-NNNN   (sequence restarts each year)
    short  -> PREFIX-NNNN
    custom -> template with {PREFIX} {YEAR} {MONTH} {DAY} {SEQ} placeholders

The next number is derived from existing documents: the highest sequence
in the prefix/format series is incremented by one. Cancelled
documents still count, so a number is never reused.

AVAILABILITY OVER PRECISION:
If the history scan fails, a date-seeded placeholder PREFIX-YYYYMMDD-0001 is
returned with a NumberingFallback warning instead of blocking document entry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date

from ..errors import EngineError, EngineWarning, NumberingFallback, ValidationError
from .gateways import NumberingGateway


logger = logging.getLogger("stockbook.numbering")

FORMAT_LONG = "long"
FORMAT_SHORT = "short"
FORMAT_CUSTOM = "custom"
VALID_FORMATS = (FORMAT_LONG, FORMAT_SHORT, FORMAT_CUSTOM)

DEFAULT_PAD = 4

_TRAILING_DIGITS = re.compile(r"(\d+)$")
_PLACEHOLDER = re.compile(r"\{(PREFIX|YEAR|MONTH|DAY|SEQ)\}")

_LONG_LAYOUT = "{PREFIX}-{YEAR}-{SEQ}"
_SHORT_LAYOUT = "{PREFIX}-{SEQ}"


class DocumentSequenceError(ValidationError):
    """Raised when a numbering format or template is unusable."""


@dataclass(frozen=True)
class DocumentNumber:
    value: str
    sequence: int
    warning: EngineWarning | None = None

    @property
    def is_fallback(self) -> bool:
        return self.warning is not None


def number_layout(fmt: str, template: str | None = None) -> str:
    """Placeholder layout for a format; every other numbering helper is derived from it."""
    if fmt == FORMAT_SHORT:
        return _SHORT_LAYOUT
    if fmt == FORMAT_LONG:
        return _LONG_LAYOUT
    if fmt == FORMAT_CUSTOM:
        if not template:
            # Empty custom template falls back to the long layout
            return _LONG_LAYOUT
        if template.count("{SEQ}") != 1:
            raise DocumentSequenceError("Custom number template must contain {SEQ} exactly once")
        return template
    raise DocumentSequenceError(f"Invalid number format '{fmt}'. Must be one of: {', '.join(VALID_FORMATS)}")


def _date_values(prefix: str, reference_date: date) -> dict[str, str]:
    return {
        "PREFIX": prefix,
        "YEAR": str(reference_date.year),
        "MONTH": f"{reference_date.month:02d}",
        "DAY": f"{reference_date.day:02d}",
    }


def _fill(layout: str, values: dict[str, str]) -> str:
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], layout)


def render_number(
    prefix: str,
    fmt: str,
    sequence: int,
    reference_date: date,
    *,
    template: str | None = None,
    pad: int = DEFAULT_PAD,
) -> str:
    values = _date_values(prefix, reference_date)
    values["SEQ"] = f"{sequence:0{pad}d}"
    return _fill(number_layout(fmt, template), values)


def search_pattern(prefix: str, fmt: str, reference_date: date, *, template: str | None = None) -> str:
    """SQL LIKE pattern selecting the documents that share a sequence with the next number."""
    values = _date_values(prefix, reference_date)
    values["SEQ"] = "%"
    return _fill(number_layout(fmt, template), values)


def sequence_matcher(prefix: str, fmt: str, reference_date: date, *, template: str | None = None) -> re.Pattern:
    """
    Regex matching a whole document number of the series, capturing its sequence.

    {SEQ} may sit anywhere in a custom template ("{PREFIX}/{SEQ}/{YEAR}"), so
    the sequence is read from its own position rather than the trailing digits.
    """
    values = {name: re.escape(value) for name, value in _date_values(prefix, reference_date).items()}
    values["SEQ"] = r"(\d+)"
    # split() keeps the captured placeholder names at odd positions
    pieces = _PLACEHOLDER.split(number_layout(fmt, template))
    return re.compile("".join(values[p] if i % 2 else re.escape(p) for i, p in enumerate(pieces)))


def parse_sequence(document_number: str | None, matcher: re.Pattern | None = None) -> int:
    """
    Sequence of a document number; 0 when there is none.

    Without a matcher the trailing digits are used. With one, numbers outside
    the series count as 0.
    """
    if not document_number:
        return 0
    text = document_number.strip()
    match = matcher.fullmatch(text) if matcher is not None else _TRAILING_DIGITS.search(text)
    return int(match.group(1)) if match else 0


def fallback_number(prefix: str, reference_date: date) -> str:
    return f"{prefix}-{reference_date:%Y%m%d}-0001"


def next_document_number(
    history: NumberingGateway,
    *,
    prefix: str,
    fmt: str = FORMAT_LONG,
    reference_date: date,
    template: str | None = None,
    pad: int = DEFAULT_PAD,
) -> DocumentNumber:
    """
    Derive the next document number for prefix/format/date.

    Raises:
        DocumentSequenceError: unusable format or template (configuration problem)
    """
    if not prefix:
        raise DocumentSequenceError("prefix is required")

    pattern = search_pattern(prefix, fmt, reference_date, template=template)
    matcher = sequence_matcher(prefix, fmt, reference_date, template=template)
    try:
        last = history.find_last_document_number(
            prefix,
            pattern,
            sequence_of=lambda number: parse_sequence(number, matcher),
        )
    except EngineError as exc:
        logger.warning("Document number history unavailable for %s: %s", prefix, exc)
        placeholder = fallback_number(prefix, reference_date)
        return DocumentNumber(
            value=placeholder,
            sequence=1,
            warning=NumberingFallback(
                f"Numbering history unavailable; placeholder {placeholder} used",
                prefix=prefix,
                placeholder=placeholder,
            ),
        )

    sequence = parse_sequence(last, matcher) + 1
    return DocumentNumber(
        value=render_number(prefix, fmt, sequence, reference_date, template=template, pad=pad),
        sequence=sequence,
    )
