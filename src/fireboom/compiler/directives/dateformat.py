"""Named date layouts shared by ``@formatDateTime`` and ``@injectCurrentDateTime``."""

from __future__ import annotations

from typing import Dict, Optional

from .base import enum_sdl

DATE_FORMAT_ENUM = "EngineDateTimeFormat"
ARG_FORMAT = "format"
ARG_CUSTOM_FORMAT = "customFormat"
ISO8601 = "ISO8601"

# Layouts in the reference-time notation the engine formats with
DATE_FORMATS: Dict[str, str] = {
    ISO8601: "2006-01-02T15:04:05Z07:00",
    "ANSIC": "Mon Jan _2 15:04:05 2006",
    "UnixDate": "Mon Jan _2 15:04:05 MST 2006",
    "RubyDate": "Mon Jan 02 15:04:05 -0700 2006",
    "RFC822": "02 Jan 06 15:04 MST",
    "RFC822Z": "02 Jan 06 15:04 -0700",
    "RFC850": "Monday, 02-Jan-06 15:04:05 MST",
    "RFC1123": "Mon, 02 Jan 2006 15:04:05 MST",
    "RFC1123Z": "Mon, 02 Jan 2006 15:04:05 -0700",
    "RFC3339": "2006-01-02T15:04:05Z07:00",
    "RFC3339Nano": "2006-01-02T15:04:05.999999999Z07:00",
    "Kitchen": "3:04PM",
    "Stamp": "Jan _2 15:04:05",
    "StampMilli": "Jan _2 15:04:05.000",
    "StampMicro": "Jan _2 15:04:05.000000",
    "StampNano": "Jan _2 15:04:05.000000000",
    "DateTime": "2006-01-02 15:04:05",
    "DateOnly": "2006-01-02",
    "TimeOnly": "15:04:05",
}

DATE_FORMAT_ARGUMENTS = f"{ARG_FORMAT}: {DATE_FORMAT_ENUM} = {ISO8601}, {ARG_CUSTOM_FORMAT}: String"
DATE_FORMAT_DEFINITIONS = enum_sdl(DATE_FORMAT_ENUM, list(DATE_FORMATS))


def date_format_value(arguments: Dict[str, str]) -> Optional[str]:
    """Layout selected by the arguments; ``customFormat`` wins over ``format``."""
    layout = None
    if ARG_FORMAT in arguments:
        layout = DATE_FORMATS.get(arguments[ARG_FORMAT])
    if ARG_CUSTOM_FORMAT in arguments:
        layout = arguments[ARG_CUSTOM_FORMAT]
    return layout
