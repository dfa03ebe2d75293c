from __future__ import annotations

import enum
import json
import re
from collections.abc import Mapping
from typing import Any, Callable, Union

from pipewise.errors import ParseError

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))")


def parse_int_pipe() -> Callable[[Any], Union[int, ParseError]]:
    """
    Parse the leading integer of a string.

    Surrounding whitespace and trailing text are ignored ("12px" -> 12); a value
    without leading digits is a ParseError.
    """

    def _parse_int(value: Any) -> Union[int, ParseError]:
        if isinstance(value, bool):
            return ParseError("Expected an integer, got a boolean.", value)
        if isinstance(value, int):
            return value
        m = _INT_PREFIX.match(str(value)) if value is not None else None
        if not m:
            return ParseError("Value is not an integer.", value)
        return int(m.group(1))

    return _parse_int


def parse_float_pipe() -> Callable[[Any], Union[float, ParseError]]:
    """Parse the leading decimal or scientific-notation number of a string."""

    def _parse_float(value: Any) -> Union[float, ParseError]:
        if isinstance(value, bool):
            return ParseError("Expected a number, got a boolean.", value)
        if isinstance(value, (int, float)):
            return float(value)
        m = _FLOAT_PREFIX.match(str(value)) if value is not None else None
        if not m:
            return ParseError("Value is not a number.", value)
        return float(m.group(1).replace("Infinity", "inf"))

    return _parse_float


def parse_bool_pipe() -> Callable[[Any], Union[bool, ParseError]]:
    # Case-sensitive: "True", "1", "yes" are all rejected.
    def _parse_bool(value: Any) -> Union[bool, ParseError]:
        if value == "true":
            return True
        if value == "false":
            return False
        return ParseError('Expected "true" or "false".', value)

    return _parse_bool


def parse_enum_pipe(choices: Any) -> Callable[[Any], Any]:
    """
    Accept only the permissible values of `choices`.

    `choices` may be an `Enum` subclass (the matching member is returned), a
    mapping (its values are permissible) or any other collection of values.
    """
    if isinstance(choices, type) and issubclass(choices, enum.Enum):

        def _parse_member(value: Any) -> Any:
            try:
                return choices(value)
            except ValueError:
                return ParseError(f"Value is not a member of {choices.__name__}.", value)

        return _parse_member

    allowed = list(choices.values()) if isinstance(choices, Mapping) else list(choices)

    def _parse_value(value: Any) -> Any:
        if value in allowed:
            return value
        return ParseError("Value is not one of the permitted values.", value)

    return _parse_value


def parse_json_pipe() -> Callable[[Any], Any]:
    def _parse_json(value: Any) -> Any:
        try:
            return json.loads(value)
        except (TypeError, ValueError) as e:
            return ParseError(f"Invalid JSON: {e}", value)

    return _parse_json


def default_value_pipe(fallback: Any) -> Callable[[Any], Any]:
    """Substitute `fallback` for None; falsy values such as 0 or "" pass through."""

    def _default(value: Any) -> Any:
        return fallback if value is None else value

    return _default


__all__ = [
    "default_value_pipe",
    "parse_bool_pipe",
    "parse_enum_pipe",
    "parse_float_pipe",
    "parse_int_pipe",
    "parse_json_pipe",
]
