from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class PipeError(Exception):
    """
    Base class for failures that travel through a pipe as ordinary values.

    Steps return these instead of raising them; `throw_pipe()` is the one place
    where they turn back into exceptions.
    """

    code = "pipe_error"

    def errors(self) -> List[Dict[str, Any]]:
        return []


class ParseError(PipeError):
    code = "parse_error"

    def __init__(self, message: str = "Value could not be parsed.", value: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.value = value

    def errors(self) -> List[Dict[str, Any]]:
        return [{"type": self.code, "msg": self.message, "input": _jsonable(self.value)}]


@dataclass(frozen=True)
class FieldViolation:
    """
    One failing field of a dataclass validation.

    `constraints` maps every rule the field broke (pydantic error type) to its message.
    """

    property: str
    value: Any = None
    constraints: Dict[str, str] = field(default_factory=dict)


class ClassValidatorError(PipeError):
    code = "class_validation_error"

    def __init__(self, details: List[FieldViolation], message: Optional[str] = None) -> None:
        self.details = list(details)
        names = ", ".join(d.property for d in self.details)
        self.message = message or f"{len(self.details)} field(s) failed validation: {names}"
        super().__init__(self.message)

    def errors(self) -> List[Dict[str, Any]]:
        return [
            {
                "property": d.property,
                "input": _jsonable(d.value),
                "constraints": dict(d.constraints),
            }
            for d in self.details
        ]


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return repr(value)


__all__ = ["ClassValidatorError", "FieldViolation", "ParseError", "PipeError"]
