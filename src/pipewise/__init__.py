"""
Composable sync/async pipes with errors returned as values.

- Composition: `core.py` (`pipe`, `Pipe.pipe`, `Pipe.flat_pipe`, `throw_pipe`)
- Parsing helpers: `parsing.py`
- Validator adapter: `validation.py`
- Starlette/FastAPI request-field middlewares: `middlewares.py`
"""

from pipewise.core import Pipe, Step, pipe, throw_pipe
from pipewise.errors import ClassValidatorError, FieldViolation, ParseError, PipeError
from pipewise.middlewares import use_body, use_param, use_query
from pipewise.parsing import (
    default_value_pipe,
    parse_bool_pipe,
    parse_enum_pipe,
    parse_float_pipe,
    parse_int_pipe,
    parse_json_pipe,
)
from pipewise.settings import PipeSettings, load_settings
from pipewise.validation import validate_pipe

__version__ = "0.1.0"

__all__ = [
    "ClassValidatorError",
    "FieldViolation",
    "ParseError",
    "Pipe",
    "PipeError",
    "PipeSettings",
    "Step",
    "default_value_pipe",
    "load_settings",
    "parse_bool_pipe",
    "parse_enum_pipe",
    "parse_float_pipe",
    "parse_int_pipe",
    "parse_json_pipe",
    "pipe",
    "throw_pipe",
    "use_body",
    "use_param",
    "use_query",
    "validate_pipe",
]
