"""
`validate_pipe()`: one step shape for heterogeneous validators.

Supported validator kinds, tried in this order:

- schema-style: a pydantic `BaseModel` subclass or a `TypeAdapter` instance.
  Failures come back as pydantic's own `ValidationError`, untouched.
- decorated-class: a stdlib `@dataclass` whose fields carry their rules as
  `Annotated[...]` metadata (annotated_types / pydantic `Field` constraints).
  Failures come back as `ClassValidatorError`, one detail per failing field.
  Fields typed as a dataclass, or as a list/tuple of one, are converted from
  mappings and checked recursively; their failures fold into the parent
  field's detail under keys like `address.city:string_too_short`.

Field checks are started together in one anyio task group and joined before
the step returns. pydantic validation is synchronous, so on the event loop
they still execute one after another.

The step is always a coroutine function and never raises on invalid input.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import functools
import logging
import types
import typing
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import anyio
from pydantic import BaseModel, TypeAdapter, ValidationError

from pipewise.errors import ClassValidatorError, FieldViolation

logger = logging.getLogger("pipewise.validation")

ValidationStep = Callable[[Any], Awaitable[Any]]

_MISSING = object()
_CLASS_OPTIONS = ("strict", "context")
_SEQUENCE_ORIGINS = (list, tuple, collections.abc.Sequence, collections.abc.MutableSequence)


@dataclasses.dataclass(frozen=True)
class _FieldPlan:
    field: dataclasses.Field
    adapter: TypeAdapter
    nested: Optional[type]
    # True when `nested` is the item type of a list/tuple field.
    many: bool = False


def _is_schema(validator: Any) -> bool:
    if isinstance(validator, TypeAdapter):
        return True
    return isinstance(validator, type) and issubclass(validator, BaseModel)


def _is_decorated_class(validator: Any) -> bool:
    return isinstance(validator, type) and dataclasses.is_dataclass(validator)


def _validator_name(validator: Any) -> str:
    return getattr(validator, "__name__", type(validator).__name__)


def _strip_annotated(hint: Any) -> Any:
    if typing.get_origin(hint) is typing.Annotated:
        return typing.get_args(hint)[0]
    return hint


def _nested_dataclass(hint: Any) -> Tuple[Optional[type], bool]:
    hint = _strip_annotated(hint)
    origin = typing.get_origin(hint)
    candidates = typing.get_args(hint) if origin in (typing.Union, types.UnionType) else (hint,)
    for c in candidates:
        c = _strip_annotated(c)
        if _is_decorated_class(c):
            return c, False
        args = typing.get_args(c)
        if typing.get_origin(c) in _SEQUENCE_ORIGINS and args:
            item = _strip_annotated(args[0])
            if _is_decorated_class(item):
                return item, True
    return None, False


@functools.lru_cache(maxsize=None)
def _plan(cls: type) -> Tuple[_FieldPlan, ...]:
    hints = typing.get_type_hints(cls, include_extras=True)
    out: List[_FieldPlan] = []
    for f in dataclasses.fields(cls):
        hint = hints.get(f.name, Any)
        nested, many = _nested_dataclass(hint)
        out.append(_FieldPlan(field=f, adapter=TypeAdapter(hint), nested=nested, many=many))
    return tuple(out)


def _read(source: Any, name: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(name, _MISSING)
    return getattr(source, name, _MISSING)


def _default(f: dataclasses.Field) -> Any:
    if f.default is not dataclasses.MISSING:
        return f.default
    if f.default_factory is not dataclasses.MISSING:
        return f.default_factory()
    return None


def _convert_nested(p: _FieldPlan, raw: Any) -> Any:
    if not p.many:
        return _to_instance(p.nested, raw) if isinstance(raw, Mapping) else raw
    if isinstance(raw, (list, tuple)):
        return type(raw)(_to_instance(p.nested, item) if isinstance(item, Mapping) else item for item in raw)
    return raw


def _to_instance(cls: type, source: Any) -> Any:
    """
    Build `cls` from `source` without running `__init__`.

    Only declared fields are read, so unknown keys never reach validation.
    Mappings under dataclass-typed fields (or inside list/tuple fields of a
    dataclass item type) are converted recursively.
    """
    instance = object.__new__(cls)
    for p in _plan(cls):
        raw = _read(source, p.field.name)
        if raw is _MISSING:
            raw = _default(p.field)
        elif p.nested is not None:
            raw = _convert_nested(p, raw)
        object.__setattr__(instance, p.field.name, raw)
    return instance


def _nested_constraints(p: _FieldPlan, value: Any, strict: bool, context: Any) -> Dict[str, str]:
    # pydantic accepts existing dataclass instances as-is, so nested rules are checked here.
    if p.many:
        items = [(f"{p.field.name}.{i}", item) for i, item in enumerate(value)] if isinstance(value, (list, tuple)) else []
    else:
        items = [(p.field.name, value)]

    out: Dict[str, str] = {}
    for prefix, item in items:
        if not isinstance(item, p.nested):
            continue
        for v in _violations(p.nested, item, strict, context):
            for key, msg in v.constraints.items():
                qualified = f"{prefix}.{key}" if ":" in key else f"{prefix}.{v.property}:{key}"
                out[qualified] = msg
    return out


def _check_field(instance: Any, p: _FieldPlan, strict: bool, context: Any) -> Optional[FieldViolation]:
    value = getattr(instance, p.field.name)
    constraints: Dict[str, str] = {}
    if p.nested is not None:
        constraints.update(_nested_constraints(p, value, strict, context))
    try:
        validated = p.adapter.validate_python(value, strict=strict, context=context)
    except ValidationError as e:
        for err in e.errors(include_url=False):
            constraints.setdefault(err["type"], err["msg"])
    else:
        if not constraints:
            object.__setattr__(instance, p.field.name, validated)
    if constraints:
        return FieldViolation(property=p.field.name, value=value, constraints=constraints)
    return None


def _violations(cls: type, instance: Any, strict: bool, context: Any) -> List[FieldViolation]:
    out: List[FieldViolation] = []
    for p in _plan(cls):
        v = _check_field(instance, p, strict, context)
        if v is not None:
            out.append(v)
    return out


def _class_step(cls: type, **options: Any) -> ValidationStep:
    name = _validator_name(cls)
    unsupported = sorted(set(options) - set(_CLASS_OPTIONS))
    if unsupported:
        raise TypeError(
            f"Unsupported option(s) for dataclass validator {name}: {', '.join(unsupported)}. "
            f"Supported: {', '.join(_CLASS_OPTIONS)}."
        )
    strict = options.get("strict", True)
    context = options.get("context")
    _plan(cls)

    async def _validate(value: Any) -> Any:
        instance = _to_instance(cls, value)
        plan = _plan(cls)
        results: List[Optional[FieldViolation]] = [None] * len(plan)

        async def _run(i: int, p: _FieldPlan) -> None:
            results[i] = _check_field(instance, p, strict, context)

        async with anyio.create_task_group() as tg:
            for i, p in enumerate(plan):
                tg.start_soon(_run, i, p)

        details = [r for r in results if r is not None]
        if details:
            logger.debug("class validation failed validator=%s fields=%s", name, [d.property for d in details])
            return ClassValidatorError(details)
        return instance

    return _validate


def _schema_step(validator: Any, **options: Any) -> ValidationStep:
    run = validator.validate_python if isinstance(validator, TypeAdapter) else validator.model_validate
    name = _validator_name(validator)

    async def _validate(value: Any) -> Any:
        try:
            return run(value, **options)
        except ValidationError as e:
            logger.debug("schema validation failed validator=%s errors=%s", name, e.error_count())
            return e

    return _validate


def validate_pipe(validator: Any, **options: Any) -> ValidationStep:
    """
    Wrap `validator` into an async step returning the valid value or an error value.

    `options` go to the underlying call: `strict`, `context` and `from_attributes`
    for pydantic validators; only `strict` (default True) and `context` for
    dataclasses, anything else raises TypeError.
    """
    if _is_schema(validator):
        return _schema_step(validator, **options)
    if _is_decorated_class(validator):
        return _class_step(validator, **options)
    raise TypeError(
        f"Unsupported validator {validator!r}: expected a pydantic model, a TypeAdapter or a dataclass."
    )


__all__ = ["ValidationStep", "validate_pipe"]
