"""
Pipe composition engine.

A `Pipe` is an immutable, ordered tuple of steps exposed as one callable:

    p = pipe(str.strip).pipe(int).pipe(lambda n: n * 10)
    p("  12 ")  # -> 120

Steps may return awaitables. `.pipe()` hands whatever the previous step returned
to the next one untouched, so nothing is awaited until a consumer does it.
`.flat_pipe()` always awaits the upstream value (and the step's own result)
before continuing, which makes the pipe from that point on a coroutine function.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Generic, Tuple, Type, TypeVar, Union

T = TypeVar("T")
In = TypeVar("In")
Out = TypeVar("Out")

Step = Callable[..., Any]

_NOTHING = object()


def _identity(value: T) -> T:
    return value


def _constant(value: Any) -> Step:
    def _step(*_args: Any, **_kwargs: Any) -> Any:
        return value

    return _step


def _as_step(value: Any) -> Step:
    if isinstance(value, Pipe) or callable(value):
        return value
    return _constant(value)


def _awaiting(step: Step) -> Callable[[Any], Awaitable[Any]]:
    async def _step(value: Any) -> Any:
        if inspect.isawaitable(value):
            value = await value
        result = step(value)
        if inspect.isawaitable(result):
            result = await result
        return result

    _step.__name__ = f"flat({getattr(step, '__name__', type(step).__name__)})"
    return _step


class Pipe(Generic[In, Out]):
    __slots__ = ("_steps",)

    def __init__(self, steps: Tuple[Step, ...]) -> None:
        if not steps:
            raise ValueError("A pipe needs at least one step.")
        self._steps = tuple(steps)

    @property
    def steps(self) -> Tuple[Step, ...]:
        return self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        first, *rest = self._steps
        value = first(*args, **kwargs)
        for step in rest:
            value = step(value)
        return value

    def pipe(self, step: Any) -> "Pipe[In, Any]":
        """Append `step`; the upstream value is passed on as-is, awaitable or not."""
        return Pipe(self._steps + (_as_step(step),))

    def flat_pipe(self, step: Any) -> "Pipe[In, Any]":
        """Append `step` behind an await of the upstream value (and of the step's result)."""
        return Pipe(self._steps + (_awaiting(_as_step(step)),))

    def __repr__(self) -> str:
        names = [getattr(s, "__name__", type(s).__name__) for s in self._steps]
        return f"Pipe({' -> '.join(names)})"


def pipe(value: Any = _NOTHING) -> Pipe[Any, Any]:
    """
    Build a pipe from a value, a callable or an existing pipe.

    - no argument: identity pipe
    - `Pipe`: returned unchanged
    - callable: one-step pipe
    - anything else (awaitables included): a pipe that always returns that value
    """
    if value is _NOTHING:
        return Pipe((_identity,))
    if isinstance(value, Pipe):
        return value
    return Pipe((_as_step(value),))


def throw_pipe(error_type: Union[Type[BaseException], Tuple[Type[BaseException], ...]] = Exception) -> Step:
    """
    Raise values of `error_type`, return everything else unchanged.

    An awaitable input yields a coroutine that applies the same rule once resolved.
    """

    def _check(value: Any) -> Any:
        if isinstance(value, error_type):
            raise value
        return value

    def _throw(value: Any) -> Any:
        if inspect.isawaitable(value):
            return _awaiting(_check)(value)
        return _check(value)

    return _throw


__all__ = ["Pipe", "Step", "pipe", "throw_pipe"]
