import asyncio

import pytest

from pipewise import ClassValidatorError, ParseError, pipe, throw_pipe


def test_throw_pipe_passes_plain_values():
    p = throw_pipe()
    assert p(1234) == 1234
    assert p(None) is None


def test_throw_pipe_raises_error_values():
    p = throw_pipe()
    err = ParseError("bad", "x")
    with pytest.raises(ParseError) as exc_info:
        p(err)
    assert exc_info.value is err


def test_throw_pipe_only_raises_the_designated_kind():
    p = throw_pipe(ParseError)
    other = ClassValidatorError([])
    assert p(other) is other
    with pytest.raises(ParseError):
        p(ParseError())


def test_throw_pipe_resolves_awaitables_first():
    async def failing():
        return ParseError()

    async def fine():
        return "ok"

    p = throw_pipe()
    assert asyncio.run(p(fine())) == "ok"
    with pytest.raises(ParseError):
        asyncio.run(p(failing()))


def test_throw_pipe_at_the_end_of_a_chain():
    from pipewise import parse_int_pipe

    p = pipe(parse_int_pipe()).pipe(throw_pipe())
    assert p("7") == 7
    with pytest.raises(ParseError):
        p("seven")
