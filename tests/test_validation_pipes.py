from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Annotated, List, Optional

import pytest
from annotated_types import Ge, MinLen
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from pipewise import ClassValidatorError, FieldViolation, pipe, throw_pipe, validate_pipe


@dataclass
class UserClass:
    name: Annotated[str, MinLen(1)]
    age: Annotated[int, Ge(0)]
    status: bool
    scores: List[int] = field(default_factory=list)


@dataclass
class Address:
    city: Annotated[str, MinLen(1)]


@dataclass
class Customer:
    name: str
    address: Optional[Address] = None
    others: List[Address] = field(default_factory=list)


class UserModel(BaseModel):
    name: str
    age: int
    status: bool


class StrictUserModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    name: str
    age: int
    status: bool


valid = {"name": "Vlad", "age": 22, "status": True}
invalid = {"name": 5140, "age": "22", "status": "true"}
extra_fields = {"name": "Vlad", "age": 22, "status": True, "someField": "value"}
empty_field = {"name": "Vlad", "status": True}


def _run_all(step, *values):
    async def run():
        return await asyncio.gather(*(step(v) for v in values))

    return asyncio.run(run())


def test_validate_pipe_is_always_async():
    for validator in (UserClass, UserModel, TypeAdapter(int)):
        pending = validate_pipe(validator)(valid)
        assert inspect.isawaitable(pending)
        asyncio.run(pending)


def test_class_validator():
    res1, res2, res3, res4 = _run_all(validate_pipe(UserClass), valid, invalid, extra_fields, empty_field)

    assert isinstance(res1, UserClass)
    assert res1 == UserClass(name="Vlad", age=22, status=True)

    assert isinstance(res2, ClassValidatorError)
    assert [d.property for d in res2.details] == ["name", "age", "status"]

    # Unknown input keys are dropped before validation.
    assert isinstance(res3, UserClass)
    assert not hasattr(res3, "someField")

    assert isinstance(res4, ClassValidatorError)
    assert len(res4.details) == 1
    assert res4.details[0].property == "age"
    assert res4.details[0].value is None


def test_class_validator_one_detail_per_field():
    res = asyncio.run(validate_pipe(UserClass)({**valid, "scores": ["a", "b", "c"]}))

    assert isinstance(res, ClassValidatorError)
    assert len(res.details) == 1
    detail = res.details[0]
    assert isinstance(detail, FieldViolation)
    assert detail.property == "scores"
    assert detail.value == ["a", "b", "c"]
    assert "int_type" in detail.constraints


def test_class_validator_checks_annotated_constraints():
    res = asyncio.run(validate_pipe(UserClass)({"name": "", "age": -1, "status": False}))

    assert isinstance(res, ClassValidatorError)
    by_field = {d.property: d for d in res.details}
    assert set(by_field) == {"name", "age"}
    assert "string_too_short" in by_field["name"].constraints
    assert "greater_than_equal" in by_field["age"].constraints


def test_class_validator_accepts_instances_without_mutating_them():
    original = UserClass(name="Vlad", age=22, status=True)
    res = asyncio.run(validate_pipe(UserClass)(original))

    assert res == original
    assert res is not original


def test_class_validator_converts_nested_mappings():
    step = validate_pipe(Customer)

    ok = asyncio.run(step({"name": "Ada", "address": {"city": "Paris", "zip": "75001"}}))
    assert isinstance(ok, Customer)
    assert isinstance(ok.address, Address)
    assert ok.address.city == "Paris"

    no_address = asyncio.run(step({"name": "Ada"}))
    assert isinstance(no_address, Customer)
    assert no_address.address is None


def test_class_validator_checks_nested_dataclass_fields():
    step = validate_pipe(Customer)

    short_city = asyncio.run(step({"name": "Ada", "address": {"city": ""}}))
    assert isinstance(short_city, ClassValidatorError)
    assert len(short_city.details) == 1
    detail = short_city.details[0]
    assert detail.property == "address"
    assert "address.city:string_too_short" in detail.constraints

    no_city = asyncio.run(step({"name": "Ada", "address": {}}))
    assert isinstance(no_city, ClassValidatorError)
    assert [d.property for d in no_city.details] == ["address"]
    assert "address.city:string_type" in no_city.details[0].constraints


def test_class_validator_converts_and_checks_nested_lists():
    step = validate_pipe(Customer)

    ok = asyncio.run(step({"name": "Ada", "others": [{"city": "Paris"}, {"city": "Lyon"}]}))
    assert isinstance(ok, Customer)
    assert [a.city for a in ok.others] == ["Paris", "Lyon"]
    assert all(isinstance(a, Address) for a in ok.others)

    bad = asyncio.run(step({"name": "Ada", "others": [{"city": "Paris"}, {"city": ""}]}))
    assert isinstance(bad, ClassValidatorError)
    assert [d.property for d in bad.details] == ["others"]
    assert "others.1.city:string_too_short" in bad.details[0].constraints


def test_class_validator_nested_and_flat_failures_stay_one_detail_per_field():
    res = asyncio.run(validate_pipe(Customer)({"name": 5, "address": {"city": ""}, "others": [{}]}))

    assert isinstance(res, ClassValidatorError)
    assert [d.property for d in res.details] == ["name", "address", "others"]


def test_class_validator_rejects_unsupported_options():
    with pytest.raises(TypeError, match="from_attributes"):
        validate_pipe(UserClass, from_attributes=True)


def test_class_validator_lax_mode_coerces_fields():
    res = asyncio.run(validate_pipe(UserClass, strict=False)({"name": "Vlad", "age": "22", "status": "true"}))

    assert isinstance(res, UserClass)
    assert res.age == 22
    assert res.status is True


def test_class_validator_error_is_json_ready():
    res = asyncio.run(validate_pipe(UserClass)(empty_field))
    errors = res.errors()
    assert errors == [{"property": "age", "input": None, "constraints": res.details[0].constraints}]
    assert res.code == "class_validation_error"


def test_schema_collects_all_errors():
    res1, res2, res3, res4 = _run_all(
        validate_pipe(UserModel),
        valid,
        {"name": 5140, "age": "twenty-two", "status": "maybe"},
        extra_fields,
        empty_field,
    )

    assert isinstance(res1, UserModel)
    assert isinstance(res2, ValidationError)
    assert res2.error_count() == 3
    assert {e["loc"][0] for e in res2.errors()} == {"name", "age", "status"}
    # Default pydantic config ignores unknown keys.
    assert isinstance(res3, UserModel)
    assert isinstance(res4, ValidationError)
    assert res4.error_count() == 1


def test_strict_schema_rejects_extra_fields():
    res1, res2, res3, res4 = _run_all(validate_pipe(StrictUserModel), valid, invalid, extra_fields, empty_field)

    assert isinstance(res1, StrictUserModel)
    assert isinstance(res2, ValidationError)
    assert res2.error_count() == 3
    assert isinstance(res3, ValidationError)
    assert [e["type"] for e in res3.errors()] == ["extra_forbidden"]
    assert isinstance(res4, ValidationError)


def test_schema_options_are_forwarded():
    lax = asyncio.run(validate_pipe(UserModel)({"name": "Vlad", "age": "22", "status": "true"}))
    strict = asyncio.run(validate_pipe(UserModel, strict=True)({"name": "Vlad", "age": "22", "status": "true"}))

    assert isinstance(lax, UserModel)
    assert isinstance(strict, ValidationError)


def test_type_adapter_validator():
    step = validate_pipe(TypeAdapter(List[int]))
    assert asyncio.run(step(["1", 2])) == [1, 2]
    assert isinstance(asyncio.run(step(["x"])), ValidationError)


def test_validation_feeds_the_throw_boundary():
    p = pipe(validate_pipe(UserClass)).flat_pipe(throw_pipe())

    assert isinstance(asyncio.run(p(valid)), UserClass)
    with pytest.raises(ClassValidatorError):
        asyncio.run(p(invalid))


def test_unsupported_validator_is_a_programming_error():
    with pytest.raises(TypeError):
        validate_pipe(object())
    with pytest.raises(TypeError):
        validate_pipe(dict)
